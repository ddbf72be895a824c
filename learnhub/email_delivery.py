"""
Email delivery for announcement batches.

``MailDelivery`` sends one message per recipient over a single SMTP
connection through Flask-Mail and reports per-recipient success/failure.
A failed recipient is logged and recorded; the rest of the batch is still
attempted. Opening the connection itself can fail, in which case the
exception propagates to the caller.
"""

import logging
import smtplib
from dataclasses import dataclass, field

from flask import current_app
from flask_mail import BadHeaderError, Message

from learnhub.extensions import mail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingEmail:
    """A rendered message addressed to a single recipient."""
    recipient_email: str
    recipient_name: str
    subject: str
    html_body: str
    text_body: str = ''


@dataclass
class DeliveryReport:
    sent: list = field(default_factory=list)
    failed: dict = field(default_factory=dict)

    @property
    def attempted(self):
        return len(self.sent) + len(self.failed)

    @property
    def ok(self):
        return not self.failed


def default_sender():
    return current_app.config.get('MAIL_DEFAULT_SENDER') or 'noreply@learnhub.local'


class MailDelivery:
    """SMTP delivery through the shared Flask-Mail extension."""

    def __init__(self, mail_extension=None):
        self.mail = mail_extension or mail

    def deliver(self, messages, sender=None):
        """Send every message in ``messages`` and return a DeliveryReport."""
        report = DeliveryReport()
        if not messages:
            return report

        sender = sender or default_sender()
        with self.mail.connect() as connection:
            for outgoing in messages:
                msg = Message(
                    subject=outgoing.subject,
                    sender=sender,
                    recipients=[outgoing.recipient_email],
                    html=outgoing.html_body,
                    body=outgoing.text_body or None,
                )
                try:
                    connection.send(msg)
                except (BadHeaderError, smtplib.SMTPException, OSError) as e:
                    reason = str(e) or type(e).__name__
                    logger.warning("Failed to send email to %s: %s", outgoing.recipient_email, reason)
                    report.failed[outgoing.recipient_email] = reason
                else:
                    report.sent.append(outgoing.recipient_email)

        logger.info("Sent %d of %d emails", len(report.sent), report.attempted)
        return report


def check_mail_connection(mail_extension=None):
    """Return True when an SMTP connection can be opened."""
    try:
        with (mail_extension or mail).connect():
            pass
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Email service connection failed: %s", e)
        return False
    logger.info("Email service connection verified successfully")
    return True
