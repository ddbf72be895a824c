"""
Scheduled background tasks for LearnHub.

Sends EMAIL announcements whose start time falls on the current day. The
job is woken hourly by a ticker (APScheduler in production) or on demand by
an admin, and always runs inside a Flask application context.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytz
from flask import current_app

from learnhub.audience import resolve_audience, UserDirectory
from learnhub.auth import require_caller
from learnhub.email_delivery import MailDelivery, OutgoingEmail, default_sender
from learnhub.errors import DeliveryError
from learnhub.extensions import db, scheduler
from learnhub.models import Announcement, AnnouncementDisplayType, Role
from learnhub.utils.constants import UPCOMING_WINDOW_DAYS
from learnhub.utils.email_content import render_announcement_email, DEFAULT_PLATFORM_NAME
from learnhub.utils.helpers import utc_now, to_naive_utc, format_utc_iso
from learnhub.visibility import not_expired_clause

logger = logging.getLogger('scheduled_tasks')

JOB_ID = 'send_scheduled_announcements'


def configured_timezone():
    """Return the pytz zone named by SCHEDULER_TIMEZONE, or None for server-local."""
    name = current_app.config.get('SCHEDULER_TIMEZONE')
    return pytz.timezone(name) if name else None


def compute_delivery_window(now=None, tz=None):
    """Return ``(start, end)`` of the current day as naive UTC datetimes.

    The day is taken in ``tz`` (a pytz zone) or in server-local time when
    ``tz`` is None. ``start`` is inclusive and ``end`` exclusive.
    """
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local_now = now.astimezone(tz) if tz is not None else now.astimezone()
    midnight = datetime(local_now.year, local_now.month, local_now.day)
    next_midnight = midnight + timedelta(days=1)

    if hasattr(tz, 'localize'):
        start, end = tz.localize(midnight), tz.localize(next_midnight)
    else:
        start = midnight.replace(tzinfo=local_now.tzinfo)
        end = next_midnight.replace(tzinfo=local_now.tzinfo)

    return to_naive_utc(start), to_naive_utc(end)


def find_due_email_announcements(now=None, tz=None):
    """Active EMAIL announcements starting today that have not expired."""
    now = now or utc_now()
    window_start, window_end = compute_delivery_window(now, tz)
    return (
        Announcement.query
        .filter(
            Announcement.is_active.is_(True),
            Announcement.display_type == AnnouncementDisplayType.EMAIL,
            Announcement.starts_at >= window_start,
            Announcement.starts_at < window_end,
            not_expired_clause(now),
        )
        .order_by(Announcement.starts_at.asc(), Announcement.created_at.asc())
        .all()
    )


def _send_announcement(announcement, directory=None, delivery=None, sender=None, platform_name=None, now=None):
    recipients = resolve_audience(announcement, directory)
    if not recipients:
        logger.warning(f"No recipients found for announcement {announcement.id}")
        return None

    platform_name = platform_name or DEFAULT_PLATFORM_NAME
    messages = []
    for recipient in recipients:
        rendered = render_announcement_email(announcement, recipient, platform_name=platform_name, now=now)
        messages.append(OutgoingEmail(
            recipient_email=recipient.email,
            recipient_name=recipient.name,
            subject=rendered.subject,
            html_body=rendered.html_body,
            text_body=rendered.text_body,
        ))

    delivery = delivery or MailDelivery()
    report = delivery.deliver(messages, sender=sender)
    if report.failed:
        logger.warning(
            f"Announcement {announcement.id}: {len(report.failed)} of "
            f"{report.attempted} emails failed"
        )
    logger.info(f"Sent announcement {announcement.id} ({announcement.title}) to {len(report.sent)} users")
    return report


def deliver_announcement(announcement, announcement_id=None, **kwargs):
    """Resolve, render and send one announcement.

    Keyword arguments are passed through: directory, delivery, sender,
    platform_name, now. ``announcement_id`` names the announcement in the
    error when the instance can no longer be loaded. Returns the
    DeliveryReport, or None when the audience is empty. Any failure is
    raised as DeliveryError.
    """
    try:
        announcement_id = announcement_id or announcement.id
        return _send_announcement(announcement, **kwargs)
    except Exception as e:
        reason = str(e) or type(e).__name__
        raise DeliveryError(announcement_id, f"Failed to send announcement {announcement_id}: {reason}") from e


def deliver_scheduled_announcements(now=None, directory=None, delivery=None, tz=None):
    """
    Scheduled job that emails today's EMAIL announcements to their audiences.

    A failure on one announcement is logged and the rest are still
    processed. The job never raises; the returned summary counts what
    happened.
    """
    summary = {'found': 0, 'delivered': 0, 'skipped': 0, 'failed': 0, 'recipients': 0}
    logger.info("Starting scheduled announcement email job")

    try:
        now = now or utc_now()
        if tz is None:
            tz = configured_timezone()
        directory = directory or UserDirectory()
        delivery = delivery or MailDelivery()
        sender = default_sender()
        platform_name = current_app.config.get('PLATFORM_NAME') or DEFAULT_PLATFORM_NAME

        announcements = find_due_email_announcements(now, tz)
        summary['found'] = len(announcements)
        logger.info(f"Found {len(announcements)} announcements to send")

        # Ids are read up front; a rollback expires every instance
        due = [(announcement.id, announcement) for announcement in announcements]
        for announcement_id, announcement in due:
            try:
                report = deliver_announcement(
                    announcement,
                    announcement_id=announcement_id,
                    directory=directory,
                    delivery=delivery,
                    sender=sender,
                    platform_name=platform_name,
                    now=now,
                )
            except DeliveryError as e:
                logger.error(e.message, exc_info=True)
                db.session.rollback()
                summary['failed'] += 1
                continue

            if report is None:
                summary['skipped'] += 1
            else:
                summary['delivered'] += 1
                summary['recipients'] += len(report.sent)

        logger.info(
            f"Announcement email job completed. Delivered {summary['delivered']}, "
            f"skipped {summary['skipped']}, failed {summary['failed']}"
        )

    except Exception as e:
        logger.error(f"Announcement email job failed: {e}", exc_info=True)
        db.session.rollback()

    return summary


def trigger_scheduled_announcements(caller, now=None, **job_kwargs):
    """Run the delivery job synchronously on behalf of an admin."""
    require_caller(caller, Role.ADMIN)
    now = now or utc_now()
    logger.info(f"Manual announcement trigger by {caller.user_id}")
    summary = deliver_scheduled_announcements(now=now, **job_kwargs)
    return {
        'message': 'Scheduled announcements processing triggered',
        'timestamp': format_utc_iso(now),
        'summary': summary,
    }


def list_upcoming_email_announcements(caller, now=None, days=UPCOMING_WINDOW_DAYS):
    """Active EMAIL announcements starting within the next ``days`` days."""
    require_caller(caller, Role.ADMIN)
    now = to_naive_utc(now or utc_now())
    return (
        Announcement.query
        .filter(
            Announcement.is_active.is_(True),
            Announcement.display_type == AnnouncementDisplayType.EMAIL,
            Announcement.starts_at > now,
            Announcement.starts_at <= now + timedelta(days=days),
        )
        .order_by(Announcement.starts_at.asc())
        .all()
    )


class SchedulerTicker:
    """Wakes a callback on an interval through the shared APScheduler instance.

    Anything with ``start(callback)`` and ``stop()`` can replace it.
    """

    def __init__(self, background_scheduler=None, hours=1, job_id=JOB_ID):
        self.scheduler = background_scheduler or scheduler
        self.hours = hours
        self.job_id = job_id

    def start(self, callback):
        self.scheduler.add_job(
            func=callback,
            trigger='interval',
            hours=self.hours,
            id=self.job_id,
            name='Send scheduled announcement emails',
            replace_existing=True,
            max_instances=1  # Prevent overlapping executions
        )
        if not self.scheduler.running:
            self.scheduler.start()
        else:
            logger.info("Scheduler already running")

    def stop(self):
        if self.scheduler.get_job(self.job_id):
            self.scheduler.remove_job(self.job_id)


def init_scheduled_tasks(app, ticker=None):
    """
    Register the announcement email job with a ticker and start it.

    Args:
        app: Flask application instance
        ticker: Object with ``start(callback)``/``stop()``; defaults to an
            APScheduler interval ticker using SCHEDULER_INTERVAL_HOURS.

    Returns:
        The started ticker.
    """
    # Wrapper function that runs the job with Flask app context
    def run_with_context():
        with app.app_context():
            deliver_scheduled_announcements()

    if ticker is None:
        ticker = SchedulerTicker(hours=app.config.get('SCHEDULER_INTERVAL_HOURS', 1))

    ticker.start(run_with_context)
    logger.info("Scheduled tasks initialized. Announcement emails will be checked every "
                f"{app.config.get('SCHEDULER_INTERVAL_HOURS', 1)} hour(s).")
    return ticker
