"""Rendering of announcement emails.

Pure functions: given an announcement and a recipient they return the
subject line and the HTML/plain-text bodies. Templates are loaded through
a module-level Jinja environment so no Flask application context is needed.
"""

from dataclasses import dataclass

from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup, escape

from learnhub.utils.constants import (
    PRIORITY_MARKERS, DEFAULT_PRIORITY_MARKER,
    PRIORITY_COLORS, DEFAULT_PRIORITY_COLOR,
    CATEGORY_LABELS, DEFAULT_CATEGORY_LABEL,
    CATEGORY_COLORS, DEFAULT_CATEGORY_COLOR,
)
from learnhub.utils.helpers import utc_now, to_naive_utc

DEFAULT_PLATFORM_NAME = 'LearnHub'


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html_body: str
    text_body: str


def _value(member):
    """Return the raw string of an enum member (or a plain string)."""
    return getattr(member, 'value', member)


def _label(member):
    return (_value(member) or '').replace('_', ' ')


def nl2br(value):
    """Escape ``value`` and turn newlines into ``<br>`` tags."""
    text = (value or '').replace('\r\n', '\n')
    return Markup(escape(text).replace('\n', Markup('<br>\n')))


def format_long_date(dt):
    """Format a UTC datetime like 'January 5, 2026, 09:30 AM UTC'."""
    if dt is None:
        return ''
    dt = to_naive_utc(dt)
    return f"{dt:%B} {dt.day}, {dt:%Y}, {dt:%I:%M %p} UTC"


_env = Environment(
    loader=PackageLoader('learnhub', 'templates'),
    autoescape=select_autoescape(['html']),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters['nl2br'] = nl2br
_env.filters['label'] = _label
_env.filters['long_date'] = format_long_date


def priority_marker(priority):
    return PRIORITY_MARKERS.get(_value(priority), DEFAULT_PRIORITY_MARKER)


def category_label(category):
    return CATEGORY_LABELS.get(_value(category), DEFAULT_CATEGORY_LABEL)


def build_subject(announcement):
    """Return ``'{marker} {category label}: {title}'`` on a single line."""
    title = " ".join(str(announcement.title).split())
    return f"{priority_marker(announcement.priority)} {category_label(announcement.category)}: {title}"


def _context(announcement, recipient, platform_name, now):
    creator = announcement.creator
    show_action = bool(announcement.action_url and announcement.action_text)
    return {
        'platform_name': platform_name,
        'title': announcement.title,
        'content': announcement.content,
        'image_url': announcement.image_url,
        'action_url': announcement.action_url if show_action else None,
        'action_text': announcement.action_text if show_action else None,
        'priority': _value(announcement.priority),
        'priority_color': PRIORITY_COLORS.get(_value(announcement.priority), DEFAULT_PRIORITY_COLOR),
        'category': announcement.category,
        'category_color': CATEGORY_COLORS.get(_value(announcement.category), DEFAULT_CATEGORY_COLOR),
        'announcement_type': announcement.type,
        'creator_name': creator.name if creator else None,
        'creator_email': creator.email if creator else None,
        'created_at': announcement.created_at,
        'recipient_name': recipient.name,
        'recipient_email': recipient.email,
        'year': (now or utc_now()).year,
    }


def render_announcement_email(announcement, recipient, platform_name=DEFAULT_PLATFORM_NAME, now=None):
    """Render the email one recipient receives for ``announcement``.

    Args:
        announcement: Announcement (or any object with the same attributes,
            including ``creator`` with ``name`` and ``email``).
        recipient: Object with ``name`` and ``email``.
        platform_name: Brand shown in the header and footer.
        now: Reference time for the footer year; defaults to the current time.

    Returns:
        RenderedEmail with subject, HTML body and plain-text body.
    """
    context = _context(announcement, recipient, platform_name, now)
    return RenderedEmail(
        subject=build_subject(announcement),
        html_body=_env.get_template('email/announcement.html').render(**context),
        text_body=_env.get_template('email/announcement.txt').render(**context),
    )
