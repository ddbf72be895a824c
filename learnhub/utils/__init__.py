"""
Utility modules for LearnHub.

This package contains reusable helpers and constants:
- helpers: Date handling, URL checks and request value coercion
- constants: Priority markers, category labels, sample announcements
- filters: Admin listing filters and display ordering
- email_content: Announcement email rendering
"""

from learnhub.utils.helpers import format_utc_iso, utc_now, to_naive_utc

__all__ = [
    'format_utc_iso',
    'utc_now',
    'to_naive_utc',
]
