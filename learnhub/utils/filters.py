"""Typed filter options for the admin announcement listing.

``AnnouncementFilter`` holds every supported restriction as an optional
field; ``build_announcement_query`` is the only place that turns it into
SQL. Each field that is set adds one AND-ed condition.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import List, Optional

from learnhub.errors import ValidationError
from learnhub.models import (
    Announcement, AnnouncementTag, AnnouncementPriority, AnnouncementType,
    AnnouncementCategory, AnnouncementDisplayType,
)
from learnhub.utils.helpers import parse_bool, parse_datetime, parse_string_list, to_naive_utc


@dataclass
class AnnouncementFilter:
    is_active: Optional[bool] = None
    priority: Optional[AnnouncementPriority] = None
    type: Optional[AnnouncementType] = None
    category: Optional[AnnouncementCategory] = None
    display_type: Optional[AnnouncementDisplayType] = None
    created_by: Optional[str] = None
    course_id: Optional[str] = None
    expires_before: Optional[datetime] = None
    expires_after: Optional[datetime] = None
    starts_before: Optional[datetime] = None
    starts_after: Optional[datetime] = None
    tags: Optional[List[str]] = None
    show_as_banner: Optional[bool] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    @classmethod
    def from_args(cls, args) -> "AnnouncementFilter":
        """Build a filter from query-string style arguments.

        Accepts both snake_case and the camelCase names used by older
        clients (``isActive``, ``displayType`` ...). Blank values are
        ignored; malformed values raise ValidationError.
        """

        def get(name, alias=None):
            value = args.get(name)
            if value is None and alias:
                value = args.get(alias)
            if isinstance(value, str) and not value.strip():
                return None
            return value

        def enum_value(enum_cls, name, alias=None):
            raw = get(name, alias)
            if raw is None:
                return None
            try:
                return enum_cls.from_string(raw.strip().upper() if isinstance(raw, str) else raw)
            except ValueError:
                raise ValidationError(f"{name} must be one of: {', '.join(enum_cls.values())}")

        def bool_value(name, alias=None):
            raw = get(name, alias)
            return None if raw is None else parse_bool(raw, name)

        def date_value(name, alias=None):
            raw = get(name, alias)
            return None if raw is None else parse_datetime(raw, name)

        tags = get('tags')
        tag_list = parse_string_list(tags, 'tags') if tags is not None else []
        return cls(
            is_active=bool_value('is_active', 'isActive'),
            priority=enum_value(AnnouncementPriority, 'priority'),
            type=enum_value(AnnouncementType, 'type'),
            category=enum_value(AnnouncementCategory, 'category'),
            display_type=enum_value(AnnouncementDisplayType, 'display_type', 'displayType'),
            created_by=get('created_by', 'createdBy'),
            course_id=get('course_id', 'courseId'),
            expires_before=date_value('expires_before', 'expiresBefore'),
            expires_after=date_value('expires_after', 'expiresAfter'),
            starts_before=date_value('starts_before', 'startsBefore'),
            starts_after=date_value('starts_after', 'startsAfter'),
            tags=tag_list or None,
            show_as_banner=bool_value('show_as_banner', 'showAsBanner'),
        )


def order_for_display(query):
    """Apply the list ordering shared by every read path."""
    return query.order_by(Announcement.priority.asc(), Announcement.created_at.desc())


def tags_any_of_clause(tags):
    return Announcement.tag_links.any(AnnouncementTag.tag.in_(list(tags)))


def build_announcement_query(filters: Optional[AnnouncementFilter] = None, query=None):
    """Return an ordered Announcement query restricted by ``filters``."""
    if query is None:
        query = Announcement.query
    filters = filters or AnnouncementFilter()

    if filters.is_active is not None:
        query = query.filter(Announcement.is_active.is_(filters.is_active))
    if filters.priority is not None:
        query = query.filter(Announcement.priority == filters.priority)
    if filters.type is not None:
        query = query.filter(Announcement.type == filters.type)
    if filters.category is not None:
        query = query.filter(Announcement.category == filters.category)
    if filters.display_type is not None:
        query = query.filter(Announcement.display_type == filters.display_type)
    if filters.created_by is not None:
        query = query.filter(Announcement.created_by == filters.created_by)
    if filters.course_id is not None:
        query = query.filter(Announcement.course_id == filters.course_id)
    if filters.show_as_banner is not None:
        query = query.filter(Announcement.show_as_banner.is_(filters.show_as_banner))

    # Range bounds are exclusive; rows with a NULL bound never match
    if filters.expires_before is not None:
        query = query.filter(Announcement.expires_at < to_naive_utc(filters.expires_before))
    if filters.expires_after is not None:
        query = query.filter(Announcement.expires_at > to_naive_utc(filters.expires_after))
    if filters.starts_before is not None:
        query = query.filter(Announcement.starts_at < to_naive_utc(filters.starts_before))
    if filters.starts_after is not None:
        query = query.filter(Announcement.starts_at > to_naive_utc(filters.starts_after))

    if filters.tags:
        query = query.filter(tags_any_of_clause(filters.tags))

    return order_for_display(query)
