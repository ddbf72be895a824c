"""
Announcement service for LearnHub.

Create/update/toggle/delete operations for admins and the role-aware read
paths (admin listing, per-user feed, public feed, banners, tags). Each
operation that needs a role calls ``require_caller`` first. Errors are
raised as ``learnhub.errors`` exceptions and translated to HTTP responses
by the blueprints.
"""

import logging

from sqlalchemy import and_, or_, func
from sqlalchemy.exc import SQLAlchemyError

from learnhub.auth import require_caller
from learnhub.errors import (
    LearnHubError, ValidationError, NotFoundError, MissingReferenceError,
)
from learnhub.extensions import db
from learnhub.models import (
    Announcement, AnnouncementTag, AnnouncementTargetRole, AnnouncementTargetUser,
    AnnouncementType, AnnouncementPriority, AnnouncementCategory, AnnouncementDisplayType,
    Course, Enrollment, EnrollmentStatus, Role, User,
)
from learnhub.utils.constants import POPULAR_TAGS_LIMIT, SAMPLE_ANNOUNCEMENTS
from learnhub.utils.filters import AnnouncementFilter, build_announcement_query, order_for_display, tags_any_of_clause
from learnhub.utils.helpers import parse_bool, parse_datetime, parse_string_list, is_http_url
from learnhub.visibility import visible_clause

logger = logging.getLogger(__name__)

# Shown in every signed-in user's feed regardless of targeting fields
UNCONDITIONAL_FEED_TYPES = (
    AnnouncementType.ALL_USERS,
    AnnouncementType.REGISTERED_USERS,
    AnnouncementType.INSTRUCTORS,
    AnnouncementType.PROMOTIONAL,
    AnnouncementType.SYSTEM_UPDATE,
)

TARGETING_FIELDS = ('type', 'course_id', 'target_roles', 'target_user_ids')

ANNOUNCEMENT_FIELDS = frozenset({
    'title', 'content', 'type', 'priority', 'category', 'display_type',
    'course_id', 'target_roles', 'target_user_ids', 'is_active',
    'starts_at', 'expires_at', 'action_url', 'action_text', 'send_email',
    'show_as_banner', 'image_url', 'tags',
})

PUBLIC_ANNOUNCEMENT_FIELDS = frozenset({
    'title', 'content', 'priority', 'category', 'display_type',
    'is_active', 'starts_at', 'expires_at', 'action_url', 'action_text',
    'show_as_banner', 'image_url', 'tags',
})

# camelCase spellings accepted from API clients
FIELD_ALIASES = {
    'displayType': 'display_type',
    'courseId': 'course_id',
    'targetRoles': 'target_roles',
    'targetUserIds': 'target_user_ids',
    'isActive': 'is_active',
    'startsAt': 'starts_at',
    'expiresAt': 'expires_at',
    'actionUrl': 'action_url',
    'actionText': 'action_text',
    'sendEmail': 'send_email',
    'showAsBanner': 'show_as_banner',
    'imageUrl': 'image_url',
}

ENUM_FIELDS = {
    'type': AnnouncementType,
    'priority': AnnouncementPriority,
    'category': AnnouncementCategory,
    'display_type': AnnouncementDisplayType,
}

MAX_LENGTHS = {'title': 200, 'action_text': 100, 'action_url': 500, 'image_url': 500}
MAX_TAG_LENGTH = 50


# -------------------- PAYLOAD PARSING --------------------

def _parse_text(value, field_name, required):
    if value is None:
        if required:
            raise ValidationError(f"{field_name} must not be empty")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    value = value.strip()
    if not value:
        if required:
            raise ValidationError(f"{field_name} must not be empty")
        return None
    limit = MAX_LENGTHS.get(field_name)
    if limit and len(value) > limit:
        raise ValidationError(f"{field_name} must be at most {limit} characters")
    return value


def _parse_field(name, value):
    if name in ('title', 'content'):
        return _parse_text(value, name, required=True)

    if name in ENUM_FIELDS:
        enum_cls = ENUM_FIELDS[name]
        try:
            return enum_cls.from_string(value)
        except ValueError:
            raise ValidationError(f"{name} must be one of: {', '.join(enum_cls.values())}")

    if name in ('is_active', 'show_as_banner', 'send_email'):
        return parse_bool(value, name)

    if name in ('starts_at', 'expires_at'):
        return parse_datetime(value, name)

    if name in ('action_url', 'image_url'):
        url = _parse_text(value, name, required=False)
        if url is not None and not is_http_url(url):
            raise ValidationError(f"{name} must be an http(s) URL")
        return url

    if name == 'action_text':
        return _parse_text(value, name, required=False)

    if name == 'course_id':
        return _parse_text(value, name, required=False)

    if name == 'target_roles':
        roles = parse_string_list(value, name)
        unknown = [r for r in roles if r not in Role.values()]
        if unknown:
            raise ValidationError(f"Unknown target roles: {', '.join(unknown)}")
        return roles

    if name == 'target_user_ids':
        return parse_string_list(value, name)

    if name == 'tags':
        tags = parse_string_list(value, name)
        too_long = [t for t in tags if len(t) > MAX_TAG_LENGTH]
        if too_long:
            raise ValidationError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
        return tags

    raise ValidationError(f"Unsupported field: {name}")


def parse_announcement_payload(data, allowed_fields=ANNOUNCEMENT_FIELDS):
    """Validate a create/update payload and return clean values.

    Only keys present in ``data`` appear in the result. Unknown keys are
    rejected so typos never silently drop targeting data.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    values = {}
    for key, raw in data.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in allowed_fields:
            raise ValidationError(f"Unsupported field: {key}")
        values[name] = _parse_field(name, raw)
    return values


# -------------------- INVARIANTS --------------------

def validate_targeting(announcement_type, course_id=None, target_roles=None, target_user_ids=None):
    """Raise ValidationError when the type-specific targeting field is missing."""
    if announcement_type == AnnouncementType.COURSE_STUDENTS and not course_id:
        raise ValidationError("Course ID is required for COURSE_STUDENTS type announcements")
    if announcement_type == AnnouncementType.SPECIFIC_ROLES and not target_roles:
        raise ValidationError("Target roles are required for SPECIFIC_ROLES type announcements")
    if announcement_type == AnnouncementType.SPECIFIC_USERS and not target_user_ids:
        raise ValidationError("Target user IDs are required for SPECIFIC_USERS type announcements")


def check_references(course_id=None, target_user_ids=None):
    """Raise MissingReferenceError naming any course or user that does not exist."""
    if course_id and db.session.get(Course, course_id) is None:
        raise MissingReferenceError(f"Course with ID {course_id} not found", [course_id])

    if target_user_ids:
        found = {
            row.id for row in
            User.query.with_entities(User.id).filter(User.id.in_(target_user_ids)).all()
        }
        missing = [user_id for user_id in target_user_ids if user_id not in found]
        if missing:
            raise MissingReferenceError(f"Users with IDs {', '.join(missing)} not found", missing)


def _commit(action, announcement_id=None):
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to %s announcement %s", action, announcement_id or '')
        raise


# -------------------- WRITES --------------------

def create_announcement(caller, data):
    """Create an announcement after validating targeting and references."""
    require_caller(caller, Role.ADMIN)
    values = parse_announcement_payload(data)

    for required in ('title', 'content', 'type'):
        if required not in values:
            raise ValidationError(f"{required} is required")

    validate_targeting(
        values['type'],
        values.get('course_id'),
        values.get('target_roles'),
        values.get('target_user_ids'),
    )
    check_references(values.get('course_id'), values.get('target_user_ids'))

    announcement = Announcement(created_by=caller.user_id, **values)
    db.session.add(announcement)
    _commit('create')

    logger.info(
        "Announcement %s created by %s (type=%s)",
        announcement.id, caller.user_id, announcement.type.value,
    )
    return announcement


def create_public_announcement(caller, data):
    """Create a PUBLIC_USERS announcement shown to visitors without an account."""
    require_caller(caller, Role.ADMIN)
    values = parse_announcement_payload(data, PUBLIC_ANNOUNCEMENT_FIELDS)

    for required in ('title', 'content'):
        if required not in values:
            raise ValidationError(f"{required} is required")

    values.setdefault('display_type', AnnouncementDisplayType.BANNER)
    values.setdefault('show_as_banner', True)

    announcement = Announcement(
        created_by=caller.user_id,
        type=AnnouncementType.PUBLIC_USERS,
        **values
    )
    db.session.add(announcement)
    _commit('create')

    logger.info("Public announcement %s created by %s", announcement.id, caller.user_id)
    return announcement


def update_announcement(caller, announcement_id, data):
    """Apply a partial update.

    Targeting invariants are checked against the merged result, so changing
    only ``type`` still requires the stored record to carry the matching
    targeting field.
    """
    require_caller(caller, Role.ADMIN)
    announcement = get_announcement(announcement_id)
    values = parse_announcement_payload(data)

    if any(name in values for name in TARGETING_FIELDS):
        validate_targeting(
            values.get('type', announcement.type),
            values.get('course_id', announcement.course_id),
            values.get('target_roles', announcement.target_roles),
            values.get('target_user_ids', announcement.target_user_ids),
        )
    check_references(values.get('course_id'), values.get('target_user_ids'))

    for name, value in values.items():
        setattr(announcement, name, value)
    _commit('update', announcement.id)

    logger.info("Announcement %s updated (%s)", announcement.id, ", ".join(sorted(values)) or "no changes")
    return announcement


def toggle_announcement_status(caller, announcement_id):
    """Flip ``is_active`` and nothing else."""
    require_caller(caller, Role.ADMIN)
    announcement = get_announcement(announcement_id)
    announcement.is_active = not announcement.is_active
    _commit('toggle', announcement.id)

    logger.info("Announcement %s is_active=%s", announcement.id, announcement.is_active)
    return announcement


def delete_announcement(caller, announcement_id):
    require_caller(caller, Role.ADMIN)
    announcement = get_announcement(announcement_id)
    db.session.delete(announcement)
    _commit('delete', announcement_id)
    logger.info("Announcement %s deleted by %s", announcement_id, caller.user_id)


def seed_sample_announcements(caller):
    """Create the sample announcements; a failing sample does not stop the rest."""
    require_caller(caller, Role.ADMIN)
    created = []
    for sample in SAMPLE_ANNOUNCEMENTS:
        try:
            created.append(create_announcement(caller, dict(sample)))
        except (LearnHubError, SQLAlchemyError) as e:
            logger.error("Failed to create sample announcement %r: %s", sample['title'], e)
    return created


# -------------------- READS --------------------

def get_announcement(announcement_id):
    announcement = db.session.get(Announcement, announcement_id) if announcement_id else None
    if announcement is None:
        raise NotFoundError(f"Announcement with ID {announcement_id} not found")
    return announcement


def list_all_announcements(caller):
    """Every announcement regardless of visibility (admin)."""
    require_caller(caller, Role.ADMIN)
    return order_for_display(Announcement.query).all()


def list_announcements_for_admin(caller, filters=None):
    """Every announcement matching ``filters`` regardless of visibility (admin)."""
    require_caller(caller, Role.ADMIN)
    if filters is not None and not isinstance(filters, AnnouncementFilter):
        raise ValidationError("filters must be an AnnouncementFilter")
    return build_announcement_query(filters).all()


def _enrolled_course_ids(user_id):
    rows = (
        Enrollment.query
        .with_entities(Enrollment.course_id)
        .filter(Enrollment.user_id == user_id, Enrollment.status == EnrollmentStatus.ENROLLED)
        .all()
    )
    return [row.course_id for row in rows]


def list_announcements_for_user(caller, now=None):
    """Visible announcements addressed to the calling user."""
    require_caller(caller)
    user = db.session.get(User, caller.user_id)
    if user is None:
        raise NotFoundError(f"User with ID {caller.user_id} not found")

    audience = [
        Announcement.type.in_(UNCONDITIONAL_FEED_TYPES),
        and_(
            Announcement.type == AnnouncementType.SPECIFIC_ROLES,
            Announcement.role_links.any(AnnouncementTargetRole.role == user.role.value),
        ),
        and_(
            Announcement.type == AnnouncementType.SPECIFIC_USERS,
            Announcement.user_links.any(AnnouncementTargetUser.user_id == user.id),
        ),
    ]
    course_ids = _enrolled_course_ids(user.id)
    if course_ids:
        audience.append(and_(
            Announcement.type == AnnouncementType.COURSE_STUDENTS,
            Announcement.course_id.in_(course_ids),
        ))

    query = Announcement.query.filter(visible_clause(now), or_(*audience))
    return order_for_display(query).all()


def list_public_announcements(now=None):
    query = Announcement.query.filter(
        visible_clause(now),
        Announcement.type == AnnouncementType.PUBLIC_USERS,
    )
    return order_for_display(query).all()


def list_banner_announcements(now=None):
    query = Announcement.query.filter(
        visible_clause(now),
        Announcement.show_as_banner.is_(True),
    )
    return order_for_display(query).all()


def list_announcements_by_tags(tags, now=None):
    """Visible announcements carrying at least one of ``tags``."""
    tags = parse_string_list(tags, 'tags')
    if not tags:
        raise ValidationError("At least one tag is required")
    query = Announcement.query.filter(visible_clause(now), tags_any_of_clause(tags))
    return order_for_display(query).all()


def get_popular_tags(limit=POPULAR_TAGS_LIMIT):
    """Most used tags across active announcements, highest count first."""
    count = func.count(AnnouncementTag.announcement_id).label('count')
    rows = (
        db.session.query(AnnouncementTag.tag, count)
        .join(Announcement, Announcement.id == AnnouncementTag.announcement_id)
        .filter(Announcement.is_active.is_(True))
        .group_by(AnnouncementTag.tag)
        .order_by(count.desc(), AnnouncementTag.tag.asc())
        .limit(limit)
        .all()
    )
    return [{'tag': tag, 'count': total} for tag, total in rows]


def _grouped_counts(column):
    rows = db.session.query(column, func.count(Announcement.id)).group_by(column).all()
    return {key.value: total for key, total in rows}


def get_announcement_stats(caller):
    require_caller(caller, Role.ADMIN)
    total = Announcement.query.count()
    active = Announcement.query.filter(Announcement.is_active.is_(True)).count()
    return {
        'total': total,
        'active': active,
        'inactive': total - active,
        'by_priority': _grouped_counts(Announcement.priority),
        'by_type': _grouped_counts(Announcement.type),
        'by_category': _grouped_counts(Announcement.category),
        'by_display_type': _grouped_counts(Announcement.display_type),
    }
