"""
Audience resolution for announcements.

Maps an announcement's targeting type (plus course id, target roles or
target user ids) to the users who should receive it by email. Users
without an email address or a display name cannot be addressed and are
dropped with a logged reason.
"""

import logging
from dataclasses import dataclass

from learnhub.models import (
    User, Enrollment, EnrollmentStatus, Role, AnnouncementType,
)

logger = logging.getLogger(__name__)

# Types whose audience is every addressable user
EVERYONE_TYPES = frozenset({
    AnnouncementType.ALL_USERS,
    AnnouncementType.REGISTERED_USERS,
    AnnouncementType.PROMOTIONAL,
    AnnouncementType.SYSTEM_UPDATE,
})


@dataclass(frozen=True)
class Recipient:
    id: str
    email: str
    name: str


class UserDirectory:
    """User and enrollment lookups backed by the SQLAlchemy models.

    Any object exposing these four methods can stand in for it.
    """

    def list_all_users(self):
        return User.query.order_by(User.created_at, User.id).all()

    def list_users_by_roles(self, roles):
        if not roles:
            return []
        return (
            User.query
            .filter(User.role.in_(list(roles)))
            .order_by(User.created_at, User.id)
            .all()
        )

    def list_users_by_ids(self, user_ids):
        if not user_ids:
            return []
        return (
            User.query
            .filter(User.id.in_(list(user_ids)))
            .order_by(User.created_at, User.id)
            .all()
        )

    def list_enrolled_users(self, course_id):
        return (
            User.query
            .join(Enrollment, Enrollment.user_id == User.id)
            .filter(
                Enrollment.course_id == course_id,
                Enrollment.status == EnrollmentStatus.ENROLLED,
            )
            .order_by(Enrollment.enrolled_at, User.id)
            .all()
        )


def _roles_from_names(names, announcement_id):
    roles = []
    for name in names or []:
        try:
            roles.append(Role.from_string(name))
        except ValueError:
            logger.warning("Ignoring unknown target role %r on announcement %s", name, announcement_id)
    return roles


def _candidate_users(announcement, directory):
    """Return the directory users for ``announcement.type`` before filtering."""
    announcement_type = announcement.type

    if announcement_type in EVERYONE_TYPES:
        return directory.list_all_users()

    if announcement_type == AnnouncementType.INSTRUCTORS:
        return directory.list_users_by_roles([Role.INSTRUCTOR])

    if announcement_type == AnnouncementType.COURSE_STUDENTS:
        if not announcement.course_id:
            return []
        return directory.list_enrolled_users(announcement.course_id)

    if announcement_type == AnnouncementType.SPECIFIC_ROLES:
        roles = _roles_from_names(announcement.target_roles, announcement.id)
        return directory.list_users_by_roles(roles) if roles else []

    if announcement_type == AnnouncementType.SPECIFIC_USERS:
        user_ids = announcement.target_user_ids
        return directory.list_users_by_ids(user_ids) if user_ids else []

    if announcement_type == AnnouncementType.PUBLIC_USERS:
        # Public announcements are shown through the public feed, never emailed
        return []

    logger.warning("Unknown announcement type %r on announcement %s", announcement_type, announcement.id)
    return []


def _skip_reason(user):
    email = (user.email or '').strip()
    name = (user.name or '').strip()
    if not email and not name:
        return "no email address or name"
    if not email:
        return "no email address"
    if not name:
        return "no name"
    return None


def resolve_audience(announcement, directory=None):
    """Return the de-duplicated list of Recipients for ``announcement``.

    Order follows the directory's order with the first occurrence of each
    user kept. A missing type-specific parameter yields an empty list.
    """
    directory = directory or UserDirectory()

    recipients = []
    seen = set()
    for user in _candidate_users(announcement, directory):
        if user.id in seen:
            continue
        seen.add(user.id)

        reason = _skip_reason(user)
        if reason:
            logger.info(
                "Skipping user %s for announcement %s: %s",
                user.id, announcement.id, reason,
            )
            continue

        recipients.append(Recipient(id=user.id, email=user.email.strip(), name=user.name.strip()))

    return recipients
