"""
Database models for LearnHub.

All SQLAlchemy models are defined here with proper relationships and properties.
Times are stored as naive UTC in the database.
"""

from datetime import datetime, timezone
import enum
import uuid

from learnhub.extensions import db
from learnhub.utils.constants import PRIORITY_MARKERS, DEFAULT_PRIORITY_MARKER
from learnhub.utils.helpers import format_utc_iso


def _utc_now():
    """Naive UTC timestamp for column defaults."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id():
    return str(uuid.uuid4())


def _enum_column(enum_cls, name, **kwargs):
    return db.Column(
        db.Enum(enum_cls, values_callable=lambda x: [e.value for e in x], name=name),
        **kwargs
    )


class LookupEnum(enum.Enum):
    """Enum base with a strict string lookup used by request parsing."""

    @classmethod
    def from_string(cls, value):
        """Convert string to enum, raising ValueError if invalid."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Invalid {cls.__name__}: {value}")

    @classmethod
    def values(cls):
        return [member.value for member in cls]


# -------------------- ENUMS --------------------

class Role(LookupEnum):
    ADMIN = 'ADMIN'
    INSTRUCTOR = 'INSTRUCTOR'
    STUDENT = 'STUDENT'


class EnrollmentStatus(LookupEnum):
    ENROLLED = 'ENROLLED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class AnnouncementType(LookupEnum):
    ALL_USERS = 'ALL_USERS'
    PUBLIC_USERS = 'PUBLIC_USERS'  # Visitors without an account
    REGISTERED_USERS = 'REGISTERED_USERS'
    COURSE_STUDENTS = 'COURSE_STUDENTS'
    INSTRUCTORS = 'INSTRUCTORS'
    SPECIFIC_ROLES = 'SPECIFIC_ROLES'
    SPECIFIC_USERS = 'SPECIFIC_USERS'
    PROMOTIONAL = 'PROMOTIONAL'
    SYSTEM_UPDATE = 'SYSTEM_UPDATE'


class AnnouncementPriority(LookupEnum):
    P1 = 'P1'  # Critical/urgent
    P2 = 'P2'  # Important
    P3 = 'P3'  # Informational


class AnnouncementCategory(LookupEnum):
    GENERAL = 'GENERAL'
    PROMOTION = 'PROMOTION'
    COURSE_UPDATE = 'COURSE_UPDATE'
    SYSTEM_MAINTENANCE = 'SYSTEM_MAINTENANCE'
    NEW_FEATURE = 'NEW_FEATURE'
    INSTRUCTOR_ANNOUNCEMENT = 'INSTRUCTOR_ANNOUNCEMENT'


class AnnouncementDisplayType(LookupEnum):
    BANNER = 'BANNER'
    NOTIFICATION = 'NOTIFICATION'
    SIDEBAR = 'SIDEBAR'
    EMAIL = 'EMAIL'
    IN_APP = 'IN_APP'


# -------------------- DIRECTORY MODELS --------------------

class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    email = db.Column(db.String(255), unique=True, nullable=True)
    name = db.Column(db.String(120), nullable=True)
    role = _enum_column(Role, 'user_role_enum', default=Role.STUDENT, nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    __table_args__ = (
        db.Index('ix_users_role', 'role'),
    )

    def __repr__(self):
        return f'<User {self.id} {self.role.value if self.role else None}>'


class Course(db.Model):
    __tablename__ = 'courses'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    title = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)


class Enrollment(db.Model):
    __tablename__ = 'enrollments'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False)
    status = _enum_column(EnrollmentStatus, 'enrollment_status_enum', default=EnrollmentStatus.ENROLLED, nullable=False)
    enrolled_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    user = db.relationship('User', backref=db.backref('enrollments', lazy='dynamic', passive_deletes=True))
    course = db.relationship('Course', backref=db.backref('enrollments', lazy='dynamic', passive_deletes=True))

    __table_args__ = (
        db.UniqueConstraint('user_id', 'course_id', name='uq_enrollments_user_course'),
        db.Index('ix_enrollments_course_status', 'course_id', 'status'),
    )


# -------------------- ANNOUNCEMENT MODELS --------------------

def _sync_links(collection, values, attr, factory):
    """Make ``collection`` hold exactly one link per value.

    Links whose value survives are kept in place so the composite primary
    keys never collide inside one flush.
    """
    wanted = list(dict.fromkeys(values or []))
    for link in list(collection):
        if getattr(link, attr) not in wanted:
            collection.remove(link)
    present = {getattr(link, attr) for link in collection}
    for value in wanted:
        if value not in present:
            collection.append(factory(value))


class Announcement(db.Model):
    """
    An admin-authored message with a targeting type and a visibility window.

    Visibility is never stored: ``should_display`` evaluates ``is_active``,
    ``starts_at`` and ``expires_at`` against the current time on each read.
    Tags and targeting sets live in association tables so "any-of" filters
    stay portable across databases.
    """
    __tablename__ = 'announcements'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)

    # Classification
    type = _enum_column(AnnouncementType, 'announcement_type_enum', nullable=False)
    priority = _enum_column(AnnouncementPriority, 'announcement_priority_enum',
                            default=AnnouncementPriority.P3, nullable=False)
    category = _enum_column(AnnouncementCategory, 'announcement_category_enum',
                            default=AnnouncementCategory.GENERAL, nullable=False)
    display_type = _enum_column(AnnouncementDisplayType, 'announcement_display_type_enum',
                                default=AnnouncementDisplayType.IN_APP, nullable=False)

    # Targeting (COURSE_STUDENTS)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id', ondelete='SET NULL'), nullable=True)

    # Temporal window, NULL = open ended
    starts_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    # Flags
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    show_as_banner = db.Column(db.Boolean, default=False, nullable=False)
    send_email = db.Column(db.Boolean, default=False, nullable=False)

    # Presentation
    action_url = db.Column(db.String(500), nullable=True)
    action_text = db.Column(db.String(100), nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    # Provenance
    created_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    # Relationships
    course = db.relationship('Course')
    creator = db.relationship('User', foreign_keys=[created_by])
    tag_links = db.relationship('AnnouncementTag', backref='announcement', lazy='selectin',
                                cascade='all, delete-orphan', passive_deletes=True)
    role_links = db.relationship('AnnouncementTargetRole', backref='announcement', lazy='selectin',
                                 cascade='all, delete-orphan', passive_deletes=True)
    user_links = db.relationship('AnnouncementTargetUser', backref='announcement', lazy='selectin',
                                 cascade='all, delete-orphan', passive_deletes=True)

    __table_args__ = (
        db.Index('ix_announcements_active_priority', 'is_active', 'priority', 'created_at'),
        db.Index('ix_announcements_type', 'type'),
        db.Index('ix_announcements_display_starts', 'display_type', 'starts_at'),
    )

    @property
    def tags(self):
        return sorted(link.tag for link in self.tag_links)

    @tags.setter
    def tags(self, values):
        _sync_links(self.tag_links, values, 'tag', lambda v: AnnouncementTag(tag=v))

    @property
    def target_roles(self):
        return sorted(link.role for link in self.role_links)

    @target_roles.setter
    def target_roles(self, values):
        _sync_links(self.role_links, values, 'role', lambda v: AnnouncementTargetRole(role=v))

    @property
    def target_user_ids(self):
        return sorted(link.user_id for link in self.user_links)

    @target_user_ids.setter
    def target_user_ids(self, values):
        _sync_links(self.user_links, values, 'user_id', lambda v: AnnouncementTargetUser(user_id=v))

    def should_display(self, now=None):
        """Return True when the announcement is visible at ``now``."""
        from learnhub.visibility import is_visible  # Imported lazily to avoid circular import
        return is_visible(self, now)

    def is_expired(self, now=None):
        from learnhub.visibility import has_expired
        return has_expired(self, now)

    def get_priority_marker(self):
        return PRIORITY_MARKERS.get(self.priority.value if self.priority else None, DEFAULT_PRIORITY_MARKER)

    def to_dict(self):
        creator = self.creator
        course = self.course
        return {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'type': self.type.value,
            'priority': self.priority.value,
            'category': self.category.value,
            'display_type': self.display_type.value,
            'course_id': self.course_id,
            'course': {'id': course.id, 'title': course.title} if course else None,
            'target_roles': self.target_roles,
            'target_user_ids': self.target_user_ids,
            'starts_at': format_utc_iso(self.starts_at),
            'expires_at': format_utc_iso(self.expires_at),
            'is_active': self.is_active,
            'show_as_banner': self.show_as_banner,
            'send_email': self.send_email,
            'action_url': self.action_url,
            'action_text': self.action_text,
            'image_url': self.image_url,
            'tags': self.tags,
            'created_by': self.created_by,
            'creator': {'id': creator.id, 'name': creator.name, 'email': creator.email} if creator else None,
            'created_at': format_utc_iso(self.created_at),
            'updated_at': format_utc_iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Announcement {self.id} {self.type.value if self.type else None} {self.title!r}>'


class AnnouncementTag(db.Model):
    """Association model for announcement tags."""
    __tablename__ = 'announcement_tags'
    announcement_id = db.Column(db.String(36), db.ForeignKey('announcements.id', ondelete='CASCADE'), primary_key=True)
    tag = db.Column(db.String(50), primary_key=True)

    __table_args__ = (
        db.Index('ix_announcement_tags_tag', 'tag'),
    )


class AnnouncementTargetRole(db.Model):
    """Association model for SPECIFIC_ROLES targeting."""
    __tablename__ = 'announcement_target_roles'
    announcement_id = db.Column(db.String(36), db.ForeignKey('announcements.id', ondelete='CASCADE'), primary_key=True)
    role = db.Column(db.String(30), primary_key=True)


class AnnouncementTargetUser(db.Model):
    """Association model for SPECIFIC_USERS targeting."""
    __tablename__ = 'announcement_target_users'
    announcement_id = db.Column(db.String(36), db.ForeignKey('announcements.id', ondelete='CASCADE'), primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)

    __table_args__ = (
        db.Index('ix_announcement_target_users_user', 'user_id'),
    )
