"""Create user directory and announcement tables

Revision ID: a1f4c2d9e7b3
Revises:
Create Date: 2026-10-19

Tags and targeting sets live in their own association tables so that
"any-of" lookups work the same on SQLite and PostgreSQL.

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1f4c2d9e7b3'
down_revision = None
branch_labels = None
depends_on = None


ROLE_VALUES = ('ADMIN', 'INSTRUCTOR', 'STUDENT')
ENROLLMENT_STATUS_VALUES = ('ENROLLED', 'COMPLETED', 'CANCELLED')
TYPE_VALUES = (
    'ALL_USERS', 'PUBLIC_USERS', 'REGISTERED_USERS', 'COURSE_STUDENTS', 'INSTRUCTORS',
    'SPECIFIC_ROLES', 'SPECIFIC_USERS', 'PROMOTIONAL', 'SYSTEM_UPDATE',
)
PRIORITY_VALUES = ('P1', 'P2', 'P3')
CATEGORY_VALUES = (
    'GENERAL', 'PROMOTION', 'COURSE_UPDATE', 'SYSTEM_MAINTENANCE',
    'NEW_FEATURE', 'INSTRUCTOR_ANNOUNCEMENT',
)
DISPLAY_TYPE_VALUES = ('BANNER', 'NOTIFICATION', 'SIDEBAR', 'EMAIL', 'IN_APP')

ENUM_NAMES = (
    'announcement_display_type_enum', 'announcement_category_enum',
    'announcement_priority_enum', 'announcement_type_enum',
    'enrollment_status_enum', 'user_role_enum',
)


def table_exists(table_name):
    """Check if a table exists in the database."""
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    return table_name in inspector.get_table_names()


def upgrade():
    """Create users, courses, enrollments and the announcement tables."""

    if not table_exists('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('email', sa.String(255), nullable=True, unique=True),
            sa.Column('name', sa.String(120), nullable=True),
            sa.Column('role', sa.Enum(*ROLE_VALUES, name='user_role_enum'), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_users_role', 'users', ['role'])
        print("✅ Created users table")
    else:
        print("⚠️  Table 'users' already exists, skipping...")

    if not table_exists('courses'):
        op.create_table(
            'courses',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('title', sa.String(200), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        print("✅ Created courses table")
    else:
        print("⚠️  Table 'courses' already exists, skipping...")

    if not table_exists('enrollments'):
        op.create_table(
            'enrollments',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('course_id', sa.String(36), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
            sa.Column('status', sa.Enum(*ENROLLMENT_STATUS_VALUES, name='enrollment_status_enum'), nullable=False),
            sa.Column('enrolled_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('user_id', 'course_id', name='uq_enrollments_user_course'),
        )
        op.create_index('ix_enrollments_course_status', 'enrollments', ['course_id', 'status'])
        print("✅ Created enrollments table")
    else:
        print("⚠️  Table 'enrollments' already exists, skipping...")

    if not table_exists('announcements'):
        op.create_table(
            'announcements',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('title', sa.String(200), nullable=False),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('type', sa.Enum(*TYPE_VALUES, name='announcement_type_enum'), nullable=False),
            sa.Column('priority', sa.Enum(*PRIORITY_VALUES, name='announcement_priority_enum'), nullable=False),
            sa.Column('category', sa.Enum(*CATEGORY_VALUES, name='announcement_category_enum'), nullable=False),
            sa.Column('display_type', sa.Enum(*DISPLAY_TYPE_VALUES, name='announcement_display_type_enum'),
                      nullable=False),
            sa.Column('course_id', sa.String(36), sa.ForeignKey('courses.id', ondelete='SET NULL'), nullable=True),
            sa.Column('starts_at', sa.DateTime(), nullable=True),
            sa.Column('expires_at', sa.DateTime(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('show_as_banner', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('send_email', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('action_url', sa.String(500), nullable=True),
            sa.Column('action_text', sa.String(100), nullable=True),
            sa.Column('image_url', sa.String(500), nullable=True),
            sa.Column('created_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_announcements_active_priority', 'announcements',
                        ['is_active', 'priority', 'created_at'])
        op.create_index('ix_announcements_type', 'announcements', ['type'])
        op.create_index('ix_announcements_display_starts', 'announcements', ['display_type', 'starts_at'])
        print("✅ Created announcements table")
    else:
        print("⚠️  Table 'announcements' already exists, skipping...")

    if not table_exists('announcement_tags'):
        op.create_table(
            'announcement_tags',
            sa.Column('announcement_id', sa.String(36),
                      sa.ForeignKey('announcements.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('tag', sa.String(50), primary_key=True),
        )
        op.create_index('ix_announcement_tags_tag', 'announcement_tags', ['tag'])
        print("✅ Created announcement_tags table")

    if not table_exists('announcement_target_roles'):
        op.create_table(
            'announcement_target_roles',
            sa.Column('announcement_id', sa.String(36),
                      sa.ForeignKey('announcements.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('role', sa.String(30), primary_key=True),
        )
        print("✅ Created announcement_target_roles table")

    if not table_exists('announcement_target_users'):
        op.create_table(
            'announcement_target_users',
            sa.Column('announcement_id', sa.String(36),
                      sa.ForeignKey('announcements.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        )
        op.create_index('ix_announcement_target_users_user', 'announcement_target_users', ['user_id'])
        print("✅ Created announcement_target_users table")


def downgrade():
    """Drop every table created by this revision."""

    for table_name in (
        'announcement_target_users', 'announcement_target_roles', 'announcement_tags',
        'announcements', 'enrollments', 'courses', 'users',
    ):
        if table_exists(table_name):
            op.drop_table(table_name)
            print(f"❌ Dropped {table_name} table")
        else:
            print(f"⚠️  Table '{table_name}' does not exist, skipping...")

    # Native enum types only exist on PostgreSQL
    if op.get_bind().dialect.name == 'postgresql':
        for enum_name in ENUM_NAMES:
            sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
