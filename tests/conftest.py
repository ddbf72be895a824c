import os
from datetime import datetime

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Override env vars for testing
os.environ["SECRET_KEY"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["FLASK_ENV"] = "testing"
os.environ.setdefault("RATELIMIT_STORAGE_URI", "memory://")

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine

from learnhub import create_app
from learnhub.auth import Caller
from learnhub.extensions import db
from learnhub.models import (
    User, Course, Enrollment, EnrollmentStatus, Role,
    Announcement, AnnouncementType, AnnouncementDisplayType,
)


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Register event listener once at module load time
event.listen(Engine, "connect", _enable_sqlite_foreign_keys)




@pytest.fixture
def app():
    """Provide a Flask app configured for tests."""
    flask_app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "ENV": "testing",
        "SESSION_COOKIE_SECURE": False,
        "RATELIMIT_ENABLED": False,
        "MAIL_SUPPRESS_SEND": True,
        "MAIL_DEFAULT_SENDER": "noreply@learnhub.test",
        "PLATFORM_NAME": "LearnHub",
        "SCHEDULER_TIMEZONE": "UTC",
    })
    yield flask_app


@pytest.fixture
def client(app):
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    client = app.test_client()
    yield client
    db.session.remove()
    db.drop_all()
    ctx.pop()


# -------------------- DIRECTORY FIXTURES --------------------

def _make_user(name, email, role=Role.STUDENT, created_at=None):
    user = User(name=name, email=email, role=role)
    if created_at is not None:
        user.created_at = created_at
    db.session.add(user)
    db.session.commit()
    return user


def _enroll(user, course, status=EnrollmentStatus.ENROLLED):
    enrollment = Enrollment(user_id=user.id, course_id=course.id, status=status)
    db.session.add(enrollment)
    db.session.commit()
    return enrollment


def _make_announcement(creator, **overrides):
    """Insert an announcement directly, bypassing service validation."""
    values = {
        'title': 'Test Announcement',
        'content': 'This is a test message',
        'type': AnnouncementType.ALL_USERS,
        'is_active': True,
    }
    values.update(overrides)
    announcement = Announcement(created_by=creator.id, **values)
    db.session.add(announcement)
    db.session.commit()
    return announcement


def _caller_for(user):
    return Caller(user_id=user.id, role=user.role)


def _login(client, user):
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
    return client


@pytest.fixture
def admin_user(client):
    return _make_user('Ada Admin', 'admin@learnhub.test', Role.ADMIN)


@pytest.fixture
def instructor_user(client):
    return _make_user('Ian Instructor', 'instructor@learnhub.test', Role.INSTRUCTOR)


@pytest.fixture
def student_user(client):
    return _make_user('Sam Student', 'student@learnhub.test', Role.STUDENT)


@pytest.fixture
def course(client):
    course = Course(title='Intro to Python')
    db.session.add(course)
    db.session.commit()
    return course


@pytest.fixture
def admin_caller(admin_user):
    return _caller_for(admin_user)


@pytest.fixture
def admin_client(client, admin_user):
    """A client with a logged-in admin."""
    return _login(client, admin_user)


@pytest.fixture
def student_client(client, student_user):
    """A client with a logged-in student."""
    return _login(client, student_user)


@pytest.fixture
def email_announcement(admin_user):
    return _make_announcement(
        admin_user,
        title='Weekly digest',
        display_type=AnnouncementDisplayType.EMAIL,
        starts_at=datetime(2026, 3, 15, 9, 0, 0),
    )


@pytest.fixture
def make_user(client):
    return _make_user


@pytest.fixture
def make_announcement(client):
    return _make_announcement


@pytest.fixture
def enroll(client):
    return _enroll


@pytest.fixture
def login(client):
    return lambda user: _login(client, user)
