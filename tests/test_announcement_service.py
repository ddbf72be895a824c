"""
Tests for the announcement service.

Covers validation and reference checks on create/update, the role-aware
feeds, ordering, tags, stats and sample seeding.
"""
import logging
from datetime import datetime, timedelta, timezone

import pytest

from learnhub import announcement_service as service
from learnhub.auth import Caller
from learnhub.errors import (
    ValidationError, MissingReferenceError, NotFoundError, PermissionDenied, AuthenticationRequired,
)
from learnhub.extensions import db
from learnhub.models import (
    Announcement, AnnouncementTag, AnnouncementType, AnnouncementPriority,
    AnnouncementCategory, AnnouncementDisplayType, Course, Role,
)
from learnhub.utils.filters import AnnouncementFilter


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _payload(**kwargs):
    data = {'title': 'Welcome', 'content': 'Hello everyone', 'type': 'ALL_USERS'}
    data.update(kwargs)
    return data


# -------------------- CREATE --------------------

class TestCreateAnnouncement:

    def test_create_applies_defaults(self, admin_caller):
        announcement = service.create_announcement(admin_caller, _payload())

        assert announcement.id is not None
        assert announcement.type == AnnouncementType.ALL_USERS
        assert announcement.priority == AnnouncementPriority.P3
        assert announcement.category == AnnouncementCategory.GENERAL
        assert announcement.display_type == AnnouncementDisplayType.IN_APP
        assert announcement.is_active is True
        assert announcement.show_as_banner is False
        assert announcement.created_by == admin_caller.user_id
        assert announcement.created_at is not None

    def test_create_accepts_camel_case_fields(self, admin_caller):
        announcement = service.create_announcement(admin_caller, _payload(
            displayType='EMAIL',
            startsAt='2026-03-15T09:00:00Z',
            actionUrl='https://learnhub.example.com/start',
            actionText='Start',
            showAsBanner=True,
            tags=['welcome', 'onboarding', 'welcome'],
        ))

        assert announcement.display_type == AnnouncementDisplayType.EMAIL
        assert announcement.starts_at == datetime(2026, 3, 15, 9, 0, 0)
        assert announcement.show_as_banner is True
        assert announcement.tags == ['onboarding', 'welcome']

    def test_course_students_requires_course(self, admin_caller):
        with pytest.raises(ValidationError) as exc:
            service.create_announcement(admin_caller, _payload(type='COURSE_STUDENTS'))
        assert 'Course ID is required' in exc.value.message
        assert Announcement.query.count() == 0

    def test_specific_roles_requires_roles(self, admin_caller):
        with pytest.raises(ValidationError):
            service.create_announcement(admin_caller, _payload(type='SPECIFIC_ROLES', target_roles=[]))
        assert Announcement.query.count() == 0

    def test_specific_users_requires_users(self, admin_caller):
        with pytest.raises(ValidationError):
            service.create_announcement(admin_caller, _payload(type='SPECIFIC_USERS'))

    def test_missing_course_is_named(self, admin_caller):
        with pytest.raises(MissingReferenceError) as exc:
            service.create_announcement(admin_caller, _payload(type='COURSE_STUDENTS', course_id='no-such-course'))
        assert exc.value.missing_ids == ['no-such-course']
        assert 'no-such-course' in exc.value.message
        assert Announcement.query.count() == 0

    def test_missing_users_are_named(self, admin_caller, student_user):
        with pytest.raises(MissingReferenceError) as exc:
            service.create_announcement(admin_caller, _payload(
                type='SPECIFIC_USERS', target_user_ids=[student_user.id, 'u2'],
            ))
        assert exc.value.missing_ids == ['u2']
        assert exc.value.message == 'Users with IDs u2 not found'
        assert Announcement.query.count() == 0

    @pytest.mark.parametrize('field, value', [
        ('priority', 'P9'),
        ('type', 'EVERYONE'),
        ('category', 'GOSSIP'),
        ('display_type', 'POPUP'),
        ('title', '   '),
        ('content', ''),
        ('action_url', 'javascript:alert(1)'),
        ('image_url', 'not a url'),
        ('is_active', 'maybe'),
        ('starts_at', 'next tuesday'),
        ('target_roles', ['WIZARD']),
        ('tags', 'x' * 51),
        ('unexpected', 'value'),
    ])
    def test_invalid_fields_are_rejected(self, admin_caller, field, value):
        with pytest.raises(ValidationError):
            service.create_announcement(admin_caller, _payload(**{field: value}))
        assert Announcement.query.count() == 0

    def test_missing_title_is_rejected(self, admin_caller):
        with pytest.raises(ValidationError):
            service.create_announcement(admin_caller, {'content': 'c', 'type': 'ALL_USERS'})

    def test_requires_admin(self, student_user):
        student = Caller(user_id=student_user.id, role=Role.STUDENT)
        with pytest.raises(PermissionDenied):
            service.create_announcement(student, _payload())
        with pytest.raises(AuthenticationRequired):
            service.create_announcement(None, _payload())

    def test_public_announcement_defaults(self, admin_caller):
        announcement = service.create_public_announcement(admin_caller, {
            'title': 'Open house', 'content': 'Visit us', 'priority': 'P1',
        })
        assert announcement.type == AnnouncementType.PUBLIC_USERS
        assert announcement.display_type == AnnouncementDisplayType.BANNER
        assert announcement.show_as_banner is True

    def test_public_announcement_rejects_targeting(self, admin_caller):
        with pytest.raises(ValidationError):
            service.create_public_announcement(admin_caller, {
                'title': 'Open house', 'content': 'Visit us', 'type': 'ALL_USERS',
            })


# -------------------- UPDATE / TOGGLE / DELETE --------------------

class TestModifyAnnouncement:

    def test_partial_update(self, admin_caller, admin_user, make_announcement):
        announcement = make_announcement(admin_user, title='Old', tags=['a', 'b'])

        updated = service.update_announcement(admin_caller, announcement.id, {
            'title': 'New', 'tags': ['b', 'c'], 'priority': 'P1',
        })

        assert updated.title == 'New'
        assert updated.priority == AnnouncementPriority.P1
        assert updated.tags == ['b', 'c']
        assert updated.content == 'This is a test message'

    def test_type_change_checks_merged_record(self, admin_caller, admin_user, make_announcement):
        announcement = make_announcement(admin_user, title='Keep me')

        with pytest.raises(ValidationError):
            service.update_announcement(admin_caller, announcement.id, {'type': 'COURSE_STUDENTS', 'title': 'Changed'})

        db.session.refresh(announcement)
        assert announcement.type == AnnouncementType.ALL_USERS
        assert announcement.title == 'Keep me'

    def test_type_change_with_course(self, admin_caller, admin_user, make_announcement, course):
        announcement = make_announcement(admin_user)
        updated = service.update_announcement(admin_caller, announcement.id, {
            'type': 'COURSE_STUDENTS', 'course_id': course.id,
        })
        assert updated.type == AnnouncementType.COURSE_STUDENTS
        assert updated.course_id == course.id

    def test_clearing_required_course_is_rejected(self, admin_caller, admin_user, make_announcement, course):
        announcement = make_announcement(admin_user, type=AnnouncementType.COURSE_STUDENTS, course_id=course.id)
        with pytest.raises(ValidationError):
            service.update_announcement(admin_caller, announcement.id, {'course_id': None})

    def test_update_with_missing_user_leaves_record(self, admin_caller, admin_user, student_user, make_announcement):
        announcement = make_announcement(
            admin_user, type=AnnouncementType.SPECIFIC_USERS, target_user_ids=[student_user.id],
        )
        with pytest.raises(MissingReferenceError):
            service.update_announcement(admin_caller, announcement.id, {'target_user_ids': ['ghost']})

        db.session.refresh(announcement)
        assert announcement.target_user_ids == [student_user.id]

    def test_update_unknown_id(self, admin_caller):
        with pytest.raises(NotFoundError):
            service.update_announcement(admin_caller, 'missing', {'title': 'x'})

    def test_toggle_twice_restores_state(self, admin_caller, admin_user, make_announcement):
        announcement = make_announcement(admin_user, title='Flip')

        assert service.toggle_announcement_status(admin_caller, announcement.id).is_active is False
        toggled = service.toggle_announcement_status(admin_caller, announcement.id)
        assert toggled.is_active is True
        assert toggled.title == 'Flip'

    def test_delete_removes_links(self, admin_caller, admin_user, make_announcement):
        announcement = make_announcement(admin_user, tags=['one', 'two'])
        announcement_id = announcement.id

        service.delete_announcement(admin_caller, announcement_id)

        with pytest.raises(NotFoundError):
            service.get_announcement(announcement_id)
        assert AnnouncementTag.query.count() == 0

    def test_deleting_course_keeps_announcement(self, admin_user, make_announcement, course):
        announcement = make_announcement(admin_user, type=AnnouncementType.COURSE_STUDENTS, course_id=course.id)
        db.session.delete(db.session.get(Course, course.id))
        db.session.commit()

        db.session.refresh(announcement)
        assert announcement.course_id is None


# -------------------- READS --------------------

class TestFeeds:

    def test_listing_order(self, admin_caller, admin_user, make_announcement):
        base = datetime(2026, 1, 1, 12, 0)
        make_announcement(admin_user, title='p3', priority=AnnouncementPriority.P3, created_at=base + timedelta(hours=3))
        make_announcement(admin_user, title='p1-old', priority=AnnouncementPriority.P1, created_at=base)
        make_announcement(admin_user, title='p2', priority=AnnouncementPriority.P2, created_at=base + timedelta(hours=2))
        make_announcement(admin_user, title='p1-new', priority=AnnouncementPriority.P1, created_at=base + timedelta(hours=1))

        titles = [a.title for a in service.list_all_announcements(admin_caller)]
        assert titles == ['p1-new', 'p1-old', 'p2', 'p3']

    def test_admin_listing_includes_hidden(self, admin_caller, admin_user, make_announcement):
        make_announcement(admin_user, title='inactive', is_active=False)
        make_announcement(admin_user, title='future', starts_at=_utcnow() + timedelta(days=3))
        assert len(service.list_all_announcements(admin_caller)) == 2

    def test_admin_filters(self, admin_caller, admin_user, make_announcement):
        make_announcement(admin_user, title='urgent', priority=AnnouncementPriority.P1, tags=['exam'])
        make_announcement(admin_user, title='calm', priority=AnnouncementPriority.P3, tags=['news'])
        make_announcement(admin_user, title='off', priority=AnnouncementPriority.P1, is_active=False)

        filters = AnnouncementFilter.from_args({'priority': 'p1', 'isActive': 'true'})
        assert [a.title for a in service.list_announcements_for_admin(admin_caller, filters)] == ['urgent']

        filters = AnnouncementFilter.from_args({'tags': 'news,other'})
        assert [a.title for a in service.list_announcements_for_admin(admin_caller, filters)] == ['calm']

    def test_user_feed(self, admin_user, student_user, make_user, make_announcement, course, enroll):
        other_course = Course(title='Other course')
        db.session.add(other_course)
        db.session.commit()
        other_user = make_user('Olly Other', 'olly@learnhub.test')
        enroll(student_user, course)
        past = _utcnow() - timedelta(days=1)

        make_announcement(admin_user, title='all')
        make_announcement(admin_user, title='instructors', type=AnnouncementType.INSTRUCTORS)
        make_announcement(admin_user, title='my-course', type=AnnouncementType.COURSE_STUDENTS, course_id=course.id)
        make_announcement(admin_user, title='other-course', type=AnnouncementType.COURSE_STUDENTS,
                          course_id=other_course.id)
        make_announcement(admin_user, title='students', type=AnnouncementType.SPECIFIC_ROLES, target_roles=['STUDENT'])
        make_announcement(admin_user, title='admins', type=AnnouncementType.SPECIFIC_ROLES, target_roles=['ADMIN'])
        make_announcement(admin_user, title='me', type=AnnouncementType.SPECIFIC_USERS,
                          target_user_ids=[student_user.id])
        make_announcement(admin_user, title='someone-else', type=AnnouncementType.SPECIFIC_USERS,
                          target_user_ids=[other_user.id])
        make_announcement(admin_user, title='public', type=AnnouncementType.PUBLIC_USERS)
        make_announcement(admin_user, title='inactive', is_active=False)
        make_announcement(admin_user, title='expired', expires_at=past)

        caller = Caller(user_id=student_user.id, role=Role.STUDENT)
        titles = sorted(a.title for a in service.list_announcements_for_user(caller))
        assert titles == ['all', 'instructors', 'me', 'my-course', 'students']

    def test_user_feed_unknown_user(self, client):
        with pytest.raises(NotFoundError):
            service.list_announcements_for_user(Caller(user_id='ghost', role=Role.STUDENT))

    def test_public_feed(self, admin_user, make_announcement):
        make_announcement(admin_user, title='public', type=AnnouncementType.PUBLIC_USERS)
        make_announcement(admin_user, title='hidden-public', type=AnnouncementType.PUBLIC_USERS, is_active=False)
        make_announcement(admin_user, title='members')

        assert [a.title for a in service.list_public_announcements()] == ['public']

    def test_banner_feed(self, admin_user, make_announcement):
        make_announcement(admin_user, title='banner', show_as_banner=True)
        make_announcement(admin_user, title='expired-banner', show_as_banner=True,
                          expires_at=_utcnow() - timedelta(minutes=1))
        make_announcement(admin_user, title='plain')

        assert [a.title for a in service.list_banner_announcements()] == ['banner']

    def test_tag_feed_matches_any(self, admin_user, make_announcement):
        make_announcement(admin_user, title='python', tags=['python'])
        make_announcement(admin_user, title='exams', tags=['exams', 'spring'])
        make_announcement(admin_user, title='untagged')

        titles = sorted(a.title for a in service.list_announcements_by_tags('python, exams'))
        assert titles == ['exams', 'python']

        with pytest.raises(ValidationError):
            service.list_announcements_by_tags(' , ')

    def test_popular_tags(self, admin_user, make_announcement):
        make_announcement(admin_user, tags=['python', 'exams'])
        make_announcement(admin_user, tags=['python', 'beginner'])
        make_announcement(admin_user, tags=['exams', 'python'])
        make_announcement(admin_user, tags=['hidden'], is_active=False)

        assert service.get_popular_tags() == [
            {'tag': 'python', 'count': 3},
            {'tag': 'exams', 'count': 2},
            {'tag': 'beginner', 'count': 1},
        ]
        assert service.get_popular_tags(limit=1) == [{'tag': 'python', 'count': 3}]

    def test_stats(self, admin_caller, admin_user, make_announcement):
        make_announcement(admin_user, priority=AnnouncementPriority.P1)
        make_announcement(admin_user, priority=AnnouncementPriority.P1, display_type=AnnouncementDisplayType.EMAIL)
        make_announcement(admin_user, is_active=False, category=AnnouncementCategory.PROMOTION,
                          type=AnnouncementType.PROMOTIONAL)

        stats = service.get_announcement_stats(admin_caller)

        assert stats['total'] == 3
        assert stats['active'] == 2
        assert stats['inactive'] == 1
        assert stats['by_priority'] == {'P1': 2, 'P3': 1}
        assert stats['by_type'] == {'ALL_USERS': 2, 'PROMOTIONAL': 1}
        assert stats['by_category'] == {'GENERAL': 2, 'PROMOTION': 1}
        assert stats['by_display_type'] == {'IN_APP': 2, 'EMAIL': 1}


# -------------------- SEEDING --------------------

def test_seed_sample_announcements(admin_caller):
    created = service.seed_sample_announcements(admin_caller)
    assert len(created) == 6
    assert Announcement.query.count() == 6


def test_seed_continues_after_failure(admin_caller, monkeypatch, caplog):
    monkeypatch.setattr(service, 'SAMPLE_ANNOUNCEMENTS', [
        {'title': 'Broken', 'content': 'No course', 'type': 'COURSE_STUDENTS'},
        {'title': 'Fine', 'content': 'Everyone', 'type': 'ALL_USERS'},
    ])

    with caplog.at_level(logging.ERROR, logger='learnhub.announcement_service'):
        created = service.seed_sample_announcements(admin_caller)

    assert [a.title for a in created] == ['Fine']
    assert "Broken" in caplog.text
