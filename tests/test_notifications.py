"""Tests for in-app notifications and the retention cleanup."""
from datetime import datetime, timedelta

from marketing_community.models.domain import Notification
from marketing_community.services.notifications import NotificationService, NotificationTemplates


def add_notification(db_session, user, is_read=False, age_days=0, type="system_notice"):
    notification = Notification(
        user_id=user.id,
        type=type,
        title="알림",
        message="메시지",
        is_read=is_read,
        created_at=datetime.utcnow() - timedelta(days=age_days)
    )
    db_session.add(notification)
    db_session.commit()
    return notification


class TestCreate:

    def test_create_persists_unread(self, db_session, sample_user):
        type_, title, message = NotificationTemplates.event_reminder("그로스 마케팅 세미나")

        notification = NotificationService(db_session).create(
            sample_user.id, type_, title, message, metadata={"eventId": "e1"}
        )

        assert notification.id is not None
        assert notification.is_read is False
        assert notification.message == '"그로스 마케팅 세미나" 이벤트가 곧 시작됩니다.'
        assert notification.metadata_json == {"eventId": "e1"}

    def test_email_and_push_are_stubs(self, db_session, sample_user):
        notification = NotificationService(db_session).create(
            sample_user.id, *NotificationTemplates.system_notice("점검 안내"), email=True, push=True
        )

        assert notification.title == "시스템 공지"

    def test_bulk_create_counts_each_user(self, db_session, make_user):
        users = [make_user() for _ in range(3)]

        success, errors = NotificationService(db_session).create_for_users(
            [u.id for u in users], *NotificationTemplates.system_notice("공지")
        )

        assert (success, errors) == (3, 0)
        assert db_session.query(Notification).count() == 3


class TestReadState:

    def test_mark_as_read_only_touches_own_notifications(self, db_session, make_user):
        owner = make_user()
        stranger = make_user()
        mine = add_notification(db_session, owner)
        theirs = add_notification(db_session, stranger)
        service = NotificationService(db_session)

        updated = service.mark_as_read(owner.id, [mine.id, theirs.id])

        assert updated == 1
        db_session.refresh(mine)
        db_session.refresh(theirs)
        assert mine.is_read is True
        assert theirs.is_read is False

    def test_unread_count(self, db_session, sample_user):
        add_notification(db_session, sample_user)
        add_notification(db_session, sample_user)
        add_notification(db_session, sample_user, is_read=True)

        assert NotificationService(db_session).get_unread_count(sample_user.id) == 2

    def test_list_filters_and_paginates(self, db_session, sample_user):
        for _ in range(3):
            add_notification(db_session, sample_user, type="points_earned")
        add_notification(db_session, sample_user, type="post_liked", is_read=True)
        service = NotificationService(db_session)

        unread = service.get_notifications(sample_user.id, unread_only=True)
        assert unread["pagination"]["total_count"] == 3

        liked = service.get_notifications(sample_user.id, type="post_liked")
        assert [n.type for n in liked["notifications"]] == ["post_liked"]

        page = service.get_notifications(sample_user.id, page=2, limit=3)
        assert len(page["notifications"]) == 1
        assert page["pagination"]["has_more"] is False


class TestCleanup:

    def test_deletes_only_old_read_notifications(self, db_session, sample_user):
        old_read = add_notification(db_session, sample_user, is_read=True, age_days=120)
        old_unread = add_notification(db_session, sample_user, is_read=False, age_days=120)
        recent_read = add_notification(db_session, sample_user, is_read=True, age_days=5)
        old_read_id = old_read.id

        deleted = NotificationService(db_session).cleanup(older_than_days=90)

        assert deleted == 1
        remaining = {n.id for n in db_session.query(Notification).all()}
        assert old_read_id not in remaining
        assert {old_unread.id, recent_read.id} <= remaining

    def test_default_retention_comes_from_settings(self, db_session, sample_user):
        add_notification(db_session, sample_user, is_read=True, age_days=91)
        add_notification(db_session, sample_user, is_read=True, age_days=89)

        assert NotificationService(db_session).cleanup() == 1
