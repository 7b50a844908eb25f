"""
Tests for the audit log.

These tests prove:
- Entries are stored with their structured values intact
- A failing store never raises to the caller
- Filters combine with AND, action matching is by substring
"""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from marketing_community.models.audit import AuditAction, AuditLog
from marketing_community.services.audit import AuditService
from marketing_community.services.points import PointsService


class TestAuditWrite:

    def test_log_stores_structured_values(self, db_session, admin_user):
        AuditService(db_session).log(
            action=AuditAction.POINTS_ADJUSTED,
            resource="user-42",
            resource_type="user",
            old_value={"points": 10},
            new_value={"points": 60},
            user_id=admin_user.id,
            ip_address="10.0.0.1",
            user_agent="pytest",
            metadata={"reason": "이벤트 보상"}
        )

        entry = db_session.query(AuditLog).one()
        assert entry.action == "POINTS_ADJUSTED"
        assert entry.resource == "user-42"
        assert entry.old_value == {"points": 10}
        assert entry.new_value == {"points": 60}
        assert entry.metadata_json == {"reason": "이벤트 보상"}
        assert entry.ip_address == "10.0.0.1"
        assert entry.created_at is not None

    def test_optional_fields_may_be_omitted(self, db_session):
        AuditService(db_session).log(action=AuditAction.PERMISSIONS_INITIALIZED)

        entry = db_session.query(AuditLog).one()
        assert entry.user_id is None
        assert entry.old_value is None
        assert entry.metadata_json is None

    def test_entries_accumulate(self, db_session):
        service = AuditService(db_session)
        service.log(action=AuditAction.BANNER_CREATED, resource_type="banner")
        service.log(action=AuditAction.BANNER_UPDATED, resource_type="banner")
        service.log(action=AuditAction.BANNER_DELETED, resource_type="banner")

        assert db_session.query(AuditLog).count() == 3


class TestAuditFailureIsolation:
    """Audit writes are best-effort."""

    def test_store_failure_does_not_raise(self):
        db = MagicMock()
        db.commit.side_effect = RuntimeError("disk full")

        result = AuditService(db).log(action=AuditAction.ROLE_ASSIGNED, resource="u1")

        assert result is None
        db.rollback.assert_called_once()

    def test_insert_failure_does_not_raise(self):
        db = MagicMock()
        db.add.side_effect = RuntimeError("table missing")

        AuditService(db).log(action=AuditAction.ROLE_ASSIGNED)

    def test_failed_audit_leaves_business_change_committed(self, db_session, sample_user, monkeypatch):
        PointsService(db_session).award_points(sample_user.id, 25, "post_create", "게시글 작성")

        def broken_commit():
            raise RuntimeError("audit table locked")

        audit = AuditService(db_session)
        monkeypatch.setattr(db_session, "commit", broken_commit)
        audit.log(action=AuditAction.POINTS_ADJUSTED, resource=sample_user.id)
        monkeypatch.undo()

        db_session.expire_all()
        assert PointsService(db_session).get_user_points(sample_user.id) == 125
        assert db_session.query(AuditLog).count() == 0


class TestAuditQuery:

    def _seed(self, db_session, admin_user, make_user):
        other = make_user()
        base = datetime(2024, 1, 1, 9, 0, 0)
        rows = [
            ("BANNER_CREATED", "banner", admin_user.id),
            ("BANNER_DELETED", "banner", admin_user.id),
            ("BANNER_UPDATED", "banner_image", other.id),
            ("LOGO_UPDATED", "logo", admin_user.id),
            ("ROLE_ASSIGNED", "user_role", other.id),
        ]
        for i, (action, resource_type, user_id) in enumerate(rows):
            db_session.add(AuditLog(
                action=action,
                resource_type=resource_type,
                user_id=user_id,
                created_at=base + timedelta(minutes=i)
            ))
        db_session.commit()
        return other

    def test_action_filter_is_substring(self, db_session, admin_user, make_user):
        self._seed(db_session, admin_user, make_user)

        result = AuditService(db_session).get_audit_logs(action="BANNER")

        actions = {log["action"] for log in result["logs"]}
        assert actions == {"BANNER_CREATED", "BANNER_DELETED", "BANNER_UPDATED"}
        assert result["total"] == 3

    def test_resource_type_filter_is_exact(self, db_session, admin_user, make_user):
        self._seed(db_session, admin_user, make_user)

        result = AuditService(db_session).get_audit_logs(resource_type="banner")

        assert {log["action"] for log in result["logs"]} == {"BANNER_CREATED", "BANNER_DELETED"}
        assert all(log["resource_type"] == "banner" for log in result["logs"])

    def test_filters_are_conjunctive(self, db_session, admin_user, make_user):
        other = self._seed(db_session, admin_user, make_user)

        result = AuditService(db_session).get_audit_logs(action="BANNER", user_id=other.id)

        assert [log["action"] for log in result["logs"]] == ["BANNER_UPDATED"]
        assert result["total"] == 1

    def test_newest_first_with_user_profile(self, db_session, admin_user, make_user):
        self._seed(db_session, admin_user, make_user)

        result = AuditService(db_session).get_audit_logs()

        assert [log["action"] for log in result["logs"]][:2] == ["ROLE_ASSIGNED", "LOGO_UPDATED"]
        logo = result["logs"][1]
        assert logo["user"] == {
            "id": admin_user.id,
            "name": admin_user.name,
            "email": admin_user.email,
            "nickname": admin_user.nickname,
        }

    def test_pagination_reports_full_total(self, db_session, admin_user, make_user):
        self._seed(db_session, admin_user, make_user)

        result = AuditService(db_session).get_audit_logs(limit=2, offset=2)

        assert [log["action"] for log in result["logs"]] == ["BANNER_UPDATED", "BANNER_DELETED"]
        assert result["total"] == 5

    def test_system_entries_have_no_user(self, db_session):
        AuditService(db_session).log(action=AuditAction.PERMISSIONS_INITIALIZED)

        result = AuditService(db_session).get_audit_logs()

        assert result["logs"][0]["user"] is None
