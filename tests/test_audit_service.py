"""
Tests for the best-effort audit emitter.
"""
import logging
from datetime import datetime, timedelta, timezone

import pytest

from app.config import settings
from app.core.exceptions import NotFound, ValidationError
from app.models.audit_log import AuditLog
from app.schemas.audit_log import AuditLogFilter
from app.services.audit_service import AuditService, audit_service


def broken_session_factory():
    raise RuntimeError("database unavailable")


class TestLogAction:
    def test_entry_written(self, test_db):
        entry = audit_service.log_action(
            "actor-1", "role:create", "role", "role-1",
            {"name": "editor", "when": datetime(2024, 1, 1)},
            ip_address="10.0.0.1", user_agent="pytest",
        )
        assert entry is not None

        stored = test_db.query(AuditLog).one()
        assert stored.action == "role:create"
        assert stored.resource_id == "role-1"
        assert stored.details == {"name": "editor", "when": "2024-01-01T00:00:00"}
        assert stored.ip_address == "10.0.0.1"

    def test_failure_is_swallowed_and_logged(self, caplog):
        service = AuditService(session_factory=broken_session_factory)
        with caplog.at_level(logging.ERROR):
            assert service.log_action("actor-1", "role:delete", "role", "role-1") is None
        assert "Failed to create audit log for role:delete" in caplog.text

    def test_disabled(self, test_db, monkeypatch):
        monkeypatch.setattr(settings, "AUDIT_ENABLED", False)
        assert audit_service.log_action("actor-1", "role:create") is None
        assert test_db.query(AuditLog).count() == 0

    def test_long_user_agent_truncated(self, test_db):
        audit_service.log_action("actor-1", "auth:login", user_agent="x" * 500)
        assert len(test_db.query(AuditLog).one().user_agent) == 255


class TestAuditQueries:
    @pytest.fixture
    def entries(self, test_db):
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        test_db.add_all([
            AuditLog(user_id="a", action="role:create", resource="role", resource_id="r1",
                     created_at=now - timedelta(days=2)),
            AuditLog(user_id="a", action="role:update", resource="role", resource_id="r1",
                     created_at=now - timedelta(days=1)),
            AuditLog(user_id="b", action="menu:create", resource="menu", resource_id="DASH", created_at=now),
        ])
        test_db.commit()
        return now

    def test_filter_by_resource(self, test_db, entries):
        records, total = audit_service.list_logs(test_db, AuditLogFilter(resource="role", resource_id="r1"))
        assert total == 2
        assert [r.action for r in records] == ["role:update", "role:create"]

    def test_filter_by_date_range(self, test_db, entries):
        records, total = audit_service.list_logs(
            test_db, AuditLogFilter(start_date=entries - timedelta(hours=36))
        )
        assert total == 2
        assert {r.user_id for r in records} == {"a", "b"}

    def test_pagination(self, test_db, entries):
        records, total = audit_service.list_logs(test_db, AuditLogFilter(page=2, page_size=2))
        assert total == 3
        assert len(records) == 1

    def test_get_log(self, test_db, entries):
        entry = test_db.query(AuditLog).filter(AuditLog.action == "menu:create").one()
        assert audit_service.get_log(test_db, entry.id).resource_id == "DASH"
        with pytest.raises(NotFound):
            audit_service.get_log(test_db, "missing")


class TestAuditStatistics:
    @pytest.fixture
    def entries(self, test_db):
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        test_db.add_all([
            AuditLog(user_id="a", action="role:create", resource="role", created_at=now - timedelta(days=2)),
            AuditLog(user_id="a", action="role:update", resource="role", created_at=now - timedelta(days=1)),
            AuditLog(user_id="b", action="menu:create", resource="menu", created_at=now),
            AuditLog(user_id=None, action="auth:login", resource=None, created_at=now),
        ])
        test_db.commit()
        return now

    def test_grouped_counts(self, test_db, entries):
        stats = audit_service.get_statistics(test_db)
        assert stats.total_logs == 4
        assert stats.by_action == {"role:create": 1, "role:update": 1, "menu:create": 1, "auth:login": 1}
        assert stats.by_resource == {"role": 2, "menu": 1}
        assert [(u.user_id, u.count) for u in stats.by_user] == [("a", 2), ("b", 1)]

    def test_counts_per_day_newest_first(self, test_db, entries):
        stats = audit_service.get_statistics(test_db)
        assert [d.count for d in stats.by_day] == [2, 1, 1]
        assert stats.by_day[0].date == entries.date().isoformat()

    def test_date_range(self, test_db, entries):
        stats = audit_service.get_statistics(test_db, start_date=entries - timedelta(hours=36))
        assert stats.total_logs == 3
        assert "role:create" not in stats.by_action

    def test_inverted_range_rejected(self, test_db, entries):
        with pytest.raises(ValidationError):
            audit_service.get_statistics(test_db, start_date=entries, end_date=entries - timedelta(days=1))
