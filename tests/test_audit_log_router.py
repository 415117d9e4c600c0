"""
Test suite for the audit log endpoints.

- GET /audit-logs
- GET /audit-logs/{audit_id}
"""
from fastapi.testclient import TestClient

from app.models.audit_log import AuditLog

BASE = "/api/v1/audit-logs"


class TestAuditLogEndpoints:
    def test_mutations_are_listed(self, client: TestClient, admin_user, admin_token):
        headers = {"Authorization": admin_token}
        client.post("/api/v1/iam/roles/", json={"name": "editor"}, headers=headers)

        response = client.get(f"{BASE}/?resource=role", headers=headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        item = data["items"][0]
        assert item["action"] == "role:create"
        assert item["user_id"] == admin_user.id
        assert item["details"]["name"] == "editor"
        assert item["user_agent"] == "testclient"

    def test_filter_and_paginate(self, client: TestClient, test_db, admin_token):
        test_db.add_all([AuditLog(action="menu:update", resource="menu", resource_id=str(i)) for i in range(5)])
        test_db.commit()

        response = client.get(f"{BASE}/?action=menu:update&page=2&page_size=2", headers={"Authorization": admin_token})
        data = response.json()["data"]
        assert data["total"] == 5
        assert data["page"] == 2
        assert len(data["items"]) == 2

    def test_get_single_entry(self, client: TestClient, test_db, admin_token):
        entry = AuditLog(action="role:delete", resource="role", resource_id="r1")
        test_db.add(entry)
        test_db.commit()

        response = client.get(f"{BASE}/{entry.id}", headers={"Authorization": admin_token})
        assert response.status_code == 200
        assert response.json()["data"]["action"] == "role:delete"

        missing = client.get(f"{BASE}/missing", headers={"Authorization": admin_token})
        assert missing.status_code == 404

    def test_requires_audit_permission(self, client: TestClient, viewer_token):
        response = client.get(f"{BASE}/", headers={"Authorization": viewer_token})
        assert response.status_code == 403


class TestAuditStatisticsEndpoint:
    def test_statistics(self, client: TestClient, test_db, admin_user, admin_token):
        test_db.add_all([
            AuditLog(user_id=admin_user.id, action="role:create", resource="role"),
            AuditLog(user_id=admin_user.id, action="role:delete", resource="role"),
            AuditLog(user_id=None, action="menu:update", resource="menu"),
        ])
        test_db.commit()

        response = client.get(f"{BASE}/statistics", headers={"Authorization": admin_token})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_logs"] == 3
        assert data["by_resource"] == {"role": 2, "menu": 1}
        assert data["by_user"] == [
            {"user_id": admin_user.id, "username": "admin", "email": "admin@example.com", "count": 2}
        ]
        assert sum(day["count"] for day in data["by_day"]) == 3

    def test_statistics_requires_audit_permission(self, client: TestClient, viewer_token):
        response = client.get(f"{BASE}/statistics", headers={"Authorization": viewer_token})
        assert response.status_code == 403
