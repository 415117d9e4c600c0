"""
Test suite for the IAM role endpoints.

Covers CRUD, permission bindings (including system-role protection and the
live check on binding changes), cloning, bulk user assignment and statistics.
"""
from fastapi.testclient import TestClient

from app.models.audit_log import AuditLog

BASE = "/api/v1/iam/roles"


class TestRoleCrudEndpoints:
    def test_create_role(self, client: TestClient, admin_token, seed_permissions):
        response = client.post(
            f"{BASE}/",
            json={"name": "editor", "description": "Edits", "permission_ids": [seed_permissions["role:read"].id]},
            headers={"Authorization": admin_token},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["name"] == "editor"
        assert data["permission_count"] == 1
        assert data["permissions"][0]["name"] == "role:read"

    def test_create_duplicate_is_409(self, client: TestClient, admin_token, admin_role):
        response = client.post(f"{BASE}/", json={"name": "admin"}, headers={"Authorization": admin_token})
        assert response.status_code == 409
        assert response.json()["error_code"] == "DUPLICATE_ROLE"

    def test_create_without_permission_is_403(self, client: TestClient, viewer_token):
        response = client.post(f"{BASE}/", json={"name": "editor"}, headers={"Authorization": viewer_token})
        assert response.status_code == 403

    def test_list_roles(self, client: TestClient, viewer_token, admin_role, viewer_role):
        response = client.get(f"{BASE}/?search=view", headers={"Authorization": viewer_token})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["items"][0]["name"] == "viewer"

    def test_get_missing_role_is_404(self, client: TestClient, viewer_token):
        response = client.get(f"{BASE}/missing", headers={"Authorization": viewer_token})
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_update_role(self, client: TestClient, admin_token, make_role):
        role = make_role("editor")
        response = client.put(
            f"{BASE}/{role.id}", json={"description": "Updated"}, headers={"Authorization": admin_token}
        )
        assert response.status_code == 200
        assert response.json()["data"]["description"] == "Updated"

    def test_delete_system_role_is_409(self, client: TestClient, superuser_token, make_role):
        role = make_role("sysadmin", is_system=True)
        response = client.delete(f"{BASE}/{role.id}", headers={"Authorization": superuser_token})
        assert response.status_code == 409

    def test_statistics(self, client: TestClient, viewer_token, admin_role, viewer_role):
        response = client.get(f"{BASE}/statistics", headers={"Authorization": viewer_token})
        assert response.status_code == 200
        assert response.json()["data"]["total"] == 2

    def test_bulk_delete(self, client: TestClient, admin_token, make_role):
        role = make_role("temp")
        response = client.post(
            f"{BASE}/bulk-delete", json={"role_ids": [role.id, "missing"]}, headers={"Authorization": admin_token}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["success"] == [role.id]
        assert data["failed"][0]["id"] == "missing"


class TestRolePermissionEndpoints:
    def test_replace_permissions(self, client: TestClient, test_db, admin_user, admin_token, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"]])
        response = client.put(
            f"{BASE}/{role.id}/permissions",
            json={"permission_ids": [seed_permissions["menu:read"].id]},
            headers={"Authorization": admin_token},
        )
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["data"]["permissions"]] == ["menu:read"]

        entry = test_db.query(AuditLog).filter(AuditLog.action == "role:permissions_replace").one()
        assert entry.user_id == admin_user.id
        assert entry.resource_id == role.id

    def test_replace_on_system_role_is_409_even_for_superuser(
        self, client: TestClient, superuser_token, make_role, seed_permissions
    ):
        role = make_role("sysadmin", permissions=[seed_permissions["role:read"]], is_system=True)
        response = client.put(
            f"{BASE}/{role.id}/permissions", json={"permission_ids": []}, headers={"Authorization": superuser_token}
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "SYSTEM_ROLE_IMMUTABLE"

    def test_replace_with_unknown_permission_is_400(self, client: TestClient, admin_token, make_role):
        role = make_role("editor")
        response = client.put(
            f"{BASE}/{role.id}/permissions", json={"permission_ids": ["bogus"]}, headers={"Authorization": admin_token}
        )
        assert response.status_code == 400
        assert response.json()["details"]["invalid_ids"] == ["bogus"]

    def test_binding_change_checked_live(
        self, client: TestClient, test_db, admin_user, admin_role, admin_token, make_role, seed_permissions
    ):
        """A token minted before role:update was revoked no longer changes bindings"""
        target = make_role("editor")
        admin_role.permission_bindings = [
            b for b in admin_role.permission_bindings if b.permission_id != seed_permissions["role:update"].id
        ]
        test_db.commit()

        response = client.put(
            f"{BASE}/{target.id}/permissions", json={"permission_ids": []}, headers={"Authorization": admin_token}
        )
        assert response.status_code == 403

    def test_patch_permissions(self, client: TestClient, admin_token, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"]])
        response = client.patch(
            f"{BASE}/{role.id}/permissions",
            json={"add": [seed_permissions["role:update"].id], "remove": [seed_permissions["role:read"].id]},
            headers={"Authorization": admin_token},
        )
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["data"]["permissions"]] == ["role:update"]

    def test_patch_requires_a_change(self, client: TestClient, admin_token, make_role):
        role = make_role("editor")
        response = client.patch(f"{BASE}/{role.id}/permissions", json={}, headers={"Authorization": admin_token})
        assert response.status_code == 422

    def test_get_permissions_requires_both(self, client: TestClient, make_user, make_role, make_token, seed_permissions):
        role = make_role("half", permissions=[seed_permissions["role:read"]])
        token = make_token(make_user("half", roles=[role]))
        response = client.get(f"{BASE}/{role.id}/permissions", headers={"Authorization": token})
        assert response.status_code == 403
        assert response.json()["details"]["missing"] == ["permission:read"]

    def test_has_permission(self, client: TestClient, viewer_token, make_role, make_permission):
        role = make_role("menu-admin", permissions=[make_permission("menu:*")])
        response = client.get(
            f"{BASE}/{role.id}/has-permission?permission=menu:delete", headers={"Authorization": viewer_token}
        )
        assert response.status_code == 200
        assert response.json()["data"]["has_permission"] is True


class TestCloneAndUsers:
    def test_clone(self, client: TestClient, admin_token, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"]])
        response = client.post(
            f"{BASE}/{role.id}/clone", json={"new_role_name": "editor-2"}, headers={"Authorization": admin_token}
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["name"] == "editor-2"
        assert data["is_system"] is False
        assert data["permission_count"] == 1

    def test_assign_users_partial_failure(self, client: TestClient, admin_token, make_role, make_user):
        role = make_role("editor")
        user = make_user("u1")
        response = client.post(
            f"{BASE}/{role.id}/users", json={"user_ids": [user.id, "u2"]}, headers={"Authorization": admin_token}
        )
        assert response.status_code == 200
        assert response.json()["data"] == {
            "success": [user.id],
            "failed": [{"id": "u2", "error": "User not found"}],
        }

    def test_list_and_remove_users(self, client: TestClient, admin_token, make_role, make_user):
        role = make_role("editor")
        user = make_user("u1", roles=[role])

        listed = client.get(f"{BASE}/{role.id}/users", headers={"Authorization": admin_token})
        assert listed.status_code == 200
        assert listed.json()["data"]["items"][0]["username"] == "u1"

        removed = client.post(
            f"{BASE}/{role.id}/users/remove", json={"user_ids": [user.id]}, headers={"Authorization": admin_token}
        )
        assert removed.json()["data"]["success"] == [user.id]
