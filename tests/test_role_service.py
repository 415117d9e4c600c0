"""
Tests for role administration: bindings, system-role protection, cloning,
partial-failure bulk operations and statistics.
"""
import pytest

from app.core.exceptions import Conflict, NotFound, ValidationError
from app.models.audit_log import AuditLog
from app.models.iam import RolePermission
from app.schemas.iam import RoleClone, RoleCreate, RoleUpdate
from app.services.role_service import role_service


def bound_names(db, role_id):
    return sorted(p.name for p in role_service.get_role_permissions(db, role_id))


class TestRoleCrud:
    def test_create_with_permissions(self, test_db, seed_permissions):
        role = role_service.create_role(
            test_db,
            RoleCreate(name="editor", permission_ids=[seed_permissions["role:read"].id, seed_permissions["role:update"].id]),
            actor_id="actor-1",
        )
        assert bound_names(test_db, role.id) == ["role:read", "role:update"]

        details = role_service.get_role_details(test_db, role.id)
        assert details["permission_count"] == 2
        assert details["user_count"] == 0
        assert {p["name"] for p in details["permissions"]} == {"role:read", "role:update"}

    def test_create_duplicate_name(self, test_db, make_role):
        make_role("editor")
        with pytest.raises(Conflict):
            role_service.create_role(test_db, RoleCreate(name="editor"))

    def test_create_with_unknown_permission(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            role_service.create_role(test_db, RoleCreate(name="editor", permission_ids=["nope"]))
        assert exc_info.value.details == {"invalid_ids": ["nope"]}
        assert role_service.list_roles(test_db)[0] == 0

    def test_update_name_and_flags(self, test_db, make_role):
        role = make_role("editor")
        updated = role_service.update_role(test_db, role.id, RoleUpdate(name="writer", is_active=False))
        assert updated.name == "writer"
        assert updated.is_active is False

    def test_update_to_taken_name(self, test_db, make_role):
        make_role("editor")
        other = make_role("writer")
        with pytest.raises(Conflict):
            role_service.update_role(test_db, other.id, RoleUpdate(name="editor"))

    def test_list_filters(self, test_db, make_role):
        make_role("editor")
        make_role("sysadmin", is_system=True)
        total, items = role_service.list_roles(test_db, filters={"is_system": True})
        assert total == 1
        assert items[0]["name"] == "sysadmin"

        total, items = role_service.list_roles(test_db, filters={"search": "edit"})
        assert [item["name"] for item in items] == ["editor"]

    def test_delete_role(self, test_db, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"]])
        role_service.delete_role(test_db, role.id)
        with pytest.raises(NotFound):
            role_service.get_role(test_db, role.id)
        assert test_db.query(RolePermission).count() == 0

    def test_delete_role_with_users(self, test_db, make_role, make_user):
        role = make_role("editor")
        make_user("bob", roles=[role])
        with pytest.raises(Conflict) as exc_info:
            role_service.delete_role(test_db, role.id)
        assert exc_info.value.error_code == "ROLE_IN_USE"

    def test_system_role_cannot_be_deleted(self, test_db, make_role):
        role = make_role("sysadmin", is_system=True)
        with pytest.raises(Conflict):
            role_service.delete_role(test_db, role.id)


class TestPermissionBindings:
    def test_replace_is_exact(self, test_db, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"], seed_permissions["menu:read"]])
        role_service.replace_permissions(
            test_db, role.id, [seed_permissions["role:update"].id, seed_permissions["role:update"].id]
        )
        assert bound_names(test_db, role.id) == ["role:update"]

    def test_replace_with_empty_set(self, test_db, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"]])
        role_service.replace_permissions(test_db, role.id, [])
        assert bound_names(test_db, role.id) == []

    def test_replace_invalid_id_leaves_bindings_untouched(self, test_db, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"]])
        with pytest.raises(ValidationError):
            role_service.replace_permissions(test_db, role.id, [seed_permissions["role:update"].id, "bogus"])
        assert bound_names(test_db, role.id) == ["role:read"]

    def test_replace_on_system_role_conflicts_for_everyone(self, test_db, make_role, make_user, seed_permissions):
        role = make_role("sysadmin", permissions=[seed_permissions["role:read"]], is_system=True)
        root = make_user("root", is_superuser=True)
        with pytest.raises(Conflict) as exc_info:
            role_service.replace_permissions(test_db, role.id, [], actor_id=root.id)
        assert exc_info.value.error_code == "SYSTEM_ROLE_IMMUTABLE"
        assert bound_names(test_db, role.id) == ["role:read"]

    def test_update_via_role_update_on_system_role(self, test_db, make_role):
        role = make_role("sysadmin", is_system=True)
        with pytest.raises(Conflict):
            role_service.update_role(test_db, role.id, RoleUpdate(permission_ids=[]))

    def test_incremental_update(self, test_db, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"], seed_permissions["menu:read"]])
        role_service.update_permissions(
            test_db, role.id,
            add=[seed_permissions["role:update"].id, seed_permissions["role:read"].id],
            remove=[seed_permissions["menu:read"].id],
            actor_id="actor-1",
        )
        assert bound_names(test_db, role.id) == ["role:read", "role:update"]

        actions = {entry.action for entry in test_db.query(AuditLog).all()}
        assert {"permission:grant", "permission:revoke"} <= actions

    def test_revoke_audit_lists_only_removed_bindings(self, test_db, make_role, seed_permissions):
        role = make_role("editor", permissions=[seed_permissions["role:read"]])
        role_service.update_permissions(
            test_db, role.id, add=[],
            remove=[seed_permissions["role:read"].id, seed_permissions["menu:read"].id, "unknown-id"],
            actor_id="actor-1",
        )
        revoke = test_db.query(AuditLog).filter(AuditLog.action == "permission:revoke").one()
        assert revoke.details == {"permission_ids": [seed_permissions["role:read"].id]}

    def test_revoke_of_unbound_permissions_not_audited(self, test_db, make_role, seed_permissions):
        role = make_role("editor")
        role_service.update_permissions(
            test_db, role.id, add=[], remove=[seed_permissions["menu:read"].id], actor_id="actor-1",
        )
        assert test_db.query(AuditLog).filter(AuditLog.action == "permission:revoke").count() == 0

    def test_role_has_permission_uses_wildcards(self, test_db, make_role, make_permission):
        role = make_role("menu-admin", permissions=[make_permission("menu:*")])
        assert role_service.role_has_permission(test_db, role.id, "menu:delete")
        assert not role_service.role_has_permission(test_db, role.id, "role:delete")


class TestCloneRole:
    def test_clone_copies_permissions(self, test_db, make_role, seed_permissions):
        source = make_role("editor", permissions=[seed_permissions["role:read"]], is_system=True)
        clone = role_service.clone_role(test_db, source.id, RoleClone(new_role_name="editor-copy"))
        assert clone.is_system is False
        assert clone.description == "Cloned from editor"
        assert bound_names(test_db, clone.id) == ["role:read"]

    def test_clone_without_permissions(self, test_db, make_role, seed_permissions):
        source = make_role("editor", permissions=[seed_permissions["role:read"]])
        clone = role_service.clone_role(
            test_db, source.id, RoleClone(new_role_name="blank", include_permissions=False)
        )
        assert bound_names(test_db, clone.id) == []

    def test_clone_menu_permissions(self, test_db, make_role, menu_tree, grant_menu):
        source = make_role("editor")
        grant_menu(source, "DASH", can_view=True, can_export=True)
        clone = role_service.clone_role(
            test_db, source.id, RoleClone(new_role_name="copy", include_menu_permissions=True)
        )
        bindings = clone.menu_permissions
        assert len(bindings) == 1
        assert bindings[0].menu_id == "DASH"
        assert bindings[0].can_export is True

    def test_clone_name_taken(self, test_db, make_role):
        source = make_role("editor")
        make_role("copy")
        with pytest.raises(Conflict):
            role_service.clone_role(test_db, source.id, RoleClone(new_role_name="copy"))


class TestBulkOperations:
    """Every item is attempted; failures are reported per item"""

    def test_assign_users_partial_failure(self, test_db, make_role, make_user):
        role = make_role("editor")
        user = make_user("u1")

        result = role_service.assign_users(test_db, role.id, [user.id, "u2"])
        assert result.model_dump() == {"success": [user.id], "failed": [{"id": "u2", "error": "User not found"}]}

    def test_assign_existing_binding(self, test_db, make_role, make_user):
        role = make_role("editor")
        user = make_user("u1", roles=[role])
        result = role_service.assign_users(test_db, role.id, [user.id])
        assert result.success == []
        assert result.failed[0].error == "User already has this role"

    def test_remove_users(self, test_db, make_role, make_user):
        role = make_role("editor")
        member = make_user("member", roles=[role])
        outsider = make_user("outsider")

        result = role_service.remove_users(test_db, role.id, [member.id, outsider.id])
        assert result.success == [member.id]
        assert result.failed[0].model_dump() == {"id": outsider.id, "error": "User does not have this role"}
        assert role_service.get_role_users(test_db, role.id)[0] == 0

    def test_bulk_delete(self, test_db, make_role, make_user):
        free = make_role("free")
        system = make_role("sys", is_system=True)
        used = make_role("used")
        make_user("bob", roles=[used])

        result = role_service.bulk_delete_roles(test_db, [free.id, system.id, used.id, "missing"])
        assert result.success == [free.id]
        assert [f.id for f in result.failed] == [system.id, used.id, "missing"]

    def test_get_role_users(self, test_db, make_role, make_user):
        role = make_role("editor")
        make_user("a", roles=[role])
        make_user("b", roles=[role])
        total, users = role_service.get_role_users(test_db, role.id, skip=0, limit=1)
        assert total == 2
        assert len(users) == 1


class TestStatistics:
    def test_statistics(self, test_db, make_role, make_user, seed_permissions):
        editor = make_role("editor", permissions=[seed_permissions["role:read"], seed_permissions["role:update"]])
        make_role("sys", permissions=[seed_permissions["menu:read"]], is_system=True)
        make_role("empty")
        make_user("bob", roles=[editor])

        stats = role_service.get_statistics(test_db)
        assert stats == {
            "total": 3,
            "system": 1,
            "custom": 2,
            "with_users": 1,
            "without_users": 2,
            "avg_permissions_per_role": 1.0,
        }

    def test_statistics_empty(self, test_db):
        assert role_service.get_statistics(test_db)["avg_permissions_per_role"] == 0.0
