"""
Tests for permission name parsing and wildcard matching.
"""
import pytest

from common_utils.auth.permission_matcher import (
    GLOBAL_WILDCARD,
    candidate_grants,
    format_permission_name,
    has_permission,
    is_valid_permission_name,
    match_permission,
    parse_permission_name,
)


class TestPermissionNames:
    """Parsing and validation of resource:action names"""

    @pytest.mark.parametrize("name", ["role:read", "audit_log:read", "menu-item:export", "role:*", "*:*", "*:read"])
    def test_valid_names(self, name):
        assert is_valid_permission_name(name)

    @pytest.mark.parametrize("name", ["role", "role:", ":read", "role:read:extra", "ro le:read", "role:re*d", "", None])
    def test_invalid_names(self, name):
        assert not is_valid_permission_name(name)

    def test_parse_splits_resource_and_action(self):
        assert parse_permission_name("role:update") == ("role", "update")
        assert format_permission_name("role", "update") == "role:update"

    def test_parse_rejects_malformed_name(self):
        with pytest.raises(ValueError):
            parse_permission_name("role.update")


class TestMatchPermission:
    """Grant precedence: exact, resource wildcard, global wildcard, action wildcard"""

    def test_exact_grant(self):
        assert match_permission({"role:read"}, "role:read") == "role:read"

    def test_resource_wildcard(self):
        assert match_permission({"role:*"}, "role:delete") == "role:*"

    def test_global_wildcard(self):
        assert match_permission({GLOBAL_WILDCARD}, "menu:update") == GLOBAL_WILDCARD

    def test_action_wildcard(self):
        assert match_permission({"*:read"}, "menu:read") == "*:read"
        assert match_permission({"*:read"}, "menu:update") is None

    def test_exact_grant_wins_over_wildcards(self):
        granted = {"*:*", "role:*", "role:read", "*:read"}
        assert match_permission(granted, "role:read") == "role:read"

    def test_resource_wildcard_wins_over_global(self):
        assert match_permission({"*:*", "role:*"}, "role:read") == "role:*"

    def test_other_resource_does_not_match(self):
        assert match_permission({"menu:*", "menu:read"}, "role:read") is None

    def test_empty_grant_set(self):
        assert match_permission(set(), "role:read") is None

    def test_accepts_any_iterable(self):
        assert match_permission(["role:read"], "role:read") == "role:read"
        assert match_permission(("role:*",), "role:read") == "role:*"

    def test_malformed_requirement_only_matches_exactly_or_globally(self):
        assert candidate_grants("reports") == ["reports", GLOBAL_WILDCARD]
        assert match_permission({"reports:*", "*:reports"}, "reports") is None
        assert match_permission({"reports"}, "reports") == "reports"
        assert match_permission({"*:*"}, "reports") == "*:*"

    def test_candidates_for_wildcard_requirement_have_no_duplicates(self):
        assert candidate_grants("role:*") == ["role:*", "*:*"]


class TestHasPermission:
    def test_superuser_bypasses_matching(self):
        assert has_permission(set(), "anything:at_all", is_superuser=True)

    def test_regular_user_uses_matcher(self):
        assert has_permission({"role:*"}, "role:read")
        assert not has_permission({"role:read"}, "role:update")
