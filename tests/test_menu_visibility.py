"""
Tests for menu tree construction, flag aggregation and cycle detection.
"""
from types import SimpleNamespace

from app.services.menu_visibility import (
    MenuNode,
    aggregate_flags,
    build_menu_index,
    count_nodes,
    full_tree,
    tree_statistics,
    visible_tree,
    would_create_cycle,
)


def binding(menu_id, role_id, **flags):
    values = {"can_view": False, "can_edit": False, "can_delete": False, "can_export": False}
    values.update(flags)
    return SimpleNamespace(menu_id=menu_id, role_id=role_id, **values)


def sample_index():
    return build_menu_index([
        MenuNode(id="ROLES", parent_id="ADMIN", title="Roles", order_index=1),
        MenuNode(id="ADMIN", parent_id=None, title="Administration", order_index=1),
        MenuNode(id="DASH", parent_id=None, title="Dashboard", order_index=0),
        MenuNode(id="USERS", parent_id="ADMIN", title="Users", order_index=0),
        MenuNode(id="USRNEW", parent_id="USERS", title="New User", order_index=0),
    ])


class TestMenuIndex:
    def test_children_sorted_by_order_index(self):
        index = sample_index()
        assert index.roots() == ["DASH", "ADMIN"]
        assert index.children("ADMIN") == ["USERS", "ROLES"]

    def test_descendants(self):
        assert sample_index().descendants("ADMIN") == ["USERS", "ROLES", "USRNEW"]

    def test_orphan_is_unreachable(self):
        index = build_menu_index([
            MenuNode(id="A", parent_id=None, title="A"),
            MenuNode(id="B", parent_id="GONE", title="B"),
        ])
        assert [node.id for node in full_tree(index)] == ["A"]


class TestAggregateFlags:
    def test_flags_are_ored_across_roles(self):
        flags = aggregate_flags([
            binding("USERS", "r1", can_view=True),
            binding("USERS", "r2", can_edit=True),
        ])
        assert flags["USERS"] == {"can_view": True, "can_edit": True, "can_delete": False, "can_export": False}

    def test_false_never_overrides_true(self):
        flags = aggregate_flags([
            binding("DASH", "r1", can_view=True, can_export=True),
            binding("DASH", "r2"),
        ])
        assert flags["DASH"]["can_export"] is True


class TestVisibleTree:
    def test_only_viewable_nodes_under_viewable_parents(self):
        flags = aggregate_flags([
            binding("ADMIN", "r1", can_view=True),
            binding("USERS", "r1", can_view=True, can_edit=True),
            binding("USRNEW", "r1", can_view=True),
            binding("ROLES", "r1", can_edit=True),
        ])
        tree = visible_tree(sample_index(), flags)

        assert [node.id for node in tree] == ["ADMIN"]
        admin = tree[0]
        assert [node.id for node in admin.children] == ["USERS"]
        assert admin.children[0].can_edit is True
        assert [node.id for node in admin.children[0].children] == ["USRNEW"]
        assert count_nodes(tree) == 3

    def test_visible_child_of_hidden_parent_is_omitted(self):
        flags = aggregate_flags([binding("USERS", "r1", can_view=True)])
        assert visible_tree(sample_index(), flags) == []

    def test_camel_case_output(self):
        flags = aggregate_flags([binding("DASH", "r1", can_view=True)])
        dumped = visible_tree(sample_index(), flags)[0].model_dump(by_alias=True)
        assert dumped["canView"] is True
        assert dumped["orderIndex"] == 0
        assert "can_view" not in dumped


class TestFullTree:
    def test_every_node_with_false_flags(self):
        tree = full_tree(sample_index())
        assert count_nodes(tree) == 5
        assert tree[0].can_view is False


class TestCycleDetection:
    parent_of = {"ADMIN": None, "USERS": "ADMIN", "USRNEW": "USERS", "DASH": None}

    def test_self_parent(self):
        assert would_create_cycle(self.parent_of, "ADMIN", "ADMIN")

    def test_descendant_parent(self):
        assert would_create_cycle(self.parent_of, "ADMIN", "USRNEW")

    def test_unrelated_parent(self):
        assert not would_create_cycle(self.parent_of, "USERS", "DASH")

    def test_move_to_root(self):
        assert not would_create_cycle(self.parent_of, "USERS", None)


class TestTreeStatistics:
    def test_statistics(self):
        index = build_menu_index([
            MenuNode(id="DASH", parent_id=None, title="Dashboard"),
            MenuNode(id="ADMIN", parent_id=None, title="Administration"),
            MenuNode(id="USERS", parent_id="ADMIN", title="Users"),
            MenuNode(id="ROLES", parent_id="ADMIN", title="Roles", is_active=False),
            MenuNode(id="USRNEW", parent_id="USERS", title="New User"),
        ])
        assert tree_statistics(index) == {
            "total": 5,
            "active": 4,
            "inactive": 1,
            "top_level": 2,
            "max_depth": 3,
            "avg_children_per_parent": 1.5,
        }

    def test_empty(self):
        stats = tree_statistics(build_menu_index([]))
        assert stats["total"] == 0
        assert stats["max_depth"] == 0
        assert stats["avg_children_per_parent"] == 0.0
