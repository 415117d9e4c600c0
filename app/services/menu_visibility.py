"""
Menu tree construction and per-user filtering.

Menus are held as an arena: ``MenuIndex.nodes`` maps id to node data and
``MenuIndex.children_by_parent`` maps a parent id (None for roots) to its
children's ids in display order. Trees are produced by walking the index; no
node holds a reference to its parent or children.

Visibility is explicit: a node is shown only when one of the user's roles
grants ``can_view`` on it and its parent is shown. A visible node under a
hidden parent is not reachable and is omitted.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from app.crud.menu_permission import FLAG_FIELDS
from app.schemas.menu import MenuTreeNode


@dataclass
class MenuNode:
    id: str
    parent_id: Optional[str]
    title: str
    href: Optional[str] = None
    icon: Optional[str] = None
    target: str = "_self"
    order_index: int = 0
    is_active: bool = True

    @classmethod
    def from_model(cls, menu) -> "MenuNode":
        return cls(
            id=menu.id,
            parent_id=menu.parent_id,
            title=menu.title,
            href=menu.href,
            icon=menu.icon,
            target=menu.target or "_self",
            order_index=menu.order_index or 0,
            is_active=bool(menu.is_active),
        )


@dataclass
class MenuIndex:
    nodes: Dict[str, MenuNode] = field(default_factory=dict)
    children_by_parent: Dict[Optional[str], List[str]] = field(default_factory=dict)

    def roots(self) -> List[str]:
        return self.children_by_parent.get(None, [])

    def children(self, parent_id: Optional[str]) -> List[str]:
        return self.children_by_parent.get(parent_id, [])

    def descendants(self, menu_id: str) -> List[str]:
        """All ids below ``menu_id``, breadth first."""
        result: List[str] = []
        seen: Set[str] = {menu_id}
        queue = list(self.children(menu_id))
        while queue:
            current = queue.pop(0)
            if current in seen:
                continue
            seen.add(current)
            result.append(current)
            queue.extend(self.children(current))
        return result


def build_menu_index(menus: Iterable) -> MenuIndex:
    """Index menu rows (models or MenuNode) by id and by parent."""
    index = MenuIndex()
    for menu in menus:
        node = menu if isinstance(menu, MenuNode) else MenuNode.from_model(menu)
        index.nodes[node.id] = node

    grouped: Dict[Optional[str], List[MenuNode]] = defaultdict(list)
    for node in index.nodes.values():
        # Nodes whose parent is outside this index are never reached from the roots
        grouped[node.parent_id].append(node)

    for parent_id, children in grouped.items():
        children.sort(key=lambda n: (n.order_index, n.id))
        index.children_by_parent[parent_id] = [child.id for child in children]
    return index


def empty_flags() -> Dict[str, bool]:
    return {flag: False for flag in FLAG_FIELDS}


def aggregate_flags(bindings: Iterable) -> Dict[str, Dict[str, bool]]:
    """OR each flag across all bindings of the same menu."""
    flags: Dict[str, Dict[str, bool]] = {}
    for binding in bindings:
        current = flags.setdefault(binding.menu_id, empty_flags())
        for flag in FLAG_FIELDS:
            current[flag] = current[flag] or bool(getattr(binding, flag))
    return flags


def _tree_node(node: MenuNode, flags: Dict[str, bool], children: List[MenuTreeNode]) -> MenuTreeNode:
    return MenuTreeNode(
        id=node.id,
        title=node.title,
        href=node.href,
        icon=node.icon,
        target=node.target,
        order_index=node.order_index,
        is_active=node.is_active,
        children=children,
        **flags,
    )


def _walk(
    index: MenuIndex,
    parent_id: Optional[str],
    flags: Dict[str, Dict[str, bool]],
    visible_only: bool,
    seen: Set[str],
) -> List[MenuTreeNode]:
    result = []
    for menu_id in index.children(parent_id):
        if menu_id in seen:
            continue
        node_flags = flags.get(menu_id, empty_flags())
        if visible_only and not node_flags["can_view"]:
            continue
        seen.add(menu_id)
        children = _walk(index, menu_id, flags, visible_only, seen)
        result.append(_tree_node(index.nodes[menu_id], node_flags, children))
    return result


def visible_tree(index: MenuIndex, flags: Dict[str, Dict[str, bool]]) -> List[MenuTreeNode]:
    """Nodes whose aggregated ``can_view`` is set, nested under visible parents."""
    return _walk(index, None, flags, visible_only=True, seen=set())


def full_tree(index: MenuIndex, flags: Optional[Dict[str, Dict[str, bool]]] = None) -> List[MenuTreeNode]:
    """Every reachable node; flags default to all false."""
    return _walk(index, None, flags or {}, visible_only=False, seen=set())


def count_nodes(tree: List[MenuTreeNode]) -> int:
    return sum(1 + count_nodes(node.children) for node in tree)


def would_create_cycle(parent_of: Dict[str, Optional[str]], menu_id: str, new_parent_id: Optional[str]) -> bool:
    """True when ``new_parent_id`` is ``menu_id`` itself or one of its descendants."""
    current = new_parent_id
    seen: Set[str] = set()
    while current is not None and current not in seen:
        if current == menu_id:
            return True
        seen.add(current)
        current = parent_of.get(current)
    return False


def tree_statistics(index: MenuIndex) -> Dict[str, object]:
    nodes = index.nodes.values()
    total = len(index.nodes)
    active = sum(1 for node in nodes if node.is_active)
    top_level = sum(1 for node in nodes if node.parent_id is None)

    max_depth = 0
    stack = [(menu_id, 1) for menu_id in index.roots()]
    seen: Set[str] = set()
    while stack:
        menu_id, depth = stack.pop()
        if menu_id in seen:
            continue
        seen.add(menu_id)
        max_depth = max(max_depth, depth)
        stack.extend((child, depth + 1) for child in index.children(menu_id))

    parents = [pid for pid, children in index.children_by_parent.items() if pid is not None and children]
    child_count = sum(len(index.children_by_parent[pid]) for pid in parents)

    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "top_level": top_level,
        "max_depth": max_depth,
        "avg_children_per_parent": round(child_count / len(parents), 2) if parents else 0.0,
    }
