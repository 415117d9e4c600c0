"""
The one place where permission names are parsed and matched.

A requirement ``resource:action`` is satisfied by the first of these grants
found in the effective set, in precedence order:

1. the exact name
2. ``resource:*``   (resource wildcard)
3. ``*:*``          (global wildcard)
4. ``*:action``     (action wildcard)

Superuser bypass is applied by the callers before matching. Wildcards are
literal grant names, never patterns.
"""
import re
from typing import Iterable, List, Optional, Tuple

WILDCARD = "*"
SEPARATOR = ":"
GLOBAL_WILDCARD = f"{WILDCARD}{SEPARATOR}{WILDCARD}"

_SEGMENT = r"[A-Za-z0-9_-]+"
PERMISSION_NAME_RE = re.compile(rf"^{_SEGMENT}{SEPARATOR}(?:{_SEGMENT}|\*)$")
ACTION_WILDCARD_RE = re.compile(rf"^\*{SEPARATOR}(?:{_SEGMENT}|\*)$")
SEGMENT_RE = re.compile(rf"^{_SEGMENT}$")


def format_permission_name(resource: str, action: str) -> str:
    return f"{resource}{SEPARATOR}{action}"


def parse_permission_name(name: str) -> Tuple[str, str]:
    """Split ``resource:action``; raises ``ValueError`` for anything else."""
    if not is_valid_permission_name(name):
        raise ValueError(
            f"Invalid permission name '{name}'. Expected format: resource:action"
        )
    resource, _, action = name.partition(SEPARATOR)
    return resource, action


def is_valid_permission_name(name: str) -> bool:
    if not isinstance(name, str):
        return False
    return bool(PERMISSION_NAME_RE.match(name) or ACTION_WILDCARD_RE.match(name))


def candidate_grants(required: str) -> List[str]:
    """Grant names that would satisfy ``required``, highest precedence first."""
    resource, sep, action = required.partition(SEPARATOR)
    if not sep or not resource or not action:
        # Not a resource:action pair; only an identical grant or *:* covers it
        return [required, GLOBAL_WILDCARD]

    candidates = [required]
    for grant in (
        format_permission_name(resource, WILDCARD),
        GLOBAL_WILDCARD,
        format_permission_name(WILDCARD, action),
    ):
        if grant not in candidates:
            candidates.append(grant)
    return candidates


def match_permission(granted: Iterable[str], required: str) -> Optional[str]:
    """Return the grant that satisfies ``required``, or None."""
    granted_set = granted if isinstance(granted, (set, frozenset)) else set(granted)
    for candidate in candidate_grants(required):
        if candidate in granted_set:
            return candidate
    return None


def has_permission(granted: Iterable[str], required: str, is_superuser: bool = False) -> bool:
    if is_superuser:
        return True
    return match_permission(granted, required) is not None
