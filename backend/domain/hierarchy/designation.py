"""
Hierarchy Domain - Designation labels.
"""

from __future__ import annotations
from typing import Any, Iterable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

SEPARATOR = "."


def parse_start(start_label: Optional[Any]) -> int:
    """
    Starting ordinal of a renumbering scope.

    The last dotted component of the label is used ("2.3" starts at 3);
    anything unparsable or not positive starts at 1.
    """
    if start_label in (None, ""):
        return 1
    tail = str(start_label).strip().split(SEPARATOR)[-1]
    try:
        start = int(tail)
    except ValueError:
        return 1
    return start if start > 0 else 1


def sibling_key(node: Any) -> Tuple[int, int]:
    """Stable sibling order: explicit position first, identifier as tiebreak."""
    return (node.position or 0, node.pk)


def in_sibling_order(nodes: Iterable[T]) -> List[T]:
    return sorted(nodes, key=sibling_key)


def label(index: int, prefix: Optional[str] = None) -> str:
    if prefix:
        return f"{prefix}{SEPARATOR}{index}"
    return str(index)


def number(nodes: Sequence[T], start: int = 1, prefix: Optional[str] = None) -> List[Tuple[T, str]]:
    """Pair each node (already in sibling order) with its contiguous label."""
    return [(node, label(start + offset, prefix)) for offset, node in enumerate(nodes)]


def is_contiguous(labels: Sequence[str], start: int = 1) -> bool:
    """True when the last components run start, start+1, ... without gaps."""
    try:
        ordinals = [int(str(value).split(SEPARATOR)[-1]) for value in labels]
    except ValueError:
        return False
    return ordinals == list(range(start, start + len(ordinals)))
