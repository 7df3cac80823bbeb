"""
gcc_tree_shims/path.py
══════════════════════

Path-based structural navigation over host trees.

A *path* is a sequence of operand selectors (``OP0`` / ``OP1``). Resolving
it walks down from a starting node one slot at a time; any missing link
ends the walk with ``None``. That makes nested shape checks read as a
single lookup instead of a ladder of ``if t1 and t1.operands[0] ...``::

    deref = resolve_path(orif, (OP1, OP0, OP0))
    if is_tree_code(deref, TreeCode.INDIRECT_REF):
        ...

License: MIT
"""

from __future__ import annotations

from enum import IntEnum
from typing import Optional, Sequence

from gcc_tree_shims.tree import (
    VARIABLE_DECL_CODES,
    TreeCode,
    TreeNode,
    int_cst_to_int,
    tree_operand,
)


class Operand(IntEnum):
    """Operand slot selectors."""
    FIRST = 0
    SECOND = 1


OP0 = Operand.FIRST
OP1 = Operand.SECOND

Path = Sequence[Operand]


def resolve_path(node: Optional[TreeNode], path: Path) -> Optional[TreeNode]:
    """
    Follow ``path`` from ``node``.

    Returns the node reached, or None as soon as a link is absent or a node
    on the way has no such operand slot. An empty path returns ``node``.
    """
    current = node
    for selector in path:
        if current is None:
            return None
        current = tree_operand(current, int(selector))
    return current


def is_tree_code(node: Optional[TreeNode], code: TreeCode) -> bool:
    """True if ``node`` is present and of kind ``code``."""
    return node is not None and node.code is code


def is_declaration(node: Optional[TreeNode]) -> bool:
    """True for variable and parameter declarations."""
    return node is not None and node.code in VARIABLE_DECL_CODES


def is_value(node: Optional[TreeNode], value: int) -> bool:
    """True if ``node`` is an ``integer_cst`` equal to ``value``."""
    if not is_tree_code(node, TreeCode.INTEGER_CST):
        return False
    return int_cst_to_int(node) == value


def is_value_at(node: Optional[TreeNode], path: Path, value: int) -> bool:
    """True if the node reached by ``path`` is an ``integer_cst`` equal to ``value``."""
    return is_value(resolve_path(node, path), value)


__all__ = [
    "Operand",
    "OP0",
    "OP1",
    "Path",
    "resolve_path",
    "is_tree_code",
    "is_declaration",
    "is_value",
    "is_value_at",
]
