#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
gcc_tree_shims/traversal.py
═══════════════════════════

Pre-order walk of a function body, with per-kind recursion rules.

The walk distinguishes three kinds of node:

    ┌────────────────────┬──────────────────────────────────────────────┐
    │ terminal           │ function/var/parm/label/result decl,         │
    │                    │ integer_cst — visited, never descended into  │
    ├────────────────────┼──────────────────────────────────────────────┤
    │ statement_list     │ visited, then each statement in source order │
    ├────────────────────┼──────────────────────────────────────────────┤
    │ everything else    │ visited, then operand 0, then operand 1      │
    │                    │ unless the code is in the mode's skip set    │
    └────────────────────┴──────────────────────────────────────────────┘

Skip sets
─────────
``RENDER_SKIP_CODES``
    Statements whose second operand is either missing or misleading when
    printed generically: return, label, goto, nop and decl statements.

``DETECT_SKIP_CODES``
    The render set plus ``addr_expr``, ``indirect_ref`` and
    ``component_ref``. The null-check matcher reads those shapes
    structurally, so the generic walk does not visit their second operand.

Kinds with no entry in either table (including codes added later) take the
generic branch. The walk keeps an explicit stack, so it is not limited by
the interpreter's recursion depth.

Usage Example
─────────────
    from gcc_tree_shims.traversal import parse_tree, TraversalMode

    def show(node, depth):
        print("  " * depth + node.code.code_name)

    parse_tree(body, show, skip_codes=TraversalMode.RENDER.skip_codes)

License: MIT
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, FrozenSet, Iterator, List, Optional, Tuple

from gcc_tree_shims.tree import (
    TERMINAL_DECL_CODES,
    TreeCode,
    TreeNode,
    tree_operand,
)

logger = logging.getLogger(__name__)

#: Visitor callback: ``callback(node, depth)``.
TreeCallback = Callable[[TreeNode, int], None]


# ═══════════════════════════════════════════════════════════════════════════
#  SKIP SETS
# ═══════════════════════════════════════════════════════════════════════════

TERMINAL_CODES: FrozenSet[TreeCode] = TERMINAL_DECL_CODES | {TreeCode.INTEGER_CST}

RENDER_SKIP_CODES: FrozenSet[TreeCode] = frozenset({
    TreeCode.RETURN_EXPR,
    TreeCode.LABEL_EXPR,
    TreeCode.GOTO_EXPR,
    TreeCode.NOP_EXPR,
    TreeCode.DECL_EXPR,
})

DETECT_SKIP_CODES: FrozenSet[TreeCode] = RENDER_SKIP_CODES | {
    TreeCode.ADDR_EXPR,
    TreeCode.INDIRECT_REF,
    TreeCode.COMPONENT_REF,
}


class TraversalMode(Enum):
    """The two ways the engine is driven."""
    RENDER = "render"
    DETECT = "detect"

    @property
    def skip_codes(self) -> FrozenSet[TreeCode]:
        if self is TraversalMode.DETECT:
            return DETECT_SKIP_CODES
        return RENDER_SKIP_CODES


# ═══════════════════════════════════════════════════════════════════════════
#  WALK
# ═══════════════════════════════════════════════════════════════════════════

def _children(node: TreeNode, skip_codes: FrozenSet[TreeCode]) -> List[TreeNode]:
    """Children to descend into, in visit order."""
    code = node.code
    if code in TERMINAL_CODES:
        return []
    if code is TreeCode.STATEMENT_LIST:
        return list(node.statements)
    children = []
    op0 = tree_operand(node, 0)
    if op0 is not None:
        children.append(op0)
    if code not in skip_codes:
        op1 = tree_operand(node, 1)
        if op1 is not None:
            children.append(op1)
    return children


def walk_tree(
    root: Optional[TreeNode],
    skip_codes: FrozenSet[TreeCode] = RENDER_SKIP_CODES,
    depth: int = 0,
) -> Iterator[Tuple[TreeNode, int]]:
    """
    Iterate ``(node, depth)`` pairs in pre-order.

    Args:
        root:       the subtree to walk (None yields nothing)
        skip_codes: codes whose second operand is not descended into
        depth:      depth reported for ``root``

    Yields:
        Each reachable node exactly once, parents before children
    """
    if root is None:
        return
    stack: List[Tuple[TreeNode, int]] = [(root, depth)]
    while stack:
        node, level = stack.pop()
        yield node, level
        # Push in reverse so the first child is processed first (LIFO)
        for child in reversed(_children(node, skip_codes)):
            stack.append((child, level + 1))


def parse_tree(
    root: Optional[TreeNode],
    callback: TreeCallback,
    depth: int = 0,
    skip_codes: FrozenSet[TreeCode] = RENDER_SKIP_CODES,
) -> int:
    """
    Walk ``root`` and call ``callback(node, depth)`` for every visited node.

    Returns:
        The number of nodes visited
    """
    count = 0
    for node, level in walk_tree(root, skip_codes, depth):
        callback(node, level)
        count += 1
    logger.debug("parse_tree visited %d node(s)", count)
    return count


def collect_tree(
    root: Optional[TreeNode],
    skip_codes: FrozenSet[TreeCode] = RENDER_SKIP_CODES,
) -> List[TreeNode]:
    """All visited nodes of ``root`` in pre-order."""
    return [node for node, _ in walk_tree(root, skip_codes)]


__all__ = [
    "TreeCallback",
    "TERMINAL_CODES",
    "RENDER_SKIP_CODES",
    "DETECT_SKIP_CODES",
    "TraversalMode",
    "walk_tree",
    "parse_tree",
    "collect_tree",
]
