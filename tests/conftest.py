# tests/conftest.py
"""
Shared tree builders and source fixtures for the gcc_tree_shims tests.
"""

from typing import Optional, Sequence, Tuple

import pytest

from gcc_tree_shims.tree import (
    IdentifierTable,
    SourceLocation,
    TreeCode,
    TreeNode,
    build,
    build_decl,
    build_fn_decl,
    build_int_cst,
    build_stmt_list,
)


DEREF_LOC = SourceLocation("t.c", 3, 20)
FN_LOC = SourceLocation("t.c", 1, 6)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def decl(ids: IdentifierTable, name: Optional[str], code: TreeCode = TreeCode.PARM_DECL) -> TreeNode:
    return build_decl(code, ids.get_identifier(name) if name is not None else None)


def null_check_deref(
    ids: IdentifierTable,
    checked: str = "p",
    dereferenced: str = "p",
    value: int = 0,
    code: TreeCode = TreeCode.PARM_DECL,
    compare: TreeCode = TreeCode.NE_EXPR,
) -> Tuple[TreeNode, TreeNode]:
    """``checked != value || dereferenced->a != 0``; returns (orif, component_ref)."""
    member = build(
        TreeCode.COMPONENT_REF,
        build(TreeCode.INDIRECT_REF, decl(ids, dereferenced, code)),
        decl(ids, "a", TreeCode.FIELD_DECL),
        location=DEREF_LOC,
    )
    orif = build(
        TreeCode.TRUTH_ORIF_EXPR,
        build(compare, decl(ids, checked, code), build_int_cst(value)),
        build(TreeCode.NE_EXPR, member, build_int_cst(0)),
    )
    return orif, member


def function(
    ids: IdentifierTable,
    name: str,
    statements: Sequence[TreeNode],
    location: SourceLocation = FN_LOC,
) -> TreeNode:
    """A ``function_decl`` whose saved tree is ``bind_expr(_, statement_list)``."""
    body = build_stmt_list(statements)
    return build_fn_decl(
        ids.get_identifier(name),
        build(TreeCode.BIND_EXPR, None, body),
        location,
    )


def guarded_return(ids: IdentifierTable, **kwargs) -> Tuple[TreeNode, TreeNode]:
    """``if (<null_check_deref>) return;``; returns (cond_expr, component_ref)."""
    orif, member = null_check_deref(ids, **kwargs)
    return build(TreeCode.COND_EXPR, orif, build(TreeCode.RETURN_EXPR, None)), member


@pytest.fixture
def ids() -> IdentifierTable:
    return IdentifierTable()


# ---------------------------------------------------------------------------
# Tree sources
# ---------------------------------------------------------------------------

NULL_DEREF_TREE = """\
; if (p != 0 || p->a != 0) return;
(function_decl f :loc "t.c:1:6"
  (bind_expr _
    (statement_list
      (cond_expr
        (truth_orif_expr
          (ne_expr (parm_decl p) (integer_cst 0))
          (ne_expr (component_ref (indirect_ref (parm_decl p)) (field_decl a)
                                  :loc "t.c:3:20")
                   (integer_cst 0)))
        (return_expr _)))))
"""

CLEAN_TREE = """\
; if (p == 0 || p->a != 0) return;
(function_decl g :loc "t.c:10:6"
  (bind_expr _
    (statement_list
      (cond_expr
        (truth_orif_expr
          (eq_expr (parm_decl p) (integer_cst 0))
          (ne_expr (component_ref (indirect_ref (parm_decl p)) (field_decl a)
                                  :loc "t.c:12:20")
                   (integer_cst 0)))
        (return_expr _)))))
"""

TWO_FUNCTIONS_TREE = NULL_DEREF_TREE + CLEAN_TREE

NULL_DEREF_RENDERED = [
    "  statement_list",
    "    cond_expr",
    "      truth_orif_expr",
    "        ne_expr",
    "          parm_decl : p",
    "          integer_cst : 0",
    "        ne_expr",
    "          component_ref",
    "            indirect_ref",
    "              parm_decl : p",
    "            field_decl",
    "          integer_cst : 0",
    "      return_expr",
]
