#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
gcc_tree_shims/tree.py
══════════════════════

Read-only model of the GCC ``tree`` graph handed to plugins at
``PLUGIN_PRE_GENERICIZE``, plus the safe accessors the rest of the
package uses to inspect it.

    ┌─────────────────────────────────────────────────────────────────┐
    │  Tree codes                                                     │
    │    • TreeCode enum (tree_code_name, code class, operand count)  │
    ├─────────────────────────────────────────────────────────────────┤
    │  Symbols & locations                                            │
    │    • Identifier / IdentifierTable (interned DECL_NAMEs)         │
    │    • SourceLocation                                             │
    ├─────────────────────────────────────────────────────────────────┤
    │  Nodes                                                          │
    │    • TreeNode (immutable, identity-compared)                    │
    │    • build / build_decl / build_int_cst / build_stmt_list ...   │
    ├─────────────────────────────────────────────────────────────────┤
    │  Accessors                                                      │
    │    • tree_code, tree_operand, decl_name, int_cst_value,         │
    │      expr_location, statement_sequence, decl_saved_tree         │
    └─────────────────────────────────────────────────────────────────┘

Design Principles
─────────────────
1. **Non-invasive**: nodes are frozen; nothing in the package mutates a
   tree once it is built.

2. **Absence over failure**: ``tree_operand`` and friends accept ``None``
   and out-of-range slots and answer ``None`` instead of raising, so that
   structural navigation can treat "no such child" as a plain non-match.

3. **Strict where GCC is strict**: accessors that GCC guards with
   ``TREE_CHECK`` (``TREE_INT_CST_LOW``, ``DECL_SAVED_TREE``, the
   statement iterator) raise :class:`TreeCheckError` when handed the wrong
   kind of node. Those are host consistency violations, not non-matches.

4. **Symbol identity**: two occurrences of the same variable are two
   distinct ``TreeNode`` objects sharing one interned ``Identifier``.

License: MIT
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    Optional,
    Tuple,
)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1: TREE CODES
# ═══════════════════════════════════════════════════════════════════════════

class TreeCodeClass(Enum):
    """Coarse classification of tree codes (GCC's ``tree_code_class``)."""
    EXCEPTIONAL = auto()
    CONSTANT = auto()
    DECLARATION = auto()
    REFERENCE = auto()
    COMPARISON = auto()
    UNARY = auto()
    BINARY = auto()
    STATEMENT = auto()
    EXPRESSION = auto()


_X = TreeCodeClass.EXCEPTIONAL
_C = TreeCodeClass.CONSTANT
_D = TreeCodeClass.DECLARATION
_R = TreeCodeClass.REFERENCE
_CMP = TreeCodeClass.COMPARISON
_U = TreeCodeClass.UNARY
_B = TreeCodeClass.BINARY
_S = TreeCodeClass.STATEMENT
_E = TreeCodeClass.EXPRESSION


class TreeCode(Enum):
    """
    Node kinds of the host tree.

    Each member carries ``(code_name, code_class, length)`` where
    ``code_name`` is GCC's ``tree_code_name`` spelling and ``length`` is the
    number of operand slots (``TREE_CODE_LENGTH``).
    """

    ERROR_MARK = ("error_mark", _X, 0)
    IDENTIFIER_NODE = ("identifier_node", _X, 0)
    STATEMENT_LIST = ("statement_list", _X, 0)

    # Declarations
    FUNCTION_DECL = ("function_decl", _D, 0)
    LABEL_DECL = ("label_decl", _D, 0)
    FIELD_DECL = ("field_decl", _D, 0)
    VAR_DECL = ("var_decl", _D, 0)
    CONST_DECL = ("const_decl", _D, 0)
    PARM_DECL = ("parm_decl", _D, 0)
    TYPE_DECL = ("type_decl", _D, 0)
    RESULT_DECL = ("result_decl", _D, 0)

    # Constants
    INTEGER_CST = ("integer_cst", _C, 0)
    REAL_CST = ("real_cst", _C, 0)
    STRING_CST = ("string_cst", _C, 0)

    # References
    COMPONENT_REF = ("component_ref", _R, 3)
    ARRAY_REF = ("array_ref", _R, 4)
    INDIRECT_REF = ("indirect_ref", _R, 1)

    # Statements and control constructs
    BIND_EXPR = ("bind_expr", _E, 3)
    DECL_EXPR = ("decl_expr", _S, 1)
    LABEL_EXPR = ("label_expr", _S, 1)
    GOTO_EXPR = ("goto_expr", _S, 1)
    RETURN_EXPR = ("return_expr", _S, 1)
    EXIT_EXPR = ("exit_expr", _S, 1)
    LOOP_EXPR = ("loop_expr", _S, 1)
    SWITCH_EXPR = ("switch_expr", _S, 2)
    COND_EXPR = ("cond_expr", _E, 3)
    COMPOUND_EXPR = ("compound_expr", _E, 2)
    MODIFY_EXPR = ("modify_expr", _E, 2)
    INIT_EXPR = ("init_expr", _E, 2)
    SAVE_EXPR = ("save_expr", _E, 1)
    ADDR_EXPR = ("addr_expr", _E, 1)
    TRUTH_ANDIF_EXPR = ("truth_andif_expr", _E, 2)
    TRUTH_ORIF_EXPR = ("truth_orif_expr", _E, 2)
    TRUTH_NOT_EXPR = ("truth_not_expr", _E, 1)

    # Conversions and arithmetic
    NOP_EXPR = ("nop_expr", _U, 1)
    CONVERT_EXPR = ("convert_expr", _U, 1)
    NEGATE_EXPR = ("negate_expr", _U, 1)
    PLUS_EXPR = ("plus_expr", _B, 2)
    MINUS_EXPR = ("minus_expr", _B, 2)
    MULT_EXPR = ("mult_expr", _B, 2)
    TRUNC_DIV_EXPR = ("trunc_div_expr", _B, 2)
    TRUNC_MOD_EXPR = ("trunc_mod_expr", _B, 2)

    # Comparisons
    LT_EXPR = ("lt_expr", _CMP, 2)
    LE_EXPR = ("le_expr", _CMP, 2)
    GT_EXPR = ("gt_expr", _CMP, 2)
    GE_EXPR = ("ge_expr", _CMP, 2)
    EQ_EXPR = ("eq_expr", _CMP, 2)
    NE_EXPR = ("ne_expr", _CMP, 2)

    def __init__(self, code_name: str, code_class: TreeCodeClass, length: int) -> None:
        self.code_name = code_name
        self.code_class = code_class
        self.length = length

    def __str__(self) -> str:
        return self.code_name

    @classmethod
    def lookup(cls, code_name: str) -> "TreeCode":
        """Return the member spelled ``code_name``; ``KeyError`` if unknown."""
        return _CODES_BY_NAME[code_name]


_CODES_BY_NAME: Dict[str, TreeCode] = {c.code_name: c for c in TreeCode}

del _X, _C, _D, _R, _CMP, _U, _B, _S, _E

#: Declarations that the traversal engine treats as leaves.
TERMINAL_DECL_CODES: FrozenSet[TreeCode] = frozenset({
    TreeCode.FUNCTION_DECL,
    TreeCode.VAR_DECL,
    TreeCode.PARM_DECL,
    TreeCode.LABEL_DECL,
    TreeCode.RESULT_DECL,
})

#: Declarations that denote a pointer-like storage location.
VARIABLE_DECL_CODES: FrozenSet[TreeCode] = frozenset({
    TreeCode.VAR_DECL,
    TreeCode.PARM_DECL,
})


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2: IDENTIFIERS, LOCATIONS, ERRORS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Identifier:
    """An interned symbol name (GCC ``IDENTIFIER_NODE``)."""
    text: str

    def __str__(self) -> str:
        return self.text


class IdentifierTable:
    """
    Interns identifier text so every occurrence shares one object.

    Mirrors ``get_identifier``: asking twice for ``"p"`` yields the same
    :class:`Identifier`, which is what symbol-identity comparisons rely on.
    """

    def __init__(self) -> None:
        self._table: Dict[str, Identifier] = {}

    def get_identifier(self, text: str) -> Identifier:
        ident = self._table.get(text)
        if ident is None:
            ident = Identifier(text)
            self._table[text] = ident
        return ident

    def __contains__(self, text: object) -> bool:
        return text in self._table

    def __len__(self) -> int:
        return len(self._table)


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


UNKNOWN_LOCATION = SourceLocation()


class TreeCheckError(Exception):
    """
    A strict accessor was applied to a node of the wrong kind.

    This is the analogue of GCC's ``tree_check_failed``: the host's own tree
    is inconsistent with what the accessor requires. Callers are expected
    to abort rather than recover.
    """

    def __init__(self, accessor: str, expected: Iterable[TreeCode], found: Optional[TreeCode]) -> None:
        self.accessor = accessor
        self.expected = tuple(expected)
        self.found = found
        names = ", ".join(c.code_name for c in self.expected)
        got = found.code_name if found is not None else "<null>"
        super().__init__(f"tree check: {accessor} expected {names}, have {got}")


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3: NODES AND BUILDERS
# ═══════════════════════════════════════════════════════════════════════════

HOST_BITS_PER_WIDE_INT = 64
_WORD_MASK = (1 << HOST_BITS_PER_WIDE_INT) - 1
_DOUBLE_BITS = 2 * HOST_BITS_PER_WIDE_INT


@dataclass(frozen=True, eq=False)
class TreeNode:
    """
    One node of the host tree.

    Attributes
    ----------
    code       : the node kind
    operands   : operand slots, padded with ``None`` up to ``code.length``
    name       : DECL_NAME for declarations (may be ``None``)
    int_cst    : ``(high, low)`` unsigned words for ``integer_cst``
    location   : EXPR_LOCATION / DECL_SOURCE_LOCATION
    statements : ordered children of a ``statement_list``
    saved_tree : DECL_SAVED_TREE of a ``function_decl``

    Equality is object identity; compare declarations by ``name``.
    """
    code: TreeCode
    operands: Tuple[Optional["TreeNode"], ...] = ()
    name: Optional[Identifier] = None
    int_cst: Tuple[int, int] = (0, 0)
    location: SourceLocation = UNKNOWN_LOCATION
    statements: Tuple["TreeNode", ...] = field(default=(), repr=False)
    saved_tree: Optional["TreeNode"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        ops = tuple(self.operands)
        if len(ops) > self.code.length:
            raise ValueError(
                f"{self.code.code_name} takes {self.code.length} operand(s), "
                f"got {len(ops)}"
            )
        if len(ops) < self.code.length:
            ops = ops + (None,) * (self.code.length - len(ops))
        object.__setattr__(self, "operands", ops)
        object.__setattr__(self, "statements", tuple(self.statements))
        if self.statements and self.code is not TreeCode.STATEMENT_LIST:
            raise ValueError(f"{self.code.code_name} cannot hold a statement sequence")
        if self.saved_tree is not None and self.code is not TreeCode.FUNCTION_DECL:
            raise ValueError(f"{self.code.code_name} cannot hold a saved tree")

    def __repr__(self) -> str:
        if self.name is not None:
            return f"<TreeNode {self.code.code_name} {self.name.text}>"
        return f"<TreeNode {self.code.code_name}>"


def build(
    code: TreeCode,
    *operands: Optional[TreeNode],
    location: SourceLocation = UNKNOWN_LOCATION,
) -> TreeNode:
    """Build an expression or statement node from its operands."""
    return TreeNode(code=code, operands=operands, location=location)


def build_decl(
    code: TreeCode,
    name: Optional[Identifier],
    location: SourceLocation = UNKNOWN_LOCATION,
) -> TreeNode:
    """Build a declaration node referring to ``name``."""
    if code.code_class is not TreeCodeClass.DECLARATION:
        raise ValueError(f"{code.code_name} is not a declaration code")
    return TreeNode(code=code, name=name, location=location)


def build_fn_decl(
    name: Optional[Identifier],
    saved_tree: Optional[TreeNode],
    location: SourceLocation = UNKNOWN_LOCATION,
) -> TreeNode:
    """Build a ``function_decl`` whose body is ``saved_tree``."""
    return TreeNode(
        code=TreeCode.FUNCTION_DECL,
        name=name,
        location=location,
        saved_tree=saved_tree,
    )


def split_int_cst(value: int) -> Tuple[int, int]:
    """Split a Python int into two's complement ``(high, low)`` words."""
    if not -(1 << (_DOUBLE_BITS - 1)) <= value < (1 << _DOUBLE_BITS):
        raise ValueError(f"integer constant {value} does not fit in {_DOUBLE_BITS} bits")
    bits = value & ((1 << _DOUBLE_BITS) - 1)
    return (bits >> HOST_BITS_PER_WIDE_INT, bits & _WORD_MASK)


def build_int_cst(value: int, location: SourceLocation = UNKNOWN_LOCATION) -> TreeNode:
    """Build an ``integer_cst`` holding ``value``."""
    return TreeNode(code=TreeCode.INTEGER_CST, int_cst=split_int_cst(value), location=location)


def build_int_cst_wide(high: int, low: int, location: SourceLocation = UNKNOWN_LOCATION) -> TreeNode:
    """Build an ``integer_cst`` from raw high/low words."""
    for word in (high, low):
        if not 0 <= word <= _WORD_MASK:
            raise ValueError(f"word 0x{word:X} does not fit in {HOST_BITS_PER_WIDE_INT} bits")
    return TreeNode(code=TreeCode.INTEGER_CST, int_cst=(high, low), location=location)


def build_stmt_list(
    statements: Iterable[TreeNode],
    location: SourceLocation = UNKNOWN_LOCATION,
) -> TreeNode:
    """Build a ``statement_list`` over ``statements`` in order."""
    return TreeNode(code=TreeCode.STATEMENT_LIST, statements=tuple(statements), location=location)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4: SAFE ACCESSORS
# ═══════════════════════════════════════════════════════════════════════════

def tree_code(node: Optional[TreeNode]) -> Optional[TreeCode]:
    """
    Safely get the code of a node.

    Returns:
        The node's TreeCode, or None if node is None
    """
    if node is None:
        return None
    return node.code


def tree_operand(node: Optional[TreeNode], slot: int) -> Optional[TreeNode]:
    """
    Safely get operand ``slot`` of a node.

    Unlike ``TREE_OPERAND`` this never reads past the node's arity: a slot
    the kind does not have yields None, as does a None node.
    """
    if node is None or slot < 0 or slot >= node.code.length:
        return None
    return node.operands[slot]


def decl_name(node: Optional[TreeNode]) -> Optional[Identifier]:
    """DECL_NAME of a declaration, or None for anything else."""
    if node is None or node.code.code_class is not TreeCodeClass.DECLARATION:
        return None
    return node.name


def identifier_pointer(ident: Optional[Identifier], default: str = "<unnamed>") -> str:
    """Text of an identifier, or ``default`` when there is none."""
    if ident is None:
        return default
    return ident.text


def expr_location(node: Optional[TreeNode]) -> SourceLocation:
    """Source location of a node, or UNKNOWN_LOCATION."""
    if node is None:
        return UNKNOWN_LOCATION
    return node.location


def _check(node: Optional[TreeNode], accessor: str, *codes: TreeCode) -> TreeNode:
    if node is None or node.code not in codes:
        raise TreeCheckError(accessor, codes, tree_code(node))
    return node


def int_cst_value(node: Optional[TreeNode]) -> Tuple[int, int]:
    """``(TREE_INT_CST_HIGH, TREE_INT_CST_LOW)``; raises TreeCheckError otherwise."""
    return _check(node, "int_cst_value", TreeCode.INTEGER_CST).int_cst


def int_cst_to_int(node: Optional[TreeNode]) -> int:
    """Signed value of an ``integer_cst``."""
    high, low = int_cst_value(node)
    bits = (high << HOST_BITS_PER_WIDE_INT) | low
    if bits >> (_DOUBLE_BITS - 1):
        bits -= 1 << _DOUBLE_BITS
    return bits


def statement_sequence(node: Optional[TreeNode]) -> Tuple[TreeNode, ...]:
    """Children of a ``statement_list`` in source order."""
    return _check(node, "statement_sequence", TreeCode.STATEMENT_LIST).statements


def decl_saved_tree(node: Optional[TreeNode]) -> Optional[TreeNode]:
    """DECL_SAVED_TREE of a ``function_decl`` (may be None)."""
    return _check(node, "decl_saved_tree", TreeCode.FUNCTION_DECL).saved_tree


def function_body(fndecl: Optional[TreeNode]) -> Optional[TreeNode]:
    """
    The statement tree of a function definition.

    At pre-genericize time DECL_SAVED_TREE is a ``bind_expr`` whose second
    operand is the body. Anything else (not a function, no saved tree, a
    saved tree of another shape) yields None.
    """
    if fndecl is None or fndecl.code is not TreeCode.FUNCTION_DECL:
        return None
    saved = decl_saved_tree(fndecl)
    if saved is None or saved.code is not TreeCode.BIND_EXPR:
        return None
    return tree_operand(saved, 1)


__all__ = [
    "TreeCodeClass",
    "TreeCode",
    "TERMINAL_DECL_CODES",
    "VARIABLE_DECL_CODES",
    "Identifier",
    "IdentifierTable",
    "SourceLocation",
    "UNKNOWN_LOCATION",
    "TreeCheckError",
    "HOST_BITS_PER_WIDE_INT",
    "TreeNode",
    "build",
    "build_decl",
    "build_fn_decl",
    "split_int_cst",
    "build_int_cst",
    "build_int_cst_wide",
    "build_stmt_list",
    "tree_code",
    "tree_operand",
    "decl_name",
    "identifier_pointer",
    "expr_location",
    "int_cst_value",
    "int_cst_to_int",
    "statement_sequence",
    "decl_saved_tree",
    "function_body",
]
