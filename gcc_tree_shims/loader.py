"""gcc_tree_shims/loader.py – S-expression → host tree loader.

Reads a textual tree description (the kind of thing ``-fdump-tree``
output boils down to) and builds :class:`gcc_tree_shims.tree.TreeNode`
objects from it, so the traversal and checkers can run without a
compiler in the loop.

Design principles
-----------------
* **Head-symbol dispatch** – ``(code ...)`` is looked up in
  :class:`TreeCode`; codes with special argument rules have a dedicated
  ``_load_<code>`` helper, everything else takes its operands
  positionally.
* **One identifier table per load** – every occurrence of ``p`` in a
  file yields the same :class:`Identifier`, just as ``DECL_NAME`` does
  inside the compiler.
* **Fail-fast with location** – ``TreeLoadError`` carries the nearest
  known :class:`SourceLocation`.

Surface syntax
--------------
::

    ; comments run to end of line
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

    _                          absent operand
    :loc "file:line:col"       location (also "file:line" and "line:col")
    (parm_decl NAME?)          declarations take an optional name
    (integer_cst N)            value, two's complement over two words
    (integer_cst :high H :low L)
    (statement_list S ...)     any number of statements
    (function_decl NAME SAVED?)

Public API
----------
``load_tree(text, filename="<string>") -> Tuple[TreeNode, ...]``
``load_tree_file(path) -> Tuple[TreeNode, ...]``
"""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import sexpdata
from sexpdata import Symbol

from gcc_tree_shims.tree import (
    UNKNOWN_LOCATION,
    Identifier,
    IdentifierTable,
    SourceLocation,
    TreeCode,
    TreeCodeClass,
    TreeNode,
    build_decl,
    build_fn_decl,
    build_int_cst,
    build_int_cst_wide,
    build_stmt_list,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Error types
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TreeLoadError(Exception):
    """Raised when the input cannot be mapped to a valid tree."""

    message: str
    loc: SourceLocation = UNKNOWN_LOCATION

    def __str__(self) -> str:
        if self.loc.file or self.loc.line:
            return f"{self.loc}: {self.message}"
        return self.message


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

Sexp = Any  # Union[list, Symbol, str, int, float]

ABSENT = "_"


def _sym_name(s: Sexp) -> Optional[str]:
    """Name of a ``sexpdata.Symbol``, or None for anything else."""
    if not isinstance(s, Symbol):
        return None
    value = getattr(s, "value", None)
    return str(value()) if callable(value) else str(s)


def _is_keyword(s: Sexp) -> bool:
    name = _sym_name(s)
    return name is not None and name.startswith(":") and len(name) > 1


class _Loader:
    """State for one ``load_tree`` call."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self.identifiers = IdentifierTable()
        self.loc = SourceLocation(file=filename)

    # ── errors ───────────────────────────────────────────────────────

    def error(self, message: str) -> TreeLoadError:
        return TreeLoadError(message, self.loc)

    # ── atoms ────────────────────────────────────────────────────────

    def parse_location(self, s: Sexp) -> SourceLocation:
        if not isinstance(s, str) or isinstance(s, Symbol):
            raise self.error(f"expected location string, got {s!r}")
        parts = s.split(":")
        numbers: List[int] = []
        while parts and len(numbers) < 2 and parts[-1].isdigit():
            numbers.insert(0, int(parts.pop()))
        if not numbers:
            raise self.error(f"malformed location {s!r}")
        file = ":".join(parts) or self.filename
        line = numbers[0]
        column = numbers[1] if len(numbers) > 1 else 0
        return SourceLocation(file=file, line=line, column=column)

    def parse_int(self, s: Sexp) -> int:
        if isinstance(s, bool):
            raise self.error(f"expected integer, got {s!r}")
        if isinstance(s, int):
            return s
        name = _sym_name(s)
        if name is not None:
            try:
                return int(name, 0)
            except ValueError:
                pass
        raise self.error(f"expected integer, got {s!r}")

    def parse_name(self, s: Sexp) -> Optional[Identifier]:
        name = _sym_name(s)
        if name is None and isinstance(s, str):
            name = s
        if name is None or _is_keyword(s):
            raise self.error(f"expected name, got {s!r}")
        if name == ABSENT:
            return None
        return self.identifiers.get_identifier(name)

    # ── forms ────────────────────────────────────────────────────────

    def split_form(self, s: list) -> Tuple[List[Sexp], Dict[str, Sexp]]:
        """Separate positional arguments from ``:keyword value`` pairs."""
        positional: List[Sexp] = []
        keywords: Dict[str, Sexp] = {}
        items = iter(s[1:])
        for item in items:
            if _is_keyword(item):
                key = _sym_name(item)[1:]
                try:
                    keywords[key] = next(items)
                except StopIteration:
                    raise self.error(f"keyword :{key} has no value") from None
            else:
                positional.append(item)
        return positional, keywords

    def parse_node(self, s: Sexp) -> Optional[TreeNode]:
        if _sym_name(s) == ABSENT:
            return None
        if not isinstance(s, list) or not s:
            raise self.error(f"expected tree form (code ...), got {s!r}")
        head = _sym_name(s[0])
        if head is None:
            raise self.error(f"expected tree code, got {s[0]!r}")
        try:
            code = TreeCode.lookup(head)
        except KeyError:
            raise self.error(f"unknown tree code '{head}'") from None

        positional, keywords = self.split_form(s)
        outer = self.loc
        location = UNKNOWN_LOCATION
        if "loc" in keywords:
            location = self.parse_location(keywords.pop("loc"))
            self.loc = location
        try:
            loader = _FORM_DISPATCH.get(code)
            if loader is None:
                if code.code_class is TreeCodeClass.DECLARATION:
                    loader = _load_decl
                else:
                    loader = _load_generic
            node = loader(self, code, positional, keywords, location)
            if keywords:
                unused = ", ".join(f":{k}" for k in sorted(keywords))
                raise self.error(f"{code.code_name} does not accept {unused}")
            return node
        finally:
            self.loc = outer


# ═══════════════════════════════════════════════════════════════════════
#  Dispatch registry
# ═══════════════════════════════════════════════════════════════════════

_FormLoader = Callable[
    [_Loader, TreeCode, List[Sexp], Dict[str, Sexp], SourceLocation],
    Optional[TreeNode],
]

_FORM_DISPATCH: Dict[TreeCode, _FormLoader] = {}


def _register(code: TreeCode):
    """Decorator: register a form loader for ``code``."""
    def deco(fn):
        _FORM_DISPATCH[code] = fn
        return fn
    return deco


def _load_generic(ld, code, positional, keywords, location):
    if len(positional) > code.length:
        raise ld.error(
            f"{code.code_name} takes {code.length} operand(s), got {len(positional)}"
        )
    operands = tuple(ld.parse_node(p) for p in positional)
    return TreeNode(code=code, operands=operands, location=location)


def _load_decl(ld, code, positional, keywords, location):
    if len(positional) > 1:
        raise ld.error(f"{code.code_name} takes at most a name")
    name = ld.parse_name(positional[0]) if positional else None
    return build_decl(code, name, location)


@_register(TreeCode.FUNCTION_DECL)
def _load_function_decl(ld, code, positional, keywords, location):
    if len(positional) > 2:
        raise ld.error("function_decl takes a name and an optional saved tree")
    name = ld.parse_name(positional[0]) if positional else None
    saved = ld.parse_node(positional[1]) if len(positional) > 1 else None
    return build_fn_decl(name, saved, location)


@_register(TreeCode.INTEGER_CST)
def _load_integer_cst(ld, code, positional, keywords, location):
    if "high" in keywords or "low" in keywords:
        if positional:
            raise ld.error("integer_cst takes either a value or :high/:low")
        high = ld.parse_int(keywords.pop("high", 0))
        low = ld.parse_int(keywords.pop("low", 0))
        try:
            return build_int_cst_wide(high, low, location)
        except ValueError as e:
            raise ld.error(str(e)) from None
    if len(positional) != 1:
        raise ld.error("integer_cst takes exactly one value")
    try:
        return build_int_cst(ld.parse_int(positional[0]), location)
    except ValueError as e:
        raise ld.error(str(e)) from None


@_register(TreeCode.STATEMENT_LIST)
def _load_statement_list(ld, code, positional, keywords, location):
    statements = []
    for p in positional:
        stmt = ld.parse_node(p)
        if stmt is None:
            raise ld.error("statement_list cannot hold an absent statement")
        statements.append(stmt)
    return build_stmt_list(statements, location)


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def load_tree(text: str, filename: str = "<string>") -> Tuple[TreeNode, ...]:
    """Load every top-level tree form in ``text``.

    Parameters
    ----------
    text:
        S-expression source, any number of top-level forms.
    filename:
        Used for error messages and as the file of ``"line:col"``
        locations.

    Raises
    ------
    TreeLoadError
        If the text is not valid S-expression syntax or a form does not
        describe a valid tree.

    Example
    -------
    >>> (fn,) = load_tree('(function_decl f (bind_expr _ (statement_list)))')
    >>> fn.code.code_name
    'function_decl'
    """
    # keep "t" and "nil" as plain symbols
    try:
        raw = sexpdata.loads(f"({text}\n)", nil=None, true=None, false=None)
    except Exception as e:
        raise TreeLoadError(
            f"S-expression syntax error: {e}", SourceLocation(file=filename)
        ) from None

    ld = _Loader(filename)
    nodes = []
    for form in raw:
        node = ld.parse_node(form)
        if node is None:
            raise ld.error("absent operand marker at top level")
        nodes.append(node)
    logger.debug("Loaded %d tree(s) from %s", len(nodes), filename)
    return tuple(nodes)


def load_tree_file(path: str) -> Tuple[TreeNode, ...]:
    """Read and load a tree file."""
    p = pathlib.Path(path)
    text = p.read_text(encoding="utf-8")
    return load_tree(text, filename=str(p))


__all__ = [
    "TreeLoadError",
    "load_tree",
    "load_tree_file",
]
