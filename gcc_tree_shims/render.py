"""
gcc_tree_shims.render
=====================

Human-readable dumps of host trees.

One line per visited node, indented by traversal depth::

    statement_list
      cond_expr
        truth_orif_expr
          ne_expr
            parm_decl : p
            integer_cst : 0
    ...

Formatting rules
----------------
* function, var, parm, label and result decls → ``<code> : <name>``
  (``<unnamed>`` without a DECL_NAME)
* integer_cst   → ``integer_cst : <low>`` or, when the high word is set,
  ``integer_cst : high=0x<HIGH> low=0x<LOW>``
* anything else → ``<code>``

:func:`tree_to_dot` emits the same walk as a Graphviz digraph.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, TextIO

from gcc_tree_shims.traversal import RENDER_SKIP_CODES, walk_tree
from gcc_tree_shims.tree import (
    TERMINAL_DECL_CODES,
    TreeCode,
    TreeCodeClass,
    TreeNode,
    decl_name,
    identifier_pointer,
    int_cst_value,
)


@dataclass(frozen=True)
class RenderOptions:
    """Layout knobs for text dumps."""
    indent_unit: str = "  "
    base_depth: int = 0


def format_tree_node(node: TreeNode) -> str:
    """Return the one-line description of ``node`` (without indentation)."""
    code = node.code
    if code in TERMINAL_DECL_CODES:
        return f"{code.code_name} : {identifier_pointer(decl_name(node))}"
    if code is TreeCode.INTEGER_CST:
        high, low = int_cst_value(node)
        if high:
            return f"{code.code_name} : high=0x{high:X} low=0x{low:X}"
        return f"{code.code_name} : {low}"
    return code.code_name


class TreeRenderer:
    """
    Traversal callback that writes one indented line per node.

    >>> renderer = TreeRenderer(sys.stdout)
    >>> parse_tree(body, renderer, depth=1)
    """

    def __init__(self, stream: Optional[TextIO] = None, indent_unit: str = "  ") -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.indent_unit = indent_unit
        self.lines_written = 0

    def __call__(self, node: TreeNode, depth: int) -> None:
        self.stream.write(self.indent_unit * depth + format_tree_node(node) + "\n")
        self.lines_written += 1


def render_lines(
    root: Optional[TreeNode],
    options: RenderOptions = RenderOptions(),
    skip_codes: FrozenSet[TreeCode] = RENDER_SKIP_CODES,
) -> List[str]:
    """Rendered lines of ``root`` (no trailing newlines)."""
    return [
        options.indent_unit * depth + format_tree_node(node)
        for node, depth in walk_tree(root, skip_codes, options.base_depth)
    ]


def render_tree(
    root: Optional[TreeNode],
    stream: Optional[TextIO] = None,
    options: RenderOptions = RenderOptions(),
) -> int:
    """Write the dump of ``root`` to ``stream``; returns the line count."""
    out = stream if stream is not None else sys.stdout
    lines = render_lines(root, options)
    for line in lines:
        out.write(line + "\n")
    return len(lines)


_DOT_CLASS_ATTRS = {
    TreeCodeClass.DECLARATION: 'style=filled, fillcolor="#ddeeff"',
    TreeCodeClass.CONSTANT: 'style=filled, fillcolor="#fff3cd", shape=ellipse',
    TreeCodeClass.EXCEPTIONAL: 'style=filled, fillcolor="#eeeeee"',
}


def tree_to_dot(
    root: Optional[TreeNode],
    title: Optional[str] = None,
    skip_codes: FrozenSet[TreeCode] = RENDER_SKIP_CODES,
) -> str:
    """Return a Graphviz DOT representation of the render-mode walk."""
    lines = ["digraph Tree {"]
    lines.append("  rankdir=TB;")
    if title:
        escaped_title = title.replace('"', '\\"')
        lines.append(f'  label="{escaped_title}";')
    lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')

    parents: List[str] = []
    edges: List[str] = []
    for index, (node, depth) in enumerate(walk_tree(root, skip_codes)):
        node_id = f"n{index}"
        # parents[d] holds the most recent node seen at depth d
        del parents[depth:]
        if parents:
            edges.append(f'  "{parents[-1]}" -> "{node_id}";')
        parents.append(node_id)

        attrs = _DOT_CLASS_ATTRS.get(node.code.code_class, "")
        label = format_tree_node(node).replace('"', '\\"')
        if attrs:
            lines.append(f'  "{node_id}" [label="{label}", {attrs}];')
        else:
            lines.append(f'  "{node_id}" [label="{label}"];')
    lines.extend(edges)
    lines.append("}")
    return "\n".join(lines)


__all__ = [
    "RenderOptions",
    "format_tree_node",
    "TreeRenderer",
    "render_lines",
    "render_tree",
    "tree_to_dot",
]
