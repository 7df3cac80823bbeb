# tests/test_render.py
"""
Tests for text and DOT rendering of trees.
"""

import io

from gcc_tree_shims.render import (
    RenderOptions,
    TreeRenderer,
    format_tree_node,
    render_lines,
    render_tree,
    tree_to_dot,
)
from gcc_tree_shims.traversal import parse_tree
from gcc_tree_shims.tree import (
    TreeCode,
    build,
    build_decl,
    build_int_cst,
    build_int_cst_wide,
    function_body,
)
from tests.conftest import NULL_DEREF_RENDERED, decl, function, guarded_return


class TestFormatTreeNode:

    def test_named_declaration(self, ids):
        assert format_tree_node(decl(ids, "p")) == "parm_decl : p"
        assert format_tree_node(decl(ids, "x", TreeCode.VAR_DECL)) == "var_decl : x"

    def test_unnamed_declaration(self):
        assert format_tree_node(build_decl(TreeCode.LABEL_DECL, None)) == "label_decl : <unnamed>"

    def test_field_decl_prints_code_only(self, ids):
        assert format_tree_node(decl(ids, "a", TreeCode.FIELD_DECL)) == "field_decl"

    def test_unnamed_type_decl_prints_code_only(self):
        assert format_tree_node(build_decl(TreeCode.TYPE_DECL, None)) == "type_decl"

    def test_named_const_decl_prints_code_only(self, ids):
        assert format_tree_node(decl(ids, "N", TreeCode.CONST_DECL)) == "const_decl"

    def test_small_integer(self):
        assert format_tree_node(build_int_cst(42)) == "integer_cst : 42"

    def test_wide_integer(self):
        node = build_int_cst_wide(0x1, 0xAB)
        assert format_tree_node(node) == "integer_cst : high=0x1 low=0xAB"

    def test_other_code(self):
        assert format_tree_node(build(TreeCode.TRUTH_NOT_EXPR)) == "truth_not_expr"


class TestTreeRenderer:

    def test_indentation_by_depth(self, ids):
        out = io.StringIO()
        renderer = TreeRenderer(out)
        parse_tree(build(TreeCode.NE_EXPR, decl(ids, "p"), build_int_cst(0)), renderer, depth=1)
        assert out.getvalue() == "  ne_expr\n    parm_decl : p\n    integer_cst : 0\n"
        assert renderer.lines_written == 3

    def test_custom_indent_unit(self, ids):
        out = io.StringIO()
        parse_tree(build(TreeCode.INDIRECT_REF, decl(ids, "p")), TreeRenderer(out, "\t"))
        assert out.getvalue() == "indirect_ref\n\tparm_decl : p\n"


class TestRenderTree:

    def test_function_body(self, ids):
        cond, _ = guarded_return(ids)
        body = function_body(function(ids, "f", [cond]))
        assert render_lines(body, RenderOptions(base_depth=1)) == NULL_DEREF_RENDERED

    def test_render_tree_writes_stream(self, ids):
        out = io.StringIO()
        count = render_tree(decl(ids, "p"), out)
        assert count == 1
        assert out.getvalue() == "parm_decl : p\n"

    def test_deterministic(self, ids):
        cond, _ = guarded_return(ids)
        assert render_lines(cond) == render_lines(cond)


class TestTreeToDot:

    def test_structure(self, ids):
        dot = tree_to_dot(build(TreeCode.NE_EXPR, decl(ids, "p"), build_int_cst(0)), title="f")
        assert dot.startswith("digraph Tree {")
        assert dot.endswith("}")
        assert 'label="f";' in dot
        assert '"n0" [label="ne_expr"];' in dot
        assert '"n0" -> "n1";' in dot
        assert '"n0" -> "n2";' in dot

    def test_sibling_parent_tracking(self, ids):
        cond, _ = guarded_return(ids)
        dot = tree_to_dot(cond)
        # cond_expr (n0) is the parent of return_expr, the last node visited
        last = len(render_lines(cond)) - 1
        assert f'"n0" -> "n{last}";' in dot

    def test_empty(self):
        assert tree_to_dot(None) == "\n".join([
            "digraph Tree {",
            "  rankdir=TB;",
            '  node [shape=box, fontname="Helvetica", fontsize=10];',
            "}",
        ])

    def test_deterministic(self, ids):
        cond, _ = guarded_return(ids)
        assert tree_to_dot(cond) == tree_to_dot(cond)
