# tests/test_loader.py
"""
Tests for the S-expression tree loader.
"""

import pytest

from gcc_tree_shims.loader import TreeLoadError, load_tree, load_tree_file
from gcc_tree_shims.path import OP0, OP1, resolve_path
from gcc_tree_shims.render import RenderOptions, render_lines
from gcc_tree_shims.tree import (
    SourceLocation,
    TreeCode,
    decl_name,
    function_body,
    identifier_pointer,
    int_cst_to_int,
    int_cst_value,
    statement_sequence,
)
from tests.conftest import NULL_DEREF_RENDERED, NULL_DEREF_TREE, TWO_FUNCTIONS_TREE


class TestLoadFunctions:

    def test_single_function(self):
        (fn,) = load_tree(NULL_DEREF_TREE, "t.c")
        assert fn.code is TreeCode.FUNCTION_DECL
        assert identifier_pointer(decl_name(fn)) == "f"
        assert fn.location == SourceLocation("t.c", 1, 6)
        assert fn.saved_tree.code is TreeCode.BIND_EXPR

    def test_renders_like_built_tree(self):
        (fn,) = load_tree(NULL_DEREF_TREE)
        assert render_lines(function_body(fn), RenderOptions(base_depth=1)) == NULL_DEREF_RENDERED

    def test_multiple_forms(self):
        fns = load_tree(TWO_FUNCTIONS_TREE)
        assert [identifier_pointer(decl_name(f)) for f in fns] == ["f", "g"]

    def test_empty_text(self):
        assert load_tree("") == ()
        assert load_tree("; only a comment") == ()

    def test_identifiers_interned(self):
        (fn,) = load_tree(NULL_DEREF_TREE)
        orif = resolve_path(statement_sequence(function_body(fn))[0], (OP0,))
        checked = resolve_path(orif, (OP0, OP0))
        dereferenced = resolve_path(orif, (OP1, OP0, OP0, OP0))
        assert checked is not dereferenced
        assert decl_name(checked) is decl_name(dereferenced)

    def test_function_without_body(self):
        (fn,) = load_tree("(function_decl f)")
        assert fn.saved_tree is None
        assert function_body(fn) is None


class TestLoadAtoms:

    def test_absent_operand(self):
        (node,) = load_tree("(bind_expr _ (statement_list))")
        assert node.operands[0] is None
        assert node.operands[1].code is TreeCode.STATEMENT_LIST
        assert node.operands[2] is None

    def test_unnamed_declaration(self):
        (node,) = load_tree("(var_decl)")
        assert decl_name(node) is None
        (node,) = load_tree("(var_decl _)")
        assert decl_name(node) is None

    def test_symbols_t_and_nil_are_names(self):
        first, second = load_tree("(var_decl t) (var_decl nil)")
        assert identifier_pointer(decl_name(first)) == "t"
        assert identifier_pointer(decl_name(second)) == "nil"

    def test_integer_value(self):
        (node,) = load_tree("(integer_cst -1)")
        assert int_cst_to_int(node) == -1

    def test_integer_words(self):
        (node,) = load_tree("(integer_cst :high 1 :low 0xAB)")
        assert int_cst_value(node) == (1, 0xAB)

    def test_location_forms(self):
        a, b, c = load_tree(
            '(return_expr :loc "x.c:4:2") (return_expr :loc "5:7") (return_expr :loc "y.c:9")',
            "default.c",
        )
        assert a.location == SourceLocation("x.c", 4, 2)
        assert b.location == SourceLocation("default.c", 5, 7)
        assert c.location == SourceLocation("y.c", 9, 0)

    def test_unlisted_code_takes_generic_form(self):
        (node,) = load_tree("(loop_expr (statement_list))")
        assert node.operands[0].code is TreeCode.STATEMENT_LIST


class TestLoadErrors:

    def test_unknown_code(self):
        with pytest.raises(TreeLoadError, match="unknown tree code 'frobnicate_expr'"):
            load_tree("(frobnicate_expr)")

    def test_too_many_operands(self):
        with pytest.raises(TreeLoadError, match="indirect_ref takes 1 operand"):
            load_tree("(indirect_ref _ _)")

    def test_syntax_error(self):
        with pytest.raises(TreeLoadError, match="syntax error"):
            load_tree("(return_expr", "bad.tree")

    def test_error_carries_nearest_location(self):
        with pytest.raises(TreeLoadError) as exc_info:
            load_tree('(statement_list :loc "t.c:2:1" (nonsense_expr))', "t.c")
        assert exc_info.value.loc == SourceLocation("t.c", 2, 1)
        assert str(exc_info.value).startswith("t.c:2:1: ")

    def test_error_defaults_to_file(self):
        with pytest.raises(TreeLoadError) as exc_info:
            load_tree("(nonsense_expr)", "unit.tree")
        assert exc_info.value.loc.file == "unit.tree"

    def test_bad_location(self):
        with pytest.raises(TreeLoadError, match="malformed location"):
            load_tree('(return_expr :loc "here")')

    def test_keyword_without_value(self):
        with pytest.raises(TreeLoadError, match="has no value"):
            load_tree("(return_expr :loc)")

    def test_unsupported_keyword(self):
        with pytest.raises(TreeLoadError, match="does not accept :high"):
            load_tree("(return_expr :high 1)")

    def test_integer_needs_value(self):
        with pytest.raises(TreeLoadError):
            load_tree("(integer_cst)")

    def test_integer_word_range(self):
        with pytest.raises(TreeLoadError):
            load_tree("(integer_cst :high -1 :low 0)")

    def test_absent_statement(self):
        with pytest.raises(TreeLoadError):
            load_tree("(statement_list _)")

    def test_bare_atom(self):
        with pytest.raises(TreeLoadError, match="expected tree form"):
            load_tree("(indirect_ref 5)")

    def test_top_level_absent(self):
        with pytest.raises(TreeLoadError):
            load_tree("_")


class TestLoadFile:

    def test_reads_file(self, tmp_path):
        path = tmp_path / "unit.tree"
        path.write_text(NULL_DEREF_TREE, encoding="utf-8")
        (fn,) = load_tree_file(str(path))
        assert identifier_pointer(decl_name(fn)) == "f"

    def test_line_col_location_uses_path(self, tmp_path):
        path = tmp_path / "unit.tree"
        path.write_text('(return_expr :loc "2:3")', encoding="utf-8")
        (node,) = load_tree_file(str(path))
        assert node.location == SourceLocation(str(path), 2, 3)
