# tests/test_main.py
"""
End-to-end tests for the command line: tree file in, dump / diagnostics out.
"""

import json

import pytest

from gcc_tree_shims import __version__, checkers
from gcc_tree_shims.checkers import NULL_DEREF_MESSAGE
from gcc_tree_shims.main import EXIT_INFRA, EXIT_OK, main
from gcc_tree_shims.tree import TreeCheckError, TreeCode
from tests.conftest import NULL_DEREF_RENDERED, NULL_DEREF_TREE, TWO_FUNCTIONS_TREE


@pytest.fixture
def tree_file(tmp_path):
    path = tmp_path / "unit.tree"
    path.write_text(TWO_FUNCTIONS_TREE, encoding="utf-8")
    return path


class TestTopLevel:

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_list_checkers(self, capsys):
        assert main(["--list-checkers"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "null-check-deref" in out
        assert "nullPointerSubcondition" in out

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA


class TestDump:

    def test_text(self, tmp_path, capsys):
        path = tmp_path / "one.tree"
        path.write_text(NULL_DEREF_TREE, encoding="utf-8")
        assert main(["dump", str(path)]) == EXIT_OK
        assert capsys.readouterr().out.splitlines() == [
            "dump-tree",
            "dump-tree:pre_generic",
            "function_decl f",
        ] + NULL_DEREF_RENDERED

    def test_two_functions(self, tree_file, capsys):
        assert main(["dump", str(tree_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.count("dump-tree:pre_generic") == 2
        assert "function_decl g" in out

    def test_dot_to_file(self, tree_file, tmp_path):
        dest = tmp_path / "out" / "unit.dot"
        assert main(["dump", str(tree_file), "--format", "dot", "-o", str(dest)]) == EXIT_OK
        text = dest.read_text(encoding="utf-8")
        assert text.count("digraph Tree {") == 2
        assert 'label="f";' in text

    def test_non_function_forms_rendered(self, tmp_path, capsys):
        path = tmp_path / "expr.tree"
        path.write_text("(indirect_ref (var_decl v))", encoding="utf-8")
        assert main(["dump", str(path), "--indent-unit", "-"]) == EXIT_OK
        assert capsys.readouterr().out.splitlines() == ["dump-tree", "indirect_ref", "-var_decl : v"]

    def test_missing_file(self, tmp_path):
        assert main(["dump", str(tmp_path / "absent.tree")]) == EXIT_INFRA

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.tree"
        path.write_text("(no_such_code)", encoding="utf-8")
        assert main(["dump", str(path)]) == EXIT_INFRA


class TestCheck:

    def test_gcc_output(self, tree_file, capsys):
        assert main(["check", str(tree_file)]) == EXIT_OK
        lines = capsys.readouterr().out.splitlines()
        assert lines == [f"t.c:3:20: warning: {NULL_DEREF_MESSAGE} [nullPointerSubcondition]"]

    def test_json_output(self, tree_file, capsys):
        assert main(["check", str(tree_file), "--output", "json"]) == EXIT_OK
        (line,) = capsys.readouterr().out.splitlines()
        data = json.loads(line)
        assert data["errorId"] == "nullPointerSubcondition"
        assert data["function"] == "f"
        assert data["cwe"] == 476
        assert data["confidence"] == "low"
        assert data["evidence"] == {"pointer": "p"}

    def test_summary_output(self, tree_file, capsys):
        assert main(["check", str(tree_file), "--output", "summary"]) == EXIT_OK
        assert "1 diagnostic(s) in 2 function(s)" in capsys.readouterr().out

    def test_suppress(self, tree_file, capsys):
        assert main(["check", str(tree_file), "--suppress", "nullPointerSubcondition"]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_unknown_checker_selected(self, tree_file, capsys):
        assert main(["check", str(tree_file), "--checkers", "nope"]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_output_file(self, tree_file, tmp_path):
        dest = tmp_path / "diags.txt"
        assert main(["check", str(tree_file), "-o", str(dest)]) == EXIT_OK
        assert "nullPointerSubcondition" in dest.read_text(encoding="utf-8")

    def test_tree_check_failure(self, tree_file, capsys, monkeypatch):
        def fail(node):
            raise TreeCheckError("test_accessor", [TreeCode.INTEGER_CST], node.code)

        monkeypatch.setattr(checkers, "match_null_check_deref", fail)
        assert main(["check", str(tree_file)]) == EXIT_INFRA
        assert "nullpointer:tree_check_failed" in capsys.readouterr().out
