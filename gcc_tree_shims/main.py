#!/usr/bin/env python3
"""gcc_tree_shims/main.py — CLI entry-point.

Usage examples
--------------
    # Print every function body in a tree file
    gcc-tree-shims dump unit.tree

    # Same walk as a Graphviz graph
    gcc-tree-shims dump unit.tree --format dot -o unit.dot

    # Run the checkers, GCC-style output
    gcc-tree-shims check unit.tree

    # Machine-readable output, one JSON object per line
    gcc-tree-shims check unit.tree --output json

    # List available checkers
    gcc-tree-shims --list-checkers

Exit codes
----------
    0   Success.
    1   One or more diagnostics with severity ERROR were emitted.
    2   Infrastructure failure (bad file, malformed tree, tree check failure).

The module doubles as ``python -m gcc_tree_shims`` via the companion
``gcc_tree_shims/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple

from gcc_tree_shims import __version__
from gcc_tree_shims.checkers import (
    CheckerRunner,
    CollectingSink,
    SuppressionManager,
    default_registry,
)
from gcc_tree_shims.loader import TreeLoadError, load_tree_file
from gcc_tree_shims.plugin import (
    CallbackRegistry,
    DumpTreePlugin,
    NullPointerPlugin,
    PluginInfo,
    compile_unit,
    plugin_init,
)
from gcc_tree_shims.render import RenderOptions, render_tree, tree_to_dot
from gcc_tree_shims.tree import (
    TreeCheckError,
    TreeCode,
    TreeNode,
    decl_name,
    function_body,
    identifier_pointer,
)

_log = logging.getLogger("gcc_tree_shims")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the package logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("gcc_tree_shims")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        root.addHandler(handler)


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _load(raw: str) -> Optional[Tuple[TreeNode, ...]]:
    """Load a tree file, logging and returning None on failure."""
    path = _resolve_path(raw, "tree file")
    try:
        return load_tree_file(str(path))
    except TreeLoadError as exc:
        _log.error("Cannot load %s: %s", path, exc)
        return None


def _split_functions(nodes: Sequence[TreeNode]) -> Tuple[List[TreeNode], List[TreeNode]]:
    functions = [n for n in nodes if n.code is TreeCode.FUNCTION_DECL]
    others = [n for n in nodes if n.code is not TreeCode.FUNCTION_DECL]
    return functions, others


def _tree_check_failed(plugin_name: str, exc: TreeCheckError) -> int:
    sys.stdout.write(f"{plugin_name}:tree_check_failed\n")
    _log.error("%s", exc)
    return EXIT_INFRA


# ===========================================================================
# Sub-commands
# ===========================================================================

def cmd_dump(args: argparse.Namespace) -> int:
    """Print function bodies as indented text or DOT."""
    nodes = _load(args.tree_file)
    if nodes is None:
        return EXIT_INFRA
    functions, others = _split_functions(nodes)

    out = _open_output(args.output)
    try:
        if args.format == "dot":
            for fndecl in functions:
                title = identifier_pointer(decl_name(fndecl))
                out.write(tree_to_dot(function_body(fndecl), title=title) + "\n")
            for node in others:
                out.write(tree_to_dot(node) + "\n")
        else:
            registry = CallbackRegistry()
            info = PluginInfo(DumpTreePlugin.name, {"indent-unit": args.indent_unit})
            plugin_init(info, registry, stream=out)
            compile_unit(functions, registry)
            options = RenderOptions(indent_unit=args.indent_unit)
            for node in others:
                render_tree(node, out, options)
    except TreeCheckError as exc:
        return _tree_check_failed(DumpTreePlugin.name, exc)
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Run the checkers over every function in a tree file."""
    nodes = _load(args.tree_file)
    if nodes is None:
        return EXIT_INFRA
    functions, others = _split_functions(nodes)
    for node in others:
        _log.warning("Skipping top-level %s: not a function_decl", node.code.code_name)

    suppressions = SuppressionManager()
    for error_id in args.suppress or ():
        suppressions.add(error_id)

    registry = CallbackRegistry()
    info = PluginInfo(NullPointerPlugin.name)
    if args.checkers:
        info = PluginInfo(NullPointerPlugin.name, {"checkers": ",".join(args.checkers)})
    plugin = plugin_init(
        info,
        registry,
        sink=CollectingSink(),
        runner=CheckerRunner(suppressions=suppressions),
    )
    try:
        compile_unit(functions, registry)
    except TreeCheckError as exc:
        return _tree_check_failed(NullPointerPlugin.name, exc)

    results = plugin.results
    out = _open_output(args.output_file)
    try:
        if args.output == "json":
            if results.diagnostics:
                out.write(results.to_json_lines() + "\n")
        elif args.output == "summary":
            out.write(results.summary() + "\n")
        elif results.diagnostics:
            out.write(results.to_gcc_format() + "\n")
    finally:
        if out is not sys.stdout:
            out.close()

    return EXIT_ERROR if results.error_count > 0 else EXIT_OK


def _list_checkers(stream: TextIO) -> int:
    registry = default_registry()
    for name in registry.names:
        cls = registry.get_by_name(name)
        ids = ", ".join(sorted(cls.error_ids))
        stream.write(f"{name:<20} {cls.description} [{ids}]\n")
    return EXIT_OK


# ===========================================================================
# Parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="gcc-tree-shims",
        description=(
            "Dump and check GCC-style function body trees.\n\n"
            "Input files hold S-expression tree forms, one\n"
            "(function_decl ...) per function."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              gcc-tree-shims dump  unit.tree
              gcc-tree-shims dump  unit.tree --format dot -o unit.dot
              gcc-tree-shims check unit.tree --output json
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "--list-checkers",
        action="store_true",
        help="List available checkers and exit.",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # --- dump ---------------------------------------------------------------
    p_dump = subparsers.add_parser("dump", help="Print function bodies.")
    p_dump.add_argument("tree_file", help="Path to the tree file.")
    p_dump.add_argument(
        "--format",
        choices=("text", "dot"),
        default="text",
        help="Output format (default: text).",
    )
    p_dump.add_argument(
        "--indent-unit",
        default="  ",
        metavar="S",
        help="String repeated once per depth level (default: two spaces).",
    )
    p_dump.add_argument(
        "-o", "--output",
        default=None,
        help="Write output to this file instead of stdout.",
    )
    p_dump.set_defaults(func=cmd_dump)

    # --- check --------------------------------------------------------------
    p_check = subparsers.add_parser("check", help="Run checkers on a tree file.")
    p_check.add_argument("tree_file", help="Path to the tree file.")
    p_check.add_argument(
        "--output",
        choices=("gcc", "json", "summary"),
        default="gcc",
        help="Diagnostic output format (default: gcc).",
    )
    p_check.add_argument(
        "-o", "--output-file",
        default=None,
        help="Write diagnostics to this file instead of stdout.",
    )
    p_check.add_argument(
        "--suppress",
        nargs="+",
        metavar="ID",
        help="Error ids to suppress globally.",
    )
    p_check.add_argument(
        "--checkers",
        nargs="+",
        metavar="NAME",
        help="Run only these checkers (default: all).",
    )
    p_check.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if args.list_checkers:
        return _list_checkers(sys.stdout)

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
