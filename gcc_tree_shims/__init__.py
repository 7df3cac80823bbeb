"""
gcc_tree_shims — Function-Body Tree Analysis for GCC-style Plugins
==================================================================

This package walks the tree a C front end hands to a plugin at the
pre-genericize stage, prints it, and looks for suspicious shapes in it.

Core modules
------------
tree
    Tree codes, nodes, builders and the host's safe/strict accessors.
path
    Path resolver: follow operand selectors, test kinds and values.
traversal
    Pre-order walk with per-mode skip sets (render / detect).
render
    Indented text dumps and Graphviz DOT export.
checkers
    Null-check-then-dereference matcher plus the checker framework
    (diagnostics, suppressions, registry, runner).
loader
    S-expression tree files → trees.
plugin
    Per-function entry callback, callback registry and the two plugins.

Quick start
-----------
>>> from gcc_tree_shims import load_tree, CheckerRunner
>>> (fn,) = load_tree(open("unit.tree").read(), "unit.tree")
>>> print(CheckerRunner().run(fn).to_gcc_format())

Package layout
--------------
::

    gcc_tree_shims/
    ├── __init__.py      ← you are here
    ├── __main__.py
    ├── tree.py
    ├── path.py
    ├── traversal.py
    ├── render.py
    ├── checkers.py
    ├── loader.py
    ├── plugin.py
    └── main.py
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, Dict, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__license__ = "MIT"
__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal registry: module_name → names re-exported at package level
# ---------------------------------------------------------------------------

_CORE_MODULES: Dict[str, List[str]] = {
    "tree": [
        "TreeCode",
        "TreeCodeClass",
        "TreeNode",
        "Identifier",
        "IdentifierTable",
        "SourceLocation",
        "TreeCheckError",
        "build",
        "build_decl",
        "build_fn_decl",
        "build_int_cst",
        "build_stmt_list",
        "function_body",
    ],
    "path": [
        "OP0",
        "OP1",
        "resolve_path",
        "is_tree_code",
        "is_declaration",
        "is_value_at",
    ],
    "traversal": [
        "RENDER_SKIP_CODES",
        "DETECT_SKIP_CODES",
        "TraversalMode",
        "walk_tree",
        "parse_tree",
    ],
    "render": [
        "format_tree_node",
        "TreeRenderer",
        "render_tree",
        "tree_to_dot",
    ],
    "checkers": [
        "NULL_DEREF_MESSAGE",
        "match_null_check_deref",
        "check_tree_node",
        "Diagnostic",
        "CollectingSink",
        "StreamSink",
        "SuppressionManager",
        "CheckerRunner",
    ],
    "loader": [
        "TreeLoadError",
        "load_tree",
        "load_tree_file",
    ],
    "plugin": [
        "on_function_body",
        "PluginEvent",
        "PluginInfo",
        "CallbackRegistry",
        "compile_unit",
        "plugin_init",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"gcc_tree_shims: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(
                f"gcc_tree_shims.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, obj)
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names

_log.debug("gcc_tree_shims %s loaded", __version__)


def list_submodules() -> List[str]:
    """Return the names of the re-exported submodules."""
    return sorted(_CORE_MODULES)


__all__ += ["list_submodules", "__version__"]

# ---------------------------------------------------------------------------
# TYPE_CHECKING block: static names for IDEs and type checkers
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from gcc_tree_shims.checkers import (  # noqa: F401
        NULL_DEREF_MESSAGE,
        CheckerRunner,
        CollectingSink,
        Diagnostic,
        StreamSink,
        SuppressionManager,
        check_tree_node,
        match_null_check_deref,
    )
    from gcc_tree_shims.loader import TreeLoadError, load_tree, load_tree_file  # noqa: F401
    from gcc_tree_shims.path import (  # noqa: F401
        OP0,
        OP1,
        is_declaration,
        is_tree_code,
        is_value_at,
        resolve_path,
    )
    from gcc_tree_shims.plugin import (  # noqa: F401
        CallbackRegistry,
        PluginEvent,
        PluginInfo,
        compile_unit,
        on_function_body,
        plugin_init,
    )
    from gcc_tree_shims.render import (  # noqa: F401
        TreeRenderer,
        format_tree_node,
        render_tree,
        tree_to_dot,
    )
    from gcc_tree_shims.traversal import (  # noqa: F401
        DETECT_SKIP_CODES,
        RENDER_SKIP_CODES,
        TraversalMode,
        parse_tree,
        walk_tree,
    )
    from gcc_tree_shims.tree import (  # noqa: F401
        Identifier,
        IdentifierTable,
        SourceLocation,
        TreeCheckError,
        TreeCode,
        TreeCodeClass,
        TreeNode,
        build,
        build_decl,
        build_fn_decl,
        build_int_cst,
        build_stmt_list,
        function_body,
    )
