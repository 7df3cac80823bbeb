"""
gcc_tree_shims/plugin.py
════════════════════════

Host-facing side of the package: the per-function entry point and a small
stand-in for the compiler's plugin callback machinery.

Lifecycle
─────────

    plugin_init(info, registry)          ← once, when the plugin loads
        └─ registry.register_callback(PRE_GENERICIZE, ...)

    compile_unit(functions, registry)    ← once per translation unit
        ├─ invoke(PRE_GENERICIZE, fndecl)   for each function body
        │      └─ on_function_body(fndecl, callback)
        └─ invoke(FINISH_UNIT, None)

Two plugins are provided:

  dump-tree     print every function body, one node per line
  nullpointer   report ``p != 0 || p->a`` conditions

License: MIT
"""

from __future__ import annotations

import logging
import sys
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, TextIO, Tuple

from gcc_tree_shims.checkers import (
    CheckerRunner,
    CheckerRunResults,
    DiagnosticSink,
    StreamSink,
)
from gcc_tree_shims.render import TreeRenderer
from gcc_tree_shims.traversal import RENDER_SKIP_CODES, TreeCallback, parse_tree
from gcc_tree_shims.tree import (
    TreeCode,
    TreeNode,
    decl_name,
    function_body,
    identifier_pointer,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1: ENTRY CALLBACK
# ═══════════════════════════════════════════════════════════════════════════

def on_function_body(
    fndecl: Optional[TreeNode],
    callback: TreeCallback,
    skip_codes: FrozenSet[TreeCode] = RENDER_SKIP_CODES,
    depth: int = 0,
) -> int:
    """
    Walk the body of ``fndecl`` with ``callback``.

    Only a ``function_decl`` whose saved tree is a ``bind_expr`` has a body
    to walk; for anything else this is a no-op returning 0.

    Returns:
        Number of nodes visited
    """
    body = function_body(fndecl)
    if body is None:
        logger.debug("No bind_expr body for %r, skipping", fndecl)
        return 0
    return parse_tree(body, callback, depth=depth, skip_codes=skip_codes)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2: CALLBACK REGISTRY
# ═══════════════════════════════════════════════════════════════════════════

class PluginEvent(Enum):
    """Compiler events a plugin can hook."""
    PRE_GENERICIZE = "pre_genericize"
    FINISH_UNIT = "finish_unit"


#: ``callback(gcc_data, user_data)``
PluginCallback = Callable[[Any, Any], None]


@dataclass(frozen=True)
class PluginInfo:
    """Name the plugin was loaded under plus its ``-fplugin-arg`` pairs."""
    base_name: str
    args: Dict[str, str] = field(default_factory=dict)

    def get_arg(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.args.get(key, default)


class CallbackRegistry:
    """Event → callbacks table; callbacks fire in registration order."""

    def __init__(self) -> None:
        self._callbacks: Dict[PluginEvent, List[Tuple[str, PluginCallback, Any]]] = defaultdict(list)

    def register_callback(
        self,
        plugin_name: str,
        event: PluginEvent,
        callback: PluginCallback,
        user_data: Any = None,
    ) -> None:
        self._callbacks[event].append((plugin_name, callback, user_data))
        logger.debug("%s registered for %s", plugin_name, event.value)

    def invoke(self, event: PluginEvent, gcc_data: Any = None) -> int:
        """Fire every callback registered for ``event``; returns how many ran."""
        entries = list(self._callbacks.get(event, ()))
        for _plugin_name, callback, user_data in entries:
            callback(gcc_data, user_data)
        return len(entries)

    def callbacks_for(self, event: PluginEvent) -> List[str]:
        """Names of the plugins hooked on ``event``."""
        return [name for name, _, _ in self._callbacks.get(event, ())]


def compile_unit(functions: Iterable[TreeNode], registry: CallbackRegistry) -> int:
    """
    Drive ``registry`` over a translation unit.

    Fires PRE_GENERICIZE once per function, then FINISH_UNIT once.
    Returns the number of functions processed.
    """
    count = 0
    for fndecl in functions:
        registry.invoke(PluginEvent.PRE_GENERICIZE, fndecl)
        count += 1
    registry.invoke(PluginEvent.FINISH_UNIT, None)
    return count


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3: PLUGINS
# ═══════════════════════════════════════════════════════════════════════════

class DumpTreePlugin:
    """
    Prints each function body as it reaches the pre-genericize stage::

        dump-tree:pre_generic
        function_decl main
          statement_list
            ...

    Recognised arguments: ``indent-unit`` (default two spaces).
    """

    name = "dump-tree"

    def __init__(self, info: PluginInfo, stream: Optional[TextIO] = None) -> None:
        self.info = info
        self.stream = stream if stream is not None else sys.stdout
        self.indent_unit = info.get_arg("indent-unit", "  ")
        self.functions_dumped = 0

    def install(self, registry: CallbackRegistry) -> None:
        self.stream.write(f"{self.name}\n")
        registry.register_callback(self.info.base_name, PluginEvent.PRE_GENERICIZE, self.pre_genericize)

    def pre_genericize(self, fndecl: TreeNode, user_data: Any = None) -> None:
        self.stream.write(f"{self.name}:pre_generic\n")
        fn_name = identifier_pointer(decl_name(fndecl))
        self.stream.write(f"function_decl {fn_name}\n")
        renderer = TreeRenderer(self.stream, self.indent_unit)
        on_function_body(fndecl, renderer, RENDER_SKIP_CODES, depth=1)
        self.functions_dumped += 1


class NullPointerPlugin:
    """
    Runs the checker suite on every function body and forwards each
    reported diagnostic to ``sink`` as ``(location, message)``.

    Recognised arguments: ``checkers`` (comma-separated names).
    """

    name = "nullpointer"

    def __init__(
        self,
        info: PluginInfo,
        sink: Optional[DiagnosticSink] = None,
        runner: Optional[CheckerRunner] = None,
    ) -> None:
        self.info = info
        self.sink = sink if sink is not None else StreamSink()
        self.runner = runner or CheckerRunner()
        selected = info.get_arg("checkers")
        self.checkers = [c for c in selected.split(",") if c] if selected else None
        self.results = CheckerRunResults()

    def install(self, registry: CallbackRegistry) -> None:
        registry.register_callback(self.info.base_name, PluginEvent.PRE_GENERICIZE, self.pre_genericize)
        registry.register_callback(self.info.base_name, PluginEvent.FINISH_UNIT, self.finish_unit)

    def pre_genericize(self, fndecl: TreeNode, user_data: Any = None) -> None:
        results = self.runner.run(fndecl, checkers=self.checkers)
        for diag in results.diagnostics:
            self.sink.report(diag.location, diag.message)
        self.results.merge(results)

    def finish_unit(self, gcc_data: Any = None, user_data: Any = None) -> None:
        logger.info(self.results.summary())


_PLUGINS = {
    DumpTreePlugin.name: DumpTreePlugin,
    NullPointerPlugin.name: NullPointerPlugin,
}


def available_plugins() -> List[str]:
    return sorted(_PLUGINS)


def plugin_init(info: PluginInfo, registry: CallbackRegistry, **kwargs: Any):
    """
    Instantiate the plugin named ``info.base_name`` and hook it into
    ``registry``. Extra keyword arguments go to the plugin constructor.

    Raises:
        ValueError: if no plugin has that name
    """
    plugin_cls = _PLUGINS.get(info.base_name)
    if plugin_cls is None:
        raise ValueError(
            f"unknown plugin '{info.base_name}' "
            f"(available: {', '.join(available_plugins())})"
        )
    plugin = plugin_cls(info, **kwargs)
    plugin.install(registry)
    return plugin


__all__ = [
    "on_function_body",
    "PluginEvent",
    "PluginCallback",
    "PluginInfo",
    "CallbackRegistry",
    "compile_unit",
    "DumpTreePlugin",
    "NullPointerPlugin",
    "available_plugins",
    "plugin_init",
]
