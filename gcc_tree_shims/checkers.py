"""
gcc_tree_shims/checkers.py
══════════════════════════

Structural checks over a function body, and the diagnostics they produce.

Flow for one ``function_decl``
──────────────────────────────

    CheckerRunner.run(fndecl)
        │
        ├─ CheckerRegistry.select(names)        which checkers run
        │
        ├─ for each checker:
        │     collect_evidence(ctx)             detect-mode walk of the body
        │     diagnose(ctx)                     sites → Diagnostic objects
        │
        ├─ SuppressionManager                   drop suppressed findings
        │
        └─ CheckerRunResults                    gcc / JSON / summary output

Only one checker ships today, ``null-check-deref``; it flags
``p != 0 || p->a`` and reports at the member access.

License: MIT
"""

from __future__ import annotations

import json
import logging
import sys
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatch
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    TextIO,
    Tuple,
    Type,
)

from gcc_tree_shims.path import (
    OP0,
    OP1,
    is_declaration,
    is_tree_code,
    is_value_at,
    resolve_path,
)
from gcc_tree_shims.traversal import DETECT_SKIP_CODES, parse_tree
from gcc_tree_shims.tree import (
    SourceLocation,
    TreeCheckError,
    TreeCode,
    TreeNode,
    decl_name,
    expr_location,
    function_body,
    identifier_pointer,
    tree_operand,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_ID = "checkerInternalError"


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """Severity levels, spelled the way GCC prints them."""
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


class Confidence(Enum):
    """
    How far a finding can be trusted.

    HIGH: the tree alone proves the defect
    LOW:  a shape heuristic; the program may rule the path out
    """
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class Diagnostic:
    """
    One finding, anchored at a source location.

    Attributes
    ----------
    error_id     : stable identifier, e.g. ``"nullPointerSubcondition"``
    message      : text shown to the user
    severity     : DiagnosticSeverity
    location     : where the host should point
    confidence   : Confidence
    cwe          : CWE number, 0 when none applies
    checker_name : checker that produced it
    function     : enclosing function's name
    evidence     : extra facts for tooling (serialised in JSON output)
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.HIGH
    cwe: int = 0
    checker_name: str = ""
    function: str = ""
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_json_dict(self) -> Dict[str, Any]:
        """Flat dict in the cppcheck addon key style, plus our extras."""
        loc = self.location
        result: Dict[str, Any] = {
            "file": loc.file,
            "linenr": loc.line,
            "column": loc.column,
            "severity": self.severity.value,
            "confidence": self.confidence.value,
            "message": self.message,
            "errorId": self.error_id,
            "checker": self.checker_name,
            "function": self.function,
        }
        if self.cwe:
            result["cwe"] = self.cwe
        if self.evidence:
            result["evidence"] = dict(self.evidence)
        return result

    def to_json_str(self) -> str:
        return json.dumps(self.to_json_dict(), sort_keys=True)

    def to_gcc_format(self) -> str:
        """``file:line:col: severity: message [errorId]``"""
        return f"{self.location}: {self.severity.value}: {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: DIAGNOSTIC SINKS
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSink(Protocol):
    """Where the host wants ``warning_at``-style reports to go."""

    def report(self, location: SourceLocation, message: str) -> None:
        ...


class CollectingSink:
    """Keeps every report in memory, in arrival order."""

    def __init__(self) -> None:
        self.reports: List[Tuple[SourceLocation, str]] = []

    def report(self, location: SourceLocation, message: str) -> None:
        self.reports.append((location, message))

    def __len__(self) -> int:
        return len(self.reports)


class StreamSink:
    """Writes ``file:line:col: warning: message`` lines to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None, severity: str = "warning") -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.severity = severity

    def report(self, location: SourceLocation, message: str) -> None:
        self.stream.write(f"{location}: {self.severity}: {message}\n")


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: SUPPRESSIONS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Suppression:
    """
    One suppression rule.

    ``error_id`` may be ``"*"``. ``file`` is a path suffix or fnmatch
    pattern; ``line`` narrows it to one line. ``None`` means "any".
    """
    error_id: str = "*"
    file: Optional[str] = None
    line: Optional[int] = None

    def matches(self, diag: Diagnostic) -> bool:
        if self.error_id != "*" and self.error_id != diag.error_id:
            return False
        loc = diag.location
        if self.file is not None:
            if not (loc.file.endswith(self.file) or fnmatch(loc.file, self.file)):
                return False
        if self.line is not None and loc.line != self.line:
            return False
        return True


class SuppressionManager:
    """
    Ordered set of :class:`Suppression` rules.

    >>> sm = SuppressionManager()
    >>> sm.add("nullPointerSubcondition", file="legacy/*.c")
    >>> kept = sm.filter_diagnostics(diagnostics)
    """

    def __init__(self, rules: Iterable[Suppression] = ()) -> None:
        self._rules: List[Suppression] = list(rules)

    def add(self, error_id: str = "*", file: Optional[str] = None, line: Optional[int] = None) -> None:
        self._rules.append(Suppression(error_id, file, line))

    def is_suppressed(self, diag: Diagnostic) -> bool:
        return any(rule.matches(diag) for rule in self._rules)

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        return [d for d in diagnostics if not self.is_suppressed(d)]

    def __len__(self) -> int:
        return len(self._rules)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4: CHECKERS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerContext:
    """What a checker sees for one function."""
    fndecl: TreeNode
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def body(self) -> Optional[TreeNode]:
        return function_body(self.fndecl)

    @property
    def function_name(self) -> str:
        return identifier_pointer(decl_name(self.fndecl))


class Checker(ABC):
    """
    Base class: subclasses set the class attributes and implement
    ``collect_evidence`` (walk the body) and ``diagnose`` (emit findings).
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    confidence: ClassVar[Confidence] = Confidence.HIGH
    cwe: ClassVar[int] = 0

    def __init__(self) -> None:
        self.diagnostics: List[Diagnostic] = []

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        ...

    def _emit(
        self,
        ctx: CheckerContext,
        error_id: str,
        message: str,
        location: SourceLocation,
        **evidence: Any,
    ) -> None:
        self.diagnostics.append(Diagnostic(
            error_id=error_id,
            message=message,
            severity=self.severity,
            location=location,
            confidence=self.confidence,
            cwe=self.cwe,
            checker_name=self.name,
            function=ctx.function_name,
            evidence=evidence,
        ))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


class CheckerRegistry:
    """Checker classes by name, in registration order."""

    def __init__(self, checkers: Iterable[Type[Checker]] = ()) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}
        for cls in checkers:
            self.register(cls)

    def register(self, checker_cls: Type[Checker]) -> None:
        self._checkers[checker_cls.name] = checker_cls

    def get_by_name(self, name: str) -> Optional[Type[Checker]]:
        return self._checkers.get(name)

    def select(self, names: Optional[Sequence[str]] = None) -> List[Type[Checker]]:
        """All checkers, or the named ones; unknown names are logged and skipped."""
        if names is None:
            return list(self._checkers.values())
        selected = []
        for name in names:
            cls = self._checkers.get(name)
            if cls is None:
                logger.warning("Unknown checker %r ignored", name)
            else:
                selected.append(cls)
        return selected

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers)


# ═════════════════════════════════════════════════════════════════════════
#  PART 5: NULL-CHECK-THEN-DEREFERENCE MATCHER
# ═════════════════════════════════════════════════════════════════════════
#
#  Shape recognised (with p a var_decl or parm_decl):
#
#      truth_orif_expr
#        ne_expr
#          p
#          integer_cst 0
#        <anything>
#          component_ref          ← diagnostic anchor
#            indirect_ref
#              p
#
#  i.e. ``p != 0 || p->field ...``.
# ─────────────────────────────────────────────────────────────────────────

NULL_DEREF_MESSAGE = "possible null pointer dereference if subcondition is reachable"


def match_null_check_deref(node: Optional[TreeNode]) -> Optional[TreeNode]:
    """
    Return the ``component_ref`` that dereferences the null-checked pointer.

    Returns None for anything that is not exactly the shape above.
    """
    if not is_tree_code(node, TreeCode.TRUTH_ORIF_EXPR):
        return None

    # first truth expression: p != 0
    check = tree_operand(node, 0)
    if not (
        is_tree_code(check, TreeCode.NE_EXPR)
        and is_declaration(resolve_path(check, (OP0,)))
        and is_value_at(check, (OP1,), 0)
    ):
        return None
    pointer = decl_name(resolve_path(check, (OP0,)))
    if pointer is None:
        return None

    # second truth expression: dereference p
    second = tree_operand(node, 1)
    member = resolve_path(second, (OP0,))
    deref = resolve_path(second, (OP0, OP0))
    target = resolve_path(second, (OP0, OP0, OP0))
    if (
        is_tree_code(member, TreeCode.COMPONENT_REF)
        and is_tree_code(deref, TreeCode.INDIRECT_REF)
        and is_declaration(target)
        and decl_name(target) == pointer
    ):
        return member
    return None


def check_tree_node(node: TreeNode, sink: DiagnosticSink) -> bool:
    """
    Traversal callback body: report ``node`` to ``sink`` if it matches.

    Returns True when a report was made.
    """
    member = match_null_check_deref(node)
    if member is None:
        return False
    sink.report(expr_location(member), NULL_DEREF_MESSAGE)
    return True


class NullCheckDerefChecker(Checker):
    """
    Flags ``p != 0 || p->a`` style conditions.

    The second leg of the ``||`` only runs when the first is false, so the
    member access is evaluated on the path where the pointer was compared
    against zero.

    CWE-476: NULL Pointer Dereference
    """

    name: ClassVar[str] = "null-check-deref"
    description: ClassVar[str] = "Dereference in the second leg of a null-checking ||"
    error_ids: ClassVar[FrozenSet[str]] = frozenset({"nullPointerSubcondition"})
    confidence: ClassVar[Confidence] = Confidence.LOW
    cwe: ClassVar[int] = 476

    def __init__(self) -> None:
        super().__init__()
        self._sites: List[Tuple[TreeNode, TreeNode]] = []  # (orif, component_ref)

    def collect_evidence(self, ctx: CheckerContext) -> None:
        def visit(node: TreeNode, depth: int) -> None:
            member = match_null_check_deref(node)
            if member is not None:
                self._sites.append((node, member))

        ctx.stats["nodes_visited"] = ctx.stats.get("nodes_visited", 0) + parse_tree(
            ctx.body, visit, skip_codes=DETECT_SKIP_CODES
        )

    def diagnose(self, ctx: CheckerContext) -> None:
        for orif, member in self._sites:
            pointer = decl_name(resolve_path(orif, (OP0, OP0)))
            self._emit(
                ctx,
                "nullPointerSubcondition",
                NULL_DEREF_MESSAGE,
                expr_location(member),
                pointer=identifier_pointer(pointer),
            )


_DEFAULT_REGISTRY = CheckerRegistry([NullCheckDerefChecker])


def default_registry() -> CheckerRegistry:
    """The registry holding every built-in checker."""
    return _DEFAULT_REGISTRY


# ═════════════════════════════════════════════════════════════════════════
#  PART 6: RUNNER
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerRunResults:
    """
    Findings from one or more functions.

    ``timings_ms`` maps checker name to total wall time; ``stats`` holds
    counters such as ``nodes_visited``.
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    checker_names: List[str] = field(default_factory=list)
    functions: int = 0
    timings_ms: Dict[str, float] = field(default_factory=dict)
    stats: Dict[str, int] = field(default_factory=dict)

    def _count(self, severity: DiagnosticSeverity) -> int:
        return sum(1 for d in self.diagnostics if d.severity is severity)

    @property
    def error_count(self) -> int:
        return self._count(DiagnosticSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return self._count(DiagnosticSeverity.WARNING)

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def merge(self, other: CheckerRunResults) -> None:
        """Fold ``other`` into this result set."""
        self.diagnostics.extend(other.diagnostics)
        self.functions += other.functions
        for name in other.checker_names:
            if name not in self.checker_names:
                self.checker_names.append(name)
        for name, ms in other.timings_ms.items():
            self.timings_ms[name] = self.timings_ms.get(name, 0.0) + ms
        for key, n in other.stats.items():
            self.stats[key] = self.stats.get(key, 0) + n

    def summary(self) -> str:
        per_checker = Counter(d.checker_name for d in self.diagnostics)
        lines = [
            f"{self.total_count} diagnostic(s) in {self.functions} function(s): "
            f"{self.error_count} error(s), {self.warning_count} warning(s)"
        ]
        for name in self.checker_names:
            lines.append(
                f"  {name}: {per_checker[name]} finding(s) "
                f"in {self.timings_ms.get(name, 0.0):.1f}ms"
            )
        return "\n".join(lines)


class CheckerRunner:
    """
    Runs registered checkers over ``function_decl`` nodes.

    A checker that raises is reported as a ``checkerInternalError``
    information diagnostic at the function, and the run continues.
    ``TreeCheckError`` is the exception: the host tree is inconsistent,
    so it propagates to the caller.
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
    ) -> None:
        self.registry = registry or _DEFAULT_REGISTRY
        self.suppressions = suppressions or SuppressionManager()

    def _run_one(self, cls: Type[Checker], ctx: CheckerContext) -> List[Diagnostic]:
        checker = cls()
        try:
            checker.collect_evidence(ctx)
            checker.diagnose(ctx)
        except TreeCheckError:
            raise
        except Exception as exc:
            logger.warning("Checker %s failed on %s: %s", cls.name, ctx.function_name, exc)
            return [Diagnostic(
                error_id=INTERNAL_ERROR_ID,
                message=f"Checker '{cls.name}' failed: {exc}",
                severity=DiagnosticSeverity.INFORMATION,
                location=expr_location(ctx.fndecl),
                checker_name=cls.name,
                function=ctx.function_name,
            )]
        return checker.diagnostics

    def run(
        self,
        fndecl: TreeNode,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """Run the selected checkers (default: all) on one function."""
        ctx = CheckerContext(fndecl=fndecl)
        results = CheckerRunResults(functions=1)
        logger.debug("Running checkers on %s", ctx.function_name)

        for cls in self.registry.select(checkers):
            start = time.monotonic()
            found = self._run_one(cls, ctx)
            results.timings_ms[cls.name] = (time.monotonic() - start) * 1000.0
            results.checker_names.append(cls.name)
            results.diagnostics.extend(self.suppressions.filter_diagnostics(found))

        results.stats.update(ctx.stats)
        return results

    def run_all_functions(
        self,
        functions: Iterable[TreeNode],
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """Run checkers across every ``function_decl`` of a translation unit."""
        combined = CheckerRunResults()
        for fndecl in functions:
            combined.merge(self.run(fndecl, checkers=checkers))
        return combined


__all__ = [
    "INTERNAL_ERROR_ID",
    # Diagnostic model
    "Diagnostic",
    "DiagnosticSeverity",
    "Confidence",
    # Sinks
    "DiagnosticSink",
    "CollectingSink",
    "StreamSink",
    # Suppression
    "Suppression",
    "SuppressionManager",
    # Checker framework
    "Checker",
    "CheckerContext",
    "CheckerRegistry",
    # Matcher and checker
    "NULL_DEREF_MESSAGE",
    "match_null_check_deref",
    "check_tree_node",
    "NullCheckDerefChecker",
    "default_registry",
    # Runner
    "CheckerRunner",
    "CheckerRunResults",
]
