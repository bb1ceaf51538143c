"""
interdataflow.callgraph
=======================

Resolves call sites to callee methods and computes the set of methods
reachable from the program's entry methods.

All calls in the IR are static and name their callee, so resolution is a
lookup by name.  A call to a method the program does not define is
*unresolved*: it is logged and recorded, but contributes no call edge.

Public API
----------
    CallResolutionKind  - how a call site was resolved
    CallGraphEdge       - a call site paired with its callee
    CallGraph           - reachable methods and call edges
    build_callgraph     - build from a Program and entry method names
"""

from __future__ import annotations

import enum
import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence

from interdataflow.errors import ICFGError
from interdataflow.ir import Invoke, Method, Program

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Resolution kinds
# ---------------------------------------------------------------------------

class CallResolutionKind(enum.Enum):
    """How a call site was resolved."""

    DIRECT     = "direct"
    UNRESOLVED = "unresolved"


# ---------------------------------------------------------------------------
# CallGraphEdge
# ---------------------------------------------------------------------------

class CallGraphEdge:
    """A call site together with the method it invokes.

    Attributes
    ----------
    caller : Method
        The method containing the call site.
    call_site : Invoke
        The invoke statement.
    callee : Method
        The invoked method.
    """

    __slots__ = ("caller", "call_site", "callee")

    def __init__(self, caller: Method, call_site: Invoke, callee: Method) -> None:
        self.caller = caller
        self.call_site = call_site
        self.callee = callee

    def __repr__(self) -> str:
        return (
            f"CallGraphEdge({self.caller.name} -> {self.callee.name}, "
            f"line {self.call_site.lineno})"
        )


# ---------------------------------------------------------------------------
# CallGraph
# ---------------------------------------------------------------------------

class CallGraph:
    """Call graph restricted to methods reachable from the entries.

    Attributes
    ----------
    program : Program
        The program the graph was built from.
    edges : list[CallGraphEdge]
        Resolved call edges, in discovery order.
    unresolved : list[Invoke]
        Reachable call sites whose callee is not defined.
    """

    def __init__(self, program: Program, entries: Sequence[Method]) -> None:
        self.program = program
        self.edges: List[CallGraphEdge] = []
        self.unresolved: List[Invoke] = []
        self._entries: List[Method] = list(entries)
        self._reachable: Dict[str, Method] = {}
        self._callees: Dict[Invoke, List[Method]] = {}
        self._call_sites: Dict[str, List[Invoke]] = {}

    # ----- construction -----------------------------------------------------

    def add_reachable(self, method: Method) -> bool:
        """Mark *method* reachable.  Returns ``True`` if it is new."""
        if method.name in self._reachable:
            return False
        self._reachable[method.name] = method
        return True

    def add_edge(self, caller: Method, call_site: Invoke, callee: Method) -> CallGraphEdge:
        e = CallGraphEdge(caller, call_site, callee)
        self.edges.append(e)
        self._callees.setdefault(call_site, []).append(callee)
        self._call_sites.setdefault(callee.name, []).append(call_site)
        return e

    # ----- queries ----------------------------------------------------------

    def entry_methods(self) -> List[Method]:
        return list(self._entries)

    def reachable_methods(self) -> List[Method]:
        """Reachable methods in discovery order."""
        return list(self._reachable.values())

    def is_reachable(self, method: Method) -> bool:
        return self._reachable.get(method.name) is method

    def callees_of(self, call_site: Invoke) -> List[Method]:
        """Methods invoked at *call_site* (empty when unresolved)."""
        return list(self._callees.get(call_site, ()))

    def call_sites_of(self, method: Method) -> List[Invoke]:
        """Reachable call sites that invoke *method*."""
        return list(self._call_sites.get(method.name, ()))

    def resolution_of(self, call_site: Invoke) -> Optional[CallResolutionKind]:
        """How *call_site* was resolved, or ``None`` if it was never visited."""
        if call_site in self._callees:
            return CallResolutionKind.DIRECT
        if call_site in self.unresolved:
            return CallResolutionKind.UNRESOLVED
        return None

    def __repr__(self) -> str:
        return (
            f"CallGraph(methods={len(self._reachable)}, edges={len(self.edges)}, "
            f"unresolved={len(self.unresolved)})"
        )


# ===========================================================================
# BUILDER
# ===========================================================================

def build_callgraph(program: Program, entry_names: Iterable[str]) -> CallGraph:
    """Build the call graph of *program* reachable from *entry_names*.

    Raises
    ------
    ICFGError
        If an entry method is not defined by the program.
    """
    entries: List[Method] = []
    for name in entry_names:
        method = program.get_method(name)
        if method is None:
            raise ICFGError(f"entry method {name!r} is not defined")
        if method not in entries:
            entries.append(method)

    cg = CallGraph(program, entries)
    worklist: Deque[Method] = deque()
    for m in entries:
        if cg.add_reachable(m):
            worklist.append(m)

    while worklist:
        caller = worklist.popleft()
        for call_site in caller.call_sites():
            callee: Optional[Method] = program.get_method(call_site.callee_name)
            if callee is None:
                logger.warning(
                    "Unresolved call to %r in %s (line %d); no call edge added",
                    call_site.callee_name, caller.name, call_site.lineno,
                )
                cg.unresolved.append(call_site)
                continue
            cg.add_edge(caller, call_site, callee)
            if cg.add_reachable(callee):
                worklist.append(callee)

    logger.debug("Built %r", cg)
    return cg
