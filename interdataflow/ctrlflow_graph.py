"""
interdataflow.ctrlflow_graph
============================

Builds intraprocedural control-flow graphs (CFGs) for IR methods.

Nodes are the method's statements themselves (one statement per node) plus
a synthetic *entry* and *exit* :class:`~interdataflow.ir.Nop`.  Edges are
classified by :class:`CFGEdgeKind`.

Construction rules
------------------
* ``entry`` falls through to the first statement (or straight to ``exit``
  for an empty body).
* Every statement falls through to the next one, except
  ``goto`` (jump only) and ``return`` (edge to ``exit`` only).
* ``if`` has a *branch-true* edge to its label target and a *branch-false*
  edge to the next statement.
* The last statement falls through to ``exit``.

Public API
----------
    CFGEdgeKind      - classification of an intraprocedural edge
    CFGEdge          - a directed edge between two statements
    CFG              - the control-flow graph for one method
    build_cfg        - build a CFG for one method
    build_all_cfgs   - build CFGs for every method of a program
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set

from interdataflow.ir import Goto, If, Method, Nop, Program, Return, Stmt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------

class CFGEdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    ENTRY = "entry"
    FALL_THROUGH = "fall-through"
    BRANCH_TRUE = "branch-true"
    BRANCH_FALSE = "branch-false"
    GOTO = "goto"
    RETURN = "return"


@dataclass(frozen=True, eq=False)
class CFGEdge:
    source: Stmt
    target: Stmt
    kind: CFGEdgeKind = CFGEdgeKind.FALL_THROUGH

    def __repr__(self) -> str:
        return f"({self.source})--[{self.kind.value}]-->({self.target})"


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------

class CFG:
    """Intraprocedural control-flow graph for a single method.

    Attributes
    ----------
    method : Method
        The method this CFG represents.
    entry : Nop
        Synthetic entry node.
    exit : Nop
        Synthetic exit node.
    nodes : list[Stmt]
        All nodes in program order: entry, statements, exit.
    edges : list[CFGEdge]
        All edges.
    """

    def __init__(self, method: Method) -> None:
        self.method = method
        self.entry = Nop(label="entry", method=method.name, index=-1)
        self.exit = Nop(label="exit", method=method.name, index=len(method.stmts))
        self.nodes: List[Stmt] = [self.entry, *method.stmts, self.exit]
        self.edges: List[CFGEdge] = []
        self._out: Dict[Stmt, List[CFGEdge]] = defaultdict(list)
        self._in: Dict[Stmt, List[CFGEdge]] = defaultdict(list)

    def add_edge(
        self,
        source: Stmt,
        target: Stmt,
        kind: CFGEdgeKind = CFGEdgeKind.FALL_THROUGH,
    ) -> CFGEdge:
        """Create an edge, register it, and wire up the adjacency maps."""
        e = CFGEdge(source, target, kind)
        self.edges.append(e)
        self._out[source].append(e)
        self._in[target].append(e)
        return e

    # ----- queries ----------------------------------------------------------

    def out_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._out.get(node, ()))

    def in_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._in.get(node, ()))

    def succs_of(self, node: Stmt) -> List[Stmt]:
        return [e.target for e in self.out_edges_of(node)]

    def preds_of(self, node: Stmt) -> List[Stmt]:
        return [e.source for e in self.in_edges_of(node)]

    def reachable_from(self, start: Stmt) -> Set[Stmt]:
        """Return the set of nodes reachable from *start*."""
        visited: Set[Stmt] = set()
        worklist = [start]
        while worklist:
            n = worklist.pop()
            if n in visited:
                continue
            visited.add(n)
            worklist.extend(self.succs_of(n))
        return visited

    def __repr__(self) -> str:
        return (
            f"CFG(method={self.method.name!r}, nodes={len(self.nodes)}, "
            f"edges={len(self.edges)})"
        )


# ===========================================================================
# CFG BUILDER
# ===========================================================================

def build_cfg(method: Method) -> CFG:
    """Build the control-flow graph of *method*."""
    cfg = CFG(method)
    stmts = method.stmts

    cfg.add_edge(cfg.entry, stmts[0] if stmts else cfg.exit, CFGEdgeKind.ENTRY)

    for i, stmt in enumerate(stmts):
        following = stmts[i + 1] if i + 1 < len(stmts) else cfg.exit
        if isinstance(stmt, Return):
            cfg.add_edge(stmt, cfg.exit, CFGEdgeKind.RETURN)
        elif isinstance(stmt, Goto):
            target = stmts_at(method, method.label_target(stmt.target), cfg)
            cfg.add_edge(stmt, target, CFGEdgeKind.GOTO)
        elif isinstance(stmt, If):
            target = stmts_at(method, method.label_target(stmt.target), cfg)
            cfg.add_edge(stmt, target, CFGEdgeKind.BRANCH_TRUE)
            cfg.add_edge(stmt, following, CFGEdgeKind.BRANCH_FALSE)
        else:
            cfg.add_edge(stmt, following)

    logger.debug("Built %r", cfg)
    return cfg


def stmts_at(method: Method, index: int, cfg: CFG) -> Stmt:
    """Statement at *index*, or the exit node for a label past the end."""
    if index < len(method.stmts):
        return method.stmts[index]
    return cfg.exit


def build_all_cfgs(program: Program, methods: Iterable[str] = ()) -> Dict[str, CFG]:
    """Build CFGs for the named *methods* (default: every method)."""
    names = list(methods) or [m.name for m in program]
    return {name: build_cfg(program[name]) for name in names}
