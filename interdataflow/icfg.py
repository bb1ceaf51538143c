"""
interdataflow/icfg.py
=====================

Interprocedural control-flow graph (supergraph) over the reachable methods
of a program.

Construction
------------
*  Each reachable method's intraprocedural CFG
   (:mod:`interdataflow.ctrlflow_graph`) is embedded as-is; its edges
   become :class:`NormalEdge` s.
*  The intraprocedural out-edge of a **call site** becomes a
   :class:`CallToReturnEdge` to the *return site* (the statement after the
   call, possibly the caller's exit).  It carries caller-local state that
   the callee cannot touch.
*  For each resolved callee the call site gains a :class:`CallEdge` to the
   callee's **entry**, and the callee's **exit** gains a
   :class:`ReturnEdge` back to the return site.

Unresolved call sites keep only their call-to-return edge.  Nodes are the
IR statements themselves, so node identity is object identity.

Public API
----------
    EdgeKind            - the four edge kinds
    ICFGEdge            - edge base class
    NormalEdge, CallToReturnEdge, CallEdge, ReturnEdge
    InterproceduralCFG  - the supergraph and its queries
    build_icfg          - build from a Program and entry method names
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from interdataflow.callgraph import CallGraph, build_callgraph
from interdataflow.ctrlflow_graph import CFG, build_cfg
from interdataflow.errors import ICFGError
from interdataflow.ir import Invoke, Method, Program, Stmt, Var

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  EDGES
# ═══════════════════════════════════════════════════════════════════════════

class EdgeKind(enum.Enum):
    NORMAL = "normal"
    CALL_TO_RETURN = "call-to-return"
    CALL = "call"
    RETURN = "return"


@dataclass(frozen=True, eq=False)
class ICFGEdge:
    """A directed edge of the supergraph.

    Attributes
    ----------
    source, target : Stmt
        Endpoints of the edge.
    """

    source: Stmt
    target: Stmt

    kind = EdgeKind.NORMAL

    def __repr__(self) -> str:
        return f"({self.source!r})--[{self.kind.value}]-->({self.target!r})"


@dataclass(frozen=True, eq=False, repr=False)
class NormalEdge(ICFGEdge):
    """Intraprocedural edge between two non-call statements."""

    kind = EdgeKind.NORMAL


@dataclass(frozen=True, eq=False, repr=False)
class CallToReturnEdge(ICFGEdge):
    """Edge from a call site to its return site, bypassing the callee."""

    kind = EdgeKind.CALL_TO_RETURN


@dataclass(frozen=True, eq=False, repr=False)
class CallEdge(ICFGEdge):
    """Edge from a call site to the entry node of ``callee``."""

    callee: Method = None  # type: ignore[assignment]

    kind = EdgeKind.CALL


@dataclass(frozen=True, eq=False, repr=False)
class ReturnEdge(ICFGEdge):
    """Edge from the exit node of ``callee`` back to a return site.

    ``return_vars`` are the callee's returned variables; ``call_site`` is
    the invoke whose receiver takes the merged returned value.
    """

    call_site: Invoke = None  # type: ignore[assignment]
    callee: Method = None  # type: ignore[assignment]
    return_vars: Tuple[Var, ...] = ()

    kind = EdgeKind.RETURN


# ═══════════════════════════════════════════════════════════════════════════
#  SUPERGRAPH
# ═══════════════════════════════════════════════════════════════════════════

class InterproceduralCFG:
    """Interprocedural control-flow graph over the reachable methods.

    Parameters
    ----------
    callgraph : CallGraph
        Resolved call graph; only its reachable methods are embedded.
    cfgs : dict[str, CFG]
        Per-method CFGs, keyed by method name.
    """

    def __init__(self, callgraph: CallGraph, cfgs: Dict[str, CFG]) -> None:
        self.callgraph = callgraph
        self.cfgs = cfgs
        self.edges: List[ICFGEdge] = []
        self._nodes: List[Stmt] = []
        self._method_of: Dict[Stmt, Method] = {}
        self._succ: Dict[Stmt, List[ICFGEdge]] = defaultdict(list)
        self._pred: Dict[Stmt, List[ICFGEdge]] = defaultdict(list)
        self._return_sites: Dict[Stmt, List[Stmt]] = {}
        self._build()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _add_edge(self, edge: ICFGEdge) -> None:
        self.edges.append(edge)
        self._succ[edge.source].append(edge)
        self._pred[edge.target].append(edge)

    def _build(self) -> None:
        methods = self.callgraph.reachable_methods()

        # Phase 1: nodes and intraprocedural edges
        for m in methods:
            cfg = self.cfgs[m.name]
            for n in cfg.nodes:
                self._nodes.append(n)
                self._method_of[n] = m
            for e in cfg.edges:
                if e.source.is_call_site():
                    self._add_edge(CallToReturnEdge(e.source, e.target))
                    self._return_sites.setdefault(e.source, []).append(e.target)
                else:
                    self._add_edge(NormalEdge(e.source, e.target))

        # Phase 2: call and return edges
        for cge in self.callgraph.edges:
            call_site = cge.call_site
            callee_cfg = self.cfgs[cge.callee.name]
            self._add_edge(CallEdge(call_site, callee_cfg.entry, callee=cge.callee))
            for return_site in self._return_sites.get(call_site, ()):
                self._add_edge(ReturnEdge(
                    callee_cfg.exit,
                    return_site,
                    call_site=call_site,
                    callee=cge.callee,
                    return_vars=cge.callee.return_vars,
                ))

        logger.debug("Built %r", self)

    # ------------------------------------------------------------------
    # Query API
    # ------------------------------------------------------------------

    def nodes(self) -> List[Stmt]:
        """All nodes, grouped by method in reachability order."""
        return list(self._nodes)

    def entry_methods(self) -> List[Method]:
        return self.callgraph.entry_methods()

    def methods(self) -> List[Method]:
        return self.callgraph.reachable_methods()

    def entry_of(self, method: Method) -> Stmt:
        return self._cfg_of(method).entry

    def exit_of(self, method: Method) -> Stmt:
        return self._cfg_of(method).exit

    def _cfg_of(self, method: Method) -> CFG:
        if not self.callgraph.is_reachable(method):
            raise ICFGError(f"method {method.name!r} is not part of the ICFG")
        return self.cfgs[method.name]

    def out_edges_of(self, node: Stmt) -> List[ICFGEdge]:
        return list(self._succ.get(node, ()))

    def in_edges_of(self, node: Stmt) -> List[ICFGEdge]:
        return list(self._pred.get(node, ()))

    def succs_of(self, node: Stmt) -> List[Stmt]:
        return [e.target for e in self.out_edges_of(node)]

    def preds_of(self, node: Stmt) -> List[Stmt]:
        return [e.source for e in self.in_edges_of(node)]

    def containing_method_of(self, node: Stmt) -> Method:
        try:
            return self._method_of[node]
        except KeyError:
            raise ICFGError(f"node {node!r} is not part of the ICFG") from None

    def is_call_site(self, node: Stmt) -> bool:
        return node.is_call_site()

    def callees_of(self, call_site: Invoke) -> List[Method]:
        return self.callgraph.callees_of(call_site)

    def return_sites_of(self, call_site: Invoke) -> List[Stmt]:
        return list(self._return_sites.get(call_site, ()))

    def __contains__(self, node: object) -> bool:
        return node in self._method_of

    def __len__(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_dot(self, title: str = "ICFG") -> str:
        """Return a Graphviz DOT representation, one cluster per method."""
        def nid(n: Stmt) -> str:
            return f"{n.method}_{n.index + 1}"

        lines = [f'digraph "{title}" {{']
        lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')
        for i, m in enumerate(self.methods()):
            lines.append(f"  subgraph cluster_{i} {{")
            lines.append(f'    label="{m.name}";')
            for n in self.cfgs[m.name].nodes:
                escaped = str(n).replace('"', '\\"')
                lines.append(f'    "{nid(n)}" [label="{escaped}"];')
            lines.append("  }")

        edge_attrs = {
            EdgeKind.NORMAL: "",
            EdgeKind.CALL_TO_RETURN: " [style=dashed]",
            EdgeKind.CALL: " [color=blue]",
            EdgeKind.RETURN: " [color=red]",
        }
        for e in self.edges:
            lines.append(f'  "{nid(e.source)}" -> "{nid(e.target)}"{edge_attrs[e.kind]};')
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"InterproceduralCFG(methods={len(self.methods())}, "
            f"nodes={len(self._nodes)}, edges={len(self.edges)})"
        )


def build_icfg(program: Program, entry_names: Iterable[str] = ("main",)) -> InterproceduralCFG:
    """Resolve calls from *entry_names* and build the supergraph.

    Raises
    ------
    ICFGError
        If an entry method is undefined or a jump label is unknown.
    """
    cg = build_callgraph(program, entry_names)
    cfgs = {m.name: build_cfg(m) for m in cg.reachable_methods()}
    return InterproceduralCFG(cg, cfgs)
