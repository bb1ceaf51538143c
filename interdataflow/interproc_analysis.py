"""
interdataflow/interproc_analysis.py
===================================

The contract between an interprocedural analysis and
:class:`~interdataflow.dataflow_engine.InterSolver`.

:class:`InterDataflowAnalysis` is what the solver calls.
:class:`AbstractInterDataflowAnalysis` implements the two transfer entry
points by dispatching on node and edge kind, so a concrete analysis only
writes the six specialised hooks::

    transfer_node  ─┬─ call site      → transfer_call_node
                    └─ anything else  → transfer_non_call_node

    transfer_edge  ─┬─ NORMAL         → transfer_normal_edge
                    ├─ CALL_TO_RETURN → transfer_call_to_return_edge
                    ├─ CALL           → transfer_call_edge
                    └─ RETURN         → transfer_return_edge
"""

from __future__ import annotations

import abc
from typing import Generic, Optional, TypeVar

from interdataflow.errors import ICFGError
from interdataflow.icfg import (
    CallEdge,
    CallToReturnEdge,
    EdgeKind,
    ICFGEdge,
    NormalEdge,
    ReturnEdge,
)
from interdataflow.ir import Method, Stmt

__all__ = [
    "InterDataflowAnalysis",
    "AbstractInterDataflowAnalysis",
]

F = TypeVar("F")          # Fact type


# ═══════════════════════════════════════════════════════════════════════════
#  CONTRACT
# ═══════════════════════════════════════════════════════════════════════════

class InterDataflowAnalysis(abc.ABC, Generic[F]):
    """What the interprocedural solver needs from an analysis."""

    ID: str = ""

    @abc.abstractmethod
    def is_forward(self) -> bool:
        """Whether facts flow along (``True``) or against ICFG edges."""

    @abc.abstractmethod
    def new_boundary_fact(self, boundary: Stmt, method: Method) -> F:
        """Fact for the entry node *boundary* of the entry method *method*."""

    @abc.abstractmethod
    def new_initial_fact(self) -> F:
        """Fact every node starts from."""

    @abc.abstractmethod
    def meet_into(self, fact: F, target: F) -> bool:
        """Meet *fact* into *target* in place.  Returns ``True`` on change."""

    @abc.abstractmethod
    def transfer_node(self, node: Stmt, in_fact: F, out_fact: F) -> bool:
        """Recompute *out_fact* from *in_fact*.  Returns ``True`` on change."""

    @abc.abstractmethod
    def transfer_edge(self, edge: ICFGEdge, out: Optional[F]) -> F:
        """Fact carried by *edge* given the ``out`` fact of its source."""


# ═══════════════════════════════════════════════════════════════════════════
#  DISPATCHING BASE
# ═══════════════════════════════════════════════════════════════════════════

class AbstractInterDataflowAnalysis(InterDataflowAnalysis[F]):
    """Base class that routes node and edge transfer by kind."""

    def transfer_node(self, node: Stmt, in_fact: F, out_fact: F) -> bool:
        if node.is_call_site():
            return self.transfer_call_node(node, in_fact, out_fact)
        return self.transfer_non_call_node(node, in_fact, out_fact)

    def transfer_edge(self, edge: ICFGEdge, out: Optional[F]) -> F:
        kind = edge.kind
        if kind is EdgeKind.NORMAL:
            return self.transfer_normal_edge(edge, out)
        if kind is EdgeKind.CALL_TO_RETURN:
            return self.transfer_call_to_return_edge(edge, out)
        if kind is EdgeKind.CALL:
            return self.transfer_call_edge(edge, out)
        if kind is EdgeKind.RETURN:
            return self.transfer_return_edge(edge, out)
        raise ICFGError(f"unknown ICFG edge kind {kind!r} on {edge!r}")

    # -- abstract hooks for subclasses -------------------------------------

    @abc.abstractmethod
    def transfer_call_node(self, stmt: Stmt, in_fact: F, out_fact: F) -> bool:
        ...

    @abc.abstractmethod
    def transfer_non_call_node(self, stmt: Stmt, in_fact: F, out_fact: F) -> bool:
        ...

    @abc.abstractmethod
    def transfer_normal_edge(self, edge: NormalEdge, out: Optional[F]) -> F:
        ...

    @abc.abstractmethod
    def transfer_call_to_return_edge(
        self, edge: CallToReturnEdge, out: Optional[F]
    ) -> F:
        ...

    @abc.abstractmethod
    def transfer_call_edge(self, edge: CallEdge, call_site_out: Optional[F]) -> F:
        ...

    @abc.abstractmethod
    def transfer_return_edge(self, edge: ReturnEdge, return_out: Optional[F]) -> F:
        ...
