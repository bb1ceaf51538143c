"""
interdataflow.dataflow_engine
=============================

Worklist fixpoint engine for interprocedural dataflow analyses over an
:class:`~interdataflow.icfg.InterproceduralCFG`.

The solver is analysis-agnostic: everything domain-specific (facts, meet,
node and edge transfer) comes from an
:class:`~interdataflow.interproc_analysis.InterDataflowAnalysis`.  The graph
and the result table are passed in explicitly; the analysis never sees the
solver's state.

Algorithm
---------
1.  Every node gets ``in = out = new_initial_fact()``.
2.  The entry node of every entry method gets
    ``in = out = new_boundary_fact(entry, method)``.
3.  The worklist is seeded with every node.  For a popped node ``n``::

        for e in in_edges_of(n):
            meet_into(transfer_edge(e, out[e.source]), in[n])
        if transfer_node(n, in[n], out[n]):
            worklist.add_all(succs_of(n))

    Edge transfers are recomputed on every visit, never cached.  Incoming
    contributions are met *into* the existing ``in`` fact, so the boundary
    fact written in step 2 is never lost.
4.  Stop when the worklist is empty.

Facts only rise, the lattice has finite height and every transfer is
monotone, so the loop terminates.  An optional ``max_iterations`` bound
turns a non-monotone analysis into a :class:`SolverDivergenceError` instead
of a hang.

Worklist strategies
-------------------
``FIFO``
    Breadth-first draining order (default).
``LIFO``
    Depth-first draining order.

Both reach the same fixpoint.

Public API
----------
    WorklistStrategy    - iteration order enum
    SetQueue            - deduplicating worklist
    DataflowResult      - container for in/out facts per node
    InterSolver         - the fixpoint engine
    solve               - convenience function
"""

from __future__ import annotations

import enum
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Deque,
    Dict,
    Generic,
    Hashable,
    Iterable,
    Iterator,
    List,
    Optional,
    Set,
    TypeVar,
)

from interdataflow.errors import SolverDivergenceError

if TYPE_CHECKING:
    from interdataflow.icfg import InterproceduralCFG
    from interdataflow.interproc_analysis import InterDataflowAnalysis

logger = logging.getLogger(__name__)

F = TypeVar("F")          # Fact type
T = TypeVar("T", bound=Hashable)


# ===========================================================================
# WORKLIST STRATEGY
# ===========================================================================

class WorklistStrategy(enum.Enum):
    """Strategy for selecting the next worklist node."""
    FIFO = "fifo"
    LIFO = "lifo"


# ===========================================================================
# WORKLIST
# ===========================================================================

class SetQueue(Generic[T]):
    """A queue that never holds the same item twice.

    An item may be re-added once it has been popped.
    """

    __slots__ = ("_queue", "_members")

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._queue: Deque[T] = deque()
        self._members: Set[T] = set()
        self.add_all(items)

    def add(self, item: T) -> bool:
        """Enqueue *item* unless already pending.  Returns ``True`` if added."""
        if item in self._members:
            return False
        self._members.add(item)
        self._queue.append(item)
        return True

    def add_all(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def pop(self, strategy: WorklistStrategy = WorklistStrategy.FIFO) -> T:
        """Remove and return the next item.  Raises ``IndexError`` when empty."""
        if strategy is WorklistStrategy.LIFO:
            item = self._queue.pop()
        else:
            item = self._queue.popleft()
        self._members.discard(item)
        return item

    def __contains__(self, item: object) -> bool:
        return item in self._members

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __iter__(self) -> Iterator[T]:
        return iter(self._queue)

    def __repr__(self) -> str:
        return f"SetQueue({list(self._queue)!r})"


# ===========================================================================
# DATAFLOW RESULT
# ===========================================================================

@dataclass
class DataflowResult(Generic[F]):
    """Container for dataflow analysis results.

    Attributes
    ----------
    facts_in : dict
        Map from ICFG node → incoming (pre-node) dataflow fact.
    facts_out : dict
        Map from ICFG node → outgoing (post-node) dataflow fact.
    iterations : int
        Number of worklist iterations performed.
    converged : bool
        Whether the analysis reached a fixpoint.
    elapsed_seconds : float
        Wall-clock time.
    analysis_id : str
        Identifier of the analysis that produced the facts.
    """
    facts_in: Dict[Any, F] = field(default_factory=dict)
    facts_out: Dict[Any, F] = field(default_factory=dict)
    iterations: int = 0
    converged: bool = False
    elapsed_seconds: float = 0.0
    analysis_id: str = ""

    def get_in_fact(self, node) -> Optional[F]:
        return self.facts_in.get(node)

    def get_out_fact(self, node) -> Optional[F]:
        return self.facts_out.get(node)

    def set_in_fact(self, node, fact: F) -> None:
        self.facts_in[node] = fact

    def set_out_fact(self, node, fact: F) -> None:
        self.facts_out[node] = fact

    def nodes(self) -> List[Any]:
        """Nodes with facts, in solver initialisation order."""
        return list(self.facts_in)


# ===========================================================================
# INTERPROCEDURAL SOLVER
# ===========================================================================

class InterSolver(Generic[F]):
    """Fixpoint engine for interprocedural dataflow analyses.

    Parameters
    ----------
    analysis : InterDataflowAnalysis
        Supplies facts, meet, and node/edge transfer.  Must be forward.
    icfg : InterproceduralCFG
        The supergraph to solve over.
    strategy : WorklistStrategy
        Worklist draining order.
    max_iterations : int, optional
        Safety bound on iterations; ``None`` means unbounded.
    """

    def __init__(
        self,
        analysis: "InterDataflowAnalysis[F]",
        icfg: "InterproceduralCFG",
        strategy: WorklistStrategy = WorklistStrategy.FIFO,
        max_iterations: Optional[int] = None,
    ) -> None:
        if not analysis.is_forward():
            raise ValueError(
                f"{type(analysis).__name__} is a backward analysis; "
                "only forward analyses are supported"
            )
        self.analysis = analysis
        self.icfg = icfg
        self.strategy = strategy
        self.max_iterations = max_iterations

    def solve(self) -> DataflowResult[F]:
        """Run the analysis to fixpoint and return the result table."""
        t0 = time.monotonic()
        result: DataflowResult[F] = DataflowResult(
            analysis_id=getattr(self.analysis, "ID", type(self.analysis).__name__),
        )
        self._initialize(result)
        self._do_solve(result)
        result.elapsed_seconds = time.monotonic() - t0
        logger.debug(
            "%s reached a fixpoint after %d iterations (%.4fs)",
            result.analysis_id, result.iterations, result.elapsed_seconds,
        )
        return result

    def resume(self, result: DataflowResult[F]) -> DataflowResult[F]:
        """Iterate again from an existing table, updating it in place.

        On a converged table this performs one visit per node and changes
        nothing.
        """
        t0 = time.monotonic()
        self._do_solve(result)
        result.elapsed_seconds += time.monotonic() - t0
        return result

    # ----- Internal helpers -------------------------------------------------

    def _initialize(self, result: DataflowResult[F]) -> None:
        analysis = self.analysis
        for node in self.icfg.nodes():
            result.set_in_fact(node, analysis.new_initial_fact())
            result.set_out_fact(node, analysis.new_initial_fact())
        for method in self.icfg.entry_methods():
            entry = self.icfg.entry_of(method)
            result.set_in_fact(entry, analysis.new_boundary_fact(entry, method))
            result.set_out_fact(entry, analysis.new_boundary_fact(entry, method))

    def _do_solve(self, result: DataflowResult[F]) -> None:
        analysis = self.analysis
        icfg = self.icfg
        worklist: SetQueue = SetQueue(icfg.nodes())
        result.converged = False

        while worklist:
            if self.max_iterations is not None and result.iterations >= self.max_iterations:
                raise SolverDivergenceError(result.iterations, len(worklist))
            node = worklist.pop(self.strategy)
            result.iterations += 1

            in_fact = result.get_in_fact(node)
            for edge in icfg.in_edges_of(node):
                edge_fact = analysis.transfer_edge(edge, result.get_out_fact(edge.source))
                analysis.meet_into(edge_fact, in_fact)

            if analysis.transfer_node(node, in_fact, result.get_out_fact(node)):
                worklist.add_all(icfg.succs_of(node))

        result.converged = True


def solve(
    analysis: "InterDataflowAnalysis[F]",
    icfg: "InterproceduralCFG",
    *,
    strategy: WorklistStrategy = WorklistStrategy.FIFO,
    max_iterations: Optional[int] = None,
) -> DataflowResult[F]:
    """Run *analysis* over *icfg* and return the fixpoint result table.

    Parameters
    ----------
    analysis : InterDataflowAnalysis
        A forward interprocedural analysis.
    icfg : InterproceduralCFG
        The supergraph.
    strategy : WorklistStrategy
        Worklist order.
    max_iterations : int, optional
        Safety bound.

    Returns
    -------
    DataflowResult

    Raises
    ------
    ValueError
        If *analysis* is backward.
    SolverDivergenceError
        If *max_iterations* is exceeded.
    """
    solver = InterSolver(analysis, icfg, strategy=strategy, max_iterations=max_iterations)
    return solver.solve()
