"""
interdataflow/inter_constprop.py
================================

Interprocedural integer constant propagation.

Ordinary statements use the intraprocedural rules of
:class:`~interdataflow.constprop.ConstantPropagation`.  The effect of a
call is carried entirely by edges:

* **call node**: no local effect, ``out := in``.
* **normal edge**: identity.
* **call-to-return edge**: the caller's fact, minus the call's receiver.
  The receiver's value must come from the return edge alone.
* **call edge**: a fresh fact binding each formal parameter of the callee
  to the value of the matching actual argument.
* **return edge**: a fresh fact binding the call's receiver to the meet
  of every value the callee can return.

One fact is kept per program point, so every call site of a method
contributes to the same entry fact (no context sensitivity): a parameter
passed ``2`` at one site and ``3`` at another ends up ``NAC``.

Example
-------
::

    >>> from interdataflow.ir_parser import parse_program
    >>> from interdataflow.inter_constprop import analyze
    >>> prog = parse_program('''
    ... method main() { a = 10; b = id(a); return b; }
    ... method id(x) { return x; }
    ... ''')
    >>> result = analyze(prog)
"""

from __future__ import annotations

import logging
from typing import Optional, Set, Tuple

from interdataflow.config import AnalysisConfig
from interdataflow.constprop import ConstantPropagation, CPFact, Value
from interdataflow.dataflow_engine import DataflowResult, InterSolver
from interdataflow.errors import ConfigError
from interdataflow.icfg import (
    CallEdge,
    CallToReturnEdge,
    InterproceduralCFG,
    NormalEdge,
    ReturnEdge,
    build_icfg,
)
from interdataflow.interproc_analysis import AbstractInterDataflowAnalysis
from interdataflow.ir import Invoke, Method, Program, Stmt

logger = logging.getLogger(__name__)


class InterConstantPropagation(AbstractInterDataflowAnalysis[CPFact]):
    """Context-insensitive interprocedural constant propagation.

    Parameters
    ----------
    config : AnalysisConfig, optional
        Only ``warn_arity_mismatch`` is consulted here.
    """

    ID = "inter-constprop"

    def __init__(self, config: Optional[AnalysisConfig] = None) -> None:
        self.config = config or AnalysisConfig()
        self.cp = ConstantPropagation()
        self._reported: Set[Tuple[Invoke, str]] = set()

    def is_forward(self) -> bool:
        return self.cp.is_forward()

    def new_boundary_fact(self, boundary: Stmt, method: Method) -> CPFact:
        return self.cp.new_boundary_fact(method)

    def new_initial_fact(self) -> CPFact:
        return self.cp.new_initial_fact()

    def meet_into(self, fact: CPFact, target: CPFact) -> bool:
        return self.cp.meet_into(fact, target)

    # ------------------------------------------------------------------
    # Node transfer
    # ------------------------------------------------------------------

    def transfer_call_node(
        self, stmt: Stmt, in_fact: CPFact, out_fact: Optional[CPFact]
    ) -> bool:
        if out_fact is None:
            return False
        return out_fact.copy_from(in_fact)

    def transfer_non_call_node(
        self, stmt: Stmt, in_fact: CPFact, out_fact: CPFact
    ) -> bool:
        return self.cp.transfer_node(stmt, in_fact, out_fact)

    # ------------------------------------------------------------------
    # Edge transfer
    # ------------------------------------------------------------------

    def transfer_normal_edge(self, edge: NormalEdge, out: Optional[CPFact]) -> CPFact:
        return out if out is not None else CPFact()

    def transfer_call_to_return_edge(
        self, edge: CallToReturnEdge, out: Optional[CPFact]
    ) -> CPFact:
        if out is None:
            return CPFact()
        fact = out.copy()
        lvalue = edge.source.get_def()
        if lvalue is not None:
            fact.remove(lvalue)
        return fact

    def transfer_call_edge(
        self, edge: CallEdge, call_site_out: Optional[CPFact]
    ) -> CPFact:
        fact = CPFact()
        call_site = edge.source
        if call_site_out is None or not isinstance(call_site, Invoke):
            return fact

        callee = edge.callee
        if call_site.arg_count != callee.param_count:
            self._report_arity_mismatch(call_site, callee)

        for i in range(min(call_site.arg_count, callee.param_count)):
            fact.update(callee.get_param(i), call_site_out.get(call_site.get_arg(i)))
        return fact

    def transfer_return_edge(
        self, edge: ReturnEdge, return_out: Optional[CPFact]
    ) -> CPFact:
        fact = CPFact()
        lvalue = edge.call_site.get_def()
        if return_out is None or lvalue is None:
            return fact
        value = Value.undef()
        for var in edge.return_vars:
            value = self.cp.meet_value(value, return_out.get(var))
        fact.update(lvalue, value)
        return fact

    def _report_arity_mismatch(self, call_site: Invoke, callee: Method) -> None:
        # report once per (call site, callee)
        key = (call_site, callee.name)
        if key in self._reported:
            return
        self._reported.add(key)
        level = logging.WARNING if self.config.warn_arity_mismatch else logging.DEBUG
        logger.log(
            level,
            "Call to %s in %s (line %d) passes %d argument(s) for %d parameter(s)",
            callee.name, call_site.method, call_site.lineno,
            call_site.arg_count, callee.param_count,
        )


# ===========================================================================
# CONVENIENCE
# ===========================================================================

def analyze(
    program: Program,
    config: Optional[AnalysisConfig] = None,
    icfg: Optional[InterproceduralCFG] = None,
) -> DataflowResult[CPFact]:
    """Build the ICFG of *program* and run interprocedural constant
    propagation over it.

    Parameters
    ----------
    program : Program
        The program to analyse.
    config : AnalysisConfig, optional
        Entry methods, worklist strategy and iteration bound.
    icfg : InterproceduralCFG, optional
        A prebuilt supergraph; built from *config*'s entry methods if absent.

    Raises
    ------
    ConfigError
        If *config* names a different analysis.
    ICFGError
        If an entry method is undefined.
    """
    config = config or AnalysisConfig()
    if config.analysis_id != InterConstantPropagation.ID:
        raise ConfigError(
            f"unknown analysis {config.analysis_id!r} "
            f"(expected {InterConstantPropagation.ID!r})"
        )
    if icfg is None:
        icfg = build_icfg(program, config.entry_methods)
    analysis = InterConstantPropagation(config)
    solver = InterSolver(
        analysis, icfg,
        strategy=config.strategy,
        max_iterations=config.max_iterations,
    )
    return solver.solve()
