"""
interdataflow/report.py
=======================

Rendering of solver results: a human-readable listing and a JSON-ready
dictionary.

Facts are shown as ``OUT`` facts (the state after each statement), which
is what a reader of the program usually asks about.  Compiler temporaries
introduced for integer literals (``%intconst0`` …) are hidden unless
``show_temps`` is set.
"""

from __future__ import annotations

import sys
from typing import Any, Dict, Iterable, List, Optional, TextIO

from interdataflow.constprop import CPFact, Value
from interdataflow.dataflow_engine import DataflowResult
from interdataflow.icfg import InterproceduralCFG
from interdataflow.ir import Method, Stmt

_TEMP_MARK = "%"


def value_to_json(value: Value) -> Any:
    """Constants become ints; ``UNDEF``/``NAC`` become strings."""
    c = value.concrete_value()
    return c if c is not None else repr(value)


def fact_to_dict(fact: Optional[CPFact], *, show_temps: bool = False) -> Dict[str, Any]:
    if fact is None:
        return {}
    return {
        var.name: value_to_json(value)
        for var, value in sorted(fact.items(), key=lambda kv: kv[0].name)
        if show_temps or not var.name.startswith(_TEMP_MARK)
    }


def _selected_methods(
    icfg: InterproceduralCFG, methods: Optional[Iterable[str]]
) -> List[Method]:
    if not methods:
        return icfg.methods()
    wanted = set(methods)
    return [m for m in icfg.methods() if m.name in wanted]


def _node_label(node: Stmt) -> str:
    return f"[{node.index}@L{node.lineno}] {node}"


def result_to_dict(
    result: DataflowResult[CPFact],
    icfg: InterproceduralCFG,
    *,
    methods: Optional[Iterable[str]] = None,
    show_temps: bool = False,
) -> Dict[str, Any]:
    """Return a JSON-serialisable view of *result*."""
    out: Dict[str, Any] = {
        "analysis": result.analysis_id,
        "converged": result.converged,
        "iterations": result.iterations,
        "elapsed_seconds": round(result.elapsed_seconds, 6),
        "methods": {},
    }
    for m in _selected_methods(icfg, methods):
        out["methods"][m.name] = [
            {
                "index": node.index,
                "line": node.lineno,
                "stmt": str(node),
                "in": fact_to_dict(result.get_in_fact(node), show_temps=show_temps),
                "out": fact_to_dict(result.get_out_fact(node), show_temps=show_temps),
            }
            for node in icfg.cfgs[m.name].nodes
        ]
    return out


def print_results(
    result: DataflowResult[CPFact],
    icfg: InterproceduralCFG,
    *,
    methods: Optional[Iterable[str]] = None,
    show_temps: bool = False,
    file: Optional[TextIO] = None,
) -> None:
    """Pretty-print analysis results.

    Parameters
    ----------
    result : DataflowResult
    icfg : InterproceduralCFG
    methods : restrict output to these method names (default: all)
    show_temps : include literal temporaries
    file : output stream (default: stdout)
    """
    out = file or sys.stdout

    print(f"=== {result.analysis_id} ===", file=out)
    print(f"Converged: {result.converged}", file=out)
    print(f"Iterations: {result.iterations}", file=out)

    for m in _selected_methods(icfg, methods):
        params = ", ".join(p.name for p in m.params)
        print(f"\n--- Method: {m.name}({params}) ---", file=out)
        for node in icfg.cfgs[m.name].nodes:
            fact = fact_to_dict(result.get_out_fact(node), show_temps=show_temps)
            body = ", ".join(f"{k}={v}" for k, v in fact.items())
            print(f"  {_node_label(node):<32} {{{body}}}", file=out)

    print(f"\n{'=' * 40}", file=out)
