"""
interdataflow — Interprocedural Dataflow Analysis over a Small IR
=================================================================

A whole-program, context-insensitive constant propagation built on a
generic worklist solver over an interprocedural control-flow graph (ICFG).

Core modules
------------
ir
    Three-address program representation (variables, statements, methods).
ir_parser
    Textual front end (parsimonious grammar).
ctrlflow_graph
    Per-method control-flow graphs with synthetic entry/exit nodes.
callgraph
    Call resolution and reachability from the entry methods.
icfg
    The supergraph: normal, call-to-return, call and return edges.
constprop
    Value lattice, facts and the intraprocedural constant rules.
interproc_analysis
    The contract between an analysis and the solver.
inter_constprop
    Interprocedural constant propagation.
dataflow_engine
    The worklist fixpoint solver.
config, errors, report
    Configuration, exception hierarchy and result rendering.

Quick start
-----------
>>> from interdataflow import parse_program, analyze, build_icfg
>>> prog = parse_program('''
...     method main() { a = 10; b = id(a); return b; }
...     method id(x) { return x; }
... ''')
>>> result = analyze(prog)

Package layout
--------------
::

    interdataflow/
    ├── __init__.py            ← this file
    ├── __main__.py            ← CLI
    ├── ir.py
    ├── ir_parser.py
    ├── ctrlflow_graph.py
    ├── callgraph.py
    ├── icfg.py
    ├── constprop.py
    ├── interproc_analysis.py
    ├── inter_constprop.py
    ├── dataflow_engine.py
    ├── config.py
    ├── errors.py
    └── report.py
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import Dict, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_import)
# ---------------------------------------------------------------------------

_CORE_MODULES: Dict[str, List[str]] = {
    "errors": [
        "InterDataflowError",
        "IRParseError",
        "ICFGError",
        "ConfigError",
        "SolverDivergenceError",
    ],
    "ir": [
        "Var",
        "BinaryOp",
        "StmtKind",
        "Stmt",
        "Nop",
        "AssignLiteral",
        "Copy",
        "Binary",
        "Invoke",
        "Return",
        "If",
        "Goto",
        "Method",
        "Program",
    ],
    "ir_parser": [
        "parse_program",
        "parse_program_file",
    ],
    "ctrlflow_graph": [
        "CFG",
        "build_cfg",
    ],
    "callgraph": [
        "CallResolutionKind",
        "CallGraphEdge",
        "CallGraph",
        "build_callgraph",
    ],
    "icfg": [
        "EdgeKind",
        "ICFGEdge",
        "NormalEdge",
        "CallToReturnEdge",
        "CallEdge",
        "ReturnEdge",
        "InterproceduralCFG",
        "build_icfg",
    ],
    "dataflow_engine": [
        "WorklistStrategy",
        "SetQueue",
        "DataflowResult",
        "InterSolver",
        "solve",
    ],
    "config": [
        "AnalysisConfig",
    ],
    "constprop": [
        "Value",
        "CPFact",
        "ConstantPropagation",
    ],
    "interproc_analysis": [
        "InterDataflowAnalysis",
        "AbstractInterDataflowAnalysis",
    ],
    "inter_constprop": [
        "InterConstantPropagation",
        "analyze",
    ],
    "report": [
        "print_results",
        "result_to_dict",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    mod = importlib.import_module(f"{__name__}.{module_rel_name}")
    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(
                f"interdataflow.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)
    setattr(current_module, module_rel_name, mod)
    __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names
