# tests/conftest.py
"""
Shared fixtures, IR sources and helpers for the interdataflow test suite.
"""

from typing import Iterable, Optional, Tuple

import pytest

from interdataflow.config import AnalysisConfig
from interdataflow.constprop import CPFact, Value
from interdataflow.dataflow_engine import DataflowResult, InterSolver, WorklistStrategy
from interdataflow.icfg import InterproceduralCFG, build_icfg
from interdataflow.inter_constprop import InterConstantPropagation
from interdataflow.ir import Program, Stmt, Var
from interdataflow.ir_parser import parse_program


# ═══════════════════════════════════════════════════════════════════════════
#  IR SOURCES
# ═══════════════════════════════════════════════════════════════════════════

ID_PROG = """\
method main() {
    a = 10;
    b = id(a);
    return b;
}

method id(x) {
    return x;
}
"""

CONTEXT_DIFFERENT_PROG = """\
method main() {
    a = f(2);
    b = f(3);
    return a;
}

method f(p) {
    return p;
}
"""

CONTEXT_SAME_PROG = """\
method main() {
    a = f(2);
    b = f(2);
    return a;
}

method f(p) {
    return p;
}
"""

RETURN_SAME_PROG = """\
method main() {
    r = g(1);
    return r;
}

method g(c) {
    if c > 0 goto pos;
    x = 3;
    return x;
pos:
    y = 3;
    return y;
}
"""

RETURN_DIFFERENT_PROG = RETURN_SAME_PROG.replace("y = 3;", "y = 4;")

LOOP_PROG = """\
method main() {
    i = 0;
    n = 10;
loop:
    if i >= n goto done;
    i = i + 1;
    goto loop;
done:
    return i;
}
"""

RECURSIVE_PROG = """\
method main() {
    r = fact(5);
    return r;
}

method fact(n) {
    if n <= 1 goto base;
    m = n - 1;
    t = fact(m);
    s = n * t;
    return s;
base:
    one = 1;
    return one;
}
"""

ARITY_PROG = """\
method main() {
    a = 1;
    b = 2;
    r = one(a, b);
    s = two(a);
    return r;
}

method one(p) {
    return p;
}

method two(p, q) {
    return q;
}
"""

NO_RECEIVER_PROG = """\
method main() {
    a = 7;
    sink(a);
    return a;
}

method sink(v) {
    w = v + 1;
    return w;
}
"""

UNRESOLVED_PROG = """\
method main() {
    a = 1;
    r = external(a);
    return r;
}
"""

# a larger mix used for strategy / idempotence checks
MIXED_PROG = """\
# entry point
method main(arg) {
    a = 6;
    b = 7;
    c = mul(a, b);        // 42
    d = mul(arg, b);      // NAC
    e = pick(c);
    if e == 42 goto out;
    nop;
out:
    return e;
}

method mul(x, y) {
    z = x * y;
    return z;
}

method pick(v) {
    k = v / 2;
    k = k * 2;
    return k;
}
"""

# unknown dividend over a divisor that only becomes 0 once the call returns
DIV_BY_CALL_PROG = """\
method main(p) {
    z = zero();
    q = p / z;
    m = p % z;
    return q;
}

method zero() {
    r = 0;
    return r;
}
"""

ALL_PROGRAMS = (
    ID_PROG,
    DIV_BY_CALL_PROG,
    CONTEXT_DIFFERENT_PROG,
    CONTEXT_SAME_PROG,
    RETURN_SAME_PROG,
    RETURN_DIFFERENT_PROG,
    LOOP_PROG,
    RECURSIVE_PROG,
    ARITY_PROG,
    NO_RECEIVER_PROG,
    MIXED_PROG,
)


# ═══════════════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def build(source: str, entries: Iterable[str] = ("main",)) -> Tuple[Program, InterproceduralCFG]:
    """Parse *source* and build its ICFG."""
    program = parse_program(source)
    return program, build_icfg(program, tuple(entries))


def solve_source(
    source: str,
    entries: Iterable[str] = ("main",),
    strategy: WorklistStrategy = WorklistStrategy.FIFO,
    config: Optional[AnalysisConfig] = None,
) -> Tuple[Program, InterproceduralCFG, DataflowResult]:
    """Parse, build and solve *source* with interprocedural constant propagation."""
    program, icfg = build(source, entries)
    analysis = InterConstantPropagation(config)
    result = InterSolver(analysis, icfg, strategy=strategy).solve()
    return program, icfg, result


def stmt(program: Program, method: str, text: str) -> Stmt:
    """Find the unique statement of *method* whose ``str()`` is *text*."""
    matches = [s for s in program[method].stmts if str(s) == text]
    assert len(matches) == 1, f"{text!r} matched {len(matches)} statements in {method}"
    return matches[0]


def var(method: str, name: str) -> Var:
    return Var(method, name)


def fact(method: str, **values: int) -> CPFact:
    """Build a fact for *method* from keyword constants."""
    return CPFact({Var(method, k): Value.lift(v) for k, v in values.items()})


def same_facts(icfg: InterproceduralCFG, r1: DataflowResult, r2: DataflowResult) -> bool:
    return all(
        r1.get_in_fact(n) == r2.get_in_fact(n) and r1.get_out_fact(n) == r2.get_out_fact(n)
        for n in icfg.nodes()
    )


# ═══════════════════════════════════════════════════════════════════════════
#  FIXTURES
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def id_program():
    return build(ID_PROG)


@pytest.fixture
def analysis():
    return InterConstantPropagation()


@pytest.fixture
def ir_file(tmp_path):
    """Write ID_PROG to a temporary file and return its path."""
    path = tmp_path / "prog.ir"
    path.write_text(ID_PROG, encoding="utf-8")
    return path
