"""
interdataflow/ir.py
===================

A small three-address program representation for the analyses.

Every statement is one of a closed set of kinds (:class:`StmtKind`), each
with its own frozen-shape class.  Statements are nodes of the control-flow
graphs, so they hash by *identity*: two textually identical statements at
different program points are different nodes.

Variables are scoped to their method: ``Var("main", "x")`` and
``Var("id", "x")`` are distinct.

Statement forms
---------------
::

    nop                         Nop
    x = 42                      AssignLiteral
    x = y                       Copy
    x = y op z                  Binary
    [x =] callee(a, b, ...)     Invoke       (receiver is optional)
    return [x]                  Return
    if x op y goto L            If
    goto L                      Goto
"""

from __future__ import annotations

import enum
import operator
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from interdataflow.errors import ICFGError


# ═══════════════════════════════════════════════════════════════════════════
#  VARIABLES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Var:
    """A local variable (or parameter) of a method."""

    method: str
    name: str

    def __repr__(self) -> str:
        return self.name


# ═══════════════════════════════════════════════════════════════════════════
#  OPERATORS
# ═══════════════════════════════════════════════════════════════════════════

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1


def wrap_int32(value: int) -> int:
    """Wrap *value* to a signed 32-bit integer."""
    return ((value - INT32_MIN) & 0xFFFFFFFF) + INT32_MIN


def _trunc_div(a: int, b: int) -> int:
    # C-style truncation toward zero
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _trunc_mod(a: int, b: int) -> int:
    return a - b * _trunc_div(a, b)


class BinaryOp(enum.Enum):
    """Binary operators, keyed by their surface symbol."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    REM = "%"
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    SHL = "<<"
    SHR = ">>"
    AND = "&"
    OR = "|"
    XOR = "^"

    @property
    def is_division(self) -> bool:
        return self in (BinaryOp.DIV, BinaryOp.REM)

    @property
    def is_condition(self) -> bool:
        return self in _CONDITION_OPS

    def apply(self, a: int, b: int) -> int:
        """Fold the operator over two concrete integers.

        Values are 32-bit two's-complement integers: operands and results
        wrap to that width and shift counts are masked to five bits.
        Comparisons yield ``1``/``0``.  Callers must rule out a zero divisor
        for :attr:`DIV` and :attr:`REM`.
        """
        return wrap_int32(int(_FOLDERS[self](wrap_int32(a), wrap_int32(b))))


_CONDITION_OPS = frozenset({
    BinaryOp.EQ, BinaryOp.NE, BinaryOp.LT,
    BinaryOp.GT, BinaryOp.LE, BinaryOp.GE,
})

_FOLDERS: Dict[BinaryOp, Callable[[int, int], int]] = {
    BinaryOp.ADD: operator.add,
    BinaryOp.SUB: operator.sub,
    BinaryOp.MUL: operator.mul,
    BinaryOp.DIV: _trunc_div,
    BinaryOp.REM: _trunc_mod,
    BinaryOp.EQ: operator.eq,
    BinaryOp.NE: operator.ne,
    BinaryOp.LT: operator.lt,
    BinaryOp.GT: operator.gt,
    BinaryOp.LE: operator.le,
    BinaryOp.GE: operator.ge,
    BinaryOp.SHL: lambda a, b: a << (b & 31),
    BinaryOp.SHR: lambda a, b: a >> (b & 31),
    BinaryOp.AND: operator.and_,
    BinaryOp.OR: operator.or_,
    BinaryOp.XOR: operator.xor,
}


# ═══════════════════════════════════════════════════════════════════════════
#  STATEMENTS
# ═══════════════════════════════════════════════════════════════════════════

class StmtKind(enum.Enum):
    NOP = enum.auto()
    ASSIGN_LITERAL = enum.auto()
    COPY = enum.auto()
    BINARY = enum.auto()
    INVOKE = enum.auto()
    RETURN = enum.auto()
    IF = enum.auto()
    GOTO = enum.auto()


@dataclass(eq=False)
class Stmt:
    """Base class of all statements.

    Attributes
    ----------
    method : str
        Name of the method the statement belongs to.
    index : int
        Position inside the method body (``-1`` for synthetic nodes).
    lineno : int
        Source line, ``0`` when unknown.
    """

    method: str = field(default="", kw_only=True)
    index: int = field(default=-1, kw_only=True)
    lineno: int = field(default=0, kw_only=True)

    kind = StmtKind.NOP

    def get_def(self) -> Optional[Var]:
        """The variable this statement assigns, if any."""
        return None

    def get_uses(self) -> Tuple[Var, ...]:
        """Variables read by this statement."""
        return ()

    def is_call_site(self) -> bool:
        return self.kind is StmtKind.INVOKE

    def __str__(self) -> str:
        return self.kind.name.lower()

    def __repr__(self) -> str:
        return f"{self.method}[{self.index}@L{self.lineno}] {self}"


@dataclass(eq=False, repr=False)
class Nop(Stmt):
    """No-op.  Also used for the synthetic entry/exit nodes of a CFG."""

    label: str = "nop"

    def __str__(self) -> str:
        return self.label


@dataclass(eq=False, repr=False)
class AssignLiteral(Stmt):
    lvalue: Var
    value: int

    kind = StmtKind.ASSIGN_LITERAL

    def get_def(self) -> Optional[Var]:
        return self.lvalue

    def __str__(self) -> str:
        return f"{self.lvalue} = {self.value}"


@dataclass(eq=False, repr=False)
class Copy(Stmt):
    lvalue: Var
    rvalue: Var

    kind = StmtKind.COPY

    def get_def(self) -> Optional[Var]:
        return self.lvalue

    def get_uses(self) -> Tuple[Var, ...]:
        return (self.rvalue,)

    def __str__(self) -> str:
        return f"{self.lvalue} = {self.rvalue}"


@dataclass(eq=False, repr=False)
class Binary(Stmt):
    lvalue: Var
    op: BinaryOp
    left: Var
    right: Var

    kind = StmtKind.BINARY

    def get_def(self) -> Optional[Var]:
        return self.lvalue

    def get_uses(self) -> Tuple[Var, ...]:
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"{self.lvalue} = {self.left} {self.op.value} {self.right}"


@dataclass(eq=False, repr=False)
class Invoke(Stmt):
    """A static call ``[result =] callee(args...)``.

    ``result`` is ``None`` when the return value is discarded.
    """

    callee_name: str
    args: Tuple[Var, ...] = ()
    result: Optional[Var] = None

    kind = StmtKind.INVOKE

    @property
    def arg_count(self) -> int:
        return len(self.args)

    def get_arg(self, i: int) -> Var:
        return self.args[i]

    def get_def(self) -> Optional[Var]:
        return self.result

    def get_uses(self) -> Tuple[Var, ...]:
        return tuple(self.args)

    def __str__(self) -> str:
        call = f"{self.callee_name}({', '.join(map(repr, self.args))})"
        return call if self.result is None else f"{self.result} = {call}"


@dataclass(eq=False, repr=False)
class Return(Stmt):
    value: Optional[Var] = None

    kind = StmtKind.RETURN

    def get_uses(self) -> Tuple[Var, ...]:
        return () if self.value is None else (self.value,)

    def __str__(self) -> str:
        return "return" if self.value is None else f"return {self.value}"


@dataclass(eq=False, repr=False)
class If(Stmt):
    op: BinaryOp
    left: Var
    right: Var
    target: str

    kind = StmtKind.IF

    def get_uses(self) -> Tuple[Var, ...]:
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"if {self.left} {self.op.value} {self.right} goto {self.target}"


@dataclass(eq=False, repr=False)
class Goto(Stmt):
    target: str

    kind = StmtKind.GOTO

    def __str__(self) -> str:
        return f"goto {self.target}"


# ═══════════════════════════════════════════════════════════════════════════
#  METHODS / PROGRAM
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class Method:
    """A procedure: parameters, a statement list and its jump labels.

    ``labels`` maps a label name to the index of the statement it marks.
    """

    name: str
    params: Tuple[Var, ...] = ()
    stmts: List[Stmt] = field(default_factory=list)
    labels: Dict[str, int] = field(default_factory=dict)

    @property
    def param_count(self) -> int:
        return len(self.params)

    def get_param(self, i: int) -> Var:
        return self.params[i]

    @property
    def return_vars(self) -> Tuple[Var, ...]:
        """Variables returned by any ``return x`` in the body, in order."""
        seen: Dict[Var, None] = {}
        for stmt in self.stmts:
            if isinstance(stmt, Return) and stmt.value is not None:
                seen.setdefault(stmt.value, None)
        return tuple(seen)

    def call_sites(self) -> Iterator[Invoke]:
        for stmt in self.stmts:
            if isinstance(stmt, Invoke):
                yield stmt

    def label_target(self, label: str) -> int:
        try:
            return self.labels[label]
        except KeyError:
            raise ICFGError(
                f"method {self.name!r} jumps to undefined label {label!r}"
            ) from None

    def __repr__(self) -> str:
        params = ", ".join(p.name for p in self.params)
        return f"<Method {self.name}({params}) stmts={len(self.stmts)}>"


class Program:
    """An ordered collection of uniquely named methods."""

    def __init__(self, methods: Iterable[Method] = ()) -> None:
        self._methods: Dict[str, Method] = {}
        for m in methods:
            self.add_method(m)

    def add_method(self, method: Method) -> None:
        if method.name in self._methods:
            raise ICFGError(f"duplicate method {method.name!r}")
        self._methods[method.name] = method

    def get_method(self, name: str) -> Optional[Method]:
        return self._methods.get(name)

    def __getitem__(self, name: str) -> Method:
        return self._methods[name]

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __iter__(self) -> Iterator[Method]:
        return iter(self._methods.values())

    def __len__(self) -> int:
        return len(self._methods)

    def __repr__(self) -> str:
        return f"Program(methods={list(self._methods)})"
