"""
interdataflow/constprop.py
==========================

Integer constant propagation: the value lattice, the per-point fact, and
the intraprocedural transfer rules.

Value lattice
-------------
::

                 NAC                 not a constant
          /   /   |   \\   \\
      …  -1   0   1   2  …           Constant(c)
          \\   \\   |   /   /
                UNDEF                no value seen yet

The analysis moves *up* this lattice: ``meet`` of two different constants
is ``NAC``, and ``UNDEF`` is the neutral element.

Facts
-----
:class:`CPFact` maps variables to values.  ``UNDEF`` is never stored: an
absent key reads as ``UNDEF`` and updating a key to ``UNDEF`` removes it.

Intraprocedural rules
---------------------
``x = c``           x ← Constant(c)
``x = y``           x ← in[y]
``x = y op z``      see :meth:`ConstantPropagation.evaluate`
``x = f(...)``      x ← NAC  (only when used without call edges)
anything else       out ← in
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from interdataflow.ir import (
    AssignLiteral,
    Binary,
    Copy,
    Method,
    Stmt,
    Var,
    wrap_int32,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  VALUE LATTICE
# ═══════════════════════════════════════════════════════════════════════════

class ValueKind(enum.Enum):
    UNDEF = "undef"
    CONSTANT = "constant"
    NAC = "nac"


@dataclass(frozen=True)
class Value:
    """An element of the flat constant lattice.

    Use :meth:`undef`, :meth:`nac` and :meth:`lift` rather than the
    constructor.

    Examples
    --------
    >>> Value.lift(3).meet(Value.lift(3))
    3
    >>> Value.lift(3).meet(Value.lift(4))
    NAC
    >>> Value.undef().meet(Value.lift(7))
    7
    """

    kind: ValueKind
    constant: int = 0

    @classmethod
    def undef(cls) -> "Value":
        return _UNDEF

    @classmethod
    def nac(cls) -> "Value":
        return _NAC

    @classmethod
    def lift(cls, c: int) -> "Value":
        return cls(ValueKind.CONSTANT, c)

    def is_undef(self) -> bool:
        return self.kind is ValueKind.UNDEF

    def is_nac(self) -> bool:
        return self.kind is ValueKind.NAC

    def is_constant(self) -> bool:
        return self.kind is ValueKind.CONSTANT

    def concrete_value(self) -> Optional[int]:
        return self.constant if self.kind is ValueKind.CONSTANT else None

    def meet(self, other: "Value") -> "Value":
        if self.is_nac() or other.is_nac():
            return _NAC
        if self.is_undef():
            return other
        if other.is_undef():
            return self
        return self if self.constant == other.constant else _NAC

    def leq(self, other: "Value") -> bool:
        """``self ⊑ other`` in the order UNDEF ⊑ Constant ⊑ NAC."""
        if self.is_undef() or other.is_nac():
            return True
        if self.is_nac() or other.is_undef():
            return False
        return self.constant == other.constant

    def __repr__(self) -> str:
        if self.kind is ValueKind.UNDEF:
            return "UNDEF"
        if self.kind is ValueKind.NAC:
            return "NAC"
        return str(self.constant)


_UNDEF = Value(ValueKind.UNDEF)
_NAC = Value(ValueKind.NAC)


# ═══════════════════════════════════════════════════════════════════════════
#  FACTS
# ═══════════════════════════════════════════════════════════════════════════

class CPFact:
    """A mutable mapping ``Var → Value`` with ``UNDEF`` as the default."""

    __slots__ = ("_map",)

    def __init__(self, mapping: Optional[Dict[Var, Value]] = None) -> None:
        self._map: Dict[Var, Value] = {}
        if mapping:
            for k, v in mapping.items():
                self.update(k, v)

    def get(self, key: Var) -> Value:
        return self._map.get(key, _UNDEF)

    def update(self, key: Var, value: Value) -> bool:
        """Set *key* to *value*; ``UNDEF`` removes the key.

        Returns ``True`` if the fact changed.
        """
        if value.is_undef():
            return self._map.pop(key, None) is not None
        old = self._map.get(key)
        self._map[key] = value
        return old != value

    def remove(self, key: Var) -> Optional[Value]:
        return self._map.pop(key, None)

    def copy(self) -> "CPFact":
        fact = CPFact()
        fact._map = dict(self._map)
        return fact

    def copy_from(self, other: "CPFact") -> bool:
        """Update key-wise from *other*.  Keys absent from *other* are kept.

        Returns ``True`` if this fact changed.
        """
        changed = False
        for key, value in other._map.items():
            changed |= self.update(key, value)
        return changed

    def leq(self, other: "CPFact") -> bool:
        return all(v.leq(other.get(k)) for k, v in self._map.items())

    def items(self) -> Iterator[Tuple[Var, Value]]:
        return iter(self._map.items())

    def __iter__(self) -> Iterator[Var]:
        return iter(self._map)

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, key: object) -> bool:
        return key in self._map

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CPFact):
            return self._map == other._map
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        body = ", ".join(
            f"{k!r}={v!r}" for k, v in sorted(self._map.items(), key=lambda kv: kv[0].name)
        )
        return "{" + body + "}"


# ═══════════════════════════════════════════════════════════════════════════
#  INTRAPROCEDURAL CONSTANT PROPAGATION
# ═══════════════════════════════════════════════════════════════════════════
#
#  Direction:   FORWARD
#  Confluence:  MEET over the flat lattice
#  Boundary:    every parameter of the method is NAC
# ═══════════════════════════════════════════════════════════════════════════

class ConstantPropagation:
    """Intraprocedural rule set for integer constant propagation."""

    ID = "constprop"

    def is_forward(self) -> bool:
        return True

    def new_boundary_fact(self, method: Method) -> CPFact:
        fact = CPFact()
        for p in method.params:
            fact.update(p, _NAC)
        return fact

    def new_initial_fact(self) -> CPFact:
        return CPFact()

    def meet_into(self, fact: CPFact, target: CPFact) -> bool:
        """Meet *fact* into *target* in place.  Returns ``True`` on change."""
        changed = False
        for var, value in fact.items():
            changed |= target.update(var, self.meet_value(value, target.get(var)))
        return changed

    def meet_value(self, v1: Value, v2: Value) -> Value:
        return v1.meet(v2)

    def transfer_node(self, stmt: Stmt, in_fact: CPFact, out_fact: CPFact) -> bool:
        lvalue = stmt.get_def()
        if lvalue is None:
            return out_fact.copy_from(in_fact)
        new_out = in_fact.copy()
        new_out.update(lvalue, self.evaluate(stmt, in_fact))
        return out_fact.copy_from(new_out)

    def evaluate(self, stmt: Stmt, in_fact: CPFact) -> Value:
        """Abstract value of the right-hand side of *stmt* under *in_fact*."""
        if isinstance(stmt, AssignLiteral):
            return Value.lift(wrap_int32(stmt.value))
        if isinstance(stmt, Copy):
            return in_fact.get(stmt.rvalue)
        if isinstance(stmt, Binary):
            return self._evaluate_binary(stmt, in_fact)
        # call results, when no call edges supply them
        return _NAC

    def _evaluate_binary(self, stmt: Binary, in_fact: CPFact) -> Value:
        v1 = in_fact.get(stmt.left)
        v2 = in_fact.get(stmt.right)
        # NAC wins over a zero divisor so the rule stays monotone
        if v1.is_nac() or v2.is_nac():
            return _NAC
        if stmt.op.is_division and v2.is_constant() and v2.constant == 0:
            # division by zero is undefined behaviour
            return _UNDEF
        if v1.is_constant() and v2.is_constant():
            return Value.lift(stmt.op.apply(v1.constant, v2.constant))
        return _UNDEF
