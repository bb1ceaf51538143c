# tests/test_constprop.py
"""
Tests for the value lattice, CPFact and the intraprocedural constant
propagation rules.
"""

import pytest

from interdataflow.constprop import ConstantPropagation, CPFact, Value
from interdataflow.ir import Binary, BinaryOp, Copy, AssignLiteral, Invoke, Nop, Var
from interdataflow.ir_parser import parse_program
from tests.conftest import fact

UNDEF = Value.undef()
NAC = Value.nac()

X = Var("m", "x")
Y = Var("m", "y")
Z = Var("m", "z")


# ── Value lattice ────────────────────────────────────────────────

class TestValue:
    def test_singletons(self):
        assert Value.undef() is Value.undef()
        assert Value.nac() is Value.nac()

    def test_predicates(self):
        assert UNDEF.is_undef() and not UNDEF.is_constant()
        assert NAC.is_nac() and not NAC.is_constant()
        assert Value.lift(0).is_constant()
        assert Value.lift(3).concrete_value() == 3
        assert NAC.concrete_value() is None

    def test_constants_compare_by_value(self):
        assert Value.lift(3) == Value.lift(3)
        assert Value.lift(3) != Value.lift(4)
        assert Value.lift(0) != UNDEF

    @pytest.mark.parametrize("a, b, expected", [
        (UNDEF, UNDEF, UNDEF),
        (UNDEF, Value.lift(7), Value.lift(7)),
        (Value.lift(7), UNDEF, Value.lift(7)),
        (Value.lift(3), Value.lift(3), Value.lift(3)),
        (Value.lift(3), Value.lift(4), NAC),
        (NAC, UNDEF, NAC),
        (UNDEF, NAC, NAC),
        (NAC, Value.lift(1), NAC),
    ])
    def test_meet(self, a, b, expected):
        assert a.meet(b) == expected
        assert b.meet(a) == expected

    def test_meet_is_upper_bound(self):
        values = [UNDEF, NAC, Value.lift(-1), Value.lift(0), Value.lift(5)]
        for a in values:
            for b in values:
                m = a.meet(b)
                assert a.leq(m) and b.leq(m)

    def test_order(self):
        assert UNDEF.leq(Value.lift(1))
        assert Value.lift(1).leq(NAC)
        assert UNDEF.leq(NAC)
        assert not NAC.leq(Value.lift(1))
        assert not Value.lift(1).leq(Value.lift(2))
        assert not Value.lift(1).leq(UNDEF)

    def test_repr(self):
        assert repr(UNDEF) == "UNDEF"
        assert repr(NAC) == "NAC"
        assert repr(Value.lift(-4)) == "-4"


# ── Facts ────────────────────────────────────────────────────────

class TestCPFact:
    def test_absent_reads_undef(self):
        assert CPFact().get(X) is UNDEF

    def test_update_reports_change(self):
        f = CPFact()
        assert f.update(X, Value.lift(1)) is True
        assert f.update(X, Value.lift(1)) is False
        assert f.update(X, NAC) is True

    def test_update_to_undef_removes(self):
        f = CPFact({X: Value.lift(1)})
        assert f.update(X, UNDEF) is True
        assert X not in f
        assert f.update(X, UNDEF) is False

    def test_constructor_drops_undef(self):
        f = CPFact({X: UNDEF, Y: Value.lift(2)})
        assert len(f) == 1

    def test_copy_is_independent(self):
        f = CPFact({X: Value.lift(1)})
        g = f.copy()
        g.update(X, NAC)
        assert f.get(X) == Value.lift(1)

    def test_copy_from_is_keywise(self):
        target = CPFact({X: Value.lift(1), Y: Value.lift(2)})
        changed = target.copy_from(CPFact({Y: Value.lift(3), Z: NAC}))
        assert changed
        assert target == CPFact({X: Value.lift(1), Y: Value.lift(3), Z: NAC})
        assert target.copy_from(CPFact({Y: Value.lift(3)})) is False

    def test_equality(self):
        assert CPFact() == CPFact()
        assert CPFact({X: Value.lift(1)}) != CPFact({X: Value.lift(2)})
        assert CPFact({X: UNDEF}) == CPFact()

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(CPFact())

    def test_leq(self):
        low = CPFact({X: Value.lift(1)})
        high = CPFact({X: NAC, Y: Value.lift(2)})
        assert low.leq(high)
        assert not high.leq(low)
        assert CPFact().leq(low)

    def test_remove(self):
        f = CPFact({X: Value.lift(1)})
        assert f.remove(X) == Value.lift(1)
        assert f.remove(X) is None

    def test_repr_sorted(self):
        f = CPFact({Y: Value.lift(2), X: NAC})
        assert repr(f) == "{x=NAC, y=2}"


# ── Intraprocedural rules ────────────────────────────────────────

class TestConstantPropagation:
    def setup_method(self):
        self.cp = ConstantPropagation()

    def test_boundary_marks_params_nac(self):
        method = parse_program("method m(x, y) { return x; }")["m"]
        boundary = self.cp.new_boundary_fact(method)
        assert boundary == CPFact({X: NAC, Y: NAC})

    def test_initial_fact_empty(self):
        assert len(self.cp.new_initial_fact()) == 0

    def test_meet_into(self):
        target = CPFact({X: Value.lift(1), Y: Value.lift(2)})
        changed = self.cp.meet_into(CPFact({X: Value.lift(1), Y: Value.lift(3), Z: Value.lift(4)}), target)
        assert changed
        assert target == CPFact({X: Value.lift(1), Y: NAC, Z: Value.lift(4)})
        assert self.cp.meet_into(CPFact({X: Value.lift(1)}), target) is False

    def test_meet_into_empty_is_noop(self):
        target = CPFact({X: Value.lift(1)})
        assert self.cp.meet_into(CPFact(), target) is False

    def test_evaluate_literal_and_copy(self):
        in_fact = CPFact({Y: Value.lift(5)})
        assert self.cp.evaluate(AssignLiteral(X, 9), in_fact) == Value.lift(9)
        assert self.cp.evaluate(Copy(X, Y), in_fact) == Value.lift(5)
        assert self.cp.evaluate(Copy(X, Z), in_fact) is UNDEF

    @pytest.mark.parametrize("y, z, op, expected", [
        (Value.lift(6), Value.lift(3), BinaryOp.ADD, Value.lift(9)),
        (Value.lift(6), Value.lift(3), BinaryOp.DIV, Value.lift(2)),
        (Value.lift(6), Value.lift(3), BinaryOp.GT, Value.lift(1)),
        (Value.lift(6), NAC, BinaryOp.MUL, NAC),
        (NAC, UNDEF, BinaryOp.ADD, NAC),
        (UNDEF, Value.lift(3), BinaryOp.ADD, UNDEF),
        (UNDEF, UNDEF, BinaryOp.SUB, UNDEF),
        (Value.lift(6), Value.lift(0), BinaryOp.DIV, UNDEF),
        (Value.lift(6), Value.lift(0), BinaryOp.REM, UNDEF),
        (NAC, Value.lift(0), BinaryOp.DIV, NAC),
        (NAC, Value.lift(0), BinaryOp.REM, NAC),
        (UNDEF, Value.lift(0), BinaryOp.DIV, UNDEF),
        (NAC, Value.lift(0), BinaryOp.MUL, NAC),
        (Value.lift(1 << 30), Value.lift(4), BinaryOp.MUL, Value.lift(0)),
        (Value.lift(2147483647), Value.lift(1), BinaryOp.ADD, Value.lift(-2147483648)),
    ])
    def test_evaluate_binary(self, y, z, op, expected):
        in_fact = CPFact({Y: y, Z: z})
        assert self.cp.evaluate(Binary(X, op, Y, Z), in_fact) == expected

    @pytest.mark.parametrize("op", [BinaryOp.DIV, BinaryOp.REM])
    def test_nac_dividend_ignores_divisor(self, op):
        stmt = Binary(X, op, Y, Z)
        by_undef = self.cp.evaluate(stmt, CPFact({Y: NAC}))
        by_zero = self.cp.evaluate(stmt, CPFact({Y: NAC, Z: Value.lift(0)}))
        assert by_undef is NAC
        assert by_zero is NAC

    @pytest.mark.parametrize("op", list(BinaryOp))
    def test_evaluate_binary_is_monotone(self, op):
        chain = [UNDEF, Value.lift(0), NAC]
        operands = [UNDEF, Value.lift(0), Value.lift(3), NAC]
        for other in operands:
            for lower, higher in zip(chain, chain[1:]):
                for y_lo, z_lo, y_hi, z_hi in (
                    (lower, other, higher, other),
                    (other, lower, other, higher),
                ):
                    low = self.cp.evaluate(Binary(X, op, Y, Z), CPFact({Y: y_lo, Z: z_lo}))
                    high = self.cp.evaluate(Binary(X, op, Y, Z), CPFact({Y: y_hi, Z: z_hi}))
                    assert low.leq(high), f"{y_lo} {op.value} {z_lo} -> {low}, " \
                                          f"{y_hi} {op.value} {z_hi} -> {high}"

    def test_literal_wraps_to_int32(self):
        assert self.cp.evaluate(AssignLiteral(X, 1 << 32), CPFact()) == Value.lift(0)

    def test_evaluate_call_is_nac(self):
        assert self.cp.evaluate(Invoke("f", (), X), CPFact()) is NAC

    def test_transfer_no_def_copies(self):
        in_fact = CPFact({X: Value.lift(1)})
        out_fact = CPFact()
        assert self.cp.transfer_node(Nop(), in_fact, out_fact) is True
        assert out_fact == in_fact
        assert self.cp.transfer_node(Nop(), in_fact, out_fact) is False

    def test_transfer_overwrites_def(self):
        in_fact = CPFact({X: Value.lift(1), Y: Value.lift(2)})
        out_fact = CPFact()
        self.cp.transfer_node(AssignLiteral(X, 7), in_fact, out_fact)
        assert out_fact == CPFact({X: Value.lift(7), Y: Value.lift(2)})
        # the input fact is not modified
        assert in_fact.get(X) == Value.lift(1)

    def test_transfer_reports_stable_output(self):
        in_fact = CPFact({Y: Value.lift(2)})
        out_fact = CPFact()
        stmt = Binary(X, BinaryOp.MUL, Y, Y)
        assert self.cp.transfer_node(stmt, in_fact, out_fact) is True
        assert self.cp.transfer_node(stmt, in_fact, out_fact) is False
        assert out_fact.get(X) == Value.lift(4)

    def test_fact_helper(self):
        assert fact("m", x=1) == CPFact({X: Value.lift(1)})
