"""
interdataflow/ir_parser.py
==========================

Textual front end: parses a small three-address language into an
:class:`~interdataflow.ir.Program`.

Usage::

    from interdataflow.ir_parser import parse_program

    program = parse_program('''
        method main() {
            a = 10;
            b = id(a);
            return b;
        }

        method id(x) {
            return x;
        }
    ''')

Surface syntax
--------------
::

    method NAME(p1, p2, ...) { ITEM* }

    ITEM   := LABEL* STMT
    LABEL  := NAME ":"
    STMT   := x = 42;            x = y;          x = y OP z;
              x = f(a, b);       f(a, b);        return;     return x;
              if a OP b goto L;  goto L;         nop;

    OP     := + - * / % == != < > <= >= << >> & | ^

Integer literals may appear wherever an operand is expected.  Outside of a
plain ``x = 42`` they are lowered into a fresh temporary
(``%intconst0 = 42``) so that every statement reads only variables.

``#`` and ``//`` start a comment that runs to the end of the line.

Depends on:
    - parsimonious (PEG parser)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from interdataflow.errors import ICFGError, IRParseError
from interdataflow.ir import (
    AssignLiteral,
    Binary,
    BinaryOp,
    Copy,
    Goto,
    If,
    Invoke,
    Method,
    Nop,
    Program,
    Return,
    Stmt,
    Var,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  PART 1 — GRAMMAR (Parsimonious PEG)
# ═══════════════════════════════════════════════════════════════════

IR_GRAMMAR = Grammar(r'''
    program         = _ method_decl* eof

    method_decl     = "method" __ ident _ "(" _ param_list? ")" _ "{" _ item* "}" _
    param_list      = ident _ ("," _ ident _)*

    item            = label* stmt
    label           = ident _ ":" _

    stmt            = (return_stmt / if_stmt / goto_stmt / nop_stmt
                       / assign_stmt / call) _ ";" _

    return_stmt     = "return" !word_char (_ operand)?
    if_stmt         = "if" __ operand _ binop _ operand __ "goto" __ ident
    goto_stmt       = "goto" __ ident
    nop_stmt        = "nop" !word_char
    assign_stmt     = ident _ "=" !"=" _ rhs

    rhs             = call / binary / operand
    call            = ident _ "(" _ arg_list? ")"
    arg_list        = operand _ ("," _ operand _)*
    binary          = operand _ binop _ operand

    operand         = literal / ident
    binop           = "==" / "!=" / "<=" / ">=" / "<<" / ">>" / "<" / ">"
                    / "+" / "-" / "*" / "/" / "%" / "&" / "|" / "^"

    ident           = !(keyword !word_char) ~r"[A-Za-z_][A-Za-z0-9_]*"
    keyword         = "method" / "return" / "if" / "goto" / "nop"
    word_char       = ~r"[A-Za-z0-9_]"
    literal         = ~r"-?[0-9]+"
    eof             = !~r"[\s\S]"

    __              = ~r"(\s|#[^\n]*|//[^\n]*)+"
    _               = ~r"(\s|#[^\n]*|//[^\n]*)*"
''')


# ═══════════════════════════════════════════════════════════════════
#  PART 2 — RAW SYNTAX (parse tree → plain records)
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class _Name:
    text: str
    pos: int


@dataclass(frozen=True)
class _Lit:
    value: int
    pos: int


_Operand = Union[_Name, _Lit]


@dataclass
class _RawStmt:
    form: str
    pos: int
    parts: Tuple = ()


@dataclass
class _RawItem:
    labels: List[_Name]
    stmt: _RawStmt


@dataclass
class _RawMethod:
    name: _Name
    params: List[_Name]
    items: List[_RawItem] = field(default_factory=list)


class _IRTreeVisitor(NodeVisitor):
    """Transforms the Parsimonious parse tree into raw records."""

    unwrapped_exceptions = (IRParseError,)

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_program(self, node, visited_children):
        _, methods, _ = visited_children
        return list(methods) if isinstance(methods, list) else []

    def visit_method_decl(self, node, visited_children):
        (_, _, name, _, _, _, params, _, _, _, _, items, _, _) = visited_children
        return _RawMethod(
            name=name,
            params=params[0] if isinstance(params, list) else [],
            items=list(items) if isinstance(items, list) else [],
        )

    def visit_param_list(self, node, visited_children):
        first, _, rest = visited_children
        names = [first]
        if isinstance(rest, list):
            names.extend(group[2] for group in rest)
        return names

    def visit_item(self, node, visited_children):
        labels, stmt = visited_children
        return _RawItem(
            labels=list(labels) if isinstance(labels, list) else [],
            stmt=stmt,
        )

    def visit_label(self, node, visited_children):
        return visited_children[0]

    def visit_stmt(self, node, visited_children):
        body = visited_children[0][0]
        if isinstance(body, tuple):
            # bare call, result discarded
            return _RawStmt("call", node.start, (None, body))
        return body

    def visit_return_stmt(self, node, visited_children):
        _, _, value = visited_children
        operand = value[0][1] if isinstance(value, list) else None
        return _RawStmt("return", node.start, (operand,))

    def visit_if_stmt(self, node, visited_children):
        (_, _, left, _, op, _, right, _, _, _, target) = visited_children
        return _RawStmt("if", node.start, (op, left, right, target))

    def visit_goto_stmt(self, node, visited_children):
        return _RawStmt("goto", node.start, (visited_children[2],))

    def visit_nop_stmt(self, node, visited_children):
        return _RawStmt("nop", node.start)

    def visit_assign_stmt(self, node, visited_children):
        lhs, _, _, _, _, rhs = visited_children
        return _RawStmt("assign", node.start, (lhs, rhs))

    def visit_rhs(self, node, visited_children):
        return visited_children[0]

    def visit_call(self, node, visited_children):
        name, _, _, _, args, _ = visited_children
        return ("call", name, args[0] if isinstance(args, list) else [])

    def visit_arg_list(self, node, visited_children):
        first, _, rest = visited_children
        operands = [first]
        if isinstance(rest, list):
            operands.extend(group[2] for group in rest)
        return operands

    def visit_binary(self, node, visited_children):
        left, _, op, _, right = visited_children
        return ("binary", op, left, right)

    def visit_operand(self, node, visited_children):
        return visited_children[0]

    def visit_binop(self, node, visited_children):
        return BinaryOp(node.text)

    def visit_ident(self, node, visited_children):
        return _Name(node.text, node.start)

    def visit_literal(self, node, visited_children):
        return _Lit(int(node.text), node.start)


# ═══════════════════════════════════════════════════════════════════
#  PART 3 — LOWERING (raw records → ir.Program)
# ═══════════════════════════════════════════════════════════════════

class _MethodLowerer:
    """Lowers one raw method into an :class:`~interdataflow.ir.Method`."""

    TEMP_PREFIX = "%intconst"

    def __init__(self, raw: _RawMethod, source: "_Source") -> None:
        self.raw = raw
        self.source = source
        self.name = raw.name.text
        self.stmts: List[Stmt] = []
        self.labels: Dict[str, int] = {}
        self._temp_counter = 0

    def lower(self) -> Method:
        params = self._lower_params()
        for item in self.raw.items:
            for label in item.labels:
                if label.text in self.labels:
                    raise self.source.error(
                        f"duplicate label {label.text!r} in method {self.name!r}",
                        label.pos,
                    )
                self.labels[label.text] = len(self.stmts)
            self._lower_stmt(item.stmt)
        self._check_jump_targets()
        return Method(
            name=self.name,
            params=params,
            stmts=self.stmts,
            labels=self.labels,
        )

    # ---- helpers -------------------------------------------------------

    def _lower_params(self) -> Tuple[Var, ...]:
        seen: Dict[str, _Name] = {}
        for p in self.raw.params:
            if p.text in seen:
                raise self.source.error(
                    f"duplicate parameter {p.text!r} in method {self.name!r}",
                    p.pos,
                )
            seen[p.text] = p
        return tuple(Var(self.name, p.text) for p in self.raw.params)

    def _var(self, name: _Name) -> Var:
        return Var(self.name, name.text)

    def _emit(self, stmt: Stmt, pos: int) -> Stmt:
        stmt.method = self.name
        stmt.index = len(self.stmts)
        stmt.lineno = self.source.line_of(pos)
        self.stmts.append(stmt)
        return stmt

    def _operand_var(self, operand: _Operand, pos: int) -> Var:
        """Return *operand* as a variable, spilling literals to a temp."""
        if isinstance(operand, _Name):
            return self._var(operand)
        temp = Var(self.name, f"{self.TEMP_PREFIX}{self._temp_counter}")
        self._temp_counter += 1
        self._emit(AssignLiteral(temp, operand.value), pos)
        return temp

    def _lower_stmt(self, raw: _RawStmt) -> None:
        pos = raw.pos
        if raw.form == "nop":
            self._emit(Nop(), pos)
        elif raw.form == "goto":
            (target,) = raw.parts
            self._emit(Goto(target.text), pos)
        elif raw.form == "return":
            (operand,) = raw.parts
            value = None if operand is None else self._operand_var(operand, pos)
            self._emit(Return(value), pos)
        elif raw.form == "if":
            op, left, right, target = raw.parts
            lvar = self._operand_var(left, pos)
            rvar = self._operand_var(right, pos)
            self._emit(If(op, lvar, rvar, target.text), pos)
        elif raw.form == "assign":
            lhs, rhs = raw.parts
            self._lower_assign(self._var(lhs), rhs, pos)
        elif raw.form == "call":
            _, call = raw.parts
            self._lower_call(None, call, pos)
        else:
            raise self.source.error(f"unsupported statement form {raw.form!r}", pos)

    def _lower_assign(self, lvalue: Var, rhs, pos: int) -> None:
        if isinstance(rhs, _Lit):
            self._emit(AssignLiteral(lvalue, rhs.value), pos)
        elif isinstance(rhs, _Name):
            self._emit(Copy(lvalue, self._var(rhs)), pos)
        elif rhs[0] == "binary":
            _, op, left, right = rhs
            lvar = self._operand_var(left, pos)
            rvar = self._operand_var(right, pos)
            self._emit(Binary(lvalue, op, lvar, rvar), pos)
        else:
            self._lower_call(lvalue, rhs, pos)

    def _lower_call(self, result: Optional[Var], call, pos: int) -> None:
        _, callee, operands = call
        args = tuple(self._operand_var(o, pos) for o in operands)
        self._emit(Invoke(callee.text, args, result), pos)

    def _check_jump_targets(self) -> None:
        for stmt in self.stmts:
            target = getattr(stmt, "target", None)
            if isinstance(stmt, (If, Goto)) and target not in self.labels:
                raise IRParseError(
                    f"undefined label {target!r} in method {self.name!r}",
                    filename=self.source.filename,
                    line=stmt.lineno,
                )


class _Source:
    """Source text plus offset → (line, column) translation."""

    def __init__(self, text: str, filename: str) -> None:
        self.text = text
        self.filename = filename

    def line_of(self, pos: int) -> int:
        return self.text.count("\n", 0, pos) + 1

    def column_of(self, pos: int) -> int:
        return pos - (self.text.rfind("\n", 0, pos) + 1) + 1

    def error(self, message: str, pos: int) -> IRParseError:
        return IRParseError(
            message,
            filename=self.filename,
            line=self.line_of(pos),
            column=self.column_of(pos),
        )


# ═══════════════════════════════════════════════════════════════════
#  PART 4 — PUBLIC API
# ═══════════════════════════════════════════════════════════════════

def parse_program(text: str, filename: str = "<string>") -> Program:
    """Parse IR source *text* into a :class:`Program`.

    Raises
    ------
    IRParseError
        On syntax errors, duplicate methods, parameters or labels, and jumps
        to undefined labels.
    """
    source = _Source(text, filename)
    try:
        tree = IR_GRAMMAR.parse(text)
    except ParseError as exc:
        raise IRParseError(
            f"syntax error near {text[exc.pos:exc.pos + 20]!r}",
            filename=filename,
            line=exc.line(),
            column=exc.column(),
        ) from None

    raw_methods: Sequence[_RawMethod] = _IRTreeVisitor().visit(tree)
    program = Program()
    for raw in raw_methods:
        method = _MethodLowerer(raw, source).lower()
        try:
            program.add_method(method)
        except ICFGError as exc:
            raise source.error(str(exc), raw.name.pos) from None
        logger.debug(
            "Parsed method %s: %d params, %d stmts",
            method.name, method.param_count, len(method.stmts),
        )
    return program


def parse_program_file(path: Union[str, Path]) -> Program:
    """Read and parse the IR file at *path*."""
    p = Path(path)
    return parse_program(p.read_text(encoding="utf-8"), filename=str(p))
