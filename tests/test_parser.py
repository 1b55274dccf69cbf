"""Parser tests: statement forms, precedence ladder, positions and syntax errors."""

import pytest

from minipython import compile as compile_source
from minipython.errors import MiniPySyntaxError
from minipython.lexer import Lexer
from minipython.minipy_ast import (
    Assignment, AugmentedAssignment, IndexedAssignment, MemberAssignment,
    ExpressionStatement, IfStatement, RepeatStatement, WhileStatement,
    ForStatement, ForEachStatement, FunctionDef, ClassDef, ReturnStatement,
    BreakStatement, PassStatement, NumberLiteral, StringLiteral, Identifier,
    BinaryOp, UnaryOp, CallExpression, ArrayLiteral, ObjectLiteral,
    IndexAccess, SliceAccess, MemberAccess, MethodCall, dump, walk,
)
from minipython.parser import Parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _body(source):
    return compile_source(source).body


def _expr(source):
    """Parse a single expression statement and return its expression."""
    stmt = _body(source + "\n")[0]
    assert isinstance(stmt, ExpressionStatement)
    return stmt.expression


def _syntax_error(source):
    with pytest.raises(MiniPySyntaxError) as exc:
        compile_source(source)
    return exc.value


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class TestStatements:

    def test_assignment_forms(self):
        body = _body("x = 1\nx += 2\nitems[0] = 5\nself.name = 'a'\nprint(x)\n")
        assert [type(s) for s in body] == [
            Assignment, AugmentedAssignment, IndexedAssignment, MemberAssignment, ExpressionStatement,
        ]
        assert body[1].operator == "+="
        assert body[3].property == "name"

    def test_if_elif_else(self):
        source = (
            "if x > 1:\n"
            "    a = 1\n"
            "elif x > 0:\n"
            "    a = 2\n"
            "else:\n"
            "    a = 3\n"
        )
        stmt = _body(source)[0]
        assert isinstance(stmt, IfStatement)
        assert len(stmt.consequent) == 1
        assert len(stmt.elif_branches) == 1
        assert stmt.elif_branches[0].line == 3
        assert len(stmt.alternate) == 1

    def test_repeat(self):
        stmt = _body("repeat 3 times:\n    pass\n")[0]
        assert isinstance(stmt, RepeatStatement)
        assert stmt.count.value == 3
        assert isinstance(stmt.body[0], PassStatement)

    def test_chinese_repeat_and_while(self):
        body = _body("重复 2 次:\n    跳过\n当 x < 3 时:\n    x += 1\n")
        assert isinstance(body[0], RepeatStatement)
        assert isinstance(body[1], WhileStatement)

    @pytest.mark.parametrize("source,start,end,step", [
        ("for i in range(5):\n    pass\n", 0, 5, None),
        ("for i in range(2, 5):\n    pass\n", 2, 5, None),
        ("for i in range(10, 0, 2):\n    pass\n", 10, 0, 2),
    ])
    def test_range_loops(self, source, start, end, step):
        stmt = _body(source)[0]
        assert isinstance(stmt, ForStatement)
        assert stmt.variable == "i"
        assert stmt.start.value == start
        assert stmt.end.value == end
        if step is None:
            assert stmt.step is None
        else:
            assert stmt.step.value == step

    def test_for_each(self):
        stmt = _body("for c in 'abc':\n    print(c)\n")[0]
        assert isinstance(stmt, ForEachStatement)
        assert isinstance(stmt.iterable, StringLiteral)

    def test_function_and_class(self):
        source = (
            "def add(a, b):\n"
            "    return a + b\n"
            "class Dog:\n"
            "    def __init__(self, name):\n"
            "        self.name = name\n"
            "    def bark(self):\n"
            "        return 'woof'\n"
        )
        fn, cls = _body(source)
        assert isinstance(fn, FunctionDef)
        assert fn.params == ["a", "b"]
        assert isinstance(fn.body[0], ReturnStatement)
        assert isinstance(cls, ClassDef)
        assert [m.name for m in cls.methods] == ["__init__", "bark"]

    def test_bare_return(self):
        fn = _body("def f():\n    return\n")[0]
        assert fn.body[0].value is None

    def test_break_inside_loop(self):
        stmt = _body("while True:\n    break\n")[0]
        assert isinstance(stmt.body[0], BreakStatement)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

class TestExpressions:

    def test_term_binds_tighter_than_additive(self):
        expr = _expr("1 + 2 * 3")
        assert expr.operator == "+"
        assert expr.right.operator == "*"

    def test_power_is_right_associative(self):
        expr = _expr("2 ** 3 ** 2")
        assert expr.operator == "**"
        assert isinstance(expr.left, NumberLiteral)
        assert expr.right.operator == "**"

    def test_unary_minus_wraps_power(self):
        expr = _expr("-2 ** 2")
        assert isinstance(expr, UnaryOp)
        assert expr.operand.operator == "**"

    def test_power_exponent_may_be_negative(self):
        expr = _expr("2 ** -1")
        assert expr.operator == "**"
        assert isinstance(expr.right, UnaryOp)

    def test_not_binds_looser_than_comparison(self):
        expr = _expr("not a == b")
        assert isinstance(expr, UnaryOp)
        assert expr.operand.operator == "=="

    def test_and_binds_tighter_than_or(self):
        expr = _expr("a or b and c")
        assert expr.operator == "or"
        assert expr.right.operator == "and"

    def test_in_is_a_comparison(self):
        assert _expr("x in items").operator == "in"

    def test_parentheses(self):
        expr = _expr("(1 + 2) * 3")
        assert expr.operator == "*"
        assert expr.left.operator == "+"

    def test_postfix_chain(self):
        expr = _expr("obj.items[0].name")
        assert isinstance(expr, MemberAccess)
        assert isinstance(expr.object, IndexAccess)
        assert isinstance(expr.object.object, MemberAccess)

    def test_method_call(self):
        expr = _expr("items.append(3)")
        assert isinstance(expr, MethodCall)
        assert expr.method == "append"
        assert len(expr.arguments) == 1

    @pytest.mark.parametrize("source,has_start,has_end", [
        ("a[1:3]", True, True),
        ("a[:3]", False, True),
        ("a[1:]", True, False),
        ("a[:]", False, False),
    ])
    def test_slices(self, source, has_start, has_end):
        expr = _expr(source)
        assert isinstance(expr, SliceAccess)
        assert (expr.start is not None) == has_start
        assert (expr.end is not None) == has_end

    def test_literals(self):
        assert isinstance(_expr("[1, 'a', [2]]"), ArrayLiteral)
        obj = _expr("{name: 'Rex', 'age': 3}")
        assert isinstance(obj, ObjectLiteral)
        assert [k for k, _ in obj.properties] == ["name", "age"]

    def test_call(self):
        expr = _expr("max(1, 2, 3)")
        assert isinstance(expr, CallExpression)
        assert expr.callee == "max"
        assert len(expr.arguments) == 3


# ---------------------------------------------------------------------------
# Positions and helpers
# ---------------------------------------------------------------------------

class TestPositions:

    def test_statements_carry_lines(self):
        body = _body("x = 1\n\ny = 2\n")
        assert [s.line for s in body] == [1, 3]

    def test_expression_columns(self):
        stmt = _body("x = a + b\n")[0]
        assert stmt.value.column == 5
        assert stmt.value.right.column == 9

    def test_parser_accepts_a_lexer(self):
        program = Parser(Lexer("x = 1\n")).parse_program()
        assert isinstance(program.body[0], Assignment)

    def test_walk_and_dump(self):
        program = compile_source("def f(a):\n    return a * 2\n")
        kinds = {type(n).__name__ for n in walk(program)}
        assert {"Program", "FunctionDef", "ReturnStatement", "BinaryOp", "Identifier"} <= kinds
        text = dump(program)
        assert "FunctionDef(name='f'" in text
        assert "@1" in text


# ---------------------------------------------------------------------------
# Syntax errors
# ---------------------------------------------------------------------------

class TestSyntaxErrors:

    @pytest.mark.parametrize("source,fragment", [
        ("if x\n    pass\n", 'Expected ":"'),
        ("if x:\npass\n", "Block cannot be empty"),
        ("repeat 3:\n    pass\n", "times"),
        ("1 = x\n", "Cannot assign"),
        ("f() += 1\n", "Augmented assignment"),
        ("x = range(3)\n", "range()"),
        ("def f(a, a):\n    pass\n", "Duplicate parameter"),
        ("class A:\n    x = 1\n", "Only methods"),
        ("x = {1: 2}\n", "Object keys"),
        ("x = (1 + 2\n", 'Expected ")"'),
        ("x = 1 y = 2\n", "after the end of the statement"),
        ("    x = 1\n", "Unexpected indentation"),
    ])
    def test_error_messages(self, source, fragment):
        error = _syntax_error(source)
        assert fragment in error.message

    def test_error_has_position_and_suggestion(self):
        error = _syntax_error("x = 1\nif y\n    pass\n")
        assert error.line == 2
        assert error.column is not None
        assert error.suggestion

    def test_error_serializes(self):
        info = _syntax_error("x = (\n").to_dict()
        assert info["kind"] == "syntax-error"
        assert set(info) == {"kind", "message", "line", "column", "suggestion"}

    def test_format_with_source_points_at_column(self):
        source = "x = 1\nif y\n    pass\n"
        text = _syntax_error(source).format_with_source(source)
        assert "   2 | if y" in text
        assert "^" in text
