## src/minipython/parser/parser.py
from ..minipy_token import *
from ..lexer import Lexer
from ..minipy_ast import *
from ..errors import get_error_reporter, MiniPySyntaxError

COMPARISON_OPERATORS = {
    EQ: "==", NEQ: "!=",
    LT: "<", GT: ">", LTE: "<=", GTE: ">=",
    IN: "in",
}

ADDITIVE_OPERATORS = {PLUS: "+", MINUS: "-"}

TERM_OPERATORS = {
    MULTIPLY: "*", DIVIDE: "/", MODULO: "%", FLOOR_DIV: "//",
}

AUGMENTED_OPERATORS = {
    PLUS_ASSIGN: "+=",
    MINUS_ASSIGN: "-=",
    MULTIPLY_ASSIGN: "*=",
    DIVIDE_ASSIGN: "/=",
}

# Human readable names for "expected X" messages.
_TOKEN_NAMES = {
    COLON: '":"',
    LPAREN: '"("',
    RPAREN: '")"',
    RBRACKET: '"]"',
    RBRACE: '"}"',
    IDENTIFIER: "a name",
    NEWLINE: "a line break",
    INDENT: "an indented block",
    TIMES: '"times" (or "次")',
    IN: '"in" (or "在")',
}


class Parser:
    """Recursive-descent parser producing a Program from a token list.

    One method per statement form; expressions go through an explicit
    precedence ladder:

        or -> and -> not -> comparison -> additive -> term
           -> unary minus -> power -> postfix -> atom

    Any error aborts the parse with a MiniPySyntaxError.
    """

    def __init__(self, tokens, filename="<stdin>"):
        if isinstance(tokens, Lexer):
            filename = tokens.filename
            tokens = tokens.tokenize()
        self.tokens = list(tokens)
        if not self.tokens or self.tokens[-1].type != EOF:
            last = self.tokens[-1] if self.tokens else None
            self.tokens.append(Token(EOF, None, last.line if last else 1, last.column if last else 1))
        self.filename = filename
        self.pos = 0
        self.error_reporter = get_error_reporter()

    @classmethod
    def from_source(cls, source, filename="<stdin>"):
        return cls(Lexer(source, filename))

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    @property
    def cur_token(self):
        return self.tokens[self.pos]

    @property
    def peek_token(self):
        return self.tokens[min(self.pos + 1, len(self.tokens) - 1)]

    def next_token(self):
        tok = self.cur_token
        if tok.type != EOF:
            self.pos += 1
        return tok

    def cur_token_is(self, t):
        return self.cur_token.type == t

    def peek_token_is(self, t):
        return self.peek_token.type == t

    def at_end(self):
        return self.cur_token.type == EOF

    def match(self, t):
        if self.cur_token_is(t):
            self.next_token()
            return True
        return False

    def error(self, message, token=None, suggestion=None):
        token = token or self.cur_token
        return self.error_reporter.report_error(
            MiniPySyntaxError,
            message,
            line=token.line,
            column=token.column,
            filename=self.filename,
            suggestion=suggestion,
        )

    def expect(self, t, suggestion=None):
        if self.cur_token_is(t):
            return self.next_token()
        expected = _TOKEN_NAMES.get(t, t)
        raise self.error(f"Expected {expected} but found {self._describe(self.cur_token)}",
                         suggestion=suggestion)

    def expect_statement_end(self):
        if self.at_end() or self.cur_token_is(DEDENT):
            return
        if not self.match(NEWLINE):
            raise self.error(
                f"Unexpected {self._describe(self.cur_token)} after the end of the statement",
                suggestion="Put each statement on its own line.",
            )

    def skip_newlines(self):
        while self.cur_token_is(NEWLINE):
            self.next_token()

    @staticmethod
    def _describe(token):
        if token.type == EOF:
            return "end of file"
        if token.type == NEWLINE:
            return "end of line"
        if token.type == INDENT:
            return "extra indentation"
        if token.type == DEDENT:
            return "end of block"
        if token.literal is not None:
            return f"'{token.literal}'"
        return token.type

    # ------------------------------------------------------------------
    # Program & statements
    # ------------------------------------------------------------------

    def parse_program(self):
        program = Program()
        self.skip_newlines()
        while not self.at_end():
            if self.cur_token_is(INDENT):
                raise self.error("Unexpected indentation",
                                 suggestion="Only lines inside a block (after a ':') are indented.")
            program.body.append(self.parse_statement())
            self.skip_newlines()
        return program

    def parse_statement(self):
        t = self.cur_token.type
        if t == IF:
            return self.parse_if_statement()
        if t == REPEAT:
            return self.parse_repeat_statement()
        if t == WHILE:
            return self.parse_while_statement()
        if t == FOR:
            return self.parse_for_statement()
        if t == BREAK:
            return self._parse_simple_keyword(BreakStatement)
        if t == CONTINUE:
            return self._parse_simple_keyword(ContinueStatement)
        if t == PASS:
            return self._parse_simple_keyword(PassStatement)
        if t == DEF:
            return self.parse_function_def()
        if t == CLASS:
            return self.parse_class_def()
        if t == RETURN:
            return self.parse_return_statement()
        return self.parse_simple_statement()

    def _parse_simple_keyword(self, node_class):
        tok = self.next_token()
        self.expect_statement_end()
        return node_class().at(tok.line, tok.column)

    def parse_simple_statement(self):
        expr = self.parse_expression()

        if self.cur_token.type in AUGMENTED_OPERATORS:
            op_token = self.next_token()
            value = self.parse_expression()
            self.expect_statement_end()
            if isinstance(expr, Identifier):
                return AugmentedAssignment(expr.name, AUGMENTED_OPERATORS[op_token.type], value).at(
                    expr.line, expr.column)
            raise self.error(
                "Augmented assignment only works on a plain variable",
                token=op_token,
                suggestion="With += -= *= /= the left side must be a variable name, like x += 1.",
            )

        if self.cur_token_is(ASSIGN):
            assign_token = self.next_token()
            value = self.parse_expression()
            self.expect_statement_end()
            if isinstance(expr, Identifier):
                return Assignment(expr.name, value).at(expr.line, expr.column)
            if isinstance(expr, IndexAccess):
                return IndexedAssignment(expr.object, expr.index, value).at(expr.line, expr.column)
            if isinstance(expr, MemberAccess):
                return MemberAssignment(expr.object, expr.property, value).at(expr.line, expr.column)
            raise self.error(
                "Cannot assign to this expression",
                token=assign_token,
                suggestion="The left side of '=' must be a variable, an index like arr[0], "
                           "or a member like self.x.",
            )

        self.expect_statement_end()
        return ExpressionStatement(expr).at(expr.line, expr.column)

    def parse_block(self):
        self.expect(NEWLINE, suggestion="Start the block on a new line after the ':'.")
        if not self.cur_token_is(INDENT):
            raise self.error("Block cannot be empty",
                             suggestion="Indent at least one statement under the ':' line "
                                        "(use pass if there is nothing to do).")
        self.next_token()

        statements = []
        while not self.cur_token_is(DEDENT) and not self.at_end():
            statements.append(self.parse_statement())
            self.skip_newlines()
        self.match(DEDENT)

        if not statements:
            raise self.error("Block cannot be empty",
                             suggestion="Indent at least one statement under the ':' line.")
        return statements

    def _expect_colon(self):
        self.expect(COLON, suggestion="Compound statements end with a ':' before the block.")

    def parse_if_statement(self):
        tok = self.next_token()
        condition = self.parse_expression()
        self._expect_colon()
        consequent = self.parse_block()

        elif_branches = []
        while self.cur_token_is(ELIF):
            elif_token = self.next_token()
            elif_condition = self.parse_expression()
            self._expect_colon()
            elif_branches.append(ElifBranch(elif_condition, self.parse_block()).at(
                elif_token.line, elif_token.column))

        alternate = None
        if self.cur_token_is(ELSE):
            self.next_token()
            self._expect_colon()
            alternate = self.parse_block()

        return IfStatement(condition, consequent, elif_branches, alternate).at(tok.line, tok.column)

    def parse_repeat_statement(self):
        tok = self.next_token()
        count = self.parse_expression()
        self.expect(TIMES, suggestion='Write it as: repeat 3 times:')
        self._expect_colon()
        return RepeatStatement(count, self.parse_block()).at(tok.line, tok.column)

    def parse_while_statement(self):
        tok = self.next_token()
        condition = self.parse_expression()
        self.match(DO)
        self._expect_colon()
        return WhileStatement(condition, self.parse_block()).at(tok.line, tok.column)

    def parse_for_statement(self):
        tok = self.next_token()
        variable = self.expect(IDENTIFIER, suggestion="Name the loop variable, as in: for i in range(3):").literal
        self.expect(IN)

        if self.cur_token_is(RANGE):
            self.next_token()
            self.expect(LPAREN)
            first = self.parse_expression()
            step = None
            if self.match(COMMA):
                start = first
                end = self.parse_expression()
                if self.match(COMMA):
                    step = self.parse_expression()
            else:
                start = NumberLiteral(0).at(first.line, first.column)
                end = first
            self.expect(RPAREN)
            self._expect_colon()
            body = self.parse_block()
            return ForStatement(variable, start, end, step, body).at(tok.line, tok.column)

        iterable = self.parse_expression()
        self._expect_colon()
        return ForEachStatement(variable, iterable, self.parse_block()).at(tok.line, tok.column)

    def _parse_parameter_list(self):
        self.expect(LPAREN)
        params = []
        if not self.cur_token_is(RPAREN):
            while True:
                name = self.expect(IDENTIFIER).literal
                if name in params:
                    raise self.error(f"Duplicate parameter '{name}'")
                params.append(name)
                if not self.match(COMMA):
                    break
        self.expect(RPAREN)
        return params

    def parse_function_def(self):
        tok = self.next_token()
        name = self.expect(IDENTIFIER, suggestion="Give the function a name, as in: def greet():").literal
        params = self._parse_parameter_list()
        self._expect_colon()
        return FunctionDef(name, params, self.parse_block()).at(tok.line, tok.column)

    def parse_class_def(self):
        tok = self.next_token()
        name = self.expect(IDENTIFIER, suggestion="Give the class a name, as in: class Dog:").literal
        self._expect_colon()
        self.expect(NEWLINE)
        self.expect(INDENT, suggestion="Indent the methods of the class.")

        methods = []
        while not self.cur_token_is(DEDENT) and not self.at_end():
            if self.cur_token_is(DEF):
                methods.append(self.parse_function_def())
            elif self.cur_token_is(PASS):
                self.next_token()
                self.expect_statement_end()
            else:
                raise self.error("Only methods can be defined inside a class",
                                 suggestion="Use def to define a method in the class body.")
            self.skip_newlines()
        self.match(DEDENT)

        return ClassDef(name, methods).at(tok.line, tok.column)

    def parse_return_statement(self):
        tok = self.next_token()
        value = None
        if not (self.cur_token_is(NEWLINE) or self.cur_token_is(DEDENT) or self.at_end()):
            value = self.parse_expression()
        self.expect_statement_end()
        return ReturnStatement(value).at(tok.line, tok.column)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def parse_expression(self):
        return self.parse_or()

    def parse_or(self):
        left = self.parse_and()
        while self.match(OR):
            left = BinaryOp("or", left, self.parse_and()).at(left.line, left.column)
        return left

    def parse_and(self):
        left = self.parse_not()
        while self.match(AND):
            left = BinaryOp("and", left, self.parse_not()).at(left.line, left.column)
        return left

    def parse_not(self):
        if self.cur_token_is(NOT):
            tok = self.next_token()
            return UnaryOp("not", self.parse_not()).at(tok.line, tok.column)
        return self.parse_comparison()

    def parse_comparison(self):
        left = self.parse_additive()
        while self.cur_token.type in COMPARISON_OPERATORS:
            op = COMPARISON_OPERATORS[self.next_token().type]
            left = BinaryOp(op, left, self.parse_additive()).at(left.line, left.column)
        return left

    def parse_additive(self):
        left = self.parse_term()
        while self.cur_token.type in ADDITIVE_OPERATORS:
            op = ADDITIVE_OPERATORS[self.next_token().type]
            left = BinaryOp(op, left, self.parse_term()).at(left.line, left.column)
        return left

    def parse_term(self):
        left = self.parse_unary()
        while self.cur_token.type in TERM_OPERATORS:
            op = TERM_OPERATORS[self.next_token().type]
            left = BinaryOp(op, left, self.parse_unary()).at(left.line, left.column)
        return left

    def parse_unary(self):
        if self.cur_token_is(MINUS):
            tok = self.next_token()
            return UnaryOp("-", self.parse_unary()).at(tok.line, tok.column)
        return self.parse_power()

    def parse_power(self):
        base = self.parse_postfix()
        if self.match(POWER):
            # right-associative; the exponent may carry its own sign
            exponent = self.parse_unary()
            return BinaryOp("**", base, exponent).at(base.line, base.column)
        return base

    def _parse_arguments(self):
        args = []
        if not self.cur_token_is(RPAREN):
            while True:
                args.append(self.parse_expression())
                if not self.match(COMMA):
                    break
        self.expect(RPAREN, suggestion="Close the argument list with ')'.")
        return args

    def parse_postfix(self):
        expr = self.parse_atom()
        while True:
            if self.match(LBRACKET):
                expr = self._parse_subscript(expr)
            elif self.match(DOT):
                name = self.expect(IDENTIFIER, suggestion="Write a member or method name after '.'.").literal
                if self.match(LPAREN):
                    expr = MethodCall(expr, name, self._parse_arguments()).at(expr.line, expr.column)
                else:
                    expr = MemberAccess(expr, name).at(expr.line, expr.column)
            else:
                return expr

    def _parse_subscript(self, target):
        start = None
        if not self.cur_token_is(COLON):
            start = self.parse_expression()
            if self.match(RBRACKET):
                return IndexAccess(target, start).at(target.line, target.column)
        self.expect(COLON)
        end = None
        if not self.cur_token_is(RBRACKET):
            end = self.parse_expression()
        self.expect(RBRACKET, suggestion="Close the index with ']'.")
        return SliceAccess(target, start, end).at(target.line, target.column)

    def parse_atom(self):
        tok = self.cur_token

        if tok.type == NUMBER:
            self.next_token()
            return NumberLiteral(tok.literal).at(tok.line, tok.column)

        if tok.type == STRING:
            self.next_token()
            return StringLiteral(tok.literal).at(tok.line, tok.column)

        if tok.type in (TRUE, FALSE):
            self.next_token()
            return BooleanLiteral(tok.type == TRUE).at(tok.line, tok.column)

        if tok.type == LPAREN:
            self.next_token()
            expr = self.parse_expression()
            self.expect(RPAREN, suggestion="Every '(' needs a matching ')'.")
            return expr

        if tok.type == LBRACKET:
            return self.parse_array_literal()

        if tok.type == LBRACE:
            return self.parse_object_literal()

        if tok.type == IDENTIFIER:
            self.next_token()
            if self.match(LPAREN):
                return CallExpression(tok.literal, self._parse_arguments()).at(tok.line, tok.column)
            return Identifier(tok.literal).at(tok.line, tok.column)

        if tok.type == RANGE:
            raise self.error("range() can only be used in a for loop",
                             suggestion="Write: for i in range(10):")

        raise self.error(f"Unexpected {self._describe(tok)}",
                         suggestion="Check the syntax of this line.")

    def parse_array_literal(self):
        tok = self.next_token()
        elements = []
        if not self.cur_token_is(RBRACKET):
            while True:
                elements.append(self.parse_expression())
                if not self.match(COMMA):
                    break
        self.expect(RBRACKET, suggestion="Close the list with ']'.")
        return ArrayLiteral(elements).at(tok.line, tok.column)

    def parse_object_literal(self):
        tok = self.next_token()
        properties = []
        if not self.cur_token_is(RBRACE):
            while True:
                if self.cur_token.type in (IDENTIFIER, STRING):
                    key = self.next_token().literal
                else:
                    raise self.error("Object keys must be names or strings",
                                     suggestion='Use {name: value} or {"name": value}.')
                self.expect(COLON)
                properties.append((key, self.parse_expression()))
                if not self.match(COMMA):
                    break
        self.expect(RBRACE, suggestion="Close the object with '}'.")
        return ObjectLiteral(properties).at(tok.line, tok.column)


def parse(tokens, filename="<stdin>"):
    """Parse a token list (or a Lexer) into a Program."""
    return Parser(tokens, filename).parse_program()
