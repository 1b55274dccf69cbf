# lexer.py (indentation-aware, bilingual keywords)
from collections import deque

from .minipy_token import *
from .errors import get_error_reporter, MiniPySyntaxError

# Both spellings of a keyword map to the same token type.
_KEYWORDS = {
    # Chinese
    "如果": IF,
    "否则如果": ELIF,
    "否则": ELSE,
    "重复": REPEAT,
    "次": TIMES,
    "当": WHILE,
    "时": DO,
    "对于": FOR,
    "从": FOR,
    "在": IN,
    "到": RANGE,
    "范围": RANGE,
    "停止": BREAK,
    "跳出": BREAK,
    "继续": CONTINUE,
    "跳过": PASS,
    "定义": DEF,
    "返回": RETURN,
    "真": TRUE,
    "假": FALSE,
    "和": AND,
    "或": OR,
    "不": NOT,
    "类": CLASS,
    # English
    "if": IF,
    "elif": ELIF,
    "else": ELSE,
    "repeat": REPEAT,
    "times": TIMES,
    "while": WHILE,
    "for": FOR,
    "in": IN,
    "range": RANGE,
    "break": BREAK,
    "continue": CONTINUE,
    "pass": PASS,
    "def": DEF,
    "return": RETURN,
    "True": TRUE,
    "False": FALSE,
    "and": AND,
    "or": OR,
    "not": NOT,
    "class": CLASS,
}

_TWO_CHAR_OPS = {
    "==": EQ,
    "!=": NEQ,
    "<=": LTE,
    ">=": GTE,
    "//": FLOOR_DIV,
    "**": POWER,
    "+=": PLUS_ASSIGN,
    "-=": MINUS_ASSIGN,
    "*=": MULTIPLY_ASSIGN,
    "/=": DIVIDE_ASSIGN,
}

_SINGLE_CHAR_OPS = {
    "+": PLUS,
    "-": MINUS,
    "*": MULTIPLY,
    "/": DIVIDE,
    "%": MODULO,
    "=": ASSIGN,
    "<": LT,
    ">": GT,
}

_DELIMITERS = {
    "(": LPAREN,
    ")": RPAREN,
    "[": LBRACKET,
    "]": RBRACKET,
    "{": LBRACE,
    "}": RBRACE,
    ":": COLON,
    ",": COMMA,
    ".": DOT,
}

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
}

# Full-width punctuation typed by accident on a CJK keyboard.
_FULLWIDTH_HINTS = {
    "：": ":",
    "（": "(",
    "）": ")",
    "，": ",",
    "【": "[",
    "】": "]",
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
}

_OPERATOR_HINTS = {
    "!": "Use 'not' for logical negation.",
    "&": "Use 'and' to combine conditions.",
    "|": "Use 'or' to combine conditions.",
}

TAB_WIDTH = 4


def _is_identifier_start(ch):
    return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ("\u4e00" <= ch <= "\u9fff")


def _is_identifier_part(ch):
    return _is_identifier_start(ch) or ch.isdigit() and ch.isascii()


class Lexer:
    def __init__(self, source_code, filename="<stdin>"):
        source = source_code.replace("\r\n", "\n").replace("\r", "\n")
        if not source.endswith("\n"):
            source += "\n"
        self.input = source
        self.filename = filename
        self.position = 0
        self.line = 1
        self.column = 1
        self.indent_stack = [0]
        self.at_line_start = True
        self.last_token_type = None
        self.finished = False
        self._pending = deque()

        self.error_reporter = get_error_reporter()

    # ------------------------------------------------------------------
    # Character helpers
    # ------------------------------------------------------------------

    def current_char(self):
        if self.position >= len(self.input):
            return ""
        return self.input[self.position]

    def peek_char(self, offset=1):
        idx = self.position + offset
        if idx >= len(self.input):
            return ""
        return self.input[idx]

    def read_char(self):
        ch = self.current_char()
        self.position += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _error(self, message, line, column, suggestion=None):
        return self.error_reporter.report_error(
            MiniPySyntaxError,
            message,
            line=line,
            column=column,
            filename=self.filename,
            suggestion=suggestion,
        )

    def _emit(self, token_type, literal, line, column):
        self._pending.append(Token(token_type, literal, line, column))
        self.last_token_type = token_type

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def next_token(self):
        while not self._pending:
            if self.finished:
                return Token(EOF, None, self.line, self.column)
            self._scan()
        return self._pending.popleft()

    def tokenize(self):
        tokens = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.type == EOF:
                return tokens

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _scan(self):
        if self.at_line_start:
            self._handle_indentation()
            self.at_line_start = False
            return

        ch = self.current_char()

        if ch == "":
            while len(self.indent_stack) > 1:
                self.indent_stack.pop()
                self._emit(DEDENT, None, self.line, self.column)
            self._emit(EOF, None, self.line, self.column)
            self.finished = True
            return

        if ch in " \t":
            self.read_char()
            return

        if ch == "#":
            self.skip_comment()
            return

        if ch == "\n":
            if self.last_token_type is not None and self.last_token_type != NEWLINE:
                self._emit(NEWLINE, None, self.line, self.column)
            self.read_char()
            self.at_line_start = True
            return

        line, column = self.line, self.column

        two = ch + self.peek_char()
        if two in _TWO_CHAR_OPS:
            self.read_char()
            self.read_char()
            self._emit(_TWO_CHAR_OPS[two], two, line, column)
            return

        if ch in _SINGLE_CHAR_OPS:
            self.read_char()
            self._emit(_SINGLE_CHAR_OPS[ch], ch, line, column)
            return

        if ch in _DELIMITERS:
            self.read_char()
            self._emit(_DELIMITERS[ch], ch, line, column)
            return

        if ch.isascii() and ch.isdigit():
            self._emit(NUMBER, self.read_number(), line, column)
            return

        if ch in ('"', "'"):
            self._emit(STRING, self.read_string(ch), line, column)
            return

        if _is_identifier_start(ch):
            word = self.read_identifier()
            self._emit(_KEYWORDS.get(word, IDENTIFIER), word, line, column)
            return

        if ch in _FULLWIDTH_HINTS:
            raise self._error(
                f"Unexpected full-width character '{ch}'",
                line, column,
                suggestion=f"Switch to an English keyboard and type '{_FULLWIDTH_HINTS[ch]}' instead.",
            )

        raise self._error(
            f"Unexpected character '{ch}'",
            line, column,
            suggestion=_OPERATOR_HINTS.get(ch, "Check for typos or symbols the language does not support."),
        )

    def _handle_indentation(self):
        indent = 0
        while True:
            ch = self.current_char()
            if ch == " ":
                indent += 1
                self.read_char()
            elif ch == "\t":
                indent += TAB_WIDTH
                self.read_char()
            elif ch == "\n":
                # blank line, indentation restarts on the next one
                self.read_char()
                indent = 0
            elif ch == "#":
                self.skip_comment()
                indent = 0
            else:
                break

        if self.current_char() == "":
            return

        current = self.indent_stack[-1]
        if indent > current:
            self.indent_stack.append(indent)
            self._emit(INDENT, None, self.line, self.column)
        elif indent < current:
            while len(self.indent_stack) > 1 and self.indent_stack[-1] > indent:
                self.indent_stack.pop()
                self._emit(DEDENT, None, self.line, self.column)
            if self.indent_stack[-1] != indent:
                raise self._error(
                    "Indentation does not match any outer block",
                    self.line, self.column,
                    suggestion="Line this statement up with the block it belongs to; "
                               "every level should use the same number of spaces.",
                )

    def skip_comment(self):
        while self.current_char() not in ("", "\n"):
            self.read_char()

    def read_number(self):
        start = self.position
        while self.current_char().isascii() and self.current_char().isdigit():
            self.read_char()

        is_float = False
        if self.current_char() == "." and self.peek_char().isascii() and self.peek_char().isdigit():
            is_float = True
            self.read_char()
            while self.current_char().isascii() and self.current_char().isdigit():
                self.read_char()

        text = self.input[start:self.position]
        return float(text) if is_float else int(text)

    def read_string(self, quote):
        start_line, start_column = self.line, self.column
        self.read_char()  # opening quote
        result = []
        while True:
            ch = self.current_char()
            if ch == "" or ch == "\n":
                raise self._error(
                    "Unterminated string literal",
                    start_line, start_column,
                    suggestion=f"Add a closing {quote} at the end of the string.",
                )
            if ch == quote:
                self.read_char()
                return "".join(result)
            if ch == "\\":
                self.read_char()
                escaped = self.current_char()
                if escaped in ("", "\n"):
                    continue
                self.read_char()
                result.append(_ESCAPES.get(escaped, escaped))
                continue
            result.append(self.read_char())

    def read_identifier(self):
        start = self.position
        while _is_identifier_part(self.current_char()):
            self.read_char()
        return self.input[start:self.position]


def tokenize(source, filename="<stdin>"):
    """Tokenize MiniPython source into a list ending with an EOF token."""
    return Lexer(source, filename).tokenize()
