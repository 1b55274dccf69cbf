# src/minipython/minipy_token.py
from dataclasses import dataclass
from typing import Optional, Union

# Keywords
IF = "IF"
ELIF = "ELIF"
ELSE = "ELSE"
REPEAT = "REPEAT"
TIMES = "TIMES"
WHILE = "WHILE"
DO = "DO"
FOR = "FOR"
IN = "IN"
RANGE = "RANGE"
BREAK = "BREAK"
CONTINUE = "CONTINUE"
PASS = "PASS"
DEF = "DEF"
RETURN = "RETURN"
TRUE = "TRUE"
FALSE = "FALSE"
AND = "AND"
OR = "OR"
NOT = "NOT"
CLASS = "CLASS"

# Operators
PLUS = "PLUS"
MINUS = "MINUS"
MULTIPLY = "MULTIPLY"
DIVIDE = "DIVIDE"
MODULO = "MODULO"
FLOOR_DIV = "FLOOR_DIV"
POWER = "POWER"
ASSIGN = "ASSIGN"
EQ = "EQ"
NEQ = "NEQ"
LT = "LT"
GT = "GT"
LTE = "LTE"
GTE = "GTE"
PLUS_ASSIGN = "PLUS_ASSIGN"
MINUS_ASSIGN = "MINUS_ASSIGN"
MULTIPLY_ASSIGN = "MULTIPLY_ASSIGN"
DIVIDE_ASSIGN = "DIVIDE_ASSIGN"

# Delimiters
LPAREN = "LPAREN"
RPAREN = "RPAREN"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
LBRACE = "LBRACE"
RBRACE = "RBRACE"
COLON = "COLON"
COMMA = "COMMA"
DOT = "DOT"

# Structure
INDENT = "INDENT"
DEDENT = "DEDENT"
NEWLINE = "NEWLINE"

# Literals & identifiers
NUMBER = "NUMBER"
STRING = "STRING"
IDENTIFIER = "IDENTIFIER"

EOF = "EOF"

Literal = Union[int, float, str, None]


@dataclass(frozen=True)
class Token:
    type: str
    literal: Literal
    line: Optional[int]
    column: Optional[int]

    def __repr__(self):
        return f"Token({self.type}, {self.literal!r}, {self.line}:{self.column})"
