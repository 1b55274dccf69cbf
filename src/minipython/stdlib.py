# src/minipython/stdlib.py
"""
Host standard libraries written in MiniPython.

A host world (a maze, a turtle canvas, ...) registers its primitive
commands and sensors natively and may ship convenience wrappers written
in MiniPython itself. Those wrappers are parsed separately, stripped of
source positions, and prepended to the user's program, so user line
numbers and breakpoints are unaffected and stdlib code never highlights
a line.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .lexer import tokenize
from .minipy_ast import Program, walk
from .parser import parse
from .vm import VM, compile_to_ir

logger = logging.getLogger(__name__)

STDLIB_FILENAME = "<stdlib>"


@dataclass
class StdlibFunction:
    name: str
    name_zh: str
    code: str
    description: str = ""
    params: List[str] = field(default_factory=list)
    category: str = "helper"


@dataclass
class Stdlib:
    name: str
    functions: Dict[str, StdlibFunction] = field(default_factory=dict)
    # constants and setup, emitted before the functions
    preamble: str = ""
    # extra code emitted after the functions, typically CJK aliases
    aliases: str = ""

    def add(self, function: StdlibFunction):
        self.functions[function.name] = function
        return function

    def by_category(self, category: str) -> List[StdlibFunction]:
        return [f for f in self.functions.values() if f.category == category]


def build_stdlib_source(stdlib: Stdlib) -> str:
    parts = [stdlib.preamble] if stdlib.preamble else []
    parts.extend(f.code for f in stdlib.functions.values())
    if stdlib.aliases:
        parts.append(stdlib.aliases.strip("\n"))
    return "\n\n".join(parts)


def stdlib_line_count(source: str) -> int:
    return len(source.split("\n"))


def _strip_positions(program: Program) -> Program:
    for node in walk(program):
        node.line = None
        node.column = None
    return program


def parse_source(source: str, filename: str = "<stdin>") -> Program:
    return parse(tokenize(source, filename), filename)


def compile_with_stdlib(user_code: str, stdlib: Optional[Stdlib] = None) -> Program:
    """Parse user code and put the stdlib's statements in front of it."""
    program = parse_source(user_code)
    if stdlib is None:
        return program

    library = _strip_positions(parse_source(build_stdlib_source(stdlib), STDLIB_FILENAME))
    logger.debug("prepended stdlib %r (%d statements)", stdlib.name, len(library.body))
    return Program(library.body + program.body)


def load_with_source(engine, user_code: str, stdlib: Optional[Stdlib] = None):
    """Compile user code (plus stdlib) for the given engine and load it.

    Syntax and compilation errors propagate before anything is loaded.
    """
    program = compile_with_stdlib(user_code, stdlib)
    if isinstance(engine, VM):
        engine.load(compile_to_ir(program))
    else:
        engine.load(program)
    return engine
