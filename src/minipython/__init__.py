# src/minipython/__init__.py
"""
MiniPython - a small teaching language with English and Chinese keywords.

    from minipython import compile_program, VM

    vm = VM()
    vm.load(compile_program("x = 1\\nprint(x + 1)\\n"))
    vm.run()
    vm.output  # ['2']
"""
import logging

from .errors import MiniPyError, MiniPySyntaxError, CompilationError, MiniPyRuntimeError
from .lexer import Lexer, tokenize
from .parser import Parser, parse
from .engine import ExecutionStatus, StepResult, EngineState
from .config import EngineConfig
from .vm import VM, CompiledProgram, compile_to_ir
from .interpreter import Interpreter

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())


def compile(source, filename="<stdin>"):
    """Tokenize and parse source into a Program tree."""
    return parse(tokenize(source, filename), filename)


def compile_program(source, filename="<stdin>") -> CompiledProgram:
    """Source straight to bytecode."""
    return compile_to_ir(compile(source, filename), filename)


__all__ = [
    "compile", "compile_program", "compile_to_ir", "tokenize", "parse",
    "Lexer", "Parser", "VM", "Interpreter", "CompiledProgram",
    "ExecutionStatus", "StepResult", "EngineState", "EngineConfig",
    "MiniPyError", "MiniPySyntaxError", "CompilationError", "MiniPyRuntimeError",
]
