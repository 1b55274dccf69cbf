# src/minipython/errors.py
"""
Structured errors for MiniPython.

Only two kinds reach a host: syntax errors (lexer, parser, compiler) and
runtime errors (VM, interpreter). Both carry a source position and an
optional learner-facing suggestion, and serialize to a plain dict so a
host UI can underline the offending line.
"""
from typing import Any, Dict, Optional

SYNTAX_ERROR = "syntax-error"
RUNTIME_ERROR = "runtime-error"


class MiniPyError(Exception):
    kind = "error"

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None,
                 suggestion: Optional[str] = None, filename: str = "<stdin>"):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.suggestion = suggestion
        self.filename = filename

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "suggestion": self.suggestion,
        }

    def format_with_source(self, source: Optional[str]) -> str:
        """Render the error with the offending source line and a caret."""
        location = f"{self.filename}"
        if self.line is not None:
            location += f":{self.line}"
            if self.column is not None:
                location += f":{self.column}"
        parts = [f"{self.kind}: {self.message}", f"  --> {location}"]

        if source and self.line is not None:
            lines = source.replace("\r\n", "\n").split("\n")
            if 1 <= self.line <= len(lines):
                text = lines[self.line - 1]
                parts.append(f"{self.line:4d} | {text}")
                if self.column is not None and self.column >= 1:
                    parts.append("     | " + " " * (self.column - 1) + "^")

        if self.suggestion:
            parts.append(f"  hint: {self.suggestion}")
        return "\n".join(parts)

    def __str__(self):
        if self.line is not None:
            return f"{self.message} (line {self.line})"
        return self.message


class MiniPySyntaxError(MiniPyError):
    kind = SYNTAX_ERROR


class CompilationError(MiniPySyntaxError):
    """Raised by the bytecode compiler for programs that parse but cannot run."""


class MiniPyRuntimeError(MiniPyError):
    kind = RUNTIME_ERROR


class ErrorReporter:
    """Builds positioned errors for the lexer, parser and compiler."""

    def report_error(self, error_class, message, line=None, column=None,
                     filename="<stdin>", suggestion=None) -> MiniPyError:
        return error_class(message, line=line, column=column,
                           suggestion=suggestion, filename=filename)


_reporter = ErrorReporter()


def get_error_reporter() -> ErrorReporter:
    return _reporter
