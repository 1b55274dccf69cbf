# src/minipython/interpreter/__init__.py
from .core import Interpreter
from .frames import Frame

__all__ = ["Interpreter", "Frame"]
