# src/minipython/parser/__init__.py
"""
Parser module for MiniPython.
"""
from .parser import Parser, parse

__all__ = ["Parser", "parse"]
