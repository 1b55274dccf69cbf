# src/minipython/interpreter/frames.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..minipy_ast import Statement

REPEAT = "repeat"
WHILE = "while"
FOR = "for"
FOR_EACH = "for-each"


@dataclass
class Frame:
    """One activation of the tree walker.

    The main program, the branch of an if statement entered at the
    steppable level, and every user function call get a frame. The
    outermost loop of a frame lives inline in the loop_* fields so it can
    be stepped one body statement at a time.
    """
    function_name: Optional[str]
    statements: List[Statement]
    locals: Dict[str, Any] = field(default_factory=dict)
    index: int = 0

    # steppable loop
    loop_kind: Optional[str] = None
    loop_statement: Optional[Statement] = None
    loop_body: Optional[List[Statement]] = None
    loop_body_index: int = 0
    loop_counter: int = 0
    loop_limit: int = 0
    for_variable: Optional[str] = None
    for_end: Any = None
    for_step: Any = None
    for_each_items: Optional[List[Any]] = None
    for_each_index: int = 0

    # loops currently running synchronously inside this frame
    sync_loop_depth: int = 0

    should_break: bool = False
    should_continue: bool = False
    return_value: Any = None
    has_returned: bool = False

    @property
    def in_loop(self) -> bool:
        return self.loop_kind is not None or self.sync_loop_depth > 0

    def enter_loop(self, kind, statement, body):
        self.loop_kind = kind
        self.loop_statement = statement
        self.loop_body = body
        self.loop_body_index = 0

    def exit_loop(self):
        """Drop the inline loop state and move past the loop statement."""
        self.loop_kind = None
        self.loop_statement = None
        self.loop_body = None
        self.loop_body_index = 0
        self.loop_counter = 0
        self.loop_limit = 0
        self.for_variable = None
        self.for_end = None
        self.for_step = None
        self.for_each_items = None
        self.for_each_index = 0
        self.should_break = False
        self.should_continue = False
        self.index += 1

    @property
    def finished(self) -> bool:
        return self.loop_kind is None and self.index >= len(self.statements)
