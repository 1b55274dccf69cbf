# src/minipython/engine.py
"""Pieces shared by both execution engines: the step contract and host bindings."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .errors import MiniPyRuntimeError

logger = logging.getLogger(__name__)


class ExecutionStatus(str, Enum):
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class StepResult:
    """What a single step did, as seen by a driving loop or visualizer."""
    done: bool = False
    action: Optional[str] = None
    action_args: List[Any] = field(default_factory=list)
    sensor_query: Optional[str] = None
    highlight_line: Optional[int] = None


@dataclass
class EngineState:
    status: ExecutionStatus
    error: Optional[str] = None
    error_info: Optional[Dict[str, Any]] = None
    current_line: Optional[int] = None
    step_count: int = 0
    pc: Optional[int] = None
    stack: List[Any] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    call_depth: int = 0


def call_depth_exceeded(line=None) -> MiniPyRuntimeError:
    return MiniPyRuntimeError(
        "Maximum recursion depth exceeded",
        line=line,
        suggestion="Make sure the recursive function has a case that stops calling itself.",
    )


CommandHandler = Callable[[List[Any]], Any]


class HostBindingsMixin:
    """registerCommand / registerSensor / setGlobal / getGlobal for an engine.

    Expects the engine to provide `command_handlers`, `sensor_handlers` and
    `globals` dicts.
    """

    def register_command(self, name: str, handler: CommandHandler):
        """Bind a side-effecting host action; its result (or None) is returned to the script."""
        self.command_handlers[name] = handler
        logger.debug("registered command %s", name)

    def register_sensor(self, name: str, handler: CommandHandler):
        """Bind a read-only host query."""
        self.sensor_handlers[name] = handler
        logger.debug("registered sensor %s", name)

    def unregister(self, name: str):
        self.command_handlers.pop(name, None)
        self.sensor_handlers.pop(name, None)

    def set_global(self, name: str, value: Any):
        self.globals[name] = value

    def get_global(self, name: str) -> Any:
        return self.globals.get(name)

    def _call_host(self, name, args, result):
        """Try commands then sensors. Returns (handled, value) and fills `result`."""
        if name in self.command_handlers:
            value = self.command_handlers[name](args)
            result.action = name
            result.action_args = list(args)
            return True, value
        if name in self.sensor_handlers:
            value = self.sensor_handlers[name](args)
            result.sensor_query = name
            return True, value
        return False, None
