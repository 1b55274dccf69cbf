"""
Debugger support for the VM: breakpoints, watches, step-back history and
side-effect-free expression evaluation.

Mixed into VM; everything here is host driven and optional. Step-back
keeps one deep copy of the mutable VM state per executed step.
"""
import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..engine import ExecutionStatus, StepResult
from ..errors import MiniPyError
from ..lexer import tokenize
from ..parser import parse
from .compiler import BytecodeCompiler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public types
# ---------------------------------------------------------------------------

@dataclass
class Snapshot:
    pc: int
    stack: List[Any]
    globals: Dict[str, Any]
    call_stack: List[Any]
    classes: Dict[str, Dict[str, int]]
    step_count: int
    output_length: int


@dataclass
class ExecutionVisualization:
    current_line: Optional[int]
    current_instruction: Optional[str]
    stack: List[Any]
    variables: Dict[str, Any]
    watched_variables: Dict[str, Any]
    call_stack: List[Dict[str, Any]]
    can_step_back: bool
    history_length: int
    breakpoints: List[int] = field(default_factory=list)
    status: ExecutionStatus = ExecutionStatus.READY


class DebuggerMixin:
    """Breakpoint / watch / history state for the VM."""

    def _init_debugger(self, config):
        self.breakpoints = set()
        # insertion ordered set of names
        self.watches: Dict[str, None] = {}
        self.history = deque()
        self.max_history_size = max(1, config.max_history_size)
        self.eval_max_steps = config.eval_max_steps
        self._evaluating = False

    # -- Breakpoints --------------------------------------------------------

    def add_breakpoint(self, line: int):
        self.breakpoints.add(line)

    def remove_breakpoint(self, line: int):
        self.breakpoints.discard(line)

    def toggle_breakpoint(self, line: int) -> bool:
        """Returns True if the breakpoint was added, False if removed"""
        if line in self.breakpoints:
            self.breakpoints.discard(line)
            return False
        self.breakpoints.add(line)
        return True

    def clear_breakpoints(self):
        self.breakpoints.clear()

    def get_breakpoints(self) -> List[int]:
        return sorted(self.breakpoints)

    def has_breakpoint(self, line: int) -> bool:
        return line in self.breakpoints

    def run_until_breakpoint(self) -> Tuple[StepResult, bool]:
        """Step until execution enters a breakpointed line, or until done / a command.

        A stop happens when the line about to execute is breakpointed and
        differs from the line before the step, so calling this repeatedly
        stops once per visit of a line rather than once per instruction.
        Coming back from a call counts as the same visit of the calling line.
        """
        if self.status == ExecutionStatus.READY:
            line = self.get_current_line()
            if line is not None and line in self.breakpoints:
                self.status = ExecutionStatus.PAUSED
                logger.debug("breakpoint hit at line %d", line)
                return StepResult(highlight_line=line), True

        while True:
            previous = self.get_current_line()
            depth = len(self.call_stack)
            caller_line = self.call_stack[-1].call_line if self.call_stack else None
            result = self.step()
            line = self.get_current_line()
            if len(self.call_stack) < depth:
                previous = caller_line
            if not result.done and line is not None and line != previous and line in self.breakpoints:
                self.status = ExecutionStatus.PAUSED
                logger.debug("breakpoint hit at line %d", line)
                return result, True
            if result.done or result.action is not None:
                return result, False

    def continue_execution(self) -> Tuple[StepResult, bool]:
        """Resume from a breakpoint and run to the next one."""
        self.resume()
        return self.run_until_breakpoint()

    # -- Watches ------------------------------------------------------------

    def add_watch(self, name: str):
        self.watches[name] = None

    def remove_watch(self, name: str):
        self.watches.pop(name, None)

    def clear_watches(self):
        self.watches.clear()

    def get_watched_variables(self) -> List[str]:
        return list(self.watches)

    def get_watched_values(self) -> Dict[str, Any]:
        """Current value of every watched name, None when it is not defined."""
        variables = self.get_variables()
        return {name: variables.get(name) for name in self.watches}

    # -- Step-back history --------------------------------------------------

    def _save_snapshot(self):
        # one deepcopy call so values shared between scopes stay shared
        pc, stack, globals_, call_stack, classes = copy.deepcopy(
            (self.pc, self.stack, self.globals, self.call_stack, self.classes)
        )
        self.history.append(Snapshot(
            pc=pc,
            stack=stack,
            globals=globals_,
            call_stack=call_stack,
            classes=classes,
            step_count=self.step_count,
            output_length=len(self.output),
        ))
        while len(self.history) > self.max_history_size:
            self.history.popleft()
            logger.debug("history full, dropped oldest snapshot")

    def step_back(self) -> bool:
        """Undo the last step. Returns False when there is no history."""
        if not self.history:
            return False
        snapshot = self.history.pop()
        self.pc = snapshot.pc
        self.stack = snapshot.stack
        self.globals = snapshot.globals
        self.call_stack = snapshot.call_stack
        self.classes = snapshot.classes
        self.step_count = snapshot.step_count
        del self.output[snapshot.output_length:]
        self.status = ExecutionStatus.PAUSED
        self.error = None
        self.error_info = None
        logger.debug("stepped back to pc=%d (%d snapshots left)", self.pc, len(self.history))
        return True

    def get_history_length(self) -> int:
        return len(self.history)

    def clear_history(self):
        self.history.clear()

    def set_max_history_size(self, size: int):
        self.max_history_size = max(1, size)
        while len(self.history) > self.max_history_size:
            self.history.popleft()

    # -- Expression evaluation ----------------------------------------------

    def evaluate_expression(self, source: str) -> Any:
        """Evaluate `source` against the live globals without moving the program.

        Returns the expression's value, or None (with a logged warning) when
        it fails to compile, raises, or runs out of steps.
        """
        saved = (self.program, self.pc, self.stack, self.status, self.call_stack,
                 self.classes, self.step_count, self.error, self.error_info)
        output_length = len(self.output)
        self._evaluating = True
        try:
            program = BytecodeCompiler("<expression>", keep_result=True).compile(
                parse(tokenize(source, "<expression>"), "<expression>"))

            self.program = program
            self.pc = 0
            self.stack = []
            self.call_stack = []
            self.classes = {}
            self.status = ExecutionStatus.READY
            self.error = None
            self.step_count = 0

            steps = 0
            while self.status not in (ExecutionStatus.COMPLETED, ExecutionStatus.ERROR):
                if steps >= self.eval_max_steps:
                    logger.warning("expression %r did not finish within %d steps", source, self.eval_max_steps)
                    return None
                self.status = ExecutionStatus.RUNNING
                self._execute_next()
                steps += 1

            if self.status == ExecutionStatus.ERROR:
                logger.warning("expression %r failed: %s", source, self.error)
                return None
            return self.stack[-1] if self.stack else None
        except MiniPyError as e:
            logger.warning("could not evaluate expression %r: %s", source, e)
            return None
        except Exception:
            logger.warning("expression %r raised", source, exc_info=True)
            return None
        finally:
            (self.program, self.pc, self.stack, self.status, self.call_stack,
             self.classes, self.step_count, self.error, self.error_info) = saved
            # print() during evaluation does not reach the program output
            del self.output[output_length:]
            self._evaluating = False

    # -- Visualization ------------------------------------------------------

    def get_execution_visualization(self) -> ExecutionVisualization:
        current_instruction = None
        if self.program is not None and self.pc < len(self.program.instructions):
            current_instruction = self.program.instructions[self.pc].describe()

        return ExecutionVisualization(
            current_line=self.get_current_line(),
            current_instruction=current_instruction,
            stack=list(self.stack),
            variables=self.get_variables(),
            watched_variables=self.get_watched_values(),
            call_stack=self.get_call_stack_for_visualization(),
            can_step_back=bool(self.history),
            history_length=len(self.history),
            breakpoints=self.get_breakpoints(),
            status=self.status,
        )
