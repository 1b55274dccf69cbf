# src/minipython/interpreter/core.py
"""
Tree-walking interpreter for MiniPython.

Walks the AST directly with the same stepping contract as the VM. A step
executes one statement of the innermost frame. The outermost loop of a
frame is stepped one body statement at a time; anything nested inside it,
and every user function call, runs to completion within the step.
"""
import logging
import sys
from typing import Any, Dict, List, Optional

from .. import minipy_ast
from ..config import EngineConfig, INTERPRETER_MAX_STEPS, DEFAULT_MAX_CALL_DEPTH, apply_engine_config
from ..engine import ExecutionStatus, StepResult, EngineState, HostBindingsMixin, call_depth_exceeded
from ..errors import MiniPyError, MiniPyRuntimeError
from .expressions import ExpressionMixin
from .frames import Frame
from .statements import StatementMixin

logger = logging.getLogger(__name__)

# host frames used by one MiniPython call, with room for nested expressions
_HOST_FRAMES_PER_CALL = 30


class Interpreter(HostBindingsMixin, ExpressionMixin, StatementMixin):
    def __init__(self, config: Optional[EngineConfig] = None):
        config = config or EngineConfig()
        self.program: Optional[minipy_ast.Program] = None
        self.call_stack: List[Frame] = []
        self.globals: Dict[str, Any] = {}
        self.functions: Dict[str, minipy_ast.FunctionDef] = {}
        # class name -> {method name -> FunctionDef}
        self.classes: Dict[str, Dict[str, minipy_ast.FunctionDef]] = {}
        self.status = ExecutionStatus.READY
        self.error: Optional[str] = None
        self.error_info: Optional[Dict[str, Any]] = None
        self.step_count = 0
        self.max_steps = config.max_steps or INTERPRETER_MAX_STEPS
        self.max_call_depth = DEFAULT_MAX_CALL_DEPTH
        self.output: List[str] = []

        self.command_handlers = {}
        self.sensor_handlers = {}

        self._current_result = StepResult()
        self._line: Optional[int] = None
        self._statements_this_step = 0
        self._call_depth = 0

        apply_engine_config(self, config)

    # ------------------------------------------------------------------
    # Program loading
    # ------------------------------------------------------------------

    def load(self, program: minipy_ast.Program):
        self.program = program
        self.reset()
        logger.debug("loaded program with %d statements, %d functions, %d classes",
                     len(program.body), len(self.functions), len(self.classes))

    def reset(self):
        """Rewind the loaded program. Host bindings survive, globals do not."""
        self.call_stack = []
        self.globals = {}
        self.functions = {}
        self.classes = {}
        self.status = ExecutionStatus.READY
        self.error = None
        self.error_info = None
        self.step_count = 0
        self.output = []
        self._line = None
        self._call_depth = 0

        if self.program is not None:
            main = []
            for stmt in self.program.body:
                if isinstance(stmt, minipy_ast.FunctionDef):
                    self.functions[stmt.name] = stmt
                elif isinstance(stmt, minipy_ast.ClassDef):
                    self.classes[stmt.name] = {m.name: m for m in stmt.methods}
                else:
                    main.append(stmt)
            self.call_stack.append(Frame(function_name=None, statements=main))
        logger.debug("interpreter reset")

    # ------------------------------------------------------------------
    # Execution control
    # ------------------------------------------------------------------

    def _finished(self):
        return self.program is None or self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.ERROR)

    def step(self) -> StepResult:
        """Execute one statement (or one loop transition)"""
        if self._finished():
            return StepResult(done=True)

        self.status = ExecutionStatus.RUNNING
        self.step_count += 1

        if self.step_count > self.max_steps:
            self._fail(self._too_many_steps(self.get_current_line()))
            return StepResult(done=True)

        result = StepResult()
        self._current_result = result
        self._statements_this_step = 0
        try:
            self._execute_with_call_headroom(result)
        except MiniPyError as e:
            if e.line is None:
                e.line = self._line
            self._fail(e)
            return StepResult(done=True, highlight_line=e.line)
        except RecursionError:
            # expressions nested deeper than the host allows
            self._fail(call_depth_exceeded(self._line))
            return StepResult(done=True, highlight_line=self._line)

        self._unwind_finished_frames()
        if not self.call_stack and self.status == ExecutionStatus.RUNNING:
            self.status = ExecutionStatus.COMPLETED
        result.done = self.status == ExecutionStatus.COMPLETED
        return result

    def _execute_with_call_headroom(self, result):
        prev_limit = sys.getrecursionlimit()
        needed = prev_limit + self.max_call_depth * _HOST_FRAMES_PER_CALL
        sys.setrecursionlimit(needed)
        try:
            self._execute_step(result)
        finally:
            sys.setrecursionlimit(prev_limit)

    def _execute_step(self, result):
        self._unwind_finished_frames()
        if not self.call_stack:
            self.status = ExecutionStatus.COMPLETED
            return

        frame = self.call_stack[-1]
        if frame.loop_kind is not None:
            self._loop_step(frame)
            return

        stmt = frame.statements[frame.index]
        result.highlight_line = stmt.line
        self._line = stmt.line
        self._step_statement(stmt, frame)

    def _unwind_finished_frames(self):
        while self.call_stack and self.call_stack[-1].finished:
            self.call_stack.pop()

    def _finish_program(self, value):
        # return at the top level ends the program
        logger.debug("program returned %r", value)
        self.call_stack = []
        self.status = ExecutionStatus.COMPLETED

    def _tick(self, stmt):
        self._line = stmt.line
        self._statements_this_step += 1
        if self._statements_this_step > self.max_steps:
            raise self._too_many_steps(stmt.line)

    def _too_many_steps(self, line):
        return MiniPyRuntimeError(
            f"Too many steps ({self.max_steps}), the program may contain an infinite loop",
            line=line,
            suggestion="Make sure every loop has a way to finish.",
        )

    def _fail(self, error: MiniPyError):
        self.error = error.message
        self.error_info = error.to_dict()
        self.status = ExecutionStatus.ERROR
        logger.error("runtime error: %s", error)

    def run(self) -> StepResult:
        """Run until completion, a host command, a pause or an error"""
        while True:
            result = self.step()
            if result.done or result.action is not None or self.status == ExecutionStatus.PAUSED:
                return result

    def run_all(self) -> List[StepResult]:
        """Run to the end, collecting every step that invoked a command"""
        results = []
        while True:
            result = self.step()
            if result.action is not None:
                results.append(result)
            if result.done:
                return results

    def pause(self):
        if self.status == ExecutionStatus.RUNNING:
            self.status = ExecutionStatus.PAUSED

    def resume(self):
        if self.status == ExecutionStatus.PAUSED:
            self.status = ExecutionStatus.RUNNING

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def _get_variable(self, name):
        if self.call_stack:
            frame_locals = self.call_stack[-1].locals
            if name in frame_locals:
                return frame_locals[name]
        if name in self.globals:
            return self.globals[name]
        raise MiniPyRuntimeError(
            f'Variable "{name}" is not defined',
            suggestion=f"Assign a value before using it, for example: {name} = 0",
        )

    def _set_variable(self, name, value):
        if self.call_stack:
            frame = self.call_stack[-1]
            if frame.function_name is not None or name in frame.locals:
                frame.locals[name] = value
                return
        self.globals[name] = value

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def get_current_line(self) -> Optional[int]:
        for frame in reversed(self.call_stack):
            if frame.loop_kind is not None:
                if frame.loop_body_index < len(frame.loop_body):
                    return frame.loop_body[frame.loop_body_index].line
                return frame.loop_statement.line
            if frame.index < len(frame.statements):
                return frame.statements[frame.index].line
        return None

    def get_variables(self) -> Dict[str, Any]:
        variables = dict(self.globals)
        if self.call_stack:
            variables.update(self.call_stack[-1].locals)
        return variables

    def get_state(self) -> EngineState:
        return EngineState(
            status=self.status,
            error=self.error,
            error_info=self.error_info,
            current_line=self.get_current_line(),
            step_count=self.step_count,
            variables=self.get_variables(),
            call_depth=sum(1 for f in self.call_stack if f.function_name is not None),
        )

    def get_call_stack_for_visualization(self) -> List[Dict[str, Any]]:
        # user calls finish inside a step, so between steps only <main> is live
        return [{
            "name": "<main>",
            "line": self.get_current_line() or 1,
            "locals": dict(self.globals),
        }]
