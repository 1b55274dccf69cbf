"""
Stack VM for MiniPython.

Executes a CompiledProgram one instruction per `step()`. State is an
explicit machine (ready -> running -> paused/completed/error) and `step`
is the only transition that runs code. Host code drives it:

    vm = VM()
    vm.load(compile_program(source))
    vm.register_command("forward", move_forward)
    while not (result := vm.run()).done:
        ...  # a command ran, sync the host world, then continue
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .bytecode import Opcode, CompiledProgram, parse_call_arg
from .compiler import FOREACH_PREFIX, FOR_PREFIX
from .debugger import DebuggerMixin
from ..builtins import call_builtin, is_builtin
from ..config import EngineConfig, VM_MAX_STEPS, DEFAULT_MAX_CALL_DEPTH, apply_engine_config
from ..engine import ExecutionStatus, StepResult, EngineState, HostBindingsMixin, call_depth_exceeded
from ..errors import MiniPyError, MiniPyRuntimeError
from ..object import (
    Instance, is_truthy, values_equal, add, sub, mul, div, mod, floor_div,
    power, negate, compare, contains, index_get, index_set, slice_value,
    member_get, member_set, type_name, repeat_count, check_range,
)

logger = logging.getLogger(__name__)

_HIDDEN_PREFIXES = (FOREACH_PREFIX, FOR_PREFIX)

_ARITHMETIC = {
    Opcode.ADD: add,
    Opcode.SUB: sub,
    Opcode.MUL: mul,
    Opcode.DIV: div,
    Opcode.MOD: mod,
    Opcode.FLOOR_DIV: floor_div,
    Opcode.POW: power,
}

_COMPARISONS = {
    Opcode.LT: "<",
    Opcode.GT: ">",
    Opcode.LTE: "<=",
    Opcode.GTE: ">=",
}


@dataclass
class CallFrame:
    return_address: int
    function_name: str
    call_line: Optional[int] = None
    locals: Dict[str, Any] = field(default_factory=dict)
    # operand stack height when the frame was entered, before its arguments
    stack_base: int = 0
    is_constructor: bool = False
    instance: Optional[Instance] = None


def visible_variables(variables):
    return {k: v for k, v in variables.items() if not k.startswith(_HIDDEN_PREFIXES)}


class VM(HostBindingsMixin, DebuggerMixin):
    def __init__(self, config: Optional[EngineConfig] = None):
        config = config or EngineConfig()
        self.program: Optional[CompiledProgram] = None
        self.pc = 0
        self.stack: List[Any] = []
        self.globals: Dict[str, Any] = {}
        self.call_stack: List[CallFrame] = []
        # class name -> {method name -> entry address}, filled by CLASS_DEF
        self.classes: Dict[str, Dict[str, int]] = {}
        self.status = ExecutionStatus.READY
        self.error: Optional[str] = None
        self.error_info: Optional[Dict[str, Any]] = None
        self.step_count = 0
        self.max_steps = config.max_steps or VM_MAX_STEPS
        self.max_call_depth = DEFAULT_MAX_CALL_DEPTH
        self.output: List[str] = []

        self.command_handlers = {}
        self.sensor_handlers = {}

        self._init_debugger(config)
        apply_engine_config(self, config)

        self._dispatch = {op: getattr(self, f"_op_{op.name}") for op in Opcode}

    # ------------------------------------------------------------------
    # Program loading
    # ------------------------------------------------------------------

    def load(self, program: CompiledProgram):
        self.program = program
        self.reset()
        logger.debug("loaded program with %d instructions", len(program.instructions))

    def reset(self):
        """Clear execution state. Watches and breakpoints survive."""
        self.pc = 0
        self.stack = []
        self.globals = {}
        self.call_stack = []
        self.classes = {}
        self.status = ExecutionStatus.READY
        self.error = None
        self.error_info = None
        self.step_count = 0
        self.output = []
        self.history.clear()
        logger.debug("vm reset")

    # ------------------------------------------------------------------
    # Execution control
    # ------------------------------------------------------------------

    def _finished(self):
        return self.program is None or self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.ERROR)

    def step(self) -> StepResult:
        """Execute a single instruction"""
        if self._finished():
            return StepResult(done=True)

        self._save_snapshot()
        self.status = ExecutionStatus.RUNNING
        self.step_count += 1

        if self.step_count > self.max_steps:
            self._fail(MiniPyRuntimeError(
                f"Too many steps ({self.max_steps}), the program may contain an infinite loop",
                line=self.get_current_line(),
                suggestion="Make sure every loop has a way to finish.",
            ))
            return StepResult(done=True)

        return self._execute_next()

    def _execute_next(self) -> StepResult:
        if self.pc >= len(self.program.instructions):
            self.status = ExecutionStatus.COMPLETED
            return StepResult(done=True)

        address = self.pc
        inst = self.program.instructions[address]
        result = StepResult(highlight_line=inst.line)
        try:
            self.pc += 1
            self._dispatch[inst.op](inst, result)
        except MiniPyError as e:
            self.pc = address
            if e.line is None:
                e.line = inst.line
            self._fail(e)
            return StepResult(done=True, highlight_line=inst.line)
        return result

    def _fail(self, error: MiniPyError):
        self.error = error.message
        self.error_info = error.to_dict()
        self.status = ExecutionStatus.ERROR
        if self._evaluating:
            logger.debug("expression error: %s", error)
        else:
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
    # State access
    # ------------------------------------------------------------------

    def get_current_line(self) -> Optional[int]:
        if self.program is None or self.pc >= len(self.program.instructions):
            return None
        return self.program.instructions[self.pc].line

    def get_variables(self) -> Dict[str, Any]:
        variables = dict(self.globals)
        if self.call_stack:
            variables.update(self.call_stack[-1].locals)
        return visible_variables(variables)

    def get_state(self) -> EngineState:
        return EngineState(
            status=self.status,
            error=self.error,
            error_info=self.error_info,
            current_line=self.get_current_line(),
            step_count=self.step_count,
            pc=self.pc,
            stack=list(self.stack),
            variables=self.get_variables(),
            call_depth=len(self.call_stack),
        )

    def get_call_stack_for_visualization(self) -> List[Dict[str, Any]]:
        # a caller sits on the line of the call it is waiting for
        lines = [frame.call_line for frame in self.call_stack] + [self.get_current_line()]
        frames = [{
            "name": "<main>",
            "line": lines[0] or 1,
            "locals": visible_variables(self.globals) if not self.call_stack else {},
        }]
        for i, frame in enumerate(self.call_stack):
            frames.append({
                "name": frame.function_name,
                "line": lines[i + 1] or frame.call_line or 1,
                "locals": visible_variables(frame.locals),
            })
        return frames

    # ------------------------------------------------------------------
    # Stack and variable helpers
    # ------------------------------------------------------------------

    def _push(self, value):
        self.stack.append(value)

    def _pop(self):
        if not self.stack:
            raise MiniPyRuntimeError("Operand stack is empty")
        return self.stack.pop()

    def _peek(self):
        if not self.stack:
            raise MiniPyRuntimeError("Operand stack is empty")
        return self.stack[-1]

    def _pop_n(self, n):
        if n > len(self.stack):
            raise MiniPyRuntimeError("Operand stack is empty")
        if n == 0:
            return []
        values = self.stack[-n:]
        del self.stack[-n:]
        return values

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
            self.call_stack[-1].locals[name] = value
        else:
            self.globals[name] = value

    def _enter(self, name, address, argc, line, stack_base, instance=None):
        expected = self.program.arities.get(name)
        given = argc + (1 if instance is not None else 0)
        if expected is not None and expected != given:
            shown = name.split(".", 1)[-1] if instance is not None else name
            raise MiniPyRuntimeError(
                f"{shown}() takes {expected - (1 if instance is not None else 0)} "
                f"argument(s) but {argc} were given"
            )
        if len(self.call_stack) >= self.max_call_depth:
            raise call_depth_exceeded()
        self.call_stack.append(CallFrame(
            return_address=self.pc,
            function_name=name,
            call_line=line,
            stack_base=stack_base,
            is_constructor=instance is not None and name.endswith(".__init__"),
            instance=instance,
        ))
        self.pc = address

    # ==================== Opcodes ====================

    # Stack operations
    def _op_PUSH(self, inst, result):
        self._push(inst.arg)

    def _op_POP(self, inst, result):
        self._pop()

    def _op_DUP(self, inst, result):
        self._push(self._peek())

    # Variables
    def _op_LOAD(self, inst, result):
        self._push(self._get_variable(inst.arg))

    def _op_STORE(self, inst, result):
        self._set_variable(inst.arg, self._pop())

    # Arithmetic operations
    def _binary(self, fn):
        b = self._pop()
        a = self._pop()
        self._push(fn(a, b))

    def _op_ADD(self, inst, result):
        self._binary(_ARITHMETIC[inst.op])

    _op_SUB = _op_MUL = _op_DIV = _op_MOD = _op_FLOOR_DIV = _op_POW = _op_ADD

    def _op_NEG(self, inst, result):
        self._push(negate(self._pop()))

    # Comparison operations
    def _op_EQ(self, inst, result):
        self._binary(values_equal)

    def _op_NEQ(self, inst, result):
        self._binary(lambda a, b: not values_equal(a, b))

    def _op_LT(self, inst, result):
        op = _COMPARISONS[inst.op]
        self._binary(lambda a, b: compare(op, a, b))

    _op_GT = _op_LTE = _op_GTE = _op_LT

    def _op_IN(self, inst, result):
        self._binary(lambda item, container: contains(container, item))

    # Logical operations
    def _op_NOT(self, inst, result):
        self._push(not is_truthy(self._pop()))

    # Control flow
    def _op_JUMP(self, inst, result):
        self.pc = inst.arg

    def _op_JUMP_IF(self, inst, result):
        if is_truthy(self._pop()):
            self.pc = inst.arg

    def _op_JUMP_IF_NOT(self, inst, result):
        if not is_truthy(self._pop()):
            self.pc = inst.arg

    def _op_HALT(self, inst, result):
        self.pc -= 1
        self.status = ExecutionStatus.COMPLETED
        result.done = True

    def _op_NOP(self, inst, result):
        pass

    # Loop bounds
    def _op_REPEAT_COUNT(self, inst, result):
        self._push(repeat_count(self._pop()))

    def _op_RANGE_CHECK(self, inst, result):
        bounds = self._pop_n(3)
        check_range(*bounds)
        self.stack.extend(bounds)

    # Calls
    def _op_CALL(self, inst, result):
        name, argc = parse_call_arg(inst.arg)
        args = self._pop_n(argc)
        handled, value = self._call_host(name, args, result)
        if not handled:
            value = call_builtin(name, args, self.output)
        self._push(value)

    def _op_CALL_USER(self, inst, result):
        name, argc = parse_call_arg(inst.arg)
        address = self.program.functions.get(name)
        if address is None:
            raise MiniPyRuntimeError(f"Undefined function '{name}'")
        self._enter(name, address, argc, inst.line, stack_base=len(self.stack) - argc)

    def _op_RETURN(self, inst, result):
        value = self._pop()
        if not self.call_stack:
            # return from the main program ends it
            self.stack.clear()
            self._push(value)
            self.status = ExecutionStatus.COMPLETED
            result.done = True
            return

        frame = self.call_stack.pop()
        # drop loop counters the callee left behind
        del self.stack[frame.stack_base:]
        self._push(frame.instance if frame.is_constructor else value)
        self.pc = frame.return_address

    # Collections
    def _op_ARRAY_CREATE(self, inst, result):
        self._push(self._pop_n(inst.arg))

    def _op_ARRAY_GET(self, inst, result):
        index = self._pop()
        obj = self._pop()
        self._push(index_get(obj, index))

    def _op_ARRAY_SET(self, inst, result):
        value = self._pop()
        index = self._pop()
        obj = self._pop()
        index_set(obj, index, value)

    def _op_SLICE(self, inst, result):
        end = self._pop()
        start = self._pop()
        obj = self._pop()
        self._push(slice_value(obj, start, end))

    def _op_OBJECT_CREATE(self, inst, result):
        pairs = self._pop_n(inst.arg * 2)
        obj = {}
        for i in range(0, len(pairs), 2):
            obj[str(pairs[i])] = pairs[i + 1]
        self._push(obj)

    # Classes
    def _op_CLASS_DEF(self, inst, result):
        self.classes[inst.arg] = dict(self.program.classes.get(inst.arg, {}))

    def _op_NEW(self, inst, result):
        class_name, argc = parse_call_arg(inst.arg)
        args = self._pop_n(argc)
        methods = self.classes.get(class_name)
        if methods is None:
            raise MiniPyRuntimeError(f"Undefined class '{class_name}'")

        instance = Instance(class_name)
        init = methods.get("__init__")
        if init is None:
            if args:
                raise MiniPyRuntimeError(f"{class_name}() takes no arguments",
                                         suggestion="Define __init__ to accept arguments.")
            self._push(instance)
            return

        base = len(self.stack)
        self._push(instance)
        self.stack.extend(args)
        self._enter(f"{class_name}.__init__", init, argc, inst.line, stack_base=base, instance=instance)

    def _op_MEMBER_GET(self, inst, result):
        name = self._pop()
        obj = self._pop()
        self._push(member_get(obj, str(name)))

    def _op_MEMBER_SET(self, inst, result):
        value = self._pop()
        name = self._pop()
        obj = self._pop()
        member_set(obj, str(name), value)

    def _op_METHOD_CALL(self, inst, result):
        method, argc = parse_call_arg(inst.arg)
        values = self._pop_n(argc)
        receiver = values[0]

        if isinstance(receiver, Instance):
            address = self.classes.get(receiver.class_name, {}).get(method)
            if address is None:
                raise MiniPyRuntimeError(f'Class "{receiver.class_name}" has no method "{method}"')
            base = len(self.stack)
            self.stack.extend(values)
            self._enter(f"{receiver.class_name}.{method}", address, argc - 1, inst.line,
                        stack_base=base, instance=receiver)
            return

        # lists, strings and maps borrow the builtin of the same name
        if is_builtin(method):
            self._push(call_builtin(method, values, self.output))
            return
        raise MiniPyRuntimeError(f'A {type_name(receiver)} has no method "{method}"')
