"""
AST to Bytecode Compiler for the MiniPython VM

Turns a parsed Program into a CompiledProgram in five passes:

1. collect top-level function and class definitions
2. emit one CLASS_DEF per class
3. compile the main body, terminated by HALT
4. compile each function body and record its entry address
5. compile each class's methods as "Class.method"

Forward jumps are emitted with a placeholder target and patched once the
target address is known. Loop contexts live on a LoopStack that is owned
by the body being compiled, so a function body never sees the loops of
its caller.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .bytecode import Opcode, BytecodeBuilder, CompiledProgram, format_call_arg
from .. import minipy_ast
from ..errors import get_error_reporter, CompilationError
from ..object import is_integral

logger = logging.getLogger(__name__)

_BINARY_OPCODES = {
    "+": Opcode.ADD,
    "-": Opcode.SUB,
    "*": Opcode.MUL,
    "/": Opcode.DIV,
    "%": Opcode.MOD,
    "//": Opcode.FLOOR_DIV,
    "**": Opcode.POW,
    "==": Opcode.EQ,
    "!=": Opcode.NEQ,
    "<": Opcode.LT,
    ">": Opcode.GT,
    "<=": Opcode.LTE,
    ">=": Opcode.GTE,
    "in": Opcode.IN,
}

_AUGMENTED_OPCODES = {
    "+=": Opcode.ADD,
    "-=": Opcode.SUB,
    "*=": Opcode.MUL,
    "/=": Opcode.DIV,
}

FOREACH_PREFIX = "__foreach_"
FOR_PREFIX = "__for_"


@dataclass
class LoopContext:
    break_jumps: List[int] = field(default_factory=list)
    continue_jumps: List[int] = field(default_factory=list)
    # known up front for while/repeat, discovered later for for/for-each
    continue_target: Optional[int] = None


class LoopStack:
    """Loop contexts of one body (main program, function or method)."""

    def __init__(self):
        self._contexts: List[LoopContext] = []

    def push(self, continue_target=None) -> LoopContext:
        ctx = LoopContext(continue_target=continue_target)
        self._contexts.append(ctx)
        return ctx

    def pop(self) -> LoopContext:
        return self._contexts.pop()

    @property
    def current(self) -> Optional[LoopContext]:
        return self._contexts[-1] if self._contexts else None

    def __len__(self):
        return len(self._contexts)


class BytecodeCompiler:
    """
    Compiles a MiniPython Program to VM bytecode.
    """

    def __init__(self, filename="<stdin>", keep_result=False):
        self.filename = filename
        # leave the value of a trailing expression statement on the stack
        self.keep_result = keep_result
        self.builder = BytecodeBuilder()
        self.function_defs = {}
        self.class_defs = {}
        self.temp_counter = 0
        self._line = None
        self.error_reporter = get_error_reporter()

    def compile(self, program) -> CompiledProgram:
        """Compile a Program node to a CompiledProgram"""
        self.builder = BytecodeBuilder()
        self.function_defs = {}
        self.class_defs = {}
        self.temp_counter = 0

        # 1. definitions first so calls can be classified anywhere
        main_body = []
        for stmt in program.body:
            if isinstance(stmt, minipy_ast.FunctionDef):
                self.function_defs[stmt.name] = stmt
            elif isinstance(stmt, minipy_ast.ClassDef):
                self.class_defs[stmt.name] = stmt
            else:
                main_body.append(stmt)

        # 2. class registration
        for name, cls in self.class_defs.items():
            self._emit(Opcode.CLASS_DEF, name, line=cls.line)

        # 3. main program
        loops = LoopStack()
        if self.keep_result and main_body and isinstance(main_body[-1], minipy_ast.ExpressionStatement):
            self._compile_block(main_body[:-1], loops)
            self._line = main_body[-1].line
            self._compile_expression(main_body[-1].expression)
        else:
            self._compile_block(main_body, loops)
        self._line = None
        self._emit(Opcode.HALT)

        program_out = self.builder.program

        # 4. functions
        for name, fn in self.function_defs.items():
            program_out.functions[name] = self._compile_function(fn)
            program_out.arities[name] = len(fn.params)

        # 5. methods
        for class_name, cls in self.class_defs.items():
            methods = {}
            for method in cls.methods:
                address = self._compile_function(method)
                methods[method.name] = address
                program_out.functions[f"{class_name}.{method.name}"] = address
                program_out.arities[f"{class_name}.{method.name}"] = len(method.params)
            program_out.classes[class_name] = methods

        logger.debug(
            "compiled %d instructions, functions=%s, classes=%s",
            len(program_out.instructions),
            sorted(self.function_defs),
            sorted(self.class_defs),
        )
        return self.builder.build()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, opcode, operand=None, line=None):
        return self.builder.emit(opcode, operand, line if line is not None else self._line)

    def _emit_jump(self, opcode):
        return self.builder.emit_jump(opcode, self._line)

    def _patch(self, idx, target=None):
        self.builder.patch_jump(idx, target)

    @property
    def _address(self):
        return self.builder.address

    def _make_temp_name(self, prefix):
        name = f"{prefix}{self.temp_counter}"
        self.temp_counter += 1
        return name

    def _error(self, message, node=None, suggestion=None):
        return self.error_reporter.report_error(
            CompilationError,
            message,
            line=getattr(node, "line", None) or self._line,
            column=getattr(node, "column", None),
            filename=self.filename,
            suggestion=suggestion,
        )

    def _compile_function(self, fn):
        self._line = fn.line
        entry = self._address
        # arguments arrive in call order, so the last one is on top
        for param in reversed(fn.params):
            self._emit(Opcode.STORE, param)
        self._compile_block(fn.body, LoopStack())
        self._line = None
        self._emit(Opcode.PUSH, None)
        self._emit(Opcode.RETURN)
        return entry

    def _compile_block(self, statements, loops):
        for stmt in statements:
            self._compile_statement(stmt, loops)

    def _compile_statement(self, node, loops):
        """Dispatch to specific statement compiler method"""
        self._line = node.line
        method = getattr(self, f"_compile_{type(node).__name__}", None)
        if method is None:
            raise self._error(f"Cannot compile statement {type(node).__name__}", node)
        method(node, loops)

    def _compile_expression(self, node):
        """Dispatch to specific expression compiler method"""
        method = getattr(self, f"_compile_{type(node).__name__}", None)
        if method is None:
            raise self._error(f"Cannot compile expression {type(node).__name__}", node)
        saved = self._line
        if node.line is not None:
            self._line = node.line
        method(node)
        self._line = saved

    # ==================== Statements ====================

    def _compile_ExpressionStatement(self, node, loops):
        self._compile_expression(node.expression)
        self._emit(Opcode.POP)

    def _compile_Assignment(self, node, loops):
        self._compile_expression(node.value)
        self._emit(Opcode.STORE, node.target)

    def _compile_AugmentedAssignment(self, node, loops):
        if not isinstance(node.target, str):
            raise self._error("Augmented assignment needs a variable name on the left", node)
        opcode = _AUGMENTED_OPCODES.get(node.operator)
        if opcode is None:
            raise self._error(f"Unknown augmented operator '{node.operator}'", node)
        self._emit(Opcode.LOAD, node.target)
        self._compile_expression(node.value)
        self._emit(opcode)
        self._emit(Opcode.STORE, node.target)

    def _compile_IndexedAssignment(self, node, loops):
        self._compile_expression(node.object)
        self._compile_expression(node.index)
        self._compile_expression(node.value)
        self._emit(Opcode.ARRAY_SET)

    def _compile_MemberAssignment(self, node, loops):
        self._compile_expression(node.object)
        self._emit(Opcode.PUSH, node.property)
        self._compile_expression(node.value)
        self._emit(Opcode.MEMBER_SET)

    def _compile_IfStatement(self, node, loops):
        """Compile if/elif/else chain"""
        branches = [(node.condition, node.consequent, node.line)]
        branches += [(b.condition, b.consequent, b.line) for b in node.elif_branches]
        end_jumps = []

        for index, (condition, body, line) in enumerate(branches):
            self._line = line
            self._compile_expression(condition)
            skip = self._emit_jump(Opcode.JUMP_IF_NOT)
            self._compile_block(body, loops)
            is_last = index == len(branches) - 1 and node.alternate is None
            if not is_last:
                self._line = line
                end_jumps.append(self._emit_jump(Opcode.JUMP))
            self._patch(skip)

        if node.alternate is not None:
            self._compile_block(node.alternate, loops)

        for jump in end_jumps:
            self._patch(jump)

    def _literal_count(self, count):
        if (isinstance(count, minipy_ast.NumberLiteral) and is_integral(count.value)
                and count.value >= 0):
            return int(count.value)
        return None

    def _compile_RepeatStatement(self, node, loops):
        """repeat N times: the counter lives on the operand stack"""
        count_value = self._literal_count(node.count)
        count_temp = None
        if count_value is None:
            # evaluated once, before the first iteration
            count_temp = self._make_temp_name(f"{FOR_PREFIX}count_")
            self._compile_expression(node.count)
            self._emit(Opcode.REPEAT_COUNT)
            self._emit(Opcode.STORE, count_temp)

        self._emit(Opcode.PUSH, 0)
        loop_start = self._address
        self._emit(Opcode.DUP)
        if count_temp is None:
            self._emit(Opcode.PUSH, count_value)
        else:
            self._emit(Opcode.LOAD, count_temp)
        self._emit(Opcode.GTE)
        exit_jump = self._emit_jump(Opcode.JUMP_IF)

        ctx = loops.push()
        self._compile_block(node.body, loops)
        loops.pop()

        self._line = node.line
        continue_target = self._address
        self._emit(Opcode.PUSH, 1)
        self._emit(Opcode.ADD)
        self._emit(Opcode.JUMP, loop_start)

        self._patch(exit_jump)
        for jump in ctx.break_jumps:
            self._patch(jump)
        for jump in ctx.continue_jumps:
            self._patch(jump, continue_target)
        self._emit(Opcode.POP)

    def _compile_WhileStatement(self, node, loops):
        """Compile while loop"""
        loop_start = self._address
        self._compile_expression(node.condition)
        exit_jump = self._emit_jump(Opcode.JUMP_IF_NOT)

        ctx = loops.push(continue_target=loop_start)
        self._compile_block(node.body, loops)
        loops.pop()

        self._line = node.line
        self._emit(Opcode.JUMP, loop_start)
        self._patch(exit_jump)
        for jump in ctx.break_jumps:
            self._patch(jump)

    def _literal_step(self, step):
        if step is None:
            return 1
        if isinstance(step, minipy_ast.NumberLiteral):
            return step.value
        if (isinstance(step, minipy_ast.UnaryOp) and step.operator == "-"
                and isinstance(step.operand, minipy_ast.NumberLiteral)):
            return -step.operand.value
        return None

    def _compile_ForStatement(self, node, loops):
        """for var in range(start, end, step)"""
        step_value = self._literal_step(node.step)
        if step_value == 0:
            raise self._error("range() step cannot be zero", node.step,
                              suggestion="Use a positive step to count up or a negative one to count down.")

        suffix = self.temp_counter
        self.temp_counter += 1
        end_temp = f"{FOR_PREFIX}end_{suffix}"
        step_temp = f"{FOR_PREFIX}step_{suffix}" if step_value is None else None

        # start, end and step are evaluated once, in that order
        self._compile_expression(node.start)
        self._compile_expression(node.end)
        if step_temp is None:
            self._emit(Opcode.PUSH, step_value)
        else:
            self._compile_expression(node.step)
        self._emit(Opcode.RANGE_CHECK)
        if step_temp is None:
            self._emit(Opcode.POP)
        else:
            self._emit(Opcode.STORE, step_temp)
        self._emit(Opcode.STORE, end_temp)
        self._emit(Opcode.STORE, node.variable)

        loop_start = self._address
        if step_temp is None:
            self._emit(Opcode.LOAD, node.variable)
            self._emit(Opcode.LOAD, end_temp)
            self._emit(Opcode.LT if step_value > 0 else Opcode.GT)
        else:
            # direction chosen at run time, both arms leave one bool
            self._emit(Opcode.LOAD, step_temp)
            self._emit(Opcode.PUSH, 0)
            self._emit(Opcode.GT)
            descending = self._emit_jump(Opcode.JUMP_IF_NOT)
            self._emit(Opcode.LOAD, node.variable)
            self._emit(Opcode.LOAD, end_temp)
            self._emit(Opcode.LT)
            compared = self._emit_jump(Opcode.JUMP)
            self._patch(descending)
            self._emit(Opcode.LOAD, node.variable)
            self._emit(Opcode.LOAD, end_temp)
            self._emit(Opcode.GT)
            self._patch(compared)
        exit_jump = self._emit_jump(Opcode.JUMP_IF_NOT)

        ctx = loops.push()
        self._compile_block(node.body, loops)
        loops.pop()

        self._line = node.line
        ctx.continue_target = self._address
        self._emit(Opcode.LOAD, node.variable)
        if step_temp is None:
            self._emit(Opcode.PUSH, step_value)
        else:
            self._emit(Opcode.LOAD, step_temp)
        self._emit(Opcode.ADD)
        self._emit(Opcode.STORE, node.variable)
        self._emit(Opcode.JUMP, loop_start)

        self._patch(exit_jump)
        for jump in ctx.break_jumps:
            self._patch(jump)
        for jump in ctx.continue_jumps:
            self._patch(jump, ctx.continue_target)

    def _compile_ForEachStatement(self, node, loops):
        """for item in iterable"""
        suffix = self.temp_counter
        self.temp_counter += 1
        arr = f"{FOREACH_PREFIX}arr_{suffix}"
        length = f"{FOREACH_PREFIX}len_{suffix}"
        index = f"{FOREACH_PREFIX}idx_{suffix}"

        self._compile_expression(node.iterable)
        self._emit(Opcode.STORE, arr)
        self._emit(Opcode.LOAD, arr)
        self._emit(Opcode.CALL, format_call_arg("len", 1))
        self._emit(Opcode.STORE, length)
        self._emit(Opcode.PUSH, 0)
        self._emit(Opcode.STORE, index)

        loop_start = self._address
        self._emit(Opcode.LOAD, index)
        self._emit(Opcode.LOAD, length)
        self._emit(Opcode.LT)
        exit_jump = self._emit_jump(Opcode.JUMP_IF_NOT)
        self._emit(Opcode.LOAD, arr)
        self._emit(Opcode.LOAD, index)
        self._emit(Opcode.ARRAY_GET)
        self._emit(Opcode.STORE, node.variable)

        ctx = loops.push()
        self._compile_block(node.body, loops)
        loops.pop()

        self._line = node.line
        ctx.continue_target = self._address
        self._emit(Opcode.LOAD, index)
        self._emit(Opcode.PUSH, 1)
        self._emit(Opcode.ADD)
        self._emit(Opcode.STORE, index)
        self._emit(Opcode.JUMP, loop_start)

        self._patch(exit_jump)
        for jump in ctx.break_jumps:
            self._patch(jump)
        for jump in ctx.continue_jumps:
            self._patch(jump, ctx.continue_target)

    def _compile_BreakStatement(self, node, loops):
        """Compile break statement"""
        if loops.current is None:
            raise self._error("'break' outside of a loop", node,
                              suggestion="break can only be used inside repeat, while or for.")
        loops.current.break_jumps.append(self._emit_jump(Opcode.JUMP))

    def _compile_ContinueStatement(self, node, loops):
        """Compile continue statement"""
        ctx = loops.current
        if ctx is None:
            raise self._error("'continue' outside of a loop", node,
                              suggestion="continue can only be used inside repeat, while or for.")
        if ctx.continue_target is not None:
            self._emit(Opcode.JUMP, ctx.continue_target)
        else:
            ctx.continue_jumps.append(self._emit_jump(Opcode.JUMP))

    def _compile_PassStatement(self, node, loops):
        self._emit(Opcode.NOP)

    def _compile_ReturnStatement(self, node, loops):
        if node.value is None:
            self._emit(Opcode.PUSH, None)
        else:
            self._compile_expression(node.value)
        self._emit(Opcode.RETURN)

    def _compile_FunctionDef(self, node, loops):
        raise self._error(f"Function '{node.name}' must be defined at the top level", node,
                          suggestion="Move the def out of the block, without indentation.")

    def _compile_ClassDef(self, node, loops):
        raise self._error(f"Class '{node.name}' must be defined at the top level", node)

    # ==================== Expressions ====================

    def _compile_NumberLiteral(self, node):
        self._emit(Opcode.PUSH, node.value)

    def _compile_StringLiteral(self, node):
        self._emit(Opcode.PUSH, node.value)

    def _compile_BooleanLiteral(self, node):
        self._emit(Opcode.PUSH, node.value)

    def _compile_Identifier(self, node):
        self._emit(Opcode.LOAD, node.name)

    def _compile_BinaryOp(self, node):
        """Compile binary operators, with short-circuit and/or"""
        if node.operator in ("and", "or"):
            self._compile_expression(node.left)
            self._emit(Opcode.DUP)
            end_jump = self._emit_jump(Opcode.JUMP_IF_NOT if node.operator == "and" else Opcode.JUMP_IF)
            self._emit(Opcode.POP)
            self._compile_expression(node.right)
            self._patch(end_jump)
            return

        opcode = _BINARY_OPCODES.get(node.operator)
        if opcode is None:
            raise self._error(f"Unknown operator '{node.operator}'", node)
        self._compile_expression(node.left)
        self._compile_expression(node.right)
        self._emit(opcode)

    def _compile_UnaryOp(self, node):
        self._compile_expression(node.operand)
        if node.operator == "-":
            self._emit(Opcode.NEG)
        elif node.operator == "not":
            self._emit(Opcode.NOT)
        else:
            raise self._error(f"Unknown unary operator '{node.operator}'", node)

    def _compile_CallExpression(self, node):
        """Compile function call, classified once per call site"""
        for arg in node.arguments:
            self._compile_expression(arg)
        arg = format_call_arg(node.callee, len(node.arguments))
        if node.callee in self.class_defs:
            self._emit(Opcode.NEW, arg)
        elif node.callee in self.function_defs:
            self._emit(Opcode.CALL_USER, arg)
        else:
            self._emit(Opcode.CALL, arg)

    def _compile_NewExpression(self, node):
        for arg in node.arguments:
            self._compile_expression(arg)
        self._emit(Opcode.NEW, format_call_arg(node.class_name, len(node.arguments)))

    def _compile_MethodCall(self, node):
        self._compile_expression(node.object)
        for arg in node.arguments:
            self._compile_expression(arg)
        self._emit(Opcode.METHOD_CALL, format_call_arg(node.method, len(node.arguments) + 1))

    def _compile_ArrayLiteral(self, node):
        for element in node.elements:
            self._compile_expression(element)
        self._emit(Opcode.ARRAY_CREATE, len(node.elements))

    def _compile_ObjectLiteral(self, node):
        for key, value in node.properties:
            self._emit(Opcode.PUSH, key)
            self._compile_expression(value)
        self._emit(Opcode.OBJECT_CREATE, len(node.properties))

    def _compile_IndexAccess(self, node):
        self._compile_expression(node.object)
        self._compile_expression(node.index)
        self._emit(Opcode.ARRAY_GET)

    def _compile_SliceAccess(self, node):
        self._compile_expression(node.object)
        for bound in (node.start, node.end):
            if bound is None:
                self._emit(Opcode.PUSH, None)
            else:
                self._compile_expression(bound)
        self._emit(Opcode.SLICE)

    def _compile_MemberAccess(self, node):
        self._compile_expression(node.object)
        self._emit(Opcode.PUSH, node.property)
        self._emit(Opcode.MEMBER_GET)


def compile_to_ir(program, filename="<stdin>") -> CompiledProgram:
    """Compile a Program node into a CompiledProgram."""
    return BytecodeCompiler(filename).compile(program)
