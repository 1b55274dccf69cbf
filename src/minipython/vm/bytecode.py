"""
Bytecode definitions for the MiniPython VM.

A compiled program is a flat instruction list addressed by index. Jumps
carry absolute addresses; calls carry a "name:argc" string so the
disassembly stays readable.
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple


class Opcode(IntEnum):
    """
    Opcode set for the MiniPython VM.
    """
    # Stack operations
    PUSH = 1            # Push constant argument
    POP = 2             # Discard top of stack
    DUP = 3             # Duplicate top of stack

    # Variables
    LOAD = 10           # Push variable (locals, then globals)
    STORE = 11          # Pop into variable (locals inside a call)

    # Arithmetic operations
    ADD = 20
    SUB = 21
    MUL = 22
    DIV = 23
    MOD = 24
    FLOOR_DIV = 25
    POW = 26
    NEG = 27            # Unary negation

    # Comparison operations
    EQ = 30             # ==
    NEQ = 31            # !=
    LT = 32             # <
    GT = 33             # >
    LTE = 34            # <=
    GTE = 35            # >=
    IN = 36             # membership

    # Logical operations
    NOT = 40

    # Control flow
    JUMP = 50           # Unconditional jump
    JUMP_IF = 51        # Pop, jump when truthy
    JUMP_IF_NOT = 52    # Pop, jump when falsy

    # Calls
    CALL = 60           # Host command, sensor or builtin ("name:argc")
    CALL_USER = 61      # User function ("name:argc")
    RETURN = 62

    # Collections
    ARRAY_CREATE = 70
    ARRAY_GET = 71
    ARRAY_SET = 72
    SLICE = 73
    OBJECT_CREATE = 74

    # Classes
    CLASS_DEF = 80
    NEW = 81            # Instantiate ("Class:argc")
    MEMBER_GET = 82
    MEMBER_SET = 83
    METHOD_CALL = 84    # "method:argc", argc includes the receiver

    # Loop bounds
    REPEAT_COUNT = 90   # Validate the repeat count on top of the stack
    RANGE_CHECK = 91    # Validate start, end and step on top of the stack

    # Special
    HALT = 254
    NOP = 255           # No operation


JUMP_OPCODES = (Opcode.JUMP, Opcode.JUMP_IF, Opcode.JUMP_IF_NOT)


def format_call_arg(name: str, argc: int) -> str:
    return f"{name}:{argc}"


def parse_call_arg(arg: str) -> Tuple[str, int]:
    name, _, count = arg.rpartition(":")
    return name, int(count)


@dataclass
class Instruction:
    op: Opcode
    arg: Any = None
    line: Optional[int] = None

    def describe(self) -> str:
        """Human readable "OP arg" form used by debugger views."""
        if self.arg is None:
            return self.op.name
        return f"{self.op.name} {self.arg!r}" if self.op == Opcode.PUSH else f"{self.op.name} {self.arg}"


@dataclass
class CompiledProgram:
    """
    Output of the compiler and the only input of the VM.
    Treated as immutable once built.
    """
    instructions: List[Instruction] = field(default_factory=list)
    # function name (and "Class.method") -> entry address
    functions: Dict[str, int] = field(default_factory=dict)
    # instruction index -> source line
    source_map: Dict[int, int] = field(default_factory=dict)
    # class name -> {method name -> entry address}
    classes: Dict[str, Dict[str, int]] = field(default_factory=dict)
    # function or "Class.method" -> parameter count
    arities: Dict[str, int] = field(default_factory=dict)

    def line_at(self, address: int) -> Optional[int]:
        return self.source_map.get(address)

    def disassemble(self) -> str:
        """
        Generate human-readable disassembly of the program.
        """
        lines = []
        lines.append(f"Compiled program ({len(self.instructions)} instructions, "
                     f"{len(self.functions)} functions, {len(self.classes)} classes)")
        lines.append("=" * 60)

        if self.functions:
            lines.append("\nFunctions:")
            for name, address in sorted(self.functions.items(), key=lambda item: item[1]):
                lines.append(f"  {address:4d}: {name}")

        lines.append("\nInstructions:")
        for i, inst in enumerate(self.instructions):
            operand = "" if inst.arg is None else repr(inst.arg) if inst.op == Opcode.PUSH else str(inst.arg)
            source = f"; line {inst.line}" if inst.line is not None else ""
            lines.append(f"  {i:4d}  {inst.op.name:14s} {operand:20s} {source}".rstrip())

        return "\n".join(lines)

    def __repr__(self):
        return f"CompiledProgram({len(self.instructions)} instructions, {len(self.functions)} functions)"

    def __len__(self):
        return len(self.instructions)


class BytecodeBuilder:
    """
    Instruction arena with emit/patch helpers used by the compiler.
    """
    def __init__(self):
        self.program = CompiledProgram()

    @property
    def address(self) -> int:
        """Address the next emitted instruction will get."""
        return len(self.program.instructions)

    def emit(self, opcode: Opcode, operand: Any = None, line: Optional[int] = None) -> int:
        """Emit an instruction and return its address"""
        idx = len(self.program.instructions)
        self.program.instructions.append(Instruction(opcode, operand, line))
        if line is not None:
            self.program.source_map[idx] = line
        return idx

    def emit_jump(self, opcode: Opcode, line: Optional[int] = None) -> int:
        """Emit a jump whose target is patched later"""
        return self.emit(opcode, -1, line)

    def patch_jump(self, idx: int, target: Optional[int] = None):
        """Point the jump at idx to target (default: the next address)"""
        inst = self.program.instructions[idx]
        if inst.op not in JUMP_OPCODES:
            raise ValueError(f"instruction {idx} is {inst.op.name}, not a jump")
        inst.arg = self.address if target is None else target

    def build(self) -> CompiledProgram:
        return self.program
