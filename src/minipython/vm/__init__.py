"""
MiniPython Virtual Machine - bytecode compiler and stepping VM

- Bytecode IR (flat instruction list, function table, source map)
- AST to bytecode compiler
- Stack VM with breakpoints, watches and step-back history
"""
from .bytecode import Opcode, Instruction, CompiledProgram, BytecodeBuilder
from .compiler import BytecodeCompiler, compile_to_ir
from .vm import VM, CallFrame
from .debugger import ExecutionVisualization

__all__ = [
    "Opcode", "Instruction", "CompiledProgram", "BytecodeBuilder",
    "BytecodeCompiler", "compile_to_ir",
    "VM", "CallFrame", "ExecutionVisualization",
]
