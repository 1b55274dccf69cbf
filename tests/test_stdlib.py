"""MiniPython-level host libraries prepended to user programs."""

import pytest

from minipython import VM, Interpreter
from minipython.errors import MiniPySyntaxError
from minipython.minipy_ast import FunctionDef, walk
from minipython.stdlib import (
    Stdlib, StdlibFunction, build_stdlib_source, compile_with_stdlib,
    load_with_source, stdlib_line_count,
)


def _maze_stdlib():
    stdlib = Stdlib("maze", preamble="STEP = 1", aliases="def 掉头():\n    turn_around()\n")
    stdlib.add(StdlibFunction(
        name="turn_around",
        name_zh="掉头",
        code="def turn_around():\n    turn_left()\n    turn_left()",
        description="Face the opposite direction",
        category="movement",
    ))
    stdlib.add(StdlibFunction(
        name="walk",
        name_zh="走",
        code="def walk(n):\n    repeat n times:\n        forward(STEP)",
        params=["n"],
        category="movement",
    ))
    stdlib.add(StdlibFunction(
        name="is_clear",
        name_zh="前方畅通",
        code="def is_clear():\n    return not wall_ahead()",
        category="sensing",
    ))
    return stdlib


def _bind(engine, log):
    engine.register_command("turn_left", lambda args: log.append("left"))
    engine.register_command("forward", lambda args: log.append(("forward", args[0])))
    engine.register_sensor("wall_ahead", lambda args: False)
    return engine


USER_CODE = "walk(2)\n掉头()\nif is_clear():\n    print('clear')\n"


class TestStdlibSource:

    def test_build_order(self):
        source = build_stdlib_source(_maze_stdlib())
        assert source.startswith("STEP = 1\n\ndef turn_around():")
        assert source.index("def walk") < source.index("def is_clear")
        assert source.endswith("def 掉头():\n    turn_around()")
        assert stdlib_line_count(source) == len(source.split("\n"))

    def test_categories(self):
        stdlib = _maze_stdlib()
        assert [f.name for f in stdlib.by_category("movement")] == ["turn_around", "walk"]
        assert [f.name for f in stdlib.by_category("sensing")] == ["is_clear"]

    def test_library_nodes_carry_no_positions(self):
        program = compile_with_stdlib(USER_CODE, _maze_stdlib())
        library = program.body[:5]
        assert all(node.line is None for stmt in library for node in walk(stmt))
        assert [type(s).__name__ for s in library][1:] == ["FunctionDef"] * 4

    def test_user_lines_are_unchanged(self):
        program = compile_with_stdlib(USER_CODE, _maze_stdlib())
        user = [s for s in program.body if s.line is not None]
        assert [s.line for s in user] == [1, 2, 3]

    def test_without_stdlib(self):
        program = compile_with_stdlib("x = 1\n")
        assert len(program.body) == 1
        assert not any(isinstance(s, FunctionDef) for s in program.body)


class TestLoading:

    @pytest.mark.parametrize("engine_class", [VM, Interpreter])
    def test_runs_on_both_engines(self, engine_class):
        log = []
        engine = _bind(engine_class(), log)
        load_with_source(engine, USER_CODE, _maze_stdlib())
        engine.run_all()
        assert engine.error is None
        assert log == [("forward", 1), ("forward", 1), "left", "left"]
        assert engine.output == ["clear"]

    def test_library_code_never_highlights(self):
        vm = _bind(VM(), [])
        load_with_source(vm, USER_CODE, _maze_stdlib())
        actions = vm.run_all()
        assert [r.action for r in actions] == ["forward", "forward", "turn_left", "turn_left"]
        assert all(r.highlight_line is None for r in actions)

    def test_breakpoints_use_user_lines(self):
        vm = _bind(VM(), [])
        load_with_source(vm, USER_CODE, _maze_stdlib())
        vm.add_breakpoint(4)
        result, hit = vm.run_until_breakpoint()
        while not hit and not result.done:
            result, hit = vm.continue_execution()
        assert hit
        assert vm.get_current_line() == 4

    def test_syntax_errors_propagate_before_loading(self):
        vm = VM()
        with pytest.raises(MiniPySyntaxError):
            load_with_source(vm, "if x\n", _maze_stdlib())
        assert vm.program is None
