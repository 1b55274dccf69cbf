"""Tree-walking interpreter tests, including agreement with the VM."""

import pytest

from minipython import (
    VM, Interpreter, EngineConfig, ExecutionStatus, compile as compile_source, compile_program,
)
from minipython.minipy_ast import NewExpression, ExpressionStatement, Program, CallExpression


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _interp(source, config=None):
    interp = Interpreter(config)
    interp.load(compile_source(source))
    return interp


def _run(source, config=None):
    interp = _interp(source, config)
    interp.run_all()
    return interp


def _output(source):
    interp = _run(source)
    assert interp.status == ExecutionStatus.COMPLETED, interp.error
    return interp.output


def _steps(interp):
    """Step to the end, returning every StepResult."""
    results = []
    while True:
        result = interp.step()
        results.append(result)
        if result.done:
            return results


# Programs whose output both engines must agree on.
PROGRAMS = [
    "print(1 + 2 * 3, 7 // 2, -7 % 3, 2 ** 10, -2 ** 2)\n",
    "print(0 or 'x', 1 and 2, False and boom(), True or boom())\n",
    "total = 0\nrepeat 4 times:\n    total += 2\nprint(total)\n",
    "i = 0\nwhile i < 3:\n    print(i)\n    i += 1\n",
    "for i in range(10, 0, -3):\n    print(i)\n",
    "for i in range(5):\n    i += 1\n    print(i)\n",
    "for c in 'abc':\n    if c == 'b':\n        continue\n    print(c)\n",
    (
        "for i in range(3):\n"
        "    for j in range(3):\n"
        "        if j > i:\n"
        "            break\n"
        "        print(i, j)\n"
    ),
    (
        "def fib(n):\n"
        "    if n < 2:\n"
        "        return n\n"
        "    return fib(n - 1) + fib(n - 2)\n"
        "print(fib(10))\n"
    ),
    (
        "class Counter:\n"
        "    def __init__(self, start):\n"
        "        self.value = start\n"
        "    def bump(self, by):\n"
        "        self.value = self.value + by\n"
        "        return self\n"
        "c = Counter(5)\n"
        "c.bump(2).bump(3)\n"
        "print(c.value)\n"
    ),
    "items = [5, 2, 8]\nitems.sort()\nprint(items, items[1:], max(items), sum(items))\n",
    "p = {name: 'Rex'}\np['legs'] = 4\nprint(p, 'legs' in p)\n",
    "s = 'Hello'\nprint(s.upper(), s[0], s[-2:], len(s), s * 2)\n",
    "x = 'global'\ndef f():\n    x = 'local'\n    return x\nprint(f(), x)\n",
    "print(round(2.5), int('42') + 1, str(3.0), float('1.5'))\n",
    "如果 真:\n    打印(\"是\")\n否则:\n    打印(\"否\")\n",
    "n = 3\ncount = 0\nfor i in range(n):\n    n = n + 1\n    count += 1\nprint(count, n)\n",
    "n = 2\nrepeat n times:\n    n += 1\nprint(n)\n",
    "for i in range(3):\n    pass\nfor j in range(0):\n    pass\nfor k in range(6, 0, -2):\n    pass\nprint(i, j, k)\n",
    (
        "def depth(n):\n"
        "    if n == 0:\n"
        "        return 0\n"
        "    return depth(n - 1) + 1\n"
        "print(depth(150))\n"
    ),
]


# ---------------------------------------------------------------------------
# Agreement with the VM
# ---------------------------------------------------------------------------

class TestEngineAgreement:

    @pytest.mark.parametrize("source", PROGRAMS)
    def test_same_output(self, source):
        vm = VM()
        vm.load(compile_program(source))
        vm.run_all()
        interp = _run(source)
        assert vm.status == interp.status == ExecutionStatus.COMPLETED, (vm.error, interp.error)
        assert interp.output == vm.output

    @pytest.mark.parametrize("source", [
        "x = 1\ny = x / 0\n",
        "print(missing)\n",
        "items = []\nprint(items[0])\n",
        "def f(a):\n    return a\nf()\n",
        "repeat 2.5 times:\n    pass\n",
        "n = -1\nrepeat n times:\n    pass\n",
        "for i in range('a'):\n    pass\n",
        "s = 0\nfor i in range(0, 3, s):\n    pass\n",
        "x = 10 ** 400\ny = x / 3\n",
        "x = 10 ** 400\nprint(float(x))\n",
        "print(int(float('nan')))\n",
        "print(round(float('inf')))\n",
    ])
    def test_same_errors(self, source):
        vm = VM()
        vm.load(compile_program(source))
        vm.run_all()
        interp = _run(source)
        assert interp.status == ExecutionStatus.ERROR
        assert interp.error == vm.error
        assert interp.error_info["line"] == vm.error_info["line"]

    def test_same_command_order(self):
        source = "repeat 2 times:\n    forward(1)\n    turn('left')\n"
        calls = {}
        for engine in (VM(), Interpreter()):
            log = calls.setdefault(type(engine).__name__, [])
            engine.register_command("forward", lambda args, log=log: log.append(("forward", args)))
            engine.register_command("turn", lambda args, log=log: log.append(("turn", args)))
            engine.load(compile_program(source) if isinstance(engine, VM) else compile_source(source))
            engine.run_all()
        assert calls["VM"] == calls["Interpreter"]
        assert len(calls["VM"]) == 4

    def test_loop_bounds_are_read_once(self):
        source = (
            "repeat laps() times:\n"
            "    forward(1)\n"
            "for i in range(0, laps()):\n"
            "    forward(2)\n"
        )
        for engine in (VM(), Interpreter()):
            queries = []
            engine.register_sensor("laps", lambda args, queries=queries: queries.append(1) or 2)
            engine.register_command("forward", lambda args: None)
            engine.load(compile_program(source) if isinstance(engine, VM) else compile_source(source))
            engine.run_all()
            assert engine.status == ExecutionStatus.COMPLETED, engine.error
            assert len(queries) == 2

    def test_loop_variable_after_the_loop(self):
        source = (
            "n = 3\n"
            "count = 0\n"
            "for i in range(n):\n"
            "    n = n + 1\n"
            "    count += 1\n"
            "for j in range(5, 0, -2):\n"
            "    pass\n"
            "print(count, n, i, j)\n"
        )
        vm = VM()
        vm.load(compile_program(source))
        vm.run_all()
        assert vm.output == _output(source) == ["3 6 3 -1"]

    @pytest.mark.parametrize("source, message", [
        ("repeat 2.5 times:\n    pass\n", "Repeat count must be a non-negative whole number"),
        ("x = 10 ** 400\ny = x / 3\n", "Number too large"),
        ("print(int(float('nan')))\n", "cannot turn NaN into a whole number"),
    ])
    def test_error_messages(self, source, message):
        interp = _run(source)
        assert interp.status == ExecutionStatus.ERROR
        assert message in interp.error

    def test_call_depth_limit_matches(self):
        source = (
            "def depth(n):\n"
            "    if n == 0:\n"
            "        return 0\n"
            "    return depth(n - 1) + 1\n"
            "print(depth(20))\n"
        )
        config = EngineConfig(max_call_depth=10)
        vm = VM(config)
        vm.load(compile_program(source))
        vm.run_all()
        interp = _run(source, config)
        assert vm.status == interp.status == ExecutionStatus.ERROR
        assert "Maximum recursion depth exceeded" in interp.error
        assert interp.error == vm.error
        assert interp.error_info["line"] == vm.error_info["line"] == 4


# ---------------------------------------------------------------------------
# Stepping
# ---------------------------------------------------------------------------

class TestStepping:

    def test_one_statement_per_step(self):
        results = _steps(_interp("x = 1\ny = 2\nprint(x + y)\n"))
        assert [r.highlight_line for r in results] == [1, 2, 3]
        # the last statement completes the program
        assert [r.done for r in results] == [False, False, True]

    def test_outer_loop_is_stepped(self):
        results = _steps(_interp("repeat 2 times:\n    print('a')\n"))
        # enter, body, next iteration, body, loop exit
        assert [r.highlight_line for r in results] == [1, 2, 1, 2, 1]
        assert results[-1].done

    def test_if_branch_is_stepped(self):
        interp = _interp("if True:\n    x = 1\n    y = 2\nprint(x)\n")
        results = _steps(interp)
        assert [r.highlight_line for r in results] == [1, 2, 3, 4]
        assert interp.output == ["1"]

    def test_nested_loops_run_inside_one_step(self):
        interp = _interp("for i in range(2):\n    repeat 3 times:\n        print(i)\n")
        results = _steps(interp)
        assert [r.highlight_line for r in results] == [1, 2, 1, 2, 1]
        assert interp.output == ["0", "0", "0", "1", "1", "1"]

    def test_function_calls_run_inside_one_step(self):
        interp = _interp("def f():\n    print('a')\n    print('b')\nf()\n")
        results = _steps(interp)
        assert len(results) == 1
        assert interp.output == ["a", "b"]

    def test_current_line_follows_the_loop(self):
        interp = _interp("while True:\n    x = 1\n    break\n")
        assert interp.get_current_line() == 1
        interp.step()
        assert interp.get_current_line() == 2
        interp.step()
        assert interp.get_current_line() == 3
        assert interp.step().done
        assert interp.get_current_line() is None

    def test_break_ends_the_stepped_loop(self):
        assert _output("while True:\n    print('once')\n    break\nprint('after')\n") == ["once", "after"]

    def test_empty_loops_are_skipped(self):
        source = "repeat 0 times:\n    print('x')\nfor c in []:\n    print(c)\nprint('end')\n"
        assert _output(source) == ["end"]

    def test_for_each_iterates_a_snapshot(self):
        source = "items = [1, 2]\nfor v in items:\n    items.append(v)\nprint(len(items))\n"
        assert _output(source) == ["4"]

    def test_step_after_completion(self):
        interp = _run("x = 1\n")
        assert interp.step().done
        assert Interpreter().step().done


# ---------------------------------------------------------------------------
# Semantics
# ---------------------------------------------------------------------------

class TestSemantics:

    def test_top_level_return_ends_the_program(self):
        interp = _run("print(1)\nif True:\n    return\nprint(2)\n")
        assert interp.status == ExecutionStatus.COMPLETED
        assert interp.output == ["1"]

    def test_return_inside_a_stepped_loop(self):
        assert _output("repeat 5 times:\n    print('x')\n    return\n") == ["x"]

    def test_recursion_limit(self):
        interp = _run("def down(n):\n    return down(n + 1)\ndown(0)\n")
        assert interp.status == ExecutionStatus.ERROR
        assert "Maximum recursion depth" in interp.error

    def test_runaway_inner_loop(self):
        interp = _run("def spin():\n    while True:\n        pass\nspin()\n", EngineConfig(max_steps=100))
        assert interp.status == ExecutionStatus.ERROR
        assert "Too many steps (100)" in interp.error
        assert interp.error_info["line"] == 3

    def test_step_limit(self):
        interp = _run("while True:\n    pass\n", EngineConfig(max_steps=20))
        assert "Too many steps (20)" in interp.error

    def test_globals_written_inside_if_blocks(self):
        assert _output("if True:\n    x = 5\nprint(x)\n") == ["5"]

    def test_new_expression_checks_init_arity(self):
        program = compile_source("class Box:\n    def __init__(self, v):\n        self.v = v\n")
        program.body.append(ExpressionStatement(
            CallExpression("print", [NewExpression("Box", [])])))
        interp = Interpreter()
        interp.load(program)
        interp.run_all()
        assert "__init__() takes 1 argument(s) but 0 were given" in interp.error

    def test_new_expression_needs_a_known_class(self):
        program = Program([ExpressionStatement(NewExpression("Missing", []))])
        interp = Interpreter()
        interp.load(program)
        interp.run_all()
        assert "Undefined class 'Missing'" in interp.error


class TestRuntimeErrors:

    @pytest.mark.parametrize("source,fragment,line", [
        ("break\n", "'break' outside loop", 1),
        ("if True:\n    continue\n", "'continue' outside loop", 2),
        ("def f():\n    break\nwhile True:\n    f()\n", "'break' outside loop", 2),
        ("for i in range(0, 3, 0):\n    pass\n", "step cannot be zero", 1),
        ("for i in range('a'):\n    pass\n", "range() needs numbers", 1),
        ("for x in 5:\n    pass\n", "Can only loop over a list or a string", 1),
        ("repeat -1 times:\n    pass\n", "non-negative whole number", 1),
        ("if True:\n    def g():\n        pass\n", "must be defined at the top level", 2),
        ("x = 1\nx.y()\n", 'A number has no method "y"', 2),
    ])
    def test_errors_carry_the_line(self, source, fragment, line):
        interp = _run(source)
        assert interp.status == ExecutionStatus.ERROR
        assert fragment in interp.error
        assert interp.error_info["line"] == line
        assert interp.error_info["kind"] == "runtime-error"


# ---------------------------------------------------------------------------
# Host bindings and state
# ---------------------------------------------------------------------------

class TestHostAndState:

    def test_commands_stop_run(self):
        interp = _interp("forward(3)\nprint('moved')\n")
        seen = []
        interp.register_command("forward", lambda args: seen.append(args))
        result = interp.run()
        assert (result.action, result.action_args, result.done) == ("forward", [3], False)
        assert interp.run().done
        assert seen == [[3]]
        assert interp.output == ["moved"]

    def test_sensor_inside_function(self):
        source = "def far():\n    return distance() > 2\nif far():\n    print('go')\n"
        interp = _interp(source)
        interp.register_sensor("distance", lambda args: 10)
        results = _steps(interp)
        assert results[0].sensor_query == "distance"
        assert interp.output == ["go"]

    def test_globals_api(self):
        interp = _interp("print(level + 1)\n")
        interp.set_global("level", 2)
        interp.run_all()
        assert interp.output == ["3"]
        assert interp.get_global("level") == 2

    def test_pause_and_resume(self):
        interp = _interp("a = ask()\nb = a * 2\n")

        def ask(args):
            interp.pause()
            return 21

        interp.register_sensor("ask", ask)
        result = interp.run()
        assert not result.done
        assert interp.status == ExecutionStatus.PAUSED
        interp.resume()
        interp.run()
        assert interp.get_variables() == {"a": 21, "b": 42}

    def test_state(self):
        interp = _interp("x = 1\nfor i in range(3):\n    x += i\n")
        interp.step()
        interp.step()
        state = interp.get_state()
        assert state.status == ExecutionStatus.RUNNING
        assert state.current_line == 3
        assert state.variables == {"x": 1, "i": 0}
        assert state.call_depth == 0
        assert state.step_count == 2

        frames = interp.get_call_stack_for_visualization()
        assert frames == [{"name": "<main>", "line": 3, "locals": {"x": 1, "i": 0}}]

    def test_reset_rewinds(self):
        interp = _run("x = 1\nprint(x)\n")
        interp.reset()
        assert interp.status == ExecutionStatus.READY
        assert interp.globals == {} and interp.output == []
        interp.run_all()
        assert interp.output == ["1"]
