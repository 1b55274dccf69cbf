"""Command line tests, driven through click's CliRunner."""

import pytest
from click.testing import CliRunner

from minipython import __version__
from minipython.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


class TestRun:

    def test_prints_program_output(self, runner, write_program):
        path = write_program("print('hi')\nprint(1 + 1)\n")
        result = runner.invoke(cli, ["run", path])
        assert result.exit_code == 0, result.output
        assert "hi\n2\n" in result.output

    def test_interpreter_engine(self, runner, write_program):
        path = write_program("for i in range(3):\n    print(i)\n")
        result = runner.invoke(cli, ["run", "--engine", "interp", path])
        assert result.exit_code == 0, result.output
        assert "0\n1\n2\n" in result.output

    def test_runtime_error_exits_nonzero(self, runner, write_program):
        path = write_program("print('before')\nx = 1 / 0\n")
        result = runner.invoke(cli, ["run", path])
        assert result.exit_code == 1
        assert "before" in result.output
        assert "Division by zero" in result.output

    def test_syntax_error_exits_nonzero(self, runner, write_program):
        path = write_program("if x\n    pass\n")
        result = runner.invoke(cli, ["run", path])
        assert result.exit_code == 1
        assert "syntax-error" in result.output

    def test_max_steps_option(self, runner, write_program):
        path = write_program("while True:\n    pass\n")
        result = runner.invoke(cli, ["run", "--max-steps", "10", path])
        assert result.exit_code == 1
        assert "Too many steps" in result.output

    def test_directive_sets_the_step_budget(self, runner, write_program):
        path = write_program("# @minipy: max_steps=5\nwhile True:\n    pass\n")
        result = runner.invoke(cli, ["run", "--engine", "interp", path])
        assert result.exit_code == 1
        assert "Too many steps (5)" in result.output

    def test_trace(self, runner, write_program):
        path = write_program("x = 1\n")
        result = runner.invoke(cli, ["run", "--trace", path])
        assert result.exit_code == 0, result.output
        assert "step 1: line 1" in result.output


class TestTools:

    def test_check(self, runner, write_program):
        result = runner.invoke(cli, ["check", write_program("x = 1\n")])
        assert result.exit_code == 0
        assert "Syntax is valid!" in result.output

    def test_check_runs_the_compiler(self, runner, write_program):
        result = runner.invoke(cli, ["check", write_program("break\n")])
        assert result.exit_code == 1
        assert "outside of a loop" in result.output

    def test_ast(self, runner, write_program):
        result = runner.invoke(cli, ["ast", write_program("x = 1\n")])
        assert result.exit_code == 0, result.output
        assert "Assignment(target='x') @1" in result.output

    def test_tokens(self, runner, write_program):
        result = runner.invoke(cli, ["tokens", write_program("x = 1\n")])
        assert result.exit_code == 0, result.output
        assert "IDENTIFIER" in result.output
        assert "NEWLINE" in result.output

    def test_disasm(self, runner, write_program):
        result = runner.invoke(cli, ["disasm", write_program("x = 1\n")])
        assert result.exit_code == 0, result.output
        assert "STORE" in result.output
        assert "HALT" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert __version__ in result.output


class TestDebug:

    def test_stops_at_each_visit(self, runner, write_program):
        path = write_program("x = 0\nrepeat 3 times:\n    x += 1\nprint(x)\n")
        result = runner.invoke(cli, ["debug", "--break", "3", "--watch", "x", path])
        assert result.exit_code == 0, result.output
        assert result.output.count("Breakpoint at line 3") == 3
        assert "Watches" in result.output
        assert "Program finished" in result.output

    def test_without_breakpoints(self, runner, write_program):
        result = runner.invoke(cli, ["debug", write_program("print('plain')\n")])
        assert result.exit_code == 0, result.output
        assert "plain" in result.output
        assert "Breakpoint" not in result.output

    def test_reports_errors(self, runner, write_program):
        result = runner.invoke(cli, ["debug", write_program("print(nope)\n")])
        assert result.exit_code == 1
        assert "nope" in result.output
