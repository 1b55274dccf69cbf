# src/minipython/cli/main.py
import logging
import sys
from dataclasses import replace

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .. import __version__, compile as compile_source
from ..config import EngineConfig
from ..engine import ExecutionStatus
from ..errors import MiniPyError, MiniPyRuntimeError
from ..interpreter import Interpreter
from ..lexer import Lexer
from ..minipy_ast import dump
from ..minipy_token import EOF
from ..object import to_str
from ..vm import VM, compile_to_ir

console = Console()


def _read(file):
    with open(file, "r", encoding="utf-8") as f:
        return f.read()


def _report(error, source):
    console.print(Panel(
        Text(error.format_with_source(source)),
        title=f"[bold red]{error.kind}[/bold red]",
        border_style="red",
    ))
    sys.exit(1)


def _runtime_error(info, file):
    return MiniPyRuntimeError(info["message"], line=info.get("line"), column=info.get("column"),
                              suggestion=info.get("suggestion"), filename=file)


def _flush_output(engine, printed):
    for line in engine.output[printed:]:
        click.echo(line)
    return len(engine.output)


def _load(file, source, engine_name, config):
    """Compile the source and load it into a fresh engine, or report and exit."""
    try:
        program = compile_source(source, file)
        if engine_name == "vm":
            engine = VM(config)
            engine.load(compile_to_ir(program, file))
        else:
            engine = Interpreter(config)
            engine.load(program)
    except MiniPyError as e:
        _report(e, source)
    return engine


@click.group()
@click.version_option(version=__version__, prog_name="MiniPython")
@click.option("--debug", "debug_logging", is_flag=True, envvar="MINIPY_DEBUG",
              help="Enable debug logging (also MINIPY_DEBUG=1)")
def cli(debug_logging):
    """MiniPython - a small teaching language with English and Chinese keywords"""
    if debug_logging:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@cli.command()
@click.argument('file', type=click.Path(exists=True))
@click.option('--engine', type=click.Choice(['vm', 'interp']), default='vm', show_default=True,
              help="Bytecode VM or tree-walking interpreter")
@click.option('--max-steps', type=int, default=None, help="Step budget before giving up")
@click.option('--trace', is_flag=True, help="Print the source line of every step")
def run(file, engine, max_steps, trace):
    """Run a MiniPython program"""
    source = _read(file)
    config = EngineConfig.from_source(source)
    if max_steps:
        config = replace(config, max_steps=max_steps)
    runner = _load(file, source, engine, config)

    printed = 0
    while True:
        result = runner.step()
        printed = _flush_output(runner, printed)
        if trace and result.highlight_line is not None:
            console.print(f"[dim]step {runner.step_count}: line {result.highlight_line}[/dim]")
        if result.done:
            break

    state = runner.get_state()
    if state.status == ExecutionStatus.ERROR:
        _report(_runtime_error(state.error_info, file), source)


@cli.command()
@click.argument('file', type=click.Path(exists=True))
def check(file):
    """Check syntax of a MiniPython file"""
    source = _read(file)
    try:
        compile_to_ir(compile_source(source, file), file)
    except MiniPyError as e:
        _report(e, source)
    console.print("[bold green]Syntax is valid![/bold green]")


@cli.command()
@click.argument('file', type=click.Path(exists=True))
def ast(file):
    """Show AST of a MiniPython file"""
    source = _read(file)
    try:
        program = compile_source(source, file)
    except MiniPyError as e:
        _report(e, source)
    console.print(Panel.fit(
        Text(dump(program)),
        title="[bold blue]Abstract Syntax Tree[/bold blue]",
        border_style="blue",
    ))


@cli.command()
@click.argument('file', type=click.Path(exists=True))
def tokens(file):
    """Show tokens of a MiniPython file"""
    source = _read(file)
    lexer = Lexer(source, file)

    table = Table(title="Tokens")
    table.add_column("Type", style="cyan")
    table.add_column("Literal", style="green")
    table.add_column("Line", style="yellow")
    table.add_column("Column", style="yellow")

    try:
        while True:
            token = lexer.next_token()
            if token.type == EOF:
                break
            table.add_row(token.type, Text(repr(token.literal)), str(token.line), str(token.column))
    except MiniPyError as e:
        _report(e, source)

    console.print(table)


@cli.command()
@click.argument('file', type=click.Path(exists=True))
def disasm(file):
    """Show the bytecode listing of a MiniPython file"""
    source = _read(file)
    try:
        program = compile_to_ir(compile_source(source, file), file)
    except MiniPyError as e:
        _report(e, source)
    click.echo(program.disassemble())


def _show_stop(vm, line):
    console.print(f"\n[bold yellow]Breakpoint[/bold yellow] at line {line}")

    watches = vm.get_watched_values()
    if watches:
        table = Table(title="Watches")
        table.add_column("Name", style="cyan")
        table.add_column("Value", style="green")
        for name, value in watches.items():
            table.add_row(name, Text(to_str(value)))
        console.print(table)

    frames = Table(title="Call stack")
    frames.add_column("Frame", style="cyan")
    frames.add_column("Line", style="yellow")
    for frame in reversed(vm.get_call_stack_for_visualization()):
        frames.add_row(Text(frame["name"]), str(frame["line"]))
    console.print(frames)


@cli.command()
@click.argument('file', type=click.Path(exists=True))
@click.option('--break', 'breakpoints', type=int, multiple=True, help="Line to stop at (repeatable)")
@click.option('--watch', 'watches', multiple=True, help="Variable to show at each stop (repeatable)")
def debug(file, breakpoints, watches):
    """Run a program on the VM, stopping at breakpoints"""
    source = _read(file)
    vm = _load(file, source, "vm", EngineConfig.from_source(source))
    for line in breakpoints:
        vm.add_breakpoint(line)
    for name in watches:
        vm.add_watch(name)

    printed = 0
    result, hit = vm.run_until_breakpoint()
    while True:
        printed = _flush_output(vm, printed)
        if hit:
            _show_stop(vm, vm.get_current_line())
        if vm.status in (ExecutionStatus.COMPLETED, ExecutionStatus.ERROR):
            break
        result, hit = vm.continue_execution()

    if vm.status == ExecutionStatus.ERROR:
        _report(_runtime_error(vm.error_info, file), source)
    console.print("[bold green]Program finished[/bold green]")


if __name__ == "__main__":
    cli()
