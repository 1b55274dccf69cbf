# src/minipython/interpreter/statements.py
import logging

from .. import minipy_ast
from ..errors import MiniPyRuntimeError
from ..object import (
    is_truthy, binary_op, index_set, member_set, type_name, repeat_count, check_range,
    compare,
)
from .frames import Frame, REPEAT, WHILE, FOR, FOR_EACH

logger = logging.getLogger(__name__)


class StatementMixin:
    """Statement execution for the tree walker.

    Two paths exist. `_step_statement` runs one statement of a frame at the
    steppable level and may leave a loop open on the frame. `_execute_sync`
    runs a statement to completion and serves loop bodies, nested compound
    statements and user function bodies.
    """

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    def _choose_branch(self, node):
        if is_truthy(self.evaluate(node.condition)):
            return node.consequent
        for branch in node.elif_branches:
            if is_truthy(self.evaluate(branch.condition)):
                return branch.consequent
        return node.alternate

    def _repeat_count(self, node):
        count = self.evaluate(node.count)
        # a call in the count may have moved the line
        self._line = node.line
        return repeat_count(count)

    def _range_bounds(self, node):
        start = self.evaluate(node.start)
        end = self.evaluate(node.end)
        step = 1 if node.step is None else self.evaluate(node.step)
        self._line = node.line
        check_range(start, end, step)
        return start, end, step

    def _iteration_items(self, node):
        iterable = self.evaluate(node.iterable)
        if isinstance(iterable, list):
            return list(iterable)
        if isinstance(iterable, str):
            return list(iterable)
        raise MiniPyRuntimeError(
            f"Can only loop over a list or a string, got {type_name(iterable)}",
            line=node.line,
            suggestion="Check that the value after 'in' is a list or a string.",
        )

    @staticmethod
    def _in_range(value, end, step):
        return compare("<" if step > 0 else ">", value, end)

    # ------------------------------------------------------------------
    # Steppable level
    # ------------------------------------------------------------------

    def _step_statement(self, stmt, frame):
        """Execute frame.statements[frame.index] as one step."""
        if isinstance(stmt, minipy_ast.IfStatement):
            frame.index += 1
            branch = self._choose_branch(stmt)
            if branch:
                self.call_stack.append(Frame(function_name=None, statements=branch))

        elif isinstance(stmt, minipy_ast.RepeatStatement):
            count = self._repeat_count(stmt)
            if count == 0:
                frame.index += 1
                return
            frame.enter_loop(REPEAT, stmt, stmt.body)
            frame.loop_limit = count

        elif isinstance(stmt, minipy_ast.WhileStatement):
            if not is_truthy(self.evaluate(stmt.condition)):
                frame.index += 1
                return
            frame.enter_loop(WHILE, stmt, stmt.body)

        elif isinstance(stmt, minipy_ast.ForStatement):
            start, end, step = self._range_bounds(stmt)
            self._set_variable(stmt.variable, start)
            if not self._in_range(start, end, step):
                frame.index += 1
                return
            frame.enter_loop(FOR, stmt, stmt.body)
            frame.for_variable = stmt.variable
            frame.for_end = end
            frame.for_step = step

        elif isinstance(stmt, minipy_ast.ForEachStatement):
            items = self._iteration_items(stmt)
            if not items:
                frame.index += 1
                return
            self._set_variable(stmt.variable, items[0])
            frame.enter_loop(FOR_EACH, stmt, stmt.body)
            frame.for_variable = stmt.variable
            frame.for_each_items = items

        elif isinstance(stmt, minipy_ast.ReturnStatement):
            value = None if stmt.value is None else self.evaluate(stmt.value)
            self._finish_program(value)

        else:
            self._execute_sync(stmt, frame)
            frame.index += 1

    def _loop_step(self, frame):
        """Run the next body statement of the frame's open loop, or start the next iteration."""
        body = frame.loop_body
        if frame.loop_body_index < len(body):
            stmt = body[frame.loop_body_index]
            frame.loop_body_index += 1
            self._current_result.highlight_line = stmt.line
            self._execute_sync(stmt, frame)
            if frame.has_returned:
                self._finish_program(frame.return_value)
            elif frame.should_break:
                frame.exit_loop()
            elif frame.should_continue:
                frame.should_continue = False
                frame.loop_body_index = len(body)
            return

        self._current_result.highlight_line = frame.loop_statement.line
        self._line = frame.loop_statement.line
        self._advance_loop(frame)

    def _advance_loop(self, frame):
        kind = frame.loop_kind
        if kind == REPEAT:
            frame.loop_counter += 1
            again = frame.loop_counter < frame.loop_limit
        elif kind == WHILE:
            again = is_truthy(self.evaluate(frame.loop_statement.condition))
        elif kind == FOR:
            value = binary_op("+", self._get_variable(frame.for_variable), frame.for_step)
            # the variable keeps the first value past the end
            self._set_variable(frame.for_variable, value)
            again = self._in_range(value, frame.for_end, frame.for_step)
        else:
            frame.for_each_index += 1
            again = frame.for_each_index < len(frame.for_each_items)
            if again:
                self._set_variable(frame.for_variable, frame.for_each_items[frame.for_each_index])

        if again:
            frame.loop_body_index = 0
        else:
            frame.exit_loop()

    # ------------------------------------------------------------------
    # Synchronous execution
    # ------------------------------------------------------------------

    def _execute_sync(self, stmt, frame):
        self._tick(stmt)
        method = getattr(self, f"_exec_{type(stmt).__name__}", None)
        if method is None:
            raise MiniPyRuntimeError(f"Unknown statement type {type(stmt).__name__}", line=stmt.line)
        method(stmt, frame)

    def _execute_block(self, statements, frame):
        for stmt in statements:
            self._execute_sync(stmt, frame)
            if frame.has_returned or frame.should_break or frame.should_continue:
                return

    def _run_loop_body(self, body, frame):
        """Run one iteration. Returns False when the loop has to stop."""
        self._execute_block(body, frame)
        if frame.has_returned:
            return False
        if frame.should_break:
            frame.should_break = False
            return False
        frame.should_continue = False
        return True

    def _exec_ExpressionStatement(self, node, frame):
        self.evaluate(node.expression)

    def _exec_Assignment(self, node, frame):
        self._set_variable(node.target, self.evaluate(node.value))

    def _exec_AugmentedAssignment(self, node, frame):
        current = self._get_variable(node.target)
        operand = self.evaluate(node.value)
        self._set_variable(node.target, binary_op(node.operator[:-1], current, operand))

    def _exec_IndexedAssignment(self, node, frame):
        obj = self.evaluate(node.object)
        index = self.evaluate(node.index)
        index_set(obj, index, self.evaluate(node.value))

    def _exec_MemberAssignment(self, node, frame):
        obj = self.evaluate(node.object)
        member_set(obj, node.property, self.evaluate(node.value))

    def _exec_IfStatement(self, node, frame):
        branch = self._choose_branch(node)
        if branch:
            self._execute_block(branch, frame)

    def _exec_RepeatStatement(self, node, frame):
        count = self._repeat_count(node)
        frame.sync_loop_depth += 1
        try:
            for _ in range(count):
                if not self._run_loop_body(node.body, frame):
                    break
        finally:
            frame.sync_loop_depth -= 1

    def _exec_WhileStatement(self, node, frame):
        frame.sync_loop_depth += 1
        try:
            while is_truthy(self.evaluate(node.condition)):
                if not self._run_loop_body(node.body, frame):
                    break
        finally:
            frame.sync_loop_depth -= 1

    def _exec_ForStatement(self, node, frame):
        value, end, step = self._range_bounds(node)
        self._set_variable(node.variable, value)
        frame.sync_loop_depth += 1
        try:
            while self._in_range(self._get_variable(node.variable), end, step):
                if not self._run_loop_body(node.body, frame):
                    break
                value = binary_op("+", self._get_variable(node.variable), step)
                self._set_variable(node.variable, value)
        finally:
            frame.sync_loop_depth -= 1

    def _exec_ForEachStatement(self, node, frame):
        items = self._iteration_items(node)
        frame.sync_loop_depth += 1
        try:
            for item in items:
                self._set_variable(node.variable, item)
                if not self._run_loop_body(node.body, frame):
                    break
        finally:
            frame.sync_loop_depth -= 1

    def _exec_BreakStatement(self, node, frame):
        if not frame.in_loop:
            raise MiniPyRuntimeError("'break' outside loop", line=node.line,
                                     suggestion="break can only be used inside a loop.")
        frame.should_break = True

    def _exec_ContinueStatement(self, node, frame):
        if not frame.in_loop:
            raise MiniPyRuntimeError("'continue' outside loop", line=node.line,
                                     suggestion="continue can only be used inside a loop.")
        frame.should_continue = True

    def _exec_PassStatement(self, node, frame):
        pass

    def _exec_ReturnStatement(self, node, frame):
        frame.return_value = None if node.value is None else self.evaluate(node.value)
        frame.has_returned = True

    def _exec_FunctionDef(self, node, frame):
        raise MiniPyRuntimeError(
            f"Function '{node.name}' must be defined at the top level",
            line=node.line,
            suggestion="Move the def out of the block it is in.",
        )

    def _exec_ClassDef(self, node, frame):
        raise MiniPyRuntimeError(
            f"Class '{node.name}' must be defined at the top level",
            line=node.line,
            suggestion="Move the class out of the block it is in.",
        )
