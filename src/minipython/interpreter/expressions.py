# src/minipython/interpreter/expressions.py
from ..builtins import call_builtin, is_builtin
from ..engine import call_depth_exceeded
from ..errors import MiniPyRuntimeError
from ..object import (
    Instance, is_truthy, binary_op, negate, index_get, slice_value, member_get, type_name,
)
from .frames import Frame


class ExpressionMixin:
    """Expression evaluation, calls and class instantiation for the tree walker."""

    def evaluate(self, node):
        method = getattr(self, f"_eval_{type(node).__name__}", None)
        if method is None:
            raise MiniPyRuntimeError(f"Unknown expression type {type(node).__name__}", line=node.line)
        return method(node)

    # Literals and names
    def _eval_NumberLiteral(self, node):
        return node.value

    _eval_StringLiteral = _eval_BooleanLiteral = _eval_NumberLiteral

    def _eval_Identifier(self, node):
        return self._get_variable(node.name)

    def _eval_ArrayLiteral(self, node):
        return [self.evaluate(e) for e in node.elements]

    def _eval_ObjectLiteral(self, node):
        return {str(key): self.evaluate(value) for key, value in node.properties}

    # Operators
    def _eval_BinaryOp(self, node):
        # and/or return the deciding operand, not a bool
        if node.operator == "and":
            left = self.evaluate(node.left)
            return self.evaluate(node.right) if is_truthy(left) else left
        if node.operator == "or":
            left = self.evaluate(node.left)
            return left if is_truthy(left) else self.evaluate(node.right)

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        return binary_op(node.operator, left, right)

    def _eval_UnaryOp(self, node):
        operand = self.evaluate(node.operand)
        if node.operator == "-":
            return negate(operand)
        if node.operator == "not":
            return not is_truthy(operand)
        raise MiniPyRuntimeError(f"Unknown operator '{node.operator}'", line=node.line)

    # Access
    def _eval_IndexAccess(self, node):
        obj = self.evaluate(node.object)
        return index_get(obj, self.evaluate(node.index))

    def _eval_SliceAccess(self, node):
        obj = self.evaluate(node.object)
        start = None if node.start is None else self.evaluate(node.start)
        end = None if node.end is None else self.evaluate(node.end)
        return slice_value(obj, start, end)

    def _eval_MemberAccess(self, node):
        return member_get(self.evaluate(node.object), node.property)

    # Calls
    def _eval_CallExpression(self, node):
        args = [self.evaluate(arg) for arg in node.arguments]
        return self._call(node.callee, args)

    def _eval_NewExpression(self, node):
        args = [self.evaluate(arg) for arg in node.arguments]
        return self._instantiate(node.class_name, args)

    def _eval_MethodCall(self, node):
        receiver = self.evaluate(node.object)
        args = [self.evaluate(arg) for arg in node.arguments]

        if isinstance(receiver, Instance):
            method = self.classes.get(receiver.class_name, {}).get(node.method)
            if method is None:
                raise MiniPyRuntimeError(
                    f'Class "{receiver.class_name}" has no method "{node.method}"')
            return self._call_function(method, [receiver] + args,
                                       f"{receiver.class_name}.{node.method}", bound=True)

        # lists, strings and maps borrow the builtin of the same name
        if is_builtin(node.method):
            return call_builtin(node.method, [receiver] + args, self.output)
        raise MiniPyRuntimeError(f'A {type_name(receiver)} has no method "{node.method}"')

    def _call(self, name, args):
        """Resolve a plain call: class, user function, host binding, then builtin."""
        if name in self.classes:
            return self._instantiate(name, args)
        if name in self.functions:
            return self._call_function(self.functions[name], args, name)
        handled, value = self._call_host(name, args, self._current_result)
        if handled:
            return value
        return call_builtin(name, args, self.output)

    def _instantiate(self, class_name, args):
        methods = self.classes.get(class_name)
        if methods is None:
            raise MiniPyRuntimeError(f"Undefined class '{class_name}'")

        instance = Instance(class_name)
        init = methods.get("__init__")
        if init is None:
            if args:
                raise MiniPyRuntimeError(f"{class_name}() takes no arguments",
                                         suggestion="Define __init__ to accept arguments.")
            return instance
        self._call_function(init, [instance] + args, f"{class_name}.__init__", bound=True)
        return instance

    def _call_function(self, func, args, qualified_name, bound=False):
        """Run a user function body to completion on a substituted call stack."""
        if len(args) != len(func.params):
            extra = 1 if bound else 0
            raise MiniPyRuntimeError(
                f"{func.name}() takes {len(func.params) - extra} argument(s) "
                f"but {len(args) - extra} were given"
            )

        if self._call_depth >= self.max_call_depth:
            raise call_depth_exceeded()

        frame = Frame(function_name=qualified_name, statements=func.body,
                      locals=dict(zip(func.params, args)))
        saved = self.call_stack
        self.call_stack = [frame]
        self._call_depth += 1
        try:
            for stmt in func.body:
                self._execute_sync(stmt, frame)
                if frame.has_returned:
                    break
        finally:
            self.call_stack = saved
            self._call_depth -= 1
        return frame.return_value
