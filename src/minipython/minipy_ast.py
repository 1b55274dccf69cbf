# src/minipython/minipy_ast.py

# Base classes
class Node:
    line = None
    column = None

    def at(self, line, column=None):
        """Attach a source position and return the node."""
        self.line = line
        self.column = column
        return self

    def __repr__(self):
        return f"{self.__class__.__name__}()"

    def __str__(self):
        return self.__repr__()

class Statement(Node): pass
class Expression(Node): pass

class Program(Node):
    def __init__(self, body=None):
        self.body = body if body is not None else []

    def __repr__(self):
        return f"Program(body={len(self.body)})"

# Statement Nodes
class ExpressionStatement(Statement):
    def __init__(self, expression):
        self.expression = expression

    def __repr__(self):
        return f"ExpressionStatement(expression={self.expression})"

class Assignment(Statement):
    def __init__(self, target, value):
        self.target = target; self.value = value

    def __repr__(self):
        return f"Assignment(target={self.target}, value={self.value})"

class AugmentedAssignment(Statement):
    """x += 1, x -= 1, x *= 2, x /= 2"""
    def __init__(self, target, operator, value):
        self.target = target
        self.operator = operator
        self.value = value

    def __repr__(self):
        return f"AugmentedAssignment(target={self.target}, operator={self.operator!r}, value={self.value})"

class IndexedAssignment(Statement):
    def __init__(self, object, index, value):
        self.object = object; self.index = index; self.value = value

    def __repr__(self):
        return f"IndexedAssignment(object={self.object}, index={self.index}, value={self.value})"

class MemberAssignment(Statement):
    def __init__(self, object, property, value):
        self.object = object; self.property = property; self.value = value

    def __repr__(self):
        return f"MemberAssignment(object={self.object}, property={self.property}, value={self.value})"

class ElifBranch(Node):
    def __init__(self, condition, consequent):
        self.condition = condition
        self.consequent = consequent

    def __repr__(self):
        return f"ElifBranch(condition={self.condition}, consequent={len(self.consequent)})"

class IfStatement(Statement):
    def __init__(self, condition, consequent, elif_branches=None, alternate=None):
        self.condition = condition
        self.consequent = consequent
        self.elif_branches = elif_branches or []
        self.alternate = alternate

    def __repr__(self):
        return (f"IfStatement(condition={self.condition}, consequent={len(self.consequent)}, "
                f"elif_branches={len(self.elif_branches)}, "
                f"alternate={len(self.alternate) if self.alternate else None})")

class RepeatStatement(Statement):
    """repeat 3 times: / 重复 3 次:"""
    def __init__(self, count, body):
        self.count = count; self.body = body

    def __repr__(self):
        return f"RepeatStatement(count={self.count}, body={len(self.body)})"

class WhileStatement(Statement):
    def __init__(self, condition, body):
        self.condition = condition; self.body = body

    def __repr__(self):
        return f"WhileStatement(condition={self.condition}, body={len(self.body)})"

class ForStatement(Statement):
    """for i in range(start, end, step):"""
    def __init__(self, variable, start, end, step, body):
        self.variable = variable
        self.start = start
        self.end = end
        self.step = step
        self.body = body

    def __repr__(self):
        return (f"ForStatement(variable={self.variable}, start={self.start}, "
                f"end={self.end}, step={self.step})")

class ForEachStatement(Statement):
    def __init__(self, variable, iterable, body):
        self.variable = variable; self.iterable = iterable; self.body = body

    def __repr__(self):
        return f"ForEachStatement(variable={self.variable}, iterable={self.iterable})"

class BreakStatement(Statement): pass
class ContinueStatement(Statement): pass
class PassStatement(Statement): pass

class FunctionDef(Statement):
    def __init__(self, name, params, body):
        self.name = name
        self.params = params
        self.body = body

    def __repr__(self):
        return f"FunctionDef(name={self.name}, params={self.params})"

class ClassDef(Statement):
    def __init__(self, name, methods):
        self.name = name
        self.methods = methods

    def __repr__(self):
        return f"ClassDef(name={self.name}, methods={[m.name for m in self.methods]})"

class ReturnStatement(Statement):
    def __init__(self, value=None):
        self.value = value

    def __repr__(self):
        return f"ReturnStatement(value={self.value})"

# Expression Nodes
class NumberLiteral(Expression):
    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"NumberLiteral({self.value})"

class StringLiteral(Expression):
    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"StringLiteral({self.value!r})"

class BooleanLiteral(Expression):
    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f"BooleanLiteral({self.value})"

class Identifier(Expression):
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"Identifier({self.name})"

class BinaryOp(Expression):
    def __init__(self, operator, left, right):
        self.operator = operator; self.left = left; self.right = right

    def __repr__(self):
        return f"BinaryOp({self.left} {self.operator} {self.right})"

class UnaryOp(Expression):
    def __init__(self, operator, operand):
        self.operator = operator; self.operand = operand

    def __repr__(self):
        return f"UnaryOp({self.operator} {self.operand})"

class CallExpression(Expression):
    def __init__(self, callee, arguments):
        self.callee = callee
        self.arguments = arguments

    def __repr__(self):
        return f"CallExpression(callee={self.callee}, arguments={self.arguments})"

class ArrayLiteral(Expression):
    def __init__(self, elements):
        self.elements = elements

    def __repr__(self):
        return f"ArrayLiteral(elements={len(self.elements)})"

class IndexAccess(Expression):
    def __init__(self, object, index):
        self.object = object; self.index = index

    def __repr__(self):
        return f"IndexAccess(object={self.object}, index={self.index})"

class SliceAccess(Expression):
    """a[start:end], either bound may be None"""
    def __init__(self, object, start, end):
        self.object = object
        self.start = start
        self.end = end

    def __repr__(self):
        return f"SliceAccess(object={self.object}, start={self.start}, end={self.end})"

class ObjectLiteral(Expression):
    def __init__(self, properties):
        # list of (key, value expression) pairs, source order kept
        self.properties = properties

    def __repr__(self):
        return f"ObjectLiteral(keys={[k for k, _ in self.properties]})"

class MemberAccess(Expression):
    def __init__(self, object, property):
        self.object = object; self.property = property

    def __repr__(self):
        return f"MemberAccess(object={self.object}, property={self.property})"

class MethodCall(Expression):
    def __init__(self, object, method, arguments):
        self.object = object
        self.method = method
        self.arguments = arguments

    def __repr__(self):
        return f"MethodCall(object={self.object}, method={self.method}, arguments={self.arguments})"

class NewExpression(Expression):
    """Explicit instantiation, for hosts that build trees without the parser."""
    def __init__(self, class_name, arguments):
        self.class_name = class_name
        self.arguments = arguments

    def __repr__(self):
        return f"NewExpression(class_name={self.class_name}, arguments={self.arguments})"


def iter_child_nodes(node):
    for value in vars(node).values():
        if isinstance(value, Node):
            yield value
        elif isinstance(value, (list, tuple)):
            for item in value:
                if isinstance(item, Node):
                    yield item
                elif isinstance(item, tuple):
                    for part in item:
                        if isinstance(part, Node):
                            yield part


def walk(node):
    """Yield node and every descendant, depth first."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_child_nodes(current))))


def dump(node, indent=0):
    """Indented, one-node-per-line rendering used by the CLI."""
    pad = "  " * indent
    fields = []
    children = []
    for name, value in vars(node).items():
        if name in ("line", "column"):
            continue
        if isinstance(value, Node):
            children.append((name, [value]))
        elif isinstance(value, list) and any(isinstance(v, (Node, tuple)) for v in value):
            children.append((name, value))
        else:
            fields.append(f"{name}={value!r}")

    position = f" @{node.line}" if node.line is not None else ""
    lines = [f"{pad}{node.__class__.__name__}({', '.join(fields)}){position}"]
    for name, items in children:
        lines.append(f"{pad}  .{name}:")
        for item in items:
            if isinstance(item, tuple):
                key, value = item
                lines.append(f"{pad}    {key!r}:")
                lines.append(dump(value, indent + 3))
            else:
                lines.append(dump(item, indent + 2))
    return "\n".join(lines)
