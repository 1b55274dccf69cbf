# object.py (runtime values shared by the VM and the interpreter)
"""
MiniPython runtime values are plain Python values:

    number   -> int / float (never bool)
    text     -> str
    boolean  -> bool
    null     -> None
    list     -> list
    map      -> dict with str keys
    instance -> Instance

Every operator rule lives here so both engines agree on semantics. The
helpers raise MiniPyRuntimeError without a line; the engine that catches
it fills in the line of the instruction or statement being executed.
"""
import functools
import math

from .errors import MiniPyRuntimeError


class Instance:
    """An object built from a user class. Compared by identity."""

    def __init__(self, class_name, fields=None):
        self.class_name = class_name
        self.fields = fields if fields is not None else {}

    def __repr__(self):
        return f"Instance({self.class_name!r}, {self.fields!r})"


def is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_integral(value):
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def type_name(value):
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, Instance):
        return value.class_name
    return type(value).__name__


def is_truthy(value):
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, (str, list)):
        return len(value) > 0
    return True


def values_equal(a, b):
    if isinstance(a, Instance) or isinstance(b, Instance):
        return a is b
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(values_equal(a[k], b[k]) for k in a)
    return type(a) is type(b) and a == b


# ----------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------

def format_number(value):
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    try:
        return str(value)
    except ValueError:
        # ints past the host digit limit
        raise number_too_large() from None


def _format(value, list_style):
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        if list_style == "print":
            return ",".join(_format(v, list_style) for v in value)
        return "[" + ", ".join(_format(v, list_style) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k}: {_format(v, list_style)}" for k, v in value.items()) + "}"
    if isinstance(value, Instance):
        fields = ", ".join(f"{k}: {_format(v, list_style)}" for k, v in value.fields.items())
        return f"<{value.class_name} {{{fields}}}>"
    return str(value)


def display_value(value):
    """Text shown by print() and used for string concatenation."""
    return _format(value, "print")


def to_str(value):
    """Text produced by str(); lists keep their brackets."""
    return _format(value, "str")


def format_print_args(args):
    return " ".join(display_value(a) for a in args)


def to_key(value):
    """Map keys are always strings."""
    if isinstance(value, str):
        return value
    return display_value(value)


# ----------------------------------------------------------------------
# Operators
# ----------------------------------------------------------------------

def number_too_large():
    return MiniPyRuntimeError(
        "Number too large",
        suggestion="Keep numbers within the range a float can hold.",
    )


def _checked(fn):
    """Report host overflow from an operator as a MiniPython error."""
    @functools.wraps(fn)
    def wrapper(a, b):
        try:
            return fn(a, b)
        except OverflowError:
            raise number_too_large() from None
    return wrapper


def _require_numbers(op, a, b):
    if not is_number(a) or not is_number(b):
        raise MiniPyRuntimeError(
            f"Operator '{op}' needs two numbers, got {type_name(a)} and {type_name(b)}",
            suggestion="Convert values with int() or float() before doing math.",
        )


def _repeat(text, times):
    if not is_integral(times) or times < 0:
        raise MiniPyRuntimeError("A string can only be repeated a non-negative whole number of times")
    return text * int(times)


@_checked
def add(a, b):
    if is_number(a) and is_number(b):
        return a + b
    if isinstance(a, str) or isinstance(b, str):
        return display_value(a) + display_value(b)
    raise MiniPyRuntimeError(
        f"Operator '+' needs numbers or strings, got {type_name(a)} and {type_name(b)}",
        suggestion="Use str() to turn a value into text before joining it.",
    )


@_checked
def sub(a, b):
    _require_numbers("-", a, b)
    return a - b


@_checked
def mul(a, b):
    if is_number(a) and is_number(b):
        return a * b
    if isinstance(a, str) and is_number(b):
        return _repeat(a, b)
    if is_number(a) and isinstance(b, str):
        return _repeat(b, a)
    raise MiniPyRuntimeError(
        f"Operator '*' needs two numbers, or a string and a whole number, "
        f"got {type_name(a)} and {type_name(b)}"
    )


@_checked
def div(a, b):
    _require_numbers("/", a, b)
    if b == 0:
        raise MiniPyRuntimeError("Division by zero", suggestion="Check that the divisor is not 0.")
    return a / b


@_checked
def mod(a, b):
    _require_numbers("%", a, b)
    if b == 0:
        raise MiniPyRuntimeError("Modulo by zero", suggestion="Check that the divisor is not 0.")
    return a % b


@_checked
def floor_div(a, b):
    _require_numbers("//", a, b)
    if b == 0:
        raise MiniPyRuntimeError("Division by zero", suggestion="Check that the divisor is not 0.")
    return a // b


@_checked
def power(a, b):
    _require_numbers("**", a, b)
    if a == 0 and b < 0:
        raise MiniPyRuntimeError("Cannot raise 0 to a negative power")
    result = a ** b
    if isinstance(result, complex):
        raise MiniPyRuntimeError("Cannot raise a negative number to a fractional power")
    return result


def negate(a):
    if not is_number(a):
        raise MiniPyRuntimeError(f"Cannot negate a {type_name(a)}")
    return -a


def compare(op, a, b):
    _require_numbers(op, a, b)
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


# ----------------------------------------------------------------------
# Loop bounds
# ----------------------------------------------------------------------

def repeat_count(count):
    """Validate a `repeat N times` count, evaluated once before the loop."""
    if not is_integral(count) or count < 0:
        raise MiniPyRuntimeError(
            f"Repeat count must be a non-negative whole number, got {type_name(count)}",
            suggestion="Check the number of times to repeat.",
        )
    return int(count)


def check_range(start, end, step):
    if not (is_number(start) and is_number(end) and is_number(step)):
        raise MiniPyRuntimeError("range() needs numbers",
                                 suggestion="Check the arguments passed to range().")
    if step == 0:
        raise MiniPyRuntimeError(
            "range() step cannot be zero",
            suggestion="Use a positive step to count up or a negative one to count down.")


def contains(container, item):
    """Implements `item in container`."""
    if isinstance(container, list):
        return any(values_equal(item, v) for v in container)
    if isinstance(container, str):
        if not isinstance(item, str):
            raise MiniPyRuntimeError("'in' on a string needs a string on the left")
        return item in container
    if isinstance(container, dict):
        return to_key(item) in container
    raise MiniPyRuntimeError(f"'in' needs a list, string or object on the right, got {type_name(container)}")


BINARY_OPERATORS = {
    "+": add,
    "-": sub,
    "*": mul,
    "/": div,
    "%": mod,
    "//": floor_div,
    "**": power,
    "==": values_equal,
    "!=": lambda a, b: not values_equal(a, b),
    "<": lambda a, b: compare("<", a, b),
    ">": lambda a, b: compare(">", a, b),
    "<=": lambda a, b: compare("<=", a, b),
    ">=": lambda a, b: compare(">=", a, b),
    "in": lambda a, b: contains(b, a),
}


def binary_op(operator, a, b):
    try:
        fn = BINARY_OPERATORS[operator]
    except KeyError:
        raise MiniPyRuntimeError(f"Unknown operator '{operator}'")
    return fn(a, b)


# ----------------------------------------------------------------------
# Indexing, slicing and members
# ----------------------------------------------------------------------

def _resolve_index(sequence, index, what):
    if not is_integral(index):
        raise MiniPyRuntimeError(f"{what} index must be a whole number, got {type_name(index)}")
    position = int(index)
    if position < 0:
        position += len(sequence)
    if position < 0 or position >= len(sequence):
        raise MiniPyRuntimeError(
            f"{what} index {format_number(index)} is out of range (length {len(sequence)})",
            suggestion=f"Valid indexes go from 0 to {len(sequence) - 1}, or from -1 backwards.",
        )
    return position


def index_get(obj, index):
    if isinstance(obj, list):
        return obj[_resolve_index(obj, index, "List")]
    if isinstance(obj, str):
        return obj[_resolve_index(obj, index, "String")]
    if isinstance(obj, dict):
        key = to_key(index)
        if key not in obj:
            raise MiniPyRuntimeError(f'Object has no key "{key}"')
        return obj[key]
    raise MiniPyRuntimeError(f"Only lists, strings and objects can be indexed, got {type_name(obj)}")


def index_set(obj, index, value):
    if isinstance(obj, list):
        obj[_resolve_index(obj, index, "List")] = value
        return
    if isinstance(obj, dict):
        obj[to_key(index)] = value
        return
    raise MiniPyRuntimeError(f"Only list items and object keys can be assigned, got {type_name(obj)}")


def _clamp(bound, length, default):
    if bound is None:
        return default
    if not is_integral(bound):
        raise MiniPyRuntimeError("Slice bounds must be whole numbers")
    bound = int(bound)
    if bound < 0:
        bound = max(0, length + bound)
    return max(0, min(bound, length))


def slice_value(obj, start, end):
    if not isinstance(obj, (list, str)):
        raise MiniPyRuntimeError(f"Only lists and strings can be sliced, got {type_name(obj)}")
    length = len(obj)
    lo = _clamp(start, length, 0)
    hi = _clamp(end, length, length)
    return obj[lo:hi]


def member_get(obj, name):
    if isinstance(obj, Instance):
        if name not in obj.fields:
            raise MiniPyRuntimeError(
                f'{obj.class_name} instance has no attribute "{name}"',
                suggestion=f"Assign self.{name} in __init__ before reading it.",
            )
        return obj.fields[name]
    if isinstance(obj, dict):
        if name not in obj:
            raise MiniPyRuntimeError(f'Object has no attribute "{name}"')
        return obj[name]
    raise MiniPyRuntimeError(f"Cannot read attribute \"{name}\" of a {type_name(obj)}")


def member_set(obj, name, value):
    if isinstance(obj, Instance):
        obj.fields[name] = value
        return
    if isinstance(obj, dict):
        obj[name] = value
        return
    raise MiniPyRuntimeError(f"Cannot set attribute \"{name}\" on a {type_name(obj)}")
