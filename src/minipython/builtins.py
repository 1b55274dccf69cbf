# src/minipython/builtins.py
"""Built-in functions available to every MiniPython program.

The table is fixed: user code cannot redefine these names, and both the
VM and the interpreter resolve them through `call_builtin`. Each function
receives already-evaluated MiniPython values.
"""
import logging
import math
import random

from .errors import MiniPyRuntimeError
from .object import (
    is_number, is_integral, type_name, values_equal, to_str,
    display_value, format_print_args, number_too_large,
)

logger = logging.getLogger(__name__)

PRINT_NAMES = frozenset(("print", "打印"))


def _error(name, message, suggestion=None):
    return MiniPyRuntimeError(f"{name}() {message}", suggestion=suggestion)


def _arity(name, args, low, high=None, usage=None):
    high = low if high is None else high
    if low <= len(args) <= high:
        return
    if low == high:
        expected = f"exactly {low} argument{'s' if low != 1 else ''}"
    else:
        expected = f"{low} to {high} arguments"
    raise _error(name, f"takes {expected}, got {len(args)}",
                 suggestion=f"Call it as {usage}." if usage else None)


def _want_list(name, value, position="argument"):
    if not isinstance(value, list):
        raise _error(name, f"{position} must be a list, got {type_name(value)}")
    return value


def _want_str(name, value, position="argument"):
    if not isinstance(value, str):
        raise _error(name, f"{position} must be a string, got {type_name(value)}")
    return value


def _want_number(name, value, position="argument"):
    if not is_number(value):
        raise _error(name, f"{position} must be a number, got {type_name(value)}")
    return value


def _as_int(value):
    return int(value) if isinstance(value, float) else value


def _whole(name, x):
    if isinstance(x, float) and not math.isfinite(x):
        raise _error(name, f"cannot turn {display_value(x)} into a whole number")
    return int(x)


# ----------------------------------------------------------------------
# General
# ----------------------------------------------------------------------

def _len(*a):
    _arity("len", a, 1)
    if isinstance(a[0], (list, str, dict)):
        return len(a[0])
    raise _error("len", f"works on lists, strings and objects, got {type_name(a[0])}")


def _random(*a):
    _arity("random", a, 0)
    return random.random()


def _randint(*a):
    _arity("randint", a, 2, usage="randint(low, high)")
    low, high = a
    if not is_integral(low) or not is_integral(high):
        raise _error("randint", "arguments must be whole numbers")
    if low > high:
        raise _error("randint", "first argument must not be greater than the second")
    return random.randint(int(low), int(high))


# ----------------------------------------------------------------------
# Lists
# ----------------------------------------------------------------------

def _append(*a):
    _arity("append", a, 2, usage="append(list, value)")
    _want_list("append", a[0], "first argument").append(a[1])
    return None


def _pop(*a):
    _arity("pop", a, 1, 2, usage="pop(list) or pop(list, index)")
    arr = _want_list("pop", a[0], "first argument")
    if not arr:
        raise _error("pop", "cannot pop from an empty list")
    if len(a) == 1:
        return arr.pop()
    index = a[1]
    if not is_integral(index):
        raise _error("pop", "index must be a whole number")
    index = int(index)
    if index < -len(arr) or index >= len(arr):
        raise _error("pop", f"index {index} is out of range (length {len(arr)})")
    return arr.pop(index)


def _insert(*a):
    _arity("insert", a, 3, usage="insert(list, index, value)")
    arr = _want_list("insert", a[0], "first argument")
    index = a[1]
    if not is_integral(index):
        raise _error("insert", "second argument must be a whole number")
    index = int(index)
    if index < 0 or index > len(arr):
        raise _error("insert", f"index {index} is out of range (0-{len(arr)})")
    arr.insert(index, a[2])
    return None


def _sort_key(value):
    if is_number(value):
        return (0, value, "")
    return (1, 0, display_value(value))


def _sort(*a):
    _arity("sort", a, 1)
    _want_list("sort", a[0]).sort(key=_sort_key)
    return None


def _reverse(*a):
    _arity("reverse", a, 1)
    _want_list("reverse", a[0]).reverse()
    return None


def _index(*a):
    _arity("index", a, 2, usage="index(list, value)")
    arr = _want_list("index", a[0], "first argument")
    for i, item in enumerate(arr):
        if values_equal(item, a[1]):
            return i
    return -1


def _count(*a):
    _arity("count", a, 2, usage="count(list, value)")
    arr = _want_list("count", a[0], "first argument")
    return sum(1 for item in arr if values_equal(item, a[1]))


def _clear(*a):
    _arity("clear", a, 1)
    _want_list("clear", a[0]).clear()
    return None


# ----------------------------------------------------------------------
# Math
# ----------------------------------------------------------------------

def _abs(*a):
    _arity("abs", a, 1)
    return abs(_want_number("abs", a[0]))


def _extreme(name, pick, args):
    if not args:
        raise _error(name, "needs at least 1 argument")
    values = args
    if len(args) == 1 and isinstance(args[0], list):
        values = args[0]
        if not values:
            raise _error(name, "cannot be used on an empty list")
    for v in values:
        _want_number(name, v, "every value")
    return pick(values)


def _min(*a):
    return _extreme("min", min, a)


def _max(*a):
    return _extreme("max", max, a)


def _sum(*a):
    _arity("sum", a, 1)
    total = 0
    for v in _want_list("sum", a[0]):
        total += _want_number("sum", v, "every list item")
    return total


def _round(*a):
    _arity("round", a, 1, 2, usage="round(x) or round(x, digits)")
    x = _want_number("round", a[0], "first argument")
    if len(a) == 1:
        if isinstance(x, int):
            return x
        return _whole("round", math.floor(x + 0.5) if math.isfinite(x) else x)
    digits = a[1]
    if not is_integral(digits) or digits < 0:
        raise _error("round", "second argument must be a non-negative whole number")
    if isinstance(x, float) and not math.isfinite(x):
        return x
    factor = 10 ** int(digits)
    return math.floor(x * factor + 0.5) / factor


def _sqrt(*a):
    _arity("sqrt", a, 1)
    x = _want_number("sqrt", a[0])
    if x < 0:
        raise _error("sqrt", "argument cannot be negative")
    return math.sqrt(x)


def _pow(*a):
    _arity("pow", a, 2, usage="pow(base, exponent)")
    base = _want_number("pow", a[0], "base")
    exponent = _want_number("pow", a[1], "exponent")
    if isinstance(base, int) and isinstance(exponent, int) and exponent >= 0:
        return base ** exponent
    try:
        return math.pow(base, exponent)
    except (ValueError, OverflowError) as e:
        raise _error("pow", f"cannot compute {display_value(base)} ** {display_value(exponent)}") from e


# ----------------------------------------------------------------------
# Conversion
# ----------------------------------------------------------------------

def _int(*a):
    _arity("int", a, 1)
    x = a[0]
    if isinstance(x, bool):
        return 1 if x else 0
    if is_number(x):
        return _whole("int", x)
    if isinstance(x, str):
        try:
            return int(x.strip())
        except ValueError:
            raise _error("int", f'cannot convert "{x}" to a whole number')
    raise _error("int", f"only converts numbers, strings and booleans, got {type_name(x)}")


def _float(*a):
    _arity("float", a, 1)
    x = a[0]
    if isinstance(x, bool):
        return 1.0 if x else 0.0
    if is_number(x):
        return float(x)
    if isinstance(x, str):
        try:
            return float(x.strip())
        except ValueError:
            raise _error("float", f'cannot convert "{x}" to a number')
    raise _error("float", f"only converts numbers, strings and booleans, got {type_name(x)}")


def _str(*a):
    _arity("str", a, 1)
    return to_str(a[0])


# ----------------------------------------------------------------------
# Strings
# ----------------------------------------------------------------------

def _upper(*a):
    _arity("upper", a, 1)
    return _want_str("upper", a[0]).upper()


def _lower(*a):
    _arity("lower", a, 1)
    return _want_str("lower", a[0]).lower()


def _split(*a):
    _arity("split", a, 1, 2, usage="split(text) or split(text, separator)")
    text = _want_str("split", a[0], "first argument")
    if len(a) == 1:
        return text.split()
    sep = _want_str("split", a[1], "second argument")
    if sep == "":
        return list(text)
    return text.split(sep)


def _join(*a):
    _arity("join", a, 1, 2, usage="join(list) or join(list, separator)")
    arr = _want_list("join", a[0], "first argument")
    sep = display_value(a[1]) if len(a) == 2 else ""
    return sep.join(to_str(v) for v in arr)


def _strip(*a):
    _arity("strip", a, 1)
    return _want_str("strip", a[0]).strip()


def _replace(*a):
    _arity("replace", a, 3, usage="replace(text, old, new)")
    text, old, new = (_want_str("replace", v, "every argument") for v in a)
    return text.replace(old, new)


def _find(*a):
    _arity("find", a, 2, usage="find(text, part)")
    return _want_str("find", a[0]).find(_want_str("find", a[1]))


def _startswith(*a):
    _arity("startswith", a, 2, usage="startswith(text, prefix)")
    return _want_str("startswith", a[0]).startswith(_want_str("startswith", a[1]))


def _endswith(*a):
    _arity("endswith", a, 2, usage="endswith(text, suffix)")
    return _want_str("endswith", a[0]).endswith(_want_str("endswith", a[1]))


_CORE_BUILTINS = (
    ("len", "长度", _len),
    ("random", "随机", _random),
    ("randint", "随机整数", _randint),
    ("append", "添加", _append),
    ("pop", "弹出", _pop),
    ("insert", "插入", _insert),
    ("sort", "排序", _sort),
    ("reverse", "反转", _reverse),
    ("index", "索引", _index),
    ("count", "计数", _count),
    ("clear", "清空", _clear),
    ("abs", "绝对值", _abs),
    ("min", "最小值", _min),
    ("max", "最大值", _max),
    ("sum", "求和", _sum),
    ("int", "整数", _int),
    ("float", "浮点数", _float),
    ("str", "字符串", _str),
    ("upper", "大写", _upper),
    ("lower", "小写", _lower),
    ("split", "分割", _split),
    ("join", "连接", _join),
    ("strip", "去空格", _strip),
    ("replace", "替换", _replace),
    ("find", "查找", _find),
    ("startswith", "以开头", _startswith),
    ("endswith", "以结尾", _endswith),
    ("round", "四舍五入", _round),
    ("sqrt", "平方根", _sqrt),
    ("pow", "幂", _pow),
)

BUILTINS = {}
for _english, _chinese, _fn in _CORE_BUILTINS:
    BUILTINS[_english] = _fn
    BUILTINS[_chinese] = _fn


def is_builtin(name):
    return name in PRINT_NAMES or name in BUILTINS


def call_builtin(name, args, output=None):
    """Run a builtin by name. `print` appends its line to `output`."""
    if name in PRINT_NAMES:
        line = format_print_args(args)
        if output is not None:
            output.append(line)
        logger.debug("print: %s", line)
        return None

    fn = BUILTINS.get(name)
    if fn is None:
        raise MiniPyRuntimeError(
            f"Undefined function '{name}'",
            suggestion="Check the spelling, or define it with def before calling it.",
        )
    try:
        return fn(*args)
    except OverflowError:
        raise number_too_large() from None
