"""
Loose equality matching for account queries.

Query predicates compare with JavaScript-style abstract equality so that
stores shared with JavaScript hosts answer queries the same way:
``"1"`` matches ``1``, ``true`` matches ``1``, ``null`` matches a missing
field, ``["a", "b"]`` matches ``"a,b"``.

JSON values have no identity once loaded, so two objects (or two arrays)
compare structurally.
"""
import math
import re
from decimal import Decimal
from typing import Any, Dict, Mapping

_MISSING = None

# StrWhiteSpaceChar: whitespace plus line terminators and the BOM
_JS_WHITESPACE = (
    " \t\n\v\f\r\u00a0\u1680\u2000\u2001\u2002\u2003\u2004\u2005\u2006"
    "\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)
_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_RADIX_DIGITS = {
    "0x": (16, re.compile(r"[0-9a-fA-F]+")),
    "0o": (8, re.compile(r"[0-7]+")),
    "0b": (2, re.compile(r"[01]+")),
}
_EXPONENT_ABOVE = 1e21
_EXPONENT_BELOW = 1e-6


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(text: str) -> float:
    """Convert a string the way JavaScript's Number() does."""
    stripped = text.strip(_JS_WHITESPACE)
    if not stripped:
        return 0.0

    prefix = stripped[:2].lower()
    if prefix in _RADIX_DIGITS:
        radix, digits = _RADIX_DIGITS[prefix]
        if not digits.fullmatch(stripped[2:]):
            return math.nan
        try:
            return float(int(stripped[2:], radix))
        except OverflowError:
            return math.inf

    if stripped in ("Infinity", "+Infinity"):
        return math.inf
    if stripped == "-Infinity":
        return -math.inf
    if _DECIMAL_RE.fullmatch(stripped):
        return float(stripped)
    return math.nan


def _number_to_string(value: float) -> str:
    """Number::toString: plain digits in [1e-6, 1e21), exponent form outside."""
    if isinstance(value, int):
        if abs(value) < _EXPONENT_ABOVE:
            return str(value)
        try:
            value = float(value)
        except OverflowError:
            return "Infinity" if value > 0 else "-Infinity"
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < _EXPONENT_ABOVE:
        return str(int(value))

    text = repr(value)
    mantissa, _, exponent = text.partition("e")
    if not exponent:
        return text
    if abs(value) >= _EXPONENT_ABOVE or abs(value) < _EXPONENT_BELOW:
        power = int(exponent)
        return f"{mantissa}e{'+' if power >= 0 else '-'}{abs(power)}"
    return format(Decimal(text), "f")


def to_primitive(value: Any) -> str:
    """String form of a JSON container, as JavaScript's ToPrimitive yields."""
    if isinstance(value, dict):
        return "[object Object]"
    parts = []
    for item in value:
        if item is None:
            parts.append("")
        elif isinstance(item, bool):
            parts.append("true" if item else "false")
        elif _is_number(item):
            parts.append(_number_to_string(item))
        elif isinstance(item, (list, dict)):
            parts.append(to_primitive(item))
        else:
            parts.append(str(item))
    return ",".join(parts)


def loosely_equal(a: Any, b: Any) -> bool:
    """
    JavaScript ``a == b`` over JSON values.

    None stands for both null and a missing field.
    """
    if a is None or b is None:
        return a is None and b is None

    a_container = isinstance(a, (list, dict))
    b_container = isinstance(b, (list, dict))
    if a_container and b_container:
        return a == b
    if a_container:
        return loosely_equal(to_primitive(a), b)
    if b_container:
        return loosely_equal(a, to_primitive(b))

    if isinstance(a, bool):
        if isinstance(b, bool):
            return a is b
        return loosely_equal(int(a), b)
    if isinstance(b, bool):
        return loosely_equal(a, int(b))

    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if _is_number(a) and isinstance(b, str):
        return a == to_number(b)
    if isinstance(a, str) and _is_number(b):
        return to_number(a) == b
    return False


def matches(account: Mapping[str, Any], predicate: Dict[str, Any]) -> bool:
    """True if every predicate field loosely equals the account's field."""
    for key, expected in predicate.items():
        if not loosely_equal(account.get(key, _MISSING), expected):
            return False
    return True
