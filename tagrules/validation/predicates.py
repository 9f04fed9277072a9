"""Built-in Predicates

A baseline catalogue so a fresh Validator is useful out of the box. Every
predicate is pure: ``(value, param) -> bool`` or, for cross-field checks,
``(FieldLevel) -> bool``. Messages are never produced here.

Size-like predicates (len/min/max/eq/ne/lt/lte/gt/gte) measure strings and
collections by length and numbers by value. Cross-field ordering on strings
and collections also compares lengths.
"""
from __future__ import annotations

import operator
import re
from collections.abc import Mapping, Set, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from email.utils import parseaddr
from functools import lru_cache
from ipaddress import IPv4Address, IPv6Address
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import urlparse
from uuid import UUID

from tagrules.errors import ParamError
from .fields import TEMPORAL_TYPES, is_zero
from .registry import Predicate, PredicateRegistry

if TYPE_CHECKING:
    from .engine import FieldLevel


# ============================================================================
# Param parsing
# ============================================================================

@lru_cache(maxsize=512)
def _as_int(tag: str, param: str) -> int:
    try: return int(param)
    except ValueError: raise ParamError(tag, param, "an integer") from None


@lru_cache(maxsize=512)
def _as_float(tag: str, param: str) -> float:
    try: return float(param)
    except ValueError: raise ParamError(tag, param, "a number") from None


@lru_cache(maxsize=512)
def _as_decimal(tag: str, param: str) -> Decimal:
    try: return Decimal(param)
    except InvalidOperation: raise ParamError(tag, param, "a number") from None


def _numeric_param(tag: str, param: str, value: int | float | Decimal) -> int | float | Decimal:
    """The param in the value's own numeric type, so large ints and decimals compare exactly."""
    if isinstance(value, Decimal): return _as_decimal(tag, param)
    if isinstance(value, int):
        try: return int(param)
        except ValueError: return _as_float(tag, param)
    return _as_float(tag, param)


def _as_bool(tag: str, param: str) -> bool:
    lowered = param.lower()
    if lowered in ("true", "1", "t"): return True
    if lowered in ("false", "0", "f"): return False
    raise ParamError(tag, param, "a boolean")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_sized(value: Any) -> bool:
    return isinstance(value, (str, bytes, bytearray, Mapping, Set, Sequence))


def _now_like(value: datetime | date) -> datetime | date:
    if isinstance(value, datetime):
        return datetime.now(timezone.utc) if value.tzinfo else datetime.now()
    return date.today()


# ============================================================================
# Size and comparison predicates
# ============================================================================

def _sized_compare(tag: str, op: Callable[[Any, Any], bool]) -> Callable[[Any, str], bool]:
    """Build a predicate comparing length (sized) or value (numeric) with the param."""

    def check(value: Any, param: str) -> bool:
        if _is_sized(value):
            return op(len(value), _as_int(tag, param))
        if _is_number(value):
            return op(value, _numeric_param(tag, param, value))
        if isinstance(value, (datetime, date)) and not param:
            return op(value, _now_like(value))
        return False

    check.__name__ = f"is_{tag}"
    return check


def is_eq(value: Any, param: str) -> bool:
    if isinstance(value, str): return value == param
    if isinstance(value, bool): return value == _as_bool("eq", param)
    if _is_number(value): return value == _numeric_param("eq", param, value)
    if _is_sized(value): return len(value) == _as_int("eq", param)
    return False


def is_ne(value: Any, param: str) -> bool:
    return not is_eq(value, param)


def is_oneof(value: Any, param: str) -> bool:
    options = param.split()
    if isinstance(value, str): return value in options
    if _is_number(value): return any(value == _numeric_param("oneof", o, value) for o in options)
    return False


def has_value(value: Any, param: str) -> bool:
    return not is_zero(value)


def is_default(value: Any, param: str) -> bool:
    return is_zero(value)


def is_unique(value: Any, param: str) -> bool:
    items = list(value.values()) if isinstance(value, Mapping) else list(value)
    try:
        return len(set(items)) == len(items)
    except TypeError:
        seen: list[Any] = []
        for item in items:
            if item in seen: return False
            seen.append(item)
        return True


# ============================================================================
# String format predicates
# ============================================================================

_OCTET = r"(?:0|[1-9]\d?|1\d\d|2[0-4]\d|25[0-5])"
_PERCENT = r"(?:0|[1-9]\d?|100)%"
_ALPHA = r"(?:0(?:\.\d+)?|1(?:\.0+)?|\.\d+)"
_HUE = r"(?:0|[1-9]\d?|[12]\d\d|3[0-5]\d|360)"
_SEP = r"\s*,\s*"

PATTERNS: dict[str, re.Pattern] = {
    "alpha": re.compile(r"^[a-zA-Z]+$"),
    "alphanum": re.compile(r"^[a-zA-Z0-9]+$"),
    "numeric": re.compile(r"^[-+]?[0-9]+(?:\.[0-9]+)?$"),
    "number": re.compile(r"^[0-9]+$"),
    "hexadecimal": re.compile(r"^(?:0[xX])?[0-9a-fA-F]+$"),
    "hexcolor": re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$"),
    "rgb": re.compile(
        rf"^rgb\(\s*(?:{_OCTET}{_SEP}{_OCTET}{_SEP}{_OCTET}|{_PERCENT}{_SEP}{_PERCENT}{_SEP}{_PERCENT})\s*\)$"),
    "rgba": re.compile(
        rf"^rgba\(\s*(?:{_OCTET}{_SEP}{_OCTET}{_SEP}{_OCTET}|{_PERCENT}{_SEP}{_PERCENT}{_SEP}{_PERCENT})"
        rf"{_SEP}{_ALPHA}\s*\)$"),
    "hsl": re.compile(rf"^hsl\(\s*{_HUE}{_SEP}{_PERCENT}{_SEP}{_PERCENT}\s*\)$"),
    "hsla": re.compile(rf"^hsla\(\s*{_HUE}{_SEP}{_PERCENT}{_SEP}{_PERCENT}{_SEP}{_ALPHA}\s*\)$"),
    "email": re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"),
}


def _pattern(name: str) -> Callable[[Any, str], bool]:
    compiled = PATTERNS[name]

    def check(value: Any, param: str) -> bool:
        return isinstance(value, str) and compiled.match(value) is not None

    check.__name__ = f"is_{name}"
    return check


def is_email(value: Any, param: str) -> bool:
    if not isinstance(value, str): return False
    _, addr = parseaddr(value)
    return addr == value and PATTERNS["email"].match(value) is not None


def is_url(value: Any, param: str) -> bool:
    if not isinstance(value, str): return False
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def is_uuid(value: Any, param: str) -> bool:
    if isinstance(value, UUID): return True
    if not isinstance(value, str): return False
    try: UUID(value)
    except ValueError: return False
    return True


def is_uuid4(value: Any, param: str) -> bool:
    if isinstance(value, UUID): return value.version == 4
    if not isinstance(value, str): return False
    try: return UUID(value).version == 4
    except ValueError: return False


def _ip(*versions: type) -> Callable[[Any, str], bool]:
    def check(value: Any, param: str) -> bool:
        if not isinstance(value, str): return False
        for version in versions:
            try:
                version(value)
                return True
            except ValueError:
                continue
        return False
    return check


def is_contains(value: Any, param: str) -> bool:
    return isinstance(value, str) and param in value


def is_containsany(value: Any, param: str) -> bool:
    return isinstance(value, str) and any(c in value for c in param)


def is_excludes(value: Any, param: str) -> bool:
    return isinstance(value, str) and param not in value


def is_startswith(value: Any, param: str) -> bool:
    return isinstance(value, str) and value.startswith(param)


def is_endswith(value: Any, param: str) -> bool:
    return isinstance(value, str) and value.endswith(param)


def is_lowercase(value: Any, param: str) -> bool:
    return isinstance(value, str) and bool(value) and value == value.lower()


def is_uppercase(value: Any, param: str) -> bool:
    return isinstance(value, str) and bool(value) and value == value.upper()


def is_ascii(value: Any, param: str) -> bool:
    return isinstance(value, str) and value.isascii()


# ============================================================================
# Cross-field / cross-struct predicates
# ============================================================================

def compare_fields(field: Any, other: Any, op: Callable[[Any, Any], bool]) -> bool:
    """Compare two field values; numbers and instants by value, strings and collections by length for ordering."""
    if op in (operator.eq, operator.ne):
        return bool(op(field, other))
    if _is_number(field) and _is_number(other):
        return op(field, other)
    if isinstance(field, TEMPORAL_TYPES) and isinstance(other, TEMPORAL_TYPES):
        try: return op(field, other)
        except TypeError: return False
    if _is_sized(field) and _is_sized(other) and type(field) is type(other):
        return op(len(field), len(other))
    return False


def _field_compare(op: Callable[[Any, Any], bool], *, cross_struct: bool) -> Callable[[FieldLevel], bool]:
    def check(fl: FieldLevel) -> bool:
        other, found = fl.resolve(fl.param, cross_struct=cross_struct)
        if not found or fl.value is None or other is None: return False
        return compare_fields(fl.value, other, op)
    return check


_ORDERING = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


# ============================================================================
# Registration
# ============================================================================

BUILTIN_ALIASES: dict[str, str] = {
    "iscolor": "hexcolor|rgb|rgba|hsl|hsla",
}


def builtin_predicates() -> list[Predicate]:
    """The baseline catalogue, freshly built."""
    catalogue = [
        Predicate("required", has_value, call_on_none=True),
        Predicate("isdefault", is_default, call_on_none=True),
        Predicate("len", _sized_compare("len", operator.eq)),
        Predicate("min", _sized_compare("min", operator.ge)),
        Predicate("max", _sized_compare("max", operator.le)),
        Predicate("eq", is_eq),
        Predicate("ne", is_ne),
        Predicate("oneof", is_oneof),
        Predicate("unique", is_unique),
        Predicate("email", is_email),
        Predicate("url", is_url),
        Predicate("uuid", is_uuid),
        Predicate("uuid4", is_uuid4),
        Predicate("ip", _ip(IPv4Address, IPv6Address)),
        Predicate("ipv4", _ip(IPv4Address)),
        Predicate("ipv6", _ip(IPv6Address)),
        Predicate("contains", is_contains),
        Predicate("containsany", is_containsany),
        Predicate("excludes", is_excludes),
        Predicate("startswith", is_startswith),
        Predicate("endswith", is_endswith),
        Predicate("lowercase", is_lowercase),
        Predicate("uppercase", is_uppercase),
        Predicate("ascii", is_ascii),
    ]
    catalogue += [Predicate(tag, _sized_compare(tag, op)) for tag, op in
        (("lt", operator.lt), ("lte", operator.le), ("gt", operator.gt), ("gte", operator.ge))]
    catalogue += [Predicate(name, _pattern(name)) for name in
        ("alpha", "alphanum", "numeric", "number", "hexadecimal", "hexcolor", "rgb", "rgba", "hsl", "hsla")]
    for suffix, op in _ORDERING.items():
        catalogue.append(Predicate(f"{suffix}field", _field_compare(op, cross_struct=False), contextual=True))
        catalogue.append(Predicate(f"{suffix}csfield", _field_compare(op, cross_struct=True), contextual=True))
    return catalogue


def register_builtins(registry: PredicateRegistry) -> None:
    """Install the baseline catalogue on a registry."""
    registry.load(builtin_predicates(), BUILTIN_ALIASES)
