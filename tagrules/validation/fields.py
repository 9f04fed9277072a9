"""Field Introspection

Enumerates the declared fields of a composite type together with the rule
expression attached to each. Three declaration styles are understood:

    @dataclass
    class Order:
        id: str = field(metadata={"validate": "required,uuid"})
        qty: Annotated[int, Tag("min=1")] = 1

    class Order(BaseModel):                       # pydantic v2
        id: Annotated[str, Tag("required")]
        note: str = Field("", json_schema_extra={"validate": "max=140"})

    class Order:                                  # plain annotated class
        id: Annotated[str, Tag("required")]
"""
from __future__ import annotations

import dataclasses
import inspect
import sys
import types
from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from tagrules.errors import ConfigurationError, configuration_error
from tagrules.logging import cache_logger

log = cache_logger()


@dataclass(frozen=True, slots=True)
class Tag:
    """Rule expression marker for ``Annotated`` hints."""
    expression: str

    def __str__(self) -> str:
        return self.expression


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """A declared member of a composite type, as seen before compilation."""
    name: str
    annotation: Any
    tag: str | None
    owner: type


class TypeKind(str, Enum):
    """Coarse kind of a validated value, reported on every FieldError."""
    INVALID = "invalid"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BYTES = "bytes"
    TIME = "time"
    SEQUENCE = "sequence"
    SET = "set"
    MAPPING = "mapping"
    STRUCT = "struct"
    OTHER = "other"


_ATOMIC_TYPES = (
    str, bytes, bytearray, bool, int, float, complex, Decimal,
    date, time, timedelta, Enum, tuple, list, dict, set, frozenset,
)


# ============================================================================
# Struct detection
# ============================================================================

@lru_cache(maxsize=None)
def is_struct_type(tp: Any) -> bool:
    """True for dataclasses, pydantic models and plain classes declaring annotations."""
    if not isinstance(tp, type) or issubclass(tp, _ATOMIC_TYPES): return False
    if dataclasses.is_dataclass(tp) or issubclass(tp, BaseModel): return True
    if tp.__module__ == "builtins": return False
    return any(inspect.get_annotations(klass) for klass in tp.__mro__[:-1])


def is_struct(value: Any) -> bool:
    return value is not None and is_struct_type(type(value))


class _UnresolvedMeta(type):
    def __getattr__(cls, name: str) -> Any:
        if name.startswith("_"): raise AttributeError(name)
        return cls


class Unresolved(metaclass=_UnresolvedMeta):
    """Stands in for a name an annotation uses but that is not importable at runtime."""


def _resolve_hint(annotation: Any, klass: type, name: str) -> Any:
    """Evaluate one string annotation in its class's namespace.

    Names that cannot be resolved (imports under ``TYPE_CHECKING``, locals of an
    enclosing function) become :class:`Unresolved`, so ``Annotated`` tags survive.

    Raises:
        ConfigurationError: the annotation cannot be evaluated at all.
    """
    if not isinstance(annotation, str): return annotation
    module = sys.modules.get(klass.__module__)
    # module names shadow class attributes, as in get_type_hints
    classns = {**vars(klass), klass.__name__: klass}
    modulens = dict(vars(module)) if module is not None else {}
    unresolved: list[str] = []
    while True:
        try:
            hint = eval(annotation, classns, modulens)
        except NameError as e:
            if e.name is None or e.name in modulens: raise _unusable(klass, name, annotation, e) from e
            modulens[e.name] = Unresolved
            unresolved.append(e.name)
            continue
        except (SyntaxError, TypeError, AttributeError) as e:
            raise _unusable(klass, name, annotation, e) from e
        break
    if isinstance(hint, str): return _resolve_hint(hint, klass, name)
    if unresolved:
        log.debug("annotation_unresolved", type=klass.__name__, field=name, names=unresolved)
    return hint


def _unusable(klass: type, name: str, annotation: str, cause: Exception) -> ConfigurationError:
    return ConfigurationError(configuration_error(
        f"Cannot evaluate annotation '{annotation}' of field '{klass.__name__}.{name}': {cause}",
        origin="fields",
        cause=cause,
        type=klass.__name__,
        field=name,
        annotation=annotation,
    ))


def _type_hints(tp: type) -> dict[str, Any]:
    """Resolved hints with ``Annotated`` extras, falling back to per-field resolution."""
    try:
        return get_type_hints(tp, include_extras=True)
    except (NameError, TypeError, SyntaxError):
        hints: dict[str, Any] = {}
        for klass in reversed(tp.__mro__[:-1]):
            for name, annotation in inspect.get_annotations(klass).items():
                hints[name] = _resolve_hint(annotation, klass, name)
        return hints


def annotated_tag(hint: Any) -> str | None:
    """Expression of the first ``Tag`` found in an ``Annotated`` hint."""
    if get_origin(hint) is not Annotated: return None
    for extra in get_args(hint)[1:]:
        if isinstance(extra, Tag): return extra.expression
    return None


def _strip_annotated(hint: Any) -> Any:
    return get_args(hint)[0] if get_origin(hint) is Annotated else hint


# ============================================================================
# Declared fields
# ============================================================================

def _dataclass_fields(tp: type, tag_name: str, hints: dict[str, Any]) -> list[FieldSpec]:
    specs = []
    for f in dataclasses.fields(tp):
        hint = hints.get(f.name, f.type)
        tag = f.metadata.get(tag_name) if f.metadata else None
        specs.append(FieldSpec(f.name, _strip_annotated(hint), tag if tag is not None else annotated_tag(hint), tp))
    return specs


def _model_fields(tp: type[BaseModel], tag_name: str) -> list[FieldSpec]:
    specs = []
    for name, info in tp.model_fields.items():
        tag = next((m.expression for m in info.metadata if isinstance(m, Tag)), None)
        if tag is None and isinstance(info.json_schema_extra, dict):
            tag = info.json_schema_extra.get(tag_name)
        specs.append(FieldSpec(name, info.annotation, tag, tp))
    return specs


def _annotated_fields(tp: type, hints: dict[str, Any]) -> list[FieldSpec]:
    specs = []
    for name, hint in hints.items():
        if name.startswith("__") or get_origin(_strip_annotated(hint)) is ClassVar or hint is ClassVar:
            continue
        specs.append(FieldSpec(name, _strip_annotated(hint), annotated_tag(hint), tp))
    return specs


def declared_fields(tp: type, tag_name: str = "validate") -> tuple[FieldSpec, ...]:
    """Fields of a struct type in declaration order."""
    if issubclass(tp, BaseModel): return tuple(_model_fields(tp, tag_name))
    hints = _type_hints(tp)
    if dataclasses.is_dataclass(tp): return tuple(_dataclass_fields(tp, tag_name, hints))
    return tuple(_annotated_fields(tp, hints))


def nested_struct_types(annotation: Any) -> tuple[type, ...]:
    """Struct types reachable through an annotation (Optional, unions, containers)."""
    found: list[type] = []
    stack = [annotation]
    while stack:
        hint = _strip_annotated(stack.pop())
        if isinstance(hint, type) and is_struct_type(hint):
            if hint not in found: found.append(hint)
            continue
        if get_origin(hint) in (Union, types.UnionType) or get_args(hint):
            stack.extend(a for a in get_args(hint) if a is not Ellipsis)
    return tuple(found)


# ============================================================================
# Value classification
# ============================================================================

def type_kind(value: Any) -> TypeKind:
    if value is None: return TypeKind.INVALID
    if isinstance(value, bool): return TypeKind.BOOL
    if isinstance(value, int): return TypeKind.INT
    if isinstance(value, (float, Decimal)): return TypeKind.FLOAT
    if isinstance(value, str): return TypeKind.STRING
    if isinstance(value, (bytes, bytearray)): return TypeKind.BYTES
    if isinstance(value, (date, time, timedelta)): return TypeKind.TIME
    if isinstance(value, Mapping): return TypeKind.MAPPING
    if isinstance(value, Set): return TypeKind.SET
    if isinstance(value, Sequence): return TypeKind.SEQUENCE
    if is_struct(value): return TypeKind.STRUCT
    return TypeKind.OTHER


def is_zero(value: Any) -> bool:
    """Zero value: None, numeric zero, False, empty string/bytes/collection.

    Struct instances and other objects are never zero.
    """
    if value is None: return True
    if isinstance(value, (bool, int, float, complex, Decimal)): return value == 0
    if isinstance(value, (str, bytes, bytearray, Mapping, Set, Sequence)): return len(value) == 0
    if isinstance(value, timedelta): return value == timedelta(0)
    return False


def is_diveable(value: Any) -> bool:
    return isinstance(value, (Mapping, Set, Sequence)) and not isinstance(value, (str, bytes, bytearray))


# datetime is covered through date
TEMPORAL_TYPES = (datetime, date, time, timedelta)
