"""Traversal Engine

Depth-first, pre-order walk of a value against its compiled rule chains.
Per field the chain runs left to right and stops at the first failure; the
walk itself never stops early, every field of every reachable struct is
visited and every failure is collected.

Field state machine:

    Pending ──skip──────────────► Skipped
       │ required fails ────────► RequiredFailed
       │ omitempty + zero ──────► OmitEmptySkipped
       └─► Evaluating ──────────► Passed | Failed
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from tagrules.errors import InvalidValidationError
from tagrules.logging import engine_logger
from .cache import AnyOf, Dive, Rule, RuleCache, RuleChain, Step
from .errors import EMPTY, FieldError, ValidationErrors
from .fields import is_diveable, is_struct, is_zero, type_kind
from .paths import walk
from .registry import PredicateRegistry

log = engine_logger()

_INDEX = re.compile(r"\[[^\]]*\]")


def _join(prefix: str, name: str) -> str:
    if not prefix: return name
    if not name: return prefix
    return f"{prefix}.{name}"


# ============================================================================
# Field selection
# ============================================================================

class SelectionMode(str, Enum):
    ALL = "all"
    INCLUDE = "include"
    EXCLUDE = "exclude"


@dataclass(frozen=True, slots=True)
class Selection:
    """Which fields a run visits. Paths are struct namespaces; indices are ignored."""
    mode: SelectionMode = SelectionMode.ALL
    paths: frozenset[str] = frozenset()

    @classmethod
    def include(cls, *paths: str) -> Selection:
        return cls(SelectionMode.INCLUDE, frozenset(_INDEX.sub("", p) for p in paths))

    @classmethod
    def exclude(cls, *paths: str) -> Selection:
        return cls(SelectionMode.EXCLUDE, frozenset(_INDEX.sub("", p) for p in paths))

    def _named_or_below(self, path: str) -> bool:
        parts = path.split(".")
        return any(".".join(parts[:i]) in self.paths for i in range(1, len(parts) + 1))

    def admits(self, struct_namespace: str) -> bool:
        """Include keeps named paths, their ancestors and descendants; exclude drops named subtrees."""
        if self.mode is SelectionMode.ALL: return True
        path = _INDEX.sub("", struct_namespace)
        if self.mode is SelectionMode.EXCLUDE: return not self._named_or_below(path)
        prefix = path + "."
        return self._named_or_below(path) or any(p.startswith(prefix) for p in self.paths)


ALL = Selection()


# ============================================================================
# Predicate / hook handles
# ============================================================================

class FieldLevel:
    """What a contextual predicate sees of the field under evaluation."""

    __slots__ = ("_run", "value", "param", "field_name", "struct_field_name", "parent")

    def __init__(self, run: Traversal, value: Any, param: str, field_name: str, struct_field_name: str,
                 parent: Any):
        self._run = run
        self.value = value
        self.param = param
        self.field_name = field_name
        self.struct_field_name = struct_field_name
        self.parent = parent

    @property
    def top(self) -> Any:
        return self._run.top

    def resolve(self, path: str, cross_struct: bool = False) -> tuple[Any, bool]:
        """Look up ``path`` relative to the parent struct, or to the run's root when ``cross_struct``."""
        start = self._run.top if cross_struct else self.parent
        parsed = self._run.cache.path(type(start), path)
        return walk(parsed, start, self._run.extract)

    def __repr__(self) -> str:
        return f"FieldLevel(field={self.field_name!r}, param={self.param!r}, value={self.value!r})"


class StructLevel:
    """Handle passed to struct-level hooks; errors reported here follow the field errors."""

    __slots__ = ("_run", "current", "namespace", "struct_namespace")

    def __init__(self, run: Traversal, current: Any, namespace: str, struct_namespace: str):
        self._run = run
        self.current = current
        self.namespace = namespace
        self.struct_namespace = struct_namespace

    @property
    def top(self) -> Any:
        return self._run.top

    def report_error(self, value: Any, field_name: str, struct_field_name: str, tag: str, param: str = "") -> None:
        """Record a failure on ``field_name`` (empty for the struct as a whole)."""
        self._run.errors.append(FieldError(
            namespace=_join(self.namespace, field_name),
            struct_namespace=_join(self.struct_namespace, struct_field_name),
            field=field_name,
            struct_field=struct_field_name,
            tag=tag,
            actual_tag=tag,
            param=param,
            kind=type_kind(value),
            type_name=type(value).__name__,
            value=value,
        ))

    def report_errors(self, errors: Iterable[FieldError]) -> None:
        self._run.errors.extend(errors)


# ============================================================================
# Traversal
# ============================================================================

class Traversal:
    """One validation run. Not shared between threads; the cache and registry are."""

    def __init__(self, cache: RuleCache, registry: PredicateRegistry, top: Any, *,
                 selection: Selection = ALL, max_depth: int = 256):
        self.cache = cache
        self.registry = registry
        self.top = top
        self.selection = selection
        self.max_depth = max_depth
        self.errors: list[FieldError] = []
        self._on_path: set[tuple[type, int]] = set()
        self.extract = registry.extract if registry.has_custom_types else None

    def result(self) -> ValidationErrors:
        return ValidationErrors(self.errors) if self.errors else EMPTY

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_struct(self, value: Any) -> ValidationErrors:
        if not is_struct(value):
            raise InvalidValidationError(value, "expected a dataclass, pydantic model or annotated class instance")
        self.struct(value, "", "", 0)
        return self.result()

    def run_value(self, value: Any, chain: RuleChain, parent: Any = None) -> ValidationErrors:
        self.field(value, chain, parent, "", "", "", "", 0)
        return self.result()

    # ------------------------------------------------------------------
    # Structs
    # ------------------------------------------------------------------

    def struct(self, value: Any, ns: str, sns: str, depth: int, *, fields: bool = True, hook: bool = True) -> None:
        tp = type(value)
        key = (tp, id(value))
        if key in self._on_path:
            log.debug("cycle_skipped", type=tp.__name__, namespace=sns)
            return
        if depth > self.max_depth:
            log.warning("max_depth_reached", type=tp.__name__, namespace=sns, max_depth=self.max_depth)
            return

        compiled = self.cache.get_or_compile(tp)
        self._on_path.add(key)
        try:
            if fields:
                selecting = self.selection.mode is not SelectionMode.ALL
                for f in compiled.fields:
                    fsns = _join(sns, f.name)
                    if selecting and not self.selection.admits(fsns): continue
                    self.field(f.getter(value), f.chain, value, _join(ns, f.display_name), fsns,
                        f.display_name, f.name, depth)
            if hook and compiled.hook is not None:
                compiled.hook(StructLevel(self, value, ns, sns))
        finally:
            self._on_path.discard(key)

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def field(self, value: Any, chain: RuleChain, parent: Any, ns: str, sns: str, name: str, sname: str,
              depth: int) -> None:
        if self.extract is not None: value = self.extract(value)

        if chain.required is not None and not self._check(chain.required, value, parent, name, sname):
            self._report(chain.required, value, ns, sns, name, sname)
            return
        if chain.omitempty and is_zero(value): return

        for step in chain.steps:
            if not self._check(step, value, parent, name, sname):
                self._report(step, value, ns, sns, name, sname)
                return

        if chain.dive is not None:
            self._dive(value, chain.dive, parent, ns, sns, name, sname, depth)
        elif is_struct(value) and not (chain.structonly and chain.nostructlevel):
            self.struct(value, ns, sns, depth + 1, fields=not chain.structonly, hook=not chain.nostructlevel)

    def _dive(self, value: Any, dive: Dive, parent: Any, ns: str, sns: str, name: str, sname: str,
              depth: int) -> None:
        if value is None: return
        if not is_diveable(value):
            raise InvalidValidationError(value, f"cannot dive into '{sns or name or 'value'}'")

        if isinstance(value, Mapping):
            for key, item in value.items():
                sub = f"[{key}]"
                if dive.keys is not None:
                    self.field(key, dive.keys, parent, ns + sub, sns + sub, name + sub, sname + sub, depth)
                self.field(item, dive.elements, parent, ns + sub, sns + sub, name + sub, sname + sub, depth)
            return

        if dive.keys is not None:
            raise InvalidValidationError(value, "'keys' can only be used when diving into a mapping")
        for i, item in enumerate(value):
            sub = f"[{i}]"
            self.field(item, dive.elements, parent, ns + sub, sns + sub, name + sub, sname + sub, depth)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check(self, step: Step, value: Any, parent: Any, name: str, sname: str) -> bool:
        if isinstance(step, Rule):
            return step.predicate(FieldLevel(self, value, step.param, name, sname, parent))
        return any(r.predicate(FieldLevel(self, value, r.param, name, sname, parent)) for r in step.rules)

    def _report(self, step: Rule | AnyOf, value: Any, ns: str, sns: str, name: str, sname: str) -> None:
        self.errors.append(FieldError(
            namespace=ns,
            struct_namespace=sns,
            field=name,
            struct_field=sname,
            tag=step.tag,
            actual_tag=step.actual_tag,
            param=step.param,
            kind=type_kind(value),
            type_name=type(value).__name__,
            value=value,
        ))
