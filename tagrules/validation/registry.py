"""Predicate Registry

Maps directive names to predicate functions, and concrete types to custom-type
extractors and struct-level hooks. Registration is a configuration-time
operation: the owning Validator freezes the registry when it runs its first
validation, and later registrations are logged as misuse.
"""
from __future__ import annotations

from abc import ABCMeta
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from tagrules.errors import RegistrationError, TagSyntaxError
from tagrules.logging import registry_logger
from .fields import FieldSpec, is_struct_type
from .parser import RESERVED_NAMES, parse_tag

if TYPE_CHECKING:
    from .engine import FieldLevel, StructLevel

log = registry_logger()

_UNSET = object()

PlainPredicate = Callable[[Any, str], bool]
ContextPredicate = Callable[["FieldLevel"], bool]
Extractor = Callable[[Any], Any]
StructLevelHook = Callable[["StructLevel"], None]
TagNameFunc = Callable[[FieldSpec], str | None]


@dataclass(frozen=True, slots=True)
class Predicate:
    """A registered validation function and how to call it."""
    name: str
    fn: Callable[..., bool]
    contextual: bool = False
    call_on_none: bool = False

    def __call__(self, fl: FieldLevel) -> bool:
        if fl.value is None and not self.call_on_none: return False
        return bool(self.fn(fl) if self.contextual else self.fn(fl.value, fl.param))


class PredicateRegistry:
    """Name → predicate table plus per-type extractors and hooks."""

    def __init__(self):
        self._predicates: dict[str, Predicate] = {}
        self._aliases: dict[str, str] = {}
        self._extractors: dict[type, Extractor] = {}
        self._resolved: dict[type, Extractor | None] = {}
        self._struct_hooks: dict[type, StructLevelHook] = {}
        self._tag_name_func: TagNameFunc | None = None
        self._frozen = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _check_open(self, what: str) -> None:
        if self._frozen:
            log.warning("registration_after_use", target=what,
                message="registry already used for validation; cached rule chains are not rebuilt")

    def register(self, name: str, fn: Callable[..., bool], *, contextual: bool = False,
                 call_on_none: bool = False) -> None:
        """Bind ``name`` to a predicate. Last registration wins."""
        if not name or not name.strip() or name in RESERVED_NAMES or any(c in name for c in ",|= "):
            raise RegistrationError(f"validation '{name}'", "name is empty, reserved or contains separators")
        if not callable(fn):
            raise RegistrationError(f"validation '{name}'", "predicate is not callable")
        self._check_open(name)
        self._predicates[name] = Predicate(name, fn, contextual=contextual, call_on_none=call_on_none)
        self._aliases.pop(name, None)
        log.debug("validation_registered", name=name, contextual=contextual)

    def register_alias(self, alias: str, expression: str) -> None:
        """Make ``alias`` expand to ``expression`` wherever it appears as a directive."""
        if not alias or alias in RESERVED_NAMES or any(c in alias for c in ",|= "):
            raise RegistrationError(f"alias '{alias}'", "name is empty, reserved or contains separators")
        try:
            items = parse_tag(expression)
        except TagSyntaxError as e:
            raise RegistrationError(f"alias '{alias}'", f"expression does not parse: {e.reason}") from e
        if not items:
            raise RegistrationError(f"alias '{alias}'", "expression is empty")
        self._check_open(alias)
        self._aliases[alias] = expression
        log.debug("alias_registered", alias=alias, expression=expression)

    def register_custom_type(self, extractor: Extractor, *types: type) -> None:
        if not callable(extractor):
            raise RegistrationError("custom type func", "extractor is not callable")
        if not types:
            raise RegistrationError("custom type func", "no types given")
        for tp in types:
            if not isinstance(tp, type):
                raise RegistrationError(f"custom type func for {tp!r}", "target is not a class")
        self._check_open("custom_type")
        for tp in types:
            self._extractors[tp] = extractor
        self._resolved.clear()
        log.debug("custom_type_registered", types=[t.__name__ for t in types])

    def register_struct_level(self, hook: StructLevelHook, *types: type) -> None:
        if not callable(hook):
            raise RegistrationError("struct validation", "hook is not callable")
        if not types:
            raise RegistrationError("struct validation", "no types given")
        for tp in types:
            if not isinstance(tp, type) or not is_struct_type(tp):
                raise RegistrationError(f"struct validation for {tp!r}", "target is not a struct type")
        self._check_open("struct_level")
        for tp in types:
            self._struct_hooks[tp] = hook
        log.debug("struct_level_registered", types=[t.__name__ for t in types])

    def register_tag_name_func(self, fn: TagNameFunc) -> None:
        if not callable(fn):
            raise RegistrationError("tag name func", "not callable")
        self._check_open("tag_name_func")
        self._tag_name_func = fn

    def load(self, predicates: Iterable[Predicate], aliases: Mapping[str, str] | None = None) -> None:
        """Bulk-install a catalogue of predicates and aliases with a single log event."""
        self._check_open("catalogue")
        for predicate in predicates:
            self._predicates[predicate.name] = predicate
        for alias, expression in (aliases or {}).items():
            parse_tag(expression)
            self._aliases[alias] = expression
        log.debug("catalogue_loaded", predicates=len(self._predicates), aliases=len(self._aliases))

    def freeze(self) -> None:
        self._frozen = True

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def predicate(self, name: str) -> Predicate | None:
        return self._predicates.get(name)

    def alias(self, name: str) -> str | None:
        return self._aliases.get(name)

    def struct_hook(self, tp: type) -> StructLevelHook | None:
        return self._struct_hooks.get(tp)

    def display_name(self, spec: FieldSpec) -> str:
        if self._tag_name_func is None: return spec.name
        return self._tag_name_func(spec) or spec.name

    @property
    def has_custom_types(self) -> bool:
        return bool(self._extractors)

    def _extractor_for(self, klass: type) -> Extractor | None:
        for base in klass.__mro__:
            if (extractor := self._extractors.get(base)) is not None: return extractor
        # virtual subclasses registered on an ABC
        for target, extractor in self._extractors.items():
            if isinstance(target, ABCMeta) and issubclass(klass, target): return extractor
        return None

    def extract(self, value: Any) -> Any:
        """Unwrap a domain value through the extractor registered for its class, a base class or an ABC."""
        if not self._extractors or value is None: return value
        klass = type(value)
        extractor = self._resolved.get(klass, _UNSET)
        if extractor is _UNSET:
            extractor = self._resolved[klass] = self._extractor_for(klass)
        return value if extractor is None else extractor(value)

    def __contains__(self, name: str) -> bool:
        return name in self._predicates or name in self._aliases
