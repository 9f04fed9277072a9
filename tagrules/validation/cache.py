"""Rule-Chain Cache

Compiles rule expressions into executable chains and memoizes them per class.
A compiled type is built once, completely, and only then published; readers
do a plain ``dict.get`` and never take the lock.

Chain layout for ``required,omitempty,min=1,dive,keys,alpha,endkeys,email``:

    RuleChain(required=Rule(required), omitempty=True, steps=(Rule(min=1),),
              dive=Dive(keys=RuleChain(steps=(Rule(alpha),)),
                        elements=RuleChain(steps=(Rule(email),))))
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

from tagrules.errors import TagSyntaxError, UnknownDirectiveError
from tagrules.logging import cache_logger
from .fields import declared_fields, nested_struct_types
from .parser import SKIP, Directive, DirectiveKind, Item, OrGroup, is_skip, parse_tag
from .paths import FieldPath, parse_path
from .registry import Predicate, PredicateRegistry, StructLevelHook

log = cache_logger()


# ============================================================================
# Compiled chain
# ============================================================================

@dataclass(frozen=True, slots=True)
class Rule:
    """A directive bound to its predicate. ``tag`` is the alias name when one was used."""
    tag: str
    actual_tag: str
    param: str
    predicate: Predicate


@dataclass(frozen=True, slots=True)
class AnyOf:
    """Compiled or-group: passes when any alternative passes."""
    tag: str
    actual_tag: str
    rules: tuple[Rule, ...]
    param: str = ""


Step = Rule | AnyOf


@dataclass(frozen=True, slots=True)
class Dive:
    elements: RuleChain
    keys: RuleChain | None = None


@dataclass(frozen=True, slots=True)
class RuleChain:
    required: Rule | None = None
    omitempty: bool = False
    steps: tuple[Step, ...] = ()
    dive: Dive | None = None
    structonly: bool = False
    nostructlevel: bool = False

    @property
    def is_empty(self) -> bool:
        return self.required is None and not self.omitempty and not self.steps and self.dive is None


EMPTY_CHAIN = RuleChain()


@dataclass(frozen=True, slots=True)
class CompiledField:
    name: str
    display_name: str
    tag: str
    chain: RuleChain
    getter: Callable[[Any], Any]
    nested_types: tuple[type, ...] = ()


@dataclass(frozen=True, slots=True)
class CompiledType:
    type: type
    fields: tuple[CompiledField, ...]
    hook: StructLevelHook | None = None

    @property
    def name(self) -> str:
        return self.type.__name__


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    compiles: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "compiles": self.compiles}


# ============================================================================
# Compilation
# ============================================================================

_Entry = tuple[Item, str | None]


def _expand(items: tuple[Item, ...], registry: PredicateRegistry, expression: str) -> list[_Entry]:
    """Splice alias expansions in place, remembering which alias produced each item.

    Names inside an expansion resolve to predicates only.
    """
    entries: list[_Entry] = []
    for item in items:
        if isinstance(item, OrGroup):
            for member in item.alternatives:
                if registry.alias(member.name) is not None:
                    raise TagSyntaxError(member.name, "aliases cannot be used inside an or-group", expression)
            entries.append((item, None))
        elif item.kind is DirectiveKind.PREDICATE and (aliased := registry.alias(item.name)) is not None:
            entries.extend((sub, item.name) for sub in parse_tag(aliased))
        else:
            entries.append((item, None))
    return entries


def _rule(d: Directive, alias: str | None, registry: PredicateRegistry, expression: str, owner: str | None) -> Rule:
    predicate = registry.predicate(d.name)
    if predicate is None:
        raise UnknownDirectiveError(d.name, expression, owner)
    return Rule(tag=alias or d.name, actual_tag=d.name, param=d.param, predicate=predicate)


def _any_of(group: OrGroup, alias: str | None, registry: PredicateRegistry, expression: str,
            owner: str | None) -> AnyOf:
    rules = tuple(_rule(d, None, registry, expression, owner) for d in group.alternatives)
    return AnyOf(tag=alias or group.name, actual_tag=group.name, rules=rules)


def _build(entries: list[_Entry], registry: PredicateRegistry, expression: str, owner: str | None) -> RuleChain:
    required: Rule | None = None
    omitempty = structonly = nostructlevel = False
    steps: list[Step] = []
    dive: Dive | None = None

    for i, (item, alias) in enumerate(entries):
        if isinstance(item, OrGroup):
            steps.append(_any_of(item, alias, registry, expression, owner))
            continue
        match item.kind:
            case DirectiveKind.REQUIRED:
                if required is None: required = _rule(item, alias, registry, expression, owner)
            case DirectiveKind.OMITEMPTY:
                omitempty = True
            case DirectiveKind.STRUCTONLY:
                structonly = True
            case DirectiveKind.NOSTRUCTLEVEL:
                nostructlevel = True
            case DirectiveKind.DIVE:
                rest = entries[i + 1:]
                keys = None
                if rest and isinstance(head := rest[0][0], Directive) and head.kind is DirectiveKind.KEYS:
                    end = next((j for j, (it, _) in enumerate(rest)
                                if isinstance(it, Directive) and it.kind is DirectiveKind.ENDKEYS), None)
                    if end is None:
                        raise TagSyntaxError("keys", "'keys' without a closing 'endkeys'", expression)
                    keys = _build(rest[1:end], registry, expression, owner)
                    rest = rest[end + 1:]
                dive = Dive(elements=_build(rest, registry, expression, owner), keys=keys)
                break
            case DirectiveKind.KEYS | DirectiveKind.ENDKEYS:
                raise TagSyntaxError(item.name, f"'{item.name}' must follow 'dive'", expression)
            case _:
                steps.append(_rule(item, alias, registry, expression, owner))

    return RuleChain(required=required, omitempty=omitempty, steps=tuple(steps), dive=dive,
        structonly=structonly, nostructlevel=nostructlevel)


def compile_chain(expression: str, registry: PredicateRegistry, owner: str | None = None) -> RuleChain:
    """Parse ``expression`` and bind every directive against ``registry``.

    Raises:
        TagSyntaxError: malformed expression.
        UnknownDirectiveError: a name with no predicate or alias.
    """
    items = parse_tag(expression)
    if not items: return EMPTY_CHAIN
    return _build(_expand(items, registry, expression), registry, expression, owner)


# ============================================================================
# Cache
# ============================================================================

def _getter(name: str) -> Callable[[Any], Any]:
    # annotation-only attributes read as None
    return lambda obj: getattr(obj, name, None)


class RuleCache:
    """Per-validator memo of compiled types, standalone chains and parsed paths."""

    def __init__(self, registry: PredicateRegistry, tag_name: str = "validate"):
        self._registry = registry
        self._tag_name = tag_name
        self._types: dict[type, CompiledType] = {}
        self._chains: dict[str, RuleChain] = {}
        self._paths: dict[tuple[type | None, str], FieldPath] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def __contains__(self, tp: type) -> bool:
        return tp in self._types

    def __len__(self) -> int:
        return len(self._types)

    def get_or_compile(self, tp: type) -> CompiledType:
        """Compiled form of ``tp``, compiling it and the struct types it names on first sight."""
        compiled = self._types.get(tp)
        if compiled is not None:
            self.stats.hits += 1
            return compiled
        self.stats.misses += 1

        compiling: set[type] = set()
        pending = [tp]
        while pending:
            current = pending.pop()
            if current in compiling or current in self._types: continue
            compiling.add(current)
            built = self._publish(current, self._compile_type(current))
            pending.extend(n for f in built.fields for n in f.nested_types)
        return self._types[tp]

    def get_chain(self, expression: str) -> RuleChain:
        """Compiled chain for a standalone expression (``validate_value``)."""
        chain = self._chains.get(expression)
        if chain is not None:
            self.stats.hits += 1
            return chain
        self.stats.misses += 1
        chain = compile_chain(expression, self._registry)
        with self._lock:
            return self._chains.setdefault(expression, chain)

    def path(self, owner: type | None, path: str) -> FieldPath:
        """Parsed cross-field path, memoized per declaring type."""
        key = (owner, path)
        parsed = self._paths.get(key)
        if parsed is None:
            parsed = parse_path(path)
            with self._lock:
                parsed = self._paths.setdefault(key, parsed)
        return parsed

    def _compile_type(self, tp: type) -> CompiledType:
        fields: list[CompiledField] = []
        for spec in declared_fields(tp, self._tag_name):
            if is_skip(spec.tag): continue
            display = self._registry.display_name(spec)
            if display == SKIP: continue
            owner = f"{tp.__name__}.{spec.name}"
            fields.append(CompiledField(
                name=spec.name,
                display_name=display,
                tag=spec.tag or "",
                chain=compile_chain(spec.tag or "", self._registry, owner),
                getter=_getter(spec.name),
                nested_types=nested_struct_types(spec.annotation),
            ))
        return CompiledType(tp, tuple(fields), self._registry.struct_hook(tp))

    def _publish(self, tp: type, compiled: CompiledType) -> CompiledType:
        with self._lock:
            winner = self._types.setdefault(tp, compiled)
            if winner is compiled: self.stats.compiles += 1
        if winner is compiled:
            log.debug("type_compiled", type=tp.__name__, fields=len(compiled.fields),
                hook=compiled.hook is not None)
        return winner

    def clear(self) -> None:
        with self._lock:
            self._types.clear()
            self._chains.clear()
            self._paths.clear()
