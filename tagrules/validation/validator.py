"""Validator Facade

Owns one predicate registry and one rule cache. Configure it first (register
predicates, aliases, custom types and hooks), then share it freely between
threads for validation.

Usage:
    validator = Validator()
    validator.register_validation("sku", lambda v, _: v.startswith("SKU-"))

    errors = validator.validate_struct(order)
    if errors:
        for e in errors: print(e.namespace, e.tag)
"""
from __future__ import annotations

from typing import Any, Callable

from tagrules.config import ValidatorConfig
from .cache import CacheStats, RuleCache
from .engine import ALL, Selection, Traversal
from .errors import ValidationErrors
from .predicates import register_builtins
from .registry import Extractor, PredicateRegistry, StructLevelHook, TagNameFunc


class Validator:
    """Tag-driven validator. No process-wide default exists; callers own instances."""

    def __init__(self, config: ValidatorConfig | None = None):
        self.config = config or ValidatorConfig.from_settings()
        self._registry = PredicateRegistry()
        register_builtins(self._registry)
        self._cache = RuleCache(self._registry, self.config.tag_name)
        self._in_use = False

    def _traversal(self, top: Any, selection: Selection = ALL) -> Traversal:
        if not self._in_use:
            self._registry.freeze()
            self._in_use = True
        return Traversal(self._cache, self._registry, top, selection=selection, max_depth=self.config.max_depth)

    # ========================================================================
    # Validation
    # ========================================================================

    def validate_struct(self, value: Any) -> ValidationErrors:
        """Validate every tagged field of ``value`` and of the structs it reaches.

        Raises:
            InvalidValidationError: ``value`` is None or not a struct instance.
        """
        return self._traversal(value).run_struct(value)

    def validate_struct_partial(self, value: Any, *paths: str) -> ValidationErrors:
        """Validate only the named fields (struct namespaces such as ``Inner.Start``)."""
        return self._traversal(value, Selection.include(*paths)).run_struct(value)

    def validate_struct_except(self, value: Any, *paths: str) -> ValidationErrors:
        """Validate everything except the named fields and what lies below them."""
        return self._traversal(value, Selection.exclude(*paths)).run_struct(value)

    def validate_value(self, value: Any, expression: str) -> ValidationErrors:
        """Validate a standalone value against ``expression``; errors have an empty namespace."""
        chain = self._cache.get_chain(expression)
        return self._traversal(None).run_value(value, chain)

    def validate_value_with_value(self, value: Any, other: Any, expression: str) -> ValidationErrors:
        """Like ``validate_value`` but cross-field directives with an empty path compare against ``other``."""
        chain = self._cache.get_chain(expression)
        return self._traversal(other).run_value(value, chain, parent=other)

    # ========================================================================
    # Registration
    # ========================================================================

    def register_validation(self, name: str, fn: Callable[..., bool], *, contextual: bool = False,
                            call_on_none: bool = False) -> None:
        self._registry.register(name, fn, contextual=contextual, call_on_none=call_on_none)

    def register_alias(self, alias: str, expression: str) -> None:
        self._registry.register_alias(alias, expression)

    def register_custom_type_func(self, extractor: Extractor, *types: type) -> None:
        self._registry.register_custom_type(extractor, *types)

    def register_struct_validation(self, hook: StructLevelHook, *types: type) -> None:
        self._registry.register_struct_level(hook, *types)

    def register_tag_name_func(self, fn: TagNameFunc) -> None:
        self._registry.register_tag_name_func(fn)

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def cache_stats(self) -> CacheStats:
        return self._cache.stats

    def __repr__(self) -> str:
        return f"Validator(tag_name={self.config.tag_name!r}, cached_types={len(self._cache)})"
