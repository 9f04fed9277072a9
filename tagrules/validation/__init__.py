"""Declarative Validation Engine

Rule expressions attached to fields are parsed once per type, compiled into
rule chains bound to registered predicates, and run by a depth-first
traversal that collects every failure.

Key Features:
- Tag parser with or-groups, dive, keys/endkeys and param escapes
- Per-class compiled rule cache, lock-free reads
- Cross-field (``gtfield=Start``) and cross-struct (``eqcsfield=Inner.Start``) checks
- Custom-type extractors, struct-level hooks, aliases, display-name functions
- Partial and except-field validation

Usage:
    from dataclasses import dataclass, field
    from tagrules.validation import Validator

    @dataclass
    class Signup:
        email: str = field(metadata={"validate": "required,email"})
        age: int = field(default=0, metadata={"validate": "omitempty,gte=13"})

    errors = Validator().validate_struct(Signup(email="nope"))
    assert errors.first.tag == "email"
"""

from .parser import Directive, DirectiveKind, OrGroup, parse_tag
from .fields import Tag, TypeKind, declared_fields, is_zero
from .registry import Predicate, PredicateRegistry
from .cache import CompiledType, RuleCache, RuleChain, compile_chain
from .paths import FieldPath, parse_path, resolve
from .errors import FieldError, ValidationErrors, ValidationFailed
from .engine import FieldLevel, Selection, SelectionMode, StructLevel
from .validator import Validator

__all__ = [
    # Facade
    "Validator",
    # Declaration
    "Tag",
    # Results
    "FieldError",
    "ValidationErrors",
    "ValidationFailed",
    "TypeKind",
    # Predicate / hook handles
    "FieldLevel",
    "StructLevel",
    "Selection",
    "SelectionMode",
    # Internals
    "Directive",
    "DirectiveKind",
    "OrGroup",
    "parse_tag",
    "declared_fields",
    "is_zero",
    "Predicate",
    "PredicateRegistry",
    "CompiledType",
    "RuleCache",
    "RuleChain",
    "compile_chain",
    "FieldPath",
    "parse_path",
    "resolve",
]
