"""Validation Error Model

Failures found while walking a value are data, not exceptions. Each failed
directive yields one FieldError; a run returns them as an ordered, immutable
ValidationErrors sequence (empty = valid).

Error Format (``ValidationErrors.to_dict()``):
{
    "error": {
        "type": "validation_error",
        "message": "Validation failed: 1 error",
        "error_count": 1,
        "errors": [
            {
                "namespace": "Inner.Start",
                "field": "Start",
                "tag": "required",
                "param": "",
                "kind": "time",
                "value": null
            }
        ]
    }
}
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Iterator, overload

from tagrules.errors import AppError, AppErrorException, Err, Ok, Result, field_validation_failed
from .fields import TypeKind


@dataclass(frozen=True, slots=True)
class FieldError:
    """One failed directive on one field.

    - namespace: root-relative path using display names (e.g. "items[0].sku")
    - struct_namespace: the same path using attribute names
    - tag: directive as written, alias name included
    - actual_tag: directive that actually ran after alias expansion
    """
    namespace: str
    struct_namespace: str
    field: str
    struct_field: str
    tag: str
    actual_tag: str
    param: str
    kind: TypeKind
    type_name: str
    value: Any = None

    def __str__(self) -> str:
        return f"Key: '{self.namespace}' Error:Field validation for '{self.field}' failed on the '{self.tag}' tag"

    def to_dict(self) -> dict[str, Any]:
        result = {"namespace": self.namespace, "field": self.field, "tag": self.tag,
            "param": self.param, "kind": self.kind.value, "value": self.value}
        if self.actual_tag != self.tag: result["actual_tag"] = self.actual_tag
        if self.struct_namespace != self.namespace: result["struct_namespace"] = self.struct_namespace
        return result


class ValidationErrors(Sequence[FieldError]):
    """Ordered, immutable result of one validation run; falsy when empty."""

    __slots__ = ("_errors",)

    def __init__(self, errors: Sequence[FieldError] = ()):
        self._errors: tuple[FieldError, ...] = tuple(errors)

    @overload
    def __getitem__(self, index: int) -> FieldError: ...
    @overload
    def __getitem__(self, index: slice) -> ValidationErrors: ...

    def __getitem__(self, index):
        if isinstance(index, slice): return ValidationErrors(self._errors[index])
        return self._errors[index]

    def __len__(self) -> int: return len(self._errors)

    def __iter__(self) -> Iterator[FieldError]: return iter(self._errors)

    def __bool__(self) -> bool: return bool(self._errors)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ValidationErrors): return self._errors == other._errors
        if isinstance(other, (list, tuple)): return list(self._errors) == list(other)
        return NotImplemented

    def __repr__(self) -> str: return f"ValidationErrors({list(self._errors)!r})"

    def __str__(self) -> str: return "\n".join(str(e) for e in self._errors)

    @property
    def first(self) -> FieldError | None: return self._errors[0] if self._errors else None

    def by_namespace(self) -> dict[str, list[FieldError]]:
        """Group errors by namespace, preserving report order."""
        result: dict[str, list[FieldError]] = {}
        for error in self._errors: result.setdefault(error.namespace, []).append(error)
        return result

    def for_field(self, namespace: str) -> list[FieldError]:
        return [e for e in self._errors if e.namespace == namespace]

    def to_app_error(self) -> AppError:
        """Summarize as an AppError for the application error stack."""
        if len(self._errors) == 1:
            e = self._errors[0]
            return field_validation_failed(1, namespace=e.namespace, tag=e.tag, param=e.param)
        return field_validation_failed(len(self._errors), errors=[e.to_dict() for e in self._errors])

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"type": "validation_error", "message": self.to_app_error().message,
            "error_count": len(self._errors), "errors": [e.to_dict() for e in self._errors]}}

    def raise_if_errors(self) -> None:
        if self._errors: raise ValidationFailed(self)

    def to_result(self, value: Any) -> Result[Any, AppError]:
        """Ok(value) when valid, Err(app_error) otherwise."""
        return Err(self.to_app_error()) if self._errors else Ok(value)


EMPTY = ValidationErrors()


class ValidationFailed(AppErrorException):
    """Opt-in exception form of a non-empty ValidationErrors."""

    def __init__(self, errors: ValidationErrors):
        self.errors = errors
        super().__init__(errors.to_app_error())

    def __str__(self) -> str:
        return str(self.errors)
