"""Raised Errors

Configuration errors are raised immediately, at registration or on first use
of a type or expression. Each wraps an AppError so callers that prefer the
Result style can lift it with `.error`.
"""
from __future__ import annotations

from typing import Any

from .builders import (
    invalid_param,
    invalid_registration,
    invalid_target,
    tag_syntax_error,
    unknown_directive,
)
from .types import AppError


class AppErrorException(Exception):
    """Exception wrapper for AppError.

    Use this when you need to raise an AppError in code that
    doesn't use the Result monad.
    """

    def __init__(self, error: AppError):
        self.error = error
        super().__init__(str(error))


class ConfigurationError(AppErrorException):
    """Base for errors caused by validator configuration rather than data."""


class TagSyntaxError(ConfigurationError):
    """Malformed rule expression."""

    def __init__(self, fragment: str, reason: str, expression: str | None = None):
        self.fragment, self.reason, self.expression = fragment, reason, expression
        super().__init__(tag_syntax_error(fragment, reason, expression))


class UnknownDirectiveError(ConfigurationError):
    """Directive name with no registered predicate or alias."""

    def __init__(self, name: str, expression: str | None = None, owner: str | None = None):
        self.name, self.expression, self.owner = name, expression, owner
        super().__init__(unknown_directive(name, expression, owner))


class RegistrationError(ConfigurationError):
    """Rejected predicate, alias, custom-type or struct-level registration."""

    def __init__(self, what: str, reason: str):
        self.what = what
        super().__init__(invalid_registration(what, reason))


class InvalidValidationError(ConfigurationError):
    """Value handed to the engine that it cannot validate (None, non-struct, non-collection dive)."""

    def __init__(self, value: Any, reason: str):
        self.value_type = type(value)
        super().__init__(invalid_target(value, reason))


class ParamError(ConfigurationError):
    """Directive param that the predicate cannot interpret."""

    def __init__(self, tag: str, param: str, expected: str):
        self.tag, self.param = tag, param
        super().__init__(invalid_param(tag, param, expected))
