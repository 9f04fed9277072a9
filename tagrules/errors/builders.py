"""Domain-Specific Error Builders

Ergonomic constructors for typed errors. Each builder creates an AppError
with the appropriate code and metadata.
"""
from typing import Any

from .types import AppError, ErrorCode, ErrorContext


# =============================================================================
# Configuration Errors (E7xxx)
# =============================================================================

def configuration_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E7000_CONFIGURATION_GENERIC,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> AppError:
    """Create configuration error."""
    return AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin),
        metadata={k: v for k, v in metadata.items() if v is not None},
        cause=cause,
    )


def tag_syntax_error(fragment: str, reason: str, expression: str | None = None) -> AppError:
    return configuration_error(
        f"Invalid rule expression fragment '{fragment}': {reason}",
        code=ErrorCode.E7001_TAG_SYNTAX,
        origin="parser",
        fragment=fragment,
        expression=expression,
    )


def unknown_directive(name: str, expression: str | None = None, owner: str | None = None) -> AppError:
    msg = f"Undefined validation function '{name}'"
    if owner:
        msg += f" on field '{owner}'"
    return configuration_error(
        msg,
        code=ErrorCode.E7002_UNKNOWN_DIRECTIVE,
        origin="cache",
        directive=name,
        expression=expression,
        field=owner,
    )


def invalid_registration(what: str, reason: str) -> AppError:
    return configuration_error(
        f"Cannot register {what}: {reason}",
        code=ErrorCode.E7003_INVALID_REGISTRATION,
        origin="registry",
        target=what,
    )


def invalid_target(value: Any, reason: str) -> AppError:
    return configuration_error(
        f"Invalid validation target of type '{type(value).__name__}': {reason}",
        code=ErrorCode.E7004_INVALID_TARGET,
        origin="engine",
        type=type(value).__name__,
    )


def invalid_param(tag: str, param: str, expected: str) -> AppError:
    return configuration_error(
        f"Bad param '{param}' for '{tag}': expected {expected}",
        code=ErrorCode.E7005_INVALID_PARAM,
        origin="predicates",
        tag=tag,
        param=param,
    )


# =============================================================================
# Validation Errors (E2xxx)
# =============================================================================

def field_validation_failed(error_count: int, **metadata) -> AppError:
    """Summarize a failed validation run."""
    return AppError(
        code=ErrorCode.E2006_FIELD_VALIDATION_FAILED,
        message=f"Validation failed: {error_count} error{'s' if error_count != 1 else ''}",
        context=ErrorContext(origin="validator"),
        metadata={"error_count": error_count, **metadata},
    )
