"""Monadic Error Handling System

- Result[T, E]: Monadic container for success/failure
- AppError: Base error type with full context
- ErrorCode: Hierarchical error code taxonomy
- Raised configuration errors wrapping AppError

Usage:
    from tagrules.errors import Ok, Err, TagSyntaxError

    match errors.to_result(order):
        case Ok(order):
            submit(order)
        case Err(error):
            log.warning(error.message, code=error.code.name)
"""
from .types import (
    Result,
    Ok,
    Err,
    AppError,
    ErrorCode,
    ErrorContext,
)

from .builders import (
    configuration_error,
    tag_syntax_error,
    unknown_directive,
    invalid_registration,
    invalid_target,
    invalid_param,
    field_validation_failed,
)

from .exceptions import (
    AppErrorException,
    ConfigurationError,
    TagSyntaxError,
    UnknownDirectiveError,
    RegistrationError,
    InvalidValidationError,
    ParamError,
)

__all__ = [
    # Core types
    "Result",
    "Ok",
    "Err",
    "AppError",
    "ErrorCode",
    "ErrorContext",
    # Builders
    "configuration_error",
    "tag_syntax_error",
    "unknown_directive",
    "invalid_registration",
    "invalid_target",
    "invalid_param",
    "field_validation_failed",
    # Raised
    "AppErrorException",
    "ConfigurationError",
    "TagSyntaxError",
    "UnknownDirectiveError",
    "RegistrationError",
    "InvalidValidationError",
    "ParamError",
]
