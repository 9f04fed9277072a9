"""tagrules: declarative, tag-driven validation of composite values."""

__version__ = "0.1.0"

from tagrules.validation import (  # noqa: E402
    Validator,
    Tag,
    FieldError,
    ValidationErrors,
    ValidationFailed,
    FieldLevel,
    StructLevel,
    Selection,
)
from tagrules.config import ValidatorConfig, Settings, get_settings  # noqa: E402
from tagrules.errors import (  # noqa: E402
    ConfigurationError,
    TagSyntaxError,
    UnknownDirectiveError,
    RegistrationError,
    InvalidValidationError,
    ParamError,
)

__all__ = [
    "__version__",
    "Validator",
    "Tag",
    "FieldError",
    "ValidationErrors",
    "ValidationFailed",
    "FieldLevel",
    "StructLevel",
    "Selection",
    "ValidatorConfig",
    "Settings",
    "get_settings",
    "ConfigurationError",
    "TagSyntaxError",
    "UnknownDirectiveError",
    "RegistrationError",
    "InvalidValidationError",
    "ParamError",
]
