"""Shared fixtures for the test suite.

Model classes live in the test modules that use them: field hints are
resolved against the declaring module, so keeping them local avoids
cross-module forward-reference surprises.
"""

import pytest
import structlog

from tagrules import Validator, ValidatorConfig
from tagrules.validation import PredicateRegistry
from tagrules.validation.predicates import register_builtins


@pytest.fixture
def validator() -> Validator:
    """Fresh validator with default config; ignores TAGRULES_* in the environment."""
    return Validator(ValidatorConfig())


@pytest.fixture
def registry() -> PredicateRegistry:
    reg = PredicateRegistry()
    register_builtins(reg)
    return reg


@pytest.fixture
def captured_logs():
    with structlog.testing.capture_logs() as logs:
        yield logs
