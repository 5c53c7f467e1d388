from __future__ import annotations

import pytest

from nestconf.constraints import Violation, ViolationKind
from nestconf.errors import ConfigError, ConfigValidationError
from nestconf.result import ValidationResult

NAME = Violation("name", "The name field is required.", ViolationKind.MISSING_REQUIRED_VALUE)
TEMP = Violation(
    "temperature", "The field temperature must be between 0.0 and 2.0.", ViolationKind.OUT_OF_RANGE
)


def test_success_has_no_message() -> None:
    result = ValidationResult.success()

    assert result.succeeded
    assert not result.failed
    assert result.failures == []
    assert result.failure_message is None
    assert bool(result)


def test_fail_requires_a_violation() -> None:
    with pytest.raises(ValueError):
        ValidationResult.fail([])


def test_failure_message_joins_in_order() -> None:
    result = ValidationResult.fail([NAME, TEMP])

    assert result.failed
    assert not result
    assert result.failures == [
        "name: The name field is required.",
        "temperature: The field temperature must be between 0.0 and 2.0.",
    ]
    assert result.failure_message == "; ".join(result.failures)


def test_from_violations_picks_outcome() -> None:
    assert ValidationResult.from_violations([]).succeeded
    assert ValidationResult.from_violations(iter([NAME])).violations == (NAME,)


def test_results_are_immutable_values() -> None:
    result = ValidationResult.fail([NAME])

    assert result == ValidationResult.fail([NAME])
    with pytest.raises(AttributeError):
        result.violations = ()  # type: ignore[misc]


def test_raise_for_failure() -> None:
    success = ValidationResult.success()
    assert success.raise_for_failure() is success

    failure = ValidationResult.fail([NAME, TEMP])
    with pytest.raises(ConfigValidationError) as excinfo:
        failure.raise_for_failure()

    error = excinfo.value
    assert isinstance(error, ConfigError)
    assert error.result is failure
    assert error.failures == failure.failures
    assert str(error) == f"Configuration validation failed: {failure.failure_message}"


def test_to_dict() -> None:
    payload = ValidationResult.fail([TEMP]).to_dict()

    assert payload == {
        "succeeded": False,
        "message": "temperature: The field temperature must be between 0.0 and 2.0.",
        "violations": [
            {
                "path": "temperature",
                "message": "The field temperature must be between 0.0 and 2.0.",
                "kind": "out_of_range",
            }
        ],
    }
