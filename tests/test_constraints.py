from __future__ import annotations

from decimal import Decimal
from enum import Enum

import pytest

from nestconf.constraints import (
    Length,
    Pattern,
    Range,
    Required,
    SchemaError,
    Violation,
    ViolationKind,
)


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"


@pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
def test_required_rejects_absent_and_blank_text(value: object) -> None:
    assert Required().check(value, "theme") == "The theme field is required."


@pytest.mark.parametrize("value", ["dark", 0, False, [], {}, 0.0])
def test_required_accepts_present_values(value: object) -> None:
    assert Required().check(value, "theme") is None


def test_range_is_a_closed_interval() -> None:
    rule = Range(1, 10)
    assert rule.check(1, "port") is None
    assert rule.check(10, "port") is None
    assert rule.check(Decimal("5.5"), "port") is None
    assert rule.check(0, "port") == "The field port must be between 1 and 10."
    assert rule.check(11, "port") is not None


def test_range_ignores_absent_values_and_rejects_non_numbers() -> None:
    rule = Range(0.0, 2.0)
    assert rule.check(None, "temperature") is None
    assert rule.check("1.0", "temperature") is not None
    assert rule.check(True, "temperature") is not None


def test_half_open_range() -> None:
    rule = Range(minimum=0)
    assert rule.check(10**9, "size") is None
    assert rule.check(-1, "size") == "The field size must be between 0 and unbounded."


def test_length_bounds_strings_and_collections() -> None:
    rule = Length(2, 4)
    assert rule.check("ab", "code") is None
    assert rule.check(["a", "b", "c"], "code") is None
    assert rule.check(None, "code") is None
    assert rule.check("a", "code") == (
        "The field code must be a string or collection with a minimum length of 2 "
        "and a maximum length of 4."
    )
    assert rule.check("abcde", "code") is not None
    assert rule.check(12, "code") is not None


def test_pattern_requires_full_match() -> None:
    rule = Pattern(r"[a-z]+-[a-z]+\d+")
    assert rule.check("us-central1", "region") is None
    assert rule.check("us-central1-extra", "region") == (
        "The field region must match the regular expression '[a-z]+-[a-z]+\\d+'."
    )
    assert rule.check(None, "region") is None
    assert rule.check(42, "region") is not None


def test_pattern_matches_enum_values() -> None:
    assert Pattern("red|green").check(Color.RED, "color") is None
    assert Pattern("red|green").check(Color.BLUE, "color") is not None


def test_custom_messages_receive_field_name() -> None:
    rule = Required(message="{field} must be configured")
    assert rule.check("", "api_key") == "api_key must be configured"


@pytest.mark.parametrize(
    "factory",
    [
        lambda: Range(),
        lambda: Range(5, 1),
        lambda: Length(-1),
        lambda: Length(5, 2),
        lambda: Pattern("(unclosed"),
    ],
)
def test_invalid_declarations_raise_schema_error(factory) -> None:
    with pytest.raises(SchemaError):
        factory()


def test_constraint_kinds() -> None:
    assert Required.kind is ViolationKind.MISSING_REQUIRED_VALUE
    assert Range.kind is ViolationKind.OUT_OF_RANGE
    assert Length.kind is ViolationKind.INVALID_LENGTH
    assert Pattern.kind is ViolationKind.PATTERN_MISMATCH


def test_constraints_are_hashable_and_comparable() -> None:
    assert Range(1, 2) == Range(1, 2)
    assert Pattern("a+") == Pattern("a+")
    assert len({Required(), Required(), Length(1, 2)}) == 2


def test_violation_rendering() -> None:
    violation = Violation("model.temperature", "too hot", ViolationKind.OUT_OF_RANGE)
    assert violation.render() == "model.temperature: too hot"
    assert violation.to_dict() == {
        "path": "model.temperature",
        "message": "too hot",
        "kind": "out_of_range",
    }


def test_exclusive_range_bounds() -> None:
    rule = Range(0, 1, exclusive_minimum=True)
    assert rule.check(0.5, "ratio") is None
    assert rule.check(1, "ratio") is None
    assert rule.check(0, "ratio") == "The field ratio must be > 0, <= 1."

    upper = Range(maximum=10, exclusive_maximum=True)
    assert upper.check(9.99, "count") is None
    assert upper.check(10, "count") == "The field count must be < 10."


def test_searching_pattern_matches_anywhere() -> None:
    rule = Pattern(r"[a-z]+", search=True)
    assert rule.check("abc-123", "slug") is None
    assert rule.check("123", "slug") is not None
    assert Pattern(r"[a-z]+").check("abc-123", "slug") is not None
