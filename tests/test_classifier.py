from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, FrozenSet, List, Optional, Set, Tuple, Union

import pytest
from pydantic import BaseModel

from nestconf.classifier import FieldKind, classify, classify_type, is_scalar_type
from nestconf.constraints import Required
from nestconf.registry import ConstraintRegistry


class Level(Enum):
    LOW = 1


class Leaf(BaseModel):
    value: int = 1


@dataclass
class Point:
    x: int = 0


class Opaque:
    """Has attributes but no declared fields."""

    def __init__(self) -> None:
        self.inner = Leaf()


@pytest.mark.parametrize(
    "value",
    [
        True,
        3,
        2.5,
        Decimal("1.0"),
        "text",
        b"raw",
        datetime(2024, 1, 1),
        date(2024, 1, 1),
        timedelta(seconds=5),
        uuid.uuid4(),
        Level.LOW,
        Path("/tmp"),
    ],
)
def test_leaf_values_are_scalars(value: Any) -> None:
    assert classify(type(value), value) is FieldKind.SCALAR
    assert is_scalar_type(type(value))


def test_absent_value_is_scalar_even_for_node_types() -> None:
    assert classify(Leaf, None) is FieldKind.SCALAR


def test_models_and_dataclasses_are_structured() -> None:
    assert classify(Leaf, Leaf()) is FieldKind.STRUCTURED_NODE
    assert classify(Point, Point()) is FieldKind.STRUCTURED_NODE
    assert classify_type(Optional[Leaf]) is FieldKind.STRUCTURED_NODE
    assert classify_type(Annotated[Optional[Point], Required()]) is FieldKind.STRUCTURED_NODE


def test_opaque_objects_are_not_descended_into() -> None:
    assert classify(Any, Opaque()) is FieldKind.SCALAR
    assert classify_type(Opaque) is FieldKind.SCALAR


@pytest.mark.parametrize(
    ("annotation", "value"),
    [
        (List[Leaf], [Leaf()]),
        (Tuple[Leaf, ...], (Leaf(),)),
        (Dict[str, Leaf], {"a": Leaf()}),
        (List[Optional[Leaf]], [None, Leaf()]),
        (List[Union[Leaf, Point]], [Point()]),
    ],
)
def test_collections_of_nodes(annotation: Any, value: Any) -> None:
    assert classify(annotation, value) is FieldKind.SEQUENCE_OF_NODES
    assert classify_type(annotation) is FieldKind.SEQUENCE_OF_NODES


@pytest.mark.parametrize(
    ("annotation", "value"),
    [
        (List[str], ["a", "b"]),
        (Set[int], {1, 2}),
        (FrozenSet[str], frozenset({"x"})),
        (Dict[str, str], {"k": "v"}),
        (Tuple[int, str], (1, "a")),
    ],
)
def test_collections_of_scalars(annotation: Any, value: Any) -> None:
    assert classify(annotation, value) is FieldKind.SEQUENCE_OF_SCALARS
    assert classify_type(annotation) is FieldKind.SEQUENCE_OF_SCALARS


def test_empty_collection_uses_declared_element_type() -> None:
    assert classify(List[Leaf], []) is FieldKind.SEQUENCE_OF_NODES
    assert classify(List[int], []) is FieldKind.SEQUENCE_OF_SCALARS


def test_untyped_collection_falls_back_to_runtime_elements() -> None:
    assert classify(Any, [Leaf(), 3]) is FieldKind.SEQUENCE_OF_NODES
    assert classify(list, deque([1, 2])) is FieldKind.SEQUENCE_OF_SCALARS


def test_strings_are_never_collections() -> None:
    assert classify_type(str) is FieldKind.SCALAR
    assert classify(Any, "not a sequence") is FieldKind.SCALAR


def test_explicitly_registered_types_are_structured() -> None:
    registry = ConstraintRegistry()
    assert classify(Any, Opaque(), registry) is FieldKind.SCALAR

    registry.register_type(Opaque, [])

    assert classify(Any, Opaque(), registry) is FieldKind.STRUCTURED_NODE


def test_recursive_kinds() -> None:
    assert FieldKind.STRUCTURED_NODE.is_recursive
    assert FieldKind.SEQUENCE_OF_NODES.is_recursive
    assert not FieldKind.SCALAR.is_recursive
    assert not FieldKind.SEQUENCE_OF_SCALARS.is_recursive


def test_nested_collections_of_nodes() -> None:
    assert classify_type(List[List[Leaf]]) is FieldKind.SEQUENCE_OF_NODES
    assert classify_type(Dict[str, List[Point]]) is FieldKind.SEQUENCE_OF_NODES
    assert classify(Any, [[Leaf()], []]) is FieldKind.SEQUENCE_OF_NODES
    assert classify_type(List[List[int]]) is FieldKind.SEQUENCE_OF_SCALARS
