"""Decide whether a configuration field is a leaf or something to descend into."""
from __future__ import annotations

import collections
import collections.abc
import types
import typing
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from pathlib import PurePath
from typing import Any, Optional
from uuid import UUID

from nestconf.registry import ConstraintRegistry, default_registry, split_annotation

SCALAR_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    Decimal,
    Fraction,
    str,
    bytes,
    bytearray,
    date,
    datetime,
    time,
    timedelta,
    UUID,
    Enum,
    PurePath,
)

_TEXT_TYPES = (str, bytes, bytearray)


class FieldKind(str, Enum):
    """How the validator treats a field value."""

    SCALAR = "scalar"
    STRUCTURED_NODE = "structured_node"
    SEQUENCE_OF_NODES = "sequence_of_nodes"
    SEQUENCE_OF_SCALARS = "sequence_of_scalars"

    @property
    def is_recursive(self) -> bool:
        return self in (FieldKind.STRUCTURED_NODE, FieldKind.SEQUENCE_OF_NODES)


def is_scalar_type(candidate: Any) -> bool:
    return isinstance(candidate, type) and issubclass(candidate, SCALAR_TYPES)


def is_collection_type(candidate: Any) -> bool:
    if not isinstance(candidate, type) or issubclass(candidate, _TEXT_TYPES):
        return False
    return issubclass(
        candidate,
        (
            collections.abc.Sequence,
            collections.abc.Set,
            collections.abc.Mapping,
            collections.deque,
        ),
    )


def _is_mapping_type(candidate: Any) -> bool:
    return isinstance(candidate, type) and issubclass(candidate, collections.abc.Mapping)


def _declared_element_types(annotation: Any) -> tuple[Any, ...]:
    """Element types named by ``List[X]``, ``Tuple[X, ...]``, ``Dict[K, X]``."""

    origin = typing.get_origin(annotation)
    args = [arg for arg in typing.get_args(annotation) if arg is not Ellipsis]
    if not args:
        return ()
    if _is_mapping_type(origin):
        args = args[1:]
    elements: list[Any] = []
    for arg in args:
        bare, _, _ = split_annotation(arg)
        if typing.get_origin(bare) in (typing.Union, types.UnionType):
            elements.extend(split_annotation(member)[0] for member in typing.get_args(bare))
        else:
            elements.append(bare)
    return tuple(elements)


def _declares_nodes(annotation: Any, registry: ConstraintRegistry) -> bool:
    """True when the declared element types hold nodes, at any collection depth."""

    for element in _declared_element_types(annotation):
        if registry.is_node_type(element):
            return True
        if is_collection_type(typing.get_origin(element) or element) and _declares_nodes(
            element, registry
        ):
            return True
    return False


def _holds_nodes(value: Any, registry: ConstraintRegistry) -> bool:
    """True when a collection value holds nodes, directly or in nested collections."""

    items = value.values() if isinstance(value, collections.abc.Mapping) else value
    for item in items:
        if registry.is_node_type(type(item)):
            return True
        if is_collection_type(type(item)) and _holds_nodes(item, registry):
            return True
    return False


def classify_type(
    annotation: Any, registry: Optional[ConstraintRegistry] = None
) -> FieldKind:
    """Classify a field from its declared type alone."""

    registry = registry or default_registry
    bare, _, _ = split_annotation(annotation)
    origin = typing.get_origin(bare) or bare
    if bare is Any or bare is None or is_scalar_type(origin):
        return FieldKind.SCALAR
    if is_collection_type(origin):
        if _declares_nodes(bare, registry):
            return FieldKind.SEQUENCE_OF_NODES
        return FieldKind.SEQUENCE_OF_SCALARS
    if registry.is_node_type(origin):
        return FieldKind.STRUCTURED_NODE
    return FieldKind.SCALAR


def classify(
    annotation: Any,
    value: Any,
    registry: Optional[ConstraintRegistry] = None,
) -> FieldKind:
    """Classify a bound field value, refining the declared type with its runtime type.

    Collections nested inside collections (``List[List[Node]]``) count as
    sequences of nodes when any level holds a node.
    """

    registry = registry or default_registry
    if value is None:
        return FieldKind.SCALAR
    runtime = type(value)
    if is_scalar_type(runtime):
        return FieldKind.SCALAR
    if registry.is_node_type(runtime):
        return FieldKind.STRUCTURED_NODE
    if is_collection_type(runtime):
        if _declares_nodes(split_annotation(annotation)[0], registry) or _holds_nodes(
            value, registry
        ):
            return FieldKind.SEQUENCE_OF_NODES
        return FieldKind.SEQUENCE_OF_SCALARS
    return FieldKind.SCALAR



__all__ = [
    "FieldKind",
    "SCALAR_TYPES",
    "classify",
    "classify_type",
    "is_collection_type",
    "is_scalar_type",
]
