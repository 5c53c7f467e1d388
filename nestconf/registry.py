"""Static field and constraint metadata for configuration types.

Each configuration class is described once by a :class:`NodeSchema`: the
ordered list of its declared fields, the declared type of each field and the
constraints attached to it. Schemas are derived from pydantic model fields or
dataclass fields carrying ``typing.Annotated`` constraint markers, may be
supplied by the class itself through ``__config_schema__``, and can be
extended after the fact with :meth:`ConstraintRegistry.add_constraints`.
"""
from __future__ import annotations

import dataclasses
import threading
import types
import typing
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import annotated_types
from pydantic import BaseModel

from nestconf.constraints import Constraint, Length, Pattern, Range, SchemaError

SCHEMA_HOOK = "__config_schema__"


@dataclass(frozen=True)
class FieldSpec:
    """Declared type and constraints of one configuration field."""

    name: str
    annotation: Any = Any
    constraints: Tuple[Constraint, ...] = ()
    description: str = ""

    def with_constraints(self, extra: Iterable[Constraint]) -> "FieldSpec":
        return dataclasses.replace(self, constraints=self.constraints + tuple(extra))


@dataclass(frozen=True)
class NodeSchema:
    """Ordered field list for a configuration type."""

    node_type: type
    fields: Tuple[FieldSpec, ...]

    def field_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def get(self, name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None


def split_annotation(annotation: Any) -> Tuple[Any, Tuple[Constraint, ...], bool]:
    """Strip ``Annotated`` and ``Optional`` wrappers from a declared type.

    Returns the bare type, the constraint markers found along the way and
    whether ``None`` was an accepted value.
    """

    constraints: List[Constraint] = []
    optional = False
    current = annotation
    while True:
        origin = typing.get_origin(current)
        if origin is typing.Annotated:
            args = typing.get_args(current)
            current = args[0]
            constraints.extend(_constraints_from_metadata(args[1:]))
            continue
        if origin in (Union, types.UnionType):
            members = [arg for arg in typing.get_args(current) if arg is not type(None)]
            if len(members) < len(typing.get_args(current)):
                optional = True
            if len(members) == 1:
                current = members[0]
                continue
        break
    return current, tuple(constraints), optional


def _range_from_bounds(
    ge: Any = None, gt: Any = None, le: Any = None, lt: Any = None
) -> Optional[Range]:
    minimum, exclusive_minimum = (gt, True) if gt is not None else (ge, False)
    maximum, exclusive_maximum = (lt, True) if lt is not None else (le, False)
    if minimum is None and maximum is None:
        return None
    return Range(
        minimum,
        maximum,
        exclusive_minimum=exclusive_minimum,
        exclusive_maximum=exclusive_maximum,
    )


def _constraints_from_metadata(metadata: Iterable[Any]) -> List[Constraint]:
    """Collect constraint markers, translating annotated-types bounds.

    pydantic's ``pattern`` matches anywhere in the string, so it becomes a
    searching :class:`Pattern`.
    """

    found: List[Optional[Constraint]] = []
    for item in metadata:
        if isinstance(item, Constraint):
            found.append(item)
        elif isinstance(item, annotated_types.Interval):
            found.append(_range_from_bounds(item.ge, item.gt, item.le, item.lt))
        elif isinstance(item, annotated_types.Ge):
            found.append(_range_from_bounds(ge=item.ge))
        elif isinstance(item, annotated_types.Gt):
            found.append(_range_from_bounds(gt=item.gt))
        elif isinstance(item, annotated_types.Le):
            found.append(_range_from_bounds(le=item.le))
        elif isinstance(item, annotated_types.Lt):
            found.append(_range_from_bounds(lt=item.lt))
        elif isinstance(item, annotated_types.Len):
            found.append(Length(item.min_length, item.max_length))
        elif isinstance(item, annotated_types.MinLen):
            found.append(Length(minimum=item.min_length))
        elif isinstance(item, annotated_types.MaxLen):
            found.append(Length(maximum=item.max_length))
        elif isinstance(getattr(item, "pattern", None), str):
            found.append(Pattern(item.pattern, search=True))
    return [constraint for constraint in found if constraint is not None]


def _pydantic_fields(model: type[BaseModel]) -> Tuple[FieldSpec, ...]:
    specs: List[FieldSpec] = []
    for name, info in model.model_fields.items():
        annotation, nested, _ = split_annotation(info.annotation)
        constraints = _constraints_from_metadata(info.metadata) + list(nested)
        specs.append(
            FieldSpec(
                name=name,
                annotation=annotation,
                constraints=tuple(constraints),
                description=info.description or "",
            )
        )
    return tuple(specs)


def _dataclass_fields(cls: type) -> Tuple[FieldSpec, ...]:
    try:
        hints = typing.get_type_hints(cls, include_extras=True)
    except NameError as exc:
        raise SchemaError(f"Cannot resolve annotations of {cls.__qualname__}: {exc}") from exc
    specs: List[FieldSpec] = []
    for item in dataclasses.fields(cls):
        annotation, constraints, _ = split_annotation(hints.get(item.name, Any))
        extra = tuple(item.metadata.get("constraints", ()))
        specs.append(
            FieldSpec(
                name=item.name,
                annotation=annotation,
                constraints=constraints + extra,
                description=str(item.metadata.get("description", "")),
            )
        )
    return tuple(specs)


class ConstraintRegistry:
    """Answers "which fields does this type declare and what applies to them"."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._schemas: Dict[type, NodeSchema] = {}
        self._explicit: Dict[type, Tuple[FieldSpec, ...]] = {}
        self._extra: Dict[type, Dict[str, List[Constraint]]] = {}

    def is_node_type(self, candidate: Any) -> bool:
        """Return ``True`` when field metadata can be enumerated for ``candidate``."""

        if not isinstance(candidate, type):
            return False
        if candidate in self._explicit or hasattr(candidate, SCHEMA_HOOK):
            return True
        if issubclass(candidate, BaseModel):
            return candidate is not BaseModel
        return dataclasses.is_dataclass(candidate)

    def register_type(self, node_type: type, fields: Iterable[FieldSpec]) -> None:
        """Declare the field list of a type that is neither a model nor a dataclass."""

        with self._lock:
            self._explicit[node_type] = tuple(fields)
            self._schemas.pop(node_type, None)

    def add_constraints(
        self, node_type: type, field_name: str, *constraints: Constraint
    ) -> None:
        """Attach additional constraints to an already declared field."""

        schema = self.schema_for(node_type)
        if schema.get(field_name) is None:
            raise SchemaError(
                f"{node_type.__qualname__} declares no field named {field_name!r}"
            )
        with self._lock:
            self._extra.setdefault(node_type, {}).setdefault(field_name, []).extend(
                constraints
            )
            self._schemas.pop(node_type, None)

    def schema_for(self, node_type: type) -> NodeSchema:
        schema = self._schemas.get(node_type)
        if schema is not None:
            return schema
        with self._lock:
            schema = self._schemas.get(node_type)
            if schema is None:
                schema = self._build(node_type)
                self._schemas[node_type] = schema
        return schema

    def constraints_for(self, node_type: type, field_name: str) -> Tuple[Constraint, ...]:
        spec = self.schema_for(node_type).get(field_name)
        return spec.constraints if spec else ()

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()
            self._explicit.clear()
            self._extra.clear()

    def _build(self, node_type: type) -> NodeSchema:
        if node_type in self._explicit:
            fields = self._explicit[node_type]
        elif hasattr(node_type, SCHEMA_HOOK):
            fields = tuple(getattr(node_type, SCHEMA_HOOK)())
        elif isinstance(node_type, type) and issubclass(node_type, BaseModel):
            fields = _pydantic_fields(node_type)
        elif dataclasses.is_dataclass(node_type):
            fields = _dataclass_fields(node_type)
        else:
            raise SchemaError(f"{node_type!r} is not a configuration type")
        extra = self._extra.get(node_type, {})
        if extra:
            fields = tuple(
                spec.with_constraints(extra.get(spec.name, ())) for spec in fields
            )
        return NodeSchema(node_type=node_type, fields=fields)


default_registry = ConstraintRegistry()


__all__ = [
    "ConstraintRegistry",
    "FieldSpec",
    "NodeSchema",
    "default_registry",
    "split_annotation",
]
