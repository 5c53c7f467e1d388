"""Recursive validation of populated configuration trees.

The validator walks a configuration object depth-first in pre-order. At every
node it evaluates the constraints declared for each field, then descends into
structured children and into the node elements of sequences and mappings.
Every failure becomes a :class:`~nestconf.constraints.Violation`; nothing is
raised for bad values, so :func:`validate` always returns a
:class:`~nestconf.result.ValidationResult`.
"""
from __future__ import annotations

import collections.abc
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    TypeVar,
)

from loguru import logger

from nestconf.classifier import FieldKind, classify, is_collection_type
from nestconf.constraints import Violation, ViolationKind
from nestconf.registry import ConstraintRegistry, FieldSpec, default_registry
from nestconf.result import ValidationResult

DEFAULT_MAX_DEPTH = 64
ROOT_PATH = "<root>"
NULL_ROOT_MESSAGE = "root configuration is null"

_NODE = "node"
_FIELD = "field"

T = TypeVar("T")


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


class RecursiveValidator:
    """Depth-bounded pre-order walker producing an ordered violation list."""

    def __init__(
        self,
        registry: Optional[ConstraintRegistry] = None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.registry = registry or default_registry
        self.max_depth = max_depth

    def validate(self, root: Any) -> ValidationResult:
        if root is None:
            return ValidationResult.fail(
                [Violation(ROOT_PATH, NULL_ROOT_MESSAGE, ViolationKind.STRUCTURAL_ERROR)]
            )
        violations = self._walk(root)
        result = ValidationResult.from_violations(violations)
        logger.debug(
            "Validated {} tree: {} violation(s)",
            type(root).__name__,
            len(result.violations),
        )
        return result

    def collect(self, root: Any) -> List[Violation]:
        """Return the raw violation list without aggregating it."""

        return list(self.validate(root).violations)

    def _walk(self, root: Any) -> List[Violation]:
        """Pre-order traversal driven by an explicit stack.

        Each entry is either a node to enter or one field of an entered node,
        so a field's subtree is finished before the next field is checked.
        The stack keeps deep trees off the interpreter's call stack.
        """

        sink: List[Violation] = []
        stack: List[Tuple[Any, ...]] = [(_NODE, root, "", 0)]
        while stack:
            entry = stack.pop()
            if entry[0] == _NODE:
                _, node, path, depth = entry
                if depth > self.max_depth:
                    sink.append(self._too_deep(path))
                    continue
                schema = self.registry.schema_for(type(node))
                for spec in reversed(schema.fields):
                    stack.append((_FIELD, node, spec, path, depth))
                continue

            _, node, spec, path, depth = entry
            value = getattr(node, spec.name, None)
            field_path = _join(path, spec.name)
            self._check_field(spec, value, field_path, sink)
            kind = classify(spec.annotation, value, self.registry)
            if kind is FieldKind.STRUCTURED_NODE:
                children = [(field_path, value)]
            elif kind is FieldKind.SEQUENCE_OF_NODES:
                children = list(self._elements(value, field_path))
            else:
                continue
            for child_path, child in reversed(children):
                stack.append((_NODE, child, child_path, depth + 1))
        return sink

    def _too_deep(self, path: str) -> Violation:
        logger.warning("Configuration nesting exceeds {} levels at {}", self.max_depth, path)
        return Violation(
            path,
            f"maximum nesting depth exceeded at {path}",
            ViolationKind.STRUCTURAL_ERROR,
        )

    @staticmethod
    def _check_field(
        spec: FieldSpec, value: Any, field_path: str, sink: List[Violation]
    ) -> None:
        for constraint in spec.constraints:
            message = constraint.check(value, spec.name)
            if message is not None:
                sink.append(Violation(field_path, message, constraint.kind))

    def _elements(self, value: Any, field_path: str) -> Iterator[Tuple[str, Any]]:
        """Node elements of a collection, looking through nested collections."""

        if isinstance(value, collections.abc.Mapping):
            items: Iterable[Tuple[Any, Any]] = value.items()
        else:
            items = enumerate(value)
        for key, element in items:
            child_path = f"{field_path}[{key}]"
            if self.registry.is_node_type(type(element)):
                yield child_path, element
            elif is_collection_type(type(element)):
                yield from self._elements(element, child_path)


def validate(
    root: Any,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    registry: Optional[ConstraintRegistry] = None,
) -> ValidationResult:
    """Validate ``root`` and every node reachable from it."""

    return RecursiveValidator(registry, max_depth=max_depth).validate(root)


class TypedValidator(Generic[T]):
    """Validator bound to one configuration type.

    Useful for section-level checks: ``TypedValidator(ModelOptions)`` validates
    just a ``ModelOptions`` instance and rejects ``None`` with a single
    structural failure.
    """

    NULL_MESSAGE = "Configuration object cannot be null"

    def __init__(
        self,
        node_type: type[T],
        registry: Optional[ConstraintRegistry] = None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.node_type = node_type
        self._validator = RecursiveValidator(registry, max_depth=max_depth)

    def __call__(self, options: Optional[T]) -> ValidationResult:
        return self.validate(options)

    def validate(self, options: Optional[T]) -> ValidationResult:
        if options is None:
            return ValidationResult.fail(
                [Violation(ROOT_PATH, self.NULL_MESSAGE, ViolationKind.STRUCTURAL_ERROR)]
            )
        if not isinstance(options, self.node_type):
            raise TypeError(
                f"Expected {self.node_type.__name__}, got {type(options).__name__}"
            )
        return self._validator.validate(options)


def typed_validator(
    node_type: type[T], registry: Optional[ConstraintRegistry] = None
) -> Callable[[Optional[T]], ValidationResult]:
    return TypedValidator(node_type, registry)


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "NULL_ROOT_MESSAGE",
    "ROOT_PATH",
    "RecursiveValidator",
    "TypedValidator",
    "typed_validator",
    "validate",
]
