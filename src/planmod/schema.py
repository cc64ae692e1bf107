"""Attribute schema consumed by the reconciler.

A ``Schema`` is an immutable tree of ``AttributeNode`` built once when a
resource type is registered. Nodes are validated on construction.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import SchemaError
from .path import Path, StepKind
from .values import COLLECTION_KINDS, SCALAR_KINDS, Kind

if TYPE_CHECKING:
    from .planmodifier import PlanModifier

ATTRIBUTE_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


@dataclass(frozen=True, eq=False)
class AttributeNode:
    """
    One node of the schema tree.

    Named attributes (object members and top-level attributes) carry
    required/optional/computed flags. Element nodes of a collection carry
    none.

    Attributes:
        kind: Attribute kind
        required: Must be set in configuration
        optional: May be set in configuration
        computed: May be set by the provider; computed-only attributes are
            always null in configuration
        modifiers: Plan modifiers, run in this order
        element: Element schema (lists, sets and maps)
        attributes: Member schemas (objects)
        description: Free-form documentation
    """

    kind: Kind
    required: bool = False
    optional: bool = False
    computed: bool = False
    modifiers: Sequence[PlanModifier] = ()
    element: AttributeNode | None = None
    attributes: Mapping[str, AttributeNode] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "modifiers", tuple(self.modifiers))
        object.__setattr__(self, "attributes", dict(self.attributes))

        where = self.kind.value
        if self.kind in COLLECTION_KINDS:
            if self.element is None:
                raise SchemaError(where, f"{self.kind.value} attribute requires an element schema")
            if self.attributes:
                raise SchemaError(where, f"{self.kind.value} attribute cannot declare attributes")
            if self.element.has_flags():
                raise SchemaError(where, "element schemas cannot be required, optional or computed")
        elif self.kind == Kind.OBJECT:
            if self.element is not None:
                raise SchemaError(where, "object attribute cannot declare an element schema")
            for name, child in self.attributes.items():
                _validate_attribute(name, child)
        elif self.kind in SCALAR_KINDS:
            if self.element is not None or self.attributes:
                raise SchemaError(where, f"{self.kind.value} attribute cannot have nested schema")

        for modifier in self.modifiers:
            if not modifier.supports(self.kind):
                raise SchemaError(
                    where,
                    f"modifier {modifier.description()!r} does not support {self.kind.value} attributes",
                )

    def has_flags(self) -> bool:
        return self.required or self.optional or self.computed

    @property
    def computed_only(self) -> bool:
        return self.computed and not self.optional and not self.required

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    @property
    def is_collection(self) -> bool:
        return self.kind in COLLECTION_KINDS

    @property
    def has_nested_schema(self) -> bool:
        """Objects, and collections whose elements can be walked into."""
        if self.kind == Kind.OBJECT:
            return True
        return self.element is not None and not self.element.is_scalar

    def reads_prior_state(self) -> bool:
        """Whether this node or anything beneath it carries prior state forward."""
        if any(m.reads_prior_state for m in self.modifiers):
            return True
        if self.element is not None and self.element.reads_prior_state():
            return True
        return any(child.reads_prior_state() for child in self.attributes.values())


def _validate_attribute(name: str, node: AttributeNode) -> None:
    if not ATTRIBUTE_NAME_PATTERN.match(name):
        raise SchemaError(name, "attribute names must be lowercase alphanumerics and underscores")
    if node.required and (node.optional or node.computed):
        raise SchemaError(name, "required attributes cannot also be optional or computed")
    if not node.has_flags():
        raise SchemaError(name, "attribute must be required, optional or computed")


@dataclass(frozen=True, eq=False)
class Schema:
    """Resource schema: the top-level attributes of a resource type."""

    attributes: Mapping[str, AttributeNode]
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", dict(self.attributes))
        for name, node in self.attributes.items():
            _validate_attribute(name, node)

    def root(self) -> AttributeNode:
        """Resource-level object node (carries no modifiers)."""
        return AttributeNode(Kind.OBJECT, attributes=self.attributes)

    def node_at(self, path: Path) -> AttributeNode | None:
        """Resolve a concrete path to its schema node, or None if it does not exist."""
        node = self.root()
        for step in path.steps:
            if step.kind == StepKind.ATTRIBUTE_NAME:
                if node.kind != Kind.OBJECT:
                    return None
                child = node.attributes.get(step.key)
                if child is None:
                    return None
                node = child
            else:
                expected = {
                    StepKind.LIST_INDEX: Kind.LIST,
                    StepKind.MAP_KEY: Kind.MAP,
                    StepKind.SET_VALUE: Kind.SET,
                }[step.kind]
                if node.kind != expected or node.element is None:
                    return None
                node = node.element
        return node
