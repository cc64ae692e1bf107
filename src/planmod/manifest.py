"""YAML scenario manifests for running the reconciler outside a provider.

A manifest bundles a resource schema with one planning cycle's inputs::

    schema:
      name:
        type: string
        required: true
        modifiers: [requires_replace]
      id:
        type: string
        computed: true
        modifiers: [use_state_for_unknown]
    config: {name: web-2, id: null}
    state: {name: web-1, id: i-0abc}
    plan: {name: web-2, id: "(known after apply)"}
    private:
      etag: {"v": 3}

Values are read against the schema: ``null`` is a null value and the
string ``"(known after apply)"`` is an unknown one. ``state`` may be null
(create) and ``plan`` may be null (destroy). ``private`` is either a
mapping of provider keys to JSON values or the raw stored blob as text.

Modifiers are named by their registry key. Attributes of list or set
elements may also use ``{match_element_state_for_unknown: [name, ...]}``,
naming the sibling attributes that identify the element.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .exceptions import ManifestError, PlanmodError
from .modifiers import BUILTIN_MODIFIERS, MatchElementStateForUnknown
from .path import PathExpression
from .planmodifier import PlanModifier
from .private_state import PrivateState, ProviderData
from .schema import AttributeNode, Schema
from .values import (
    UNKNOWN_MARKER,
    Kind,
    Value,
    bool_value,
    float64_value,
    int64_value,
    list_value,
    map_value,
    null,
    number_value,
    object_value,
    set_value,
    string_value,
    unknown,
)

_FLAGS = ("required", "optional", "computed")
_NODE_KEYS = frozenset({"type", "description", "modifiers", "element", "attributes", *_FLAGS})


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


def _modifier(spec: Any, where: str) -> PlanModifier:
    if isinstance(spec, Mapping) and set(spec) == {"match_element_state_for_unknown"}:
        names = spec["match_element_state_for_unknown"]
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise ManifestError(f"{where}: match_element_state_for_unknown takes a list of sibling attribute names")
        return MatchElementStateForUnknown(
            *(PathExpression.relative_to_current().at_parent().at_name(n) for n in names)
        )
    cls = BUILTIN_MODIFIERS.get(spec) if isinstance(spec, str) else None
    if cls is None:
        known = ", ".join(sorted(BUILTIN_MODIFIERS))
        raise ManifestError(f"{where}: unknown modifier {spec!r} (expected one of: {known})")
    return cls()


def node_from_dict(d: Any, where: str) -> AttributeNode:
    """Build an AttributeNode from its manifest form."""
    if not isinstance(d, Mapping):
        raise ManifestError(f"{where}: attribute schema must be a mapping")

    unexpected = set(d) - _NODE_KEYS
    if unexpected:
        raise ManifestError(f"{where}: unexpected keys {sorted(unexpected)}")

    try:
        kind = Kind(d.get("type"))
    except ValueError:
        raise ManifestError(f"{where}: unknown type {d.get('type')!r}") from None

    modifiers = d.get("modifiers") or []
    if not isinstance(modifiers, list):
        raise ManifestError(f"{where}: 'modifiers' must be a list")

    element = None
    if "element" in d:
        element = node_from_dict(d["element"], f"{where}[*]")

    attributes = d.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise ManifestError(f"{where}: 'attributes' must be a mapping")

    return AttributeNode(
        kind=kind,
        required=bool(d.get("required", False)),
        optional=bool(d.get("optional", False)),
        computed=bool(d.get("computed", False)),
        modifiers=[_modifier(m, where) for m in modifiers],
        element=element,
        attributes={name: node_from_dict(child, f"{where}.{name}") for name, child in attributes.items()},
        description=str(d.get("description", "")),
    )


def schema_from_dict(d: Any) -> Schema:
    """Build a Schema from a mapping of top-level attribute names to nodes."""
    if not isinstance(d, Mapping) or not d:
        raise ManifestError("'schema' must be a non-empty mapping of attributes")
    return Schema({name: node_from_dict(node, name) for name, node in d.items()})


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


def value_from_python(node: AttributeNode, data: Any, where: str) -> Value:
    """Read a plain YAML/JSON value as a Value of the node's kind."""
    if data is None:
        return null(node.kind)
    if isinstance(data, str) and data == UNKNOWN_MARKER:
        return unknown(node.kind)

    kind = node.kind
    if kind == Kind.BOOL:
        if not isinstance(data, bool):
            raise ManifestError(f"{where}: expected a bool, got {data!r}")
        return bool_value(data)
    if kind == Kind.STRING:
        if not isinstance(data, str):
            raise ManifestError(f"{where}: expected a string, got {data!r}")
        return string_value(data)
    if kind == Kind.NUMBER:
        if isinstance(data, bool) or not isinstance(data, int | float | str):
            raise ManifestError(f"{where}: expected a number, got {data!r}")
        try:
            return number_value(Decimal(str(data)))
        except InvalidOperation:
            raise ManifestError(f"{where}: expected a number, got {data!r}") from None
    if kind == Kind.INT64:
        if isinstance(data, bool) or not isinstance(data, int):
            raise ManifestError(f"{where}: expected an integer, got {data!r}")
        return int64_value(data)
    if kind == Kind.FLOAT64:
        if isinstance(data, bool) or not isinstance(data, int | float):
            raise ManifestError(f"{where}: expected a float, got {data!r}")
        return float64_value(data)

    if kind in (Kind.LIST, Kind.SET):
        if not isinstance(data, list):
            raise ManifestError(f"{where}: expected a {kind.value}, got {data!r}")
        assert node.element is not None
        elements = [value_from_python(node.element, item, f"{where}[{i}]") for i, item in enumerate(data)]
        return list_value(elements) if kind == Kind.LIST else set_value(elements)

    if not isinstance(data, Mapping):
        raise ManifestError(f"{where}: expected a {kind.value}, got {data!r}")

    if kind == Kind.MAP:
        assert node.element is not None
        return map_value(
            {str(k): value_from_python(node.element, v, f'{where}["{k}"]') for k, v in data.items()}
        )

    unexpected = set(data) - set(node.attributes)
    if unexpected:
        raise ManifestError(f"{where}: undeclared attributes {sorted(unexpected)}")
    return object_value(
        {
            name: value_from_python(child, data.get(name), f"{where}.{name}" if where else name)
            for name, child in node.attributes.items()
        }
    )


def _private_from_python(data: Any) -> bytes | None:
    if data is None:
        return None
    if isinstance(data, str):
        return data.encode("utf-8")
    if not isinstance(data, Mapping):
        raise ManifestError("'private' must be a mapping of keys to JSON values or the stored blob")
    framework: dict[str, bytes] = {}
    provider: dict[str, bytes] = {}
    for key, value in data.items():
        encoded = json.dumps(value).encode("utf-8")
        if str(key).startswith("."):
            framework[str(key)] = encoded
        else:
            provider[str(key)] = encoded
    return PrivateState(framework=framework, provider=ProviderData(provider)).to_bytes()


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScenarioManifest:
    """One planning cycle: schema, the three value trees and private state."""

    schema: Schema
    config: Value
    state: Value
    plan: Value
    private: bytes | None = None

    @classmethod
    def from_dict(cls, d: Any) -> ScenarioManifest:
        if not isinstance(d, Mapping):
            raise ManifestError("Manifest must be a mapping")
        for key in ("schema", "config", "plan"):
            if key not in d:
                raise ManifestError(f"'{key}' is required in scenario manifest")

        try:
            schema = schema_from_dict(d["schema"])
            root = schema.root()
            config = value_from_python(root, d["config"], "")
            state = value_from_python(root, d.get("state"), "")
            plan = value_from_python(root, d["plan"], "")
            private = _private_from_python(d.get("private"))
        except ManifestError:
            raise
        except PlanmodError as e:
            raise ManifestError(str(e)) from e

        if config.is_null() or config.is_unknown():
            raise ManifestError("'config' must be a mapping of attribute values")
        if state.is_unknown() or plan.is_unknown():
            raise ManifestError("'state' and 'plan' cannot be unknown")

        return cls(schema=schema, config=config, state=state, plan=plan, private=private)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> ScenarioManifest:
        import yaml

        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, file_path: str) -> ScenarioManifest:
        with open(file_path) as f:
            return cls.from_yaml(f.read())

    def attribute_count(self) -> int:
        """Number of attribute nodes in the schema, nested ones included."""

        def count(node: AttributeNode) -> int:
            total = sum(1 + count(child) for child in node.attributes.values())
            if node.element is not None:
                total += count(node.element)
            return total

        return count(self.schema.root())
