"""Pytest fixtures for planmod tests."""

import pytest

from planmod import (
    AttributeNode,
    Kind,
    RequiresReplace,
    Schema,
    UseStateForUnknown,
)


@pytest.fixture
def replace_schema() -> Schema:
    """Single required string attribute that forces replacement when changed."""
    return Schema(
        {
            "name": AttributeNode(Kind.STRING, required=True, modifiers=[RequiresReplace()]),
        }
    )


@pytest.fixture
def computed_list_schema() -> Schema:
    """Computed-only list of objects whose computed member keeps its prior value."""
    return Schema(
        {
            "items": AttributeNode(
                Kind.LIST,
                computed=True,
                element=AttributeNode(
                    Kind.OBJECT,
                    attributes={
                        "computed": AttributeNode(
                            Kind.STRING, computed=True, modifiers=[UseStateForUnknown()]
                        ),
                        "required": AttributeNode(Kind.STRING, required=True),
                    },
                ),
            ),
        }
    )


@pytest.fixture
def rule_element() -> AttributeNode:
    """Set element identified by name and port, with a provider-assigned id."""
    return AttributeNode(
        Kind.OBJECT,
        attributes={
            "name": AttributeNode(Kind.STRING, required=True),
            "port": AttributeNode(Kind.INT64, optional=True),
            "id": AttributeNode(Kind.STRING, computed=True, modifiers=[UseStateForUnknown()]),
        },
    )


@pytest.fixture
def rules_schema(rule_element: AttributeNode) -> Schema:
    """Resource with one set of rule objects."""
    return Schema({"rules": AttributeNode(Kind.SET, required=True, element=rule_element)})
