"""
planmod: Plan modification engine for declarative infrastructure providers.

Given a resource schema and the configuration, prior state and proposed
plan of one resource instance, planmod runs every attribute's plan
modifiers exactly once and returns:
- The refined plan
- Deduplicated warnings and errors
- The attribute paths whose change forces the resource to be replaced
- The provider's private state, as threaded through every modifier

Example:
    from planmod import (
        AttributeNode, Kind, RequiresReplace, Schema, UseStateForUnknown,
        null, object_value, reconcile, string_value, unknown,
    )

    schema = Schema({
        "name": AttributeNode(Kind.STRING, required=True, modifiers=[RequiresReplace()]),
        "id": AttributeNode(Kind.STRING, computed=True, modifiers=[UseStateForUnknown()]),
    })
    result = reconcile(
        schema,
        config=object_value({"name": string_value("web-2"), "id": null(Kind.STRING)}),
        state=object_value({"name": string_value("web-1"), "id": string_value("i-0abc")}),
        plan=object_value({"name": string_value("web-2"), "id": unknown(Kind.STRING)}),
    )
    result.requires_replace.to_list()  # ["name"]
"""

from importlib.metadata import PackageNotFoundError, version

from .config import EngineOptions
from .diagnostics import Diagnostic, Diagnostics, Severity
from .exceptions import (
    InvalidValueError,
    ManifestError,
    PlanmodError,
    PrivateStateDecodeError,
    PrivateStateError,
    RestrictedKeyError,
    SchemaError,
)
from .manifest import ScenarioManifest
from .matcher import ElementMatch, match_elements
from .modifiers import (
    MatchElementStateForUnknown,
    RequiresReplace,
    RequiresReplaceIf,
    RequiresReplaceIfConfigured,
    UseNonNullStateForUnknown,
    UseStateForUnknown,
    UseStateForUnknownIf,
)
from .path import Path, PathExpression
from .planmodifier import (
    FuncModifier,
    PlanModifier,
    PlanModifyRequest,
    PlanModifyResponse,
    plan_modifier,
)
from .private_state import PrivateState, ProviderData
from .reconciler import PlanResult, reconcile
from .replace import ReplacePaths
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

try:
    __version__ = version("planmod")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Engine
    "reconcile",
    "PlanResult",
    "EngineOptions",
    # Schema
    "AttributeNode",
    "Schema",
    # Values
    "Kind",
    "Value",
    "UNKNOWN_MARKER",
    "null",
    "unknown",
    "bool_value",
    "string_value",
    "number_value",
    "int64_value",
    "float64_value",
    "list_value",
    "set_value",
    "map_value",
    "object_value",
    # Paths
    "Path",
    "PathExpression",
    # Modifiers
    "PlanModifier",
    "PlanModifyRequest",
    "PlanModifyResponse",
    "FuncModifier",
    "plan_modifier",
    "UseStateForUnknown",
    "UseNonNullStateForUnknown",
    "UseStateForUnknownIf",
    "MatchElementStateForUnknown",
    "RequiresReplace",
    "RequiresReplaceIf",
    "RequiresReplaceIfConfigured",
    # Set matching
    "ElementMatch",
    "match_elements",
    # Results
    "Diagnostic",
    "Diagnostics",
    "Severity",
    "ReplacePaths",
    # Private state
    "PrivateState",
    "ProviderData",
    # Manifests
    "ScenarioManifest",
    # Exceptions
    "PlanmodError",
    "SchemaError",
    "ManifestError",
    "PrivateStateError",
    "RestrictedKeyError",
    "InvalidValueError",
    "PrivateStateDecodeError",
]
