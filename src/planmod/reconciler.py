"""Plan reconciliation engine.

Given a resource schema and three parallel value trees (configuration,
prior state and proposed plan), walk the schema depth first and let each
attribute's plan modifiers refine the plan.

At every node the node's own modifier chain runs first. Objects then
recurse into their declared attributes, and collections whose elements
have nested schema recurse into every element: lists by index, maps by
key, sets through ``matcher.match_elements``. A child's result replaces
the parent's value for that slot, except that a known value is never
turned back into an unknown one.

Diagnostics and replacement paths are accumulated for the whole pass.
Provider private state is threaded linearly through every modifier call in
walk order. The walk always completes; error diagnostics are for the caller
to act on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import EngineOptions
from .diagnostics import Diagnostics
from .exceptions import PrivateStateError
from .matcher import match_elements
from .path import Path, PathExpression
from .planmodifier import PlanModifyRequest, PlanModifyResponse
from .private_state import PrivateState, ProviderData
from .replace import ReplacePaths
from .schema import AttributeNode, Schema
from .values import Kind, Value, list_value, map_value, null, object_value, set_value, unknown

logger = logging.getLogger(__name__)


@dataclass
class PlanResult:
    """
    Outcome of one reconciliation pass.

    Attributes:
        plan: Final planned value of the resource
        diagnostics: Every warning and error, deduplicated, in emission order
        requires_replace: Attributes whose change forces replacement
        private: Encoded private state to persist, None when empty
    """

    plan: Value
    diagnostics: Diagnostics
    requires_replace: ReplacePaths
    private: bytes | None

    @property
    def has_error(self) -> bool:
        return self.diagnostics.has_error()

    def as_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.to_python(),
            "requires_replace": self.requires_replace.to_list(),
            "diagnostics": self.diagnostics.to_list(),
            "private": self.private.decode("utf-8") if self.private is not None else None,
        }


def reconcile(
    schema: Schema,
    config: Value,
    state: Value,
    plan: Value,
    private: bytes | None = None,
    options: EngineOptions | None = None,
) -> PlanResult:
    """
    Run every plan modifier of a resource once.

    Args:
        schema: Resource schema
        config: Configuration; never unknown
        state: Prior state; null when the resource is being created
        plan: Proposed plan; null when the resource is being destroyed
        private: Private state returned by the previous cycle
        options: Engine options (defaults to EngineOptions())

    Returns:
        PlanResult with the refined plan and everything accumulated

    Raises:
        TypeError: If a value tree is not an object
        PrivateStateError: If the private state blob cannot be decoded
    """
    for label, value in (("config", config), ("state", state), ("plan", plan)):
        if value.kind != Kind.OBJECT:
            raise TypeError(f"{label} must be an object value, got {value.kind.value}")

    options = options or EngineOptions()
    private_state = PrivateState.from_bytes(private)
    diagnostics = Diagnostics()
    requires_replace = ReplacePaths()

    if plan.is_null():
        logger.debug("Resource is being destroyed, skipping plan modification")
        return PlanResult(plan, diagnostics, requires_replace, private_state.to_bytes())

    walker = _Reconciler(
        config=config,
        state=state,
        plan=plan,
        private=private_state.provider,
        options=options,
        diagnostics=diagnostics,
        requires_replace=requires_replace,
    )
    final_plan = walker.members(schema.root(), Path(), PathExpression(), config, plan, state)
    private_state.provider = walker.private

    logger.debug(
        "Reconciled plan: %d diagnostic(s), %d replacement path(s)",
        len(diagnostics),
        len(requires_replace),
    )
    return PlanResult(final_plan, diagnostics, requires_replace, private_state.to_bytes())


class _Reconciler:
    """Single depth-first pass over one resource."""

    def __init__(
        self,
        config: Value,
        state: Value,
        plan: Value,
        private: ProviderData,
        options: EngineOptions,
        diagnostics: Diagnostics,
        requires_replace: ReplacePaths,
    ) -> None:
        self.config = config
        self.state = state
        self.plan = plan
        self.private = private
        self.options = options
        self.diagnostics = diagnostics
        self.requires_replace = requires_replace

    def attribute(
        self,
        node: AttributeNode,
        path: Path,
        expression: PathExpression,
        config_value: Value,
        plan_value: Value,
        state_value: Value,
    ) -> Value:
        if node.kind == Kind.OBJECT:
            walk = self._object
        elif node.is_collection:
            walk = self._collection
        else:
            walk = self._chain
        return walk(node, path, expression, config_value, plan_value, state_value)

    # -- modifier chain -----------------------------------------------------

    def _chain(
        self,
        node: AttributeNode,
        path: Path,
        expression: PathExpression,
        config_value: Value,
        plan_value: Value,
        state_value: Value,
    ) -> Value:
        current = plan_value
        requires_replace = False

        for modifier in node.modifiers:
            description = modifier.description()
            request = PlanModifyRequest(
                path=path,
                path_expression=expression,
                config_value=config_value,
                plan_value=current,
                state_value=state_value,
                config=self.config,
                plan=self.plan,
                state=self.state,
                private=ProviderData(self.private.as_dict()),
            )
            response = PlanModifyResponse(
                plan_value=current,
                private=self.private,
                requires_replace=requires_replace,
            )

            logger.debug("Calling plan modifier %r at %s", description, path)
            try:
                modifier.plan_modify(request, response)
            except PrivateStateError as e:
                response.diagnostics.add_attribute_error(path, "Private State Error", str(e))
            logger.debug("Called plan modifier %r at %s", description, path)

            current = self._accept(node, path, description, current, response.plan_value)
            requires_replace = response.requires_replace
            if response.private is not None:
                self.private = response.private
            self.diagnostics.extend(response.diagnostics)

            if response.diagnostics.has_error() and self.options.stop_chain_on_error:
                logger.debug("Plan modifier %r reported an error at %s, ending chain", description, path)
                break

        if requires_replace:
            self.requires_replace.add(path)
        return current

    def _accept(
        self,
        node: AttributeNode,
        path: Path,
        description: str,
        current: Value,
        proposed: Value,
    ) -> Value:
        if not isinstance(proposed, Value) or proposed.kind != node.kind:
            got = proposed.kind.value if isinstance(proposed, Value) else type(proposed).__name__
            self.diagnostics.add_attribute_error(
                path,
                "Invalid Plan Value Kind",
                f"Plan modifier {description!r} returned a {got} value for a "
                f"{node.kind.value} attribute. The value was discarded. "
                "This is always an issue with the provider and should be reported "
                "to the provider developers.",
            )
            return current
        if proposed.is_unknown() and not current.is_unknown():
            logger.warning(
                "Plan modifier %r tried to turn the known value at %s unknown; keeping it",
                description,
                path,
            )
            return current
        return proposed

    # -- nested objects -----------------------------------------------------

    def _object(
        self,
        node: AttributeNode,
        path: Path,
        expression: PathExpression,
        config_value: Value,
        plan_value: Value,
        state_value: Value,
    ) -> Value:
        planned = self._chain(node, path, expression, config_value, plan_value, state_value)
        # Null and unknown objects have no members to walk into
        if not planned.is_known():
            return planned
        return self.members(node, path, expression, config_value, planned, state_value)

    def members(
        self,
        node: AttributeNode,
        path: Path,
        expression: PathExpression,
        config_value: Value,
        plan_value: Value,
        state_value: Value,
    ) -> Value:
        attributes = plan_value.items()
        for name, child in node.attributes.items():
            planned = attributes.get(name, null(child.kind))
            result = self.attribute(
                child,
                path.at_name(name),
                expression.at_name(name),
                _member(config_value, name, child),
                planned,
                _member(state_value, name, child),
            )
            attributes[name] = _prefer_known(planned, result)
        return object_value(attributes)

    # -- collections --------------------------------------------------------

    def _collection(
        self,
        node: AttributeNode,
        path: Path,
        expression: PathExpression,
        config_value: Value,
        plan_value: Value,
        state_value: Value,
    ) -> Value:
        planned = self._chain(node, path, expression, config_value, plan_value, state_value)
        if not planned.is_known() or not node.has_nested_schema:
            return planned

        element = node.element
        assert element is not None

        if node.kind == Kind.MAP:
            entries = planned.items()
            for key, entry in entries.items():
                result = self.attribute(
                    element,
                    path.at_map_key(key),
                    expression.at_any_map_key(),
                    _entry(config_value, key, element),
                    entry,
                    _entry(state_value, key, element),
                )
                entries[key] = _prefer_known(entry, result)
            return map_value(entries)

        if node.kind == Kind.LIST:
            elements = planned.elements()
            for index, item in enumerate(elements):
                result = self.attribute(
                    element,
                    path.at_list_index(index),
                    expression.at_any_list_index(),
                    _index(config_value, index, element),
                    item,
                    _index(state_value, index, element),
                )
                elements[index] = _prefer_known(item, result)
            return list_value(elements)

        return self._set(element, path, expression, config_value, planned, state_value)

    def _set(
        self,
        element: AttributeNode,
        path: Path,
        expression: PathExpression,
        config_value: Value,
        planned: Value,
        state_value: Value,
    ) -> Value:
        elements = planned.elements()
        from_state = match_elements(element, elements, state_value.elements())
        from_config = match_elements(element, elements, config_value.elements())
        warn = self.options.warn_on_ambiguous_match and element.reads_prior_state()

        reconciled: list[Value] = []
        for item, state_match, config_match in zip(elements, from_state, from_config, strict=True):
            element_path = path.at_set_value(item)

            if state_match.ambiguous:
                logger.debug("No unique prior state element for %s", element_path)
                if warn:
                    self.diagnostics.add_attribute_warning(
                        element_path,
                        "Ambiguous Set Element Match",
                        "The prior state of this set element could not be identified with certainty "
                        "from its configurable attributes, or the number of elements changed. "
                        "Values carried forward from prior state in this plan may not reflect the "
                        "values after apply; the real values are determined when the change is applied.",
                    )

            if config_value.is_unknown():
                config_element = unknown(element.kind)
            else:
                config_element = config_match.prior_value

            result = self.attribute(
                element,
                element_path,
                expression.at_any_set_value(),
                config_element,
                item,
                state_match.prior_value,
            )
            reconciled.append(_prefer_known(item, result))
        return set_value(reconciled)


def _prefer_known(default: Value, resolved: Value) -> Value:
    """The child's result wins unless it would make a known slot unknown."""
    if resolved.is_unknown() and not default.is_unknown():
        return default
    return resolved


def _member(value: Value, name: str, node: AttributeNode) -> Value:
    if value.is_unknown():
        return unknown(node.kind)
    member = value.attribute(name)
    return member if member is not None else null(node.kind)


def _index(value: Value, index: int, node: AttributeNode) -> Value:
    if value.is_unknown():
        return unknown(node.kind)
    elements = value.elements()
    return elements[index] if index < len(elements) else null(node.kind)


def _entry(value: Value, key: str, node: AttributeNode) -> Value:
    if value.is_unknown():
        return unknown(node.kind)
    return value.items().get(key, null(node.kind))
