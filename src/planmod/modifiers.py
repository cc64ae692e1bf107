"""Built-in plan modifiers.

All built-ins support every attribute kind. Argument-free built-ins are
registered by name in ``BUILTIN_MODIFIERS``.
"""

from __future__ import annotations

from collections.abc import Callable

from .path import Path, PathExpression, StepKind
from .planmodifier import PlanModifier, PlanModifyRequest, PlanModifyResponse
from .values import Kind, Value

Predicate = Callable[[PlanModifyRequest], bool]


def _within_collection_element(request: PlanModifyRequest) -> bool:
    return any(step.kind != StepKind.ATTRIBUTE_NAME for step in request.path.steps)


# ---------------------------------------------------------------------------
# Carry prior state forward
# ---------------------------------------------------------------------------


class UseStateForUnknown(PlanModifier):
    """
    Plan the prior state value whenever the planned value is unknown.

    Nothing happens when the resource is being created, when the plan is
    already known, or when the configuration itself is unknown. Inside
    collection elements a null prior value means the element has no prior
    counterpart, so it is not carried either.
    """

    reads_prior_state = True

    def description(self) -> str:
        return "Once set, the value of this attribute in state will not change."

    def should_use_state(self, request: PlanModifyRequest) -> bool:
        return True

    def plan_modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        # Resource is being created
        if request.state.is_null():
            return
        if not request.plan_value.is_unknown():
            return
        if request.config_value.is_unknown():
            return
        if request.state_value.is_null() and _within_collection_element(request):
            return
        if not self.should_use_state(request):
            return
        response.plan_value = request.state_value


class UseNonNullStateForUnknown(UseStateForUnknown):
    """Like UseStateForUnknown, but a null prior value is never carried."""

    def description(self) -> str:
        return "Once set to a non-null value, the value of this attribute in state will not change."

    def should_use_state(self, request: PlanModifyRequest) -> bool:
        return not request.state_value.is_null()


class UseStateForUnknownIf(UseStateForUnknown):
    """Like UseStateForUnknown, gated by a provider-supplied predicate."""

    def __init__(self, predicate: Predicate, description: str) -> None:
        self._predicate = predicate
        self._description = description

    def description(self) -> str:
        return self._description

    def should_use_state(self, request: PlanModifyRequest) -> bool:
        return self._predicate(request)


def _value_at(root: Value, path: Path) -> Value | None:
    """Value at a concrete path, or None when the path does not exist in root."""
    current: Value | None = root
    for step in path.steps:
        if current is None or not current.is_known():
            return None
        if step.kind == StepKind.ATTRIBUTE_NAME:
            if current.kind != Kind.OBJECT:
                return None
            current = current.attribute(step.key)
        elif step.kind == StepKind.LIST_INDEX:
            if current.kind != Kind.LIST:
                return None
            elements = current.elements()
            current = elements[step.key] if 0 <= step.key < len(elements) else None
        elif step.kind == StepKind.MAP_KEY:
            if current.kind != Kind.MAP:
                return None
            current = current.items().get(step.key)
        elif step.kind == StepKind.SET_VALUE:
            if current.kind != Kind.SET:
                return None
            current = next((e for e in current.elements() if e.equal(step.key)), None)
        else:
            return None
    return current


_EXPRESSION_EXAMPLE = (
    "For example:\n\n"
    "MatchElementStateForUnknown(\n"
    '    PathExpression.relative_to_current().at_parent().at_name("another_element_attribute"),\n'
    ")\n\n"
    "This is always an issue with the provider and should be reported to the provider developers.\n\n"
)


class MatchElementStateForUnknown(PlanModifier):
    """
    Plan the prior state value of the same element of a list or set.

    Meant for computed attributes of nested objects under a list or set.
    The element's prior counterpart is the prior state element that agrees
    on every identifying sibling attribute, each named by a relative
    expression such as
    ``PathExpression.relative_to_current().at_parent().at_name("name")``.

    Nothing happens while any identifying value is unknown, when the plan
    is already known, when the configuration is unknown, or when no prior
    element matches.
    """

    reads_prior_state = True

    def __init__(self, *expressions: PathExpression) -> None:
        self.expressions = expressions

    def description(self) -> str:
        return "Once set, the value of this attribute in state will not change."

    def plan_modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        path = request.path
        element_step = path.parent().last_step()
        if element_step is None or element_step.kind not in (StepKind.LIST_INDEX, StepKind.SET_VALUE):
            response.diagnostics.add_attribute_error(
                path,
                "Invalid Attribute Schema",
                "The MatchElementStateForUnknown() plan modifier only applies to nested object "
                "attributes under a list or set. Use UseStateForUnknown() instead. This is always "
                "an issue with the provider and should be reported to the provider developers.\n\n"
                f"Path: {path}",
            )
            return

        if not self.expressions:
            response.diagnostics.add_attribute_error(
                path,
                "Invalid Attribute Schema",
                "The MatchElementStateForUnknown() plan modifier has no path expressions. At least "
                "one is needed to find the matching prior state element. " + _EXPRESSION_EXAMPLE + f"Path: {path}",
            )
            return

        for expression in self.expressions:
            if expression.is_root():
                response.diagnostics.add_attribute_error(
                    path,
                    "Invalid Attribute Schema",
                    "The MatchElementStateForUnknown() plan modifier was given a root path expression. "
                    "Expressions must be relative and name an attribute of the same nested object. "
                    + _EXPRESSION_EXAMPLE
                    + f"Path: {path}\nGiven Expression: {expression}",
                )
            elif not _is_sibling_expression(expression):
                self._invalid_expression(response, path, expression)
        if response.diagnostics.has_error():
            return

        identifying: dict[str, Value] = {}
        for expression in self.expressions:
            merged = path.expression().merge(expression)
            if merged.matches(path):
                self._invalid_expression(response, path, merged)
                continue
            target = Path(merged.resolve().steps)
            value = _value_at(request.plan, target)
            if value is None:
                self._invalid_expression(response, path, merged)
                continue
            identifying[target.last_step().key] = value
        if response.diagnostics.has_error():
            return

        if any(value.is_unknown() for value in identifying.values()):
            return
        if not request.plan_value.is_unknown():
            return
        if request.config_value.is_unknown():
            return

        collection = _value_at(request.state, path.parent().parent())
        if collection is None or collection.kind not in (Kind.LIST, Kind.SET):
            return

        for prior in collection.elements():
            if prior.kind != Kind.OBJECT or not prior.is_known():
                continue
            if all(_agrees(prior.attribute(name), value) for name, value in identifying.items()):
                prior_value = prior.attribute(path.last_step().key)
                if prior_value is not None and not prior_value.is_null():
                    response.plan_value = prior_value
                return

    def _invalid_expression(self, response: PlanModifyResponse, path: Path, expression: PathExpression) -> None:
        response.diagnostics.add_attribute_error(
            path,
            "Invalid Attribute Schema",
            "The MatchElementStateForUnknown() plan modifier was given an invalid path expression. "
            "Expressions must be relative and name a different, identifying and configurable "
            "attribute of the same nested object. "
            + _EXPRESSION_EXAMPLE
            + f"Path: {path}\nGiven Expression: {expression}",
        )

    def __repr__(self) -> str:
        return f"MatchElementStateForUnknown({', '.join(str(e) for e in self.expressions)})"


def _is_sibling_expression(expression: PathExpression) -> bool:
    steps = expression.steps
    return (
        len(steps) == 2
        and steps[0].kind == StepKind.PARENT
        and steps[1].kind == StepKind.ATTRIBUTE_NAME
    )


def _agrees(prior: Value | None, value: Value) -> bool:
    # Attributes added to the schema after the prior state was written are absent
    return prior is not None and prior.equal(value)


# ---------------------------------------------------------------------------
# Replacement
# ---------------------------------------------------------------------------


class RequiresReplace(PlanModifier):
    """
    Mark the attribute as requiring replacement whenever its value changes.

    Creation and destruction never require replacement.
    """

    def description(self) -> str:
        return "If the value of this attribute changes, the resource will be replaced."

    def should_replace(self, request: PlanModifyRequest) -> bool:
        return True

    def plan_modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        # Resource is being created
        if request.state.is_null():
            return
        # Resource is being destroyed
        if request.plan.is_null():
            return
        if request.plan_value.equal(request.state_value):
            return
        if not self.should_replace(request):
            return
        response.requires_replace = True


class RequiresReplaceIfConfigured(RequiresReplace):
    """Like RequiresReplace, but only while the attribute is configured."""

    def description(self) -> str:
        return (
            "If the value of this attribute is configured and changes, "
            "the resource will be replaced."
        )

    def should_replace(self, request: PlanModifyRequest) -> bool:
        return not request.config_value.is_null()


class RequiresReplaceIf(RequiresReplace):
    """Like RequiresReplace, gated by a provider-supplied predicate."""

    def __init__(self, predicate: Predicate, description: str) -> None:
        self._predicate = predicate
        self._description = description

    def description(self) -> str:
        return self._description

    def should_replace(self, request: PlanModifyRequest) -> bool:
        return self._predicate(request)


BUILTIN_MODIFIERS: dict[str, type[PlanModifier]] = {
    "use_state_for_unknown": UseStateForUnknown,
    "use_non_null_state_for_unknown": UseNonNullStateForUnknown,
    "requires_replace": RequiresReplace,
    "requires_replace_if_configured": RequiresReplaceIfConfigured,
}
"""Argument-free built-ins addressable by name from manifests."""
