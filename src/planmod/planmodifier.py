"""Plan modifier protocol.

A plan modifier is attached to one attribute and may adjust its planned
value, mark the attribute as requiring resource replacement, emit
diagnostics, or read and write provider private state.

Modifiers on one attribute run in declaration order. Each one sees the
previous modifier's planned value in ``request.plan_value``.

Example:
    class Lowercase(PlanModifier):
        kinds = frozenset({Kind.STRING})

        def description(self) -> str:
            return "Plans the configured value in lower case."

        def plan_modify(self, request, response):
            if request.plan_value.is_known():
                response.plan_value = string_value(request.plan_value.raw.lower())
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from .diagnostics import Diagnostics
from .path import Path, PathExpression
from .private_state import ProviderData
from .values import ALL_KINDS, Kind, Value


@dataclass(frozen=True)
class PlanModifyRequest:
    """
    Read-only inputs to a modifier.

    Attributes:
        path: Concrete attribute path
        path_expression: Schema-level pattern for the attribute
        config_value: Configured value at this attribute
        plan_value: Planned value as left by the previous modifier
        state_value: Prior state value at this attribute
        config: Whole-resource configuration
        plan: Whole-resource proposed plan
        state: Whole-resource prior state (null when creating)
        private: Copy of provider private state as of this call; writes to it
            are discarded, only response.private is carried forward
    """

    path: Path
    path_expression: PathExpression
    config_value: Value
    plan_value: Value
    state_value: Value
    config: Value
    plan: Value
    state: Value
    private: ProviderData


@dataclass
class PlanModifyResponse:
    """
    Mutable outputs of a modifier.

    ``requires_replace`` starts as whatever the earlier modifiers of the same
    attribute left it at. Setting it True marks the attribute; setting it
    False clears a mark made earlier in the same chain.
    """

    plan_value: Value
    private: ProviderData
    requires_replace: bool = False
    diagnostics: Diagnostics = field(default_factory=Diagnostics)


class PlanModifier:
    """
    Base class for plan modifiers.

    Class Attributes:
        kinds: Attribute kinds this modifier can be attached to
        reads_prior_state: Whether the modifier carries prior state values
            forward; unordered collections warn when the prior element for
            such a modifier cannot be identified
    """

    kinds: frozenset[Kind] = ALL_KINDS
    reads_prior_state: bool = False

    def description(self) -> str:
        return type(self).__name__

    def supports(self, kind: Kind) -> bool:
        return kind in self.kinds

    def plan_modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


PlanModifyFunc = Callable[[PlanModifyRequest, PlanModifyResponse], None]


class FuncModifier(PlanModifier):
    """Adapter turning a plain callable into a plan modifier."""

    def __init__(
        self,
        func: PlanModifyFunc,
        description: str | None = None,
        kinds: frozenset[Kind] | None = None,
        reads_prior_state: bool = False,
    ) -> None:
        self._func = func
        self._description = description or getattr(func, "__name__", "plan modifier")
        if kinds is not None:
            self.kinds = frozenset(kinds)
        self.reads_prior_state = reads_prior_state

    def description(self) -> str:
        return self._description

    def plan_modify(self, request: PlanModifyRequest, response: PlanModifyResponse) -> None:
        self._func(request, response)

    def __repr__(self) -> str:
        return f"FuncModifier({self._description!r})"


def plan_modifier(
    func: PlanModifyFunc | None = None,
    *,
    description: str | None = None,
    kinds: frozenset[Kind] | None = None,
    reads_prior_state: bool = False,
) -> FuncModifier | Callable[[PlanModifyFunc], FuncModifier]:
    """
    Wrap a function as a modifier. Usable directly or as a decorator.

    Example:
        @plan_modifier(kinds=frozenset({Kind.STRING}))
        def upper(request, response):
            ...
    """

    def wrap(f: PlanModifyFunc) -> FuncModifier:
        return FuncModifier(f, description=description, kinds=kinds, reads_prior_state=reads_prior_state)

    if func is not None:
        return wrap(func)
    return wrap
