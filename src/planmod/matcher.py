"""Pairing of unordered collection elements with their prior counterparts.

Set elements have no positional identity, so the prior state element that
corresponds to a planned element has to be inferred. An element is
identified by the known values of its non-computed attributes: values the
operator could only have changed by changing configuration.

For each planned element:

- exactly one prior element agrees on every identifying value, and no other
  planned element claims it: matched
- several prior elements agree, two planned elements claim the same prior
  element, or no prior element agrees fully but some agree partially:
  ambiguous; the element is paired positionally (or with nothing when the
  prior collection is shorter) and flagged
- no prior element shares any identifying value: the element is new

When the number of distinct planned elements, compared on their identifying
values only, differs from the number of prior elements, every known planned
element is flagged as well. Matched elements keep their match and new
elements keep a null prior.

The heuristic only affects the previewed plan. Real values are recomputed
at apply time.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from .schema import AttributeNode
from .values import Kind, Value, null

_WHOLE_VALUE = ""


@dataclass(frozen=True)
class ElementMatch:
    """
    Prior counterpart chosen for one planned element.

    Attributes:
        prior_index: Index into the prior elements, None when unpaired
        prior_value: Paired prior element, or a null value
        ambiguous: The pairing is a positional fallback, not an identification
    """

    prior_index: int | None
    prior_value: Value
    ambiguous: bool = False


def identity(node: AttributeNode, element: Value) -> dict[str, Value] | None:
    """
    Identifying values of an element, or None if the element is not known.

    Objects are identified by their non-computed attributes whose planned
    values are known. Any other element is identified by its whole value.
    """
    if not element.is_known():
        return None
    if node.kind != Kind.OBJECT:
        return {_WHOLE_VALUE: element}
    ident: dict[str, Value] = {}
    for name, child in node.attributes.items():
        if child.computed:
            continue
        value = element.attribute(name)
        if value is None or value.is_unknown():
            continue
        ident[name] = value
    return ident


def _lookup(node: AttributeNode, prior: Value, name: str) -> Value | None:
    if node.kind != Kind.OBJECT:
        return prior
    return prior.attribute(name)


def _agreement(node: AttributeNode, ident: dict[str, Value], prior: Value) -> int:
    """Number of identifying values the prior element agrees on."""
    count = 0
    for name, value in ident.items():
        prior_value = _lookup(node, prior, name)
        if prior_value is not None and prior_value.equal(value):
            count += 1
    return count


def match_elements(
    node: AttributeNode,
    planned: Sequence[Value],
    prior: Sequence[Value],
) -> list[ElementMatch]:
    """
    Pair each planned element with a prior element.

    Args:
        node: Element schema
        planned: Planned elements, in stored order
        prior: Prior state (or configuration) elements, in stored order

    Returns:
        One ElementMatch per planned element, in the same order
    """
    known_prior = [(j, p) for j, p in enumerate(prior) if p.is_known()]
    idents = [identity(node, element) for element in planned]

    candidates: list[list[int]] = []
    partial: list[bool] = []
    for ident in idents:
        if ident is None:
            candidates.append([])
            partial.append(False)
            continue
        full: list[int] = []
        overlap = False
        for j, p in known_prior:
            agreed = _agreement(node, ident, p)
            if agreed == len(ident):
                full.append(j)
            elif agreed:
                overlap = True
        candidates.append(full)
        partial.append(overlap and not full)

    claims = Counter(found[0] for found in candidates if len(found) == 1)
    resized = bool(known_prior) and _distinct(idents) != len(known_prior)

    matches: list[ElementMatch] = []
    for i, found in enumerate(candidates):
        if idents[i] is None:
            matches.append(ElementMatch(None, null(node.kind)))
        elif len(found) == 1 and claims[found[0]] == 1:
            matches.append(ElementMatch(found[0], prior[found[0]], ambiguous=resized))
        elif found or partial[i]:
            matches.append(_positional(node, prior, i))
        else:
            matches.append(ElementMatch(None, null(node.kind), ambiguous=resized))
    return matches


def _distinct(idents: Sequence[dict[str, Value] | None]) -> int:
    """Number of distinct known planned elements once unknown values are dropped."""
    seen: list[dict[str, Value]] = []
    for ident in idents:
        if ident is None:
            continue
        if not any(_same_identity(ident, other) for other in seen):
            seen.append(ident)
    return len(seen)


def _same_identity(a: dict[str, Value], b: dict[str, Value]) -> bool:
    return a.keys() == b.keys() and all(a[name].equal(b[name]) for name in a)


def _positional(node: AttributeNode, prior: Sequence[Value], index: int) -> ElementMatch:
    if index < len(prior):
        return ElementMatch(index, prior[index], ambiguous=True)
    return ElementMatch(None, null(node.kind), ambiguous=True)
