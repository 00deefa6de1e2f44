"""Selector-to-element matching with a claim / first-fit policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from uicov.matching.predicates import TYPE_PREDICATES, exact_match, type_specific_match
from uicov.models.coverage import SelectorMatch
from uicov.models.element import ElementDescriptor
from uicov.models.selector import RawSelector
from uicov.selectors.classifier import DEFAULT_RULES, SelectorRule, declared_value

logger = logging.getLogger(__name__)


@dataclass
class MatchOutcome:
    """Result of matching one run's selectors against one page's elements.

    ``claimed`` holds element indices; it is what coverage is computed from.
    ``matches`` has one entry per selector, in selector order.
    """

    claimed: set[int] = field(default_factory=set)
    matches: list[SelectorMatch] = field(default_factory=list)

    @property
    def unmatched(self) -> list[RawSelector]:
        return [m.selector for m in self.matches if not m.matched]


def _safe(predicate, *args) -> bool:
    try:
        return predicate(*args)
    except Exception as e:
        logger.debug("Predicate %s failed on %r: %s", getattr(predicate, "__name__", predicate), args[-1].selector, e)
        return False


def _find(
    selector: RawSelector,
    value: Optional[str],
    elements: Sequence[ElementDescriptor],
    candidates: Sequence[int],
) -> Optional[tuple[int, str]]:
    texts = [selector.raw]
    if selector.normalized and selector.normalized != selector.raw:
        texts.append(selector.normalized)

    for i in candidates:
        if any(_safe(exact_match, text, elements[i]) for text in texts):
            return i, "exact"
    for i in candidates:
        if _safe(type_specific_match, selector.kind, value, elements[i]):
            return i, "type"
    return None


def match_selectors(
    selectors: Sequence[RawSelector],
    elements: Sequence[ElementDescriptor],
    rules: Sequence[SelectorRule] = DEFAULT_RULES,
) -> MatchOutcome:
    """Decide, per selector, which element (if any) it covers.

    Unclaimed elements are tried first (exact predicate, then the predicate
    for the selector's kind), then already-claimed ones. A selector landing on
    a claimed element is recorded as matched but does not grow the claimed set.
    """
    outcome = MatchOutcome()

    for selector in selectors:
        if selector.kind not in TYPE_PREDICATES:
            logger.debug("Unknown selector kind %r for %r; not matched", selector.kind, selector.raw)
            outcome.matches.append(SelectorMatch(selector=selector))
            continue

        value = declared_value(selector, rules)
        unclaimed = [i for i in range(len(elements)) if i not in outcome.claimed]
        hit = _find(selector, value, elements, unclaimed)
        reused = False
        if hit is None and outcome.claimed:
            hit = _find(selector, value, elements, sorted(outcome.claimed))
            reused = hit is not None

        if hit is None:
            logger.debug("No element matches %s selector %r", selector.kind, selector.raw)
            outcome.matches.append(SelectorMatch(selector=selector))
            continue

        index, strategy = hit
        if not reused:
            outcome.claimed.add(index)
        outcome.matches.append(SelectorMatch(
            selector=selector,
            element_index=index,
            element_selector=elements[index].selector,
            strategy=strategy,
            reused=reused,
        ))

    logger.debug(
        "Matched %d/%d selectors, %d/%d elements claimed",
        sum(1 for m in outcome.matches if m.matched), len(selectors),
        len(outcome.claimed), len(elements),
    )
    return outcome
