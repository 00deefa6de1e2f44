"""Selector mismatch analysis: explains why test selectors found no element."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Sequence

from uicov.matching.matcher import match_selectors
from uicov.models.coverage import SelectorAnalysisReport, SelectorMismatch
from uicov.models.element import ElementDescriptor
from uicov.models.selector import RawSelector, SelectorKind
from uicov.selectors.classifier import DEFAULT_RULES, TEST_ID_ATTRIBUTES, SelectorRule, declared_value

logger = logging.getLogger(__name__)

TYPE_WEIGHT = 0.3
TEXT_WEIGHT = 0.4
ATTRIBUTE_WEIGHT = 0.3
NEAR_MISS_THRESHOLD = 0.3
MAX_POSSIBLE_MATCHES = 5
MANY_MISMATCHES = 10
KNOWN_KINDS = {k.value for k in SelectorKind}


def _has_test_id(element: ElementDescriptor) -> bool:
    return any(attr in element.selector or attr in element.attributes for attr in TEST_ID_ATTRIBUTES)


def _type_compatible(kind: str, element: ElementDescriptor) -> bool:
    if kind == SelectorKind.TEST_ID.value:
        return _has_test_id(element)
    if kind == SelectorKind.TEXT.value:
        return bool(element.text.strip())
    if kind == SelectorKind.ROLE.value:
        return bool(element.role)
    if kind == SelectorKind.PLACEHOLDER.value:
        return element.element_type in ("input", "textarea")
    if kind in (SelectorKind.LABEL.value, SelectorKind.ALT_TEXT.value):
        return bool(element.accessible_name)
    return kind in (SelectorKind.CSS.value, SelectorKind.XPATH.value)


def _text_overlap(raw: str, element: ElementDescriptor) -> bool:
    text = element.text.strip().lower()
    return bool(text) and text in raw.lower()


def _attribute_overlap(raw: str, element: ElementDescriptor) -> bool:
    values = [element.id, element.role, *element.class_names]
    values += [v for k, v in element.attributes.items() if k in ("type", "name", *TEST_ID_ATTRIBUTES)]
    return any(v and v in raw for v in values)


def similarity(selector: RawSelector, element: ElementDescriptor) -> float:
    """Score in [0, 1] of how close ``selector`` comes to describing ``element``."""
    if element.selector in (selector.raw, selector.normalized):
        return 1.0
    score = 0.0
    if _type_compatible(selector.kind, element):
        score += TYPE_WEIGHT
    if _text_overlap(selector.raw, element):
        score += TEXT_WEIGHT
    if _attribute_overlap(selector.raw, element):
        score += ATTRIBUTE_WEIGHT
    return round(score, 2)


def _reason(selector: RawSelector, value: str | None, elements: Sequence[ElementDescriptor]) -> str:
    raw = selector.raw
    if selector.kind == SelectorKind.TEST_ID.value:
        if any(_has_test_id(e) for e in elements):
            return f"Test ID '{value or raw}' not found. Elements have different test IDs."
        return "No elements on page have test IDs. Consider adding data-testid attributes."
    if selector.kind == SelectorKind.TEXT.value:
        texts = [e.text.strip() for e in elements if e.text.strip()]
        return f"Text selector '{raw}' not found. Current page text: {', '.join(texts[:10])}"
    if selector.kind == SelectorKind.ROLE.value:
        roles = sorted({e.role for e in elements if e.role})
        return f"Role '{value or raw}' not found. Available roles: {', '.join(roles) or 'none'}"
    if selector.kind == SelectorKind.CSS.value:
        return (
            f"CSS selector '{raw}' matches no elements. "
            "Check if selector syntax is correct or if elements exist."
        )
    if selector.kind not in KNOWN_KINDS:
        return f"Selector '{raw}' has unknown kind '{selector.kind}' and is never matched."
    return f"Selector '{raw}' of type '{selector.kind}' matches no elements on the page."


def _recommendations(mismatches: list[SelectorMismatch]) -> list[str]:
    counts = Counter(m.selector.kind for m in mismatches)
    recommendations = []
    if counts[SelectorKind.TEST_ID.value]:
        recommendations.append("Add data-testid attributes to interactive elements for more reliable testing")
        recommendations.append(
            f"{counts[SelectorKind.TEST_ID.value]} test ID selectors are failing - verify test IDs match actual elements"
        )
    if counts[SelectorKind.TEXT.value]:
        recommendations.append(
            f"{counts[SelectorKind.TEXT.value]} text-based selectors are failing - text content may have changed"
        )
        recommendations.append("Consider using test IDs instead of text selectors for better stability")
    if counts[SelectorKind.CSS.value]:
        recommendations.append(
            f"{counts[SelectorKind.CSS.value]} CSS selectors are failing - DOM structure may have changed"
        )
        recommendations.append("Review CSS selectors and update them to match current DOM structure")
    if len(mismatches) > MANY_MISMATCHES:
        recommendations.append(
            f"Large number of failing selectors ({len(mismatches)}) - consider comprehensive test review"
        )
    if mismatches:
        recommendations.append("Run with --verbose to see detailed selector vs element comparisons")
    return recommendations


def analyze_selector_mismatches(
    selectors: Sequence[RawSelector],
    elements: Sequence[ElementDescriptor],
    rules: Sequence[SelectorRule] = DEFAULT_RULES,
) -> SelectorAnalysisReport:
    """Report which selectors the matcher could not place, with near misses and reasons."""
    outcome = match_selectors(selectors, elements, rules)

    mismatches = []
    for match in outcome.matches:
        if match.matched:
            continue
        selector = match.selector
        scored = sorted(
            ((similarity(selector, e), i) for i, e in enumerate(elements)),
            key=lambda pair: (-pair[0], pair[1]),
        )
        near = [(s, i) for s, i in scored if s > NEAR_MISS_THRESHOLD][:MAX_POSSIBLE_MATCHES]
        mismatches.append(SelectorMismatch(
            selector=selector,
            possible_matches=[elements[i] for _, i in near],
            match_score=near[0][0] if near else 0.0,
            reason=_reason(selector, declared_value(selector, rules), elements),
        ))

    matched = len(outcome.matches) - len(mismatches)
    logger.info("Selector analysis: %d/%d selectors matched", matched, len(selectors))
    return SelectorAnalysisReport(
        total_selectors=len(selectors),
        matched_selectors=matched,
        unmatched_selectors=len(mismatches),
        mismatches=mismatches,
        recommendations=_recommendations(mismatches),
    )
