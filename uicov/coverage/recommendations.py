"""Coverage recommendations: turns coverage numbers into remediation guidance."""

from __future__ import annotations

import logging
from collections import defaultdict

from uicov.models.coverage import CoverageRecord, CoverageResult, UncoveredRecommendation
from uicov.models.element import ElementDescriptor
from uicov.selectors.normalizer import normalize_for_display

logger = logging.getLogger(__name__)

HIGH_PRIORITY_TYPES = {"button", "input", "link"}
MEDIUM_PRIORITY_TYPES = {"select", "textarea", "checkbox", "radio"}
NAVIGATION_ROLES = {"navigation", "menuitem", "tab"}
CRITICAL_BUTTON_WORDS = ("submit", "save", "delete", "pay", "checkout", "confirm")
CRITICAL_INPUT_WORDS = ("email", "password", "login", "username")
BULK_UNCOVERED_THRESHOLD = 5
EXAMPLE_LIMIT = 3


def _is_navigation_link(element: ElementDescriptor) -> bool:
    if element.element_type != "link":
        return False
    if element.role in NAVIGATION_ROLES:
        return True
    context = f"{element.selector} {element.discovery_context}".lower()
    return "nav" in context or "menu" in context


def _label(element: ElementDescriptor) -> str:
    name = element.accessible_name or element.text
    return f'"{name.strip()[:40]}"' if name and name.strip() else normalize_for_display(element.selector)


def _examples(elements: list[ElementDescriptor]) -> str:
    shown = ", ".join(_label(e) for e in elements[:EXAMPLE_LIMIT])
    if len(elements) > EXAMPLE_LIMIT:
        shown += f" and {len(elements) - EXAMPLE_LIMIT} more"
    return shown


def generate_recommendations(coverage: CoverageResult) -> list[str]:
    """Free-text guidance for a page or aggregated coverage result."""
    if coverage.total_elements == 0:
        return [
            "Critical: No interactive elements were discovered. Check if pages are "
            "loading correctly or if element discovery is working."
        ]

    recommendations: list[str] = []
    pct = coverage.coverage_percentage
    if pct < 50:
        recommendations.append("Critical: Your test coverage is below 50%. Consider adding more E2E tests.")
    elif pct < 75:
        recommendations.append(
            "Warning: Test coverage is below 75%. Some interactive elements may not be tested."
        )
    elif pct < 90:
        recommendations.append("Good: Test coverage is decent but there's room for improvement.")
    else:
        recommendations.append("Excellent: You have comprehensive test coverage!")

    for element_type, type_pct in coverage.coverage_by_type.items():
        # Hand-built results may omit type_totals; only skip types known to be empty.
        if coverage.type_totals and coverage.type_totals.get(element_type, 0) == 0:
            continue
        if type_pct < 50:
            recommendations.append(
                f"Low coverage for {element_type} elements ({type_pct}%). Consider adding tests for these."
            )
        elif type_pct < 75:
            recommendations.append(
                f"Moderate coverage for {element_type} elements ({type_pct}%). A few more tests would close the gap."
            )

    uncovered = coverage.uncovered_elements
    high = [e for e in uncovered if e.element_type in HIGH_PRIORITY_TYPES and not _is_navigation_link(e)]
    medium = [e for e in uncovered if e.element_type in MEDIUM_PRIORITY_TYPES or _is_navigation_link(e)]
    if high:
        recommendations.append(
            f"High Priority: {len(high)} untested buttons, inputs or links drive core user flows: {_examples(high)}."
        )
    if medium:
        recommendations.append(
            f"Medium Priority: {len(medium)} untested selects, textareas, toggles or navigation links: "
            f"{_examples(medium)}."
        )

    named = [e for e in uncovered if e.accessible_name]
    if named:
        recommendations.append(
            f"Accessibility: {len(named)} untested elements have accessible names ({_examples(named)}). "
            "Role- or text-based selectors such as getByRole or getByText can target them directly."
        )

    by_type: dict[str, list[ElementDescriptor]] = defaultdict(list)
    for element in uncovered:
        by_type[element.element_type].append(element)
    for element_type, elements in by_type.items():
        if len(elements) > BULK_UNCOVERED_THRESHOLD:
            recommendations.append(
                f"Consider testing {len(elements)} {element_type} elements that are currently uncovered."
            )

    logger.debug("Generated %d recommendations", len(recommendations))
    return recommendations


def recommend_for_record(record: CoverageRecord) -> UncoveredRecommendation:
    """Recommendation and a starter test for one uncovered aggregator record."""
    selector = record.selector
    text = (record.text or "").strip()
    lowered_text = text.lower()
    ident = f"{record.id} {selector}".lower()

    if record.element_type == "button" and any(w in lowered_text for w in CRITICAL_BUTTON_WORDS):
        return UncoveredRecommendation(
            record=record,
            priority="high",
            recommendation=f'Critical button "{text}" is not tested. This could lead to major functionality issues.',
            suggested_test=(
                f"test('should handle {text} button', async ({{ page }}) => {{\n"
                f"  await page.click('{selector}');\n"
                f"  // Add assertions for expected behavior\n}});"
            ),
        )
    if record.element_type == "input" and any(w in ident for w in CRITICAL_INPUT_WORDS):
        name = record.id or selector
        return UncoveredRecommendation(
            record=record,
            priority="high",
            recommendation=f'Critical input field "{name}" is not tested. Authentication and user data are at risk.',
            suggested_test=(
                f"test('should fill and validate {name}', async ({{ page }}) => {{\n"
                f"  await page.fill('{selector}', 'test-value');\n"
                f"  // Add validation assertions\n}});"
            ),
        )
    if "data-testid" in selector or "data-test" in selector:
        return UncoveredRecommendation(
            record=record,
            priority="medium",
            recommendation=(
                f'Element with test ID "{selector}" is not covered despite being explicitly marked for testing.'
            ),
            suggested_test=(
                f"test('should interact with {selector}', async ({{ page }}) => {{\n"
                f"  await page.click('{selector}');\n"
                f"  // Add expected behavior assertions\n}});"
            ),
        )
    if record.element_type in ("button", "link"):
        label = text or selector
        verb = "click" if record.element_type == "button" else "navigate with"
        return UncoveredRecommendation(
            record=record,
            priority="medium",
            recommendation=(
                f'Button "{label}" is not tested. User interactions may not work as expected.'
                if record.element_type == "button"
                else f'Link "{label}" is not tested. Navigation may be broken.'
            ),
            suggested_test=(
                f"test('should {verb} {label}', async ({{ page }}) => {{\n"
                f"  await page.click('{selector}');\n"
                f"  // Verify the result\n}});"
            ),
        )
    return UncoveredRecommendation(
        record=record,
        priority="low",
        recommendation=f'Interactive element "{normalize_for_display(selector)}" is not tested. Consider adding test coverage.',
        suggested_test=(
            f"test('should interact with {selector}', async ({{ page }}) => {{\n"
            f"  await page.click('{selector}');\n"
            f"  // Add appropriate assertions\n}});"
        ),
    )
