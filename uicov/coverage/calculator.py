"""Coverage calculation for one page, and aggregation across pages.

Empty denominators are reported differently on purpose:

- an empty element population has 0% coverage (nothing was discovered, so
  nothing can pass a threshold);
- an element type with no elements is vacuously covered
  (``CoverageConfig.empty_type_coverage``, 100 by default), so absent types
  never show up as low-coverage call-outs.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from uicov.coverage.element_filter import ElementFilter
from uicov.matching.matcher import match_selectors
from uicov.models.config import CoverageConfig
from uicov.models.coverage import CoverageResult, PageCoverage, PageStats
from uicov.models.element import ElementDescriptor, ElementType
from uicov.models.selector import RawSelector
from uicov.selectors.classifier import DEFAULT_RULES, SelectorRule

logger = logging.getLogger(__name__)

EMPTY_POPULATION_COVERAGE = 0
VACUOUS_TYPE_COVERAGE = 100


def percentage(covered: int, total: int, empty: int = EMPTY_POPULATION_COVERAGE) -> int:
    """Whole-number percentage rounded half up; ``empty`` when total is 0."""
    if total <= 0:
        return empty
    return min(100, max(0, math.floor(covered * 100 / total + 0.5)))


def _type_breakdown(
    counts: dict[str, list[int]], empty_type_coverage: int,
) -> tuple[dict[str, int], dict[str, int]]:
    by_type = {t: percentage(c, n, empty=empty_type_coverage) for t, (n, c) in counts.items()}
    totals = {t: n for t, (n, _) in counts.items()}
    return by_type, totals


def _empty_counts(config: Optional[CoverageConfig]) -> dict[str, list[int]]:
    types = config.report_types if config else [t.value for t in ElementType]
    return {t: [0, 0] for t in types}


def calculate_coverage(
    elements: Sequence[ElementDescriptor],
    selectors: Sequence[RawSelector],
    page_url: Optional[str] = None,
    config: Optional[CoverageConfig] = None,
    rules: Sequence[SelectorRule] = DEFAULT_RULES,
) -> CoverageResult:
    """Match selectors against one page's elements and compute coverage."""
    elements = list(elements)
    if config is not None:
        elements = ElementFilter(config.element_filter).filter_elements(elements).elements
    empty_type_coverage = config.empty_type_coverage if config else VACUOUS_TYPE_COVERAGE

    outcome = match_selectors(selectors, elements, rules)

    counts = _empty_counts(config)
    for i, element in enumerate(elements):
        entry = counts.setdefault(element.element_type, [0, 0])
        entry[0] += 1
        if i in outcome.claimed:
            entry[1] += 1
    coverage_by_type, type_totals = _type_breakdown(counts, empty_type_coverage)

    covered = len(outcome.claimed)
    uncovered = [e for i, e in enumerate(elements) if i not in outcome.claimed]

    elements_by_page = {}
    if page_url:
        elements_by_page[page_url] = PageStats(total=len(elements), covered=covered, elements=elements)

    result = CoverageResult(
        total_elements=len(elements),
        covered_elements=covered,
        uncovered_elements=uncovered,
        evaluated_elements=elements,
        coverage_percentage=percentage(covered, len(elements)),
        coverage_by_type=coverage_by_type,
        type_totals=type_totals,
        elements_by_page=elements_by_page,
        matches=outcome.matches,
        unmatched_selectors=outcome.unmatched,
    )
    logger.info(
        "Coverage%s: %d/%d elements (%d%%), %d unmatched selectors",
        f" for {page_url}" if page_url else "",
        result.covered_elements, result.total_elements,
        result.coverage_percentage, len(result.unmatched_selectors),
    )
    return result


def _population(page: PageCoverage) -> list[ElementDescriptor]:
    """Elements a page's result was computed over (after filtering)."""
    evaluated = page.coverage.evaluated_elements
    if len(evaluated) == page.coverage.total_elements:
        return evaluated
    return list(page.elements)


def aggregate_page_coverage(
    pages: Sequence[PageCoverage], config: Optional[CoverageConfig] = None,
) -> CoverageResult:
    """Combine single-page results into one.

    Only elements inside each page result's own population are counted, so
    elements a filter dropped stay out of the totals. Elements are identified
    across pages by their raw selector string, which is what per-page results
    have always used.
    """
    if not pages:
        return CoverageResult()
    empty_type_coverage = config.empty_type_coverage if config else VACUOUS_TYPE_COVERAGE

    all_elements: list[ElementDescriptor] = []
    covered_elements: list[ElementDescriptor] = []
    elements_by_page: dict[str, PageStats] = {}
    unmatched: list[RawSelector] = []
    counts = _empty_counts(config)

    for page in pages:
        population = _population(page)
        uncovered_selectors = {e.selector for e in page.coverage.uncovered_elements}
        covered_in_page = [e for e in population if e.selector not in uncovered_selectors]

        all_elements.extend(population)
        covered_elements.extend(covered_in_page)
        unmatched.extend(page.coverage.unmatched_selectors)
        elements_by_page[page.url] = PageStats(
            total=len(population),
            covered=len(covered_in_page),
            elements=population,
        )

        for element in population:
            counts.setdefault(element.element_type, [0, 0])[0] += 1
        for element in covered_in_page:
            counts[element.element_type][1] += 1

    covered_selectors = {e.selector for e in covered_elements}
    uncovered = [e for e in all_elements if e.selector not in covered_selectors]
    coverage_by_type, type_totals = _type_breakdown(counts, empty_type_coverage)

    logger.debug("Aggregated %d pages: %d/%d elements covered",
                 len(pages), len(covered_elements), len(all_elements))
    return CoverageResult(
        total_elements=len(all_elements),
        covered_elements=len(covered_elements),
        uncovered_elements=uncovered,
        evaluated_elements=all_elements,
        coverage_percentage=percentage(len(covered_elements), len(all_elements)),
        coverage_by_type=coverage_by_type,
        type_totals=type_totals,
        elements_by_page=elements_by_page,
        unmatched_selectors=unmatched,
    )
