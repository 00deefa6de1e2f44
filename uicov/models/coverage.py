"""Coverage data structures: per-run results and the persisted cross-run store."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from uicov.models.element import BoundingBox, ElementDescriptor
from uicov.models.selector import RawSelector
from uicov.selectors.normalizer import identity_key


# ---------------------------------------------------------------------------
# Per-run results
# ---------------------------------------------------------------------------


class SelectorMatch(BaseModel):
    selector: RawSelector
    element_index: Optional[int] = None
    element_selector: str = ""
    strategy: str = "none"  # exact, type, none
    reused: bool = False  # matched an element another selector had already claimed

    @property
    def matched(self) -> bool:
        return self.element_index is not None


class PageStats(BaseModel):
    total: int = 0
    covered: int = 0
    elements: list[ElementDescriptor] = Field(default_factory=list)


class CoverageResult(BaseModel):
    total_elements: int = 0
    covered_elements: int = 0
    uncovered_elements: list[ElementDescriptor] = Field(default_factory=list)
    # The elements coverage was computed over, after filtering
    evaluated_elements: list[ElementDescriptor] = Field(default_factory=list)
    coverage_percentage: int = 0
    coverage_by_type: dict[str, int] = Field(default_factory=dict)
    type_totals: dict[str, int] = Field(default_factory=dict)
    elements_by_page: dict[str, PageStats] = Field(default_factory=dict)
    matches: list[SelectorMatch] = Field(default_factory=list)
    unmatched_selectors: list[RawSelector] = Field(default_factory=list)


class PageCoverage(BaseModel):
    url: str
    elements: list[ElementDescriptor] = Field(default_factory=list)
    coverage: CoverageResult = Field(default_factory=CoverageResult)


class SelectorMismatch(BaseModel):
    selector: RawSelector
    possible_matches: list[ElementDescriptor] = Field(default_factory=list)
    match_score: float = 0.0
    reason: str = ""


class SelectorAnalysisReport(BaseModel):
    total_selectors: int = 0
    matched_selectors: int = 0
    unmatched_selectors: int = 0
    mismatches: list[SelectorMismatch] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Persisted store. Field names on disk are camelCase; this document is shared
# with every other aggregator instance pointed at the same file.
# ---------------------------------------------------------------------------


class _StoreModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DiscoveryEntry(_StoreModel):
    url: str = "unknown"
    timestamp: int = 0
    discovery_source: str = "unknown"


class CoverageEntry(_StoreModel):
    test_file: str
    test_name: str
    timestamp: int = 0
    interaction_type: Optional[str] = None


class CoverageRecord(_StoreModel):
    selector: str
    element_type: str = Field(default="interactive", alias="type")
    text: str = ""
    id: str = ""
    class_name: str = ""
    role: str = ""
    accessible_name: str = ""
    first_seen_at: int = 0
    last_seen_at: int = 0
    discovered_in: list[DiscoveryEntry] = Field(default_factory=list)
    covered_by: list[CoverageEntry] = Field(default_factory=list)
    is_hidden: bool = False
    bounding_box: Optional[BoundingBox] = None

    @property
    def key(self) -> str:
        return identity_key(self.selector, self.element_type)

    @property
    def is_covered(self) -> bool:
        return bool(self.covered_by)

    @property
    def class_names(self) -> list[str]:
        return self.class_name.split()


class CoverageStore(_StoreModel):
    records: dict[str, CoverageRecord] = Field(default_factory=dict)
    test_coverage: dict[str, list[str]] = Field(default_factory=dict)
    last_updated: int = 0


# ---------------------------------------------------------------------------
# Derived views over the store
# ---------------------------------------------------------------------------


class TypeCoverage(BaseModel):
    total: int = 0
    covered: int = 0
    percentage: int = 0


class PageCoverageSummary(BaseModel):
    total: int = 0
    covered: int = 0
    uncovered: list[CoverageRecord] = Field(default_factory=list)


class AggregatedCoverage(BaseModel):
    total_elements: int = 0
    covered_elements: int = 0
    coverage_percentage: int = 0
    uncovered_elements: list[CoverageRecord] = Field(default_factory=list)
    coverage_by_type: dict[str, TypeCoverage] = Field(default_factory=dict)
    coverage_by_page: dict[str, PageCoverageSummary] = Field(default_factory=dict)
    test_files: list[str] = Field(default_factory=list)
    last_updated: int = 0


class FileCoverage(BaseModel):
    test_file: str
    total_elements: int = 0
    covered_elements: int = 0
    uncovered_elements: list[CoverageRecord] = Field(default_factory=list)
    coverage_percentage: int = 0


class UncoveredRecommendation(BaseModel):
    record: CoverageRecord
    recommendation: str
    priority: Literal["high", "medium", "low"] = "medium"
    suggested_test: str = ""
