"""Configuration models."""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from uicov.models.element import ElementType


def _check_percentage(v: int) -> int:
    if not 0 <= v <= 100:
        raise ValueError(f"percentage must be between 0 and 100, got {v}")
    return v


class ElementFilterConfig(BaseModel):
    include_types: list[str] = Field(default_factory=list)  # empty means every type
    exclude_types: list[str] = Field(default_factory=list)
    include_selectors: list[str] = Field(default_factory=list)
    exclude_selectors: list[str] = Field(default_factory=list)
    include_text_patterns: list[str] = Field(default_factory=list)
    exclude_text_patterns: list[str] = Field(default_factory=list)
    include_hidden: bool = True
    include_disabled: bool = True
    min_width: float = 0.0
    min_height: float = 0.0


class CoverageConfig(BaseModel):
    # Persistence
    output_path: str = "./coverage-report"
    data_file: str = ".coverage-data.json"
    cleanup_duplicates_on_load: bool = False
    # Covering an element nobody discovered creates its record; off = index the key only
    create_records_on_coverage: bool = True

    # Thresholds
    coverage_threshold: int = 80
    # Percentage reported for an element type with no elements on the page
    empty_type_coverage: int = 100

    # Element scope
    ignore_elements: list[str] = Field(default_factory=list)
    element_filter: ElementFilterConfig = Field(default_factory=ElementFilterConfig)
    report_types: list[str] = Field(default_factory=lambda: [t.value for t in ElementType])

    # Passed through to the selector extractor
    include_patterns: list[str] = Field(default_factory=lambda: ["**/*.spec.ts", "**/*.test.ts"])
    exclude_patterns: list[str] = Field(default_factory=lambda: ["**/node_modules/**"])

    @field_validator("coverage_threshold", "empty_type_coverage")
    @classmethod
    def check_percentage(cls, v: int) -> int:
        return _check_percentage(v)

    def model_post_init(self, __context) -> None:
        env_output = os.environ.get("UICOV_OUTPUT_PATH")
        if env_output:
            self.output_path = env_output
        env_threshold = os.environ.get("UICOV_THRESHOLD")
        if env_threshold:
            self.coverage_threshold = _check_percentage(int(env_threshold))
        for selector in self.ignore_elements:
            if selector not in self.element_filter.exclude_selectors:
                self.element_filter.exclude_selectors.append(selector)

    @property
    def data_path(self) -> Path:
        return Path(self.output_path) / self.data_file

    @classmethod
    def load(cls, path: str | Path) -> "CoverageConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
