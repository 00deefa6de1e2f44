"""Element filtering: narrows discovered elements to the ones coverage should count."""

from __future__ import annotations

import logging
import re
from typing import Sequence

from pydantic import BaseModel, Field

from uicov.matching.predicates import css_match, exact_match
from uicov.models.config import ElementFilterConfig
from uicov.models.element import ElementDescriptor, ElementType

logger = logging.getLogger(__name__)


class FilteringResult(BaseModel):
    elements: list[ElementDescriptor] = Field(default_factory=list)
    total_elements: int = 0
    included_elements: int = 0
    excluded_elements: int = 0
    exclusion_reasons: dict[str, int] = Field(default_factory=dict)


PRESETS: dict[str, ElementFilterConfig] = {
    "comprehensive": ElementFilterConfig(include_hidden=False),
    "essential": ElementFilterConfig(
        include_types=["button", "input", "select", "link", "checkbox", "radio"],
        include_hidden=False,
        include_disabled=False,
    ),
    "minimal": ElementFilterConfig(
        include_types=["button", "input", "link"],
        include_hidden=False,
        include_disabled=False,
        min_width=10,
        min_height=10,
    ),
    "forms": ElementFilterConfig(
        include_types=["input", "select", "textarea", "checkbox", "radio", "button"],
        include_hidden=False,
    ),
    "navigation": ElementFilterConfig(
        include_types=["link", "button"],
        include_hidden=False,
        include_disabled=False,
    ),
}


def _compile(patterns: Sequence[str]) -> list[re.Pattern]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            logger.warning("Ignoring invalid text pattern %r: %s", pattern, e)
    return compiled


def _selector_hits(selector: str, element: ElementDescriptor) -> bool:
    try:
        return exact_match(selector, element) or css_match(selector, element)
    except Exception as e:
        logger.debug("Filter selector %r failed on %r: %s", selector, element.selector, e)
        return False


class ElementFilter:
    """Applies an ElementFilterConfig to discovered elements."""

    def __init__(self, config: ElementFilterConfig | None = None):
        self.config = config or ElementFilterConfig()
        self._include_text = _compile(self.config.include_text_patterns)
        self._exclude_text = _compile(self.config.exclude_text_patterns)

    @classmethod
    def from_preset(cls, name: str) -> "ElementFilter":
        preset = PRESETS.get(name.lower())
        if preset is None:
            logger.warning("Unknown filter preset %r, using defaults", name)
            return cls()
        return cls(preset.model_copy(deep=True))

    def filter_elements(self, elements: Sequence[ElementDescriptor]) -> FilteringResult:
        included: list[ElementDescriptor] = []
        reasons: dict[str, int] = {}
        for element in elements:
            reason = self.exclusion_reason(element)
            if reason:
                reasons[reason] = reasons.get(reason, 0) + 1
            else:
                included.append(element)

        if reasons:
            logger.debug("Filtered out %d of %d elements: %s",
                         len(elements) - len(included), len(elements), reasons)
        return FilteringResult(
            elements=included,
            total_elements=len(elements),
            included_elements=len(included),
            excluded_elements=len(elements) - len(included),
            exclusion_reasons=reasons,
        )

    def exclusion_reason(self, element: ElementDescriptor) -> str | None:
        """Why an element is excluded, or None when it is kept."""
        cfg = self.config
        if cfg.include_types and element.element_type not in cfg.include_types:
            return f"type_not_included: {element.element_type}"
        if element.element_type in cfg.exclude_types:
            return f"type_excluded: {element.element_type}"
        if cfg.include_selectors and not any(_selector_hits(s, element) for s in cfg.include_selectors):
            return "no_matching_include_selector"
        if any(_selector_hits(s, element) for s in cfg.exclude_selectors):
            return "matches_exclude_selector"
        if self._include_text and not any(p.search(element.text) for p in self._include_text):
            return "no_matching_include_text_pattern"
        if any(p.search(element.text) for p in self._exclude_text):
            return "matches_exclude_text_pattern"
        if not cfg.include_hidden and not element.is_visible:
            return "hidden"
        if not cfg.include_disabled and not element.is_enabled:
            return "element_disabled"
        box = element.bounding_box
        if box is not None and (box.width < cfg.min_width or box.height < cfg.min_height):
            return f"insufficient_size: {box.width:g}x{box.height:g}"
        return None

    def validate_config(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors = []
        conflicting = sorted(set(self.config.include_types) & set(self.config.exclude_types))
        if conflicting:
            errors.append(f"Conflicting element types: {', '.join(conflicting)}")
        if self.config.min_width < 0 or self.config.min_height < 0:
            errors.append("Minimum size dimensions must be positive")
        for pattern in self.config.include_text_patterns + self.config.exclude_text_patterns:
            try:
                re.compile(pattern)
            except re.error:
                errors.append(f"Invalid regex pattern: {pattern}")
        known = {t.value for t in ElementType}
        unknown = sorted(set(self.config.include_types) - known)
        if unknown:
            errors.append(f"Unknown element types in include list: {', '.join(unknown)}")
        return errors
