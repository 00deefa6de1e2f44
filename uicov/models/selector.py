"""Selector occurrences extracted from test source."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from uicov.selectors.normalizer import normalize_for_matching


class SelectorKind(str, Enum):
    CSS = "css"
    XPATH = "xpath"
    TEXT = "text"
    ROLE = "role"
    TEST_ID = "test-id"
    ALT_TEXT = "alt-text"
    PLACEHOLDER = "placeholder"
    LABEL = "label"


class RawSelector(BaseModel):
    """A selector expression plus the dialect the extractor inferred for it.

    ``kind`` stays a plain string so an extractor that reports a dialect this
    package does not know about still loads; such selectors never match.
    """

    model_config = ConfigDict(frozen=True)

    raw: str
    kind: str = SelectorKind.CSS.value
    normalized: str = ""
    file_path: str = ""
    line_number: int = 0
    context: str = ""

    @field_validator("kind", mode="before")
    @classmethod
    def coerce_kind(cls, v):
        if isinstance(v, SelectorKind):
            return v.value
        return v

    @model_validator(mode="before")
    @classmethod
    def fill_normalized(cls, data):
        if isinstance(data, dict) and not data.get("normalized") and data.get("raw"):
            data = {**data, "normalized": normalize_for_matching(data["raw"])}
        return data
