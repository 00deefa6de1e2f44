"""Element descriptors produced by page discovery."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ElementType(str, Enum):
    BUTTON = "button"
    INPUT = "input"
    LINK = "link"
    SELECT = "select"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    CLICKABLE = "clickable"
    INTERACTIVE = "interactive"


class BoundingBox(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class ElementDescriptor(BaseModel):
    """One interactive element as seen by the discoverer.

    ``element_type`` is an open string: the known values live in
    ``ElementType`` but discoverers may report anything (``span``, ``nav``...).
    """

    model_config = ConfigDict(frozen=True)

    selector: str
    element_type: str = ElementType.INTERACTIVE.value
    text: str = ""
    id: str = ""
    class_names: list[str] = Field(default_factory=list)
    role: str = ""
    accessible_name: str = ""
    xpath: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)
    is_visible: bool = True
    is_enabled: bool = True
    bounding_box: Optional[BoundingBox] = None
    discovery_source: str = "unknown"
    discovery_context: str = ""

    @field_validator("class_names", mode="before")
    @classmethod
    def split_class_string(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return v.split()
        return v

    @field_validator("element_type", mode="before")
    @classmethod
    def coerce_element_type(cls, v):
        if isinstance(v, ElementType):
            return v.value
        return v or ElementType.INTERACTIVE.value

    @property
    def tag(self) -> str:
        """Leading tag name of the generated selector, if it has one."""
        head = self.selector.strip().split(" ")[0]
        tag = ""
        for ch in head:
            if ch.isalnum() or ch == "-":
                tag += ch
            else:
                break
        return tag.lower()
