"""Data models for detected UI elements."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class ElementType(str, Enum):
    """Kinds of UI element the vision pass can report."""

    BUTTON = "button"
    INPUT = "input"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    TABLE = "table"
    LABEL = "label"
    LINK = "link"
    MENU = "menu"
    DIALOG = "dialog"
    UNKNOWN = "unknown"


INTERACTIVE_TYPES = frozenset({ElementType.BUTTON, ElementType.LINK, ElementType.MENU})


@dataclass(slots=True, frozen=True)
class BoundingBox:
    """Axis-aligned rectangle (top, left, width, height) in screenshot pixels."""

    top: float
    left: float
    width: float
    height: float

    def area(self) -> float:
        """Area in square pixels."""
        return self.width * self.height

    def center(self) -> tuple[float, float]:
        """Return the ``(x, y)`` centre point."""
        return self.left + self.width / 2, self.top + self.height / 2

    def to_dict(self) -> dict[str, float]:
        return {"top": self.top, "left": self.left, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BoundingBox":
        return cls(
            top=float(data["top"]),
            left=float(data["left"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


def _new_element_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True, frozen=True)
class DetectedElement:
    """One UI element found in one screenshot analysis pass.

    Immutable once created. ``confidence`` is the vision detector's own
    confidence and is only read as an eligibility gate for matching.
    """

    element_type: ElementType
    bounding_box: BoundingBox
    confidence: float
    text: Optional[str] = None
    visual_features: Optional[Mapping[str, Any]] = None
    screenshot_id: Optional[str] = None
    element_id: str = field(default_factory=_new_element_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "element_id": self.element_id,
            "screenshot_id": self.screenshot_id,
            "element_type": self.element_type.value,
            "bounding_box": self.bounding_box.to_dict(),
            "text": self.text,
            "visual_features": dict(self.visual_features) if self.visual_features else None,
            "confidence": self.confidence,
        }
