"""Validation helpers for raw vision-analysis output."""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence, Tuple

from ..core.logger import log


def is_number(value: Any) -> bool:
    """Return True for finite ints/floats (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_confidence(value: Any) -> Tuple[bool, str]:
    """Validate a detection confidence in [0, 1].

    Args:
        value: Raw confidence value.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if value is None:
        return False, "Element missing 'confidence' field"

    if not is_number(value):
        return False, f"Confidence must be a number, got {value!r}"

    if value < 0 or value > 1:
        return False, f"Confidence {value} out of range [0, 1]"

    return True, ""


def validate_box_fields(box: Mapping[str, Any], fields: Sequence[str]) -> Tuple[bool, str]:
    """Validate that a box mapping carries numeric values for ``fields``."""
    for name in fields:
        if name not in box:
            return False, f"Bounding box missing '{name}'"
        if not is_number(box[name]):
            return False, f"Bounding box '{name}' must be a number"
    return True, ""


def validate_vertices(vertices: Any) -> Tuple[bool, str]:
    """Validate a polygon vertex list (``[{x, y}, ...]``)."""
    if not isinstance(vertices, (list, tuple)) or len(vertices) < 3:
        return False, "Polygon needs at least 3 vertices"

    for vertex in vertices:
        if not isinstance(vertex, Mapping):
            return False, "Polygon vertices must be mappings with x and y"
        # Google Vision omits zero coordinates from vertices
        x, y = vertex.get("x", 0), vertex.get("y", 0)
        if not is_number(x) or not is_number(y):
            return False, f"Invalid vertex coordinates: {vertex!r}"

    return True, ""


def validate_raw_element(raw: Any) -> Tuple[bool, str]:
    """Validate the required top-level fields of a raw vision element.

    Geometry is checked separately once the box shape is known.

    Args:
        raw: Raw element as received from vision analysis.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not isinstance(raw, Mapping):
        return False, "Element must be a mapping"

    label = raw.get("type", raw.get("elementType"))
    if label is None:
        return False, "Element missing 'type' field"
    if not isinstance(label, str):
        return False, "Element type must be a string"

    box = raw.get("boundingBox", raw.get("bounding_box"))
    if box is None:
        return False, "Element missing 'boundingBox' field"

    valid, message = validate_confidence(raw.get("confidence"))
    if not valid:
        return False, message

    text = raw.get("text")
    if text is not None and not isinstance(text, str):
        return False, "Element text must be a string"

    features = raw.get("visualFeatures", raw.get("visual_features"))
    if features is not None and not isinstance(features, Mapping):
        return False, "Visual features must be a mapping"

    return True, ""


def validate_screen_size(screen_size: Any) -> bool:
    """Validate a ``(width, height)`` screenshot size.

    Args:
        screen_size: Candidate size tuple.

    Returns:
        True if the size is usable, False otherwise.
    """
    if not isinstance(screen_size, (list, tuple)) or len(screen_size) != 2:
        log.error("Screen size must be a tuple of (width, height)")
        return False

    width, height = screen_size
    if not is_number(width) or not is_number(height):
        log.error("Screen dimensions must be numbers")
        return False

    if width <= 0 or height <= 0:
        log.error("Screen dimensions must be positive")
        return False

    return True

