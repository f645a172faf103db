"""Turn raw vision-analysis output into canonical ``DetectedElement`` objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from ..core.errors import MalformedInputError
from ..utils.validation import validate_box_fields, validate_raw_element, validate_vertices
from .models import BoundingBox, DetectedElement, ElementType

# Labels seen from different vision providers, mapped onto our element types.
_LABEL_ALIASES: dict[str, ElementType] = {
    "btn": ElementType.BUTTON,
    "colored_button": ElementType.BUTTON,
    "icon_button": ElementType.BUTTON,
    "textbox": ElementType.INPUT,
    "text_box": ElementType.INPUT,
    "text_field": ElementType.INPUT,
    "textfield": ElementType.INPUT,
    "textarea": ElementType.INPUT,
    "edittext": ElementType.INPUT,
    "select": ElementType.DROPDOWN,
    "combobox": ElementType.DROPDOWN,
    "combo_box": ElementType.DROPDOWN,
    "spinner": ElementType.DROPDOWN,
    "check_box": ElementType.CHECKBOX,
    "radio_button": ElementType.RADIO,
    "radiobutton": ElementType.RADIO,
    "grid": ElementType.TABLE,
    "datagrid": ElementType.TABLE,
    "text": ElementType.LABEL,
    "static_text": ElementType.LABEL,
    "hyperlink": ElementType.LINK,
    "anchor": ElementType.LINK,
    "menu_item": ElementType.MENU,
    "menubar": ElementType.MENU,
    "navbar": ElementType.MENU,
    "modal": ElementType.DIALOG,
    "popup": ElementType.DIALOG,
    "alert": ElementType.DIALOG,
}


def map_element_type(label: str) -> ElementType:
    """Map a vision label onto an ``ElementType``; unknown labels become ``UNKNOWN``."""
    key = label.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return ElementType(key)
    except ValueError:
        pass
    mapped = _LABEL_ALIASES.get(key)
    if mapped is None:
        logger.debug("Unrecognized element label {0!r}, using 'unknown'", label)
        return ElementType.UNKNOWN
    return mapped


def _box_from_vertices(vertices: Any) -> BoundingBox:
    valid, message = validate_vertices(vertices)
    if not valid:
        raise MalformedInputError(message)
    xs = [float(v.get("x", 0)) for v in vertices]
    ys = [float(v.get("y", 0)) for v in vertices]
    return BoundingBox(top=min(ys), left=min(xs), width=max(xs) - min(xs), height=max(ys) - min(ys))


def parse_bounding_box(raw_box: Any) -> BoundingBox:
    """Parse any supported box shape into a ``BoundingBox``.

    Supported shapes are ``{top, left, width, height}``, ``{x, y, width,
    height}``, ``{"vertices": [...]}`` and a bare vertex list. Polygons are
    reduced to their axis-aligned hull.

    Raises:
        MalformedInputError: unknown shape or zero/negative area.
    """
    if isinstance(raw_box, (list, tuple)):
        box = _box_from_vertices(raw_box)
    elif isinstance(raw_box, Mapping):
        if "vertices" in raw_box:
            box = _box_from_vertices(raw_box["vertices"])
        elif "top" in raw_box or "left" in raw_box:
            valid, message = validate_box_fields(raw_box, ("top", "left", "width", "height"))
            if not valid:
                raise MalformedInputError(message)
            box = BoundingBox.from_dict(raw_box)
        else:
            valid, message = validate_box_fields(raw_box, ("x", "y", "width", "height"))
            if not valid:
                raise MalformedInputError(message)
            box = BoundingBox(
                top=float(raw_box["y"]),
                left=float(raw_box["x"]),
                width=float(raw_box["width"]),
                height=float(raw_box["height"]),
            )
    else:
        raise MalformedInputError(f"Unsupported bounding box shape: {type(raw_box).__name__}")

    if box.width <= 0 or box.height <= 0:
        raise MalformedInputError(
            f"Degenerate bounding box (width={box.width}, height={box.height})"
        )
    return box


def normalize_element(
    raw: Mapping[str, Any],
    screenshot_id: Optional[str] = None,
    index: Optional[int] = None,
) -> DetectedElement:
    """Convert one raw vision element into a ``DetectedElement``.

    Raises:
        MalformedInputError: missing required fields or degenerate geometry.
    """
    valid, message = validate_raw_element(raw)
    if not valid:
        raise MalformedInputError(message, index=index)

    try:
        box = parse_bounding_box(raw.get("boundingBox", raw.get("bounding_box")))
    except MalformedInputError as exc:
        raise MalformedInputError(exc.reason, index=index) from exc

    text = raw.get("text")
    if text is not None:
        text = text.strip() or None

    features = raw.get("visualFeatures", raw.get("visual_features"))

    return DetectedElement(
        element_type=map_element_type(raw.get("type", raw.get("elementType"))),
        bounding_box=box,
        confidence=float(raw["confidence"]),
        text=text,
        visual_features=dict(features) if features else None,
        screenshot_id=screenshot_id,
    )


@dataclass
class NormalizationResult:
    """Outcome of normalizing one screenshot's worth of raw elements."""

    elements: list[DetectedElement] = field(default_factory=list)
    errors: list[MalformedInputError] = field(default_factory=list)


def normalize_batch(
    raw_elements: Iterable[Mapping[str, Any]],
    screenshot_id: Optional[str] = None,
) -> NormalizationResult:
    """Normalize a batch, dropping malformed elements instead of failing."""
    result = NormalizationResult()
    for index, raw in enumerate(raw_elements):
        try:
            result.elements.append(normalize_element(raw, screenshot_id=screenshot_id, index=index))
        except MalformedInputError as exc:
            logger.warning("Dropping malformed element: {0}", exc)
            result.errors.append(exc)
    return result


def elements_from_ocr(words: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Adapt an OCR word list into raw label elements.

    Each word is ``{text, confidence, bounding_box}`` where the box is a
    ``{"vertices": [...]}`` polygon.
    """
    raw_elements = []
    for word in words:
        raw_elements.append(
            {
                "type": "label",
                "text": word.get("text", ""),
                "confidence": word.get("confidence", 0.0),
                "boundingBox": word.get("bounding_box", word.get("boundingBox")),
            }
        )
    return raw_elements
