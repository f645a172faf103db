"""Detected-element models and normalization of raw vision-analysis output."""

from .models import BoundingBox, DetectedElement, ElementType
from .normalizer import elements_from_ocr, normalize_batch, normalize_element

__all__ = [
    "BoundingBox",
    "DetectedElement",
    "ElementType",
    "elements_from_ocr",
    "normalize_batch",
    "normalize_element",
]
