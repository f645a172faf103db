"""Order resolved annotations into reading order for documentation steps."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .config import config
from ..training.models import Annotation


def _position_key(annotation: Annotation) -> tuple:
    box = annotation.bounding_box
    return box.top, box.left, annotation.detected_element_id


def group_rows(annotations: Iterable[Annotation], row_tolerance: float) -> List[List[Annotation]]:
    """Bucket annotations into rows, top to bottom.

    A row starts at its topmost element; anything whose top lies within
    ``row_tolerance`` pixels of that anchor joins the row.
    """
    rows: List[List[Annotation]] = []
    anchor: Optional[float] = None
    for annotation in sorted(annotations, key=_position_key):
        top = annotation.bounding_box.top
        if anchor is None or top - anchor > row_tolerance:
            rows.append([])
            anchor = top
        rows[-1].append(annotation)
    return rows


def assemble(annotations: Iterable[Annotation], row_tolerance: Optional[float] = None) -> List[Annotation]:
    """Return annotations top-to-bottom by row, left-to-right within a row.

    Deterministic for identical input regardless of input order; the element
    id breaks exact positional ties.
    """
    if row_tolerance is None:
        row_tolerance = config.row_tolerance_px
    ordered: List[Annotation] = []
    for row in group_rows(annotations, row_tolerance):
        row.sort(key=lambda a: (a.bounding_box.left, a.bounding_box.top, a.detected_element_id))
        ordered.extend(row)
    return ordered
