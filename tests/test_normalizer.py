"""Tests for turning raw vision output into detected elements."""
import pytest

from uipattern.core.errors import MalformedInputError
from uipattern.vision.models import BoundingBox, ElementType
from uipattern.vision.normalizer import (
    elements_from_ocr,
    map_element_type,
    normalize_batch,
    normalize_element,
    parse_bounding_box,
)


def test_normalize_element_with_top_left_box(raw_element):
    element = normalize_element(raw_element(), screenshot_id="shot-1")

    assert element.element_type is ElementType.BUTTON
    assert element.bounding_box == BoundingBox(top=100, left=50, width=120, height=40)
    assert element.text == "Submit"
    assert element.confidence == pytest.approx(0.95)
    assert element.screenshot_id == "shot-1"
    assert element.visual_features is None


def test_normalize_element_accepts_xy_box():
    element = normalize_element({
        "type": "input",
        "boundingBox": {"x": 10, "y": 20, "width": 200, "height": 30},
        "confidence": 0.8,
    })
    assert element.bounding_box == BoundingBox(top=20, left=10, width=200, height=30)
    assert element.text is None


def test_polygon_vertices_reduce_to_hull():
    box = parse_bounding_box({"vertices": [{"x": 10, "y": 5}, {"x": 60, "y": 5}, {"x": 60, "y": 25}, {"x": 10, "y": 25}]})
    assert box == BoundingBox(top=5, left=10, width=50, height=20)


def test_polygon_missing_zero_coordinates():
    # Google Vision leaves out coordinates equal to zero
    box = parse_bounding_box([{}, {"x": 40}, {"x": 40, "y": 12}, {"y": 12}])
    assert box == BoundingBox(top=0, left=0, width=40, height=12)


@pytest.mark.parametrize("label,expected", [
    ("Button", ElementType.BUTTON),
    ("textbox", ElementType.INPUT),
    ("combo-box", ElementType.DROPDOWN),
    ("hyperlink", ElementType.LINK),
    ("modal", ElementType.DIALOG),
    ("radio button", ElementType.RADIO),
    ("sparkle_widget", ElementType.UNKNOWN),
])
def test_label_mapping(label, expected):
    assert map_element_type(label) is expected


def test_unknown_label_does_not_fail(raw_element):
    element = normalize_element(raw_element(element_type="carousel"))
    assert element.element_type is ElementType.UNKNOWN


@pytest.mark.parametrize("box", [
    {"top": 10, "left": 10, "width": 0, "height": 20},
    {"top": 10, "left": 10, "width": 30, "height": -5},
    [{"x": 1, "y": 1}, {"x": 1, "y": 9}, {"x": 1, "y": 4}],
])
def test_degenerate_geometry_is_rejected(raw_element, box):
    raw = raw_element()
    raw["boundingBox"] = box
    with pytest.raises(MalformedInputError):
        normalize_element(raw)


@pytest.mark.parametrize("mutation", [
    lambda raw: raw.pop("type"),
    lambda raw: raw.pop("boundingBox"),
    lambda raw: raw.pop("confidence"),
    lambda raw: raw.update(confidence=1.5),
    lambda raw: raw.update(confidence="high"),
    lambda raw: raw.update(visualFeatures=["red"]),
    lambda raw: raw.update(boundingBox={"top": 1, "left": 2}),
])
def test_missing_or_invalid_fields_are_rejected(raw_element, mutation):
    raw = raw_element()
    mutation(raw)
    with pytest.raises(MalformedInputError):
        normalize_element(raw)


def test_blank_text_becomes_absent(raw_element):
    element = normalize_element(raw_element(text="   "))
    assert element.text is None


def test_visual_features_are_copied(raw_element):
    features = {"color": "blue"}
    element = normalize_element(raw_element(visualFeatures=features))
    features["color"] = "red"
    assert element.visual_features == {"color": "blue"}


def test_normalize_batch_drops_bad_elements_and_keeps_the_rest(raw_element):
    bad = raw_element(width=0)
    result = normalize_batch([raw_element(), bad, raw_element(text="Cancel")], screenshot_id="s")

    assert [e.text for e in result.elements] == ["Submit", "Cancel"]
    assert len(result.errors) == 1
    assert result.errors[0].index == 1
    assert all(e.screenshot_id == "s" for e in result.elements)


def test_elements_get_distinct_ids(raw_element):
    result = normalize_batch([raw_element(), raw_element()])
    ids = {e.element_id for e in result.elements}
    assert len(ids) == 2


def test_elements_from_ocr_words():
    words = [
        {"text": "Invoice", "confidence": 0.9,
         "bounding_box": {"vertices": [{"x": 5, "y": 5}, {"x": 65, "y": 5}, {"x": 65, "y": 20}, {"x": 5, "y": 20}]}},
    ]
    result = normalize_batch(elements_from_ocr(words))

    assert len(result.elements) == 1
    assert result.elements[0].element_type is ElementType.LABEL
    assert result.elements[0].bounding_box == BoundingBox(top=5, left=5, width=60, height=15)
