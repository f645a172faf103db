"""
Shared pytest fixtures for all tests.
"""
import pytest

from uipattern.core.config import Config
from uipattern.core.engine import TrainingEngine
from uipattern.core.pattern_store import InMemoryPatternStore
from uipattern.training.models import Pattern
from uipattern.training.question_queue import QuestionQueue
from uipattern.vision.models import BoundingBox, DetectedElement, ElementType


@pytest.fixture
def settings():
    """Default engine settings, independent of any local .env file"""
    return Config(_env_file=None)


@pytest.fixture
def store():
    return InMemoryPatternStore()


@pytest.fixture
def queue():
    return QuestionQueue()


@pytest.fixture
def engine(store, settings):
    return TrainingEngine(store=store, settings=settings)


@pytest.fixture
def raw_element():
    """Factory for raw vision-analysis elements"""
    def _create(element_type="button", text="Submit", top=100, left=50, width=120, height=40,
                confidence=0.95, **extra):
        raw = {
            "type": element_type,
            "text": text,
            "boundingBox": {"top": top, "left": left, "width": width, "height": height},
            "confidence": confidence,
        }
        raw.update(extra)
        return raw
    return _create


@pytest.fixture
def make_element():
    """Factory for normalized detected elements"""
    def _create(element_type=ElementType.BUTTON, text="Submit", top=100, left=50, width=120, height=40,
                confidence=0.95, visual_features=None, screenshot_id="shot-1"):
        return DetectedElement(
            element_type=element_type,
            bounding_box=BoundingBox(top=top, left=left, width=width, height=height),
            confidence=confidence,
            text=text,
            visual_features=visual_features,
            screenshot_id=screenshot_id,
        )
    return _create


@pytest.fixture
def make_pattern():
    """Factory for unsaved patterns"""
    def _create(owner_id="owner-a", application_name="app-x", element_type=ElementType.BUTTON,
                text="Submit", top=100, left=50, width=120, height=40, purpose="Submit the form",
                action="Submits the order", **extra):
        return Pattern(
            owner_id=owner_id,
            application_name=application_name,
            element_type=element_type,
            reference_bounding_box=BoundingBox(top=top, left=left, width=width, height=height),
            reference_text=text,
            purpose=purpose,
            action=action,
            **extra,
        )
    return _create
