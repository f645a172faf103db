"""API route definitions for the pattern training engine."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..core.engine import TrainingEngine
from ..core.errors import NotFoundError, OrphanedAnswerError, PatternStoreUnavailable
from ..core.logger import log

# Create router instances
screenshot_router = APIRouter()
question_router = APIRouter()
pattern_router = APIRouter()

# Global engine instance
engine_instance: Optional[TrainingEngine] = None


def get_engine() -> TrainingEngine:
    """Get or create the global engine instance."""
    global engine_instance
    if engine_instance is None:
        engine_instance = TrainingEngine()
    return engine_instance


def set_engine(engine: Optional[TrainingEngine]) -> None:
    """Replace the global engine instance."""
    global engine_instance
    engine_instance = engine


# Pydantic models for request/response
class AnalyzeRequest(BaseModel):
    """Vision-analysis output for one screenshot."""
    owner_id: str
    application_name: str
    elements: List[Dict[str, Any]]
    screenshot_id: Optional[str] = None
    screen_width: Optional[float] = Field(default=None, gt=0)
    screen_height: Optional[float] = Field(default=None, gt=0)


class AnswerRequest(BaseModel):
    """Human answer to one training question."""
    answer_text: str = Field(min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class AnswerResponse(BaseModel):
    """Response model for an integrated answer."""
    question_id: str
    pattern_id: int
    created: bool
    usage_count: int


@screenshot_router.post("/analyze")
def analyze_screenshot(request: AnalyzeRequest):
    """Match a screenshot's elements and create questions for the rest."""
    screen_size = None
    if request.screen_width and request.screen_height:
        screen_size = (request.screen_width, request.screen_height)
    try:
        analysis = get_engine().analyze_screenshot(
            request.owner_id,
            request.application_name,
            request.elements,
            screenshot_id=request.screenshot_id,
            screen_size=screen_size,
        )
    except PatternStoreUnavailable as e:
        log.error(f"Analysis aborted: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return analysis.to_dict()


@screenshot_router.get("/{screenshot_id}/annotations")
async def get_annotations(screenshot_id: str):
    """Resolved annotations of one screenshot in reading order."""
    annotations = get_engine().annotations_for(screenshot_id)
    return {"screenshot_id": screenshot_id, "annotations": [a.to_dict() for a in annotations]}


@question_router.get("")
async def list_pending_questions(owner_id: str, application_name: Optional[str] = None):
    """Pending questions for one user, highest priority first."""
    questions = get_engine().pending_questions(owner_id, application_name)
    return {"questions": [q.to_dict() for q in questions]}


@question_router.post("/{question_id}/answer", response_model=AnswerResponse)
def answer_question(question_id: str, request: AnswerRequest):
    """Submit the human answer for a pending question."""
    try:
        result = get_engine().submit_answer(question_id, request.answer_text, request.metadata)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrphanedAnswerError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PatternStoreUnavailable as e:
        log.error(f"Answer integration failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return AnswerResponse(
        question_id=question_id,
        pattern_id=result.pattern.pattern_id,
        created=result.created,
        usage_count=result.pattern.usage_count,
    )


@question_router.post("/{question_id}/skip")
def skip_question(question_id: str):
    """Dismiss a question without answering it."""
    try:
        question = get_engine().skip_question(question_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrphanedAnswerError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return question.to_dict()


@pattern_router.get("")
async def list_patterns(owner_id: str, application_name: str, include_inactive: bool = False):
    """Patterns learned for one user's application."""
    patterns = get_engine().list_patterns(owner_id, application_name, include_inactive)
    return {"patterns": [p.to_dict() for p in patterns]}


@pattern_router.post("/{pattern_id}/deactivate")
def deactivate_pattern(pattern_id: int):
    """Exclude a pattern from future matching."""
    try:
        pattern = get_engine().deactivate_pattern(pattern_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PatternStoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return pattern.to_dict()
