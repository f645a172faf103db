"""In-process storage for training questions, their answers and elements."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Set

from loguru import logger

from ..core.errors import NotFoundError, OrphanedAnswerError
from ..vision.models import DetectedElement, ElementType
from .models import QuestionStatus, TrainingAnswer, TrainingQuestion


class QuestionQueue:
    """Questions keyed by id, with at most one pending question per element."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._questions: Dict[str, TrainingQuestion] = {}
        self._answers: Dict[str, TrainingAnswer] = {}
        self._elements: Dict[str, DetectedElement] = {}
        self._pending_by_element: Dict[str, str] = {}
        self._signatures: Set[str] = set()
        self._order: Dict[str, int] = {}

    def add(self, question: TrainingQuestion, element: DetectedElement) -> TrainingQuestion:
        """Register a question; returns the existing one if the element already has a pending question."""
        with self._lock:
            existing_id = self._pending_by_element.get(element.element_id)
            if existing_id is not None:
                logger.debug("Element {0} already has pending question {1}", element.element_id, existing_id)
                return self._questions[existing_id]

            self._questions[question.question_id] = question
            self._elements[element.element_id] = element
            self._pending_by_element[element.element_id] = question.question_id
            self._signatures.add(question.signature)
            self._order[question.question_id] = len(self._order)
            return question

    def get(self, question_id: str) -> TrainingQuestion:
        with self._lock:
            question = self._questions.get(question_id)
            if question is None:
                raise NotFoundError("TrainingQuestion", question_id)
            return question

    def element(self, element_id: str) -> DetectedElement:
        with self._lock:
            element = self._elements.get(element_id)
            if element is None:
                raise NotFoundError("DetectedElement", element_id)
            return element

    def has_seen(self, signature: str) -> bool:
        """True once any question was asked for this element signature."""
        with self._lock:
            return signature in self._signatures

    def pending(self, owner_id: str, application_name: Optional[str] = None) -> List[TrainingQuestion]:
        """Pending questions for one owner, highest priority first, then oldest first."""
        with self._lock:
            found = [
                q for q in self._questions.values()
                if q.status is QuestionStatus.PENDING and q.owner_id == owner_id
                and (application_name is None or q.application_name == application_name)
            ]
            return sorted(found, key=lambda q: (-q.priority, self._order[q.question_id]))

    def ensure_pending(self, question_id: str) -> TrainingQuestion:
        """Return the question if it still accepts an answer, else raise ``OrphanedAnswerError``."""
        with self._lock:
            question = self.get(question_id)
            if question.status is not QuestionStatus.PENDING:
                raise OrphanedAnswerError(question_id, question.status.value)
            return question

    def mark_answered(self, answer: TrainingAnswer) -> TrainingQuestion:
        with self._lock:
            question = self.ensure_pending(answer.question_id)
            question.status = QuestionStatus.ANSWERED
            self._answers[question.question_id] = answer
            self._pending_by_element.pop(question.element_id, None)
            return question

    def skip(self, question_id: str) -> TrainingQuestion:
        """Dismiss a question; skipping twice is a no-op, skipping an answered one is rejected."""
        with self._lock:
            question = self.get(question_id)
            if question.status is QuestionStatus.SKIPPED:
                return question
            if question.status is QuestionStatus.ANSWERED:
                raise OrphanedAnswerError(question_id, question.status.value)
            question.status = QuestionStatus.SKIPPED
            self._pending_by_element.pop(question.element_id, None)
            logger.info("Question {0} skipped", question_id)
            return question

    def answer_for(self, question_id: str) -> Optional[TrainingAnswer]:
        with self._lock:
            return self._answers.get(question_id)

    def answer_rate(self, element_type: ElementType) -> Optional[float]:
        """Share of closed questions about this element type that were answered rather than skipped."""
        answered = closed = 0
        with self._lock:
            for question in self._questions.values():
                if question.status is QuestionStatus.PENDING:
                    continue
                element = self._elements.get(question.element_id)
                if element is None or element.element_type is not element_type:
                    continue
                closed += 1
                if question.status is QuestionStatus.ANSWERED:
                    answered += 1
        if not closed:
            return None
        return answered / closed
