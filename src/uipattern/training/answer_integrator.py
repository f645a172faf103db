"""Fold human answers back into the pattern store."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Optional

from ..core.config import Config, config as default_config
from ..core.logger import log
from ..core.matcher import normalize_text, text_similarity
from ..core.pattern_store import PatternStore
from ..vision.models import DetectedElement
from .models import MatchKind, Pattern, QuestionType, TrainingAnswer, TrainingQuestion
from .question_queue import QuestionQueue

# Metadata keys that map onto a pattern field directly.
_STRUCTURED_KEYS = ("purpose", "action", "business_context", "context")


@dataclass(frozen=True)
class IntegrationResult:
    """What an answer did to the knowledge base."""

    question: TrainingQuestion
    answer: TrainingAnswer
    pattern: Pattern
    created: bool


def answer_compatibility(answer_text: str, pattern: Pattern) -> float:
    """How well an answer agrees with a pattern's purpose or action, in [0, 1].

    Containment either way counts as full agreement.
    """
    answer = normalize_text(answer_text)
    if not answer:
        return 0.0
    best = 0.0
    for described in (pattern.purpose, pattern.action):
        described = normalize_text(described)
        if not described:
            continue
        if answer in described or described in answer:
            return 1.0
        best = max(best, text_similarity(answer, described))
    return best


class AnswerIntegrator:
    """Turns a ``TrainingAnswer`` into a new or reused ``Pattern``.

    Integration is serialized so that a duplicate submission racing the
    first one is rejected instead of creating a second pattern.
    """

    def __init__(self, store: PatternStore, queue: QuestionQueue, settings: Optional[Config] = None) -> None:
        self.store = store
        self.queue = queue
        self.settings = settings or default_config
        self._lock = threading.Lock()

    def integrate(self, answer: TrainingAnswer) -> IntegrationResult:
        """Apply one answer.

        Raises:
            NotFoundError: unknown question id.
            OrphanedAnswerError: the question was already answered or skipped.
            PatternStoreUnavailable: the store failed; the question stays pending.
        """
        with self._lock:
            question = self.queue.ensure_pending(answer.question_id)
            element = self.queue.element(question.element_id)

            pattern = None
            if question.match_kind is MatchKind.AMBIGUOUS:
                pattern = self._reuse_candidate(question, answer)

            created = pattern is None
            if created:
                pattern = self.store.insert(self._new_pattern(question, element, answer))

            self.queue.mark_answered(answer)

        log.log_pattern_update(pattern, created)
        return IntegrationResult(question=question, answer=answer, pattern=pattern, created=created)

    def skip(self, question_id: str) -> TrainingQuestion:
        """Dismiss a question under the same lock answers are applied with."""
        with self._lock:
            return self.queue.skip(question_id)

    def _reuse_candidate(self, question: TrainingQuestion, answer: TrainingAnswer) -> Optional[Pattern]:
        threshold = self.settings.answer_similarity_threshold
        best: Optional[Pattern] = None
        best_score = 0.0
        for pattern_id in question.candidate_ids:
            candidate = self.store.get(pattern_id)
            if not candidate.is_active:
                continue
            score = answer_compatibility(answer.answer_text, candidate)
            if score >= threshold and score > best_score:
                best, best_score = candidate, score

        if best is None:
            return None
        best.usage_count = self.store.touch(best.pattern_id)
        log.debug(
            f"Answer to {question.question_id} agrees with pattern #{best.pattern_id} "
            f"(compatibility {best_score:.2f})"
        )
        return best

    def _new_pattern(
        self,
        question: TrainingQuestion,
        element: DetectedElement,
        answer: TrainingAnswer,
    ) -> Pattern:
        text = answer.answer_text.strip()
        fields: dict[str, Any] = {
            "purpose": answer.field_value("purpose"),
            "action": answer.field_value("action"),
            "business_context": answer.field_value("business_context") or answer.field_value("context"),
        }
        # The answer text fills the field the question asked about.
        if question.question_type is QuestionType.ACTION:
            fields["action"] = fields["action"] or text
        elif question.question_type is QuestionType.CONTEXT:
            fields["business_context"] = fields["business_context"] or text
        else:
            fields["purpose"] = fields["purpose"] or text
        # Any other metadata is free-form context.
        fields["business_context"] = fields["business_context"] or answer.free_context(exclude=_STRUCTURED_KEYS)

        return Pattern(
            owner_id=question.owner_id,
            application_name=question.application_name,
            element_type=element.element_type,
            reference_bounding_box=element.bounding_box,
            reference_text=element.text,
            purpose=fields["purpose"] or text,
            action=fields["action"] or text,
            business_context=fields["business_context"],
            visual_features=dict(element.visual_features) if element.visual_features else None,
            confidence=answer.confidence,
            usage_count=1,
        )
