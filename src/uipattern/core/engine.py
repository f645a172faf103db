"""Pattern matching and collaborative training engine.

Data flow per screenshot::

    raw vision output -> normalizer -> matcher (reads pattern store)
        matched            -> annotation
        unmatched/ambiguous -> training question -> (human) -> answer integrator
                                -> pattern store -> annotation

Matching runs in two phases. The scoring phase only reads the store and runs
on a thread pool. The commit phase sends every usage increment of the batch to
the store as one all-or-nothing write, then creates questions. A store failure
in either phase aborts the batch before any annotation or question from it is
recorded.
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .annotation_assembler import assemble
from .config import Config, config as default_config
from .errors import NotFoundError, PatternStoreUnavailable
from .logger import log
from .matcher import Matcher, MatchOutcome
from .pattern_store import PatternStore, create_pattern_store
from ..training.answer_integrator import AnswerIntegrator, IntegrationResult
from ..training.models import Annotation, MatchKind, Pattern, TrainingAnswer, TrainingQuestion
from ..training.question_generator import QuestionGenerator, element_signature
from ..training.question_queue import QuestionQueue
from ..utils.validation import validate_screen_size
from ..vision.models import DetectedElement
from ..vision.normalizer import normalize_batch


class ElementState(str, Enum):
    """Lifecycle of one detected element."""

    DETECTED = "detected"
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    QUESTION_PENDING = "question_pending"
    ANSWERED = "answered"
    SKIPPED = "skipped"


@dataclass
class ScreenshotAnalysis:
    """Everything one ``analyze_screenshot`` call produced."""

    screenshot_id: str
    owner_id: str
    application_name: str
    annotations: List[Annotation] = field(default_factory=list)
    questions: List[TrainingQuestion] = field(default_factory=list)
    outcomes: Dict[str, MatchKind] = field(default_factory=dict)
    elements: List[DetectedElement] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "screenshot_id": self.screenshot_id,
            "owner_id": self.owner_id,
            "application_name": self.application_name,
            "annotations": [a.to_dict() for a in self.annotations],
            "questions": [q.to_dict() for q in self.questions],
            "outcomes": {eid: kind.value for eid, kind in self.outcomes.items()},
            "warnings": list(self.warnings),
        }


def annotation_from_pattern(
    element: DetectedElement,
    pattern: Pattern,
    score: Optional[float] = None,
) -> Annotation:
    return Annotation(
        detected_element_id=element.element_id,
        bounding_box=element.bounding_box,
        purpose=pattern.purpose,
        action=pattern.action,
        pattern_id=pattern.pattern_id,
        element_type=element.element_type,
        text=element.text,
        business_context=pattern.business_context,
        match_score=score,
    )


class TrainingEngine:
    """Entry point tying the matcher, question flow and pattern store together."""

    def __init__(
        self,
        store: Optional[PatternStore] = None,
        settings: Optional[Config] = None,
        queue: Optional[QuestionQueue] = None,
    ) -> None:
        self.settings = settings or default_config
        self.settings.validate_config()
        self.store = store if store is not None else create_pattern_store(self.settings.pattern_store_path)
        self.queue = queue if queue is not None else QuestionQueue()
        self.matcher = Matcher(self.store, self.settings)
        self.generator = QuestionGenerator(self.settings, history=self.queue)
        self.integrator = AnswerIntegrator(self.store, self.queue, self.settings)

        self._lock = threading.RLock()
        # screenshot id -> element id -> annotation
        self._resolved: Dict[str, Dict[str, Annotation]] = {}
        self._states: Dict[str, ElementState] = {}

    # ------------------------------------------------------------------
    # Screenshot analysis
    # ------------------------------------------------------------------

    def _geometry(self, screen_size: Optional[Tuple[float, float]]) -> Tuple[float, float]:
        if screen_size is not None and validate_screen_size(screen_size):
            width, height = screen_size
        else:
            width, height = self.settings.default_screen_width, self.settings.default_screen_height
        return float((width ** 2 + height ** 2) ** 0.5), float(width * height)

    def _score(
        self,
        element: DetectedElement,
        owner_id: str,
        application_name: str,
        diagonal: float,
    ) -> Tuple[List[Pattern], MatchOutcome]:
        try:
            candidates = self.matcher.lookup(element, owner_id, application_name)
        except OSError as exc:
            raise PatternStoreUnavailable(f"Candidate lookup failed: {exc}") from exc
        return candidates, self.matcher.evaluate(element, candidates, diagonal)

    def analyze_screenshot(
        self,
        owner_id: str,
        application_name: str,
        raw_elements: Iterable[Mapping[str, Any]],
        screenshot_id: Optional[str] = None,
        screen_size: Optional[Tuple[float, float]] = None,
    ) -> ScreenshotAnalysis:
        """Match one screenshot's elements and raise questions for the rest.

        Malformed elements are dropped and reported in ``warnings``.

        Raises:
            PatternStoreUnavailable: the batch must be retried as a whole.
        """
        start = time.time()
        screenshot_id = screenshot_id or uuid.uuid4().hex
        diagonal, screen_area = self._geometry(screen_size)

        normalized = normalize_batch(raw_elements, screenshot_id=screenshot_id)
        analysis = ScreenshotAnalysis(
            screenshot_id=screenshot_id,
            owner_id=owner_id,
            application_name=application_name,
            elements=list(normalized.elements),
            warnings=[str(err) for err in normalized.errors],
        )
        if analysis.warnings:
            log.warning(f"Screenshot {screenshot_id}: dropped {len(analysis.warnings)} malformed element(s)")
        with self._lock:
            for element in normalized.elements:
                self._states[element.element_id] = ElementState.DETECTED

        # Phase 1: read-only scoring
        workers = max(1, min(self.settings.match_workers, len(normalized.elements) or 1))
        try:
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                scored = list(executor.map(
                    lambda e: self._score(e, owner_id, application_name, diagonal),
                    normalized.elements,
                ))
        except PatternStoreUnavailable:
            log.error(f"Screenshot {screenshot_id}: pattern store unavailable during matching")
            raise

        # Phase 2a: usage increments for matches, applied as one write
        try:
            matched = self.matcher.commit_all([outcome for _, outcome in scored])
        except PatternStoreUnavailable:
            log.error(f"Screenshot {screenshot_id}: pattern store unavailable while recording matches")
            raise
        bindings = [
            annotation_from_pattern(outcome.element, outcome.best.pattern, outcome.best.score)
            for outcome in matched
        ]

        # Phase 2b: record bindings and questions
        with self._lock:
            for annotation in bindings:
                self._bind(screenshot_id, annotation)
            for candidates, outcome in scored:
                element = outcome.element
                analysis.outcomes[element.element_id] = outcome.kind
                if outcome.kind is MatchKind.MATCHED:
                    continue
                self._states[element.element_id] = ElementState.UNMATCHED
                question = self._ask(owner_id, application_name, element, outcome, candidates, screen_area)
                analysis.questions.append(question)

            analysis.annotations = self.annotations_for(screenshot_id)

        log.log_performance(f"analyze_screenshot({screenshot_id})", (time.time() - start) * 1000)
        log.info(
            f"Screenshot {screenshot_id}: {len(bindings)} matched, "
            f"{len(analysis.questions)} question(s), {len(analysis.warnings)} warning(s)"
        )
        return analysis

    def _ask(
        self,
        owner_id: str,
        application_name: str,
        element: DetectedElement,
        outcome: MatchOutcome,
        candidates: Sequence[Pattern],
        screen_area: float,
    ) -> TrainingQuestion:
        signature = element_signature(owner_id, application_name, element)
        ranked = [c.pattern for c in outcome.ranked] if outcome.ranked else list(candidates)
        question = self.generator.generate(
            owner_id,
            application_name,
            element,
            outcome.kind,
            candidates=ranked,
            first_encounter=not self.queue.has_seen(signature),
            screen_area=screen_area,
        )
        question = self.queue.add(question, element)
        self._states[element.element_id] = ElementState.QUESTION_PENDING
        return question

    def _bind(self, screenshot_id: str, annotation: Annotation) -> None:
        resolved = self._resolved.setdefault(screenshot_id, {})
        if annotation.detected_element_id in resolved:
            # Matches are immutable once assigned.
            log.warning(f"Element {annotation.detected_element_id} is already bound, keeping first binding")
            return
        resolved[annotation.detected_element_id] = annotation
        self._states[annotation.detected_element_id] = ElementState.MATCHED

    # ------------------------------------------------------------------
    # Training loop
    # ------------------------------------------------------------------

    def submit_answer(
        self,
        question_id: str,
        answer_text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> IntegrationResult:
        """Integrate a human answer and bind the element to the resulting pattern."""
        if not answer_text or not answer_text.strip():
            raise ValueError("Answer text cannot be empty")

        answer = TrainingAnswer(question_id=question_id, answer_text=answer_text, metadata=metadata)
        result = self.integrator.integrate(answer)
        element = self.queue.element(result.question.element_id)
        with self._lock:
            self._states[element.element_id] = ElementState.ANSWERED
            screenshot_id = element.screenshot_id or ""
            self._bind(screenshot_id, annotation_from_pattern(element, result.pattern))
        return result

    def skip_question(self, question_id: str) -> TrainingQuestion:
        """Human declined to answer; the element is left out of assembly."""
        question = self.integrator.skip(question_id)
        with self._lock:
            self._states[question.element_id] = ElementState.SKIPPED
        return question

    def pending_questions(self, owner_id: str, application_name: Optional[str] = None) -> List[TrainingQuestion]:
        return self.queue.pending(owner_id, application_name)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def annotations_for(self, screenshot_id: str) -> List[Annotation]:
        """All resolved annotations of one screenshot, in reading order."""
        with self._lock:
            resolved = list(self._resolved.get(screenshot_id, {}).values())
        return assemble(resolved, self.settings.row_tolerance_px)

    def element_state(self, element_id: str) -> ElementState:
        with self._lock:
            state = self._states.get(element_id)
        if state is None:
            raise NotFoundError("DetectedElement", element_id)
        return state

    def list_patterns(self, owner_id: str, application_name: str, include_inactive: bool = False) -> List[Pattern]:
        return self.store.list_patterns(owner_id, application_name, include_inactive)

    def deactivate_pattern(self, pattern_id: int) -> Pattern:
        return self.store.deactivate(pattern_id)
