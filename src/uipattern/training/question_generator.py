"""Build prioritized training questions for elements the matcher could not bind."""

from __future__ import annotations

import math
import re
from typing import Optional, Sequence

from ..core.config import Config, config as default_config
from ..core.logger import log
from ..vision.models import INTERACTIVE_TYPES, DetectedElement, ElementType
from .models import MatchKind, Pattern, QuestionType, TrainingQuestion
from .question_queue import QuestionQueue

# Element types the trainer usually wants explained first. Once answers come in,
# the observed answer rate per type is blended in.
TYPE_SALIENCE: dict[ElementType, float] = {
    ElementType.BUTTON: 1.0,
    ElementType.INPUT: 0.9,
    ElementType.DROPDOWN: 0.85,
    ElementType.MENU: 0.8,
    ElementType.LINK: 0.75,
    ElementType.CHECKBOX: 0.7,
    ElementType.RADIO: 0.7,
    ElementType.DIALOG: 0.6,
    ElementType.TABLE: 0.5,
    ElementType.LABEL: 0.3,
    ElementType.UNKNOWN: 0.1,
}

# An element covering this share of the screenshot counts as fully salient.
_FULL_SALIENCE_AREA = 0.05

_SIGNATURE_TEXT_LEN = 32
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_TOKEN_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9\-_/#.]*")
_ACRONYM_RE = re.compile(r"^[A-Z]{2,6}s?$")
_CODE_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z0-9\-_/#.]+$")

# Generic UI vocabulary that never signals business wording.
_COMMON_UI_WORDS = frozenset({
    "ok", "id", "ui", "url", "pdf", "csv", "faq", "am", "pm", "usd", "eur", "gbp",
})


def element_signature(owner_id: str, application_name: str, element: DetectedElement) -> str:
    """Identity of "the same kind of element" for first-encounter detection."""
    approx_text = _NON_ALNUM_RE.sub(" ", (element.text or "").lower()).strip()
    approx_text = " ".join(approx_text.split())[:_SIGNATURE_TEXT_LEN]
    return "|".join((owner_id, application_name, element.element_type.value, approx_text))


def has_domain_wording(text: Optional[str], domain_terms: Sequence[str] = ()) -> bool:
    """Heuristic for business-specific wording: acronyms, codes or configured terms."""
    if not text:
        return False
    terms = {t.lower() for t in domain_terms}
    lowered = text.lower()
    if any(term and term in lowered for term in terms):
        return True
    for token in _TOKEN_RE.findall(text):
        if token.lower() in _COMMON_UI_WORDS:
            continue
        if _ACRONYM_RE.match(token) or _CODE_RE.match(token):
            return True
    return False


def _describe(element: DetectedElement) -> str:
    kind = element.element_type.value
    if element.element_type is ElementType.UNKNOWN:
        kind = "element"
    if element.text:
        return f"the {kind} labelled '{element.text}'"
    top, left = int(element.bounding_box.top), int(element.bounding_box.left)
    return f"the unlabelled {kind} at ({left}, {top})"


class QuestionGenerator:
    """Chooses the question type and priority for an unresolved element."""

    def __init__(self, settings: Optional[Config] = None, history: Optional[QuestionQueue] = None) -> None:
        self.settings = settings or default_config
        self.history = history

    def type_score(self, element_type: ElementType) -> float:
        """Type salience in [0, 1], blended half and half with the answer rate seen so far."""
        base = TYPE_SALIENCE.get(element_type, 0.1)
        rate = self.history.answer_rate(element_type) if self.history is not None else None
        if rate is None:
            return base
        return 0.5 * base + 0.5 * rate

    def priority(
        self,
        element: DetectedElement,
        screen_area: Optional[float] = None,
        ambiguous: bool = False,
    ) -> int:
        """Priority 1-10, non-decreasing in box area, detection confidence and type score."""
        s = self.settings
        screen_area = screen_area or float(s.default_screen_width * s.default_screen_height)
        area_share = element.bounding_box.area() / screen_area
        area_score = min(1.0, math.sqrt(area_share / _FULL_SALIENCE_AREA))
        confidence = min(1.0, max(0.0, element.confidence))
        type_score = self.type_score(element.element_type)

        salience = 0.4 * area_score + 0.35 * confidence + 0.25 * type_score
        value = 1 + int(math.floor(salience * 9 + 1e-9))
        if ambiguous:
            value -= s.ambiguous_priority_penalty
        return max(1, min(10, value))

    def choose_type(
        self,
        element: DetectedElement,
        candidates: Sequence[Pattern],
        first_encounter: bool,
    ) -> QuestionType:
        if first_encounter:
            return QuestionType.PURPOSE
        if element.element_type in INTERACTIVE_TYPES and not any(p.action for p in candidates):
            return QuestionType.ACTION
        if has_domain_wording(element.text, self.settings.domain_terms):
            return QuestionType.CONTEXT
        if element.element_type is ElementType.INPUT:
            return QuestionType.INPUT
        return QuestionType.PURPOSE

    def build_prompt(
        self,
        question_type: QuestionType,
        element: DetectedElement,
        candidates: Sequence[Pattern] = (),
    ) -> str:
        subject = _describe(element)
        if candidates:
            options = " or ".join(f"'{p.purpose}'" for p in candidates[:2])
            return f"Is {subject} {options}? If neither, what is it for?"
        if question_type is QuestionType.ACTION:
            return f"What happens when you use {subject}?"
        if question_type is QuestionType.INPUT:
            return f"What should be entered into {subject}?"
        if question_type is QuestionType.CONTEXT:
            return f"What does {subject} mean in your business?"
        return f"What is the purpose of {subject}?"

    def generate(
        self,
        owner_id: str,
        application_name: str,
        element: DetectedElement,
        match_kind: MatchKind,
        candidates: Sequence[Pattern] = (),
        first_encounter: bool = True,
        screen_area: Optional[float] = None,
    ) -> TrainingQuestion:
        """Create the question for an ``unmatched`` or ``ambiguous`` element.

        ``candidates`` are the scope's active patterns, best-first; for an
        ambiguous outcome the first two are the contenders offered to the
        human.
        """
        if match_kind is MatchKind.MATCHED:
            raise ValueError("Matched elements do not need a training question")

        ambiguous = match_kind is MatchKind.AMBIGUOUS
        question_type = self.choose_type(element, candidates, first_encounter)
        contenders = list(candidates[:2]) if ambiguous else []

        question = TrainingQuestion(
            owner_id=owner_id,
            application_name=application_name,
            element_id=element.element_id,
            question_type=question_type,
            priority=self.priority(element, screen_area, ambiguous),
            prompt=self.build_prompt(question_type, element, contenders),
            signature=element_signature(owner_id, application_name, element),
            match_kind=match_kind,
            candidate_ids=tuple(p.pattern_id for p in contenders),
        )
        log.log_question(question)
        return question
