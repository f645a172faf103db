"""Score detected elements against learned patterns and decide the outcome.

Each candidate gets a weighted sum of three signals in [0, 1]:

* text similarity between the element text and the pattern's reference text,
* spatial similarity between box centres, relative to the screenshot diagonal,
* visual similarity between visual descriptors (neutral when absent).

The best candidate is only bound when it clears the match threshold *and*
leads the runner-up by the ambiguity margin. Close calls become questions.
"""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from .config import Config, config as default_config
from .errors import AmbiguousMatchError, UnmatchedElementError
from .logger import log
from .pattern_store import PatternStore
from ..training.models import MatchKind, Pattern
from ..vision.models import BoundingBox, DetectedElement

_WS_RE = re.compile(r"\s+")
# Float slack when comparing score differences against the margin
_EPS = 1e-9


def normalize_text(text: Optional[str]) -> str:
    """Lower-case and collapse whitespace; ``None`` becomes ``""``."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip().lower()


def text_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Normalized edit similarity; 1.0 when both are empty, 0.0 when only one is."""
    left, right = normalize_text(a), normalize_text(b)
    if not left and not right:
        return 1.0
    if not left or not right:
        return 0.0
    return difflib.SequenceMatcher(None, left, right).ratio()


def spatial_similarities(element_box: BoundingBox, boxes: Sequence[BoundingBox], diagonal: float) -> np.ndarray:
    """``1 - centre distance / diagonal`` for each box, floored at 0."""
    if not boxes:
        return np.zeros(0)
    cx, cy = element_box.center()
    centers = np.array([box.center() for box in boxes], dtype=float)
    distances = np.hypot(centers[:, 0] - cx, centers[:, 1] - cy)
    return np.clip(1.0 - distances / diagonal, 0.0, 1.0)


def _values_match(a: Any, b: Any, tolerance: float) -> bool:
    if isinstance(a, (int, float)) and isinstance(b, (int, float)) and not isinstance(a, bool) and not isinstance(b, bool):
        scale = max(abs(a), abs(b), 1.0)
        return abs(a - b) <= tolerance * scale
    if isinstance(a, str) and isinstance(b, str):
        return a.strip().lower() == b.strip().lower()
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(_values_match(x, y, tolerance) for x, y in zip(a, b))
    return a == b


def visual_similarity(
    a: Optional[Mapping[str, Any]],
    b: Optional[Mapping[str, Any]],
    tolerance: float,
) -> float:
    """1.0 on match, 0.0 on mismatch, 0.5 when either side has no descriptors.

    Only descriptors present on both sides are compared; no shared key is
    treated as absent.
    """
    if not a or not b:
        return 0.5
    shared = sorted(set(a) & set(b))
    if not shared:
        return 0.5
    if all(_values_match(a[key], b[key], tolerance) for key in shared):
        return 1.0
    return 0.0


@dataclass(frozen=True)
class ScoredCandidate:
    """One candidate pattern with its combined and per-signal scores."""

    pattern: Pattern
    score: float
    text_score: float
    spatial_score: float
    visual_score: float


@dataclass(frozen=True)
class MatchOutcome:
    """Result of matching one detected element."""

    element: DetectedElement
    kind: MatchKind
    best: Optional[ScoredCandidate] = None
    second: Optional[ScoredCandidate] = None
    ranked: tuple[ScoredCandidate, ...] = field(default_factory=tuple)
    eligible: bool = True

    @property
    def candidate_ids(self) -> tuple[int, ...]:
        return tuple(c.pattern.pattern_id for c in self.ranked)

    def require_pattern(self) -> Pattern:
        """Return the bound pattern or raise for unmatched/ambiguous outcomes."""
        if self.kind is MatchKind.MATCHED:
            return self.best.pattern
        if self.kind is MatchKind.AMBIGUOUS:
            raise AmbiguousMatchError(
                self.element.element_id,
                self.best.pattern.pattern_id,
                self.second.pattern.pattern_id,
            )
        raise UnmatchedElementError(self.element.element_id)


def _rank_key(candidate: ScoredCandidate) -> tuple:
    # Higher score, then more field-proven, then most recently created.
    p = candidate.pattern
    return (-candidate.score, -p.usage_count, -p.created_at, -(p.pattern_id or 0))


class Matcher:
    """Decides match / unmatched / ambiguous for detected elements."""

    def __init__(self, store: PatternStore, settings: Optional[Config] = None) -> None:
        self.store = store
        self.settings = settings or default_config
        self.settings.validate_config()

    def score_candidates(
        self,
        element: DetectedElement,
        candidates: Sequence[Pattern],
        diagonal: Optional[float] = None,
    ) -> List[ScoredCandidate]:
        """Score every candidate and return them best-first."""
        if not candidates:
            return []
        s = self.settings
        diagonal = diagonal or s.screen_diagonal()
        spatial = spatial_similarities(
            element.bounding_box, [p.reference_bounding_box for p in candidates], diagonal
        )
        scored = []
        for pattern, spatial_score in zip(candidates, spatial):
            text_score = text_similarity(element.text, pattern.reference_text)
            visual_score = visual_similarity(
                element.visual_features, pattern.visual_features, s.visual_tolerance
            )
            total = (
                s.text_weight * text_score
                + s.spatial_weight * float(spatial_score)
                + s.visual_weight * visual_score
            )
            scored.append(
                ScoredCandidate(
                    pattern=pattern,
                    score=round(total, 6),
                    text_score=text_score,
                    spatial_score=float(spatial_score),
                    visual_score=visual_score,
                )
            )
        scored.sort(key=_rank_key)
        return scored

    def evaluate(
        self,
        element: DetectedElement,
        candidates: Sequence[Pattern],
        diagonal: Optional[float] = None,
    ) -> MatchOutcome:
        """Pure decision for one element; never touches the store."""
        if element.confidence < self.settings.min_detection_confidence:
            log.log_match_decision(element.element_id, "unmatched (below detection gate)")
            return MatchOutcome(element=element, kind=MatchKind.UNMATCHED, eligible=False)

        ranked = self.score_candidates(element, candidates, diagonal)
        if not ranked:
            log.log_match_decision(element.element_id, MatchKind.UNMATCHED.value)
            return MatchOutcome(element=element, kind=MatchKind.UNMATCHED)

        best = ranked[0]
        second = ranked[1] if len(ranked) > 1 else None
        second_score = second.score if second else 0.0

        if best.score + _EPS < self.settings.match_threshold:
            kind = MatchKind.UNMATCHED
        elif best.score - second_score + _EPS >= self.settings.ambiguity_margin:
            kind = MatchKind.MATCHED
        else:
            kind = MatchKind.AMBIGUOUS

        log.log_match_decision(element.element_id, kind.value, best.score)
        return MatchOutcome(element=element, kind=kind, best=best, second=second, ranked=tuple(ranked))

    def lookup(self, element: DetectedElement, owner_id: str, application_name: str) -> List[Pattern]:
        """Fetch the scoped candidate set for an element."""
        return self.store.candidates(owner_id, application_name, element.element_type)

    def match(
        self,
        element: DetectedElement,
        owner_id: str,
        application_name: str,
        diagonal: Optional[float] = None,
    ) -> MatchOutcome:
        """Look up candidates, decide, and record usage on a match."""
        outcome = self.evaluate(element, self.lookup(element, owner_id, application_name), diagonal)
        if outcome.kind is MatchKind.MATCHED:
            self.commit(outcome)
        return outcome

    def commit(self, outcome: MatchOutcome) -> MatchOutcome:
        """Apply the ``touch`` for a matched outcome; returns it with the fresh count."""
        if outcome.kind is not MatchKind.MATCHED:
            return outcome
        pattern = outcome.best.pattern
        pattern.usage_count = self.store.touch(pattern.pattern_id)
        return outcome

    def commit_all(self, outcomes: Sequence[MatchOutcome]) -> List[MatchOutcome]:
        """Touch every matched outcome in one all-or-nothing store write."""
        matched = [o for o in outcomes if o.kind is MatchKind.MATCHED]
        counts = self.store.touch_many([o.best.pattern.pattern_id for o in matched])
        for outcome in matched:
            pattern = outcome.best.pattern
            # Two elements may share a pattern; both see the count after the batch.
            pattern.usage_count = counts[pattern.pattern_id]
        return matched
