"""Knowledge-base and training records.

Entities refer to each other by id only; navigation goes through the pattern
store or the question queue.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from ..vision.models import BoundingBox, ElementType


class QuestionType(str, Enum):
    """What a training question asks the human about."""

    PURPOSE = "purpose"
    ACTION = "action"
    INPUT = "input"
    CONTEXT = "context"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ANSWERED = "answered"
    SKIPPED = "skipped"


class MatchKind(str, Enum):
    """Matcher outcome for one detected element."""

    MATCHED = "matched"
    UNMATCHED = "unmatched"
    AMBIGUOUS = "ambiguous"


@dataclass
class Pattern:
    """A learned description of what an element means in one user's application."""

    owner_id: str
    application_name: str
    element_type: ElementType
    reference_bounding_box: BoundingBox
    reference_text: Optional[str]
    purpose: str
    action: Optional[str] = None
    business_context: Optional[str] = None
    visual_features: Optional[dict[str, Any]] = None
    confidence: float = 1.0
    usage_count: int = 1
    is_active: bool = True
    created_at: float = field(default_factory=time.time)
    pattern_id: Optional[int] = None

    @property
    def scope(self) -> tuple[str, str]:
        return self.owner_id, self.application_name

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["element_type"] = self.element_type.value
        data["reference_bounding_box"] = self.reference_bounding_box.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pattern":
        return cls(
            owner_id=data["owner_id"],
            application_name=data["application_name"],
            element_type=ElementType(data["element_type"]),
            reference_bounding_box=BoundingBox.from_dict(data["reference_bounding_box"]),
            reference_text=data.get("reference_text"),
            purpose=data["purpose"],
            action=data.get("action"),
            business_context=data.get("business_context"),
            visual_features=data.get("visual_features"),
            confidence=float(data.get("confidence", 1.0)),
            usage_count=int(data.get("usage_count", 1)),
            is_active=bool(data.get("is_active", True)),
            created_at=float(data.get("created_at", 0.0)),
            pattern_id=data.get("pattern_id"),
        )


def _new_question_id() -> str:
    return uuid.uuid4().hex


@dataclass
class TrainingQuestion:
    """A pending request for human clarification about one detected element."""

    owner_id: str
    application_name: str
    element_id: str
    question_type: QuestionType
    priority: int
    prompt: str
    signature: str
    match_kind: MatchKind = MatchKind.UNMATCHED
    candidate_ids: tuple[int, ...] = ()
    status: QuestionStatus = QuestionStatus.PENDING
    created_at: float = field(default_factory=time.time)
    question_id: str = field(default_factory=_new_question_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "owner_id": self.owner_id,
            "application_name": self.application_name,
            "element_id": self.element_id,
            "question_type": self.question_type.value,
            "priority": self.priority,
            "prompt": self.prompt,
            "match_kind": self.match_kind.value,
            "candidate_ids": list(self.candidate_ids),
            "status": self.status.value,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class TrainingAnswer:
    """The human response resolving exactly one training question."""

    question_id: str
    answer_text: str
    metadata: Optional[dict[str, Any]] = None
    created_at: float = field(default_factory=time.time)

    @property
    def confidence(self) -> float:
        # Human answers are authoritative.
        return 1.0

    def field_value(self, name: str) -> Optional[str]:
        """Return a non-blank string from ``metadata[name]``, if any."""
        if not self.metadata:
            return None
        value = self.metadata.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def free_context(self, exclude: Iterable[str] = ()) -> Optional[str]:
        """Render metadata outside ``exclude`` as ``key: value`` text, in submission order."""
        if not self.metadata:
            return None
        skipped = set(exclude)
        parts = []
        for key, value in self.metadata.items():
            if key in skipped or value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            elif not isinstance(value, (int, float, bool)):
                value = json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)
            parts.append(f"{key}: {value}")
        return "; ".join(parts) or None


@dataclass(frozen=True)
class Annotation:
    """A documentation-ready binding of one element to its meaning."""

    detected_element_id: str
    bounding_box: BoundingBox
    purpose: str
    action: Optional[str]
    pattern_id: Optional[int] = None
    element_type: ElementType = ElementType.UNKNOWN
    text: Optional[str] = None
    business_context: Optional[str] = None
    match_score: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "detectedElementId": self.detected_element_id,
            "patternId": self.pattern_id,
            "purpose": self.purpose,
            "action": self.action,
            "boundingBox": self.bounding_box.to_dict(),
            "elementType": self.element_type.value,
            "text": self.text,
            "businessContext": self.business_context,
            "matchScore": self.match_score,
        }
