"""Exception hierarchy for the pattern training engine."""

from __future__ import annotations

from typing import Optional, Union


class PatternEngineError(Exception):
    """Base class for all engine errors."""


class MalformedInputError(PatternEngineError):
    """A raw vision element could not be normalized.

    Reported per element; the rest of the batch proceeds.
    """

    def __init__(self, reason: str, index: Optional[int] = None) -> None:
        self.reason = reason
        self.index = index
        prefix = f"element {index}: " if index is not None else ""
        super().__init__(f"{prefix}{reason}")


class AmbiguousMatchError(PatternEngineError):
    """Two candidate patterns scored too close to pick one."""

    def __init__(self, element_id: str, best_id: Optional[int], second_id: Optional[int]) -> None:
        self.element_id = element_id
        self.best_id = best_id
        self.second_id = second_id
        super().__init__(
            f"Element {element_id} is ambiguous between patterns {best_id} and {second_id}"
        )


class UnmatchedElementError(PatternEngineError):
    """No candidate pattern reached the match threshold."""

    def __init__(self, element_id: str) -> None:
        self.element_id = element_id
        super().__init__(f"Element {element_id} has no matching pattern")


class OrphanedAnswerError(PatternEngineError):
    """An answer or dismissal arrived for a question that is no longer pending."""

    def __init__(self, question_id: str, status: str) -> None:
        self.question_id = question_id
        self.status = status
        super().__init__(f"Question {question_id} is already {status}")


class PatternStoreUnavailable(PatternEngineError):
    """The knowledge base could not be reached; the batch must be retried."""


class NotFoundError(PatternEngineError):
    """A referenced question, pattern or element does not exist."""

    def __init__(self, resource: str, identifier: Union[str, int, None] = None) -> None:
        self.resource = resource
        self.identifier = identifier
        if identifier is not None:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)
