"""Core components of the pattern training engine."""

from .config import Config, config
from .logger import Logger, log
from .errors import (
    AmbiguousMatchError,
    MalformedInputError,
    NotFoundError,
    OrphanedAnswerError,
    PatternEngineError,
    PatternStoreUnavailable,
    UnmatchedElementError,
)

__all__ = [
    "AmbiguousMatchError",
    "Config",
    "Logger",
    "MalformedInputError",
    "NotFoundError",
    "OrphanedAnswerError",
    "PatternEngineError",
    "PatternStoreUnavailable",
    "UnmatchedElementError",
    "config",
    "log",
]
