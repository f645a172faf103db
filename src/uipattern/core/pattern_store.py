"""Per-user, per-application knowledge base of learned patterns.

Candidate retrieval is keyed by ``(owner_id, application_name, element_type)``
and never crosses that scope. Patterns are never deleted, only deactivated,
and ``usage_count`` only goes up.
"""

from __future__ import annotations

import copy
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ..training.models import Pattern
from ..utils.file_utils import load_json, save_json
from ..vision.models import ElementType
from .errors import NotFoundError, PatternStoreUnavailable

ScopeKey = Tuple[str, str, ElementType]


class PatternStore(ABC):
    """Operations the matcher and the answer integrator rely on."""

    @abstractmethod
    def candidates(self, owner_id: str, application_name: str, element_type: ElementType) -> List[Pattern]:
        """Active patterns for exactly this owner, application and element type."""

    @abstractmethod
    def insert(self, pattern: Pattern) -> Pattern:
        """Store a new pattern and return it with its assigned id."""

    @abstractmethod
    def touch(self, pattern_id: int) -> int:
        """Atomically increment ``usage_count``; returns the new count."""

    @abstractmethod
    def touch_many(self, pattern_ids: Sequence[int]) -> Dict[int, int]:
        """Increment several patterns as one write; all or nothing."""

    @abstractmethod
    def deactivate(self, pattern_id: int) -> Pattern:
        """Exclude a pattern from matching while keeping it for audit."""

    @abstractmethod
    def get(self, pattern_id: int) -> Pattern:
        """Return a snapshot of one pattern."""

    @abstractmethod
    def list_patterns(self, owner_id: str, application_name: str, include_inactive: bool = False) -> List[Pattern]:
        """All patterns of one scope, oldest first."""


class InMemoryPatternStore(PatternStore):
    """Thread-safe in-process pattern store.

    Every read returns copies, so callers holding a pattern never observe a
    concurrent ``touch`` halfway through scoring. A write whose ``_persist``
    fails is undone before the error propagates.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._patterns: Dict[int, Pattern] = {}
        self._index: Dict[ScopeKey, List[int]] = {}
        self._next_id = 1

    @staticmethod
    def _key(owner_id: str, application_name: str, element_type: ElementType) -> ScopeKey:
        return owner_id, application_name, element_type

    def _require(self, pattern_id: int) -> Pattern:
        pattern = self._patterns.get(pattern_id)
        if pattern is None:
            raise NotFoundError("Pattern", pattern_id)
        return pattern

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held after each write."""

    def candidates(self, owner_id: str, application_name: str, element_type: ElementType) -> List[Pattern]:
        with self._lock:
            ids = self._index.get(self._key(owner_id, application_name, element_type), [])
            return [copy.deepcopy(self._patterns[pid]) for pid in ids if self._patterns[pid].is_active]

    def insert(self, pattern: Pattern) -> Pattern:
        with self._lock:
            stored = copy.deepcopy(pattern)
            stored.pattern_id = self._next_id
            key = self._key(stored.owner_id, stored.application_name, stored.element_type)
            self._patterns[stored.pattern_id] = stored
            self._index.setdefault(key, []).append(stored.pattern_id)
            try:
                self._persist()
            except PatternStoreUnavailable:
                del self._patterns[stored.pattern_id]
                self._index[key].remove(stored.pattern_id)
                raise
            self._next_id += 1
            logger.debug("Inserted pattern #{0} for {1}", stored.pattern_id, key)
            return copy.deepcopy(stored)

    def touch(self, pattern_id: int) -> int:
        return self.touch_many([pattern_id])[pattern_id]

    def touch_many(self, pattern_ids: Sequence[int]) -> Dict[int, int]:
        # Every id is resolved before anything changes, so an unknown id writes nothing.
        with self._lock:
            targets = [self._require(pid) for pid in pattern_ids]
            if not targets:
                return {}
            for pattern in targets:
                pattern.usage_count += 1
            try:
                self._persist()
            except PatternStoreUnavailable:
                for pattern in targets:
                    pattern.usage_count -= 1
                raise
            return {pattern.pattern_id: pattern.usage_count for pattern in targets}

    def deactivate(self, pattern_id: int) -> Pattern:
        with self._lock:
            pattern = self._require(pattern_id)
            if pattern.is_active:
                pattern.is_active = False
                try:
                    self._persist()
                except PatternStoreUnavailable:
                    pattern.is_active = True
                    raise
                logger.info("Deactivated pattern #{0}", pattern_id)
            return copy.deepcopy(pattern)

    def get(self, pattern_id: int) -> Pattern:
        with self._lock:
            return copy.deepcopy(self._require(pattern_id))

    def list_patterns(self, owner_id: str, application_name: str, include_inactive: bool = False) -> List[Pattern]:
        with self._lock:
            found = [
                p for p in self._patterns.values()
                if p.owner_id == owner_id and p.application_name == application_name
                and (include_inactive or p.is_active)
            ]
            return [copy.deepcopy(p) for p in sorted(found, key=lambda p: p.pattern_id)]

    def export_data(self) -> Dict[str, Any]:
        """Export every pattern for snapshots or persistence."""
        with self._lock:
            return {
                "next_id": self._next_id,
                "patterns": [self._patterns[pid].to_dict() for pid in sorted(self._patterns)],
            }

    def import_data(self, data: Dict[str, Any]) -> None:
        """Replace the store contents with a previously exported snapshot."""
        with self._lock:
            self._patterns.clear()
            self._index.clear()
            for item in data.get("patterns", []):
                pattern = Pattern.from_dict(item)
                self._patterns[pattern.pattern_id] = pattern
                key = self._key(pattern.owner_id, pattern.application_name, pattern.element_type)
                self._index.setdefault(key, []).append(pattern.pattern_id)
            highest = max(self._patterns, default=0)
            self._next_id = max(int(data.get("next_id", 1)), highest + 1)
        logger.info("Imported {0} patterns", len(self._patterns))


class JsonPatternStore(InMemoryPatternStore):
    """Pattern store persisted to a JSON file after every write."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        if os.path.exists(path):
            data = load_json(path)
            if not isinstance(data, dict):
                raise PatternStoreUnavailable(f"Pattern store file {path} is unreadable")
            try:
                self.import_data(data)
            except (KeyError, TypeError, ValueError) as exc:
                raise PatternStoreUnavailable(f"Pattern store file {path} is corrupt: {exc}") from exc

    def _persist(self) -> None:
        if not save_json(self.export_data(), self.path):
            raise PatternStoreUnavailable(f"Could not write pattern store to {self.path}")


def create_pattern_store(path: Optional[str] = None) -> PatternStore:
    """Build the store selected by configuration."""
    if path:
        return JsonPatternStore(path)
    return InMemoryPatternStore()
