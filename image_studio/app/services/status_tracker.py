"""In-memory status cache for fast polling

Not authoritative: a miss or a stale entry must fall back to the database.
Terminal entries never change again and are trusted until evicted;
non-terminal entries are trusted only while fresher than
`freshness_seconds`, since another process may have finished the
generation meanwhile.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional
from image_studio.domain.generation import GenerationStatus


@dataclass(frozen=True)
class TrackedStatus:
    generation_id: str
    status: GenerationStatus
    user_id: Optional[str] = None
    error: Optional[str] = None
    result_refs: List[str] = field(default_factory=list)
    attempt: int = 0
    updated_at: float = 0.0


class StatusTracker:

    def __init__(
        self,
        freshness_seconds: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.freshness_seconds = freshness_seconds
        self._clock = clock
        self._statuses: Dict[str, TrackedStatus] = {}

    def update(self, generation_id: str, **fields) -> TrackedStatus:
        current = self._statuses.get(generation_id) or TrackedStatus(
            generation_id=generation_id,
            status=GenerationStatus.PENDING,
        )
        updated = replace(current, updated_at=self._clock(), **fields)
        self._statuses[generation_id] = updated
        return updated

    def get(self, generation_id: str) -> Optional[TrackedStatus]:
        return self._statuses.get(generation_id)

    def get_fresh(self, generation_id: str) -> Optional[TrackedStatus]:
        """The entry, unless it is non-terminal and older than the freshness bound"""
        tracked = self._statuses.get(generation_id)
        if tracked is None or tracked.status.is_terminal:
            return tracked
        if self._clock() - tracked.updated_at > self.freshness_seconds:
            return None
        return tracked

    def remove(self, generation_id: str) -> None:
        self._statuses.pop(generation_id, None)

    def all(self) -> List[TrackedStatus]:
        return list(self._statuses.values())

    def cleanup(self, max_age_seconds: float) -> int:
        """Evict entries untouched for more than max_age_seconds; returns the count."""
        cutoff = self._clock() - max_age_seconds
        stale = [
            generation_id
            for generation_id, tracked in self._statuses.items()
            if tracked.updated_at < cutoff
        ]
        for generation_id in stale:
            del self._statuses[generation_id]
        return len(stale)

    def __len__(self) -> int:
        return len(self._statuses)
