"""Admission gate rejecting duplicate concurrent analyses."""

import hashlib
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Protocol, Set

from utils.errors import AnalysisInProgress

logger = logging.getLogger(__name__)


def dedup_key(video_url: str, intention: str) -> str:
    """Stable key for a (video URL, trimmed intention) pair."""
    payload = f"{video_url}\0{intention.strip()}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


class InFlightStore(Protocol):
    """Storage for keys of analyses currently running."""

    def try_acquire(self, key: str) -> bool:
        """Insert key if absent; return False if it was already present."""
        ...

    def release(self, key: str) -> None:
        ...


class InMemoryInFlightStore:
    """Process-local in-flight set with atomic insert-if-absent."""

    def __init__(self):
        self._keys: Set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)


class RequestDeduplicator:
    """Allows at most one in-flight analysis per (video URL, intention).

    Duplicates are rejected immediately, never queued. This is not a cache:
    once an analysis finishes, the same request runs again in full.
    """

    def __init__(self, store: InFlightStore):
        self.store = store

    @contextmanager
    def admit(self, video_url: str, intention: str) -> Iterator[str]:
        """Hold the request's key for the duration of the block.

        Raises:
            AnalysisInProgress: an identical request is already running
        """
        key = dedup_key(video_url, intention)
        if not self.store.try_acquire(key):
            logger.info(f"Rejected duplicate analysis request for {video_url}")
            raise AnalysisInProgress(
                "Analysis already in progress for this video and learning intention"
            )

        try:
            yield key
        finally:
            self.store.release(key)
