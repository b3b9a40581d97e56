"""
HAR Replay Response Store

Keyed FIFO queues of compiled responses, drained one response per request.
"""

import threading
from collections import deque
from typing import Deque, Dict, List, Optional

from .models import CompiledResponse


class ResponseStore:
    """
    Maps a match key to the queue of responses recorded for it.

    Responses for a key are served oldest-first, each at most once, so that
    repeated identical requests (polling, paginated retries) replay the
    recorded state progression instead of one fixed response.

    A drained key stays in the mapping with an empty queue; it is never
    removed on its own.

    Example:
        store = ResponseStore()
        store.append('GET /status', first)
        store.append('GET /status', second)

        store.consume_one('GET /status')  # first
        store.consume_one('GET /status')  # second
        store.consume_one('GET /status')  # None
    """

    def __init__(self, repeat_last: bool = False):
        """
        Initialize response store.

        Args:
            repeat_last: Keep serving the final response of a queue instead of
                exhausting it
        """
        self.repeat_last = repeat_last
        self._queues: Dict[str, Deque[CompiledResponse]] = {}
        self._lock = threading.Lock()

    def append(self, key: str, response: CompiledResponse) -> None:
        """Add a response to the tail of the key's queue."""
        with self._lock:
            queue = self._queues.get(key)
            if queue is None:
                queue = self._queues[key] = deque()
            queue.append(response)

    def consume_one(self, key: str) -> Optional[CompiledResponse]:
        """
        Take the oldest remaining response for a key.

        Args:
            key: Match key

        Returns:
            The response, or None if the key was never populated or is drained
        """
        with self._lock:
            queue = self._queues.get(key)
            if not queue:
                return None
            if self.repeat_last and len(queue) == 1:
                return queue[0]
            return queue.popleft()

    def remaining(self, key: str) -> int:
        """Number of responses still queued for a key."""
        with self._lock:
            return len(self._queues.get(key, ()))

    def total_remaining(self) -> int:
        """Number of responses still queued across all keys."""
        with self._lock:
            return sum(len(q) for q in self._queues.values())

    def keys(self) -> List[str]:
        """All keys ever populated, in first-insertion order."""
        with self._lock:
            return list(self._queues)

    def snapshot(self) -> Dict[str, int]:
        """Per-key remaining counts."""
        with self._lock:
            return {key: len(queue) for key, queue in self._queues.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._queues

    def __len__(self) -> int:
        return len(self._queues)
