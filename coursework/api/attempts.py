"""Attempts started over HTTP, held by the app between requests."""

from __future__ import annotations

import threading

from loguru import logger

from coursework.assessment.attempt import Attempt
from coursework.core.auth import require_owner
from coursework.core.errors import NotFound


class AttemptRegistry:
    """Thread-safe attempt_id -> Attempt map."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attempts: dict[str, Attempt] = {}

    def add(self, attempt: Attempt) -> Attempt:
        with self._lock:
            self._attempts[attempt.attempt_id] = attempt
        return attempt

    def get(self, attempt_id: str, student_id: str) -> Attempt:
        with self._lock:
            attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise NotFound("attempts", attempt_id)
        require_owner(student_id, attempt.student_id, "attempt")
        return attempt

    def discard(self, attempt_id: str) -> Attempt | None:
        with self._lock:
            return self._attempts.pop(attempt_id, None)

    def expired(self, attempt: Attempt) -> None:
        """Countdown callback: drop an attempt once its timer has fired."""
        if self.discard(attempt.attempt_id) is not None:
            logger.debug("Attempt {} expired and left the registry", attempt.attempt_id)

    def cancel_all(self) -> int:
        """Stop every countdown (shutdown). Returns how many were held."""
        with self._lock:
            attempts = list(self._attempts.values())
            self._attempts.clear()
        for attempt in attempts:
            if attempt.countdown is not None:
                attempt.countdown.cancel()
        if attempts:
            logger.info("Cancelled {} open attempt countdown(s)", len(attempts))
        return len(attempts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)
