"""
Per-attempt session state and its countdown.

An Attempt is owned by the caller (API request registry, CLI session,
test) and passed back into the engine; the engine keeps no attempt state
of its own. Lifecycle: NOT_STARTED -> IN_PROGRESS -> SUBMITTED.
"""

from __future__ import annotations

import math
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from coursework.assessment.models import OPTIONS_PER_QUESTION, Assessment, AssessmentResult
from coursework.core.errors import InvalidState, LMSError, ValidationError


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


@dataclass
class Attempt:
    """One student's single run through an assessment."""

    attempt_id: str
    student_id: str
    assessment: Assessment
    started_at: float  # monotonic seconds
    deadline: float  # monotonic seconds
    started_at_wall: datetime | None = None
    answers: dict[int, int] = field(default_factory=dict)
    state: AttemptState = AttemptState.NOT_STARTED
    result: AssessmentResult | None = None
    countdown: AttemptCountdown | None = field(default=None, repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def assessment_id(self) -> str:
        return self.assessment.id

    def seconds_remaining(self, now: float) -> int:
        return max(0, math.ceil(self.deadline - now))

    def record(self, question_index: int, option_index: int, now: float | None = None) -> None:
        """
        Overwrite the answer for one question. Correctness is not checked here.

        With ``now`` given, answers arriving after the deadline are refused.
        """
        with self.lock:
            if self.state is not AttemptState.IN_PROGRESS:
                raise InvalidState(f"attempt {self.attempt_id} is {self.state.value}")
            if now is not None and self.seconds_remaining(now) == 0:
                raise InvalidState(f"attempt {self.attempt_id} is past its deadline")
            q, o = validate_answer(self.assessment, question_index, option_index)
            self.answers[q] = o

    def to_dict(self, now: float | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "attemptId": self.attempt_id,
            "studentId": self.student_id,
            "assessmentId": self.assessment.id,
            "assessment": self.assessment.to_dict(include_answers=False),
            "state": self.state.value,
            "startedAt": self.started_at_wall,
            "timeLimitSeconds": self.assessment.time_limit_seconds,
            "answers": {str(k): v for k, v in self.answers.items()},
        }
        if now is not None:
            payload["secondsRemaining"] = self.seconds_remaining(now)
        if self.result is not None:
            payload["result"] = self.result.to_dict()
        return payload


def validate_answer(assessment: Assessment, question_index: Any, option_index: Any) -> tuple[int, int]:
    """Return both indices as ints if they are in range, else ValidationError."""
    try:
        q = int(question_index)
        o = int(option_index)
    except (TypeError, ValueError):
        raise ValidationError(
            "answer indices must be integers",
            question_index=str(question_index),
            option_index=str(option_index),
        ) from None
    if not 0 <= q < len(assessment.questions):
        raise ValidationError(f"question index {q} out of range", question_index=q)
    if not 0 <= o < OPTIONS_PER_QUESTION:
        raise ValidationError(f"option index {o} out of range", option_index=o)
    return q, o


class AttemptCountdown:
    """
    Cancellable timer that fires the timeout submit once.

    ``timer_factory`` follows ``threading.Timer(interval, function)``.
    Cancelling after the timer fired, or firing after a cancel, is harmless.
    """

    def __init__(
        self,
        seconds: float,
        on_expire: Callable[[], Any],
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ):
        self.seconds = seconds
        self._on_expire = on_expire
        self._cancelled = threading.Event()
        self._fired = threading.Event()
        self._timer = timer_factory(seconds, self._fire)
        if hasattr(self._timer, "daemon"):
            self._timer.daemon = True

    @property
    def active(self) -> bool:
        return not (self._cancelled.is_set() or self._fired.is_set())

    @property
    def fired(self) -> bool:
        return self._fired.is_set()

    def start(self) -> AttemptCountdown:
        self._timer.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()
        self._timer.cancel()

    def _fire(self) -> None:
        if self._cancelled.is_set() or self._fired.is_set():
            return
        self._fired.set()
        try:
            self._on_expire()
        except LMSError as e:
            # Runs on the timer thread; nobody else would see this
            logger.warning("Timed-out submit failed: {} ({})", e.message, e.kind.value)
