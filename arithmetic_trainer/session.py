"""Session engine for the timed arithmetic drill.

The engine is a deterministic state machine::

    IDLE -> RUNNING -> ENDED

Time comes only from the injected ``Clock``; the countdown advances when the
owner calls :meth:`SessionEngine.tick` (once per UI frame, or explicitly from
tests). A wrong answer never advances the session: the same problem stays on
screen until it is solved or time runs out. When the deadline passes the
engine ends the session even if an answer is half typed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from .clock import Clock, format_timestamp, utc_now
from .config import TrainerSettings
from .errors import ConfigError, InvalidStateError, PersistenceError
from .generator import ProblemGenerator
from .models import Problem, SessionResult, operations_in_order
from .persistence import STORAGE_ERRORS, as_persistence_error

log = logging.getLogger(__name__)

FEEDBACK_VISIBLE_S = 1.5
FEEDBACK_CORRECT = "Correct!"
FEEDBACK_INCORRECT = "Incorrect. Try again!"


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ENDED = "ended"


class AnswerOutcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    IGNORED = "ignored"


class ResultSink(Protocol):
    def record(self, result: SessionResult) -> object:
        """Persist a finished session."""
        ...


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    state: SessionState
    prompt: str
    entry: str
    seconds_left: int
    score: int
    feedback: str | None = None
    feedback_correct: bool = False


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def compute_accuracy(score: int, problems_solved: int) -> int:
    if problems_solved <= 0:
        return 0
    return round_half_up(score / problems_solved * 100.0)


class SessionEngine:
    def __init__(
        self,
        settings: TrainerSettings,
        *,
        clock: Clock,
        generator: ProblemGenerator | None = None,
        seed: int | None = None,
        sink: ResultSink | None = None,
        wall_clock: Callable[[], datetime] = utc_now,
        strict: bool = False,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._generator = generator if generator is not None else ProblemGenerator(seed=seed)
        self._sink = sink
        self._wall_clock = wall_clock
        self._strict = strict

        self._state = SessionState.IDLE
        self._duration_s = int(settings.duration_s)
        self._started_at: float | None = None
        self._seconds_left = self._duration_s

        self._current: Problem | None = None
        self._presented_at: float | None = None
        self._presented: list[Problem] = []
        self._solved: list[Problem] = []
        self._score = 0
        self._entry = ""

        self._feedback: str | None = None
        self._feedback_at: float | None = None

        self._result: SessionResult | None = None
        self._persistence_error: PersistenceError | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def settings(self) -> TrainerSettings:
        return self._settings

    @property
    def current_problem(self) -> Problem | None:
        return self._current

    @property
    def score(self) -> int:
        return self._score

    @property
    def problems_solved(self) -> int:
        return len(self._solved)

    @property
    def problems(self) -> tuple[Problem, ...]:
        """Every problem presented this session, solved or not."""
        return tuple(self._presented)

    @property
    def solved_problems(self) -> tuple[Problem, ...]:
        return tuple(self._solved)

    @property
    def seconds_left(self) -> int:
        return self._seconds_left

    @property
    def duration_s(self) -> int:
        return self._duration_s

    @property
    def entry(self) -> str:
        return self._entry

    @property
    def result(self) -> SessionResult | None:
        return self._result

    @property
    def persistence_error(self) -> PersistenceError | None:
        return self._persistence_error

    def start(self, settings: TrainerSettings | None = None, duration_s: int | None = None) -> None:
        if self._state is SessionState.RUNNING:
            raise InvalidStateError("session already running")

        candidate = settings if settings is not None else self._settings
        if duration_s is not None:
            if duration_s <= 0:
                raise ConfigError(f"duration must be positive, got {duration_s}")
        candidate.validate()
        enabled = candidate.ensure_enabled()
        if enabled is not candidate:
            log.info("No operation enabled; enabling addition")

        self._settings = enabled
        self._duration_s = int(duration_s if duration_s is not None else enabled.duration_s)
        self._started_at = self._clock.now()
        self._seconds_left = self._duration_s
        self._presented = []
        self._solved = []
        self._score = 0
        self._entry = ""
        self._feedback = None
        self._feedback_at = None
        self._result = None
        self._persistence_error = None
        self._state = SessionState.RUNNING
        self._deal_new_problem()
        log.info(
            "Session started: %ss, operations=%s",
            self._duration_s,
            ",".join(op.value for op in enabled.enabled_operations()),
        )

    def tick(self) -> None:
        """Advance the countdown; ends the session once it reaches zero."""
        if self._state is not SessionState.RUNNING:
            return
        assert self._started_at is not None
        elapsed = int(self._clock.now() - self._started_at)
        self._seconds_left = max(0, self._duration_s - elapsed)
        if self._seconds_left <= 0:
            self._expire()

    def update_entry(self, raw: str) -> AnswerOutcome:
        """Replace the typed entry; a value equal to the answer is accepted at once."""
        if not self._accepting("update_entry"):
            return AnswerOutcome.IGNORED
        self._entry = raw
        value = _try_parse_int(raw)
        assert self._current is not None
        if value is None or value != self._current.answer:
            return AnswerOutcome.IGNORED
        return self.submit_answer(value)

    def submit_entry(self) -> AnswerOutcome:
        """Commit the typed entry (Enter)."""
        if not self._accepting("submit_entry"):
            return AnswerOutcome.IGNORED
        value = _try_parse_int(self._entry)
        if value is None:
            return AnswerOutcome.IGNORED
        return self.submit_answer(value)

    def submit_answer(self, value: int) -> AnswerOutcome:
        if not self._accepting("submit_answer"):
            return AnswerOutcome.IGNORED
        assert self._current is not None
        assert self._presented_at is not None

        now = self._clock.now()
        # Compared as given: 25.5 is not 25.
        if value != self._current.answer:
            self._set_feedback(FEEDBACK_INCORRECT, now)
            return AnswerOutcome.INCORRECT

        response_time_ms = int(round((now - self._presented_at) * 1000.0))
        self._current.mark_solved(self._current.answer, response_time_ms=response_time_ms)
        self._solved.append(self._current)
        self._score += 1
        self._entry = ""
        self._set_feedback(FEEDBACK_CORRECT, now)
        self._deal_new_problem()
        return AnswerOutcome.CORRECT

    def end(self) -> SessionResult | None:
        """Finish the session and hand the result to the sink.

        Calling this again after the session ended returns the same result.
        """
        if self._state is SessionState.ENDED:
            return self._result
        if self._state is SessionState.IDLE:
            if self._strict:
                raise InvalidStateError("session has not started")
            return None

        self._state = SessionState.ENDED
        self._started_at = None
        self._current = None
        self._presented_at = None
        self._entry = ""
        self._feedback = None
        self._feedback_at = None

        result = self._build_result()
        self._result = result
        log.info(
            "Session ended: score=%d solved=%d accuracy=%d%%",
            result.score,
            result.problems_solved,
            result.accuracy,
        )
        if self._sink is not None:
            try:
                self._sink.record(result)
            except STORAGE_ERRORS as exc:
                self._persistence_error = as_persistence_error(exc, "session result")
                log.exception("Failed to persist session result")
        return result

    def snapshot(self) -> SessionSnapshot:
        prompt = "" if self._current is None else self._current.prompt
        feedback = self._visible_feedback()
        return SessionSnapshot(
            state=self._state,
            prompt=prompt,
            entry=self._entry,
            seconds_left=self._seconds_left,
            score=self._score,
            feedback=feedback,
            feedback_correct=feedback == FEEDBACK_CORRECT,
        )

    def _accepting(self, op: str) -> bool:
        if self._state is not SessionState.RUNNING:
            if self._strict:
                raise InvalidStateError(f"{op} requires a running session (state={self._state.value})")
            return False
        if self._deadline_passed():
            self._expire()
            return False
        return True

    def _deadline_passed(self) -> bool:
        assert self._started_at is not None
        return self._clock.now() - self._started_at >= self._duration_s

    def _expire(self) -> None:
        self._seconds_left = 0
        self.end()

    def _deal_new_problem(self) -> None:
        problem = self._generator.next_problem(self._settings)
        self._presented.append(problem)
        self._current = problem
        self._presented_at = self._clock.now()

    def _set_feedback(self, message: str, now: float) -> None:
        if not self._settings.show_feedback:
            return
        self._feedback = message
        self._feedback_at = now

    def _visible_feedback(self) -> str | None:
        if self._feedback is None or self._feedback_at is None:
            return None
        if self._clock.now() - self._feedback_at > FEEDBACK_VISIBLE_S:
            return None
        return self._feedback

    def _build_result(self) -> SessionResult:
        solved = [p for p in self._solved if p.solved]
        score = self._score
        problems_solved = len(solved)
        return SessionResult(
            timestamp=format_timestamp(self._wall_clock()),
            score=score,
            problems_solved=problems_solved,
            accuracy=compute_accuracy(score, problems_solved),
            duration_s=self._duration_s,
            operations_used=operations_in_order(solved),
            problems=tuple(p.to_record() for p in solved),
        )


def _try_parse_int(text: str) -> int | None:
    s = text.strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None
