from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

import pytest

from arithmetic_trainer.config import NumericRange, OperationConfig, TrainerSettings
from arithmetic_trainer.errors import ConfigError, InvalidStateError, PersistenceError
from arithmetic_trainer.models import OPERATIONS, Operation, SessionResult
from arithmetic_trainer.session import (
    FEEDBACK_CORRECT,
    FEEDBACK_INCORRECT,
    AnswerOutcome,
    SessionEngine,
    SessionState,
    compute_accuracy,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


@dataclass
class ListSink:
    results: list[SessionResult] = field(default_factory=list)

    def record(self, result: SessionResult) -> None:
        self.results.append(result)


class FailingSink:
    def record(self, result: SessionResult) -> None:
        raise PersistenceError("disk full")


def _addition_only(duration_s: int = 10) -> TrainerSettings:
    settings = TrainerSettings(duration_s=duration_s)
    for op in OPERATIONS:
        settings = settings.with_operation(op, replace(settings.operation(op), enabled=False))
    return settings.with_operation(
        Operation.ADDITION, OperationConfig(True, NumericRange(2, 5), NumericRange(2, 5))
    )


def _engine(clock: FakeClock, **kwargs: object) -> SessionEngine:
    settings = kwargs.pop("settings", None) or _addition_only()
    return SessionEngine(settings, clock=clock, seed=42, **kwargs)  # type: ignore[arg-type]


def test_start_deals_first_problem_and_resets_clock() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    assert engine.state is SessionState.IDLE
    assert engine.current_problem is None

    engine.start()

    assert engine.state is SessionState.RUNNING
    assert engine.current_problem is not None
    assert engine.current_problem.operation is Operation.ADDITION
    assert engine.seconds_left == 10
    assert engine.score == 0
    assert len(engine.problems) == 1


def test_wrong_answers_never_skip_the_problem() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    engine.start()
    problem = engine.current_problem
    assert problem is not None

    for delta in (1, 2, 3):
        clock.advance(0.5)
        assert engine.submit_answer(problem.answer + delta) is AnswerOutcome.INCORRECT
        assert engine.current_problem is problem
        assert engine.problems_solved == 0
        assert engine.score == 0
    assert problem.user_answer is None

    assert engine.submit_answer(problem.answer) is AnswerOutcome.CORRECT
    assert engine.problems_solved == 1
    assert engine.score == 1
    assert engine.current_problem is not problem
    assert problem.is_correct is True
    assert problem.user_answer == problem.answer


def test_response_time_measured_from_presentation() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    engine.start()

    first = engine.current_problem
    assert first is not None
    clock.advance(1.25)
    engine.submit_answer(first.answer)
    assert first.response_time_ms == 1250

    second = engine.current_problem
    assert second is not None
    clock.advance(0.5)
    engine.submit_answer(second.answer + 1)
    clock.advance(0.25)
    engine.submit_answer(second.answer)
    assert second.response_time_ms == 750


def test_end_is_idempotent_and_records_once() -> None:
    clock = FakeClock()
    sink = ListSink()
    engine = _engine(clock, sink=sink)
    engine.start()
    p = engine.current_problem
    assert p is not None
    engine.submit_answer(p.answer)

    first = engine.end()
    second = engine.end()

    assert engine.state is SessionState.ENDED
    assert first is not None
    assert second is first
    assert len(sink.results) == 1
    assert sink.results[0].score == 1


def test_submit_outside_running_is_ignored_or_strict_error() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    assert engine.submit_answer(4) is AnswerOutcome.IGNORED
    assert engine.end() is None

    strict = _engine(clock, strict=True)
    with pytest.raises(InvalidStateError):
        strict.submit_answer(4)
    with pytest.raises(InvalidStateError):
        strict.end()

    strict.start()
    strict.end()
    assert strict.end() is strict.result
    with pytest.raises(InvalidStateError):
        strict.submit_answer(4)


def test_start_while_running_is_an_error() -> None:
    engine = _engine(FakeClock())
    engine.start()
    with pytest.raises(InvalidStateError):
        engine.start()


def test_countdown_ticks_per_whole_second_and_expires() -> None:
    clock = FakeClock()
    sink = ListSink()
    engine = _engine(clock, sink=sink)
    engine.start()

    clock.advance(3.5)
    engine.tick()
    assert engine.seconds_left == 7
    assert engine.state is SessionState.RUNNING

    clock.advance(6.5)
    engine.tick()
    assert engine.state is SessionState.ENDED
    assert engine.seconds_left == 0

    engine.tick()
    engine.tick()
    assert len(sink.results) == 1


def test_answer_after_deadline_fails_closed() -> None:
    clock = FakeClock()
    sink = ListSink()
    engine = _engine(clock, sink=sink)
    engine.start()
    p = engine.current_problem
    assert p is not None

    clock.advance(10.0)
    # No tick yet; the late answer must not be scored.
    assert engine.submit_answer(p.answer) is AnswerOutcome.IGNORED
    assert engine.state is SessionState.ENDED
    assert engine.score == 0
    assert len(sink.results) == 1
    assert sink.results[0].problems == ()


def test_partial_entry_is_discarded_on_expiry() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    engine.start()

    assert engine.update_entry("-") is AnswerOutcome.IGNORED
    assert engine.entry == "-"

    clock.advance(11.0)
    engine.tick()
    assert engine.state is SessionState.ENDED
    assert engine.entry == ""


def test_typed_entry_auto_accepts_the_correct_value() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    engine.start()
    p = engine.current_problem
    assert p is not None

    assert engine.update_entry(str(p.answer)) is AnswerOutcome.CORRECT
    assert engine.entry == ""
    assert engine.problems_solved == 1


def test_submitting_wrong_entry_shows_feedback_for_a_while() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    engine.start()
    p = engine.current_problem
    assert p is not None

    engine.update_entry(str(p.answer + 10))
    assert engine.submit_entry() is AnswerOutcome.INCORRECT
    assert engine.snapshot().feedback == FEEDBACK_INCORRECT
    assert engine.snapshot().feedback_correct is False
    assert engine.entry == str(p.answer + 10)

    clock.advance(2.0)
    assert engine.snapshot().feedback is None

    engine.update_entry(str(p.answer))
    snap = engine.snapshot()
    assert snap.feedback == FEEDBACK_CORRECT
    assert snap.feedback_correct is True
    assert snap.score == 1


def test_feedback_can_be_disabled() -> None:
    clock = FakeClock()
    engine = _engine(clock, settings=replace(_addition_only(), show_feedback=False))
    engine.start()
    p = engine.current_problem
    assert p is not None
    engine.submit_answer(p.answer + 1)
    assert engine.snapshot().feedback is None


def test_empty_entry_submit_is_ignored() -> None:
    engine = _engine(FakeClock())
    engine.start()
    assert engine.submit_entry() is AnswerOutcome.IGNORED


def test_zero_solved_session_still_produces_a_result() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    engine.start()
    clock.advance(10.0)
    engine.tick()

    result = engine.result
    assert result is not None
    assert result.score == 0
    assert result.problems_solved == 0
    assert result.accuracy == 0
    assert result.operations_used == ()
    assert result.problems == ()
    assert result.duration_s == 10


def test_result_contains_only_solved_problems() -> None:
    clock = FakeClock()
    engine = _engine(
        clock,
        wall_clock=lambda: datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )
    engine.start()
    for _ in range(2):
        p = engine.current_problem
        assert p is not None
        clock.advance(1.0)
        engine.submit_answer(p.answer)

    assert len(engine.problems) == 3
    result = engine.end()
    assert result is not None
    assert result.timestamp == "2024-05-01T12:30:00Z"
    assert result.score == result.problems_solved == 2
    assert result.accuracy == 100
    assert result.operations_used == (Operation.ADDITION,)
    assert [p.is_correct for p in result.problems] == [True, True]
    assert all(p.response_time_ms == 1000 for p in result.problems)


def test_no_enabled_operation_falls_back_to_addition() -> None:
    settings = TrainerSettings()
    for op in OPERATIONS:
        settings = settings.with_operation(op, replace(settings.operation(op), enabled=False))
    engine = SessionEngine(settings, clock=FakeClock(), seed=3)

    engine.start()

    assert engine.settings.enabled_operations() == [Operation.ADDITION]
    assert engine.current_problem is not None
    assert engine.current_problem.operation is Operation.ADDITION


def test_invalid_range_is_reported_before_any_problem() -> None:
    settings = _addition_only().with_operation(
        Operation.ADDITION, OperationConfig(True, NumericRange(9, 2), NumericRange(2, 5))
    )
    engine = SessionEngine(settings, clock=FakeClock(), seed=3)

    with pytest.raises(ConfigError):
        engine.start()
    assert engine.state is SessionState.IDLE
    assert engine.current_problem is None
    assert engine.problems == ()


def test_zero_divisor_range_is_rejected() -> None:
    settings = TrainerSettings().with_operation(
        Operation.DIVISION, OperationConfig(True, NumericRange(1, 10), NumericRange(0, 5))
    )
    with pytest.raises(ConfigError):
        SessionEngine(settings, clock=FakeClock()).start()


def test_non_positive_duration_is_rejected() -> None:
    engine = _engine(FakeClock())
    with pytest.raises(ConfigError):
        engine.start(duration_s=0)


def test_persistence_failure_keeps_the_result() -> None:
    clock = FakeClock()
    engine = _engine(clock, sink=FailingSink())
    engine.start()
    p = engine.current_problem
    assert p is not None
    engine.submit_answer(p.answer)

    result = engine.end()

    assert result is not None
    assert result.score == 1
    assert engine.result is result
    assert isinstance(engine.persistence_error, PersistenceError)


def test_restart_after_end_resets_state() -> None:
    clock = FakeClock()
    sink = ListSink()
    engine = _engine(clock, sink=sink)
    engine.start()
    p = engine.current_problem
    assert p is not None
    engine.submit_answer(p.answer)
    engine.end()

    engine.start(duration_s=30)

    assert engine.state is SessionState.RUNNING
    assert engine.score == 0
    assert engine.problems_solved == 0
    assert engine.result is None
    assert engine.seconds_left == 30
    engine.end()
    assert [r.duration_s for r in sink.results] == [10, 30]


def test_compute_accuracy() -> None:
    assert compute_accuracy(0, 0) == 0
    assert compute_accuracy(5, 5) == 100
    assert compute_accuracy(1, 8) == 13


def test_non_integer_answer_is_never_correct() -> None:
    clock = FakeClock()
    engine = _engine(clock)
    engine.start()
    p = engine.current_problem
    assert p is not None

    assert engine.submit_answer(p.answer + 0.5) is AnswerOutcome.INCORRECT  # type: ignore[arg-type]
    assert engine.current_problem is p
    assert p.user_answer is None
    assert engine.score == 0

    assert engine.submit_answer(float(p.answer)) is AnswerOutcome.CORRECT  # type: ignore[arg-type]
    assert p.user_answer == p.answer
    assert p.is_correct is True


def test_tick_after_early_end_changes_nothing() -> None:
    clock = FakeClock()
    sink = ListSink()
    engine = _engine(clock, sink=sink)
    engine.start()
    clock.advance(3.0)
    engine.tick()
    result = engine.end()
    seconds_left = engine.seconds_left

    clock.advance(60.0)
    engine.tick()
    engine.tick()

    assert engine.state is SessionState.ENDED
    assert engine.result is result
    assert engine.seconds_left == seconds_left == 7
    assert len(sink.results) == 1


class OSErrorSink:
    def record(self, result: SessionResult) -> None:
        raise OSError("disk full")


def test_plain_os_error_from_sink_does_not_escape_end() -> None:
    clock = FakeClock()
    engine = _engine(clock, sink=OSErrorSink())
    engine.start()

    result = engine.end()

    assert result is not None
    assert engine.state is SessionState.ENDED
    assert isinstance(engine.persistence_error, PersistenceError)
    assert "disk full" in str(engine.persistence_error)
