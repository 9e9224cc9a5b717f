from __future__ import annotations

from dataclasses import dataclass, field, replace

from arithmetic_trainer.config import NumericRange, OperationConfig, TrainerSettings
from arithmetic_trainer.models import OPERATIONS, Operation
from arithmetic_trainer.persistence import ResultRecorder
from arithmetic_trainer.session import SessionEngine, SessionState
from arithmetic_trainer.stats import by_operation, overview


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


@dataclass
class MemoryStorage:
    files: dict[str, str] = field(default_factory=dict)

    def exists(self, path: str) -> bool:
        return path in self.files

    def read(self, path: str) -> str:
        return self.files[path]

    def write(self, path: str, content: str) -> None:
        self.files[path] = content

    def append_or_create(self, path: str, content: str) -> None:
        self.files[path] = self.files.get(path, "") + content


def _addition_only(duration_s: int) -> TrainerSettings:
    settings = TrainerSettings(duration_s=duration_s)
    for op in OPERATIONS:
        settings = settings.with_operation(op, replace(settings.operation(op), enabled=False))
    return settings.with_operation(
        Operation.ADDITION, OperationConfig(True, NumericRange(2, 5), NumericRange(2, 5))
    )


def test_scripted_addition_run_expires_with_all_correct_problems() -> None:
    clock = FakeClock()
    engine = SessionEngine(_addition_only(10), clock=clock, seed=555)
    engine.start(duration_s=10)

    while engine.state is SessionState.RUNNING:
        clock.advance(0.7)
        engine.tick()
        if engine.state is not SessionState.RUNNING:
            break
        problem = engine.current_problem
        assert problem is not None
        assert 4 <= problem.answer <= 10
        engine.submit_answer(problem.answer)

    result = engine.result
    assert engine.state is SessionState.ENDED
    assert result is not None
    assert result.problems_solved == result.score
    assert result.problems
    assert all(p.is_correct is True for p in result.problems)
    assert result.accuracy == 100
    assert result.operations_used == (Operation.ADDITION,)


def test_headless_sessions_feed_history_and_statistics() -> None:
    clock = FakeClock()
    storage = MemoryStorage()
    settings = TrainerSettings(duration_s=20)
    recorder = ResultRecorder(settings, storage)
    engine = SessionEngine(settings, clock=clock, seed=7, sink=recorder)

    scores = []
    for solves in (2, 4, 6):
        engine.start()
        for _ in range(solves):
            problem = engine.current_problem
            assert problem is not None
            clock.advance(0.5)
            engine.submit_answer(problem.answer + 1)
            clock.advance(0.5)
            engine.submit_answer(problem.answer)
        clock.advance(20.0)
        engine.tick()
        assert engine.state is SessionState.ENDED
        scores.append(engine.score)

    assert scores == [2, 4, 6]

    history = recorder.store().load()
    assert [g.score for g in history] == [2, 4, 6]

    ov = overview(history)
    assert ov.total_games == 3
    assert ov.total_problems == 12
    assert ov.avg_score == 4
    assert ov.best_game is not None and ov.best_game.score == 6

    per_op = by_operation(history)
    assert sum(s.total for s in per_op) == 12
    assert all(s.accuracy == 100.0 for s in per_op)
    assert all(s.avg_response_s == 1.0 for s in per_op)

    markdown = storage.files[settings.results_note_path]
    assert markdown.startswith("# Arithmetic Game Results")
    assert markdown.count("## Game on") == 3
    assert markdown.index("- Score: 6") < markdown.index("- Score: 2")
