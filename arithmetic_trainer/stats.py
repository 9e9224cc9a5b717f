"""Statistics over session history.

Everything here is a pure function of a history sequence; nothing is mutated.
An empty history is reported as "no data" (``None`` averages,
``Overview.has_data == False``) rather than as zeros, so callers can tell "0%
over real games" apart from "no games yet".
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .clock import parse_timestamp
from .models import OPERATIONS, Operation, ProblemRecord, SessionResult

RECENT_TREND_GAMES = 5
NEEDS_PRACTICE_THRESHOLD = 90.0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

PRACTICE_TIPS: dict[Operation, str] = {
    Operation.ADDITION: (
        "Practice breaking down larger addition problems into smaller steps, "
        'or try using the "make 10" strategy for faster mental calculations.'
    ),
    Operation.SUBTRACTION: (
        "For subtraction, try counting up from the smaller number to the larger one, "
        "or using complements to 10/100 for faster calculations."
    ),
    Operation.MULTIPLICATION: (
        "Focus on strengthening your times tables, and practice breaking down larger "
        "multiplication problems into smaller ones you know well."
    ),
    Operation.DIVISION: (
        "Remember that division is the inverse of multiplication. "
        "Strengthen your times tables to improve division speed."
    ),
}


class SortKey(str, Enum):
    DATE_ASC = "date-asc"
    DATE_DESC = "date-desc"
    SCORE_ASC = "score-asc"
    SCORE_DESC = "score-desc"


ALL_OPERATIONS = "all"


@dataclass(frozen=True, slots=True)
class Overview:
    total_games: int
    total_problems: int
    avg_score: float | None
    avg_accuracy: float | None
    best_game: SessionResult | None
    recent_avg_score: float | None
    recent_trend: str | None  # "positive" | "negative"

    @property
    def has_data(self) -> bool:
        return self.total_games > 0


@dataclass(frozen=True, slots=True)
class OperationStats:
    operation: Operation
    total: int
    correct: int
    accuracy: float
    avg_response_s: float | None


@dataclass(frozen=True, slots=True)
class WeakestOperation:
    operation: Operation
    accuracy: float
    needs_practice: bool

    @property
    def tip(self) -> str:
        return practice_tip(self.operation)


def overview(history: Sequence[SessionResult]) -> Overview:
    total_games = len(history)
    if total_games == 0:
        return Overview(
            total_games=0,
            total_problems=0,
            avg_score=None,
            avg_accuracy=None,
            best_game=None,
            recent_avg_score=None,
            recent_trend=None,
        )

    total_problems = sum(g.problems_solved for g in history)
    avg_score = sum(g.score for g in history) / total_games
    avg_accuracy = sum(g.accuracy for g in history) / total_games

    best = history[0]
    for game in history[1:]:
        if game.score > best.score:
            best = game

    recent = recent_games(history, limit=RECENT_TREND_GAMES)
    recent_avg = sum(g.score for g in recent) / len(recent)
    trend = "positive" if recent_avg > avg_score else "negative"

    return Overview(
        total_games=total_games,
        total_problems=total_problems,
        avg_score=avg_score,
        avg_accuracy=avg_accuracy,
        best_game=best,
        recent_avg_score=recent_avg,
        recent_trend=trend,
    )


def recent_games(history: Sequence[SessionResult], *, limit: int = 10) -> list[SessionResult]:
    """Most recent games by timestamp, newest first."""
    return sorted(history, key=_timestamp_key, reverse=True)[: max(0, limit)]


def all_problems(history: Sequence[SessionResult]) -> list[ProblemRecord]:
    return [p for game in history for p in game.problems]


def by_operation(history: Sequence[SessionResult]) -> list[OperationStats]:
    """Accuracy and timing per operation, omitting operations never played."""

    problems = all_problems(history)
    out: list[OperationStats] = []
    for op in OPERATIONS:
        group = [p for p in problems if p.operation is op]
        if not group:
            continue
        correct = sum(1 for p in group if p.is_correct)
        timed = [p.response_time_ms for p in group if p.response_time_ms is not None]
        avg_s = None if not timed else sum(timed) / len(timed) / 1000.0
        out.append(
            OperationStats(
                operation=op,
                total=len(group),
                correct=correct,
                accuracy=correct * 100.0 / len(group),
                avg_response_s=avg_s,
            )
        )
    return out


def weakest_operation(history: Sequence[SessionResult]) -> WeakestOperation | None:
    """Lowest-accuracy operation, or ``None`` when no problem was ever played.

    Operations without problems count as 100% so they are never reported as
    the weakest. Ties go to the earlier operation in enumeration order.
    """

    played = {s.operation: s.accuracy for s in by_operation(history)}
    if not played:
        return None

    weakest_op = OPERATIONS[0]
    weakest_acc = played.get(weakest_op, 100.0)
    for op in OPERATIONS[1:]:
        acc = played.get(op, 100.0)
        if acc < weakest_acc:
            weakest_op, weakest_acc = op, acc
    return WeakestOperation(
        operation=weakest_op,
        accuracy=weakest_acc,
        needs_practice=weakest_acc < NEEDS_PRACTICE_THRESHOLD,
    )


def practice_tip(operation: Operation) -> str:
    return PRACTICE_TIPS[operation]


def filter_and_sort(
    history: Sequence[SessionResult],
    operation_filter: str | Operation = ALL_OPERATIONS,
    sort_key: str | SortKey = SortKey.DATE_DESC,
) -> list[SessionResult]:
    """Sessions that used ``operation_filter`` (or all), sorted stably by ``sort_key``."""

    key = SortKey(sort_key)
    if operation_filter == ALL_OPERATIONS:
        games = list(history)
    else:
        op = Operation(operation_filter)
        games = [g for g in history if op in g.operations_used]

    if key is SortKey.DATE_ASC:
        games.sort(key=_timestamp_key)
    elif key is SortKey.DATE_DESC:
        games.sort(key=_timestamp_key, reverse=True)
    elif key is SortKey.SCORE_ASC:
        games.sort(key=lambda g: g.score)
    else:
        games.sort(key=lambda g: g.score, reverse=True)
    return games


def _timestamp_key(game: SessionResult) -> datetime:
    # Unparseable timestamps sort as the oldest.
    moment = parse_timestamp(game.timestamp)
    return _EPOCH if moment is None else moment
