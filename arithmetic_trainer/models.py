from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import PersistenceError


class Operation(str, Enum):
    ADDITION = "addition"
    SUBTRACTION = "subtraction"
    MULTIPLICATION = "multiplication"
    DIVISION = "division"

    @property
    def label(self) -> str:
        return self.value.capitalize()


# Enumeration order; used for tie-breaking and display.
OPERATIONS: tuple[Operation, ...] = tuple(Operation)

OPERATION_SYMBOLS: dict[Operation, str] = {
    Operation.ADDITION: "+",
    Operation.SUBTRACTION: "-",
    Operation.MULTIPLICATION: "×",
    Operation.DIVISION: "÷",
}


@dataclass(slots=True)
class Problem:
    """A single arithmetic question as presented during a session.

    The operands, text and answer never change. ``user_answer``, ``is_correct``
    and ``response_time_ms`` stay unset until the problem is solved.
    """

    a: int
    b: int
    operation: Operation
    text: str
    answer: int
    user_answer: int | None = None
    is_correct: bool | None = None
    response_time_ms: int | None = None

    @property
    def solved(self) -> bool:
        return self.is_correct is True

    @property
    def prompt(self) -> str:
        return f"{self.text} = ?"

    def mark_solved(self, user_answer: int, *, response_time_ms: int) -> None:
        self.user_answer = user_answer
        self.is_correct = user_answer == self.answer
        self.response_time_ms = max(0, int(response_time_ms))

    def to_record(self) -> "ProblemRecord":
        return ProblemRecord(
            operation=self.operation,
            text=self.text,
            answer=self.answer,
            user_answer=self.user_answer,
            is_correct=self.is_correct,
            response_time_ms=self.response_time_ms,
            a=self.a,
            b=self.b,
        )


@dataclass(frozen=True, slots=True)
class ProblemRecord:
    """Persisted view of a problem inside a SessionResult."""

    operation: Operation
    text: str
    answer: int
    user_answer: int | None = None
    is_correct: bool | None = None
    response_time_ms: int | None = None
    a: int | None = None
    b: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "operation": self.operation.value,
            "text": self.text,
            "answer": self.answer,
        }
        if self.a is not None and self.b is not None:
            out["a"] = self.a
            out["b"] = self.b
        if self.user_answer is not None:
            out["userAnswer"] = self.user_answer
        if self.is_correct is not None:
            out["correct"] = self.is_correct
        if self.response_time_ms is not None:
            out["responseTime"] = self.response_time_ms
        return out

    @classmethod
    def from_dict(cls, data: object) -> "ProblemRecord":
        if not isinstance(data, dict):
            raise PersistenceError(f"problem entry must be an object, got {type(data).__name__}")
        try:
            return cls(
                operation=Operation(data["operation"]),
                text=str(data["text"]),
                answer=int(data["answer"]),
                user_answer=_opt_int(data.get("userAnswer")),
                is_correct=None if data.get("correct") is None else bool(data["correct"]),
                response_time_ms=_opt_int(data.get("responseTime")),
                a=_opt_int(data.get("a")),
                b=_opt_int(data.get("b")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"malformed problem entry: {exc}") from exc


@dataclass(frozen=True, slots=True)
class SessionResult:
    """Immutable summary of one finished session."""

    timestamp: str
    score: int
    problems_solved: int
    accuracy: int
    duration_s: int
    operations_used: tuple[Operation, ...]
    problems: tuple[ProblemRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "score": self.score,
            "problemsSolved": self.problems_solved,
            "accuracy": self.accuracy,
            "duration": self.duration_s,
            "operations": [op.value for op in self.operations_used],
            "problems": [p.to_dict() for p in self.problems],
        }

    @classmethod
    def from_dict(cls, data: object) -> "SessionResult":
        if not isinstance(data, dict):
            raise PersistenceError(f"session entry must be an object, got {type(data).__name__}")
        try:
            raw_problems = data.get("problems") or []
            if not isinstance(raw_problems, list):
                raise TypeError("problems must be a list")
            return cls(
                timestamp=str(data["timestamp"]),
                score=int(data["score"]),
                problems_solved=int(data["problemsSolved"]),
                accuracy=int(round(float(data.get("accuracy", 0)))),
                duration_s=int(data.get("duration", 0)),
                operations_used=tuple(Operation(op) for op in data.get("operations") or []),
                problems=tuple(ProblemRecord.from_dict(p) for p in raw_problems),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"malformed session entry: {exc}") from exc


def operations_in_order(problems: list[Problem] | tuple[ProblemRecord, ...]) -> tuple[Operation, ...]:
    """Distinct operations in order of first appearance."""

    seen: list[Operation] = []
    for p in problems:
        if p.operation not in seen:
            seen.append(p.operation)
    return tuple(seen)


def _opt_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)  # type: ignore[arg-type]
