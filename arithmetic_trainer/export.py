from __future__ import annotations

from collections.abc import Sequence

from .models import SessionResult
from .persistence import Storage

SUMMARY_CSV_PATH = "arithmetic_game_summary.csv"
DETAILS_CSV_PATH = "arithmetic_game_details.csv"

SUMMARY_HEADER = "timestamp,score,problems_solved,accuracy,duration,operations"
DETAILS_HEADER = "game_timestamp,operation,problem,correct_answer,user_answer,is_correct,response_time"


def _blank_if_none(value: object) -> str:
    return "" if value is None else str(value)


def summary_csv(history: Sequence[SessionResult]) -> str:
    """One row per session; operations are pipe-joined."""

    lines = [SUMMARY_HEADER]
    for game in history:
        lines.append(
            ",".join(
                [
                    game.timestamp,
                    str(game.score),
                    str(game.problems_solved),
                    str(game.accuracy),
                    str(game.duration_s),
                    "|".join(op.value for op in game.operations_used),
                ]
            )
        )
    return "\n".join(lines) + "\n"


def details_csv(history: Sequence[SessionResult]) -> str:
    """One row per problem; the problem text is quoted."""

    lines = [DETAILS_HEADER]
    for game in history:
        for p in game.problems:
            text = p.text.replace('"', '""')
            lines.append(
                ",".join(
                    [
                        game.timestamp,
                        p.operation.value,
                        f'"{text}"',
                        str(p.answer),
                        _blank_if_none(p.user_answer),
                        "1" if p.is_correct else "0",
                        _blank_if_none(p.response_time_ms),
                    ]
                )
            )
    return "\n".join(lines) + "\n"


def export_csv(
    storage: Storage,
    history: Sequence[SessionResult],
    *,
    summary_path: str = SUMMARY_CSV_PATH,
    details_path: str = DETAILS_CSV_PATH,
) -> tuple[str, str]:
    """Write both CSV tables; returns the two paths written."""

    storage.write(summary_path, summary_csv(history))
    storage.write(details_path, details_csv(history))
    return summary_path, details_path
