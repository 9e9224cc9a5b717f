"""Result persistence.

History lives in two places under a storage root:

* a JSON array of session results (``structured_data_path``), the source of
  truth for statistics and export;
* a markdown log (``results_note_path``) with the newest session on top.

Both go through the small ``Storage`` interface so the core never touches the
filesystem directly.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .clock import parse_timestamp
from .config import TrainerSettings
from .errors import PersistenceError
from .models import SessionResult

log = logging.getLogger(__name__)

MARKDOWN_TITLE = "# Arithmetic Game Results\n\n"

# What a Storage implementation may raise besides PersistenceError.
STORAGE_ERRORS = (PersistenceError, OSError, UnicodeError)


def as_persistence_error(exc: BaseException, path: str) -> PersistenceError:
    if isinstance(exc, PersistenceError):
        return exc
    wrapped = PersistenceError(f"{path}: {exc}")
    wrapped.__cause__ = exc
    return wrapped


class Storage(Protocol):
    def exists(self, path: str) -> bool: ...
    def read(self, path: str) -> str: ...
    def write(self, path: str, content: str) -> None: ...
    def append_or_create(self, path: str, content: str) -> None: ...


class FileStorage:
    """``Storage`` over a root directory; relative paths resolve under it."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self._root / p

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def read(self, path: str) -> str:
        target = self.resolve(path)
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"cannot read {target}: {exc}") from exc

    def write(self, path: str, content: str) -> None:
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = target.with_suffix(f"{target.suffix}.tmp")
            tmp_path.write_text(content, encoding="utf-8")
            tmp_path.replace(target)
        except OSError as exc:
            raise PersistenceError(f"cannot write {target}: {exc}") from exc

    def append_or_create(self, path: str, content: str) -> None:
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("a", encoding="utf-8") as f:
                f.write(content)
        except OSError as exc:
            raise PersistenceError(f"cannot append to {target}: {exc}") from exc


class ResultStore:
    """Append-only JSON array of ``SessionResult``."""

    def __init__(self, storage: Storage, path: str) -> None:
        self._storage = storage
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> list[SessionResult]:
        if not self._storage.exists(self._path):
            return []
        text = self._storage.read(self._path)
        if not text.strip():
            return []
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise PersistenceError(f"{self._path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise PersistenceError(f"{self._path} must contain a JSON array")
        return [SessionResult.from_dict(item) for item in payload]

    def append(self, result: SessionResult) -> None:
        # Malformed existing history raises here instead of being overwritten.
        history = self.load()
        history.append(result)
        self._storage.write(self._path, json.dumps([r.to_dict() for r in history], indent=2, ensure_ascii=False))


def format_markdown_entry(result: SessionResult, *, include_history: bool) -> str:
    moment = parse_timestamp(result.timestamp)
    if moment is None:
        date_s, time_s = result.timestamp, ""
    else:
        date_s, time_s = moment.strftime("%Y-%m-%d"), moment.strftime("%H:%M:%S")

    operations = ", ".join(op.label for op in result.operations_used)
    lines = [
        f"## Game on {date_s} at {time_s}",
        f"- Score: {result.score}",
        f"- Problems solved: {result.problems_solved}",
        f"- Accuracy: {result.accuracy}%",
        f"- Operations: {operations}",
        f"- Duration: {result.duration_s} seconds",
        "",
    ]
    if include_history and result.problems:
        lines.append("### Problem History")
        for index, p in enumerate(result.problems, start=1):
            mark = "✓" if p.is_correct else "✗"
            line = f"{index}. {p.text} = {p.user_answer} {mark}"
            if not p.is_correct:
                line += f" (Correct: {p.answer})"
            lines.append(line)
        lines.append("")
    return "\n".join(lines) + "\n"


class MarkdownLog:
    """Human-readable session log, newest entry first below the title."""

    def __init__(self, storage: Storage, path: str) -> None:
        self._storage = storage
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def prepend(self, entry: str) -> None:
        if not self._storage.exists(self._path):
            self._storage.append_or_create(self._path, MARKDOWN_TITLE + entry)
            return
        content = self._storage.read(self._path)
        if content.startswith(MARKDOWN_TITLE):
            body = content[len(MARKDOWN_TITLE):]
            self._storage.write(self._path, MARKDOWN_TITLE + entry + body)
        else:
            self._storage.write(self._path, entry + content)


@dataclass(frozen=True, slots=True)
class RecordOutcome:
    markdown_path: str | None
    structured_path: str | None
    errors: tuple[PersistenceError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


class ResultRecorder:
    """Session result sink writing the markdown log and the JSON history.

    Failures are logged and reported in the outcome; they never propagate to
    the session engine.
    """

    def __init__(self, settings: TrainerSettings, storage: Storage) -> None:
        self._settings = settings
        self._storage = storage

    @property
    def settings(self) -> TrainerSettings:
        return self._settings

    @settings.setter
    def settings(self, settings: TrainerSettings) -> None:
        self._settings = settings

    def store(self) -> ResultStore:
        return ResultStore(self._storage, self._settings.structured_data_path)

    def markdown_log(self) -> MarkdownLog:
        return MarkdownLog(self._storage, self._settings.results_note_path)

    def record(self, result: SessionResult) -> RecordOutcome:
        errors: list[PersistenceError] = []
        markdown_path: str | None = None
        structured_path: str | None = None

        md = self.markdown_log()
        try:
            md.prepend(format_markdown_entry(result, include_history=self._settings.show_history))
            markdown_path = md.path
        except STORAGE_ERRORS as exc:
            log.exception("Error saving markdown results to %s", md.path)
            errors.append(as_persistence_error(exc, md.path))

        if self._settings.save_structured_data:
            store = self.store()
            try:
                store.append(result)
                structured_path = store.path
            except STORAGE_ERRORS as exc:
                log.exception("Error saving structured results to %s", store.path)
                errors.append(as_persistence_error(exc, store.path))

        return RecordOutcome(
            markdown_path=markdown_path,
            structured_path=structured_path,
            errors=tuple(errors),
        )
