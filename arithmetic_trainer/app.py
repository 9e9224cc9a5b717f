"""Pygame UI shell for the arithmetic trainer.

Screens only render engine snapshots and forward input. Timing, scoring and
statistics live in the core modules, so the UI can be swapped without
touching them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

import pygame

from .clock import Clock, RealClock, parse_timestamp
from .config import DURATION_CHOICES_S, SettingsStore, TrainerSettings, default_data_dir
from .errors import ConfigError, PersistenceError
from .export import export_csv
from .models import OPERATIONS, Operation, SessionResult
from .persistence import FileStorage, RecordOutcome, ResultRecorder
from .session import SessionEngine, SessionState
from .stats import ALL_OPERATIONS, SortKey, by_operation, filter_and_sort, overview, recent_games, weakest_operation

log = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

_DIGIT_KEYS = {
    pygame.K_1: Operation.ADDITION,
    pygame.K_2: Operation.SUBTRACTION,
    pygame.K_3: Operation.MULTIPLICATION,
    pygame.K_4: Operation.DIVISION,
}


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def update(self) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


@dataclass(frozen=True, slots=True)
class Palette:
    bg: tuple[int, int, int]
    text: tuple[int, int, int]
    muted: tuple[int, int, int]
    good: tuple[int, int, int]
    bad: tuple[int, int, int]


DARK = Palette((10, 10, 14), (235, 235, 245), (140, 140, 150), (140, 220, 150), (230, 140, 130))
LIGHT = Palette((245, 245, 245), (20, 20, 28), (110, 110, 120), (46, 125, 50), (198, 40, 40))


def palette_for(settings: TrainerSettings) -> Palette:
    return DARK if settings.dark_mode else LIGHT


class App:
    """Stack of screens; only the top one sees input and gets drawn.

    The main menu sits at the bottom and is never popped: leaving it quits.
    """

    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._stack: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def top(self) -> Screen | None:
        return self._stack[-1] if self._stack else None

    def push(self, screen: Screen) -> None:
        self._stack.append(screen)

    def pop(self) -> None:
        if len(self._stack) > 1:
            self._stack.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
        elif self.top is not None:
            self.top.handle_event(event)

    def update(self) -> None:
        if self.top is not None:
            self.top.update()

    def render(self) -> None:
        if self.top is not None:
            self.top.render(self._surface)


def _draw_lines(
    surface: pygame.Surface,
    font: pygame.font.Font,
    lines: list[str],
    *,
    x: int,
    y: int,
    color: tuple[int, int, int],
    step: int = 32,
) -> int:
    for line in lines:
        surface.blit(font.render(line, True, color), (x, y))
        y += step
    return y


class MessageScreen:
    def __init__(self, app: App, title: str, lines: list[str], palette: Palette) -> None:
        self._app = app
        self._title = title
        self._lines = lines
        self._palette = palette

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_RETURN, pygame.K_BACKSPACE):
            self._app.pop()

    def update(self) -> None:
        pass

    def render(self, surface: pygame.Surface) -> None:
        p = self._palette
        surface.fill(p.bg)
        surface.blit(self._app.font.render(self._title, True, p.text), (40, 40))
        y = _draw_lines(surface, self._app.font, self._lines, x=40, y=100, color=p.text)
        surface.blit(self._app.font.render("Press Enter or Esc to go back.", True, p.muted), (40, y + 20))


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        palette: Callable[[], Palette],
        *,
        is_root: bool = False,
    ) -> None:
        self._app = app
        self._title = title
        self._items = items
        # Looked up per frame so a dark mode change shows on return.
        self._palette = palette
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self._items:
                self._items[self._selected].action()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def update(self) -> None:
        pass

    def render(self, surface: pygame.Surface) -> None:
        p = self._palette()
        surface.fill(p.bg)
        surface.blit(self._title_font.render(self._title, True, p.text), (40, 40))
        y = 110
        for index, item in enumerate(self._items):
            selected = index == self._selected
            label = f"> {item.label}" if selected else f"  {item.label}"
            surface.blit(self._item_font.render(label, True, p.text if selected else p.muted), (60, y))
            y += 40
        hint = self._item_font.render("Up/Down to move, Enter to select, Esc to go back", True, p.muted)
        surface.blit(hint, (40, surface.get_height() - 50))


class DrillScreen:
    """Setup -> running game -> results, driven by a ``SessionEngine``."""

    def __init__(
        self,
        app: App,
        *,
        settings: TrainerSettings,
        settings_store: SettingsStore,
        recorder: ResultRecorder,
        clock: Clock,
    ) -> None:
        self._app = app
        self._settings = settings
        self._settings_store = settings_store
        self._recorder = recorder
        self._outcome: RecordOutcome | None = None
        self._engine = SessionEngine(settings, clock=clock, sink=self)
        self._big_font = pygame.font.Font(None, 72)

    @property
    def engine(self) -> SessionEngine:
        return self._engine

    def record(self, result: SessionResult) -> RecordOutcome:
        self._outcome = self._recorder.record(result)
        return self._outcome

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        state = self._engine.state
        if state is SessionState.IDLE:
            self._handle_setup_key(event.key)
        elif state is SessionState.RUNNING:
            self._handle_game_key(event)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._start()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def _handle_setup_key(self, key: int) -> None:
        if key in _DIGIT_KEYS:
            self._apply_settings(self._settings.toggled(_DIGIT_KEYS[key]))
        elif key in (pygame.K_LEFT, pygame.K_RIGHT):
            self._apply_settings(_cycle_duration(self._settings, 1 if key == pygame.K_RIGHT else -1))
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._start()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def _handle_game_key(self, event: pygame.event.Event) -> None:
        entry = self._engine.entry
        if event.key == pygame.K_ESCAPE:
            self._engine.end()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._engine.submit_entry()
        elif event.key in (pygame.K_BACKSPACE, pygame.K_DELETE):
            self._engine.update_entry(entry[:-1])
        elif event.key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            if not entry:
                self._engine.update_entry("-")
        else:
            char = getattr(event, "unicode", "")
            if char and char.isdigit():
                self._engine.update_entry(entry + char)

    def _apply_settings(self, settings: TrainerSettings) -> None:
        self._settings = settings
        self._recorder.settings = settings
        self._settings_store.save(settings)

    def _start(self) -> None:
        settings = self._settings.ensure_enabled()
        if settings is not self._settings:
            self._apply_settings(settings)
        self._outcome = None
        try:
            self._engine.start(settings)
        except ConfigError as exc:
            log.error("Cannot start session: %s", exc)
            self._app.push(MessageScreen(self._app, "Invalid settings", [str(exc)], palette_for(settings)))

    def update(self) -> None:
        self._engine.tick()

    def render(self, surface: pygame.Surface) -> None:
        p = palette_for(self._settings)
        surface.fill(p.bg)
        state = self._engine.state
        if state is SessionState.IDLE:
            self._render_setup(surface, p)
        elif state is SessionState.RUNNING:
            self._render_game(surface, p)
        else:
            self._render_results(surface, p)

    def _render_setup(self, surface: pygame.Surface, p: Palette) -> None:
        font = self._app.font
        lines = ["Arithmetic Drill", ""]
        for index, op in enumerate(OPERATIONS, start=1):
            cfg = self._settings.operation(op)
            mark = "[x]" if cfg.enabled else "[ ]"
            lines.append(
                f"{index}. {mark} {op.label}  "
                f"({cfg.range_a.lo}-{cfg.range_a.hi}, {cfg.range_b.lo}-{cfg.range_b.hi})"
            )
        lines += ["", f"Duration: {_format_duration(self._settings.duration_s)}"]
        _draw_lines(surface, font, lines, x=40, y=40, color=p.text, step=36)
        hint = font.render("1-4 toggle, Left/Right duration, Enter to start", True, p.muted)
        surface.blit(hint, (40, surface.get_height() - 60))

    def _render_game(self, surface: pygame.Surface, p: Palette) -> None:
        font = self._app.font
        snap = self._engine.snapshot()
        surface.blit(font.render(f"Seconds left: {snap.seconds_left}", True, p.text), (40, 40))
        score = font.render(f"Score: {snap.score}", True, p.text)
        surface.blit(score, (surface.get_width() - score.get_width() - 40, 40))

        problem = self._big_font.render(snap.prompt, True, p.text)
        surface.blit(problem, ((surface.get_width() - problem.get_width()) // 2, 150))
        entry = self._big_font.render(snap.entry or "_", True, p.text)
        surface.blit(entry, ((surface.get_width() - entry.get_width()) // 2, 240))

        if snap.feedback:
            color = p.good if snap.feedback_correct else p.bad
            fb = font.render(snap.feedback, True, color)
            surface.blit(fb, ((surface.get_width() - fb.get_width()) // 2, 330))

        hint = font.render("Type the answer; Enter to check, Esc to end", True, p.muted)
        surface.blit(hint, (40, surface.get_height() - 60))

    def _render_results(self, surface: pygame.Surface, p: Palette) -> None:
        font = self._app.font
        result = self._engine.result
        if result is None:
            return
        operations = ", ".join(op.label for op in result.operations_used) or "-"
        lines = [
            "Game Over!",
            f"Final score: {result.score}",
            f"Problems solved: {result.problems_solved}",
            f"Accuracy: {result.accuracy}%",
            f"Operations: {operations}",
        ]
        outcome = self._outcome
        if outcome is not None and outcome.markdown_path is not None:
            lines.append(f"Results saved to: {outcome.markdown_path}")
        if outcome is not None and not outcome.ok:
            lines.append("Some results could not be saved; see the log.")
        y = _draw_lines(surface, font, lines, x=40, y=30, color=p.text)

        if self._settings.show_history and result.problems:
            small = pygame.font.Font(None, 24)
            history = []
            for index, problem in enumerate(result.problems[-8:], start=max(1, len(result.problems) - 7)):
                line = f"{index}. {problem.text} = {problem.user_answer} ✓"
                if problem.response_time_ms is not None:
                    line += f" - {problem.response_time_ms / 1000.0:.1f}s"
                history.append(line)
            _draw_lines(surface, small, history, x=60, y=y + 10, color=p.muted, step=22)

        hint = font.render("Enter to play again, Esc to return", True, p.muted)
        surface.blit(hint, (40, surface.get_height() - 50))


_BOUND_LABELS = {"a_min": "Min A", "a_max": "Max A", "b_min": "Min B", "b_max": "Max B"}
_FLAG_LABELS = {
    "show_feedback": "Show feedback",
    "show_history": "Show problem history",
    "dark_mode": "Dark mode",
    "save_structured_data": "Save structured data",
}


@dataclass(frozen=True, slots=True)
class _SettingsRow:
    kind: str  # enabled | bound | duration | flag | path
    operation: Operation | None = None
    name: str = ""


def _settings_rows() -> list[_SettingsRow]:
    rows: list[_SettingsRow] = []
    for op in OPERATIONS:
        rows.append(_SettingsRow("enabled", op))
        rows.extend(_SettingsRow("bound", op, bound) for bound in _BOUND_LABELS)
    rows.append(_SettingsRow("duration"))
    rows.extend(_SettingsRow("flag", name=name) for name in _FLAG_LABELS)
    rows.append(_SettingsRow("path", name="results_note_path"))
    return rows


class SettingsScreen:
    """Editor for every ``TrainerSettings`` field.

    Each change is validated and saved straight away. A change that fails
    validation stays on screen with the error and is not written.
    """

    def __init__(self, app: App, *, settings_store: SettingsStore, recorder: ResultRecorder) -> None:
        self._app = app
        self._store = settings_store
        self._recorder = recorder
        self._draft = recorder.settings
        self._rows = _settings_rows()
        self._index = 0
        self._message = ""
        self._small = pygame.font.Font(None, 22)

    @property
    def draft(self) -> TrainerSettings:
        return self._draft

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        row = self._rows[self._index]
        if key == pygame.K_ESCAPE:
            self._app.pop()
        elif key == pygame.K_UP:
            self._index = (self._index - 1) % len(self._rows)
        elif key == pygame.K_DOWN:
            self._index = (self._index + 1) % len(self._rows)
        elif row.kind == "path":
            self._edit_path(event)
        elif key in (pygame.K_LEFT, pygame.K_MINUS, pygame.K_KP_MINUS):
            self._adjust(row, -1)
        elif key in (pygame.K_RIGHT, pygame.K_EQUALS, pygame.K_PLUS, pygame.K_KP_PLUS):
            self._adjust(row, 1)
        elif key == pygame.K_PAGEDOWN:
            self._adjust(row, -10)
        elif key == pygame.K_PAGEUP:
            self._adjust(row, 10)
        elif key in (pygame.K_SPACE, pygame.K_RETURN, pygame.K_KP_ENTER) and row.kind != "bound":
            self._adjust(row, 1)

    def _adjust(self, row: _SettingsRow, delta: int) -> None:
        s = self._draft
        if row.kind == "enabled":
            assert row.operation is not None
            self._apply(s.toggled(row.operation))
        elif row.kind == "bound":
            assert row.operation is not None
            self._apply(s.with_range_bound(row.operation, row.name, delta))
        elif row.kind == "duration":
            self._apply(_cycle_duration(s, 1 if delta > 0 else -1))
        elif row.kind == "flag":
            self._apply(replace(s, **{row.name: not getattr(s, row.name)}))

    def _edit_path(self, event: pygame.event.Event) -> None:
        text = self._draft.results_note_path
        if event.key == pygame.K_BACKSPACE:
            text = text[:-1]
        else:
            char = getattr(event, "unicode", "")
            if not char or not char.isprintable():
                return
            text += char
        self._apply(replace(self._draft, results_note_path=text))

    def _apply(self, settings: TrainerSettings) -> None:
        self._draft = settings
        try:
            settings.validate()
        except ConfigError as exc:
            self._message = f"Not saved: {exc}"
            return
        self._message = "Saved."
        self._recorder.settings = settings
        self._store.save(settings)

    def update(self) -> None:
        pass

    def render(self, surface: pygame.Surface) -> None:
        p = palette_for(self._draft)
        surface.fill(p.bg)
        surface.blit(self._app.font.render("Settings", True, p.text), (40, 20))

        split = len(OPERATIONS) * (1 + len(_BOUND_LABELS))
        for index, row in enumerate(self._rows):
            selected = index == self._index
            x, y = (40, 70 + index * 20) if index < split else (500, 70 + (index - split) * 28)
            label = ("> " if selected else "  ") + self._row_label(row)
            surface.blit(self._small.render(label, True, p.text if selected else p.muted), (x, y))

        if self._message:
            color = p.bad if self._message.startswith("Not saved") else p.good
            surface.blit(self._small.render(self._message, True, color), (40, surface.get_height() - 52))
        hint = self._small.render(
            "Up/Down select, Left/Right or +/- change, PgUp/PgDn by 10, Space toggle, Esc back",
            True,
            p.muted,
        )
        surface.blit(hint, (40, surface.get_height() - 28))

    def _row_label(self, row: _SettingsRow) -> str:
        s = self._draft
        if row.kind == "enabled":
            assert row.operation is not None
            return f"{row.operation.label}: {'ON' if s.operation(row.operation).enabled else 'OFF'}"
        if row.kind == "bound":
            assert row.operation is not None
            cfg = s.operation(row.operation)
            r = cfg.range_a if row.name.startswith("a") else cfg.range_b
            return f"    {_BOUND_LABELS[row.name]}: {r.lo if row.name.endswith('min') else r.hi}"
        if row.kind == "duration":
            return f"Duration: {_format_duration(s.duration_s)}"
        if row.kind == "flag":
            return f"{_FLAG_LABELS[row.name]}: {'ON' if getattr(s, row.name) else 'OFF'}"
        return f"Results file: {s.results_note_path}_"


class StatsScreen:
    _tabs =("Overview", "Game History", "Operations")
    _filters: tuple[str, ...] = (ALL_OPERATIONS,) + tuple(op.value for op in OPERATIONS)
    _sorts: tuple[SortKey, ...] = (SortKey.DATE_DESC, SortKey.DATE_ASC, SortKey.SCORE_DESC, SortKey.SCORE_ASC)

    def __init__(self, app: App, *, recorder: ResultRecorder, palette: Palette) -> None:
        self._app = app
        self._palette = palette
        self._tab = 0
        self._filter = 0
        self._sort = 0
        self._error: str | None = None
        self._history: list[SessionResult] = []
        self._small = pygame.font.Font(None, 26)
        try:
            self._history = recorder.store().load()
        except PersistenceError as exc:
            log.error("Cannot load history: %s", exc)
            self._error = str(exc)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()
        elif event.key in (pygame.K_RIGHT, pygame.K_TAB):
            self._tab = (self._tab + 1) % len(self._tabs)
        elif event.key == pygame.K_LEFT:
            self._tab = (self._tab - 1) % len(self._tabs)
        elif event.key == pygame.K_f:
            self._filter = (self._filter + 1) % len(self._filters)
        elif event.key == pygame.K_o:
            self._sort = (self._sort + 1) % len(self._sorts)

    def update(self) -> None:
        pass

    def render(self, surface: pygame.Surface) -> None:
        p = self._palette
        surface.fill(p.bg)
        tabs = "   ".join(f"[{t}]" if i == self._tab else t for i, t in enumerate(self._tabs))
        surface.blit(self._app.font.render(tabs, True, p.text), (40, 30))

        if self._error is not None:
            lines = ["Could not load results:", self._error]
        elif not self._history:
            lines = ["No Game Data Yet", "Play a few games to see your statistics here."]
        elif self._tab == 0:
            lines = self._overview_lines()
        elif self._tab == 1:
            lines = self._history_lines()
        else:
            lines = self._operation_lines()
        _draw_lines(surface, self._small, lines, x=40, y=90, color=p.text, step=26)

        hint = self._small.render("Left/Right tabs, F filter, O sort, Esc back", True, p.muted)
        surface.blit(hint, (40, surface.get_height() - 40))

    def _overview_lines(self) -> list[str]:
        ov = overview(self._history)
        assert ov.avg_score is not None and ov.avg_accuracy is not None and ov.best_game is not None
        arrow = "up" if ov.recent_trend == "positive" else "down"
        lines = [
            f"Games played: {ov.total_games}",
            f"Problems solved: {ov.total_problems}",
            f"Average score: {ov.avg_score:.1f}  (recent trend: {arrow} {ov.recent_avg_score:.1f})",
            f"Average accuracy: {ov.avg_accuracy:.1f}%",
            f"Best game: {ov.best_game.score} points on {_format_when(ov.best_game.timestamp)}"
            f" with {ov.best_game.accuracy}% accuracy",
            "",
            "Last games:",
        ]
        for game in recent_games(self._history, limit=10):
            lines.append(f"  {_format_when(game.timestamp)}  {'#' * min(game.score, 40)} {game.score}")
        return lines

    def _history_lines(self) -> list[str]:
        op_filter = self._filters[self._filter]
        sort_key = self._sorts[self._sort]
        lines = [f"Filter: {op_filter}   Sort: {sort_key.value}", ""]
        for game in filter_and_sort(self._history, op_filter, sort_key)[:14]:
            ops = ", ".join(op.label for op in game.operations_used)
            lines.append(f"{_format_when(game.timestamp)}  score {game.score}  {game.accuracy}%  {ops}")
        return lines

    def _operation_lines(self) -> list[str]:
        lines = ["Operation       Problems  Correct  Accuracy  Avg time"]
        for s in by_operation(self._history):
            avg = "-" if s.avg_response_s is None else f"{s.avg_response_s:.2f}s"
            lines.append(f"{s.operation.label:<15} {s.total:>8} {s.correct:>8} {s.accuracy:>8.1f}%  {avg}")
        weakest = weakest_operation(self._history)
        lines.append("")
        if weakest is not None and weakest.needs_practice:
            lines.append(
                f"Your accuracy with {weakest.operation.value} is {weakest.accuracy:.1f}%, "
                "your lowest performing operation."
            )
            lines.append(weakest.tip)
        else:
            lines.append("Great job! Your performance is strong across all operations.")
        return lines


def _cycle_duration(settings: TrainerSettings, delta: int) -> TrainerSettings:
    choices = DURATION_CHOICES_S
    if settings.duration_s in choices:
        index = (choices.index(settings.duration_s) + delta) % len(choices)
    else:
        index = 0
    return replace(settings, duration_s=choices[index])


def _format_duration(seconds: int) -> str:
    if seconds % 60 == 0:
        minutes = seconds // 60
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"


def _format_when(timestamp: str) -> str:
    moment = parse_timestamp(timestamp)
    return timestamp if moment is None else moment.strftime("%Y-%m-%d %H:%M")


def _export(app: App, recorder: ResultRecorder, storage: FileStorage, palette: Palette) -> None:
    try:
        history = recorder.store().load()
        if not history:
            lines = ["No game results found to export."]
        else:
            summary_path, details_path = export_csv(storage, history)
            lines = ["Results exported to:", str(storage.resolve(summary_path)), str(storage.resolve(details_path))]
    except PersistenceError as exc:
        log.error("Error exporting results: %s", exc)
        lines = ["Error exporting results.", str(exc)]
    app.push(MessageScreen(app, "Export CSV", lines, palette))


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    data_dir: Path | None = None,
) -> int:
    root = Path(data_dir) if data_dir is not None else default_data_dir()
    settings_store = SettingsStore(root / "settings.json")
    try:
        settings = settings_store.load()
    except ConfigError as exc:
        log.warning("Using default settings: %s", exc)
        settings = TrainerSettings()

    storage = FileStorage(root)
    recorder = ResultRecorder(settings, storage)

    pygame.init()
    pygame.display.set_caption("Arithmetic Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)
    font = pygame.font.Font(None, 36)
    frame_clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()

    def open_drill() -> None:
        app.push(
            DrillScreen(
                app,
                settings=recorder.settings,
                settings_store=settings_store,
                recorder=recorder,
                clock=real_clock,
            )
        )

    def open_stats() -> None:
        app.push(StatsScreen(app, recorder=recorder, palette=palette_for(recorder.settings)))

    def open_settings() -> None:
        app.push(SettingsScreen(app, settings_store=settings_store, recorder=recorder))

    main_items = [
        MenuItem("Start Drill", open_drill),
        MenuItem("Statistics", open_stats),
        MenuItem("Export CSV", lambda: _export(app, recorder, storage, palette_for(recorder.settings))),
        MenuItem("Settings", open_settings),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Arithmetic Trainer", main_items, lambda: palette_for(recorder.settings), is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.update()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
