"""Trainer settings.

Settings are plain frozen values handed to the generator and the session
engine. ``SettingsStore`` keeps them in a small JSON file in the data
directory; defaults mirror the ranges of the original arithmetic game.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .models import OPERATIONS, Operation

log = logging.getLogger(__name__)

DATA_DIR_ENV = "ARITH_TRAINER_DATA_DIR"
DURATION_CHOICES_S: tuple[int, ...] = (30, 60, 120, 180, 300)


@dataclass(frozen=True, slots=True)
class NumericRange:
    """Inclusive integer range."""

    lo: int
    hi: int

    def validate(self, name: str) -> None:
        if self.lo > self.hi:
            raise ConfigError(f"{name}: min ({self.lo}) must not exceed max ({self.hi})")

    def to_dict(self) -> dict[str, int]:
        return {"min": int(self.lo), "max": int(self.hi)}

    @classmethod
    def from_dict(cls, data: object, fallback: "NumericRange") -> "NumericRange":
        if not isinstance(data, dict):
            return fallback
        return cls(
            lo=_as_int(data.get("min"), fallback.lo),
            hi=_as_int(data.get("max"), fallback.hi),
        )


@dataclass(frozen=True, slots=True)
class OperationConfig:
    """Per-operation switch and operand ranges.

    For division ``range_a`` is the quotient range and ``range_b`` the divisor
    range, so every generated division is exact.
    """

    enabled: bool
    range_a: NumericRange
    range_b: NumericRange

    def validate(self, operation: Operation) -> None:
        self.range_a.validate(f"{operation.value} range A")
        self.range_b.validate(f"{operation.value} range B")
        if operation is Operation.DIVISION and self.range_b.lo < 1:
            raise ConfigError("division divisor range must start at 1 or higher")

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": bool(self.enabled),
            "a": self.range_a.to_dict(),
            "b": self.range_b.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: object, fallback: "OperationConfig") -> "OperationConfig":
        if not isinstance(data, dict):
            return fallback
        return cls(
            enabled=bool(data.get("enabled", fallback.enabled)),
            range_a=NumericRange.from_dict(data.get("a"), fallback.range_a),
            range_b=NumericRange.from_dict(data.get("b"), fallback.range_b),
        )


def _default_operations() -> dict[Operation, OperationConfig]:
    return {
        Operation.ADDITION: OperationConfig(True, NumericRange(2, 100), NumericRange(2, 100)),
        Operation.SUBTRACTION: OperationConfig(True, NumericRange(2, 100), NumericRange(2, 100)),
        Operation.MULTIPLICATION: OperationConfig(True, NumericRange(2, 12), NumericRange(2, 100)),
        Operation.DIVISION: OperationConfig(True, NumericRange(2, 100), NumericRange(2, 10)),
    }


@dataclass(frozen=True, slots=True)
class TrainerSettings:
    operations: dict[Operation, OperationConfig] = field(default_factory=_default_operations)
    duration_s: int = 120
    show_feedback: bool = True
    show_history: bool = True
    dark_mode: bool = False
    save_structured_data: bool = True
    results_note_path: str = "ArithmeticGameResults.md"
    structured_data_path: str = ".arithmetic_game/results.json"

    def operation(self, op: Operation) -> OperationConfig:
        return self.operations[op]

    def enabled_operations(self) -> list[Operation]:
        return [op for op in OPERATIONS if self.operations[op].enabled]

    def validate(self) -> None:
        if self.duration_s <= 0:
            raise ConfigError(f"duration must be positive, got {self.duration_s}")
        if not self.results_note_path.strip():
            raise ConfigError("results note path must not be empty")
        if not self.structured_data_path.strip():
            raise ConfigError("structured data path must not be empty")
        for op in OPERATIONS:
            if op not in self.operations:
                raise ConfigError(f"missing configuration for {op.value}")
            self.operations[op].validate(op)

    def with_operation(self, op: Operation, config: OperationConfig) -> "TrainerSettings":
        ops = dict(self.operations)
        ops[op] = config
        return replace(self, operations=ops)

    def toggled(self, op: Operation) -> "TrainerSettings":
        current = self.operations[op]
        return self.with_operation(op, replace(current, enabled=not current.enabled))

    def with_range_bound(self, op: Operation, bound: str, delta: int) -> "TrainerSettings":
        """Shift one of ``a_min``, ``a_max``, ``b_min``, ``b_max`` by ``delta``.

        The result is not validated; a min above its max is caught by
        :meth:`validate`.
        """
        operand, _, side = bound.partition("_")
        if operand not in ("a", "b") or side not in ("min", "max"):
            raise ValueError(f"unknown range bound: {bound!r}")
        cfg = self.operations[op]
        current = cfg.range_a if operand == "a" else cfg.range_b
        if side == "min":
            shifted = replace(current, lo=current.lo + delta)
        else:
            shifted = replace(current, hi=current.hi + delta)
        if operand == "a":
            return self.with_operation(op, replace(cfg, range_a=shifted))
        return self.with_operation(op, replace(cfg, range_b=shifted))

    def ensure_enabled(self) -> "TrainerSettings":
        """Return settings with addition switched on if nothing is enabled."""
        if self.enabled_operations():
            return self
        return self.with_operation(
            Operation.ADDITION, replace(self.operations[Operation.ADDITION], enabled=True)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "operations": {op.value: self.operations[op].to_dict() for op in OPERATIONS},
            "duration_s": int(self.duration_s),
            "show_feedback": bool(self.show_feedback),
            "show_history": bool(self.show_history),
            "dark_mode": bool(self.dark_mode),
            "save_structured_data": bool(self.save_structured_data),
            "results_note_path": self.results_note_path,
            "structured_data_path": self.structured_data_path,
        }

    @classmethod
    def from_dict(cls, data: object) -> "TrainerSettings":
        defaults = cls()
        if not isinstance(data, dict):
            raise ConfigError("settings must be a JSON object")
        raw_ops = data.get("operations")
        ops = dict(defaults.operations)
        if isinstance(raw_ops, dict):
            for op in OPERATIONS:
                ops[op] = OperationConfig.from_dict(raw_ops.get(op.value), ops[op])
        return cls(
            operations=ops,
            duration_s=_as_int(data.get("duration_s"), defaults.duration_s),
            show_feedback=bool(data.get("show_feedback", defaults.show_feedback)),
            show_history=bool(data.get("show_history", defaults.show_history)),
            dark_mode=bool(data.get("dark_mode", defaults.dark_mode)),
            save_structured_data=bool(data.get("save_structured_data", defaults.save_structured_data)),
            results_note_path=str(data.get("results_note_path") or defaults.results_note_path),
            structured_data_path=str(data.get("structured_data_path") or defaults.structured_data_path),
        )


def default_data_dir() -> Path:
    explicit = os.environ.get(DATA_DIR_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".arithmetic_trainer"


class SettingsStore:
    """Loads and saves ``TrainerSettings`` as JSON."""

    _version = 1

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> TrainerSettings:
        """Return stored settings, or defaults when no file exists yet.

        A file that cannot be parsed raises ``ConfigError`` rather than being
        replaced silently.
        """
        if not self._path.exists():
            return TrainerSettings()
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigError(f"cannot read settings from {self._path}: {exc}") from exc
        if isinstance(payload, dict) and "settings" in payload:
            payload = payload["settings"]
        return TrainerSettings.from_dict(payload)

    def save(self, settings: TrainerSettings) -> None:
        payload = {"version": self._version, "settings": settings.to_dict()}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError:
            log.exception("Failed to save settings to %s", self._path)


def _as_int(value: object, fallback: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return fallback
