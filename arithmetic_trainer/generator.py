from __future__ import annotations

import random
from collections.abc import Sequence

from .config import OperationConfig, NumericRange, TrainerSettings
from .errors import ConfigError
from .models import OPERATION_SYMBOLS, Operation, Problem


def uniform(rng: random.Random, lo: int, hi: int) -> int:
    """Inclusive integer draw. Reversed bounds are an error, never swapped."""

    if lo > hi:
        raise ConfigError(f"invalid range: min ({lo}) > max ({hi})")
    return rng.randint(int(lo), int(hi))


class ProblemGenerator:
    """Produces problems from the configured operand ranges.

    The generator owns its ``random.Random`` so a fixed seed yields the same
    problem stream.
    """

    def __init__(self, rng: random.Random | None = None, *, seed: int | None = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def pick_operation(self, enabled: Sequence[Operation]) -> Operation:
        if not enabled:
            return Operation.ADDITION
        return self._rng.choice(list(enabled))

    def next_problem(self, settings: TrainerSettings) -> Problem:
        op = self.pick_operation(settings.enabled_operations())
        return self.generate(op, settings.operation(op))

    def generate(self, operation: Operation, config: OperationConfig) -> Problem:
        config.validate(operation)
        if operation is Operation.DIVISION:
            # Draw quotient and divisor; the dividend follows.
            quotient = self._draw(config.range_a)
            b = self._draw(config.range_b)
            a = quotient * b
            answer = quotient
        else:
            a = self._draw(config.range_a)
            b = self._draw(config.range_b)
            if operation is Operation.ADDITION:
                answer = a + b
            elif operation is Operation.SUBTRACTION:
                if b > a:
                    a, b = b, a
                answer = a - b
            else:
                answer = a * b

        text = f"{a} {OPERATION_SYMBOLS[operation]} {b}"
        return Problem(a=a, b=b, operation=operation, text=text, answer=answer)

    def _draw(self, r: NumericRange) -> int:
        return uniform(self._rng, r.lo, r.hi)
