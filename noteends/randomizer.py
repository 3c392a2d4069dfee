"""Perturb note end positions by a bounded random amount.

The variation is drawn in real time rather than in ticks, so a note keeps the
same relative spread across tempo changes:

  variation_seconds = (2*U - 1) * intensity * duration_seconds

and the new end is converted back to ticks through the host's tempo map.
Onsets are never touched.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List

from .pairing import NotePair

logger = logging.getLogger(__name__)

TickToTime = Callable[[float], float]
TimeToTick = Callable[[float], float]

MIN_LENGTH_TICKS = 1


@dataclass(frozen=True)
class Seed:
    """Explicit random seed; regenerating yields a new value."""

    value: int

    @classmethod
    def fresh(cls) -> "Seed":
        return cls(int(time.time()) + random.randint(1000, 9999))

    def regenerate(self) -> "Seed":
        return Seed.fresh()

    def rng(self) -> random.Random:
        return random.Random(self.value)


@dataclass
class RandomizeResult:
    pairs: List[NotePair]
    modified_count: int = 0
    clamped_count: int = 0

    @property
    def pair_count(self) -> int:
        return len(self.pairs)

    def tick_overrides(self) -> Dict[int, int]:
        """Map note-off record positions to their new absolute tick."""

        return {
            pair.end_pos: pair.new_end_ticks
            for pair in self.pairs
            if pair.modified and pair.new_end_ticks != pair.end_ticks
        }


def validate_intensity(intensity: float) -> float:
    value = float(intensity)
    if not (0.0 <= value <= 1.0):
        raise ValueError(f"intensity must be in [0, 1], got {intensity!r}")
    return value


def is_eligible(pair: NotePair, apply_to_all: bool) -> bool:
    return pair.original_length > 1 and (apply_to_all or pair.selected)


def randomize_durations(
    pairs: Iterable[NotePair],
    *,
    apply_to_all: bool,
    intensity: float,
    seed: Seed,
    tick_to_time: TickToTime,
    time_to_tick: TimeToTick,
) -> RandomizeResult:
    """Assign ``new_end_ticks`` to every eligible pair, in the given order.

    Intensity 0 makes no draws and modifies nothing.  A result that would
    end at or before the onset is clamped to one tick past it.
    """

    intensity = validate_intensity(intensity)
    result = RandomizeResult(pairs=list(pairs))
    if intensity == 0.0:
        return result

    rng = seed.rng()
    for pair in result.pairs:
        if not is_eligible(pair, apply_to_all):
            continue

        start_time = tick_to_time(pair.start_ticks)
        end_time = tick_to_time(pair.end_ticks)
        duration_seconds = end_time - start_time
        variation_seconds = (rng.random() * 2 - 1) * intensity * duration_seconds
        new_end = int(round(time_to_tick(end_time + variation_seconds)))

        if new_end - pair.start_ticks < MIN_LENGTH_TICKS:
            new_end = pair.start_ticks + MIN_LENGTH_TICKS
            pair.clamped = True
            result.clamped_count += 1

        pair.new_end_ticks = new_end
        pair.modified = True
        result.modified_count += 1

    if result.clamped_count:
        logger.warning(
            "%d note(s) clamped to %d tick minimum length",
            result.clamped_count,
            MIN_LENGTH_TICKS,
        )
    return result
