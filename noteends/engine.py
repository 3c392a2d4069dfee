"""Single-call entry points tying decoder, pairing, randomizer and encoder."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from .events import decode_event_stream, rebuild_event_stream
from .host import Host
from .pairing import pair_notes
from .randomizer import Seed, TickToTime, TimeToTick, randomize_durations, validate_intensity

logger = logging.getLogger(__name__)

UNDO_LABEL = "Randomize note ends"


def _identity(value: float) -> float:
    return value


@dataclass(frozen=True)
class RunResult:
    """Outcome of one pass.  ``buffer`` is None when nothing was modified."""

    buffer: Optional[bytes]
    modified_count: int
    pair_count: int
    clamped_count: int
    elapsed: float

    @property
    def changed(self) -> bool:
        return self.buffer is not None

    @property
    def notes_per_second(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.modified_count / self.elapsed


NO_OP = RunResult(buffer=None, modified_count=0, pair_count=0, clamped_count=0, elapsed=0.0)


def run(
    buffer: bytes,
    apply_to_all: bool,
    intensity: float,
    seed: Seed,
    *,
    tick_to_time: TickToTime = _identity,
    time_to_tick: TimeToTick = _identity,
) -> RunResult:
    """Randomize note ends in ``buffer`` and return the rewritten stream.

    The default conversions treat ticks and seconds as the same unit, which
    matches a constant-tempo container.
    """

    validate_intensity(intensity)
    started = time.perf_counter()

    stream = decode_event_stream(buffer)
    pairing = pair_notes(stream.events)
    randomized = randomize_durations(
        pairing.pairs,
        apply_to_all=apply_to_all,
        intensity=intensity,
        seed=seed,
        tick_to_time=tick_to_time,
        time_to_tick=time_to_tick,
    )

    new_buffer = None
    if randomized.modified_count > 0:
        new_buffer = rebuild_event_stream(stream, randomized.tick_overrides())

    elapsed = time.perf_counter() - started
    logger.info(
        "modified %d of %d note(s) in %.3fs (seed=%d intensity=%.2f)",
        randomized.modified_count,
        randomized.pair_count,
        elapsed,
        seed.value,
        intensity,
    )
    return RunResult(
        buffer=new_buffer,
        modified_count=randomized.modified_count,
        pair_count=randomized.pair_count,
        clamped_count=randomized.clamped_count,
        elapsed=elapsed,
    )


class _Scope:
    changed = False


@contextmanager
def undo_scope(host: Host, label: str = UNDO_LABEL) -> Iterator[_Scope]:
    """Bracket a transform; the scope reports ``changed`` only if set inside."""

    scope = _Scope()
    host.begin_undo_scope(label)
    try:
        yield scope
    except BaseException:
        host.end_undo_scope(label, False)
        raise
    host.end_undo_scope(label, scope.changed)


def process_active_take(
    host: Host,
    *,
    apply_to_all: bool,
    intensity: float,
    seed: Seed,
) -> RunResult:
    """Run against the host's active container and commit the result.

    Returns :data:`NO_OP` when the host has no active container.  Decode
    errors propagate after the undo scope is closed without changes.
    """

    validate_intensity(intensity)
    buffer = host.get_active_event_buffer()
    if buffer is None:
        logger.info("no active MIDI container; nothing to process")
        return NO_OP

    with undo_scope(host) as scope:
        result = run(
            buffer,
            apply_to_all,
            intensity,
            seed,
            tick_to_time=host.tick_to_time,
            time_to_tick=host.time_to_tick,
        )
        if result.buffer is not None:
            host.set_active_event_buffer(result.buffer)
            scope.changed = True
    return result
