"""Match note-on events to note-off events per (pitch, channel).

Matching is first-in-first-out: the oldest unmatched note-on for a key is
closed by the next note-off for that key.  A note-on with velocity 0 counts
as a note-off.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Tuple

from .events import RawEvent

logger = logging.getLogger(__name__)

NOTE_OFF = 0x8
NOTE_ON = 0x9

NoteKey = Tuple[int, int]  # (pitch, channel)


@dataclass(frozen=True)
class ActiveNote:
    start_ticks: int
    start_pos: int
    selected: bool
    velocity: int


@dataclass
class NotePair:
    """One matched note-on/note-off with both boundary record positions."""

    start_ticks: int
    end_ticks: int
    start_pos: int
    end_pos: int
    selected: bool
    pitch: int
    channel: int
    velocity: int
    new_end_ticks: int = field(init=False)
    modified: bool = False
    clamped: bool = False

    def __post_init__(self) -> None:
        self.new_end_ticks = self.end_ticks

    @property
    def key(self) -> NoteKey:
        return (self.pitch, self.channel)

    @property
    def original_length(self) -> int:
        return self.end_ticks - self.start_ticks

    @property
    def new_length(self) -> int:
        return self.new_end_ticks - self.start_ticks


@dataclass
class PairingResult:
    pairs: List[NotePair]
    unmatched_note_offs: int = 0
    open_notes: int = 0


def classify(payload: bytes) -> Tuple[int, int, int, int] | None:
    """Return ``(kind, channel, pitch, velocity)`` for note messages, else None.

    ``kind`` is NOTE_ON for a sounding note-on and NOTE_OFF for either a
    note-off or a zero-velocity note-on.
    """

    if len(payload) < 3:
        return None
    status = payload[0]
    kind = status >> 4
    if kind not in (NOTE_ON, NOTE_OFF):
        return None
    channel = status & 0x0F
    pitch = payload[1]
    velocity = payload[2]
    if kind == NOTE_ON and velocity == 0:
        kind = NOTE_OFF
    return kind, channel, pitch, velocity


def pair_notes(events: Iterable[RawEvent]) -> PairingResult:
    """Walk ``events`` in stream order and build note pairs.

    Pairs come out in the order their note-off was encountered; that order is
    the fixed visiting order used when drawing random variations.
    """

    active: Dict[NoteKey, Deque[ActiveNote]] = {}
    pairs: List[NotePair] = []
    unmatched = 0

    for event in events:
        parsed = classify(event.payload)
        if parsed is None:
            continue
        kind, channel, pitch, velocity = parsed
        key = (pitch, channel)

        if kind == NOTE_ON:
            active.setdefault(key, deque()).append(
                ActiveNote(
                    start_ticks=event.absolute_ticks,
                    start_pos=event.position,
                    selected=event.selected,
                    velocity=velocity,
                )
            )
            continue

        queue = active.get(key)
        if not queue:
            unmatched += 1
            continue
        note = queue.popleft()
        pairs.append(
            NotePair(
                start_ticks=note.start_ticks,
                end_ticks=event.absolute_ticks,
                start_pos=note.start_pos,
                end_pos=event.position,
                selected=note.selected or event.selected,
                pitch=pitch,
                channel=channel,
                velocity=note.velocity,
            )
        )

    open_notes = sum(len(queue) for queue in active.values())
    if unmatched:
        logger.warning("%d note-off event(s) without a matching note-on", unmatched)
    if open_notes:
        logger.warning("%d note-on event(s) never closed", open_notes)
    logger.debug("paired %d notes", len(pairs))
    return PairingResult(pairs=pairs, unmatched_note_offs=unmatched, open_notes=open_notes)
