"""Host environments that supply event buffers and tempo conversions.

``MidiFileHost`` exposes one track of a Standard MIDI File as the active
event buffer.  Each track message becomes one record whose payload is the
message's raw bytes; the ``end_of_track`` meta message becomes the 12-byte
trailer, stored as an all-notes-off record carrying the end-of-track delta.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import mido

from .events import (
    FLAG_SELECTED,
    RECORD_HEADER,
    EventStreamError,
    decode_event_stream,
    pack_event,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPO = 500000  # microseconds per beat (120 BPM)
ALL_NOTES_OFF = b"\xB0\x7B\x00"

SelectionPredicate = Callable[[int, mido.Message], bool]


class Host(Protocol):
    def get_active_event_buffer(self) -> Optional[bytes]: ...

    def set_active_event_buffer(self, data: bytes) -> None: ...

    def tick_to_time(self, tick: float) -> float: ...

    def time_to_tick(self, seconds: float) -> int: ...

    def begin_undo_scope(self, label: str) -> None: ...

    def end_undo_scope(self, label: str, changed: bool) -> None: ...


@dataclass(frozen=True)
class TempoSegment:
    tick: int
    seconds: float
    tempo: int


class TempoMap:
    """Piecewise tick/seconds conversion over a list of tempo changes."""

    def __init__(self, ticks_per_beat: int, changes: Iterable[Tuple[int, int]] = ()) -> None:
        if ticks_per_beat <= 0:
            raise ValueError(f"ticks_per_beat must be positive, got {ticks_per_beat}")
        self.ticks_per_beat = ticks_per_beat

        segments = [TempoSegment(tick=0, seconds=0.0, tempo=DEFAULT_TEMPO)]
        for tick, tempo in sorted(changes, key=lambda change: change[0]):
            last = segments[-1]
            if tick <= last.tick:
                # Same position: the later change wins.
                segments[-1] = TempoSegment(tick=last.tick, seconds=last.seconds, tempo=tempo)
                continue
            seconds = last.seconds + mido.tick2second(tick - last.tick, ticks_per_beat, last.tempo)
            segments.append(TempoSegment(tick=tick, seconds=seconds, tempo=tempo))

        self.segments: List[TempoSegment] = segments
        self._ticks = [segment.tick for segment in segments]
        self._seconds = [segment.seconds for segment in segments]

    @classmethod
    def from_midi(cls, midi: mido.MidiFile) -> "TempoMap":
        changes: List[Tuple[int, int]] = []
        for track in midi.tracks:
            abs_tick = 0
            for msg in track:
                abs_tick += msg.time
                if msg.type == "set_tempo":
                    changes.append((abs_tick, msg.tempo))
        return cls(midi.ticks_per_beat, changes)

    def tick_to_time(self, tick: float) -> float:
        segment = self.segments[max(0, bisect_right(self._ticks, tick) - 1)]
        return segment.seconds + mido.tick2second(tick - segment.tick, self.ticks_per_beat, segment.tempo)

    def time_to_tick(self, seconds: float) -> int:
        segment = self.segments[max(0, bisect_right(self._seconds, seconds) - 1)]
        return segment.tick + mido.second2tick(
            seconds - segment.seconds, self.ticks_per_beat, segment.tempo
        )


def select_channels(channels: Iterable[int]) -> SelectionPredicate:
    """Return a predicate selecting note messages on the given 0-based channels."""

    wanted = frozenset(channels)

    def predicate(abs_tick: int, msg: mido.Message) -> bool:
        return msg.type in ("note_on", "note_off") and msg.channel in wanted

    return predicate


def track_to_buffer(
    track: Iterable[mido.Message],
    is_selected: Optional[SelectionPredicate] = None,
) -> Tuple[bytes, Dict[bytes, mido.MetaMessage]]:
    """Encode a track as an event buffer.

    Returns the buffer and a lookup from meta-message payloads to the
    messages they were encoded from, which :func:`buffer_to_track` needs to
    restore them.
    """

    parts: List[bytes] = []
    metas: Dict[bytes, mido.MetaMessage] = {}
    abs_tick = 0
    end_delta = 0

    for msg in track:
        abs_tick += msg.time
        if msg.is_meta and msg.type == "end_of_track":
            end_delta = msg.time
            break
        payload = bytes(msg.bytes())
        if msg.is_meta:
            metas[payload] = msg.copy(time=0)
        flags = FLAG_SELECTED if is_selected is not None and is_selected(abs_tick, msg) else 0
        parts.append(pack_event(msg.time, flags, payload))

    parts.append(pack_event(end_delta, 0, ALL_NOTES_OFF))
    return b"".join(parts), metas


def buffer_to_track(data: bytes, metas: Dict[bytes, mido.MetaMessage]) -> mido.MidiTrack:
    stream = decode_event_stream(data)
    track = mido.MidiTrack()
    for event in stream.events:
        if event.payload[:1] == b"\xFF":
            meta = metas.get(event.payload)
            if meta is None:
                raise EventStreamError(f"unknown meta event at 0x{event.position:04X}")
            track.append(meta.copy(time=event.delta_ticks))
        else:
            track.append(mido.Message.from_bytes(list(event.payload), time=event.delta_ticks))

    end_delta = RECORD_HEADER.unpack_from(stream.trailer)[0]
    track.append(mido.MetaMessage("end_of_track", time=max(0, end_delta)))
    return track


@dataclass(frozen=True)
class UndoEntry:
    label: str
    track_index: int
    messages: List[mido.Message]


class MidiFileHost:
    """Drive the engine against one track of an in-memory ``mido.MidiFile``."""

    def __init__(
        self,
        midi: mido.MidiFile,
        track_index: int,
        *,
        is_selected: Optional[SelectionPredicate] = None,
    ) -> None:
        self.midi = midi
        self.track_index = track_index
        self.is_selected = is_selected
        self.tempo_map = TempoMap.from_midi(midi)
        self.undo_history: List[UndoEntry] = []
        self._metas: Dict[bytes, mido.MetaMessage] = {}
        self._open_scope: Optional[Tuple[str, List[mido.Message]]] = None

    def _has_track(self) -> bool:
        return 0 <= self.track_index < len(self.midi.tracks)

    def get_active_event_buffer(self) -> Optional[bytes]:
        if not self._has_track():
            return None
        data, self._metas = track_to_buffer(self.midi.tracks[self.track_index], self.is_selected)
        return data

    def set_active_event_buffer(self, data: bytes) -> None:
        if not self._has_track():
            raise ValueError(f"track {self.track_index} does not exist")
        # Build the whole track first so a decode error leaves the file untouched.
        track = buffer_to_track(data, self._metas)
        self.midi.tracks[self.track_index] = track
        logger.debug("committed %d messages to track %d", len(track), self.track_index)

    def tick_to_time(self, tick: float) -> float:
        return self.tempo_map.tick_to_time(tick)

    def time_to_tick(self, seconds: float) -> int:
        return self.tempo_map.time_to_tick(seconds)

    def begin_undo_scope(self, label: str) -> None:
        if self._open_scope is not None:
            raise RuntimeError(f"undo scope {self._open_scope[0]!r} is already open")
        snapshot = list(self.midi.tracks[self.track_index]) if self._has_track() else []
        self._open_scope = (label, snapshot)

    def end_undo_scope(self, label: str, changed: bool) -> None:
        if self._open_scope is None:
            raise RuntimeError(f"no open undo scope to close for {label!r}")
        _, snapshot = self._open_scope
        self._open_scope = None
        if changed:
            self.undo_history.append(
                UndoEntry(label=label, track_index=self.track_index, messages=snapshot)
            )

    def undo(self) -> Optional[str]:
        """Restore the track from the most recent undo entry; return its label."""

        if not self.undo_history:
            return None
        entry = self.undo_history.pop()
        self.midi.tracks[entry.track_index] = mido.MidiTrack(entry.messages)
        return entry.label
