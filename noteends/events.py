"""Decode and re-encode delta-encoded MIDI event buffers.

Record layout (little-endian, no padding):

  [delta_ticks i32][flags u8][payload_length i32][payload bytes]

Flag bit 0 marks an event as selected in the editor.  The final 12 bytes of
every buffer are a trailer record that is never parsed as an event and is
copied verbatim when the stream is rebuilt.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Dict, List, Sequence

logger = logging.getLogger(__name__)

RECORD_HEADER = struct.Struct("<iBi")
HEADER_SIZE = RECORD_HEADER.size  # 9
TRAILER_SIZE = 12
FLAG_SELECTED = 0x01


class EventStreamError(ValueError):
    """Raised when a buffer cannot be decoded into complete records."""


@dataclass(frozen=True)
class RawEvent:
    """One record of the event stream with its running tick position."""

    index: int  # ordinal in the decoded sequence
    position: int  # byte offset of the record inside the source buffer
    delta_ticks: int
    flags: int
    payload: bytes
    absolute_ticks: int

    @property
    def selected(self) -> bool:
        return bool(self.flags & FLAG_SELECTED)

    def to_bytes(self, delta_ticks: int | None = None) -> bytes:
        delta = self.delta_ticks if delta_ticks is None else delta_ticks
        return RECORD_HEADER.pack(delta, self.flags, len(self.payload)) + self.payload


@dataclass(frozen=True)
class EventStream:
    """A decoded buffer: ordered events plus the opaque trailer."""

    events: List[RawEvent]
    trailer: bytes

    def to_bytes(self) -> bytes:
        """Re-emit the stream exactly as decoded."""

        parts = [event.to_bytes() for event in self.events]
        parts.append(self.trailer)
        return b"".join(parts)


def decode_event_stream(data: bytes) -> EventStream:
    """Parse ``data`` into raw events and the trailing 12-byte record.

    Raises :class:`EventStreamError` when the buffer is shorter than the
    trailer or when any record does not fit before the trailer boundary.
    """

    if len(data) < TRAILER_SIZE:
        raise EventStreamError(
            f"buffer too short for trailer ({len(data)} bytes, need {TRAILER_SIZE})"
        )

    body_end = len(data) - TRAILER_SIZE
    events: List[RawEvent] = []
    pos = 0
    running = 0

    while pos < body_end:
        if pos + HEADER_SIZE > body_end:
            raise EventStreamError(
                f"truncated record header at 0x{pos:04X} "
                f"({body_end - pos} bytes before trailer)"
            )
        delta, flags, length = RECORD_HEADER.unpack_from(data, pos)
        if length < 0:
            raise EventStreamError(f"negative payload length {length} at 0x{pos:04X}")
        payload_start = pos + HEADER_SIZE
        next_pos = payload_start + length
        if next_pos > body_end:
            raise EventStreamError(
                f"payload of {length} bytes at 0x{pos:04X} overruns trailer boundary 0x{body_end:04X}"
            )

        running += delta
        events.append(
            RawEvent(
                index=len(events),
                position=pos,
                delta_ticks=delta,
                flags=flags,
                payload=bytes(data[payload_start:next_pos]),
                absolute_ticks=running,
            )
        )
        pos = next_pos

    logger.debug("decoded %d events (%d bytes)", len(events), len(data))
    return EventStream(events=events, trailer=bytes(data[body_end:]))


def encode_event_stream(
    events: Sequence[RawEvent],
    trailer: bytes,
    tick_overrides: Dict[int, int] | None = None,
) -> bytes:
    """Sort ``events`` by effective tick and emit a fresh delta-encoded buffer.

    ``tick_overrides`` maps a record's source position to the absolute tick it
    should be re-emitted at.  Ties keep their original relative order.
    Negative deltas left by overlapping overrides are clamped to zero.
    """

    if len(trailer) != TRAILER_SIZE:
        raise ValueError(f"trailer must be {TRAILER_SIZE} bytes, got {len(trailer)}")

    overrides = tick_overrides or {}
    placed = sorted(
        (
            (overrides.get(event.position, event.absolute_ticks), event.index, event)
            for event in events
        ),
        key=lambda item: (item[0], item[1]),
    )

    parts: List[bytes] = []
    previous = 0  # tick of the last emitted record
    for tick, _, event in placed:
        delta = max(0, round(tick - previous))
        parts.append(event.to_bytes(delta_ticks=delta))
        previous += delta
    parts.append(trailer)
    return b"".join(parts)


def rebuild_event_stream(stream: EventStream, tick_overrides: Dict[int, int]) -> bytes:
    return encode_event_stream(stream.events, stream.trailer, tick_overrides)


def pack_event(delta_ticks: int, flags: int, payload: bytes) -> bytes:
    """Encode a single record; used when assembling buffers from messages."""

    return RECORD_HEADER.pack(delta_ticks, flags, len(payload)) + bytes(payload)
