"""End-to-end tests for the engine entry points."""

from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from noteends.engine import NO_OP, UNDO_LABEL, process_active_take, run  # noqa: E402
from noteends.events import (  # noqa: E402
    FLAG_SELECTED,
    TRAILER_SIZE,
    EventStreamError,
    decode_event_stream,
    pack_event,
)
from noteends.pairing import pair_notes  # noqa: E402
from noteends.randomizer import Seed  # noqa: E402

TRAILER = pack_event(7, 0, b"\xB0\x7B\x00")


def _build(events: list[tuple[int, int, bytes]]) -> bytes:
    parts = []
    previous = 0
    for tick, flags, payload in events:
        parts.append(pack_event(tick - previous, flags, payload))
        previous = tick
    parts.append(TRAILER)
    return b"".join(parts)


def _song(note_count: int = 32, *, selected_every: int = 1) -> bytes:
    """Non-overlapping quarter notes with a CC and program change sprinkled in."""
    events: list[tuple[int, int, bytes]] = [(0, 0, b"\xC0\x05")]
    for i in range(note_count):
        start = i * 480
        flags = FLAG_SELECTED if i % selected_every == 0 else 0
        pitch = 48 + i % 24
        events.append((start, flags, bytes([0x90, pitch, 100])))
        events.append((start + 100, 0, b"\xB0\x01\x40"))
        events.append((start + 360, flags, bytes([0x80, pitch, 0])))
    return _build(events)


def _note_spans(data: bytes) -> list[tuple[int, int, int]]:
    pairs = pair_notes(decode_event_stream(data).events).pairs
    return sorted((p.start_ticks, p.pitch, p.end_ticks) for p in pairs)


class RecordingHost:
    def __init__(self, buffer):
        self.buffer = buffer
        self.writes = []
        self.scopes = []

    def get_active_event_buffer(self):
        return self.buffer

    def set_active_event_buffer(self, data):
        self.writes.append(data)
        self.buffer = data

    def tick_to_time(self, tick):
        return tick / 960.0

    def time_to_tick(self, seconds):
        return int(round(seconds * 960.0))

    def begin_undo_scope(self, label):
        self.scopes.append(("begin", label))

    def end_undo_scope(self, label, changed):
        self.scopes.append(("end", label, changed))


def test_onsets_preserved_and_ends_bounded():
    data = _song()
    result = run(data, True, 0.5, Seed(42))
    assert result.buffer is not None
    assert result.modified_count == result.pair_count == 32

    before = _note_spans(data)
    after = _note_spans(result.buffer)
    assert [(s, p) for s, p, _ in before] == [(s, p) for s, p, _ in after]
    for (start, _, end_before), (_, _, end_after) in zip(before, after):
        original = end_before - start
        assert abs((end_after - start) - original) <= 0.5 * original + 1


def test_non_note_events_pass_through():
    data = _song()
    result = run(data, True, 1.0, Seed(7))

    def non_notes(buf):
        return [
            (e.flags, e.payload)
            for e in decode_event_stream(buf).events
            if e.payload[0] >> 4 not in (0x8, 0x9)
        ]

    def cc_ticks(buf):
        return [e.absolute_ticks for e in decode_event_stream(buf).events if e.payload[0] == 0xB0]

    assert non_notes(result.buffer) == non_notes(data)
    assert cc_ticks(result.buffer) == cc_ticks(data)


def test_event_count_and_trailer_unchanged():
    data = _song()
    result = run(data, True, 0.8, Seed(3))
    assert len(decode_event_stream(result.buffer).events) == len(decode_event_stream(data).events)
    assert result.buffer[-TRAILER_SIZE:] == data[-TRAILER_SIZE:]
    assert len(result.buffer) == len(data)


def test_deterministic_for_same_inputs():
    data = _song()
    first = run(data, True, 0.6, Seed(2024))
    second = run(data, True, 0.6, Seed(2024))
    assert first.buffer == second.buffer


def test_no_eligible_pairs_is_a_no_op():
    # The only selected note is a single tick long, so nothing qualifies.
    data = _build(
        [
            (0, 0, b"\x90\x3C\x64"),
            (300, 0, b"\x80\x3C\x00"),
            (400, FLAG_SELECTED, b"\x90\x3E\x64"),
            (401, FLAG_SELECTED, b"\x80\x3E\x00"),
        ]
    )
    result = run(data, False, 1.0, Seed(1))
    assert result.buffer is None
    assert result.modified_count == 0
    assert result.pair_count == 2
    assert result.changed is False


def test_selected_only_touches_selected_notes():
    data = _song(selected_every=2)
    result = run(data, False, 1.0, Seed(11))
    assert result.modified_count == 16

    before = _note_spans(data)
    after = _note_spans(result.buffer)
    for i, (b, a) in enumerate(zip(before, after)):
        if i % 2 == 1:
            assert a == b


def test_scale_zero_intensity():
    events = []
    for i in range(50_000):
        pitch = 36 + i % 48
        events.append((i * 240, 0, bytes([0x90, pitch, 90])))
        events.append((i * 240 + 200, 0, bytes([0x80, pitch, 0])))
    data = _build(events)

    result = run(data, True, 0.0, Seed(5))

    assert result.pair_count == 50_000
    assert result.modified_count == 0
    assert result.buffer is None


def test_tempo_aware_conversions_are_used():
    data = _song(4)
    calls = []

    def tick_to_time(tick):
        calls.append(tick)
        return tick / 960.0

    result = run(
        data,
        True,
        0.5,
        Seed(1),
        tick_to_time=tick_to_time,
        time_to_tick=lambda seconds: round(seconds * 960.0),
    )
    assert result.modified_count == 4
    assert len(calls) == 8


def test_invalid_intensity_raises_before_decoding():
    with pytest.raises(ValueError, match="intensity"):
        run(b"", True, 2.0, Seed(1))


class TestProcessActiveTake:
    def test_commits_and_records_one_undo_scope(self):
        host = RecordingHost(_song())
        result = process_active_take(host, apply_to_all=True, intensity=0.5, seed=Seed(9))
        assert host.writes == [result.buffer]
        assert host.scopes == [("begin", UNDO_LABEL), ("end", UNDO_LABEL, True)]

    def test_no_container_is_no_op(self):
        host = RecordingHost(None)
        result = process_active_take(host, apply_to_all=True, intensity=0.5, seed=Seed(9))
        assert result is NO_OP
        assert host.writes == []
        assert host.scopes == []

    def test_no_modifications_close_scope_unchanged(self):
        host = RecordingHost(_song())
        process_active_take(host, apply_to_all=True, intensity=0.0, seed=Seed(9))
        assert host.writes == []
        assert host.scopes[-1] == ("end", UNDO_LABEL, False)

    def test_decode_error_aborts_without_write(self):
        host = RecordingHost(pack_event(0, 0, b"\x90\x3C\x64")[:5] + TRAILER)
        with pytest.raises(EventStreamError):
            process_active_take(host, apply_to_all=True, intensity=0.5, seed=Seed(9))
        assert host.writes == []
        assert host.scopes == [("begin", UNDO_LABEL), ("end", UNDO_LABEL, False)]
