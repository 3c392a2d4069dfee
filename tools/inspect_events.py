#!/usr/bin/env python3
"""Dump the event records and matched note pairs of a MIDI track."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import mido  # noqa: E402

from noteends.events import decode_event_stream  # noqa: E402
from noteends.host import track_to_buffer  # noqa: E402
from noteends.pairing import pair_notes  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Show decoded events and note pairs")
    parser.add_argument("input", type=Path, help="Input MIDI file")
    parser.add_argument("--track", type=int, default=0, help="0-based track index")
    parser.add_argument("--pairs", action="store_true", help="List note pairs only")
    args = parser.parse_args(argv)

    midi = mido.MidiFile(str(args.input))
    if not 0 <= args.track < len(midi.tracks):
        parser.error(f"track {args.track} out of range (file has {len(midi.tracks)})")

    data, _ = track_to_buffer(midi.tracks[args.track])
    stream = decode_event_stream(data)
    pairing = pair_notes(stream.events)

    print(f"{args.input.name} track {args.track}: {len(data)} bytes, {len(stream.events)} events")
    if not args.pairs:
        for event in stream.events:
            print(
                f"  0x{event.position:06X}  +{event.delta_ticks:<6d} @{event.absolute_ticks:<8d} "
                f"flags=0x{event.flags:02X}  {event.payload.hex(' ')}"
            )
        print(f"  trailer {stream.trailer.hex(' ')}")

    print(
        f"pairs={len(pairing.pairs)} unmatched_offs={pairing.unmatched_note_offs} "
        f"open={pairing.open_notes}"
    )
    for pair in pairing.pairs:
        print(
            f"  ch{pair.channel + 1:<2d} note={pair.pitch:<3d} vel={pair.velocity:<3d} "
            f"{pair.start_ticks}-{pair.end_ticks} len={pair.original_length}"
            f"{' sel' if pair.selected else ''}"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
