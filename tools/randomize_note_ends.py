#!/usr/bin/env python3
"""Randomize note lengths in one track of a MIDI file.

Examples
--------
    python tools/randomize_note_ends.py song.mid --track 1 --intensity 0.3
    python tools/randomize_note_ends.py song.mid -o out.mid --channel 0 --seed 1234
    python tools/randomize_note_ends.py song.mid --settings ~/.note-ends.json --new-seed
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import logging
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import mido  # noqa: E402

from noteends.host import MidiFileHost, select_channels  # noqa: E402
from noteends.randomizer import Seed  # noqa: E402
from noteends.session import RandomizerSession  # noqa: E402
from noteends.settings import (  # noqa: E402
    RandomizerSettings,
    load_settings,
    save_settings,
)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Humanize note ends: vary note lengths, keep onsets fixed",
    )
    parser.add_argument("input", type=Path, help="Input MIDI file")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output MIDI path (default: overwrite input)",
    )
    parser.add_argument(
        "--track",
        type=int,
        default=0,
        help="0-based track index to process (default: 0)",
    )
    parser.add_argument(
        "--intensity",
        type=float,
        default=None,
        help="Maximum relative length change, 0.0-1.0 (default: from settings or 0.5)",
    )
    parser.add_argument(
        "--channel",
        type=int,
        action="append",
        default=None,
        help="Only randomize notes on this 0-based channel (repeatable)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (default: from settings or fresh)",
    )
    parser.add_argument(
        "--new-seed",
        action="store_true",
        help="Generate a fresh seed before running",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="JSON settings file to read and update",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the transform without writing the MIDI file",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _resolve_settings(args: argparse.Namespace) -> tuple[RandomizerSettings, RandomizerSettings]:
    """Return the stored settings and the settings for this run."""

    settings = load_settings(args.settings) if args.settings is not None else RandomizerSettings()
    intensity = settings.intensity if args.intensity is None else args.intensity
    seed = settings.seed if args.seed is None else Seed(args.seed)
    apply_to_all = not args.channel
    return settings, RandomizerSettings(intensity=intensity, apply_to_all=apply_to_all, seed=seed)


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        stored, settings = _resolve_settings(args)
        midi = mido.MidiFile(str(args.input))
    except (OSError, ValueError) as exc:
        print(f"ERR  {args.input}: {exc}")
        return 1

    is_selected = select_channels(args.channel) if args.channel else None
    host = MidiFileHost(midi, args.track, is_selected=is_selected)
    session = RandomizerSession(settings)
    if args.new_seed:
        session.new_seed()
    seed = session.seed

    try:
        result = session.run(host)
    except ValueError as exc:
        print(f"ERR  {args.input}: {exc}")
        return 1

    print(
        f"seed={seed.value} intensity={settings.intensity:.2f} "
        f"pairs={result.pair_count} modified={result.modified_count} "
        f"clamped={result.clamped_count}"
    )
    print(session.statistics_line())

    if args.settings is not None:
        # apply_to_all is kept as stored; --channel only affects this run.
        save_settings(replace(session.settings, apply_to_all=stored.apply_to_all), args.settings)

    if not result.changed:
        print("No notes modified; file left untouched")
        return 0
    if args.dry_run:
        print("dry-run: not writing output")
        return 0

    out_path = (args.output or args.input).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    midi.save(str(out_path))
    print(f"Wrote {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
