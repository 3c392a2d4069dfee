"""Randomize MIDI note lengths while keeping every onset in place."""

from .engine import NO_OP, UNDO_LABEL, RunResult, process_active_take, run  # noqa: F401
from .events import (  # noqa: F401
    FLAG_SELECTED,
    TRAILER_SIZE,
    EventStream,
    EventStreamError,
    RawEvent,
    decode_event_stream,
    encode_event_stream,
    pack_event,
    rebuild_event_stream,
)
from .host import (  # noqa: F401
    Host,
    MidiFileHost,
    TempoMap,
    buffer_to_track,
    select_channels,
    track_to_buffer,
)
from .pairing import NotePair, PairingResult, pair_notes  # noqa: F401
from .randomizer import RandomizeResult, Seed, randomize_durations  # noqa: F401
from .session import RandomizerSession  # noqa: F401
from .settings import (  # noqa: F401
    RandomizerSettings,
    load_settings,
    parse_settings,
    save_settings,
)
