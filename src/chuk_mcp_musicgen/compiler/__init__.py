"""
Format conversion - fragments to notation, timelines and MIDI.

The pipeline:
    MusicFragment → notation/v1 JSON (lossless interchange)
    MusicFragment → PlaybackTimeline (tempo-realised synth events)
    PlaybackTimeline → MIDI File (rendered artifact)
"""

from chuk_mcp_musicgen.compiler.midi import (
    TICKS_PER_BEAT,
    fragment_to_midi,
    midi_to_bytes,
    timeline_to_midi,
)
from chuk_mcp_musicgen.compiler.notation import from_notation, notation_dict, to_notation
from chuk_mcp_musicgen.compiler.timeline import (
    PlaybackTimeline,
    SynthEvent,
    SynthEventKind,
    TimelineEvent,
    TimelineOptions,
    to_timeline,
)

__all__ = [
    # Notation
    "to_notation",
    "from_notation",
    "notation_dict",
    # Timeline
    "PlaybackTimeline",
    "SynthEvent",
    "SynthEventKind",
    "TimelineEvent",
    "TimelineOptions",
    "to_timeline",
    # MIDI
    "TICKS_PER_BEAT",
    "timeline_to_midi",
    "fragment_to_midi",
    "midi_to_bytes",
]
