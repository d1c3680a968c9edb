"""
Notation interchange - the stable, diffable serialization of a fragment.

The notation blob is versioned JSON designed to be:
- Deterministic: same fragment -> byte-identical blob
- Lossless for pitch, duration, offset, velocity, ties and chord data
- Diffable: canonical event ordering, sorted keys
- Readable: pitches spelled for the key, beats as exact fractions ('3/2')

Rendering hints (the ``bar`` of each event) are written for readers but
ignored when parsing; they are regenerable from offsets.

Schema version: notation/v1
"""

from __future__ import annotations

import json
from typing import Any

from chuk_mcp_musicgen.constants import (
    DEFAULT_CHORD_OCTAVE,
    DEFAULT_VELOCITY,
    NOTATION_SCHEMA,
)
from chuk_mcp_musicgen.core.chord import get_quality
from chuk_mcp_musicgen.core.pitch import Pitch, PitchClass
from chuk_mcp_musicgen.core.rhythm import TimeSignature, format_beats, to_beats
from chuk_mcp_musicgen.core.scale import Key
from chuk_mcp_musicgen.models.fragment import Chord, FragmentEvent, MusicFragment, Note


def _event_to_dict(event: FragmentEvent, fragment: MusicFragment) -> dict[str, Any]:
    flats = fragment.key.prefers_flats
    bar = fragment.time_signature.bar_of(event.start) + 1
    if isinstance(event, Chord):
        return {
            "kind": "chord",
            "symbol": event.symbol,
            "root": event.root.spell(flats),
            "quality": event.quality.tag,
            "pitch_classes": [pc.spell(flats) for pc in event.pitch_classes],
            "octave": event.octave,
            "start": format_beats(event.start),
            "duration": format_beats(event.duration),
            "velocity": event.velocity,
            "bar": bar,
        }
    return {
        "kind": "note",
        "pitch": event.pitch.spell(flats) if event.pitch else None,
        "start": format_beats(event.start),
        "duration": format_beats(event.duration),
        "velocity": event.velocity,
        "tied": event.tied,
        "bar": bar,
    }


def notation_dict(fragment: MusicFragment) -> dict[str, Any]:
    """Convert a fragment to the notation/v1 dictionary."""
    return {
        "schema": NOTATION_SCHEMA,
        "key": fragment.key.canonical_name(),
        "time_signature": str(fragment.time_signature),
        "tempo": fragment.tempo,
        "measures": fragment.measures,
        "events": [_event_to_dict(event, fragment) for event in fragment.events],
    }


def to_notation(fragment: MusicFragment) -> str:
    """Serialize a fragment to a deterministic notation/v1 JSON blob."""
    return json.dumps(notation_dict(fragment), sort_keys=True, separators=(",", ":"))


def _event_from_dict(d: dict[str, Any]) -> FragmentEvent:
    kind = d.get("kind")
    start = to_beats(d["start"], exact=True)
    duration = to_beats(d["duration"], exact=True)
    velocity = int(d.get("velocity", DEFAULT_VELOCITY))

    if kind == "chord":
        return Chord(
            pitch_classes=tuple(PitchClass.parse(pc) for pc in d["pitch_classes"]),
            root=PitchClass.parse(d["root"]),
            quality=get_quality(d["quality"]),
            start=start,
            duration=duration,
            velocity=velocity,
            octave=int(d.get("octave", DEFAULT_CHORD_OCTAVE)),
        )
    if kind == "note":
        pitch = d.get("pitch")
        return Note(
            pitch=Pitch.parse(pitch) if pitch is not None else None,
            start=start,
            duration=duration,
            velocity=velocity,
            tied=bool(d.get("tied", False)),
        )
    raise ValueError(f"Unknown notation event kind: {kind!r}")


def from_notation(blob: str | dict[str, Any]) -> MusicFragment:
    """
    Parse a notation/v1 blob back into a MusicFragment.

    Args:
        blob: JSON string or already-decoded dictionary

    Returns:
        The reconstructed fragment

    Raises:
        ValueError: If the blob is not valid notation/v1
    """
    try:
        d = json.loads(blob) if isinstance(blob, str) else blob
        schema = d.get("schema", NOTATION_SCHEMA)
        if schema != NOTATION_SCHEMA:
            raise ValueError(f"Unsupported notation schema: {schema}")
        return MusicFragment(
            events=tuple(_event_from_dict(e) for e in d.get("events", [])),
            key=Key.parse(d["key"]),
            time_signature=TimeSignature.parse(d.get("time_signature", "4/4")),
            tempo=int(d.get("tempo", 120)),
            measures=int(d.get("measures", 1)),
        )
    except (KeyError, TypeError, AttributeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid notation blob: {e}") from e
