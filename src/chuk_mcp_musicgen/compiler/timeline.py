"""
Playback timeline - a fragment realised at a tempo.

The timeline is the bridge between the symbolic fragment and the audio
scheduler: an ordered list of (absolute seconds, channel, synth event).
Beat positions are kept alongside the seconds so a timeline can be re-derived
at another tempo without touching generation or validation.

Ordering: by beat; note-offs before note-ons at the same instant; then
chords before melody notes; then ascending pitch.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import TYPE_CHECKING, Any

from chuk_mcp_musicgen.constants import CHORD_CHANNEL, MELODY_CHANNEL, TIMELINE_SCHEMA
from chuk_mcp_musicgen.core.rhythm import format_beats, to_beats

if TYPE_CHECKING:
    from chuk_mcp_musicgen.models.fragment import MusicFragment


class SynthEventKind(str, Enum):
    NOTE_ON = "note_on"
    NOTE_OFF = "note_off"


@dataclass(frozen=True)
class SynthEvent:
    """A single instruction for the synthesis sink."""

    kind: SynthEventKind
    pitch: int
    velocity: int

    def __post_init__(self) -> None:
        if not 0 <= self.pitch <= 127:
            raise ValueError(f"Pitch must be 0-127, got {self.pitch}")
        if not 0 <= self.velocity <= 127:
            raise ValueError(f"Velocity must be 0-127, got {self.velocity}")


@dataclass(frozen=True)
class TimelineEvent:
    """A synth event at an absolute time offset (seconds from playback start)."""

    time: float
    beat: Fraction
    channel: int
    event: SynthEvent

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "beat": format_beats(self.beat),
            "channel": self.channel,
            "kind": self.event.kind.value,
            "pitch": self.event.pitch,
            "velocity": self.event.velocity,
        }


@dataclass(frozen=True)
class TimelineOptions:
    """
    Converter knobs taken from request parameters.

    swing_ratio delays off-beat eighths: 2/3 gives a triplet swing feel.
    """

    melody_channel: int = MELODY_CHANNEL
    chord_channel: int = CHORD_CHANNEL
    swing_ratio: Fraction | None = None

    def __post_init__(self) -> None:
        for channel in (self.melody_channel, self.chord_channel):
            if not 0 <= channel <= 15:
                raise ValueError(f"Channel must be 0-15, got {channel}")
        if self.swing_ratio is not None and not (
            Fraction(1, 2) <= self.swing_ratio < Fraction(3, 4)
        ):
            raise ValueError(f"Swing ratio must be in [1/2, 3/4), got {self.swing_ratio}")

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Any]) -> TimelineOptions:
        """Read recognised knobs; unknown keys are ignored."""
        swing = parameters.get("swing_ratio")
        return cls(
            melody_channel=int(parameters.get("melody_channel", MELODY_CHANNEL)),
            chord_channel=int(parameters.get("chord_channel", CHORD_CHANNEL)),
            swing_ratio=to_beats(swing) if swing is not None else None,
        )

    def realise(self, beat: Fraction) -> Fraction:
        """Apply swing to a beat position."""
        if self.swing_ratio is None:
            return beat
        whole = beat.numerator // beat.denominator
        if beat - whole == Fraction(1, 2):
            return whole + self.swing_ratio
        return beat


@dataclass(frozen=True)
class PlaybackTimeline:
    """
    An immutable, tempo-realised event sequence.

    A tempo change never mutates a timeline; use ``to_timeline`` again with
    the new tempo (the options are carried so swing survives re-timing).
    """

    tempo: int
    events: tuple[TimelineEvent, ...]
    total_beats: Fraction
    options: TimelineOptions = field(default_factory=TimelineOptions)

    @property
    def seconds_per_beat(self) -> Fraction:
        return Fraction(60, self.tempo)

    @property
    def duration(self) -> float:
        """Length of the timeline in seconds (to the final barline)."""
        return float(self.total_beats * self.seconds_per_beat)

    def index_at(self, offset: float) -> int:
        """Index of the first event at or after an offset in seconds."""
        for i, event in enumerate(self.events):
            if event.time >= offset:
                return i
        return len(self.events)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema": TIMELINE_SCHEMA,
            "tempo": self.tempo,
            "duration": self.duration,
            "events": [e.to_dict() for e in self.events],
        }


@dataclass(frozen=True)
class _Span:
    start: Fraction
    end: Fraction
    channel: int
    pitch: int
    velocity: int
    rank: int  # 0 = chord tone, 1 = melody note


def _melody_spans(fragment: MusicFragment, channel: int) -> list[_Span]:
    """Melody spans with ties merged into a single sounding note."""
    spans: list[_Span] = []
    open_ties: dict[int, _Span] = {}
    for note in fragment.notes:
        if note.pitch is None:
            continue
        midi = note.pitch.midi
        held = open_ties.pop(midi, None)
        if held is not None and held.end == note.start:
            span = _Span(held.start, note.end, channel, midi, held.velocity, 1)
        else:
            if held is not None:
                spans.append(held)
            span = _Span(note.start, note.end, channel, midi, note.velocity, 1)
        if note.tied:
            open_ties[midi] = span
        else:
            spans.append(span)
    spans.extend(open_ties.values())
    return spans


def _chord_spans(fragment: MusicFragment, channel: int) -> list[_Span]:
    return [
        _Span(chord.start, chord.end, channel, pitch.midi, chord.velocity, 0)
        for chord in fragment.chords
        for pitch in chord.voicing()
    ]


def to_timeline(
    fragment: MusicFragment,
    tempo: int | None = None,
    options: TimelineOptions | None = None,
) -> PlaybackTimeline:
    """
    Realise a fragment as a playback timeline.

    Args:
        fragment: The validated fragment
        tempo: BPM to realise at (defaults to the fragment's tempo)
        options: Channel and swing knobs

    Returns:
        A new PlaybackTimeline; seconds = beats * 60 / tempo, exactly
    """
    tempo = tempo or fragment.tempo
    if tempo <= 0:
        raise ValueError(f"Tempo must be positive, got {tempo}")
    options = options or TimelineOptions()
    seconds_per_beat = Fraction(60, tempo)

    spans = _chord_spans(fragment, options.chord_channel) + _melody_spans(
        fragment, options.melody_channel
    )

    keyed: list[tuple[tuple[Fraction, int, int, int], TimelineEvent]] = []
    for span in spans:
        on_beat = options.realise(span.start)
        off_beat = options.realise(span.end)
        on = SynthEvent(SynthEventKind.NOTE_ON, span.pitch, span.velocity)
        off = SynthEvent(SynthEventKind.NOTE_OFF, span.pitch, 0)
        keyed.append(
            (
                (on_beat, 1, span.rank, span.pitch),
                TimelineEvent(float(on_beat * seconds_per_beat), on_beat, span.channel, on),
            )
        )
        keyed.append(
            (
                (off_beat, 0, span.rank, span.pitch),
                TimelineEvent(float(off_beat * seconds_per_beat), off_beat, span.channel, off),
            )
        )

    keyed.sort(key=lambda item: item[0])
    return PlaybackTimeline(
        tempo=tempo,
        events=tuple(event for _, event in keyed),
        total_beats=fragment.total_beats,
        options=options,
    )
