"""
MIDI export - the rendered artifact handed to the storage collaborator.

Converts a PlaybackTimeline into a single-track MIDI file using mido.
All operations are deterministic: same timeline -> same MIDI bytes.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

from mido import Message, MetaMessage, MidiFile, MidiTrack

from chuk_mcp_musicgen.compiler.timeline import SynthEventKind, TimelineOptions, to_timeline

if TYPE_CHECKING:
    from chuk_mcp_musicgen.compiler.timeline import PlaybackTimeline
    from chuk_mcp_musicgen.models.fragment import MusicFragment


# Standard ticks per beat (quarter note) - industry standard
TICKS_PER_BEAT = 480


def timeline_to_midi(
    timeline: PlaybackTimeline,
    ticks_per_beat: int = TICKS_PER_BEAT,
    time_signature: tuple[int, int] = (4, 4),
) -> MidiFile:
    """
    Convert a timeline to a MidiFile.

    Uses the beat positions (not seconds) so the file carries the tempo as a
    meta event and stays editable in a DAW.

    Args:
        timeline: The playback timeline
        ticks_per_beat: Resolution (default 480)
        time_signature: (numerator, denominator) meta event

    Returns:
        A mido MidiFile ready to be saved
    """
    mid = MidiFile(ticks_per_beat=ticks_per_beat)
    track = MidiTrack()
    mid.tracks.append(track)

    tempo_us = int(60_000_000 / timeline.tempo)
    track.append(MetaMessage("set_tempo", tempo=tempo_us, time=0))
    track.append(
        MetaMessage(
            "time_signature",
            numerator=time_signature[0],
            denominator=time_signature[1],
            time=0,
        )
    )

    # Timeline events are already ordered with note_off before note_on
    current_ticks = 0
    for event in timeline.events:
        abs_ticks = int(event.beat * ticks_per_beat)
        is_on = event.event.kind == SynthEventKind.NOTE_ON
        track.append(
            Message(
                "note_on" if is_on else "note_off",
                channel=event.channel,
                note=event.event.pitch,
                velocity=event.event.velocity if is_on else 0,
                time=abs_ticks - current_ticks,
            )
        )
        current_ticks = abs_ticks

    end_ticks = int(timeline.total_beats * ticks_per_beat)
    track.append(MetaMessage("end_of_track", time=max(0, end_ticks - current_ticks)))

    return mid


def fragment_to_midi(
    fragment: MusicFragment,
    tempo: int | None = None,
    options: TimelineOptions | None = None,
) -> MidiFile:
    """Realise a fragment and export it in one step."""
    timeline = to_timeline(fragment, tempo, options)
    ts = fragment.time_signature
    return timeline_to_midi(timeline, time_signature=(ts.numerator, ts.denominator))


def midi_to_bytes(mid: MidiFile) -> bytes:
    """Serialize a MidiFile to bytes for artifact storage."""
    buffer = io.BytesIO()
    mid.save(file=buffer)
    return buffer.getvalue()
