"""
Prompt construction for language-model providers.

The system prompt fixes the JSON output schema; the user prompt carries the
request. Style and difficulty guidance are small lookup tables so new tags
only need a line here.
"""

from __future__ import annotations

import json

from chuk_mcp_musicgen.constants import (
    MAX_LEAP,
    MELODY_RANGE,
    RHYTHM_GRID,
    ContentType,
    Difficulty,
)
from chuk_mcp_musicgen.core.rhythm import format_beats
from chuk_mcp_musicgen.models.request import GenerationRequest

SYSTEM_PROMPT = """You are an expert composer writing short practice pieces for music students. Output ONLY valid JSON, no markdown.

OUTPUT FORMAT:
{
  "time_signature": "4/4",
  "chords": [{"symbol": "Cmaj7", "start": 0, "duration": 4}, ...],
  "notes": [{"pitch": "E4", "start": 0, "duration": 1, "velocity": 80, "tied": false}, ...]
}

FIELDS:
- start: offset in quarter-note beats from the beginning of the piece (number or "n/d")
- duration: length in quarter-note beats, > 0 (number or "n/d")
- pitch: scientific pitch name ("C#4", "Bb3") or MIDI number; null for a rest
- symbol: chord symbol (C, Am, G7, Bbmaj7, F#m7b5, Dsus4, Edim, Caug)
- velocity: 1-127 (optional, default 80)
- tied: true only when the note continues into the next bar

RULES:
- Every event must end on or before the final barline.
- A note may only cross a barline when "tied" is true.
- Stay in the requested key; chromatic notes are allowed only as brief passing tones.
- Melody and bass (chord root) must not move in parallel fifths or octaves.
- Keep the melody singable within the given range and leap limit.
"""

STYLE_GUIDANCE: dict[str, str] = {
    "pop": "Simple diatonic progression (I-V-vi-IV family), repetitive catchy motifs.",
    "classical": "Functional harmony with clear cadences, stepwise voice leading.",
    "swing": "ii-V-I motion with seventh chords, syncopated eighth-note lines.",
    "jazz": "Seventh chords, ii-V-I motion, chord-tone targeting on strong beats.",
    "blues": "I-IV-V dominant feel, call-and-response phrases.",
    "folk": "Triads only, stepwise melody, regular phrase lengths.",
}

DIFFICULTY_GUIDANCE: dict[Difficulty, str] = {
    Difficulty.BEGINNER: "Quarter and half notes, mostly stepwise motion, no syncopation.",
    Difficulty.INTERMEDIATE: "Eighth notes allowed, occasional leaps, light syncopation.",
    Difficulty.ADVANCED: "Sixteenths and triplets allowed, wider leaps, chromatic passing tones.",
}

CONTENT_GUIDANCE: dict[ContentType, str] = {
    ContentType.MELODY: "Write a melody only; leave \"chords\" empty.",
    ContentType.CHORD_PROGRESSION: "Write chords only; leave \"notes\" empty.",
    ContentType.LEAD_SHEET: "Write a melody over one chord per bar (or two per bar).",
}


def build_prompt(request: GenerationRequest) -> str:
    """Build the user prompt for one request."""
    key = request.get_key()
    time_signature = request.get_time_signature()
    low, high = MELODY_RANGE[request.difficulty]
    total = request.length * time_signature.bar_length

    lines = [
        f"Compose a {request.content_type.value.replace('_', ' ')} in {key}.",
        f"Time signature: {time_signature}, {request.length} bars "
        f"({format_beats(total)} beats total), tempo {request.tempo} BPM.",
        f"Style: {request.style}. {STYLE_GUIDANCE.get(request.style, '')}".rstrip(),
        f"Difficulty: {request.difficulty.value}. {DIFFICULTY_GUIDANCE[request.difficulty]}",
        f"Melody range: MIDI {low}-{high}. Largest leap: {MAX_LEAP[request.difficulty]} semitones.",
        f"Rhythmic grid: multiples of {format_beats(RHYTHM_GRID[request.difficulty])} beats.",
        CONTENT_GUIDANCE[request.content_type],
    ]
    if request.parameters:
        lines.append(f"Extra parameters: {json.dumps(request.parameters_dict(), sort_keys=True)}")
    return "\n".join(lines)
