"""
Rule-based provider - a seeded, offline generator.

Builds a diatonic progression from a per-style pool (one chord per bar,
cadencing on the tonic), then a melody that lands on a chord tone at every
chord onset and moves by scale step in between. Every choice goes through a
``random.Random`` seeded from the request fingerprint (and the optional
``seed`` parameter), so the same request always produces the same output.

The output is serialized to the same JSON payload a language model returns,
so it travels through the parser and validator like any other provider's.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from fractions import Fraction
from typing import Any

from chuk_mcp_musicgen.constants import (
    DEFAULT_CHORD_OCTAVE,
    MAX_LEAP,
    MELODY_RANGE,
    ContentType,
    Difficulty,
)
from chuk_mcp_musicgen.core.chord import ChordQuality, chord_symbol, diatonic_chord
from chuk_mcp_musicgen.core.pitch import OCTAVE, PERFECT_FIFTH, Pitch, PitchClass
from chuk_mcp_musicgen.core.rhythm import TimeSignature, format_beats
from chuk_mcp_musicgen.core.scale import Key
from chuk_mcp_musicgen.models.request import GenerationRequest
from chuk_mcp_musicgen.providers.base import RawGenerationOutput

logger = logging.getLogger(__name__)

# Scale-degree progressions per style; the final bar is always forced to I
PROGRESSIONS: dict[str, list[list[int]]] = {
    "pop": [[1, 5, 6, 4], [1, 6, 4, 5], [6, 4, 1, 5]],
    "classical": [[1, 4, 5, 1], [1, 2, 5, 1], [1, 6, 2, 5]],
    "swing": [[2, 5, 1, 1], [1, 6, 2, 5], [3, 6, 2, 5]],
    "jazz": [[2, 5, 1, 1], [1, 6, 2, 5], [3, 6, 2, 5]],
    "blues": [[1, 4, 1, 1], [4, 4, 1, 1], [5, 4, 1, 5]],
    "folk": [[1, 4, 1, 5], [1, 5, 1, 4]],
}
DEFAULT_STYLE = "pop"

# Styles voiced with seventh chords above beginner level
SEVENTH_STYLES = {"swing", "jazz", "blues"}

# Note lengths (beats) the melody draws from, weighted by repetition
DURATIONS: dict[Difficulty, list[Fraction]] = {
    Difficulty.BEGINNER: [Fraction(1), Fraction(1), Fraction(2)],
    Difficulty.INTERMEDIATE: [Fraction(1, 2), Fraction(1, 2), Fraction(1), Fraction(1), Fraction(2)],
    Difficulty.ADVANCED: [Fraction(1, 4), Fraction(1, 2), Fraction(1, 2), Fraction(1), Fraction(3, 2)],
}

# Chance of a rest on an off-chord position
REST_PROBABILITY: dict[Difficulty, float] = {
    Difficulty.BEGINNER: 0.0,
    Difficulty.INTERMEDIATE: 0.1,
    Difficulty.ADVANCED: 0.15,
}

STEP_LIMIT = 4  # Largest interval (semitones) used between chord onsets


def _rng_for(request: GenerationRequest) -> random.Random:
    seed = request.parameters.get("seed", 0)
    return random.Random(f"{seed}:{request.fingerprint()}")


def _pitches_in_range(pitch_classes: set[PitchClass], low: int, high: int) -> list[int]:
    return [m for m in range(low, high + 1) if PitchClass.from_midi(m) in pitch_classes]


def _is_parallel_perfect(prev: tuple[int, int] | None, bass: int, melody: int) -> bool:
    if prev is None:
        return False
    prev_bass, prev_melody = prev
    bass_motion, mel_motion = bass - prev_bass, melody - prev_melody
    if bass_motion == 0 or mel_motion == 0 or (bass_motion > 0) != (mel_motion > 0):
        return False
    before = abs(prev_melody - prev_bass) % OCTAVE
    after = abs(melody - bass) % OCTAVE
    return before == after and before in (0, PERFECT_FIFTH)


class RuleBasedProvider:
    """Deterministic diatonic generator; needs no network access."""

    name = "rule_based"

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency

    async def generate(self, request: GenerationRequest) -> RawGenerationOutput:
        if self.latency:
            await asyncio.sleep(self.latency)
        payload = self.compose(request)
        logger.debug(
            "Composed %d chords and %d notes for %s",
            len(payload["chords"]),
            len(payload["notes"]),
            request.fingerprint()[:12],
        )
        return RawGenerationOutput(
            text=json.dumps(payload, sort_keys=True), provider=self.name, request=request
        )

    def compose(self, request: GenerationRequest) -> dict[str, Any]:
        """Compose the JSON payload for a request."""
        rng = _rng_for(request)
        key = request.get_key()
        time_signature = request.get_time_signature()
        progression = self._progression(request, key, rng)

        chords = [
            {
                "symbol": chord_symbol(root, quality, key.prefers_flats),
                "start": format_beats(bar * time_signature.bar_length),
                "duration": format_beats(time_signature.bar_length),
            }
            for bar, (root, quality) in enumerate(progression)
        ]
        notes: list[dict[str, Any]] = []
        if request.content_type != ContentType.CHORD_PROGRESSION:
            notes = self._melody(request, key, time_signature, progression, rng)
        if request.content_type == ContentType.MELODY:
            chords = []

        return {
            "key": key.canonical_name(),
            "time_signature": str(time_signature),
            "measures": request.length,
            "chords": chords,
            "notes": notes,
        }

    def _progression(
        self, request: GenerationRequest, key: Key, rng: random.Random
    ) -> list[tuple[PitchClass, ChordQuality]]:
        pool = PROGRESSIONS.get(request.style, PROGRESSIONS[DEFAULT_STYLE])
        pattern = rng.choice(pool)
        degrees = [pattern[bar % len(pattern)] for bar in range(request.length)]
        degrees[-1] = 1

        sevenths = request.style in SEVENTH_STYLES and request.difficulty != Difficulty.BEGINNER
        chords = []
        for degree in degrees:
            try:
                chords.append(diatonic_chord(key, degree, seventh=sevenths))
            except ValueError:
                # Some modes stack sevenths with no named quality
                chords.append(diatonic_chord(key, degree))
        return chords

    def _rhythm(
        self, bar_length: Fraction, difficulty: Difficulty, rng: random.Random
    ) -> list[Fraction]:
        """Split one bar into note lengths; the final one absorbs any remainder."""
        durations: list[Fraction] = []
        remaining = bar_length
        while remaining > 0:
            options = [d for d in DURATIONS[difficulty] if d <= remaining]
            if not options:
                durations.append(remaining)
                break
            choice = rng.choice(options)
            durations.append(choice)
            remaining -= choice
        return durations

    def _melody(
        self,
        request: GenerationRequest,
        key: Key,
        time_signature: TimeSignature,
        progression: list[tuple[PitchClass, ChordQuality]],
        rng: random.Random,
    ) -> list[dict[str, Any]]:
        difficulty = request.difficulty
        low, high = MELODY_RANGE[difficulty]
        max_step = min(STEP_LIMIT, MAX_LEAP[difficulty])
        scale_pitches = _pitches_in_range(set(key.get_pitches()), low, high)
        flats = key.prefers_flats

        notes: list[dict[str, Any]] = []
        previous = (low + high) // 2
        previous_pair: tuple[int, int] | None = None

        for bar, (root, quality) in enumerate(progression):
            bar_start = bar * time_signature.bar_length
            bass = Pitch.of(root, DEFAULT_CHORD_OCTAVE).midi
            offset = bar_start

            for index, duration in enumerate(self._rhythm(time_signature.bar_length, difficulty, rng)):
                if index == 0:
                    pitch = self._chord_tone(root, quality, bass, previous, previous_pair, low, high)
                    previous_pair = (bass, pitch)
                elif rng.random() < REST_PROBABILITY[difficulty]:
                    notes.append(self._note(None, offset, duration, flats))
                    offset += duration
                    continue
                else:
                    steps = [p for p in scale_pitches if 0 < abs(p - previous) <= max_step]
                    pitch = rng.choice(steps) if steps else previous
                notes.append(self._note(pitch, offset, duration, flats))
                previous = pitch
                offset += duration
        return notes

    def _chord_tone(
        self,
        root: PitchClass,
        quality: ChordQuality,
        bass: int,
        previous: int,
        previous_pair: tuple[int, int] | None,
        low: int,
        high: int,
    ) -> int:
        """Nearest chord tone to the previous note that avoids parallel perfects."""
        tones = set(quality.get_pitches(root))
        candidates = sorted(
            _pitches_in_range(tones, low, high), key=lambda m: (abs(m - previous), m)
        )
        for candidate in candidates:
            if not _is_parallel_perfect(previous_pair, bass, candidate):
                return candidate
        # Unreachable for real ranges: the third is never a perfect interval
        return candidates[0]

    @staticmethod
    def _note(pitch: int | None, start: Fraction, duration: Fraction, flats: bool) -> dict[str, Any]:
        return {
            "pitch": Pitch(pitch).spell(flats) if pitch is not None else None,
            "start": format_beats(start),
            "duration": format_beats(duration),
            "velocity": 80,
            "tied": False,
        }
