"""
Raw provider output -> MusicFragment.

Parsing is strict about structure (it must be JSON matching the payload
models) and lenient about spelling (pitches as names or MIDI numbers, beats
as numbers or 'n/d' strings). Anything that cannot become a fragment raises
ProviderMalformedOutput; musical problems are left to the theory validator.
"""

from __future__ import annotations

import json
import logging
import math
import re
from fractions import Fraction
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from chuk_mcp_musicgen.constants import DEFAULT_CHORD_OCTAVE, DEFAULT_VELOCITY
from chuk_mcp_musicgen.core.chord import get_quality, parse_chord_symbol
from chuk_mcp_musicgen.core.pitch import Pitch, PitchClass
from chuk_mcp_musicgen.core.rhythm import TimeSignature, to_beats
from chuk_mcp_musicgen.core.scale import Key
from chuk_mcp_musicgen.errors import ProviderMalformedOutput
from chuk_mcp_musicgen.models.fragment import Chord, FragmentEvent, MusicFragment, Note
from chuk_mcp_musicgen.providers.base import RawGenerationOutput

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


class _TimedPayload(BaseModel):
    start: Fraction
    duration: Fraction
    velocity: int = Field(DEFAULT_VELOCITY, ge=0, le=127)

    model_config = {"arbitrary_types_allowed": True, "extra": "ignore"}

    @field_validator("start", "duration", mode="before")
    @classmethod
    def parse_beats(cls, v: Any) -> Fraction:
        return to_beats(v)


class NotePayload(_TimedPayload):
    """One melody note (or rest) as emitted by a provider."""

    pitch: str | int | None = None
    tied: bool = False

    def to_note(self) -> Note:
        pitch = Pitch.parse(self.pitch) if self.pitch is not None else None
        return Note(pitch, self.start, self.duration, self.velocity, self.tied)


class ChordPayload(_TimedPayload):
    """One chord, by symbol or by explicit root and quality."""

    symbol: str | None = None
    root: str | None = None
    quality: str | None = None
    pitch_classes: list[str] | None = None
    octave: int = Field(DEFAULT_CHORD_OCTAVE, ge=0, le=8)

    @model_validator(mode="after")
    def require_identity(self) -> ChordPayload:
        if not self.symbol and not (self.root and self.quality):
            raise ValueError("Chord needs a symbol or a root and quality")
        return self

    def to_chord(self) -> Chord:
        if self.root and self.quality:
            root, quality = PitchClass.parse(self.root), get_quality(self.quality)
        else:
            root, quality = parse_chord_symbol(self.symbol or "")
        if self.pitch_classes is None:
            return Chord.build(root, quality, self.start, self.duration, self.velocity, self.octave)
        return Chord(
            tuple(PitchClass.parse(pc) for pc in self.pitch_classes),
            root,
            quality,
            self.start,
            self.duration,
            self.velocity,
            self.octave,
        )


class FragmentPayload(BaseModel):
    """Top-level provider payload."""

    key: str | None = None
    time_signature: str | None = None
    measures: int | None = Field(None, ge=1)
    chords: list[ChordPayload] = Field(default_factory=list)
    notes: list[NotePayload] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def _decode(raw: RawGenerationOutput) -> FragmentPayload:
    text = strip_code_fence(raw.text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProviderMalformedOutput(f"Output is not JSON: {e}", raw.text, raw.provider) from e
    if not isinstance(data, dict):
        raise ProviderMalformedOutput(
            f"Expected a JSON object, got {type(data).__name__}", raw.text, raw.provider
        )
    try:
        return FragmentPayload.model_validate(data)
    except ValidationError as e:
        raise ProviderMalformedOutput(
            f"Output does not match the fragment schema: {e.error_count()} errors",
            raw.text,
            raw.provider,
        ) from e


def parse_raw_output(raw: RawGenerationOutput) -> MusicFragment:
    """
    Parse raw provider output into a MusicFragment.

    Key, tempo and length come from the originating request when there is
    one; the payload only has to supply them for request-less output.

    Raises:
        ProviderMalformedOutput: If the output cannot be turned into a fragment
    """
    payload = _decode(raw)
    request = raw.request

    try:
        if request is not None:
            key = request.get_key()
        elif payload.key:
            key = Key.parse(payload.key)
        else:
            raise ValueError("No key in output and no request to take it from")

        if payload.time_signature:
            time_signature = TimeSignature.parse(payload.time_signature)
        elif request is not None:
            time_signature = request.get_time_signature()
        else:
            time_signature = TimeSignature.COMMON_TIME

        events: list[FragmentEvent] = [c.to_chord() for c in payload.chords]
        events.extend(n.to_note() for n in payload.notes)

        if request is not None:
            measures = request.length
        elif payload.measures:
            measures = payload.measures
        else:
            last_end = max((e.end for e in events), default=time_signature.bar_length)
            measures = max(1, math.ceil(last_end / time_signature.bar_length))

        fragment = MusicFragment(
            events=tuple(events),
            key=key,
            time_signature=time_signature,
            tempo=request.tempo if request is not None else 120,
            measures=measures,
        )
    except ValueError as e:
        raise ProviderMalformedOutput(str(e), raw.text, raw.provider) from e

    logger.debug(
        "Parsed %s output: %d chords, %d notes", raw.provider, len(fragment.chords), len(fragment.notes)
    )
    return fragment
