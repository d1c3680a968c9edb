"""
Theory rules - stateless predicates over a MusicFragment.

Each rule is a small frozen object with a ``rule_id`` and a ``check`` method
yielding zero or more violations. Thresholds are constructor arguments, so a
rule instance never changes once built and rules can be tested, added or
removed independently.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from fractions import Fraction
from typing import Protocol, runtime_checkable

from chuk_mcp_musicgen.constants import CHORD_RANGE, MAX_CHROMATIC_RATIO, Severity
from chuk_mcp_musicgen.core.pitch import OCTAVE, PERFECT_FIFTH, PitchClass
from chuk_mcp_musicgen.core.rhythm import on_grid
from chuk_mcp_musicgen.core.scale import Key
from chuk_mcp_musicgen.models.fragment import MusicFragment
from chuk_mcp_musicgen.validation.result import Violation


@runtime_checkable
class TheoryRule(Protocol):
    """Anything with a rule id that can inspect a fragment."""

    rule_id: str

    def check(self, fragment: MusicFragment) -> Iterator[Violation]: ...


def _allowed_pitch_classes(key: Key) -> set[PitchClass]:
    """Diatonic pitch classes, plus raised 6th and 7th in minor keys."""
    allowed = set(key.get_pitches())
    if key.is_minor:
        allowed.add(key.root.transpose(9))
        allowed.add(key.root.transpose(11))
    return allowed


@dataclass(frozen=True)
class NonEmptyRule:
    """The fragment must sound at least one note or chord."""

    rule_id: str = "EMPTY_FRAGMENT"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        if not fragment.sounding_notes and not fragment.chords:
            yield Violation(self.rule_id, Severity.ERROR, "Fragment contains no sounding events")


@dataclass(frozen=True)
class FragmentBoundsRule:
    """No event may end after the last barline of the fragment."""

    rule_id: str = "FRAGMENT_OVERRUN"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        total = fragment.total_beats
        for event in fragment.events:
            if event.end > total:
                yield Violation(
                    self.rule_id,
                    Severity.ERROR,
                    f"Event ends at beat {float(event.end):g}, after the fragment "
                    f"end at beat {float(total):g}",
                    fragment.location(event.start),
                )


@dataclass(frozen=True)
class BarlineRule:
    """
    Notes may only cross a barline when tied.

    Chords held across a barline are legal notation but unusual in generated
    material, so they are reported as warnings.
    """

    rule_id: str = "BARLINE_CROSSING"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        ts = fragment.time_signature
        for note in fragment.notes:
            if not note.tied and note.end > ts.bar_end(note.start):
                what = "Rest" if note.is_rest else f"Note {note.pitch}"
                yield Violation(
                    self.rule_id,
                    Severity.ERROR,
                    f"{what} crosses the barline without a tie",
                    fragment.location(note.start),
                )
        for chord in fragment.chords:
            if chord.end > ts.bar_end(chord.start):
                yield Violation(
                    self.rule_id,
                    Severity.WARNING,
                    f"Chord {chord.symbol} is held across the barline",
                    fragment.location(chord.start),
                )


@dataclass(frozen=True)
class VoiceRangeRule:
    """Melody notes and chord voicings must stay inside their registers."""

    melody_range: tuple[int, int]
    chord_range: tuple[int, int] = CHORD_RANGE
    rule_id: str = "VOICE_RANGE"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        low, high = self.melody_range
        for note in fragment.sounding_notes:
            if note.pitch is not None and not low <= note.pitch.midi <= high:
                yield Violation(
                    self.rule_id,
                    Severity.ERROR,
                    f"Melody note {note.pitch} is outside MIDI range {low}-{high}",
                    fragment.location(note.start),
                )

        chord_low, chord_high = self.chord_range
        for chord in fragment.chords:
            voicing = chord.voicing()
            if voicing[0].midi < chord_low or voicing[-1].midi > chord_high:
                yield Violation(
                    self.rule_id,
                    Severity.ERROR,
                    f"Chord {chord.symbol} voicing {voicing[0]}-{voicing[-1]} is outside "
                    f"MIDI range {chord_low}-{chord_high}",
                    fragment.location(chord.start),
                )


@dataclass(frozen=True)
class ScaleMembershipRule:
    """
    Melody pitches should belong to the key.

    Each chromatic note is a warning (passing tones are fine); a melody whose
    chromatic share exceeds ``max_chromatic_ratio`` has drifted out of the
    key and is an error.
    """

    max_chromatic_ratio: float = MAX_CHROMATIC_RATIO
    rule_id: str = "SCALE_MEMBERSHIP"
    drift_rule_id: str = "SCALE_DRIFT"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        allowed = _allowed_pitch_classes(fragment.key)
        notes = fragment.sounding_notes
        chromatic = 0
        for note in notes:
            if note.pitch is not None and note.pitch.pitch_class not in allowed:
                chromatic += 1
                yield Violation(
                    self.rule_id,
                    Severity.WARNING,
                    f"{note.pitch} is not in {fragment.key}",
                    fragment.location(note.start),
                )

        if notes and chromatic / len(notes) > self.max_chromatic_ratio:
            yield Violation(
                self.drift_rule_id,
                Severity.ERROR,
                f"{chromatic} of {len(notes)} melody notes are outside {fragment.key}",
            )


@dataclass(frozen=True)
class ChordSymbolRule:
    """A chord's pitch classes must be exactly the tones its quality implies."""

    rule_id: str = "CHORD_SYMBOL"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        for chord in fragment.chords:
            expected = set(chord.quality.get_pitches(chord.root))
            actual = set(chord.pitch_classes)
            if expected != actual:
                missing = sorted(pc.spell() for pc in expected - actual)
                extra = sorted(pc.spell() for pc in actual - expected)
                detail = []
                if missing:
                    detail.append(f"missing {', '.join(missing)}")
                if extra:
                    detail.append(f"unexpected {', '.join(extra)}")
                yield Violation(
                    self.rule_id,
                    Severity.ERROR,
                    f"Chord {chord.symbol} pitches do not match its quality: {'; '.join(detail)}",
                    fragment.location(chord.start),
                )


@dataclass(frozen=True)
class ChordInKeyRule:
    """Chord roots should be diatonic; borrowed chords are only a warning."""

    rule_id: str = "CHORD_IN_KEY"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        allowed = _allowed_pitch_classes(fragment.key)
        for chord in fragment.chords:
            if chord.root not in allowed:
                yield Violation(
                    self.rule_id,
                    Severity.WARNING,
                    f"Chord {chord.symbol} is rooted outside {fragment.key}",
                    fragment.location(chord.start),
                )


@dataclass(frozen=True)
class ParallelPerfectsRule:
    """
    Outer voices must not move in parallel fifths or octaves.

    The outer voices are the chord bass (root) and the melody note sounding
    at each chord onset. Oblique motion (either voice repeating) is fine.
    """

    rule_id: str = "PARALLEL_PERFECTS"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        pairs: list[tuple[int, int, Fraction]] = []
        for chord in fragment.chords:
            note = fragment.note_at(chord.start)
            if note is not None and note.pitch is not None:
                pairs.append((chord.bass.midi, note.pitch.midi, chord.start))

        for (bass_a, mel_a, _), (bass_b, mel_b, start) in zip(pairs, pairs[1:]):
            bass_motion = bass_b - bass_a
            mel_motion = mel_b - mel_a
            if bass_motion == 0 or mel_motion == 0:
                continue
            if (bass_motion > 0) != (mel_motion > 0):
                continue
            before = abs(mel_a - bass_a) % OCTAVE
            after = abs(mel_b - bass_b) % OCTAVE
            if before == after and before in (0, PERFECT_FIFTH):
                name = "fifths" if before == PERFECT_FIFTH else "octaves"
                yield Violation(
                    self.rule_id,
                    Severity.ERROR,
                    f"Parallel {name} between bass and melody",
                    fragment.location(start),
                )


@dataclass(frozen=True)
class MelodicLeapRule:
    """Consecutive melody notes (rests skipped) must not leap too far."""

    max_leap: int
    severity: Severity = Severity.WARNING
    rule_id: str = "MELODIC_LEAP"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        notes = fragment.sounding_notes
        for previous, current in zip(notes, notes[1:]):
            if previous.pitch is None or current.pitch is None:
                continue
            leap = abs(current.pitch.midi - previous.pitch.midi)
            if leap > self.max_leap:
                yield Violation(
                    self.rule_id,
                    self.severity,
                    f"Leap of {leap} semitones from {previous.pitch} to {current.pitch} "
                    f"exceeds {self.max_leap}",
                    fragment.location(current.start),
                )


@dataclass(frozen=True)
class RhythmGridRule:
    """Onsets and durations should sit on the tier's subdivision grid."""

    grid: Fraction
    rule_id: str = "RHYTHM_GRID"

    def check(self, fragment: MusicFragment) -> Iterator[Violation]:
        for event in fragment.events:
            if not on_grid(event.start, self.grid) or not on_grid(event.duration, self.grid):
                yield Violation(
                    self.rule_id,
                    Severity.WARNING,
                    f"Event timing {event.start}+{event.duration} is off the {self.grid}-beat grid",
                    fragment.location(event.start),
                )
