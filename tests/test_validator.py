"""
Tests for the theory validator and its rules.
"""

from fractions import Fraction

import pytest

from chuk_mcp_musicgen.constants import Difficulty, Severity
from chuk_mcp_musicgen.core import Key, Pitch, PitchClass, TimeSignature
from chuk_mcp_musicgen.core.chord import MAJOR, MINOR
from chuk_mcp_musicgen.models import Chord, MusicFragment, Note
from chuk_mcp_musicgen.validation import (
    BarlineRule,
    ChordInKeyRule,
    ChordSymbolRule,
    FragmentBoundsRule,
    MelodicLeapRule,
    NonEmptyRule,
    ParallelPerfectsRule,
    RhythmGridRule,
    ScaleMembershipRule,
    TheoryValidator,
    ValidationResult,
    Violation,
    VoiceRangeRule,
    build_validator,
    validate_fragment,
)

F = Fraction


def note(name: str, start, duration, tied: bool = False) -> Note:
    return Note(Pitch.parse(name), F(start), F(duration), tied=tied)


def chord(root: PitchClass, start, duration, quality=MAJOR) -> Chord:
    return Chord.build(root, quality, F(start), F(duration))


def fragment(*events, key: str = "C", measures: int = 2, ts=TimeSignature.COMMON_TIME):
    return MusicFragment(tuple(events), Key.parse(key), ts, measures=measures)


class TestValidationResult:
    """Tests for result aggregation."""

    def test_only_errors_block(self) -> None:
        """Warnings do not fail a result."""
        result = ValidationResult.from_violations(
            (Violation("A", Severity.WARNING, "w"), Violation("B", Severity.INFO, "i"))
        )
        assert result.passed
        assert bool(result)
        assert len(result.warnings) == 1

    def test_error_fails(self) -> None:
        """A single error fails the result."""
        violation = Violation("A", Severity.ERROR, "e", "bar 1, beat 1")
        result = ValidationResult.from_violations((violation,))
        assert not result.passed
        assert result.rule_ids() == ["A"]
        assert str(result) == "[ERROR] A: e at bar 1, beat 1"

    def test_to_dict(self) -> None:
        """Dictionary form counts errors and warnings."""
        result = ValidationResult.from_violations((Violation("A", Severity.ERROR, "e"),))
        data = result.to_dict()
        assert data["passed"] is False
        assert data["errors"] == 1
        assert data["violations"][0]["severity"] == "error"


class TestStandardRules:
    """The full rule set on a known-good fragment."""

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_valid_fragment_passes(
        self, valid_fragment: MusicFragment, difficulty: Difficulty
    ) -> None:
        """The reference fragment has no violations at any tier."""
        result = validate_fragment(valid_fragment, difficulty)
        assert result.passed
        assert result.violations == ()

    def test_rule_order_is_stable(self) -> None:
        """build_validator always assembles the same ordered rule set."""
        ids = [r.rule_id for r in build_validator().rules]
        assert ids[:3] == ["EMPTY_FRAGMENT", "FRAGMENT_OVERRUN", "BARLINE_CROSSING"]
        assert len(ids) == len(set(ids))

    def test_with_and_without_rule(self) -> None:
        """Rules can be added and removed without touching the original."""
        validator = build_validator()
        smaller = validator.without_rule("RHYTHM_GRID")
        larger = smaller.with_rule(RhythmGridRule(F(1, 2)))
        assert "RHYTHM_GRID" not in [r.rule_id for r in smaller.rules]
        assert len(larger.rules) == len(validator.rules)
        assert "RHYTHM_GRID" in [r.rule_id for r in validator.rules]


class TestStructureRules:
    """Emptiness, bounds and barlines."""

    def test_empty_fragment(self) -> None:
        """A fragment of rests is an error."""
        result = TheoryValidator([NonEmptyRule()]).validate(
            fragment(Note(None, F(0), F(4)), measures=1)
        )
        assert result.rule_ids() == ["EMPTY_FRAGMENT"]
        assert not result.passed

    def test_overrun(self) -> None:
        """Events past the final barline are errors."""
        frag = fragment(note("C4", 3, 2, tied=True), measures=1)
        violations = list(FragmentBoundsRule().check(frag))
        assert len(violations) == 1
        assert violations[0].severity == Severity.ERROR

    def test_untied_barline_crossing(self) -> None:
        """A note ringing over the barline without a tie is an error."""
        frag = fragment(note("C4", 3, 2), note("D4", 5, 3))
        violations = list(BarlineRule().check(frag))
        assert [v.rule_id for v in violations] == ["BARLINE_CROSSING"]
        assert violations[0].location == "bar 1, beat 4"

    def test_tied_crossing_allowed(self) -> None:
        """Tied notes may cross."""
        frag = fragment(note("C4", 3, 1, tied=True), note("C4", 4, 1), note("D4", 5, 3))
        assert list(BarlineRule().check(frag)) == []

    def test_note_ending_on_barline(self) -> None:
        """Ending exactly on the barline is not a crossing."""
        frag = fragment(note("C4", 0, 4), note("D4", 4, 4))
        assert list(BarlineRule().check(frag)) == []

    def test_held_chord_is_warning(self) -> None:
        """Chords held over a barline only warn."""
        frag = fragment(chord(PitchClass.C, 2, 4))
        violations = list(BarlineRule().check(frag))
        assert violations[0].severity == Severity.WARNING


class TestPitchRules:
    """Range, scale and leaps."""

    def test_melody_out_of_range(self) -> None:
        """Notes outside the tier's register are errors."""
        frag = fragment(note("C4", 0, 1), note("C6", 1, 1), measures=1)
        violations = list(VoiceRangeRule((60, 79)).check(frag))
        assert len(violations) == 1
        assert "C6" in violations[0].message

    def test_chord_out_of_range(self) -> None:
        """Chord voicings outside the chord register are errors."""
        high = Chord.build(PitchClass.C, MAJOR, F(0), F(4), octave=6)
        violations = list(VoiceRangeRule((60, 79)).check(fragment(high, measures=1)))
        assert len(violations) == 1

    def test_single_chromatic_note_warns(self) -> None:
        """One passing tone out of many is a warning only."""
        frag = fragment(
            note("C4", 0, 1), note("D4", 1, 1), note("D#4", 2, 1), note("E4", 3, 1), measures=1
        )
        violations = list(ScaleMembershipRule().check(frag))
        assert [v.severity for v in violations] == [Severity.WARNING]

    def test_scale_drift_errors(self) -> None:
        """Too many chromatic notes is an error."""
        frag = fragment(
            note("C#4", 0, 1), note("D#4", 1, 1), note("F#4", 2, 1), note("E4", 3, 1), measures=1
        )
        violations = list(ScaleMembershipRule().check(frag))
        assert violations[-1].rule_id == "SCALE_DRIFT"
        assert violations[-1].severity == Severity.ERROR

    def test_raised_leading_tone_in_minor(self) -> None:
        """G# in A minor is not chromatic."""
        frag = fragment(note("G#4", 0, 1), note("A4", 1, 3), key="Am", measures=1)
        assert list(ScaleMembershipRule().check(frag)) == []

    def test_leap_severity_configurable(self) -> None:
        """Leaps beyond the limit use the configured severity."""
        frag = fragment(note("C4", 0, 1), Note(None, F(1), F(1)), note("A4", 2, 2), measures=1)
        warning = list(MelodicLeapRule(7).check(frag))
        error = list(MelodicLeapRule(7, Severity.ERROR).check(frag))
        assert warning[0].severity == Severity.WARNING
        assert error[0].severity == Severity.ERROR
        assert list(MelodicLeapRule(12).check(frag)) == []

    def test_beginner_leap_blocks(self) -> None:
        """Beginner content may not leap past a fifth."""
        frag = fragment(chord(PitchClass.C, 0, 4), note("C4", 0, 2), note("C5", 2, 2), measures=1)
        assert not validate_fragment(frag, Difficulty.BEGINNER).passed
        assert validate_fragment(frag, Difficulty.INTERMEDIATE).passed


class TestHarmonyRules:
    """Chord symbols, diatonic roots and parallel perfects."""

    def test_chord_symbol_mismatch(self) -> None:
        """Pitch classes that disagree with the quality are errors."""
        wrong = Chord(
            (PitchClass.C, PitchClass.Ds, PitchClass.G), PitchClass.C, MAJOR, F(0), F(4)
        )
        violations = list(ChordSymbolRule().check(fragment(wrong, measures=1)))
        assert len(violations) == 1
        assert "missing E" in violations[0].message
        assert "unexpected D#" in violations[0].message

    def test_borrowed_chord_warns(self) -> None:
        """A non-diatonic root is a warning."""
        frag = fragment(chord(PitchClass.As, 0, 4), measures=1)
        violations = list(ChordInKeyRule().check(frag))
        assert violations[0].severity == Severity.WARNING

    def test_parallel_fifths(self) -> None:
        """Melody a fifth above the bass moving with it is an error."""
        frag = fragment(
            chord(PitchClass.C, 0, 4),
            chord(PitchClass.D, 4, 4, MINOR),
            note("G4", 0, 4),
            note("A4", 4, 4),
        )
        violations = list(ParallelPerfectsRule().check(frag))
        assert [v.rule_id for v in violations] == ["PARALLEL_PERFECTS"]
        assert "fifths" in violations[0].message
        assert violations[0].location == "bar 2, beat 1"

    def test_parallel_octaves(self) -> None:
        """Octaves moving in parallel are an error."""
        frag = fragment(
            chord(PitchClass.C, 0, 4),
            chord(PitchClass.D, 4, 4, MINOR),
            note("C4", 0, 4),
            note("D4", 4, 4),
        )
        violations = list(ParallelPerfectsRule().check(frag))
        assert "octaves" in violations[0].message

    def test_contrary_motion_allowed(self) -> None:
        """Perfect intervals reached by contrary motion are fine."""
        frag = fragment(
            chord(PitchClass.C, 0, 4),
            chord(PitchClass.G, 4, 4),
            note("G4", 0, 4),
            note("D4", 4, 4),
        )
        assert list(ParallelPerfectsRule().check(frag)) == []

    def test_oblique_motion_allowed(self) -> None:
        """A held melody note over moving bass is fine."""
        frag = fragment(
            chord(PitchClass.C, 0, 4),
            chord(PitchClass.F, 4, 4),
            note("C5", 0, 4),
            note("C5", 4, 4),
        )
        assert list(ParallelPerfectsRule().check(frag)) == []


class TestRhythmGrid:
    """Tier subdivision grid."""

    def test_off_grid_warns(self) -> None:
        """Sixteenths are off the beginner grid."""
        frag = fragment(note("C4", 0, F(1, 4)), note("D4", F(1, 4), F(15, 4)), measures=1)
        violations = list(RhythmGridRule(F(1, 2)).check(frag))
        assert len(violations) == 2
        assert all(v.severity == Severity.WARNING for v in violations)

    def test_on_grid(self) -> None:
        """Eighths are on the beginner grid."""
        frag = fragment(note("C4", 0, F(1, 2)), note("D4", F(1, 2), F(7, 2)), measures=1)
        assert list(RhythmGridRule(F(1, 2)).check(frag)) == []
