"""Structural and timing checks for the multi-voice model and exercise parameters.

Every check returns a ValidationResult and collects all problems it finds;
nothing here raises on bad musical data.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from fractions import Fraction
from numbers import Real
from typing import Final, Iterable

from polyvoice.enums import (
    BarLineType,
    Clef,
    NoteDuration,
    OrnamentType,
    StemDirection,
    TechnicalType,
    TieType,
    TimeSignature,
)
from polyvoice.score_models import MultiVoiceMeasure, MultiVoiceNote, Part, Score, Staff, Voice
from polyvoice.sheet_models import ExerciseParameters, SightReadingParameters, TechnicalParameters
from polyvoice.theory import is_valid_note, measure_length, note_length, note_to_midi

_KEY_RE = re.compile(r"^[a-g][#b]?/[0-9]$", re.IGNORECASE)

MIDI_VALUE_RANGE: Final = (0, 127)
PAN_RANGE: Final = (-64, 63)
TEMPO_RANGE: Final = (20, 300)
DIFFICULTY_RANGE: Final = (1, 10)
MEASURES_RANGE: Final = (1, 100)
OCTAVES_RANGE: Final = (1, 4)
HANON_DEGREE_RANGE: Final = (1, 7)
# Exercise ranges outside these spans (in semitones) are allowed but flagged
MIN_RANGE_SPAN: Final = 5
MAX_RANGE_SPAN: Final = 36


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Fold another result into this one; invalid wins."""
        return ValidationResult(
            valid=self.valid and other.valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


def _result(errors: Iterable[str], warnings: Iterable[str] = ()) -> ValidationResult:
    errors = tuple(errors)
    return ValidationResult(valid=not errors, errors=errors, warnings=tuple(warnings))


def _format_beats(value: Fraction) -> str:
    if value.denominator == 1:
        return str(value.numerator)
    return f"{float(value):g}"


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _in_range(value: object, bounds: tuple[int, int]) -> bool:
    lo, hi = bounds
    return _is_number(value) and lo <= value <= hi  # type: ignore[operator]


# ── Timing ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VoiceDuration:
    """Beats a voice should fill (``expected``) versus what its notes add up to."""

    expected: Fraction
    actual: Fraction


def _dot_count(dots: object) -> int:
    """Dots that count towards a length; anything but a positive int is none."""
    if isinstance(dots, int) and not isinstance(dots, bool) and dots > 0:
        return dots
    return 0


def calculate_voice_duration(voice: Voice, time_signature: TimeSignature) -> VoiceDuration:
    """
    Sum the note lengths of *voice* and compare against one bar of *time_signature*.

    Both numbers are in quarter notes. Unknown durations count as a quarter and
    malformed dot counts as no dots, so this never raises.
    """
    actual = Fraction(0)
    for note in voice.notes:
        if isinstance(note.duration, NoteDuration):
            actual += note_length(note.duration, _dot_count(note.dots))
        else:
            actual += 1
    return VoiceDuration(expected=measure_length(time_signature), actual=actual)


def validate_measure_timing(
    measure: MultiVoiceMeasure, time_signature: TimeSignature
) -> ValidationResult:
    """Every voice of every staff must fill exactly one bar; no voices is silence."""
    errors: list[str] = []
    for staff in measure.staves:
        for voice in staff.voices:
            tally = calculate_voice_duration(voice, time_signature)
            if tally.actual != tally.expected:
                errors.append(
                    f"Voice {voice.id} in measure {measure.number}: "
                    f"Expected {_format_beats(tally.expected)} beats, "
                    f"got {_format_beats(tally.actual)} beats"
                )
    return _result(errors)


def validate_score_timing(
    score: Score, default_time_signature: TimeSignature = TimeSignature.FOUR_FOUR
) -> ValidationResult:
    """Check every measure against the time signature in force at that bar."""
    result = _result([])
    current = default_time_signature
    for measure in score.measures:
        if isinstance(measure.time_signature, TimeSignature):
            current = measure.time_signature
        result = result.merge(validate_measure_timing(measure, current))
    return result


# ── Structure ───────────────────────────────────────────────────────────────

def validate_multi_voice_note(note: MultiVoiceNote) -> ValidationResult:
    errors: list[str] = []

    if not note.keys:
        errors.append("Note must have at least one key")
    if not note.duration:
        errors.append("Note must have a duration")
    elif not isinstance(note.duration, NoteDuration):
        errors.append(f"Invalid duration: {note.duration}")
    if not _is_number(note.time) or note.time < 0:
        errors.append("Note must have a valid time position")
    if not note.voice_id:
        errors.append("Note must have a voiceId")

    if note.keys and not note.rest:
        for key in note.keys:
            if not isinstance(key, str) or not _KEY_RE.match(key):
                errors.append(f"Invalid key format: {key}")

    if note.dots is not None and (
        not isinstance(note.dots, int) or isinstance(note.dots, bool) or note.dots < 0
    ):
        errors.append("Dots must be a non-negative integer")
    if note.stem is not None and not isinstance(note.stem, StemDirection):
        errors.append("Invalid stem direction")
    if note.tie is not None and not isinstance(note.tie, TieType):
        errors.append("Invalid tie type")

    if note.grace is not None and note.grace.size is not None:
        if not _is_number(note.grace.size) or note.grace.size <= 0:
            errors.append("Grace note size must be a positive number")
    for ornament in note.ornaments:
        if not isinstance(ornament.type, OrnamentType):
            errors.append(f"Invalid ornament type: {ornament.type}")
    for index, member in enumerate(note.chord):
        member_result = validate_multi_voice_note(member)
        errors.extend(f"Chord note {index}: {error}" for error in member_result.errors)

    return _result(errors)


def validate_voice(voice: Voice) -> ValidationResult:
    """
    Validate each note of *voice* and check their ordering.

    Out-of-order start times are only a warning: edits in progress may leave a
    voice temporarily unsorted.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not voice.id:
        errors.append("Voice must have an id")
    if voice.stem_direction is not None and not isinstance(voice.stem_direction, StemDirection):
        errors.append("Invalid voice stem direction")

    for index, note in enumerate(voice.notes):
        note_result = validate_multi_voice_note(note)
        if not note_result.valid:
            errors.append(f"Note {index} in voice {voice.id}: {', '.join(note_result.errors)}")
        warnings.extend(note_result.warnings)

    times = [note.time for note in voice.notes if _is_number(note.time)]
    if any(later < earlier for earlier, later in zip(times, times[1:])):
        warnings.append(f"Notes in voice {voice.id} may not be in chronological order")

    return _result(errors, warnings)


def validate_staff(staff: Staff) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not staff.id:
        errors.append("Staff must have an id")
    if not staff.clef:
        errors.append("Staff must have a clef")
    elif not isinstance(staff.clef, Clef):
        errors.append(f"Invalid clef: {staff.clef}")

    for voice in staff.voices:
        voice_result = validate_voice(voice)
        errors.extend(voice_result.errors)
        warnings.extend(voice_result.warnings)

    seen: set[str] = set()
    duplicates: list[str] = []
    for voice in staff.voices:
        if voice.id in seen and voice.id not in duplicates:
            duplicates.append(voice.id)
        seen.add(voice.id)
    if duplicates:
        errors.append(f"Staff {staff.id} contains duplicate voice IDs: {', '.join(duplicates)}")

    return _result(errors, warnings)


def validate_part(part: Part) -> ValidationResult:
    errors: list[str] = []

    if not part.id:
        errors.append("Part must have an id")
    if not part.name:
        errors.append("Part must have a name")
    if not part.instrument:
        errors.append("Part must have an instrument")
    if not part.staves:
        errors.append("Part must have at least one staff")

    if part.midi_program is not None and not _in_range(part.midi_program, MIDI_VALUE_RANGE):
        errors.append("MIDI program must be between 0 and 127")
    if part.volume is not None and not _in_range(part.volume, MIDI_VALUE_RANGE):
        errors.append("Volume must be between 0 and 127")
    if part.pan is not None and not _in_range(part.pan, PAN_RANGE):
        errors.append("Pan must be between -64 and 63")

    return _result(errors)


def validate_multi_voice_measure(measure: MultiVoiceMeasure) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not _is_number(measure.number) or measure.number < 1:
        errors.append("Measure must have a positive number")

    for staff in measure.staves:
        staff_result = validate_staff(staff)
        errors.extend(staff_result.errors)
        warnings.extend(staff_result.warnings)

    if measure.time_signature is not None and not isinstance(measure.time_signature, TimeSignature):
        warnings.append(f"Non-standard time signature: {measure.time_signature}")
    if measure.tempo is not None and not _in_range(measure.tempo, TEMPO_RANGE):
        warnings.append("Tempo should be between 20 and 300 BPM")
    if measure.bar_line is not None and not isinstance(measure.bar_line, BarLineType):
        errors.append(f"Invalid bar line type: {measure.bar_line}")

    return _result(errors, warnings)


def validate_score(score: Score) -> ValidationResult:
    """
    Validate a whole score, including referential integrity.

    Every staff id a part references must exist in every measure, not merely
    somewhere in the score.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not score.title:
        errors.append("Score must have a title")
    if not score.composer:
        errors.append("Score must have a composer")
    if not score.parts:
        errors.append("Score must have at least one part")
    if not score.measures:
        errors.append("Score must have at least one measure")

    for child in [*map(validate_part, score.parts), *map(validate_multi_voice_measure, score.measures)]:
        errors.extend(child.errors)
        warnings.extend(child.warnings)

    for part in score.parts:
        for staff_id in part.staves:
            missing = [
                str(measure.number)
                for measure in score.measures
                if staff_id not in {staff.id for staff in measure.staves}
            ]
            if missing:
                errors.append(
                    f"Part {part.id} references non-existent staff {staff_id} "
                    f"in measure(s) {', '.join(missing)}"
                )

    numbers = [measure.number for measure in score.measures]
    if all(_is_number(n) for n in numbers) and numbers != sorted(numbers):
        warnings.append("Measures may not be in sequential order")

    return _result(errors, warnings)


# ── Exercise parameters ─────────────────────────────────────────────────────

def validate_exercise_parameters(params: ExerciseParameters) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    lowest, highest = params.range.lowest, params.range.highest
    if not (is_valid_note(lowest) and is_valid_note(highest)):
        errors.append("Invalid note range format")
    else:
        span = note_to_midi(highest) - note_to_midi(lowest)
        if span <= 0:
            errors.append("Highest note must be higher than lowest note")
        elif span < MIN_RANGE_SPAN:
            warnings.append("Note range should be at least 5 semitones for meaningful exercises")
        elif span > MAX_RANGE_SPAN:
            warnings.append("Note range should not exceed 3 octaves for practical exercises")

    if not _in_range(params.difficulty, DIFFICULTY_RANGE):
        errors.append("Difficulty must be between 1 and 10")
    if not _in_range(params.measures, MEASURES_RANGE):
        errors.append("Measures must be between 1 and 100")
    if not _in_range(params.tempo, TEMPO_RANGE):
        errors.append("Tempo must be between 20 and 300 BPM")

    return _result(errors, warnings)


def validate_sight_reading_parameters(params: SightReadingParameters) -> ValidationResult:
    """Base exercise checks plus a phrase that fits inside the exercise."""
    base = validate_exercise_parameters(params)
    errors: list[str] = []

    if not _is_number(params.phrase_length) or params.phrase_length < 1:
        errors.append("Phrase length must be a positive number of measures")
    elif _is_number(params.measures) and params.phrase_length > params.measures:
        if params.measures < 4:
            errors.append("Phrase length should be compatible with exercise length")
        else:
            errors.append("Phrase length cannot exceed total measures")

    return base.merge(_result(errors))


def validate_technical_parameters(params: TechnicalParameters) -> ValidationResult:
    base = validate_exercise_parameters(params)
    errors: list[str] = []

    if not isinstance(params.technical_type, TechnicalType):
        errors.append(f"Invalid technical type: {params.technical_type}")
    if params.octaves is not None and not _in_range(params.octaves, OCTAVES_RANGE):
        errors.append("Octaves must be between 1 and 4")

    if params.technical_type == TechnicalType.HANON and params.hanon_pattern is not None:
        if not params.hanon_pattern:
            errors.append("Hanon pattern cannot be empty")
        elif not all(_in_range(degree, HANON_DEGREE_RANGE) for degree in params.hanon_pattern):
            errors.append("Hanon pattern values must be between 1 and 7 (scale degrees)")
    if params.technical_type == TechnicalType.SCALE and params.scale_type is None:
        errors.append("Scale type is required for scale exercises")
    if params.technical_type == TechnicalType.ARPEGGIO and params.arpeggio_type is None:
        errors.append("Arpeggio type is required for arpeggio exercises")

    return base.merge(_result(errors))
