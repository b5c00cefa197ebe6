"""Pitch and duration primitives: MIDI arithmetic, scales, chords, key signatures."""

from __future__ import annotations

import re
from dataclasses import dataclass
from fractions import Fraction
from typing import Final

from polyvoice.enums import (
    ChordType,
    Clef,
    KeySignature,
    NoteDuration,
    ScaleType,
    TimeSignature,
    require_exhaustive,
)

# ── MIDI constants ──────────────────────────────────────────────────────────
SEMITONES_PER_OCTAVE: Final = 12
MIDDLE_C_MIDI: Final = 60  # C4 in Scientific Pitch Notation
MIDI_MIN: Final = 0
MIDI_MAX: Final = 127

# Chromatic pitch class names, sharp spelling (index 0 = C)
NOTE_NAMES: Final[tuple[str, ...]] = (
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B",
)

# Natural letter -> semitone offset from C
_LETTER_SEMITONES: Final[dict[str, int]] = {
    "C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11,
}
_ACCIDENTAL_OFFSETS: Final[dict[str, int]] = {"": 0, "#": 1, "b": -1}

_PITCH_RE = re.compile(r"^([A-G])([#b]?)([0-9])$")
_PITCH_CLASS_RE = re.compile(r"^([A-G])([#b]?)$")
_VEXFLOW_RE = re.compile(r"^([a-gA-G])([#b]?)/([0-9])$")


class ParseError(ValueError):
    """Raised when a pitch string does not match the letter/accidental/octave grammar."""


# ── Duration tables ─────────────────────────────────────────────────────────

#: Length of each note value in quarter notes
NOTE_VALUES: Final[dict[NoteDuration, Fraction]] = {
    NoteDuration.WHOLE: Fraction(4),
    NoteDuration.HALF: Fraction(2),
    NoteDuration.QUARTER: Fraction(1),
    NoteDuration.EIGHTH: Fraction(1, 2),
    NoteDuration.SIXTEENTH: Fraction(1, 4),
    NoteDuration.THIRTY_SECOND: Fraction(1, 8),
}


def dot_multiplier(dots: int) -> Fraction:
    """Return the length factor for *dots* augmentation dots: 2 - 2**-dots."""
    return 2 - Fraction(1, 2**dots)


def note_length(duration: NoteDuration, dots: int = 0) -> Fraction:
    """Length of a (possibly dotted) note value in quarter notes."""
    return NOTE_VALUES[duration] * dot_multiplier(dots)


def measure_length(time_signature: TimeSignature) -> Fraction:
    """Beats in one bar of *time_signature*, in quarter notes."""
    return Fraction(time_signature.numerator * 4, time_signature.denominator)


# ── Interval tables ─────────────────────────────────────────────────────────

SCALE_INTERVALS: Final[dict[ScaleType, tuple[int, ...]]] = {
    ScaleType.MAJOR: (0, 2, 4, 5, 7, 9, 11),
    ScaleType.NATURAL_MINOR: (0, 2, 3, 5, 7, 8, 10),
    ScaleType.HARMONIC_MINOR: (0, 2, 3, 5, 7, 8, 11),
    ScaleType.MELODIC_MINOR: (0, 2, 3, 5, 7, 9, 11),
    ScaleType.PENTATONIC_MAJOR: (0, 2, 4, 7, 9),
    ScaleType.PENTATONIC_MINOR: (0, 3, 5, 7, 10),
    ScaleType.BLUES: (0, 3, 5, 6, 7, 10),
    ScaleType.CHROMATIC: tuple(range(12)),
    ScaleType.WHOLE_TONE: (0, 2, 4, 6, 8, 10),
    ScaleType.DIMINISHED: (0, 2, 3, 5, 6, 8, 9, 11),
    ScaleType.AUGMENTED: (0, 3, 4, 7, 8, 11),
}

CHORD_INTERVALS: Final[dict[ChordType, tuple[int, ...]]] = {
    ChordType.MAJOR: (0, 4, 7),
    ChordType.MINOR: (0, 3, 7),
    ChordType.DIMINISHED: (0, 3, 6),
    ChordType.AUGMENTED: (0, 4, 8),
    ChordType.MAJOR_SEVENTH: (0, 4, 7, 11),
    ChordType.MINOR_SEVENTH: (0, 3, 7, 10),
    ChordType.DOMINANT_SEVENTH: (0, 4, 7, 10),
    ChordType.HALF_DIMINISHED_SEVENTH: (0, 3, 6, 10),
    ChordType.DIMINISHED_SEVENTH: (0, 3, 6, 9),
}

# ── Key signatures ──────────────────────────────────────────────────────────

#: Order in which sharps and flats are added to a key signature
SHARP_ORDER: Final[tuple[str, ...]] = ("F#", "C#", "G#", "D#", "A#", "E#", "B#")
FLAT_ORDER: Final[tuple[str, ...]] = ("Bb", "Eb", "Ab", "Db", "Gb", "Cb", "Fb")

# Positive = number of sharps, negative = number of flats
_KEY_ACCIDENTAL_COUNTS: Final[dict[KeySignature, int]] = {
    KeySignature.C_MAJOR: 0,
    KeySignature.G_MAJOR: 1,
    KeySignature.D_MAJOR: 2,
    KeySignature.A_MAJOR: 3,
    KeySignature.E_MAJOR: 4,
    KeySignature.B_MAJOR: 5,
    KeySignature.F_SHARP_MAJOR: 6,
    KeySignature.C_SHARP_MAJOR: 7,
    KeySignature.F_MAJOR: -1,
    KeySignature.B_FLAT_MAJOR: -2,
    KeySignature.E_FLAT_MAJOR: -3,
    KeySignature.A_FLAT_MAJOR: -4,
    KeySignature.D_FLAT_MAJOR: -5,
    KeySignature.G_FLAT_MAJOR: -6,
    KeySignature.C_FLAT_MAJOR: -7,
    KeySignature.A_MINOR: 0,
    KeySignature.E_MINOR: 1,
    KeySignature.B_MINOR: 2,
    KeySignature.F_SHARP_MINOR: 3,
    KeySignature.C_SHARP_MINOR: 4,
    KeySignature.G_SHARP_MINOR: 5,
    KeySignature.D_SHARP_MINOR: 6,
    KeySignature.A_SHARP_MINOR: 7,
    KeySignature.D_MINOR: -1,
    KeySignature.G_MINOR: -2,
    KeySignature.C_MINOR: -3,
    KeySignature.F_MINOR: -4,
    KeySignature.B_FLAT_MINOR: -5,
    KeySignature.E_FLAT_MINOR: -6,
    KeySignature.A_FLAT_MINOR: -7,
}


@dataclass(frozen=True)
class KeySignatureAlterations:
    """Sharps and flats implied by a key, in key-signature order."""

    sharps: tuple[str, ...]
    flats: tuple[str, ...]


KEY_SIGNATURE_ALTERATIONS: Final[dict[KeySignature, KeySignatureAlterations]] = {
    key: KeySignatureAlterations(
        sharps=SHARP_ORDER[:count] if count > 0 else (),
        flats=FLAT_ORDER[:-count] if count < 0 else (),
    )
    for key, count in _KEY_ACCIDENTAL_COUNTS.items()
}

# ── Exercise tooling constants ──────────────────────────────────────────────

TIME_SIGNATURE_GROUPS: Final[dict[str, tuple[TimeSignature, ...]]] = {
    "simple": (TimeSignature.TWO_FOUR, TimeSignature.THREE_FOUR, TimeSignature.FOUR_FOUR),
    "compound": (
        TimeSignature.SIX_EIGHT,
        TimeSignature.NINE_EIGHT,
        TimeSignature.TWELVE_EIGHT,
        TimeSignature.THREE_EIGHT,
    ),
    "complex": (TimeSignature.FIVE_FOUR, TimeSignature.SEVEN_EIGHT),
}


@dataclass(frozen=True)
class DifficultyPreset:
    tempo: int
    lowest: str
    highest: str
    durations: tuple[NoteDuration, ...]


DIFFICULTY_PRESETS: Final[dict[str, DifficultyPreset]] = {
    "beginner": DifficultyPreset(
        tempo=60,
        lowest="C4",
        highest="G4",
        durations=(NoteDuration.WHOLE, NoteDuration.HALF, NoteDuration.QUARTER),
    ),
    "intermediate": DifficultyPreset(
        tempo=90,
        lowest="G3",
        highest="C5",
        durations=(NoteDuration.HALF, NoteDuration.QUARTER, NoteDuration.EIGHTH),
    ),
    "advanced": DifficultyPreset(
        tempo=120,
        lowest="C3",
        highest="C6",
        durations=(NoteDuration.QUARTER, NoteDuration.EIGHTH, NoteDuration.SIXTEENTH),
    ),
}

#: Comfortable written range per clef as (lowest, highest)
CLEF_RANGES: Final[dict[Clef, tuple[str, str]]] = {
    Clef.TREBLE: ("C4", "C7"),
    Clef.BASS: ("C2", "C5"),
    Clef.ALTO: ("G3", "G6"),
    Clef.TENOR: ("C3", "C6"),
    Clef.GRAND_STAFF: ("C2", "C7"),
}

require_exhaustive(NOTE_VALUES, NoteDuration, "NOTE_VALUES")
require_exhaustive(SCALE_INTERVALS, ScaleType, "SCALE_INTERVALS")
require_exhaustive(CHORD_INTERVALS, ChordType, "CHORD_INTERVALS")
require_exhaustive(KEY_SIGNATURE_ALTERATIONS, KeySignature, "KEY_SIGNATURE_ALTERATIONS")
require_exhaustive(CLEF_RANGES, Clef, "CLEF_RANGES")


# ── Pitch conversion ────────────────────────────────────────────────────────

def pitch_class_to_midi(pitch_class: int, octave: int) -> int:
    """
    Convert a pitch class (0-11) and an octave number to an absolute MIDI note.

    MIDI octave numbering: C-1 = 0, C0 = 12, C1 = 24, ... C4 (Middle C) = 60.
    """
    return (octave + 1) * SEMITONES_PER_OCTAVE + pitch_class


def note_to_midi(pitch: str) -> int:
    """
    Return the MIDI note number of a pitch such as ``"C4"``, ``"F#5"`` or ``"Bb3"``.

    Raises:
        ParseError: If *pitch* does not match the letter/accidental/octave grammar.
    """
    match = _PITCH_RE.match(pitch)
    if not match:
        raise ParseError(f"Invalid note format: {pitch}")
    letter, accidental, octave = match.groups()
    pitch_class = _LETTER_SEMITONES[letter] + _ACCIDENTAL_OFFSETS[accidental]
    return pitch_class_to_midi(pitch_class, int(octave))


def midi_to_note(midi_number: int) -> str:
    """
    Return the sharp-spelled pitch name of a MIDI note number (60 -> ``"C4"``).

    Enharmonic spellings collapse: ``midi_to_note(note_to_midi("Db4"))`` is ``"C#4"``.

    Raises:
        ValueError: If *midi_number* lies outside the MIDI range 0-127.
    """
    if not MIDI_MIN <= midi_number <= MIDI_MAX:
        raise ValueError(f"MIDI note {midi_number} is outside {MIDI_MIN}-{MIDI_MAX}")
    octave, pitch_class = divmod(midi_number, SEMITONES_PER_OCTAVE)
    return f"{NOTE_NAMES[pitch_class]}{octave - 1}"


def transpose_note(pitch: str, semitones: int) -> str:
    """Transpose *pitch* by *semitones*; the result is always sharp-spelled."""
    return midi_to_note(note_to_midi(pitch) + semitones)


def is_valid_note(pitch: str) -> bool:
    return bool(_PITCH_RE.match(pitch))


def is_valid_note_range(lowest: str, highest: str) -> bool:
    """True when both pitches parse and *lowest* is strictly below *highest*."""
    if not (is_valid_note(lowest) and is_valid_note(highest)):
        return False
    return note_to_midi(lowest) < note_to_midi(highest)


def note_to_vexflow(pitch: str) -> str:
    """Convert ``"F#5"`` to the VexFlow key ``"f#/5"``."""
    match = _PITCH_RE.match(pitch)
    if not match:
        raise ParseError(f"Invalid note format: {pitch}")
    letter, accidental, octave = match.groups()
    return f"{letter.lower()}{accidental}/{octave}"


def vexflow_to_note(key: str) -> str:
    """Convert the VexFlow key ``"f#/5"`` to ``"F#5"``."""
    match = _VEXFLOW_RE.match(key)
    if not match:
        raise ParseError(f"Invalid VexFlow key format: {key}")
    letter, accidental, octave = match.groups()
    return f"{letter.upper()}{accidental}{octave}"


def vexflow_to_midi(key: str) -> int:
    return note_to_midi(vexflow_to_note(key))


# ── Scales and chords ───────────────────────────────────────────────────────

def _apply_intervals(root: str, intervals: tuple[int, ...]) -> list[str]:
    """
    Stack *intervals* on *root*.

    A bare pitch class (``"C"``, ``"Eb"``) yields pitch-class names only; a full
    pitch (``"C4"``) yields ascending absolute pitches, crossing into the next
    octave where the intervals demand it.
    """
    class_match = _PITCH_CLASS_RE.match(root)
    if class_match:
        letter, accidental = class_match.groups()
        pitch_class = (_LETTER_SEMITONES[letter] + _ACCIDENTAL_OFFSETS[accidental]) % SEMITONES_PER_OCTAVE
        return [NOTE_NAMES[(pitch_class + iv) % SEMITONES_PER_OCTAVE] for iv in intervals]

    root_midi = note_to_midi(root)
    return [midi_to_note(root_midi + iv) for iv in intervals]


def get_scale_notes(root: str, scale_type: ScaleType) -> list[str]:
    """Return the notes of *scale_type* built on *root* (see ``_apply_intervals``)."""
    return _apply_intervals(root, SCALE_INTERVALS[scale_type])


def get_chord_notes(root: str, chord_type: ChordType) -> list[str]:
    """Return the chord tones of *chord_type* built on *root*, root position."""
    return _apply_intervals(root, CHORD_INTERVALS[chord_type])


def get_key_signature_alterations(key: KeySignature) -> KeySignatureAlterations:
    return KEY_SIGNATURE_ALTERATIONS[key]


# ── Ranges ──────────────────────────────────────────────────────────────────

def get_clef_range(clef: Clef) -> tuple[str, str]:
    return CLEF_RANGES[clef]


def constrain_range_to_clef(lowest: str, highest: str, clef: Clef) -> tuple[str, str]:
    """Intersect a pitch range with the comfortable range of *clef*."""
    clef_low, clef_high = CLEF_RANGES[clef]
    low = max(note_to_midi(lowest), note_to_midi(clef_low))
    high = min(note_to_midi(highest), note_to_midi(clef_high))
    return midi_to_note(low), midi_to_note(high)
