"""Closed musical vocabularies shared by the notation model."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class Clef(str, Enum):
    TREBLE = "treble"
    BASS = "bass"
    ALTO = "alto"
    TENOR = "tenor"
    GRAND_STAFF = "grand_staff"


class NoteDuration(str, Enum):
    """Note values in VexFlow spelling."""

    WHOLE = "w"
    HALF = "h"
    QUARTER = "q"
    EIGHTH = "8"
    SIXTEENTH = "16"
    THIRTY_SECOND = "32"


class TimeSignature(str, Enum):
    TWO_FOUR = "2/4"
    THREE_FOUR = "3/4"
    FOUR_FOUR = "4/4"
    THREE_EIGHT = "3/8"
    SIX_EIGHT = "6/8"
    NINE_EIGHT = "9/8"
    TWELVE_EIGHT = "12/8"
    FIVE_FOUR = "5/4"
    SEVEN_EIGHT = "7/8"

    @property
    def numerator(self) -> int:
        return int(self.value.split("/")[0])

    @property
    def denominator(self) -> int:
        return int(self.value.split("/")[1])


class KeySignature(str, Enum):
    C_MAJOR = "C_MAJOR"
    G_MAJOR = "G_MAJOR"
    D_MAJOR = "D_MAJOR"
    A_MAJOR = "A_MAJOR"
    E_MAJOR = "E_MAJOR"
    B_MAJOR = "B_MAJOR"
    F_SHARP_MAJOR = "F_SHARP_MAJOR"
    C_SHARP_MAJOR = "C_SHARP_MAJOR"
    F_MAJOR = "F_MAJOR"
    B_FLAT_MAJOR = "B_FLAT_MAJOR"
    E_FLAT_MAJOR = "E_FLAT_MAJOR"
    A_FLAT_MAJOR = "A_FLAT_MAJOR"
    D_FLAT_MAJOR = "D_FLAT_MAJOR"
    G_FLAT_MAJOR = "G_FLAT_MAJOR"
    C_FLAT_MAJOR = "C_FLAT_MAJOR"
    A_MINOR = "A_MINOR"
    E_MINOR = "E_MINOR"
    B_MINOR = "B_MINOR"
    F_SHARP_MINOR = "F_SHARP_MINOR"
    C_SHARP_MINOR = "C_SHARP_MINOR"
    G_SHARP_MINOR = "G_SHARP_MINOR"
    D_SHARP_MINOR = "D_SHARP_MINOR"
    A_SHARP_MINOR = "A_SHARP_MINOR"
    D_MINOR = "D_MINOR"
    G_MINOR = "G_MINOR"
    C_MINOR = "C_MINOR"
    F_MINOR = "F_MINOR"
    B_FLAT_MINOR = "B_FLAT_MINOR"
    E_FLAT_MINOR = "E_FLAT_MINOR"
    A_FLAT_MINOR = "A_FLAT_MINOR"

    @property
    def is_minor(self) -> bool:
        return self.value.endswith("_MINOR")


class ScaleType(str, Enum):
    MAJOR = "major"
    NATURAL_MINOR = "natural_minor"
    HARMONIC_MINOR = "harmonic_minor"
    MELODIC_MINOR = "melodic_minor"
    PENTATONIC_MAJOR = "pentatonic_major"
    PENTATONIC_MINOR = "pentatonic_minor"
    BLUES = "blues"
    CHROMATIC = "chromatic"
    WHOLE_TONE = "whole_tone"
    DIMINISHED = "diminished"
    AUGMENTED = "augmented"


class ChordType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    DIMINISHED = "diminished"
    AUGMENTED = "augmented"
    MAJOR_SEVENTH = "major7"
    MINOR_SEVENTH = "minor7"
    DOMINANT_SEVENTH = "dominant7"
    HALF_DIMINISHED_SEVENTH = "half_diminished7"
    DIMINISHED_SEVENTH = "diminished7"


class Articulation(str, Enum):
    STACCATO = "staccato"
    STACCATISSIMO = "staccatissimo"
    ACCENT = "accent"
    TENUTO = "tenuto"
    MARCATO = "marcato"
    LEGATO = "legato"
    FERMATA = "fermata"


class DynamicMarking(str, Enum):
    PPPP = "pppp"
    PPP = "ppp"
    PP = "pp"
    P = "p"
    MP = "mp"
    MF = "mf"
    F = "f"
    FF = "ff"
    FFF = "fff"
    FFFF = "ffff"
    SFZ = "sfz"
    FP = "fp"


class BarLineType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    END = "end"
    REPEAT_START = "repeat-start"
    REPEAT_END = "repeat-end"
    REPEAT_BOTH = "repeat-both"


class StemDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    AUTO = "auto"


class TieType(str, Enum):
    START = "start"
    STOP = "stop"
    CONTINUE = "continue"


class OrnamentType(str, Enum):
    TRILL = "trill"
    MORDENT = "mordent"
    TURN = "turn"
    TREMOLO = "tremolo"


class TechnicalType(str, Enum):
    """Kinds of technical exercise."""

    SCALE = "scale"
    ARPEGGIO = "arpeggio"
    HANON = "hanon"
    MIXED = "mixed"


class MelodicMotion(str, Enum):
    STEPWISE = "stepwise"
    LEAPS = "leaps"
    MIXED = "mixed"


class Instrument(str, Enum):
    """Legacy sheet-music instrument model (piano or guitar only)."""

    PIANO = "PIANO"
    GUITAR = "GUITAR"


class Difficulty(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class StylePeriod(str, Enum):
    BAROQUE = "BAROQUE"
    CLASSICAL = "CLASSICAL"
    ROMANTIC = "ROMANTIC"
    MODERN = "MODERN"
    CONTEMPORARY = "CONTEMPORARY"


def require_exhaustive(table: Mapping[Any, Any], enum_cls: type[Enum], name: str) -> None:
    """Raise RuntimeError unless *table* has an entry for every member of *enum_cls*."""
    missing = [member.name for member in enum_cls if member not in table]
    if missing:
        raise RuntimeError(f"{name} is missing entries for: {', '.join(missing)}")
