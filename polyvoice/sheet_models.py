"""Legacy single-voice sheet music model and exercise parameters."""

from dataclasses import dataclass, field

from polyvoice.enums import (
    Articulation,
    BarLineType,
    ChordType,
    Clef,
    Difficulty,
    DynamicMarking,
    Instrument,
    KeySignature,
    MelodicMotion,
    NoteDuration,
    ScaleType,
    StemDirection,
    StylePeriod,
    TechnicalType,
    TieType,
    TimeSignature,
)


@dataclass(frozen=True)
class Note:
    """A note, chord or rest in a flat measure; pitches are VexFlow keys like ``"c/4"``."""

    keys: tuple[str, ...]
    duration: NoteDuration
    time: float
    accidental: str | None = None
    dots: int = 0
    stem: StemDirection | None = None
    beam: bool = False
    articulation: Articulation | None = None
    dynamic: DynamicMarking | None = None
    fingering: str | None = None
    rest: bool = False
    tie: TieType | None = None


@dataclass(frozen=True)
class Measure:
    """One bar of the flat model: an ungrouped note list plus optional overrides."""

    number: int
    notes: tuple[Note, ...] = ()
    time_signature: TimeSignature | None = None
    key_signature: KeySignature | None = None
    clef: Clef | None = None
    tempo: int | None = None
    dynamics: DynamicMarking | None = None
    rehearsal_mark: str | None = None
    bar_line: BarLineType | None = None
    repeat_count: int | None = None


@dataclass(frozen=True)
class SheetMusic:
    """A piece in the legacy flat representation."""

    id: str
    title: str
    composer: str
    instrument: Instrument
    measures: tuple[Measure, ...]
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    difficulty_level: int = 5
    duration_seconds: int = 60
    time_signature: TimeSignature = TimeSignature.FOUR_FOUR
    key_signature: KeySignature = KeySignature.C_MAJOR
    suggested_tempo: int = 120
    style_period: StylePeriod = StylePeriod.CLASSICAL
    tags: tuple[str, ...] = ()
    opus: str | None = None
    movement: str | None = None
    tempo_marking: str | None = None


@dataclass(frozen=True)
class NoteRange:
    lowest: str
    highest: str


@dataclass(frozen=True)
class ExerciseParameters:
    """Parameters handed over by the exercise generator UI."""

    key_signature: KeySignature
    time_signature: TimeSignature
    clef: Clef
    range: NoteRange
    difficulty: int
    measures: int
    tempo: int
    technical_elements: tuple[str, ...] = field(default_factory=tuple)
    rhythmic_patterns: tuple[str, ...] = field(default_factory=tuple)
    dynamic_range: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, kw_only=True)
class SightReadingParameters(ExerciseParameters):
    """Exercise parameters plus the melodic shape of a sight-reading piece."""

    phrase_length: int = 4
    melodic_motion: MelodicMotion = MelodicMotion.MIXED
    include_accidentals: bool = False
    include_dynamics: bool = False
    include_articulations: bool = False


@dataclass(frozen=True, kw_only=True)
class TechnicalParameters(ExerciseParameters):
    """
    Exercise parameters for scales, arpeggios and Hanon patterns.

    Attributes:
        hanon_pattern: Scale degrees (1-7) of one Hanon figure.
        octaves:       Octaves the exercise spans.
    """

    technical_type: TechnicalType
    scale_type: ScaleType | None = None
    arpeggio_type: ChordType | None = None
    hanon_pattern: tuple[int, ...] | None = None
    include_descending: bool = False
    octaves: int | None = None
