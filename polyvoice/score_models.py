"""Multi-voice notation model: notes grouped into voices, staves, parts and measures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Final

from polyvoice.enums import (
    Articulation,
    BarLineType,
    Clef,
    DynamicMarking,
    KeySignature,
    NoteDuration,
    OrnamentType,
    StemDirection,
    TieType,
    TimeSignature,
)


@dataclass(frozen=True)
class GraceNote:
    """Grace-note styling: ``slash`` marks an acciaccatura, otherwise an appoggiatura."""

    slash: bool = False
    size: float | None = None  # relative to normal notes, typically 0.6-0.7


@dataclass(frozen=True)
class Ornament:
    type: OrnamentType
    accidental: str | None = None


@dataclass(frozen=True)
class MultiVoiceNote:
    """
    A note, chord or rest owned by one voice.

    Attributes:
        keys:     Simultaneous pitches as VexFlow keys (``("c/4", "e/4", "g/4")``).
        duration: Note value before dots.
        time:     Start position in quarter notes from the start of the measure.
        voice_id: Id of the owning voice.
        staff_id: Staff the note is drawn on, when it differs from its voice's staff.
        chord:    Further notes sounding with this one, each with its own duration.
    """

    keys: tuple[str, ...]
    duration: NoteDuration
    time: float
    voice_id: str
    staff_id: str | None = None
    accidental: str | None = None
    dots: int = 0
    stem: StemDirection | None = None
    beam: bool = False
    articulation: Articulation | None = None
    dynamic: DynamicMarking | None = None
    fingering: str | None = None
    rest: bool = False
    tie: TieType | None = None
    chord: tuple[MultiVoiceNote, ...] = ()
    grace: GraceNote | None = None
    ornaments: tuple[Ornament, ...] = ()


@dataclass(frozen=True)
class Voice:
    """One contrapuntal line, e.g. ``rightHand`` or ``soprano``."""

    id: str
    notes: tuple[MultiVoiceNote, ...] = ()
    name: str | None = None
    stem_direction: StemDirection | None = None


@dataclass(frozen=True)
class Staff:
    id: str
    clef: Clef
    voices: tuple[Voice, ...] = ()
    name: str | None = None


@dataclass(frozen=True)
class Part:
    """An instrument part and the staff ids it owns across the whole score."""

    id: str
    name: str
    instrument: str
    staves: tuple[str, ...]
    midi_program: int | None = None
    volume: int | None = None
    pan: int | None = None


@dataclass(frozen=True)
class Volta:
    number: int
    start: bool
    end: bool


@dataclass(frozen=True)
class MultiVoiceMeasure:
    """One bar; the optional overrides apply from this bar onwards."""

    number: int
    staves: tuple[Staff, ...] = ()
    time_signature: TimeSignature | None = None
    key_signature: KeySignature | None = None
    tempo: int | None = None
    dynamics: DynamicMarking | None = None
    rehearsal_mark: str | None = None
    bar_line: BarLineType | None = None
    repeat_count: int | None = None
    volta: Volta | None = None


@dataclass(frozen=True)
class ScoreMetadata:
    created_at: datetime
    modified_at: datetime
    source: str
    tags: tuple[str, ...] = ()
    original_filename: str | None = None
    encoding_software: str | None = None
    performance_notes: str | None = None
    difficulty: int | None = None
    duration: int | None = None


@dataclass(frozen=True)
class Score:
    title: str
    composer: str
    parts: tuple[Part, ...]
    measures: tuple[MultiVoiceMeasure, ...]
    metadata: ScoreMetadata
    arranger: str | None = None
    copyright: str | None = None

    def staff_ids(self) -> list[str]:
        """Distinct staff ids in first-seen order across all measures."""
        seen: dict[str, None] = {}
        for measure in self.measures:
            for staff in measure.staves:
                seen.setdefault(staff.id, None)
        return list(seen)

    def voice_ids(self) -> list[str]:
        """Distinct voice ids in first-seen order across all measures."""
        seen: dict[str, None] = {}
        for measure in self.measures:
            for staff in measure.staves:
                for voice in staff.voices:
                    seen.setdefault(voice.id, None)
        return list(seen)


# ── Standard voice layouts ──────────────────────────────────────────────────

@dataclass(frozen=True)
class VoiceLayout:
    id: str
    name: str
    default_clef: Clef
    default_stem_direction: StemDirection | None = None


@dataclass(frozen=True)
class VoiceConfiguration:
    instrument: str
    voices: tuple[VoiceLayout, ...] = field(default_factory=tuple)


VOICE_CONFIGURATIONS: Final[dict[str, VoiceConfiguration]] = {
    "piano": VoiceConfiguration(
        instrument="piano",
        voices=(
            VoiceLayout(id="rightHand", name="Right Hand", default_clef=Clef.TREBLE),
            VoiceLayout(id="leftHand", name="Left Hand", default_clef=Clef.BASS),
        ),
    ),
    "satb": VoiceConfiguration(
        instrument="choir",
        voices=(
            VoiceLayout("soprano", "Soprano", Clef.TREBLE, StemDirection.UP),
            VoiceLayout("alto", "Alto", Clef.TREBLE, StemDirection.DOWN),
            VoiceLayout("tenor", "Tenor", Clef.BASS, StemDirection.UP),
            VoiceLayout("bass", "Bass", Clef.BASS, StemDirection.DOWN),
        ),
    ),
}
