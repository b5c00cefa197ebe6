"""JSON round-tripping for scores, legacy sheet music and exercise parameters."""

from __future__ import annotations

import json
import logging
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Any, Mapping, TypeVar

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
    OrnamentType,
    ScaleType,
    StemDirection,
    StylePeriod,
    TechnicalType,
    TieType,
    TimeSignature,
)
from polyvoice.score_models import (
    GraceNote,
    MultiVoiceMeasure,
    MultiVoiceNote,
    Ornament,
    Part,
    Score,
    ScoreMetadata,
    Staff,
    Voice,
    Volta,
)
from polyvoice.sheet_models import (
    ExerciseParameters,
    Measure,
    Note,
    NoteRange,
    SheetMusic,
    SightReadingParameters,
    TechnicalParameters,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


# ── Encoding ────────────────────────────────────────────────────────────────

def to_jsonable(value: Any) -> Any:
    """Recursively turn model values into JSON-compatible Python data."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Fraction):
        return float(value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def score_to_dict(score: Score) -> dict[str, Any]:
    return to_jsonable(score)


def sheet_music_to_dict(sheet: SheetMusic) -> dict[str, Any]:
    return to_jsonable(sheet)


# ── Decoding helpers ────────────────────────────────────────────────────────

def _lenient(enum_cls: type[E], value: Any) -> E | Any:
    """Return the enum member for *value*, or *value* unchanged if it is not one.

    Unknown spellings survive loading so the validator can report them.
    """
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _strict(enum_cls: type[E], value: Any, field_name: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {field_name} {value!r}. Use one of: {allowed}.") from None


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


def _items(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a JSON array, got {type(value).__name__}")
    return value


def _datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid timestamp {value!r}") from None


# ── Multi-voice model ───────────────────────────────────────────────────────

def _note_kwargs(data: Mapping[str, Any]) -> dict[str, Any]:
    return dict(
        keys=tuple(_items(data, "keys")),
        duration=_lenient(NoteDuration, data.get("duration")),
        time=data.get("time"),
        accidental=data.get("accidental"),
        dots=data.get("dots", 0),
        stem=_lenient(StemDirection, data.get("stem")),
        beam=bool(data.get("beam", False)),
        articulation=_lenient(Articulation, data.get("articulation")),
        dynamic=_lenient(DynamicMarking, data.get("dynamic")),
        fingering=data.get("fingering"),
        rest=bool(data.get("rest", False)),
        tie=_lenient(TieType, data.get("tie")),
    )


def _grace_from_dict(data: Any) -> GraceNote | None:
    if data is None:
        return None
    data = _mapping(data, "grace")
    return GraceNote(slash=bool(data.get("slash", False)), size=data.get("size"))


def _ornament_from_dict(data: Any) -> Ornament:
    data = _mapping(data, "ornament")
    return Ornament(
        type=_lenient(OrnamentType, data.get("type")),
        accidental=data.get("accidental"),
    )


def multi_voice_note_from_dict(data: Any, voice_id: str = "") -> MultiVoiceNote:
    """Build a note; chord members without their own voice id inherit the note's."""
    data = _mapping(data, "note")
    voice_id = data.get("voice_id", voice_id)
    return MultiVoiceNote(
        voice_id=voice_id,
        staff_id=data.get("staff_id"),
        chord=tuple(multi_voice_note_from_dict(c, voice_id) for c in _items(data, "chord")),
        grace=_grace_from_dict(data.get("grace")),
        ornaments=tuple(_ornament_from_dict(o) for o in _items(data, "ornaments")),
        **_note_kwargs(data),
    )


def voice_from_dict(data: Any) -> Voice:
    data = _mapping(data, "voice")
    return Voice(
        id=data.get("id", ""),
        notes=tuple(multi_voice_note_from_dict(n) for n in _items(data, "notes")),
        name=data.get("name"),
        stem_direction=_lenient(StemDirection, data.get("stem_direction")),
    )


def staff_from_dict(data: Any) -> Staff:
    data = _mapping(data, "staff")
    return Staff(
        id=data.get("id", ""),
        clef=_lenient(Clef, data.get("clef")),
        voices=tuple(voice_from_dict(v) for v in _items(data, "voices")),
        name=data.get("name"),
    )


def part_from_dict(data: Any) -> Part:
    data = _mapping(data, "part")
    return Part(
        id=data.get("id", ""),
        name=data.get("name", ""),
        instrument=data.get("instrument", ""),
        staves=tuple(_items(data, "staves")),
        midi_program=data.get("midi_program"),
        volume=data.get("volume"),
        pan=data.get("pan"),
    )


def measure_from_dict(data: Any) -> MultiVoiceMeasure:
    data = _mapping(data, "measure")
    volta = data.get("volta")
    if volta is not None:
        volta = _mapping(volta, "volta")
        volta = Volta(
            number=volta.get("number", 1),
            start=bool(volta.get("start", False)),
            end=bool(volta.get("end", False)),
        )
    return MultiVoiceMeasure(
        number=data.get("number", 0),
        staves=tuple(staff_from_dict(s) for s in _items(data, "staves")),
        time_signature=_lenient(TimeSignature, data.get("time_signature")),
        key_signature=_lenient(KeySignature, data.get("key_signature")),
        tempo=data.get("tempo"),
        dynamics=_lenient(DynamicMarking, data.get("dynamics")),
        rehearsal_mark=data.get("rehearsal_mark"),
        bar_line=_lenient(BarLineType, data.get("bar_line")),
        repeat_count=data.get("repeat_count"),
        volta=volta,
    )


def score_from_dict(data: Any) -> Score:
    """Build a Score from decoded JSON.

    Raises:
        ValueError: If the document's structure is not a score.
    """
    data = _mapping(data, "score")
    metadata = _mapping(data.get("metadata", {}), "metadata")
    now = datetime.now().astimezone()
    return Score(
        title=data.get("title", ""),
        composer=data.get("composer", ""),
        parts=tuple(part_from_dict(p) for p in _items(data, "parts")),
        measures=tuple(measure_from_dict(m) for m in _items(data, "measures")),
        metadata=ScoreMetadata(
            created_at=_datetime(metadata.get("created_at", now)),
            modified_at=_datetime(metadata.get("modified_at", now)),
            source=metadata.get("source", ""),
            tags=tuple(_items(metadata, "tags")),
            original_filename=metadata.get("original_filename"),
            encoding_software=metadata.get("encoding_software"),
            performance_notes=metadata.get("performance_notes"),
            difficulty=metadata.get("difficulty"),
            duration=metadata.get("duration"),
        ),
        arranger=data.get("arranger"),
        copyright=data.get("copyright"),
    )


# ── Legacy model ────────────────────────────────────────────────────────────

def _optional(enum_cls: type[E], value: Any, field_name: str) -> E | None:
    return None if value is None else _strict(enum_cls, value, field_name)


def sheet_music_from_dict(data: Any) -> SheetMusic:
    """Build legacy SheetMusic from decoded JSON; enum values must be known."""
    data = _mapping(data, "sheet music")
    measures = []
    for raw in _items(data, "measures"):
        raw = _mapping(raw, "measure")
        notes = tuple(Note(**_note_kwargs(_mapping(n, "note"))) for n in _items(raw, "notes"))
        measures.append(
            Measure(
                number=raw.get("number", len(measures) + 1),
                notes=notes,
                time_signature=_optional(TimeSignature, raw.get("time_signature"), "time_signature"),
                key_signature=_optional(KeySignature, raw.get("key_signature"), "key_signature"),
                clef=_optional(Clef, raw.get("clef"), "clef"),
                tempo=raw.get("tempo"),
                dynamics=_optional(DynamicMarking, raw.get("dynamics"), "dynamics"),
                rehearsal_mark=raw.get("rehearsal_mark"),
                bar_line=_optional(BarLineType, raw.get("bar_line"), "bar_line"),
                repeat_count=raw.get("repeat_count"),
            )
        )

    return SheetMusic(
        id=data.get("id", ""),
        title=data.get("title", ""),
        composer=data.get("composer", ""),
        instrument=_strict(Instrument, data.get("instrument", "PIANO"), "instrument"),
        measures=tuple(measures),
        difficulty=_strict(Difficulty, data.get("difficulty", "INTERMEDIATE"), "difficulty"),
        difficulty_level=data.get("difficulty_level", 5),
        duration_seconds=data.get("duration_seconds", 60),
        time_signature=_strict(TimeSignature, data.get("time_signature", "4/4"), "time_signature"),
        key_signature=_strict(KeySignature, data.get("key_signature", "C_MAJOR"), "key_signature"),
        suggested_tempo=data.get("suggested_tempo", 120),
        style_period=_strict(StylePeriod, data.get("style_period", "CLASSICAL"), "style_period"),
        tags=tuple(_items(data, "tags")),
        opus=data.get("opus"),
        movement=data.get("movement"),
        tempo_marking=data.get("tempo_marking"),
    )


def _exercise_kwargs(data: Mapping[str, Any]) -> dict[str, Any]:
    note_range = _mapping(data.get("range", {}), "range")
    return dict(
        key_signature=_strict(KeySignature, data.get("key_signature", "C_MAJOR"), "key_signature"),
        time_signature=_strict(TimeSignature, data.get("time_signature", "4/4"), "time_signature"),
        clef=_strict(Clef, data.get("clef", "treble"), "clef"),
        range=NoteRange(
            lowest=str(note_range.get("lowest", "")),
            highest=str(note_range.get("highest", "")),
        ),
        difficulty=data.get("difficulty"),
        measures=data.get("measures"),
        tempo=data.get("tempo"),
        technical_elements=tuple(_items(data, "technical_elements")),
        rhythmic_patterns=tuple(_items(data, "rhythmic_patterns")),
        dynamic_range=tuple(_items(data, "dynamic_range")),
    )


def exercise_parameters_from_dict(data: Any) -> ExerciseParameters:
    data = _mapping(data, "exercise parameters")
    return ExerciseParameters(**_exercise_kwargs(data))


def sight_reading_parameters_from_dict(data: Any) -> SightReadingParameters:
    data = _mapping(data, "sight-reading parameters")
    return SightReadingParameters(
        phrase_length=data.get("phrase_length", 4),
        melodic_motion=_strict(MelodicMotion, data.get("melodic_motion", "mixed"), "melodic_motion"),
        include_accidentals=bool(data.get("include_accidentals", False)),
        include_dynamics=bool(data.get("include_dynamics", False)),
        include_articulations=bool(data.get("include_articulations", False)),
        **_exercise_kwargs(data),
    )


def technical_parameters_from_dict(data: Any) -> TechnicalParameters:
    """Build technical-exercise parameters; the technical type is kept as given for the validator."""
    data = _mapping(data, "technical parameters")
    hanon = data.get("hanon_pattern")
    return TechnicalParameters(
        technical_type=_lenient(TechnicalType, data.get("technical_type")),
        scale_type=_optional(ScaleType, data.get("scale_type"), "scale_type"),
        arpeggio_type=_optional(ChordType, data.get("arpeggio_type"), "arpeggio_type"),
        hanon_pattern=None if hanon is None else tuple(_items(data, "hanon_pattern")),
        include_descending=bool(data.get("include_descending", False)),
        octaves=data.get("octaves"),
        **_exercise_kwargs(data),
    )


# ── Files ───────────────────────────────────────────────────────────────────

def load_json(path: str | Path) -> Any:
    """
    Read a JSON document from *path*.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is not valid JSON.
    """
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    logger.debug("Loaded %s", path)
    return data


def dump_json(data: Any, path: str | Path) -> None:
    """Write *data* (models or plain data) to *path* as indented JSON."""
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(to_jsonable(data), fh, indent=2, ensure_ascii=False)
        fh.write("\n")
    logger.debug("Wrote %s", path)
