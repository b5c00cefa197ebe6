"""Conversions between the legacy flat SheetMusic model and the multi-voice Score.

Both models stay independent; these functions are the only bridge between them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from numbers import Real
from typing import Final, Sequence

from polyvoice.enums import (
    Clef,
    Difficulty,
    Instrument,
    KeySignature,
    StemDirection,
    StylePeriod,
    TimeSignature,
)
from polyvoice.score_models import (
    MultiVoiceMeasure,
    MultiVoiceNote,
    Part,
    Score,
    ScoreMetadata,
    Staff,
    Voice,
)
from polyvoice.sheet_models import Measure, Note, SheetMusic
from polyvoice.theory import MIDDLE_C_MIDI, ParseError, vexflow_to_midi

logger = logging.getLogger(__name__)

#: Notes at or above this MIDI number go to the treble staff of a grand staff
GRAND_STAFF_SPLIT: Final = MIDDLE_C_MIDI

MAIN_ID: Final = "main"
TREBLE_STAFF_ID: Final = "treble"
BASS_STAFF_ID: Final = "bass"
RIGHT_HAND_VOICE_ID: Final = "rightHand"
LEFT_HAND_VOICE_ID: Final = "leftHand"

# General MIDI programs for the two legacy instruments
_INSTRUMENT_PROGRAMS: Final[dict[Instrument, int]] = {
    Instrument.PIANO: 0,    # Acoustic Grand Piano
    Instrument.GUITAR: 24,  # Acoustic Guitar (nylon)
}

# Legacy fields the multi-voice model may leave unset
DEFAULT_DIFFICULTY_LEVEL: Final = 5
DEFAULT_DURATION_SECONDS: Final = 60
DEFAULT_TEMPO: Final = 120


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _slugify(title: str) -> str:
    sanitized = re.sub(r"[^\w\s-]", "", title)
    return re.sub(r"[\s_]+", "-", sanitized.strip()).lower() or "untitled"


# ── Legacy -> multi-voice ───────────────────────────────────────────────────

def _to_multi_voice_note(note: Note, voice_id: str, staff_id: str) -> MultiVoiceNote:
    return MultiVoiceNote(
        keys=note.keys,
        duration=note.duration,
        time=note.time,
        voice_id=voice_id,
        staff_id=staff_id,
        accidental=note.accidental,
        dots=note.dots,
        stem=note.stem,
        beam=note.beam,
        articulation=note.articulation,
        dynamic=note.dynamic,
        fingering=note.fingering,
        rest=note.rest,
        tie=note.tie,
    )


def _is_treble(note: Note) -> bool:
    """Rests and notes whose first key sits at or above middle C belong to the right hand.

    Keys that cannot be read as a pitch are kept with the right hand like rests.
    """
    if note.rest or not note.keys:
        return True
    try:
        return vexflow_to_midi(note.keys[0]) >= GRAND_STAFF_SPLIT
    except ParseError:
        logger.debug("Unreadable key %r at beat %s, placing in treble", note.keys[0], note.time)
        return True


def _measure_overrides(measure: Measure, sheet: SheetMusic) -> dict:
    return dict(
        number=measure.number,
        time_signature=measure.time_signature or sheet.time_signature,
        key_signature=measure.key_signature or sheet.key_signature,
        tempo=measure.tempo,
        dynamics=measure.dynamics,
        rehearsal_mark=measure.rehearsal_mark,
        bar_line=measure.bar_line,
        repeat_count=measure.repeat_count,
    )


def _single_staff_measure(measure: Measure, sheet: SheetMusic) -> MultiVoiceMeasure:
    notes = tuple(_to_multi_voice_note(n, MAIN_ID, MAIN_ID) for n in measure.notes)
    staff = Staff(
        id=MAIN_ID,
        clef=measure.clef or Clef.TREBLE,
        voices=(Voice(id=MAIN_ID, name="Main Voice", notes=notes),),
    )
    return MultiVoiceMeasure(staves=(staff,), **_measure_overrides(measure, sheet))


def _grand_staff_measure(measure: Measure, sheet: SheetMusic) -> MultiVoiceMeasure:
    treble_notes: list[MultiVoiceNote] = []
    bass_notes: list[MultiVoiceNote] = []
    for note in measure.notes:
        if _is_treble(note):
            treble_notes.append(_to_multi_voice_note(note, RIGHT_HAND_VOICE_ID, TREBLE_STAFF_ID))
        else:
            bass_notes.append(_to_multi_voice_note(note, LEFT_HAND_VOICE_ID, BASS_STAFF_ID))

    right_hand = Voice(
        id=RIGHT_HAND_VOICE_ID,
        name="Right Hand",
        notes=tuple(treble_notes),
        stem_direction=StemDirection.AUTO,
    )
    left_hand = Voice(
        id=LEFT_HAND_VOICE_ID,
        name="Left Hand",
        notes=tuple(bass_notes),
        stem_direction=StemDirection.AUTO,
    )

    # Both staves are always present so part references resolve in every bar
    staves = (
        Staff(id=TREBLE_STAFF_ID, clef=Clef.TREBLE, voices=(right_hand,) if treble_notes else ()),
        Staff(id=BASS_STAFF_ID, clef=Clef.BASS, voices=(left_hand,) if bass_notes else ()),
    )
    return MultiVoiceMeasure(staves=staves, **_measure_overrides(measure, sheet))


def sheet_music_to_score(sheet: SheetMusic, now: datetime | None = None) -> Score:
    """
    Convert a legacy single-voice piece to the multi-voice model.

    If any measure uses the grand staff, every measure is split at middle C into
    a treble staff (``rightHand`` voice) and a bass staff (``leftHand`` voice);
    each note lands in exactly one of them. Otherwise each measure becomes a
    single staff with one ``main`` voice holding all notes unchanged.
    """
    is_grand_staff = any(m.clef == Clef.GRAND_STAFF for m in sheet.measures)
    instrument = Instrument(sheet.instrument)

    part = Part(
        id=MAIN_ID,
        name=instrument.value,
        instrument=instrument.value.lower(),
        staves=(TREBLE_STAFF_ID, BASS_STAFF_ID) if is_grand_staff else (MAIN_ID,),
        midi_program=_INSTRUMENT_PROGRAMS[instrument],
    )

    build_measure = _grand_staff_measure if is_grand_staff else _single_staff_measure
    measures = tuple(build_measure(m, sheet) for m in sheet.measures)

    timestamp = _now(now)
    metadata = ScoreMetadata(
        created_at=timestamp,
        modified_at=timestamp,
        source="Legacy format conversion",
        tags=sheet.tags,
        difficulty=sheet.difficulty_level,
        duration=sheet.duration_seconds,
    )

    logger.debug(
        "Converted sheet %r: %d measures, grand staff=%s",
        sheet.id,
        len(measures),
        is_grand_staff,
    )
    return Score(
        title=sheet.title,
        composer=sheet.composer,
        parts=(part,),
        measures=measures,
        metadata=metadata,
    )


# ── Multi-voice -> legacy ───────────────────────────────────────────────────

def _to_flat_note(note: MultiVoiceNote) -> Note:
    return Note(
        keys=note.keys,
        duration=note.duration,
        time=note.time,
        accidental=note.accidental,
        dots=note.dots,
        stem=note.stem,
        beam=note.beam,
        articulation=note.articulation,
        dynamic=note.dynamic,
        fingering=note.fingering,
        rest=note.rest,
        tie=note.tie,
    )


def _start_key(note: Note) -> tuple[int, float]:
    # notes without a usable start time sort after every timed note
    time = note.time
    if isinstance(time, Real) and not isinstance(time, bool):
        return (0, float(time))
    return (1, 0.0)


def _infer_clef(measure: MultiVoiceMeasure, grand_staff: bool) -> Clef:
    if grand_staff:
        return Clef.GRAND_STAFF
    if measure.staves:
        return measure.staves[0].clef
    return Clef.TREBLE


def _infer_instrument(parts: Sequence[Part]) -> Instrument:
    # Binary piano/guitar model inherited from the legacy format
    if any("piano" in (part.instrument or "").lower() for part in parts):
        return Instrument.PIANO
    return Instrument.GUITAR


def score_to_sheet_music(score: Score) -> SheetMusic:
    """
    Flatten a Score into the legacy model. Lossy: voices and staves disappear.

    Notes of each measure are ordered by start time; ties keep staff order, then
    voice order, then the original note order.
    """
    grand_staff = bool(score.parts) and len(score.parts[0].staves) == 2

    measures: list[Measure] = []
    for mv_measure in score.measures:
        flat = [
            _to_flat_note(note)
            for staff in mv_measure.staves
            for voice in staff.voices
            for note in voice.notes
        ]
        flat.sort(key=_start_key)  # stable
        measures.append(
            Measure(
                number=mv_measure.number,
                notes=tuple(flat),
                time_signature=mv_measure.time_signature,
                key_signature=mv_measure.key_signature,
                clef=_infer_clef(mv_measure, grand_staff),
                tempo=mv_measure.tempo,
                dynamics=mv_measure.dynamics,
                rehearsal_mark=mv_measure.rehearsal_mark,
                bar_line=mv_measure.bar_line,
                repeat_count=mv_measure.repeat_count,
            )
        )

    first = score.measures[0] if score.measures else None
    return SheetMusic(
        id=f"converted-{_slugify(score.title)}",
        title=score.title,
        composer=score.composer,
        instrument=_infer_instrument(score.parts),
        measures=tuple(measures),
        difficulty=Difficulty.INTERMEDIATE,
        difficulty_level=score.metadata.difficulty or DEFAULT_DIFFICULTY_LEVEL,
        duration_seconds=score.metadata.duration or DEFAULT_DURATION_SECONDS,
        time_signature=(first and first.time_signature) or TimeSignature.FOUR_FOUR,
        key_signature=(first and first.key_signature) or KeySignature.C_MAJOR,
        suggested_tempo=(first and first.tempo) or DEFAULT_TEMPO,
        style_period=StylePeriod.CLASSICAL,
        tags=score.metadata.tags,
    )


# ── Voice extraction and merging ────────────────────────────────────────────

def extract_voice_from_score(score: Score, voice_id: str) -> Score:
    """
    Keep only the voice *voice_id*, e.g. for single-hand practice.

    Staves without that voice are dropped; an unknown id leaves every measure
    with no staves rather than raising.
    """
    measures = []
    for measure in score.measures:
        staves = []
        for staff in measure.staves:
            matching = tuple(v for v in staff.voices if v.id == voice_id)
            if matching:
                staves.append(replace(staff, voices=matching))
        measures.append(replace(measure, staves=tuple(staves)))

    return replace(
        score,
        title=f"{score.title} - {voice_id}",
        measures=tuple(measures),
        metadata=replace(score.metadata, source=f"Extracted voice: {voice_id}"),
    )


def _rename_staves(score: Score, mapping: dict[str, str]) -> Score:
    def staff_id(old: str | None) -> str | None:
        return mapping.get(old, old) if old is not None else None

    def note(n: MultiVoiceNote) -> MultiVoiceNote:
        return replace(n, staff_id=staff_id(n.staff_id), chord=tuple(note(c) for c in n.chord))

    measures = tuple(
        replace(
            measure,
            staves=tuple(
                replace(
                    staff,
                    id=mapping.get(staff.id, staff.id),
                    voices=tuple(
                        replace(v, notes=tuple(note(n) for n in v.notes)) for v in staff.voices
                    ),
                )
                for staff in measure.staves
            ),
        )
        for measure in score.measures
    )
    parts = tuple(replace(p, staves=tuple(mapping.get(s, s) for s in p.staves)) for p in score.parts)
    return replace(score, parts=parts, measures=measures)


def _distinct_staff_ids(scores: Sequence[Score]) -> list[Score]:
    """Suffix staff ids already used by an earlier score (``treble`` -> ``treble-1``)."""
    taken: set[str] = set()
    result: list[Score] = []
    for index, score in enumerate(scores):
        own = [*dict.fromkeys([s for p in score.parts for s in p.staves] + score.staff_ids())]
        mapping: dict[str, str] = {}
        for staff_id in own:
            if staff_id in taken:
                suffix = index
                while f"{staff_id}-{suffix}" in taken or f"{staff_id}-{suffix}" in own:
                    suffix += 1
                mapping[staff_id] = f"{staff_id}-{suffix}"
            taken.add(mapping.get(staff_id, staff_id))
        result.append(_rename_staves(score, mapping) if mapping else score)
    return result


def merge_scores(
    scores: Sequence[Score], title: str | None = None, now: datetime | None = None
) -> Score:
    """
    Combine measure-aligned scores into one ensemble score.

    Parts are renumbered ``part0``, ``part1``, ... across all inputs and the
    staves of each input's n-th measure are concatenated into the n-th merged
    measure. Staff ids an earlier input already uses get a numeric
    suffix, in the staves and in the owning part, so every part keeps only
    its own staves. A single score is returned as-is: scores are immutable, so
    sharing the instance is safe.

    Raises:
        ValueError: If *scores* is empty.
    """
    if not scores:
        raise ValueError("Cannot merge empty array of scores")
    if len(scores) == 1:
        return scores[0]

    renamed = _distinct_staff_ids(scores)
    parts = tuple(
        replace(part, id=f"part{index}")
        for index, part in enumerate(p for s in renamed for p in s.parts)
    )

    measure_count = max(len(s.measures) for s in scores)
    measures: list[MultiVoiceMeasure] = []
    for index in range(measure_count):
        aligned = [s.measures[index] for s in renamed if index < len(s.measures)]
        measures.append(
            MultiVoiceMeasure(
                number=aligned[-1].number,
                staves=tuple(staff for m in aligned for staff in m.staves),
                time_signature=next((m.time_signature for m in aligned if m.time_signature), None),
                key_signature=next((m.key_signature for m in aligned if m.key_signature), None),
                tempo=next((m.tempo for m in aligned if m.tempo), None),
            )
        )

    timestamp = _now(now)
    logger.debug("Merged %d scores into %d parts, %d measures", len(scores), len(parts), measure_count)
    return Score(
        title=title or " + ".join(s.title for s in scores),
        composer=scores[0].composer,
        parts=parts,
        measures=tuple(measures),
        metadata=ScoreMetadata(
            created_at=timestamp,
            modified_at=timestamp,
            source="Merged scores",
            tags=("merged", "ensemble"),
        ),
    )
