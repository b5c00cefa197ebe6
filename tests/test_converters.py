"""Unit tests for legacy <-> multi-voice conversion, voice extraction and merging."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from polyvoice.converters import (
    extract_voice_from_score,
    merge_scores,
    score_to_sheet_music,
    sheet_music_to_score,
)
from polyvoice.enums import Clef, Instrument, KeySignature, NoteDuration, TimeSignature
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
from polyvoice.validation import validate_score

STAMP = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _n(key: str, time: float, duration: NoteDuration = NoteDuration.QUARTER, **kwargs: object) -> Note:
    return Note(keys=(key,), duration=duration, time=time, **kwargs)


def _sample_sheet(clef: Clef = Clef.GRAND_STAFF, instrument: Instrument = Instrument.PIANO) -> SheetMusic:
    measures = (
        Measure(
            number=1,
            clef=clef,
            notes=(
                _n("c/4", 0),
                _n("b/3", 1),
                _n("b/4", 0, rest=True),
                _n("e/2", 2, NoteDuration.HALF),
                _n("g/5", 2, NoteDuration.HALF),
            ),
        ),
        Measure(number=2, notes=(_n("c/5", 0, NoteDuration.WHOLE),)),
    )
    return SheetMusic(
        id="minuet",
        title="Minuet in G",
        composer="Petzold",
        instrument=instrument,
        measures=measures,
        time_signature=TimeSignature.FOUR_FOUR,
        key_signature=KeySignature.G_MAJOR,
        tags=("baroque",),
    )


def _mv(key: str, time: float, voice_id: str, duration: NoteDuration = NoteDuration.QUARTER) -> MultiVoiceNote:
    return MultiVoiceNote(keys=(key,), duration=duration, time=time, voice_id=voice_id)


def _sample_score(title: str = "Chorale", instrument: str = "piano", measures: int = 1) -> Score:
    built = tuple(
        MultiVoiceMeasure(
            number=n,
            staves=(
                Staff(
                    id="treble",
                    clef=Clef.TREBLE,
                    voices=(
                        Voice(id="soprano", notes=(_mv("e/5", 0, "soprano", NoteDuration.WHOLE),)),
                        Voice(id="alto", notes=(_mv("c/5", 0, "alto", NoteDuration.WHOLE),)),
                    ),
                ),
                Staff(
                    id="bass",
                    clef=Clef.BASS,
                    voices=(Voice(id="bassVoice", notes=(_mv("c/3", 0, "bassVoice", NoteDuration.WHOLE),)),),
                ),
            ),
            time_signature=TimeSignature.FOUR_FOUR,
            key_signature=KeySignature.C_MAJOR,
            tempo=72,
        )
        for n in range(1, measures + 1)
    )
    return Score(
        title=title,
        composer="Bach",
        parts=(Part(id="choir", name="Choir", instrument=instrument, staves=("treble", "bass")),),
        measures=built,
        metadata=ScoreMetadata(created_at=STAMP, modified_at=STAMP, source="test", tags=("chorale",)),
    )


# ── sheet_music_to_score ────────────────────────────────────────────────────

def test_grand_staff_splits_at_middle_c() -> None:
    score = sheet_music_to_score(_sample_sheet(), now=STAMP)
    treble, bass = score.measures[0].staves

    assert (treble.id, treble.clef) == ("treble", Clef.TREBLE)
    assert (bass.id, bass.clef) == ("bass", Clef.BASS)
    treble_keys = [n.keys[0] for n in treble.voices[0].notes]
    bass_keys = [n.keys[0] for n in bass.voices[0].notes]
    assert treble_keys == ["c/4", "b/4", "g/5"]
    assert bass_keys == ["b/3", "e/2"]


def test_grand_staff_notes_carry_voice_and_staff_ids() -> None:
    score = sheet_music_to_score(_sample_sheet(), now=STAMP)
    treble, bass = score.measures[0].staves
    assert treble.voices[0].id == "rightHand"
    assert bass.voices[0].id == "leftHand"
    assert all(n.voice_id == "rightHand" and n.staff_id == "treble" for n in treble.voices[0].notes)
    assert all(n.voice_id == "leftHand" and n.staff_id == "bass" for n in bass.voices[0].notes)


def test_grand_staff_applies_to_every_measure() -> None:
    score = sheet_music_to_score(_sample_sheet(), now=STAMP)
    second = score.measures[1]
    assert [s.id for s in second.staves] == ["treble", "bass"]
    # no bass notes in bar 2, but the staff is still there for the part
    assert second.staves[1].voices == ()


def test_grand_staff_partition_keeps_every_note() -> None:
    sheet = _sample_sheet()
    score = sheet_music_to_score(sheet, now=STAMP)
    for legacy, converted in zip(sheet.measures, score.measures):
        total = sum(len(v.notes) for s in converted.staves for v in s.voices)
        assert total == len(legacy.notes)


def test_grand_staff_part_and_metadata() -> None:
    score = sheet_music_to_score(_sample_sheet(), now=STAMP)
    (part,) = score.parts
    assert part.id == "main"
    assert part.name == "PIANO"
    assert part.instrument == "piano"
    assert part.staves == ("treble", "bass")
    assert part.midi_program == 0
    assert score.metadata.created_at == STAMP
    assert score.metadata.source == "Legacy format conversion"
    assert score.metadata.tags == ("baroque",)


def test_single_staff_keeps_one_main_voice() -> None:
    sheet = _sample_sheet(clef=Clef.TREBLE, instrument=Instrument.GUITAR)
    score = sheet_music_to_score(sheet, now=STAMP)
    (part,) = score.parts
    assert part.staves == ("main",)
    assert part.midi_program == 24

    (staff,) = score.measures[0].staves
    assert staff.id == "main"
    assert staff.clef == Clef.TREBLE
    (voice,) = staff.voices
    assert voice.id == "main"
    assert [n.keys[0] for n in voice.notes] == [n.keys[0] for n in sheet.measures[0].notes]


def test_measure_attributes_fall_back_to_piece_defaults() -> None:
    score = sheet_music_to_score(_sample_sheet(), now=STAMP)
    assert score.measures[1].time_signature == TimeSignature.FOUR_FOUR
    assert score.measures[1].key_signature == KeySignature.G_MAJOR


def test_unreadable_key_goes_to_treble() -> None:
    sheet = SheetMusic(
        id="x",
        title="x",
        composer="x",
        instrument=Instrument.PIANO,
        measures=(Measure(number=1, clef=Clef.GRAND_STAFF, notes=(_n("zz", 0),)),),
    )
    score = sheet_music_to_score(sheet, now=STAMP)
    assert score.measures[0].staves[0].voices[0].notes[0].keys == ("zz",)


def test_converted_sheet_passes_validation() -> None:
    score = sheet_music_to_score(_sample_sheet(), now=STAMP)
    result = validate_score(score)
    assert result.valid, result.errors


# ── score_to_sheet_music ────────────────────────────────────────────────────

def test_flatten_orders_by_time_with_stable_ties() -> None:
    sheet = score_to_sheet_music(_sample_score())
    keys = [n.keys[0] for n in sheet.measures[0].notes]
    # all start at beat 0: staff order, then voice order
    assert keys == ["e/5", "c/5", "c/3"]


def test_flatten_sorts_interleaved_voices() -> None:
    measure = MultiVoiceMeasure(
        number=1,
        staves=(
            Staff(
                id="main",
                clef=Clef.ALTO,
                voices=(
                    Voice(id="a", notes=(_mv("c/4", 0, "a"), _mv("e/4", 2, "a"))),
                    Voice(id="b", notes=(_mv("d/4", 1, "b"), _mv("f/4", 2, "b"))),
                ),
            ),
        ),
    )
    score = Score(
        title="Round",
        composer="Anon",
        parts=(Part(id="p", name="Viola", instrument="viola", staves=("main",)),),
        measures=(measure,),
        metadata=ScoreMetadata(created_at=STAMP, modified_at=STAMP, source="test"),
    )
    sheet = score_to_sheet_music(score)
    assert [n.keys[0] for n in sheet.measures[0].notes] == ["c/4", "d/4", "e/4", "f/4"]
    assert sheet.measures[0].clef == Clef.ALTO


def test_flatten_puts_untimed_notes_last() -> None:
    score = _sample_score()
    measure = score.measures[0]
    treble = measure.staves[0]
    soprano = replace(treble.voices[0], notes=(replace(treble.voices[0].notes[0], time=None),))
    treble = replace(treble, voices=(soprano, *treble.voices[1:]))
    score = replace(score, measures=(replace(measure, staves=(treble, *measure.staves[1:])),))

    sheet = score_to_sheet_music(score)
    notes = sheet.measures[0].notes
    assert [n.keys[0] for n in notes] == ["c/5", "c/3", "e/5"]
    assert notes[-1].time is None


def test_flatten_header_fields() -> None:
    sheet = score_to_sheet_music(_sample_score(title="Ein feste Burg!"))
    assert sheet.id == "converted-ein-feste-burg"
    assert sheet.instrument == Instrument.PIANO
    assert sheet.suggested_tempo == 72
    assert sheet.time_signature == TimeSignature.FOUR_FOUR
    assert sheet.difficulty_level == 5
    assert sheet.duration_seconds == 60
    assert sheet.tags == ("chorale",)
    assert sheet.measures[0].clef == Clef.GRAND_STAFF


def test_flatten_non_piano_becomes_guitar() -> None:
    sheet = score_to_sheet_music(_sample_score(instrument="choir"))
    assert sheet.instrument == Instrument.GUITAR


def test_round_trip_through_legacy_keeps_notes() -> None:
    original = _sample_sheet()
    back = score_to_sheet_music(sheet_music_to_score(original, now=STAMP))
    assert back.title == original.title
    for before, after in zip(original.measures, back.measures):
        assert sorted(n.keys for n in before.notes) == sorted(n.keys for n in after.notes)


# ── extract_voice_from_score ────────────────────────────────────────────────

def test_extract_keeps_only_the_requested_voice() -> None:
    score = _sample_score(measures=2)
    extracted = extract_voice_from_score(score, "alto")
    assert extracted.title == "Chorale - alto"
    assert extracted.metadata.source == "Extracted voice: alto"
    for measure in extracted.measures:
        (staff,) = measure.staves
        assert staff.id == "treble"
        assert [v.id for v in staff.voices] == ["alto"]
    assert extracted.parts == score.parts


def test_extract_unknown_voice_empties_measures() -> None:
    extracted = extract_voice_from_score(_sample_score(measures=2), "nonexistent")
    assert len(extracted.measures) == 2
    assert all(m.staves == () for m in extracted.measures)


def test_extract_does_not_touch_input() -> None:
    score = _sample_score()
    extract_voice_from_score(score, "alto")
    assert score.voice_ids() == ["soprano", "alto", "bassVoice"]


# ── merge_scores ────────────────────────────────────────────────────────────

def test_merge_empty_raises() -> None:
    with pytest.raises(ValueError, match="Cannot merge empty array of scores"):
        merge_scores([])


def test_merge_single_returns_same_score() -> None:
    score = _sample_score()
    assert merge_scores([score]) is score


def test_merge_renumbers_parts_and_joins_staves() -> None:
    first = _sample_score(title="Violin I", measures=2)
    second = _sample_score(title="Cello", measures=2)
    merged = merge_scores([first, second], now=STAMP)

    assert [p.id for p in merged.parts] == ["part0", "part1"]
    assert merged.title == "Violin I + Cello"
    assert merged.metadata.source == "Merged scores"
    assert merged.metadata.tags == ("merged", "ensemble")
    assert merged.metadata.created_at == STAMP
    assert len(merged.measures) == 2
    assert len(merged.measures[0].staves) == 4
    assert merged.measures[0].tempo == 72


def test_merge_uses_explicit_title_and_longest_length() -> None:
    merged = merge_scores([_sample_score(measures=1), _sample_score(measures=3)], title="Suite")
    assert merged.title == "Suite"
    assert len(merged.measures) == 3
    assert len(merged.measures[2].staves) == 2


def test_merge_suffixes_staff_ids_already_taken() -> None:
    first = _sample_score(title="Piano I", measures=2)
    second = _sample_score(title="Piano II", measures=2)
    merged = merge_scores([first, second], now=STAMP)

    assert [p.staves for p in merged.parts] == [("treble", "bass"), ("treble-1", "bass-1")]
    for measure in merged.measures:
        assert [s.id for s in measure.staves] == ["treble", "bass", "treble-1", "bass-1"]
    assert validate_score(merged).valid


def test_merge_renames_note_staff_references() -> None:
    piano = sheet_music_to_score(_sample_sheet(), now=STAMP)
    merged = merge_scores([piano, piano], now=STAMP)
    treble, bass = merged.measures[0].staves[2:]
    assert (treble.id, bass.id) == ("treble-1", "bass-1")
    assert {n.staff_id for n in treble.voices[0].notes} == {"treble-1"}
    assert {n.staff_id for n in bass.voices[0].notes} == {"bass-1"}
    # the first score keeps its ids
    assert merged.measures[0].staves[0].voices[0].notes[0].staff_id == "treble"


def test_merge_leaves_distinct_staff_ids_alone() -> None:
    violin = _sample_score(title="Violin")
    cello = replace(
        _sample_score(title="Cello"),
        parts=(Part(id="vc", name="Cello", instrument="cello", staves=("low",)),),
        measures=(
            replace(
                _sample_score().measures[0],
                staves=(Staff(id="low", clef=Clef.BASS),),
            ),
        ),
    )
    merged = merge_scores([violin, cello], now=STAMP)
    assert [p.staves for p in merged.parts] == [("treble", "bass"), ("low",)]
