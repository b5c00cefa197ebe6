"""MidiExporter: Writes a multi-voice Score to a Standard MIDI File, one track per part."""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import Iterator

from midiutil import MIDIFile

from polyvoice.enums import TimeSignature
from polyvoice.score_models import MultiVoiceMeasure, Part, Score
from polyvoice.theory import measure_length, note_length, vexflow_to_midi

logger = logging.getLogger(__name__)

# midiutil Format 1 files get their own conductor track; tempo and time
# signature events land there whatever track index they are added on.
# Part tracks are numbered from 0 after it.
TRACK_CONDUCTOR = 0
FIRST_PART_TRACK = 0

# General MIDI reserves channel 10 (index 9) for percussion
PERCUSSION_CHANNEL = 9
MIDI_CHANNELS = 16

# MIDI clocks per metronome click written with each time signature
CLOCKS_PER_TICK = 24


def _part_channel(index: int) -> int:
    """Assign channels in part order, skipping the percussion channel."""
    melodic = [ch for ch in range(MIDI_CHANNELS) if ch != PERCUSSION_CHANNEL]
    return melodic[index % len(melodic)]


def _denominator_power(denominator: int) -> int:
    """midiutil wants the time-signature denominator as a power of two."""
    return denominator.bit_length() - 1


class MidiExporter:
    """
    Writes a Score to a Standard MIDI File (format 1).

    Track layout
    ------------
    Conductor track: tempo and time signature changes, no notes

    Then one track per Part, in score order, named after the part. Each
    track carries every note of every staff the part references, so a piano
    part plays both hands while students can still mute whole parts.

    Timing
    ------
    Measures are laid end to end; each one lasts one full bar of the time
    signature in force at that point. Note times are quarter-note offsets
    from the start of their measure, which is also midiutil's beat unit.
    Rests only advance time.
    """

    DEFAULT_TEMPO = 80     # BPM, a comfortable practice tempo
    DEFAULT_VELOCITY = 80  # MIDI velocity when a part sets no volume

    def __init__(
        self,
        tempo: int = DEFAULT_TEMPO,
        velocity: int = DEFAULT_VELOCITY,
        time_signature: TimeSignature = TimeSignature.FOUR_FOUR,
    ) -> None:
        """
        Args:
            tempo:          Tempo in BPM until a measure overrides it.
            velocity:       Note-on velocity for parts without a volume.
            time_signature: Meter until a measure overrides it.
        """
        self.tempo = tempo
        self.velocity = velocity
        self.time_signature = time_signature

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _measure_offsets(self, score: Score) -> list[tuple[Fraction, TimeSignature]]:
        """Start beat and effective time signature of every measure."""
        offsets: list[tuple[Fraction, TimeSignature]] = []
        start = Fraction(0)
        current = self.time_signature
        for measure in score.measures:
            if isinstance(measure.time_signature, TimeSignature):
                current = measure.time_signature
            offsets.append((start, current))
            start += measure_length(current)
        return offsets

    def _write_conductor(
        self, midi: MIDIFile, score: Score, offsets: list[tuple[Fraction, TimeSignature]]
    ) -> None:
        midi.addTempo(TRACK_CONDUCTOR, 0, self.tempo)
        previous: TimeSignature | None = None
        for measure, (start, time_signature) in zip(score.measures, offsets):
            if measure.tempo:
                midi.addTempo(TRACK_CONDUCTOR, float(start), measure.tempo)
            if time_signature != previous:
                midi.addTimeSignature(
                    TRACK_CONDUCTOR,
                    float(start),
                    time_signature.numerator,
                    _denominator_power(time_signature.denominator),
                    CLOCKS_PER_TICK,
                )
                previous = time_signature

    def _part_events(
        self,
        part: Part,
        measures: tuple[MultiVoiceMeasure, ...],
        offsets: list[tuple[Fraction, TimeSignature]],
    ) -> Iterator[tuple[int, float, float]]:
        """Yield (pitch, start beat, length) for every sounding key of *part*'s staves.

        Chord members start with their note and keep their own length.
        """
        owned = set(part.staves)
        for measure, (start, _) in zip(measures, offsets):
            for staff in measure.staves:
                if staff.id not in owned:
                    continue
                for voice in staff.voices:
                    for note in voice.notes:
                        if note.rest:
                            continue
                        onset = float(start) + float(note.time)
                        for sounding in (note, *note.chord):
                            beats = float(note_length(sounding.duration, sounding.dots or 0))
                            for key in sounding.keys:
                                yield vexflow_to_midi(key), onset, beats

    def _write_part(
        self,
        midi: MIDIFile,
        track: int,
        channel: int,
        part: Part,
        measures: tuple[MultiVoiceMeasure, ...],
        offsets: list[tuple[Fraction, TimeSignature]],
    ) -> int:
        midi.addTrackName(track, 0, part.name or part.id)
        if part.midi_program is not None:
            midi.addProgramChange(track, channel, 0, part.midi_program)
        velocity = part.volume if part.volume is not None else self.velocity

        written = 0
        for pitch, time, beats in self._part_events(part, measures, offsets):
            midi.addNote(
                track=track,
                channel=channel,
                pitch=pitch,
                time=time,
                duration=beats,
                volume=velocity,
            )
            written += 1
        return written

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def export(self, score: Score, output_path: str) -> None:
        """
        Render *score* to a Standard MIDI File.

        Args:
            score:       A score the validator accepts.
            output_path: Destination file path (e.g. "output.mid").

        Raises:
            ParseError: If a note key is not a valid pitch.
            OSError: If the output file cannot be opened for writing.
        """
        offsets = self._measure_offsets(score)
        midi = MIDIFile(
            numTracks=len(score.parts),
            removeDuplicates=False,
            deinterleave=False,
        )
        self._write_conductor(midi, score, offsets)

        for index, part in enumerate(score.parts):
            written = self._write_part(
                midi,
                FIRST_PART_TRACK + index,
                _part_channel(index),
                part,
                score.measures,
                offsets,
            )
            logger.debug("Part %s: %d notes", part.id, written)

        with open(output_path, "wb") as f:
            midi.writeFile(f)
        logger.debug("Wrote MIDI file %s (%d parts)", output_path, len(score.parts))
