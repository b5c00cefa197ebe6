"""Polyvoice CLI entry point."""

import logging
import sys
from typing import Any, Callable

import click

from polyvoice import __version__
from polyvoice.converters import (
    extract_voice_from_score,
    merge_scores,
    score_to_sheet_music,
    sheet_music_to_score,
)
from polyvoice.enums import ChordType, KeySignature, ScaleType, TimeSignature
from polyvoice.serialization import (
    dump_json,
    load_json,
    score_from_dict,
    sheet_music_from_dict,
)
from polyvoice.theory import (
    ParseError,
    get_chord_notes,
    get_key_signature_alterations,
    get_scale_notes,
    transpose_note,
)
from polyvoice.validation import ValidationResult, validate_score, validate_score_timing


def _fail(message: str) -> None:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _load(path: str, build: Callable[[Any], Any]) -> Any:
    """Read a JSON file and build a model from it, exiting on any failure."""
    try:
        return build(load_json(path))
    except OSError as exc:
        _fail(f"Could not read '{path}' — {exc}")
    except ValueError as exc:
        _fail(f"Could not load '{path}' — {exc}")


def _save(model: Any, output: str) -> None:
    try:
        dump_json(model, output)
    except OSError as exc:
        _fail(f"Could not write '{output}' — {exc}")
    click.echo(f"Done!  Wrote '{output}'.")


def _echo_result(result: ValidationResult) -> None:
    for error in result.errors:
        click.echo(f"  ERROR   : {error}")
    for warning in result.warnings:
        click.echo(f"  WARNING : {warning}")


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="polyvoice")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def main(verbose: bool) -> None:
    """Polyvoice — multi-voice notation toolkit for practice scores."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ── validate subcommand ────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--timing/--no-timing",
    default=False,
    show_default=True,
    help="Also check that every voice fills its measure.",
)
@click.option(
    "--time-signature",
    type=click.Choice([ts.value for ts in TimeSignature]),
    default=TimeSignature.FOUR_FOUR.value,
    show_default=True,
    help="Meter assumed until a measure sets its own (used with --timing).",
)
def validate(score_file: str, timing: bool, time_signature: str) -> None:
    """
    Check a score JSON file for structural (and optionally timing) problems.

    Exits with status 1 when the score is invalid; warnings alone do not fail.
    """
    score = _load(score_file, score_from_dict)

    result = validate_score(score)
    if timing:
        result = result.merge(validate_score_timing(score, TimeSignature(time_signature)))

    click.echo(f"polyvoice v{__version__}")
    click.echo(f"  Score  : {score.title or '(untitled)'}")
    click.echo(f"  Parts  : {len(score.parts)}  |  Measures: {len(score.measures)}")
    click.echo()
    _echo_result(result)

    if not result.valid:
        click.echo(f"Invalid: {len(result.errors)} error(s), {len(result.warnings)} warning(s).")
        sys.exit(1)
    click.echo(f"Valid ({len(result.warnings)} warning(s)).")


# ── conversion subcommands ─────────────────────────────────────────────────────

@main.command("to-score")
@click.argument("sheet_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--output", "-o", required=True, metavar="PATH", help="Destination score JSON.")
def to_score(sheet_file: str, output: str) -> None:
    """Convert legacy single-voice sheet music JSON into a multi-voice score."""
    sheet = _load(sheet_file, sheet_music_from_dict)
    score = sheet_music_to_score(sheet)
    click.echo(f"Converted '{sheet.title}': {len(score.measures)} measure(s), "
               f"staves {', '.join(score.parts[0].staves)}.")
    _save(score, output)


@main.command("to-sheet")
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--output", "-o", required=True, metavar="PATH", help="Destination sheet JSON.")
def to_sheet(score_file: str, output: str) -> None:
    """Flatten a multi-voice score into legacy sheet music JSON (lossy)."""
    score = _load(score_file, score_from_dict)
    sheet = score_to_sheet_music(score)
    click.echo(f"Flattened '{score.title}' for {sheet.instrument.value}.")
    _save(sheet, output)


@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument("voice_id")
@click.option("--output", "-o", required=True, metavar="PATH", help="Destination score JSON.")
def extract(score_file: str, voice_id: str, output: str) -> None:
    """
    Keep a single voice of a score, e.g. for hands-separate practice.

    \b
    Examples:
      polyvoice extract sonata.json rightHand -o right_hand.json
      polyvoice extract chorale.json soprano -o soprano.json
    """
    score = _load(score_file, score_from_dict)
    if voice_id not in score.voice_ids():
        click.echo(f"  WARNING: voice '{voice_id}' not found; "
                   f"available: {', '.join(score.voice_ids()) or '(none)'}", err=True)
    _save(extract_voice_from_score(score, voice_id), output)


@main.command()
@click.argument(
    "score_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, readable=True),
)
@click.option("--output", "-o", required=True, metavar="PATH", help="Destination score JSON.")
@click.option("--title", default=None, metavar="TEXT", help="Title of the merged score.")
def merge(score_files: tuple[str, ...], output: str, title: str | None) -> None:
    """Merge measure-aligned scores into one ensemble score."""
    scores = [_load(path, score_from_dict) for path in score_files]
    merged = merge_scores(scores, title=title)
    click.echo(f"Merged {len(scores)} score(s) into {len(merged.parts)} part(s).")
    _save(merged, output)


@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--output", "-o", required=True, metavar="PATH", help="Destination MIDI file.")
@click.option(
    "--tempo",
    type=click.IntRange(20, 300),
    default=80,
    show_default=True,
    help="Playback tempo in BPM until a measure sets its own.",
)
def midi(score_file: str, output: str, tempo: int) -> None:
    """Export a score to a MIDI file with one track per part."""
    from polyvoice.midi_exporter import MidiExporter

    score = _load(score_file, score_from_dict)
    result = validate_score(score)
    if not result.valid:
        _echo_result(result)
        _fail("Score is invalid; fix the errors above before exporting.")

    exporter = MidiExporter(tempo=tempo)
    try:
        exporter.export(score, output)
    except ParseError as exc:
        _fail(f"Could not render score — {exc}")
    except OSError as exc:
        _fail(f"Could not write MIDI file — {exc}")
    click.echo(f"Done!  Open '{output}' in GarageBand, MuseScore, or any MIDI player.")


# ── theory subcommands ─────────────────────────────────────────────────────────

@main.command()
@click.argument("root")
@click.argument("scale_type", type=click.Choice([s.value for s in ScaleType]))
def scale(root: str, scale_type: str) -> None:
    """
    Print the notes of a scale. ROOT is a pitch class (C, F#) or a pitch (C4).

    \b
    Examples:
      polyvoice scale C major
      polyvoice scale A4 harmonic_minor
    """
    try:
        click.echo(" ".join(get_scale_notes(root, ScaleType(scale_type))))
    except ValueError as exc:
        _fail(str(exc))


@main.command()
@click.argument("root")
@click.argument("chord_type", type=click.Choice([c.value for c in ChordType]))
def chord(root: str, chord_type: str) -> None:
    """Print the tones of a root-position chord."""
    try:
        click.echo(" ".join(get_chord_notes(root, ChordType(chord_type))))
    except ValueError as exc:
        _fail(str(exc))


@main.command()
@click.argument("key", type=click.Choice([k.value for k in KeySignature], case_sensitive=False))
def key(key: str) -> None:
    """Print the sharps or flats of a key signature (e.g. G_MAJOR)."""
    alterations = get_key_signature_alterations(KeySignature(key.upper()))
    accidentals = alterations.sharps or alterations.flats
    click.echo(" ".join(accidentals) if accidentals else "(no sharps or flats)")


@main.command()
@click.argument("pitch")
@click.argument("semitones", type=int)
def transpose(pitch: str, semitones: int) -> None:
    """Transpose PITCH (e.g. C4) by SEMITONES; output uses sharp spelling."""
    try:
        click.echo(transpose_note(pitch, semitones))
    except ValueError as exc:
        _fail(str(exc))
