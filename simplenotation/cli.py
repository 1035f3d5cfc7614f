"""simplenotation CLI entry point."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from simplenotation import __version__
from simplenotation.clock import AsyncioClock, VirtualClock
from simplenotation.config import NotationConfig
from simplenotation.errors import SimpleNotationError
from simplenotation.midi_exporter import MidiExporter
from simplenotation.models import NoteDescriptor, ParsedScore
from simplenotation.player import PlaybackScheduler, play_offline
from simplenotation.runtime import DataType, load

FORMAT_CHOICES = [t.value for t in DataType]


def _resolve_format(path: Path, data_format: str | None) -> DataType:
    """Explicit --format wins; otherwise ``.abc`` files are ABC, everything else template."""
    if data_format is not None:
        return DataType(data_format.lower())
    return DataType.ABC if path.suffix.lower() == ".abc" else DataType.TEMPLATE


def _template_payload(text: str, beat: str | None, tempo: str | None) -> dict[str, Any]:
    """Read a template file: a JSON document, or a bare score body."""
    stripped = text.lstrip()
    if stripped.startswith("{"):
        payload = json.loads(text)
        if not isinstance(payload, dict):
            raise ValueError("Template JSON must be an object.")
    else:
        payload = {"info": {}, "score": text.strip("\n")}

    info = dict(payload.get("info") or {})
    if beat is not None:
        info["beat"] = beat
    if tempo is not None:
        info["tempo"] = tempo
    payload["info"] = info
    return payload


def _load_file(file: str, data_format: str | None, beat: str | None, tempo: str | None) -> ParsedScore:
    path = Path(file)
    kind = _resolve_format(path, data_format)
    text = path.read_text(encoding="utf-8")
    if kind is DataType.ABC:
        return load(text, DataType.ABC)
    return load(_template_payload(text, beat, tempo), DataType.TEMPLATE)


def _fail(message: str) -> None:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _input_options(func):
    """Options shared by every command that reads a score file."""
    func = click.option(
        "--tempo",
        default=None,
        metavar="BPM",
        help="Template files only: tempo written into the score info.",
    )(func)
    func = click.option(
        "--beat",
        default=None,
        metavar="BEATS",
        help="Template files only: beats per measure (e.g. 4 or 3/4).",
    )(func)
    func = click.option(
        "--format",
        "data_format",
        type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
        default=None,
        help="Input dialect. Defaults to abc for .abc files, template otherwise.",
    )(func)
    func = click.argument("file", type=click.Path(exists=True, dir_okay=False, readable=True))(func)
    return func


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="simplenotation")
@click.option("--verbose", "-v", is_flag=True, help="Log parser and scheduler decisions.")
def main(verbose: bool) -> None:
    """simplenotation: jianpu / ABC score parser, player and MIDI renderer."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ── parse subcommand ───────────────────────────────────────────────────────────

@main.command()
@_input_options
@click.option(
    "--indent",
    type=click.IntRange(0, 8),
    default=2,
    show_default=True,
    help="JSON indentation.",
)
def parse(file: str, data_format: str | None, beat: str | None, tempo: str | None, indent: int) -> None:
    """
    Parse a score and print the model as JSON.

    \b
    Examples:
      simplenotation parse song.abc
      simplenotation parse melody.txt --beat 3/4 --indent 0
    """
    try:
        parsed = _load_file(file, data_format, beat, tempo)
    except (SimpleNotationError, ValueError, OSError) as exc:
        _fail(f"Could not parse '{file}' — {exc}")
        return

    config = NotationConfig()
    config.apply_parse_hints(parsed)
    document = parsed.to_dict()
    document["layout"] = config.to_dict()
    click.echo(json.dumps(document, indent=indent or None, ensure_ascii=False))


# ── play subcommand ────────────────────────────────────────────────────────────

def _format_note(note: NoteDescriptor) -> str:
    marks = "'" * max(note.octave_count, 0) + "," * max(-note.octave_count, 0)
    accidental = "#" * max(note.up_down_count, 0) + "b" * max(-note.up_down_count, 0)
    return f"{accidental}{note.note}{marks}"


def _attach_printer(scheduler: PlaybackScheduler) -> None:
    def on_pointer(note: NoteDescriptor, current_time: float) -> None:
        click.echo(f"  {current_time:9.1f} ms  pointer  {note.note_data or note.note}")

    def on_note(note: NoteDescriptor, duration: float) -> None:
        click.echo(f"  {'':12}  note     {_format_note(note):<6} {duration:7.1f} ms")

    def on_chord(note: NoteDescriptor, duration: float) -> None:
        click.echo(f"  {'':12}  chord    {' '.join(note.chord):<6} {duration:7.1f} ms")

    scheduler.on_pointer_move(on_pointer)
    scheduler.on_note_play(on_note)
    scheduler.on_chord_play(on_chord)


async def _play_realtime(parsed: ParsedScore) -> None:
    finished = asyncio.Event()
    scheduler = PlaybackScheduler(parsed, clock=AsyncioClock())
    _attach_printer(scheduler)
    scheduler.on_end(finished.set)
    scheduler.play()
    await finished.wait()


@main.command()
@_input_options
@click.option(
    "--instant",
    is_flag=True,
    help="Run on a virtual clock instead of waiting in real time.",
)
def play(file: str, data_format: str | None, beat: str | None, tempo: str | None, instant: bool) -> None:
    """
    Play a score and print pointer, note and chord events as they fire.

    \b
    Examples:
      simplenotation play song.abc
      simplenotation play melody.txt --tempo 120 --instant
    """
    try:
        parsed = _load_file(file, data_format, beat, tempo)
    except (SimpleNotationError, ValueError, OSError) as exc:
        _fail(f"Could not parse '{file}' — {exc}")
        return

    notes = parsed.flatten()
    click.echo(f"simplenotation v{__version__}")
    click.echo(f"  Title  : {parsed.info.title or Path(file).stem}")
    click.echo(f"  Notes  : {len(notes)}")
    click.echo()

    if instant:
        clock = VirtualClock()
        scheduler = PlaybackScheduler(parsed, clock=clock)
        _attach_printer(scheduler)
        try:
            play_offline(scheduler, clock)
        except SimpleNotationError as exc:
            _fail(str(exc))
            return
    else:
        try:
            asyncio.run(_play_realtime(parsed))
        except KeyboardInterrupt:
            click.echo("Stopped.", err=True)
            sys.exit(1)

    click.echo()
    click.echo("Done!")


# ── midi subcommand ────────────────────────────────────────────────────────────

@main.command()
@_input_options
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination MIDI file path. Defaults to the input path with a .mid suffix.",
)
@click.option(
    "--velocity",
    type=click.IntRange(1, 127),
    default=MidiExporter.DEFAULT_VELOCITY,
    show_default=True,
    help="MIDI velocity of melody notes.",
)
def midi(
    file: str,
    data_format: str | None,
    beat: str | None,
    tempo: str | None,
    output: str | None,
    velocity: int,
) -> None:
    """
    Render a score as a MIDI file (melody and chord tracks).

    \b
    Examples:
      simplenotation midi song.abc
      simplenotation midi melody.txt --tempo 90 -o melody.mid
    """
    resolved_output = output if output is not None else str(Path(file).with_suffix(".mid"))

    click.echo(f"simplenotation v{__version__}")
    click.echo(f"  Input  : {file}")
    click.echo(f"  Output : {resolved_output}")
    click.echo()

    click.echo("[1/2] Parsing score...")
    try:
        parsed = _load_file(file, data_format, beat, tempo)
    except (SimpleNotationError, ValueError, OSError) as exc:
        _fail(f"Could not parse '{file}' — {exc}")
        return

    click.echo(f"[2/2] Writing MIDI file → '{resolved_output}'...")
    exporter = MidiExporter(velocity=velocity)
    try:
        exporter.export(parsed, resolved_output)
    except OSError as exc:
        _fail(f"Could not write MIDI file — {exc}")
        return
    except SimpleNotationError as exc:
        _fail(f"Could not render score — {exc}")
        return

    click.echo()
    click.echo(f"Done!  Open '{resolved_output}' in MuseScore or any MIDI player.")
