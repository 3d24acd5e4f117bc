"""miniFQS CLI entry point."""

import json
import sys
from pathlib import Path
from typing import NoReturn, TextIO

import click

from minifqs import __version__
from minifqs.errors import FqsSyntaxError, MiniFqsError
from minifqs.exporter import ScoreExporter
from minifqs.logger_config import set_verbose
from minifqs.midi_exporter import MidiExporter
from minifqs.pipeline import STAGE_NAMES, PipelineResult, run, stage_descriptions
from minifqs.rows import rows_to_tsv
from minifqs.score_models import node_to_dict
from minifqs.stage import PipelineOptions

EXIT_INPUT_ERROR = 1
EXIT_PIPELINE_ERROR = 3


def _fail(message: str, code: int) -> NoReturn:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(code)


def _read_source(path: str) -> str:
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as exc:
        _fail(f"Could not read '{path}' — {exc}", EXIT_INPUT_ERROR)


def _stage_output(result: PipelineResult) -> str:
    """Text printed for a run: ABC, the AST as JSON, or a TSV row dump."""
    if result.stopped_at == "parse":
        return json.dumps(node_to_dict(result.score), indent=2)
    if result.stopped_at != STAGE_NAMES[-1]:
        return rows_to_tsv(result.rows)
    return result.abc + "\n"


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="minifqs")
def main() -> None:
    """miniFQS — convert syllable-aligned FQS scores to ABC notation."""


# ── convert subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Write the result to PATH instead of stdout.",
)
@click.option(
    "--stop",
    "stop_at",
    type=click.Choice(STAGE_NAMES),
    default=None,
    help="Stop after this stage and print its rows as TSV (the AST as JSON for 'parse').",
)
@click.option("--title", default=None, metavar="TEXT", help="Override the score title.")
@click.option(
    "--optimize/--no-optimize",
    default=True,
    show_default=True,
    help="Fold tied notes into dotted and longer notes.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log stage progress to stderr.")
def convert(
    source: TextIO,
    output: str | None,
    stop_at: str | None,
    title: str | None,
    optimize: bool,
    verbose: bool,
) -> None:
    """
    Convert an FQS score to ABC notation.

    SOURCE is an FQS file, or '-' (the default) for stdin.

    \b
    Examples:
      minifqs convert song.fqs
      minifqs convert song.fqs -o song.abc --title "My Song"
      minifqs convert song.fqs --stop meter
    """
    set_verbose(verbose)
    text = source.read()
    try:
        result = run(text, PipelineOptions(title=title, stop_at=stop_at, optimize=optimize))
    except FqsSyntaxError as exc:
        _fail(f"Could not read score — {exc}", EXIT_INPUT_ERROR)
    except MiniFqsError as exc:
        _fail(f"Pipeline failed — {exc}", EXIT_PIPELINE_ERROR)

    content = _stage_output(result)
    if output is None:
        click.echo(content, nl=False)
        return
    try:
        with open(output, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as exc:
        _fail(f"Could not write '{output}' — {exc}", EXIT_INPUT_ERROR)
    click.echo(f"Wrote '{output}'.", err=True)


# ── stages subcommand ──────────────────────────────────────────────────────────

@main.command()
def stages() -> None:
    """List the pipeline stages in order."""
    for name, description in stage_descriptions():
        click.echo(f"{name:<10} {description}")


# ── sheet / midi subcommands ───────────────────────────────────────────────────

def _output_path(fqs_file: str, output: str | None, exporter: ScoreExporter) -> str:
    return output if output is not None else str(Path(fqs_file).with_suffix(exporter.default_extension))


def _convert_file(fqs_file: str, exporter: ScoreExporter) -> PipelineResult:
    text = _read_source(fqs_file)
    try:
        return exporter.convert(text)
    except FqsSyntaxError as exc:
        _fail(f"Could not read score — {exc}", EXIT_INPUT_ERROR)
    except MiniFqsError as exc:
        _fail(f"Pipeline failed — {exc}", EXIT_PIPELINE_ERROR)


def _write(exporter: ScoreExporter, result: PipelineResult, output: str) -> None:
    try:
        exporter.write(result, output)
    except OSError as exc:
        _fail(f"Could not write output file — {exc}", EXIT_INPUT_ERROR)
    except ValueError as exc:
        _fail(f"Could not render score — {exc}", EXIT_INPUT_ERROR)


@main.command()
@click.argument("fqs_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination HTML file. Defaults to the FQS file with an .html suffix.",
)
@click.option("--title", default=None, metavar="TEXT", help="Title shown in the page header.")
def sheet(fqs_file: str, output: str | None, title: str | None) -> None:
    """
    Render an FQS score as sheet music in a self-contained HTML file.

    \b
    Examples:
      minifqs sheet song.fqs
      minifqs sheet song.fqs -o score.html --title "My Song"
    """
    click.echo(f"minifqs v{__version__}")
    click.echo(f"  Score  : {fqs_file}")
    exporter = ScoreExporter(title=title, output_format="html")
    resolved_output = _output_path(fqs_file, output, exporter)

    # ── Step 1: Convert ─────────────────────────────────────────────────
    click.echo("[1/2] Converting to ABC...")
    result = _convert_file(fqs_file, exporter)

    # ── Step 2: Render ──────────────────────────────────────────────────
    click.echo("[2/2] Rendering notation to SVG with verovio...")
    _write(exporter, result, resolved_output)
    click.echo()
    click.echo(f"Done!  Open '{resolved_output}' in any browser. Use Print → Save as PDF.")


@main.command()
@click.argument("fqs_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination MIDI file. Defaults to the FQS file with a .mid suffix.",
)
@click.option(
    "--tempo",
    type=click.IntRange(20, 300),
    default=MidiExporter.DEFAULT_TEMPO,
    show_default=True,
    help="Playback tempo in quarter notes per minute.",
)
def midi(fqs_file: str, output: str | None, tempo: int) -> None:
    """
    Write an FQS score's melody as a Standard MIDI File.

    \b
    Examples:
      minifqs midi song.fqs
      minifqs midi song.fqs -o song.mid --tempo 72
    """
    click.echo(f"minifqs v{__version__}")
    click.echo(f"  Score  : {fqs_file}  |  Tempo: {tempo} BPM")
    exporter = ScoreExporter(output_format="midi", tempo=tempo)
    resolved_output = _output_path(fqs_file, output, exporter)
    _write(exporter, _convert_file(fqs_file, exporter), resolved_output)
    click.echo(f"Done!  Open '{resolved_output}' in GarageBand, MuseScore, or any MIDI player.")
