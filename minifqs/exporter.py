"""ScoreExporter: converts FQS text to ABC, HTML or MIDI files."""

from __future__ import annotations

from typing import Final

from minifqs.logger_config import get_logger
from minifqs.midi_exporter import MidiExporter
from minifqs.pipeline import PipelineResult, run
from minifqs.sheet_renderers import AbcTextRenderer, SheetRenderer, VerovioHtmlRenderer
from minifqs.stage import PipelineOptions

logger = get_logger("exporter")

SUPPORTED_FORMATS: Final[set[str]] = {"abc", "html", "midi"}

DEFAULT_EXTENSIONS: Final[dict[str, str]] = {"abc": ".abc", "html": ".html", "midi": ".mid"}


class ScoreExporter:
    """
    Convert an FQS score into an output file.

    Supported formats:
    - ``abc``: the ABC text.
    - ``html``: ABC -> Verovio -> inline SVG in a self-contained HTML file.
    - ``midi``: Standard MIDI File of the melody.
    """

    def __init__(
        self,
        title: str | None = None,
        output_format: str = "abc",
        tempo: int = MidiExporter.DEFAULT_TEMPO,
        optimize: bool = True,
    ) -> None:
        normalized = output_format.strip().lower()
        if normalized not in SUPPORTED_FORMATS:
            supported = ", ".join(sorted(SUPPORTED_FORMATS))
            raise ValueError(f"Unsupported output format '{output_format}'. Use one of: {supported}.")
        self.title = title
        self.output_format = normalized
        self.tempo = tempo
        self.optimize = optimize

    @property
    def default_extension(self) -> str:
        return DEFAULT_EXTENSIONS[self.output_format]

    def _build_renderer(self) -> SheetRenderer:
        if self.output_format == "html":
            return VerovioHtmlRenderer()
        return AbcTextRenderer()

    def convert(self, fqs_text: str) -> PipelineResult:
        return run(fqs_text, PipelineOptions(title=self.title, optimize=self.optimize))

    def export(self, fqs_text: str, output_path: str) -> PipelineResult:
        """
        Run the pipeline and write the output file.

        Raises:
            FqsSyntaxError: If the FQS text does not parse.
            ValueError:     If the score cannot be rendered.
            OSError:        If the output file cannot be written.
        """
        result = self.convert(fqs_text)
        self.write(result, output_path)
        return result

    def write(self, result: PipelineResult, output_path: str) -> None:
        """Write an already converted score in this exporter's format."""
        title = self.title if self.title is not None else result.score.title

        if self.output_format == "midi":
            MidiExporter(tempo=self.tempo).export(result.rows, output_path, track_name=title)
        else:
            content = self._build_renderer().render(title=title, abc_text=result.abc)
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(content)
        logger.info("wrote %s (%s)", output_path, self.output_format)
