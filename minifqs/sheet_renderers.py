"""Renderer implementations for the text output formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, cast


def _escape_html(text: str) -> str:
    """Escape the three characters that are unsafe in HTML text content."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class SheetRenderer(ABC):
    """Abstract sheet renderer: ABC text in, file content out."""

    @property
    @abstractmethod
    def default_extension(self) -> str:
        """Default filename extension for this renderer."""

    @abstractmethod
    def render(self, *, title: str, abc_text: str) -> str:
        """Render output into a file content string."""


class AbcTextRenderer(SheetRenderer):
    """Write the ABC text as-is, newline terminated."""

    @property
    def default_extension(self) -> str:
        return ".abc"

    def render(self, *, title: str, abc_text: str) -> str:
        return abc_text if abc_text.endswith("\n") else abc_text + "\n"


class VerovioHtmlRenderer(SheetRenderer):
    """Render ABC text into a self-contained HTML document with inline SVG."""

    # Verovio A4 layout constants (verovio abstract units; ~1 unit ≈ 0.1 mm)
    _PAGE_HEIGHT: int = 2970
    _PAGE_WIDTH: int = 2100
    _SCALE: int = 50  # single staff, so larger than a grand-staff layout
    _PAGE_MARGIN: int = 100

    @property
    def default_extension(self) -> str:
        return ".html"

    def render(self, *, title: str, abc_text: str) -> str:
        if not abc_text.strip():
            raise ValueError("abc_text is empty; nothing to render.")
        return self.build_html(title, self.render_svgs(abc_text), abc_text)

    def render_svgs(self, abc_text: str) -> list[str]:
        """
        Render an ABC tune to a list of SVG strings via verovio.

        Raises:
            ValueError: If verovio cannot load the ABC data.
        """
        import verovio

        tk = verovio.toolkit()
        tk.setOptions(
            {
                "inputFrom": "abc",
                "pageHeight": self._PAGE_HEIGHT,
                "pageWidth": self._PAGE_WIDTH,
                "scale": self._SCALE,
                "pageMarginTop": self._PAGE_MARGIN,
                "pageMarginBottom": self._PAGE_MARGIN,
                "pageMarginLeft": self._PAGE_MARGIN,
                "pageMarginRight": self._PAGE_MARGIN,
                "adjustPageHeight": True,
            }
        )

        loaded: bool = tk.loadData(abc_text)
        if not loaded:
            raise ValueError("verovio could not load the ABC data.")

        page_count: int = tk.getPageCount()
        return [self._render_page_svg(tk, page_no) for page_no in range(1, page_count + 1)]

    def _render_page_svg(self, toolkit: Any, page_no: int) -> str:
        """
        Render one page to SVG.

        Older verovio bindings reject keyword arguments, so fall back to
        positional calls.
        """
        try:
            return cast(str, toolkit.renderToSVG(pageNo=page_no, xmlDeclaration=False))
        except TypeError:
            try:
                return cast(str, toolkit.renderToSVG(page_no, False))
            except TypeError:
                return cast(str, toolkit.renderToSVG(page_no))

    def build_html(self, title: str, svgs: list[str], abc_text: str = "") -> str:
        """
        Wrap SVG pages in an HTML document with screen and print styles.

        When ``abc_text`` is given it is appended in a collapsed ``<details>``
        block so the source travels with the page.
        """
        title_safe = _escape_html(title)
        heading = f"  <h1>{title_safe}</h1>\n" if title else ""
        pages = "\n".join(f'  <div class="page">{svg}</div>' for svg in svgs)
        source = (
            f'\n  <details class="source"><summary>ABC</summary><pre>{_escape_html(abc_text)}</pre></details>'
            if abc_text
            else ""
        )

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{title_safe}</title>
  <style>
    body {{
      font-family: Georgia, serif;
      background: #f0f0f0;
      margin: 0;
      padding: 2rem;
    }}
    h1 {{
      text-align: center;
      font-size: 1.6rem;
      color: #222;
    }}
    .page {{
      background: #fff;
      box-shadow: 0 2px 8px rgba(0, 0, 0, 0.15);
      margin: 0 auto 2rem;
      max-width: 860px;
      padding: 1rem;
    }}
    .page svg {{
      display: block;
      width: 100%;
      height: auto;
    }}
    .source {{
      max-width: 860px;
      margin: 0 auto;
    }}
    @media print {{
      body {{ background: #fff; padding: 0; }}
      .page {{ box-shadow: none; page-break-after: always; max-width: 100%; }}
      .page:last-child {{ page-break-after: avoid; }}
      .source {{ display: none; }}
    }}
  </style>
</head>
<body>
{heading}{pages}{source}
</body>
</html>"""
