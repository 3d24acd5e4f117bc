"""Unit tests for renderers used by ScoreExporter."""

import pytest

from minifqs.sheet_renderers import AbcTextRenderer, VerovioHtmlRenderer

SAMPLE_ABC = "X:1\nT:Demo\nK:C major\nM:4/4\nL:1/4\nC D E F|"


def test_abc_renderer_terminates_with_newline() -> None:
    renderer = AbcTextRenderer()
    assert renderer.default_extension == ".abc"
    assert renderer.render(title="Demo", abc_text=SAMPLE_ABC) == SAMPLE_ABC + "\n"
    assert renderer.render(title="Demo", abc_text=SAMPLE_ABC + "\n") == SAMPLE_ABC + "\n"


def test_html_renderer_has_heading_and_pages() -> None:
    html = VerovioHtmlRenderer().build_html("My Song", ["<svg>1</svg>", "<svg>2</svg>"])
    assert html.startswith("<!DOCTYPE html>")
    assert "<h1>My Song</h1>" in html
    assert "<title>My Song</title>" in html
    assert html.count('<div class="page">') == 2


def test_html_renderer_omits_heading_without_title() -> None:
    html = VerovioHtmlRenderer().build_html("", ["<svg></svg>"])
    assert "<h1>" not in html


def test_html_renderer_escapes_title() -> None:
    html = VerovioHtmlRenderer().build_html("Rock & <Roll>", [])
    assert "<h1>Rock &amp; &lt;Roll&gt;</h1>" in html


def test_html_renderer_embeds_abc_source() -> None:
    html = VerovioHtmlRenderer().build_html("Demo", ["<svg></svg>"], "K:C major\nC<D")
    assert '<details class="source">' in html
    assert "<pre>K:C major\nC&lt;D</pre>" in html


def test_html_renderer_without_source_has_no_details() -> None:
    assert "<details" not in VerovioHtmlRenderer().build_html("Demo", ["<svg></svg>"])


def test_html_renderer_rejects_empty_abc() -> None:
    renderer = VerovioHtmlRenderer()
    assert renderer.default_extension == ".html"
    with pytest.raises(ValueError):
        renderer.render(title="Demo", abc_text="   ")


# Needs the verovio wheel; run with -m integration.
@pytest.mark.integration
def test_verovio_renders_svg_pages() -> None:
    pytest.importorskip("verovio")
    html = VerovioHtmlRenderer().render(title="Demo", abc_text=SAMPLE_ABC)
    assert "<svg" in html
    assert '<div class="page">' in html
