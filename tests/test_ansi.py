import io

import pytest

from pentlog.ansi import (
    CAP_BUFFER_LIMIT,
    Cell,
    clean_stream,
    clean_tui_markers,
    iter_clean_lines,
    parse_ansi,
    render_ansi,
    render_ansi_html,
    render_plain,
    strip_ansi,
    style_class,
)


def test_clean_stream_matches_reference_cases():
    source = (
        "Normal Text\x1b[31mRed Text\x1b[0m\rOverwritten\n"
        "Full Line\rPartial\n"
        "Typo\x08\x08Correction\n"
        "Command\x1b[5Dmn\x1b[K\n"
        "Color\x1b[32mGap\x1b[2D\x1b[31mO\n"
    )
    expected = (
        "Overwritten\x1b[31mRed Text\x1b[0m\n"
        "Partialne\n"
        "TyCorrection\n"
        "Comn\n"
        "Color\x1b[32mG\x1b[31mO\x1b[32mp\x1b[0m\n"
    )
    assert clean_stream(io.StringIO(source, newline="")) == expected


def test_iter_clean_lines_handles_binary_and_crlf():
    lines = list(iter_clean_lines(io.BytesIO(b"one\r\ntwo\n")))
    assert lines == ["one\n", "two\n"]


def test_parse_ansi_attaches_style_to_cells():
    assert parse_ansi("\x1b[31mab") == [Cell("a", "\x1b[31m"), Cell("b", "\x1b[31m")]


def test_render_ansi_closes_open_style():
    assert render_ansi("\x1b[32mx") == "\x1b[32mx\x1b[0m"


def test_render_plain_strips_trailing_spaces():
    assert render_plain("abc   ") == "abc"


def test_cursor_right_pads_with_spaces():
    assert render_plain("ab\x1b[5Cc") == "ab     c"


def test_erase_to_cursor_blanks_start():
    assert render_plain("abcd\x1b[2D\x1b[1K") == "  cd"


def test_erase_whole_line():
    assert render_plain("abcd\x1b[2Kxy") == "xy"


def test_cursor_absolute_column():
    assert render_plain("abc\x1b[1Gx") == "xbc"


def test_osc_and_alternate_sequences_are_skipped():
    assert render_plain("\x1b]0;terminal title\x07text") == "text"
    assert render_plain("\x1b=ab\x1b(Bc") == "abc"


def test_lone_escape_is_kept_as_character():
    assert render_plain("\x1b") == "\x1b"


def test_cursor_is_capped():
    cells = parse_ansi("\x1b[20000Cx")
    assert len(cells) == CAP_BUFFER_LIMIT + 1
    assert cells[-1].char == "x"


def test_render_ansi_html_uses_classes():
    html = render_ansi_html("a\x1b[31;1mb\x1b[0mc")
    assert html == 'a<span class="ansi-red ansi-bold">b</span>c'


def test_render_ansi_html_escapes_text():
    assert render_ansi_html("<a & 'b'>") == "&lt;a &amp; &#39;b&#39;&gt;"


@pytest.mark.parametrize(
    "sequence, expected",
    [
        ("", ""),
        ("\x1b[0m", ""),
        ("\x1b[92m", "ansi-bright-green"),
        ("\x1b[1;34m", "ansi-bold ansi-blue"),
        ("\x1b[4m", ""),
    ],
)
def test_style_class(sequence, expected):
    assert style_class(sequence) == expected


def test_clean_tui_markers_removes_block():
    data = b"a\x1b]99;PENTLOG_TUI_START\x07junk\nmore\x1b]99;PENTLOG_TUI_END\x07b"
    assert clean_tui_markers(data) == b"ab"


def test_clean_tui_markers_accepts_text():
    data = "x\x1b]99;PENTLOG_TUI_START\x07y\x1b]99;PENTLOG_TUI_END\x07z"
    assert clean_tui_markers(data) == "xz"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("\x1b[32mgreen text\x1b[0m", "green text"),
        ("plain text", "plain text"),
        ("abc\x1b[2Kxy", "xy"),
        ("ab\rc", "cb"),
        ("a\x1b[5Gb", "a   b"),
        ("abc\x1b[1D\x1b[K", "ab"),
        ("one\ntwo", "one\ntwo"),
    ],
)
def test_strip_ansi(text, expected):
    assert strip_ansi(text) == expected