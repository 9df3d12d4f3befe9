import os
import time
from unittest.mock import patch

import pytest

from pentlog.terminal import (
    Spinner,
    center_block,
    format_bytes,
    open_file,
    print_box,
    print_centered_block,
    shorten_path,
    terminal_width,
    truncate_string,
)


def _size(columns):
    return os.terminal_size((columns, 24))


def test_terminal_width_reads_size():
    with patch("os.get_terminal_size", return_value=_size(123)):
        assert terminal_width() == 123


def test_terminal_width_falls_back_to_80():
    with patch("os.get_terminal_size", side_effect=OSError):
        assert terminal_width() == 80
    with patch("os.get_terminal_size", return_value=_size(0)):
        assert terminal_width() == 80


def test_center_block_uses_common_padding():
    lines = ["ab", "abcd", ""]
    with patch("os.get_terminal_size", return_value=_size(41)):
        centered = center_block(lines)
    pads = {len(out) - len(line) for out, line in zip(centered, lines)}
    assert len(pads) == 1
    pad = pads.pop()
    assert [out[pad:] for out in centered] == lines
    assert 41 - 1 <= 2 * pad + 4 <= 41


def test_center_block_never_negative():
    with patch("os.get_terminal_size", return_value=_size(3)):
        assert center_block(["longer than width"]) == ["longer than width"]


def test_print_centered_block(capsys):
    with patch("os.get_terminal_size", return_value=_size(20)):
        print_centered_block(["x", "yy"])
    out = capsys.readouterr().out.splitlines()
    assert [line.strip() for line in out] == ["x", "yy"]


def test_shorten_path(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    inside = str(tmp_path / "notes")
    assert shorten_path(inside) == "~" + os.sep + "notes"
    assert shorten_path("/elsewhere/file") == "/elsewhere/file"


def test_truncate_string():
    assert truncate_string("héllo", 2) == "hé"
    assert truncate_string("short", 10) == "short"
    assert truncate_string("anything", 0) == ""


def test_format_bytes_small_values():
    assert format_bytes(1023) == "1023 B"


def test_format_bytes_units():
    kib = format_bytes(1536)
    assert kib.startswith("1.5 K") and kib.endswith("KiB")
    assert format_bytes(1024 * 1024).startswith("1.0 M")


def test_print_box_lines_align(capsys):
    with patch("os.get_terminal_size", return_value=_size(60)):
        print_box("Title", ["one", "three words here"])
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 5
    assert len({len(line) for line in out}) == 1
    assert out[0].lstrip().startswith("┌")
    assert out[2].lstrip().startswith("├")
    assert out[-1].lstrip().startswith("└")
    assert "three words here" in out[3]


def test_print_box_without_title(capsys):
    with patch("os.get_terminal_size", return_value=_size(10)):
        print_box("", ["row"])
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 3
    assert "row" in out[1]


@pytest.mark.parametrize(
    "platform, command",
    [("darwin", ["open", "report.html"]), ("linux", ["xdg-open", "report.html"])],
)
def test_open_file_reports_launch_failure(platform, command):
    with patch("subprocess.Popen", side_effect=FileNotFoundError) as popen, patch(
        "sys.platform", platform
    ):
        with pytest.raises(FileNotFoundError):
            open_file("report.html")
    assert popen.call_args.args[0] == command


def test_spinner_draws_and_clears(capsys):
    spinner = Spinner("working", delay=0.01)
    spinner.start()
    time.sleep(0.05)
    spinner.stop()
    spinner.stop()
    out = capsys.readouterr().out
    assert "\r▘ working" in out
    assert out.endswith("\r\x1b[K")
    assert out.count("\x1b[K") == 1


def test_spinner_stop_without_start_prints_nothing(capsys):
    Spinner("idle").stop()
    assert capsys.readouterr().out == ""