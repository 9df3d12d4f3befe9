import json
import struct
from datetime import datetime

import pytest

from pentlog.timeline import (
    CommandExecution,
    Timeline,
    clean_command_text,
    clean_control_chars,
    clean_output,
    extract_command,
    extract_final_command,
    is_prompt_line,
    parse_timeline,
    read_all_frames,
    strip_ansi,
)


def _frame(data: bytes, sec: int = 1700000000, usec: int = 0) -> bytes:
    return struct.pack("<III", sec, usec, len(data)) + data


@pytest.mark.parametrize(
    "line, expected",
    [
        ("└─$", True),
        ("user@host:~$ ", True),
        ("root@host:~# ", True),
        ("some output text", False),
        ("", False),
    ],
)
def test_is_prompt_line(line, expected):
    assert is_prompt_line(line) is expected


@pytest.mark.parametrize(
    "line, expected",
    [
        ("└─$ (pentlog:HTB/recon) pwd", "pwd"),
        ("└─$ ls -la", "ls -la"),
        ("└─$ \x1b[1mpwd\x1b[0m", "pwd"),
        ("└─$ [?1h[?2004hpwd[?1l[?2004l", "pwd"),
        ("some output", ""),
    ],
)
def test_extract_command(line, expected):
    assert extract_command(line) == expected


def test_extract_command_simple_dollar_prompt():
    assert extract_command("user@host:~$ whoami") == "whoami"


def test_extract_command_prompt_at_end_gives_nothing():
    assert extract_command("user@host:~$") == ""


@pytest.mark.parametrize(
    "text, expected",
    [
        ("\x1b[32mgreen text\x1b[0m", "green text"),
        ("\x1b]0;terminal title\x07text", "text"),
        ("plain text", "plain text"),
    ],
)
def test_strip_ansi(text, expected):
    assert strip_ansi(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("helo\blo", "hello"),
        ("first\rsecond", "second"),
        ("normal text", "normal text"),
    ],
)
def test_clean_control_chars(text, expected):
    assert clean_control_chars(text) == expected


def test_clean_command_text_keeps_last_repeat_of_first_word():
    assert clean_command_text("nmap -sn 10.0.0.1 nmap -Pn 10.0.0.1") == "nmap -Pn 10.0.0.1"


def test_clean_command_text_drops_trailing_fragments():
    assert clean_command_text("cat file x y") == "cat file"


def test_clean_command_text_keeps_common_short_commands():
    assert clean_command_text("sudo  ls   id") == "sudo ls id"


def test_clean_command_text_empty():
    assert clean_command_text("   ") == ""


def test_timeline_to_json():
    timeline = Timeline(
        [
            CommandExecution("2026-01-15 13:46:58", "pwd", "/home/kali"),
            CommandExecution("2026-01-15 13:47:02", "id", "uid=1000(kali)"),
        ]
    )
    text = timeline.to_json()
    assert "pwd" in text
    assert "/home/kali" in text
    assert json.loads(text) == [c.to_dict() for c in timeline.commands]


def test_timeline_to_json_escapes_html_characters():
    timeline = Timeline([CommandExecution("t", "echo <a> & b", "")])
    text = timeline.to_json()
    assert "<" not in text and "&" not in text
    assert json.loads(text)[0]["command"] == "echo <a> & b"


def test_empty_timeline_to_json_is_null():
    assert Timeline().to_json() == "null"


def test_read_all_frames(tmp_path):
    path = tmp_path / "s.tty"
    path.write_bytes(_frame(b"one", usec=500) + _frame(b"two", sec=1700000001))
    frames = read_all_frames(str(path))
    assert [f.data for f in frames] == [b"one", b"two"]
    assert (frames[1].timestamp - frames[0].timestamp).total_seconds() == pytest.approx(0.9995)


def test_read_all_frames_truncated_raises(tmp_path):
    path = tmp_path / "s.tty"
    path.write_bytes(_frame(b"abcdef")[:-2])
    with pytest.raises(EOFError):
        read_all_frames(str(path))


def test_parse_timeline(tmp_path):
    path = tmp_path / "s.tty"
    path.write_bytes(
        _frame(b"user@host:~$ pwd\n/home/kali\n")
        + _frame(b"user@host:~$ id\nuid=1000(kali)\n", sec=1700000005)
    )
    timeline = parse_timeline(str(path))
    assert [(c.command, c.output) for c in timeline.commands] == [
        ("pwd", "/home/kali"),
        ("id", "uid=1000(kali)"),
    ]
    first = datetime.strptime(timeline.commands[0].timestamp, "%Y-%m-%d %H:%M:%S")
    second = datetime.strptime(timeline.commands[1].timestamp, "%Y-%m-%d %H:%M:%S")
    assert (second - first).total_seconds() == 2
    start = read_all_frames(str(path))[0].timestamp
    assert timeline.commands[0].timestamp == start.strftime("%Y-%m-%d %H:%M:%S")


def test_parse_timeline_ignores_tui_blocks(tmp_path):
    path = tmp_path / "s.tty"
    path.write_bytes(
        _frame(
            b"user@host:~$ ls\n"
            b"\x1b]99;PENTLOG_TUI_START\x07hidden\n\x1b]99;PENTLOG_TUI_END\x07"
            b"file1\n"
        )
    )
    timeline = parse_timeline(str(path))
    assert len(timeline.commands) == 1
    assert timeline.commands[0].output == "file1"


def test_parse_timeline_empty_recording(tmp_path):
    path = tmp_path / "s.tty"
    path.write_bytes(b"")
    assert parse_timeline(str(path)).commands == []


def test_extract_final_command():
    raw = "user@host:~$ ls\nout\nuser@host:~$ whoami"
    assert extract_final_command(raw) == "whoami"
    assert extract_final_command("just output") == ""


def test_clean_output_drops_prompts_and_blank_lines():
    raw = "user@host:~$ ls\nfile1\n\n  file2  \n"
    assert clean_output(raw) == "file1\nfile2"