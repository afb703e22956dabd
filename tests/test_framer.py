import pytest

from serialterm.framer import LineEnding, frame, line_ending_bytes


@pytest.mark.parametrize(
    "line_ending, expected",
    [
        (LineEnding.NONE, b"hi"),
        (LineEnding.NEW_LINE, b"hi\n"),
        (LineEnding.CARRIAGE_RETURN, b"hi\r"),
        (LineEnding.BOTH, b"hi\r\n"),
    ],
)
def test_frame_appends_configured_terminator(line_ending: LineEnding, expected: bytes) -> None:
    assert frame("hi", line_ending) == expected


def test_frame_hex_input_parses_tokens() -> None:
    assert frame("41 42", LineEnding.CARRIAGE_RETURN, hex_input=True) == b"AB\r"


def test_frame_without_payload_is_empty() -> None:
    assert frame("", LineEnding.BOTH) == b""
    assert frame("zz q", LineEnding.NEW_LINE, hex_input=True) == b""


def test_frame_encodes_utf8() -> None:
    assert frame("é", LineEnding.NONE) == b"\xc3\xa9"


def test_line_ending_indices_match_option_order() -> None:
    assert [member.value for member in LineEnding] == [0, 1, 2, 3]
    assert line_ending_bytes(LineEnding.BOTH) == b"\r\n"
