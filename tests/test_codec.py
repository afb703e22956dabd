import pytest

from serialterm import codec
from serialterm.codec import DataMode, StreamDecoder


def test_decode_hex_renders_uppercase_pairs() -> None:
    assert codec.decode(b"\x0a", DataMode.HEX) == "0A"
    assert codec.decode(b"\x00\xff\x1b", DataMode.HEX) == "00 FF 1B"
    assert codec.decode(b"", DataMode.HEX) == ""


def test_decode_utf8_replaces_invalid_sequences_without_dropping_rest() -> None:
    assert codec.decode(b"ok\xffstill", DataMode.UTF8) == "ok�still"


@pytest.mark.parametrize("text", ["hello", "línea ñ", "tab\tsep", "€uro"])
def test_utf8_round_trip(text: str) -> None:
    assert codec.decode(codec.encode(text, DataMode.UTF8), DataMode.UTF8) == text


def test_hex_round_trip_for_ascii_payload() -> None:
    payload = b"AT+GMR"
    assert codec.encode(codec.decode(payload, DataMode.HEX), DataMode.HEX) == payload


def test_encode_hex_is_case_insensitive_and_whitespace_tolerant() -> None:
    assert codec.encode("  0a\t0B \n ff  ", DataMode.HEX) == b"\x0a\x0b\xff"


def test_encode_hex_skips_malformed_tokens() -> None:
    assert codec.encode("41 4 zz 42 0x43", DataMode.HEX) == b"AB"


def test_encode_hex_reads_long_even_tokens_as_pairs() -> None:
    assert codec.encode("4142 43", DataMode.HEX) == b"ABC"


def test_encode_hex_all_invalid_yields_empty() -> None:
    assert codec.encode("xyz 1 GG", DataMode.HEX) == b""


def test_format_user_hex_groups_digits_and_drops_noise() -> None:
    assert codec.format_user_hex("de ad-be:ef0") == "DE AD BE EF 0"
    assert codec.format_user_hex("") == ""


def test_stream_decoder_joins_multibyte_character_split_across_chunks() -> None:
    decoder = StreamDecoder()
    euro = "€".encode("utf-8")

    assert decoder.feed(euro[:1]) == ""
    assert decoder.feed(euro[1:] + b"!") == "€!"


def test_stream_decoder_hex_output_is_chunk_boundary_agnostic() -> None:
    whole = StreamDecoder(mode=DataMode.HEX)
    split = StreamDecoder(mode=DataMode.HEX)

    joined = whole.feed(b"\x01\x02\x03")
    pieces = split.feed(b"\x01") + split.feed(b"\x02\x03")

    assert joined == pieces == "01 02 03 "


def test_stream_decoder_switch_mode_flushes_partial_sequence() -> None:
    decoder = StreamDecoder()
    decoder.feed(b"\xe2\x82")

    assert decoder.switch_mode(DataMode.HEX) == "�"
    assert decoder.mode is DataMode.HEX
    assert decoder.feed(b"\x0a") == "0A "
    assert decoder.switch_mode(DataMode.HEX) == ""
