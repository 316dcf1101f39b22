from travel_crm.services.chunking import (
    chunk_conversation,
    detect_data_format,
    estimate_tokens,
)

from conftest import make_conversation


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_short_text_is_a_single_chunk() -> None:
    text = make_conversation(200)  # 19,999 chars, 5,000 tokens

    assert estimate_tokens(text) == 5000
    assert chunk_conversation(text) == [text]


def test_empty_text_is_still_one_chunk() -> None:
    assert chunk_conversation("") == [""]


def test_long_text_splits_on_line_boundaries() -> None:
    text = make_conversation(500)  # 49,999 chars, 12,500 tokens

    chunks = chunk_conversation(text, 6000)

    assert len(chunks) == 3
    assert all(estimate_tokens(chunk) <= 6000 for chunk in chunks)
    assert "\n".join(chunks) == text
    assert [len(chunk.split("\n")) for chunk in chunks] == [240, 240, 20]


def test_blank_lines_are_preserved_between_chunks() -> None:
    text = "\n".join(["a" * 30, "", "b" * 30, "", "c" * 30])

    chunks = chunk_conversation(text, max_tokens=10)

    assert len(chunks) > 1
    assert "\n".join(chunks) == text


def test_trailing_blank_chunk_is_dropped() -> None:
    text = "a" * 40 + "\n" + "   "

    chunks = chunk_conversation(text, max_tokens=10)

    assert chunks == ["a" * 40]


def test_oversized_line_is_emitted_whole() -> None:
    huge = "z" * 200
    text = "\n".join(["short line", huge, "tail"])

    chunks = chunk_conversation(text, max_tokens=10)

    assert huge in chunks
    assert "\n".join(chunks) == text
    for chunk in chunks:
        assert estimate_tokens(chunk) <= 10 or "\n" not in chunk


def test_detect_data_format() -> None:
    assert detect_data_format("[12/01/2025, 10:41] Ali: merhaba") == "whatsapp"
    assert detect_data_format("\n\n【1/2/25 9:03】 Sara: hi") == "whatsapp"
    csv = "name,phone,destination,price\nAli,+90 555,Istanbul,200\nSara,+90 556,Trabzon,300"
    assert detect_data_format(csv) == "csv-like"
    assert detect_data_format("Ali wants Istanbul\nSara asked about Bursa") == "structured"
    assert detect_data_format("   ") == "structured"
