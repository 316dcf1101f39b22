"""
Conversation sizing and chunking.

Token counts are approximated as one token per four characters. This is
a cheap, deterministic heuristic rather than a real tokenizer; it only
decides when a conversation is too long for a single completion request.
"""

import math
import re
from typing import List, Literal

DEFAULT_MAX_TOKENS = 6000

DataFormat = Literal["whatsapp", "structured", "csv-like"]

# e.g. "[12/01/2025, 10:41]" or "【1/2/25 9:03】"
_WHATSAPP_TIMESTAMP = re.compile(r"[\[【].*?\d{1,2}/\d{1,2}/\d{2,4}.*?[\]】]")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def chunk_conversation(text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> List[str]:
    """
    Split a conversation into chunks of at most max_tokens, on line boundaries.

    Lines are accumulated greedily. A line is never split, so a single line
    longer than max_tokens becomes its own oversized chunk. Joining the
    chunks with "\\n" gives back the original text, minus a trailing
    whitespace-only chunk.

    Args:
        text: Raw conversation text
        max_tokens: Token budget per chunk

    Returns:
        Ordered list of chunks; [text] when the whole text fits
    """
    if estimate_tokens(text) <= max_tokens:
        return [text]

    chunks: List[str] = []
    current: List[str] = []
    current_len = 0

    for line in text.split("\n"):
        candidate_len = current_len + 1 + len(line) if current else len(line)
        if current and math.ceil(candidate_len / 4) > max_tokens:
            chunks.append("\n".join(current))
            current = [line]
            current_len = len(line)
        else:
            current.append(line)
            current_len = candidate_len

    trailing = "\n".join(current)
    if trailing.strip():
        chunks.append(trailing)

    return chunks


def detect_data_format(text: str) -> DataFormat:
    """Guess whether the text is a WhatsApp export, CSV-like rows, or free-form."""
    lines = [line for line in text.strip().split("\n") if line.strip()]
    if not lines:
        return "structured"

    if _WHATSAPP_TIMESTAMP.search(lines[0]):
        return "whatsapp"

    head = lines[:3]
    avg_commas = sum(line.count(",") for line in head) / len(head)
    if avg_commas >= 3:
        return "csv-like"

    return "structured"
