import re

from typing import List


LINE_BREAK_PATTERN = re.compile(r"\r?\n")


def chunk_text_by_chars(text: str, max_chars: int) -> List[str]:
    """Split one text into contiguous chunks of at most max_chars characters.

    Args:
        text: Input text content.
        max_chars: Maximum characters per chunk.
    """

    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")

    if len(text) <= max_chars:
        return [text]

    return [
        text[start:start + max_chars]
        for start in range(0, len(text), max_chars)
    ]


def split_text_lines(text: str) -> List[str]:
    """Split text on line breaks, tolerating CRLF endings.

    A trailing line break yields a trailing empty line, so joining the result
    with "\\n" restores the LF-normalized input.

    Args:
        text: Input text content.
    """

    return LINE_BREAK_PATTERN.split(text)
