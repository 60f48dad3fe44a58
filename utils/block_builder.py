from typing import List

from utils.text_chunker import chunk_text_by_chars
from utils.text_chunker import split_text_lines


BLOCK_TYPE_TEXT = 2
DEFAULT_MAX_BLOCK_CHARS = 10000


def build_paragraph_block(content: str) -> dict:
    """Build one docx text block holding a single plain text run.

    Args:
        content: Text run content.
    """

    return {
        "block_type": BLOCK_TYPE_TEXT,
        "text": {
            "elements": [
                {
                    "text_run": {
                        "content": content
                    }
                }
            ]
        }
    }


def line_to_paragraph_blocks(line: str, max_chars: int = DEFAULT_MAX_BLOCK_CHARS) -> List[dict]:
    """Convert one line into one or more paragraph blocks.

    Args:
        line: Line content without line break.
        max_chars: Maximum characters per block.
    """

    return [
        build_paragraph_block(content = chunk)
        for chunk in chunk_text_by_chars(text = line, max_chars = max_chars)
    ]


def text_to_paragraph_blocks(text: str, max_chars: int = DEFAULT_MAX_BLOCK_CHARS) -> List[dict]:
    """Convert plain text into ordered paragraph blocks.

    Every line maps to at least one block, so empty lines are kept as empty
    paragraphs and an empty text still yields one block.

    Args:
        text: Plain text content.
        max_chars: Maximum characters per block.
    """

    blocks: List[dict] = []
    for line in split_text_lines(text = text):
        blocks.extend(line_to_paragraph_blocks(line = line, max_chars = max_chars))
    return blocks


def block_text_content(block: dict) -> str:
    """Join text run contents of a text block.

    Args:
        block: Docx text block dict.
    """

    elements = (block.get("text") or {}).get("elements") or []
    return "".join(
        str((element.get("text_run") or {}).get("content", ""))
        for element in elements
        if isinstance(element, dict)
    )
