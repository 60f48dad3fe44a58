import re
import urllib.parse

from core.exceptions import ValidationError


DOCX_PATH_PATTERN = re.compile(r"/docx/([A-Za-z0-9_-]+)")


def extract_document_id(value: str) -> str:
    """Return the document token from a bare token or a docx URL.

    Wiki URLs carry a node token rather than the document token, so they are
    rejected instead of being guessed.

    Args:
        value: Token such as `doxcnXXXX` or URL such as `https://x.feishu.cn/docx/doxcnXXXX`.
    """

    text = (value or "").strip()
    if not text:
        raise ValidationError("Document id must not be empty")

    if "://" not in text:
        return text

    path = urllib.parse.urlparse(text).path
    match = DOCX_PATH_PATTERN.search(path)
    if not match:
        raise ValidationError(f"Unable to find a docx document token in URL: {text}")
    return match.group(1)
