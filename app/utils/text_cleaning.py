"""Text cleaning utilities for generator output."""

import re

_CODE_FENCE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?")


def strip_code_fences(text: str) -> str:
    """
    Remove markdown code-fence markers (```json, ```) from generator output.

    Args:
        text: Raw generator output

    Returns:
        Text with fence markers removed and surrounding whitespace stripped
    """
    if not text:
        return ""
    return _CODE_FENCE.sub("", text).strip()


def normalize_whitespace(text: str) -> str:
    """
    Collapse runs of spaces and tabs and limit blank lines to one.

    Args:
        text: Text to normalize

    Returns:
        Normalized text
    """
    if not text:
        return ""

    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def truncate_text(text: str, limit: int) -> str:
    """Cut text to ``limit`` characters, appending an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)].rstrip() + "..."
