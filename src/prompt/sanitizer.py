# src/prompt/sanitizer.py - v1
"""Sanitization of externally sourced text before it enters a prompt.

Pipeline:
1. NFKC normalization (fullwidth and compatibility forms fold to ASCII, so
   homoglyph delimiters are caught by step 3).
2. Control characters removed (tab and newline kept).
3. Delimiter-like sequences removed: [..._DELIMITER_...] markers,
   <|...|> special tokens, job_content tags, triple backticks.
4. XML escaping of & < > " ' (ampersand first).

Sanitized text is only ever placed inside the <job_content> block of the
user message.
"""

from __future__ import annotations

import re
import unicodedata

CONTENT_TAG = "job_content"

_DELIMITER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\[[A-Z0-9_ ]*DELIMITER[A-Z0-9_ ]*\]", re.IGNORECASE),
    re.compile(r"<\|[^|>]{0,64}\|>"),
    re.compile(rf"</?\s*{CONTENT_TAG}\s*>", re.IGNORECASE),
    re.compile(r"`{3,}"),
)

_KEEP_CONTROL = {"\n", "\t"}


def normalize(text: str) -> str:
    return unicodedata.normalize("NFKC", text)


def strip_control_chars(text: str) -> str:
    """Drop Unicode category Cc/Cf characters except newline and tab."""
    return "".join(
        ch for ch in text
        if ch in _KEEP_CONTROL or unicodedata.category(ch) not in ("Cc", "Cf")
    )


def strip_delimiters(text: str) -> str:
    # Repeat until stable so nested fragments cannot reassemble a delimiter.
    previous = None
    while previous != text:
        previous = text
        for pattern in _DELIMITER_PATTERNS:
            text = pattern.sub("", text)
    return text


def escape_xml(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def sanitize(text: str) -> str:
    """Full sanitization pipeline for caller-supplied text."""
    if not text:
        return ""
    text = strip_control_chars(normalize(text))
    text = strip_delimiters(text)
    return escape_xml(text).strip()


def wrap_content(text: str) -> str:
    """Place already-sanitized text inside the content block."""
    return f"<{CONTENT_TAG}>\n{text}\n</{CONTENT_TAG}>"
