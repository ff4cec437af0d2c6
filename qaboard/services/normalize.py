"""Canonical form of question text used for duplicate comparison."""

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """
    Lowercase, collapse whitespace runs to one space and trim.

    Only ever used for comparison; stored and displayed text stays verbatim.
    """
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.lower()).strip()
