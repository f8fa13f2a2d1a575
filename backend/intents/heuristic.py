"""
Local intent heuristic.

Pure, synchronous, no I/O. Exists purely to avoid network latency for the
common case: a keyword hit decides IsCommand immediately; no hit means
"ask the remote classifier".
"""

from __future__ import annotations

from typing import Iterable

from spec import LOCAL_COMMAND_KEYWORDS


def match_command_keyword(
    text: str,
    keywords: Iterable[str] = LOCAL_COMMAND_KEYWORDS,
) -> str | None:
    """
    Return the first keyword contained in text (case-insensitive), or None.

    Substring semantics: "reminder" matches "remind", "undone" matches "done".
    """
    lowered = text.lower()
    for keyword in keywords:
        if keyword in lowered:
            return keyword
    return None


def is_local_command(text: str) -> bool:
    return match_command_keyword(text) is not None
