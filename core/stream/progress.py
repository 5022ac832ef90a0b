"""Progress-bar markup parsing for operation messages.

The server prefixes progress messages with a bar such as ``[###++...] > ``:
``#`` steps are done, ``+`` steps are partially done, ``.`` steps are pending.
"""

from __future__ import annotations

import re

_PROGRESS_BAR = re.compile(r"^\[(#*)(\+*)(\.*)\] > ")

LINE_BREAK = "<br>"


def parse_progress(text: str) -> tuple[tuple[int, int, int] | None, str]:
    """Split a leading progress bar off ``text``.

    Returns ``((done, partial, pending), remainder)`` when the marker is
    present, ``(None, text)`` otherwise.
    """
    match = _PROGRESS_BAR.match(text)
    if not match:
        return None, text
    done, partial, pending = (len(group) for group in match.groups())
    return (done, partial, pending), text[match.end():]


def normalize_newlines(text: str) -> str:
    return text.replace("\n", LINE_BREAK)
