"""Sentence-aligned text windows around in-text citation markers."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_CONTEXT_RADIUS = 300

_SENTENCE_START = re.compile(r"[.!?]\s+(?=[A-Z])")
_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")


@dataclass
class ContextWindow:
    """``context`` is always exactly ``before + marker + after``."""

    before: str
    marker: str
    after: str
    start: int = 0
    end: int = 0

    @property
    def context(self) -> str:
        return f"{self.before}{self.marker}{self.after}"


def sentence_starts(text: str) -> List[int]:
    return [0] + [match.end() for match in _SENTENCE_START.finditer(text)]


def sentence_ends(text: str) -> List[int]:
    return [match.end() for match in _SENTENCE_END.finditer(text)]


def _locate(text: str, marker: str, position: Optional[int]) -> int:
    if position is not None and 0 <= position and text.startswith(marker, position):
        return position
    if position is not None and position > 0:
        # Offsets can drift when whitespace was normalised; prefer the nearest occurrence.
        before = text.rfind(marker, 0, position + len(marker))
        after = text.find(marker, position)
        candidates = [index for index in (before, after) if index >= 0]
        if candidates:
            return min(candidates, key=lambda index: abs(index - position))
        return -1
    return text.find(marker)


def build_context_window(
    text: str,
    marker: str,
    position: Optional[int] = None,
    radius: int = DEFAULT_CONTEXT_RADIUS,
) -> ContextWindow:
    """Cut a window of roughly ``radius`` characters on each side of ``marker``.

    The window start is moved to a sentence start and its end to a sentence end
    (``.``, ``!`` or ``?`` followed by whitespace), extending past the nominal
    radius when no boundary lies inside it, so the window never begins or ends
    mid-sentence. When ``marker`` cannot be found in ``text`` the window collapses
    to the marker itself with empty ``before``/``after``.
    """
    if not marker:
        return ContextWindow(before="", marker="", after="")

    index = _locate(text, marker, position)
    if index < 0:
        return ContextWindow(before="", marker=marker, after="")

    marker_end = index + len(marker)

    starts = sentence_starts(text)
    eligible = starts[: bisect.bisect_right(starts, index)]
    inside = [start for start in eligible if start >= index - radius]
    start = inside[0] if inside else eligible[-1]

    ends = sentence_ends(text)
    following = ends[bisect.bisect_left(ends, marker_end):]
    inside_end = [end for end in following if end <= marker_end + radius]
    if inside_end:
        end = inside_end[-1]
    elif following:
        end = following[0]
    else:
        end = len(text)

    before = text[start:index].lstrip()
    after = text[marker_end:end].rstrip()
    return ContextWindow(
        before=before,
        marker=marker,
        after=after,
        start=index - len(before),
        end=marker_end + len(after),
    )
