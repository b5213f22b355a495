"""Pixel-accurate caption wrapping for text burned into video frames.

Widths come from the actual glyph metrics of the overlay font (Pillow's
FreeType bindings), so a wrapped line never overflows the frame width it
was laid out for. Overlong words are hard-split and the final line is
ellipsized when the text does not fit in ``max_lines``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, NamedTuple, Protocol, Union

from PIL import ImageFont

from ..common.caption_utils import collapse_whitespace

ELLIPSIS = "..."

# Word runs keep inner apostrophes and numeric separators ("don't", "3.14").
SEGMENT_RE = re.compile(r"\s+|\w+(?:['’.,]\w+)*|[^\w\s]")


class MeasurableFont(Protocol):
    def getbbox(self, text: str) -> tuple: ...

    def getlength(self, text: str) -> float: ...


@dataclass(frozen=True)
class FontSpec:
    """A TrueType/OpenType font file at a pixel size."""

    path: Path
    size: int

    def load(self) -> ImageFont.FreeTypeFont:
        return load_font(str(self.path), self.size)


@lru_cache(maxsize=16)
def load_font(path: str, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(path, size)


FontLike = Union[FontSpec, MeasurableFont]


class _Token(NamedTuple):
    text: str
    spaced: bool


class _Measurer:
    def __init__(self, font: MeasurableFont, max_width: int) -> None:
        self._font = font
        self._max_width = max_width
        self._cache: dict[str, int] = {}

    def width(self, text: str) -> int:
        if not text:
            return 0
        cached = self._cache.get(text)
        if cached is None:
            left, _, right, _ = self._font.getbbox(text)
            advance = self._font.getlength(text)
            cached = int(math.ceil(max(right, advance) - min(left, 0)))
            self._cache[text] = cached
        return cached

    def fits(self, text: str) -> bool:
        return self.width(text) <= self._max_width


def normalize_whitespace(text: str) -> str:
    return collapse_whitespace(text.replace("\r\n", "\n").replace("\r", "\n"))


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    spaced = False
    for match in SEGMENT_RE.finditer(text):
        piece = match.group()
        if piece.isspace():
            spaced = True
            continue
        if tokens and not any(char.isalnum() for char in piece):
            previous = tokens[-1]
            joiner = " " if spaced else ""
            tokens[-1] = _Token(previous.text + joiner + piece, previous.spaced)
        else:
            tokens.append(_Token(piece, spaced and bool(tokens)))
        spaced = False
    return tokens


def _largest_prefix(text: str, accept: Callable[[str], bool]) -> int:
    """Return the largest ``k`` such that ``accept(text[:k])`` holds (0 if none)."""

    low, high = 0, len(text)
    while low < high:
        mid = (low + high + 1) // 2
        if accept(text[:mid]):
            low = mid
        else:
            high = mid - 1
    return low


def _clean_cut(text: str, cut: int) -> int:
    """Move ``cut`` left so the continuation never opens with glued punctuation."""

    index = cut
    while 0 < index < len(text) and not (text[index].isalnum() or text[index].isspace()):
        if text[index - 1].isspace():
            break
        index -= 1
    return index if text[:index].strip() else cut


def _break_token(text: str, measurer: _Measurer) -> list[str]:
    pieces: list[str] = []
    remaining = text
    while remaining:
        if measurer.fits(remaining):
            pieces.append(remaining)
            break
        cut = _largest_prefix(remaining, measurer.fits)
        if cut == 0:
            # a single glyph wider than the whole budget cannot be placed
            remaining = remaining[1:].lstrip()
            continue
        cut = _clean_cut(remaining, cut)
        piece = remaining[:cut].rstrip()
        if piece:
            pieces.append(piece)
        remaining = remaining[cut:].lstrip()
    return pieces


def _ellipsize(text: str, measurer: _Measurer) -> str:
    text = text.strip()
    if measurer.fits(text):
        return text
    if not measurer.fits(ELLIPSIS):
        return ""
    cut = _largest_prefix(text, lambda prefix: measurer.fits(prefix.rstrip() + ELLIPSIS))
    prefix = text[:cut].rstrip()
    return prefix + ELLIPSIS if prefix else ELLIPSIS


class _Layout:
    def __init__(self, measurer: _Measurer, max_lines: int) -> None:
        self.measurer = measurer
        self.max_lines = max_lines
        self.lines: list[str] = []
        self.current = ""

    def emit(self, line: str, pending: str) -> bool:
        """Append ``line``; return ``True`` once the line budget is spent."""

        self.lines.append(line)
        if len(self.lines) < self.max_lines:
            return False
        if pending:
            self.lines[-1] = _ellipsize(line + pending, self.measurer)
        return True

    def start_line(self, token: _Token) -> bool:
        if self.measurer.fits(token.text):
            self.current = token.text
            return False
        pieces = _break_token(token.text, self.measurer)
        if not pieces:
            return False
        for index, piece in enumerate(pieces[:-1]):
            if self.emit(piece, pieces[index + 1]):
                return True
        self.current = pieces[-1]
        return False


def wrap(text: str, font: FontLike, max_width: int, max_lines: int) -> str:
    """Wrap ``text`` to ``max_width`` pixels and at most ``max_lines`` lines.

    Parameters
    ----------
    text:
        Caption text; line breaks and whitespace runs are collapsed.
    font:
        A :class:`FontSpec` or any Pillow font exposing ``getbbox`` and
        ``getlength``.
    max_width:
        Pixel budget for every emitted line.
    max_lines:
        Maximum number of lines; overflow ellipsizes the last line.

    Returns
    -------
    str
        Lines joined with ``"\\n"``; empty for blank input.
    """
    if max_width <= 0:
        raise ValueError(f"max_width must be positive, got {max_width}")
    if max_lines <= 0:
        raise ValueError(f"max_lines must be positive, got {max_lines}")

    normalized = normalize_whitespace(text or "")
    if not normalized:
        return ""

    measurable = font.load() if isinstance(font, FontSpec) else font
    layout = _Layout(_Measurer(measurable, max_width), max_lines)

    for token in _tokenize(normalized):
        if not layout.current:
            if layout.start_line(token):
                return "\n".join(layout.lines)
            continue
        candidate = layout.current + (" " if token.spaced else "") + token.text
        if layout.measurer.fits(candidate):
            layout.current = candidate
            continue
        current, layout.current = layout.current, ""
        if layout.emit(current, candidate[len(current):]):
            return "\n".join(layout.lines)
        if layout.start_line(token):
            return "\n".join(layout.lines)

    if layout.current:
        layout.lines.append(layout.current)
    return "\n".join(layout.lines)


__all__ = ["ELLIPSIS", "FontSpec", "load_font", "normalize_whitespace", "wrap"]
