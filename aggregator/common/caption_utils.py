"""Helpers for caption normalisation and hashtag handling."""

from __future__ import annotations

import re
from typing import Iterable, List


HASHTAG_CLEAN_RE = re.compile(r"[^0-9A-Za-z]+")

# Instagram rejects captions above 2,200 characters and more than 30 hashtags
CAPTION_LIMIT = 2200
HASHTAG_LIMIT = 30


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def filter_characters(text: str) -> str:
    """Drop code points outside the Basic Multilingual Plane.

    Emoji and other supplementary characters are rarely present in overlay
    fonts and render as empty boxes when burned into a frame.
    """

    return "".join(char for char in text if ord(char) <= 0xFFFF)


def truncate_word_boundary(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    truncated = text[:limit]
    if " " in truncated:
        truncated = truncated.rsplit(" ", 1)[0]
    return truncated


def clean_hashtag(tag: str) -> str:
    """Remove whitespace and punctuation from a hashtag."""

    return HASHTAG_CLEAN_RE.sub("", tag)


def prepare_hashtags(tags: Iterable[str], limit: int = HASHTAG_LIMIT) -> List[str]:
    """Sanitise and de-duplicate hashtags, preserving their order."""

    cleaned: List[str] = []
    for tag in tags:
        if isinstance(tag, str):
            cleaned_tag = clean_hashtag(tag)
            if cleaned_tag:
                cleaned.append(cleaned_tag)
    deduped = list(dict.fromkeys(cleaned))
    return [f"#{t}" for t in deduped[:limit]]


__all__ = [
    "CAPTION_LIMIT",
    "HASHTAG_LIMIT",
    "collapse_whitespace",
    "filter_characters",
    "truncate_word_boundary",
    "clean_hashtag",
    "prepare_hashtags",
]
