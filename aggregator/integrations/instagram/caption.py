"""Caption text shared by the Instagram publishers."""

from __future__ import annotations

from typing import Optional

from ...common.caption_utils import (
    CAPTION_LIMIT,
    collapse_whitespace,
    prepare_hashtags,
    truncate_word_boundary,
)
from ...interfaces.media import MediaArtifact

PLACEHOLDER = "N/A"


def build_caption(artifact: MediaArtifact, caption_text: Optional[str] = None) -> str:
    """Return ``"<broadcaster> - <title>"`` followed by extra text and hashtags."""

    broadcaster = collapse_whitespace(artifact.broadcaster or "") or PLACEHOLDER
    title = collapse_whitespace(artifact.title or "") or PLACEHOLDER
    parts = [f"{broadcaster} - {title}"]
    if caption_text and caption_text.strip():
        parts.append(caption_text.strip())
    hashtags = prepare_hashtags(artifact.tags)
    if hashtags:
        parts.append(" ".join(hashtags))
    return truncate_word_boundary("\n\n".join(parts), CAPTION_LIMIT)


__all__ = ["build_caption"]
