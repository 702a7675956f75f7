"""Lyrics prompts and generation."""

from songgen.lyrics.generator import (
    Lyricist,
    parse_ai_response,
    render_lyrics_prompt,
    render_title_and_lyrics_prompt,
)

__all__ = ["Lyricist", "parse_ai_response", "render_lyrics_prompt", "render_title_and_lyrics_prompt"]
