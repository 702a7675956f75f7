"""Lyrics generation: jinja2 prompts, LLM call, response parsing."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from songgen.errors import LyricsGenerationError, LyricsQuotaError
from songgen.llm.base import LLMProvider
from songgen.schemas.generation import GenerateSongRequest

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
DEFAULT_LANGUAGE = "pt-BR"
SUPPORTED_LANGUAGES = ("en-US", "pt-BR")

SONGWRITER_SYSTEM_PROMPT = (
    "You are a professional songwriter who writes personalized, emotional song lyrics."
)

FALLBACK_TITLE = "Automatically Generated Title"

_TITLE_RE = re.compile(r"\[(?:TITLE|TÍTULO)\]:\s*(.*)")
_LYRICS_RE = re.compile(r"\[(?:LYRICS|LETRA)\]:\s*([\s\S]*)")

_env = Environment(
    loader=FileSystemLoader(str(PROMPTS_DIR)),
    keep_trailing_newline=True,
    autoescape=False,
)


def _language(request: GenerateSongRequest) -> str:
    lang = request.language or DEFAULT_LANGUAGE
    return lang if lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def render_lyrics_prompt(request: GenerateSongRequest) -> str:
    try:
        template = _env.get_template(f"lyrics.{_language(request)}.j2")
    except TemplateNotFound:
        template = _env.get_template(f"lyrics.{DEFAULT_LANGUAGE}.j2")
    return template.render(req=request)


def render_title_and_lyrics_prompt(request: GenerateSongRequest) -> str:
    return _env.get_template("title_and_lyrics.j2").render(req=request, language=_language(request))


def parse_ai_response(text: str | None) -> tuple[str, str]:
    """Split a ``[TITLE]: ... [LYRICS]: ...`` answer into (title, lyrics).

    Missing markers fall back to a generic title and the whole text as lyrics.
    """
    if not text:
        return "Generation Error", "The AI returned no content."
    title_match = _TITLE_RE.search(text)
    lyrics_match = _LYRICS_RE.search(text)
    title = title_match.group(1).strip() if title_match else FALLBACK_TITLE
    lyrics = lyrics_match.group(1).strip() if lyrics_match else text
    return title, lyrics


def _wrap_llm_error(e: Exception) -> LyricsGenerationError:
    status = getattr(e, "status_code", None)
    if status == 429:
        logger.error("LLM quota exceeded: %s", e)
        return LyricsQuotaError(
            "Our song creation service is under very high demand right now. Please try again in a few minutes."
        )
    if status == 401:
        logger.error("LLM authentication failed: %s", e)
        return LyricsGenerationError("A configuration error occurred. Our team has been notified.")
    logger.error("LLM call failed (%s): %s", type(e).__name__, e)
    return LyricsGenerationError("An unexpected error occurred while generating the lyrics.")


class Lyricist:
    """Turns a song briefing into lyrics with an LLM."""

    def __init__(self, llm: LLMProvider):
        self._llm = llm

    async def write_lyrics(self, request: GenerateSongRequest) -> str:
        prompt = render_lyrics_prompt(request)
        try:
            lyrics = await self._llm.complete(
                prompt,
                system=SONGWRITER_SYSTEM_PROMPT,
                max_tokens=1000,
                temperature=0.8,
            )
        except Exception as e:
            raise _wrap_llm_error(e) from e
        lyrics = (lyrics or "").strip()
        if not lyrics:
            raise LyricsGenerationError("Could not generate the song lyrics. Please try again.")
        logger.info("Lyrics generated (%d chars)", len(lyrics))
        return lyrics

    async def write_title_and_lyrics(self, request: GenerateSongRequest) -> tuple[str, str]:
        prompt = render_title_and_lyrics_prompt(request)
        try:
            raw = await self._llm.complete(prompt, max_tokens=1000, temperature=0.7)
        except Exception as e:
            raise _wrap_llm_error(e) from e
        title, lyrics = parse_ai_response(raw)
        logger.info("Title generated: %s", title)
        return title, lyrics
