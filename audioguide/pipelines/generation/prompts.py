"""Prompt construction for the facts and script stages."""

from __future__ import annotations

import logging

from audioguide.config.settings import BedrockConfig, settings
from audioguide.domain.models import Attraction
from audioguide.services.geocoding import Location

from .types import PromptBundle

logger = logging.getLogger("audioguide.pipelines.generation")

_FACTS_SYSTEM_PROMPT = (
    "You are a knowledgeable tour guide with expertise in history, architecture, "
    "and culture. Provide accurate, engaging facts suitable for tourists. "
    "Write your response entirely in {language}."
)

_FACTS_USER_PROMPT = """Provide 3-5 truly fascinating facts about "{name}" ({category}).
{location_line}
Focus on:
- Surprising or little-known facts that most visitors wouldn't know
- Unique historical events or stories connected to this place
- Interesting architectural or design details with specific context
- Cultural significance and local traditions
- Notable people or events associated with this location

Avoid:
- Generic information easily found in any guidebook
- Obvious facts about the category (e.g., "this museum has art")
- Vague statements without specific details

Each fact should make the visitor say "I didn't know that!" Be concise but engaging. Each fact should be 1-2 sentences. Write entirely in {language}."""

_SCRIPT_SYSTEM_PROMPT = """You are a professional audio guide scriptwriter. Write natural, conversational scripts for text-to-speech narration. Avoid visual references like "as you can see". Write entirely in {language}.

CRITICAL TEXT-TO-SPEECH REQUIREMENTS:
- Write ALL numbers as words (e.g., "eighteen eighty-nine" not "1889", "three hundred" not "300")
- Write dates in full words (e.g., "the fifteenth of March, nineteen twenty-one" not "March 15, 1921")
- Write ordinals as words (e.g., "nineteenth century" not "19th century", "the third floor" not "the 3rd floor")
- Expand ALL abbreviations (e.g., "Saint" not "St.", "Doctor" not "Dr.", "Mister" not "Mr.")
- Spell out acronyms or explain them (e.g., "UNESCO, the United Nations cultural organization")
- Avoid special characters and symbols
- Use phonetic-friendly phrasing for foreign or difficult words"""

_SCRIPT_USER_PROMPT = """Write a 30-60 second audio guide script for "{name}" based on these facts:

{facts}

Requirements:
- Start with a warm welcome mentioning the attraction name
- Share 2-3 of the most interesting facts naturally
- Use conversational, engaging language
- End with an invitation to explore or take photos
- Keep it between 80-150 words for optimal audio length
- Write the entire script in {language}
- IMPORTANT: All numbers, dates, and abbreviations must be written as full words for text-to-speech"""


def _truncate(value: str, max_length: int = 240) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


def location_line(attraction: Attraction, location: Location | None) -> str:
    described = location.describe() if location is not None else ""
    if described:
        return f"Location: {described}"
    return f"Coordinates: {attraction.latitude:f}, {attraction.longitude:f}"


def build_facts_prompt(
    attraction: Attraction,
    language: str,
    location: Location | None = None,
    config: BedrockConfig | None = None,
) -> PromptBundle:
    """Assemble the prompts that ask for little-known facts about an attraction."""

    config = config or settings.bedrock
    bundle = PromptBundle(
        system_prompt=_FACTS_SYSTEM_PROMPT.format(language=language),
        user_prompt=_FACTS_USER_PROMPT.format(
            name=attraction.name,
            category=attraction.category,
            location_line=location_line(attraction, location),
            language=language,
        ),
        max_tokens=config.facts_max_tokens,
        temperature=config.facts_temperature,
    )
    logger.debug("Facts prompt for %s: %s", attraction.id, _truncate(bundle.user_prompt))
    return bundle


def build_script_prompt(
    attraction_name: str,
    facts: str,
    language: str,
    config: BedrockConfig | None = None,
) -> PromptBundle:
    """Assemble the prompts that turn facts into a TTS-friendly narration."""

    config = config or settings.bedrock
    return PromptBundle(
        system_prompt=_SCRIPT_SYSTEM_PROMPT.format(language=language),
        user_prompt=_SCRIPT_USER_PROMPT.format(
            name=attraction_name,
            facts=facts.strip(),
            language=language,
        ),
        max_tokens=config.script_max_tokens,
        temperature=config.script_temperature,
    )


__all__ = ["build_facts_prompt", "build_script_prompt", "location_line"]
