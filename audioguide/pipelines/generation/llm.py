"""Facts and script stages backed by the conversational LLM."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from audioguide.domain.models import Attraction
from audioguide.services.cancellation import CancellationToken
from audioguide.services.geocoding import Location

from .prompts import build_facts_prompt, build_script_prompt
from .types import PromptBundle

logger = logging.getLogger("audioguide.pipelines.generation")


class TextGenerator(Protocol):
    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        ...


def _truncate(value: str, max_length: int = 500) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


async def _complete(llm: TextGenerator, bundle: PromptBundle, token: CancellationToken) -> str:
    return await token.guard(
        llm.invoke(
            system_prompt=bundle.system_prompt,
            user_prompt=bundle.user_prompt,
            max_tokens=bundle.max_tokens,
            temperature=bundle.temperature,
        )
    )


async def generate_facts(
    llm: TextGenerator,
    attraction: Attraction,
    language: str,
    token: CancellationToken,
    location: Optional[Location] = None,
) -> str:
    facts = await _complete(llm, build_facts_prompt(attraction, language, location), token)
    logger.info("Facts for %s: %s", attraction.id, _truncate(facts))
    return facts


async def generate_script(
    llm: TextGenerator,
    attraction_name: str,
    facts: str,
    language: str,
    token: CancellationToken,
) -> str:
    script = await _complete(llm, build_script_prompt(attraction_name, facts, language), token)
    logger.info("Script for %s: %s", attraction_name, _truncate(script))
    return script


__all__ = ["TextGenerator", "generate_facts", "generate_script"]
