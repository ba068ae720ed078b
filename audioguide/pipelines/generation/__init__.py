"""Audio guide generation pipeline package.

Modules are organised by the order in which a generation executes:

1. `context` – reverse geocode the attraction for the facts prompt.
2. `prompts` – assemble the facts and script prompts.
3. `llm` – call the conversational model for facts, then the script.
4. `synthesis` – turn the script into audio held in transient storage.
5. `flow` – the staged and remote pipelines that sequence the stages.
"""

from .context import resolve_location
from .flow import (
    GenerationPipeline,
    PipelineStage,
    RemoteGenerationPipeline,
    StagedGenerationPipeline,
)
from .llm import generate_facts, generate_script
from .prompts import build_facts_prompt, build_script_prompt
from .synthesis import synthesize_narration
from .types import (
    AudioGuideResult,
    Cancelled,
    Completed,
    Failed,
    GenerationOutcome,
    PromptBundle,
    StatusCallback,
)

__all__ = [
    "AudioGuideResult",
    "Cancelled",
    "Completed",
    "Failed",
    "GenerationOutcome",
    "GenerationPipeline",
    "PipelineStage",
    "PromptBundle",
    "RemoteGenerationPipeline",
    "StagedGenerationPipeline",
    "StatusCallback",
    "build_facts_prompt",
    "build_script_prompt",
    "generate_facts",
    "generate_script",
    "resolve_location",
    "synthesize_narration",
]
