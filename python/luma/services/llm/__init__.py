"""Provider layer for turning prompt layers plus content into a rewrite.

This package provides:

- A provider capability (any object with async generate(request) -> str)
- A name-keyed, case-insensitive registry with error normalization
- An OpenAI-compatible chat-completions adapter
- A deterministic echo provider
- Prompt rendering (provider-agnostic)

Usage:
    from luma.services.llm import GenerateRequest, OpenAIAdapter, ProviderRegistry

    registry = ProviderRegistry()
    registry.register("openai", OpenAIAdapter(httpx_client))
    text = await registry.generate(
        GenerateRequest(provider_name="openai", model="gpt-4o-mini", content="hi", api_key="sk-...")
    )

Rules:
- Adapters are async using httpx.AsyncClient
- No retries inside adapters
- No DB access inside adapters
- No logging of prompts, content, or keys
"""

from luma.services.llm.echo_adapter import EchoAdapter
from luma.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from luma.services.llm.openai_adapter import OpenAIAdapter
from luma.services.llm.prompt import DEFAULT_SYSTEM_PROMPT, compose_user_content, render_turns
from luma.services.llm.provider import LLMProvider
from luma.services.llm.registry import ProviderRegistry
from luma.services.llm.types import ChatRequest, GenerateRequest, Turn

__all__ = [
    # Core types
    "GenerateRequest",
    "Turn",
    "ChatRequest",
    # Capability and registry
    "LLMProvider",
    "ProviderRegistry",
    # Providers
    "OpenAIAdapter",
    "EchoAdapter",
    # Errors
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
    # Prompt rendering
    "compose_user_content",
    "render_turns",
    "DEFAULT_SYSTEM_PROMPT",
]
