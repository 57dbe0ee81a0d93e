"""Shared type definitions for the provider layer.

- GenerateRequest: normalized rewrite request handed to any provider
- Turn: provider-agnostic conversation turn
- ChatRequest: wire-level request for chat-completion style providers
"""

from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class GenerateRequest:
    """Everything a provider needs to produce one rewrite.

    The decrypted API key travels with the request and is excluded from repr
    so the request can be logged or shown in tracebacks safely.

    Attributes:
        provider_name: Registry name of the provider
        model: Model identifier (e.g., "gpt-4o-mini")
        system_prompt: Global rewrite instructions
        preset_prompt: The user's preset instructions
        temporary_prompt: Session-scoped extra instructions (may be empty)
        context_text: Clipboard/context text (may be empty)
        content: The raw text to rewrite
        api_key: Decrypted provider credential
    """

    provider_name: str
    model: str
    content: str
    system_prompt: str = ""
    preset_prompt: str = ""
    temporary_prompt: str = ""
    context_text: str = ""
    api_key: str = field(default="", repr=False)


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn.

    Attributes:
        role: One of "system", "user", or "assistant"
        content: The text content of the turn
    """

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class ChatRequest:
    """A chat-completion call.

    Attributes:
        model_name: The model identifier
        messages: List of Turn objects (system turn first if present)
        temperature: Sampling temperature, None uses provider default
    """

    model_name: str
    messages: list[Turn]
    temperature: float | None = None

