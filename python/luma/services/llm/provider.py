"""Provider capability.

A provider is anything with an async generate(request) -> str. Adapters do not
inherit from a common base; the registry accepts any object that satisfies the
protocol.

Rules for implementations:
- No retries
- No DB access
- No logging of prompts, content, or keys
- Raw transport errors may bubble up; the registry normalizes them
"""

from typing import Protocol, runtime_checkable

from luma.services.llm.types import GenerateRequest


@runtime_checkable
class LLMProvider(Protocol):
    """Turns a normalized GenerateRequest into rewritten text."""

    async def generate(self, req: GenerateRequest) -> str:
        """Produce the rewrite.

        Raises:
            LLMError: For failures the provider detects itself.
            httpx.HTTPError: For transport failures (normalized by the registry).
        """
        ...
