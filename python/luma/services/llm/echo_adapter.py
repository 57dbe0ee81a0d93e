"""Deterministic stand-in provider.

Echoes every prompt layer back so callers can see exactly what would have
been sent. Used for providers that have no real client yet and in tests.
"""

from luma.services.llm.types import GenerateRequest

CONTEXT_PREVIEW_CHARS = 120


def collapse(text: str, limit: int = CONTEXT_PREVIEW_CHARS) -> str:
    """Shorten long context to a preview."""
    if len(text) > limit:
        return text[:limit] + "..."
    return text


class EchoAdapter:
    """Returns a formatted echo of the request instead of calling a model."""

    async def generate(self, req: GenerateRequest) -> str:
        return (
            f"[provider={req.provider_name} model={req.model}] {req.system_prompt}"
            f" | Preset: {req.preset_prompt}"
            f" | Temporary: {req.temporary_prompt}"
            f" | Context: {collapse(req.context_text)}"
            f" | Content: {req.content}"
        )
