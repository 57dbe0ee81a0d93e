"""OpenAI chat-completions provider.

- Endpoint: POST {base_url}/chat/completions
- Headers: Authorization: Bearer <key>, Content-Type: application/json
- Fixed temperature 0.7

Request body:
{
  "model": "<model_name>",
  "messages": [
    {"role": "system", "content": "<system prompt>"},
    {"role": "user", "content": "<labeled sections + content>"}
  ],
  "temperature": 0.7
}

Response - extract:
- text = choices[0].message.content

A response with zero choices is an error (NO_OUTPUT), never an empty rewrite.
Any OpenAI-compatible endpoint can be registered under its own name by
passing a different base_url.
"""

import httpx

from luma.services.llm.errors import LLMError, LLMErrorClass
from luma.services.llm.prompt import render_turns
from luma.services.llm.types import ChatRequest, GenerateRequest, Turn

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TIMEOUT_S = 45


class OpenAIAdapter:
    """Rewrites content through an OpenAI-compatible chat-completions API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str = DEFAULT_BASE_URL,
        name: str = "openai",
        timeout_s: int = DEFAULT_TIMEOUT_S,
    ):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            base_url: API root, without the trailing /chat/completions.
            name: Provider name reported in errors.
            timeout_s: Request timeout in seconds.
        """
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._name = name
        self._timeout_s = timeout_s

    @property
    def chat_url(self) -> str:
        return f"{self._base_url}/chat/completions"

    async def generate(self, req: GenerateRequest) -> str:
        """Non-streaming chat completion returning only the text."""
        if not req.api_key.strip():
            raise LLMError(
                LLMErrorClass.INVALID_REQUEST,
                "missing OpenAI API key",
                provider=self._name,
            )

        chat = ChatRequest(
            model_name=req.model,
            messages=render_turns(req),
            temperature=DEFAULT_TEMPERATURE,
        )
        return await self.complete(chat, api_key=req.api_key)

    async def complete(self, chat: ChatRequest, *, api_key: str) -> str:
        """Send one chat-completion request and return the first choice's text."""
        response = await self._client.post(
            self.chat_url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(chat),
            timeout=httpx.Timeout(self._timeout_s, connect=10.0),
        )
        response.raise_for_status()

        return self._parse_response(response.json())

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, chat: ChatRequest) -> dict:
        body: dict = {
            "model": chat.model_name,
            "messages": [self._turn_to_message(turn) for turn in chat.messages],
        }

        if chat.temperature is not None:
            body["temperature"] = chat.temperature

        return body

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        """OpenAI uses the same role names as our Turn type."""
        return {
            "role": turn.role,
            "content": turn.content,
        }

    def _parse_response(self, data: dict) -> str:
        choices = data.get("choices") or []
        if not choices:
            raise LLMError(
                LLMErrorClass.NO_OUTPUT,
                "openai returned no choices",
                provider=self._name,
            )

        return (choices[0].get("message") or {}).get("content") or ""
