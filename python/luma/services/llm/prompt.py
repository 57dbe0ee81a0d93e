"""Provider-agnostic prompt rendering for rewrite requests.

Prompt structure:
- System turn first (the global system prompt), omitted when empty
- One user turn built from labeled sections, each present only when non-empty:

    Preset instructions:
    <preset>

    Temporary prompt:
    <temporary>

    Clipboard/context:
    <context>

    Please rewrite the following content:
    <content>

The final section is always present.
"""

from luma.services.llm.types import GenerateRequest, Turn

# Installed as the active system prompt when none exists yet
DEFAULT_SYSTEM_PROMPT = (
    "Rewrite the provided transcript as a chat message: informal, concise, and "
    "conversational. Keep emotive markers and emojis if present; don't invent new ones. "
    "Lightly fix grammar, remove fillers/repetitions, and improve flow without changing "
    "meaning. Keep the original tone; only be professional if the transcript already is. "
    "Format any lists as proper bullet or numbered lists. Write numbers as numerals "
    "(e.g., 'five' → '5', 'twenty dollars' → '$20'). Format like a modern chat message "
    "with short lines, natural breaks, and emoji-friendly style. Do not add greetings, "
    "sign-offs, or commentary. Output only the rewritten chat message."
)

PRESET_LABEL = "Preset instructions:"
TEMPORARY_LABEL = "Temporary prompt:"
CONTEXT_LABEL = "Clipboard/context:"
CONTENT_LABEL = "Please rewrite the following content:"


def compose_user_content(req: GenerateRequest) -> str:
    """Concatenate the non-empty prompt layers and the content into one user turn."""
    parts: list[str] = []
    if req.preset_prompt:
        parts.append(f"{PRESET_LABEL}\n{req.preset_prompt}\n\n")
    if req.temporary_prompt:
        parts.append(f"{TEMPORARY_LABEL}\n{req.temporary_prompt}\n\n")
    if req.context_text:
        parts.append(f"{CONTEXT_LABEL}\n{req.context_text}\n\n")
    parts.append(f"{CONTENT_LABEL}\n{req.content}")
    return "".join(parts)


def render_turns(req: GenerateRequest) -> list[Turn]:
    """Build the turn list for a chat-completion style provider."""
    turns: list[Turn] = []
    if req.system_prompt:
        turns.append(Turn(role="system", content=req.system_prompt))
    turns.append(Turn(role="user", content=compose_user_content(req)))
    return turns
