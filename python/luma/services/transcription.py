"""Transcription gateway.

Turns uploaded audio into a stored transcript and, for content-mode uploads,
schedules the rewrite of that transcript.

Transcription:
- Provider defaults to "openai"; the user's key for it is decrypted per call
- Audio is staged in a named temporary file that is removed on every path
- POST {base_url}/audio/transcriptions (multipart, model whisper-1)
- Mode normalization: "prompt", "temporary" and "temporary_prompt" mean the
  transcript is an instruction ("prompt"); anything else is "content"
- Negative durations are stored as 0

Request flow (transcribe_and_compose):
1. Start fetching the active system prompt concurrently, in its own DB session
2. Transcribe and store the log
3. content mode: wait for the system prompt, hand composition to the
   background supervisor, and return immediately with processing=True.
   The rewrite is attached to the log when (and if) it succeeds.
   The prompt fetch is never cancelled by the request; it finishes on its own.
4. prompt mode: peek at the prompt fetch without waiting; never compose.
"""

import asyncio
import tempfile
import time
from dataclasses import dataclass
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from luma.db.models import TranscriptionLog, TranscriptionMode
from luma.db.session import session_scope
from luma.errors import ApiErrorCode, MissingApiKeyError, NotFoundError
from luma.logging import get_logger
from luma.schemas.transcriptions import TranscriptionCreatedOut, TranscriptionOut
from luma.services.api_keys import get_decrypted_api_key
from luma.services.background import BackgroundTaskSupervisor
from luma.services.composer import CompositionRequest, compose
from luma.services.crypto import CryptoError, SecretCipher
from luma.services.llm import ProviderRegistry
from luma.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from luma.services.prompts import ActivePromptConfig, get_system_prompt
from luma.services.redact import safe_kv

logger = get_logger(__name__)

DEFAULT_PROVIDER = "openai"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
WHISPER_MODEL = "whisper-1"
UPLOAD_PREFIX = "luma-upload-"
UPLOAD_SUFFIX = ".m4a"

PROMPT_MODES = frozenset({"prompt", "temporary", "temporary_prompt"})

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500


# =============================================================================
# Helpers
# =============================================================================


def normalize_mode(mode: str | None) -> TranscriptionMode:
    """Map a client-supplied mode onto content/prompt."""
    if mode and mode.strip().lower() in PROMPT_MODES:
        return TranscriptionMode.prompt
    return TranscriptionMode.content


def sanitize_duration(duration: float | None) -> float:
    if duration is None or duration < 0:
        return 0.0
    return float(duration)


def clamp_history_limit(limit: int | None) -> int:
    if limit is None or limit <= 0:
        return DEFAULT_HISTORY_LIMIT
    return min(limit, MAX_HISTORY_LIMIT)


# =============================================================================
# Backend client
# =============================================================================


class TranscriptionGateway:
    """Calls an OpenAI-compatible /audio/transcriptions endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_urls: dict[str, str] | None = None,
        model: str = WHISPER_MODEL,
        timeout_s: int = 60,
    ):
        self._client = client
        self._base_urls = {k.lower(): v.rstrip("/") for k, v in (base_urls or {}).items()}
        self._model = model
        self._timeout_s = timeout_s

    @property
    def timeout_s(self) -> int:
        return self._timeout_s

    def transcription_url(self, provider: str) -> str:
        base = self._base_urls.get(provider.lower(), DEFAULT_BASE_URL)
        return f"{base}/audio/transcriptions"

    async def transcribe_file(self, provider: str, api_key: str, audio_path: str) -> str:
        """Upload one staged audio file and return the transcript text.

        Raises:
            LLMError: With a normalized error class on any backend failure.
        """
        start = time.monotonic()
        try:
            with open(audio_path, "rb") as fh:
                response = await self._client.post(
                    self.transcription_url(provider),
                    headers={"Authorization": f"Bearer {api_key}"},
                    data={"model": self._model},
                    files={"file": (f"audio{UPLOAD_SUFFIX}", fh, "audio/m4a")},
                    timeout=httpx.Timeout(self._timeout_s, connect=10.0),
                )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            self._log_failure(provider, LLMErrorClass.TIMEOUT, start)
            raise LLMError(LLMErrorClass.TIMEOUT, "Transcription timed out", provider) from e
        except httpx.HTTPStatusError as e:
            error_class = classify_provider_error(provider, e.response.status_code, None)
            self._log_failure(provider, error_class, start, status_code=e.response.status_code)
            raise LLMError(
                error_class,
                f"Transcription backend returned HTTP {e.response.status_code}",
                provider,
            ) from e
        except httpx.HTTPError as e:
            self._log_failure(provider, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(LLMErrorClass.PROVIDER_DOWN, "Network error", provider) from e
        except ValueError as e:
            self._log_failure(provider, LLMErrorClass.NO_OUTPUT, start)
            raise LLMError(
                LLMErrorClass.NO_OUTPUT, "Transcription response was not JSON", provider
            ) from e

        text = data.get("text") if isinstance(data, dict) else None
        if text is None:
            self._log_failure(provider, LLMErrorClass.NO_OUTPUT, start)
            raise LLMError(LLMErrorClass.NO_OUTPUT, "Transcription response had no text", provider)

        logger.info(
            "transcription.request.finished",
            **safe_kv(
                provider=provider,
                latency_ms=int((time.monotonic() - start) * 1000),
                transcript_chars=len(text),
            ),
        )
        return text

    def _log_failure(
        self, provider: str, error_class: LLMErrorClass, start: float, **extra
    ) -> None:
        logger.error(
            "transcription.request.failed",
            **safe_kv(
                provider=provider,
                error_class=error_class.value,
                latency_ms=int((time.monotonic() - start) * 1000),
                **extra,
            ),
        )


# =============================================================================
# Log persistence
# =============================================================================


def _load_key(db: Session, user_id: UUID, provider: str, cipher: SecretCipher | None) -> str:
    try:
        return get_decrypted_api_key(db, user_id, provider, cipher=cipher)
    except NotFoundError:
        raise MissingApiKeyError(provider) from None
    except CryptoError as e:
        logger.error("api_key_decrypt_failed", provider=provider, error=str(e))
        raise MissingApiKeyError(provider) from e


def _create_log(
    db: Session,
    user_id: UUID,
    mode: TranscriptionMode,
    transcript: str,
    duration_seconds: float,
) -> TranscriptionOut:
    entry = TranscriptionLog(
        user_id=user_id,
        mode=mode,
        transcript=transcript,
        duration_seconds=duration_seconds,
    )
    db.add(entry)
    db.flush()
    db.commit()
    return TranscriptionOut.model_validate(entry)


def attach_generated_text(db: Session, log_id: UUID, text: str) -> None:
    """Store the rewrite produced for a transcript.

    Raises:
        NotFoundError(E_TRANSCRIPTION_NOT_FOUND): If the log doesn't exist.
    """
    entry = db.get(TranscriptionLog, log_id)
    if entry is None:
        raise NotFoundError(ApiErrorCode.E_TRANSCRIPTION_NOT_FOUND, "Transcription not found")
    entry.generated_text = text
    db.flush()
    db.commit()
    logger.info("generated_text_attached", log_id=str(log_id), output_chars=len(text))


def list_history(
    db: Session, user_id: UUID, limit: int | None = DEFAULT_HISTORY_LIMIT
) -> list[TranscriptionOut]:
    """A user's transcriptions, newest first."""
    stmt = (
        select(TranscriptionLog)
        .where(TranscriptionLog.user_id == user_id)
        .order_by(TranscriptionLog.created_at.desc())
        .limit(clamp_history_limit(limit))
    )
    return [TranscriptionOut.model_validate(e) for e in db.scalars(stmt).all()]


def get_transcription(db: Session, user_id: UUID, log_id: UUID) -> TranscriptionOut:
    """Load one of a user's transcriptions.

    Raises:
        NotFoundError(E_TRANSCRIPTION_NOT_FOUND): If it doesn't exist or isn't the user's.
    """
    entry = db.get(TranscriptionLog, log_id)
    if entry is None or entry.user_id != user_id:
        raise NotFoundError(ApiErrorCode.E_TRANSCRIPTION_NOT_FOUND, "Transcription not found")
    return TranscriptionOut.model_validate(entry)


# =============================================================================
# Transcription
# =============================================================================


async def transcribe(
    db: Session,
    gateway: TranscriptionGateway,
    user_id: UUID,
    audio: bytes,
    *,
    provider: str | None = None,
    mode: str | None = None,
    duration_seconds: float | None = None,
    cipher: SecretCipher | None = None,
) -> TranscriptionOut:
    """Transcribe audio with the user's own key and store the log.

    Raises:
        MissingApiKeyError: If the user has no usable key for the provider.
        LLMError: If the transcription backend fails.
    """
    provider = (provider or "").strip().lower() or DEFAULT_PROVIDER
    api_key = await run_in_threadpool(_load_key, db, user_id, provider, cipher)

    with tempfile.NamedTemporaryFile(prefix=UPLOAD_PREFIX, suffix=UPLOAD_SUFFIX) as staged:
        staged.write(audio)
        staged.flush()
        transcript = await gateway.transcribe_file(provider, api_key, staged.name)

    entry = await run_in_threadpool(
        _create_log,
        db,
        user_id,
        normalize_mode(mode),
        transcript,
        sanitize_duration(duration_seconds),
    )
    logger.info(
        "transcription_stored",
        log_id=str(entry.id),
        mode=entry.mode.value,
        audio_bytes=len(audio),
    )
    return entry


@dataclass(frozen=True)
class RewriteOptions:
    """How to rewrite a content-mode transcript."""

    provider_name: str = DEFAULT_PROVIDER
    model: str = ""
    preset_id: UUID | None = None
    preset_text: str | None = None
    temporary_prompt: str | None = None
    context_text: str | None = None


def _read_system_prompt(session_factory: sessionmaker[Session]) -> ActivePromptConfig:
    with session_scope(session_factory) as db:
        return get_system_prompt(db)


def _log_prompt_fetch_outcome(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("system_prompt_fetch_failed", error_type=type(exc).__name__)


async def _compose_and_attach(
    session_factory: sessionmaker[Session],
    registry: ProviderRegistry,
    request: CompositionRequest,
    log_id: UUID,
    cipher: SecretCipher | None,
) -> None:
    with session_scope(session_factory) as db:
        text = await compose(db, registry, request, cipher=cipher)
        await run_in_threadpool(attach_generated_text, db, log_id, text)


async def transcribe_and_compose(
    db: Session,
    session_factory: sessionmaker[Session],
    gateway: TranscriptionGateway,
    registry: ProviderRegistry,
    supervisor: BackgroundTaskSupervisor,
    user_id: UUID,
    audio: bytes,
    *,
    mode: str | None = None,
    duration_seconds: float | None = None,
    options: RewriteOptions | None = None,
    cipher: SecretCipher | None = None,
) -> TranscriptionCreatedOut:
    """Transcribe audio and, for content mode, rewrite it in the background.

    Args:
        db: Request-scoped database session.
        session_factory: Factory for the independent sessions used by the
            concurrent prompt fetch and the background rewrite.
        gateway: Transcription backend.
        registry: Provider registry used for the rewrite.
        supervisor: Owner of the background rewrite task.
        user_id: Acting user.
        audio: Raw audio bytes.
        mode: Client-supplied mode (normalized).
        duration_seconds: Client-reported duration.
        options: Rewrite settings (provider, model, prompt layers).
        cipher: Vault cipher override.

    Returns:
        The stored log and whether a rewrite is in progress.
    """
    options = options or RewriteOptions()

    prompt_task = asyncio.create_task(run_in_threadpool(_read_system_prompt, session_factory))
    prompt_task.add_done_callback(_log_prompt_fetch_outcome)

    entry = await transcribe(
        db,
        gateway,
        user_id,
        audio,
        provider=options.provider_name,
        mode=mode,
        duration_seconds=duration_seconds,
        cipher=cipher,
    )

    if entry.mode != TranscriptionMode.content:
        prompt_ready = prompt_task.done() and not prompt_task.cancelled()
        logger.info("transcription_prompt_mode", log_id=str(entry.id), prompt_ready=prompt_ready)
        return TranscriptionCreatedOut(log=entry, processing=False)

    # Shielded: cancelling the request must not cancel the fetch
    system_prompt: str | None = None
    try:
        system_prompt = (await asyncio.shield(prompt_task)).prompt_text
    except Exception:
        # Logged by the done callback; compose() looks the prompt up itself
        pass

    request = CompositionRequest(
        user_id=user_id,
        content=entry.transcript,
        provider_name=options.provider_name or DEFAULT_PROVIDER,
        model=options.model,
        system_prompt=system_prompt,
        preset_id=options.preset_id,
        preset_text=options.preset_text,
        temporary_prompt=options.temporary_prompt,
        context_text=options.context_text,
    )
    supervisor.spawn(
        "compose_transcription",
        lambda: _compose_and_attach(session_factory, registry, request, entry.id, cipher),
        log_id=str(entry.id),
    )

    return TranscriptionCreatedOut(log=entry, processing=True)
