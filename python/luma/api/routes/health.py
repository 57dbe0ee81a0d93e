"""Health check endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from luma.api.deps import get_provider_registry
from luma.responses import success_response
from luma.services.llm import ProviderRegistry

router = APIRouter()


@router.get("/health")
async def health_check(
    registry: Annotated[ProviderRegistry, Depends(get_provider_registry)],
) -> dict:
    """Liveness check endpoint.

    Returns 200 if the process is running, along with the registered
    provider names. Does not check the database or call any provider.
    """
    return success_response({"status": "ok", "providers": registry.names()})
