"""API key Pydantic schemas.

No secret ever leaves the backend: responses carry the provider, a 4-character
fingerprint and timestamps, never ciphertext or plaintext.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiKeyUpsert(BaseModel):
    """Request body for storing a provider key."""

    user_id: UUID
    api_key: str = Field(..., min_length=1, max_length=1024)

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("API key must not be blank")
        if any(c.isspace() for c in v):
            raise ValueError("API key contains whitespace")
        return v

    def __repr__(self) -> str:
        return f"ApiKeyUpsert(user_id={self.user_id!r}, api_key='***')"


class ApiKeyOut(BaseModel):
    """Response schema for a stored key (safe fields only)."""

    id: UUID
    provider_name: str
    key_fingerprint: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
