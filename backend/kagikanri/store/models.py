"""Secret store data models."""

from typing import Optional

from pydantic import BaseModel, Field


class SecretMetadata(BaseModel):
    """Auxiliary fields stored after the first line of an entry."""
    username: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: dict[str, str] = Field(default_factory=dict)


class SecretEntry(BaseModel):
    """One password-store entry: the secret on the first line plus metadata."""
    path: str = ""
    password: str
    metadata: Optional[SecretMetadata] = None


class SecretList(BaseModel):
    entries: list[str]
