"""
Example documents persisted by the data stores.
"""

from datetime import datetime, timezone
from typing import Dict

from pydantic import BaseModel, Field


class UserPreferences(BaseModel):
    """User-facing settings kept in the key/value store."""
    theme: str = "light"
    notifications: bool = True
    language: str = "en"


class AppData(BaseModel):
    """Application state kept in a document file."""
    last_sync_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cached_items: Dict[str, str] = Field(default_factory=dict)


class SecureData(BaseModel):
    """Credentials kept in the encrypted secret store."""
    api_key: str
    refresh_token: str
