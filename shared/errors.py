"""
Shared error handling for the tiered cache.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    tier: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class CacheLayerException(Exception):
    """Base exception for cache and persistence operations."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        tier: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.tier = tier
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            tier=self.tier,
            details=self.details
        )


class DirectoryCreationError(CacheLayerException):
    """Cache or data directory could not be created."""

    def __init__(self, path: str, message: str = "Failed to create directory", details: Optional[Dict[str, Any]] = None):
        super().__init__("DIRECTORY_CREATION_ERROR", f"{message}: {path}", {"path": path, **(details or {})}, tier="disk")


class CacheEncodeError(CacheLayerException):
    """Value could not be serialized."""

    def __init__(self, message: str = "Failed to encode value", details: Optional[Dict[str, Any]] = None, tier: Optional[str] = None):
        super().__init__("ENCODE_ERROR", message, details, tier=tier)


class CacheDecodeError(CacheLayerException):
    """Stored bytes could not be deserialized."""

    def __init__(self, message: str = "Failed to decode value", details: Optional[Dict[str, Any]] = None, tier: Optional[str] = None):
        super().__init__("DECODE_ERROR", message, details, tier=tier)


class CacheWriteError(CacheLayerException):
    """Write to storage failed."""

    def __init__(self, message: str = "Failed to write value", details: Optional[Dict[str, Any]] = None, tier: Optional[str] = None):
        super().__init__("WRITE_ERROR", message, details, tier=tier)


class CacheReadError(CacheLayerException):
    """Read from storage failed for a reason other than a missing entry."""

    def __init__(self, message: str = "Failed to read value", details: Optional[Dict[str, Any]] = None, tier: Optional[str] = None):
        super().__init__("READ_ERROR", message, details, tier=tier)


class CacheDeleteError(CacheLayerException):
    """Entry removal failed."""

    def __init__(self, message: str = "Failed to delete value", details: Optional[Dict[str, Any]] = None, tier: Optional[str] = None):
        super().__init__("DELETE_ERROR", message, details, tier=tier)


class DirectoryRemovalError(CacheLayerException):
    """Cache directory could not be removed."""

    def __init__(self, path: str, message: str = "Failed to remove directory", details: Optional[Dict[str, Any]] = None):
        super().__init__("DIRECTORY_REMOVAL_ERROR", f"{message}: {path}", {"path": path, **(details or {})}, tier="disk")


class TierUnavailableError(CacheLayerException):
    """Tier worker is not running."""

    def __init__(self, tier: str, message: str = "Tier worker is not running"):
        super().__init__("TIER_UNAVAILABLE", f"{tier}: {message}", tier=tier)


class SecretStoreError(CacheLayerException):
    """Secret store errors."""

    def __init__(self, action: str, message: str = "Secret store operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("SECRET_STORE_ERROR", f"{action}: {message}", {"action": action, **(details or {})})
