"""
Result types returned by TieredCache operations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from shared.errors import CacheLayerException


class CacheStatus(str, Enum):
    """Outcome of an operation across tiers."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass
class CacheResult:
    """Outcome of a cache operation.

    ``errors`` maps tier name to the exception that tier raised. For reads,
    ``value`` is None when the key is absent from every tier and ``tier``
    names the tier that answered a hit.
    """
    operation: str
    key: Optional[str]
    status: CacheStatus
    value: Optional[bytes] = None
    tier: Optional[str] = None
    errors: Dict[str, CacheLayerException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == CacheStatus.SUCCESS

    @property
    def is_partial(self) -> bool:
        return self.status == CacheStatus.PARTIAL

    @property
    def found(self) -> bool:
        return self.value is not None

    @classmethod
    def from_tiers(
        cls,
        operation: str,
        key: Optional[str],
        attempted: int,
        errors: Dict[str, CacheLayerException],
        **kwargs: Any,
    ) -> "CacheResult":
        """Derive the status from how many of the attempted tiers failed."""
        if not errors:
            status = CacheStatus.SUCCESS
        elif len(errors) >= attempted:
            status = CacheStatus.FAILURE
        else:
            status = CacheStatus.PARTIAL
        return cls(operation=operation, key=key, status=status, errors=errors, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable summary, without the value payload."""
        return {
            "operation": self.operation,
            "key": self.key,
            "status": self.status.value,
            "tier": self.tier,
            "found": self.found,
            "errors": {tier: exc.to_response().model_dump() for tier, exc in self.errors.items()},
        }
