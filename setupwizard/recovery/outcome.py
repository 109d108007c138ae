"""
Recovery Outcomes

Structured results returned by the recovery managers instead of raising.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import AuthorityBusy, WizardError


class OutcomeLevel(str, Enum):
    """How a recovery outcome should be presented."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class RecoveryOutcome:
    """Result of a version, checkpoint or resume operation."""
    level: OutcomeLevel
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[WizardError] = None

    @property
    def ok(self) -> bool:
        return self.level == OutcomeLevel.SUCCESS

    @classmethod
    def success(cls, message: str = "", **data: Any) -> "RecoveryOutcome":
        return cls(OutcomeLevel.SUCCESS, message, data)

    @classmethod
    def info(cls, message: str, **data: Any) -> "RecoveryOutcome":
        return cls(OutcomeLevel.INFO, message, data)

    @classmethod
    def warning(cls, message: str, **data: Any) -> "RecoveryOutcome":
        return cls(OutcomeLevel.WARNING, message, data)

    @classmethod
    def cancelled(cls, message: str = "Cancelled by user") -> "RecoveryOutcome":
        return cls(OutcomeLevel.CANCELLED, message)

    @classmethod
    def failure(cls, error: WizardError) -> "RecoveryOutcome":
        """Busy resources are warnings; everything else is an error."""
        level = OutcomeLevel.WARNING if isinstance(error, AuthorityBusy) else OutcomeLevel.ERROR
        return cls(level, error.message, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "data": self.data,
        }
