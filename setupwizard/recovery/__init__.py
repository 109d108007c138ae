"""
Recovery Module

Versions, checkpoints, resume detection, system reset and the
reconfiguration operation log.
"""

from .outcome import OutcomeLevel, RecoveryOutcome
from .guard import InFlightGuard
from .versions import VersionManager
from .checkpoints import CheckpointManager, LocalPointer
from .operations import OperationLog, OperationRecord, OperationStatus
from .resume import ResumeChoice, ResumeDetector, ResumeOutcome, format_time_since
from .system import SystemManager

__all__ = [
    "CheckpointManager",
    "InFlightGuard",
    "LocalPointer",
    "OperationLog",
    "OperationRecord",
    "OperationStatus",
    "OutcomeLevel",
    "RecoveryOutcome",
    "ResumeChoice",
    "ResumeDetector",
    "ResumeOutcome",
    "SystemManager",
    "VersionManager",
    "format_time_since",
]
