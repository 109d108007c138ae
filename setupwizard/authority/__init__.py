"""
Authorities

External services of record for resume state, versions, checkpoints,
system reset and configuration validation.
"""

from .base import (
    Checkpoint,
    CheckpointAuthority,
    CheckpointCreated,
    CheckpointDeleted,
    CheckpointRestore,
    ConfigValidator,
    FieldError,
    PrerequisiteService,
    ResetAction,
    ResetResult,
    RestoreVersionResult,
    ResumeAuthority,
    ResumeInfo,
    SaveVersionResult,
    StorageUsage,
    SystemAuthority,
    UndoResult,
    ValidationReport,
    Version,
    VersionAuthority,
    VersionMetadata,
)
from .http import (
    ApiClient,
    HttpCheckpointAuthority,
    HttpConfigValidator,
    HttpPrerequisiteService,
    HttpResumeAuthority,
    HttpSystemAuthority,
    HttpVersionAuthority,
)

__all__ = [
    "ApiClient",
    "Checkpoint",
    "CheckpointAuthority",
    "CheckpointCreated",
    "CheckpointDeleted",
    "CheckpointRestore",
    "ConfigValidator",
    "FieldError",
    "HttpCheckpointAuthority",
    "HttpConfigValidator",
    "HttpPrerequisiteService",
    "HttpResumeAuthority",
    "HttpSystemAuthority",
    "HttpVersionAuthority",
    "PrerequisiteService",
    "ResetAction",
    "ResetResult",
    "RestoreVersionResult",
    "ResumeAuthority",
    "ResumeInfo",
    "SaveVersionResult",
    "StorageUsage",
    "SystemAuthority",
    "UndoResult",
    "ValidationReport",
    "Version",
    "VersionAuthority",
    "VersionMetadata",
]
