"""
Authority Contracts

Wire models and protocols for the external services of record: resume
state, the version log, the checkpoint log, system reset, configuration
validation and prerequisite checks.
"""

from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..preflight.models import PrerequisiteReport


class WireModel(BaseModel):
    """Base for payloads exchanged with the backend (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ============================================================
# Versions
# ============================================================

class VersionMetadata(WireModel):
    model_config = ConfigDict(frozen=True)

    action: str = "manual-save"
    description: str = ""
    timestamp: str = ""


class Version(WireModel):
    """Immutable snapshot of profile and configuration selections."""

    model_config = ConfigDict(frozen=True)

    version_id: str
    profiles: List[str] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)
    metadata: VersionMetadata = Field(default_factory=VersionMetadata)
    age: Optional[str] = None


class SaveVersionResult(WireModel):
    success: bool
    version_id: Optional[str] = None
    message: Optional[str] = None


class UndoResult(WireModel):
    success: bool
    profiles: Optional[List[str]] = None
    config: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    restart_error: Optional[str] = None


class RestoreVersionResult(WireModel):
    success: bool
    profiles: Optional[List[str]] = None
    config: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    restart_error: Optional[str] = None


# ============================================================
# Checkpoints
# ============================================================

class Checkpoint(WireModel):
    """Immutable milestone snapshot."""

    model_config = ConfigDict(frozen=True)

    checkpoint_id: str
    stage: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = ""


class CheckpointCreated(WireModel):
    success: bool
    checkpoint_id: Optional[str] = None
    timestamp: Optional[str] = None
    message: Optional[str] = None


class CheckpointRestore(WireModel):
    success: bool
    stage: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None


class CheckpointDeleted(WireModel):
    success: bool
    checkpoint_id: Optional[str] = None
    error: Optional[str] = None


# ============================================================
# System reset and storage
# ============================================================

class ResetAction(WireModel):
    """One cleanup step of a system reset."""

    action: str
    success: bool
    error: Optional[str] = None


class ResetResult(WireModel):
    success: bool
    actions: List[ResetAction] = Field(default_factory=list)
    message: Optional[str] = None

    @property
    def failed(self) -> List[ResetAction]:
        return [a for a in self.actions if not a.success]


class StorageUsage(WireModel):
    """Disk used by configuration backups on the host."""

    success: bool = True
    total_size: int = 0
    total_size_mb: float = Field(default=0.0, alias="totalSizeMB")
    file_count: int = 0
    backup_dir: Optional[str] = None
    error: Optional[str] = None


# ============================================================
# Resume
# ============================================================

class ResumeInfo(WireModel):
    """Answer to "can this session be resumed?"."""

    can_resume: bool = False
    reason: Optional[str] = None
    current_step: Optional[int] = None
    phase: Optional[str] = None
    background_tasks: List[Any] = Field(default_factory=list)
    hours_since_activity: Optional[float] = None
    profiles: List[str] = Field(default_factory=list)
    configuration: Dict[str, Any] = Field(default_factory=dict)
    services: List[Dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def flatten_saved_state(cls, data: Any) -> Any:
        """Accept the backend's nested ``state`` object as well as flat fields."""
        if not isinstance(data, dict) or not isinstance(data.get("state"), dict):
            return data

        flat = {k: v for k, v in data.items() if k != "state"}
        state = data["state"]
        profiles = state.get("profiles") or {}
        flat.setdefault("currentStep", state.get("currentStep"))
        flat.setdefault("phase", state.get("phase"))
        flat.setdefault("backgroundTasks", state.get("backgroundTasks") or [])
        flat.setdefault("services", state.get("services") or [])
        flat.setdefault("profiles", profiles.get("selected") or [])
        flat.setdefault("configuration", profiles.get("configuration") or {})
        return flat


# ============================================================
# Configuration validation
# ============================================================

class FieldError(WireModel):
    field: str
    message: str


class ValidationReport(WireModel):
    valid: bool
    config: Optional[Dict[str, Any]] = None
    errors: List[FieldError] = Field(default_factory=list)


# ============================================================
# Protocols
# ============================================================

class ResumeAuthority(Protocol):
    async def can_resume(self) -> ResumeInfo: ...

    async def clear_state(self) -> bool: ...


class VersionAuthority(Protocol):
    async def save_version(
        self,
        config: Dict[str, Any],
        profiles: List[str],
        metadata: VersionMetadata,
    ) -> SaveVersionResult: ...

    async def undo(self, restart_services: bool = False) -> UndoResult: ...

    async def list_history(self, limit: int) -> List[Version]: ...

    async def restore(self, version_id: str, restart_services: bool = False) -> RestoreVersionResult: ...

    async def compare(self, version1: str, version2: str) -> List[Dict[str, Any]]: ...


class CheckpointAuthority(Protocol):
    async def create(self, stage: str, data: Dict[str, Any]) -> CheckpointCreated: ...

    async def list(self) -> List[Checkpoint]: ...

    async def restore(self, checkpoint_id: str) -> CheckpointRestore: ...

    async def delete(self, checkpoint_id: str) -> CheckpointDeleted: ...


class SystemAuthority(Protocol):
    async def start_over(
        self,
        delete_data: bool,
        delete_config: bool,
        delete_backups: bool,
    ) -> ResetResult: ...

    async def storage_usage(self) -> StorageUsage: ...


class ConfigValidator(Protocol):
    async def validate(self, config: Dict[str, Any]) -> ValidationReport: ...


class PrerequisiteService(Protocol):
    async def run(self) -> PrerequisiteReport: ...
