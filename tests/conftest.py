"""Shared fixtures and in-memory authorities for wizard tests."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from setupwizard.authority.base import (
    Checkpoint,
    CheckpointCreated,
    CheckpointDeleted,
    CheckpointRestore,
    FieldError,
    ResetAction,
    ResetResult,
    RestoreVersionResult,
    ResumeInfo,
    SaveVersionResult,
    StorageUsage,
    UndoResult,
    ValidationReport,
    Version,
    VersionMetadata,
)
from setupwizard.config.models import WizardSettings
from setupwizard.errors import AuthorityUnavailable
from setupwizard.preflight.models import CheckCategory, CheckResult, CheckSeverity, PrerequisiteReport
from setupwizard.recovery.checkpoints import LocalPointer
from setupwizard.wizard.engine import WizardEngine
from setupwizard.wizard.state import WizardSession


# ============================================================
# Fake authorities
# ============================================================

class FakeVersionAuthority:
    """Append-only version log kept in memory."""

    def __init__(self):
        self.versions: List[Version] = []
        self.fail = False
        self.block: Optional[asyncio.Event] = None
        self.restart_error: Optional[str] = None
        self.restarts: List[bool] = []
        self._counter = 0

    async def _maybe_fail(self) -> None:
        if self.block is not None:
            await self.block.wait()
        if self.fail:
            raise AuthorityUnavailable("version authority offline")

    async def save_version(
        self,
        config: Dict[str, Any],
        profiles: List[str],
        metadata: VersionMetadata,
    ) -> SaveVersionResult:
        await self._maybe_fail()
        self._counter += 1
        version_id = f"v{self._counter}"
        self.versions.append(Version(
            version_id=version_id,
            profiles=profiles,
            config=config,
            metadata=metadata,
        ))
        return SaveVersionResult(success=True, version_id=version_id)

    async def undo(self, restart_services: bool = False) -> UndoResult:
        await self._maybe_fail()
        if len(self.versions) < 2:
            return UndoResult(success=False, message="No previous version to undo to")
        self.versions.pop()
        latest = self.versions[-1]
        self.restarts.append(restart_services)
        return UndoResult(
            success=True,
            profiles=list(latest.profiles),
            config=dict(latest.config),
            restart_error=self.restart_error if restart_services else None,
        )

    async def list_history(self, limit: int) -> List[Version]:
        await self._maybe_fail()
        return list(reversed(self.versions))[:limit]

    async def restore(self, version_id: str, restart_services: bool = False) -> RestoreVersionResult:
        await self._maybe_fail()
        for version in self.versions:
            if version.version_id == version_id:
                self.restarts.append(restart_services)
                return RestoreVersionResult(
                    success=True,
                    profiles=list(version.profiles),
                    config=dict(version.config),
                    restart_error=self.restart_error if restart_services else None,
                )
        return RestoreVersionResult(success=False, message=f"Version {version_id} not found")

    async def compare(self, version1: str, version2: str) -> List[Dict[str, Any]]:
        await self._maybe_fail()
        by_id = {v.version_id: v for v in self.versions}
        first, second = by_id[version1], by_id[version2]
        keys = sorted(set(first.config) | set(second.config))
        return [
            {"key": k, "old": first.config.get(k), "new": second.config.get(k)}
            for k in keys
            if first.config.get(k) != second.config.get(k)
        ]


class FakeCheckpointAuthority:
    """Checkpoint log kept in memory."""

    def __init__(self):
        self.checkpoints: Dict[str, Checkpoint] = {}
        self.fail = False
        self._counter = 0

    async def create(self, stage: str, data: Dict[str, Any]) -> CheckpointCreated:
        if self.fail:
            raise AuthorityUnavailable("checkpoint authority offline")
        self._counter += 1
        checkpoint_id = f"cp-{self._counter}"
        timestamp = f"2026-01-01T00:00:{self._counter:02d}"
        self.checkpoints[checkpoint_id] = Checkpoint(
            checkpoint_id=checkpoint_id,
            stage=stage,
            data=data,
            timestamp=timestamp,
        )
        return CheckpointCreated(success=True, checkpoint_id=checkpoint_id, timestamp=timestamp)

    async def list(self) -> List[Checkpoint]:
        if self.fail:
            raise AuthorityUnavailable("checkpoint authority offline")
        return list(self.checkpoints.values())

    async def restore(self, checkpoint_id: str) -> CheckpointRestore:
        if self.fail:
            raise AuthorityUnavailable("checkpoint authority offline")
        checkpoint = self.checkpoints.get(checkpoint_id)
        if checkpoint is None:
            return CheckpointRestore(success=False, message="Checkpoint not found")
        return CheckpointRestore(success=True, stage=checkpoint.stage, data=dict(checkpoint.data))

    async def delete(self, checkpoint_id: str) -> CheckpointDeleted:
        if self.fail:
            raise AuthorityUnavailable("checkpoint authority offline")
        if self.checkpoints.pop(checkpoint_id, None) is None:
            return CheckpointDeleted(success=False, error="Checkpoint not found")
        return CheckpointDeleted(success=True, checkpoint_id=checkpoint_id)


class FakeResumeAuthority:
    """Resume authority answering with a fixed ResumeInfo."""

    def __init__(self, info: Optional[ResumeInfo] = None, fail: bool = False):
        self.info = info or ResumeInfo(can_resume=False, reason="No installation state found")
        self.fail = fail
        self.cleared = 0

    async def can_resume(self) -> ResumeInfo:
        if self.fail:
            raise AuthorityUnavailable("resume authority offline")
        return self.info

    async def clear_state(self) -> bool:
        self.cleared += 1
        return True


class FakeSystemAuthority:
    """Host reset that records its options; actions listed in failing fail."""

    def __init__(self):
        self.calls: List[Dict[str, bool]] = []
        self.failing: Dict[str, str] = {}
        self.usage = StorageUsage(total_size=3145728, total_size_mb=3.0, file_count=4, backup_dir="/backups")

    async def start_over(
        self,
        delete_data: bool = True,
        delete_config: bool = True,
        delete_backups: bool = False,
    ) -> ResetResult:
        self.calls.append({
            "delete_data": delete_data,
            "delete_config": delete_config,
            "delete_backups": delete_backups,
        })
        names = ["stop-services"]
        if delete_data:
            names += ["remove-containers", "remove-volumes"]
        if delete_config:
            names.append("delete-config")
        if delete_backups:
            names.append("delete-backups")

        actions = [
            ResetAction(action=name, success=name not in self.failing, error=self.failing.get(name))
            for name in names
        ]
        success = all(a.success for a in actions)
        return ResetResult(
            success=success,
            actions=actions,
            message="Successfully reset to clean state" if success else "Some actions failed during start over",
        )

    async def storage_usage(self) -> StorageUsage:
        return self.usage


class FakeConfigValidator:
    """Accepts or rejects configurations; records what it saw."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.errors: List[FieldError] = []
        self.normalized: Optional[Dict[str, Any]] = None
        self.fail = False
        self.block: Optional[asyncio.Event] = None

    async def validate(self, config: Dict[str, Any]) -> ValidationReport:
        self.calls.append(config)
        if self.block is not None:
            await self.block.wait()
        if self.fail:
            raise AuthorityUnavailable("validator offline")
        if self.errors:
            return ValidationReport(valid=False, errors=self.errors)
        return ValidationReport(valid=True, config=self.normalized if self.normalized is not None else config)


class FakePrerequisites:
    def __init__(self, report: PrerequisiteReport):
        self.report = report

    async def run(self) -> PrerequisiteReport:
        return self.report


# ============================================================
# Helpers
# ============================================================

def make_report(
    docker: bool = True,
    compose: bool = True,
    cpu: bool = True,
    memory: bool = True,
) -> PrerequisiteReport:
    """Build a prerequisite report with chosen pass/fail results."""

    def tool(key: str, name: str, ok: bool) -> CheckResult:
        return CheckResult(
            key=key,
            name=name,
            passed=ok,
            severity=CheckSeverity.INFO if ok else CheckSeverity.ERROR,
            message=f"{name} {'installed' if ok else 'missing'}",
        )

    def resource(key: str, name: str, ok: bool) -> CheckResult:
        return CheckResult(
            key=key,
            name=name,
            passed=ok,
            severity=CheckSeverity.INFO if ok else CheckSeverity.WARNING,
            message=f"{name} {'OK' if ok else 'below minimum'}",
            category=CheckCategory.RESOURCES,
        )

    return PrerequisiteReport(checks=[
        tool("docker", "Docker", docker),
        tool("compose", "Docker Compose", compose),
        resource("cpu", "CPU", cpu),
        resource("memory", "Memory", memory),
    ])


async def walk_to_templates(engine: WizardEngine) -> None:
    """Advance a fresh engine from welcome to the templates step."""
    engine.record_system_check(make_report())
    for _ in range(3):
        outcome = await engine.next()
        assert outcome.ok, outcome.reason
    assert engine.navigator.current.id == "templates"


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def session() -> WizardSession:
    """In-memory wizard session."""
    return WizardSession(persist=False)


@pytest.fixture
def settings(tmp_path) -> WizardSettings:
    return WizardSettings(state_dir=tmp_path / "state")


@pytest.fixture
def version_authority() -> FakeVersionAuthority:
    return FakeVersionAuthority()


@pytest.fixture
def checkpoint_authority() -> FakeCheckpointAuthority:
    return FakeCheckpointAuthority()


@pytest.fixture
def resume_authority() -> FakeResumeAuthority:
    return FakeResumeAuthority()


@pytest.fixture
def validator() -> FakeConfigValidator:
    return FakeConfigValidator()


@pytest.fixture
def system_authority() -> FakeSystemAuthority:
    return FakeSystemAuthority()


@pytest.fixture
def engine(
    session,
    settings,
    version_authority,
    checkpoint_authority,
    resume_authority,
    validator,
    system_authority,
) -> WizardEngine:
    """Engine wired to in-memory authorities."""
    return WizardEngine(
        session=session,
        versions=version_authority,
        checkpoints=checkpoint_authority,
        resume=resume_authority,
        config_validator=validator,
        prerequisites=FakePrerequisites(make_report()),
        settings=settings,
        pointer=LocalPointer(),
        system=system_authority,
    )
