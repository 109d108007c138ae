"""
Prerequisite Check Models

Shared data types for the prerequisite report the checklist gate consumes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class CheckSeverity(str, Enum):
    """Severity levels for check results."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class CheckCategory(str, Enum):
    """What a check inspects."""
    TOOLING = "tooling"
    RESOURCES = "resources"
    PORTS = "ports"


# Resource checks whose failure blocks the checklist unless acknowledged.
GATING_RESOURCES = frozenset({"cpu", "memory"})


@dataclass
class CheckResult:
    """Result of a single prerequisite check."""
    key: str
    name: str
    passed: bool
    severity: CheckSeverity
    message: str
    category: CheckCategory = CheckCategory.TOOLING
    details: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"[{status}] {self.name}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "passed": self.passed,
            "severity": self.severity.value,
            "message": self.message,
            "category": self.category.value,
            "details": list(self.details),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckResult":
        return cls(
            key=data["key"],
            name=data.get("name", data["key"]),
            passed=bool(data.get("passed", False)),
            severity=CheckSeverity(data.get("severity", "error")),
            message=data.get("message", ""),
            category=CheckCategory(data.get("category", "tooling")),
            details=list(data.get("details", [])),
        )


@dataclass
class PrerequisiteReport:
    """Complete prerequisite check results."""
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def hard_failures(self) -> List[CheckResult]:
        """Missing runtime or orchestration tooling."""
        return [
            c for c in self.checks
            if not c.passed and c.category == CheckCategory.TOOLING
        ]

    @property
    def soft_failures(self) -> List[CheckResult]:
        """Resource minimums (CPU/memory) that were not met."""
        return [
            c for c in self.checks
            if not c.passed
            and c.category == CheckCategory.RESOURCES
            and c.key in GATING_RESOURCES
        ]

    @property
    def warnings(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed and c.severity == CheckSeverity.WARNING]

    @property
    def can_proceed(self) -> bool:
        return not self.hard_failures

    def summary(self) -> str:
        """Get summary string."""
        total = len(self.checks)
        passed = len([c for c in self.checks if c.passed])

        if self.hard_failures:
            status = "FAILED"
        elif self.warnings:
            status = "PASSED with warnings"
        else:
            status = "PASSED"

        return (
            f"{status}: {passed}/{total} checks passed "
            f"({len(self.hard_failures)} errors, {len(self.warnings)} warnings)"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"checks": [c.to_dict() for c in self.checks]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrerequisiteReport":
        return cls(checks=[CheckResult.from_dict(c) for c in data.get("checks", [])])

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "PrerequisiteReport":
        """
        Build a report from the backend's system-check response.

        The backend reports ``docker``, ``dockerCompose``, ``resources``
        (memory/cpu/disk with ``meetsMinimum``) and ``ports``.
        """
        checks: List[CheckResult] = []

        for key, name, section in (
            ("docker", "Docker", payload.get("docker") or {}),
            ("compose", "Docker Compose", payload.get("dockerCompose") or {}),
        ):
            installed = bool(section.get("installed"))
            details = [section["remediation"]] if section.get("remediation") else []
            checks.append(CheckResult(
                key=key,
                name=name,
                passed=installed,
                severity=CheckSeverity.INFO if installed else CheckSeverity.ERROR,
                message=section.get("message", f"{name} {'installed' if installed else 'not installed'}"),
                category=CheckCategory.TOOLING,
                details=details,
            ))

        resources = payload.get("resources") or {}
        for key, name in (("cpu", "CPU"), ("memory", "Memory"), ("disk", "Disk Space")):
            section = resources.get(key)
            if not section or "meetsMinimum" not in section or section["meetsMinimum"] is None:
                continue
            ok = bool(section["meetsMinimum"])
            checks.append(CheckResult(
                key=key,
                name=name,
                passed=ok,
                severity=CheckSeverity.INFO if ok else CheckSeverity.WARNING,
                message=section.get("message", ""),
                category=CheckCategory.RESOURCES,
            ))

        for port, status in (payload.get("ports") or {}).items():
            ok = bool(status.get("available"))
            checks.append(CheckResult(
                key=f"port:{port}",
                name=f"Port {port}",
                passed=ok,
                severity=CheckSeverity.INFO if ok else CheckSeverity.WARNING,
                message=status.get("message", ""),
                category=CheckCategory.PORTS,
                details=[status["remediation"]] if status.get("remediation") else [],
            ))

        return cls(checks=checks)
