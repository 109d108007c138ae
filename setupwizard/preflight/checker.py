"""
Prerequisite Checker

Inspects the local machine for the container runtime, its compose tool,
resource minimums and free ports.
"""

import asyncio
import errno
import logging
import os
import re
import shutil
import socket
import subprocess
from typing import Callable, List, Optional, Sequence

from .models import CheckCategory, CheckResult, CheckSeverity, PrerequisiteReport

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str]], subprocess.CompletedProcess]

GIB = 1024 ** 3


def _run_command(args: Sequence[str]) -> subprocess.CompletedProcess:
    return subprocess.run(list(args), capture_output=True, text=True, timeout=15)


class PrerequisiteChecker:
    """
    Runs the local prerequisite checks.

    Checks:
    - Docker is installed
    - Docker Compose v2 (or the legacy binary) is installed
    - CPU, memory and disk meet the minimums
    - Required ports are free
    """

    def __init__(
        self,
        min_cpu_cores: int = 2,
        min_memory_gb: float = 4.0,
        min_disk_gb: float = 100.0,
        required_ports: Optional[List[int]] = None,
        runner: Optional[CommandRunner] = None,
    ):
        """
        Initialize the checker.

        Args:
            min_cpu_cores: Minimum CPU core count
            min_memory_gb: Minimum total memory in GB
            min_disk_gb: Minimum free disk in GB
            required_ports: Ports that must be free
            runner: Command runner, replaced in tests
        """
        self.min_cpu_cores = min_cpu_cores
        self.min_memory_gb = min_memory_gb
        self.min_disk_gb = min_disk_gb
        self.required_ports = list(required_ports or [])
        self.runner = runner or _run_command

    async def run(self) -> PrerequisiteReport:
        """Run all checks without blocking the event loop."""
        return await asyncio.to_thread(self.run_all)

    def run_all(self) -> PrerequisiteReport:
        """
        Run all prerequisite checks.

        Returns:
            PrerequisiteReport with all check results
        """
        checks = [
            self._check_docker(),
            self._check_compose(),
            self._check_cpu(),
            self._check_memory(),
            self._check_disk_space(),
        ]
        checks.extend(self._check_port(port) for port in self.required_ports)

        report = PrerequisiteReport(checks=checks)
        logger.info("Prerequisite check: %s", report.summary())
        return report

    def _version_of(self, args: Sequence[str], pattern: str) -> Optional[str]:
        """Run a version command; None when the tool is unavailable."""
        try:
            result = self.runner(args)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Command %s failed: %s", " ".join(args), e)
            return None

        if result.returncode != 0:
            return None

        match = re.search(pattern, result.stdout or "")
        return match.group(1) if match else "unknown"

    def _check_docker(self) -> CheckResult:
        """Check the container runtime is installed."""
        version = None
        if shutil.which("docker"):
            version = self._version_of(["docker", "--version"], r"Docker version (\d+\.\d+\.\d+)")

        if version is None:
            return CheckResult(
                key="docker",
                name="Docker",
                passed=False,
                severity=CheckSeverity.ERROR,
                message="Docker is not installed or not accessible",
                details=["Please install Docker from https://docs.docker.com/get-docker/"],
            )

        return CheckResult(
            key="docker",
            name="Docker",
            passed=True,
            severity=CheckSeverity.INFO,
            message=f"Docker is installed: {version}",
        )

    def _check_compose(self) -> CheckResult:
        """Check the compose tool is installed."""
        version = None
        if shutil.which("docker"):
            version = self._version_of(["docker", "compose", "version"], r"version v?(\d+\.\d+\.\d+)")
        if version is None and shutil.which("docker-compose"):
            version = self._version_of(["docker-compose", "version"], r"version v?(\d+\.\d+\.\d+)")

        if version is None:
            return CheckResult(
                key="compose",
                name="Docker Compose",
                passed=False,
                severity=CheckSeverity.ERROR,
                message="Docker Compose is not installed or not accessible",
                details=["Docker Compose v2 is required. Install the Docker Compose plugin"],
            )

        return CheckResult(
            key="compose",
            name="Docker Compose",
            passed=True,
            severity=CheckSeverity.INFO,
            message=f"Docker Compose is installed: {version}",
        )

    def _check_cpu(self) -> CheckResult:
        count = os.cpu_count() or 0
        ok = count >= self.min_cpu_cores
        return CheckResult(
            key="cpu",
            name="CPU",
            passed=ok,
            severity=CheckSeverity.INFO if ok else CheckSeverity.WARNING,
            message=(
                f"CPU: {count} cores - OK" if ok
                else f"CPU: {count} cores - WARNING: Minimum {self.min_cpu_cores} cores recommended"
            ),
            category=CheckCategory.RESOURCES,
        )

    def _check_memory(self) -> CheckResult:
        try:
            total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
        except (AttributeError, ValueError, OSError) as e:
            return CheckResult(
                key="memory",
                name="Memory",
                passed=True,
                severity=CheckSeverity.INFO,
                message=f"Could not check memory: {e}",
                category=CheckCategory.RESOURCES,
            )

        total_gb = total / GIB
        ok = total_gb >= self.min_memory_gb
        return CheckResult(
            key="memory",
            name="Memory",
            passed=ok,
            severity=CheckSeverity.INFO if ok else CheckSeverity.WARNING,
            message=(
                f"Memory: {total_gb:.2f} GB total - OK" if ok
                else f"Memory: {total_gb:.2f} GB total - WARNING: Minimum {self.min_memory_gb:g}GB recommended"
            ),
            category=CheckCategory.RESOURCES,
        )

    def _check_disk_space(self) -> CheckResult:
        """Check available disk space."""
        try:
            _, _, free = shutil.disk_usage(".")
        except OSError as e:
            return CheckResult(
                key="disk",
                name="Disk Space",
                passed=True,
                severity=CheckSeverity.INFO,
                message=f"Could not check disk space: {e}",
                category=CheckCategory.RESOURCES,
            )

        free_gb = free / GIB
        ok = free_gb >= self.min_disk_gb
        return CheckResult(
            key="disk",
            name="Disk Space",
            passed=ok,
            severity=CheckSeverity.INFO if ok else CheckSeverity.WARNING,
            message=(
                f"Disk: {free_gb:.1f} GB available - OK" if ok
                else f"Disk: {free_gb:.1f} GB available - WARNING: Minimum {self.min_disk_gb:g}GB recommended"
            ),
            category=CheckCategory.RESOURCES,
        )

    def _check_port(self, port: int) -> CheckResult:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind(("", port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                message = f"Port {port} is already in use"
            else:
                message = f"Unable to check port {port}: {e}"
            return CheckResult(
                key=f"port:{port}",
                name=f"Port {port}",
                passed=False,
                severity=CheckSeverity.WARNING,
                message=message,
                category=CheckCategory.PORTS,
                details=[f"Stop the service using port {port} or choose a different port"],
            )
        finally:
            sock.close()

        return CheckResult(
            key=f"port:{port}",
            name=f"Port {port}",
            passed=True,
            severity=CheckSeverity.INFO,
            message=f"Port {port} is available",
            category=CheckCategory.PORTS,
        )
