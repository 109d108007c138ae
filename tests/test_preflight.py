"""Tests for prerequisite checks."""

import subprocess

import pytest

from conftest import make_report
from setupwizard.preflight.checker import PrerequisiteChecker
from setupwizard.preflight.models import CheckCategory, PrerequisiteReport


def fake_runner(outputs):
    """Runner answering version commands from a dict keyed by the joined command."""

    def run(args):
        key = " ".join(args)
        if key not in outputs:
            raise FileNotFoundError(key)
        return subprocess.CompletedProcess(args, 0, stdout=outputs[key], stderr="")

    return run


@pytest.fixture
def docker_on_path(monkeypatch):
    monkeypatch.setattr("setupwizard.preflight.checker.shutil.which", lambda name: f"/usr/bin/{name}")


class TestPrerequisiteChecker:
    def test_tooling_detected(self, docker_on_path) -> None:
        checker = PrerequisiteChecker(
            min_cpu_cores=1,
            min_memory_gb=0.001,
            min_disk_gb=0,
            runner=fake_runner({
                "docker --version": "Docker version 24.0.7, build afdd53b",
                "docker compose version": "Docker Compose version v2.23.0",
            }),
        )

        report = checker.run_all()

        assert report.hard_failures == []
        docker = next(c for c in report.checks if c.key == "docker")
        assert "24.0.7" in docker.message
        assert report.can_proceed

    def test_legacy_compose_binary(self, docker_on_path) -> None:
        checker = PrerequisiteChecker(runner=fake_runner({
            "docker --version": "Docker version 20.10.0, build 1",
            "docker-compose version": "docker-compose version 1.29.2, build 5becea4c",
        }))

        compose = checker._check_compose()

        assert compose.passed
        assert "1.29.2" in compose.message

    def test_missing_docker_is_hard_failure(self, monkeypatch) -> None:
        monkeypatch.setattr("setupwizard.preflight.checker.shutil.which", lambda name: None)

        report = PrerequisiteChecker(runner=fake_runner({})).run_all()

        assert {c.key for c in report.hard_failures} == {"docker", "compose"}
        assert not report.can_proceed

    def test_resource_minimums_are_soft(self, docker_on_path) -> None:
        checker = PrerequisiteChecker(
            min_cpu_cores=100000,
            min_memory_gb=10 ** 9,
            runner=fake_runner({
                "docker --version": "Docker version 24.0.7",
                "docker compose version": "Docker Compose version v2.23.0",
            }),
        )

        report = checker.run_all()

        assert {c.key for c in report.soft_failures} == {"cpu", "memory"}
        assert report.can_proceed

    @pytest.mark.asyncio
    async def test_async_run(self, monkeypatch) -> None:
        monkeypatch.setattr("setupwizard.preflight.checker.shutil.which", lambda name: None)
        report = await PrerequisiteChecker(runner=fake_runner({})).run()
        assert isinstance(report, PrerequisiteReport)


class TestPrerequisiteReport:
    def test_summary(self) -> None:
        assert make_report().summary().startswith("PASSED:")
        assert make_report(memory=False).summary().startswith("PASSED with warnings")
        assert make_report(docker=False).summary().startswith("FAILED")

    def test_dict_round_trip_keeps_categories(self) -> None:
        report = make_report(cpu=False)
        restored = PrerequisiteReport.from_dict(report.to_dict())
        assert [c.key for c in restored.soft_failures] == ["cpu"]
        assert restored.checks[2].category == CheckCategory.RESOURCES

    def test_from_api_skips_unknown_resources(self) -> None:
        report = PrerequisiteReport.from_api({
            "docker": {"installed": True},
            "dockerCompose": {"installed": True},
            "resources": {"disk": {"meetsMinimum": None}},
        })
        assert [c.key for c in report.checks] == ["docker", "compose"]
