"""Tests for the HTTP authorities against a mock transport."""

import json
from typing import Callable

import httpx
import pytest

from setupwizard.authority.base import VersionMetadata
from setupwizard.authority.http import (
    ApiClient,
    HttpCheckpointAuthority,
    HttpConfigValidator,
    HttpPrerequisiteService,
    HttpResumeAuthority,
    HttpSystemAuthority,
    HttpVersionAuthority,
)
from setupwizard.errors import AuthorityUnavailable

BASE_URL = "http://wizard.test/api"


def client(handler: Callable[[httpx.Request], httpx.Response]) -> ApiClient:
    return ApiClient(BASE_URL, transport=httpx.MockTransport(handler))


class TestApiClient:
    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self) -> None:
        api = client(lambda request: httpx.Response(503, json={"error": "down"}))
        async with api:
            with pytest.raises(AuthorityUnavailable):
                await HttpResumeAuthority(api).can_resume()

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self) -> None:
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client(handler) as api:
            with pytest.raises(AuthorityUnavailable):
                await HttpVersionAuthority(api).undo()

    @pytest.mark.asyncio
    async def test_structured_refusal_is_returned(self) -> None:
        """A 4xx carrying success=false is an answer, not an outage."""
        api = client(lambda request: httpx.Response(
            400, json={"success": False, "message": "No previous version to undo to"},
        ))
        async with api:
            result = await HttpVersionAuthority(api).undo()

        assert not result.success
        assert result.message == "No previous version to undo to"

    @pytest.mark.asyncio
    async def test_non_object_payload(self) -> None:
        async with client(lambda request: httpx.Response(200, json=[1, 2])) as api:
            with pytest.raises(AuthorityUnavailable):
                await HttpConfigValidator(api).validate({})


class TestResume:
    @pytest.mark.asyncio
    async def test_nested_state(self) -> None:
        def handler(request):
            assert request.url.path == "/api/wizard/can-resume"
            return httpx.Response(200, json={
                "canResume": True,
                "hoursSinceActivity": 1.5,
                "state": {
                    "currentStep": 6,
                    "phase": "configuring",
                    "profiles": {"selected": ["core"], "configuration": {"EXTERNAL_IP": "10.0.0.5"}},
                    "backgroundTasks": [{"id": "sync", "status": "running"}],
                },
            })

        async with client(handler) as api:
            info = await HttpResumeAuthority(api).can_resume()

        assert info.can_resume
        assert info.current_step == 6
        assert info.profiles == ["core"]
        assert info.background_tasks == [{"id": "sync", "status": "running"}]

    @pytest.mark.asyncio
    async def test_clear_state(self) -> None:
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"success": True})

        async with client(handler) as api:
            assert await HttpResumeAuthority(api).clear_state()
        assert seen == [("POST", "/api/wizard/clear-state")]


class TestVersions:
    @pytest.mark.asyncio
    async def test_save_sends_camel_case_metadata(self) -> None:
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "versionId": "v-123"})

        async with client(handler) as api:
            result = await HttpVersionAuthority(api).save_version(
                {"EXTERNAL_IP": "10.0.0.5"},
                ["core"],
                VersionMetadata(action="step-complete", description="Completed step: configure"),
            )

        assert result.version_id == "v-123"
        assert bodies[0]["profiles"] == ["core"]
        assert bodies[0]["metadata"]["action"] == "step-complete"

    @pytest.mark.asyncio
    async def test_history_parsing(self) -> None:
        def handler(request):
            assert request.url.params["limit"] == "5"
            return httpx.Response(200, json={"success": True, "entries": [{
                "versionId": "v-2",
                "profiles": ["core", "mining"],
                "config": {"MINING_ADDRESS": "kaspa:abc"},
                "metadata": {"action": "manual-save", "description": "", "timestamp": "2026-01-01T00:00:00"},
                "age": "2 minutes ago",
            }]})

        async with client(handler) as api:
            history = await HttpVersionAuthority(api).list_history(5)

        assert history[0].version_id == "v-2"
        assert history[0].metadata.action == "manual-save"

    @pytest.mark.asyncio
    async def test_restart_services_flag(self) -> None:
        bodies = []

        def handler(request):
            bodies.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"success": True, "profiles": ["core"], "config": {}})

        async with client(handler) as api:
            authority = HttpVersionAuthority(api)
            await authority.undo(restart_services=True)
            await authority.restore("v-1", restart_services=True)

        assert bodies == [
            ("/api/rollback/undo", {"restartServices": True}),
            ("/api/rollback/restore", {"versionId": "v-1", "restartServices": True}),
        ]

    @pytest.mark.asyncio
    async def test_restart_error_is_parsed(self) -> None:
        api = client(lambda request: httpx.Response(200, json={
            "success": True,
            "profiles": ["core"],
            "config": {},
            "restartError": "compose up exited with 1",
        }))
        async with api:
            result = await HttpVersionAuthority(api).undo(restart_services=True)

        assert result.restart_error == "compose up exited with 1"

    @pytest.mark.asyncio
    async def test_history_failure(self) -> None:
        api = client(lambda request: httpx.Response(200, json={"success": False, "message": "disk full"}))
        async with api:
            with pytest.raises(AuthorityUnavailable, match="disk full"):
                await HttpVersionAuthority(api).list_history(10)


class TestCheckpoints:
    @pytest.mark.asyncio
    async def test_create_and_restore(self) -> None:
        def handler(request):
            if request.url.path.endswith("/rollback/checkpoint"):
                body = json.loads(request.content)
                assert body["stage"] == "pre-install"
                return httpx.Response(200, json={"success": True, "checkpointId": "cp-9", "timestamp": "t"})
            body = json.loads(request.content)
            assert body == {"checkpointId": "cp-9"}
            return httpx.Response(200, json={
                "success": True,
                "stage": "pre-install",
                "data": {"current_step": 8},
            })

        async with client(handler) as api:
            authority = HttpCheckpointAuthority(api)
            created = await authority.create("pre-install", {"current_step": 8})
            restored = await authority.restore(created.checkpoint_id)

        assert created.checkpoint_id == "cp-9"
        assert restored.data == {"current_step": 8}

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"success": True, "checkpointId": "cp-1"})

        async with client(handler) as api:
            result = await HttpCheckpointAuthority(api).delete("cp-1")

        assert result.success
        assert seen == [("DELETE", "/api/rollback/checkpoint/cp-1")]

    @pytest.mark.asyncio
    async def test_delete_not_found(self) -> None:
        api = client(lambda request: httpx.Response(404, json={"success": False, "error": "Checkpoint not found"}))
        async with api:
            result = await HttpCheckpointAuthority(api).delete("cp-404")

        assert not result.success
        assert result.error == "Checkpoint not found"

    @pytest.mark.asyncio
    async def test_malformed_entry(self) -> None:
        api = client(lambda request: httpx.Response(200, json={"success": True, "checkpoints": [{"stage": "x"}]}))
        async with api:
            with pytest.raises(AuthorityUnavailable):
                await HttpCheckpointAuthority(api).list()


class TestSystem:
    @pytest.mark.asyncio
    async def test_start_over(self) -> None:
        bodies = []

        def handler(request):
            assert request.url.path == "/api/rollback/start-over"
            bodies.append(json.loads(request.content))
            return httpx.Response(500, json={
                "success": False,
                "actions": [
                    {"action": "stop-services", "success": True},
                    {"action": "remove-volumes", "success": False, "error": "volume is in use"},
                ],
                "message": "Some actions failed during start over",
            })

        async with client(handler) as api:
            result = await HttpSystemAuthority(api).start_over(
                delete_data=True, delete_config=False, delete_backups=True,
            )

        assert bodies == [{"deleteData": True, "deleteConfig": False, "deleteBackups": True}]
        assert not result.success
        assert [a.action for a in result.failed] == ["remove-volumes"]
        assert result.failed[0].error == "volume is in use"

    @pytest.mark.asyncio
    async def test_storage_usage(self) -> None:
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/api/rollback/storage"
            return httpx.Response(200, json={
                "success": True,
                "totalSize": 2621440,
                "totalSizeMB": 2.5,
                "fileCount": 7,
                "backupDir": "/app/.kaspa-backups",
            })

        async with client(handler) as api:
            usage = await HttpSystemAuthority(api).storage_usage()

        assert usage.total_size == 2621440
        assert usage.total_size_mb == 2.5
        assert usage.file_count == 7
        assert usage.backup_dir == "/app/.kaspa-backups"


class TestValidationAndSystemCheck:
    @pytest.mark.asyncio
    async def test_validation_errors(self) -> None:
        api = client(lambda request: httpx.Response(200, json={
            "valid": False,
            "errors": [{"field": "KASPA_NODE_P2P_PORT", "message": "Port conflict"}],
        }))
        async with api:
            report = await HttpConfigValidator(api).validate({"KASPA_NODE_P2P_PORT": 16111})

        assert not report.valid
        assert report.errors[0].field == "KASPA_NODE_P2P_PORT"

    @pytest.mark.asyncio
    async def test_system_check(self) -> None:
        def handler(request):
            assert request.url.params["ports"] == "16110,16111"
            return httpx.Response(200, json={
                "docker": {"installed": True, "message": "Docker 24.0.7"},
                "dockerCompose": {"installed": False, "remediation": "Install the compose plugin"},
                "resources": {
                    "memory": {"meetsMinimum": False, "message": "2 GB"},
                    "cpu": {"meetsMinimum": True, "message": "8 cores"},
                },
                "ports": {"16110": {"available": True}, "16111": {"available": False}},
            })

        async with client(handler) as api:
            report = await HttpPrerequisiteService(api, [16110, 16111]).run()

        assert [c.key for c in report.hard_failures] == ["compose"]
        assert [c.key for c in report.soft_failures] == ["memory"]
        assert not report.can_proceed
