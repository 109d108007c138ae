"""
HTTP Authorities

Talks to the wizard backend over HTTP. Every transport failure, non-2xx
status without a structured body, or malformed payload surfaces as
AuthorityUnavailable.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..config.models import WizardSettings
from ..errors import AuthorityUnavailable
from ..preflight.models import PrerequisiteReport
from .base import (
    Checkpoint,
    CheckpointCreated,
    CheckpointDeleted,
    CheckpointRestore,
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

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Thin JSON client for the wizard backend.

    Args:
        base_url: API root, e.g. ``http://localhost:3000/api``
        timeout: Request timeout in seconds
        verify: TLS verification flag
        transport: Optional httpx transport (tests use MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: WizardSettings) -> "ApiClient":
        return cls(settings.api_url, timeout=settings.timeout, verify=settings.verify_ssl)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("POST", endpoint, json=data or {})

    async def delete(self, endpoint: str) -> Dict[str, Any]:
        return await self._request("DELETE", endpoint)

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            logger.error("API %s %s failed: %s", method, endpoint, e)
            raise AuthorityUnavailable(f"API {method} {endpoint} failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            # Structured refusals like {"success": false, "message": ...} are answers, not outages
            if isinstance(data, dict) and "success" in data:
                return data
            message = data.get("message") if isinstance(data, dict) else None
            logger.error("API %s %s returned %s", method, endpoint, response.status_code)
            raise AuthorityUnavailable(
                f"API {method} {endpoint} returned {response.status_code}: "
                f"{message or response.reason_phrase}"
            )

        if not isinstance(data, dict):
            raise AuthorityUnavailable(f"API {method} {endpoint} returned a non-object payload")
        return data

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _parse(model, payload: Dict[str, Any], what: str):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise AuthorityUnavailable(f"Malformed {what} response: {e}") from e


class HttpResumeAuthority:
    """Resume state held by the backend."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def can_resume(self) -> ResumeInfo:
        data = await self.api.get("/wizard/can-resume")
        return _parse(ResumeInfo, data, "can-resume")

    async def clear_state(self) -> bool:
        data = await self.api.post("/wizard/clear-state")
        return bool(data.get("success", True))


class HttpVersionAuthority:
    """Append-only configuration version log."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def save_version(
        self,
        config: Dict[str, Any],
        profiles: List[str],
        metadata: VersionMetadata,
    ) -> SaveVersionResult:
        data = await self.api.post("/rollback/save-version", {
            "config": config,
            "profiles": profiles,
            "metadata": metadata.model_dump(by_alias=True),
        })
        return _parse(SaveVersionResult, data, "save-version")

    async def undo(self, restart_services: bool = False) -> UndoResult:
        data = await self.api.post("/rollback/undo", {"restartServices": restart_services})
        return _parse(UndoResult, data, "undo")

    async def list_history(self, limit: int) -> List[Version]:
        data = await self.api.get("/rollback/history", params={"limit": limit})
        if not data.get("success", False):
            raise AuthorityUnavailable(data.get("message") or "Failed to load version history")
        return [_parse(Version, entry, "history entry") for entry in data.get("entries", [])]

    async def restore(self, version_id: str, restart_services: bool = False) -> RestoreVersionResult:
        data = await self.api.post("/rollback/restore", {
            "versionId": version_id,
            "restartServices": restart_services,
        })
        return _parse(RestoreVersionResult, data, "restore")

    async def compare(self, version1: str, version2: str) -> List[Dict[str, Any]]:
        data = await self.api.get("/rollback/compare", params={
            "version1": version1,
            "version2": version2,
        })
        if not data.get("success", False):
            raise AuthorityUnavailable(data.get("message") or "Failed to compare versions")
        return list(data.get("differences", []))


class HttpCheckpointAuthority:
    """Installation milestone checkpoints."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def create(self, stage: str, data: Dict[str, Any]) -> CheckpointCreated:
        payload = await self.api.post("/rollback/checkpoint", {"stage": stage, "data": data})
        return _parse(CheckpointCreated, payload, "checkpoint")

    async def list(self) -> List[Checkpoint]:
        payload = await self.api.get("/rollback/checkpoints")
        if not payload.get("success", False):
            raise AuthorityUnavailable(payload.get("message") or "Failed to load checkpoints")
        return [_parse(Checkpoint, c, "checkpoint entry") for c in payload.get("checkpoints", [])]

    async def restore(self, checkpoint_id: str) -> CheckpointRestore:
        payload = await self.api.post("/rollback/restore-checkpoint", {"checkpointId": checkpoint_id})
        return _parse(CheckpointRestore, payload, "restore-checkpoint")

    async def delete(self, checkpoint_id: str) -> CheckpointDeleted:
        payload = await self.api.delete(f"/rollback/checkpoint/{quote(checkpoint_id, safe='')}")
        return _parse(CheckpointDeleted, payload, "delete-checkpoint")


class HttpSystemAuthority:
    """Host cleanup and backup storage."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def start_over(
        self,
        delete_data: bool = True,
        delete_config: bool = True,
        delete_backups: bool = False,
    ) -> ResetResult:
        payload = await self.api.post("/rollback/start-over", {
            "deleteData": delete_data,
            "deleteConfig": delete_config,
            "deleteBackups": delete_backups,
        })
        return _parse(ResetResult, payload, "start-over")

    async def storage_usage(self) -> StorageUsage:
        payload = await self.api.get("/rollback/storage")
        return _parse(StorageUsage, payload, "storage")


class HttpConfigValidator:
    """Server-side semantic configuration validation."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def validate(self, config: Dict[str, Any]) -> ValidationReport:
        data = await self.api.post("/config/validate", config)
        return _parse(ValidationReport, data, "config validation")


class HttpPrerequisiteService:
    """Prerequisite checks run by the backend host."""

    def __init__(self, api: ApiClient, required_ports: Optional[List[int]] = None):
        self.api = api
        self.required_ports = list(required_ports or [])

    async def run(self) -> PrerequisiteReport:
        params = {"ports": ",".join(str(p) for p in self.required_ports)} if self.required_ports else None
        data = await self.api.get("/system-check", params=params)
        return PrerequisiteReport.from_api(data)
