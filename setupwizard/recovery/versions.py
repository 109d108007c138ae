"""
Version Manager

Snapshots profile and configuration selections to the version authority
and restores them on undo or explicit restore.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..authority.base import Version, VersionAuthority, VersionMetadata
from ..errors import WizardError
from ..wizard.state import WizardSession
from .guard import VERSIONS, InFlightGuard
from .outcome import RecoveryOutcome

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


def always_confirm(prompt: str) -> bool:
    return True


class VersionManager:
    """
    Client side of the append-only version log.

    The authority owns the log; ``history`` holds the most recently
    loaded entries, newest first.
    """

    def __init__(
        self,
        session: WizardSession,
        authority: VersionAuthority,
        guard: Optional[InFlightGuard] = None,
        confirm: Confirm = always_confirm,
        history_limit: int = 10,
    ):
        """
        Initialize the manager.

        Args:
            session: Wizard session to snapshot and restore
            authority: Version authority
            guard: Shared in-flight guard
            confirm: Asked before undo and restore; False cancels
            history_limit: Number of versions to load by default
        """
        self.session = session
        self.authority = authority
        self.guard = guard or InFlightGuard()
        self.confirm = confirm
        self.history_limit = history_limit
        self.history: List[Version] = []

    async def save_version(self, description: str = "", action: str = "manual-save") -> RecoveryOutcome:
        """
        Save the current selections as a new version.

        Nothing is written when both profiles and configuration are empty.

        Returns:
            RecoveryOutcome with ``version_id`` on success
        """
        profiles = self.session.selected_profiles
        config = self.session.configuration
        if not profiles and not config:
            logger.debug("Skipping version save: nothing selected yet")
            return RecoveryOutcome.info("Nothing to save")

        metadata = VersionMetadata(
            action=action,
            description=description,
            timestamp=datetime.now().isoformat(),
        )
        try:
            with self.guard.hold(VERSIONS):
                result = await self.authority.save_version(config, profiles, metadata)
        except WizardError as e:
            logger.warning("Failed to save version: %s", e.message)
            return RecoveryOutcome.failure(e)

        if not result.success:
            logger.warning("Version authority refused save: %s", result.message)
            return RecoveryOutcome.failure(WizardError(result.message or "Failed to save version"))

        logger.info("Saved configuration version %s", result.version_id)
        await self.load_history()
        return RecoveryOutcome.success("Configuration version saved", version_id=result.version_id)

    async def undo(self, restart_services: bool = False) -> RecoveryOutcome:
        """
        Revert to the previous version after confirmation.

        Args:
            restart_services: Ask the host to restart services with the
                restored profiles
        """
        if not self.confirm("Undo the last configuration change?"):
            return RecoveryOutcome.cancelled()

        try:
            with self.guard.hold(VERSIONS):
                result = await self.authority.undo(restart_services)
        except WizardError as e:
            logger.warning("Undo failed: %s", e.message)
            return RecoveryOutcome.failure(e)

        if not result.success:
            return RecoveryOutcome.info(result.message or "Nothing to undo")

        self._apply(result.profiles, result.config)
        logger.info("Undid last configuration change")
        await self.load_history()
        return self._restored("Configuration restored to previous version", result.restart_error)

    async def restore_version(self, version_id: str, restart_services: bool = False) -> RecoveryOutcome:
        """Copy a past version forward as the current selections."""
        if not self.confirm(f"Restore configuration version {version_id}?"):
            return RecoveryOutcome.cancelled()

        try:
            with self.guard.hold(VERSIONS):
                result = await self.authority.restore(version_id, restart_services)
        except WizardError as e:
            logger.warning("Restore of version %s failed: %s", version_id, e.message)
            return RecoveryOutcome.failure(e)

        if not result.success:
            return RecoveryOutcome.failure(WizardError(result.message or f"Failed to restore version {version_id}"))

        self._apply(result.profiles, result.config)
        logger.info("Restored configuration version %s", version_id)
        await self.load_history()
        return self._restored(f"Restored version {version_id}", result.restart_error, version_id=version_id)

    async def load_history(self, limit: Optional[int] = None) -> RecoveryOutcome:
        """
        Load the most recent versions.

        Args:
            limit: Maximum entries (defaults to ``history_limit``)

        Returns:
            RecoveryOutcome with ``versions``
        """
        try:
            with self.guard.hold(VERSIONS):
                versions = await self.authority.list_history(limit or self.history_limit)
        except WizardError as e:
            logger.warning("Failed to load version history: %s", e.message)
            return RecoveryOutcome.failure(e)

        self.history = list(versions)
        self.session.set("version_history", [v.model_dump() for v in self.history])
        return RecoveryOutcome.success(versions=self.history)

    async def compare(self, version1: str, version2: str) -> RecoveryOutcome:
        """Diff two versions on the authority."""
        try:
            with self.guard.hold(VERSIONS):
                differences = await self.authority.compare(version1, version2)
        except WizardError as e:
            return RecoveryOutcome.failure(e)
        return RecoveryOutcome.success(differences=differences)

    def _restored(self, message: str, restart_error: Optional[str], **data) -> RecoveryOutcome:
        # The selections are restored even when the service restart failed
        if restart_error:
            logger.warning("Service restart after restore failed: %s", restart_error)
            return RecoveryOutcome.warning(
                f"{message}, but services restart failed: {restart_error}",
                restart_error=restart_error,
                **data,
            )
        return RecoveryOutcome.success(message, **data)

    def _apply(self, profiles: Optional[List[str]], config: Optional[dict]) -> None:
        if profiles is not None:
            self.session.set("selected_profiles", profiles)
        if config is not None:
            self.session.set("configuration", config)
