"""
System Reset

Host-level cleanup (containers, volumes, configuration, backups) and
backup storage usage. A reset that succeeds also discards the local
session; a partial failure leaves it alone and names the failed actions.
"""

import logging
from typing import Optional

from ..authority.base import SystemAuthority
from ..errors import AuthorityUnavailable, WizardError
from ..wizard.navigator import NavigationController
from ..wizard.state import WizardSession
from .checkpoints import LocalPointer
from .guard import SYSTEM, InFlightGuard
from .outcome import RecoveryOutcome
from .versions import Confirm, always_confirm

logger = logging.getLogger(__name__)


class SystemManager:
    """Resets the host installation and reports backup storage."""

    def __init__(
        self,
        session: WizardSession,
        authority: Optional[SystemAuthority],
        navigator: NavigationController,
        pointer: Optional[LocalPointer] = None,
        guard: Optional[InFlightGuard] = None,
        confirm: Confirm = always_confirm,
    ):
        self.session = session
        self.authority = authority
        self.navigator = navigator
        self.pointer = pointer or LocalPointer()
        self.guard = guard or InFlightGuard()
        self.confirm = confirm

    async def reset(
        self,
        delete_data: bool = True,
        delete_config: bool = True,
        delete_backups: bool = False,
    ) -> RecoveryOutcome:
        """
        Stop services and remove the installation after confirmation.

        Args:
            delete_data: Remove containers and volumes
            delete_config: Remove the generated configuration files
            delete_backups: Remove saved versions and checkpoints

        Returns:
            RecoveryOutcome with ``actions``; failed actions are listed in
            ``failed`` as ``"action: error"``
        """
        if self.authority is None:
            return RecoveryOutcome.failure(AuthorityUnavailable("System reset is not available"))

        if not self.confirm(
            "This will remove all containers, volumes, and configurations. "
            "Are you sure you want to start over?"
        ):
            return RecoveryOutcome.cancelled()

        try:
            with self.guard.hold(SYSTEM):
                result = await self.authority.start_over(delete_data, delete_config, delete_backups)
        except WizardError as e:
            logger.warning("System reset failed: %s", e.message)
            return RecoveryOutcome.failure(e)

        actions = [a.model_dump() for a in result.actions]
        if not result.success:
            failed = [f"{a.action}: {a.error or 'failed'}" for a in result.failed]
            logger.error("System reset incomplete: %s", "; ".join(failed) or result.message)
            outcome = RecoveryOutcome.failure(
                WizardError(result.message or "Some actions failed during start over", details=failed)
            )
            outcome.data = {"actions": actions, "failed": failed}
            return outcome

        self.session.clear()
        self.pointer.clear()
        self.navigator.goto(1, reset_history=True)

        logger.info("System reset to a clean state")
        return RecoveryOutcome.success(result.message or "System reset successfully", actions=actions)

    async def storage_usage(self) -> RecoveryOutcome:
        """Get backup storage usage (``usage`` in data)."""
        if self.authority is None:
            return RecoveryOutcome.failure(AuthorityUnavailable("Storage usage is not available"))

        try:
            with self.guard.hold(SYSTEM):
                usage = await self.authority.storage_usage()
        except WizardError as e:
            logger.warning("Failed to get storage usage: %s", e.message)
            return RecoveryOutcome.failure(e)

        if not usage.success:
            return RecoveryOutcome.failure(WizardError(usage.error or "Failed to get storage usage"))
        return RecoveryOutcome.success(usage=usage)
