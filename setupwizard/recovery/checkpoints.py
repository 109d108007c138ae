"""
Checkpoint Manager

Installation milestones that can be restored later. The authority holds
the checkpoints; a local pointer file remembers the latest id so an
interrupted session can be found again.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..authority.base import Checkpoint, CheckpointAuthority
from ..errors import BoundsViolation, TransitionPending, WizardError
from ..wizard.navigator import NavigationController
from ..wizard.state import NavigationPath, WizardSession
from .guard import CHECKPOINTS, InFlightGuard
from .outcome import RecoveryOutcome
from .versions import Confirm, always_confirm

logger = logging.getLogger(__name__)

# Template selection stored with the path so a restored path stays consistent
TEMPLATE_KEYS = ("selected_template", "template_applied", "custom_setup")


class LocalPointer:
    """
    Cache of the latest checkpoint id.

    Backed by a file when a path is given, otherwise kept in memory.
    The authority stays the source of truth.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._value: Optional[str] = None

    def read(self) -> Optional[str]:
        if self.path is None:
            return self._value
        if not self.path.exists():
            return None
        try:
            value = self.path.read_text().strip()
        except OSError as e:
            logger.warning("Could not read checkpoint pointer %s: %s", self.path, e)
            return None
        return value or None

    def write(self, checkpoint_id: str) -> None:
        self._value = checkpoint_id
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(checkpoint_id)

    def clear(self) -> None:
        self._value = None
        if self.path is not None and self.path.exists():
            self.path.unlink()


class CheckpointManager:
    """Creates, lists and restores installation checkpoints."""

    def __init__(
        self,
        session: WizardSession,
        authority: CheckpointAuthority,
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

    def snapshot(self, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Build checkpoint data from the current session."""
        snapshot = dict(data or {})
        snapshot.update({
            "current_step": self.session.current_step,
            "navigation_path": self.session.navigation_path.value,
            "selected_template": self.session.selected_template,
            "template_applied": self.session.template_applied,
            "custom_setup": self.session.custom_setup,
            "configuration": self.session.configuration,
            "selected_profiles": self.session.selected_profiles,
            "timestamp": datetime.now().isoformat(),
        })
        return snapshot

    async def create(self, stage: str, data: Optional[Dict[str, Any]] = None) -> RecoveryOutcome:
        """
        Create a checkpoint for an installation stage.

        Args:
            stage: Milestone name, e.g. "pre-install"
            data: Extra stage data stored alongside the session snapshot

        Returns:
            RecoveryOutcome with ``checkpoint_id`` on success
        """
        try:
            with self.guard.hold(CHECKPOINTS):
                result = await self.authority.create(stage, self.snapshot(data))
        except WizardError as e:
            logger.warning("Failed to create checkpoint '%s': %s", stage, e.message)
            return RecoveryOutcome.failure(e)

        if not result.success or not result.checkpoint_id:
            return RecoveryOutcome.failure(WizardError(result.message or f"Failed to create checkpoint '{stage}'"))

        self.pointer.write(result.checkpoint_id)
        known = self.session.checkpoints
        known.append({
            "checkpoint_id": result.checkpoint_id,
            "stage": stage,
            "timestamp": result.timestamp,
        })
        self.session.set("checkpoints", known)

        logger.info("Created checkpoint %s at stage '%s'", result.checkpoint_id, stage)
        return RecoveryOutcome.success(
            f"Checkpoint created: {stage}",
            checkpoint_id=result.checkpoint_id,
            stage=stage,
        )

    async def list(self) -> RecoveryOutcome:
        """List checkpoints known to the authority (``checkpoints`` in data)."""
        try:
            with self.guard.hold(CHECKPOINTS):
                checkpoints = await self.authority.list()
        except WizardError as e:
            logger.warning("Failed to list checkpoints: %s", e.message)
            return RecoveryOutcome.failure(e)
        return RecoveryOutcome.success(checkpoints=checkpoints)

    async def restore(self, checkpoint_id: str) -> RecoveryOutcome:
        """
        Restore the session to a checkpoint after confirmation.

        The checkpoint is validated first; nothing is applied when its step
        or path is unusable. Configuration, profiles, template selection and
        current step are overwritten exactly; the version log is not touched.
        """
        if not self.confirm(f"Restore checkpoint {checkpoint_id}? Current progress will be replaced."):
            return RecoveryOutcome.cancelled()

        try:
            with self.guard.hold(CHECKPOINTS):
                result = await self.authority.restore(checkpoint_id)
        except WizardError as e:
            logger.warning("Failed to restore checkpoint %s: %s", checkpoint_id, e.message)
            return RecoveryOutcome.failure(e)

        if not result.success:
            return RecoveryOutcome.failure(
                WizardError(result.message or f"Failed to restore checkpoint {checkpoint_id}")
            )

        data = result.data
        try:
            step = self._checked_step(data)
            path = NavigationPath(data["navigation_path"]) if data.get("navigation_path") else None
        except WizardError as e:
            logger.warning("Not restoring checkpoint %s: %s", checkpoint_id, e.message)
            return RecoveryOutcome.failure(e)

        # Path first: switching paths clears selections that are restored below
        if path is not None:
            self.navigator.set_path(path)
        for key in TEMPLATE_KEYS:
            if key in data:
                self.session.set(key, data[key])
        self.session.set("configuration", data.get("configuration") or {})
        self.session.set("selected_profiles", data.get("selected_profiles") or [])
        if step is not None:
            self.navigator.goto(step, reset_history=True)

        self.pointer.write(checkpoint_id)
        logger.info("Restored checkpoint %s (stage '%s')", checkpoint_id, result.stage)
        return RecoveryOutcome.success(
            f"Restored checkpoint from stage '{result.stage}'",
            checkpoint_id=checkpoint_id,
            stage=result.stage,
            step=self.session.current_step,
        )

    async def delete(self, checkpoint_id: str) -> RecoveryOutcome:
        """Delete a checkpoint after confirmation."""
        if not self.confirm(f"Delete checkpoint {checkpoint_id}?"):
            return RecoveryOutcome.cancelled()

        try:
            with self.guard.hold(CHECKPOINTS):
                result = await self.authority.delete(checkpoint_id)
        except WizardError as e:
            logger.warning("Failed to delete checkpoint %s: %s", checkpoint_id, e.message)
            return RecoveryOutcome.failure(e)

        if not result.success:
            return RecoveryOutcome.failure(
                WizardError(result.error or f"Failed to delete checkpoint {checkpoint_id}")
            )

        if self.pointer.read() == checkpoint_id:
            self.pointer.clear()
        known = [c for c in self.session.checkpoints if c.get("checkpoint_id") != checkpoint_id]
        self.session.set("checkpoints", known)

        logger.info("Deleted checkpoint %s", checkpoint_id)
        return RecoveryOutcome.success(f"Deleted checkpoint {checkpoint_id}", checkpoint_id=checkpoint_id)

    async def find_resumable(self) -> Optional[Checkpoint]:
        """
        Find the checkpoint named by the local pointer.

        A pointer the authority no longer knows about is discarded.
        """
        checkpoint_id = self.pointer.read()
        if not checkpoint_id:
            return None

        listed = await self.list()
        if not listed.ok:
            return None

        checkpoints: List[Checkpoint] = listed.data["checkpoints"]
        for checkpoint in checkpoints:
            if checkpoint.checkpoint_id == checkpoint_id:
                return checkpoint

        logger.info("Discarding stale checkpoint pointer %s", checkpoint_id)
        self.pointer.clear()
        return None

    def _checked_step(self, data: Dict[str, Any]) -> Optional[int]:
        """Validate a checkpoint before any of it is applied."""
        if self.navigator.pending:
            raise TransitionPending("Another transition is still in progress")

        path = data.get("navigation_path")
        if path and path not in {p.value for p in NavigationPath}:
            raise WizardError(f"Checkpoint has an unknown navigation path: {path!r}")

        step = data.get("current_step")
        if step is None:
            return None
        try:
            step = int(step)
        except (TypeError, ValueError):
            raise WizardError(f"Checkpoint has an invalid step: {step!r}")
        if not self.navigator.graph.in_bounds(step):
            raise BoundsViolation(f"Checkpoint step {step} is out of range 1..{self.navigator.graph.total}")
        return step
