"""
Wizard Engine

Wires the session, navigation controller and recovery managers together
and exposes the operations a front end needs.
"""

import logging
from typing import Any, Dict, List, Optional

from ..authority.base import (
    CheckpointAuthority,
    ConfigValidator,
    PrerequisiteService,
    ResumeAuthority,
    SystemAuthority,
    VersionAuthority,
)
from ..authority.http import (
    ApiClient,
    HttpCheckpointAuthority,
    HttpConfigValidator,
    HttpResumeAuthority,
    HttpSystemAuthority,
    HttpVersionAuthority,
)
from ..config.defaults import RECONFIGURATION_ACTIONS
from ..config.models import WizardSettings
from ..errors import WizardError
from ..preflight.checker import PrerequisiteChecker
from ..preflight.models import PrerequisiteReport
from ..recovery.checkpoints import CheckpointManager, LocalPointer
from ..recovery.guard import InFlightGuard
from ..recovery.operations import OperationLog, OperationRecord
from ..recovery.outcome import OutcomeLevel, RecoveryOutcome
from ..recovery.resume import Chooser, ResumeDetector, ResumeOutcome, ServiceHealthCheck
from ..recovery.system import SystemManager
from ..recovery.versions import Confirm, VersionManager, always_confirm
from .gates import ValidationGate
from .graph import StepGraph
from .navigator import NavigationController, TransitionOutcome
from .state import NavigationPath, WizardSession

logger = logging.getLogger(__name__)


class WizardEngine:
    """
    Facade over the wizard progression and recovery components.

    User input is written through the engine so that path switches and
    conflicting selections stay consistent. Every successful forward
    transition is followed by a version snapshot; a failed snapshot never
    blocks navigation.
    """

    def __init__(
        self,
        session: WizardSession,
        versions: VersionAuthority,
        checkpoints: CheckpointAuthority,
        resume: ResumeAuthority,
        config_validator: Optional[ConfigValidator] = None,
        prerequisites: Optional[PrerequisiteService] = None,
        settings: Optional[WizardSettings] = None,
        confirm: Confirm = always_confirm,
        graph: Optional[StepGraph] = None,
        pointer: Optional[LocalPointer] = None,
        operations: Optional[OperationLog] = None,
        health_check: Optional[ServiceHealthCheck] = None,
        system: Optional[SystemAuthority] = None,
    ):
        """
        Initialize the engine.

        Args:
            session: Wizard session
            versions: Version authority
            checkpoints: Checkpoint authority
            resume: Resume authority
            config_validator: Server-side configuration validator
            prerequisites: Prerequisite service (defaults to local checks)
            settings: Wizard settings
            confirm: Asked before destructive recovery operations
            graph: Step graph
            pointer: Local checkpoint pointer
            operations: Reconfiguration operation log
            health_check: Health check for services tracked by a resumed session
            system: Host reset and storage authority
        """
        self.settings = settings or WizardSettings()
        self.session = session
        self.guard = InFlightGuard()

        self.gate = ValidationGate(config_validator, self.settings.database_profiles)
        self.navigator = NavigationController(session, graph, self.gate)

        self.versions = VersionManager(
            session, versions, self.guard, confirm, self.settings.history_limit,
        )
        pointer = pointer or LocalPointer()
        self.checkpoints = CheckpointManager(
            session, checkpoints, self.navigator, pointer, self.guard, confirm,
        )
        self.system = SystemManager(
            session, system, self.navigator, pointer, self.guard, confirm,
        )
        self.resume = ResumeDetector(
            session, resume, self.navigator, health_check, self.guard, confirm,
        )
        self.operations = operations or OperationLog()
        self.prerequisites = prerequisites or PrerequisiteChecker(
            min_cpu_cores=self.settings.min_cpu_cores,
            min_memory_gb=self.settings.min_memory_gb,
            min_disk_gb=self.settings.min_disk_gb,
            required_ports=self.settings.required_ports,
        )

    @classmethod
    def from_settings(
        cls,
        settings: WizardSettings,
        api: Optional[ApiClient] = None,
        confirm: Confirm = always_confirm,
    ) -> "WizardEngine":
        """Build an engine backed by the HTTP authorities and local state files."""
        api = api or ApiClient.from_settings(settings)
        session = WizardSession(state_file=settings.state_file)
        session.load()
        return cls(
            session=session,
            versions=HttpVersionAuthority(api),
            checkpoints=HttpCheckpointAuthority(api),
            resume=HttpResumeAuthority(api),
            config_validator=HttpConfigValidator(api),
            system=HttpSystemAuthority(api),
            settings=settings,
            confirm=confirm,
            pointer=LocalPointer(settings.checkpoint_pointer_file),
            operations=OperationLog(settings.operations_file),
        )

    # ============================================================
    # Startup
    # ============================================================

    async def start(self, choose: Chooser) -> ResumeOutcome:
        """Resume an interrupted session or start fresh."""
        return await self.resume.check(choose)

    # ============================================================
    # User input
    # ============================================================

    def apply_template(
        self,
        template_id: str,
        profiles: List[str],
        configuration: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Select and apply a template; its profiles and defaults replace the current ones."""
        self.session.set("selected_template", template_id)
        self.session.set("template_applied", True)
        self.session.set("custom_setup", False)
        self.session.set("selected_profiles", profiles)
        if configuration is not None:
            self.session.set("configuration", configuration)
        logger.info("Applied template '%s' (%s)", template_id, ", ".join(profiles))

    def choose_custom(self) -> None:
        """Choose to build a custom setup instead of using a template."""
        self.session.set("custom_setup", True)
        self.navigator.set_path(NavigationPath.CUSTOM)

    def select_profiles(self, profiles: List[str]) -> None:
        """Select profiles by hand; this moves a template session to the custom path."""
        if self.session.navigation_path == NavigationPath.TEMPLATE:
            logger.info("Manual profile selection switches to the custom path")
            self.session.set("custom_setup", True)
            self.navigator.set_path(NavigationPath.CUSTOM)
        self.session.set("selected_profiles", list(profiles))

    def set_configuration(self, values: Dict[str, Any]) -> None:
        """Merge configuration values."""
        self.session.update("configuration", values)

    def record_system_check(self, report: PrerequisiteReport) -> None:
        self.session.set("system_check", report.to_dict())

    async def run_system_check(self) -> PrerequisiteReport:
        """Run prerequisite checks and store the report for the checklist gate."""
        report = await self.prerequisites.run()
        self.record_system_check(report)
        return report

    def mark_installation_complete(self, phase: str = "complete") -> None:
        self.session.set("installation_phase", phase)
        self.session.set("installation_complete", True)

    # ============================================================
    # Navigation
    # ============================================================

    async def next(self, acknowledge_warnings: bool = False) -> TransitionOutcome:
        """
        Advance, then snapshot the selections.

        The snapshot is part of the transition: other navigation requests
        are refused until it has finished.
        """
        leaving = self.navigator.current.id

        async def after(outcome: TransitionOutcome) -> None:
            saved = await self.versions.save_version(
                description=f"Completed step: {leaving}",
                action="step-complete",
            )
            if saved.level == OutcomeLevel.ERROR:
                logger.warning("Version snapshot after '%s' failed: %s", leaving, saved.message)
            self._track_reconfiguration()

        return await self.navigator.next(acknowledge_warnings, after=after)

    def previous(self) -> TransitionOutcome:
        return self.navigator.previous()

    def goto(self, step: int) -> TransitionOutcome:
        return self.navigator.goto(step)

    # ============================================================
    # Reconfiguration
    # ============================================================

    @property
    def reconfiguring(self) -> bool:
        return self.session.get("reconfiguration_action") is not None

    def reconfigure(self, action: str, context: Optional[Dict[str, Any]] = None) -> OperationRecord:
        """
        Enter a reconfiguration flow on an existing installation.

        Args:
            action: One of RECONFIGURATION_ACTIONS ("add", "modify", "remove")
            context: Extra data kept for the flow, e.g. the profile involved

        Returns:
            The operation record tracking the flow
        """
        flow = RECONFIGURATION_ACTIONS.get(action)
        if flow is None:
            raise WizardError(f"Unknown reconfiguration action: {action}")

        self.session.set("reconfiguration_action", action)
        self.session.set("reconfiguration_context", dict(context or {}))

        # Profile changes are made by hand, which is the custom path
        if flow["entry"] == "profiles":
            self.session.set("custom_setup", True)
            self.navigator.set_path(NavigationPath.CUSTOM)

        record = self.operations.start(action, flow["title"], flow["steps"])
        self.navigator.goto(self.navigator.graph.position_of(flow["entry"]), reset_history=True)
        return record

    def exit_reconfiguration(self, success: bool = True, message: Optional[str] = None) -> TransitionOutcome:
        """Finish the current reconfiguration flow and return to the normal flow."""
        if self.operations.current is not None:
            self.operations.complete(success, message)
        return self.navigator.exit_reconfiguration()

    def cancel_reconfiguration(self) -> TransitionOutcome:
        """Abandon the current reconfiguration flow."""
        if self.operations.current is not None:
            self.operations.cancel()
        return self.navigator.exit_reconfiguration()

    def _track_reconfiguration(self) -> None:
        record = self.operations.current
        if record is None or not self.reconfiguring:
            return
        step = self.navigator.current
        if step.id not in record.step_names:
            return
        index = record.step_names.index(step.id)
        self.operations.update_progress(
            index * 100 / record.steps,
            f"{step.title} ({index + 1} of {record.steps})",
            step_index=index,
        )

    # ============================================================
    # Recovery
    # ============================================================

    async def save_version(self, description: str = "") -> RecoveryOutcome:
        return await self.versions.save_version(description)

    async def undo(self, restart_services: bool = False) -> RecoveryOutcome:
        return await self.versions.undo(restart_services)

    async def restore_version(self, version_id: str, restart_services: bool = False) -> RecoveryOutcome:
        return await self.versions.restore_version(version_id, restart_services)

    async def create_checkpoint(self, stage: str, data: Optional[Dict[str, Any]] = None) -> RecoveryOutcome:
        return await self.checkpoints.create(stage, data)

    async def restore_checkpoint(self, checkpoint_id: str) -> RecoveryOutcome:
        return await self.checkpoints.restore(checkpoint_id)

    async def delete_checkpoint(self, checkpoint_id: str) -> RecoveryOutcome:
        return await self.checkpoints.delete(checkpoint_id)

    async def start_over(self) -> RecoveryOutcome:
        return await self.resume.start_over()

    async def reset_system(
        self,
        delete_data: bool = True,
        delete_config: bool = True,
        delete_backups: bool = False,
    ) -> RecoveryOutcome:
        return await self.system.reset(delete_data, delete_config, delete_backups)

    async def storage_usage(self) -> RecoveryOutcome:
        return await self.system.storage_usage()

    def status(self) -> Dict[str, Any]:
        """Summarize the session for display."""
        step = self.navigator.current
        path = self.session.navigation_path
        return {
            "step": step.position,
            "step_id": step.id,
            "title": step.title,
            "display_number": self.navigator.graph.display_number(step.id, path),
            "visible_total": len(self.navigator.visible_steps),
            "navigation_path": path.value,
            "history": self.session.navigation_history,
            "selected_template": self.session.selected_template,
            "selected_profiles": self.session.selected_profiles,
            "installation_phase": self.session.installation_phase,
            "installation_complete": self.session.installation_complete,
            "reconfiguration_action": self.session.get("reconfiguration_action"),
        }

