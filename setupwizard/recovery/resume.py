"""
Resume Detector

Decides at startup whether an interrupted session should be resumed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..authority.base import ResumeAuthority, ResumeInfo
from ..errors import WizardError
from ..wizard.navigator import NavigationController
from ..wizard.state import WizardSession
from .guard import RESUME, InFlightGuard
from .outcome import RecoveryOutcome
from .versions import Confirm, always_confirm

logger = logging.getLogger(__name__)


class ResumeChoice(str, Enum):
    RESUME = "resume"
    START_OVER = "start-over"


Chooser = Callable[[ResumeInfo], ResumeChoice]
ServiceHealthCheck = Callable[[Dict[str, Any]], Awaitable[bool]]


@dataclass
class ResumeOutcome:
    """What happened at startup."""
    resumed: bool
    step: int
    prompted: bool = False
    info: Optional[ResumeInfo] = None
    running_tasks: List[Any] = field(default_factory=list)
    message: str = ""


def format_time_since(hours: Optional[float]) -> str:
    """
    Render elapsed time since last activity.

    Examples:
        0.5 -> "30 minutes ago", 1 -> "1 hour ago", 49 -> "2 days ago"
    """
    if hours is None:
        return "unknown"
    if hours < 1:
        minutes = int(hours * 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if hours < 24:
        whole = int(hours)
        return f"{whole} hour{'s' if whole != 1 else ''} ago"
    days = int(hours // 24)
    return f"{days} day{'s' if days != 1 else ''} ago"


class ResumeDetector:
    """
    Queries the resume authority and restores or resets the session.

    Any failure along the resume path falls back to a fresh start.
    """

    def __init__(
        self,
        session: WizardSession,
        authority: ResumeAuthority,
        navigator: NavigationController,
        health_check: Optional[ServiceHealthCheck] = None,
        guard: Optional[InFlightGuard] = None,
        confirm: Confirm = always_confirm,
    ):
        """
        Initialize the detector.

        Args:
            session: Wizard session to restore into
            authority: Resume authority
            navigator: Controller used to move to the saved step
            health_check: Optional health check for tracked services
            guard: Shared in-flight guard
            confirm: Asked before an explicit start over
        """
        self.session = session
        self.authority = authority
        self.navigator = navigator
        self.health_check = health_check
        self.guard = guard or InFlightGuard()
        self.confirm = confirm

    async def check(self, choose: Chooser) -> ResumeOutcome:
        """
        Check for a resumable session and act on the user's choice.

        ``choose`` is only called when there is something to resume.
        """
        try:
            with self.guard.hold(RESUME):
                info = await self.authority.can_resume()
        except WizardError as e:
            logger.warning("Could not check for a resumable session: %s", e.message)
            return self._fresh("Resume check failed; starting fresh")

        if not info.can_resume:
            logger.debug("Nothing to resume: %s", info.reason)
            return self._fresh(info.reason or "No session to resume")

        choice = choose(info)
        if choice == ResumeChoice.RESUME:
            outcome = await self.resume(info)
        else:
            await self._reset()
            outcome = ResumeOutcome(resumed=False, step=self.session.current_step, message="Starting over")
        outcome.prompted = True
        outcome.info = info
        return outcome

    async def resume(self, info: ResumeInfo) -> ResumeOutcome:
        """Copy saved state into the session and jump to the saved step."""
        step = info.current_step
        if step is None or not self.navigator.graph.in_bounds(step):
            logger.error("Cannot resume at step %s; starting over", step)
            await self._reset()
            return ResumeOutcome(
                resumed=False,
                step=self.session.current_step,
                message="Failed to resume; starting over",
            )

        self.session.set("selected_profiles", info.profiles)
        self.session.set("configuration", info.configuration)
        self.session.set("installation_phase", info.phase)
        self.session.set("background_tasks", info.background_tasks)
        self.session.set("services", info.services)

        await self._verify_services(info.services)

        running = [
            task for task in info.background_tasks
            if isinstance(task, dict) and task.get("status") == "running"
        ]
        if running:
            logger.info("%d background task(s) still running", len(running))

        self.navigator.goto(step, reset_history=True)
        logger.info("Resumed session at step %s", step)
        return ResumeOutcome(
            resumed=True,
            step=step,
            running_tasks=running,
            message=f"Resumed at step {step}",
        )

    async def start_over(self) -> RecoveryOutcome:
        """Discard the saved session after confirmation."""
        if not self.confirm("Start over? All progress will be lost."):
            return RecoveryOutcome.cancelled()
        await self._reset()
        return RecoveryOutcome.success("Starting fresh installation")

    async def _verify_services(self, services: List[Dict[str, Any]]) -> None:
        if self.health_check is None:
            return
        for service in services:
            name = service.get("name", "unknown")
            try:
                healthy = await self.health_check(service)
            except Exception as e:
                logger.warning("Health check for service %s failed: %s", name, e)
                continue
            if not healthy:
                logger.warning("Service %s is not healthy", name)

    async def _reset(self) -> None:
        try:
            await self.authority.clear_state()
        except WizardError as e:
            logger.warning("Could not clear saved state on the server: %s", e.message)

        self.session.clear()
        self.navigator.goto(1, reset_history=True)

    def _fresh(self, message: str) -> ResumeOutcome:
        self.navigator.goto(1, reset_history=True)
        return ResumeOutcome(resumed=False, step=1, message=message)
