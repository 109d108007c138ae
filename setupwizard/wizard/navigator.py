"""
Wizard Navigation

The navigation controller is the only writer of the current step, the
navigation history, the navigation path and the visible steps. Every
transition goes through it.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Union

from ..config.defaults import RECONFIGURATION_KEYS
from ..errors import BoundsViolation, TransitionPending, WizardError
from .gates import GateResult, ValidationGate, check_state_consistency
from .graph import Step, StepGraph, VisibleStep
from .state import NavigationPath, WizardSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepEntry:
    """Event fired once per subscriber after every successful transition."""
    step_number: int
    step_id: str
    display_number: Optional[int]


@dataclass
class TransitionOutcome:
    """Result of a navigation request."""
    ok: bool
    step: int
    previous_step: Optional[int] = None
    reason: str = ""
    errors: List[str] = field(default_factory=list)
    error: Optional[WizardError] = None
    overridable: bool = False

    @classmethod
    def refused(cls, step: int, error: WizardError) -> "TransitionOutcome":
        return cls(
            ok=False,
            step=step,
            reason=error.message,
            errors=list(error.details),
            error=error,
            overridable=getattr(error, "overridable", False),
        )

    @classmethod
    def from_gate(cls, step: int, result: GateResult) -> "TransitionOutcome":
        return cls(
            ok=False,
            step=step,
            reason=result.reason,
            errors=list(result.errors),
            error=result.error,
            overridable=result.overridable,
        )

    @property
    def silent(self) -> bool:
        return not self.ok and not self.reason


StepEntryListener = Callable[[StepEntry], None]
AfterTransition = Callable[[TransitionOutcome], Awaitable[None]]


class NavigationController:
    """
    Moves the wizard between steps.

    Forward moves are gated; backward moves, jumps and recovery are not.
    Requests that arrive while a gated transition is still awaiting its
    gate or its follow-up are refused with TransitionPending.
    """

    def __init__(
        self,
        session: WizardSession,
        graph: Optional[StepGraph] = None,
        gate: Optional[ValidationGate] = None,
    ):
        """
        Initialize the controller and claim the navigation fields.

        Args:
            session: Wizard session to drive
            graph: Step graph (defaults to the standard nine steps)
            gate: Validation gate consulted by next()
        """
        self.session = session
        self.graph = graph or StepGraph()
        self.gate = gate or ValidationGate()

        self._token = session.claim_navigation()
        self._listeners: List[StepEntryListener] = []
        self._pending = False

        # A restored session may point past the graph
        if not self.graph.in_bounds(session.current_step):
            logger.warning("Saved step %s is out of range; starting at step 1", session.current_step)
            self.session.set("current_step", 1, writer=self._token)
        self._write_visible_steps()

    # ============================================================
    # Read helpers
    # ============================================================

    @property
    def current_step(self) -> int:
        return self.session.current_step

    @property
    def current(self) -> Step:
        return self.graph.by_position(self.session.current_step)

    @property
    def visible_steps(self) -> List[VisibleStep]:
        return self.graph.derive_visible_steps(self.session.navigation_path)

    @property
    def pending(self) -> bool:
        return self._pending

    def on_step_entry(self, callback: StepEntryListener) -> Callable[[], None]:
        """
        Subscribe to step entry events.

        Returns:
            Function that removes the subscription
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # ============================================================
    # Transitions
    # ============================================================

    async def next(
        self,
        acknowledge_warnings: bool = False,
        after: Optional[AfterTransition] = None,
    ) -> TransitionOutcome:
        """
        Advance past the current step if its gate allows it.

        Args:
            acknowledge_warnings: User accepted overridable gate warnings
            after: Awaited after a successful move, before the transition
                stops being pending

        Returns:
            TransitionOutcome; the session is untouched on refusal
        """
        if self._pending:
            return self._refuse_pending("next")

        self._pending = True
        try:
            outcome = await self._advance(acknowledge_warnings)
            if outcome.ok and after is not None:
                await after(outcome)
            return outcome
        finally:
            self._pending = False

    async def _advance(self, acknowledge_warnings: bool) -> TransitionOutcome:
        position = self.session.current_step
        if position >= self.graph.total:
            return TransitionOutcome.refused(position, BoundsViolation("Already at the final step"))

        step = self.graph.by_position(position)
        result = await self.gate.can_leave(step.id, self.session, acknowledge_warnings)
        if not result.ok:
            return TransitionOutcome.from_gate(position, result)

        if result.configuration is not None:
            self.session.set("configuration", result.configuration)
        if result.commit_path is not None:
            self.set_path(result.commit_path)

        target = self.graph.position_of(result.branch_to) if result.branch_to else position + 1

        history = self.session.navigation_history
        history.append(position)
        self.session.set("navigation_history", history, writer=self._token)

        return self._enter(target, previous=position)

    def previous(self) -> TransitionOutcome:
        """
        Go back one step.

        Path-aware targets win over the history stack, which wins over
        plain decrement.
        """
        if self._pending:
            return self._refuse_pending("previous")

        position = self.session.current_step
        if position <= 1:
            return TransitionOutcome.refused(position, BoundsViolation("Already at the first step"))

        step = self.graph.by_position(position)
        history = self.session.navigation_history
        special = self.graph.back_target(step.id, self.session.navigation_path)

        if special is not None:
            target = self.graph.position_of(special)
            if history and history[-1] == target:
                history.pop()
        elif history:
            target = history.pop()
        else:
            target = position - 1

        self.session.set("navigation_history", history, writer=self._token)
        return self._enter(target, previous=position)

    def goto(self, step: int, reset_history: bool = False) -> TransitionOutcome:
        """
        Jump straight to a step, bypassing gates.

        Args:
            step: 1-based target position
            reset_history: Clear the back stack (recovery flows)

        Returns:
            TransitionOutcome; out-of-range targets are refused, not clamped
        """
        position = self.session.current_step
        if self._pending:
            return self._refuse_pending("goto")

        if isinstance(step, bool) or not isinstance(step, int) or not self.graph.in_bounds(step):
            error = BoundsViolation(f"Step {step} is out of range 1..{self.graph.total}")
            logger.warning("Rejected goto: %s", error.message)
            return TransitionOutcome.refused(position, error)

        if reset_history:
            self.session.set("navigation_history", [], writer=self._token)
        return self._enter(step, previous=position)

    def set_path(self, path: Union[NavigationPath, str]) -> None:
        """
        Set the navigation path and re-derive visible steps.

        Switching clears selections that belong to the other path.
        """
        path = NavigationPath(path)
        if path != self.session.navigation_path:
            self._clear_conflicting_state(path)

        self.session.set("navigation_path", path.value, writer=self._token)
        self._write_visible_steps()

        errors, warnings = check_state_consistency(self.session)
        for message in errors + warnings:
            logger.debug("State after switching to %s path: %s", path.value, message)

    def exit_reconfiguration(self) -> TransitionOutcome:
        """Drop reconfiguration context and return to the normal flow."""
        for key in RECONFIGURATION_KEYS:
            self.session.remove(key)

        target = self.graph.total if self.session.installation_complete else 1
        return self.goto(target, reset_history=True)

    # ============================================================
    # Internals
    # ============================================================

    def _clear_conflicting_state(self, path: NavigationPath) -> None:
        if path == NavigationPath.CUSTOM:
            self.session.set("selected_template", None)
            self.session.set("template_applied", False)
        elif path == NavigationPath.TEMPLATE:
            if not self.session.selected_template and not self.session.template_applied:
                self.session.set("selected_profiles", [])

    def _write_visible_steps(self) -> None:
        visible = [v.to_dict() for v in self.visible_steps]
        self.session.set("visible_steps", visible, writer=self._token)

    def _enter(self, target: int, previous: Optional[int]) -> TransitionOutcome:
        self.session.set("current_step", target, writer=self._token)
        self._write_visible_steps()

        step = self.graph.by_position(target)
        entry = StepEntry(
            step_number=target,
            step_id=step.id,
            display_number=self.graph.display_number(step.id, self.session.navigation_path),
        )
        logger.debug("Entered step %s (%s)", target, step.id)

        for callback in list(self._listeners):
            try:
                callback(entry)
            except Exception:
                logger.exception("Step entry listener failed for step %s", step.id)

        return TransitionOutcome(ok=True, step=target, previous_step=previous)

    def _refuse_pending(self, action: str) -> TransitionOutcome:
        logger.info("Ignored %s while a transition is pending", action)
        return TransitionOutcome.refused(
            self.session.current_step,
            TransitionPending("Another transition is still in progress"),
        )
