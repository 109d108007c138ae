"""
Step Graph

Static definition of the wizard steps and the single function that derives
which steps are visible, and how they are numbered, for a navigation path.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .state import NavigationPath


@dataclass(frozen=True)
class Step:
    """A named wizard stage with a fixed 1-based position."""
    id: str
    position: int
    title: str


@dataclass(frozen=True)
class VisibleStep:
    """A step as shown for the active navigation path."""
    step: Step
    display_number: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.step.id,
            "position": self.step.position,
            "display_number": self.display_number,
        }


WIZARD_STEPS: Sequence[Step] = (
    Step("welcome", 1, "Welcome"),
    Step("checklist", 2, "Pre-Installation Checklist"),
    Step("system-check", 3, "System Check"),
    Step("templates", 4, "Templates"),
    Step("profiles", 5, "Profile Selection"),
    Step("configure", 6, "Configuration"),
    Step("review", 7, "Review"),
    Step("install", 8, "Installation"),
    Step("complete", 9, "Complete"),
)

# Steps hidden on each path
HIDDEN_STEPS: Dict[NavigationPath, frozenset] = {
    NavigationPath.UNSET: frozenset(),
    NavigationPath.TEMPLATE: frozenset({"profiles"}),
    NavigationPath.CUSTOM: frozenset(),
}


class StepGraph:
    """
    Ordered wizard steps with path-dependent visibility.

    Positions must be unique and contiguous starting at 1.
    """

    def __init__(self, steps: Sequence[Step] = WIZARD_STEPS):
        positions = [s.position for s in steps]
        if sorted(positions) != list(range(1, len(steps) + 1)):
            raise ValueError("Step positions must be unique and contiguous from 1")
        ids = [s.id for s in steps]
        if len(set(ids)) != len(ids):
            raise ValueError("Step ids must be unique")

        self.steps: List[Step] = sorted(steps, key=lambda s: s.position)
        self._by_id = {s.id: s for s in self.steps}

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def first(self) -> Step:
        return self.steps[0]

    @property
    def last(self) -> Step:
        return self.steps[-1]

    def in_bounds(self, position: int) -> bool:
        return 1 <= position <= self.total

    def by_position(self, position: int) -> Step:
        if not self.in_bounds(position):
            raise IndexError(f"Step position out of range: {position}")
        return self.steps[position - 1]

    def by_id(self, step_id: str) -> Step:
        try:
            return self._by_id[step_id]
        except KeyError:
            raise KeyError(f"Unknown step: {step_id}") from None

    def position_of(self, step_id: str) -> int:
        return self.by_id(step_id).position

    def derive_visible_steps(self, path: NavigationPath) -> List[VisibleStep]:
        """
        Derive visible steps and display numbers for a navigation path.

        Always computed from the path tag alone, so switching paths any
        number of times yields the same result for the same tag.
        """
        hidden = HIDDEN_STEPS[path]
        visible = [s for s in self.steps if s.id not in hidden]
        return [VisibleStep(step=s, display_number=i) for i, s in enumerate(visible, 1)]

    def display_number(self, step_id: str, path: NavigationPath) -> Optional[int]:
        """Get the display number of a step, or None when hidden."""
        for visible in self.derive_visible_steps(path):
            if visible.step.id == step_id:
                return visible.display_number
        return None

    def back_target(self, step_id: str, path: NavigationPath) -> Optional[str]:
        """
        Get the path-aware back target for a step, if it has one.

        Forward jumps skip positions, so leaving these steps by position
        arithmetic could land on a hidden step.
        """
        if step_id == "configure":
            if path == NavigationPath.TEMPLATE:
                return "templates"
            if path == NavigationPath.CUSTOM:
                return "profiles"
            return None
        if step_id == "profiles":
            return "templates"
        return None
