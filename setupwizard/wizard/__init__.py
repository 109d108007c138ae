"""
Setup Wizard Engine

Step graph, validation gates and the navigation controller. The engine
facade lives in ``.engine`` and the terminal runner in ``.runner``.
"""

from .state import NavigationPath, WizardSession
from .graph import Step, StepGraph, WIZARD_STEPS
from .gates import GateResult, ValidationGate
from .navigator import NavigationController, StepEntry, TransitionOutcome

__all__ = [
    "GateResult",
    "NavigationController",
    "NavigationPath",
    "Step",
    "StepEntry",
    "StepGraph",
    "TransitionOutcome",
    "ValidationGate",
    "WIZARD_STEPS",
    "WizardSession",
]
