"""
Validation Gates

Predicates that must pass before the wizard leaves a step. Gates are
evaluated fresh on every attempt; a gate that passed before is checked
again because the session may have changed since.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..authority.base import ConfigValidator
from ..config.defaults import DATABASE_PASSWORD_FIELD, ENV_KEY_PATTERN, FIELD_RULES
from ..errors import AuthorityUnavailable, GateRejection, InconsistentState, WizardError
from ..preflight.models import PrerequisiteReport
from .state import NavigationPath, WizardSession

logger = logging.getLogger(__name__)


@dataclass
class GateResult:
    """Result of evaluating a step's gate."""
    ok: bool
    reason: str = ""
    errors: List[str] = field(default_factory=list)
    error: Optional[WizardError] = None
    overridable: bool = False
    branch_to: Optional[str] = None  # Jump target instead of position + 1
    commit_path: Optional[NavigationPath] = None
    configuration: Optional[Dict[str, Any]] = None  # Validated config to store

    @classmethod
    def rejected(cls, error: WizardError) -> "GateResult":
        return cls(
            ok=False,
            reason=error.message,
            errors=list(error.details),
            error=error,
            overridable=getattr(error, "overridable", False),
        )

    @property
    def silent(self) -> bool:
        """A refusal with nothing to tell the user (they must make a choice)."""
        return not self.ok and not self.reason


@dataclass
class GateContext:
    session: WizardSession
    acknowledge_warnings: bool = False


Check = Callable[[GateContext], Awaitable[Optional[GateResult]]]


# ============================================================
# Session consistency
# ============================================================

def check_state_consistency(session: WizardSession) -> Tuple[List[str], List[str]]:
    """
    Check that template/custom selections agree with the navigation path.

    Returns:
        Tuple of (errors, warnings)
    """
    path = session.navigation_path
    template = session.selected_template
    applied = session.template_applied
    profiles = session.selected_profiles

    errors: List[str] = []
    warnings: List[str] = []

    if path == NavigationPath.TEMPLATE:
        if not template:
            errors.append("Template path active but no template selected")
        if template and not applied:
            warnings.append("Template selected but not yet applied")
        if profiles and not applied:
            errors.append("Template path active but profiles manually selected")
    elif path == NavigationPath.CUSTOM:
        if template and applied:
            errors.append("Custom path active but template is applied")
        if not profiles:
            warnings.append("Custom path active but no profiles selected yet")
    else:
        if template and applied:
            warnings.append("Template applied but navigation path not set")
        if profiles:
            warnings.append("Profiles selected but navigation path not set")

    return errors, warnings


def check_ready_for_configuration(session: WizardSession) -> List[str]:
    """Get the consistency errors that block leaving the configure step."""
    errors, _ = check_state_consistency(session)
    path = session.navigation_path

    if path == NavigationPath.UNSET:
        errors.append("No navigation path selected - choose a template or custom setup")
    elif path == NavigationPath.TEMPLATE:
        if not session.selected_template:
            errors.append("Template path selected but no template chosen")
        if not session.template_applied:
            errors.append("Template selected but not applied")
    elif path == NavigationPath.CUSTOM and not session.selected_profiles:
        errors.append("Custom path selected but no profiles chosen")

    # Same message can come from both passes
    return list(dict.fromkeys(errors))


# ============================================================
# Field rules
# ============================================================

def _valid_env_lines(value: str) -> bool:
    for line in value.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        if "=" not in trimmed:
            return False
        key = trimmed.split("=", 1)[0].strip()
        if not re.match(ENV_KEY_PATTERN, key):
            return False
    return True


VALIDATORS: Dict[str, Callable[[str], bool]] = {
    "env_lines": _valid_env_lines,
}


def validate_field(name: str, value: Any, rules: Dict[str, Dict[str, Any]] = FIELD_RULES) -> Optional[str]:
    """
    Validate a single configuration field against its local rule.

    Returns:
        Error message, or None when valid
    """
    rule = rules.get(name)
    if not rule:
        return None

    text = "" if value is None else str(value)
    if not text.strip():
        return "This field is required" if rule.get("required") else None

    if rule.get("pattern") and not re.match(rule["pattern"], text):
        return rule["message"]

    if rule.get("min_length") and len(text) < rule["min_length"]:
        return rule["message"]

    validator = VALIDATORS.get(rule.get("validator", ""))
    if validator and not validator(text):
        return rule["message"]

    return None


def validate_fields(
    config: Dict[str, Any],
    profiles: Iterable[str],
    database_profiles: Iterable[str],
    rules: Dict[str, Dict[str, Any]] = FIELD_RULES,
) -> List[str]:
    """Validate every ruled field; also require a database password when needed."""
    errors = []
    for name in rules:
        message = validate_field(name, config.get(name), rules)
        if message:
            errors.append(f"{name}: {message}")

    needs_database = bool(set(profiles) & set(database_profiles))
    if needs_database and not str(config.get(DATABASE_PASSWORD_FIELD) or "").strip():
        errors.append(f"{DATABASE_PASSWORD_FIELD}: Database password is required for selected profiles")

    return errors


# ============================================================
# Gate
# ============================================================

class ValidationGate:
    """
    Step-specific validation run before leaving a step.

    Each step may register zero or more checks; all must pass. A check
    either raises a WizardError or returns a GateResult carrying branch,
    path and configuration updates for the controller to apply.
    """

    def __init__(
        self,
        config_validator: Optional[ConfigValidator] = None,
        database_profiles: Optional[Iterable[str]] = None,
        field_rules: Dict[str, Dict[str, Any]] = FIELD_RULES,
    ):
        """
        Initialize the gate.

        Args:
            config_validator: Server-side configuration validator
            database_profiles: Profiles that require a database password
            field_rules: Local field rules for the configure step
        """
        self.config_validator = config_validator
        self.database_profiles = list(database_profiles or [])
        self.field_rules = field_rules

        self._checks: Dict[str, List[Check]] = {
            "checklist": [self._check_prerequisites],
            "templates": [self._check_template_choice],
            "profiles": [self._check_profiles],
            "configure": [
                self._check_consistency,
                self._check_fields,
                self._check_server_validation,
            ],
            "review": [self._check_ready_to_install],
            "install": [self._check_installation_complete],
        }

    def checks_for(self, step_id: str) -> List[Check]:
        return list(self._checks.get(step_id, []))

    async def can_leave(
        self,
        step_id: str,
        session: WizardSession,
        acknowledge_warnings: bool = False,
    ) -> GateResult:
        """
        Evaluate every check registered for a step.

        Args:
            step_id: Step being left
            session: Current wizard session
            acknowledge_warnings: User confirmed soft (overridable) failures

        Returns:
            GateResult; never raises for gate or authority failures
        """
        ctx = GateContext(session=session, acknowledge_warnings=acknowledge_warnings)
        result = GateResult(ok=True)

        for check in self._checks.get(step_id, []):
            try:
                partial = await check(ctx)
            except WizardError as e:
                logger.info("Gate for '%s' refused: %s", step_id, e.message or "no selection")
                return GateResult.rejected(e)

            if partial is None:
                continue
            if partial.branch_to is not None:
                result.branch_to = partial.branch_to
            if partial.commit_path is not None:
                result.commit_path = partial.commit_path
            if partial.configuration is not None:
                result.configuration = partial.configuration

        return result

    async def _check_prerequisites(self, ctx: GateContext) -> None:
        raw = ctx.session.system_check
        if not raw:
            raise GateRejection("Run the system check before continuing")

        report = PrerequisiteReport.from_dict(raw)
        if report.hard_failures:
            raise GateRejection(
                "Docker and Docker Compose are required",
                details=[c.message for c in report.hard_failures],
            )

        if report.soft_failures and not ctx.acknowledge_warnings:
            raise GateRejection(
                "System resources are below the recommended minimum",
                details=[c.message for c in report.soft_failures],
                overridable=True,
            )

    async def _check_template_choice(self, ctx: GateContext) -> GateResult:
        session = ctx.session
        if session.selected_template and session.template_applied:
            return GateResult(ok=True, commit_path=NavigationPath.TEMPLATE, branch_to="configure")
        if session.custom_setup:
            return GateResult(ok=True, commit_path=NavigationPath.CUSTOM, branch_to="profiles")
        # No choice made yet; nothing to report
        raise GateRejection("")

    async def _check_profiles(self, ctx: GateContext) -> GateResult:
        if not ctx.session.selected_profiles:
            raise GateRejection("Please select at least one profile")
        return GateResult(ok=True, commit_path=NavigationPath.CUSTOM)

    async def _check_consistency(self, ctx: GateContext) -> None:
        errors = check_ready_for_configuration(ctx.session)
        if errors:
            raise InconsistentState("Wizard state is inconsistent", details=errors)

    async def _check_fields(self, ctx: GateContext) -> None:
        errors = validate_fields(
            ctx.session.configuration,
            ctx.session.selected_profiles,
            self.database_profiles,
            self.field_rules,
        )
        if errors:
            raise GateRejection("Please fix the validation errors before continuing", details=errors)

    async def _check_server_validation(self, ctx: GateContext) -> Optional[GateResult]:
        if self.config_validator is None:
            logger.debug("No server-side validator configured; skipping")
            return None

        config = ctx.session.configuration
        try:
            report = await self.config_validator.validate(config)
        except AuthorityUnavailable as e:
            raise GateRejection(f"Validation error: {e.message}") from e

        if not report.valid:
            raise GateRejection(
                "Configuration validation failed",
                details=[f"{err.field}: {err.message}" for err in report.errors],
            )

        return GateResult(ok=True, configuration=report.config if report.config is not None else config)

    async def _check_ready_to_install(self, ctx: GateContext) -> None:
        if not ctx.session.selected_profiles:
            raise GateRejection("Please select at least one profile before proceeding")

    async def _check_installation_complete(self, ctx: GateContext) -> None:
        if not ctx.session.installation_complete:
            raise GateRejection("Installation has not finished yet")
