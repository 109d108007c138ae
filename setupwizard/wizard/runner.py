"""
Wizard Runner

Interactive terminal front end for the wizard engine.
"""

from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from ..authority.base import ResumeInfo
from ..config.defaults import DATABASE_PASSWORD_FIELD, PROFILES, TEMPLATES, get_phase_name
from ..preflight.models import CheckSeverity, PrerequisiteReport
from ..recovery.outcome import OutcomeLevel, RecoveryOutcome
from ..recovery.resume import ResumeChoice, format_time_since
from .engine import WizardEngine
from .graph import Step
from .navigator import TransitionOutcome

OUTCOME_STYLES = {
    OutcomeLevel.SUCCESS: "green",
    OutcomeLevel.INFO: "cyan",
    OutcomeLevel.WARNING: "yellow",
    OutcomeLevel.ERROR: "red",
    OutcomeLevel.CANCELLED: "dim",
}


class NavigationAction(str, Enum):
    """Possible navigation actions."""
    CONTINUE = "continue"
    BACK = "back"
    UNDO = "undo"
    QUIT = "quit"


class WizardRunner:
    """
    Drives the wizard engine from the terminal.

    Each step has a handler that collects input; navigation always goes
    through the engine.
    """

    BANNER = """
╔═══════════════════════════════════════════════════════════╗
║                   SETUP WIZARD                            ║
║        Guided installation with resume and rollback       ║
╚═══════════════════════════════════════════════════════════╝
"""

    def __init__(self, engine: WizardEngine, console: Optional[Console] = None):
        """
        Initialize the wizard runner.

        Args:
            engine: Wizard engine to drive
            console: Rich console for output
        """
        self.engine = engine
        self.console = console or Console()

        self._handlers: Dict[str, Callable[[], Awaitable[None]]] = {
            "welcome": self._welcome,
            "checklist": self._checklist,
            "system-check": self._system_check,
            "templates": self._templates,
            "profiles": self._profiles,
            "configure": self._configure,
            "review": self._review,
            "install": self._install,
        }

    async def run(self, reconfigure: Optional[str] = None) -> bool:
        """
        Run the wizard until it completes or the user quits.

        Args:
            reconfigure: Reconfiguration action to run instead of resuming

        Returns:
            True if the wizard completed
        """
        self.console.print(self.BANNER, style="bold blue")

        if reconfigure:
            record = self.engine.reconfigure(reconfigure)
            self.console.print(f"\n[bold cyan]{record.title}[/bold cyan]")
        else:
            started = await self.engine.start(self._choose_resume)
            if started.resumed:
                self.console.print(f"\n[green]{started.message}[/green]")
                for task in started.running_tasks:
                    self.console.print(f"  [cyan]→[/cyan] Background task still running: {task.get('name', task)}")

        graph = self.engine.navigator.graph
        while True:
            step = self.engine.navigator.current
            self._show_step_header(step)

            if step.position == graph.total:
                if self.engine.reconfiguring:
                    self.engine.exit_reconfiguration(True)
                self._show_completion()
                return True

            handler = self._handlers.get(step.id)
            if handler is not None:
                await handler()

            action = self._prompt_action(can_go_back=step.position > 1)

            if action == NavigationAction.QUIT:
                if not self._confirm_quit():
                    continue
                if self.engine.reconfiguring:
                    self.engine.cancel_reconfiguration()
                    self.console.print("\n[yellow]Reconfiguration cancelled.[/yellow]")
                else:
                    self.console.print("\n[yellow]Progress saved. Run 'setupwizard run' to continue.[/yellow]")
                return False

            if action == NavigationAction.BACK:
                self._report_transition(self.engine.previous())
            elif action == NavigationAction.UNDO:
                self.report(await self.engine.undo())
            else:
                await self._advance()

    async def _advance(self) -> None:
        outcome = await self.engine.next()
        if not outcome.ok and outcome.overridable:
            self._report_transition(outcome)
            if Confirm.ask("Continue anyway?", default=False):
                outcome = await self.engine.next(acknowledge_warnings=True)
        self._report_transition(outcome)

    # ============================================================
    # Resume
    # ============================================================

    def _choose_resume(self, info: ResumeInfo) -> ResumeChoice:
        step = info.current_step or 1
        graph = self.engine.navigator.graph
        title = graph.by_position(step).title if graph.in_bounds(step) else f"Step {step}"

        self.console.print()
        self.console.print("[bold yellow]An installation is in progress![/bold yellow]")
        self.console.print()
        self.console.print(f"  Last step: [cyan]{title}[/cyan]")
        if info.phase:
            self.console.print(f"  Phase: [cyan]{get_phase_name(info.phase)}[/cyan]")
        self.console.print(f"  Last activity: [cyan]{format_time_since(info.hours_since_activity)}[/cyan]")
        if info.profiles:
            self.console.print(f"  Profiles: [cyan]{', '.join(info.profiles)}[/cyan]")
        self.console.print()

        choice = Prompt.ask(
            "Would you like to [bold]R[/bold]esume or start [bold]F[/bold]resh?",
            choices=["r", "f"],
            default="r",
        ).lower()
        return ResumeChoice.RESUME if choice == "r" else ResumeChoice.START_OVER

    # ============================================================
    # Step handlers
    # ============================================================

    async def _welcome(self) -> None:
        self.console.print("This wizard will guide you through:")
        self.console.print("  1. Checking system prerequisites")
        self.console.print("  2. Choosing a template or a custom set of profiles")
        self.console.print("  3. Configuring and reviewing your installation")
        self.console.print("  4. Installing services")

    async def _checklist(self) -> None:
        self.console.print("[dim]Checking prerequisites...[/dim]")
        report = await self.engine.run_system_check()
        self.show_report(report)

    async def _system_check(self) -> None:
        raw = self.engine.session.system_check
        if not raw:
            self.console.print("[yellow]No system check results yet.[/yellow]")
            return
        report = PrerequisiteReport.from_dict(raw)
        self.console.print(f"[bold]{report.summary()}[/bold]")
        for check in report.warnings:
            self.console.print(f"  [yellow]⚠[/yellow] {check.name}: {check.message}")

    async def _templates(self) -> None:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan")
        table.add_column("Template")
        table.add_column("Profiles", style="dim")
        for template_id, template in TEMPLATES.items():
            table.add_row(template_id, template["name"], ", ".join(template["profiles"]))
        self.console.print(table)

        current = self.engine.session.selected_template or "custom"
        choice = Prompt.ask(
            "Choose a template, or 'custom' to pick profiles yourself",
            choices=list(TEMPLATES) + ["custom"],
            default=current if current in TEMPLATES else "custom",
        )
        if choice == "custom":
            self.engine.choose_custom()
        else:
            self.engine.apply_template(choice, TEMPLATES[choice]["profiles"])

    async def _profiles(self) -> None:
        self.console.print(f"Available profiles: [cyan]{', '.join(PROFILES)}[/cyan]")
        current = ",".join(self.engine.session.selected_profiles)
        raw = Prompt.ask("Profiles (comma separated)", default=current or "core")
        profiles = [p.strip() for p in raw.split(",") if p.strip()]
        unknown = [p for p in profiles if p not in PROFILES]
        if unknown:
            self.console.print(f"[yellow]Unknown profiles ignored: {', '.join(unknown)}[/yellow]")
        self.engine.select_profiles([p for p in profiles if p in PROFILES])

    async def _configure(self) -> None:
        config = self.engine.session.configuration
        values: Dict[str, str] = {}

        values["EXTERNAL_IP"] = Prompt.ask(
            "External IP address (blank to auto-detect)",
            default=str(config.get("EXTERNAL_IP", "")),
        )

        profiles = set(self.engine.session.selected_profiles)
        if profiles & set(self.engine.settings.database_profiles):
            password = Prompt.ask(
                "Database password (16+ characters, blank to keep current)",
                password=True,
                default="",
                show_default=False,
            )
            if password:
                values[DATABASE_PASSWORD_FIELD] = password

        values["CUSTOM_ENV"] = Prompt.ask(
            "Extra environment (KEY=value; separate with ';')",
            default=str(config.get("CUSTOM_ENV", "")).replace("\n", ";"),
        ).replace(";", "\n")

        self.engine.set_configuration(values)

    async def _review(self) -> None:
        session = self.engine.session

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Setting", style="dim")
        table.add_column("Value")
        table.add_row("Path", session.navigation_path.value)
        if session.selected_template:
            table.add_row("Template", session.selected_template)
        table.add_row("Profiles", ", ".join(session.selected_profiles) or "[red]none[/red]")
        for key, value in sorted(session.configuration.items()):
            shown = "********" if "PASSWORD" in key and value else str(value)
            table.add_row(key, shown)
        self.console.print(table)

    async def _install(self) -> None:
        if self.engine.session.installation_complete:
            self.console.print("[green]Installation finished.[/green]")
            return

        self.report(await self.engine.create_checkpoint("pre-install"))
        self.console.print("Installation runs in the background on the host.")
        if Confirm.ask("Has the installation finished?", default=False):
            self.engine.mark_installation_complete()
            self.report(await self.engine.create_checkpoint("post-install"))

    # ============================================================
    # Output
    # ============================================================

    def show_report(self, report: PrerequisiteReport) -> None:
        """Print a prerequisite report as a table."""
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Check")
        table.add_column("Status")
        table.add_column("Details", style="dim")

        for check in report.checks:
            if check.passed:
                status = "[green]✓ PASS[/green]"
            elif check.severity == CheckSeverity.ERROR:
                status = "[red]✗ FAIL[/red]"
            else:
                status = "[yellow]⚠ WARN[/yellow]"
            table.add_row(check.name, status, check.message)

        self.console.print(table)
        self.console.print(f"\n[bold]{report.summary()}[/bold]")

    def report(self, outcome: RecoveryOutcome) -> None:
        """Print a recovery outcome."""
        if outcome.message:
            style = OUTCOME_STYLES[outcome.level]
            self.console.print(f"[{style}]{outcome.message}[/{style}]")

    def _report_transition(self, outcome: TransitionOutcome) -> None:
        if outcome.ok or outcome.silent:
            return
        self.console.print(f"\n[red]{outcome.reason}[/red]")
        for error in outcome.errors:
            self.console.print(f"  [red]• {error}[/red]")

    def _show_step_header(self, step: Step) -> None:
        navigator = self.engine.navigator
        number = navigator.graph.display_number(step.id, self.engine.session.navigation_path)
        label = f"Step {number} of {len(navigator.visible_steps)}" if number else "Step"

        self.console.print()
        self.console.rule(f"[bold]{label}: {step.title}[/bold]", style="cyan")
        self.console.print()

    def _prompt_action(self, can_go_back: bool) -> NavigationAction:
        options: List[str] = ["[Enter] Continue"]
        if can_go_back:
            options.append("[B] Back")
        options.append("[U] Undo")
        options.append("[Q] Quit")

        self.console.print()
        self.console.print("  ".join(options), style="dim")

        while True:
            choice = Prompt.ask("", default="").strip().lower()

            if choice in ("", "c"):
                return NavigationAction.CONTINUE
            if choice == "b" and can_go_back:
                return NavigationAction.BACK
            if choice == "u":
                return NavigationAction.UNDO
            if choice == "q":
                return NavigationAction.QUIT
            self.console.print("[yellow]Invalid choice. Please try again.[/yellow]")

    def _confirm_quit(self) -> bool:
        self.console.print()
        self.console.print("[yellow]Your progress will be saved and can be resumed later.[/yellow]")
        return Confirm.ask("Are you sure you want to quit?", default=False)

    def _show_completion(self) -> None:
        session = self.engine.session
        self.console.print(Panel.fit(
            "[bold green]Setup Complete![/bold green]\n\n"
            f"Profiles: [cyan]{', '.join(session.selected_profiles) or 'none'}[/cyan]\n"
            f"Phase: [cyan]{get_phase_name(session.installation_phase or 'complete')}[/cyan]\n\n"
            "[bold]Next steps:[/bold]\n"
            "1. Check status: [yellow]setupwizard status[/yellow]\n"
            "2. Review saved versions: [yellow]setupwizard history[/yellow]",
            title="✓ Success",
            border_style="green",
        ))
