"""Tests for the navigation controller."""

import asyncio

import pytest

from conftest import walk_to_templates
from setupwizard.errors import BoundsViolation, OwnershipError, TransitionPending
from setupwizard.wizard.navigator import NavigationController
from setupwizard.wizard.state import NavigationPath


class TestForwardAndBack:
    """History and path-aware back navigation."""

    @pytest.mark.asyncio
    async def test_history_length_matches_forward_transitions(self, engine) -> None:
        """Each forward move pushes one entry; as many backs return to step 1."""
        await walk_to_templates(engine)
        engine.apply_template("home-node", ["core"])
        assert (await engine.next()).ok

        history = engine.session.navigation_history
        assert len(history) == 4

        for _ in range(len(history)):
            assert engine.previous().ok
        assert engine.session.current_step == 1

    @pytest.mark.asyncio
    async def test_template_path_skips_profiles(self, engine) -> None:
        """Applying a template jumps straight to configure and back to templates."""
        await walk_to_templates(engine)
        engine.apply_template("home-node", ["core"])

        outcome = await engine.next()

        assert outcome.ok
        assert engine.navigator.current.id == "configure"
        assert engine.session.navigation_path == NavigationPath.TEMPLATE

        back = engine.previous()
        assert back.ok
        assert engine.navigator.current.id == "templates"

    @pytest.mark.asyncio
    async def test_custom_path_visits_profiles(self, engine) -> None:
        """Custom setup goes templates, profiles, configure and back to profiles."""
        await walk_to_templates(engine)
        engine.choose_custom()

        assert (await engine.next()).ok
        assert engine.navigator.current.id == "profiles"

        engine.select_profiles(["core", "mining"])
        assert (await engine.next()).ok
        assert engine.navigator.current.id == "configure"

        assert engine.previous().ok
        assert engine.navigator.current.id == "profiles"
        assert engine.previous().ok
        assert engine.navigator.current.id == "templates"

    @pytest.mark.asyncio
    async def test_profiles_without_selection_blocks(self, engine) -> None:
        """Leaving profiles with nothing selected never moves the step."""
        await walk_to_templates(engine)
        engine.choose_custom()
        await engine.next()
        position = engine.session.current_step

        outcome = await engine.next()

        assert not outcome.ok
        assert outcome.reason == "Please select at least one profile"
        assert engine.session.current_step == position

    @pytest.mark.asyncio
    async def test_templates_without_choice_is_silent(self, engine) -> None:
        """No template and no custom choice refuses without a message."""
        await walk_to_templates(engine)

        outcome = await engine.next()

        assert not outcome.ok
        assert outcome.silent
        assert engine.navigator.current.id == "templates"

    def test_previous_without_history_decrements(self, engine) -> None:
        engine.navigator.goto(3)
        outcome = engine.previous()
        assert outcome.ok
        assert engine.session.current_step == 2

    def test_previous_at_first_step_refused(self, engine) -> None:
        outcome = engine.previous()
        assert not outcome.ok
        assert isinstance(outcome.error, BoundsViolation)
        assert engine.session.current_step == 1

    @pytest.mark.asyncio
    async def test_next_at_final_step_refused(self, engine) -> None:
        engine.navigator.goto(9)
        outcome = await engine.next()
        assert not outcome.ok
        assert isinstance(outcome.error, BoundsViolation)
        assert engine.session.current_step == 9


class TestGoto:
    """Direct jumps."""

    @pytest.mark.parametrize("target", [0, 10, -1])
    def test_out_of_range_rejected(self, engine, target) -> None:
        """Out of range targets are refused, not clamped."""
        outcome = engine.goto(target)
        assert not outcome.ok
        assert isinstance(outcome.error, BoundsViolation)
        assert engine.session.current_step == 1

    def test_goto_does_not_push_history(self, engine) -> None:
        engine.goto(5)
        assert engine.session.current_step == 5
        assert engine.session.navigation_history == []

    @pytest.mark.asyncio
    async def test_reset_history(self, engine) -> None:
        await walk_to_templates(engine)
        engine.navigator.goto(2, reset_history=True)
        assert engine.session.navigation_history == []


class TestStepEntry:
    """Step entry notifications."""

    def test_each_subscriber_notified_once(self, engine) -> None:
        first, second = [], []
        engine.navigator.on_step_entry(first.append)
        engine.navigator.on_step_entry(second.append)

        engine.goto(4)

        assert len(first) == 1 and len(second) == 1
        assert first[0].step_number == 4
        assert first[0].step_id == "templates"
        assert first[0].display_number == 4

    def test_unsubscribe(self, engine) -> None:
        seen = []
        unsubscribe = engine.navigator.on_step_entry(seen.append)
        unsubscribe()
        engine.goto(2)
        assert seen == []

    @pytest.mark.asyncio
    async def test_display_number_on_template_path(self, engine) -> None:
        seen = []
        await walk_to_templates(engine)
        engine.navigator.on_step_entry(seen.append)
        engine.apply_template("home-node", ["core"])

        await engine.next()

        assert seen[-1].step_id == "configure"
        assert seen[-1].display_number == 5

    def test_failing_listener_does_not_block_others(self, engine) -> None:
        seen = []

        def broken(entry):
            raise RuntimeError("boom")

        engine.navigator.on_step_entry(broken)
        engine.navigator.on_step_entry(seen.append)

        assert engine.goto(3).ok
        assert len(seen) == 1


class TestPathSwitching:
    """Navigation path changes."""

    def test_visible_steps_follow_path(self, engine) -> None:
        engine.navigator.set_path(NavigationPath.TEMPLATE)
        ids = [s["id"] for s in engine.session.visible_steps]
        assert "profiles" not in ids
        assert len(ids) == 8

        engine.navigator.set_path(NavigationPath.CUSTOM)
        ids = [s["id"] for s in engine.session.visible_steps]
        assert "profiles" in ids
        assert len(ids) == 9

    def test_switching_is_idempotent(self, engine) -> None:
        engine.navigator.set_path(NavigationPath.TEMPLATE)
        once = engine.session.visible_steps
        engine.navigator.set_path(NavigationPath.CUSTOM)
        engine.navigator.set_path(NavigationPath.TEMPLATE)
        engine.navigator.set_path(NavigationPath.TEMPLATE)
        assert engine.session.visible_steps == once

    def test_custom_clears_template(self, engine) -> None:
        engine.apply_template("home-node", ["core"])
        engine.navigator.set_path(NavigationPath.TEMPLATE)

        engine.navigator.set_path(NavigationPath.CUSTOM)

        assert engine.session.selected_template is None
        assert engine.session.template_applied is False

    def test_template_without_selection_clears_profiles(self, engine) -> None:
        engine.navigator.set_path(NavigationPath.CUSTOM)
        engine.select_profiles(["core"])

        engine.navigator.set_path(NavigationPath.TEMPLATE)

        assert engine.session.selected_profiles == []

    def test_manual_profiles_switch_to_custom(self, engine) -> None:
        engine.apply_template("home-node", ["core"])
        engine.navigator.set_path(NavigationPath.TEMPLATE)

        engine.select_profiles(["core", "explorer"])

        assert engine.session.navigation_path == NavigationPath.CUSTOM
        assert engine.session.selected_template is None
        assert engine.session.selected_profiles == ["core", "explorer"]


class TestReconfiguration:
    def test_exit_returns_to_start(self, engine) -> None:
        engine.session.set("reconfiguration_action", "add-profile")
        engine.session.set("reconfiguration_data", {"profiles": ["mining"]})
        engine.goto(6)

        outcome = engine.exit_reconfiguration()

        assert outcome.ok
        assert engine.session.current_step == 1
        assert "reconfiguration_action" not in engine.session.get_state()
        assert "reconfiguration_data" not in engine.session.get_state()

    def test_exit_after_install_goes_to_complete(self, engine) -> None:
        engine.mark_installation_complete()
        engine.session.set("reconfiguration_context", {"origin": "dashboard"})

        engine.exit_reconfiguration()

        assert engine.navigator.current.id == "complete"


class TestOwnershipAndReentrancy:
    def test_navigation_fields_are_owned(self, engine) -> None:
        with pytest.raises(OwnershipError):
            engine.session.set("current_step", 4)
        with pytest.raises(OwnershipError):
            engine.session.set("navigation_path", "custom")

    def test_second_controller_rejected(self, engine) -> None:
        with pytest.raises(OwnershipError):
            NavigationController(engine.session)

    @pytest.mark.asyncio
    async def test_requests_during_pending_transition_refused(self, engine, validator) -> None:
        """While a gate is awaiting the validator, other moves are refused."""
        await walk_to_templates(engine)
        engine.apply_template("home-node", ["core"])
        await engine.next()
        assert engine.navigator.current.id == "configure"

        validator.block = asyncio.Event()
        task = asyncio.create_task(engine.navigator.next())
        while not validator.calls:
            await asyncio.sleep(0)

        assert engine.navigator.pending
        for refused in (engine.navigator.previous(), engine.navigator.goto(2), await engine.navigator.next()):
            assert not refused.ok
            assert isinstance(refused.error, TransitionPending)
        assert engine.navigator.current.id == "configure"

        validator.block.set()
        outcome = await task

        assert outcome.ok
        assert engine.navigator.current.id == "review"
        assert not engine.navigator.pending
