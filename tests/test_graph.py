"""Tests for the step graph."""

import pytest

from setupwizard.wizard.graph import WIZARD_STEPS, Step, StepGraph
from setupwizard.wizard.state import NavigationPath


@pytest.fixture
def graph() -> StepGraph:
    return StepGraph()


class TestStepGraph:
    def test_standard_steps(self, graph) -> None:
        assert graph.total == 9
        assert [s.id for s in graph.steps] == [
            "welcome", "checklist", "system-check", "templates", "profiles",
            "configure", "review", "install", "complete",
        ]
        assert graph.first.id == "welcome"
        assert graph.last.id == "complete"

    def test_lookup(self, graph) -> None:
        assert graph.position_of("configure") == 6
        assert graph.by_position(5).id == "profiles"
        with pytest.raises(IndexError):
            graph.by_position(0)
        with pytest.raises(KeyError):
            graph.by_id("missing")

    def test_positions_must_be_contiguous(self) -> None:
        with pytest.raises(ValueError):
            StepGraph([Step("a", 1, "A"), Step("b", 3, "B")])

    def test_ids_must_be_unique(self) -> None:
        with pytest.raises(ValueError):
            StepGraph([Step("a", 1, "A"), Step("a", 2, "A again")])

    def test_steps_are_sorted(self) -> None:
        graph = StepGraph(list(reversed(WIZARD_STEPS)))
        assert graph.first.id == "welcome"


class TestVisibility:
    def test_template_hides_profiles(self, graph) -> None:
        visible = graph.derive_visible_steps(NavigationPath.TEMPLATE)
        assert "profiles" not in [v.step.id for v in visible]
        assert [v.display_number for v in visible] == list(range(1, 9))

    @pytest.mark.parametrize("path", [NavigationPath.UNSET, NavigationPath.CUSTOM])
    def test_other_paths_show_everything(self, graph, path) -> None:
        assert len(graph.derive_visible_steps(path)) == 9

    def test_display_numbers(self, graph) -> None:
        assert graph.display_number("configure", NavigationPath.TEMPLATE) == 5
        assert graph.display_number("configure", NavigationPath.CUSTOM) == 6
        assert graph.display_number("profiles", NavigationPath.TEMPLATE) is None

    def test_back_targets(self, graph) -> None:
        assert graph.back_target("configure", NavigationPath.TEMPLATE) == "templates"
        assert graph.back_target("configure", NavigationPath.CUSTOM) == "profiles"
        assert graph.back_target("configure", NavigationPath.UNSET) is None
        assert graph.back_target("profiles", NavigationPath.CUSTOM) == "templates"
        assert graph.back_target("review", NavigationPath.CUSTOM) is None
