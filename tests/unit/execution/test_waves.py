"""Unit tests for wave construction and ancestor lookup."""

from planwave.domain.models import PlanStep
from planwave.execution.waves import ancestors, build_waves, wave_numbers


def _steps(*deps):
    return [PlanStep(tool=f"t{i}", depends_on=list(d)) for i, d in enumerate(deps)]


class TestWaves:

    def test_independent_steps_share_wave_zero(self):
        steps = _steps([], [], [])
        assert wave_numbers(steps) == [0, 0, 0]
        assert build_waves(steps) == [[0, 1, 2]]

    def test_wave_is_one_past_deepest_dependency(self):
        steps = _steps([], [], [0], [2, 1], [1])
        assert wave_numbers(steps) == [0, 0, 1, 2, 1]
        assert build_waves(steps) == [[0, 1], [2, 4], [3]]

    def test_chain(self):
        steps = _steps([], [0], [1])
        assert build_waves(steps) == [[0], [1], [2]]

    def test_single_step(self):
        assert build_waves(_steps([])) == [[0]]


class TestAncestors:

    def test_transitive(self):
        steps = _steps([], [0], [1], [])
        assert ancestors(steps, 2) == {0, 1}
        assert ancestors(steps, 3) == set()

    def test_diamond(self):
        steps = _steps([], [0], [0], [1, 2])
        assert ancestors(steps, 3) == {0, 1, 2}

    def test_malformed_dependencies_ignored(self):
        steps = [PlanStep(tool="t0"), PlanStep(tool="t1", depends_on=None), PlanStep(tool="t2", depends_on=[0, 9])]
        assert ancestors(steps, 1) == set()
        assert ancestors(steps, 2) == {0, 9}
