"""Dependency waves and ancestor sets for a validated plan."""

from typing import Dict, List, Sequence, Set

from planwave.domain.models import PlanStep


def wave_numbers(steps: Sequence[PlanStep]) -> List[int]:
    """
    Compute the wave of every step.

    wave(i) is 0 for a step without dependencies, otherwise one more than
    the highest wave among its dependencies. Steps must only depend on
    earlier indices, so a single forward pass suffices.
    """
    waves: List[int] = []
    for step in steps:
        deps = step.dependencies
        waves.append(1 + max(waves[j] for j in deps) if deps else 0)
    return waves


def build_waves(steps: Sequence[PlanStep]) -> List[List[int]]:
    """Group step indices by wave, ascending; indices within a wave keep plan order."""
    levels: Dict[int, List[int]] = {}
    for index, wave in enumerate(wave_numbers(steps)):
        levels.setdefault(wave, []).append(index)
    return [levels[wave] for wave in sorted(levels)]


def ancestors(steps: Sequence[PlanStep], index: int) -> Set[int]:
    """Transitive dependencies of a step."""
    found: Set[int] = set()
    stack = list(steps[index].dependencies)
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        if 0 <= current < len(steps):
            stack.extend(steps[current].dependencies)
    return found
