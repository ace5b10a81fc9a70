"""
Plan Validator

Validates plans before execution so that malformed plans are rejected
before any tool runs, instead of failing half way through.

Philosophy: No silent repair. A reference to a step that is not declared in
depends_on is an error, never an implicit dependency. Plan generation gets
the full error list back and must fix the plan.

Key validations:
- Plan has steps, every step names a known tool
- depends_on entries point to earlier steps
- Dependency graph has no cycles
- Reference expressions parse and point to earlier, declared dependencies
- Pluggable domain rules hold for every step
"""

from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import structlog

from planwave.core.exceptions import ReferenceSyntaxError
from planwave.domain.models import Plan, PlanStep, ValidationResult
from planwave.domain.ports import DomainRule, ToolLookupPort
from planwave.references.parser import find_references, iter_strings, whole_reference

logger = structlog.get_logger(__name__)


class PlanValidator:
    """
    Validates plans against the tool lookup and domain rules.

    Never raises: callers inspect ``valid``/``errors`` and decide whether to
    run, regenerate or abort.
    """

    def __init__(self, tool_lookup: Optional[ToolLookupPort], rules: Sequence[DomainRule] = ()):
        self._tool_lookup = tool_lookup
        self._rules = list(rules)

    def add_rule(self, rule: DomainRule) -> None:
        self._rules.append(rule)

    def validate(self, plan: Plan) -> ValidationResult:
        """Run structure and feasibility checks and merge the results."""
        result = self.validate_structure(plan).merge(self.validate_feasibility(plan))

        if not result.valid:
            logger.warning(
                "Plan validation failed",
                plan_id=plan.id,
                error_count=result.error_count,
                errors=result.errors[:5],
            )
        else:
            logger.info("Plan validation passed", plan_id=plan.id, step_count=len(plan.steps))

        return result

    def validate_structure(self, plan: Plan) -> ValidationResult:
        """
        Check tools, dependency indices and cycles.

        Performs these validations:
        1. Plan has at least one step
        2. Each step names a non-empty, known tool
        3. Each depends_on entry is an integer in [0, i)
        4. The dependency graph is acyclic
        """
        errors: List[str] = []
        steps = plan.steps

        if not steps:
            return ValidationResult.from_errors(["Plan has no steps"])

        for i, step in enumerate(steps):
            errors.extend(self._validate_tool(i, step))

            if not isinstance(step.params, dict):
                errors.append(f"Step {i}: params must be an object")

            if not isinstance(step.depends_on, (list, tuple)):
                errors.append(f"Step {i}: depends_on must be a list of integers")
                continue

            for dep in step.depends_on:
                if not isinstance(dep, int) or isinstance(dep, bool):
                    errors.append(f"Step {i}: depends_on entries must be integers, got {dep!r}")
                elif dep < 0 or dep >= i:
                    errors.append(f"Step {i} depends on invalid/future step {dep}")

        cycle = self.find_cycle(plan)
        if cycle:
            errors.append(
                "Circular dependency detected: " + " -> ".join(str(i) for i in cycle)
            )

        return ValidationResult.from_errors(errors)

    def validate_feasibility(self, plan: Plan) -> ValidationResult:
        """
        Check reference expressions and domain rules.

        Each reference must parse, point to an earlier step and be declared
        in depends_on. Embedding a wildcard reference in literal text only
        produces a warning.
        """
        errors: List[str] = []
        warnings: List[str] = []

        for i, step in enumerate(plan.steps):
            declared = set(step.dependencies)

            for text in iter_strings(step.params):
                try:
                    references = find_references(text)
                except ReferenceSyntaxError as e:
                    errors.append(f"Step {i}: {e.message}")
                    continue

                embedded = whole_reference(text, references) is None
                for reference in references:
                    j = reference.step_index
                    if j >= i:
                        errors.append(f"Step {i}: Template references future step {j}")
                    elif j not in declared:
                        errors.append(
                            f"Step {i} references step {j} without declaring it in depends_on"
                        )
                    if embedded and reference.has_wildcard:
                        warnings.append(
                            f"Step {i}: {reference.raw} yields a list but is embedded in text; "
                            f"it will be inserted as JSON"
                        )

            errors.extend(self._run_rules(i, step))

        self._log_unconsumed_steps(plan.steps)
        return ValidationResult.from_errors(errors, warnings)

    def find_cycle(self, plan: Plan) -> Optional[List[int]]:
        """
        Find the first dependency cycle, e.g. ``[0, 1, 0]``.

        Only edges to existing step indices are followed, so out-of-range
        entries are left to the index check.
        """
        count = len(plan.steps)
        graph: Dict[int, List[int]] = {
            i: [dep for dep in step.dependencies if 0 <= dep < count]
            for i, step in enumerate(plan.steps)
        }

        visited: Set[int] = set()
        on_stack: Set[int] = set()
        path: List[int] = []

        for root in range(count):
            if root in visited:
                continue

            visited.add(root)
            on_stack.add(root)
            path.append(root)
            stack: List[Tuple[int, Iterator[int]]] = [(root, iter(graph[root]))]

            while stack:
                node, deps = stack[-1]
                dep = next(deps, None)
                if dep is None:
                    stack.pop()
                    on_stack.discard(node)
                    path.pop()
                elif dep in on_stack:
                    return path[path.index(dep):] + [dep]
                elif dep not in visited:
                    visited.add(dep)
                    on_stack.add(dep)
                    path.append(dep)
                    stack.append((dep, iter(graph[dep])))
        return None

    def _validate_tool(self, index: int, step: PlanStep) -> List[str]:
        if not isinstance(step.tool, str) or not step.tool.strip():
            return [f"Step {index}: tool must be a non-empty string"]
        if self._tool_lookup is not None and self._tool_lookup.lookup(step.tool) is None:
            return [f"Step {index}: Unknown tool: {step.tool}"]
        return []

    def _run_rules(self, index: int, step: PlanStep) -> List[str]:
        errors: List[str] = []
        for rule in self._rules:
            rule_name = getattr(rule, "__name__", type(rule).__name__)
            try:
                rule_errors = rule(step) or []
            except Exception as e:
                logger.warning(
                    "Validation rule raised",
                    rule=rule_name,
                    step_index=index,
                    error=str(e),
                )
                errors.append(f"Step {index}: Rule {rule_name} failed: {e}")
                continue
            errors.extend(f"Step {index}: {error}" for error in rule_errors)
        return errors

    def _log_unconsumed_steps(self, steps: Sequence[PlanStep]) -> None:
        consumed: Set[int] = set()
        for step in steps:
            consumed.update(step.dependencies)

        unconsumed = [i for i in range(len(steps) - 1) if i not in consumed]
        if unconsumed:
            logger.debug("Steps whose output no later step uses", step_indices=unconsumed)
