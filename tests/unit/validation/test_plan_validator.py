"""
Unit tests for PlanValidator.

Tests the structure checks (tools, dependency indices, cycles) and the
feasibility checks (reference expressions, pluggable rules).
"""

import pytest

from planwave.domain.models import Plan, PlanStep, ValidationResult
from planwave.validation.plan_validator import PlanValidator


@pytest.fixture
def validator(registry, make_tool):
    for name in ("facilities_list", "contaminants_list", "shipments_list"):
        make_tool(name)
    return PlanValidator(registry)


def _plan(*steps):
    return Plan(steps=[PlanStep.from_dict(s) for s in steps])


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_valid_result(self):
        result = ValidationResult.from_errors([])
        assert result.valid is True
        assert result.error_count == 0
        assert "passed" in result.to_feedback().lower()

    def test_feedback_lists_errors_and_warnings(self):
        result = ValidationResult.from_errors(["first", "second"], ["careful"])
        feedback = result.to_feedback()
        assert result.valid is False
        assert "1. first" in feedback
        assert "2. second" in feedback
        assert "- careful" in feedback

    def test_merge(self):
        merged = ValidationResult.from_errors([], ["w1"]).merge(ValidationResult.from_errors(["e1"]))
        assert merged.valid is False
        assert merged.errors == ["e1"]
        assert merged.warnings == ["w1"]


class TestValidateStructure:
    """Tests for tool, dependency and cycle checks."""

    def test_valid_plan(self, validator):
        plan = _plan(
            {"tool": "facilities_list", "params": {"type": "sorting"}},
            {
                "tool": "contaminants_list",
                "params": {"facility_id": "${step[0].data[0].id}"},
                "depends_on": [0],
            },
        )
        assert validator.validate(plan).valid is True

    def test_empty_plan(self, validator):
        result = validator.validate_structure(Plan(steps=[]))
        assert result.errors == ["Plan has no steps"]

    def test_unknown_tool_does_not_stop_validation(self, validator):
        plan = _plan({"tool": "nope"}, {"tool": "also_nope"})
        result = validator.validate_structure(plan)
        assert result.errors == ["Step 0: Unknown tool: nope", "Step 1: Unknown tool: also_nope"]

    def test_empty_tool_name(self, validator):
        result = validator.validate_structure(_plan({"tool": ""}))
        assert result.errors == ["Step 0: tool must be a non-empty string"]

    def test_future_dependency_rejected_even_if_step_exists(self, validator):
        plan = _plan(
            {"tool": "facilities_list"},
            {"tool": "facilities_list", "depends_on": [2]},
            {"tool": "facilities_list"},
        )
        result = validator.validate_structure(plan)
        assert "Step 1 depends on invalid/future step 2" in result.errors

    def test_future_dependency_rejected_when_step_missing(self, validator):
        plan = _plan({"tool": "facilities_list"}, {"tool": "facilities_list", "depends_on": [2]})
        result = validator.validate_structure(plan)
        assert result.errors == ["Step 1 depends on invalid/future step 2"]

    def test_self_and_negative_dependencies(self, validator):
        plan = _plan({"tool": "facilities_list", "depends_on": [0, -1]})
        result = validator.validate_structure(plan)
        assert "Step 0 depends on invalid/future step 0" in result.errors
        assert "Step 0 depends on invalid/future step -1" in result.errors

    def test_non_integer_dependency(self, validator):
        plan = _plan({"tool": "facilities_list"}, {"tool": "facilities_list", "depends_on": ["0"]})
        result = validator.validate_structure(plan)
        assert result.valid is False
        assert "must be integers" in result.errors[0]

    def test_cycle_reported(self, validator):
        plan = _plan(
            {"tool": "facilities_list", "depends_on": [1]},
            {"tool": "facilities_list", "depends_on": [0]},
        )
        result = validator.validate_structure(plan)
        assert "Circular dependency detected: 0 -> 1 -> 0" in result.errors

    def test_find_cycle(self, validator):
        acyclic = _plan({"tool": "facilities_list"}, {"tool": "facilities_list", "depends_on": [0]})
        assert validator.find_cycle(acyclic) is None

        cyclic = _plan(
            {"tool": "facilities_list"},
            {"tool": "facilities_list", "depends_on": [2]},
            {"tool": "facilities_list", "depends_on": [1]},
        )
        assert validator.find_cycle(cyclic) == [1, 2, 1]

    def test_cycle_ignores_out_of_range_edges(self, validator):
        plan = _plan({"tool": "facilities_list", "depends_on": [7]})
        assert validator.find_cycle(plan) is None

    def test_long_forward_chain(self, validator):
        steps = [PlanStep("facilities_list", depends_on=[i + 1]) for i in range(1500)]
        plan = Plan(steps=steps + [PlanStep("facilities_list")])

        result = validator.validate_structure(plan)

        assert result.valid is False
        assert result.error_count == 1500
        assert validator.find_cycle(plan) is None

    def test_long_cycle_found(self, validator):
        steps = [PlanStep("facilities_list", depends_on=[i + 1]) for i in range(1500)]
        steps.append(PlanStep("facilities_list", depends_on=[0]))

        cycle = validator.find_cycle(Plan(steps=steps))

        assert cycle[0] == cycle[-1] == 0
        assert len(cycle) == 1502

    def test_depends_on_none(self, validator):
        plan = Plan(steps=[PlanStep(tool="facilities_list", depends_on=None)])

        result = validator.validate(plan)

        assert result.errors == ["Step 0: depends_on must be a list of integers"]

    def test_depends_on_scalar_from_json(self, validator):
        plan = Plan.from_dict({
            "steps": [
                {"tool": "facilities_list"},
                {"tool": "contaminants_list", "depends_on": 0},
            ]
        })

        result = validator.validate(plan)

        assert plan.steps[1].depends_on == 0
        assert result.errors == ["Step 1: depends_on must be a list of integers"]

    def test_without_tool_lookup(self):
        result = PlanValidator(None).validate_structure(_plan({"tool": "anything"}))
        assert result.valid is True


class TestValidateFeasibility:
    """Tests for reference checks and domain rules."""

    def test_reference_to_future_step(self, validator):
        plan = _plan(
            {"tool": "facilities_list", "params": {"id": "${step[1].data}"}},
            {"tool": "facilities_list"},
        )
        result = validator.validate_feasibility(plan)
        assert result.errors == ["Step 0: Template references future step 1"]

    def test_reference_to_self(self, validator):
        plan = _plan({"tool": "facilities_list", "params": {"id": "${step[0].data}"}})
        result = validator.validate_feasibility(plan)
        assert result.errors == ["Step 0: Template references future step 0"]

    def test_undeclared_reference_is_error(self, validator):
        plan = _plan(
            {"tool": "facilities_list"},
            {"tool": "contaminants_list", "params": {"facility_id": "${step[0].data[0].id}"}},
        )
        result = validator.validate_feasibility(plan)
        assert result.errors == ["Step 1 references step 0 without declaring it in depends_on"]
        assert plan.steps[1].depends_on == []

    def test_nested_references_are_scanned(self, validator):
        plan = _plan(
            {"tool": "facilities_list"},
            {"tool": "shipments_list", "params": {"filter": {"ids": ["${step[3].data}"]}}, "depends_on": [0]},
        )
        result = validator.validate_feasibility(plan)
        assert result.errors == ["Step 1: Template references future step 3"]

    def test_malformed_reference(self, validator):
        plan = _plan(
            {"tool": "facilities_list"},
            {"tool": "shipments_list", "params": {"id": "${step[0].data"}, "depends_on": [0]},
        )
        result = validator.validate_feasibility(plan)
        assert result.valid is False
        assert result.errors[0].startswith("Step 1: Invalid reference")

    def test_embedded_wildcard_is_warning(self, validator):
        plan = _plan(
            {"tool": "facilities_list"},
            {"tool": "shipments_list", "params": {"q": "ids ${step[0].data.*.id}"}, "depends_on": [0]},
        )
        result = validator.validate_feasibility(plan)
        assert result.valid is True
        assert len(result.warnings) == 1

    def test_rule_errors_are_prefixed(self, registry):
        def no_limit(step):
            return ["limit is not allowed"] if "limit" in step.params else []

        validator = PlanValidator(registry, rules=[no_limit])
        plan = _plan({"tool": "x"}, {"tool": "x", "params": {"limit": 5}})
        result = validator.validate_feasibility(plan)
        assert result.errors == ["Step 1: limit is not allowed"]

    def test_raising_rule_becomes_error(self, registry):
        def broken(step):
            raise KeyError("oops")

        validator = PlanValidator(registry)
        validator.add_rule(broken)
        result = validator.validate_feasibility(_plan({"tool": "x"}))
        assert result.valid is False
        assert result.errors[0].startswith("Step 0: Rule broken failed")

    def test_collects_all_problems(self, validator):
        plan = _plan(
            {"tool": "unknown", "depends_on": [3]},
            {"tool": "facilities_list", "params": {"a": "${step[5].x}", "b": "${step[0].y}"}},
        )
        result = validator.validate(plan)
        assert result.error_count == 4
