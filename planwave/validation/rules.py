"""
Ready-made domain rules for PlanValidator.

A rule is any callable ``(step) -> List[str]`` returning error messages; the
validator prefixes each message with the step index. Domain knowledge lives
in rules supplied by the caller, never in the validator itself.

Example:
    validator = PlanValidator(registry, rules=[
        mutually_exclusive_params("contaminants_list", "shipment_ids", "facility_id"),
        parameter_schema_rule(registry),
    ])
"""

from typing import List

from planwave.domain.models import PlanStep
from planwave.domain.ports import DomainRule
from planwave.tools.registry import ToolRegistry


def mutually_exclusive_params(tool: str, *params: str) -> DomainRule:
    """Forbid a tool from receiving more than one of ``params`` at once."""
    if len(params) < 2:
        raise ValueError("mutually_exclusive_params needs at least two parameter names")

    def rule(step: PlanStep) -> List[str]:
        if step.tool != tool:
            return []
        present = [p for p in params if step.params.get(p) not in (None, "", [])]
        if len(present) > 1:
            return [f"Cannot specify both {' and '.join(present)} for {tool}"]
        return []

    rule.__name__ = f"mutually_exclusive_{tool}"
    return rule


def parameter_schema_rule(registry: ToolRegistry) -> DomainRule:
    """Check step params against the parameter schema each tool advertises."""

    def rule(step: PlanStep) -> List[str]:
        # Unknown tools are reported by the structure check
        if not registry.has_tool(step.tool):
            return []
        return registry.validate_parameters(step.tool, step.params)

    rule.__name__ = "parameter_schema"
    return rule
