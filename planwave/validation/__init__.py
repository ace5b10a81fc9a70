"""Plan validation and ready-made domain rules."""

from planwave.validation.plan_validator import PlanValidator
from planwave.validation.rules import mutually_exclusive_params, parameter_schema_rule

__all__ = [
    "PlanValidator",
    "mutually_exclusive_params",
    "parameter_schema_rule",
]
