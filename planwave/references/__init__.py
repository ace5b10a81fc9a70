"""Parsing and resolution of ``${step[N].path}`` reference expressions."""

from planwave.references.parser import (
    FieldToken,
    IndexToken,
    ReferenceExpression,
    WildcardToken,
    find_references,
    parse_reference,
)
from planwave.references.resolver import (
    ReferenceValidationResult,
    ResolveResult,
    evaluate,
    resolve,
    validate_references,
)

__all__ = [
    "FieldToken",
    "IndexToken",
    "WildcardToken",
    "ReferenceExpression",
    "find_references",
    "parse_reference",
    "ResolveResult",
    "ReferenceValidationResult",
    "evaluate",
    "resolve",
    "validate_references",
]
