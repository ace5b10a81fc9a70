"""
Reference resolution against the step result cache.

Resolution walks params recursively. A string that is exactly one reference
is replaced by the referenced value with its type preserved; references
embedded in literal text are substituted with a string form of the value.

    cache[0].data == [{"id": "a"}, {"id": "b"}]

    resolve({"ids": "${step[0].data.*.id}"}, cache).resolved
    # {"ids": ["a", "b"]}

    resolve({"label": "first=${step[0].data[0].id}"}, cache).resolved
    # {"label": "first=a"}

Neither ``resolve`` nor ``validate_references`` raise; failures come back on
the result object.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import structlog

from planwave.core.exceptions import (
    IndexOutOfBoundsError,
    PathNotFoundError,
    ReferenceNotFoundError,
    ReferenceResolutionError,
    StepFailedReferenceError,
    WildcardTypeError,
)
from planwave.execution.step_cache import StepResultCache
from planwave.references.parser import (
    FieldToken,
    IndexToken,
    PathToken,
    ReferenceExpression,
    find_references,
    iter_strings,
    whole_reference,
)

logger = structlog.get_logger(__name__)


@dataclass
class ResolveResult:
    """Outcome of resolving one step's params."""
    resolved: Dict[str, Any]
    success: bool
    error: Optional[str] = None
    error_type: Optional[str] = None


@dataclass
class ReferenceValidationResult:
    """Dry-run result listing every reference problem in a set of params."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def evaluate(expression: ReferenceExpression, cache: StepResultCache) -> Any:
    """
    Extract the value a reference expression points at.

    Raises:
        ReferenceNotFoundError: Referenced step has no cache entry
        StepFailedReferenceError: Referenced step did not succeed
        PathNotFoundError, IndexOutOfBoundsError, WildcardTypeError: Path
            does not match the shape of the cached data
    """
    index = expression.step_index
    if not cache.has(index):
        raise ReferenceNotFoundError(index, cache.get_available_steps())

    entry = cache.get(index)
    if not entry.success:
        raise StepFailedReferenceError(index, entry.error)

    return _walk(entry.data, expression.evaluation_tokens, expression.path)


def _walk(value: Any, tokens: Sequence[PathToken], path: str) -> Any:
    for position, token in enumerate(tokens):
        if isinstance(token, FieldToken):
            if not isinstance(value, dict) or token.name not in value:
                raise PathNotFoundError(path, token.name)
            value = value[token.name]

        elif isinstance(token, IndexToken):
            if not isinstance(value, list):
                raise IndexOutOfBoundsError(path, token.index)
            if token.index >= len(value):
                raise IndexOutOfBoundsError(path, token.index, len(value))
            value = value[token.index]

        else:
            if not isinstance(value, list):
                raise WildcardTypeError(path, type(value).__name__)
            remaining = tokens[position + 1:]
            return [_walk(element, remaining, path) for element in value]

    return value


def stringify(value: Any) -> str:
    """String form used when a reference is embedded in literal text."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)


def _resolve_string(text: str, cache: StepResultCache) -> Any:
    references = find_references(text)
    if not references:
        return text

    whole = whole_reference(text, references)
    if whole is not None:
        return copy.deepcopy(evaluate(whole, cache))

    parts: List[str] = []
    cursor = 0
    for reference in references:
        value = evaluate(reference, cache)
        if isinstance(value, (list, dict)):
            logger.warning(
                "Collection embedded in string parameter",
                reference=reference.raw,
                value_type=type(value).__name__,
            )
        parts.append(text[cursor:reference.start])
        parts.append(stringify(value))
        cursor = reference.end
    parts.append(text[cursor:])
    return "".join(parts)


def _resolve_value(value: Any, cache: StepResultCache) -> Any:
    if isinstance(value, str):
        return _resolve_string(value, cache)
    if isinstance(value, dict):
        return {key: _resolve_value(item, cache) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_value(item, cache) for item in value]
    return value


def resolve(params: Dict[str, Any], cache: StepResultCache) -> ResolveResult:
    """
    Resolve every reference expression in params.

    Args:
        params: Step params, possibly containing reference expressions
        cache: Results of the steps executed so far

    Returns:
        ResolveResult; on failure ``error`` carries the first problem found
    """
    try:
        resolved = _resolve_value(params or {}, cache)
    except ReferenceResolutionError as e:
        return ResolveResult(
            resolved={},
            success=False,
            error=e.message,
            error_type=type(e).__name__,
        )
    return ResolveResult(resolved=resolved, success=True)


def validate_references(params: Dict[str, Any], cache: StepResultCache) -> ReferenceValidationResult:
    """
    Check every reference in params against the cache without resolving.

    Unlike ``resolve`` this does not stop at the first problem. Embedding a
    collection in literal text is reported as a warning.
    """
    errors: List[str] = []
    warnings: List[str] = []

    def check_string(text: str) -> None:
        try:
            references = find_references(text)
        except ReferenceResolutionError as e:
            errors.append(e.message)
            return

        embedded = whole_reference(text, references) is None
        for reference in references:
            try:
                value = evaluate(reference, cache)
            except ReferenceResolutionError as e:
                errors.append(e.message)
                continue
            if embedded and isinstance(value, (list, dict)):
                warnings.append(
                    f"Reference {reference.raw} embeds a {type(value).__name__} in a string; "
                    f"it will be inserted as JSON text"
                )

    for text in iter_strings(params or {}):
        check_string(text)
    return ReferenceValidationResult(valid=not errors, errors=errors, warnings=warnings)
