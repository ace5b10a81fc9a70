"""
Reference expression parser.

Step params may carry references to the output of earlier steps:

    ${step[0].data[0].id}      member and index access
    ${step[0].data.*.id}       wildcard broadcast over an array
    "Facility ${step[1].name}" embedded in literal text

Grammar:

    REF   := "${step[" INT "]" PATH "}"
    PATH  := TOKEN*
    TOKEN := "." IDENT | "." "*" | "[" INT "]"
    IDENT := [A-Za-z_][A-Za-z0-9_]*

Only text starting with ``${step[`` is treated as a reference; any other
``${`` is literal text.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple, Union

from planwave.core.exceptions import ReferenceSyntaxError

REFERENCE_MARKER = "${step["


@dataclass(frozen=True)
class FieldToken:
    name: str

    def render(self) -> str:
        return f".{self.name}"


@dataclass(frozen=True)
class IndexToken:
    index: int

    def render(self) -> str:
        return f"[{self.index}]"


@dataclass(frozen=True)
class WildcardToken:
    def render(self) -> str:
        return ".*"


PathToken = Union[FieldToken, IndexToken, WildcardToken]


@dataclass(frozen=True)
class ReferenceExpression:
    """
    One parsed ``${step[N].path}`` expression.

    ``start``/``end`` locate the expression inside the string it was found in.
    """
    step_index: int
    tokens: Tuple[PathToken, ...]
    raw: str
    start: int = 0
    end: int = 0

    @property
    def path(self) -> str:
        """Expression text without the ``${ }`` delimiters, used in error messages."""
        return f"step[{self.step_index}]" + "".join(t.render() for t in self.tokens)

    @property
    def evaluation_tokens(self) -> Tuple[PathToken, ...]:
        """Tokens applied to the cached data; a leading ``.data`` selects the data section."""
        if self.tokens and self.tokens[0] == FieldToken("data"):
            return self.tokens[1:]
        return self.tokens

    @property
    def has_wildcard(self) -> bool:
        return any(isinstance(t, WildcardToken) for t in self.tokens)


class _Parser:
    """Recursive-descent parser over a single string."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, message: str) -> ReferenceSyntaxError:
        return ReferenceSyntaxError(
            f"Invalid reference at position {self.pos} in '{self.text}': {message}",
            text=self.text,
            position=self.pos,
        )

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, literal: str) -> None:
        if not self.text.startswith(literal, self.pos):
            raise self.error(f"expected '{literal}'")
        self.pos += len(literal)

    def parse_int(self) -> int:
        start = self.pos
        while self.peek().isdigit() and self.peek().isascii():
            self.pos += 1
        if start == self.pos:
            raise self.error("expected a non-negative integer")
        return int(self.text[start:self.pos])

    def parse_ident(self) -> str:
        start = self.pos
        ch = self.peek()
        if not (ch.isascii() and (ch.isalpha() or ch == "_")):
            raise self.error("expected a field name or '*'")
        self.pos += 1
        while True:
            ch = self.peek()
            if ch and ch.isascii() and (ch.isalnum() or ch == "_"):
                self.pos += 1
            else:
                break
        return self.text[start:self.pos]

    def parse_token(self) -> PathToken:
        if self.peek() == "[":
            self.pos += 1
            index = self.parse_int()
            self.expect("]")
            return IndexToken(index)

        self.expect(".")
        if self.peek() == "*":
            self.pos += 1
            return WildcardToken()
        return FieldToken(self.parse_ident())

    def parse_path(self) -> Tuple[PathToken, ...]:
        tokens: List[PathToken] = []
        while self.peek() in (".", "["):
            tokens.append(self.parse_token())
        return tuple(tokens)

    def parse_reference(self) -> ReferenceExpression:
        start = self.pos
        self.expect("${step[")
        step_index = self.parse_int()
        self.expect("]")
        tokens = self.parse_path()
        if self.peek() != "}":
            if not self.peek():
                raise self.error("unterminated reference, expected '}'")
            raise self.error(f"unexpected character '{self.peek()}'")
        self.pos += 1
        return ReferenceExpression(
            step_index=step_index,
            tokens=tokens,
            raw=self.text[start:self.pos],
            start=start,
            end=self.pos,
        )


def find_references(text: str) -> List[ReferenceExpression]:
    """
    Parse every reference expression in a string, in order of appearance.

    Raises:
        ReferenceSyntaxError: If any ``${step[`` occurrence is malformed
    """
    references: List[ReferenceExpression] = []
    parser = _Parser(text)
    while True:
        found = text.find(REFERENCE_MARKER, parser.pos)
        if found < 0:
            return references
        parser.pos = found
        references.append(parser.parse_reference())


def parse_reference(text: str) -> ReferenceExpression:
    """Parse a string that must consist of exactly one reference expression."""
    parser = _Parser(text)
    expression = parser.parse_reference()
    if parser.pos != len(text):
        raise parser.error("trailing characters after reference")
    return expression


def whole_reference(text: str, references: List[ReferenceExpression]) -> Optional[ReferenceExpression]:
    """Return the reference if it spans the entire string, else None."""
    if len(references) == 1 and references[0].start == 0 and references[0].end == len(text):
        return references[0]
    return None


def contains_reference(value: Any) -> bool:
    """Cheap check for a reference marker anywhere inside a param value."""
    return any(REFERENCE_MARKER in text for text in iter_strings(value))


def iter_strings(value: Any) -> Iterator[str]:
    """Yield every string nested inside dicts and lists."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_strings(item)
