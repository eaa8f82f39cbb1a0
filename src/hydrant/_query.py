"""Query expressions: ask an injected capability for state and extract a typed value.

The engine never talks to a chain or a network itself. Callers pass an object
implementing `QueryCapability`; tests and the CLI use `StaticQueryCapability`,
which answers from a fixed table of request/response pairs.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, Self

from ._enums import ValueKind
from ._errors import InvalidSelector, ParseError, QueryFailed, TypeConversionFailed
from ._path import Selector, select
from ._values import Value, parse_value

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ._models import QueryExpr

logger = logging.getLogger(__name__)


class QueryCapability(Protocol):
    """Read access to external state."""

    def query(self, request: Any) -> Any:
        """Answer an opaque request with a JSON-like response.

        Raises:
            QueryFailed: If the request cannot be answered.

        """
        ...


def canonical_request(request: Any) -> str:
    """Canonical JSON text of a request, independent of key order and whitespace."""
    return json.dumps(request, sort_keys=True, separators=(",", ":"))


class StaticQueryCapability:
    """Query capability answering from a fixed table, keyed by canonical request JSON."""

    def __init__(self, responses: Mapping[str, Any] | None = None) -> None:
        self._responses: dict[str, Any] = dict(responses or {})

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[Any, Any]]) -> Self:
        return cls({canonical_request(request): response for request, response in pairs})

    def add(self, request: Any, response: Any) -> None:
        self._responses[canonical_request(request)] = response

    def query(self, request: Any) -> Any:
        key = canonical_request(request)
        try:
            return self._responses[key]
        except KeyError:
            msg = f"No response registered for query {key}"
            raise QueryFailed(msg) from None


def leaf_to_text(leaf: Any, kind: ValueKind) -> str:
    """Turn a selected JSON leaf into value text for `kind`.

    Numbers and bools are written in canonical form; objects and arrays are
    only accepted for string variables, as compact JSON.
    """
    match leaf:
        case str(text):
            return text
        case bool(flag):
            return "true" if flag else "false"
        case int(number):
            return str(number)
        case float(number):
            return format(Decimal(repr(number)), "f")
        case dict() | list() if kind is ValueKind.STRING:
            return json.dumps(leaf, separators=(",", ":"))
    msg = f"Cannot convert {type(leaf).__name__} to {kind}"
    raise TypeConversionFailed(msg)


def leaf_to_value(leaf: Any, kind: ValueKind) -> Value:
    """Convert a selected JSON leaf into a value of `kind`.

    Raises:
        TypeConversionFailed: If the leaf does not parse as `kind`.

    """
    text = leaf_to_text(leaf, kind)
    try:
        return parse_value(text, kind)
    except ParseError as e:
        msg = f"Query result {text!r} is not a valid {kind}: {e}"
        raise TypeConversionFailed(msg) from e


def run_query(expr: QueryExpr, queries: QueryCapability) -> Any:
    """Issue the query once and return the raw response."""
    logger.debug("Querying %s", canonical_request(expr.query))
    return queries.query(expr.query)


def parse_selector(text: str) -> Selector:
    """Parse selector text.

    Raises:
        InvalidSelector: If the text does not follow the path syntax.

    """
    try:
        return Selector.parse(text)
    except ValueError as e:
        msg = f"Invalid selector {text!r}: {e}"
        raise InvalidSelector(msg) from e


def evaluate_query_expression(expr: QueryExpr, kind: ValueKind, queries: QueryCapability) -> Value:
    """Issue a query, walk the selector, and convert the leaf.

    Raises:
        InvalidSelector: If the selector is malformed.
        QueryFailed: If the capability cannot answer.
        SelectorNotFound: If a selector segment is missing from the response.
        TypeConversionFailed: If the leaf is not a valid value of `kind`.

    """
    selector = parse_selector(expr.selector)
    response = run_query(expr, queries)
    return leaf_to_value(select(response, selector), kind)
