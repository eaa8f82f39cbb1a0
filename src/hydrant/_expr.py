"""Expression and condition trees, and their JSON form.

Both trees are built from frozen dataclasses. A node owns its children, the
trees are acyclic, and their depth is capped by `EngineSettings.max_depth`
while parsing, so evaluation never recurses deeper than the parsed input.

Expression JSON (externally tagged):

    "text" | 42 | true              literal
    {"simple": "50"}                literal
    {"ref": "$var.price"}           variable reference
    {"env": "block_height"}         ambient context value
    {"fn": {"op": "add", "args": [...]}}

Condition JSON:

    true | false | {"literal": true}
    {"and": [...]} | {"or": [...]} | {"not": {...}}
    {"compare": {"left": expr, "op": "gt", "right": expr, "kind": "uint"}}
    {"bool": expr}
    {"exists": "$var.name"}
    {"expired": expr}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, TypeAlias

from ._enums import CompareOp, ValueKind
from ._errors import ExpressionTooDeep, MalformedExpression
from ._settings import DEFAULT_SETTINGS, NAME_RE, EngineSettings

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

ENV_FUNCTIONS = {"block_height": "block_height", "timestamp": "timestamp", "time": "timestamp"}


# =============================================================================
# Expression nodes
# =============================================================================


@dataclass(frozen=True, slots=True)
class Literal:
    text: str


@dataclass(frozen=True, slots=True)
class VarRef:
    name: str


@dataclass(frozen=True, slots=True)
class FnCall:
    op: str
    args: tuple[Expression, ...] = ()


Expression: TypeAlias = Literal | VarRef | FnCall


# =============================================================================
# Condition nodes
# =============================================================================


@dataclass(frozen=True, slots=True)
class BoolConst:
    value: bool


@dataclass(frozen=True, slots=True)
class Compare:
    left: Expression
    op: CompareOp
    right: Expression
    kind: ValueKind | None = None


@dataclass(frozen=True, slots=True)
class BoolExpr:
    expr: Expression


@dataclass(frozen=True, slots=True)
class Exists:
    name: str


@dataclass(frozen=True, slots=True)
class Expired:
    deadline: Expression


@dataclass(frozen=True, slots=True)
class And:
    children: tuple[Condition, ...]


@dataclass(frozen=True, slots=True)
class Or:
    children: tuple[Condition, ...]


@dataclass(frozen=True, slots=True)
class Not:
    child: Condition


Condition: TypeAlias = BoolConst | Compare | BoolExpr | Exists | Expired | And | Or | Not


# =============================================================================
# Parsing
# =============================================================================


def ref_name(text: str, settings: EngineSettings = DEFAULT_SETTINGS) -> str:
    """Strip the placeholder prefix from a reference and validate the name."""
    name = text.removeprefix(settings.placeholder_prefix)
    if NAME_RE.fullmatch(name) is None:
        msg = f"Invalid variable reference: {text!r}"
        raise MalformedExpression(msg)
    return name


def _check_depth(depth: int, settings: EngineSettings) -> None:
    if depth > settings.max_depth:
        msg = f"Expression nesting exceeds the maximum depth of {settings.max_depth}"
        raise ExpressionTooDeep(msg)


def _single_entry(data: dict[str, Any], what: str) -> tuple[str, Any]:
    if len(data) != 1:
        msg = f"{what} object must have exactly one key, got {sorted(data)}"
        raise MalformedExpression(msg)
    return next(iter(data.items()))


def _literal_text(value: Any) -> str:
    match value:
        case bool(flag):
            return "true" if flag else "false"
        case int(number):
            return str(number)
        case float(number):
            return format(Decimal(repr(number)), "f")
        case str(text):
            return text
    msg = f"Literal must be a string, number or bool, got {value!r}"
    raise MalformedExpression(msg)


def expression_from_json(
    data: Any,
    settings: EngineSettings = DEFAULT_SETTINGS,
    *,
    _depth: int = 0,
) -> Expression:
    """Build an expression tree from its decoded JSON form.

    Raises:
        MalformedExpression: If `data` does not follow the expression grammar.
        ExpressionTooDeep: If nesting exceeds `settings.max_depth`.

    """
    _check_depth(_depth, settings)
    if not isinstance(data, dict):
        return Literal(_literal_text(data))

    tag, body = _single_entry(data, "Expression")
    match tag:
        case "simple":
            return Literal(_literal_text(body))
        case "ref":
            if not isinstance(body, str):
                msg = f"'ref' must be a string, got {body!r}"
                raise MalformedExpression(msg)
            return VarRef(ref_name(body, settings))
        case "env":
            if body not in ENV_FUNCTIONS:
                msg = f"Unknown environment value: {body!r}"
                raise MalformedExpression(msg)
            return FnCall(ENV_FUNCTIONS[body])
        case "fn":
            if not isinstance(body, dict) or not isinstance(body.get("op"), str):
                msg = f"'fn' must be an object with a string 'op', got {body!r}"
                raise MalformedExpression(msg)
            args = body.get("args", [])
            extra = set(body) - {"op", "args"}
            if not isinstance(args, list) or extra:
                msg = f"'fn' takes 'op' and a list of 'args', got {body!r}"
                raise MalformedExpression(msg)
            return FnCall(
                body["op"],
                tuple(expression_from_json(arg, settings, _depth=_depth + 1) for arg in args),
            )
    msg = f"Unknown expression tag: {tag!r}"
    raise MalformedExpression(msg)


def condition_from_json(  # noqa: C901, PLR0911
    data: Any,
    settings: EngineSettings = DEFAULT_SETTINGS,
    *,
    _depth: int = 0,
) -> Condition:
    """Build a condition tree from its decoded JSON form.

    Raises:
        MalformedExpression: If `data` does not follow the condition grammar.
        ExpressionTooDeep: If nesting exceeds `settings.max_depth`.

    """
    _check_depth(_depth, settings)
    if isinstance(data, bool):
        return BoolConst(data)
    if not isinstance(data, dict):
        msg = f"Condition must be a bool or an object, got {data!r}"
        raise MalformedExpression(msg)

    tag, body = _single_entry(data, "Condition")
    depth = _depth + 1
    match tag:
        case "literal" if isinstance(body, bool):
            return BoolConst(body)
        case "and" | "or" if isinstance(body, list) and body:
            children = tuple(condition_from_json(child, settings, _depth=depth) for child in body)
            return And(children) if tag == "and" else Or(children)
        case "not":
            return Not(condition_from_json(body, settings, _depth=depth))
        case "compare" if isinstance(body, dict):
            return _compare_from_json(body, settings, depth)
        case "bool":
            return BoolExpr(expression_from_json(body, settings, _depth=depth))
        case "exists" if isinstance(body, str):
            return Exists(ref_name(body, settings))
        case "expired":
            return Expired(expression_from_json(body, settings, _depth=depth))
    msg = f"Invalid condition node: {json.dumps(data)[:200]}"
    raise MalformedExpression(msg)


def _compare_from_json(body: dict[str, Any], settings: EngineSettings, depth: int) -> Compare:
    missing = {"left", "op", "right"} - set(body)
    extra = set(body) - {"left", "op", "right", "kind"}
    if missing or extra:
        msg = f"'compare' needs left, op, right and optionally kind (missing {sorted(missing)}, extra {sorted(extra)})"
        raise MalformedExpression(msg)
    try:
        op = CompareOp.from_symbol(body["op"])
        kind = ValueKind(body["kind"]) if body.get("kind") is not None else None
    except (TypeError, ValueError) as e:
        raise MalformedExpression(str(e)) from e
    return Compare(
        left=expression_from_json(body["left"], settings, _depth=depth),
        op=op,
        right=expression_from_json(body["right"], settings, _depth=depth),
        kind=kind,
    )


def parse_json_text(text: str, what: str) -> Any:
    """Decode JSON text, reporting malformed or pathologically nested input uniformly."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"{what} is not valid JSON: {e}"
        raise MalformedExpression(msg) from e
    except RecursionError as e:
        msg = f"{what} is nested too deeply"
        raise ExpressionTooDeep(msg) from e


def parse_condition(text: str, settings: EngineSettings = DEFAULT_SETTINGS) -> Condition:
    """Parse condition text in either JSON or infix form.

    Text starting with '{' is read as JSON; anything else goes through the
    infix grammar (`price > 50 and not exists(flag)`).
    """
    stripped = text.strip()
    if not stripped:
        msg = "Condition is empty"
        raise MalformedExpression(msg)
    if stripped.startswith("{"):
        return condition_from_json(parse_json_text(stripped, "Condition"), settings)

    from ._infix import parse_infix_condition  # noqa: PLC0415

    return parse_infix_condition(stripped, settings)


# =============================================================================
# Traversal
# =============================================================================


def iter_expression_nodes(expr: Expression) -> Iterator[Expression]:
    """Yield every node of an expression tree, parents before children."""
    stack: list[Expression] = [expr]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, FnCall):
            stack.extend(reversed(node.args))


def iter_condition_expressions(cond: Condition) -> Iterator[Expression]:
    """Yield the root expression of every operand in a condition tree."""
    stack: list[Condition] = [cond]
    while stack:
        node = stack.pop()
        match node:
            case And(children) | Or(children):
                stack.extend(reversed(children))
            case Not(child):
                stack.append(child)
            case Compare(left, _, right, _):
                yield left
                yield right
            case BoolExpr(expr) | Expired(expr):
                yield expr
            case BoolConst() | Exists():
                pass


def expression_references(expr: Expression) -> set[str]:
    return {node.name for node in iter_expression_nodes(expr) if isinstance(node, VarRef)}


def condition_references(cond: Condition) -> set[str]:
    """Names of all variables a condition refers to, including existence checks."""
    names: set[str] = set()
    for expr in iter_condition_expressions(cond):
        names |= expression_references(expr)
    stack: list[Condition] = [cond]
    while stack:
        match stack.pop():
            case Exists(name):
                names.add(name)
            case And(children) | Or(children):
                stack.extend(children)
            case Not(child):
                stack.append(child)
            case _:
                pass
    return names
