"""Infix condition syntax.

Grammar:

    or      := and ("or" and)*
    and     := unary ("and" unary)*
    unary   := "not" unary | "(" or ")" | atom
    atom    := "exists" "(" ref ")"
             | "expired" "(" operand ")"
             | operand (cmp operand)?
    cmp     := "<" | "<=" | ">" | ">=" | "==" | "!="
             | "contains" | "starts_with" | "ends_with"
    operand := number | string | ref | "block_height" | "timestamp"
             | name "(" [operand ("," operand)*] ")"
    ref     := name | <placeholder prefix> name

An operand that is not compared must be `true`, `false`, or a bool-valued
reference or call. Keywords take precedence over bare variable names; a
variable named like a keyword is referenced with the placeholder prefix.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from ._enums import CompareOp
from ._errors import ExpressionTooDeep, MalformedExpression
from ._expr import (
    ENV_FUNCTIONS,
    And,
    BoolConst,
    BoolExpr,
    Compare,
    Exists,
    Expired,
    FnCall,
    Literal,
    Not,
    Or,
    VarRef,
    ref_name,
)

if TYPE_CHECKING:
    from ._expr import Condition, Expression
    from ._settings import EngineSettings

_KEYWORDS: Final = frozenset({"and", "or", "not", "exists", "expired"})
_WORD_OPERATORS: Final = frozenset({"contains", "starts_with", "ends_with"})

_TOKEN_RE: Final = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<number>-?[0-9]+(?:\.[0-9]+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<op><=|>=|==|!=|<|>)
  | (?P<punct>[(),])
  | (?P<word>[^\s(),<>=!"']+)
    """,
    re.VERBOSE,
)


@dataclass(frozen=True, slots=True)
class Token:
    type: str
    text: str
    position: int


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            msg = f"Unexpected character {text[position]!r} at position {position}"
            raise MalformedExpression(msg)
        kind = match.lastgroup
        assert kind is not None
        if kind != "space":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    return tokens


def _unquote(token: Token) -> str:
    body = token.text
    if body.startswith("'"):
        body = '"' + body[1:-1].replace('\\"', '"').replace('"', '\\"').replace("\\'", "'") + '"'
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        msg = f"Invalid string literal at position {token.position}: {token.text}"
        raise MalformedExpression(msg) from e


class _Parser:
    def __init__(self, text: str, settings: EngineSettings) -> None:
        self.tokens = tokenize(text)
        self.index = 0
        self.settings = settings

    # -- token helpers ------------------------------------------------------

    def peek(self, offset: int = 0) -> Token | None:
        i = self.index + offset
        return self.tokens[i] if i < len(self.tokens) else None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            msg = "Unexpected end of condition"
            raise MalformedExpression(msg)
        self.index += 1
        return token

    def at_word(self, word: str) -> bool:
        token = self.peek()
        return token is not None and token.type == "word" and token.text == word

    def expect(self, text: str) -> Token:
        token = self.next()
        if token.text != text:
            msg = f"Expected {text!r} at position {token.position}, got {token.text!r}"
            raise MalformedExpression(msg)
        return token

    def check_depth(self, depth: int) -> None:
        if depth > self.settings.max_depth:
            msg = f"Condition nesting exceeds the maximum depth of {self.settings.max_depth}"
            raise ExpressionTooDeep(msg)

    # -- conditions ---------------------------------------------------------

    def parse(self) -> Condition:
        cond = self.parse_or(0)
        token = self.peek()
        if token is not None:
            msg = f"Unexpected {token.text!r} at position {token.position}"
            raise MalformedExpression(msg)
        return cond

    def parse_or(self, depth: int) -> Condition:
        self.check_depth(depth)
        children = [self.parse_and(depth + 1)]
        while self.at_word("or"):
            self.next()
            children.append(self.parse_and(depth + 1))
        return children[0] if len(children) == 1 else Or(tuple(children))

    def parse_and(self, depth: int) -> Condition:
        children = [self.parse_unary(depth)]
        while self.at_word("and"):
            self.next()
            children.append(self.parse_unary(depth))
        return children[0] if len(children) == 1 else And(tuple(children))

    def parse_unary(self, depth: int) -> Condition:
        self.check_depth(depth)
        if self.at_word("not"):
            self.next()
            return Not(self.parse_unary(depth + 1))
        token = self.peek()
        if token is not None and token.text == "(":
            self.next()
            cond = self.parse_or(depth + 1)
            self.expect(")")
            return cond
        return self.parse_atom(depth)

    def parse_atom(self, depth: int) -> Condition:
        if self.at_word("exists"):
            self.next()
            self.expect("(")
            token = self.next()
            if token.type != "word":
                msg = f"exists() takes a variable, got {token.text!r}"
                raise MalformedExpression(msg)
            self.expect(")")
            return Exists(ref_name(token.text, self.settings))
        if self.at_word("expired"):
            self.next()
            self.expect("(")
            deadline = self.parse_operand(depth + 1)
            self.expect(")")
            return Expired(deadline)

        left = self.parse_operand(depth)
        token = self.peek()
        if token is not None and (token.type == "op" or (token.type == "word" and token.text in _WORD_OPERATORS)):
            self.next()
            right = self.parse_operand(depth)
            return Compare(left=left, op=CompareOp.from_symbol(token.text), right=right)

        match left:
            case Literal("true"):
                return BoolConst(True)
            case Literal("false"):
                return BoolConst(False)
            case VarRef() | FnCall():
                return BoolExpr(left)
        msg = f"Expected a comparison or a bool operand, got literal {left.text!r}"
        raise MalformedExpression(msg)

    # -- operands -----------------------------------------------------------

    def parse_operand(self, depth: int) -> Expression:
        self.check_depth(depth)
        token = self.next()
        match token.type:
            case "number":
                return Literal(token.text)
            case "string":
                return Literal(_unquote(token))
            case "word":
                return self.parse_word(token, depth)
        msg = f"Expected an operand at position {token.position}, got {token.text!r}"
        raise MalformedExpression(msg)

    def parse_word(self, token: Token, depth: int) -> Expression:
        word = token.text
        if word.startswith(self.settings.placeholder_prefix):
            return VarRef(ref_name(word, self.settings))
        if word in ("true", "false"):
            return Literal(word)
        if word in _KEYWORDS or word in _WORD_OPERATORS:
            msg = f"Unexpected keyword {word!r} at position {token.position}"
            raise MalformedExpression(msg)

        following = self.peek()
        if following is not None and following.text == "(":
            self.next()
            args: list[Expression] = []
            closing = self.peek()
            if closing is not None and closing.text == ")":
                self.next()
            else:
                args.append(self.parse_operand(depth + 1))
                while (separator := self.next()).text == ",":
                    args.append(self.parse_operand(depth + 1))
                if separator.text != ")":
                    msg = f"Expected ',' or ')' at position {separator.position}, got {separator.text!r}"
                    raise MalformedExpression(msg)
            op = ENV_FUNCTIONS.get(word, word) if not args else word
            return FnCall(op, tuple(args))
        if word in ENV_FUNCTIONS:
            return FnCall(ENV_FUNCTIONS[word])
        return VarRef(ref_name(word, self.settings))


def parse_infix_condition(text: str, settings: EngineSettings) -> Condition:
    """Parse infix condition text into a condition tree."""
    return _Parser(text, settings).parse()
