"""Selector paths used to extract a value from a structured query response.

Syntax: dot-separated field names with optional bracketed parts, optionally
rooted at '$':

    balance.amount
    $.pools[0].reserves[1]
    data["key.with.dots"].value

A numeric bracket indexes an array; a quoted bracket names an object key.
An empty selector (or a bare '$') selects the whole response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Self

from ._errors import SelectorNotFound

logger = logging.getLogger(__name__)


class PartBase:
    pass


@dataclass(slots=True, frozen=True)
class AttributePart(PartBase):
    name: str


@dataclass(slots=True, frozen=True)
class ItemPart(PartBase):
    key: int | str


@dataclass(slots=True, frozen=True)
class Selector:
    parts: tuple[PartBase, ...] = ()

    ROOT_SYMBOL: ClassVar[str] = "$"

    def __str__(self) -> str:
        result = self.ROOT_SYMBOL
        for part in self.parts:
            match part:
                case AttributePart(name):
                    result += f".{name}"
                case ItemPart(int(index)):
                    result += f"[{index}]"
                case ItemPart(str(key)):
                    result += f'["{key}"]'
                case _:
                    msg = f"Unknown part type: {type(part)}"
                    raise TypeError(msg)
        return result

    @classmethod
    def parse(cls, selector_str: str) -> Self:  # noqa: C901, PLR0912
        """Parse selector text.

        Raises:
            ValueError: If the text is not a well-formed selector.

        """
        s = selector_str.strip()
        if s.startswith(cls.ROOT_SYMBOL):
            s = s[len(cls.ROOT_SYMBOL) :]
            if s and s[0] not in ".[":
                msg = f"Expected '.' or '[' after '{cls.ROOT_SYMBOL}' in selector: {selector_str!r}"
                raise ValueError(msg)
        elif s and s[0] != "[":
            # A selector without root starts with a bare field name
            s = "." + s

        parts: list[PartBase] = []
        i = 0
        while i < len(s):
            if s[i] == ".":  # Field access
                i += 1
                start = i
                while i < len(s) and s[i] not in ".[":
                    i += 1
                name = s[start:i].strip()
                if not name:
                    msg = f"Empty field name at position {start} in selector: {selector_str!r}"
                    raise ValueError(msg)
                parts.append(AttributePart(name=name))
            elif s[i] == "[":  # Index or quoted key
                i += 1
                start = i
                while i < len(s) and s[i] != "]":
                    i += 1
                if i >= len(s):
                    msg = f"Unclosed '[' in selector: {selector_str!r}"
                    raise ValueError(msg)
                parts.append(ItemPart(key=_parse_item_key(s[start:i].strip(), selector_str)))
                i += 1  # Skip the closing ']'
            else:
                msg = f"Unexpected character at position {i}: {s[i]}"
                raise ValueError(msg)

        return cls(parts=tuple(parts))


def _parse_item_key(key_str: str, selector_str: str) -> int | str:
    if key_str.isdigit():
        return int(key_str)
    if len(key_str) >= 2 and key_str[0] == key_str[-1] and key_str[0] in "\"'":
        return key_str[1:-1]
    msg = f"Invalid bracket part [{key_str}] in selector: {selector_str!r}"
    raise ValueError(msg)


def select(data: Any, selector: Selector) -> Any:
    """Walk `selector` into `data`.

    Raises:
        SelectorNotFound: At the first part that does not exist in `data`.

    """
    current = data
    walked: list[PartBase] = []
    for part in selector.parts:
        walked.append(part)
        match part, current:
            case AttributePart(name), dict() if name in current:
                current = current[name]
            case ItemPart(int(index)), list() if index < len(current):
                current = current[index]
            case ItemPart(key), dict() if str(key) in current:
                current = current[str(key)]
            case _:
                msg = f"Selector segment {Selector(parts=tuple(walked))} not found"
                raise SelectorNotFound(msg)
    logger.debug("Selected %s -> %r", selector, current)
    return current
