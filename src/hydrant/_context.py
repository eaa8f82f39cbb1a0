"""Ambient chain context supplied by the caller for each evaluation."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Self


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Chain metadata visible to conditions and functions.

    The engine never reads the clock or the chain on its own; everything
    time- or height-dependent comes from this object.
    """

    block_height: int = 0
    timestamp: int = 0
    chain_id: str = ""

    def __post_init__(self) -> None:
        if self.block_height < 0 or self.timestamp < 0:
            msg = f"Block height and timestamp must be non-negative: {self}"
            raise ValueError(msg)

    @classmethod
    def now(cls, block_height: int = 0, chain_id: str = "") -> Self:
        """Build a context stamped with the current wall-clock time."""
        return cls(block_height=block_height, timestamp=int(time.time()), chain_id=chain_id)
