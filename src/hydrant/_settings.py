"""Engine settings threaded explicitly through every entry point."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from ._enums import Encoding

NAME_PATTERN: Final = r"[A-Za-z0-9_\-]+"
NAME_RE: Final = re.compile(NAME_PATTERN)


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Tunable constants of the engine.

    Attributes:
        placeholder_prefix: Token that introduces a variable placeholder in
            templates and references, followed directly by the variable name.
        encoding: Encoding applied to variables declared with `encode=true`.
        max_depth: Maximum nesting depth of condition and expression trees.

    """

    placeholder_prefix: str = "$var."
    encoding: Encoding = Encoding.BASE64
    max_depth: int = 64

    def __post_init__(self) -> None:
        if not self.placeholder_prefix or NAME_RE.fullmatch(self.placeholder_prefix):
            msg = f"Placeholder prefix must be non-empty and distinguishable from a name: {self.placeholder_prefix!r}"
            raise ValueError(msg)
        if self.max_depth < 1:
            msg = f"max_depth must be positive, got {self.max_depth}"
            raise ValueError(msg)

    def placeholder(self, name: str) -> str:
        return f"{self.placeholder_prefix}{name}"


DEFAULT_SETTINGS: Final = EngineSettings()
