"""Instruction templates: placeholder scanning, structural checks, and substitution.

Templates are JSON text in which variables appear as placeholders
(`$var.<name>` by default) inside JSON strings. The validation pass and the
substitution pass are separate: validation never substitutes, and
substitution assumes nothing about a prior validation.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from functools import cache
from typing import TYPE_CHECKING, Any

from ._enums import ValueKind
from ._errors import (
    ExcessVariablesInTemplates,
    InvalidInstructions,
    TemplateError,
    UnresolvedVariable,
    VariablesContainDuplicates,
    VariablesMissingFromTemplates,
)
from ._eval_engine import encode_text
from ._settings import DEFAULT_SETTINGS, NAME_PATTERN, EngineSettings

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ._models import Variable

logger = logging.getLogger(__name__)


@cache
def placeholder_re(prefix: str) -> re.Pattern[str]:
    """Pattern matching a placeholder, optionally as a whole JSON string.

    Group `whole` is set when the placeholder is the entire content of a
    JSON string (quotes included), with the name in `wname`; otherwise the
    name is in `name`.
    """
    escaped = re.escape(prefix)
    return re.compile(rf'(?P<whole>(?<!\\)"{escaped}(?P<wname>{NAME_PATTERN})")|{escaped}(?P<name>{NAME_PATTERN})')


def scan_placeholders(text: str, settings: EngineSettings = DEFAULT_SETTINGS) -> list[str]:
    """Names of all placeholders in `text`, in order of appearance, with repeats."""
    return [m.group("wname") or m.group("name") for m in placeholder_re(settings.placeholder_prefix).finditer(text)]


def strip_placeholders(text: str, settings: EngineSettings = DEFAULT_SETTINGS) -> str:
    """Replace every placeholder with empty text, leaving surrounding quotes in place."""

    def blank(m: re.Match[str]) -> str:
        return '""' if m.group("whole") else ""

    return placeholder_re(settings.placeholder_prefix).sub(blank, text)


def literal_segments(text: str, settings: EngineSettings = DEFAULT_SETTINGS) -> list[str]:
    """The pieces of `text` between placeholders."""
    pattern = placeholder_re(settings.placeholder_prefix)
    # split() interleaves the captured groups after each segment
    return pattern.split(text)[:: pattern.groups + 1]


# =============================================================================
# Validation pass
# =============================================================================


def check_instructions(msgs: str, settings: EngineSettings = DEFAULT_SETTINGS) -> list[dict[str, Any]]:
    """Check that templates form a JSON array of single-key instruction objects.

    Placeholders are stripped first, so the check holds for any substituted
    values.

    Raises:
        InvalidInstructions: If the stripped text is not a well-formed instruction list.

    """
    try:
        data = json.loads(strip_placeholders(msgs, settings))
    except (json.JSONDecodeError, RecursionError) as e:
        msg = f"Instructions are not valid JSON: {e}"
        raise InvalidInstructions(msg) from e

    if not isinstance(data, list):
        msg = f"Instructions must be a JSON array, got {type(data).__name__}"
        raise InvalidInstructions(msg)
    for i, instruction in enumerate(data):
        if not isinstance(instruction, dict) or len(instruction) != 1:
            msg = f"Instruction {i} must be an object with exactly one key"
            raise InvalidInstructions(msg)
        ((kind, body),) = instruction.items()
        if not isinstance(body, dict):
            msg = f"Body of instruction {i} ('{kind}') must be an object"
            raise InvalidInstructions(msg)
    return data


def check_references(declared: list[str], referenced: Iterable[str]) -> None:
    """Check declared variable names against the names templates refer to.

    Raises:
        VariablesContainDuplicates: If a name is declared more than once.
        VariablesMissingFromTemplates: If a referenced name is not declared.
        ExcessVariablesInTemplates: If a declared name is never referenced.

    """
    duplicates = sorted(name for name, count in Counter(declared).items() if count > 1)
    if duplicates:
        msg = f"Variables declared more than once: {', '.join(duplicates)}"
        raise VariablesContainDuplicates(msg)

    referenced = set(referenced)
    missing = sorted(referenced - set(declared))
    if missing:
        msg = f"Templates reference undeclared variables: {', '.join(missing)}"
        raise VariablesMissingFromTemplates(msg)
    excess = sorted(set(declared) - referenced)
    if excess:
        msg = f"Variables never referenced by any template: {', '.join(excess)}"
        raise ExcessVariablesInTemplates(msg)


# =============================================================================
# Substitution pass
# =============================================================================


def substitution_text(variable: Variable, settings: EngineSettings = DEFAULT_SETTINGS) -> str:
    """Text a variable contributes to instructions: its value, encoded if requested.

    Raises:
        UnresolvedVariable: If the variable has no value.

    """
    if variable.value is None:
        msg = f"Variable '{variable.name}' has no resolved value"
        raise UnresolvedVariable(msg)
    if variable.encode:
        return encode_text(variable.value, settings.encoding)
    return variable.value


def substitute(
    msgs: str,
    variables: Mapping[str, Variable],
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> str:
    """Replace every placeholder in `msgs` with its variable's value.

    A placeholder that is a whole JSON string becomes a JSON literal: bool
    values unquoted, everything else a JSON string. A placeholder embedded in
    longer text is replaced by the JSON-escaped value text.

    Raises:
        UnresolvedVariable: If a placeholder names an undeclared or unresolved variable.
        TemplateError: If the template holds the prefix outside any placeholder, or the
            result is not valid JSON.

    """

    def replace(m: re.Match[str]) -> str:
        name = m.group("wname") or m.group("name")
        variable = variables.get(name)
        if variable is None:
            msg = f"Placeholder '{settings.placeholder(name)}' names no declared variable"
            raise UnresolvedVariable(msg)
        text = substitution_text(variable, settings)
        if m.group("whole") is None:
            return json.dumps(text)[1:-1]
        if variable.kind is ValueKind.BOOL and not variable.encode:
            return text
        return json.dumps(text)

    if any(settings.placeholder_prefix in segment for segment in literal_segments(msgs, settings)):
        msg = f"Instructions contain '{settings.placeholder_prefix}' outside any placeholder"
        raise TemplateError(msg)
    result = placeholder_re(settings.placeholder_prefix).sub(replace, msgs)
    try:
        json.loads(result)
    except (json.JSONDecodeError, RecursionError) as e:
        msg = f"Instructions are not valid JSON after substitution: {e}"
        raise TemplateError(msg) from e
    logger.debug("Substituted %d placeholders", len(scan_placeholders(msgs, settings)))
    return result
