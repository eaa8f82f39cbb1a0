"""Exception hierarchy for hydrant.

Every failure raised by the engine derives from `HydrantError` and belongs to
exactly one of four families:

- ValidationError: structural problems in a job definition, found at creation time
- ResolutionError: a variable value could not be derived from its source
- EvaluationError: a condition or function expression could not be evaluated
- TemplateError: instruction text could not be produced from its templates

Each concrete class carries a stable `code` so callers can report the failure
kind without parsing messages.
"""

from __future__ import annotations

from typing import ClassVar


class HydrantError(Exception):
    """Base class for all hydrant errors."""

    code: ClassVar[str] = "HydrantError"


class ParseError(HydrantError, ValueError):
    """Text does not parse as a value of the requested kind."""

    code = "ParseError"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(HydrantError):
    """A job definition is structurally invalid."""

    code = "ValidationError"


class MalformedExpression(ValidationError):
    """Condition or expression text does not follow the expression grammar."""

    code = "MalformedExpression"


class ExpressionTooDeep(MalformedExpression):
    code = "ExpressionTooDeep"


class InvalidCondition(ValidationError):
    code = "InvalidCondition"


class InvalidVariables(ValidationError):
    code = "InvalidVariables"


class InvalidSelector(ValidationError):
    """Selector text does not follow the path syntax."""

    code = "InvalidSelector"


class VariablesContainDuplicates(ValidationError):
    code = "VariablesContainDuplicates"


class VariablesMissingFromTemplates(ValidationError):
    """A template references a name that no variable declares."""

    code = "VariablesMissingFromTemplates"


class ExcessVariablesInTemplates(ValidationError):
    """A declared variable is never referenced by any template."""

    code = "ExcessVariablesInTemplates"


class InvalidInstructions(ValidationError):
    code = "InvalidInstructions"


# =============================================================================
# Resolution
# =============================================================================


class ResolutionError(HydrantError):
    """A variable value could not be derived from its declared source."""

    code = "ResolutionError"


class QueryFailed(ResolutionError):
    code = "QueryFailed"


class SelectorNotFound(ResolutionError):
    code = "SelectorNotFound"


class TypeConversionFailed(ResolutionError):
    code = "TypeConversionFailed"


class MissingExternalInput(ResolutionError):
    code = "MissingExternalInput"


# =============================================================================
# Evaluation
# =============================================================================


class EvaluationError(HydrantError):
    """A condition or function expression could not be evaluated."""

    code = "EvaluationError"


class TypeMismatch(EvaluationError):
    code = "TypeMismatch"


class UnknownVariable(EvaluationError):
    """A reference names a variable that is not declared.

    Template validation rejects such references at job creation, so this is
    only raised when validation was bypassed.
    """

    code = "UnknownVariable"


class UnresolvedReference(EvaluationError):
    """An expression reads a declared variable that has no value yet."""

    code = "UnresolvedReference"


class UnsupportedFunction(EvaluationError):
    code = "UnsupportedFunction"


class InvalidArguments(EvaluationError):
    code = "InvalidArguments"


class DivisionByZero(EvaluationError):
    code = "DivisionByZero"


class ArithmeticOverflow(EvaluationError):
    code = "ArithmeticOverflow"


class ArithmeticUnderflow(EvaluationError):
    code = "ArithmeticUnderflow"


class InvalidJobStatus(EvaluationError):
    code = "InvalidJobStatus"


class UpdateFailed(EvaluationError):
    """An update expression failed; the variable name is kept for reporting."""

    code = "UpdateFailed"

    def __init__(self, variable: str, cause: HydrantError) -> None:
        super().__init__(f"Update of variable '{variable}' failed: [{cause.code}] {cause}")
        self.variable = variable
        self.cause = cause


# =============================================================================
# Templates
# =============================================================================


class TemplateError(HydrantError):
    """Instruction text could not be produced from its templates."""

    code = "TemplateError"


class UnresolvedVariable(TemplateError):
    """A placeholder names a variable that is undeclared or has no value yet."""

    code = "UnresolvedVariable"
