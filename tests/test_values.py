"""Tests for typed values in hydrant._values."""

from decimal import Decimal

import pytest

from hydrant._enums import CompareOp, ValueKind
from hydrant._errors import (
    ArithmeticOverflow,
    ArithmeticUnderflow,
    DivisionByZero,
    InvalidArguments,
    ParseError,
    TypeMismatch,
)
from hydrant._values import (
    Value,
    apply_binary,
    apply_unary,
    compare_values,
    format_value,
    infer_literal,
    parse_value,
)


class TestParseValue:
    """Tests for parse_value."""

    @pytest.mark.parametrize(
        ("text", "kind", "raw"),
        [
            ("100", ValueKind.UINT, 100),
            ("-7", ValueKind.INT, -7),
            ("1.5", ValueKind.DECIMAL, Decimal("1.5")),
            ("true", ValueKind.BOOL, True),
            ("false", ValueKind.BOOL, False),
            ("340282366920938463463374607431768211455", ValueKind.AMOUNT, 2**128 - 1),
            ("uatom", ValueKind.ASSET, "uatom"),
            ("1700000000", ValueKind.TIMESTAMP, 1700000000),
            ("12", ValueKind.BLOCK_HEIGHT, 12),
            ("hello world", ValueKind.STRING, "hello world"),
        ],
    )
    def test_parses_each_kind(self, text: str, kind: ValueKind, raw: object) -> None:
        value = parse_value(text, kind)
        assert value.kind is kind
        assert value.raw == raw

    @pytest.mark.parametrize(
        ("text", "kind"),
        [
            ("-1", ValueKind.UINT),
            ("1.0", ValueKind.UINT),
            (" 1", ValueKind.UINT),
            ("", ValueKind.UINT),
            (str(2**256), ValueKind.UINT),
            (str(2**127), ValueKind.INT),
            (str(2**128), ValueKind.AMOUNT),
            ("1e5", ValueKind.DECIMAL),
            ("-1.5", ValueKind.DECIMAL),
            ("0." + "1" * 19, ValueKind.DECIMAL),
            ("True", ValueKind.BOOL),
            ("", ValueKind.ASSET),
            ("u atom", ValueKind.ASSET),
        ],
    )
    def test_rejects_invalid_text(self, text: str, kind: ValueKind) -> None:
        with pytest.raises(ParseError):
            parse_value(text, kind)

    def test_parse_error_is_value_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid uint"):
            parse_value("abc", ValueKind.UINT)


class TestFormatValue:
    """Tests for canonical text output."""

    def test_decimal_strips_trailing_zeros(self) -> None:
        assert format_value(Value(ValueKind.DECIMAL, Decimal("1.500"))) == "1.5"

    def test_decimal_has_no_exponent(self) -> None:
        assert format_value(Value(ValueKind.DECIMAL, Decimal("1E+3"))) == "1000"

    def test_bool(self) -> None:
        assert format_value(Value(ValueKind.BOOL, True)) == "true"

    def test_str_uses_canonical_text(self) -> None:
        assert str(parse_value("2.50", ValueKind.DECIMAL)) == "2.5"

    @pytest.mark.parametrize("text", ["0", "42", "0.000000000000000001", "123.456"])
    def test_canonical_text_is_stable(self, text: str) -> None:
        kind = ValueKind.DECIMAL if "." in text else ValueKind.UINT
        assert format_value(parse_value(text, kind)) == text


class TestInferLiteral:
    """Tests for literal kind inference."""

    @pytest.mark.parametrize(
        ("text", "kind"),
        [
            ("true", ValueKind.BOOL),
            ("50", ValueKind.UINT),
            ("-3", ValueKind.INT),
            ("2.5", ValueKind.DECIMAL),
            ("uatom", ValueKind.STRING),
        ],
    )
    def test_infers_kind(self, text: str, kind: ValueKind) -> None:
        assert infer_literal(text).kind is kind


class TestCompareValues:
    """Tests for compare_values."""

    def test_numeric_ordering(self) -> None:
        a = parse_value("100", ValueKind.UINT)
        b = parse_value("50", ValueKind.UINT)
        assert compare_values(a, b, CompareOp.GT)
        assert not compare_values(a, b, CompareOp.LTE)
        assert compare_values(a, a, CompareOp.EQ)

    def test_string_operators(self) -> None:
        text = parse_value("ibc/ABC", ValueKind.STRING)
        assert compare_values(text, Value(ValueKind.STRING, "ibc/"), CompareOp.STARTS_WITH)
        assert compare_values(text, Value(ValueKind.STRING, "ABC"), CompareOp.ENDS_WITH)
        assert compare_values(text, Value(ValueKind.STRING, "c/A"), CompareOp.CONTAINS)

    def test_mismatched_kinds_are_not_coerced(self) -> None:
        with pytest.raises(TypeMismatch, match="Cannot compare"):
            compare_values(Value(ValueKind.UINT, 1), Value(ValueKind.INT, 1), CompareOp.EQ)

    def test_ordering_not_defined_for_strings(self) -> None:
        with pytest.raises(TypeMismatch):
            compare_values(Value(ValueKind.STRING, "a"), Value(ValueKind.STRING, "b"), CompareOp.LT)

    def test_contains_not_defined_for_numbers(self) -> None:
        with pytest.raises(TypeMismatch):
            compare_values(Value(ValueKind.UINT, 12), Value(ValueKind.UINT, 1), CompareOp.CONTAINS)


class TestArithmetic:
    """Tests for checked arithmetic."""

    def test_add(self) -> None:
        result = apply_binary("add", Value(ValueKind.UINT, 5), Value(ValueKind.UINT, 1))
        assert result == Value(ValueKind.UINT, 6)

    def test_uint_underflow(self) -> None:
        with pytest.raises(ArithmeticUnderflow):
            apply_binary("sub", Value(ValueKind.UINT, 1), Value(ValueKind.UINT, 2))

    def test_uint_overflow(self) -> None:
        with pytest.raises(ArithmeticOverflow):
            apply_binary("add", Value(ValueKind.UINT, 2**256 - 1), Value(ValueKind.UINT, 1))

    def test_int_division_truncates_toward_zero(self) -> None:
        result = apply_binary("div", Value(ValueKind.INT, -7), Value(ValueKind.INT, 2))
        assert result.raw == -3
        remainder = apply_binary("mod", Value(ValueKind.INT, -7), Value(ValueKind.INT, 2))
        assert remainder.raw == -1

    def test_division_by_zero(self) -> None:
        with pytest.raises(DivisionByZero):
            apply_binary("div", Value(ValueKind.UINT, 1), Value(ValueKind.UINT, 0))

    def test_decimal_division_rounds_down(self) -> None:
        one = parse_value("1", ValueKind.DECIMAL)
        three = parse_value("3", ValueKind.DECIMAL)
        assert str(apply_binary("div", one, three)) == "0." + "3" * 18

    def test_decimal_multiplication_truncates(self) -> None:
        a = parse_value("0.000000000000000001", ValueKind.DECIMAL)
        b = parse_value("0.5", ValueKind.DECIMAL)
        assert str(apply_binary("mul", a, b)) == "0"

    def test_mixed_kinds_raise(self) -> None:
        with pytest.raises(TypeMismatch):
            apply_binary("add", Value(ValueKind.UINT, 1), Value(ValueKind.DECIMAL, Decimal(1)))

    def test_min_max(self) -> None:
        a, b = Value(ValueKind.INT, -2), Value(ValueKind.INT, 3)
        assert apply_binary("min", a, b) == a
        assert apply_binary("max", a, b) == b

    def test_unary(self) -> None:
        assert apply_unary("abs", Value(ValueKind.INT, -4)).raw == 4
        assert apply_unary("neg", Value(ValueKind.INT, 4)).raw == -4
        assert str(apply_unary("floor", parse_value("2.7", ValueKind.DECIMAL))) == "2"
        assert str(apply_unary("ceil", parse_value("2.1", ValueKind.DECIMAL))) == "3"
        assert apply_unary("sqrt", Value(ValueKind.UINT, 17)).raw == 4

    def test_sqrt_of_negative(self) -> None:
        with pytest.raises(InvalidArguments):
            apply_unary("sqrt", Value(ValueKind.INT, -1))

    def test_neg_of_uint_underflows(self) -> None:
        with pytest.raises(ArithmeticUnderflow):
            apply_unary("neg", Value(ValueKind.UINT, 1))
