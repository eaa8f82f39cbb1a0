"""Tests for selector parsing and navigation in hydrant._path."""

import pytest

from hydrant._errors import SelectorNotFound
from hydrant._path import AttributePart, ItemPart, Selector, select

RESPONSE = {
    "balance": {"amount": "42", "denom": "uatom"},
    "pools": [{"reserves": ["10", "20"]}],
    "key.with.dots": {"value": 7},
}


class TestSelectorParse:
    """Tests for Selector.parse."""

    def test_bare_dotted_path(self) -> None:
        selector = Selector.parse("balance.amount")
        assert selector.parts == (AttributePart("balance"), AttributePart("amount"))

    def test_rooted_path_with_indices(self) -> None:
        selector = Selector.parse("$.pools[0].reserves[1]")
        assert selector.parts == (
            AttributePart("pools"),
            ItemPart(0),
            AttributePart("reserves"),
            ItemPart(1),
        )

    def test_quoted_key(self) -> None:
        selector = Selector.parse('$["key.with.dots"].value')
        assert selector.parts == (ItemPart("key.with.dots"), AttributePart("value"))

    @pytest.mark.parametrize("text", ["", "$"])
    def test_root_selects_everything(self, text: str) -> None:
        assert Selector.parse(text).parts == ()

    @pytest.mark.parametrize("text", ["balance..amount", "pools[0", "pools[x]", "$balance"])
    def test_invalid_selectors(self, text: str) -> None:
        with pytest.raises(ValueError):  # noqa: PT011
            Selector.parse(text)

    def test_str_round_trip(self) -> None:
        assert str(Selector.parse("pools[0].reserves")) == "$.pools[0].reserves"


class TestSelect:
    """Tests for select."""

    def test_selects_nested_value(self) -> None:
        assert select(RESPONSE, Selector.parse("balance.amount")) == "42"

    def test_selects_array_element(self) -> None:
        assert select(RESPONSE, Selector.parse("pools[0].reserves[1]")) == "20"

    def test_selects_quoted_key(self) -> None:
        assert select(RESPONSE, Selector.parse('["key.with.dots"].value')) == 7

    def test_missing_key_names_first_missing_segment(self) -> None:
        with pytest.raises(SelectorNotFound, match=r"\$\.balance\.missing"):
            select(RESPONSE, Selector.parse("balance.missing.deeper"))

    def test_index_out_of_range(self) -> None:
        with pytest.raises(SelectorNotFound):
            select(RESPONSE, Selector.parse("pools[3]"))

    def test_field_on_scalar(self) -> None:
        with pytest.raises(SelectorNotFound):
            select(RESPONSE, Selector.parse("balance.amount.value"))
