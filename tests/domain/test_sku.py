import pytest

from bptflistings.domain import sku
from bptflistings.domain.models.item import ItemDescriptor


def test_parse_plain_sku() -> None:
    item = sku.from_string("5021;6")
    assert item == ItemDescriptor(defindex=5021, quality=6)


def test_parse_tokens() -> None:
    item = sku.from_string("200;11;australium;kt-3;festive;uncraftable")
    assert item.defindex == 200
    assert item.quality == 11
    assert item.australium is True
    assert item.killstreak == 3
    assert item.festive is True
    assert item.craftable is False


def test_parse_unusual_skin() -> None:
    item = sku.from_string("15013;15;u703;w2;pk102;strange")
    assert item.effect == 703
    assert item.wear == 2
    assert item.paintkit == 102
    assert item.quality2 == 11


def test_unknown_tokens_are_ignored() -> None:
    assert sku.from_string("5021;6;shiny") == ItemDescriptor(defindex=5021)


@pytest.mark.parametrize("value", ["", "5021", "abc;6", "5021;x"])
def test_invalid_sku_raises(value: str) -> None:
    with pytest.raises(ValueError):
        sku.from_string(value)


def test_format_orders_tokens() -> None:
    item = ItemDescriptor(
        defindex=15013,
        quality=15,
        effect=703,
        craftable=False,
        wear=2,
        paintkit=102,
        quality2=11,
        killstreak=1,
        festive=True,
    )
    assert sku.to_string(item) == "15013;15;u703;uncraftable;w2;pk102;strange;kt-1;festive"


def test_format_default_fields_are_omitted() -> None:
    item = ItemDescriptor.from_dict({"defindex": 5021, "quality": 6, "craftable": True, "effect": None})
    assert sku.to_string(item) == "5021;6"


def test_chemistry_set_outputs() -> None:
    text = "20005;6;td-200;od-6522;oq-14"
    assert sku.to_string(sku.from_string(text)) == text
