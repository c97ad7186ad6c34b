import json

import pytest

from bptflistings.domain import sku
from bptflistings.infrastructure.schema import JsonItemSchema


@pytest.mark.parametrize(
    "text, name",
    [
        ("5021;6", "Mann Co. Supply Crate Key"),
        ("5021;6;uncraftable", "Non-Craftable Mann Co. Supply Crate Key"),
        ("378;6", "The Team Captain"),
        ("378;1", "Genuine Team Captain"),
        ("378;5;u13", "Burning Flames Team Captain"),
        ("200;11;kt-3;festive", "Strange Festivized Professional Killstreak Scattergun"),
        ("200;6;australium", "Australium Scattergun"),
        ("15013;15;w3;pk102", "Night Owl | Sniper Rifle (Field-Tested)"),
        ("15013;15;w3;pk102;strange", "Strange Night Owl | Sniper Rifle (Field-Tested)"),
    ],
)
def test_names(schema, text: str, name: str) -> None:
    assert schema.get_name(sku.from_string(text)) == name


def test_proper_name_can_be_suppressed(schema) -> None:
    assert schema.get_name(sku.from_string("378;6"), proper=False) == "Team Captain"


def test_unknown_defindex(schema) -> None:
    assert schema.get_item_by_defindex(1) is None
    with pytest.raises(KeyError):
        schema.get_name(sku.from_string("1;6"))


def test_from_file(tmp_path) -> None:
    path = tmp_path / "schema.json"
    path.write_text(
        json.dumps({"items": [{"defindex": 5021, "item_name": "Key"}], "qualities": {"6": "Unique"}}),
        encoding="utf-8",
    )
    schema = JsonItemSchema.from_file(path)
    assert schema.get_quality_name(6) == "Unique"
    assert schema.get_name(sku.from_string("5021;6")) == "Key"
