import pytest

from bptflistings.domain.models.currencies import Currencies


def test_from_dict_and_back() -> None:
    price = Currencies.from_dict({"keys": 1, "metal": 51.77})
    assert price.to_dict() == {"keys": 1, "metal": 51.77}
    assert Currencies.from_dict(None) == Currencies()
    assert Currencies.from_dict(price) is price


def test_metal_is_rounded_to_two_decimals() -> None:
    assert Currencies(metal=1.555555).metal == pytest.approx(1.56)


def test_negative_amounts_are_rejected() -> None:
    with pytest.raises(ValueError):
        Currencies(keys=-1)


def test_addition() -> None:
    total = Currencies(keys=1, metal=0.33) + Currencies(metal=0.33)
    assert total == Currencies(keys=1, metal=0.66)


@pytest.mark.parametrize(
    "price, text",
    [
        (Currencies(keys=1, metal=51.77), "1 key, 51.77 ref"),
        (Currencies(keys=2), "2 keys"),
        (Currencies(metal=0.11), "0.11 ref"),
        (Currencies(), "0 ref"),
    ],
)
def test_str(price: Currencies, text: str) -> None:
    assert str(price) == text


def test_to_scrap() -> None:
    assert Currencies(keys=1, metal=1).to_scrap(50) == 459
    assert not Currencies()
