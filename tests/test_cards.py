import pytest

from lottery_show.cards import SKIN_MODES, Card

from .conftest import make_people


def test_restyle_switches_between_known_modes():
    first, second = make_people(2)
    card = Card(0, first)
    assert card.skin.mode == "default"
    for mode in SKIN_MODES:
        card.restyle(mode)
        assert card.skin.mode == mode
    card.restyle("lucky", second)
    assert card.skin.participant is second


def test_restyle_rejects_unknown_modes():
    card = Card(0, make_people(1)[0])
    with pytest.raises(ValueError):
        card.restyle("bogus")
    assert card.skin.mode == "default"
