"""
Tests for privwallet.wallet.pockets
"""

from __future__ import annotations

import pytest

from privwallet.wallet.coin_selection import InsufficientFundsError
from privwallet.wallet.models import btc_to_sats
from privwallet.wallet.pockets import Pocket, PrivacyControl, get_pockets


class TestGetPockets:
    """Tests for grouping coins into pockets."""

    def test_groups_by_cluster(self, coin_factory) -> None:
        alice = coin_factory.cluster("Alice", ["0.1", "0.2"])
        bob = coin_factory.cluster("Bob", ["0.5"])

        pockets = get_pockets(alice + bob, coin_factory.snapshot())

        assert [p.label_text for p in pockets] == ["Bob", "Alice"]
        assert pockets[0].total == btc_to_sats("0.5")
        assert pockets[1].coins == tuple(alice)
        assert not any(p.is_private for p in pockets)

    def test_private_coins_share_one_pocket(self, coin_factory) -> None:
        alice = coin_factory.cluster("Alice", ["0.1"])
        mixed = [
            coin_factory.coin("0.05", anonymity_score=50),
            coin_factory.coin("0.05", anonymity_score=5),
        ]

        pockets = get_pockets(alice + mixed, coin_factory.snapshot(), anon_score_target=5)

        assert pockets[0].is_private
        assert pockets[0].label_text == "Private"
        assert pockets[0].coins == tuple(mixed)
        assert pockets[1].label_text == "Alice"

    def test_unlabeled_cluster(self, coin_factory) -> None:
        coin = coin_factory.coin("0.1")

        pockets = get_pockets([coin])

        assert len(pockets) == 1
        assert pockets[0].label_text == "Unlabeled"
        assert pockets[0].cluster_id == coin.script

    def test_no_coins(self) -> None:
        assert get_pockets([]) == []


class TestPrivacyControl:
    """Tests for manual pocket selection."""

    @pytest.fixture
    def pockets(self, coin_factory) -> list[Pocket]:
        alice = coin_factory.cluster("Alice", ["0.1", "0.2"])
        bob = coin_factory.cluster("Bob", ["0.4"])
        return get_pockets(alice + bob, coin_factory.snapshot())

    def test_nothing_selected_initially(self, pockets) -> None:
        control = PrivacyControl(pockets, btc_to_sats("0.25"))

        assert control.selected_pockets == []
        assert control.still_needed == btc_to_sats("0.25")
        assert not control.enough_selected

    def test_single_pocket_is_preselected(self, coin_factory) -> None:
        coins = coin_factory.cluster("Alice", ["0.1"])
        control = PrivacyControl(get_pockets(coins), btc_to_sats("0.05"))

        assert control.is_selected(0)
        assert control.enough_selected

    def test_still_needed_tracks_selection(self, pockets) -> None:
        control = PrivacyControl(pockets, btc_to_sats("0.25"))

        control.select(pockets[1])
        assert control.still_needed == btc_to_sats("-0.05")
        assert control.enough_selected

        control.deselect(pockets[1])
        control.select(0)
        assert control.still_needed == btc_to_sats("-0.15")

    def test_toggle(self, pockets) -> None:
        control = PrivacyControl(pockets, btc_to_sats("0.25"))

        assert control.toggle(0) is True
        assert control.toggle(pockets[0]) is False
        assert not control.is_selected(0)

    def test_unknown_pocket(self, pockets) -> None:
        control = PrivacyControl(pockets, btc_to_sats("0.25"))

        with pytest.raises(IndexError):
            control.select(5)
        with pytest.raises(ValueError):
            control.select(Pocket(coins=()))

    def test_invalid_amount(self, pockets) -> None:
        with pytest.raises(ValueError):
            PrivacyControl(pockets, 0)

    def test_select_coins_stays_within_selected_pockets(self, coin_factory, pockets) -> None:
        control = PrivacyControl(pockets, btc_to_sats("0.25"))
        control.select(pockets[1])

        selected = control.select_coins(coin_factory.snapshot())

        assert selected == list(pockets[1].coins)

    def test_select_coins_without_enough_selected(self, coin_factory, pockets) -> None:
        control = PrivacyControl(pockets, btc_to_sats("0.35"))
        control.select(pockets[1])

        with pytest.raises(InsufficientFundsError):
            control.select_coins(coin_factory.snapshot())
