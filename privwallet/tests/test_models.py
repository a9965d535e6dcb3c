"""
Tests for privwallet.wallet.models
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from privwallet.wallet.models import Cluster, Coin, btc_to_sats, format_sats

TXID = "0123456789abcdef" * 4


def test_coin_valid():
    coin = Coin(txid=TXID, vout=1, amount=20_000_000, script="0014abcd")
    assert coin.outpoint == (TXID, 1)
    assert coin.anonymity_score == 1.0
    assert str(coin) == f"{TXID}:1 (20,000,000 sats)"


@pytest.mark.parametrize("amount", [0, -5])
def test_coin_amount_must_be_positive(amount):
    with pytest.raises(ValidationError):
        Coin(txid=TXID, vout=0, amount=amount, script="0014abcd")


def test_coin_invalid_txid():
    with pytest.raises(ValidationError):
        Coin(txid="not-a-txid", vout=0, amount=1, script="0014abcd")


def test_coin_empty_script():
    with pytest.raises(ValidationError):
        Coin(txid=TXID, vout=0, amount=1, script="")


def test_coin_is_immutable_and_hashable():
    coin = Coin(txid=TXID, vout=0, amount=1, script="0014abcd")
    with pytest.raises(ValidationError):
        coin.amount = 2  # type: ignore[misc]

    same = Coin(txid=TXID, vout=0, amount=1, script="0014abcd")
    assert coin == same
    assert len({coin, same}) == 1


def test_cluster_size_and_labels():
    cluster = Cluster(
        cluster_id="a", members=frozenset({"a", "b", "c"}), labels=frozenset({"Bob", "Alice"})
    )
    assert cluster.size == 3
    assert cluster.label_text == "Alice, Bob"


def test_cluster_singleton():
    cluster = Cluster.singleton("0014abcd")
    assert cluster.cluster_id == "0014abcd"
    assert cluster.size == 1
    assert cluster.label_text == ""


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("0.3", 30_000_000),
        (Decimal("1.00000001"), 100_000_001),
        (2, 200_000_000),
        ("0.00000001", 1),
    ],
)
def test_btc_to_sats(value, expected):
    assert btc_to_sats(value) == expected


def test_btc_to_sats_rejects_sub_satoshi():
    with pytest.raises(ValueError, match="sub-satoshi"):
        btc_to_sats("0.000000001")


@pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
def test_btc_to_sats_rejects_non_numbers(value):
    with pytest.raises(ValueError):
        btc_to_sats(value)


def test_btc_to_sats_rejects_float():
    with pytest.raises(TypeError):
        btc_to_sats(0.1)  # type: ignore[arg-type]


def test_format_sats():
    assert format_sats(30_000_000) == "30,000,000 sats (0.30000000 BTC)"
