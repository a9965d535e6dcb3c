"""
Pytest configuration and fixtures for privwallet tests.
"""

from __future__ import annotations

import hashlib

import pytest

from privwallet.wallet.clustering import ClusterRegistry, ClusterSnapshot
from privwallet.wallet.models import Coin, btc_to_sats


class CoinFactory:
    """
    Builds coins with fresh keys, registering each key in a cluster registry.

    Every call to cluster() generates one new key per coin and links those
    keys into a single cluster carrying the given label.
    """

    def __init__(self) -> None:
        self.registry = ClusterRegistry()
        self._next = 0

    def _counter(self) -> int:
        self._next += 1
        return self._next

    def new_script(self) -> str:
        digest = hashlib.sha256(f"key{self._counter()}".encode()).hexdigest()
        return "0014" + digest[:40]

    def coin(self, btc: str, script: str | None = None, anonymity_score: float = 1.0) -> Coin:
        if script is None:
            script = self.new_script()
            self.registry.add_key(script)
        return Coin(
            txid=hashlib.sha256(f"tx{self._counter()}".encode()).hexdigest(),
            vout=0,
            amount=btc_to_sats(btc),
            script=script,
            anonymity_score=anonymity_score,
        )

    def cluster(self, label: str, amounts: list[str]) -> list[Coin]:
        coins = [self.coin(amount) for amount in amounts]
        for coin in coins:
            self.registry.add_key(coin.script, [label])
        self.registry.link(*(coin.script for coin in coins))
        return coins

    def snapshot(self) -> ClusterSnapshot:
        return self.registry.snapshot()


@pytest.fixture
def coin_factory() -> CoinFactory:
    return CoinFactory()
