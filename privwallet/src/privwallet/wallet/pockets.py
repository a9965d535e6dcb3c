"""
Pockets: caller-facing groups of coins used for manual privacy control.

Coins that reached the anonymity score target share one private pocket.
Every other coin sits in the pocket of its cluster, so picking a pocket
never links clusters the user did not choose.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from privwallet.constants import DEFAULT_ANON_SCORE_TARGET, PRIVATE_POCKET_LABEL
from privwallet.wallet.clustering import ClusterSnapshot
from privwallet.wallet.coin_selection import SmartCoinSelector
from privwallet.wallet.models import Coin


@dataclass(frozen=True)
class Pocket:
    """Group of coins the user can include in or exclude from a payment"""

    coins: tuple[Coin, ...]
    labels: frozenset[str] = frozenset()
    cluster_id: str | None = None
    is_private: bool = False

    @property
    def total(self) -> int:
        return sum(coin.amount for coin in self.coins)

    @property
    def label_text(self) -> str:
        if self.is_private:
            return PRIVATE_POCKET_LABEL
        if not self.labels:
            return "Unlabeled"
        return ", ".join(sorted(self.labels))


def get_pockets(
    coins: Iterable[Coin],
    clusters: ClusterSnapshot | None = None,
    anon_score_target: int = DEFAULT_ANON_SCORE_TARGET,
) -> list[Pocket]:
    """
    Group coins into pockets.

    Args:
        coins: Spendable coins
        clusters: Cluster snapshot; unknown scripts are singleton clusters
        anon_score_target: Minimum anonymity score of a private coin

    Returns:
        Private pocket first (if any), then cluster pockets by total descending
    """
    if clusters is None:
        clusters = ClusterSnapshot()

    private: list[Coin] = []
    by_cluster: dict[str, list[Coin]] = {}

    for coin in coins:
        if coin.anonymity_score >= anon_score_target:
            private.append(coin)
        else:
            cluster = clusters.cluster_of(coin.script)
            by_cluster.setdefault(cluster.cluster_id, []).append(coin)

    pockets = [
        Pocket(
            coins=tuple(members),
            labels=clusters.cluster_of(members[0].script).labels,
            cluster_id=cluster_id,
        )
        for cluster_id, members in by_cluster.items()
    ]
    pockets.sort(key=lambda p: (-p.total, p.label_text, p.cluster_id or ""))

    if private:
        pockets.insert(0, Pocket(coins=tuple(private), is_private=True))

    return pockets


class PrivacyControl:
    """
    Tracks which pockets fund a payment.

    A lone pocket is selected up front. Selection is by pocket position so
    pockets with identical contents stay distinguishable.
    """

    def __init__(self, pockets: Iterable[Pocket], amount: int):
        if amount <= 0:
            raise ValueError(f"Payment amount must be positive, got {amount}")

        self.pockets = list(pockets)
        self.amount = amount
        self._selected: set[int] = set()

        if len(self.pockets) == 1:
            self._selected.add(0)

    def _index(self, pocket: Pocket | int) -> int:
        if isinstance(pocket, int):
            if not 0 <= pocket < len(self.pockets):
                raise IndexError(f"No pocket at position {pocket}")
            return pocket
        for i, candidate in enumerate(self.pockets):
            if candidate is pocket:
                return i
        raise ValueError(f"Unknown pocket: {pocket.label_text}")

    def select(self, pocket: Pocket | int) -> None:
        self._selected.add(self._index(pocket))

    def deselect(self, pocket: Pocket | int) -> None:
        self._selected.discard(self._index(pocket))

    def toggle(self, pocket: Pocket | int) -> bool:
        """Flip a pocket's selection. Returns the new state."""
        index = self._index(pocket)
        if index in self._selected:
            self._selected.remove(index)
            return False
        self._selected.add(index)
        return True

    def is_selected(self, pocket: Pocket | int) -> bool:
        return self._index(pocket) in self._selected

    @property
    def selected_pockets(self) -> list[Pocket]:
        return [self.pockets[i] for i in sorted(self._selected)]

    @property
    def selected_total(self) -> int:
        return sum(pocket.total for pocket in self.selected_pockets)

    @property
    def still_needed(self) -> int:
        """Amount left to cover; negative once the selection exceeds the payment"""
        return self.amount - self.selected_total

    @property
    def enough_selected(self) -> bool:
        return self.still_needed <= 0

    def selected_coins(self) -> list[Coin]:
        return [coin for pocket in self.selected_pockets for coin in pocket.coins]

    def select_coins(
        self,
        clusters: ClusterSnapshot | None = None,
        forced_coins: Iterable[Coin] = (),
        **selector_options: int,
    ) -> list[Coin]:
        """
        Run coin selection restricted to the selected pockets.

        Raises:
            InsufficientFundsError: If the selected pockets cannot cover the amount
        """
        coins = self.selected_coins()
        logger.debug(
            f"Selecting from {len(self.selected_pockets)} pocket(s), "
            f"{len(coins)} coins, {self.selected_total} sats"
        )
        selector = SmartCoinSelector(coins, clusters=clusters, **selector_options)
        return selector.select(forced_coins, self.amount)
