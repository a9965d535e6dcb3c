"""
Privacy-aware coin selection.

Picks the coins to spend for a payment. Fewer inputs always win; among the
smallest covering subsets the selector prefers the one that links the fewest
(and smallest) clusters, reuses scripts already being spent, and leaves the
least change.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from privwallet.constants import DEFAULT_MAX_ENUMERATED_SUBSETS, DEFAULT_MAX_SUBSET_SIZE
from privwallet.wallet.clustering import ClusterSnapshot
from privwallet.wallet.models import Cluster, Coin

if TYPE_CHECKING:
    from privwallet.config import Settings


class CoinSelectionError(Exception):
    """Base class for coin selection failures."""

    pass


class InsufficientFundsError(CoinSelectionError):
    """Raised when the wallet cannot cover the target amount."""

    def __init__(self, needed: int, available: int):
        self.needed = needed
        self.available = available
        super().__init__(f"Insufficient funds: need {needed}, have {available}")


@dataclass(frozen=True, order=True)
class SelectionScore:
    """
    Ranking key of a candidate subset. Lower compares better.

    Fields are compared in declaration order, so coin count dominates,
    then cluster linkage, script reuse and change. Positions (indices into
    the selector's coin list) make the order total and deterministic.
    """

    coin_count: int
    cluster_count: int
    cluster_exposure: int
    script_count: int
    excess: int
    positions: tuple[int, ...]


@dataclass(frozen=True)
class _ForcedContext:
    clusters: dict[str, int]  # cluster_id -> size
    scripts: frozenset[str]
    total: int


class SmartCoinSelector:
    """
    Coin selector over a fixed snapshot of spendable coins.

    Args:
        unspent_coins: All spendable coins (forced ones included)
        clusters: Cluster snapshot used to resolve each coin's cluster.
                  Scripts missing from it count as singleton clusters.
        max_subset_size: Largest subset size enumerated exhaustively
        max_enumerated_subsets: Maximum covering subsets scored per call
    """

    def __init__(
        self,
        unspent_coins: Iterable[Coin],
        clusters: ClusterSnapshot | None = None,
        max_subset_size: int = DEFAULT_MAX_SUBSET_SIZE,
        max_enumerated_subsets: int = DEFAULT_MAX_ENUMERATED_SUBSETS,
    ):
        if max_subset_size < 1:
            raise ValueError(f"max_subset_size must be at least 1, got {max_subset_size}")
        if max_enumerated_subsets < 1:
            raise ValueError(
                f"max_enumerated_subsets must be at least 1, got {max_enumerated_subsets}"
            )

        self.unspent_coins = list(unspent_coins)
        self.clusters = clusters if clusters is not None else ClusterSnapshot()
        self.max_subset_size = max_subset_size
        self.max_enumerated_subsets = max_enumerated_subsets

        self._positions: dict[tuple[str, int], int] = {}
        for position, coin in enumerate(self.unspent_coins):
            if coin.outpoint in self._positions:
                raise ValueError(f"Duplicate coin {coin.txid}:{coin.vout}")
            self._positions[coin.outpoint] = position

        self._cluster_by_outpoint: dict[tuple[str, int], Cluster] = {
            coin.outpoint: self.clusters.cluster_of(coin.script) for coin in self.unspent_coins
        }

    @classmethod
    def from_settings(
        cls,
        unspent_coins: Iterable[Coin],
        clusters: ClusterSnapshot | None = None,
        settings: Settings | None = None,
    ) -> SmartCoinSelector:
        """Create a selector using the search limits from settings"""
        if settings is None:
            from privwallet.config import get_settings

            settings = get_settings()

        return cls(
            unspent_coins,
            clusters=clusters,
            max_subset_size=settings.max_subset_size,
            max_enumerated_subsets=settings.max_enumerated_subsets,
        )

    @property
    def total_amount(self) -> int:
        return sum(coin.amount for coin in self.unspent_coins)

    def select(self, forced_coins: Iterable[Coin], target: int) -> list[Coin]:
        """
        Select coins covering target.

        Args:
            forced_coins: Coins that must be spent. Always part of the result.
            target: Amount to cover in satoshis

        Returns:
            Forced coins followed by the additionally selected coins

        Raises:
            ValueError: If target is not positive or a forced coin is unknown
            InsufficientFundsError: If all coins together cannot cover target
        """
        if target <= 0:
            raise ValueError(f"Target amount must be positive, got {target}")

        forced = self._validate_forced(forced_coins)

        available = self.total_amount
        if available < target:
            raise InsufficientFundsError(needed=target, available=available)

        context = self._forced_context(forced)
        if context.total >= target:
            logger.debug(f"Forced coins cover target: {len(forced)} coins, {context.total} sats")
            return forced

        residual = target - context.total
        forced_outpoints = {coin.outpoint for coin in forced}
        candidates = [c for c in self.unspent_coins if c.outpoint not in forced_outpoints]

        chosen = self._select_from_candidates(context, candidates, residual)
        chosen = sorted(chosen, key=lambda c: self._positions[c.outpoint])

        logger.debug(
            f"Selected {len(chosen)} coin(s) for residual {residual} sats "
            f"({len(forced)} forced): {', '.join(str(c) for c in chosen)}"
        )
        return forced + chosen

    def score(
        self, forced_coins: Iterable[Coin], subset: Sequence[Coin], target: int
    ) -> SelectionScore:
        """Ranking key of spending subset on top of forced_coins for target"""
        forced = self._validate_forced(forced_coins)
        context = self._forced_context(forced)
        return self._score(context, subset, target - context.total)

    def _validate_forced(self, forced_coins: Iterable[Coin]) -> list[Coin]:
        forced = list(forced_coins)
        seen: set[tuple[str, int]] = set()

        for coin in forced:
            if coin.outpoint in seen:
                raise ValueError(f"Forced coin {coin.txid}:{coin.vout} given more than once")
            position = self._positions.get(coin.outpoint)
            if position is None or self.unspent_coins[position] != coin:
                raise ValueError(f"Forced coin {coin.txid}:{coin.vout} is not a spendable coin")
            seen.add(coin.outpoint)

        return forced

    def _forced_context(self, forced: list[Coin]) -> _ForcedContext:
        clusters: dict[str, int] = {}
        for coin in forced:
            cluster = self._cluster_by_outpoint[coin.outpoint]
            clusters[cluster.cluster_id] = cluster.size

        return _ForcedContext(
            clusters=clusters,
            scripts=frozenset(coin.script for coin in forced),
            total=sum(coin.amount for coin in forced),
        )

    def _score(
        self, context: _ForcedContext, subset: Sequence[Coin], residual: int
    ) -> SelectionScore:
        clusters = dict(context.clusters)
        for coin in subset:
            cluster = self._cluster_by_outpoint[coin.outpoint]
            clusters[cluster.cluster_id] = cluster.size

        scripts = context.scripts.union(coin.script for coin in subset)

        return SelectionScore(
            coin_count=len(subset),
            cluster_count=len(clusters),
            cluster_exposure=sum(clusters.values()),
            script_count=len(scripts),
            excess=sum(coin.amount for coin in subset) - residual,
            positions=tuple(sorted(self._positions[coin.outpoint] for coin in subset)),
        )

    def _select_from_candidates(
        self, context: _ForcedContext, candidates: list[Coin], residual: int
    ) -> list[Coin]:
        # A single coin matching the residual exactly ends the search
        exact = [coin for coin in candidates if coin.amount == residual]
        if exact:
            best = min(exact, key=lambda c: self._score(context, (c,), residual))
            return [best]

        # Largest first; ties keep candidate order
        ordered = sorted(candidates, key=lambda c: (-c.amount, self._positions[c.outpoint]))

        size = self._minimal_subset_size(ordered, residual)
        stages = self._search_stages(context, ordered)

        if size > self.max_subset_size:
            logger.warning(
                f"Covering {residual} sats needs {size} coins (limit {self.max_subset_size}), "
                "using the largest coins of the cheapest pool"
            )
            heads = [
                tuple(pool[:size])
                for _, pool in stages
                if len(pool) >= size and sum(c.amount for c in pool[:size]) >= residual
            ]
            return list(min(heads, key=lambda s: self._score(context, s, residual)))

        best_score: SelectionScore | None = None
        best_subset: tuple[Coin, ...] = ()
        scored = 0
        for floor, pool in stages:
            if best_score is not None and floor > (
                best_score.cluster_count,
                best_score.cluster_exposure,
            ):
                break

            for subset in self._covering_subsets(pool, size, residual):
                scored += 1
                if scored > self.max_enumerated_subsets:
                    logger.warning(
                        f"More than {self.max_enumerated_subsets} covering subsets of "
                        f"{size} coins, keeping the best found so far"
                    )
                    return list(best_subset)

                subset_score = self._score(context, subset, residual)
                if best_score is None or subset_score < best_score:
                    best_score = subset_score
                    best_subset = subset

        return list(best_subset)

    def _search_stages(
        self, context: _ForcedContext, ordered: list[Coin]
    ) -> list[tuple[tuple[int, int], list[Coin]]]:
        """
        Candidate pools to search, cheapest first.

        Each pool is paired with the lowest (cluster_count, cluster_exposure)
        any of its subsets can reach. Pools are:

        - coins from clusters the forced coins already touch;
        - those coins plus one further cluster, for each cluster, by size;
        - every candidate.

        Every subset touching at most one new cluster lives in an earlier
        pool, so the last pool only matters when none of those can cover.
        """
        touched = len(context.clusters)
        exposure = sum(context.clusters.values())

        free: list[Coin] = []
        by_cluster: dict[str, list[Coin]] = {}
        sizes: dict[str, int] = {}
        for coin in ordered:
            cluster = self._cluster_by_outpoint[coin.outpoint]
            if cluster.cluster_id in context.clusters:
                free.append(coin)
            else:
                by_cluster.setdefault(cluster.cluster_id, []).append(coin)
                sizes[cluster.cluster_id] = cluster.size

        stages: list[tuple[tuple[int, int], list[Coin]]] = []
        if free:
            stages.append(((touched, exposure), free))

        for cluster_id in sorted(by_cluster, key=lambda cid: (sizes[cid], cid)):
            pool = free + by_cluster[cluster_id]
            pool.sort(key=lambda c: (-c.amount, self._positions[c.outpoint]))
            stages.append(((touched + 1, exposure + sizes[cluster_id]), pool))

        stages.append(((touched + 2, 0), ordered))
        return stages

    @staticmethod
    def _minimal_subset_size(ordered: list[Coin], residual: int) -> int:
        """Smallest number of coins that can cover residual (ordered by amount desc)"""
        total = 0
        for size, coin in enumerate(ordered, 1):
            total += coin.amount
            if total >= residual:
                return size
        raise RuntimeError(f"Candidates worth {total} sats cannot cover {residual} sats")

    @staticmethod
    def _covering_subsets(
        ordered: list[Coin], size: int, residual: int
    ) -> Iterator[tuple[Coin, ...]]:
        """
        Yield every subset of exactly `size` coins whose total covers residual.

        Coins must be sorted by amount descending. A branch is cut as soon as
        the largest coins still reachable cannot make up the remainder.
        """
        prefix = [0]
        for coin in ordered:
            prefix.append(prefix[-1] + coin.amount)

        count = len(ordered)
        chosen: list[Coin] = []

        def extend(start: int, total: int) -> Iterator[tuple[Coin, ...]]:
            remaining = size - len(chosen)
            if remaining == 0:
                if total >= residual:
                    yield tuple(chosen)
                return

            for i in range(start, count - remaining + 1):
                # Windows further right are never larger
                if total + prefix[i + remaining] - prefix[i] < residual:
                    break
                chosen.append(ordered[i])
                yield from extend(i + 1, total + ordered[i].amount)
                chosen.pop()

        yield from extend(0, 0)
