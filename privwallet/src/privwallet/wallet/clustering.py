"""
Cluster tracking for wallet key identities.

Clusters group the scripts the wallet believes are linked (spent together,
received under the same label, ...). They only ever grow: linking two scripts
merges their clusters. The registry is a union-find over script identities;
selection reads an immutable ClusterSnapshot taken from it.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from loguru import logger

from privwallet.wallet.models import Cluster


class ClusterSnapshot(Mapping[str, Cluster]):
    """Read-only script -> cluster view. Unknown scripts are singleton clusters."""

    def __init__(self, clusters: Mapping[str, Cluster] | None = None):
        self._clusters: dict[str, Cluster] = dict(clusters or {})

    @classmethod
    def from_groups(cls, groups: Iterable[Iterable[str]]) -> ClusterSnapshot:
        """Build a snapshot from explicit member groups. Overlapping groups merge."""
        registry = ClusterRegistry()
        for group in groups:
            registry.link(*group)
        return registry.snapshot()

    def cluster_of(self, script: str) -> Cluster:
        """Current cluster of a registered script. Raises KeyError if unknown."""
        cluster = self._clusters.get(script)
        if cluster is None:
            return Cluster.singleton(script)
        return cluster

    def clusters(self) -> list[Cluster]:
        """Distinct clusters, ordered by cluster id"""
        unique = {c.cluster_id: c for c in self._clusters.values()}
        return [unique[cid] for cid in sorted(unique)]

    def __getitem__(self, script: str) -> Cluster:
        return self._clusters[script]

    def __iter__(self) -> Iterator[str]:
        return iter(self._clusters)

    def __len__(self) -> int:
        return len(self._clusters)


class ClusterRegistry:
    """
    Union-find over script identities.

    Uses path compression and union by size, so lookups are effectively O(1).
    Not thread-safe; take a snapshot() to share cluster state.
    """

    def __init__(self) -> None:
        self._parent: dict[str, str] = {}
        self._members: dict[str, set[str]] = {}  # root -> scripts
        self._labels: dict[str, set[str]] = {}

    def __contains__(self, script: object) -> bool:
        return script in self._parent

    def __len__(self) -> int:
        return len(self._parent)

    def add_key(self, script: str, labels: Iterable[str] = ()) -> None:
        """Register a key identity. Re-adding a known key only adds its labels."""
        if not script:
            raise ValueError("Script identity must not be empty")

        if script not in self._parent:
            self._parent[script] = script
            self._members[script] = {script}
            self._labels[script] = set()

        root = self.find(script)
        self._labels[root].update(label for label in labels if label)

    def find(self, script: str) -> str:
        """Return the root identity of the script's cluster"""
        if script not in self._parent:
            raise KeyError(f"Unknown key identity: {script}")

        root = script
        while self._parent[root] != root:
            root = self._parent[root]

        # Path compression
        node = script
        while self._parent[node] != root:
            self._parent[node], node = root, self._parent[node]

        return root

    def link(self, *scripts: str) -> str | None:
        """
        Merge the clusters of all given scripts.

        Unknown scripts are registered first. Returns the root of the merged
        cluster, or None when called without scripts.
        """
        if not scripts:
            return None

        for script in scripts:
            if script not in self._parent:
                self.add_key(script)

        root = self.find(scripts[0])
        for script in scripts[1:]:
            other = self.find(script)
            if other == root:
                continue

            # Union by size
            if len(self._members[other]) > len(self._members[root]):
                root, other = other, root

            self._parent[other] = root
            self._members[root].update(self._members.pop(other))
            self._labels[root].update(self._labels.pop(other))
            logger.debug(
                f"Merged cluster {other[:16]} into {root[:16]} "
                f"(size {len(self._members[root])})"
            )

        return root

    def cluster_of(self, script: str) -> Cluster:
        """Current cluster of a registered script. Raises KeyError if unknown."""
        return self._cluster(self.find(script))

    def _cluster(self, root: str) -> Cluster:
        members = frozenset(self._members[root])
        return Cluster(
            cluster_id=min(members),
            members=members,
            labels=frozenset(self._labels[root]),
        )

    def snapshot(self) -> ClusterSnapshot:
        """Freeze the current cluster assignment for selection"""
        clusters: dict[str, Cluster] = {}
        for root in self._members:
            cluster = self._cluster(root)
            for script in cluster.members:
                clusters[script] = cluster

        return ClusterSnapshot(clusters)
