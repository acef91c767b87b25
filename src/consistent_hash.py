"""
Consistent Hashing Ring Implementation

Maps a changing set of named nodes onto the 32-bit hash space so that
keys route to the same node every time, and only a small share of keys
move when a node joins or leaves.
"""

import bisect
import logging
import zlib
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Union

from ring_lock import ReadWriteLock

logger = logging.getLogger(__name__)

DEFAULT_REPLICAS = 20
RING_SIZE = 2 ** 32

Key = Union[str, bytes]
HashFunction = Callable[[bytes], int]


class RingInvariantError(AssertionError):
    """The ring's bookkeeping no longer agrees with itself. Never recoverable."""


def crc32_hash(data: bytes) -> int:
    """IEEE CRC-32 checksum, the default position function for the ring."""
    return zlib.crc32(data) & 0xFFFFFFFF


def _to_bytes(key: Key) -> bytes:
    if isinstance(key, bytes):
        return key
    return key.encode('utf-8')


class ConsistentHashRing:
    """
    Consistent hashing ring with virtual nodes.

    Every node is placed on the ring `replicas` times, at the positions
    hash(name + "0"), hash(name + "1"), ... A key belongs to the node that
    owns the first point strictly clockwise from the key's own hash.

    Two virtual points can land on the same hash value. Each position
    therefore keeps a bucket of owners in arrival order; the first owner
    answers lookups and the next one takes over when it leaves.

    The ring is safe to share between threads: membership changes take
    an exclusive lock, lookups take a shared one.
    """

    def __init__(self, nodes: Optional[Iterable[str]] = None, replicas: int = DEFAULT_REPLICAS,
                 hash_fn: HashFunction = crc32_hash):
        """
        Initialize the hash ring.

        Args:
            nodes: Initial node names
            replicas: Virtual points per node (higher = more even distribution)
            hash_fn: Maps bytes to a 32-bit position; wider results are truncated
        """
        if replicas < 1:
            raise ValueError(f"replicas must be at least 1, got {replicas}")
        if not callable(hash_fn):
            raise TypeError("hash_fn must be callable")

        self.replicas = replicas
        self.hash_fn = hash_fn
        self.ring: Dict[int, List[str]] = {}  # hash_value -> owners, first one wins
        self.sorted_keys: List[int] = []
        self.nodes: Set[str] = set()
        self._lock = ReadWriteLock()

        if nodes:
            for node in nodes:
                self.add_node(node)

    def _hash(self, key: Key) -> int:
        return self.hash_fn(_to_bytes(key)) & 0xFFFFFFFF

    def _virtual_points(self, node_id: str) -> List[int]:
        return [self._hash(f"{node_id}{i}") for i in range(self.replicas)]

    def add_node(self, node_id: str) -> None:
        """
        Add a node to the ring.

        Adding a node that is already a member does nothing.
        """
        with self._lock.write_locked():
            if node_id in self.nodes:
                logger.debug("Node %r is already on the ring", node_id)
                return

            # Every hash is computed before the ring is touched
            points = self._virtual_points(node_id)

            for hash_value in points:
                owners = self.ring.setdefault(hash_value, [])
                if owners:
                    logger.warning("Virtual point %08x of %r collides with %r",
                                   hash_value, node_id, owners[0])
                owners.append(node_id)

            self.sorted_keys = sorted(self.ring.keys())
            self.nodes.add(node_id)

        logger.info("Added node %s with %d virtual nodes", node_id, self.replicas)

    def remove_node(self, node_id: str) -> None:
        """
        Remove a node and all of its virtual points.

        Removing a node that is not a member does nothing.
        """
        with self._lock.write_locked():
            if node_id not in self.nodes:
                logger.debug("Node %r is not on the ring", node_id)
                return

            points = self._virtual_points(node_id)

            for hash_value in points:
                owners = self.ring.get(hash_value)
                if not owners or node_id not in owners:
                    raise RingInvariantError(
                        f"virtual point {hash_value:08x} of {node_id!r} is missing from the ring")
                owners.remove(node_id)
                if not owners:
                    del self.ring[hash_value]

            self.sorted_keys = sorted(self.ring.keys())
            self.nodes.discard(node_id)

        logger.info("Removed node %s", node_id)

    def _successor(self, hash_value: int) -> int:
        # Smallest point strictly greater than hash_value, wrapping to the first one
        idx = bisect.bisect_right(self.sorted_keys, hash_value)
        if idx == len(self.sorted_keys):
            idx = 0
        return idx

    def _owners_at(self, idx: int) -> List[str]:
        point = self.sorted_keys[idx]
        owners = self.ring.get(point)
        if not owners:
            raise RingInvariantError(f"point {point:08x} has no owner")
        return owners

    def get_node(self, key: Key) -> Optional[str]:
        """
        Find which node owns the given key.

        Returns None if the ring is empty.
        """
        hash_value = self._hash(key)

        with self._lock.read_locked():
            if not self.sorted_keys:
                return None
            return self._owners_at(self._successor(hash_value))[0]

    def get_nodes(self, key: Key, count: int = 3) -> Optional[List[str]]:
        """
        Get up to `count` distinct nodes for a key, for replication.

        Walks clockwise from the key's position, so the first entry is
        always the node get_node() would return. The result holds
        min(count, number of members) names. Returns None if count is not
        positive or the ring is empty.
        """
        if count <= 0:
            return None

        hash_value = self._hash(key)

        with self._lock.read_locked():
            if not self.sorted_keys:
                return None

            wanted = min(count, len(self.nodes))
            start = self._successor(hash_value)
            total = len(self.sorted_keys)

            nodes: List[str] = []
            seen: Set[str] = set()

            for offset in range(total):
                for node in self._owners_at((start + offset) % total):
                    if node not in seen:
                        seen.add(node)
                        nodes.append(node)
                        if len(nodes) == wanted:
                            return nodes

            raise RingInvariantError(
                f"walked {total} points but found only {len(nodes)} of {wanted} members")

    def count(self) -> int:
        """Number of member nodes (not virtual points)."""
        with self._lock.read_locked():
            return len(self.nodes)

    def contains(self, node_id: str) -> bool:
        with self._lock.read_locked():
            return node_id in self.nodes

    def members(self) -> List[str]:
        """Member names in sorted order."""
        with self._lock.read_locked():
            return sorted(self.nodes)

    def point_count(self) -> int:
        """Number of virtual points, counting every owner of a shared position."""
        with self._lock.read_locked():
            return sum(len(owners) for owners in self.ring.values())

    def get_node_load_distribution(self) -> Dict[str, float]:
        """
        Analyze how evenly keys would be spread across nodes.

        Returns the percentage of the hash space each node is responsible
        for. A point owns the arc from the previous point (inclusive) up to
        itself (exclusive).
        """
        with self._lock.read_locked():
            if not self.sorted_keys:
                return {}

            node_ranges = {node: 0 for node in self.nodes}

            for i, key in enumerate(self.sorted_keys):
                owner = self._owners_at(i)[0]
                # i == 0 wraps to the last point; a lone point owns the whole ring
                range_size = (key - self.sorted_keys[i - 1]) % RING_SIZE or RING_SIZE
                node_ranges[owner] += range_size

        return {node: (size / RING_SIZE) * 100
                for node, size in node_ranges.items()}

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, node_id: object) -> bool:
        return isinstance(node_id, str) and self.contains(node_id)

    def __iter__(self) -> Iterator[str]:
        return iter(self.members())

    def __repr__(self) -> str:
        return f"ConsistentHashRing(nodes={self.members()!r}, replicas={self.replicas})"

    def __str__(self) -> str:
        """String representation showing ring status."""
        distribution = self.get_node_load_distribution()
        if not distribution:
            return "Empty hash ring"

        lines = [f"Hash ring with {len(distribution)} nodes:"]
        for node in sorted(distribution):
            lines.append(f"  {node}: {distribution[node]:.2f}% of hash space")

        return "\n".join(lines)
