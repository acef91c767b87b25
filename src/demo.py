#!/usr/bin/env python3
"""
Consistent Hash Ring Demo

Walks through the ring end to end:
1. Routes keys to nodes
2. Shows how the hash space is split
3. Picks replica sets for keys
4. Measures key movement when nodes join and leave
5. Hammers the ring from several threads while membership changes

Usage: python demo.py [replicas]
"""

import logging
import sys
import threading
from typing import Dict, List, Optional

from consistent_hash import DEFAULT_REPLICAS, ConsistentHashRing

logger = logging.getLogger(__name__)

SERVERS = ["server1", "server2", "server3"]


def _assignments(ring: ConsistentHashRing, keys: List[str]) -> Dict[str, str]:
    return {key: ring.get_node(key) for key in keys}


def demo_basic_routing(ring: ConsistentHashRing) -> None:
    """Show where a handful of keys land."""
    print("\n📝 Demo 1: Key Routing")
    print("=" * 40)

    for key in ["user:alice", "user:bob", "session:123", "cache:popular", "counter:visits"]:
        print(f"  {key:15} -> {ring.get_node(key)}")


def demo_distribution(ring: ConsistentHashRing) -> None:
    print("\n🔄 Demo 2: Hash Space Distribution")
    print("=" * 40)

    test_keys = [f"key_{i:04d}" for i in range(1000)]
    node_counts: Dict[str, int] = {}
    for node in _assignments(ring, test_keys).values():
        node_counts[node] = node_counts.get(node, 0) + 1

    print("Sampled keys per node:")
    for node, count in sorted(node_counts.items()):
        percentage = (count / len(test_keys)) * 100
        bar = "█" * int(percentage / 2)
        print(f"  {node:8}: {count:4} keys ({percentage:5.1f}%) {bar}")

    print(f"\n{ring}")


def demo_replication(ring: ConsistentHashRing) -> None:
    print("\n🛡️  Demo 3: Replica Sets")
    print("=" * 40)

    for key in ["critical:config", "user:vip", "session:important"]:
        print(f"  {key:18} -> {ring.get_nodes(key, 2)}")

    # Asking for more replicas than there are members is capped
    print(f"  {'(asked for 10)':18} -> {ring.get_nodes('user:vip', 10)}")


def demo_membership_change(ring: ConsistentHashRing) -> float:
    """
    Add and then remove a node, reporting how many keys move each time.

    Returns the share of keys that moved when the node joined.
    """
    print("\n➕ Demo 4: Membership Changes")
    print("=" * 40)

    test_keys = [f"distribution_test_{i:04d}" for i in range(1000)]
    before = _assignments(ring, test_keys)

    ring.add_node("server4")
    after = _assignments(ring, test_keys)
    moved = sum(1 for key in test_keys if before[key] != after[key])
    moved_share = moved / len(test_keys)
    print(f"  Adding server4 moved {moved}/{len(test_keys)} keys ({moved_share:.1%})")

    ring.remove_node("server4")
    restored = _assignments(ring, test_keys)
    unchanged = sum(1 for key in test_keys if before[key] == restored[key])
    print(f"  Removing server4 restored {unchanged}/{len(test_keys)} original assignments")

    return moved_share


def demo_concurrency(ring: ConsistentHashRing, readers: int = 4, lookups: int = 500) -> int:
    """
    Run lookups from several threads while another thread churns membership.

    Returns the number of lookups that came back without an owner.
    """
    print("\n⚡ Demo 5: Concurrent Access")
    print("=" * 40)

    misses = []

    def reader(worker: int) -> None:
        missed = 0
        for i in range(lookups):
            if ring.get_node(f"worker{worker}:key{i}") is None:
                missed += 1
        misses.append(missed)

    def churn() -> None:
        for i in range(20):
            ring.add_node(f"temp{i}")
            ring.remove_node(f"temp{i}")

    threads = [threading.Thread(target=reader, args=(n,)) for n in range(readers)]
    threads.append(threading.Thread(target=churn))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    total_misses = sum(misses)
    print(f"  {readers * lookups} lookups during churn, {total_misses} without an owner")
    print(f"  Members afterwards: {ring.members()}")
    return total_misses


def main(argv: Optional[List[str]] = None) -> ConsistentHashRing:
    """Run every demo against a three-node ring."""
    argv = sys.argv[1:] if argv is None else argv
    replicas = int(argv[0]) if argv else DEFAULT_REPLICAS

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=== Consistent Hash Ring Demo ===")
    ring = ConsistentHashRing(SERVERS, replicas=replicas)
    logger.info("Ring ready with %d nodes and %d virtual points", ring.count(), ring.point_count())

    demo_basic_routing(ring)
    demo_distribution(ring)
    demo_replication(ring)
    demo_membership_change(ring)
    demo_concurrency(ring)

    print("\n🎉 All demos completed!")
    return ring


if __name__ == "__main__":
    main()
