"""
Prefix-indexed route table.

Nodes live in an arena (a list) and are found through a prefix index.
A sorted key list gives the traversal order: ascending address, shorter
prefix first, source-specific nodes right after their destination.

Readers hold a node guard while they look at a node. A node whose last
entry goes away is only reclaimed once no guard is held on it.
"""

from __future__ import annotations

import bisect
import ipaddress
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from rib import DEFAULT_VRF_NAME, VRF_DEFAULT, Afi, IPNetwork, Safi

NodeKey = tuple[int, int, int, int, int]


@dataclass
class RouteNode:
    """One prefix (optionally narrowed by a source prefix) and what is stored at it."""
    prefix: IPNetwork
    src: Optional[ipaddress.IPv6Network] = None
    entries: list[Any] = field(default_factory=list)
    lock: int = 0
    slot: int = -1


def node_key(prefix: IPNetwork, src: Optional[ipaddress.IPv6Network] = None) -> NodeKey:
    if src is None:
        return (int(prefix.network_address), prefix.prefixlen, 0, 0, 0)
    return (int(prefix.network_address), prefix.prefixlen, 1, int(src.network_address), src.prefixlen)


class RouteTable:
    """Route table for one (AFI, SAFI, VRF)."""

    def __init__(self, afi: Afi, safi: Safi = Safi.UNICAST,
                 vrf_name: str = DEFAULT_VRF_NAME, vrf_id: Optional[int] = VRF_DEFAULT):
        self.afi = afi
        self.safi = safi
        self.vrf_name = vrf_name
        self.vrf_id = vrf_id
        self._arena: list[Optional[RouteNode]] = []
        self._free: list[int] = []
        self._index: dict[NodeKey, int] = {}
        self._order: list[NodeKey] = []

    def __len__(self) -> int:
        return sum(1 for slot in self._index.values() if self._arena[slot].entries)

    def entry_count(self) -> int:
        return sum(len(self._arena[slot].entries) for slot in self._index.values())

    def locked_count(self) -> int:
        """Number of nodes currently held by a guard."""
        return sum(1 for node in self._arena if node is not None and node.lock)

    # --- structure ---

    def get(self, prefix: IPNetwork, src: Optional[ipaddress.IPv6Network] = None) -> Optional[RouteNode]:
        slot = self._index.get(node_key(prefix, src))
        return self._arena[slot] if slot is not None else None

    def get_or_create(self, prefix: IPNetwork, src: Optional[ipaddress.IPv6Network] = None) -> RouteNode:
        key = node_key(prefix, src)
        slot = self._index.get(key)
        if slot is not None:
            return self._arena[slot]

        node = RouteNode(prefix=prefix, src=src)
        if self._free:
            slot = self._free.pop()
            self._arena[slot] = node
        else:
            slot = len(self._arena)
            self._arena.append(node)
        node.slot = slot
        self._index[key] = slot
        bisect.insort(self._order, key)
        return node

    def reclaim(self, node: RouteNode) -> bool:
        """Drop an empty node from the table unless a reader still holds it."""
        if node.entries or node.lock or node.slot < 0:
            return False
        key = node_key(node.prefix, node.src)
        del self._index[key]
        pos = bisect.bisect_left(self._order, key)
        del self._order[pos]
        self._arena[node.slot] = None
        self._free.append(node.slot)
        node.slot = -1
        return True

    # --- guards ---

    def lock_node(self, node: RouteNode) -> RouteNode:
        node.lock += 1
        return node

    def unlock_node(self, node: RouteNode) -> None:
        if node.lock <= 0:
            raise RuntimeError(f"unlock of unlocked node {node.prefix}")
        node.lock -= 1
        if not node.lock and not node.entries:
            self.reclaim(node)

    @contextmanager
    def guard(self, node: Optional[RouteNode]) -> Iterator[Optional[RouteNode]]:
        if node is None:
            yield None
            return
        self.lock_node(node)
        try:
            yield node
        finally:
            self.unlock_node(node)

    def lookup(self, prefix: IPNetwork, src: Optional[ipaddress.IPv6Network] = None):
        """Exact-match lookup; use as a context manager."""
        node = self.get(prefix, src)
        if node is not None and not node.entries:
            node = None
        return self.guard(node)

    def match(self, target: IPNetwork):
        """Longest-prefix match among nodes holding entries; use as a context manager."""
        return self.guard(next(self._covering(target), None))

    def _covering(self, target: IPNetwork) -> Iterator[RouteNode]:
        for length in range(target.prefixlen, -1, -1):
            candidate = target.supernet(new_prefix=length) if length < target.prefixlen else target
            node = self.get(candidate)
            if node is not None and node.entries:
                yield node

    # --- traversal ---

    def nodes(self) -> Iterator[RouteNode]:
        """
        Visit nodes with entries in prefix order.

        Each yielded node is guarded until the caller advances, and the guard
        is dropped even when the caller stops iterating early.
        """
        for key in list(self._order):
            slot = self._index.get(key)
            if slot is None:
                continue
            node = self._arena[slot]
            if not node.entries:
                continue
            self.lock_node(node)
            try:
                yield node
            finally:
                self.unlock_node(node)

    def supernets_of(self, target: IPNetwork) -> Iterator[RouteNode]:
        """Nodes covering target, longest first, each guarded while yielded."""
        for node in self._covering(target):
            self.lock_node(node)
            try:
                yield node
            finally:
                self.unlock_node(node)
