"""Plugins: collaborators the command layer delegates to. Don't affect route configuration."""

from __future__ import annotations
from abc import ABC, abstractmethod

from rib import Afi


class NexthopTrackerPlugin(ABC):
    """Base class for nexthop-tracking backends."""

    @abstractmethod
    def name(self) -> str:
        """Plugin name."""
        ...

    @abstractmethod
    def render_table(self, vrf: str, afi: Afi) -> str:
        """
        Text listing of the tracked nexthops of one VRF and family.

        The command layer adds VRF banners when several VRFs are shown; the
        plugin only renders its own entries.
        """
        ...
