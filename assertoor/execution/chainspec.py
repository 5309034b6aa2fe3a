"""Execution chain specification and sync status."""

from __future__ import annotations

import math
from dataclasses import dataclass, fields


@dataclass
class ChainSpec:
    """The execution chain parameters that clients must agree on."""

    chain_id: str = ""

    def check_mismatch(self, other: ChainSpec) -> list[str]:
        """Return the names of the fields that differ from ``other``."""
        return [f.name for f in fields(self) if getattr(self, f.name) != getattr(other, f.name)]


@dataclass
class SyncStatus:
    """Synchronisation state of an execution node."""

    is_syncing: bool = False
    starting_block: int = 0
    current_block: int = 0
    highest_block: int = 0

    def percent(self) -> float:
        """Return sync progress in percent."""
        if not self.is_syncing:
            return 100.0
        if self.highest_block == 0:
            return math.nan if self.current_block == 0 else math.inf
        return self.current_block / self.highest_block * 100