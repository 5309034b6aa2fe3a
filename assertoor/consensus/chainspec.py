"""Consensus chain specification, finality checkpoints and sync status."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping


def _to_str(value: Any) -> str:
    return str(value)


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid integer value: {value!r}")
    if isinstance(value, int):
        return value
    return int(str(value))


def _to_version(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        text = str(value)
        if text.startswith(("0x", "0X")):
            text = text[2:]
        raw = bytes.fromhex(text)
    if len(raw) != 4:
        raise ValueError(f"invalid fork version: {value!r}")
    return raw


def _to_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromtimestamp(_to_int(value), tz=timezone.utc)


def _to_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=_to_int(value))


_SPEC_KEYS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "PRESET_BASE": ("preset_base", _to_str),
    "CONFIG_NAME": ("config_name", _to_str),
    "MIN_GENESIS_TIME": ("min_genesis_time", _to_time),
    "GENESIS_FORK_VERSION": ("genesis_fork_version", _to_version),
    "ALTAIR_FORK_VERSION": ("altair_fork_version", _to_version),
    "ALTAIR_FORK_EPOCH": ("altair_fork_epoch", _to_int),
    "BELLATRIX_FORK_VERSION": ("bellatrix_fork_version", _to_version),
    "BELLATRIX_FORK_EPOCH": ("bellatrix_fork_epoch", _to_int),
    "CAPELLA_FORK_VERSION": ("capella_fork_version", _to_version),
    "CAPELLA_FORK_EPOCH": ("capella_fork_epoch", _to_int),
    "SECONDS_PER_SLOT": ("seconds_per_slot", _to_duration),
    "SLOTS_PER_EPOCH": ("slots_per_epoch", _to_int),
}

_ZERO_VERSION = bytes(4)


@dataclass
class ChainSpec:
    """The subset of the beacon chain config that clients must agree on."""

    preset_base: str = ""
    config_name: str = ""
    min_genesis_time: datetime | None = None
    genesis_fork_version: bytes = _ZERO_VERSION
    altair_fork_version: bytes = _ZERO_VERSION
    altair_fork_epoch: int = 0
    bellatrix_fork_version: bytes = _ZERO_VERSION
    bellatrix_fork_epoch: int = 0
    capella_fork_version: bytes = _ZERO_VERSION
    capella_fork_epoch: int = 0
    seconds_per_slot: timedelta = field(default_factory=timedelta)
    slots_per_epoch: int = 0

    @classmethod
    def from_spec_values(cls, values: Mapping[str, Any]) -> ChainSpec:
        """Build a spec from the ``/eth/v1/config/spec`` key/value map.

        Unknown keys are ignored; malformed values raise ValueError.
        """
        kwargs = {
            attr: convert(values[key])
            for key, (attr, convert) in _SPEC_KEYS.items()
            if key in values
        }
        return cls(**kwargs)

    def check_mismatch(self, other: ChainSpec) -> list[str]:
        """Return the names of the fields that differ from ``other``."""
        return [f.name for f in fields(self) if getattr(self, f.name) != getattr(other, f.name)]


@dataclass(frozen=True)
class FinalizedCheckpoint:
    """A finalized epoch and its block root."""

    epoch: int
    root: bytes


@dataclass
class SyncStatus:
    """Synchronisation state of a beacon node."""

    is_syncing: bool = False
    is_optimistic: bool = False
    head_slot: int = 0
    estimated_highest_head_slot: int = 0
    sync_distance: int = 0

    @classmethod
    def from_sync_state(cls, state: Mapping[str, Any]) -> SyncStatus:
        """Build from the ``/eth/v1/node/syncing`` data object."""
        head_slot = _to_int(state.get("head_slot", 0))
        distance = _to_int(state.get("sync_distance", 0))
        return cls(
            is_syncing=bool(state.get("is_syncing", False)),
            is_optimistic=bool(state.get("is_optimistic", False)),
            head_slot=head_slot,
            estimated_highest_head_slot=head_slot + distance,
            sync_distance=distance,
        )

    def percent(self) -> float:
        """Return sync progress in percent."""
        if not self.is_syncing:
            return 100.0
        if self.estimated_highest_head_slot == 0:
            return math.nan
        return self.head_slot / self.estimated_highest_head_slot * 100