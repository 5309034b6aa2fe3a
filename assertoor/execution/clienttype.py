"""Execution client implementations and their detection from version strings."""

from __future__ import annotations

import enum
import re


class ClientType(enum.IntEnum):
    """Known execution client implementations."""

    UNKNOWN = -1
    UNSPECIFIED = 0
    BESU = 1
    ERIGON = 2
    ETHJS = 3
    GETH = 4
    NETHERMIND = 5
    RETH = 6

    def __str__(self) -> str:
        name = _NAMES.get(self)
        return name if name is not None else f"unknown: {int(self)}"


_NAMES = {
    ClientType.BESU: "besu",
    ClientType.ERIGON: "erigon",
    ClientType.ETHJS: "ethjs",
    ClientType.GETH: "geth",
    ClientType.NETHERMIND: "nethermind",
    ClientType.RETH: "reth",
}

_BY_NAME = {name: client_type for client_type, name in _NAMES.items()}

_PATTERNS = (
    (ClientType.BESU, re.compile(r"^Besu/", re.IGNORECASE)),
    (ClientType.ERIGON, re.compile(r"^Erigon/", re.IGNORECASE)),
    (ClientType.ETHJS, re.compile(r"^Ethereumjs/", re.IGNORECASE)),
    (ClientType.GETH, re.compile(r"^Geth/", re.IGNORECASE)),
    (ClientType.NETHERMIND, re.compile(r"^Nethermind/", re.IGNORECASE)),
    (ClientType.RETH, re.compile(r"^Reth/", re.IGNORECASE)),
)


def parse_client_type(name: str) -> ClientType:
    """Map a lower-case client name to its type, UNKNOWN if not recognised."""
    return _BY_NAME.get(name, ClientType.UNKNOWN)


def detect_client_type(version: str) -> ClientType:
    """Detect the client type from a ``web3_clientVersion`` string."""
    for client_type, pattern in _PATTERNS:
        if pattern.match(version):
            return client_type
    return ClientType.UNKNOWN