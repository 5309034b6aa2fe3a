"""Consensus client implementations and their detection from version strings."""

from __future__ import annotations

import enum
import re


class ClientType(enum.IntEnum):
    """Known consensus client implementations."""

    UNKNOWN = -1
    UNSPECIFIED = 0
    LIGHTHOUSE = 1
    LODESTAR = 2
    NIMBUS = 3
    PRYSM = 4
    TEKU = 5
    GRANDINE = 6

    def __str__(self) -> str:
        name = _NAMES.get(self)
        return name if name is not None else f"unknown: {int(self)}"


_NAMES = {
    ClientType.LIGHTHOUSE: "lighthouse",
    ClientType.LODESTAR: "lodestar",
    ClientType.NIMBUS: "nimbus",
    ClientType.PRYSM: "prysm",
    ClientType.TEKU: "teku",
    ClientType.GRANDINE: "grandine",
}

_BY_NAME = {name: client_type for client_type, name in _NAMES.items()}

_PATTERNS = (
    (ClientType.LIGHTHOUSE, re.compile(r"^Lighthouse/", re.IGNORECASE)),
    (ClientType.LODESTAR, re.compile(r"^Lodestar/", re.IGNORECASE)),
    (ClientType.NIMBUS, re.compile(r"^Nimbus/", re.IGNORECASE)),
    (ClientType.PRYSM, re.compile(r"^Prysm/", re.IGNORECASE)),
    (ClientType.TEKU, re.compile(r"^teku/", re.IGNORECASE)),
    (ClientType.GRANDINE, re.compile(r"^Grandine/", re.IGNORECASE)),
)


def parse_client_type(name: str) -> ClientType:
    """Map a lower-case client name to its type, UNKNOWN if not recognised."""
    return _BY_NAME.get(name, ClientType.UNKNOWN)


def detect_client_type(version: str) -> ClientType:
    """Detect the client type from a ``/eth/v1/node/version`` string."""
    for client_type, pattern in _PATTERNS:
        if pattern.match(version):
            return client_type
    return ClientType.UNKNOWN