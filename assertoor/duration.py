"""Parsing and formatting of human readable durations such as ``1h30m``."""

from __future__ import annotations

import re
from datetime import timedelta

_NS_PER_US = 1_000
_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000

_UNITS = {
    "ns": 1,
    "us": _NS_PER_US,
    "\u00b5s": _NS_PER_US,
    "\u03bcs": _NS_PER_US,
    "ms": _NS_PER_MS,
    "s": _NS_PER_S,
    "m": 60 * _NS_PER_S,
    "h": 3600 * _NS_PER_S,
}

_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)", re.ASCII)
_MAX_NS = 2**63 - 1


def parse_duration(text: str) -> timedelta:
    """Parse a duration string like ``300ms``, ``-1.5h`` or ``2h45m``.

    Raises ValueError for malformed input.
    """
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]

    if rest == "0":
        return timedelta(0)
    if not rest:
        raise invalid

    total = 0
    pos = 0
    limit = _MAX_NS + 1 if negative else _MAX_NS
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, frac, unit = match.groups()
        if not whole and not frac:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        scale = _UNITS.get(unit)
        if scale is None:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')

        value = int(whole or "0") * scale
        if frac:
            value += int(frac) * scale // 10 ** len(frac)
        total += value
        if total > limit:
            raise invalid
        pos = match.end()

    result = timedelta(microseconds=total // _NS_PER_US)
    return -result if negative else result


def _fraction(value: int, precision: int) -> str:
    whole, rest = divmod(value, 10**precision)
    digits = str(rest).zfill(precision).rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def format_duration(value: timedelta) -> str:
    """Format a timedelta in the compact ``1h2m3.5s`` notation."""
    ns = ((value.days * 86400 + value.seconds) * _NS_PER_S) + value.microseconds * _NS_PER_US
    sign = "-" if ns < 0 else ""
    u = abs(ns)

    if u < _NS_PER_S:
        if u == 0:
            return "0s"
        if u < _NS_PER_US:
            text = f"{u}ns"
        elif u < _NS_PER_MS:
            text = _fraction(u, 3) + "\u00b5s"
        else:
            text = _fraction(u, 6) + "ms"
        return sign + text

    total_secs, sub = divmod(u, _NS_PER_S)
    sub_digits = str(sub).zfill(9).rstrip("0")
    text = f"{total_secs % 60}" + (f".{sub_digits}" if sub_digits else "") + "s"
    minutes = total_secs // 60
    if minutes:
        text = f"{minutes % 60}m" + text
        hours = minutes // 60
        if hours:
            text = f"{hours}h" + text
    return sign + text