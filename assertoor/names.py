"""Validator index to name lookup, loaded from config, YAML files or an API."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import requests
import yaml

_log = logging.getLogger(__name__)

_UINT = re.compile(r"\d+", re.ASCII)
_UINT_MAX = 2**64 - 1


@dataclass
class NamesConfig:
    """Sources of validator names."""

    inventory_yaml: str = ""
    inventory_url: str = ""
    inventory: dict[str, str] | None = None


def redacted_url(url: str) -> str:
    """Return ``url`` with any password replaced by ``xxxxx``."""
    try:
        parts = urlsplit(url)
        password = parts.password
    except ValueError:
        return url
    if password is None:
        return url
    userinfo, _, hostport = parts.netloc.rpartition("@")
    username = userinfo.partition(":")[0]
    return urlunsplit(parts._replace(netloc=f"{username}:xxxxx@{hostport}"))


def _parse_uint(text: str) -> int | None:
    if not _UINT.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _UINT_MAX else None


class ValidatorNames:
    """Maps validator indices to names."""

    def __init__(self, config: NamesConfig | None = None, logger=None) -> None:
        self._config = config
        self._logger = logger if logger is not None else _log
        self._lock = threading.Lock()
        self._names: dict[int, str] | None = None

    def get_validator_name(self, index: int) -> str:
        """Return the name for ``index``, or "" if unknown or being reloaded."""
        if not self._lock.acquire(blocking=False):
            return ""
        try:
            if self._names is None:
                return ""
            return self._names.get(index, "")
        finally:
            self._lock.release()

    def load_validator_names(self) -> None:
        """Reload all names from the configured sources."""
        with self._lock:
            self._names = {}
            config = self._config
            if config is None:
                return

            if config.inventory_yaml:
                try:
                    self._load_from_yaml(config.inventory_yaml)
                except ValueError as exc:
                    self._logger.error("error while loading validator names from yaml: %s", exc)

            if config.inventory_url:
                try:
                    self._load_from_ranges_api(config.inventory_url)
                except ValueError as exc:
                    self._logger.error("error while loading validator names inventory: %s", exc)

            if config.inventory is not None:
                count = self.parse_names_map(config.inventory)
                if count > 0:
                    self._logger.info("loaded %d validator names from config", count)

    def parse_names_map(self, names) -> int:
        """Add names keyed by ``"index"`` or ``"min-max"`` ranges; return how many were set."""
        if self._names is None:
            self._names = {}
        count = 0
        for key, name in names.items():
            parts = str(key).split("-")
            low = _parse_uint(parts[0])
            if low is None:
                continue
            high = low + 1
            if len(parts) > 1:
                high = _parse_uint(parts[1])
                if high is None:
                    continue
            for idx in range(low, high + 1):
                self._names[idx] = str(name)
                count += 1
        return count

    def _load_from_yaml(self, file_name: str) -> None:
        try:
            with open(file_name, encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except OSError as exc:
            raise ValueError(f"error opening validator names file {file_name}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ValueError(f"error decoding validator names file {file_name}: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"error decoding validator names file {file_name}: not a mapping")

        count = self.parse_names_map(data)
        self._logger.info("loaded %d validator names from yaml (%s)", count, file_name)

    def _load_from_ranges_api(self, api_url: str) -> None:
        shown = redacted_url(api_url)
        self._logger.debug("Loading validator names from inventory: %s", shown)
        try:
            response = requests.get(api_url, timeout=120)
        except requests.RequestException as exc:
            raise ValueError(f"could not fetch inventory ({shown}): {exc}") from exc

        if response.status_code != 200:
            if response.status_code == 404:
                self._logger.error("could not fetch inventory (%s): not found", shown)
                return
            raise ValueError(f"url: {shown}, error-response: {response.text}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ValueError(f"error parsing validator ranges response: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError("error parsing validator ranges response: not an object")
        ranges = payload.get("ranges") or {}
        if not isinstance(ranges, dict):
            raise ValueError("error parsing validator ranges response: invalid ranges")

        count = self.parse_names_map(ranges)
        self._logger.info("loaded %d validator names from inventory api (%s)", count, shown)