"""HTTP client for the beacon node REST API."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping
from urllib.parse import urlsplit

import requests

from assertoor.consensus.beaconstream import BeaconStream, StreamEventType
from assertoor.consensus.chainspec import SyncStatus
from assertoor.names import redacted_url

_log = logging.getLogger(__name__)

_TIMEOUT = 300.0


class BeaconApiError(Exception):
    """The beacon node answered with an error or an unusable response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _format_root(root: bytes | str) -> str:
    if isinstance(root, (bytes, bytearray)):
        return "0x" + bytes(root).hex()
    text = str(root)
    return text if text.startswith(("0x", "0X")) else "0x" + text


def _data(body: Any) -> Any:
    if not isinstance(body, dict) or "data" not in body:
        raise BeaconApiError(200, "error parsing json response: missing data field")
    return body["data"]


class BeaconClient:
    """Talks to one beacon node over its REST API."""

    def __init__(self, name: str, url: str, headers: Mapping[str, str] | None = None) -> None:
        self.name = name
        self.endpoint = url.rstrip("/")
        self.headers = dict(headers or {})
        self._session: requests.Session | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Prepare the HTTP transport; raises ValueError for unsupported URLs."""
        with self._lock:
            if self._session is not None:
                return
            scheme = urlsplit(self.endpoint).scheme.lower()
            if scheme not in ("http", "https"):
                raise ValueError(f'unsupported URL scheme "{scheme}" for beacon endpoint')
            session = requests.Session()
            session.headers.update(self.headers)
            self._session = session

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self.initialize()
        return self._session

    def _check_response(self, response: requests.Response, url: str) -> None:
        if response.status_code == 200:
            return
        if response.status_code == 404:
            raise BeaconApiError(404, "not found")
        _log.debug("[%s] RPC Error %s: %s", self.name, response.status_code, response.text)
        raise BeaconApiError(
            response.status_code, f"url: {redacted_url(url)}, error-response: {response.text}"
        )

    def get_json(self, path: str) -> Any:
        """GET ``path`` (relative to the endpoint) and return the decoded JSON body."""
        url = self.endpoint + path
        response = self._get_session().get(url, timeout=_TIMEOUT)
        self._check_response(response, url)
        try:
            return response.json()
        except ValueError as exc:
            raise BeaconApiError(response.status_code, f"error parsing json response: {exc}") from exc

    def post_json(self, path: str, data: Any) -> Any:
        """POST ``data`` as JSON and return the decoded body, or None if it is empty."""
        url = self.endpoint + path
        response = self._get_session().post(url, json=data, timeout=_TIMEOUT)
        self._check_response(response, url)
        if not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BeaconApiError(response.status_code, f"error parsing json response: {exc}") from exc

    def get_genesis(self) -> dict:
        return _data(self.get_json("/eth/v1/beacon/genesis"))

    def get_node_syncing(self) -> dict:
        return _data(self.get_json("/eth/v1/node/syncing"))

    def get_node_sync_status(self) -> SyncStatus:
        return SyncStatus.from_sync_state(self.get_node_syncing())

    def get_node_version(self) -> str:
        try:
            body = self.get_json("/eth/v1/node/version")
            return str(_data(body)["version"])
        except (BeaconApiError, KeyError, TypeError) as exc:
            raise BeaconApiError(
                getattr(exc, "status_code", 200), f"error retrieving node version: {exc}"
            ) from exc

    def get_config_specs(self) -> dict:
        return _data(self.get_json("/eth/v1/config/spec"))

    def get_latest_block_head(self) -> dict:
        return _data(self.get_json("/eth/v1/beacon/headers/head"))

    def get_finality_checkpoints(self) -> dict:
        return _data(self.get_json("/eth/v1/beacon/states/head/finality_checkpoints"))

    def get_block_header_by_blockroot(self, root: bytes | str) -> dict:
        return _data(self.get_json(f"/eth/v1/beacon/headers/{_format_root(root)}"))

    def get_block_header_by_slot(self, slot: int) -> dict:
        return _data(self.get_json(f"/eth/v1/beacon/headers/{int(slot)}"))

    def get_block_body_by_blockroot(self, root: bytes | str) -> dict | None:
        """Return ``{"version": ..., "data": ...}`` for the block, or None if unknown."""
        try:
            body = self.get_json(f"/eth/v2/beacon/blocks/{_format_root(root)}")
        except BeaconApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return {"version": body.get("version", "") if isinstance(body, dict) else "", "data": _data(body)}

    def get_state(self, state_ref: str) -> dict:
        """Return ``{"version": ..., "data": ...}`` for the beacon state."""
        body = self.get_json(f"/eth/v2/debug/beacon/states/{state_ref}")
        return {"version": body.get("version", "") if isinstance(body, dict) else "", "data": _data(body)}

    def get_state_validators(self, state_ref: str) -> dict[int, dict]:
        """Return the validators of a state keyed by validator index."""
        entries = _data(self.get_json(f"/eth/v1/beacon/states/{state_ref}/validators"))
        return {int(entry["index"]): entry for entry in entries}

    def get_proposer_duties(self, epoch: int) -> list:
        return _data(self.get_json(f"/eth/v1/validator/duties/proposer/{int(epoch)}"))

    def get_committee_duties(self, state_ref: str, epoch: int) -> list:
        return _data(self.get_json(f"/eth/v1/beacon/states/{state_ref}/committees?epoch={int(epoch)}"))

    def get_fork_state(self, state_ref: str) -> dict:
        return _data(self.get_json(f"/eth/v1/beacon/states/{state_ref}/fork"))

    def submit_bls_to_execution_changes(self, changes: list) -> None:
        self.post_json("/eth/v1/beacon/pool/bls_to_execution_changes", list(changes))

    def submit_voluntary_exit(self, exit_msg: Mapping[str, Any]) -> None:
        self.post_json("/eth/v1/beacon/pool/voluntary_exits", exit_msg)

    def submit_attester_slashing(self, slashing: Mapping[str, Any]) -> None:
        self.post_json("/eth/v1/beacon/pool/attester_slashings", slashing)

    def submit_proposer_slashing(self, slashing: Mapping[str, Any]) -> None:
        self.post_json("/eth/v1/beacon/pool/proposer_slashings", slashing)

    def new_block_stream(self, events: int = StreamEventType.BLOCK) -> BeaconStream:
        """Open an event stream for the ``events`` topics."""
        return BeaconStream(self.endpoint, self.name, self.headers, events)