"""JSON-RPC client for a Bitcoin node, with retries on every call."""

from __future__ import annotations

import itertools
import time
from typing import Any, Callable

import requests

from stakingindexer.config import BTCConfig
from stakingindexer.retry import call_with_retry


class BtcRpcError(Exception):
    """A call to the Bitcoin node failed; ``code`` is the RPC error code if known."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


def _wrap(prefix: str, exc: Exception) -> BtcRpcError:
    return BtcRpcError(f"{prefix}: {exc}", getattr(exc, "code", None))


class BTCClient:
    """Queries a Bitcoin node over HTTP POST JSON-RPC."""

    def __init__(
        self,
        cfg: BTCConfig,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 30.0,
    ) -> None:
        conn = cfg.to_conn_config()
        self._url = f"{'http' if conn['disable_tls'] else 'https'}://{conn['host']}"
        self._auth = (conn["user"], conn["password"])
        self._cfg = cfg
        self._session = session if session is not None else requests.Session()
        self._sleep = sleep
        self._timeout = timeout
        self._ids = itertools.count(1)

    def _call(self, method: str, *params: Any) -> Any:
        payload = {"jsonrpc": "1.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            response = self._session.post(self._url, json=payload, auth=self._auth, timeout=self._timeout)
        except requests.RequestException as exc:
            raise BtcRpcError(f"{method} request failed: {exc}") from exc
        with response:
            try:
                body = response.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                raise BtcRpcError(f"{method}: unexpected HTTP status {response.status_code}")
            error = body.get("error")
            if isinstance(error, dict) and error:
                raise BtcRpcError(f"{error.get('code')}: {error.get('message')}", error.get("code"))
            if error:
                raise BtcRpcError(str(error))
            if response.status_code != 200:
                raise BtcRpcError(f"{method}: unexpected HTTP status {response.status_code}")
            return body.get("result")

    def _with_retry(self, call: Callable[[], Any]) -> Any:
        return call_with_retry(call, self._cfg.max_retry_times, self._cfg.retry_interval, self._sleep)

    def get_tip_height(self) -> int:
        """Return the height of the node's best chain."""
        try:
            return self._with_retry(lambda: int(self._call("getblockcount")))
        except (BtcRpcError, ValueError, TypeError) as exc:
            raise _wrap("failed to get block count", exc) from exc

    def get_block_timestamp(self, height: int) -> int:
        """Return the Unix timestamp in the header of the block at ``height``."""
        if not 0 <= height < 2**32:
            raise ValueError(f"block height out of range: {height}")

        def fetch() -> int:
            try:
                block_hash = self._call("getblockhash", height)
            except BtcRpcError as exc:
                raise _wrap(f"failed to get block hash at height {height}", exc) from exc
            try:
                block = self._call("getblock", block_hash, 1)
                return int(block["time"])
            except BtcRpcError as exc:
                raise _wrap(f"failed to get block at height {height}", exc) from exc
            except (KeyError, TypeError, ValueError):
                raise BtcRpcError(f"failed to get block at height {height}: missing block time") from None

        try:
            return self._with_retry(fetch)
        except BtcRpcError as exc:
            raise _wrap("failed to get block timestamp", exc) from exc