"""Indexer configuration: loading from YAML, environment overrides and validation."""

from __future__ import annotations

import ipaddress
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from fractions import Fraction
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import SplitResult, urlsplit

import yaml


class ConfigError(ValueError):
    """Raised when configuration cannot be read or fails validation."""


_ZERO = timedelta(0)
_UNIT_NS = {
    "ns": 1, "us": 1_000, "µs": 1_000, "μs": 1_000, "ms": 1_000_000,
    "s": 10**9, "m": 60 * 10**9, "h": 3600 * 10**9,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
# Network names accepted in the configuration, mapped to chain parameter names.
_NET_PARAMS = {
    "mainnet": "mainnet", "testnet": "testnet3", "signet": "signet",
    "regtest": "regtest", "simnet": "simnet",
}


def parse_duration(value: Any) -> timedelta:
    """Convert a duration such as ``"1h30m"`` or ``"500ms"`` to a timedelta.

    Numbers are taken as nanoseconds; a timedelta is returned unchanged.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(microseconds=value / 1000)
    if not isinstance(value, str):
        raise ConfigError(f"invalid duration {value!r}")
    text = value.lstrip("+-") if value[:1] in "+-" else value
    if text == "0":
        return _ZERO
    if not text:
        raise ConfigError(f"invalid duration {value!r}")
    total, pos = Fraction(0), 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ConfigError(f"invalid duration {value!r}")
        total += Fraction(Decimal(match.group(1))) * _UNIT_NS[match.group(2)]
        pos = match.end()
    if value.startswith("-"):
        total = -total
    return timedelta(microseconds=round(total / 1000))


def _port(netloc: str) -> str:
    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        host = host.partition("]")[2]
    return host.rpartition(":")[2] if ":" in host else ""


def _parse_url(raw: str) -> SplitResult:
    """Parse a URL, rejecting forms a strict parser refuses."""
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in raw):
        raise ValueError("invalid control character in URL")
    if raw.startswith(":"):
        raise ValueError("missing protocol scheme")
    if re.search(r"%(?![0-9A-Fa-f]{2})", raw):
        raise ValueError("invalid URL escape")
    parts = urlsplit(raw)
    port = _port(parts.netloc)
    if port and not port.isdigit():
        raise ValueError(f"invalid port {':' + port!r} after host")
    return parts


@dataclass
class BBNConfig:
    """Connection settings for the Babylon node."""

    rpc_addr: str = ""
    timeout: timedelta = _ZERO
    max_retry_times: int = 0
    retry_interval: timedelta = _ZERO

    def validate(self) -> None:
        try:
            _parse_url(self.rpc_addr)
        except ValueError as exc:
            raise ConfigError(f"cfg.RPCAddr is not correctly formatted: {exc}") from exc
        if self.timeout <= _ZERO:
            raise ConfigError("cfg.Timeout must be positive")
        if self.max_retry_times <= 0:
            raise ConfigError("cfg.MaxRetryTimes must be positive")
        if self.retry_interval <= _ZERO:
            raise ConfigError("cfg.RetryInterval must be positive")


@dataclass
class BTCConfig:
    """Settings for the Bitcoin RPC client."""

    rpc_host: str = ""
    rpc_user: str = ""
    rpc_pass: str = ""
    pruned_node_max_peers: int = 0
    block_polling_interval: timedelta = _ZERO
    tx_polling_interval: timedelta = _ZERO
    tx_polling_interval_jitter: float = 0.0
    block_cache_size: int = 0
    max_retry_times: int = 0
    retry_interval: timedelta = _ZERO
    net_params: str = ""

    def to_conn_config(self) -> dict[str, Any]:
        """Return the connection settings for an RPC client in HTTP POST mode."""
        if self.net_params not in _NET_PARAMS:
            raise ConfigError(f"invalid BTC network params: unknown network {self.net_params}")
        return {
            "host": self.rpc_host,
            "user": self.rpc_user,
            "password": self.rpc_pass,
            "disable_tls": True,
            "params": _NET_PARAMS[self.net_params],
            "disable_connect_on_new": True,
            "disable_auto_reconnect": False,
            "http_post_mode": True,
        }

    def validate(self) -> None:
        checks = [
            (self.rpc_host, "RPC host cannot be empty"),
            (self.rpc_user, "RPC user cannot be empty"),
            (self.rpc_pass, "RPC password cannot be empty"),
            (self.block_polling_interval > _ZERO, "block polling interval should be positive"),
            (self.tx_polling_interval > _ZERO, "tx polling interval should be positive"),
            (0 <= self.tx_polling_interval_jitter <= 1,
             "tx polling interval jitter should be between 0 and 1"),
            (self.block_cache_size > 0, "block cache size should be positive"),
            (self.max_retry_times > 0, "max retry times should be positive"),
            (self.retry_interval > _ZERO, "retry interval should be positive"),
            (self.net_params in _NET_PARAMS, "invalid net params"),
        ]
        for ok, message in checks:
            if not ok:
                raise ConfigError(message)


@dataclass
class DbConfig:
    """MongoDB connection settings."""

    username: str = ""
    password: str = ""
    db_name: str = ""
    address: str = ""

    def validate(self) -> None:
        for value, name in [(self.username, "username"), (self.password, "password"),
                            (self.address, "address"), (self.db_name, "name")]:
            if not value:
                raise ConfigError(f"missing db {name}")
        try:
            parts = _parse_url(self.address)
        except ValueError as exc:
            raise ConfigError(f"invalid db address: {exc}") from exc
        if parts.scheme != "mongodb":
            raise ConfigError(f"unsupported db scheme: {parts.scheme}")
        if not parts.netloc.rpartition("@")[2]:
            raise ConfigError("missing host in db address")
        port = _port(parts.netloc)
        if not port:
            raise ConfigError("missing port in db address")
        if not 1024 <= int(port) <= 65535:
            raise ConfigError("port number must be between 1024 and 65535 (inclusive)")


@dataclass
class MetricsConfig:
    """Address of the metrics server."""

    host: str = ""
    port: int = 0

    def validate(self) -> None:
        if not 1024 <= self.port <= 65535:
            raise ConfigError("metrics server port must be between 1024 and 65535 (inclusive)")
        try:
            if "%" in self.host:
                raise ValueError(self.host)
            ipaddress.ip_address(self.host)
        except ValueError:
            raise ConfigError(f"invalid metrics server host: {self.host}") from None


@dataclass
class PollerConfig:
    """Intervals and limits for the background pollers."""

    param_polling_interval: timedelta = _ZERO
    expiry_checker_polling_interval: timedelta = _ZERO
    expired_delegations_limit: int = 0

    def validate(self) -> None:
        if self.param_polling_interval <= _ZERO:
            raise ConfigError("param-polling-interval must be positive")
        if self.expiry_checker_polling_interval <= _ZERO:
            raise ConfigError("expiry-checker-polling-interval must be positive")
        if self.expired_delegations_limit <= 0:
            raise ConfigError("expired-delegations-limit must be positive")


@dataclass
class Config:
    """The complete indexer configuration; ``queue`` is kept as given."""

    db: DbConfig = field(default_factory=DbConfig)
    btc: BTCConfig = field(default_factory=BTCConfig)
    bbn: BBNConfig = field(default_factory=BBNConfig)
    poller: PollerConfig = field(default_factory=PollerConfig)
    queue: dict[str, Any] = field(default_factory=dict)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    def validate(self) -> None:
        for section in (self.bbn, self.db, self.btc, self.metrics, self.poller):
            section.validate()


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_number(value: Any, key: str, kind: type) -> Any:
    if value is None or value == "":
        return kind(0)
    try:
        if isinstance(value, str) and kind is int:
            return int(value, 0)
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"cannot parse {key} as a number: {value!r}") from None


def _as_duration(value: Any) -> timedelta:
    return _ZERO if value is None else parse_duration(value)


def _lower_keys(data: Any) -> Any:
    if isinstance(data, Mapping):
        return {str(key).lower(): _lower_keys(value) for key, value in data.items()}
    return data


def config_from_mapping(data: Mapping[str, Any]) -> Config:
    """Build a Config from nested settings; keys are matched case-insensitively."""
    data = _lower_keys(data)
    sections = {}
    for name in ("db", "btc", "bbn", "poller", "metrics", "queue"):
        value = data.get(name) or {}
        if not isinstance(value, Mapping):
            raise ConfigError(f"config section {name!r} must be a mapping")
        sections[name] = value
    db, btc, bbn = sections["db"], sections["btc"], sections["bbn"]
    poller, metrics = sections["poller"], sections["metrics"]

    return Config(
        db=DbConfig(
            username=_as_str(db.get("username")),
            password=_as_str(db.get("password")),
            db_name=_as_str(db.get("db-name")),
            address=_as_str(db.get("address")),
        ),
        btc=BTCConfig(
            rpc_host=_as_str(btc.get("rpchost")),
            rpc_user=_as_str(btc.get("rpcuser")),
            rpc_pass=_as_str(btc.get("rpcpass")),
            pruned_node_max_peers=_as_number(btc.get("prunednodemaxpeers"), "btc.prunednodemaxpeers", int),
            block_polling_interval=_as_duration(btc.get("blockpollinginterval")),
            tx_polling_interval=_as_duration(btc.get("txpollinginterval")),
            tx_polling_interval_jitter=_as_number(
                btc.get("txpollingintervaljitter"), "btc.txpollingintervaljitter", float
            ),
            block_cache_size=_as_number(btc.get("blockcachesize"), "btc.blockcachesize", int),
            max_retry_times=_as_number(btc.get("maxretrytimes"), "btc.maxretrytimes", int),
            retry_interval=_as_duration(btc.get("retryinterval")),
            net_params=_as_str(btc.get("netparams")),
        ),
        bbn=BBNConfig(
            rpc_addr=_as_str(bbn.get("rpc-addr")),
            timeout=_as_duration(bbn.get("timeout")),
            max_retry_times=_as_number(bbn.get("maxretrytimes"), "bbn.maxretrytimes", int),
            retry_interval=_as_duration(bbn.get("retryinterval")),
        ),
        poller=PollerConfig(
            param_polling_interval=_as_duration(poller.get("param-polling-interval")),
            expiry_checker_polling_interval=_as_duration(poller.get("expiry-checker-polling-interval")),
            expired_delegations_limit=_as_number(
                poller.get("expired-delegations-limit"), "poller.expired-delegations-limit", int
            ),
        ),
        queue=dict(sections["queue"]),
        metrics=MetricsConfig(
            host=_as_str(metrics.get("host")),
            port=_as_number(metrics.get("port"), "metrics.port", int),
        ),
    )


def _apply_env(
    data: Mapping[str, Any], environ: Mapping[str, str], prefix: tuple[str, ...] = ()
) -> dict[str, Any]:
    """Override leaf settings from variables: ``a.b-c`` is read from ``A_B__C``."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        path = (*prefix, key)
        if isinstance(value, Mapping):
            result[key] = _apply_env(value, environ, path)
        else:
            name = "_".join(path).replace("-", "__").upper()
            result[key] = environ.get(name) or value
    return result


def load_config(path: str | os.PathLike[str], environ: Mapping[str, str] | None = None) -> Config:
    """Read, override from the environment, and validate a YAML configuration file."""
    config_path = Path(path)
    config_path.stat()
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to read config file: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError("failed to read config file: top level must be a mapping")
    env = os.environ if environ is None else environ
    cfg = config_from_mapping(_apply_env(_lower_keys(raw), env))
    cfg.validate()
    return cfg