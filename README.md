# stakingindexer

Building blocks for a service that indexes Bitcoin staking activity:

- typed configuration with environment overrides and validation
  (`stakingindexer.config`)
- retrying calls with exponential back-off (`stakingindexer.retry`)
- a JSON-RPC client for a Bitcoin node (`stakingindexer.btc_client`)
- latency recording for client calls (`stakingindexer.client_metrics`)
- a small JSON-over-HTTP request helper (`stakingindexer.base_client`)
- models for the staking-chain parameters (`stakingindexer.bbn_types`)
- unspent outputs from a wallet's `listunspent` (`stakingindexer.utxo`)

## Installation

```
pip install .
```

The test dependencies are in the `test` extra:

```
pip install ".[test]"
```

## Configuration

`load_config(path, environ=None)` reads a YAML file, applies overrides
from `environ` (`os.environ` when not given), and returns a validated
`Config`. It raises `ConfigError` (a `ValueError`) when the file cannot
be parsed or a setting is invalid, and the usual `OSError` when the file
does not exist.

An override's name is the key path joined with `_`, with every `-`
turned into `__`, in upper case. For example `db.db-name` is overridden
by `DB_DB__NAME` and `btc.rpchost` by `BTC_RPCHOST`. Only keys present
in the file can be overridden, and an empty variable is ignored. Keys
are matched case-insensitively.

```yaml
db:
  username: user
  password: password
  db-name: indexer
  address: mongodb://localhost:27017
btc:
  rpchost: 127.0.0.1:18443
  rpcuser: user
  rpcpass: password
  blockpollinginterval: 30s
  txpollinginterval: 30s
  txpollingintervaljitter: 0.5
  blockcachesize: 20971520
  maxretrytimes: 5
  retryinterval: 500ms
  netparams: regtest
bbn:
  rpc-addr: http://localhost:26657
  timeout: 20s
  maxretrytimes: 3
  retryinterval: 1s
poller:
  param-polling-interval: 1s
  expiry-checker-polling-interval: 1s
  expired-delegations-limit: 1000
metrics:
  host: 0.0.0.0
  port: 2112
queue: {}
```

```python
from stakingindexer.config import ConfigError, load_config

try:
    cfg = load_config("config.yml")
except ConfigError as exc:
    print(f"bad configuration: {exc}")
```

The sections are `db` (`DbConfig`), `btc` (`BTCConfig`), `bbn`
(`BBNConfig`), `poller` (`PollerConfig`) and `metrics`
(`MetricsConfig`); each has a `validate()` method, and
`Config.validate()` checks them in the order bbn, db, btc, metrics,
poller. The `queue` section is kept as a plain dictionary and is not
validated.

Validation covers, among other things: the database address must be a
`mongodb://` URL with a host and a port between 1024 and 65535; the
metrics host must be an IP address and its port between 1024 and 65535;
`netparams` must be one of `mainnet`, `testnet`, `signet`, `regtest` or
`simnet`; intervals, retry counts, the block cache size and the
delegation limit must be positive; the jitter must lie between 0 and 1.

`parse_duration` turns strings such as `"500ms"`, `"30s"` or `"1m30s"`
into a `datetime.timedelta`; a bare number is taken as nanoseconds.
`config_from_mapping` builds a `Config` from an already loaded mapping
without validating it. `BTCConfig.to_conn_config()` returns the
connection settings of the Bitcoin RPC client as a dictionary.

## Retrying

`call_with_retry(call, max_attempts, delay, sleep=time.sleep)` calls
`call` until it returns. After each failure it waits `delay` (seconds or
a `timedelta`), doubling on every further attempt, plus up to 100 ms of
random jitter. After `max_attempts` failures the last exception is
raised; a `max_attempts` of zero retries without limit.

## Bitcoin client

```python
from stakingindexer.btc_client import BTCClient
from stakingindexer.client_metrics import BTCClientWithMetrics, LatencyRecorder

client = BTCClient(cfg.btc)
recorder = LatencyRecorder()
measured = BTCClientWithMetrics(client, recorder)

height = measured.get_tip_height()
timestamp = measured.get_block_timestamp(height)
for record in recorder.records:
    print(record.method, record.duration, record.failed)
```

`BTCClient` sends JSON-RPC requests by HTTP POST to `btc.rpchost` with
the configured user and password. It also takes an optional `session`
(a `requests.Session`), a `sleep` function used between retries, and a
request `timeout` in seconds. Every call is retried through
`call_with_retry` with `btc.maxretrytimes` and `btc.retryinterval`.

- `get_tip_height()` returns the block count of the node's best chain.
- `get_block_timestamp(height)` returns the Unix time in the header of
  the block at that height; a height outside 0 to 2³²−1 raises
  `ValueError`.

Failures raise `BtcRpcError`, whose `code` holds the node's RPC error
code when there is one.

`run_with_metrics(recorder, client, method, func)` times any call and
records a `LatencyRecord` (client, method, duration, failed) in a
`LatencyRecorder`, then returns the result or re-raises the exception.
`BTCClientWithMetrics` applies it to both Bitcoin client methods.

## HTTP requests

`send_request(client, method, options, payload=None)` sends a request
through a `BaseHttpClient` (base URL, default timeout in milliseconds,
and a `requests` session) using a `RequestOptions` (path, timeout in
milliseconds, headers, and a `template_path` that is not sent). It
returns the decoded JSON response. A JSON body is sent only for POST and
PUT. Only the methods accepted by `is_allowed_method` may be used.

Failures raise `ClientError`, carrying `status_code`, `error_code` (an
`ErrorCode`: `INTERNAL_SERVICE_ERROR`, `REQUEST_TIMEOUT` or
`BAD_REQUEST`) and `message`. Timeouts give 408, responses of 400–499
give `BAD_REQUEST`, and responses of 500 or more, connection failures
and undecodable bodies give `INTERNAL_SERVICE_ERROR`.

## Chain parameters

`staking_params_from_chain` and `checkpoint_params_from_chain` turn
parameter mappings into `StakingParams` and `CheckpointParams`. Byte
fields become hex strings (the slashing script is accepted as raw bytes
or base64, covenant keys as raw bytes or hex), and rates are written as
decimals with 18 fractional digits. Missing or malformed values raise
`ValueError`. `to_document()` returns the parameters as a dictionary
ready for storage.

## Unspent outputs

`utxo_from_list_unspent(result)` turns one entry of a wallet's
`listunspent` result into a `UTXO`. The script is decoded from hex, the
transaction id is left-padded to 64 hex digits and lower-cased, the
address is checked as a base58 or bech32/bech32m Bitcoin address, and
the amount is converted to satoshis with `btc_to_satoshi` (rounding half
away from zero). Invalid fields raise `ValueError`. `UTXO.outpoint()`
returns an `OutPoint` of the transaction id and output index.

## What this package does not do

It has no indexer service and no command to start one. It does not
query the staking chain itself, subscribe to its events, store anything
in a database, publish to a message queue, or serve metrics; the latency
records stay in memory in a `LatencyRecorder`.