# assertoor

A library of building blocks for watching a set of Ethereum nodes during
tests: API clients for beacon and execution nodes, caches of recent blocks,
fork tracking for execution nodes, event dispatching and a few helpers.

## Installation

Python 3.10 or later. Runtime dependencies are `requests` and `pyyaml`; the
`test` extra adds `pytest` and `responses`.

## What is in the package

### Execution nodes (`assertoor.execution`)

- `execution.rpc.ExecutionClient` speaks HTTP JSON-RPC to one node:
  `get_client_version()`, `get_chain_spec()`, `get_node_syncing()`,
  `get_latest_block()`, `get_block_by_hash()`, `get_nonce_at()`,
  `get_balance_at()`, `get_transaction_receipt()`, `send_raw_transaction()`
  and the generic `call(method, *args)`. Node errors raise `RpcError`; a
  missing block or receipt raises `LookupError`.
- `execution.client.Client` follows the head of one node in a background
  thread, retrying with growing delays (10, 60, 300 seconds) on errors, and
  reports a `ClientStatus` (`ONLINE`, `OFFLINE`, `SYNCHRONIZING`).
- `execution.blockcache.BlockCache` keeps recent blocks by hash and number,
  drops blocks behind its follow distance, checks that all nodes report the
  same chain id and answers ancestry questions with `get_block_distance()`.
- `execution.pool.Pool` holds the clients of several nodes, groups them into
  `HeadFork`s by chain head (the fork with most ready clients first) and picks
  a ready endpoint round-robin with `get_ready_endpoint()`.
- `execution.clienttype` detects the client implementation from its version
  string (`detect_client_type("Geth/v1.13.8/...")`).

```python
from assertoor.execution.client import ClientConfig
from assertoor.execution.pool import Pool, PoolConfig

pool = Pool(PoolConfig(follow_distance=10, fork_distance=1))
pool.add_endpoint(ClientConfig(url="http://localhost:8545", name="node-1"))

client = pool.get_ready_endpoint()   # None until a node is online
fork = pool.get_canonical_fork()
pool.close()
```

### Beacon nodes (`assertoor.consensus`)

- `consensus.rpc.BeaconClient` wraps the beacon REST API: genesis, sync
  state, node version, config spec, headers, blocks, states, validators,
  duties, fork, and submission of BLS changes, exits and slashings. Error
  responses raise `BeaconApiError`. `new_block_stream(events)` opens a
  `BeaconStream`.
- `consensus.beaconstream.BeaconStream` subscribes to `/eth/v1/events` for
  the `StreamEventType` flags given and puts decoded `BeaconStreamEvent`s on
  `event_queue`, and connection state on `ready_queue`.
- `consensus.blockcache.BlockCache` keeps recent beacon blocks by root and
  slot, checks genesis and chain spec consistency, tracks the finalized
  checkpoint and drives a `Wallclock` that fires slot and epoch events.
- `consensus.block.Block`, `consensus.chainspec` (`ChainSpec`,
  `FinalizedCheckpoint`, `SyncStatus`) and `consensus.clienttype` hold the
  data types.

```python
from assertoor.consensus.rpc import BeaconClient

beacon = BeaconClient("node-1", "http://localhost:5052")
print(beacon.get_node_version())
validators = beacon.get_state_validators("head")   # keyed by index
```

### Server-sent events

`assertoor.eventstream.Stream` (or `subscribe(url, headers)`) reads a
server-sent event stream and reconnects when it drops. It puts `READY`,
`StreamEvent` objects and errors on its `messages` queue. `parse_events()`
decodes events from lines.

### Subscriptions

`assertoor.subscriptions.Dispatcher` fans events out to bounded
`Subscription` queues; events for a full queue are dropped.

```python
from assertoor.subscriptions import Dispatcher

dispatcher = Dispatcher()
with dispatcher.subscribe(10) as sub:
    dispatcher.fire("block")
    print(sub.get(timeout=1.0))   # raises queue.Empty on timeout
```

### Helpers

```python
from assertoor.buildinfo import get_version
from assertoor.duration import format_duration, parse_duration
from assertoor.logscope import LogScope
from assertoor.names import NamesConfig, ValidatorNames

get_version("abc1234", "")          # 'git-abc1234'
get_version("abc1234", "v1.0.0")    # 'v1.0.0 (git-abc1234)'

format_duration(parse_duration("1m30s"))   # '1m30s'

scope = LogScope(None, 1000)        # keeps the newest 1000 records
scope.logger.info("hello")
entries = scope.get_log_entries()

names = ValidatorNames(NamesConfig(inventory={"0-63": "node-1"}))
names.load_validator_names()
names.get_validator_name(5)         # 'node-1'
```

`ValidatorNames` can also load names from a YAML file (`inventory_yaml`) or
an inventory HTTP API (`inventory_url`). `redacted_url()` hides passwords in
URLs before they are logged.

## What the package does not do

There is no object that follows beacon nodes and tracks their forks the way
`execution.pool.Pool` does for execution nodes, and nothing that pairs a
beacon node with an execution node. There is no command-line program, test
runner or web server: the package is a library only.

## Running the tests

Install the `test` extra, then run `pytest` from the project root.