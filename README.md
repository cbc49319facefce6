# wbgenesis

Helpers for building containerised test networks that are spread over
several servers.

- **Configuration** (`wbgenesis.config`): `load_config` builds a `Config`
  from defaults, a YAML config file and environment variables.
  `get_config` loads the shared instance once and creates its data
  directory. `configure_logging` sets the package log level and can switch
  to JSON output through `GCPFormatter`.
- **Addressing** (`wbgenesis.ip`): computes node IPs (`get_node_ip`),
  gateways (`get_gateway`, `get_gateways`), cluster network addresses
  (`get_network_address`, `get_subnet`, `get_whole_network_ip`) and the
  service network (`get_service_network`). It can also decode an address
  back into its parts (`get_info_from_ip`). All of these work from the
  server, cluster and node bit layout in a `Config`.
- **Topologies** (`wbgenesis.topology`): builds seeded random peer graphs
  with `generate_worst_case_network`, `generate_uniform_rand_mesh_network`,
  `generate_no_duplicate_mesh_network` and
  `generate_dependent_mesh_network`. It also has `distribute` and a
  distance matrix over `Point`s (`distances`).
- **Build tracking** (`wbgenesis.buildstate`, `wbgenesis.buildmanager`):
  - A `BuildState` records one build's progress, freeze points, reported
    errors, key/value stores, per-build temporary files and cleanup hooks.
  - A `BuildManager` allows only one build at a time on each server.
    `default_manager` returns the process-wide manager.
- **Status** (`wbgenesis.status`): `check_build_status` returns a build's
  progress as JSON. `sum_res_usage` adds up a container's CPU and memory
  use, using any object with a `run(command)` method. `NodeStatus`,
  `Comp` and `find_node_index` describe nodes.
- **Validation** (`wbgenesis.validate`, `wbgenesis.resources`):
  - Checks for ASCII text, file paths and command lines. Each one raises
    `ValidationError` when it fails.
  - `Resources` holds node CPU and memory limits and checks them against
    the configured maxima. `parse_memory` converts amounts such as `"512mb"`.
- **Miscellaneous** (`wbgenesis.helpers`, `wbgenesis.structs`,
  `wbgenesis.session`, `wbgenesis.banner`):
  - HTTP requests, including JWT-authorised ones; a failed request raises
    `HTTPRequestError`.
  - JWT header parsing.
  - Recursive directory listing (`lsr`) and removal (`rm`).
  - JSON map utilities.
  - The small records `KeyPair`, `Command` and `EndPoint`.
  - A `Session` wrapper that frees a semaphore slot when it is closed.
  - The startup banner (`display_banner`).

## Installation

```
pip install wbgenesis
```

## Example

```python
from wbgenesis.config import load_config
from wbgenesis.ip import get_node_ip, get_gateway, get_network_address
from wbgenesis.topology import generate_uniform_rand_mesh_network

config = load_config()
print(get_node_ip(1, 0, 0, config))         # "10.1.0.2" with the default layout
print(get_gateway(1, 0, config))            # "10.1.0.1"
print(get_network_address(1, 1, config))    # "10.1.0.16/28"

peers = generate_uniform_rand_mesh_network(8, 3, seed=42)
```

Tracking a build:

```python
from wbgenesis.buildmanager import BuildManager
from wbgenesis.status import check_build_status

manager = BuildManager(tmp_root="/tmp")
state = manager.acquire_building([1], "build-1")
state.set_deploy_steps(4)
state.increment_deploy_progress()
print(check_build_status("build-1", manager))
state.done_building()
```

When a server is still held by a running build, `acquire_building` raises
`BuildInProgressError`. When a build id is unknown, `get_build_state_by_id`
raises `BuildNotFoundError`.

## Configuration

`load_config` looks for `genesis.yaml`, `genesis.yml` or `genesis` in
`/etc/whiteblock/` and then in `$HOME/.config/whiteblock/`, and uses the
first file it finds. Keys in the file use the camel-case names, such as
`sshUser`, `nodeBits` and `maxConnections`, and are matched without regard
to case. A non-empty environment variable takes precedence over the file:
`SSH_USER`, `SSH_KEY`, `NODE_BITS`, `MAX_CONNECTIONS`, `MAX_RUN_ATTEMPTS` and
so on. You can pass your own `search_paths` and `environ` to `load_config`.

## What this package does not do

- It does not open SSH connections or run commands on remote hosts. Code
  that needs remote output, such as `sum_res_usage`, takes an object with a
  `run(command)` method that you provide.
- It does not store build states persistently. `BuildManager` and
  `BuildState` accept `store`, `restore` and `destroy` callables, so you can
  plug in your own storage.
- It provides no command-line program and no HTTP server.

## Running the tests

```
pip install wbgenesis[test]
pytest
```