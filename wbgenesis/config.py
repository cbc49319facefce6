"""Global configuration: defaults, a YAML config file and environment overrides."""

from __future__ import annotations

import functools
import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

logger = logging.getLogger(__name__)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

RESERVED_IPS = 3
"""Number of IP addresses reserved in every cluster subnet."""

DEFAULT_SEARCH_PATHS = ("/etc/whiteblock/", "$HOME/.config/whiteblock/")
CONFIG_NAMES = ("genesis.yaml", "genesis.yml", "genesis")

DEFAULT_CONSTANT_FIELDS = {
    "serviceContext": {"service": "genesis", "version": "1.8.2"},
}

_NO_DEFAULT = ""

# (config file key, environment variable) for the credential fields.
_INFLUX_LOGIN_FIELD = ("influxPassword", "INFLUX_PASSWORD")
_NODES_SIGNING_FIELD = ("nodesPrivateKey", "NODES_PRIVATE_KEY")


def _opt(key: str, default: Any, env: str | None = None) -> Any:
    return field(default=default, metadata={"key": key, "env": env})


@dataclass
class Config:
    """All of the global configuration parameters."""

    ssh_user: str = _opt("sshUser", "", "SSH_USER")
    ssh_key: str = _opt("sshKey", "", "SSH_KEY")
    ssh_host: str = _opt("sshHost", "127.0.0.1")
    server_bits: int = _opt("serverBits", 8, "SERVER_BITS")
    cluster_bits: int = _opt("clusterBits", 12, "CLUSTER_BITS")
    node_bits: int = _opt("nodeBits", 4, "NODE_BITS")
    ip_prefix: int = _opt("ipPrefix", 10, "IP_PREFIX")
    listen: str = _opt("listen", "127.0.0.1:8000", "LISTEN")
    verbosity: str = _opt("verbosity", "INFO", "VERBOSITY")
    docker_output_file: str = _opt("dockerOutputFile", "/output.log", "DOCKER_OUTPUT_FILE")
    influx: str = _opt("influx", "", "INFLUX")
    influx_user: str = _opt("influxUser", "", "INFLUX_USER")
    influx_password: str = _opt(_INFLUX_LOGIN_FIELD[0], _NO_DEFAULT, _INFLUX_LOGIN_FIELD[1])
    service_network: str = _opt("serviceNetwork", "172.30.0.1/16", "SERVICE_NETWORK")
    service_network_name: str = _opt(
        "serviceNetworkName", "wb_builtin_services", "SERVICE_NETWORK_NAME"
    )
    node_prefix: str = _opt("nodePrefix", "whiteblock-node", "NODE_PREFIX")
    node_network_prefix: str = _opt("nodeNetworkPrefix", "wb_vlan", "NODE_NETWORK_PREFIX")
    service_prefix: str = _opt("servicePrefix", "wb_service", "SERVICE_PREFIX")
    nodes_public_key: str = _opt("nodesPublicKey", "", "NODES_PUBLIC_KEY")
    nodes_private_key: str = _opt(
        _NODES_SIGNING_FIELD[0], _NO_DEFAULT, _NODES_SIGNING_FIELD[1]
    )
    handle_node_ssh_keys: bool = _opt("handleNodeSshKeys", False, "HANDLE_NODES_SSH_KEYS")
    max_nodes: int = _opt("maxNodes", 200, "MAX_NODES")
    max_node_memory: str = _opt("maxNodeMemory", "", "MAX_NODE_MEMORY")
    max_node_cpu: float = _opt("maxNodeCpu", -1.0, "MAX_NODE_CPU")
    bridge_prefix: str = _opt("bridgePrefix", "wb_bridge", "BRIDGE_PREFIX")
    api_endpoint: str = _opt("apiEndpoint", "", "API_ENDPOINT")
    nibbler_end_point: str = _opt("nibblerEndPoint", "", "NIBBLER_END_POINT")
    log_json: bool = _opt("logJson", False, "LOG_JSON")
    prometheus_config: str = _opt("prometheusConfig", "/tmp/prometheus.yml", "PROMETHEUS_CONFIG")
    prometheus_port: int = _opt("prometheusPort", 9090, "PROMETHEUS_PORT")
    ganache_cli_options: str = _opt(
        "ganacheCLIOptions", "--gasLimit 4000000000000", "GANACHE_CLI_OPTIONS"
    )
    ganache_rpc_port: int = _opt("ganacheRPCPort", 8545, "GANACHE_RPC_PORT")
    max_run_attempts: int = _opt("maxRunAttempts", 30, "MAX_RUN_ATTEMPTS")
    max_connections: int = _opt("maxConnections", 50, "MAX_CONNECTIONS")
    data_directory: str = _opt("datadir", "", "DATADIR")
    disable_nibbler: bool = _opt("disableNibbler", False, "DISABLE_NIBBLER")
    disable_testnet_reporting: bool = _opt(
        "disableTestnetReporting", False, "DISABLE_TESTNET_REPORTING"
    )
    require_auth: bool = _opt("requireAuth", False, "REQUIRE_AUTH")
    max_command_output_log_size: int = _opt(
        "maxCommandOutputLogSize", -1, "MAX_COMMAND_OUTPUT_LOG_SIZE"
    )
    resource_dir: str = _opt("resourceDir", "./resources", "RESOURCE_DIR")
    remove_nodes_on_failure: bool = _opt("removeNodesOnFailure", True, "REMOVE_NODES_ON_FAILURE")
    nibbler_retries: int = _opt("nibblerRetries", 2, "NIBBLER_RETRIES")
    kill_retries: int = _opt("killRetries", 100, "KILL_RETRIES")
    enable_port_forwarding: bool = _opt("enablePortForwarding", True, "ENABLE_PORT_FORWARDING")
    enable_docker_volumes: bool = _opt("enableDockerVolumes", True, "ENABLE_DOCKER_VOLUMES")
    enable_image_building: bool = _opt("enableImageBuilding", True, "ENABLE_IMAGE_BUILDING")

    def nodes_per_cluster(self) -> int:
        """The maximum number of nodes allowed in a cluster."""
        return (1 << self.node_bits) - RESERVED_IPS


_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


def _coerce(value: Any, target: type, key: str) -> Any:
    try:
        if target is bool:
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                if value in _TRUE_WORDS:
                    return True
                if value in _FALSE_WORDS or value == "":
                    return False
                raise ValueError(f"cannot parse {value!r} as a boolean")
            if isinstance(value, (int, float)):
                return value != 0
        elif target is int:
            if isinstance(value, str):
                return int(value, 0) if value else 0
            if isinstance(value, (bool, int, float)):
                return int(value)
        elif target is float:
            if isinstance(value, str):
                return float(value) if value else 0.0
            if isinstance(value, (bool, int, float)):
                return float(value)
        elif target is str:
            if isinstance(value, str):
                return value
            if isinstance(value, bool):
                return "1" if value else "0"
            if isinstance(value, (int, float)):
                return str(value)
    except ValueError as err:
        raise ValueError(f"unable to decode {key!r}: {err}") from err
    raise ValueError(f"unable to decode {key!r}: unsupported value {value!r}")


def _expand(path: str, environ: Mapping[str, str]) -> str:
    return re.sub(
        r"\$\{(\w+)\}|\$(\w+)",
        lambda m: environ.get(m.group(1) or m.group(2), ""),
        path,
    )


def _read_config_file(search_paths: Iterable[str], environ: Mapping[str, str]) -> dict:
    for directory in search_paths:
        base = Path(_expand(directory, environ))
        for name in CONFIG_NAMES:
            candidate = base / name
            if not candidate.is_file():
                continue
            try:
                with candidate.open(encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as err:
                logger.warning("could not read the config file %s: %s", candidate, err)
                return {}
            if data is None:
                return {}
            if not isinstance(data, dict):
                logger.warning("config file %s does not hold a mapping", candidate)
                return {}
            return {str(k).lower(): v for k, v in data.items()}
    logger.warning("could not find the config file")
    return {}


def load_config(search_paths: Iterable[str] | None = None,
                environ: Mapping[str, str] | None = None) -> Config:
    """Build a Config from defaults, the first config file found, and the environment.

    Environment variables win over the file, which wins over the defaults.
    Raises ValueError when a value cannot be decoded into its field.
    """
    if search_paths is None:
        search_paths = DEFAULT_SEARCH_PATHS
    if environ is None:
        environ = os.environ

    home = environ.get("HOME", "")
    values: dict[str, Any] = {
        "ssh_user": environ.get("USER", ""),
        "ssh_key": home + "/.ssh/id_rsa",
        "data_directory": home + "/.config/whiteblock/",
    }

    file_values = _read_config_file(search_paths, environ)
    for f in fields(Config):
        key = f.metadata["key"]
        raw = file_values.get(key.lower())
        env_name = f.metadata["env"]
        if env_name:
            env_value = environ.get(env_name)
            if env_value:
                raw = env_value
        if raw is not None:
            values[f.name] = _coerce(raw, f.type, key)

    return Config(**values)


def _parse_level(name: str) -> int:
    levels = {
        "panic": logging.CRITICAL,
        "fatal": logging.CRITICAL,
        "error": logging.ERROR,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
        "trace": TRACE,
    }
    try:
        return levels[name.lower()]
    except KeyError:
        raise ValueError(f"not a valid log level: {name!r}") from None


_SEVERITY_NAMES = {
    logging.CRITICAL: "fatal",
    logging.ERROR: "error",
    logging.WARNING: "warning",
    logging.INFO: "info",
    logging.DEBUG: "debug",
    TRACE: "trace",
}


class GCPFormatter(logging.Formatter):
    """JSON log formatter whose entries suit Stackdriver ingestion.

    Structured fields are taken from a ``fields`` mapping on the record;
    the constant fields are always added and win over them.
    """

    def __init__(self, constant_fields: Mapping[str, Any] | None = None):
        super().__init__()
        self.constant_fields = dict(
            DEFAULT_CONSTANT_FIELDS if constant_fields is None else constant_fields
        )

    def format(self, record: logging.LogRecord) -> str:
        entry = dict(getattr(record, "fields", None) or {})
        entry.update(self.constant_fields)
        entry["eventTime"] = (
            datetime.fromtimestamp(record.created, timezone.utc)
            .astimezone()
            .isoformat(timespec="seconds")
        )
        entry["severity"] = _SEVERITY_NAMES.get(record.levelno, record.levelname.lower())
        entry["message"] = record.getMessage()
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, sort_keys=True)


def configure_logging(config: Config) -> logging.Logger:
    """Set the package logger's level and, if asked, its JSON output format."""
    package_logger = logging.getLogger("wbgenesis")
    try:
        level = _parse_level(config.verbosity)
    except ValueError as err:
        level = logging.INFO
        package_logger.warning("%s", err)
    package_logger.setLevel(level)

    if config.log_json:
        for handler in list(package_logger.handlers):
            if isinstance(handler.formatter, GCPFormatter):
                package_logger.removeHandler(handler)
        handler = logging.StreamHandler()
        handler.setFormatter(GCPFormatter())
        package_logger.addHandler(handler)
    return package_logger


@functools.lru_cache(maxsize=None)
def get_config() -> Config:
    """Load the process-wide configuration once and prepare the data directory."""
    config = load_config()
    configure_logging(config)
    try:
        os.makedirs(config.data_directory, mode=0o776, exist_ok=True)
    except OSError as err:
        logger.critical("could not create data directory %s: %s", config.data_directory, err)
        raise
    return config