"""IPv4 address scheme for nodes: server, cluster and node bits packed into one address."""

from __future__ import annotations

import ipaddress
import logging

from wbgenesis.config import RESERVED_IPS, TRACE, Config, get_config

logger = logging.getLogger(__name__)

_MASK = 0xFFFFFFFF


def _resolve(config: Config | None) -> Config:
    return get_config() if config is None else config


def _cluster_base(server: int, network: int, config: Config) -> int:
    node_bits = config.node_bits
    cluster_bits = config.cluster_bits
    ip = config.ip_prefix << (node_bits + cluster_bits + config.server_bits)
    ip += (server & _MASK) << (node_bits + cluster_bits)
    ip += (network & _MASK) << node_bits
    return ip & _MASK


def inet_ntoa(ip: int) -> str:
    """Render a 32-bit address as IPv4 dotted-decimal notation."""
    ip &= _MASK
    return ".".join(str((ip >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def get_node_ip(server: int, network: int, index: int, config: Config | None = None) -> str:
    """Calculate the address of a node under the current IP scheme.

    Raises ValueError when the index does not fit in a cluster.
    """
    config = _resolve(config)
    if (index & _MASK) >= (1 << config.node_bits) - RESERVED_IPS:
        raise ValueError(f"index {index} is too high to fit in the network")
    cluster = network & _MASK
    logger.log(TRACE, "calculated the node cluster %d", cluster)
    ip = _cluster_base(server, network, config)
    cluster_last = (1 << config.cluster_bits) - 1
    if index == 0 and cluster == cluster_last:
        return inet_ntoa(ip)
    return inet_ntoa(ip + 2 + (index & _MASK))


def get_info_from_ip(ip: str, config: Config | None = None) -> tuple[int, int, int]:
    """Return (server, network, index) decoded from an IPv4 address.

    Raises ValueError when the text is not an IPv4 address.
    """
    config = _resolve(config)
    address = ipaddress.ip_address(ip)
    if isinstance(address, ipaddress.IPv6Address):
        if address.ipv4_mapped is None:
            raise ValueError(f"{ip!r} is not an IPv4 address")
        address = address.ipv4_mapped
    raw = int(address)

    cluster_last = (1 << config.cluster_bits) - 1
    server = (raw >> (config.node_bits + config.cluster_bits)) & ((1 << config.server_bits) - 1)
    cluster = (raw >> config.node_bits) & cluster_last
    index = raw & ((1 << config.node_bits) - 1)
    if cluster != cluster_last or index != 0:
        index = (index - 2) & _MASK
    return server, cluster, index


def get_gateway(server: int, network: int, config: Config | None = None) -> str:
    """Calculate the gateway address for a cluster."""
    config = _resolve(config)
    return inet_ntoa(_cluster_base(server, network, config) + 1)


def get_gateways(server: int, networks: int, config: Config | None = None) -> list[str]:
    """Calculate the gateway addresses for every cluster on a server."""
    config = _resolve(config)
    per_cluster = config.nodes_per_cluster()
    return [get_gateway(server, i * per_cluster, config) for i in range(networks)]


def get_subnet(config: Config | None = None) -> int:
    """The prefix length of a cluster subnet."""
    return 32 - _resolve(config).node_bits


def get_whole_network_ip(server: int, config: Config | None = None) -> str:
    """The network address of the whole network of a server."""
    config = _resolve(config)
    ip = config.ip_prefix << (config.node_bits + config.cluster_bits + config.server_bits)
    ip += (server & _MASK) << (config.node_bits + config.cluster_bits)
    return inet_ntoa(ip)


def get_network_address(server: int, network: int, config: Config | None = None) -> str:
    """The CIDR network address of a cluster."""
    config = _resolve(config)
    return f"{inet_ntoa(_cluster_base(server, network, config))}/{get_subnet(config)}"


def inc(ip: bytes) -> bytes:
    """Return the address bytes incremented by one, wrapping around at the top."""
    size = len(ip)
    value = (int.from_bytes(ip, "big") + 1) % (1 << (8 * size)) if size else 0
    return value.to_bytes(size, "big")


def get_service_network(config: Config | None = None) -> tuple[str, str]:
    """Return the service network's address and its network in CIDR form."""
    config = _resolve(config)
    try:
        interface = ipaddress.ip_interface(config.service_network)
    except ValueError as err:
        logger.error("invalid service network %r: %s", config.service_network, err)
        raise
    return str(interface.ip), str(interface.network)