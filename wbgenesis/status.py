"""Status of builds and of the nodes in a network."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from wbgenesis.buildmanager import BuildManager, default_manager
from wbgenesis.config import TRACE

logger = logging.getLogger(__name__)


class _Runner(Protocol):
    def run(self, command: str) -> str: ...


@dataclass
class Comp:
    """The computational resources in use by a node."""

    cpu: float = -1.0
    vsz: float = -1.0
    rss: float = -1.0

    def to_json(self) -> dict[str, float]:
        """The exported form."""
        return {"cpu": self.cpu, "virtualMemorySize": self.vsz, "residentSetSize": self.rss}


@dataclass
class NodeStatus:
    """The status of one node."""

    name: str
    server: int
    ip: str = ""
    up: bool = False
    resources: Comp = field(default_factory=Comp)
    id: str = ""
    protocol: str = ""
    image: str = ""

    def to_json(self) -> dict[str, Any]:
        """The exported form."""
        return {
            "name": self.name,
            "server": self.server,
            "ip": self.ip,
            "up": self.up,
            "resourceUse": self.resources.to_json(),
            "id": self.id,
            "protocol": self.protocol,
            "image": self.image,
        }


def find_node_index(statuses: Sequence[NodeStatus], name: str, server_id: int) -> int | None:
    """The index of the node with the given name on the given server, or None."""
    return next(
        (i for i, stat in enumerate(statuses) if stat.name == name and stat.server == server_id),
        None,
    )


def sum_res_usage(client: _Runner, name: str) -> Comp:
    """Sum the cpu, virtual and resident memory use of every process in a node.

    Raises ValueError when the process listing cannot be parsed.
    """
    res = client.run(
        f"docker exec {name} ps aux --no-headers | grep -v nibbler | awk '{{print $3,$5,$6}}'"
    )
    procs = [line for line in res.split("\n") if line]
    logger.log(TRACE, "found %d processes in %s", len(procs), name)
    out = Comp(0.0, 0.0, 0.0)
    for proc in procs:
        values = proc.split(" ")
        if len(values) < 3:
            raise ValueError(f"malformed process line {proc!r}")
        out.cpu += float(values[0])
        out.vsz += float(values[1])
        out.rss += float(values[2])
    return out


def check_build_status(build_id: str, manager: BuildManager | None = None) -> str:
    """The current status of a build as JSON. Raises BuildNotFoundError when unknown."""
    manager = default_manager() if manager is None else manager
    return manager.get_build_state_by_id(build_id).marshal()