"""Distance matrices and random peer topologies for nodes in a network."""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Point:
    """A 2D coordinate point."""

    x: int
    y: int


def _seed(seed: int | None) -> int:
    return time.time_ns() if seed is None else seed


def distances(points: Sequence[Point]) -> list[list[float]]:
    """Return the matrix of Euclidean distances between every pair of points."""
    return [
        [
            0.0 if i == j else math.sqrt(abs(a.x - b.x) ** 2 + abs(a.y - b.y) ** 2)
            for j, b in enumerate(points)
        ]
        for i, a in enumerate(points)
    ]


def distribute(nodes: Sequence[str], dist: Sequence[int],
               seed: int | None = None) -> list[list[str]]:
    """Pick dist[i] distinct random peers for each node, never the node itself.

    Raises ValueError for fewer than two nodes or a count that cannot be met.
    """
    if len(nodes) < 2:
        raise ValueError("cannot distribute a series smaller than 1")
    if any(d >= len(nodes) for d in dist):
        raise ValueError("cannot distribute among more nodes than those that are provided")
    rng = random.Random(_seed(seed))

    out = []
    for i in range(len(nodes)):
        conns: list[str] = []
        while len(conns) < dist[i]:
            index = rng.randrange(len(nodes))
            if index == i:
                continue
            candidate = nodes[index]
            if candidate not in conns:
                conns.append(candidate)
        out.append(conns)
    return out


def generate_worst_case_network(nodes: int, seed: int | None = None) -> list[list[int]]:
    """Generate a random path through all nodes, each node naming one next hop."""
    rng = random.Random(_seed(seed))
    out: list[list[int]] = [[] for _ in range(nodes)]
    pool = list(range(nodes))
    node = 0
    for _ in range(nodes):
        next_node = pool.pop(rng.randrange(len(pool)))
        out[node] = [next_node]
        node = next_node
    if nodes:
        out[node] = [0]
    return out


def generate_uniform_rand_mesh_network(nodes: int, conns: int,
                                       seed: int | None = None) -> list[list[int]]:
    """Generate a random mesh that keeps a path between all the nodes.

    Raises ValueError when conns is below one or not below the node count.
    """
    if conns < 1:
        raise ValueError("each node must have at least one connection")
    if conns >= nodes:
        raise ValueError("too many connection to distribute without duplicates")
    seed = _seed(seed)
    rng = random.Random(seed)
    out = generate_worst_case_network(nodes, seed)

    for i, peers in enumerate(out):
        added = 1
        while added < conns:
            node = rng.randrange(nodes)
            if node == i or node in peers:
                continue
            peers.append(node)
            added += 1
    return out


def generate_no_duplicate_mesh_network(nodes: int, conns: int,
                                       seed: int | None = None) -> list[list[int]]:
    """Like the uniform mesh, but a link named by both ends is dropped from one side."""
    out = generate_uniform_rand_mesh_network(nodes, conns, seed)
    for i, peers in enumerate(out):
        j = 0
        while j < len(peers):
            if i in out[peers[j]]:
                del peers[j]
            j += 1
    return out


def generate_dependent_mesh_network(nodes: int, conns: int,
                                    seed: int | None = None) -> list[list[int]]:
    """Generate a mesh where each node only peers with nodes built before it.

    The first node gets no peers. Raises ValueError for an impossible conns.
    """
    if conns < 1:
        raise ValueError("each node must have at least one connection")
    if conns >= nodes:
        raise ValueError("too many connection to distribute without duplicates")
    rng = random.Random(_seed(seed))
    out: list[list[int]] = []
    to_ensure = 0
    for i in range(nodes):
        peers: list[int] = []
        while len(peers) < min(conns, i):
            if to_ensure < i:
                node = to_ensure
                to_ensure += 1
            else:
                node = rng.randrange(i)
            if node not in peers:
                peers.append(node)
        out.append(peers)
    return out