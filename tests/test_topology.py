import pytest

from wbgenesis.topology import (
    Point,
    distances,
    distribute,
    generate_dependent_mesh_network,
    generate_no_duplicate_mesh_network,
    generate_uniform_rand_mesh_network,
    generate_worst_case_network,
)

_FIRST = (
    [Point(2, 3), Point(4, 6), Point(0, 1), Point(3, 3), Point(10, 7)],
    [
        [0, 3.605551275463989, 2.8284271247461903, 1, 8.94427190999916],
        [3.605551275463989, 0, 6.4031242374328485, 3.1622776601683795, 6.082762530298219],
        [2.8284271247461903, 6.4031242374328485, 0, 3.605551275463989, 11.661903789690601],
        [1, 3.1622776601683795, 3.605551275463989, 0, 8.06225774829855],
        [8.94427190999916, 6.082762530298219, 11.661903789690601, 8.06225774829855, 0],
    ],
)
_SECOND = (
    [Point(0, 0), Point(19, 3), Point(5, 8), Point(2, 0), Point(0, 15)],
    [
        [0, 19.235384061671343, 9.433981132056603, 2, 15],
        [19.235384061671343, 0, 14.866068747318506, 17.26267650163207, 22.47220505424423],
        [9.433981132056603, 14.866068747318506, 0, 8.54400374531753, 8.602325267042627],
        [2, 17.26267650163207, 8.54400374531753, 0, 15.132745950421556],
        [15, 22.47220505424423, 8.602325267042627, 15.132745950421556, 0],
    ],
)


@pytest.mark.parametrize("points, expected", [_FIRST, _FIRST, _SECOND])
def test_distances(points, expected):
    assert distances(points) == expected


def _is_subsequence(short, long):
    it = iter(long)
    return all(item in it for item in short)


@pytest.mark.parametrize("nodes, seed", [(8, 25), (10, 123), (5, 123)])
def test_worst_case_network_shape(nodes, seed):
    out = generate_worst_case_network(nodes, seed)
    assert len(out) == nodes
    assert all(len(hop) == 1 and 0 <= hop[0] < nodes for hop in out)
    assert any(hop == [0] for hop in out)
    assert out == generate_worst_case_network(nodes, seed)


@pytest.mark.parametrize("nodes, conns, seed", [(8, 5, 123), (3, 2, 8), (5, 4, 15)])
def test_uniform_rand_mesh(nodes, conns, seed):
    out = generate_uniform_rand_mesh_network(nodes, conns, seed)
    path = generate_worst_case_network(nodes, seed)
    assert len(out) == nodes
    for i, peers in enumerate(out):
        assert len(peers) == conns
        assert peers[0] == path[i][0]
        extra = peers[1:]
        assert i not in extra
        assert len(set(peers)) == len(peers)
    assert out == generate_uniform_rand_mesh_network(nodes, conns, seed)


@pytest.mark.parametrize("nodes, conns", [(5, 0), (5, 5), (3, 7)])
def test_uniform_rand_mesh_errors(nodes, conns):
    with pytest.raises(ValueError):
        generate_uniform_rand_mesh_network(nodes, conns, 1)


@pytest.mark.parametrize("nodes, conns, seed", [(6, 5, 123), (5, 4, 3), (3, 2, 15)])
def test_no_duplicate_mesh_is_subset(nodes, conns, seed):
    full = generate_uniform_rand_mesh_network(nodes, conns, seed)
    out = generate_no_duplicate_mesh_network(nodes, conns, seed)
    assert len(out) == nodes
    for reduced, original in zip(out, full):
        assert _is_subsequence(reduced, original)
    assert sum(map(len, out)) < sum(map(len, full))


def test_no_duplicate_mesh_errors():
    with pytest.raises(ValueError):
        generate_no_duplicate_mesh_network(3, 3, 1)


@pytest.mark.parametrize("nodes, conns", [(3, 2), (5, 1), (7, 1), (10, 4)])
def test_dependent_mesh(nodes, conns):
    out = generate_dependent_mesh_network(nodes, conns)
    assert out[0] == []
    for n, peers in enumerate(out):
        assert all(peer < n for peer in peers)
        assert len(peers) == min(conns, n)
        assert len(set(peers)) == len(peers)
        if n:
            assert peers[0] == n - 1


def test_dependent_mesh_errors():
    with pytest.raises(ValueError):
        generate_dependent_mesh_network(4, 0)
    with pytest.raises(ValueError):
        generate_dependent_mesh_network(4, 4)


def test_distribute():
    nodes = ["a", "b", "c", "d"]
    dist = [1, 2, 3, 0]
    out = distribute(nodes, dist, seed=7)
    assert [len(conns) for conns in out] == dist
    for name, conns in zip(nodes, out):
        assert name not in conns
        assert len(set(conns)) == len(conns)
    assert out == distribute(nodes, dist, seed=7)


def test_distribute_errors():
    with pytest.raises(ValueError):
        distribute(["a"], [0])
    with pytest.raises(ValueError):
        distribute(["a", "b"], [2, 1])