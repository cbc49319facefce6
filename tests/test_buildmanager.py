import pytest

from wbgenesis.buildmanager import (
    BuildInProgressError,
    BuildManager,
    BuildNotFoundError,
    default_manager,
)
from wbgenesis.buildstate import BuildState, BuildStateError


@pytest.fixture
def manager(tmp_path):
    return BuildManager(tmp_root=tmp_path)


def test_acquire_registers_servers(manager):
    bs = manager.acquire_building([1, 2], "build-a")
    assert bs.build_id == "build-a"
    assert manager.servers_in_use == (1, 2)
    assert manager.get_build_state_by_server_id(2) is bs


def test_acquire_conflict(manager):
    manager.acquire_building([1, 2], "build-a")
    with pytest.raises(BuildInProgressError, match="Build in progress on server 2"):
        manager.acquire_building([2, 3], "build-b")


def test_disjoint_servers_do_not_conflict(manager):
    manager.acquire_building([1], "build-a")
    manager.acquire_building([2], "build-b")
    assert sorted(manager.servers_in_use) == [1, 2]


def test_finished_build_is_cleaned_on_acquire(manager):
    first = manager.acquire_building([1], "build-a")
    first.done_building()
    second = manager.acquire_building([1], "build-b")
    assert manager.build_states == (second,)
    assert manager.servers_in_use == (1,)


def test_destroy_called_for_cleaned_build(tmp_path):
    destroyed = []
    manager = BuildManager(tmp_root=tmp_path, destroy=lambda bs: destroyed.append(bs.build_id))
    manager.acquire_building([4], "build-a").done_building()
    manager.acquire_building([4], "build-b")
    assert destroyed == ["build-a"]


def test_force_unlock_servers(manager):
    bs = manager.acquire_building([1, 2], "build-a")
    manager.force_unlock_servers([1])
    assert bs.done()
    assert manager.servers_in_use == ()
    assert manager.get_build_state_by_server_id(2) is None


def test_get_by_id_found(manager):
    bs = manager.acquire_building([1], "build-a")
    assert manager.get_build_state_by_id("build-a") is bs


def test_get_by_id_missing(manager):
    with pytest.raises(BuildNotFoundError):
        manager.get_build_state_by_id("nope")


def test_get_by_id_restores(tmp_path):
    def restore(build_id):
        return BuildState([7], build_id, tmp_root=tmp_path)

    manager = BuildManager(tmp_root=tmp_path, restore=restore)
    bs = manager.get_build_state_by_id("build-r")
    assert bs.build_id == "build-r"
    assert manager.servers_in_use == (7,)
    assert manager.get_build_state_by_id("build-r") is bs


def test_restore_failure_is_not_found(tmp_path):
    def restore(build_id):
        raise OSError("gone")

    manager = BuildManager(tmp_root=tmp_path, restore=restore)
    with pytest.raises(BuildNotFoundError):
        manager.get_build_state_by_id("build-x")


def test_stop_without_build(manager):
    assert manager.stop(9) is False


def test_stop_after_signal(manager):
    bs = manager.acquire_building([1], "build-a")
    assert manager.stop(1) is False
    manager.signal_stop("build-a")
    assert manager.stop(1) is True
    assert str(bs.get_error()) == "build stopped by user"


def test_signal_stop_twice(manager):
    manager.acquire_building([1], "build-a")
    manager.signal_stop("build-a")
    with pytest.raises(BuildStateError, match="no build in progress"):
        manager.signal_stop("build-a")


def test_signal_stop_unknown(manager):
    with pytest.raises(BuildNotFoundError):
        manager.signal_stop("missing")


def test_default_manager_is_shared():
    shared = default_manager()
    assert shared is default_manager()
    assert shared.get_build_state_by_server_id(-424242) is None
    assert shared.stop(-424242) is False