"""Build locks: which builds run on which servers, and lookups of their states."""

from __future__ import annotations

import functools
import logging
import os
import threading
from typing import Callable, Iterable

from wbgenesis.buildstate import DEFAULT_TMP_ROOT, BuildState, BuildStateError

logger = logging.getLogger(__name__)


class BuildNotFoundError(LookupError):
    """Raised when no build with the requested id exists."""


class BuildInProgressError(RuntimeError):
    """Raised when a server is already taken by a running build."""


class BuildManager:
    """Keeps track of the build states and the servers they hold.

    ``restore`` rebuilds a BuildState for a build id that is not held in memory
    (returning None when there is none), ``destroy`` removes the stored data of a
    finished build, and ``store`` is handed to every new BuildState.
    """

    def __init__(
        self,
        tmp_root: str | os.PathLike = DEFAULT_TMP_ROOT,
        restore: Callable[[str], BuildState | None] | None = None,
        destroy: Callable[[BuildState], None] | None = None,
        store: Callable[[BuildState], None] | None = None,
    ):
        self._lock = threading.RLock()
        self._build_states: list[BuildState] = []
        self._servers_in_use: list[int] = []
        self._tmp_root = tmp_root
        self._restore = restore
        self._destroy = destroy
        self._store = store

    @property
    def servers_in_use(self) -> tuple[int, ...]:
        """The servers currently held by builds."""
        with self._lock:
            return tuple(self._servers_in_use)

    @property
    def build_states(self) -> tuple[BuildState, ...]:
        """The build states currently held."""
        with self._lock:
            return tuple(self._build_states)

    def _clean_build_states(self, servers: Iterable[int]) -> None:
        """Drop finished builds that hold any of the given servers."""
        wanted = set(servers)
        with self._lock:
            kept: list[BuildState] = []
            for bs in self._build_states:
                if not bs.done() or not wanted.intersection(bs.servers):
                    kept.append(bs)
                    continue
                released = set(bs.servers)
                self._servers_in_use = [
                    sid for sid in self._servers_in_use if sid not in released
                ]
                if self._destroy is not None:
                    try:
                        self._destroy(bs)
                    except Exception as err:  # noqa: BLE001 - cleanup failure is only logged
                        logger.error("couldn't destroy build %s: %s", bs.build_id, err)
            self._build_states = kept

    def force_unlock_servers(self, server_ids: Iterable[int]) -> None:
        """Stop the builds on the given servers and release the servers."""
        server_ids = list(server_ids)
        with self._lock:
            for server_id in server_ids:
                bs = self.get_build_state_by_server_id(server_id)
                if bs is None:
                    continue
                try:
                    bs.signal_stop()
                except BuildStateError as err:
                    logger.debug("build %s: %s", bs.build_id, err)
            self._clean_build_states(server_ids)

    def get_build_state_by_server_id(self, server_id: int) -> BuildState | None:
        """The build state holding the given server, or None."""
        with self._lock:
            return next((bs for bs in self._build_states if server_id in bs.servers), None)

    def get_build_state_by_id(self, build_id: str) -> BuildState:
        """The build state with the given id, restored if it is not held.

        Raises BuildNotFoundError when the build cannot be found.
        """
        with self._lock:
            for bs in self._build_states:
                if bs.build_id == build_id:
                    return bs
            restored = None
            if self._restore is not None:
                try:
                    restored = self._restore(build_id)
                except Exception as err:  # noqa: BLE001 - any failure means not found
                    logger.error("couldn't restore build %s: %s", build_id, err)
            if restored is None:
                raise BuildNotFoundError("couldn't find the request build")
            self._build_states.append(restored)
            self._servers_in_use.extend(restored.servers)
            return restored

    def acquire_building(self, servers: Iterable[int], build_id: str) -> BuildState:
        """Take the build lock on the servers and return the new build state.

        Raises BuildInProgressError when one of the servers is in use.
        """
        servers = list(servers)
        with self._lock:
            self._clean_build_states(servers)
            wanted = set(servers)
            for sid in self._servers_in_use:
                if sid in wanted:
                    raise BuildInProgressError(f"error: Build in progress on server {sid}")
            bs = BuildState(servers, build_id, tmp_root=self._tmp_root, store=self._store)
            self._build_states.append(bs)
            self._servers_in_use.extend(servers)
            return bs

    def stop(self, server_id: int) -> bool:
        """Whether the build on the server should stop; False if there is no build."""
        bs = self.get_build_state_by_server_id(server_id)
        if bs is None:
            logger.error("no build found for check if stopped on server %d", server_id)
            return False
        return bs.stop()

    def signal_stop(self, build_id: str) -> None:
        """Signal the build with the given id to stop.

        Raises BuildNotFoundError for an unknown build and BuildStateError
        when the build is not in progress.
        """
        bs = self.get_build_state_by_id(build_id)
        logger.debug("sending stop signal to build %s", build_id)
        bs.signal_stop()


@functools.lru_cache(maxsize=None)
def default_manager() -> BuildManager:
    """The process-wide build manager."""
    return BuildManager()