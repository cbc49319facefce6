"""Progress, errors, freeze points and per-build storage for one build."""

from __future__ import annotations

import bisect
import json
import logging
import os
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

DEFAULT_TMP_ROOT = "/tmp"


class BuildStateError(Exception):
    """Raised when a build state transition is not allowed."""


@dataclass
class CustomError:
    """A reported error, exported as its message alone."""

    what: str = ""
    err: BaseException | None = field(default=None, compare=False)

    def to_json(self) -> dict[str, str]:
        """The exported form of the error."""
        return {"what": self.what}


def _json_number(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return repr(value)


class BuildState:
    """The state of a single build: progress, errors, stores and cleanup hooks.

    ``store`` is called with the build state when a build finishes without error.
    """

    def __init__(
        self,
        servers: Iterable[int],
        build_id: str,
        tmp_root: str | os.PathLike = DEFAULT_TMP_ROOT,
        store: Callable[["BuildState"], None] | None = None,
    ):
        self._err_lock = threading.RLock()
        self._extra_lock = threading.RLock()
        self._mutex = threading.RLock()
        self._counter_lock = threading.RLock()
        self._thawed = threading.Event()
        self._thawed.set()

        self._building = True
        self._frozen = False
        self._stopping = False

        self._breakpoints: list[float] = []
        self.extern_extras: dict[str, Any] = {}
        self.extras: dict[str, Any] = {}
        self._files: list[str] = []
        self._defers: list[Callable[[], Any]] = []
        self._error_cleanup: list[Callable[[], Any]] = []
        self._async_threads: list[threading.Thread] = []

        self.servers = list(servers)
        self.build_id = build_id
        self.build_error = CustomError()
        self.build_stage = ""

        self.deploy_progress = 0
        self.deploy_total = 0
        self.build_progress = 0
        self.build_total = 1
        self.sidecars = 0
        self.sidecar_progress = 0
        self.sidecar_total = 1

        self._tmp_root = Path(tmp_root)
        self._store = store
        self.tmp_dir.mkdir(mode=0o755, parents=True, exist_ok=True)

    @property
    def tmp_dir(self) -> Path:
        """The directory holding this build's temporary files."""
        return self._tmp_root / self.build_id

    @property
    def breakpoints(self) -> tuple[float, ...]:
        """The pending freeze points, in ascending order."""
        with self._mutex:
            return tuple(self._breakpoints)

    @property
    def files(self) -> tuple[str, ...]:
        """The names of the files written for this build."""
        with self._mutex:
            return tuple(self._files)

    def run_async(self, fn: Callable[[], Any]) -> None:
        """Run fn in the background; the build only finishes once it has returned."""
        thread = threading.Thread(target=fn, daemon=True)
        with self._extra_lock:
            self._async_threads.append(thread)
        thread.start()

    def freeze(self) -> None:
        """Freeze the build. Raises BuildStateError if frozen already or stopping."""
        logger.info("freezing the build %s", self.build_id)
        if self._frozen:
            raise BuildStateError("already frozen")
        if self._stopping:
            raise BuildStateError("build terminating")
        self._frozen = True
        self._thawed.clear()

    def unfreeze(self) -> None:
        """Unfreeze the build. Raises BuildStateError if it is not frozen."""
        logger.info("unfreezing the build %s", self.build_id)
        if not self._frozen:
            raise BuildStateError("not currently frozen")
        self._thawed.set()
        self._frozen = False

    def is_frozen(self) -> bool:
        """Whether the build is currently frozen."""
        return self._frozen

    def add_freeze_point(self, freeze_point: float) -> None:
        """Add a progress point at which the build will freeze; duplicates are ignored."""
        with self._mutex:
            index = bisect.bisect_left(self._breakpoints, freeze_point)
            if index < len(self._breakpoints) and self._breakpoints[index] == freeze_point:
                return
            self._breakpoints.insert(index, freeze_point)

    def done_building(self) -> None:
        """Mark the build finished, run the cleanup hooks and remove its temporary files."""
        if self.error_free():
            if self._store is not None:
                try:
                    self._store(self)
                except Exception as err:  # noqa: BLE001 - storage failure is only logged
                    logger.error("couldn't store the build %s: %s", self.build_id, err)
        else:
            logger.debug("running the on error function calls for build %s", self.build_id)
            with self._extra_lock:
                cleanups = list(self._error_cleanup)
            threads = [threading.Thread(target=fn, daemon=True) for fn in cleanups]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        with self._counter_lock:
            self.deploy_progress = self.deploy_total
            self.build_progress = self.build_total
            self.sidecar_progress = self.sidecar_total

        with self._extra_lock:
            waiting = list(self._async_threads)
            self._async_threads = []
        for thread in waiting:
            thread.join()

        with self._mutex:
            self.build_stage = "Finished"
        with self._extra_lock:
            self._error_cleanup = []
            defers = list(self._defers)
        self._building = False
        self._stopping = False
        shutil.rmtree(self.tmp_dir, ignore_errors=True)
        logger.debug("running the deferred functions for build %s", self.build_id)
        for fn in defers:
            threading.Thread(target=fn, daemon=True).start()

    def done(self) -> bool:
        """Whether the build has finished."""
        return not self._building

    def report_error(self, err: BaseException) -> None:
        """Store an error to be shown to anyone querying the build status."""
        with self._err_lock:
            self.build_error = CustomError(what=str(err), err=err)
        logger.error("an error was reported for build %s: %s", self.build_id, err, stacklevel=2)

    def stop(self) -> bool:
        """Whether the build should stop. Blocks while the build is frozen.

        Reaching a freeze point freezes the build and waits for it to be unfrozen.
        """
        self._thawed.wait()
        hit = False
        with self._mutex:
            if self._breakpoints and self._breakpoints[0] >= self.get_progress():
                self._breakpoints.pop(0)
                try:
                    self.freeze()
                except BuildStateError:
                    pass
                hit = True
        if hit:
            self._thawed.wait()
        return self._stopping

    def signal_stop(self) -> None:
        """Flag the build to stop. Raises BuildStateError when no build is in progress."""
        try:
            self.unfreeze()
        except BuildStateError:
            pass
        if not self._building:
            raise BuildStateError("no build in progress")
        self.report_error(BuildStateError("build stopped by user"))
        self._stopping = True
        self._building = False

    def error_free(self) -> bool:
        """Whether no error has been reported."""
        with self._err_lock:
            return self.build_error.err is None

    def get_error(self) -> BaseException | None:
        """The reported error, or None."""
        with self._err_lock:
            return self.build_error.err

    def set_ext(self, key: str, value: Any) -> None:
        """Store a value in the exported store."""
        with self._extra_lock:
            self.extern_extras[key] = value

    def get_ext(self, key: str) -> Any:
        """Fetch a value from the exported store. Raises KeyError when absent."""
        with self._extra_lock:
            return self.extern_extras[key]

    def get_ext_extras(self) -> str:
        """The whole exported store as JSON."""
        with self._extra_lock:
            return json.dumps(self.extern_extras, separators=(",", ":"), sort_keys=True)

    def set(self, key: str, value: Any) -> None:
        """Store a value in the internal store."""
        with self._extra_lock:
            self.extras[key] = value

    def get(self, key: str) -> Any:
        """Fetch a value from the internal store. Raises KeyError when absent."""
        with self._extra_lock:
            return self.extras[key]

    def get_extras(self) -> dict[str, Any]:
        """The internal store itself."""
        return self.extras

    def write(self, file: str, data: str) -> None:
        """Write data to a file kept with this build, replacing any previous content."""
        with self._mutex:
            self._files.append(file)
        path = self.tmp_dir / file
        path.write_text(data, encoding="utf-8")
        os.chmod(path, 0o664)

    def defer(self, fn: Callable[[], Any]) -> None:
        """Run fn in the background once the build has finished."""
        with self._extra_lock:
            self._defers.append(fn)

    def on_error(self, fn: Callable[[], Any]) -> None:
        """Run fn when the build finishes with an error."""
        with self._extra_lock:
            self._error_cleanup.append(fn)

    def set_deploy_steps(self, steps: int) -> None:
        """Set how many deploy steps there will be."""
        with self._counter_lock:
            self.deploy_total = steps

    def increment_deploy_progress(self) -> None:
        """Advance the deploy progress by one step."""
        with self._counter_lock:
            self.deploy_progress += 1

    def finish_deploy(self) -> None:
        """Mark the deployment as finished."""
        with self._counter_lock:
            self.deploy_progress = self.deploy_total

    def set_build_steps(self, steps: int) -> None:
        """Set how many build steps there will be; one extra keeps the build from ending early."""
        with self._counter_lock:
            self.build_total = steps + 1

    def increment_build_progress(self) -> None:
        """Advance the build progress by one step."""
        with self._counter_lock:
            self.build_progress += 1

    def finish_main_build(self) -> None:
        """Mark the main build finished; the sidecar build starts next."""
        with self._counter_lock:
            self.build_progress = self.build_total - 1

    def set_sidecar_steps(self, steps: int) -> None:
        """Set how many sidecar build steps there will be."""
        with self._counter_lock:
            self.sidecar_total = steps

    def set_sidecars(self, sidecars: int) -> None:
        """Set the number of sidecars."""
        with self._counter_lock:
            self.sidecars = sidecars

    def increment_sidecar_progress(self) -> None:
        """Advance the sidecar build progress by one step."""
        with self._counter_lock:
            self.sidecar_progress += 1

    def get_progress(self) -> float:
        """The progress as a percentage from 0.0 to 100.0."""
        with self._counter_lock:
            dp, dt = self.deploy_progress, self.deploy_total
            bp, bt = self.build_progress, self.build_total
            sp, st = self.sidecar_progress, self.sidecar_total
            sidecars = self.sidecars

        if dp == 0 or dt == 0:
            return 0.0
        if dp != dt:
            return dp / dt * 25.0
        out = 25.0
        if bt == 0:
            return out
        build_share = 75.0 - (25.0 if sidecars > 5 else sidecars * 5.0)
        out += bp / bt * build_share
        if st != 0 and sidecars != 0:
            out += sp / st * (75.0 - build_share)
        if not self.done() and out >= 100.0:
            out = 99.99
        return out

    def set_build_stage(self, stage: str) -> None:
        """Set the text shown next to the progress."""
        with self._mutex:
            self.build_stage = stage

    def reset(self) -> None:
        """Put the build back at its beginning, keeping the stores."""
        self._building = True
        self._frozen = False
        self._stopping = False
        self._thawed.set()
        with self._mutex:
            self._breakpoints = []
            self._files = []
            self.build_stage = ""
        with self._extra_lock:
            self._defers = []
        with self._err_lock:
            self.build_error = CustomError()
        with self._counter_lock:
            self.deploy_progress = 0
            self.deploy_total = 1
            self.build_progress = 0
            self.build_total = 1
        self.tmp_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        logger.info("build %s has been reset!", self.build_id)

    def marshal(self) -> str:
        """The build's current progress as JSON."""
        with self._mutex:
            progress = self.get_progress()
            if self.error_free():
                frozen = "true" if self.is_frozen() else "false"
                return (
                    f'{{"progress":{progress:f},"error":null,'
                    f'"stage":"{self.build_stage}","frozen":{frozen}}}'
                )
            with self._err_lock:
                error = self.build_error.to_json()
            body = json.dumps(
                {"frozen": self.is_frozen(), "error": error, "stage": self.build_stage},
                separators=(",", ":"),
                sort_keys=True,
            )
            return body[:-1] + f',"progress":{_json_number(progress)}}}'