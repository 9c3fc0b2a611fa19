"""Per-file modification-time tracking.

The tracker remembers the last modification time seen for every path matched
by the watch targets, and classifies each scan result as unseen, unchanged or
changed. Baselines can be seeded from a ModTimeRegistry shared by all watcher
instances of the process.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass

from fileexec.errors import GlobCompileError, StatError
from fileexec.globpath import compile_glob
from fileexec.logging import TRACE, get_logger

log = get_logger("tracker")

ErrorReporter = Callable[[Exception], None]


def _expand(targets: Iterable[str], report: ErrorReporter | None) -> Iterator[str]:
    """Yield the paths matched by each target. Bad patterns are reported and skipped."""
    for target in targets:
        try:
            paths = compile_glob(target).match()
        except GlobCompileError as e:
            log.error("%s", e)
            if report:
                report(e)
            continue
        yield from paths


class ModTimeRegistry:
    """Process-wide table of last-known modification times.

    Guarded by a single lock. Watcher instances read it once, as a snapshot
    copy, when they are constructed, and replace it wholesale when they start.
    It is never touched during a scan.
    """

    def __init__(self, initial: Mapping[str, int] | None = None) -> None:
        self._lock = threading.Lock()
        self._mtimes: dict[str, int] = dict(initial or {})
        self._generation = 0

    @property
    def generation(self) -> int:
        """Number of times the table has been reset."""
        with self._lock:
            return self._generation

    def snapshot(self) -> dict[str, int]:
        """Return a copy of the table."""
        with self._lock:
            return dict(self._mtimes)

    def reset(self, mtimes: Mapping[str, int] | None = None) -> int:
        """Replace the table and start a new generation.

        Args:
            mtimes: New contents, or None for an empty table.

        Returns:
            The new generation number.
        """
        with self._lock:
            self._mtimes = dict(mtimes or {})
            self._generation += 1
            return self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._mtimes)


@dataclass
class FileRecord:
    """Tracks a watched file's state.

    ``last_modified`` is ``st_mtime_ns``. ``tracked`` is set once a baseline
    modification time has been recorded for the path.
    """

    path: str
    last_modified: int = 0
    tracked: bool = False


@dataclass(frozen=True)
class ScanResult:
    """Classification of one matched path."""

    path: str
    triggered: bool
    modified: int


class FileStateTracker:
    """Classifies matched files as unseen, unchanged or changed.

    Example:
        tracker = FileStateTracker(registry.snapshot())
        tracker.scan(["/var/log/**.log"], observe_from_start=False)  # baseline
        ...
        for result in tracker.scan(["/var/log/**.log"], observe_from_start=True):
            if result.triggered:
                ...
    """

    def __init__(self, seed: Mapping[str, int] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, FileRecord] = {}
        if seed:
            self.seed(seed)

    def seed(self, mtimes: Mapping[str, int]) -> None:
        """Load baseline modification times, e.g. from a registry snapshot."""
        with self._lock:
            for path, mtime in mtimes.items():
                self._records[path] = FileRecord(path=path, last_modified=mtime, tracked=True)

    def reset(self) -> None:
        """Forget every record."""
        with self._lock:
            self._records.clear()

    def export(self) -> dict[str, int]:
        """Return the tracked modification times as a plain mapping."""
        with self._lock:
            return {
                path: record.last_modified
                for path, record in self._records.items()
                if record.tracked
            }

    def get(self, path: str) -> FileRecord | None:
        with self._lock:
            return self._records.get(path)

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._records)

    def scan(
        self,
        targets: Iterable[str],
        observe_from_start: bool,
        report: ErrorReporter | None = None,
    ) -> list[ScanResult]:
        """Expand every target and classify each matched path.

        A path seen for the first time is recorded without triggering unless
        ``observe_from_start`` is set, in which case it triggers immediately.
        A known path triggers when its modification time is strictly newer
        than the stored one. The stored time is updated before this method
        returns, so a command that touches the file it was triggered by does
        not re-trigger within the same pass.

        Args:
            targets: Glob patterns to expand, in configuration order.
            observe_from_start: Treat never-seen paths as changed.
            report: Called with GlobCompileError / StatError instances. Neither
                stops the scan.

        Returns:
            One ScanResult per matched, stat-able path, in target order.
        """
        results: list[ScanResult] = []
        with self._lock:
            for path in _expand(targets, report):
                result = self._classify(path, observe_from_start, report)
                if result is not None:
                    results.append(result)
        return results

    def adopt(self, targets: Iterable[str], report: ErrorReporter | None = None) -> int:
        """Record a baseline for matched paths that have no record yet.

        Known paths are left alone, so a change to them since their stored
        modification time is still seen by the next ``scan``.

        Returns:
            Number of paths adopted.
        """
        adopted = 0
        with self._lock:
            for path in _expand(targets, report):
                if path in self._records:
                    continue
                if self._classify(path, False, report) is not None:
                    adopted += 1
        return adopted

    def _classify(
        self,
        path: str,
        observe_from_start: bool,
        report: ErrorReporter | None,
    ) -> ScanResult | None:
        try:
            modified = os.stat(path).st_mtime_ns
        except OSError as e:
            err = StatError(path, e.strerror or str(e))
            log.warning("%s", err)
            if report:
                report(err)
            return None

        record = self._records.get(path)
        if record is None:
            log.info("new file [%s]", path)
            record = FileRecord(path=path)
            self._records[path] = record
            if not observe_from_start:
                record.last_modified = modified
                record.tracked = True
                return ScanResult(path=path, triggered=False, modified=modified)
        else:
            log.log(TRACE, "prev %s mtime %d", path, record.last_modified)

        if not record.tracked or modified > record.last_modified:
            log.info("changed file [%s]", path)
            record.last_modified = modified
            record.tracked = True
            return ScanResult(path=path, triggered=True, modified=modified)

        return ScanResult(path=path, triggered=False, modified=modified)
