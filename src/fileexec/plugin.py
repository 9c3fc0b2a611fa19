"""The fileexec input: watch files, run commands on change, collect metrics."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from fileexec.config.schema import FileExecConfig
from fileexec.dispatcher import ChangeDispatcher, DispatchReport
from fileexec.logging import get_logger
from fileexec.metric import Accumulator, Metric
from fileexec.parsers import Decoder, OutputParser, create_decoder
from fileexec.runner import ProcessRunner, SubprocessRunner
from fileexec.tracker import FileStateTracker, ModTimeRegistry

log = get_logger("plugin")


class NamingAccumulator:
    """Applies name override/prefix/suffix and configured tags on the way through."""

    def __init__(self, inner: Accumulator, config: FileExecConfig) -> None:
        self.inner = inner
        self._override = config.name_override
        self._prefix = config.name_prefix
        self._suffix = config.name_suffix
        self._tags = dict(config.tags)

    def add_metric(self, metric: Metric) -> None:
        if self._override:
            metric.name = self._override
        metric.name = f"{self._prefix}{metric.name}{self._suffix}"
        for key, value in self._tags.items():
            metric.tags.setdefault(key, value)
        self.inner.add_metric(metric)

    def add_error(self, error: Exception) -> None:
        self.inner.add_error(error)


@dataclass
class GatherReport:
    """Summary of one scan."""

    scanned: int = 0
    dispatches: list[DispatchReport] = field(default_factory=list)

    @property
    def triggered(self) -> list[str]:
        return [d.path for d in self.dispatches]

    @property
    def metrics(self) -> int:
        return sum(d.metrics for d in self.dispatches)


class FileExec:
    """One watcher instance.

    ``start`` records a baseline of the files that already exist, and
    ``gather`` (called by an external scheduler) runs the configured commands
    for every file that changed, or appeared, since the previous scan.

    Example:
        registry = ModTimeRegistry()
        watcher = FileExec(config, registry=registry)
        buffer = MetricBuffer()
        await watcher.start(buffer)
        ...
        await watcher.gather()
        batch = buffer.drain()
    """

    def __init__(
        self,
        config: FileExecConfig,
        registry: ModTimeRegistry | None = None,
        runner: ProcessRunner | None = None,
        decoder: Decoder | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            config: What to watch, what to run and how to decode output.
            registry: Process-wide modification-time table. The tracker is
                seeded with a snapshot of it; a private one is used if None.
            runner: Process runner, SubprocessRunner by default.
            decoder: Output decoder, built from ``config`` by default.
        """
        self.config = config
        self.templates = config.all_commands()
        self.registry = registry if registry is not None else ModTimeRegistry()
        self.tracker = FileStateTracker(self.registry.snapshot())
        self.runner = runner or SubprocessRunner()
        self.parser = OutputParser(decoder or create_decoder(config))
        self._accumulator: Accumulator | None = None
        self._lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._accumulator is not None

    async def start(self, accumulator: Accumulator) -> GatherReport:
        """Record the baseline and publish it as the registry's new generation.

        Files already present are not dispatched unless ``from_beginning`` is
        set in the config.
        """
        async with self._lock:
            self._accumulator = NamingAccumulator(accumulator, self.config)
            self.tracker.reset()
            report = await self._scan(self.config.from_beginning)
            generation = self.registry.reset(self.tracker.export())
            log.info("started watching %s (%d file(s), generation %d)",
                     self.config.files, self.tracker.tracked_count, generation)
            return report

    async def gather(self, accumulator: Accumulator | None = None) -> GatherReport:
        """Scan once and dispatch commands for every changed file.

        Files appearing for the first time count as changed. Each file's
        commands are joined before the next file is handled.

        Args:
            accumulator: Sink for this gather. Defaults to the one given to
                ``start``.

        Raises:
            RuntimeError: If no accumulator is available.
        """
        async with self._lock:
            if accumulator is not None:
                self._accumulator = NamingAccumulator(accumulator, self.config)
            if self._accumulator is None:
                raise RuntimeError("FileExec.gather() called before start() without an accumulator")
            return await self._scan(True)

    async def resume(self, accumulator: Accumulator) -> GatherReport:
        """Take over from a previous instance without recording a fresh baseline.

        Paths known from the registry snapshot keep their stored times, so
        changes made since are dispatched. Matched paths the snapshot does not
        know (e.g. from a newly added target) are baselined first and only
        trigger once they are modified.
        """
        async with self._lock:
            self._accumulator = NamingAccumulator(accumulator, self.config)
            adopted = self.tracker.adopt(self.config.files, self._accumulator.add_error)
            log.info("resumed watching %s (%d file(s) adopted)", self.config.files, adopted)
            return await self._scan(True)

    def stop(self) -> None:
        log.info("stopped watching %s", self.config.files)
        self._accumulator = None

    async def _scan(self, observe_from_start: bool) -> GatherReport:
        accumulator = self._accumulator
        assert accumulator is not None

        results = self.tracker.scan(self.config.files, observe_from_start, accumulator.add_error)
        report = GatherReport(scanned=len(results))

        dispatcher = ChangeDispatcher(self.runner, self.parser, accumulator, self.config.timeout)
        for result in results:
            if not result.triggered:
                continue
            report.dispatches.append(await dispatcher.dispatch(result.path, self.templates))
        return report
