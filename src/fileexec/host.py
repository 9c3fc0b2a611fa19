"""Process-level host: owns the shared registry and drives the gathers.

The host is the external scheduler for FileExec instances. It builds one
instance per configured input, starts them, and polls them at the configured
interval, handing each poll's metrics to the registered outputs.
"""

from __future__ import annotations

import asyncio

from fileexec.config.schema import Config
from fileexec.logging import get_logger
from fileexec.metric import Accumulator, Metric, MetricBuffer, Output
from fileexec.plugin import FileExec, GatherReport
from fileexec.runner import ProcessRunner
from fileexec.tracker import ModTimeRegistry

log = get_logger("host")


class CollectorHost:
    """Runs every configured watcher on a fixed interval.

    Example:
        host = CollectorHost(load_config("fileexec.yaml"))
        host.add_output(my_output)
        await host.start()
        await host.run()   # until stop() is called
    """

    def __init__(
        self,
        config: Config,
        runner: ProcessRunner | None = None,
        accumulator: Accumulator | None = None,
    ) -> None:
        """Initialize the host.

        Args:
            config: Loaded configuration.
            runner: Process runner shared by all watchers (SubprocessRunner
                per watcher if None).
            accumulator: Sink for metrics and errors. A MetricBuffer is used
                if None; its contents are flushed to the outputs after every
                poll.
        """
        self.config = config
        self.registry = ModTimeRegistry()
        self._runner = runner
        self.accumulator = accumulator if accumulator is not None else MetricBuffer()
        self.outputs: list[Output] = []
        self.watchers = self._build(config)
        self._running = False
        self._stop_event: asyncio.Event | None = None

    def _build(self, config: Config) -> list[FileExec]:
        return [
            FileExec(input_config, registry=self.registry, runner=self._runner)
            for input_config in config.inputs
        ]

    @property
    def interval(self) -> float:
        return self.config.interval

    def add_output(self, output: Output) -> None:
        self.outputs.append(output)

    async def start(self) -> None:
        """Connect outputs and record every watcher's baseline."""
        for output in self.outputs:
            output.connect()
        for watcher in self.watchers:
            await watcher.start(self.accumulator)
        log.info("started %d watcher(s)", len(self.watchers))

    async def poll_once(self) -> list[GatherReport]:
        """Gather every watcher once and flush the results."""
        reports = []
        for watcher in self.watchers:
            reports.append(await watcher.gather())
        self.flush()
        return reports

    def flush(self) -> list[Metric]:
        """Hand buffered metrics to the outputs.

        Only applies when the host owns a MetricBuffer. Output failures are
        logged and do not stop the other outputs.
        """
        if not isinstance(self.accumulator, MetricBuffer):
            return []
        batch = self.accumulator.drain()
        self.accumulator.errors.clear()
        if not batch:
            return batch
        for output in self.outputs:
            try:
                output.write(batch)
            except Exception as e:
                log.error("output %s failed to write %d metric(s): %s",
                          getattr(output, "table", type(output).__name__), len(batch), e)
        return batch

    async def reload(self, config: Config) -> None:
        """Replace the watchers without losing baselines.

        The outgoing watchers' modification times are published to the
        registry, and the new watchers are seeded from it and resumed instead
        of being started, so changes made during the reload are still detected
        while files matched only by new targets are baselined, not dispatched.
        """
        mtimes: dict[str, int] = {}
        for watcher in self.watchers:
            watcher.stop()
            mtimes.update(watcher.tracker.export())
        self.registry.reset(mtimes)
        self.config = config
        self.watchers = self._build(config)
        for watcher in self.watchers:
            await watcher.resume(self.accumulator)
        self.flush()
        log.info("reloaded %d watcher(s)", len(self.watchers))

    async def run(self) -> None:
        """Poll at the configured interval until ``stop()``."""
        if self._running:
            log.warning("CollectorHost already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        log.info("polling every %.1fs", self.interval)

        try:
            while self._running:
                await self.poll_once()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            log.info("CollectorHost cancelled")
            raise
        finally:
            self._running = False

    def stop(self) -> None:
        """Stop the polling loop and close the outputs."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        for watcher in self.watchers:
            watcher.stop()
        for output in self.outputs:
            try:
                output.close()
            except Exception as e:
                log.error("failed to close output: %s", e)
        log.info("CollectorHost stopped")

    def is_running(self) -> bool:
        return self._running
