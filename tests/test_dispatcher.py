"""Tests for per-file command fan-out."""

from __future__ import annotations

import logging
import sys

import pytest

from fileexec.dispatcher import ChangeDispatcher
from fileexec.errors import CommandParseError, ParseError, ProcessExitError, ProcessTimeoutError
from fileexec.logging import VERBOSE
from fileexec.parsers import (
    CSVOptions,
    CSVParser,
    Decoder,
    InfluxParser,
    NagiosParser,
    OutputParser,
    ValueParser,
)
from fileexec.runner import SubprocessRunner
from fileexec.runner.result import CapturedOutput
from tests.utils import FakeRunner, exited, ok, timed_out

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh")


def make_dispatcher(runner, buffer, decoder=None, timeout=5.0) -> ChangeDispatcher:
    parser = OutputParser(decoder or ValueParser(data_type="string"))
    return ChangeDispatcher(runner, parser, buffer, timeout)


class TestChangeDispatcher:
    """Tests for ChangeDispatcher.dispatch()."""

    @pytest.mark.asyncio
    async def test_runs_every_command_with_timeout(self, buffer, fake_runner):
        dispatcher = make_dispatcher(fake_runner, buffer, timeout=2.5)

        report = await dispatcher.dispatch("a.log", ["tool-a {filepath}", "tool-b --in={filepath}"])

        assert report.commands == ["tool-a a.log", "tool-b --in=a.log"]
        assert fake_runner.calls == [("tool-a a.log", 2.5), ("tool-b --in=a.log", 2.5)]
        assert [m.fields["value"] for m in buffer.metrics] == ["a.log", "--in=a.log"]
        assert report.metrics == 2
        assert report.ok

    @pytest.mark.asyncio
    async def test_commands_run_concurrently(self, buffer):
        runner = FakeRunner(delay=0.05)
        dispatcher = make_dispatcher(runner, buffer)

        await dispatcher.dispatch("f", [f"tool-{i} {{filepath}}" for i in range(4)])

        assert runner.max_active == 4
        assert runner.active == 0
        assert len(buffer.metrics) == 4

    @pytest.mark.asyncio
    async def test_failure_only_costs_its_own_metrics(self, buffer):
        def responder(command, timeout):
            if command.startswith("bad"):
                return exited(command, 1, stderr=b"boom")
            return ok(command, b"fine\n")

        dispatcher = make_dispatcher(FakeRunner(responder), buffer)
        report = await dispatcher.dispatch("f", ["good {filepath}", "bad {filepath}", "also-good {filepath}"])

        assert len(buffer.metrics) == 2
        assert len(buffer.errors) == 1
        assert isinstance(buffer.errors[0], ProcessExitError)
        assert report.metrics == 2
        assert not report.ok

    @pytest.mark.asyncio
    async def test_timeout_reports_error_without_metrics(self, buffer):
        runner = FakeRunner(lambda command, timeout: timed_out(command, timeout))
        dispatcher = make_dispatcher(runner, buffer, decoder=ValueParser(), timeout=1.0)

        report = await dispatcher.dispatch("f", ["slow {filepath}"])

        assert buffer.metrics == []
        assert len(buffer.errors) == 1
        assert isinstance(buffer.errors[0], ProcessTimeoutError)
        assert report.metrics == 0

    @pytest.mark.asyncio
    async def test_health_check_timeout_becomes_unknown_state(self, buffer):
        runner = FakeRunner(lambda command, timeout: timed_out(command, timeout))
        dispatcher = make_dispatcher(runner, buffer, decoder=NagiosParser(), timeout=1.0)

        await dispatcher.dispatch("f", ["check_thing {filepath}"])

        assert buffer.errors == []
        [metric] = buffer.metrics
        assert metric.name == "nagios_state"
        assert metric.fields == {"state": 3}

    @pytest.mark.asyncio
    async def test_health_check_exit_code_is_data(self, buffer):
        runner = FakeRunner(lambda command, timeout: exited(command, 2, stdout=b"CRITICAL - disk full\n"))
        dispatcher = make_dispatcher(runner, buffer, decoder=NagiosParser())

        await dispatcher.dispatch("f", ["check_disk {filepath}"])

        assert buffer.errors == []
        [metric] = buffer.metrics
        assert metric.fields == {"service_output": "CRITICAL - disk full", "state": 2}

    @pytest.mark.asyncio
    async def test_parse_error_reported(self, buffer, fake_runner):
        dispatcher = make_dispatcher(fake_runner, buffer, decoder=ValueParser(data_type="integer"))

        report = await dispatcher.dispatch("not-a-number", ["tool {filepath}"])

        assert buffer.metrics == []
        assert isinstance(buffer.errors[0], ParseError)
        assert report.errors == buffer.errors

    @pytest.mark.asyncio
    async def test_bad_template_does_not_stop_others(self, buffer, fake_runner):
        dispatcher = make_dispatcher(fake_runner, buffer)

        report = await dispatcher.dispatch("f", ["", "tool {filepath}"])

        assert fake_runner.commands == ["tool f"]
        assert isinstance(buffer.errors[0], CommandParseError)
        assert report.metrics == 1

    @pytest.mark.asyncio
    async def test_no_commands(self, buffer, fake_runner):
        report = await make_dispatcher(fake_runner, buffer).dispatch("f", [])
        assert report.commands == []
        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_line_oriented_header_only_on_first_output(self, buffer):
        outputs = iter([b"a,b\n1,2\n", b"3,4\n"])
        runner = FakeRunner(lambda command, timeout: ok(command, next(outputs)))
        decoder = CSVParser(CSVOptions(header_row_count=1))
        dispatcher = make_dispatcher(runner, buffer, decoder=decoder)

        await dispatcher.dispatch("f", ["dump {filepath}"])
        await dispatcher.dispatch("f", ["dump {filepath}"])

        assert [m.fields for m in buffer.metrics] == [{"a": 1, "b": 2}, {"a": 3, "b": 4}]

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_spares_siblings(self, buffer):
        def responder(command, timeout):
            if command.startswith("bad"):
                return ok(command, b"cpu v=1 300000000000000000000\n")
            return ok(command, b"cpu v=2\n")

        dispatcher = make_dispatcher(FakeRunner(responder), buffer, decoder=InfluxParser())
        report = await dispatcher.dispatch("f", ["bad {filepath}", "good {filepath}"])

        assert [m.fields for m in buffer.metrics] == [{"v": 2.0}]
        [error] = buffer.errors
        assert isinstance(error, ParseError)
        assert "out of range" in str(error)
        assert report.metrics == 1

    @pytest.mark.asyncio
    async def test_unexpected_decoder_failure_reported(self, buffer, fake_runner):
        class ExplodingDecoder(Decoder):
            data_format = "exploding"

            def parse(self, data):
                raise RuntimeError("kaboom")

        dispatcher = make_dispatcher(fake_runner, buffer, decoder=ExplodingDecoder())
        report = await dispatcher.dispatch("f", ["a {filepath}", "b {filepath}"])

        assert buffer.metrics == []
        assert len(buffer.errors) == 2
        assert all(isinstance(e, ParseError) for e in buffer.errors)
        assert "kaboom" in str(buffer.errors[0])
        assert report.commands == ["a f", "b f"]

    @pytest.mark.asyncio
    async def test_headerless_csv_on_later_outputs(self, buffer):
        runner = FakeRunner(lambda command, timeout: ok(command, b"1,2\n"))
        dispatcher = make_dispatcher(runner, buffer, decoder=CSVParser())

        await dispatcher.dispatch("f", ["dump {filepath}"])
        await dispatcher.dispatch("f", ["dump {filepath}"])

        assert buffer.errors == []
        assert [m.fields for m in buffer.metrics] == [{"1": 1, "2": 2}, {"1": 1, "2": 2}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [126, 127, -9])
    async def test_health_check_invalid_exit_code_is_unknown(self, buffer, code):
        runner = FakeRunner(lambda command, timeout: exited(command, code))
        dispatcher = make_dispatcher(runner, buffer, decoder=NagiosParser())

        await dispatcher.dispatch("f", ["check_thing {filepath}"])

        assert buffer.errors == []
        [metric] = buffer.metrics
        assert metric.fields == {"state": 3}

    @posix_only
    @pytest.mark.asyncio
    async def test_health_check_real_start_failure_and_signal(self, buffer):
        dispatcher = make_dispatcher(SubprocessRunner(), buffer, decoder=NagiosParser())

        await dispatcher.dispatch("f", ["/no/such/check_x {filepath}", "/bin/sh -c 'kill -9 $$'"])

        assert [m.fields for m in buffer.metrics] == [{"state": 3}, {"state": 3}]

    @pytest.mark.asyncio
    async def test_health_check_timeout_keeps_partial_output(self, buffer):
        def responder(command, timeout):
            return CapturedOutput(
                command=command,
                stdout=b"CRITICAL - slow\n",
                error=ProcessTimeoutError(command, timeout),
            )

        dispatcher = make_dispatcher(FakeRunner(responder), buffer, decoder=NagiosParser(), timeout=1.0)
        await dispatcher.dispatch("f", ["check_slow {filepath}"])

        [metric] = buffer.metrics
        assert metric.fields == {"service_output": "CRITICAL - slow", "state": 3}

    @pytest.mark.asyncio
    async def test_finished_commands_logged_at_verbose(self, buffer, fake_runner, caplog):
        caplog.set_level(VERBOSE, logger="fileexec")
        await make_dispatcher(fake_runner, buffer).dispatch("f", ["tool {filepath}"])

        records = [r for r in caplog.records if r.levelno == VERBOSE]
        assert len(records) == 1
        assert "tool f" in records[0].getMessage()
        assert records[0].levelno > logging.DEBUG
