"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from fileexec.config.schema import FileExecConfig, ValueOptions
from fileexec.metric import MetricBuffer
from tests.utils import FakeRunner

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def buffer() -> MetricBuffer:
    return MetricBuffer(log_errors=False)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def watch_dir(tmp_path, monkeypatch):
    """A temporary working directory, so relative globs resolve inside it."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def echo_config() -> FileExecConfig:
    return FileExecConfig(
        files=["a.log"],
        commands=["/bin/echo {filepath}"],
        data_format="value",
        value=ValueOptions(data_type="string"),
    )
