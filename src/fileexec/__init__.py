"""fileexec: run commands when watched files change and collect their output as metrics."""

__version__ = "0.1.0"

# Public API
from fileexec.commands import CommandExpander, expand_commands
from fileexec.config import Config, FileExecConfig, load_config
from fileexec.dispatcher import ChangeDispatcher, DispatchReport
from fileexec.errors import (
    CommandParseError,
    ConfigError,
    FileExecError,
    GlobCompileError,
    ParseError,
    ProcessExitError,
    ProcessTimeoutError,
    StatError,
)
from fileexec.host import CollectorHost
from fileexec.metric import Accumulator, Metric, MetricBuffer, Output
from fileexec.parsers import FormatKind, OutputParser, create_decoder
from fileexec.plugin import FileExec, GatherReport
from fileexec.runner import CapturedOutput, ProcessRunner, SubprocessRunner
from fileexec.tracker import FileRecord, FileStateTracker, ModTimeRegistry, ScanResult

__all__ = [
    # Entry points
    "CollectorHost",
    "FileExec",
    "GatherReport",
    # Config
    "Config",
    "FileExecConfig",
    "load_config",
    # Pipeline components
    "ChangeDispatcher",
    "CommandExpander",
    "DispatchReport",
    "FileRecord",
    "FileStateTracker",
    "ModTimeRegistry",
    "ScanResult",
    "expand_commands",
    # Execution
    "CapturedOutput",
    "ProcessRunner",
    "SubprocessRunner",
    # Parsing
    "FormatKind",
    "OutputParser",
    "create_decoder",
    # Metrics
    "Accumulator",
    "Metric",
    "MetricBuffer",
    "Output",
    # Errors
    "CommandParseError",
    "ConfigError",
    "FileExecError",
    "GlobCompileError",
    "ParseError",
    "ProcessExitError",
    "ProcessTimeoutError",
    "StatError",
]
