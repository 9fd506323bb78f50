"""
rib — sandboxed script execution

File: src/rib/sandbox/__init__.py

Purpose
- Run build scripts under chroot, fakeroot and fakechroot wrappers, drain
  their output concurrently, and fold side-channel records into the
  persistent environment store shared by the scripts of one build.
"""

from rib.sandbox.arguments import (
    WrapperPrograms,
    compose_arguments,
    default_search_path,
    resolve_executable,
)
from rib.sandbox.env_store import PersistentEnvironmentStore
from rib.sandbox.environment import build_environment_entries, environment_mapping
from rib.sandbox.errors import (
    ConfigurationError,
    DecodeError,
    ExecutableNotFoundError,
    PathResolutionError,
    ProcessExitError,
    ProcessStartError,
    ResourceAllocationError,
    SandboxError,
)
from rib.sandbox.flags import FULL_CHROOT, ExecFlag, parse_flag_letters
from rib.sandbox.request import ExecutionRequest
from rib.sandbox.runner import ExecutionResult, ProcessRunner, RunnerState
from rib.sandbox.selector import parse_script_name, select_scripts
from rib.sandbox.side_channel import SideChannelDecoder, encode_record
from rib.sandbox.streams import OutputCollector

__all__ = [
    "FULL_CHROOT",
    "ConfigurationError",
    "DecodeError",
    "ExecFlag",
    "ExecutableNotFoundError",
    "ExecutionRequest",
    "ExecutionResult",
    "OutputCollector",
    "PathResolutionError",
    "PersistentEnvironmentStore",
    "ProcessExitError",
    "ProcessRunner",
    "ProcessStartError",
    "ResourceAllocationError",
    "RunnerState",
    "SandboxError",
    "SideChannelDecoder",
    "WrapperPrograms",
    "build_environment_entries",
    "compose_arguments",
    "default_search_path",
    "encode_record",
    "environment_mapping",
    "parse_flag_letters",
    "parse_script_name",
    "resolve_executable",
    "select_scripts",
]
