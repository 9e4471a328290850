from cl_runtime.backend import AccessMode, Backend, DeviceClass, HandleKind
from cl_runtime.buffer import DeviceBuffer, allocate, allocate_like, download, retrieve, to_device, upload
from cl_runtime.config import DEFAULT_CONFIG, DeviceSelection, PipelineConfig
from cl_runtime.context import ExecutionContext
from cl_runtime.device import SelectedDevice, discover, list_platforms
from cl_runtime.dispatch import IndexSpace, KernelInvocation, bind_arguments, dispatch
from cl_runtime.errors import (
    AllocationError,
    BuildError,
    ContextCreationFailed,
    DispatchError,
    InvalidWorkSize,
    NoDeviceAvailable,
    NoPlatformAvailable,
    PipelineError,
    SourceUnavailable,
    TransferError,
)
from cl_runtime.pipeline import RunResult, open_context, run_pipeline
from cl_runtime.program import Kernel, Program, build_program, load_source

__all__ = [
    "AccessMode",
    "Backend",
    "DeviceClass",
    "HandleKind",
    "DeviceBuffer",
    "allocate",
    "allocate_like",
    "upload",
    "download",
    "to_device",
    "retrieve",
    "DEFAULT_CONFIG",
    "DeviceSelection",
    "PipelineConfig",
    "ExecutionContext",
    "SelectedDevice",
    "discover",
    "list_platforms",
    "IndexSpace",
    "KernelInvocation",
    "bind_arguments",
    "dispatch",
    "PipelineError",
    "NoPlatformAvailable",
    "NoDeviceAvailable",
    "ContextCreationFailed",
    "SourceUnavailable",
    "BuildError",
    "AllocationError",
    "TransferError",
    "InvalidWorkSize",
    "DispatchError",
    "RunResult",
    "open_context",
    "run_pipeline",
    "Kernel",
    "Program",
    "build_program",
    "load_source",
]
