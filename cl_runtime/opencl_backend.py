"""OpenCL backend: pyopencl implementation of the Backend interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pyopencl as cl

from cl_runtime.backend import AccessMode, Backend, DeviceClass, HandleKind

logger = logging.getLogger(__name__)

_DEVICE_TYPES = {
    DeviceClass.ANY: cl.device_type.ALL,
    DeviceClass.CPU: cl.device_type.CPU,
    DeviceClass.GPU: cl.device_type.GPU,
    DeviceClass.ACCELERATOR: cl.device_type.ACCELERATOR,
}

_MEM_FLAGS = {
    AccessMode.READ_ONLY: cl.mem_flags.READ_ONLY,
    AccessMode.WRITE_ONLY: cl.mem_flags.WRITE_ONLY,
    AccessMode.READ_WRITE: cl.mem_flags.READ_WRITE,
}

# clGetPlatformIDs reports an empty ICD as an error rather than an empty list
_PLATFORM_NOT_FOUND_KHR = -1001


@dataclass(eq=False)
class _ProgramHandle:
    program: cl.Program
    built: bool = False


class OpenCLBackend(Backend):
    """Backend over the installed OpenCL ICD loader."""

    @property
    def name(self) -> str:
        return "opencl"

    @property
    def errors(self):
        return (cl.Error,)

    def get_platforms(self):
        try:
            return list(cl.get_platforms())
        except cl.LogicError as exc:
            if exc.code == _PLATFORM_NOT_FOUND_KHR:
                return []
            raise

    def platform_name(self, platform) -> str:
        return platform.name.strip()

    def get_devices(self, platform, device_class: DeviceClass):
        try:
            return list(platform.get_devices(device_type=_DEVICE_TYPES[device_class]))
        except cl.RuntimeError as exc:
            if exc.code == cl.status_code.DEVICE_NOT_FOUND:
                return []
            raise

    def device_name(self, device) -> str:
        return device.name.strip()

    def create_context(self, platform, device):
        return cl.Context(
            devices=[device],
            properties=[(cl.context_properties.PLATFORM, platform)],
        )

    def create_queue(self, context, device):
        # No OUT_OF_ORDER property: submissions execute in program order
        return cl.CommandQueue(context, device)

    def finish(self, queue) -> None:
        queue.finish()

    def create_program(self, context, source: str):
        return _ProgramHandle(cl.Program(context, source))

    def build_program(self, program, devices: Sequence, options: Sequence[str] = ()) -> None:
        program.program.build(options=list(options), devices=list(devices))
        program.built = True

    def get_build_log(self, program, device) -> str:
        """Compiler output for a built program.

        pyopencl keeps no program object after a failed build; the compiler
        log travels in the build exception text instead. Querying the wrapper
        then would compile a fresh, unbuilt program, so an empty log is
        returned and the caller falls back to the exception text.
        """
        if not program.built:
            return ""
        log = program.program.get_build_info(device, cl.program_build_info.LOG)
        if isinstance(log, bytes):
            log = log.decode("utf-8", errors="replace")
        return log.strip()

    def create_kernel(self, program, name: str):
        return cl.Kernel(program.program, name)

    def kernel_num_args(self, kernel) -> int:
        return kernel.get_info(cl.kernel_info.NUM_ARGS)

    def set_arg(self, kernel, index: int, value) -> None:
        kernel.set_arg(index, value)

    def enqueue_nd_range(self, queue, kernel, global_size, local_size) -> None:
        event = cl.enqueue_nd_range_kernel(queue, kernel, global_size, local_size)
        event.wait()

    def create_buffer(self, context, size_bytes: int, access: AccessMode):
        return cl.Buffer(context, _MEM_FLAGS[access], size=size_bytes)

    def enqueue_write(self, queue, buffer, host: np.ndarray) -> None:
        cl.enqueue_copy(queue, buffer, host, is_blocking=True)

    def enqueue_read(self, queue, buffer, host: np.ndarray) -> None:
        cl.enqueue_copy(queue, host, buffer, is_blocking=True)

    def release(self, kind: HandleKind, handle) -> None:
        if kind is HandleKind.BUFFER:
            handle.release()
        elif kind is HandleKind.QUEUE:
            handle.finish()
        # Context, program and kernel wrappers free their CL object when the
        # last Python reference drops; ExecutionContext.close drops its own.
        logger.debug(f"released {kind.value}")
