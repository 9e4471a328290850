"""Abstract low-level compute backend interface.

The pipeline core never talks to a vendor API directly; every platform,
device, context, queue, program, kernel and memory call goes through a
``Backend``. Handles are opaque to the core.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Sequence

import numpy as np


class DeviceClass(Enum):
    """Device class preference used during discovery."""
    ANY = "any"
    CPU = "cpu"
    GPU = "gpu"
    ACCELERATOR = "accelerator"


class AccessMode(Enum):
    """Buffer access mode from the kernel's perspective."""
    READ_ONLY = "read_only"
    WRITE_ONLY = "write_only"
    READ_WRITE = "read_write"


class HandleKind(Enum):
    """Kinds of releasable backend handles."""
    CONTEXT = "context"
    QUEUE = "queue"
    BUFFER = "buffer"
    PROGRAM = "program"
    KERNEL = "kernel"


class Backend(ABC):
    """Abstract compute backend (an OpenCL-shaped host API).

    Failures are raised as the backend's own exceptions; the pipeline stages
    translate them into the ``cl_runtime.errors`` taxonomy.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def errors(self) -> tuple[type[Exception], ...]:
        """Exception types this backend raises for failed API calls."""
        ...

    # ── discovery ──

    @abstractmethod
    def get_platforms(self) -> list[Any]:
        """All platforms; empty list when none are installed."""
        ...

    @abstractmethod
    def platform_name(self, platform: Any) -> str:
        ...

    @abstractmethod
    def get_devices(self, platform: Any, device_class: DeviceClass) -> list[Any]:
        """Devices of the given class on a platform; empty list when none."""
        ...

    @abstractmethod
    def device_name(self, device: Any) -> str:
        ...

    # ── context and queue ──

    @abstractmethod
    def create_context(self, platform: Any, device: Any) -> Any:
        ...

    @abstractmethod
    def create_queue(self, context: Any, device: Any) -> Any:
        """Create an in-order command queue bound to ``device``."""
        ...

    @abstractmethod
    def finish(self, queue: Any) -> None:
        """Block until every command submitted to ``queue`` has completed."""
        ...

    # ── programs and kernels ──

    @abstractmethod
    def create_program(self, context: Any, source: str) -> Any:
        ...

    @abstractmethod
    def build_program(self, program: Any, devices: Sequence[Any], options: Sequence[str] = ()) -> None:
        ...

    @abstractmethod
    def get_build_log(self, program: Any, device: Any) -> str:
        """Compiler diagnostics for the last build of ``program`` on ``device``."""
        ...

    @abstractmethod
    def create_kernel(self, program: Any, name: str) -> Any:
        ...

    @abstractmethod
    def kernel_num_args(self, kernel: Any) -> int:
        ...

    @abstractmethod
    def set_arg(self, kernel: Any, index: int, value: Any) -> None:
        """Bind argument ``index``: a buffer handle or a fixed-width numpy scalar."""
        ...

    @abstractmethod
    def enqueue_nd_range(
        self,
        queue: Any,
        kernel: Any,
        global_size: tuple[int, ...],
        local_size: tuple[int, ...] | None,
    ) -> None:
        ...

    # ── memory ──

    @abstractmethod
    def create_buffer(self, context: Any, size_bytes: int, access: AccessMode) -> Any:
        ...

    @abstractmethod
    def enqueue_write(self, queue: Any, buffer: Any, host: np.ndarray) -> None:
        """Blocking host-to-device copy of ``host.nbytes`` bytes."""
        ...

    @abstractmethod
    def enqueue_read(self, queue: Any, buffer: Any, host: np.ndarray) -> None:
        """Blocking device-to-host copy into ``host``."""
        ...

    # ── lifetime ──

    @abstractmethod
    def release(self, kind: HandleKind, handle: Any) -> None:
        """Free one handle. Called exactly once per handle."""
        ...
