"""Buffer manager: device allocations and blocking host<->device transfers."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from cl_runtime.backend import AccessMode, HandleKind
from cl_runtime.context import ExecutionContext
from cl_runtime.errors import AllocationError, TransferError, status_code

logger = logging.getLogger(__name__)


class DeviceBuffer:
    """Device-resident memory region of fixed size and access mode.

    Opaque beyond ``size_bytes`` and ``access``. Owned by the context it was
    allocated in; released when that context closes.
    """

    def __init__(self, handle: Any, size_bytes: int, access: AccessMode):
        self._handle = handle
        self._size_bytes = size_bytes
        self._access = access

    @property
    def handle(self) -> Any:
        """Backend-native buffer object (e.g. pyopencl.Buffer)."""
        return self._handle

    @property
    def size_bytes(self) -> int:
        return self._size_bytes

    @property
    def access(self) -> AccessMode:
        return self._access

    def __repr__(self) -> str:
        return f"DeviceBuffer({self._size_bytes} bytes, {self._access.value})"


def allocate(ctx: ExecutionContext, size_bytes: int, access: AccessMode = AccessMode.READ_WRITE) -> DeviceBuffer:
    """Reserve ``size_bytes`` of device memory. Raises AllocationError."""
    if size_bytes <= 0:
        raise AllocationError(f"cannot allocate {size_bytes} bytes")
    backend = ctx.backend
    try:
        handle = backend.create_buffer(ctx.context, size_bytes, access)
    except backend.errors as exc:
        raise AllocationError(
            f"failed to allocate {size_bytes} bytes ({access.value}): {exc}", code=status_code(exc)
        ) from exc
    ctx.own(HandleKind.BUFFER, handle)
    logger.debug(f"allocated {size_bytes} bytes ({access.value})")
    return DeviceBuffer(handle, size_bytes, access)


def allocate_like(ctx: ExecutionContext, host: np.ndarray, access: AccessMode = AccessMode.READ_WRITE) -> DeviceBuffer:
    """Allocate a buffer with the same byte size as ``host``."""
    return allocate(ctx, host.nbytes, access)


def upload(ctx: ExecutionContext, buffer: DeviceBuffer, host: np.ndarray) -> None:
    """Copy ``host`` into ``buffer`` and wait for completion."""
    data = np.ascontiguousarray(host)
    if data.nbytes > buffer.size_bytes:
        raise ValueError(f"host array ({data.nbytes} bytes) larger than device buffer ({buffer.size_bytes} bytes)")
    backend = ctx.backend
    try:
        backend.enqueue_write(ctx.queue, buffer.handle, data)
    except backend.errors as exc:
        raise TransferError(f"upload of {data.nbytes} bytes failed: {exc}", code=status_code(exc)) from exc


def download(ctx: ExecutionContext, buffer: DeviceBuffer, host_dest: np.ndarray) -> None:
    """Copy ``buffer`` into ``host_dest`` and wait for completion.

    Only valid once every kernel writing ``buffer`` has completed; the
    synchronous queue guarantees that for any dispatch made through ``ctx``.
    """
    if not host_dest.flags.c_contiguous or not host_dest.flags.writeable:
        raise ValueError("download destination must be a writable C-contiguous array")
    if host_dest.nbytes > buffer.size_bytes:
        raise ValueError(
            f"host array ({host_dest.nbytes} bytes) larger than device buffer ({buffer.size_bytes} bytes)"
        )
    backend = ctx.backend
    try:
        backend.enqueue_read(ctx.queue, buffer.handle, host_dest)
    except backend.errors as exc:
        raise TransferError(f"download of {host_dest.nbytes} bytes failed: {exc}", code=status_code(exc)) from exc


def to_device(ctx: ExecutionContext, host: np.ndarray, access: AccessMode = AccessMode.READ_ONLY) -> DeviceBuffer:
    """Allocate a buffer sized for ``host`` and upload it."""
    buffer = allocate_like(ctx, host, access)
    upload(ctx, buffer, host)
    return buffer


def retrieve(ctx: ExecutionContext, buffer: DeviceBuffer, shape: tuple[int, ...], dtype=np.float32) -> np.ndarray:
    """Read a result buffer back into a new zeroed host array of ``shape``.

    Terminal data-producing step of a run; afterwards the context may close.
    """
    result = np.zeros(shape, dtype=dtype)
    download(ctx, buffer, result)
    return result
