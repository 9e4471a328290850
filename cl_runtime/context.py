"""Execution context: device association, command queue and resource scope."""

from __future__ import annotations

import logging
from typing import Any

from cl_runtime.backend import Backend, HandleKind
from cl_runtime.device import SelectedDevice
from cl_runtime.errors import ContextCreationFailed, status_code
from cl_runtime.resources import ResourceScope

logger = logging.getLogger(__name__)


class ExecutionContext:
    """Owns a context handle, one in-order queue and every object created against them.

    Use ``ExecutionContext.create`` and a ``with`` block. On exit, buffers,
    programs and kernels are released newest first, then the queue, then the
    context. Every transfer and launch made through this context waits for
    completion before returning.
    """

    def __init__(self, backend: Backend, selected: SelectedDevice, context: Any, queue: Any, core: ResourceScope):
        self._backend = backend
        self._selected = selected
        self._context = context
        self._queue = queue
        self._core = core
        self._dependents = ResourceScope(backend, name="dependents")
        self._closed = False

    @classmethod
    def create(cls, backend: Backend, selected: SelectedDevice) -> ExecutionContext:
        """Create the context then its queue. Raises ContextCreationFailed."""
        core = ResourceScope(backend, name="context")
        try:
            context = core.acquire(HandleKind.CONTEXT, backend.create_context(selected.platform, selected.device))
            queue = core.acquire(HandleKind.QUEUE, backend.create_queue(context, selected.device))
        except backend.errors as exc:
            core.close(strict=False)
            raise ContextCreationFailed(
                f"cannot create context on {selected.device_name!r}: {exc}", code=status_code(exc)
            ) from exc
        logger.debug(f"context and queue created on {selected.device_name!r}")
        return cls(backend, selected, context, queue, core)

    def __enter__(self) -> ExecutionContext:
        return self

    def __exit__(self, exc_type, exc, tb):
        # Release failures must not replace an exception already propagating
        self.close(strict=exc is None)

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def selected(self) -> SelectedDevice:
        return self._selected

    @property
    def device(self) -> Any:
        return self._selected.device

    @property
    def context(self) -> Any:
        self._check_open()
        return self._context

    @property
    def queue(self) -> Any:
        self._check_open()
        return self._queue

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def live_objects(self) -> int:
        """Buffers, programs and kernels not yet released."""
        return len(self._dependents)

    def own(self, kind: HandleKind, handle: Any) -> Any:
        """Register a dependent handle for release before the context."""
        self._check_open()
        return self._dependents.acquire(kind, handle)

    def release(self, handle: Any) -> None:
        """Release one dependent handle before the context closes."""
        self._dependents.release(handle)

    def finish(self) -> None:
        self._backend.finish(self.queue)

    def close(self, strict: bool = True) -> None:
        """Release dependents, then the queue, then the context. Idempotent.

        With ``strict=False`` release failures are logged instead of raised.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._dependents.close(strict)
        finally:
            self._core.close(strict)
            self._context = self._queue = None
        logger.debug(f"context on {self._selected.device_name!r} released")

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("context is closed")
