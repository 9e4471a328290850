"""One-shot pipeline helpers: scoped context opening and the run result contract."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, TypeVar

from cl_runtime.backend import Backend
from cl_runtime.config import DeviceSelection
from cl_runtime.context import ExecutionContext
from cl_runtime.device import discover
from cl_runtime.errors import PipelineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RunResult(Generic[T]):
    """Outcome of a pipeline run: a value or a tagged PipelineError, never both."""
    value: T | None = None
    error: PipelineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> str | None:
        return None if self.error is None else self.error.kind

    def unwrap(self) -> T:
        """Return the value or re-raise the error."""
        if self.error is not None:
            raise self.error
        return self.value


def default_backend() -> Backend:
    from cl_runtime.opencl_backend import OpenCLBackend

    return OpenCLBackend()


@contextmanager
def open_context(
    selection: DeviceSelection | None = None,
    backend: Backend | None = None,
) -> Iterator[ExecutionContext]:
    """Discover a device and yield an ExecutionContext that closes on exit."""
    backend = backend or default_backend()
    selected = discover(backend, selection)
    with ExecutionContext.create(backend, selected) as ctx:
        yield ctx


def run_pipeline(fn: Callable[..., T], *args, **kwargs) -> RunResult[T]:
    """Call ``fn`` and fold any PipelineError into the returned RunResult.

    Resources are already released when this returns: ``fn`` is expected to
    acquire them inside ``open_context``.
    """
    try:
        return RunResult(value=fn(*args, **kwargs))
    except PipelineError as exc:
        logger.error(exc.describe())
        return RunResult(error=exc)
