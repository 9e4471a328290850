"""Program builder: compile kernel source text at run time."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Sequence

from cl_runtime.backend import HandleKind
from cl_runtime.context import ExecutionContext
from cl_runtime.errors import BuildError, SourceUnavailable, status_code

logger = logging.getLogger(__name__)


def load_source(path: str) -> str:
    """Read a kernel source file. Raises SourceUnavailable."""
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        raise SourceUnavailable(path) from None
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceUnavailable(path, reason=str(exc)) from exc


@dataclass
class Kernel:
    """A named entry point of a built program."""
    name: str
    handle: Any
    num_args: int


class Program:
    """A program built for the context's device."""

    def __init__(self, ctx: ExecutionContext, handle: Any, name: str = "<source>"):
        self._ctx = ctx
        self._handle = handle
        self._name = name
        self._kernels: dict[str, Kernel] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def handle(self) -> Any:
        return self._handle

    def kernel(self, name: str) -> Kernel:
        """Create (once) the kernel for entry point ``name``.

        Raises BuildError when the program has no such entry point.
        """
        cached = self._kernels.get(name)
        if cached is not None:
            return cached

        backend = self._ctx.backend
        try:
            handle = backend.create_kernel(self._handle, name)
        except backend.errors as exc:
            raise BuildError(
                f"kernel {name!r} not found in {self._name}",
                log=f"no kernel entry point named {name!r}: {exc}",
                code=status_code(exc),
            ) from exc
        self._ctx.own(HandleKind.KERNEL, handle)
        try:
            num_args = backend.kernel_num_args(handle)
        except backend.errors as exc:
            raise BuildError(
                f"cannot query arguments of kernel {name!r} in {self._name}",
                log=f"argument count query failed: {exc}",
                code=status_code(exc),
            ) from exc

        kernel = Kernel(name=name, handle=handle, num_args=num_args)
        self._kernels[name] = kernel
        return kernel


def build_program(
    ctx: ExecutionContext,
    source: str,
    options: Sequence[str] = (),
    name: str = "<source>",
) -> Program:
    """Compile ``source`` for the context's device.

    Two phases: build, then on failure query the build log as a separate call.
    If that query fails or returns nothing, the build failure message stands in
    so the raised BuildError always carries a non-empty log.
    """
    backend = ctx.backend
    try:
        handle = backend.create_program(ctx.context, source)
    except backend.errors as exc:
        raise BuildError(f"cannot create program {name}", log=str(exc), code=status_code(exc)) from exc
    ctx.own(HandleKind.PROGRAM, handle)

    start = time.perf_counter()
    try:
        backend.build_program(handle, [ctx.device], options)
    except backend.errors as exc:
        log = _query_build_log(ctx, handle) or str(exc).strip() or "build failed without diagnostics"
        try:
            ctx.release(handle)
        except backend.errors as release_exc:
            logger.warning(f"releasing unbuilt program {name} failed: {release_exc}")
        logger.error(f"build of {name} failed:\n{log}")
        raise BuildError(f"building {name} failed", log=log, code=status_code(exc)) from exc

    logger.info(f"built {name} in {time.perf_counter() - start:0.3}s")
    return Program(ctx, handle, name=name)


def _query_build_log(ctx: ExecutionContext, handle: Any) -> str:
    backend = ctx.backend
    try:
        return backend.get_build_log(handle, ctx.device)
    except backend.errors as exc:
        logger.warning(f"build log query failed: {exc}")
        return ""
