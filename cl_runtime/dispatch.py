"""Kernel dispatcher: argument binding, index-space checks and launch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from cl_runtime.buffer import DeviceBuffer
from cl_runtime.context import ExecutionContext
from cl_runtime.errors import DispatchError, InvalidWorkSize, status_code
from cl_runtime.program import Kernel

logger = logging.getLogger(__name__)

KernelArg = Union[DeviceBuffer, np.generic]


@dataclass(frozen=True)
class IndexSpace:
    """N-dimensional iteration domain, optionally split into work groups.

    The global extent must be evenly divisible by the local extent; there is
    no padding or clipping of the domain.
    """
    global_extent: tuple[int, ...]
    local_extent: tuple[int, ...] | None = None

    def __post_init__(self):
        object.__setattr__(self, "global_extent", tuple(int(g) for g in self.global_extent))
        if self.local_extent is not None:
            object.__setattr__(self, "local_extent", tuple(int(l) for l in self.local_extent))

    @property
    def rank(self) -> int:
        return len(self.global_extent)

    @property
    def total_items(self) -> int:
        return int(np.prod(self.global_extent))

    @property
    def groups(self) -> tuple[int, ...]:
        """Work groups per dimension (one group spanning everything if no local extent)."""
        self.validate()
        if self.local_extent is None:
            return (1,) * self.rank
        return tuple(g // l for g, l in zip(self.global_extent, self.local_extent))

    def validate(self) -> None:
        """Raise InvalidWorkSize unless the extents describe a valid launch."""
        if not 1 <= self.rank <= 3:
            raise InvalidWorkSize(f"index space rank must be 1-3, got {self.rank}")
        if any(g <= 0 for g in self.global_extent):
            raise InvalidWorkSize(f"global extent must be positive: {self.global_extent}")
        if self.local_extent is None:
            return
        if len(self.local_extent) != self.rank:
            raise InvalidWorkSize(
                f"local extent {self.local_extent} has rank {len(self.local_extent)}, "
                f"global extent {self.global_extent} has rank {self.rank}"
            )
        if any(l <= 0 for l in self.local_extent):
            raise InvalidWorkSize(f"local extent must be positive: {self.local_extent}")
        for g, l in zip(self.global_extent, self.local_extent):
            if g % l:
                raise InvalidWorkSize(
                    f"local extent {self.local_extent} does not evenly divide "
                    f"global extent {self.global_extent}"
                )


@dataclass
class KernelInvocation:
    """A kernel plus its ordered, bound arguments. Rebuilt for every dispatch."""
    kernel: Kernel
    args: tuple[KernelArg, ...]


def bind_arguments(kernel: Kernel, args: Sequence[KernelArg]) -> KernelInvocation:
    """Check positional arguments against the kernel's declared parameters.

    Each argument is a DeviceBuffer or a numpy scalar (np.int32, np.float32,
    ...). Plain Python numbers are rejected because their byte width is not
    fixed.
    """
    for index, arg in enumerate(args):
        # np.float64 subclasses float, so numpy scalars are accepted first
        if isinstance(arg, (DeviceBuffer, np.generic)):
            continue
        if isinstance(arg, (bool, int, float)):
            raise TypeError(
                f"argument {index} of {kernel.name}: use a fixed-width numpy scalar "
                f"(e.g. np.int32({arg!r})) instead of {type(arg).__name__}"
            )
        raise TypeError(f"argument {index} of {kernel.name}: unsupported type {type(arg).__name__}")
    if len(args) != kernel.num_args:
        raise DispatchError(f"{kernel.name} takes {kernel.num_args} arguments, {len(args)} given")
    return KernelInvocation(kernel=kernel, args=tuple(args))


def dispatch(ctx: ExecutionContext, invocation: KernelInvocation, index_space: IndexSpace) -> None:
    """Bind, launch over ``index_space`` and wait for completion.

    Raises InvalidWorkSize before anything is submitted; any backend failure
    while binding or launching is reported as DispatchError.
    """
    index_space.validate()
    backend = ctx.backend
    kernel = invocation.kernel
    try:
        for index, arg in enumerate(invocation.args):
            value = arg.handle if isinstance(arg, DeviceBuffer) else arg
            backend.set_arg(kernel.handle, index, value)
        backend.enqueue_nd_range(ctx.queue, kernel.handle, index_space.global_extent, index_space.local_extent)
        ctx.finish()
    except backend.errors as exc:
        raise DispatchError(f"dispatch of {kernel.name} failed: {exc}", code=status_code(exc)) from exc
    logger.debug(f"{kernel.name} completed over {index_space.global_extent} (local {index_space.local_extent})")
