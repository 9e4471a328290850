"""Scoped acquisition of backend handles.

A ``ResourceScope`` records each handle as it is acquired and releases all of
them, newest first, exactly once. ``ExecutionContext`` keeps two scopes: one
for the context and queue, one for the dependents created against them, and
closes the dependents' scope first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from cl_runtime.backend import Backend, HandleKind

logger = logging.getLogger(__name__)


@dataclass
class Resource:
    """One acquired backend handle."""
    kind: HandleKind
    handle: Any


class ResourceScope:
    """Reverse-order, release-once owner of backend handles."""

    def __init__(self, backend: Backend, name: str = "scope"):
        self._backend = backend
        self._name = name
        self._resources: list[Resource] = []

    def __len__(self) -> int:
        return len(self._resources)

    def __enter__(self) -> ResourceScope:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close(strict=exc is None)

    def acquire(self, kind: HandleKind, handle: Any) -> Any:
        """Take ownership of ``handle`` and return it unchanged."""
        self._resources.append(Resource(kind, handle))
        return handle

    def release(self, handle: Any) -> None:
        """Release one owned handle early (e.g. a program whose build failed)."""
        for i, resource in enumerate(self._resources):
            if resource.handle is handle:
                del self._resources[i]
                self._release(resource)
                return
        raise KeyError(f"handle not owned by {self._name}")

    def close(self, strict: bool = True) -> None:
        """Release every owned handle, newest first.

        All releases are attempted even if one fails. With ``strict`` the
        first failure is re-raised afterwards; otherwise failures are only
        logged, so an exception already in flight is not masked.
        """
        first_error: Exception | None = None
        while self._resources:
            resource = self._resources.pop()
            try:
                self._release(resource)
            except Exception as exc:
                logger.warning(f"{self._name}: releasing {resource.kind.value} failed: {exc}")
                if first_error is None:
                    first_error = exc
        if first_error is not None and strict:
            raise first_error

    def _release(self, resource: Resource) -> None:
        # Callers drop the entry first so a failing release is never retried
        self._backend.release(resource.kind, resource.handle)
