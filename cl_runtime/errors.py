"""Error taxonomy for the host-side pipeline.

Every stage fails fast with one of these. Backend exceptions are chained
(``raise ... from exc``) so the original status stays inspectable, and the
numeric status code, when the backend reports one, is kept on ``code``.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class: a tagged pipeline failure."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code

    @property
    def kind(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        """One-line report: kind, message and backend status code if any."""
        text = f"{self.kind}: {self}"
        if self.code is not None:
            text += f" ({self.code})"
        return text


class NoPlatformAvailable(PipelineError):
    pass


class NoDeviceAvailable(PipelineError):
    pass


class ContextCreationFailed(PipelineError):
    pass


class SourceUnavailable(PipelineError):
    """Kernel source file missing or unreadable."""

    def __init__(self, path: str, reason: str = "not found"):
        super().__init__(f"kernel source {path!r}: {reason}")
        self.path = path


class BuildError(PipelineError):
    """Kernel compilation failed. ``log`` holds the compiler diagnostics verbatim."""

    def __init__(self, message: str, log: str, code: int | None = None):
        super().__init__(message, code=code)
        self.log = log

    def describe(self) -> str:
        return f"{super().describe()}\nBuild log:\n{self.log}"


class AllocationError(PipelineError):
    pass


class TransferError(PipelineError):
    pass


class InvalidWorkSize(PipelineError):
    pass


class DispatchError(PipelineError):
    pass


def status_code(exc: BaseException) -> int | None:
    """Numeric backend status carried by an exception, if any."""
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None
