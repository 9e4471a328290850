"""Run configuration: device selection and pipeline defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from cl_runtime.backend import DeviceClass

ENV_PLATFORM = "CLPIPE_PLATFORM"
ENV_DEVICE_TYPE = "CLPIPE_DEVICE_TYPE"
ENV_DEVICE = "CLPIPE_DEVICE"


@dataclass(frozen=True)
class DeviceSelection:
    """Which platform and device to target. First found by default."""
    platform_index: int = 0
    device_class: DeviceClass = DeviceClass.ANY
    device_index: int = 0


@dataclass(frozen=True)
class PipelineConfig:
    """Constants shared by the example pipelines."""
    selection: DeviceSelection = field(default_factory=DeviceSelection)
    matrix_size: int = 128
    local_extent: tuple[int, int] = (16, 16)
    rotation_theta: float = 3.14159 / 6
    build_options: tuple[str, ...] = ()

    @classmethod
    def from_env(cls, base: PipelineConfig | None = None) -> PipelineConfig:
        """Apply ``CLPIPE_*`` environment overrides to ``base``."""
        base = base or DEFAULT_CONFIG
        selection = base.selection
        if os.environ.get(ENV_PLATFORM):
            selection = replace(selection, platform_index=_env_int(ENV_PLATFORM))
        if os.environ.get(ENV_DEVICE_TYPE):
            selection = replace(selection, device_class=parse_device_class(os.environ[ENV_DEVICE_TYPE]))
        if os.environ.get(ENV_DEVICE):
            selection = replace(selection, device_index=_env_int(ENV_DEVICE))
        return replace(base, selection=selection)


DEFAULT_CONFIG = PipelineConfig()


def _env_int(name: str) -> int:
    try:
        return int(os.environ[name])
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {os.environ[name]!r}") from None


def parse_device_class(text: str) -> DeviceClass:
    """Parse 'any', 'cpu', 'gpu' or 'accelerator' (case-insensitive)."""
    try:
        return DeviceClass(text.strip().lower())
    except ValueError:
        choices = ", ".join(c.value for c in DeviceClass)
        raise ValueError(f"unknown device class {text!r} (expected one of: {choices})") from None
