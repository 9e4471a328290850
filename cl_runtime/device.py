"""Device discovery: enumerate platforms and select one device."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from cl_runtime.backend import Backend, DeviceClass
from cl_runtime.config import DeviceSelection
from cl_runtime.errors import NoDeviceAvailable, NoPlatformAvailable, status_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedDevice:
    """The platform/device pair a run targets. Immutable for the run."""
    platform: Any = field(repr=False)
    device: Any = field(repr=False)
    platform_name: str
    device_name: str
    device_class: DeviceClass


@dataclass
class PlatformInfo:
    index: int
    name: str
    devices: list[str]


def discover(backend: Backend, selection: DeviceSelection | None = None) -> SelectedDevice:
    """Select one platform and one device of the requested class.

    Raises:
        NoPlatformAvailable: no platforms, or ``platform_index`` out of range.
        NoDeviceAvailable: no device of the class, or ``device_index`` out of range.
    """
    selection = selection or DeviceSelection()

    try:
        platforms = backend.get_platforms()
    except backend.errors as exc:
        raise NoPlatformAvailable(f"platform enumeration failed: {exc}", code=status_code(exc)) from exc
    logger.info(f"{len(platforms)} {backend.name} platform(s) found")
    if not platforms:
        raise NoPlatformAvailable("no compute platforms available")
    if not 0 <= selection.platform_index < len(platforms):
        raise NoPlatformAvailable(
            f"platform index {selection.platform_index} out of range "
            f"({len(platforms)} platform(s) available)"
        )
    platform = platforms[selection.platform_index]
    try:
        platform_name = backend.platform_name(platform)
    except backend.errors as exc:
        raise NoPlatformAvailable(f"platform query failed: {exc}", code=status_code(exc)) from exc

    try:
        devices = backend.get_devices(platform, selection.device_class)
    except backend.errors as exc:
        raise NoDeviceAvailable(f"device enumeration failed: {exc}", code=status_code(exc)) from exc
    if not devices:
        raise NoDeviceAvailable(
            f"no {selection.device_class.value} device on platform {platform_name!r}"
        )
    if not 0 <= selection.device_index < len(devices):
        raise NoDeviceAvailable(
            f"device index {selection.device_index} out of range "
            f"({len(devices)} {selection.device_class.value} device(s) on {platform_name!r})"
        )
    device = devices[selection.device_index]
    try:
        device_name = backend.device_name(device)
    except backend.errors as exc:
        raise NoDeviceAvailable(f"device query failed: {exc}", code=status_code(exc)) from exc

    selected = SelectedDevice(
        platform=platform,
        device=device,
        platform_name=platform_name,
        device_name=device_name,
        device_class=selection.device_class,
    )
    logger.info(f"using device {selected.device_name!r} on {selected.platform_name!r}")
    return selected


def list_platforms(backend: Backend) -> list[PlatformInfo]:
    """Every platform with the names of all its devices."""
    infos = []
    try:
        for index, platform in enumerate(backend.get_platforms()):
            devices = backend.get_devices(platform, DeviceClass.ANY)
            infos.append(PlatformInfo(
                index=index,
                name=backend.platform_name(platform),
                devices=[backend.device_name(d) for d in devices],
            ))
    except backend.errors as exc:
        raise NoPlatformAvailable(f"platform enumeration failed: {exc}", code=status_code(exc)) from exc
    return infos
