"""Shared fixtures and helpers for pipeline tests.

``FakeBackend`` is an in-memory Backend that records every handle it hands
out and every release, runs registered numpy stand-ins for the example
kernels, and fails on demand at any API call.
"""

import re
from collections import Counter
from dataclasses import dataclass, field

import numpy as np
import pytest

from cl_runtime.backend import Backend, DeviceClass, HandleKind
from cl_runtime.config import DeviceSelection
from cl_runtime.context import ExecutionContext
from cl_runtime.device import discover


def _has_opencl() -> bool:
    try:
        import pyopencl as cl

        return any(p.get_devices() for p in cl.get_platforms())
    except Exception:
        return False


HAS_OPENCL = _has_opencl()


class FakeBackendError(Exception):
    def __init__(self, message, code=-9999):
        super().__init__(message)
        self.code = code


@dataclass(eq=False)
class FakeHandle:
    kind: HandleKind
    serial: int
    payload: dict = field(default_factory=dict)
    released: bool = False


_KERNEL_RE = re.compile(r"__kernel\s+void\s+(\w+)\s*\(([^)]*)\)")


def _fake_simple_multiply(global_size, local_size, args):
    out_c, w_a, h_a, w_b, h_b, in_a, in_b = args
    a = in_a.view(np.float32)[: h_a * w_a].reshape(h_a, w_a)
    b = in_b.view(np.float32)[: h_b * w_b].reshape(h_b, w_b)
    out_c.view(np.float32)[: h_a * w_b] = (a @ b).ravel()


def _fake_img_rotate(global_size, local_size, args):
    dest, src, width, height, sin_t, cos_t = args
    width, height = int(width), int(height)
    src_img = src.view(np.float32)[: width * height].reshape(height, width)
    iy, ix = np.mgrid[0:height, 0:width].astype(np.float32)
    x0, y0 = np.float32(width / 2.0), np.float32(height / 2.0)
    x_off, y_off = ix - x0, iy - y0
    xpos = np.trunc(x_off * cos_t + y_off * sin_t + x0).astype(np.int64)
    ypos = np.trunc(y_off * cos_t - x_off * sin_t + y0).astype(np.int64)
    inside = (xpos >= 0) & (xpos < width) & (ypos >= 0) & (ypos < height)
    out = np.zeros((height, width), dtype=np.float32)
    out[inside] = src_img[ypos[inside], xpos[inside]]
    dest.view(np.float32)[: width * height] = out.ravel()


FAKE_KERNELS = {
    "simpleMultiply": _fake_simple_multiply,
    "img_rotate": _fake_img_rotate,
}


class FakeBackend(Backend):
    """Recording backend.

    Args:
        platforms: list of (platform name, [(device name, DeviceClass), ...]).
        fail_at: op name -> which call (1-based) raises FakeBackendError.
            A plain set/list of op names fails the first call.
        build_log: text returned by get_build_log after a failed build.
        release_fails: handle kinds whose release is recorded, then raises.
    """

    def __init__(self, platforms=None, fail_at=None, build_log="fake.cl:3:1: error: expected ';'",
                 release_fails=()):
        if platforms is None:
            platforms = [("Fake Platform", [("Fake CPU", DeviceClass.CPU), ("Fake GPU", DeviceClass.GPU)])]
        self._platforms = platforms
        if fail_at is None:
            fail_at = {}
        elif not isinstance(fail_at, dict):
            fail_at = {op: 1 for op in fail_at}
        self.fail_at = dict(fail_at)
        self.build_log = build_log
        self.release_fails = set(release_fails)
        self.calls = Counter()
        self.handles: list[FakeHandle] = []
        self.release_log: list[FakeHandle] = []
        self.double_releases: list[FakeHandle] = []
        self.launches: list[dict] = []

    def _call(self, op):
        self.calls[op] += 1
        if self.fail_at.get(op) == self.calls[op]:
            raise FakeBackendError(f"injected failure in {op}")

    def _new(self, kind, **payload):
        handle = FakeHandle(kind, len(self.handles), payload)
        self.handles.append(handle)
        return handle

    def leaked(self):
        return [h for h in self.handles if not h.released]

    def released_kinds(self):
        return [h.kind for h in self.release_log]

    def forget(self):
        """Drop the recorded handles so only pipeline objects can keep them alive."""
        self.handles.clear()
        self.release_log.clear()

    @property
    def name(self):
        return "fake"

    @property
    def errors(self):
        return (FakeBackendError,)

    def get_platforms(self):
        self._call("get_platforms")
        return list(range(len(self._platforms)))

    def platform_name(self, platform):
        self._call("platform_name")
        return self._platforms[platform][0]

    def get_devices(self, platform, device_class):
        self._call("get_devices")
        return [
            (platform, i)
            for i, (_, cls) in enumerate(self._platforms[platform][1])
            if device_class is DeviceClass.ANY or cls is device_class
        ]

    def device_name(self, device):
        self._call("device_name")
        platform, index = device
        return self._platforms[platform][1][index][0]

    def create_context(self, platform, device):
        self._call("create_context")
        return self._new(HandleKind.CONTEXT, device=device)

    def create_queue(self, context, device):
        self._call("create_queue")
        return self._new(HandleKind.QUEUE, context=context)

    def finish(self, queue):
        self._call("finish")

    def create_program(self, context, source):
        self._call("create_program")
        kernels = {name: len([p for p in params.split(",") if p.strip()])
                   for name, params in _KERNEL_RE.findall(source)}
        return self._new(HandleKind.PROGRAM, source=source, kernels=kernels, built=False)

    def build_program(self, program, devices, options=()):
        self._call("build_program")
        program.payload["options"] = list(options)
        program.payload["built"] = True

    def get_build_log(self, program, device):
        self._call("get_build_log")
        return self.build_log

    def create_kernel(self, program, name):
        self._call("create_kernel")
        if name not in program.payload["kernels"]:
            raise FakeBackendError(f"CL_INVALID_KERNEL_NAME: {name}", code=-46)
        return self._new(HandleKind.KERNEL, name=name, num_args=program.payload["kernels"][name], args={})

    def kernel_num_args(self, kernel):
        self._call("kernel_num_args")
        return kernel.payload["num_args"]

    def set_arg(self, kernel, index, value):
        self._call("set_arg")
        kernel.payload["args"][index] = value

    def enqueue_nd_range(self, queue, kernel, global_size, local_size):
        self._call("enqueue_nd_range")
        args = [
            np.frombuffer(v.payload["data"], dtype=np.uint8) if isinstance(v, FakeHandle) else v
            for _, v in sorted(kernel.payload["args"].items())
        ]
        self.launches.append({"kernel": kernel.payload["name"], "global": global_size, "local": local_size})
        impl = FAKE_KERNELS.get(kernel.payload["name"])
        if impl is not None:
            impl(global_size, local_size, args)

    def create_buffer(self, context, size_bytes, access):
        self._call("create_buffer")
        return self._new(HandleKind.BUFFER, data=bytearray(size_bytes), access=access)

    def enqueue_write(self, queue, buffer, host):
        self._call("enqueue_write")
        raw = host.tobytes()
        buffer.payload["data"][: len(raw)] = raw

    def enqueue_read(self, queue, buffer, host):
        self._call("enqueue_read")
        flat = host.reshape(-1).view(np.uint8)
        flat[:] = np.frombuffer(buffer.payload["data"], dtype=np.uint8)[: host.nbytes]

    def release(self, kind, handle):
        assert handle.kind is kind
        if handle.released:
            self.double_releases.append(handle)
        handle.released = True
        self.release_log.append(handle)
        if kind in self.release_fails:
            raise FakeBackendError(f"release of {kind.value} failed")


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_ctx(fake_backend):
    """ExecutionContext on the fake CPU device; closed after the test."""
    selected = discover(fake_backend, DeviceSelection())
    with ExecutionContext.create(fake_backend, selected) as ctx:
        yield ctx


@pytest.fixture(scope="session")
def opencl_backend():
    if not HAS_OPENCL:
        pytest.skip("no OpenCL platform available")
    from cl_runtime.opencl_backend import OpenCLBackend

    return OpenCLBackend()


@pytest.fixture
def cl_ctx(opencl_backend):
    """ExecutionContext on the first OpenCL device."""
    selected = discover(opencl_backend, DeviceSelection())
    with ExecutionContext.create(opencl_backend, selected) as ctx:
        yield ctx


def write_gray_bmp(path, pixels):
    """Save a uint8-compatible (H, W) array as an 8-bit grayscale BMP."""
    from PIL import Image

    Image.fromarray(np.asarray(pixels, dtype=np.uint8)).save(path, format="BMP")
