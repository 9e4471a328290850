"""Command-line entry point: ``clpipe devices | matmul | rotate``."""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import replace

import numpy as np

from cl_apps.matmul import demo_inputs, run_matmul
from cl_apps.rotation import rotate_file
from cl_runtime import PipelineConfig, list_platforms, run_pipeline
from cl_runtime.config import parse_device_class
from cl_runtime.errors import PipelineError
from cl_runtime.pipeline import default_backend

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clpipe", description="Run OpenCL example pipelines")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logging")
    parser.add_argument("--platform", type=int, default=None, help="platform index (default: first found)")
    parser.add_argument("--device-type", type=parse_device_class, default=None,
                        help="any, cpu, gpu or accelerator (default: any)")
    parser.add_argument("--device", type=int, default=None, help="device index within the platform")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("devices", help="list platforms and devices")

    mm = sub.add_parser("matmul", help="multiply two NxN matrices with M[i] = i")
    mm.add_argument("--size", type=int, default=None, help="matrix dimension (default: 128)")
    mm.add_argument("--local", type=int, nargs=2, default=None, metavar=("X", "Y"),
                    help="work-group extent (default: 16 16)")
    mm.add_argument("--check", action="store_true", help="compare against numpy")

    rot = sub.add_parser("rotate", help="rotate a grayscale image")
    rot.add_argument("input", help="input image (e.g. input.bmp)")
    rot.add_argument("output", help="output image (e.g. output.bmp)")
    rot.add_argument("--theta", type=float, default=None, help="angle in radians (default: pi/6)")
    rot.add_argument("--degrees", type=float, default=None, help="angle in degrees")
    return parser


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    """Defaults, then CLPIPE_* environment, then command-line flags."""
    config = PipelineConfig.from_env()
    selection = config.selection
    if args.platform is not None:
        selection = replace(selection, platform_index=args.platform)
    if args.device_type is not None:
        selection = replace(selection, device_class=args.device_type)
    if args.device is not None:
        selection = replace(selection, device_index=args.device)
    config = replace(config, selection=selection)

    if getattr(args, "size", None) is not None:
        config = replace(config, matrix_size=args.size)
    if getattr(args, "local", None) is not None:
        config = replace(config, local_extent=tuple(args.local))
    if getattr(args, "degrees", None) is not None:
        config = replace(config, rotation_theta=math.radians(args.degrees))
    elif getattr(args, "theta", None) is not None:
        config = replace(config, rotation_theta=args.theta)
    return config


def cmd_devices(config: PipelineConfig) -> int:
    platforms = list_platforms(default_backend())
    print(f"Number of platforms:\t{len(platforms)}")
    for info in platforms:
        print(f" Platform {info.index}: {info.name}")
        for i, name in enumerate(info.devices):
            print(f"   Device {i}: {name}")
    return 0


def cmd_matmul(config: PipelineConfig, check: bool) -> int:
    a, b = demo_inputs(config.matrix_size)
    result = run_pipeline(
        run_matmul, a, b,
        selection=config.selection,
        local_extent=config.local_extent,
        build_options=config.build_options,
    )
    if not result.ok:
        return report(result.error)

    c = result.value
    print(f"C: {c.shape[0]}x{c.shape[1]}, C[0][0]={c[0, 0]:g}, C[-1][-1]={c[-1, -1]:g}")
    if check:
        expected = a.astype(np.float64) @ b.astype(np.float64)
        max_rel = float(np.max(np.abs(c - expected) / np.maximum(np.abs(expected), 1.0)))
        print(f"max relative error vs numpy: {max_rel:.3e}")
        if max_rel > 1e-4:
            return 1
    return 0


def cmd_rotate(config: PipelineConfig, input_path: str, output_path: str) -> int:
    result = run_pipeline(
        rotate_file, input_path, output_path,
        theta=config.rotation_theta,
        selection=config.selection,
        build_options=config.build_options,
    )
    if not result.ok:
        return report(result.error)
    height, width = result.value.shape
    print(f"wrote {output_path} ({width}x{height}, theta={config.rotation_theta:.5f} rad)")
    return 0


def report(error: PipelineError) -> int:
    """Print the error kind (and build log) to stderr; nonzero exit status."""
    print(error.describe(), file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = resolve_config(args)
    except ValueError as exc:
        parser.error(str(exc))
    try:
        if args.command == "devices":
            return cmd_devices(config)
        if args.command == "matmul":
            return cmd_matmul(config, args.check)
        if args.command == "rotate":
            return cmd_rotate(config, args.input, args.output)
    except PipelineError as exc:
        return report(exc)
    except OSError as exc:
        # image files are read and written outside the pipeline core
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    parser.error(f"unknown command {args.command!r}")


if __name__ == "__main__":
    sys.exit(main())
