"""Tests for source loading and the two-phase program build."""

import pytest

from cl_runtime.backend import HandleKind
from cl_runtime.context import ExecutionContext
from cl_runtime.device import discover
from cl_runtime.errors import BuildError, SourceUnavailable
from cl_runtime.program import build_program, load_source
from tests.conftest import FakeBackend

SOURCE = """
__kernel void scale(__global float* x, float k, int n) { }
__kernel void shift(__global float* x, float k) { }
"""


def _ctx(backend):
    return ExecutionContext.create(backend, discover(backend))


class TestLoadSource:
    def test_reads_text(self, tmp_path):
        path = tmp_path / "k.cl"
        path.write_text(SOURCE, encoding="utf-8")
        assert load_source(str(path)) == SOURCE

    def test_missing_file(self, tmp_path):
        missing = str(tmp_path / "nope.cl")
        with pytest.raises(SourceUnavailable) as excinfo:
            load_source(missing)
        assert excinfo.value.path == missing
        assert excinfo.value.kind == "SourceUnavailable"

    def test_directory_is_unreadable(self, tmp_path):
        with pytest.raises(SourceUnavailable):
            load_source(str(tmp_path))


class TestBuild:
    def test_build_and_kernels(self, fake_ctx):
        program = build_program(fake_ctx, SOURCE, options=["-DTILE=16"], name="k.cl")
        scale = program.kernel("scale")
        shift = program.kernel("shift")
        assert scale.num_args == 3
        assert shift.num_args == 2
        assert program.handle.payload["options"] == ["-DTILE=16"]

    def test_kernel_created_once(self, fake_ctx, fake_backend):
        program = build_program(fake_ctx, SOURCE)
        assert program.kernel("scale") is program.kernel("scale")
        assert fake_backend.calls["create_kernel"] == 1

    def test_missing_kernel(self, fake_ctx):
        program = build_program(fake_ctx, SOURCE, name="k.cl")
        with pytest.raises(BuildError) as excinfo:
            program.kernel("absent")
        assert "absent" in excinfo.value.log
        assert excinfo.value.code == -46

    def test_argument_count_query_failure(self):
        backend = FakeBackend(fail_at={"kernel_num_args"})
        with _ctx(backend) as ctx:
            program = build_program(ctx, SOURCE, name="k.cl")
            with pytest.raises(BuildError) as excinfo:
                program.kernel("scale")
            assert excinfo.value.log
            assert excinfo.value.code == -9999
        assert backend.leaked() == []

    def test_failed_program_release_keeps_build_error(self):
        backend = FakeBackend(fail_at={"build_program"}, release_fails={HandleKind.PROGRAM})
        with pytest.raises(BuildError):
            with _ctx(backend) as ctx:
                build_program(ctx, SOURCE)
        assert backend.leaked() == []

    def test_build_failure_carries_log(self):
        backend = FakeBackend(fail_at={"build_program"}, build_log="line 2: error: unexpected token")
        with _ctx(backend) as ctx:
            with pytest.raises(BuildError) as excinfo:
                build_program(ctx, SOURCE, name="bad.cl")
            assert excinfo.value.log == "line 2: error: unexpected token"
            assert "Build log" in excinfo.value.describe()
            # log is queried only after the build attempt
            assert backend.calls["get_build_log"] == 1
            # the unbuilt program is released right away, exactly once
            assert ctx.live_objects == 0
        assert backend.leaked() == []
        assert backend.double_releases == []

    def test_log_query_failure_falls_back_to_build_message(self):
        backend = FakeBackend(fail_at={"build_program", "get_build_log"})
        with _ctx(backend) as ctx:
            with pytest.raises(BuildError) as excinfo:
                build_program(ctx, SOURCE)
        assert "injected failure in build_program" in excinfo.value.log

    def test_empty_log_falls_back_to_build_message(self):
        backend = FakeBackend(fail_at={"build_program"}, build_log="")
        with _ctx(backend) as ctx:
            with pytest.raises(BuildError) as excinfo:
                build_program(ctx, SOURCE)
        assert excinfo.value.log

    def test_create_program_failure(self):
        backend = FakeBackend(fail_at={"create_program"})
        with _ctx(backend) as ctx:
            with pytest.raises(BuildError):
                build_program(ctx, SOURCE)
        assert HandleKind.PROGRAM not in backend.released_kinds()
        assert backend.leaked() == []
