import pytest
import taichi as ti

import context
from config import WORKGROUP_SIZE
from context import DeviceUnavailableError, GPUContext, create_context
from dynamics import central_field, frozen


def test_init_failure_is_fatal(monkeypatch):
    def broken_init(**kwargs):
        raise RuntimeError("driver missing")

    monkeypatch.setattr(ti, "init", broken_init)
    with pytest.raises(DeviceUnavailableError):
        create_context("vulkan")


def test_cpu_fallback_rejected_when_gpu_required(monkeypatch):
    monkeypatch.setattr(ti, "init", lambda **kwargs: None)
    monkeypatch.setattr(context, "_active_arch", lambda: ti.x64)
    with pytest.raises(DeviceUnavailableError):
        create_context("gpu", require_gpu=True)


def test_explicit_cpu_request_is_not_a_fallback(monkeypatch, capsys):
    monkeypatch.setattr(ti, "init", lambda **kwargs: None)
    monkeypatch.setattr(context, "_active_arch", lambda: ti.x64)
    ctx = create_context("cpu", require_gpu=True)
    assert ctx.arch == ti.x64
    assert "fell back" not in capsys.readouterr().out


def test_cpu_allowed_when_not_required(monkeypatch):
    monkeypatch.setattr(ti, "init", lambda **kwargs: None)
    monkeypatch.setattr(context, "_active_arch", lambda: ti.x64)
    ctx = create_context("gpu", require_gpu=False, kernel=frozen)
    assert ctx.arch == ti.x64
    assert ctx.kernel is frozen
    assert not ctx.is_gpu


def test_default_kernel_is_central_field(monkeypatch):
    monkeypatch.setattr(ti, "init", lambda **kwargs: None)
    monkeypatch.setattr(context, "_active_arch", lambda: ti.vulkan)
    ctx = create_context("vulkan")
    assert ctx.kernel is central_field
    assert ctx.is_gpu


def test_unknown_arch():
    with pytest.raises(KeyError):
        create_context("tpu")


def test_workgroups_follow_kernel_block_dim():
    ctx = GPUContext(ti.x64, frozen)
    assert ctx.workgroup_size == WORKGROUP_SIZE
    assert ctx.workgroups(100_000) == 391
    assert ctx.workgroups(WORKGROUP_SIZE + 1) == 2
    with pytest.raises(TypeError):
        GPUContext(ti.x64, frozen, workgroup_size=128)
