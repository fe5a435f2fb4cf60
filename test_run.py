import os

import numpy as np
import pytest
import taichi as ti
from PIL import Image

import context
import readback
import run
from config import MODE_BASELINE, MODE_DILATED, TYPE_A, TYPE_B
from context import DeviceUnavailableError
from projector import render
from run import frame_filename, run_comparison, run_pass
from store import seed_records


def _load_png(path):
    with Image.open(path) as img:
        return np.asarray(img).copy()


def _four_particles(make_records):
    rows = [
        ((0.0, 0.0, 0.0), TYPE_A, 0.0),          # → (512, 512)
        ((101.0, -51.0, 0.0), TYPE_B, 0.0),      # → (592, 471)
        ((0.0, 0.0, -995.0), TYPE_A, 0.0),       # depth 5: culled
        ((5000.0, 0.0, 0.0), TYPE_B, 0.0),       # projects far right of the image
    ]
    return lambda n, rng: make_records(rows)


def test_frame_filename():
    assert frame_filename(MODE_BASELINE, 0) == "newton_000.png"
    assert frame_filename(MODE_BASELINE, 7) == "newton_007.png"
    assert frame_filename(MODE_DILATED, 149) == "chrono_149.png"


@pytest.mark.parametrize("mode, color_a, color_b", [
    (MODE_BASELINE, (200, 150, 0), (0, 150, 255)),
    (MODE_DILATED, (250, 150, 0), (50, 150, 255)),
])
def test_four_particle_pass(frozen_ctx, make_records, tmp_path, mode, color_a, color_b):
    report = run_pass(frozen_ctx, mode, 4, frames=1, steps=1, out_dir=str(tmp_path),
                      rng=np.random.default_rng(0), seeder=_four_particles(make_records))

    assert report.written == [os.path.join(str(tmp_path), frame_filename(mode, 0))]
    img = _load_png(report.written[0])
    assert img.shape == (1024, 1024, 3)
    assert np.count_nonzero(img.any(axis=2)) == 2
    assert tuple(img[512, 512]) == color_a
    assert tuple(img[471, 592]) == color_b


def test_zero_steps_matches_direct_projection(ctx, tmp_path):
    report = run_pass(ctx, MODE_BASELINE, 500, frames=1, steps=0, out_dir=str(tmp_path),
                      rng=np.random.default_rng(7))

    expected = render(seed_records(500, np.random.default_rng(7)), MODE_BASELINE)
    np.testing.assert_array_equal(_load_png(report.written[0]), expected)


def test_failed_readback_drops_only_that_frame(ctx, tmp_path, monkeypatch):
    real_download = readback.download
    calls = []

    def flaky(particles, dst):
        calls.append(1)
        if len(calls) == 2:
            raise RuntimeError("map failed")
        real_download(particles, dst)

    monkeypatch.setattr(readback, "download", flaky)
    report = run_pass(ctx, MODE_DILATED, 64, frames=3, steps=1, out_dir=str(tmp_path),
                      rng=np.random.default_rng(0))

    assert report.skipped == [1]
    assert sorted(os.listdir(tmp_path)) == ["chrono_000.png", "chrono_002.png"]
    assert len(report.frame_ms) == 2


def test_negative_frames_rejected(ctx, tmp_path):
    with pytest.raises(ValueError):
        run_pass(ctx, MODE_BASELINE, 4, frames=-1, steps=1, out_dir=str(tmp_path),
                 rng=np.random.default_rng(0))


def test_comparison_writes_both_passes(ctx, tmp_path):
    reports = run_comparison(ctx, n=200, frames=2, steps=1, out_dir=str(tmp_path), seed=3)

    assert [r.mode for r in reports] == [MODE_BASELINE, MODE_DILATED]
    assert sorted(os.listdir(tmp_path)) == [
        "chrono_000.png", "chrono_001.png", "newton_000.png", "newton_001.png",
    ]


def test_shared_seed_gives_identical_start(ctx, tmp_path):
    # no steps → nothing active → both modes draw the same initial state
    run_comparison(ctx, n=300, frames=1, steps=0, out_dir=str(tmp_path), seed=9)
    np.testing.assert_array_equal(_load_png(tmp_path / "newton_000.png"),
                                  _load_png(tmp_path / "chrono_000.png"))


def test_independent_seeds_differ(ctx, tmp_path):
    run_comparison(ctx, n=300, frames=1, steps=0, out_dir=str(tmp_path), seed=9,
                   independent_seeds=True)
    assert not np.array_equal(_load_png(tmp_path / "newton_000.png"),
                              _load_png(tmp_path / "chrono_000.png"))


def test_main_fatal_without_device(monkeypatch, tmp_path):
    def no_device(*args, **kwargs):
        raise DeviceUnavailableError("No GPU")

    monkeypatch.setattr(run, "create_context", no_device)
    monkeypatch.setattr(run, "run_comparison", lambda *a, **k: pytest.fail("pass ran"))
    assert run.main(["--out", str(tmp_path)]) == 1
    assert os.listdir(tmp_path) == []


def test_main_runs_both_passes(frozen_ctx, monkeypatch, tmp_path):
    monkeypatch.setattr(run, "create_context", lambda *a, **k: frozen_ctx)
    code = run.main(["--particles", "50", "--frames", "2", "--steps", "1",
                     "--kernel", "frozen", "--out", str(tmp_path)])
    assert code == 0
    assert len(os.listdir(tmp_path)) == 4


def test_main_accepts_explicit_cpu_arch(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(ti, "init", lambda **kwargs: None)
    monkeypatch.setattr(context, "_active_arch", lambda: ti.x64)
    seen = []
    monkeypatch.setattr(run, "run_comparison", lambda ctx, **kwargs: seen.append(ctx))

    assert run.main(["--arch", "cpu", "--out", str(tmp_path)]) == 0
    assert seen[0].arch == ti.x64
    assert "[Fatal]" not in capsys.readouterr().out


def test_pass_releases_its_store(ctx, tmp_path):
    run_pass(ctx, MODE_BASELINE, 32, frames=1, steps=1, out_dir=str(tmp_path),
             rng=np.random.default_rng(0))
    assert ctx.live_trees == []


def test_store_released_when_pass_fails(ctx, tmp_path, monkeypatch):
    def broken_render(*args, **kwargs):
        raise MemoryError("out of host memory")

    monkeypatch.setattr(run, "render", broken_render)
    with pytest.raises(MemoryError):
        run_pass(ctx, MODE_BASELINE, 32, frames=1, steps=1, out_dir=str(tmp_path),
                 rng=np.random.default_rng(0))
    assert ctx.live_trees == []
