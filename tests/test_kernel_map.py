import logging

import numpy as np
import pytest

from gpukit import GPU, ArgumentError, Capabilities, KernelMapResult, configure_build

a = np.array([1.0, 2.0, 3.0, 4.0])
b = np.array([4.0, 3.0, 2.0, 1.0])


def add(this, a, b):
    return a[this.thread.x] + b[this.thread.x]


def multiply(this, a, b):
    return a[this.thread.x] * b[this.thread.x]


def total(this, a, b):
    return add(a, b) + multiply(a, b)


def test_named_sub_kernels(any_mode, headless):
    gpu = GPU(mode=any_mode, capabilities=headless)
    mega = gpu.create_kernel_map(dict(sum=add, product=multiply), dict(dimensions=[4]), total)
    out = mega(a, b)

    assert isinstance(out, KernelMapResult)
    assert gpu.get_mode() == mega.get_mode()
    assert np.allclose(out.result, (a + b) + (a * b))
    assert np.allclose(out["sum"], a + b)
    assert np.allclose(out["product"], a * b)
    assert set(out) == {"sum", "product"}


def test_positional_sub_kernels(any_mode, headless):
    gpu = GPU(mode=any_mode, capabilities=headless)
    mega = gpu.create_kernel_map([add, multiply], dict(dimensions=[4]), total)
    out = mega(a, b)

    assert len(out) == 2
    assert np.allclose(out[0], a + b)
    assert np.allclose(out[1], a * b)
    assert mega.sub_kernel_results is out


def test_settings_may_be_omitted(headless):
    gpu = GPU(mode="cpu", capabilities=headless)
    mega = gpu.create_kernel_map([add], lambda this, a, b: add(a, b) * 2)

    assert mega.dimensions == (1024,)
    out = mega(np.ones(1024), np.ones(1024))
    assert np.allclose(out.result, 4)
    assert np.allclose(out[0], 2)


def test_sub_kernel_in_closure(device_mode, headless):
    def double(this, v):
        return v[this.thread.x] * 2

    gpu = GPU(mode=device_mode, capabilities=headless)
    mega = gpu.create_kernel_map(dict(doubled=double), dict(dimensions=[4]), lambda this, v: double(v) + 1)
    out = mega(a)

    assert np.allclose(out["doubled"], 2 * a)
    assert np.allclose(out.result, 2 * a + 1)


@pytest.mark.parametrize(
    "sub_kernels",
    [
        add,
        "add",
        [add, 42],
        dict(sum=None),
        [lambda this, a, b: a[this.thread.x]],
    ],
)
def test_malformed_sub_kernels_raise(sub_kernels, headless):
    gpu = GPU(mode="webgl", capabilities=headless)

    with pytest.raises(ArgumentError):
        gpu.create_kernel_map(sub_kernels, dict(dimensions=[4]), total)


def test_duplicate_sub_kernel_name_raises(headless):
    gpu = GPU(mode="cpu", capabilities=headless)
    mega = gpu.create_kernel_map(dict(sum=add), dict(dimensions=[4]), total)

    with pytest.raises(ArgumentError, match="duplicate"):
        mega.add_sub_kernel_property("sum", multiply)


def test_falls_back_without_multi_target(caplog):
    caps = Capabilities(display_surface=False, shader=True, multi_target=False)
    gpu = GPU(mode="webgl", capabilities=caps)

    with caplog.at_level(logging.WARNING):
        mega = gpu.create_kernel_map(dict(sum=add, product=multiply), dict(dimensions=[4]), total)

    assert "falling back to cpu support" in caplog.text
    assert gpu.get_mode() == "cpu"
    assert mega.get_mode() == "cpu"
    assert np.allclose(mega(a, b)["product"], a * b)


@pytest.mark.parametrize("mode", ["webgl", "opencl"])
def test_falls_back_with_too_many_targets(mode, headless):
    configure_build(max_draw_buffers=2)
    gpu = GPU(mode=mode, capabilities=headless)
    mega = gpu.create_kernel_map([add, multiply], dict(dimensions=[4]), total)

    assert gpu.get_mode() == "cpu"
    assert np.allclose(mega(a, b).result, (a + b) + (a * b))


def test_fallback_keeps_registered_functions(headless):
    def square(x):
        return x * x

    caps = headless._replace(multi_target=False)
    gpu = GPU(mode="webgl", capabilities=caps).add_function(square)
    mega = gpu.create_kernel_map([add], dict(dimensions=[4]), lambda this, a, b: square(add(a, b)))

    assert np.allclose(mega(a, b).result, (a + b) ** 2)


def test_device_map_releases_all_targets(headless):
    gpu = GPU(mode="webgl", capabilities=headless)
    mega = gpu.create_kernel_map([add, multiply], dict(dimensions=[4]), total)
    mega(a, b)
    context = mega.get_device_context()
    live = context.live_targets

    mega.release()
    assert context.live_targets == live - 3
