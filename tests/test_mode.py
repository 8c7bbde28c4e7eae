import logging

import pytest

from gpukit import GPU, Capabilities, ConfigurationError
from gpukit.backend import CPUKernel, OpenCLKernel, WebGLKernel, WebGLValidatorKernel
from gpukit.mode import CPU, OPENCL, WEBGL, Resolution, resolve_mode


@pytest.mark.parametrize(
    "request_mode, surface, expected",
    [
        ("cpu", False, Resolution(CPU)),
        ("cpu", True, Resolution(CPU)),
        ("gpu", False, Resolution(OPENCL)),
        ("gpu", True, Resolution(WEBGL)),
        ("opencl", False, Resolution(OPENCL)),
        ("opencl", True, Resolution(OPENCL)),
        ("webgl", False, Resolution(WEBGL)),
        ("webgl", True, Resolution(WEBGL)),
        ("webgl-validator", False, Resolution(WEBGL, validator=True)),
        ("webgl-validator", True, Resolution(WEBGL, validator=True)),
    ],
)
def test_resolve_mode_table(request_mode, surface, expected):
    caps = Capabilities(display_surface=surface, shader=True, multi_target=True)
    assert resolve_mode(request_mode, caps) == expected


def test_resolve_mode_is_case_insensitive(headless):
    assert resolve_mode("OpenCL", headless) == Resolution(OPENCL)


def test_resolve_mode_default_is_webgl(headless):
    assert resolve_mode(None, headless) == Resolution(WEBGL)
    assert resolve_mode("", headless) == Resolution(WEBGL)


def test_unknown_mode_raises():
    with pytest.raises(ConfigurationError, match='"quantum" mode is not defined'):
        GPU(mode="quantum")


@pytest.mark.parametrize("request_mode", ["gpu", "opencl", "webgl", "webgl-validator"])
def test_surface_without_shader_falls_back_to_cpu(request_mode, caplog):
    caps = Capabilities(display_surface=True, shader=False, multi_target=False)

    with caplog.at_level(logging.WARNING):
        resolution = resolve_mode(request_mode, caps)

    assert resolution == Resolution(CPU)
    assert "falling back to cpu support" in caplog.text


def test_no_surface_without_shader_keeps_request():
    caps = Capabilities(display_surface=False, shader=False, multi_target=False)
    assert resolve_mode("gpu", caps) == Resolution(OPENCL)


@pytest.mark.parametrize(
    "request_mode, kernel_type, reported",
    [
        ("cpu", CPUKernel, "cpu"),
        ("gpu", OpenCLKernel, "opencl"),
        ("opencl", OpenCLKernel, "opencl"),
        ("webgl", WebGLKernel, "webgl"),
        ("webgl-validator", WebGLValidatorKernel, "webgl"),
    ],
)
def test_gpu_builds_kernels_of_resolved_backend(request_mode, kernel_type, reported, headless):
    gpu = GPU(mode=request_mode, capabilities=headless)
    kernel = gpu.create_kernel(lambda this: this.thread.x, dimensions=[4])

    assert gpu.get_mode() == reported
    assert kernel.get_mode() == gpu.get_mode()
    assert type(kernel) is kernel_type


def test_settings_mapping_and_keywords_merge(headless):
    gpu = GPU(dict(mode="webgl"), capabilities=headless, mode="cpu")
    assert gpu.get_mode() == "cpu"


def test_bad_gpu_settings_raise(headless):
    with pytest.raises(ConfigurationError):
        GPU(mode="cpu", capabilities=headless, frobnicate=True)
    with pytest.raises(ConfigurationError):
        GPU(["cpu"], capabilities=headless)
