import pytest

from gpukit import Capabilities
from gpukit.system import build_config


@pytest.fixture(autouse=True)
def restore_build_config():
    """Undo any `configure_build` calls made by a test."""
    saved = dict(build_config)
    yield
    build_config.clear()
    build_config.update(saved)


@pytest.fixture
def headless():
    return Capabilities(display_surface=False, shader=True, multi_target=True)


@pytest.fixture
def display():
    return Capabilities(display_surface=True, shader=True, multi_target=True)


@pytest.fixture(params=["webgl", "opencl", "webgl-validator"])
def device_mode(request):
    return request.param


@pytest.fixture(params=["cpu", "webgl", "opencl", "webgl-validator"])
def any_mode(request):
    return request.param
