"""
Resolves a requested execution mode into a concrete backend.
"""

from logging import getLogger
from typing import NamedTuple

from .errors import ConfigurationError

logger = getLogger(__name__)

CPU = "cpu"
WEBGL = "webgl"
OPENCL = "opencl"

DEFAULT_MODE = "webgl"
REQUEST_MODES = ("cpu", "gpu", "opencl", "webgl", "webgl-validator")


class Resolution(NamedTuple):
    backend: str
    validator: bool = False


def resolve_mode(mode, capabilities) -> Resolution:
    """
    Return the backend serving a requested mode, given probed capabilities.

    The request is case-insensitive; `None` or an empty string request the
    default mode. A `gpu` request is served by the shader backend when a
    display surface exists and by the native-compute backend otherwise. If a
    display surface exists but cannot run shaders, every GPU request falls
    back to the host backend with a warning.
    """
    request = (mode or DEFAULT_MODE).lower()

    if request not in REQUEST_MODES:
        raise ConfigurationError(f'"{mode}" mode is not defined')

    if request != CPU and capabilities.display_surface and not capabilities.shader:
        logger.warning("gpu not supported, falling back to cpu support")
        return Resolution(CPU)

    if request == "cpu":
        return Resolution(CPU)
    elif request == "gpu":
        return Resolution(WEBGL if capabilities.display_surface else OPENCL)
    elif request == "opencl":
        return Resolution(OPENCL)
    elif request == "webgl":
        return Resolution(WEBGL)
    else:
        return Resolution(WEBGL, validator=True)
