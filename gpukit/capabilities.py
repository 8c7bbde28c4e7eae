"""
Stateless probes reporting what the host can do.

None of these functions hold state between calls; each one reads the
environment and `build_config` afresh.
"""

from os import environ
from typing import NamedTuple

from .system import build_config, get_array_module


class Capabilities(NamedTuple):
    display_surface: bool
    shader: bool
    multi_target: bool


def is_display_surface_available() -> bool:
    """
    Return True if a display surface (a windowing system) is reachable.
    """
    setting = build_config["display_surface"]

    if setting == "present":
        return True
    if setting == "absent":
        return False
    return bool(environ.get("DISPLAY") or environ.get("WAYLAND_DISPLAY"))


def is_shader_supported() -> bool:
    """
    Return True if shader dispatch is possible with the configured array
    module.
    """
    if build_config["disable_shader"]:
        return False
    try:
        get_array_module()
        return True
    except ImportError:
        return False


def is_webgl_supported() -> bool:
    return is_display_surface_available() and is_shader_supported()


def is_multi_target_supported() -> bool:
    """
    Return True if one dispatch may write more than one render target.
    """
    return is_shader_supported() and not build_config["disable_multi_target"]


def probe() -> Capabilities:
    return Capabilities(
        display_surface=is_display_surface_available(),
        shader=is_shader_supported(),
        multi_target=is_multi_target_supported(),
    )
