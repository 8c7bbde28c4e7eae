"""
Functions for querying compute capabilities and configuring the library.
"""

import contextlib
import logging
import multiprocessing
import time

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


build_config = {
    "array_module": "numpy",
    "disable_shader": False,
    "disable_multi_target": False,
    "display_surface": "auto",
    "max_draw_buffers": 4,
    "max_texture_size": 4096,
}


def configure_build(
    array_module=None,
    disable_shader=None,
    disable_multi_target=None,
    display_surface=None,
    max_draw_buffers=None,
    max_texture_size=None,
):
    """
    Update the `build_config` module-level variable.

    Calls to this function affect shared module state, so should be made from
    conspicuous / obvious locations of the user application. The keyword
    arguments may be Python objects, or strings to facilitate passing values
    right from a configparser instance.
    """

    def to_bool(key, value):
        if type(value) is str:
            try:
                return {"true": True, "false": False}[value.strip().lower()]
            except KeyError:
                raise ConfigurationError(f"{key} must be True or False, got {value}")
        return bool(value)

    def to_int(key, value):
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{key} must be an integer, got {value}")
        if value < 1:
            raise ConfigurationError(f"{key} must be positive, got {value}")
        return value

    if array_module is not None:
        if array_module not in ("numpy", "cupy"):
            raise ConfigurationError(
                f"unknown array module {array_module}, must be [numpy|cupy]"
            )
        build_config["array_module"] = array_module

    if disable_shader is not None:
        build_config["disable_shader"] = to_bool("disable_shader", disable_shader)

    if disable_multi_target is not None:
        build_config["disable_multi_target"] = to_bool(
            "disable_multi_target", disable_multi_target
        )

    if display_surface is not None:
        if display_surface not in ("auto", "present", "absent"):
            raise ConfigurationError(
                f"display_surface must be [auto|present|absent], got {display_surface}"
            )
        build_config["display_surface"] = display_surface

    if max_draw_buffers is not None:
        build_config["max_draw_buffers"] = to_int("max_draw_buffers", max_draw_buffers)

    if max_texture_size is not None:
        build_config["max_texture_size"] = to_int("max_texture_size", max_texture_size)

    for key, value in build_config.items():
        logger.debug(f"{key}={value}")


def load_user_config(path=".gpukit"):
    """
    Apply the `[build]` section of a user config file to `build_config`.

    The file is read from the current working directory by default. A missing
    file is not an error; a malformed one raises `ConfigurationError`.
    """
    from configparser import ConfigParser, Error

    config = ConfigParser()

    try:
        config.read(path)
    except Error as e:
        raise ConfigurationError(e)

    if config.has_section("build"):
        try:
            configure_build(**dict(config["build"].items()))
        except TypeError as e:
            raise ConfigurationError(f"bad [build] section in {path}: {e}")
        logger.info(f"load user config {path}")


def get_array_module(name=None):
    """
    Return either the numpy or cupy module.

    If `name` is None the module named by `build_config["array_module"]` is
    returned. The `cupy` documentation recommends assigning whichever module
    is returned to a variable called `xp`, and using that variable to access
    functions that are common to both, for example use :code:`xp.zeros(100)`.
    This pattern facilitates writing CPU-GPU agnostic code.
    """
    name = name or build_config["array_module"]

    if name == "numpy":
        import numpy

        return numpy
    elif name == "cupy":
        import cupy

        return cupy
    else:
        raise ConfigurationError(f"unknown array module {name}, must be [numpy|cupy]")


def synchronize(xp):
    """
    Block until all work queued on the device of the array module is done.
    """
    if xp.__name__ == "cupy":
        from cupy.cuda.runtime import deviceSynchronize

        deviceSynchronize()


def to_host(array):
    """
    Return a host (numpy) copy of a numpy or cupy array.
    """
    try:
        return array.get()
    except AttributeError:
        return array.copy()


def log_system_info(xp=None):
    """
    Log relevant details of the system's compute capabilities.
    """
    xp = xp or get_array_module()

    if xp.__name__ == "cupy":
        from cupy.cuda.runtime import getDeviceCount, getDeviceProperties

        num_devices = getDeviceCount()
        gpu_devices = ":".join(
            [getDeviceProperties(i)["name"].decode("utf-8") for i in range(num_devices)]
        )
        logger.info(f"gpu devices: {num_devices}x {gpu_devices}")
    logger.info(f"compute cores: {multiprocessing.cpu_count()}")


@contextlib.contextmanager
def measure_time(xp=None):
    """
    A context manager to measure the execution time of a piece of code.

    Example:

    .. code-block:: python

        with measure_time() as duration:
            expensive_function()
        print(f"execution took {duration()} seconds")
    """
    try:
        start = time.perf_counter()
        yield lambda: time.perf_counter() - start
    finally:
        if xp is not None:
            synchronize(xp)


def init_logging(rich=False, level=logging.INFO):
    """
    Convenience method to enable logging to standard output.

    When gpukit is used as a library, logging is not enabled by default
    (Python's `logging` module recommends that libraries should not install
    any event handlers on the root logger). Invoking this function installs a
    sensible configuration. If `rich=True`, messages are rendered by a
    `rich.logging.RichHandler`.
    """
    from sys import stdout

    if rich:
        from rich.logging import RichHandler

        handler = RichHandler(omit_repeated_times=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:

        class RunFormatter(logging.Formatter):
            def format(self, record):
                name = record.name.replace("gpukit.", "")

                if record.levelno <= 20:
                    return f"[{name}] {record.getMessage()}"
                else:
                    return f"[{name}:{record.levelname.lower()}] {record.getMessage()}"

        handler = logging.StreamHandler(stdout)
        handler.setFormatter(RunFormatter())

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return handler
