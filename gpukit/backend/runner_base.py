"""
The capability interface every backend runner provides.
"""

from logging import getLogger

from ..system import build_config
from .function_registry import FunctionRegistry

logger = getLogger(__name__)


class BaseRunner:
    """
    Owns one backend's device context and surface, plus the function
    registry shared by every kernel it builds.

    The `Kernel` attribute names the kernel class the runner builds; it may
    be replaced on an instance to substitute a kernel variant.
    """

    Kernel = None
    mode = None

    def __init__(self, canvas=None, device_context=None, function_registry=None):
        self.canvas = canvas
        self.device_context = device_context
        self.function_registry = function_registry or FunctionRegistry()

    def build_kernel(self, fn, settings):
        kernel = self.Kernel(
            fn,
            settings,
            runner=self,
            canvas=self.canvas,
            device_context=self.device_context,
        )
        logger.debug(f"create {kernel!r}")
        return kernel

    def get_mode(self):
        return self.mode

    def max_draw_buffers(self):
        if self.device_context is not None:
            return self.device_context.max_draw_buffers
        return build_config["max_draw_buffers"]

    def supports_multi_target(self, count, capabilities):
        """
        Return True if one dispatch can write `count` render targets.
        """
        return True

    def __repr__(self):
        return f"<{type(self).__name__} mode={self.mode}>"
