"""
The shader backend. Results live in square RGBA surfaces, one pixel per
output element, padded up to the next square.
"""

from inspect import Parameter, signature
from logging import getLogger
from math import isfinite
from numbers import Number

import numpy

from ..errors import ArgumentError, KernelValidationError
from ..mode import WEBGL
from ..utils import dim_to_texture_size
from .device import Texture
from .device_kernel import DeviceKernel
from .runner_base import BaseRunner

logger = getLogger(__name__)


class WebGLKernel(DeviceKernel):
    mode = WEBGL

    @property
    def texture_size(self):
        return dim_to_texture_size(self.dimensions)

    def prepare(self):
        w, h = self.texture_size
        limit = self._device_context.max_texture_size

        if w > limit or h > limit:
            raise ArgumentError(
                f"texture size {w}x{h} of {self.name} exceeds the maximum of {limit}"
            )
        super().prepare()


def type_error(sym, n, a, b):
    return KernelValidationError(
        f"argument {n} to {sym} has type {type(a).__name__}, expected {b}"
    )


def arglen_error(sym, a, b):
    return KernelValidationError(f"{sym} takes exactly {b} arguments ({len(a)} given)")


def expected_argument_count(fn):
    """
    Return the number of arguments a kernel body takes after `this`, or None
    if it accepts any number.
    """
    try:
        params = list(signature(fn).parameters.values())
    except (TypeError, ValueError):
        return None
    if any(p.kind == Parameter.VAR_POSITIONAL for p in params):
        return None
    return len(params) - 1


class WebGLValidatorKernel(WebGLKernel):
    """
    A shader kernel that checks every argument strictly before dispatch.

    Arguments must be finite numbers, or numeric arrays of 1-3 axes holding
    only finite values, or live textures of this kernel's device context. The
    argument count must match the kernel body.
    """

    def validate_arguments(self, args):
        xp = self._device_context.xp
        expected = expected_argument_count(self.fn)

        if expected is not None and len(args) != expected:
            raise arglen_error(self.name, args, expected)

        for n, arg in enumerate(args):
            if isinstance(arg, Texture):
                if arg.deleted:
                    raise KernelValidationError(
                        f"argument {n} to {self.name} is a deleted texture"
                    )
                if arg.context is not self._device_context:
                    raise KernelValidationError(
                        f"argument {n} to {self.name} belongs to another device context"
                    )
            elif isinstance(arg, bool):
                raise type_error(self.name, n, arg, "number")
            elif isinstance(arg, Number):
                if not isfinite(arg):
                    raise KernelValidationError(
                        f"argument {n} to {self.name} is not finite: {arg}"
                    )
            else:
                try:
                    array = xp.asarray(arg)
                except (TypeError, ValueError):
                    raise type_error(self.name, n, arg, "array")
                if not numpy.issubdtype(array.dtype, numpy.number):
                    raise type_error(self.name, n, arg, "numeric array")
                if not 1 <= array.ndim <= 3:
                    raise KernelValidationError(
                        f"argument {n} to {self.name} has {array.ndim} axes, expected 1, 2, or 3"
                    )
                if not bool(xp.isfinite(array).all()):
                    raise KernelValidationError(
                        f"argument {n} to {self.name} has non-finite values"
                    )

    def run(self, *args):
        self.validate_arguments(args)
        logger.debug(f"validated {len(args)} arguments to {self.name}")
        return super().run(*args)


class WebGLRunner(BaseRunner):
    Kernel = WebGLKernel
    mode = WEBGL

    def supports_multi_target(self, count, capabilities):
        if count > 1 and not capabilities.multi_target:
            return False
        return count <= self.max_draw_buffers()
