"""
Device memory for the shader and native-compute backends.

A `DeviceContext` owns render targets allocated with an array module (`xp`):
numpy emulates device memory on the host, cupy places it on the GPU. A render
target is a flat buffer backing a `texture_size` surface of RGBA pixels. Byte
targets hold each logical 32-bit float in the four 8-bit channels of one
pixel; float targets hold logical values as consecutive 32-bit floats.
Logical elements beyond `thread_dim` are padding.
"""

from logging import getLogger

import numpy

from ..errors import ArgumentError, ReadbackError
from ..system import build_config, get_array_module, synchronize, to_host
from ..utils import thread_dim

logger = getLogger(__name__)

FLOAT = "float"
UNSIGNED_BYTE = "unsigned_byte"

_shared_context = None


class Surface:
    """
    Stands in for a display canvas. Records the size of the last frame drawn.
    """

    def __init__(self, width=0, height=0):
        self.width = width
        self.height = height

    def resize(self, size):
        self.width, self.height = size
        return self

    def __repr__(self):
        return f"Surface({self.width}x{self.height})"


class Texture:
    """
    A kernel result left in device memory.
    """

    def __init__(self, context, buffer, texture_size, dimensions, float_output):
        self.context = context
        self.buffer = buffer
        self.texture_size = tuple(texture_size)
        self.dimensions = tuple(dimensions)
        self.thread_dim = thread_dim(dimensions)
        self.float_output = float_output

    @property
    def size(self):
        w, h, d = self.thread_dim
        return w * h * d

    @property
    def deleted(self):
        return self.buffer is None

    def to_array(self):
        return read_back(
            self.context,
            self,
            self.thread_dim,
            self.dimensions,
            self.float_output,
        )

    def delete(self):
        self.context.release(self)

    def __repr__(self):
        return (
            f"Texture(dimensions={self.dimensions}, "
            f"texture_size={self.texture_size}, float_output={self.float_output})"
        )


class DeviceContext:
    """
    Allocates, writes, decodes and reads back render targets.
    """

    def __init__(self, xp=None, max_texture_size=None, max_draw_buffers=None):
        self.xp = xp or get_array_module()
        self.max_texture_size = max_texture_size or build_config["max_texture_size"]
        self.max_draw_buffers = max_draw_buffers or build_config["max_draw_buffers"]
        self.live_targets = 0

    def create_target(self, texture_size, dimensions, float_output, channels=4):
        xp = self.xp
        w, h = texture_size

        if float_output:
            buffer = xp.zeros(w * h * channels, dtype=xp.float32)
        else:
            buffer = xp.zeros(w * h * 4, dtype=xp.uint8)

        self.live_targets += 1
        return Texture(self, buffer, texture_size, dimensions, float_output)

    def write_pixels(self, texture, values):
        """
        Store a flat sequence of logical values into a render target.
        """
        xp = self.xp
        values = xp.ascontiguousarray(values, dtype=xp.float32).ravel()

        if values.size != texture.size:
            raise ValueError(
                f"expect {texture.size} values for {texture}, got {values.size}"
            )
        if texture.float_output:
            texture.buffer[: values.size] = values
        else:
            texture.buffer[: 4 * values.size] = values.view(xp.uint8)

    def decode(self, texture):
        """
        Return the logical values of a render target as a flat float32 array
        which stays in device memory.
        """
        if texture.deleted:
            raise ArgumentError(f"{texture} has been deleted")
        if texture.float_output:
            return texture.buffer[: texture.size]
        else:
            return texture.buffer.view(self.xp.float32)[: texture.size]

    def read_pixels(self, texture, fmt):
        """
        Copy the whole backing buffer of a render target to host memory.

        `fmt` must match the storage of the target: `FLOAT` for float targets
        and `UNSIGNED_BYTE` for byte targets.
        """
        if texture.deleted:
            raise ReadbackError(f"{texture} has been deleted")
        if (fmt == FLOAT) != texture.float_output:
            raise ReadbackError(f"cannot read {texture} with format {fmt}")
        self.synchronize()
        return to_host(texture.buffer)

    def release(self, texture):
        if not texture.deleted:
            texture.buffer = None
            self.live_targets -= 1

    def synchronize(self):
        synchronize(self.xp)

    def __repr__(self):
        return f"DeviceContext({self.xp.__name__}, live_targets={self.live_targets})"


def shared_device_context():
    """
    Return the process-wide device context, created on first use.
    """
    global _shared_context

    if _shared_context is None:
        _shared_context = DeviceContext()
        logger.info(f"create shared device context on {_shared_context.xp.__name__}")
    return _shared_context


def read_back(context, texture, thread_dim, dimensions, float_output):
    """
    Read a render target back to the host and shape it like the kernel output.

    Float targets are read natively. Byte targets are read as raw 8-bit
    channels and the byte buffer is reinterpreted as 32-bit floats. The flat
    result is truncated to the logical element count, then split into rows
    of `dimensions[0]` elements, and for three axes into blocks of
    `dimensions[0] * dimensions[1]` elements.
    """
    if texture is None:
        raise ReadbackError("no render target to read, the kernel has not run")

    if float_output:
        result = context.read_pixels(texture, FLOAT)
    else:
        result = context.read_pixels(texture, UNSIGNED_BYTE).view(numpy.float32)

    w, h, d = thread_dim
    result = result[: w * h * d]

    if len(dimensions) == 1:
        return result
    elif len(dimensions) == 2:
        return result.reshape(-1, dimensions[0])
    elif len(dimensions) == 3:
        return result.reshape(-1, dimensions[1], dimensions[0])
