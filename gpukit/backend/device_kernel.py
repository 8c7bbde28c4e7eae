"""
Kernels dispatched to device memory.

Where the host backend calls the kernel body once per output index, a device
kernel calls it once for the whole index space: `this.thread.x`, `.y` and
`.z` are broadcastable index arrays of the device array module, so every
expression in the body is evaluated element-wise on the device. Bodies
should therefore use array functions (`numpy.sqrt` rather than
`math.sqrt`) and avoid branching on thread-dependent values.
"""

from logging import getLogger

from ..utils import output_shape
from .device import Surface, Texture, read_back, shared_device_context
from .kernel_base import BaseKernel, Thread

logger = getLogger(__name__)


class DeviceArgument:
    """
    A multi-axis array argument indexed one axis at a time, as in
    `a[this.thread.y][this.thread.x]`. The element lookup happens once all
    axes are given, so index arrays broadcast against one another.
    """

    def __init__(self, array, indices=()):
        self.array = array
        self.indices = indices

    @property
    def shape(self):
        return self.array.shape[len(self.indices) :]

    def __len__(self):
        return self.shape[0]

    def __getitem__(self, index):
        indices = self.indices + (index,)

        if len(indices) == self.array.ndim:
            return self.array[indices]
        return DeviceArgument(self.array, indices)


def thread_index(xp, dimensions):
    """
    Return a `Thread` of index arrays which broadcast to the output shape.
    Axes beyond the kernel rank are zero.
    """
    shape = output_shape(dimensions)
    rank = len(shape)

    def axis(n):
        if n >= rank:
            return 0
        s = [1] * rank
        s[rank - 1 - n] = dimensions[n]
        return xp.arange(dimensions[n]).reshape(s)

    return Thread(axis(0), axis(1), axis(2))


class DeviceKernel(BaseKernel):
    """
    Base class of the shader and native-compute kernels. Each kernel owns one
    render target for its result, plus one per sub-kernel.
    """

    channels = 4

    def __init__(self, fn, settings=None, runner=None, canvas=None, device_context=None):
        super().__init__(fn, settings, runner=runner, canvas=canvas, device_context=device_context)
        self._device_context = self._device_context or shared_device_context()
        self._canvas = self._canvas or Surface()
        self.texture = None
        self.sub_textures = dict()
        self.dispatch_count = 0

    def array_module(self):
        return self._device_context.xp

    def prepare(self):
        context = self._device_context
        self.texture = context.create_target(
            self.texture_size, self.dimensions, self.float_output, self.channels
        )
        self.sub_textures = {
            s.key: context.create_target(
                self.texture_size, self.dimensions, self.float_output, self.channels
            )
            for s in self.sub_kernels
        }
        self._canvas.resize(self.texture_size)

    def release(self):
        if self.texture is not None:
            self.texture.delete()
        for texture in self.sub_textures.values():
            texture.delete()
        self.texture = None
        self.sub_textures = dict()
        super().release()

    def device_argument(self, arg):
        xp = self._device_context.xp

        if isinstance(arg, Texture):
            if arg.context is self._device_context:
                array = self._device_context.decode(arg)
            else:
                logger.debug(f"copy {arg} from another device context through the host")
                array = xp.asarray(arg.to_array())
            array = array.reshape(output_shape(arg.dimensions))
        elif isinstance(arg, (int, float)):
            return arg
        else:
            array = xp.asarray(arg, dtype=xp.float32)

        if array.ndim > 1:
            return DeviceArgument(array)
        return array

    def record_sub_result(self, key, value):
        self._pending[key] = value

    def fill(self, value):
        xp = self._device_context.xp
        value = xp.asarray(value, dtype=xp.float32)
        return xp.broadcast_to(value, output_shape(self.dimensions))

    def run(self, *args):
        context = self._device_context
        xp = context.xp
        args = [self.device_argument(a) for a in args]
        self._pending = dict()
        self._context.thread = thread_index(xp, self.dimensions)

        value = self._bound_fn(self._context, *args)
        context.write_pixels(self.texture, self.fill(value))

        for s in self.sub_kernels:
            context.write_pixels(self.sub_textures[s.key], self.fill(self._pending.get(s.key, 0.0)))

        context.synchronize()
        self.dispatch_count += 1

        if self.output_to_device:
            return self.texture, dict(self.sub_textures)
        else:
            return self.read(self.texture), {k: self.read(t) for k, t in self.sub_textures.items()}

    def read(self, texture):
        return read_back(
            self._device_context,
            texture,
            self.thread_dim,
            self.dimensions,
            self.float_output,
        )

