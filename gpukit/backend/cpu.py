"""
The host-evaluated backend: kernel bodies run in Python, once per output
index, writing into numpy arrays.
"""

import numpy

from ..mode import CPU
from ..utils import output_shape
from .device import Texture
from .kernel_base import BaseKernel, Thread
from .runner_base import BaseRunner


def to_host_argument(arg):
    if isinstance(arg, Texture):
        return arg.to_array()
    if isinstance(arg, (list, tuple)):
        return numpy.asarray(arg)
    return arg


class CPUKernel(BaseKernel):
    """
    Evaluates the kernel body for every output index in turn. The result has
    shape `(w,)`, `(h, w)` or `(d, h, w)`, so that x varies fastest.
    Device-resident output does not apply; results are always host arrays.
    """

    mode = CPU

    def record_sub_result(self, key, value):
        self._pending[key][self._index] = value

    def run(self, *args):
        args = [to_host_argument(a) for a in args]
        shape = output_shape(self.dimensions)
        rank = len(shape)
        w, h, d = self.thread_dim
        context = self._context
        result = numpy.zeros(shape, dtype=numpy.float32)
        self._pending = {s.key: numpy.zeros(shape, dtype=numpy.float32) for s in self.sub_kernels}

        for z in range(d):
            for y in range(h):
                for x in range(w):
                    context.thread = Thread(x, y, z)
                    self._index = (z, y, x)[3 - rank :]
                    result[self._index] = self._bound_fn(context, *args)

        return result, self._pending


class CPURunner(BaseRunner):
    Kernel = CPUKernel
    mode = CPU
