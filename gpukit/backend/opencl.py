"""
The native-compute backend. Results live in flat device buffers with no
surface padding.
"""

from ..mode import OPENCL
from .device_kernel import DeviceKernel
from .runner_base import BaseRunner


class OpenCLKernel(DeviceKernel):
    mode = OPENCL
    channels = 1

    @property
    def texture_size(self):
        w, h, d = self.thread_dim
        return (w * h * d, 1)


class OpenCLRunner(BaseRunner):
    Kernel = OpenCLKernel
    mode = OPENCL

    def supports_multi_target(self, count, capabilities):
        return count <= self.max_draw_buffers()
