"""
Combines kernels into one callable that keeps intermediate results in device
memory and reads back once at the end.
"""

from logging import getLogger

from .backend.device import read_back
from .errors import ReadbackError

logger = getLogger(__name__)


class KernelChain:
    """
    Invokes a combined function over device-resident kernels, then reads the
    final kernel's render target back to the host.

    Every kernel shares the surface and device context of the first one, and
    writes its result to device memory; the combined function passes those
    results from kernel to kernel without host round trips.
    """

    def __init__(self, kernels, final_kernel, combined_fn):
        self.kernels = list(kernels)
        self.final_kernel = final_kernel
        self.combined_fn = combined_fn

        canvas = self.kernels[0].get_canvas()
        device_context = self.kernels[0].get_device_context()

        for kernel in self.kernels:
            kernel.set_canvas(canvas).set_device_context(device_context).set_output_to_device(True)

        logger.debug(f"chain {len(self.kernels)} kernels, final kernel {final_kernel.name}")

    def __call__(self, *args):
        kernel = self.final_kernel
        dispatches = kernel.dispatch_count
        self.combined_fn(*args)

        if kernel.dispatch_count == dispatches:
            raise ReadbackError(
                f"final kernel {kernel.name} was not run by the combined function"
            )
        return read_back(
            kernel.get_device_context(),
            kernel.texture,
            kernel.thread_dim,
            kernel.dimensions,
            kernel.float_output,
        )

    def release(self):
        for kernel in self.kernels:
            kernel.release()
