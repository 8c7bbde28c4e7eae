"""
Backend runners and kernels, one module per backend.
"""

from ..mode import CPU, OPENCL, WEBGL
from .cpu import CPUKernel, CPURunner
from .device import DeviceContext, Surface, Texture, shared_device_context
from .function_registry import FunctionRegistry
from .kernel_base import BaseKernel, KernelMapResult
from .opencl import OpenCLKernel, OpenCLRunner
from .runner_base import BaseRunner
from .webgl import WebGLKernel, WebGLRunner, WebGLValidatorKernel

RUNNERS = {
    CPU: CPURunner,
    WEBGL: WebGLRunner,
    OPENCL: OpenCLRunner,
}


def create_runner(resolution, canvas=None, device_context=None, function_registry=None):
    """
    Return a runner for a resolved mode. The validating kernel variant is
    substituted on the runner instance.
    """
    runner = RUNNERS[resolution.backend](
        canvas=canvas,
        device_context=device_context,
        function_registry=function_registry,
    )
    if resolution.validator:
        runner.Kernel = WebGLValidatorKernel
    return runner
