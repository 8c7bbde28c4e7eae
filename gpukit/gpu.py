"""
The `GPU` facade: selects a backend, builds kernels, and composes them into
kernel maps and kernel chains.
"""

from collections.abc import Mapping
from logging import getLogger

from . import capabilities
from .backend import BaseKernel, CPURunner, create_runner
from .chain import KernelChain
from .errors import ArgumentError, ConfigurationError
from .mode import CPU, resolve_mode
from .settings import gpu_settings
from .utils import is_function

logger = getLogger(__name__)


class GPU:
    """
    Manages the device context of the kernels it creates.

    Construction takes a settings mapping, keyword arguments, or both:

    .. code-block:: python

        gpu = GPU(mode="gpu")
        add = gpu.create_kernel(lambda this, a, b: a[this.thread.x] + b[this.thread.x],
                                dimensions=[4])
        add([1, 2, 3, 4], [4, 3, 2, 1])

    The requested `mode` is one of cpu, gpu, opencl, webgl or webgl-validator.
    The backend actually in use is reported by `get_mode()`; it differs from
    the request when capabilities force a fallback to the host.
    """

    def __init__(self, settings=None, capabilities=None, **kwargs):
        if settings is not None and not isinstance(settings, Mapping):
            raise ConfigurationError(f"GPU settings must be a mapping, got {settings!r}")

        settings = gpu_settings({**(settings or {}), **kwargs})

        self._canvas = settings.canvas
        self._device_context = settings.device_context
        self._capabilities = capabilities or probe()
        self.kernels = list()

        resolution = resolve_mode(settings.mode, self._capabilities)
        self._runner = create_runner(
            resolution,
            canvas=self._canvas,
            device_context=self._device_context,
        )
        logger.info(
            f"requested mode {settings.mode}, using {self.get_mode()} backend"
            f"{' with validation' if resolution.validator else ''}"
        )

    def create_kernel(self, fn, settings=None, **kwargs):
        """
        Return a callable kernel evaluating `fn` over an index space.

        Recognized settings are `dimensions` (1-3 axis lengths, default
        [1024]), `output_to_device` and `float_output`; other settings are
        passed through to the kernel untouched.
        """
        if fn is None:
            raise ArgumentError("missing fn parameter")
        if not is_function(fn):
            raise ArgumentError("fn parameter not a function")
        if settings is not None and not isinstance(settings, Mapping):
            raise ArgumentError(f"kernel settings must be a mapping, got {settings!r}")

        kernel = self._runner.build_kernel(fn, {**(settings or {}), **kwargs})

        # if the surface didn't come from this, propagate from the kernel
        if self._canvas is None:
            self._canvas = kernel.get_canvas()
        if self._device_context is None:
            self._device_context = kernel.get_device_context()
        if self._runner.canvas is None:
            self._runner.canvas = kernel.get_canvas()
        if self._runner.device_context is None:
            self._runner.device_context = kernel.get_device_context()

        self.kernels.append(kernel)
        return kernel

    def create_kernel_map(self, sub_kernels, settings=None, root_fn=None):
        """
        Return a kernel computing a root function and its sub-kernels in one
        dispatch.

        `sub_kernels` is a list of functions, whose results are then keyed by
        position, or a mapping of result names to functions. The root
        function calls the sub-kernels by their function names. Settings are
        optional and precede the root function:

        .. code-block:: python

            def add(this, a, b):
                return a[this.thread.x] + b[this.thread.x]

            def multiply(this, a, b):
                return a[this.thread.x] * b[this.thread.x]

            mega = gpu.create_kernel_map(
                {"sum": add, "product": multiply},
                dict(dimensions=[4]),
                lambda this, a, b: add(a, b) + multiply(a, b),
            )
            out = mega(a, b)
            out.result, out["sum"], out["product"]

        If the backend cannot write every result in one dispatch it is
        replaced by the host backend; check `get_mode()` afterwards.
        """
        if root_fn is None and is_function(settings):
            settings, root_fn = None, settings

        if isinstance(sub_kernels, Mapping):
            specs = list(sub_kernels.items())
        elif isinstance(sub_kernels, (list, tuple)):
            specs = list(enumerate(sub_kernels))
        else:
            raise ArgumentError(
                f"sub-kernels must be a list or a mapping of functions, "
                f"got {type(sub_kernels).__name__}"
            )

        for key, fn in specs:
            if not is_function(fn):
                raise ArgumentError(f"sub-kernel {key} is not a function")
            if not getattr(fn, "__name__", "").isidentifier():
                raise ArgumentError(f"sub-kernel {key} must be a named function")

        if not self._runner.supports_multi_target(1 + len(specs), self._capabilities):
            logger.warning(
                f"{self.get_mode()} backend cannot write {1 + len(specs)} targets "
                "in one dispatch, falling back to cpu support"
            )
            self._runner = CPURunner(
                canvas=self._canvas,
                device_context=self._device_context,
                function_registry=self._runner.function_registry,
            )

        kernel = self.create_kernel(root_fn, settings)

        if isinstance(sub_kernels, Mapping):
            for name, fn in specs:
                kernel.add_sub_kernel_property(name, fn)
        else:
            for _, fn in specs:
                kernel.add_sub_kernel(fn)

        return kernel

    def combine_kernels(self, kernels, combined_fn, final_index=-1):
        """
        Combine kernels into one callable, avoiding host round trips between
        them.

        `combined_fn` expresses the computation by calling the kernels, and
        `kernels[final_index]` is the kernel whose result is returned:

        .. code-block:: python

            run = gpu.combine_kernels(
                [add, multiply],
                lambda a, b, c: multiply(add(a, b), c),
            )

        In cpu mode `combined_fn` itself is returned. Otherwise every kernel,
        the final one included, is switched to device-resident output: called
        on its own afterwards, each returns a `Texture` until
        `set_output_to_device(False)`. The chain raises `ReadbackError` if
        `combined_fn` does not run the final kernel.
        """
        try:
            kernels = list(kernels)
        except TypeError:
            raise ArgumentError(f"expect a sequence of kernels, got {kernels!r}")

        if len(kernels) < 2:
            raise ArgumentError(f"expect at least two kernels to combine, got {len(kernels)}")
        for n, kernel in enumerate(kernels):
            if not isinstance(kernel, BaseKernel):
                raise ArgumentError(f"element {n} of the chain is not a kernel: {kernel!r}")
        if not is_function(combined_fn):
            raise ArgumentError("combined_fn parameter not a function")
        if not isinstance(final_index, int) or not -len(kernels) <= final_index < len(kernels):
            raise ArgumentError(f"final index {final_index} out of range for {len(kernels)} kernels")

        if self.get_mode() == CPU:
            return combined_fn

        for n, kernel in enumerate(kernels):
            if kernel.get_mode() == CPU:
                raise ArgumentError(
                    f"element {n} of the chain is a cpu kernel and cannot stay on the device"
                )

        return KernelChain(kernels, kernels[final_index], combined_fn)

    def add_function(self, fn, param_types=None, return_type=None):
        """
        Make `fn` callable by name from kernels built afterwards. Parameter
        types default to Number, as does the return type.
        """
        self._runner.function_registry.add_function(None, fn, param_types, return_type)
        return self

    def get_mode(self):
        return self._runner.get_mode()

    @staticmethod
    def is_webgl_supported():
        return capabilities.is_webgl_supported()

    def get_canvas(self):
        return self._canvas

    def get_device_context(self):
        return self._device_context

    def destroy(self):
        """
        Release the device resources of every kernel this instance created.
        """
        for kernel in self.kernels:
            kernel.release()
        logger.debug(f"released {len(self.kernels)} kernels")
        self.kernels = list()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.destroy()

    def __repr__(self):
        return f"<GPU mode={self.get_mode()} kernels={len(self.kernels)}>"


def probe():
    return capabilities.probe()


def main():
    # ==============================================================================
    # Example usage of kernels, kernel maps and kernel chains
    # ==============================================================================

    from argparse import ArgumentParser

    import numpy
    from rich.console import Console

    from .settings import KernelSettings
    from .system import init_logging, load_user_config, log_system_info

    parser = ArgumentParser()
    parser.add_argument(
        "--mode",
        default="gpu",
        choices=["cpu", "gpu", "opencl", "webgl", "webgl-validator"],
        help="execution mode",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="log messages at and above this severity level",
    )
    args = parser.parse_args()

    init_logging(rich=True, level=args.log_level.upper())
    load_user_config()
    log_system_info()

    gpu = GPU(mode=args.mode)
    a = numpy.linspace(0.0, 1.0, 1000)
    b = numpy.linspace(1.0, 2.0, 1000)
    c = numpy.full(1000, 3.0)

    # ==============================================================================
    # 1.
    #
    # A rank-1 kernel.
    # ==============================================================================

    def add(this, a, b):
        return a[this.thread.x] + b[this.thread.x]

    def multiply(this, a, b):
        return a[this.thread.x] * b[this.thread.x]

    add_kernel = gpu.create_kernel(add, dimensions=[1000])
    assert numpy.allclose(add_kernel(a, b), a + b)

    # ==============================================================================
    # 2.
    #
    # A kernel map, computing a sum and a product in the same dispatch.
    # ==============================================================================

    def total(this, a, b):
        return add(a, b) + multiply(a, b)

    mega = gpu.create_kernel_map(dict(sum=add, product=multiply), dict(dimensions=[1000]), total)
    out = mega(a, b)
    assert numpy.allclose(out["sum"], a + b)
    assert numpy.allclose(out["product"], a * b)

    # ==============================================================================
    # 3.
    #
    # A kernel chain: the sum stays on the device and feeds the product.
    # ==============================================================================

    first = gpu.create_kernel(add, dimensions=[1000])
    second = gpu.create_kernel(multiply, dimensions=[1000])
    chain = gpu.combine_kernels([first, second], lambda a, b, c: second(first(a, b), c))
    assert numpy.allclose(chain(a, b, c), (a + b) * c, atol=1e-5)

    console = Console()
    console.print(*KernelSettings(dimensions=(1000,)).rich_table(console, console.options))
    console.print(f"{gpu} ran every example on the {gpu.get_mode()} backend")
    gpu.destroy()


if __name__ == "__main__":
    main()
