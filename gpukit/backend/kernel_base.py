"""
State and lifecycle shared by the kernels of every backend.

A kernel body is a Python function whose first parameter receives a
`KernelContext` (conventionally named `this`); `this.thread.x`, `.y` and `.z`
give the output index being computed. The body may call functions from the
runner's function registry, and (in a kernel map) its sub-kernels, by name:
when the kernel is built those names are bound into the body's namespace.
"""

from collections.abc import Mapping
from logging import getLogger
from types import CellType, FunctionType
from typing import Any, Callable, NamedTuple, Union

from ..errors import ArgumentError
from ..settings import kernel_settings
from ..system import measure_time
from ..utils import is_function, thread_dim
from .function_registry import FunctionRegistry

logger = getLogger(__name__)


class Thread(NamedTuple):
    x: Any = 0
    y: Any = 0
    z: Any = 0


class KernelContext:
    """
    The `this` argument of a kernel body.
    """

    def __init__(self, dimensions, constants):
        self.thread = Thread()
        self.dimensions = Thread(*thread_dim(dimensions))
        self.constants = constants


class SubKernel(NamedTuple):
    key: Union[int, str]
    name: str
    fn: Callable


class KernelMapResult(Mapping):
    """
    The outcome of invoking a kernel map: the root result as `result`, and
    each sub-kernel result by name, or by position in insertion order.
    """

    def __init__(self, result, sub_results):
        self.result = result
        self._sub_results = dict(sub_results)

    def __getitem__(self, key):
        if key in self._sub_results:
            return self._sub_results[key]
        if isinstance(key, int):
            try:
                return list(self._sub_results.values())[key]
            except IndexError:
                pass
        raise KeyError(key)

    def __iter__(self):
        return iter(self._sub_results)

    def __len__(self):
        return len(self._sub_results)

    def __repr__(self):
        return f"KernelMapResult(result=..., sub_results={list(self)})"


def bind_names(fn, bindings):
    """
    Return a copy of `fn` whose global and closure names listed in
    `bindings` resolve to the bound objects.

    Callables that are not plain Python functions are returned unchanged.
    """
    if not isinstance(fn, FunctionType) or not bindings:
        return fn

    code = fn.__code__
    namespace = dict(fn.__globals__)
    namespace.update(bindings)
    closure = fn.__closure__

    if closure is not None:
        closure = tuple(
            CellType(bindings[name]) if name in bindings else cell
            for name, cell in zip(code.co_freevars, closure)
        )

    bound = FunctionType(code, namespace, fn.__name__, fn.__defaults__, closure)
    bound.__kwdefaults__ = fn.__kwdefaults__
    bound.__wrapped__ = fn
    return bound


class BaseKernel:
    """
    A callable unit bound to one function and its output dimensions.

    The kernel is built on its first invocation, and again after any change
    that invalidates the build (new dimensions, device context or output
    storage).
    """

    mode = None

    def __init__(self, fn, settings=None, runner=None, canvas=None, device_context=None):
        if fn is None:
            raise ArgumentError("missing fn parameter")
        if not is_function(fn):
            raise ArgumentError("fn parameter not a function")

        options, extras = kernel_settings(settings)

        self.fn = fn
        self.runner = runner
        self.settings = extras
        self.constants = dict(extras.get("constants", {}))
        self.dimensions = options.dimensions
        self.output_to_device = options.output_to_device
        self.float_output = options.float_output
        self.function_registry = (
            runner.function_registry if runner is not None else FunctionRegistry()
        )
        self.sub_kernels = list()
        self.sub_kernel_results = None
        self._canvas = canvas
        self._device_context = device_context
        self._built = False

    @property
    def name(self):
        return getattr(self.fn, "__name__", type(self.fn).__name__)

    @property
    def thread_dim(self):
        return thread_dim(self.dimensions)

    @property
    def texture_size(self):
        return None

    @property
    def built(self):
        return self._built

    def get_mode(self):
        return self.mode

    def get_canvas(self):
        return self._canvas

    def set_canvas(self, canvas):
        self._canvas = canvas
        return self

    def get_device_context(self):
        return self._device_context

    def set_device_context(self, device_context):
        if device_context is not self._device_context:
            self.release()
            self._device_context = device_context
        return self

    def set_output_to_device(self, flag):
        self.output_to_device = bool(flag)
        return self

    def set_float_output(self, flag):
        if bool(flag) != self.float_output:
            self.release()
            self.float_output = bool(flag)
        return self

    def set_dimensions(self, dimensions):
        options, _ = kernel_settings(dict(dimensions=dimensions))
        if options.dimensions != self.dimensions:
            self.release()
            self.dimensions = options.dimensions
        return self

    def add_sub_kernel(self, fn):
        """
        Bind a positional sub-kernel; its result is keyed by position.
        """
        key = sum(1 for s in self.sub_kernels if isinstance(s.key, int))
        return self._add_sub_kernel(key, fn)

    def add_sub_kernel_property(self, name, fn):
        """
        Bind a named sub-kernel; its result is keyed by `name`.
        """
        if any(s.key == name for s in self.sub_kernels):
            raise ArgumentError(f"duplicate sub-kernel {name}")
        return self._add_sub_kernel(name, fn)

    def _add_sub_kernel(self, key, fn):
        if not is_function(fn):
            raise ArgumentError(f"sub-kernel {key} is not a function")

        name = getattr(fn, "__name__", "")

        if not name.isidentifier():
            raise ArgumentError(
                f"sub-kernel {key} must be a named function, the root kernel calls it by name"
            )
        self.sub_kernels.append(SubKernel(key, name, fn))
        self.release()
        return self

    def build(self):
        """
        Bind registry functions and sub-kernels into the kernel body, and
        prepare backend resources.
        """
        with measure_time() as build_time:
            self._context = KernelContext(self.dimensions, self.constants)
            self._pending = dict()
            bindings = self.function_registry.bindings(self.array_module())
            subs = {s.name: self._capture(s, bind_names(s.fn, bindings)) for s in self.sub_kernels}
            self._bound_fn = bind_names(self.fn, {**bindings, **subs})
            self.prepare()
            self._built = True

        logger.info(f"build {self.mode} kernel {self.name} took {build_time():0.3}s")

    def _capture(self, sub, fn):
        def call(*args):
            value = fn(self._context, *args)
            self.record_sub_result(sub.key, value)
            return value

        call.__name__ = sub.name
        return call

    def __call__(self, *args):
        if not self._built:
            self.build()
        result, sub_results = self.run(*args)

        if self.sub_kernels:
            self.sub_kernel_results = KernelMapResult(result, sub_results)
            return self.sub_kernel_results
        return result

    def release(self):
        """
        Free backend resources held by the kernel. The next invocation
        rebuilds it.
        """
        self._built = False

    def array_module(self):
        return None

    def prepare(self):
        pass

    def record_sub_result(self, key, value):
        raise NotImplementedError

    def run(self, *args):
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} {self.name} dimensions={self.dimensions}>"
