import numpy as np
import pytest

from gpukit import GPU, ArgumentError
from gpukit.backend import FunctionRegistry


def square(x):
    return x * x


def halve(x):
    return x / 2


def test_add_function_returns_same_instance(headless):
    gpu = GPU(mode="cpu", capabilities=headless)
    assert gpu.add_function(square) is gpu


def test_kernels_call_registered_functions_by_name(any_mode, headless):
    gpu = GPU(mode=any_mode, capabilities=headless).add_function(square)
    kernel = gpu.create_kernel(lambda this, a: square(a[this.thread.x]) + 1, dimensions=[4])

    assert np.allclose(kernel([1, 2, 3, 4]), [2, 5, 10, 17])


def test_function_added_after_kernel_creation(headless):
    gpu = GPU(mode="webgl", capabilities=headless)
    kernel = gpu.create_kernel(lambda this, a: square(a[this.thread.x]), dimensions=[3])
    gpu.add_function(square)

    assert np.allclose(kernel([1, 2, 3]), [1, 4, 9])


def test_integer_return_type_truncates(any_mode, headless):
    gpu = GPU(mode=any_mode, capabilities=headless)
    gpu.add_function(halve, param_types=["Number"], return_type="Integer")
    kernel = gpu.create_kernel(lambda this, a: halve(a[this.thread.x]), dimensions=[4])

    assert np.allclose(kernel([5, 7, -3, 4]), [2, 3, -1, 2])


def test_registry_records_types():
    registry = FunctionRegistry()
    node = registry.add_function(None, halve, dict(x="Float"), "Integer")

    assert node.name == "halve"
    assert node.param_types == ("Float",)
    assert node.return_type == "Integer"
    assert "halve" in registry
    assert len(registry) == 1

    registry.add_function(None, halve)
    assert len(registry) == 1
    assert [n.return_type for n in registry] == ["Number"]


def test_registry_default_types():
    node = FunctionRegistry().add_function(None, plus)
    assert node.param_types == ("Number", "Number")
    assert node.return_type == "Number"


def plus(x, y):
    return x + y


@pytest.mark.parametrize(
    "fn, param_types, return_type",
    [
        (42, None, None),
        (lambda x: x, None, None),
        (square, ["String"], None),
        (square, None, "Matrix"),
    ],
)
def test_add_function_rejects_bad_input(fn, param_types, return_type, headless):
    gpu = GPU(mode="cpu", capabilities=headless)

    with pytest.raises(ArgumentError):
        gpu.add_function(fn, param_types, return_type)
