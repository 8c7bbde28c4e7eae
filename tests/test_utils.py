import pytest

from gpukit.utils import (
    closest_square_dimensions,
    dim_to_texture_size,
    output_shape,
    thread_dim,
)


def test_thread_dim_pads_to_three_axes():
    assert thread_dim((4,)) == (4, 1, 1)
    assert thread_dim([2, 3]) == (2, 3, 1)
    assert thread_dim((2, 3, 4)) == (2, 3, 4)


def test_output_shape_reverses_axes():
    assert output_shape((2, 3)) == (3, 2)
    assert output_shape((2, 3, 4)) == (4, 3, 2)


@pytest.mark.parametrize(
    "length, size",
    [(1, (1, 1)), (4, (2, 2)), (5, (3, 3)), (6, (3, 3)), (1024, (32, 32)), (1025, (33, 33))],
)
def test_closest_square_dimensions(length, size):
    assert closest_square_dimensions(length) == size


def test_dim_to_texture_size():
    assert dim_to_texture_size((2, 2, 2)) == (3, 3)
    assert dim_to_texture_size((16,)) == (4, 4)
