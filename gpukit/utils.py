"""
Small shape and type helpers shared by the backends.
"""

from math import ceil, sqrt


def is_function(fn):
    return callable(fn)


def thread_dim(dimensions):
    """
    Pad a sequence of 1-3 axis lengths to three axes (width, height, depth).
    """
    return tuple(dimensions) + (1,) * (3 - len(dimensions))


def output_shape(dimensions):
    """
    Return the array shape of a kernel result: axes in reverse, so that
    axis 0 (x) varies fastest in row-major order.
    """
    return tuple(reversed(tuple(dimensions)))


def closest_square_dimensions(length):
    """
    Return the (width, height) of the smallest square texture holding
    `length` pixels.
    """
    w = max(1, ceil(sqrt(length)))
    return (w, w)


def dim_to_texture_size(dimensions):
    w, h, d = thread_dim(dimensions)
    return closest_square_dimensions(w * h * d)
