"""
Auxiliary functions that kernel bodies may call by name.
"""

from inspect import Parameter, signature
from logging import getLogger
from typing import Any, Callable, NamedTuple, Tuple

from ..errors import ArgumentError

logger = getLogger(__name__)

TYPES = ("Number", "Float", "Integer", "Array")


class FunctionNode(NamedTuple):
    name: str
    function: Callable
    param_types: Tuple[str, ...]
    return_type: str
    scope: Any = None


def positional_parameters(fn):
    try:
        params = signature(fn).parameters.values()
    except (TypeError, ValueError):
        return []
    kinds = (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD)
    return [p.name for p in params if p.kind in kinds]


def check_type(name, t):
    if t not in TYPES:
        raise ArgumentError(f"unknown type {t} for {name}, must be one of {TYPES}")
    return t


class FunctionRegistry:
    """
    Maps function names to `FunctionNode` entries. Names are unique; adding a
    function under an existing name replaces the old entry.
    """

    def __init__(self):
        self.nodes = dict()

    def add_function(self, scope, fn, param_types=None, return_type=None):
        if not callable(fn):
            raise ArgumentError(f"expect a function, got {type(fn).__name__}")

        name = getattr(fn, "__name__", "")

        if not name.isidentifier():
            raise ArgumentError(f"function {fn} must have a name to be called by")

        params = positional_parameters(fn)

        if param_types is None:
            param_types = ["Number"] * len(params)
        elif isinstance(param_types, dict):
            param_types = [param_types.get(p, "Number") for p in params]

        param_types = tuple(check_type(name, t) for t in param_types)
        return_type = check_type(name, return_type or "Number")

        node = FunctionNode(name, fn, param_types, return_type, scope)
        self.nodes[name] = node
        logger.debug(f"add function {name}({', '.join(param_types)}) -> {return_type}")
        return node

    def bindings(self, xp=None):
        """
        Return a dict of name to callable, each casting its result to the
        declared return type. With an array module `xp` the cast is applied
        element-wise on the device.
        """
        return {name: cast_return(node, xp) for name, node in self.nodes.items()}

    def __contains__(self, name):
        return name in self.nodes

    def __len__(self):
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes.values())


def cast_return(node, xp):
    fn = node.function
    return_type = node.return_type

    if return_type == "Array":
        return fn

    if xp is None:
        cast = int if return_type == "Integer" else float
    elif return_type == "Integer":
        cast = lambda v: xp.trunc(xp.asarray(v, dtype=xp.float32))
    else:
        cast = lambda v: xp.asarray(v, dtype=xp.float32)

    def call(*args):
        return cast(fn(*args))

    call.__name__ = node.name
    call.__wrapped__ = fn
    return call
