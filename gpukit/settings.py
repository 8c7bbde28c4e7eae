"""
Validated settings models for the GPU facade and its kernels

This module exports a `schema` decorator which builds on a Python dataclass
with validation via `pydantic`, and pretty printing via the `rich` module.

Short and long descriptions of the model, and field descriptions are read
from the class doc string, which must have the following format:

```python
@schema
class Blur:
    \"""
    A box blur kernel configuration

    Fields
    ------

    radius:   the half-width of the box
    passes:   how many times the blur is applied
    \"""

    radius: int = 1
    passes: int = 1
```

Instances are type-validated on construction, and can be printed as a table
with descriptions using a `Console` instance.
"""

from numbers import Integral
from typing import Any, Optional, Tuple

from pydantic import ConfigDict, ValidationError, field_validator

from .errors import ArgumentError, ConfigurationError


def parse_docstring(cls):
    """
    Parse a schema docstring.
    """
    from textwrap import dedent

    cls_short_descr = str()
    cls_long_descr = list()
    field_descriptions = dict()
    lines = iter(dedent(cls.__doc__).splitlines())

    for line in lines:
        if "Fields" in line:
            if next(lines).strip() != "------":
                raise ValueError("expect a line of '-' below 'Fields'")
            if next(lines).strip():
                raise ValueError("expect a blank line below 'Fields'")
            break
        elif not cls_short_descr:
            cls_short_descr = line.strip()
        elif line:
            cls_long_descr.append(line.strip())

    for line in lines:
        if line.strip():
            key, _, description = line.partition(":")
            field_descriptions[key.strip()] = description.strip()

    return cls_short_descr, " ".join(cls_long_descr), field_descriptions


def configmodel_rich_table(d, console, options):
    """
    Returns a rich-renderable table generated from a schema.
    """
    from rich.table import Table

    fields = d.__dataclass_fields__
    short_descr = d.__configmodel__["short_descr"]
    long_descr = d.__configmodel__["long_descr"]

    table = Table(
        title=f"{d.__class__.__name__}: {short_descr.lower()}"
        if short_descr
        else d.__class__.__name__,
        caption=long_descr,
        caption_justify="left",
        title_justify="left",
        show_edge=True,
        show_lines=False,
        show_header=False,
        expand=True,
    )
    table.add_column("property", style="cyan")
    table.add_column("value", style="green")
    table.add_column("description", style="magenta")

    for key, field in fields.items():
        descr = field.metadata.get("description", None)
        table.add_row(key, str(getattr(d, key)), descr)

    yield table


def schema(cls):
    from pydantic.dataclasses import dataclass

    if cls.__doc__ is None:
        cls.__doc__ = " "

    cls = dataclass(config=ConfigDict(extra="forbid"), frozen=True)(cls)

    short_descr, long_descr, field_descriptions = parse_docstring(cls)
    fields = cls.__dataclass_fields__

    for key, description in field_descriptions.items():
        fields[key].metadata = dict(description=description)

    def describe(self, key):
        return self.__dataclass_fields__[key].metadata.get("description", None)

    cls.rich_table = configmodel_rich_table
    cls.__configmodel__ = dict(short_descr=short_descr, long_descr=long_descr)
    cls.describe = classmethod(describe)

    return cls


@schema
class KernelSettings:
    """
    Options recognized when building a kernel

    Options not named here are passed through untouched to the kernel.

    Fields
    ------

    dimensions:        lengths of the output axes (x, then y, then z)
    output_to_device:  leave the result device-resident instead of reading it back
    float_output:      store the output as 32-bit floats rather than RGBA bytes
    """

    dimensions: Tuple[int, ...] = (1024,)
    output_to_device: bool = False
    float_output: bool = False

    @field_validator("dimensions", mode="before")
    @classmethod
    def _scalar_dimensions(cls, value):
        if isinstance(value, Integral):
            return (int(value),)
        if isinstance(value, (list, tuple)):
            return tuple(int(n) if isinstance(n, Integral) else n for n in value)
        return value

    @field_validator("dimensions")
    @classmethod
    def _check_dimensions(cls, value):
        if not 1 <= len(value) <= 3:
            raise ValueError(f"expect 1, 2, or 3 dimensions, got {len(value)}")
        if any(n < 1 for n in value):
            raise ValueError(f"dimensions must be positive, got {value}")
        return value


@schema
class GPUSettings:
    """
    Construction options of the GPU facade

    Fields
    ------

    mode:            requested backend (cpu|gpu|opencl|webgl|webgl-validator)
    canvas:          surface handle to render into, created on demand if unset
    device_context:  device context handle, shared with every kernel built
    """

    mode: Optional[str] = "webgl"
    canvas: Any = None
    device_context: Any = None


def kernel_settings(settings):
    """
    Split a settings mapping into a `KernelSettings` and a dict of the
    options it does not recognize.
    """
    settings = dict(settings or {})
    names = KernelSettings.__dataclass_fields__.keys()
    known = {k: v for k, v in settings.items() if k in names}
    extras = {k: v for k, v in settings.items() if k not in names}

    try:
        return KernelSettings(**known), extras
    except ValidationError as e:
        raise ArgumentError(f"invalid kernel settings: {e}") from e


def gpu_settings(settings):
    try:
        return GPUSettings(**dict(settings or {}))
    except ValidationError as e:
        raise ConfigurationError(f"invalid GPU settings: {e}") from e
