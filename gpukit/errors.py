"""
Exception types raised by gpukit.
"""


class GPUKitError(Exception):
    """Base class for gpukit exceptions."""


class ConfigurationError(GPUKitError, ValueError):
    """
    Raised at construction for an unrecognized mode, malformed settings, or
    an unreadable user config file.
    """


class ArgumentError(GPUKitError, TypeError):
    """
    Raised at build time for a missing or non-callable kernel function, a
    malformed sub-kernel spec, or invalid kernel settings.
    """


class KernelValidationError(ArgumentError):
    """
    Raised by a validating kernel when its arguments fail a pre-dispatch check.
    """


class ReadbackError(GPUKitError, RuntimeError):
    pass
