__version__ = "0.1.0"

from .backend import DeviceContext, KernelMapResult, Surface, Texture
from .capabilities import Capabilities, is_webgl_supported, probe
from .chain import KernelChain
from .errors import (
    ArgumentError,
    ConfigurationError,
    GPUKitError,
    KernelValidationError,
    ReadbackError,
)
from .gpu import GPU
from .settings import GPUSettings, KernelSettings
from .system import configure_build, init_logging, load_user_config
