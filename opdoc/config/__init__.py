from .loader import load_config
from .models import ApplyConfig, OpdocConfig, StagingConfig

__all__ = [
    "ApplyConfig",
    "OpdocConfig",
    "StagingConfig",
    "load_config",
]
