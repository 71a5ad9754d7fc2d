from .loader import load_config, load_config_with_overrides
from .schema import AnnotationConfig, APIConfig, BatchConfig, EnsemblConfig

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "AnnotationConfig",
    "APIConfig",
    "BatchConfig",
    "EnsemblConfig",
]
