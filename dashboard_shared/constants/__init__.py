from .environments import Environment
from .metric_names import MetricNames
from .storage_keys import StorageKeys

__all__ = ["Environment", "MetricNames", "StorageKeys"]
