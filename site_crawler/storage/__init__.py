from .base import Storage
from .json_file import JSONFileStorage
from .memory import MemoryStorage

__all__ = ["Storage", "JSONFileStorage", "MemoryStorage"]
