from .base import DataDriver
from .memory import InMemoryDriver

__all__ = ("DataDriver", "InMemoryDriver")
