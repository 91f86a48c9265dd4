from .base import DomainLogStore
from .memory import InMemoryLogStore

__all__ = ("DomainLogStore", "InMemoryLogStore")
