from .manager import DataAccessManager, ResourceAlreadyRegistered

__all__ = ("DataAccessManager", "ResourceAlreadyRegistered")
