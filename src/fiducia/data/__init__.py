from ._meta import config, logger
from pyrsistent import PClass, field
from .helper import nullable, generate_etag, timestamp, serialize_mapping
from .identifier import UUID_TYPE, UUID_GENF, UUID_GENR, identifier_factory
from .serializer import FiduciaJSONEncoder as JSONEncoder, serialize_json

from .data_model import DataModel, BlankModel
from .data_driver import DataDriver, InMemoryDriver
from .data_manager import DataAccessManager
from .query import BackendQuery


__all__ = (
    "BackendQuery",
    "BlankModel",
    "config",
    "DataAccessManager",
    "DataDriver",
    "DataModel",
    "field",
    "generate_etag",
    "identifier_factory",
    "InMemoryDriver",
    "JSONEncoder",
    "logger",
    "nullable",
    "PClass",
    "serialize_json",
    "serialize_mapping",
    "timestamp",
    "UUID_GENF",
    "UUID_GENR",
    "UUID_TYPE",
)
