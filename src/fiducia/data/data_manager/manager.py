""" Data Access Interface

    Maps registered resource names to data models and delegates storage
    to a data driver. Records leave the manager as immutable models; every
    write stamps `_updated` and a fresh `_etag`.
"""

from collections.abc import Mapping
from contextlib import asynccontextmanager
from typing import List, Type

from fiducia.helper import ImmutableNamespace
from fiducia.data import logger, config
from fiducia.data.constant import CREATED_FIELD, UPDATED_FIELD, ETAG_FIELD
from fiducia.data.data_driver import DataDriver
from fiducia.data.data_model import DataModel
from fiducia.data.exceptions import ItemNotFoundError
from fiducia.data.helper import generate_etag, serialize_mapping, timestamp
from fiducia.data.identifier import UUID_TYPE
from fiducia.data.query import BackendQuery
from fiducia.error import BadRequestError, InternalServerError

DEBUG = config.DEBUG
BACKEND_QUERY_LIMIT = config.BACKEND_QUERY_INTERNAL_LIMIT


class ResourceAlreadyRegistered(ValueError):
    pass


class DataAccessManager(object):
    __abstract__ = True
    __connector__ = None
    __config__ = ImmutableNamespace

    def __init_subclass__(cls, connector=None):
        super().__init_subclass__()
        if connector is not None:
            cls.__connector__ = connector

        if cls.__dict__.get('__abstract__'):
            return

        # Each concrete manager owns its registry
        cls._models = {}
        cls._model_names = {}

    def __init__(self, domain=None, app=None, **config):
        con_cls = self.__connector__
        if not (isinstance(con_cls, type) and issubclass(con_cls, DataDriver)):
            raise InternalServerError('E00.204', f'Invalid data driver/connector: {con_cls}')

        self._domain = domain
        self._connector = con_cls()
        self._config = self.__config__(**{k.upper(): v for k, v in config.items()})

    @property
    def config(self):
        return self._config

    @property
    def connector(self):
        return self._connector

    @classmethod
    def register_model(cls, model_name: str):
        def _decorator(model_cls: Type[DataModel]):
            if model_name in cls._models or model_cls in cls._model_names:
                raise ResourceAlreadyRegistered(f'Resource already registered: {model_name} / {model_cls}')

            cls._models[model_name] = model_cls
            cls._model_names[model_cls] = model_name
            DEBUG and logger.debug('Registered model: %s => %s', model_name, model_cls)
            return model_cls

        return _decorator

    @classmethod
    def lookup_model(cls, model_name):
        return cls._models[model_name]

    @classmethod
    def create(cls, model_name: str, data: dict = None, /, **kwargs) -> DataModel:
        """ Build a record with fresh timestamps and etag, it is not stored yet """
        ts = timestamp()
        values = {CREATED_FIELD: ts, UPDATED_FIELD: ts, ETAG_FIELD: generate_etag()}
        values.update(serialize_mapping(data), **kwargs)
        return cls._wrap(model_name, values)

    @classmethod
    def _wrap(cls, model_name, item):
        model_cls = cls.lookup_model(model_name)
        if isinstance(item, model_cls):
            return item

        return model_cls(**(item if isinstance(item, Mapping) else serialize_mapping(item)))

    @asynccontextmanager
    async def transaction(self, *args):
        async with self.connector.transaction(*args):
            yield self

    async def fetch(self, model_name: str, identifier: UUID_TYPE, etag: str = None, /, **kwargs) -> DataModel:
        """ Exactly one item by identifier, raises ItemNotFoundError otherwise """
        q = BackendQuery.create(identifier=identifier, etag=etag, where=kwargs)
        return self._wrap(model_name, await self.connector.find_one(model_name, q))

    async def find_one(self, model_name: str, q=None, /, **query) -> DataModel:
        q = BackendQuery.create(q, **query, limit=1, offset=0)
        try:
            return self._wrap(model_name, await self.connector.find_one(model_name, q))
        except ItemNotFoundError:
            return None

    async def find_all(self, model_name: str, q=None, **query) -> List[DataModel]:
        """ All matching items from the start, capped at BACKEND_QUERY_INTERNAL_LIMIT """
        q = BackendQuery.create(q, **query)
        if q.offset != 0:
            raise BadRequestError('E00.205', f'Invalid find_all query: {q}')

        q = q.set(limit=min(q.limit, BACKEND_QUERY_LIMIT) if q.limit else BACKEND_QUERY_LIMIT)
        return [self._wrap(model_name, item) for item in await self.connector.find(model_name, q)]

    async def query(self, model_name: str, q=None, **query) -> List[DataModel]:
        q = BackendQuery.create(q, **query)
        return [self._wrap(model_name, item) for item in await self.connector.find(model_name, q)]

    async def insert(self, record: DataModel):
        return await self.connector.insert(self._model_names[type(record)], record)

    async def update(self, record: DataModel, /, **updates):
        ''' Optimistic update: fails if the stored etag differs from the record's etag '''
        q = BackendQuery.create(identifier=record.id, etag=getattr(record, ETAG_FIELD))
        changes = updates | {UPDATED_FIELD: timestamp(), ETAG_FIELD: generate_etag()}
        return await self.connector.update_one(self._model_names[type(record)], q, **changes)
