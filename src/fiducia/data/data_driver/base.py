from contextlib import asynccontextmanager

from fiducia.data import logger, config

_DEBUG = config.DEBUG
_DRIVER_REGISTRY = {}


class DataDriver(object):
    def __init_subclass__(cls):
        key = cls.__name__
        if key in _DRIVER_REGISTRY:
            raise ValueError(f'Data storage driver already registered: {key}')

        _DRIVER_REGISTRY[key] = cls
        _DEBUG and logger.info('Registered data driver: %s => %s', key, cls)

    def __init__(self, **config):
        pass

    @asynccontextmanager
    async def transaction(self, *args, **kwargs):
        raise NotImplementedError('DataDriver.transaction is not implemented.')
        yield

    async def find(self, resource, query, meta=None):
        raise NotImplementedError('DataDriver.find is not implemented.')

    async def find_one(self, resource, query):
        raise NotImplementedError('DataDriver.find_one is not implemented.')

    async def insert(self, resource, record):
        raise NotImplementedError('DataDriver.insert is not implemented.')

    async def update_one(self, resource, query, **changes):
        raise NotImplementedError('DataDriver.update_one is not implemented.')
