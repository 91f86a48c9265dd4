from contextlib import asynccontextmanager

from fiducia.domain import logger, config
from fiducia.helper import ImmutableNamespace

SHOW_DOMAIN_LOG = config.SHOW_DOMAIN_LOG


class DomainLogStore(object):
    ''' Append-only log of contexts, commands, events and messages of a domain. '''

    __config__ = ImmutableNamespace

    def __init__(self, domain, app=None, **config):
        self._app = app
        self._domain = domain
        self._config = self.validate_config(config, show_log=SHOW_DOMAIN_LOG)

    def validate_config(self, config, **defaults):
        config = defaults | config
        return self.__config__(**{k.upper(): v for k, v in config.items()})

    def reset(self):
        pass

    @property
    def app(self):
        return self._app

    @property
    def config(self):
        return self._config

    @property
    def domain(self):
        return self._domain

    @asynccontextmanager
    async def transaction(self, context=None):
        yield self

    async def _add_entry(self, resource, entry):
        self.config.SHOW_LOG and logger.info('[DOMAIN LOG] %s => %s', resource, entry)
        return entry

    async def add_command(self, command):
        return await self._add_entry('command-log', command)

    async def add_event(self, event):
        return await self._add_entry('event-log', event)

    async def add_message(self, message):
        return await self._add_entry('message-log', message)

    async def add_context(self, context):
        return await self._add_entry('context-log', context)

    async def fetch_events(self, identifier):
        raise NotImplementedError('DomainLogStore.fetch_events')
