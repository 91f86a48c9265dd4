import contextvars

from contextlib import asynccontextmanager

from fiducia.domain import logger

from .base import DomainLogStore


class InMemoryLogStore(DomainLogStore):
    ''' Entries written within a transaction are buffered and only appended
        to the log once the transaction exits without error. Events are
        numbered per aggregate root identifier, starting from 1.
    '''

    _buffer = contextvars.ContextVar('memory_log_buffer', default=None)

    def __init__(self, domain, app=None, **config):
        super().__init__(domain, app, **config)
        self._storage = {}
        self._sequences = {}

    @property
    def storage(self):
        return self._storage

    def _next_sequence(self, identifier):
        buffered = sum(
            1 for resource, entry in (self._buffer.get() or ())
            if resource == 'event-log' and entry.identifier == identifier
        )
        return self._sequences.get(identifier, 0) + buffered + 1

    def _append(self, resource, entry):
        self._storage.setdefault(resource, []).append(entry)
        if resource == 'event-log':
            self._sequences[entry.identifier] = entry.sequence

    @asynccontextmanager
    async def transaction(self, context=None):
        if self._buffer.get() is not None:
            yield self
            return

        buffer = []
        token = self._buffer.set(buffer)
        try:
            yield self
        except BaseException:
            logger.warning('[MEMORY LOG] Discarded %d uncommitted entries', len(buffer))
            raise
        else:
            for resource, entry in buffer:
                self._append(resource, entry)
        finally:
            self._buffer.reset(token)

    async def _add_entry(self, resource, entry):
        if resource == 'event-log':
            entry = entry.set(sequence=self._next_sequence(entry.identifier))

        buffer = self._buffer.get()
        if buffer is None:
            self._append(resource, entry)
        else:
            buffer.append((resource, entry))

        return await super()._add_entry(resource, entry)

    async def fetch_events(self, identifier):
        return tuple(
            entry for entry in self._storage.get('event-log', ())
            if entry.identifier == identifier
        )

    def entries(self, resource):
        return tuple(self._storage.get(resource, ()))

    def reset(self):
        self._storage.clear()
        self._sequences.clear()
