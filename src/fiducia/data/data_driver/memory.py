import contextvars

from contextlib import asynccontextmanager

from fiducia.data import logger
from fiducia.data.constant import ID_FIELD, ETAG_FIELD
from fiducia.data.exceptions import ItemNotFoundError, DuplicateItemError, EtagMismatchError
from fiducia.data.query import BackendQuery, QueryExpression, match_expression

from .base import DataDriver

_MISSING = object()


def _item_value(item, field_name):
    if isinstance(item, dict):
        return item.get(field_name)

    return getattr(item, field_name, None)


def query_resource(store, q: BackendQuery):
    query_stmts = tuple(q.where)

    if q.identifier is not None:
        query_stmts += (QueryExpression(ID_FIELD, 'eq', '.', q.identifier),)

    def _match(item):
        for qe in query_stmts:
            if not match_expression(_item_value(item, qe.field), qe):
                return False

        return True

    results = list(filter(_match, store.values()))

    # Applied in reverse order so that the first sort key takes precedence
    for sort_expr in reversed(q.sort):
        field_name, _, sort_type = sort_expr.rpartition(':')
        if not field_name:
            field_name, sort_type = sort_type, 'asc'

        results.sort(key=lambda x: _item_value(x, field_name), reverse=(sort_type == 'desc'))

    start = q.offset or 0
    end = start + (q.limit or len(results))
    return results[start:end]


class InMemoryDriver(DataDriver):
    ''' A dictionary backed driver. Each instance owns its own store.

        Transactions keep an undo journal in a context variable, so that
        concurrent tasks writing to different records only roll back
        their own changes.
    '''

    _journal = contextvars.ContextVar('memory_journal', default=None)

    def __init__(self, **config):
        super().__init__(**config)
        self._memory = {}

    def _get_memory(self, resource):
        if resource not in self._memory:
            self._memory[resource] = {}

        return self._memory[resource]

    def _record_undo(self, resource, key):
        journal = self._journal.get()
        if journal is None:
            return

        store = self._get_memory(resource)
        journal.append((resource, key, store.get(key, _MISSING)))

    @asynccontextmanager
    async def transaction(self, transaction_id=None):
        if self._journal.get() is not None:
            # Nested transactions are merged into the outer one
            yield self
            return

        journal = []
        token = self._journal.set(journal)
        try:
            yield self
        except BaseException:
            logger.warning("Rolling back memory transaction [%d changes]", len(journal))
            for resource, key, previous in reversed(journal):
                store = self._get_memory(resource)
                if previous is _MISSING:
                    store.pop(key, None)
                else:
                    store[key] = previous
            raise
        finally:
            self._journal.reset(token)

    async def find(self, resource, query, meta=None):
        store = self._get_memory(resource)
        items = query_resource(store, query)

        if meta is not None:
            meta.update({
                "total": len(store),
                "limit": query.limit,
                "offset": query.offset,
                "count": len(items)
            })

        return items

    async def find_one(self, resource, query):
        results = query_resource(self._get_memory(resource), query)

        if not results:
            raise ItemNotFoundError(
                "L00.207",
                f"Query item not found.\n\t[RESOURCE] {resource}\n\t[QUERY   ] {query}"
            )

        return results[0]

    async def insert(self, resource, record):
        store = self._get_memory(resource)
        key = _item_value(record, ID_FIELD)
        if key is None:
            raise ValueError(f'Record has no identifier: {record}')

        if key in store:
            raise DuplicateItemError("L00.208", f'Item already exists: {resource}/{key}')

        self._record_undo(resource, key)
        store[key] = record
        return record

    async def update_one(self, resource, query, **changes):
        store = self._get_memory(resource)
        record = await self.find_one(resource, query.set(etag=None))

        if query.etag is not None and _item_value(record, ETAG_FIELD) != query.etag:
            raise EtagMismatchError(
                "L00.209",
                f"Record has been modified since it was loaded [{resource}/{query.identifier}]"
            )

        if isinstance(record, dict):
            updated = record | changes
        else:
            updated = record.set(**changes)

        key = _item_value(updated, ID_FIELD)
        self._record_undo(resource, key)
        store[key] = updated
        return updated
