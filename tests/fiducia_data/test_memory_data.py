import pytest
from datetime import datetime
from typing import Optional

from fiducia.data import UUID_GENF, UUID_TYPE, DataModel, DataAccessManager, InMemoryDriver
from fiducia.data.exceptions import DuplicateItemError, EtagMismatchError, ItemNotFoundError


class MemoryAccessManager(DataAccessManager):
    __connector__ = InMemoryDriver


@MemoryAccessManager.register_model('demo-resource')
class DemoDataResource(DataModel):
    id: UUID_TYPE
    etag: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    name: Optional[str] = None
    value: int = 0


async def populate(manager, count=5):
    async with manager.transaction():
        for idx in range(count):
            record = manager.create('demo-resource', dict(id=UUID_GENF(f'item-{idx}'), name=f'item-{idx}', value=idx * 10))
            await manager.insert(record)


@pytest.mark.asyncio
async def test_memory_driver_basic_operations():
    """Insert, fetch and update a single record"""
    manager = MemoryAccessManager()
    item_id = UUID_GENF('test-001')

    record = manager.create('demo-resource', dict(id=item_id, name='Test Item', value=42))
    assert record.etag and record.created == record.updated

    async with manager.transaction():
        await manager.insert(record)

    fetched = await manager.fetch('demo-resource', item_id)
    assert fetched.name == 'Test Item'
    assert fetched.value == 42

    async with manager.transaction():
        updated = await manager.update(fetched, name='Updated Item', value=100)

    assert updated.etag != fetched.etag
    fetched = await manager.fetch('demo-resource', item_id)
    assert fetched.name == 'Updated Item'
    assert fetched.value == 100


@pytest.mark.asyncio
async def test_memory_driver_missing_and_duplicate():
    manager = MemoryAccessManager()
    await populate(manager, 1)

    with pytest.raises(ItemNotFoundError):
        await manager.fetch('demo-resource', UUID_GENF('nothing'))

    assert await manager.find_one('demo-resource', identifier=UUID_GENF('nothing')) is None

    with pytest.raises(DuplicateItemError):
        await manager.insert(manager.create('demo-resource', dict(id=UUID_GENF('item-0'))))


@pytest.mark.asyncio
async def test_memory_driver_etag_mismatch():
    """An update based on a stale copy of the record is rejected"""
    manager = MemoryAccessManager()
    await populate(manager, 1)

    stale = await manager.fetch('demo-resource', UUID_GENF('item-0'))
    await manager.update(stale, value=1)

    with pytest.raises(EtagMismatchError):
        await manager.update(stale, value=2)

    current = await manager.fetch('demo-resource', UUID_GENF('item-0'))
    assert current.value == 1


@pytest.mark.asyncio
async def test_memory_transaction_rollback():
    """Changes made within a failed transaction are undone"""
    manager = MemoryAccessManager()
    await populate(manager, 2)
    original = await manager.fetch('demo-resource', UUID_GENF('item-1'))

    with pytest.raises(RuntimeError):
        async with manager.transaction():
            await manager.update(original, value=999)
            await manager.insert(manager.create('demo-resource', dict(id=UUID_GENF('item-new'))))
            raise RuntimeError('abort')

    assert (await manager.fetch('demo-resource', UUID_GENF('item-1'))).value == 10
    assert await manager.find_one('demo-resource', identifier=UUID_GENF('item-new')) is None


@pytest.mark.asyncio
async def test_memory_query_operators():
    manager = MemoryAccessManager()
    await populate(manager, 5)

    items = await manager.find_all('demo-resource', where={'value.gte': 20}, sort=('value:desc',))
    assert [item.value for item in items] == [40, 30, 20]

    items = await manager.find_all('demo-resource', where={'name!in': ['item-0', 'item-1']}, sort=('value',))
    assert [item.name for item in items] == ['item-2', 'item-3', 'item-4']

    items = await manager.find_all('demo-resource', where={'value.lt': 30, 'name.ne': 'item-0'}, limit=1)
    assert len(items) == 1 and items[0].value == 10

    page = await manager.query('demo-resource', sort=('value',), limit=2, offset=2)
    assert [item.value for item in page] == [20, 30]
