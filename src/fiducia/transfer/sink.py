from datetime import datetime
from typing import Optional

from fiducia.data import UUID_TYPE, DataModel, serialize_mapping

from . import logger


class SinkEvent(DataModel):
    ''' Notification published for every committed transfer event '''

    event_type: str
    transfer_id: UUID_TYPE
    sequence: Optional[int] = None
    actor: Optional[str] = None
    timestamp: datetime
    data: dict = {}

    @classmethod
    def from_record(cls, domain, record):
        return cls(
            event_type=domain.lookup_event(record.event).__name__,
            transfer_id=record.identifier,
            sequence=record.sequence,
            actor=record.actor,
            timestamp=record.timestamp,
            data=dict(serialize_mapping(record.data)),
        )


class EventSink(object):
    ''' Append-only, one-way channel to notification and reconciliation systems '''

    async def publish(self, event: SinkEvent):
        raise NotImplementedError('EventSink.publish')


class InMemoryEventSink(EventSink):
    def __init__(self):
        self._events = []

    async def publish(self, event):
        logger.debug('[SINK] %s #%s [%s]', event.event_type, event.sequence, event.transfer_id)
        self._events.append(event)

    @property
    def events(self):
        return tuple(self._events)

    def of_type(self, event_type):
        return tuple(evt for evt in self._events if evt.event_type == event_type)

    def for_transfer(self, transfer_id):
        return tuple(evt for evt in self._events if evt.transfer_id == transfer_id)
