from datetime import datetime
from typing import Optional

from fiducia.data import UUID_TYPE, identifier_factory, field, nullable, timestamp, BlankModel, DataModel

from .entity import DomainEntity
from .record import DomainEntityRecord


class EventRecord(DomainEntityRecord):
    event       = field(type=str, mandatory=True)
    domain      = field(type=nullable(str), initial=None)
    resource    = field(type=nullable(str), initial=None)
    identifier  = field(type=nullable(UUID_TYPE), factory=identifier_factory, initial=None)
    src_cmd     = field(type=nullable(UUID_TYPE), factory=identifier_factory, initial=None)
    actor       = field(type=nullable(str), initial=None)
    timestamp   = field(type=datetime, initial=timestamp)
    args        = field(type=dict, initial=dict)
    data        = field(type=nullable(dict, BlankModel, DataModel))

    # Position of the event within the log of its aggregate root.
    # Assigned by the log store.
    sequence    = field(type=nullable(int), initial=None)


class EventMeta(DataModel):
    key: Optional[str] = None
    name: Optional[str] = None
    desc: Optional[str] = None


class Event(DomainEntity):
    __meta_schema__ = EventMeta
    __abstract__ = True


__all__ = ("Event", "EventRecord")
