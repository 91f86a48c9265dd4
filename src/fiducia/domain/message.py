from typing import Optional

from fiducia.data import UUID_TYPE, nullable, identifier_factory, field, DataModel, BlankModel

from .entity import DomainEntity
from .record import DomainEntityRecord


class MessageBundle(DomainEntityRecord):
    msg_key     = field(type=str, mandatory=True)
    domain      = field(type=str, mandatory=True)
    resource    = field(type=nullable(str), initial=None)
    identifier  = field(type=nullable(UUID_TYPE), factory=identifier_factory, initial=None)
    src_cmd     = field(type=nullable(UUID_TYPE), factory=identifier_factory, initial=None)
    data        = field(type=(dict, DataModel, BlankModel))


class MessageMeta(DataModel):
    key: str
    name: str
    desc: Optional[str] = None
    tags: list[str] = []


class Message(DomainEntity):
    __meta_schema__ = MessageMeta
    __abstract__ = True


__all__ = ("Message", "MessageBundle")
