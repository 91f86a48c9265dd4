from typing import Any, List, Optional, Union

from fiducia.data import UUID_TYPE, identifier_factory, nullable, field, DataModel, BlankModel

from .entity import CommandState, DomainEntity
from .record import DomainEntityRecord


def model_factory(data: Any) -> Union[BlankModel, DataModel]:
    if data is None:
        return BlankModel()

    if isinstance(data, dict):
        return BlankModel(**data)

    if isinstance(data, (BlankModel, DataModel)):
        return data

    raise ValueError('Invalid payload data')


class CommandBundle(DomainEntityRecord):
    domain      = field(type=str, mandatory=True)
    command     = field(type=str, mandatory=True)
    revision    = field(type=int, mandatory=True)
    resource    = field(type=str, mandatory=True)
    identifier  = field(type=UUID_TYPE, mandatory=True, factory=identifier_factory)
    payload     = field(type=(DataModel, BlankModel), mandatory=True, factory=model_factory)

    context     = field(type=nullable(UUID_TYPE), factory=identifier_factory, initial=None)
    status      = field(type=CommandState, mandatory=True, initial=CommandState.CREATED)


class CommandMeta(DataModel):
    key: Optional[str] = None
    name: Optional[str] = None
    desc: Optional[str] = None
    tags: List[str] = []
    resources: Optional[tuple[str, ...]] = None
    new_resource: bool = False


class Command(DomainEntity):
    __meta_schema__ = CommandMeta
    __abstract__ = True

    class Meta(DomainEntity.Meta):
        pass

    def __init__(self, bundle: CommandBundle):
        self._bundle = bundle

    @property
    def bundle(self):
        return self._bundle

    @property
    def identifier(self):
        return self._bundle.identifier

    @property
    def domain(self):
        return self._bundle.domain

    @property
    def revision(self):
        return self._bundle.revision


__all__ = ("Command", "CommandBundle", "CommandMeta")
