from ._meta import config, logger
from .aggregate import Aggregate, AggregateRoot, action
from .command import Command, CommandBundle
from .context import DomainContext, DomainTransport
from .domain import Domain
from .entity import CommandState
from .event import Event, EventRecord
from .logstore import DomainLogStore, InMemoryLogStore
from .message import Message, MessageBundle
from .signal import DomainSignal
from .state import StateManager

__all__ = (
    "action",
    "Aggregate",
    "AggregateRoot",
    "Command",
    "CommandBundle",
    "CommandState",
    "config",
    "Domain",
    "DomainContext",
    "DomainLogStore",
    "DomainSignal",
    "DomainTransport",
    "Event",
    "EventRecord",
    "InMemoryLogStore",
    "logger",
    "Message",
    "MessageBundle",
    "StateManager",
)
