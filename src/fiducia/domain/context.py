import enum
from datetime import datetime

from fiducia.data import nullable, field, timestamp
from .record import DomainEntityRecord


class DomainTransport(enum.Enum):
    API = 'API'
    COMMAND_LINE = 'CLI'
    SCHEDULER = 'SCHEDULER'
    MESSAGE = 'MESSAGE'
    UNKNOWN = 'UNKNOWN'


class DomainContext(DomainEntityRecord):
    domain = field(type=str, initial=lambda: '<no-name>')
    revision = field(type=int, initial=lambda: 0)
    transport = field(type=DomainTransport,
                      factory=DomainTransport,
                      initial=lambda: DomainTransport.UNKNOWN,
                      mandatory=True)
    source = field(type=nullable(str), initial=lambda: None)
    timestamp = field(type=datetime, initial=timestamp)
    headers = field(type=dict, initial=dict)

    # The party performing the commands (e.g. an account address)
    actor = field(type=nullable(str), initial=lambda: None)
