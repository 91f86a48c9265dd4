from fiducia.domain import Domain, DomainSignal, InMemoryLogStore
from fiducia.helper import timestamp

from . import logger
from .aggregate import TransferAggregate
from .datadef import TransferStateManager
from .refund import RefundHandler
from .sink import SinkEvent


class TransferDomain(Domain):
    """Peer-to-peer transfers held in escrow until the recipient decides"""

    __namespace__ = 'transfer'
    __aggregate__ = TransferAggregate
    __statemgr__ = TransferStateManager
    __logstore__ = InMemoryLogStore

    __revision__ = 1

    def __init__(self, app=None, *, escrow, conversion, sink=None, clock=timestamp, **config):
        self._escrow = escrow
        self._conversion = conversion
        self._sink = sink
        self._clock = clock
        super().__init__(app, **config)
        self._refunds = RefundHandler(self)

    @property
    def escrow(self):
        return self._escrow

    @property
    def conversion(self):
        return self._conversion

    @property
    def sink(self):
        return self._sink

    @property
    def refunds(self):
        return self._refunds

    def clock(self):
        return self._clock()


@TransferDomain.subscribe(DomainSignal.TRANSACTION_COMMITTED)
async def publish_committed_events(domain, events=()):
    if domain.sink is None:
        return

    for record in events:
        await domain.sink.publish(SinkEvent.from_record(domain, record))

    logger.debug('[SINK] Published %d events', len(events))
