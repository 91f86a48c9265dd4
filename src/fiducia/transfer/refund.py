""" Refund handler

    Consumes refund requests emitted by decline, cancel and expire. The
    refund receipt written with the transition is the idempotency record:
    a request whose receipt is completed is skipped, a failed refund leaves
    the receipt requested so that the sweeper drives it again later.
"""

from fiducia.domain import DomainTransport

from . import logger
from .datadef import RefundStatus
from .exceptions import LedgerConflict, LedgerTimeout, LedgerUnavailable, ReconciliationRequired

REFUND_ACTOR = 'system:refund:handler'


class RefundHandler(object):
    def __init__(self, domain):
        self._domain = domain

    async def handle(self, transfer_id):
        domain = self._domain
        command = domain.create_command('process-refund', None, ('transfer', transfer_id))

        with domain.session(
            actor=REFUND_ACTOR,
            transport=DomainTransport.MESSAGE,
            source='refund-handler',
            timestamp=domain.clock(),
        ):
            try:
                events = await domain.process_command(command)
            except (ReconciliationRequired, LedgerUnavailable, LedgerTimeout, LedgerConflict) as e:
                logger.error('[REFUND] Refund of transfer [%s] is left pending: %s', transfer_id, e)
                return None

        if events:
            logger.info('[REFUND] Transfer [%s] refunded', transfer_id)

        return events

    async def pending(self, limit=None):
        query = dict(where={'status': RefundStatus.REQUESTED}, sort=('requested_at',))
        if limit is not None:
            query['limit'] = limit

        return await self._domain.statemgr.find_all('refund-receipt', **query)

    async def redrive(self, limit=None):
        ''' Process the refunds that have been requested but not completed.
            Returns the number of refunds completed. '''
        completed = 0
        for receipt in await self.pending(limit):
            if await self.handle(receipt.id):
                completed += 1

        return completed
