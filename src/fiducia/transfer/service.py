""" Service boundary of the transfer workflow

    Owns the keyed store of transfers (through the domain state manager) and
    the collaborators. Transfers never hold references to each other, every
    operation addresses a transfer by its id.
"""

import asyncio

from pydantic import ValidationError

from fiducia.data import UUID_GENR, UUID_TYPE
from fiducia.data.exceptions import ItemNotFoundError
from fiducia.domain import DomainTransport
from fiducia.helper import timestamp
from fiducia.helper.timeutil import as_timedelta

from . import config
from .conversion import ConversionPolicy
from .domain import TransferDomain
from .escrow import EscrowAccountingAdapter
from .exceptions import InvalidTransferRequest, TransferNotFound
from .payout import InMemoryPayoutRail
from .status import TransferStatus, replay_status

RESOURCE = 'transfer'


def _actor(value):
    return None if value is None else str(value)


class TransferService(object):
    def __init__(self, ledger, oracle, payout_rail=None, *, sink=None, clock=timestamp,
                 sleep=asyncio.sleep, escrow=None, conversion=None, **domain_config):
        self._clock = clock
        self._escrow = escrow or EscrowAccountingAdapter(
            ledger, payout_rail or InMemoryPayoutRail(ledger), sleep=sleep)
        self._conversion = conversion or ConversionPolicy(oracle, sleep=sleep)
        self._domain = TransferDomain(
            escrow=self._escrow,
            conversion=self._conversion,
            sink=sink,
            clock=clock,
            **domain_config,
        )

    @property
    def domain(self):
        return self._domain

    @property
    def escrow(self):
        return self._escrow

    @property
    def conversion(self):
        return self._conversion

    @property
    def statemgr(self):
        return self._domain.statemgr

    async def _execute(self, cmd_key, transfer_id, payload=None, *, actor=None,
                       transport=DomainTransport.API):
        try:
            command = self._domain.create_command(cmd_key, payload, (RESOURCE, transfer_id))
        except ValidationError as e:
            raise InvalidTransferRequest(
                "T00.400", f"Invalid [{cmd_key}] request", e.errors(include_url=False, include_context=False)
            ) from e

        with self._domain.session(
            actor=actor,
            transport=transport,
            source='transfer-service',
            timestamp=self._clock(),
        ):
            try:
                return await self._domain.process_command(command)
            except ItemNotFoundError as e:
                raise TransferNotFound("T00.404", f"Transfer not found [{transfer_id}]") from e

    async def initiate(self, sender, recipient, amount, message='', expiry_window=None):
        ''' Reserve `amount` from `sender` for `recipient`. The transfer only
            exists once the reservation is confirmed by the ledger. '''
        try:
            window = as_timedelta(config.DEFAULT_EXPIRY_HOURS if expiry_window is None else expiry_window)
        except ValueError as e:
            raise InvalidTransferRequest("T00.400", str(e)) from e

        transfer_id = UUID_GENR()
        await self._execute('initiate-transfer', transfer_id, dict(
            sender=sender,
            recipient=recipient,
            amount=amount,
            message=message or '',
            expiry_window=window,
        ), actor=_actor(sender))

        return await self.get(transfer_id)

    async def accept(self, transfer_id, destination_currency, destination_instrument=None, *, actor):
        await self._execute('accept-transfer', transfer_id, dict(
            destination_currency=destination_currency,
            destination_instrument=destination_instrument,
        ), actor=_actor(actor))
        return await self.get(transfer_id)

    async def decline(self, transfer_id, *, actor, reason=None):
        await self._execute('decline-transfer', transfer_id, dict(reason=reason), actor=_actor(actor))
        return await self.get(transfer_id)

    async def cancel(self, transfer_id, *, actor, reason=None):
        await self._execute('cancel-transfer', transfer_id, dict(reason=reason), actor=_actor(actor))
        return await self.get(transfer_id)

    async def complete(self, transfer_id, *, actor=None):
        await self._execute('complete-transfer', transfer_id, actor=_actor(actor))
        return await self.get(transfer_id)

    async def expire(self, transfer_id, *, actor=None):
        ''' Expire a pending transfer whose deadline has passed on the service clock '''
        await self._execute('expire-transfer', transfer_id, actor=_actor(actor),
                            transport=DomainTransport.SCHEDULER)
        return await self.get(transfer_id)

    async def get(self, transfer_id):
        try:
            return await self.statemgr.fetch(RESOURCE, UUID_TYPE(str(transfer_id)))
        except (ItemNotFoundError, ValueError) as e:
            raise TransferNotFound("T00.404", f"Transfer not found [{transfer_id}]") from e

    async def find_expired(self, now, limit=None):
        ''' Pending transfers whose deadline has passed, oldest deadline first '''
        query = dict(
            where={'status': TransferStatus.PENDING, 'expires_at.lte': now},
            sort=('expires_at',),
        )
        if limit is not None:
            query['limit'] = limit

        return await self.statemgr.find_all(RESOURCE, **query)

    async def history(self, transfer_id):
        return await self._domain.logstore.fetch_events(UUID_TYPE(str(transfer_id)))

    async def replay_status(self, transfer_id):
        ''' Rebuild the status of a transfer from its event log only '''
        events = await self.history(transfer_id)
        if not events:
            raise TransferNotFound("T00.404", f"No events recorded for transfer [{transfer_id}]")

        return replay_status(events)

    async def redrive_refunds(self, limit=None):
        return await self._domain.refunds.redrive(limit)

    async def pending_refunds(self):
        return await self._domain.refunds.pending()

    async def audit(self, transfer_id):
        transfer = await self.get(transfer_id)
        return self._escrow.audit(transfer.escrow_address)

    async def amount_held(self, transfer_id):
        transfer = await self.get(transfer_id)
        return await self._escrow.amount_held(transfer.escrow_address, transfer.held_amount.currency)

    def reconciliation_queue(self):
        return self._escrow.reconciliation_queue

    def __repr__(self):
        return f'<TransferService domain={self._domain.domain_name}>'


__all__ = ("TransferService",)
