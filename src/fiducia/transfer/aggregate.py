from datetime import timedelta

from fiducia.domain import Aggregate, action

from . import logger
from .datadef import RefundStatus
from .exceptions import (
    InvalidState,
    InvalidTransferRequest,
    NotYetExpired,
    TransferExpired,
    Unauthorized,
)
from .money import AccountAddress, DestinationInstrument
from .status import TransferStatus


class TransferAggregate(Aggregate):
    ''' Owns the lifecycle of a single transfer. All actions run within the
        per-transfer lock and the state manager transaction of the domain. '''

    def __init__(self, domain):
        super().__init__(domain)
        self.escrow = domain.escrow
        self.conversion = domain.conversion

    @property
    def now(self):
        return self.context.timestamp

    def _require_status(self, *expected):
        transfer = self.rootobj
        if transfer.status not in expected:
            raise InvalidState(
                "T00.409",
                f"Transfer [{transfer.id}] is {transfer.status.value}, "
                f"expected {' or '.join(s.value for s in expected)}",
                {"status": transfer.status.value},
            )

        return transfer

    def _require_actor(self, party, role):
        actor = self.context.actor
        if actor != str(party):
            raise Unauthorized("T00.403", f"Only the {role} [{party}] may perform this action, not [{actor}]")

        return actor

    async def _request_refund(self, transfer, source):
        receipt = self.statemgr.create('refund-receipt', dict(
            id=transfer.id,
            source=source,
            escrow_address=transfer.escrow_address,
            refund_to=transfer.sender,
            amount=transfer.held_amount,
            refund_amount=transfer.requested_amount,
            status=RefundStatus.REQUESTED,
            requested_at=self.now,
        ))
        await self.statemgr.insert(receipt)
        return receipt

    @action('transfer-initiated', resources='transfer')
    async def initiate(self, data):
        sender, recipient, amount = data.sender, data.recipient, data.amount

        if sender == recipient:
            raise InvalidTransferRequest("T00.400", f"Sender and recipient must differ [{sender}]")

        if amount.amount <= 0:
            raise InvalidTransferRequest("T00.400", f"Transfer amount must be positive [{amount}]")

        if data.expiry_window <= timedelta(0):
            raise InvalidTransferRequest("T00.400", f"Expiry window must be positive [{data.expiry_window}]")

        transfer_id = self.aggroot.identifier
        escrow_address = AccountAddress.for_escrow(transfer_id)
        holding = self.conversion.select_holding_currency(amount)

        if holding.code == amount.currency.code:
            held, funding = amount, None
        else:
            held, funding = (await self.conversion.convert(amount, holding)).final_amount, amount
            if held.amount <= 0:
                raise InvalidTransferRequest("T00.400", f"Amount {amount} is too small to be held in {holding.code}")

        # Nothing is recorded unless the reservation is confirmed
        posting = await self.escrow.reserve(sender, escrow_address, held, transfer_id, funding=funding)

        transfer = await self.init_resource('transfer', dict(
            id=transfer_id,
            sender=sender,
            recipient=recipient,
            requested_amount=amount,
            message=data.message,
            created_at=self.now,
            expires_at=self.now + data.expiry_window,
            status=TransferStatus.PENDING,
            escrow_address=escrow_address,
            held_amount=held,
        ))
        logger.info('[TRANSFER] %s initiated: %s => %s, held %s in %s',
                    transfer_id, sender, recipient, held, escrow_address)

        return dict(
            transfer_id=transfer_id,
            sender=sender,
            recipient=recipient,
            requested_amount=amount,
            held_amount=held,
            escrow_address=escrow_address,
            message=transfer.message,
            expires_at=transfer.expires_at,
            posting_id=posting.id,
        )

    @action('transfer-accepted', resources='transfer')
    async def accept(self, data):
        transfer = self._require_status(TransferStatus.PENDING)
        self._require_actor(transfer.recipient, 'recipient')

        if transfer.is_expired(self.now):
            raise TransferExpired("T00.421", f"Transfer [{transfer.id}] expired at {transfer.expires_at}")

        instrument = data.destination_instrument or DestinationInstrument.default_account()
        await self.update_rootobj(
            status=TransferStatus.ACCEPTED,
            accepted_at=self.now,
            destination_currency=data.destination_currency,
            destination_instrument=instrument,
        )
        logger.info('[TRANSFER] %s accepted into %s (%s)', transfer.id, data.destination_currency, instrument)

        return dict(
            transfer_id=transfer.id,
            destination_currency=data.destination_currency.code,
            destination_instrument=instrument.display(),
            held_amount=transfer.held_amount,
        )

    @action('transfer-declined', resources='transfer')
    async def decline(self, data):
        transfer = self._require_status(TransferStatus.PENDING)
        self._require_actor(transfer.recipient, 'recipient')

        await self.update_rootobj(status=TransferStatus.DECLINED, declined_at=self.now, reason=data.reason)
        await self._request_refund(transfer, TransferStatus.DECLINED)
        logger.info('[TRANSFER] %s declined: %s', transfer.id, data.reason)

        return dict(transfer_id=transfer.id, reason=data.reason, held_amount=transfer.held_amount)

    @action('transfer-cancelled', resources='transfer')
    async def cancel(self, data):
        transfer = self._require_status(TransferStatus.PENDING)
        self._require_actor(transfer.sender, 'sender')

        await self.update_rootobj(status=TransferStatus.CANCELLED, cancelled_at=self.now, reason=data.reason)
        await self._request_refund(transfer, TransferStatus.CANCELLED)
        logger.info('[TRANSFER] %s cancelled: %s', transfer.id, data.reason)

        return dict(transfer_id=transfer.id, reason=data.reason, held_amount=transfer.held_amount)

    @action('transfer-expired', resources='transfer')
    async def expire(self, data):
        transfer = self._require_status(TransferStatus.PENDING)

        if not transfer.is_expired(self.now):
            raise NotYetExpired("T00.412", f"Transfer [{transfer.id}] does not expire before {transfer.expires_at}")

        await self.update_rootobj(status=TransferStatus.EXPIRED, expired_at=self.now)
        await self._request_refund(transfer, TransferStatus.EXPIRED)
        logger.info('[TRANSFER] %s expired (deadline %s)', transfer.id, transfer.expires_at)

        return dict(transfer_id=transfer.id, expires_at=transfer.expires_at, held_amount=transfer.held_amount)

    @action('transfer-completed', resources='transfer')
    async def complete(self, data):
        transfer = self._require_status(TransferStatus.ACCEPTED)
        if transfer.destination_currency is None:
            raise InvalidState("T00.409", f"Transfer [{transfer.id}] has no destination currency")

        held = transfer.held_amount
        result = await self.conversion.convert(held, transfer.destination_currency)

        # The transfer stays ACCEPTED unless both release and payout are confirmed.
        # Both are keyed by the transfer id, a retry replays them.
        settlement = AccountAddress.for_settlement(held.currency)
        posting = await self.escrow.release(transfer.escrow_address, settlement, held, transfer.id)
        payout = await self.escrow.pay_out(
            transfer.recipient, transfer.destination_instrument, result.final_amount, transfer.id)

        await self.update_rootobj(
            status=TransferStatus.COMPLETED,
            completed_at=self.now,
            final_amount=payout.amount,
        )
        logger.info('[TRANSFER] %s completed: %s => %s', transfer.id, held, payout.amount)

        return dict(
            transfer_id=transfer.id,
            held_amount=held,
            final_amount=payout.amount,
            fee=result.fee,
            destination_instrument=transfer.destination_instrument.display(),
            posting_id=posting.id,
            payout_id=payout.id,
        )

    @action('transfer-refunded', resources='transfer')
    async def refund(self, receipt):
        # A foreign hold is unwound through the clearing accounts, the sender
        # gets back exactly what was debited at initiation
        credit = None if receipt.refund_amount == receipt.amount else receipt.refund_amount
        posting = await self.escrow.release(
            receipt.escrow_address, receipt.refund_to, receipt.amount, receipt.id, credit=credit)
        await self.statemgr.update(
            receipt,
            status=RefundStatus.COMPLETED,
            refunded_at=self.now,
            posting_id=posting.id,
        )
        logger.info('[TRANSFER] %s refunded %s to %s (released %s)',
                    receipt.id, receipt.refund_amount, receipt.refund_to, receipt.amount)

        return dict(
            transfer_id=receipt.id,
            refunded_to=receipt.refund_to,
            amount=receipt.refund_amount,
            released_amount=receipt.amount,
            source_status=receipt.source.value,
            posting_id=posting.id,
        )
