from datetime import timedelta
from typing import Optional

from pydantic import Field

from fiducia.data import DataModel

from . import logger
from .datadef import RefundStatus
from .domain import TransferDomain
from .money import AccountAddress, Currency, DestinationInstrument, MultiCurrencyAmount

Command = TransferDomain.Command


class InitiateTransfer(Command):
    """Reserve the sender's funds into a new escrow account"""

    class Meta:
        resources = ("transfer",)
        tags = ["transfer", "escrow"]
        new_resource = True

    class Data(DataModel):
        sender: AccountAddress
        recipient: AccountAddress
        amount: MultiCurrencyAmount
        message: str = Field(default='', max_length=500)
        expiry_window: timedelta

    async def _process(self, agg, stm, payload):
        await agg.initiate(payload)


class AcceptTransfer(Command):
    """Recipient accepts and chooses how to receive the funds"""

    class Meta:
        resources = ("transfer",)
        tags = ["transfer"]

    class Data(DataModel):
        destination_currency: Currency
        destination_instrument: Optional[DestinationInstrument] = None

    async def _process(self, agg, stm, payload):
        await agg.accept(payload)


class DeclineTransfer(Command):
    """Recipient declines, the funds go back to the sender"""

    class Meta:
        resources = ("transfer",)
        tags = ["transfer", "refund"]

    class Data(DataModel):
        reason: Optional[str] = Field(default=None, max_length=500)

    async def _process(self, agg, stm, payload):
        transfer = await agg.decline(payload)
        yield agg.create_message('refund-requested', data=dict(transfer_id=transfer['transfer_id'], source='DECLINED'))


class CancelTransfer(Command):
    """Sender withdraws a pending transfer"""

    class Meta:
        resources = ("transfer",)
        tags = ["transfer", "refund"]

    class Data(DataModel):
        reason: Optional[str] = Field(default=None, max_length=500)

    async def _process(self, agg, stm, payload):
        transfer = await agg.cancel(payload)
        yield agg.create_message('refund-requested', data=dict(transfer_id=transfer['transfer_id'], source='CANCELLED'))


class ExpireTransfer(Command):
    """Time out a pending transfer once its deadline has passed"""

    class Meta:
        resources = ("transfer",)
        tags = ["transfer", "refund"]

    async def _process(self, agg, stm, payload):
        transfer = await agg.expire(payload)
        yield agg.create_message('refund-requested', data=dict(transfer_id=transfer['transfer_id'], source='EXPIRED'))


class CompleteTransfer(Command):
    """Convert the escrowed funds and pay them out to the recipient"""

    class Meta:
        resources = ("transfer",)
        tags = ["transfer", "payout"]

    async def _process(self, agg, stm, payload):
        await agg.complete(payload)


class ProcessRefund(Command):
    """Release the escrowed funds back to the sender, at most once"""

    class Meta:
        resources = ("transfer",)
        tags = ["refund"]

    async def _process(self, agg, stm, payload):
        transfer_id = agg.get_aggroot().identifier
        receipt = await stm.find_one('refund-receipt', identifier=transfer_id)

        if receipt is None:
            logger.warning('[REFUND] No refund requested for transfer [%s]', transfer_id)
            return

        if receipt.status == RefundStatus.COMPLETED:
            logger.info('[REFUND] Transfer [%s] already refunded at %s', transfer_id, receipt.refunded_at)
            return

        await agg.refund(receipt)
