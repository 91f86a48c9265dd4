import enum

from datetime import datetime
from typing import Optional

from fiducia.data import UUID_TYPE, DataModel
from fiducia.domain import StateManager

from .money import AccountAddress, Currency, DestinationInstrument, MultiCurrencyAmount
from .status import TransferStatus


class TransferStateManager(StateManager):
    pass


class RecordModel(DataModel):
    id: UUID_TYPE
    etag: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None


@TransferStateManager.register_model('transfer')
class TransferRecord(RecordModel):
    sender: AccountAddress
    recipient: AccountAddress
    requested_amount: MultiCurrencyAmount
    message: str = ''
    created_at: datetime
    expires_at: datetime
    status: TransferStatus = TransferStatus.PENDING

    escrow_address: AccountAddress
    held_amount: MultiCurrencyAmount

    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    destination_currency: Optional[Currency] = None
    destination_instrument: Optional[DestinationInstrument] = None
    final_amount: Optional[MultiCurrencyAmount] = None
    reason: Optional[str] = None

    @property
    def is_terminal(self):
        return self.status.is_terminal

    def is_expired(self, now):
        return now >= self.expires_at


class RefundStatus(str, enum.Enum):
    REQUESTED = 'REQUESTED'
    COMPLETED = 'COMPLETED'


@TransferStateManager.register_model('refund-receipt')
class RefundReceipt(RecordModel):
    ''' Durable marker of a refund, keyed by the transfer id. Written together
        with the transition that requests the refund, completed once the
        escrow has been released back to the sender. '''

    source: TransferStatus
    escrow_address: AccountAddress
    refund_to: AccountAddress
    # Released from escrow, in the holding currency
    amount: MultiCurrencyAmount
    # Credited to the sender, in the currency of the request
    refund_amount: MultiCurrencyAmount
    status: RefundStatus = RefundStatus.REQUESTED
    requested_at: datetime
    refunded_at: Optional[datetime] = None
    posting_id: Optional[str] = None
