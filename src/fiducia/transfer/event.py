""" Transfer events

    Each event carries an explicit, versioned set of fields. Fields that are
    not declared are preserved as-is but never interpreted.
"""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict

from fiducia.data import UUID_TYPE, DataModel

from .domain import TransferDomain
from .money import AccountAddress, MultiCurrencyAmount

Event = TransferDomain.Event


class TransferEventData(DataModel):
    model_config = ConfigDict(frozen=True, extra='allow')

    version: int = 1
    transfer_id: UUID_TYPE


class TransferInitiated(Event):
    class Data(TransferEventData):
        sender: AccountAddress
        recipient: AccountAddress
        requested_amount: MultiCurrencyAmount
        held_amount: MultiCurrencyAmount
        escrow_address: AccountAddress
        message: str = ''
        expires_at: datetime
        posting_id: str


class TransferAccepted(Event):
    class Data(TransferEventData):
        destination_currency: str
        destination_instrument: str
        held_amount: MultiCurrencyAmount


class TransferDeclined(Event):
    class Data(TransferEventData):
        reason: Optional[str] = None
        held_amount: MultiCurrencyAmount


class TransferCancelled(Event):
    class Data(TransferEventData):
        reason: Optional[str] = None
        held_amount: MultiCurrencyAmount


class TransferExpired(Event):
    class Data(TransferEventData):
        expires_at: datetime
        held_amount: MultiCurrencyAmount


class TransferCompleted(Event):
    class Data(TransferEventData):
        held_amount: MultiCurrencyAmount
        final_amount: MultiCurrencyAmount
        fee: MultiCurrencyAmount
        destination_instrument: str
        posting_id: str
        payout_id: str


class TransferRefunded(Event):
    class Data(TransferEventData):
        refunded_to: AccountAddress
        amount: MultiCurrencyAmount
        released_amount: Optional[MultiCurrencyAmount] = None
        source_status: str
        posting_id: str
