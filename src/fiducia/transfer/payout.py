import asyncio
import enum

from collections import deque
from datetime import datetime
from typing import Optional

from fiducia.data import UUID_GENR, DataModel, timestamp

from . import logger
from .exceptions import LedgerConflict
from .money import AccountAddress, DestinationInstrument, MultiCurrencyAmount


class PayoutKind(str, enum.Enum):
    ACCOUNT = 'ACCOUNT'
    INSTRUMENT = 'INSTRUMENT'


class Payout(DataModel):
    id: str
    key: str
    kind: PayoutKind
    source: Optional[AccountAddress] = None
    destination: str
    amount: MultiCurrencyAmount
    timestamp: datetime


class PayoutRail(object):
    ''' Delivers settled funds to the recipient, keyed by the transfer id '''

    async def pay_to_account(self, source, destination, amount, key) -> Payout:
        raise NotImplementedError('PayoutRail.pay_to_account')

    async def pay_to_instrument(self, instrument, amount, key) -> Payout:
        raise NotImplementedError('PayoutRail.pay_to_instrument')

    async def lookup(self, key) -> Optional[Payout]:
        raise NotImplementedError('PayoutRail.lookup')


class InMemoryPayoutRail(PayoutRail):
    ''' Records payouts. When a ledger is given, account payouts are also
        posted to it so that recipient balances can be observed. '''

    def __init__(self, ledger=None, latency=0):
        self._ledger = ledger
        self._latency = latency
        self._payouts = {}
        self._faults = deque()

    def fail_next(self, error, times=1, after_commit=False):
        for _ in range(times):
            self._faults.append((error, after_commit))

    @property
    def payouts(self):
        return tuple(self._payouts.values())

    def _raise(self, error, key):
        if isinstance(error, type):
            error = error("T00.591", f"Injected payout failure [{key}]")
        raise error

    async def _pay(self, kind, source, destination, amount, key, deliver):
        await asyncio.sleep(self._latency)

        key = str(key)
        error, after_commit = self._faults.popleft() if self._faults else (None, False)
        if error is not None and not after_commit:
            self._raise(error, key)

        if (existing := self._payouts.get(key)) is not None:
            if (existing.kind, existing.destination, existing.amount) != (kind, destination, amount):
                raise LedgerConflict("T00.411", f"Payout key [{key}] was used for a different payout")

            return existing

        await deliver()
        payout = Payout(
            id=str(UUID_GENR()),
            key=key,
            kind=kind,
            source=source,
            destination=destination,
            amount=amount,
            timestamp=timestamp(),
        )
        self._payouts[key] = payout
        logger.info('[PAYOUT] %s to %s [%s]', amount, destination, key)

        if error is not None:
            self._raise(error, key)

        return payout

    async def pay_to_account(self, source: AccountAddress, destination: AccountAddress,
                             amount: MultiCurrencyAmount, key):
        async def _deliver():
            if self._ledger is not None:
                await self._ledger.transfer(source, destination, amount, key)

        return await self._pay(PayoutKind.ACCOUNT, source, str(destination), amount, key, _deliver)

    async def pay_to_instrument(self, instrument: DestinationInstrument, amount: MultiCurrencyAmount, key):
        source = AccountAddress.for_settlement(amount.currency)
        target = AccountAddress(namespace='external', owner='cards', kind='payout')

        async def _deliver():
            if self._ledger is not None:
                await self._ledger.transfer(source, target, amount, key)

        return await self._pay(PayoutKind.INSTRUMENT, source, instrument.display(), amount, key, _deliver)

    async def lookup(self, key):
        return self._payouts.get(str(key))
