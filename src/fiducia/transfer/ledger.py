""" Ledger contract and an in-memory reference ledger.

    Every fund movement is a posting identified by `(operation, key)`.
    Replaying the same instruction under the same key returns the original
    posting; reusing a key for a different instruction is a conflict.
"""

import asyncio
import enum

from collections import deque
from datetime import datetime
from typing import Optional, Tuple

from fiducia.data import UUID_GENR, DataModel, timestamp

from . import logger
from .exceptions import InsufficientFunds, LedgerConflict
from .money import AccountAddress, MultiCurrencyAmount

# Clearing accounts that may temporarily hold a negative balance
OVERDRAFT_NAMESPACES = ('settlement', 'external')
EXTERNAL_FUNDING = AccountAddress(namespace='external', owner='world', kind='funding')


class LedgerOperation(str, enum.Enum):
    DEPOSIT = 'deposit'
    RESERVE = 'reserve'
    RELEASE = 'release'
    PAYOUT = 'payout'


class PostingLeg(DataModel):
    account: AccountAddress
    currency: str
    delta: int


class Posting(DataModel):
    id: str
    operation: LedgerOperation
    key: str
    source: AccountAddress
    destination: AccountAddress
    amount: MultiCurrencyAmount
    funding: Optional[MultiCurrencyAmount] = None
    credit: Optional[MultiCurrencyAmount] = None
    legs: Tuple[PostingLeg, ...]
    timestamp: datetime

    def same_instruction(self, source, destination, amount, funding=None, credit=None):
        return (self.source, self.destination, self.amount, self.funding, self.credit) == \
            (source, destination, amount, funding, credit)


class Ledger(object):
    ''' The authoritative double-entry store. Only its interface is used
        by the transfer workflow. '''

    async def reserve(self, source, escrow, amount, key, funding=None) -> Posting:
        raise NotImplementedError('Ledger.reserve')

    async def release(self, escrow, destination, amount, key, credit=None) -> Posting:
        raise NotImplementedError('Ledger.release')

    async def transfer(self, source, destination, amount, key) -> Posting:
        raise NotImplementedError('Ledger.transfer')

    async def lookup(self, operation, key) -> Optional[Posting]:
        raise NotImplementedError('Ledger.lookup')

    async def balance(self, address, currency) -> MultiCurrencyAmount:
        raise NotImplementedError('Ledger.balance')

    def entries(self, address) -> Tuple[Posting, ...]:
        raise NotImplementedError('Ledger.entries')


class InMemoryLedger(Ledger):
    '''
    Reference ledger with fault injection:

    - `fail_next(operation, error)` raises `error` on the next call of that operation
    - with `after_commit=True` the posting takes effect before the error is raised,
      which is how an ambiguous timeout looks from the caller's side.
    '''

    def __init__(self, latency=0):
        self._balances = {}
        self._postings = {}
        self._faults = {}
        self._latency = latency

    def fail_next(self, operation, error, times=1, after_commit=False):
        queue = self._faults.setdefault(LedgerOperation(operation), deque())
        for _ in range(times):
            queue.append((error, after_commit))

    def _pop_fault(self, operation):
        queue = self._faults.get(operation)
        return queue.popleft() if queue else (None, False)

    def _raise(self, error, operation, key):
        if isinstance(error, type):
            error = error("T00.590", f"Injected ledger failure [{operation.value}/{key}]")
        raise error

    @property
    def postings(self):
        return tuple(self._postings.values())

    def _balance(self, account, currency):
        return self._balances.get((str(account), currency), 0)

    def _legs(self, source, destination, debit, credit):
        if debit.currency.code == credit.currency.code:
            return (
                PostingLeg(account=source, currency=debit.currency.code, delta=-debit.amount),
                PostingLeg(account=destination, currency=credit.currency.code, delta=credit.amount),
            )

        # Debit and credit in different currencies: routed through the clearing accounts
        debit_clearing = AccountAddress.for_settlement(debit.currency)
        credit_clearing = AccountAddress.for_settlement(credit.currency)
        return (
            PostingLeg(account=source, currency=debit.currency.code, delta=-debit.amount),
            PostingLeg(account=debit_clearing, currency=debit.currency.code, delta=debit.amount),
            PostingLeg(account=credit_clearing, currency=credit.currency.code, delta=-credit.amount),
            PostingLeg(account=destination, currency=credit.currency.code, delta=credit.amount),
        )

    async def _post(self, operation, source, destination, amount, key, funding=None, credit=None):
        ''' `funding` is debited from the source instead of `amount`, `credit` is
            credited to the destination instead of `amount`. '''
        if self._latency is not None:
            await asyncio.sleep(self._latency)

        key = str(key)
        error, after_commit = self._pop_fault(operation)
        if error is not None and not after_commit:
            self._raise(error, operation, key)

        if (existing := self._postings.get((operation, key))) is not None:
            if not existing.same_instruction(source, destination, amount, funding, credit):
                raise LedgerConflict(
                    "T00.410", f"Replay key [{operation.value}/{key}] was used for a different instruction")

            logger.info('[LEDGER] Replayed posting %s [%s/%s]', existing.id, operation.value, key)
            return existing

        legs = self._legs(source, destination, funding or amount, credit or amount)
        for leg in legs:
            if leg.account.namespace in OVERDRAFT_NAMESPACES:
                continue

            if self._balance(leg.account, leg.currency) + leg.delta < 0:
                raise InsufficientFunds(
                    "T00.424", f"Insufficient balance in [{leg.account}] for {-leg.delta} {leg.currency}")

        for leg in legs:
            ledger_key = (str(leg.account), leg.currency)
            self._balances[ledger_key] = self._balances.get(ledger_key, 0) + leg.delta

        posting = Posting(
            id=str(UUID_GENR()),
            operation=operation,
            key=key,
            source=source,
            destination=destination,
            amount=amount,
            funding=funding,
            credit=credit,
            legs=legs,
            timestamp=timestamp(),
        )
        self._postings[operation, key] = posting
        logger.info('[LEDGER] %s %s: %s => %s [%s]', operation.value, amount, source, destination, key)

        if error is not None:
            self._raise(error, operation, key)

        return posting

    async def deposit(self, address, amount, key=None):
        ''' Fund an account from outside the system (used for setup and tests) '''
        return await self._post(LedgerOperation.DEPOSIT, EXTERNAL_FUNDING, address, amount, key or UUID_GENR())

    async def reserve(self, source, escrow, amount, key, funding=None):
        return await self._post(LedgerOperation.RESERVE, source, escrow, amount, key, funding)

    async def release(self, escrow, destination, amount, key, credit=None):
        return await self._post(LedgerOperation.RELEASE, escrow, destination, amount, key, credit=credit)

    async def transfer(self, source, destination, amount, key):
        return await self._post(LedgerOperation.PAYOUT, source, destination, amount, key)

    async def lookup(self, operation, key):
        return self._postings.get((LedgerOperation(operation), str(key)))

    async def balance(self, address, currency):
        ''' Balance of a customer or escrow account '''
        code = currency.code if hasattr(currency, 'code') else str(currency)
        return MultiCurrencyAmount.of(self._balance(address, code), code)

    def net_position(self, address, currency):
        ''' Signed balance, clearing accounts may be negative '''
        code = currency.code if hasattr(currency, 'code') else str(currency)
        return self._balance(address, code)

    def entries(self, address):
        ''' All postings with a leg on the given account '''
        return tuple(
            posting for posting in self._postings.values()
            if any(leg.account == address for leg in posting.legs)
        )
