""" Escrow accounting adapter

    Translates each transfer decision into exactly one ledger instruction,
    keyed by the transfer id. Transient failures are retried with bounded
    exponential backoff. An ambiguous failure (timeout) is only retried once
    a lookup by replay key confirmed the instruction did not take effect.
"""

import asyncio

from collections import defaultdict
from datetime import datetime
from typing import Dict, Optional

from fiducia.data import DataModel, timestamp
from fiducia.helper import retry_async

from . import config, logger
from .exceptions import (
    InsufficientFunds,
    LedgerTimeout,
    LedgerUnavailable,
    ReconciliationRequired,
    ReservationFailed,
)
from .ledger import LedgerOperation
from .money import AccountAddress, CurrencyKind, MultiCurrencyAmount


class ReconciliationItem(DataModel):
    operation: str
    key: str
    source: Optional[str] = None
    destination: str
    amount: MultiCurrencyAmount
    error: str
    flagged_at: datetime


class EscrowAudit(DataModel):
    escrow: AccountAddress
    reserved: Dict[str, int] = {}
    released: Dict[str, int] = {}
    held: Dict[str, int] = {}

    @property
    def balanced(self):
        currencies = set(self.reserved) | set(self.released)
        return all(self.reserved.get(c, 0) == self.released.get(c, 0) for c in currencies) \
            and not any(self.held.values())


class EscrowAccountingAdapter(object):
    def __init__(self, ledger, payout_rail=None, *, max_attempts=None, backoff_base=None,
                 backoff_max=None, sleep=asyncio.sleep):
        self._ledger = ledger
        self._payout_rail = payout_rail
        self._sleep = sleep
        self.max_attempts = config.LEDGER_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.backoff_base = config.LEDGER_BACKOFF_BASE if backoff_base is None else backoff_base
        self.backoff_max = config.LEDGER_BACKOFF_MAX if backoff_max is None else backoff_max
        self._reconciliation = []

    @property
    def ledger(self):
        return self._ledger

    @property
    def payout_rail(self):
        return self._payout_rail

    @property
    def reconciliation_queue(self):
        return tuple(self._reconciliation)

    def _flag(self, operation, key, source, destination, amount, error):
        item = ReconciliationItem(
            operation=operation,
            key=str(key),
            source=None if source is None else str(source),
            destination=str(destination),
            amount=amount,
            error=str(error),
            flagged_at=timestamp(),
        )
        self._reconciliation.append(item)
        logger.error('[RECONCILIATION] %s [%s] %s => %s flagged: %s',
                     operation, key, source, destination, error)
        return item

    async def _execute(self, operation, key, instruct, lookup, flag_args):
        ''' Run `instruct` until it is confirmed. On timeout the instruction is
            looked up by its replay key before being attempted again. '''

        async def _attempt():
            try:
                return await instruct()
            except LedgerTimeout:
                if (confirmed := await lookup()) is not None:
                    logger.warning('[ESCROW] %s [%s] timed out but was applied', operation, key)
                    return confirmed
                raise

        try:
            return await retry_async(
                _attempt,
                attempts=self.max_attempts,
                base=self.backoff_base,
                cap=self.backoff_max,
                retry_on=(LedgerUnavailable, LedgerTimeout),
                sleep=self._sleep,
                label=f'ledger.{operation} [{key}]',
            )
        except (LedgerUnavailable, LedgerTimeout) as e:
            self._flag(operation, key, *flag_args, e)
            raise ReconciliationRequired(
                "T00.500",
                f"Ledger instruction [{operation}/{key}] could not be confirmed after {self.max_attempts} attempts",
                {"operation": operation, "key": str(key), "error": str(e)},
            ) from e

    async def reserve(self, source, escrow, amount, key, funding=None):
        ''' Move `amount` into escrow. `funding` is what the sender is debited
            when the funds are held in a different currency. '''
        try:
            return await self._execute(
                LedgerOperation.RESERVE.value, key,
                lambda: self._ledger.reserve(source, escrow, amount, key, funding=funding),
                lambda: self._ledger.lookup(LedgerOperation.RESERVE, key),
                (source, escrow, amount),
            )
        except InsufficientFunds as e:
            raise ReservationFailed("T00.423", f"Unable to reserve {amount} from {source}: {e.message}") from e

    async def release(self, escrow, destination, amount, key, credit=None):
        ''' Move `amount` out of escrow. With `credit` the destination receives
            that amount instead, converted back through the clearing accounts. '''
        return await self._execute(
            LedgerOperation.RELEASE.value, key,
            lambda: self._ledger.release(escrow, destination, amount, key, credit=credit),
            lambda: self._ledger.lookup(LedgerOperation.RELEASE, key),
            (escrow, destination, amount),
        )

    async def pay_out(self, recipient, instrument, amount, key):
        ''' Deliver settled funds to the recipient's instrument, or to the
            recipient account when no instrument was chosen. Crypto
            goes to the per-coin sub-account of the recipient. '''
        if self._payout_rail is None:
            raise RuntimeError('No payout rail configured')

        rail = self._payout_rail
        if instrument is None or instrument.is_default_account:
            source = AccountAddress.for_settlement(amount.currency)
            if amount.currency.kind == CurrencyKind.CRYPTO:
                recipient = AccountAddress.for_user_crypto(recipient.owner, amount.currency)
            instruct = lambda: rail.pay_to_account(source, recipient, amount, key)  # noqa: E731
        else:
            source = None
            instruct = lambda: rail.pay_to_instrument(instrument, amount, key)  # noqa: E731

        # A payout that already went through under this key is not repeated
        if (existing := await rail.lookup(key)) is not None:
            logger.info('[ESCROW] Payout [%s] already delivered: %s', key, existing.amount)
            return existing

        return await self._execute(
            LedgerOperation.PAYOUT.value, key, instruct,
            lambda: rail.lookup(key),
            (source, recipient if source else instrument.display(), amount),
        )

    async def amount_held(self, escrow, currency):
        return await self._ledger.balance(escrow, currency)

    def audit(self, escrow):
        reserved, released, held = defaultdict(int), defaultdict(int), defaultdict(int)
        for posting in self._ledger.entries(escrow):
            for leg in posting.legs:
                if leg.account != escrow:
                    continue

                if leg.delta > 0:
                    reserved[leg.currency] += leg.delta
                else:
                    released[leg.currency] += -leg.delta

                held[leg.currency] += leg.delta

        return EscrowAudit(escrow=escrow, reserved=dict(reserved), released=dict(released), held=dict(held))

    def verify_conservation(self, escrow):
        ''' Everything that entered the escrow account has left it '''
        return self.audit(escrow).balanced
