""" Currency conversion policy

    Rates are integer ratios of minor units (numerator / denominator), so a
    conversion is a single integer multiplication followed by a floor division.
"""

import asyncio

from collections import deque
from decimal import Decimal
from math import gcd
from typing import Annotated, Optional

from pydantic import Field

from fiducia.data import DataModel
from fiducia.helper import retry_async

from . import config, logger
from .exceptions import ConversionRejected, OracleUnavailable
from .money import Currency, MultiCurrencyAmount

BPS = 10000


def _code(currency):
    return currency.code if isinstance(currency, Currency) else Currency.lookup(currency).code


class RateQuote(DataModel):
    source: Currency
    target: Currency
    numerator: Annotated[int, Field(strict=True, gt=0)]
    denominator: Annotated[int, Field(strict=True, gt=0)]
    max_slippage_bps: Annotated[int, Field(ge=0)] = config.MAX_SLIPPAGE_BPS

    @classmethod
    def from_major_rate(cls, source, target, rate, **kwargs):
        ''' Derive the minor unit ratio from a rate between major units.
            E.g. 1 USD = 0.92 EUR => 92/100 (both have a precision of 2). '''
        if isinstance(rate, float):
            raise ValueError(f'Floating point rates are not allowed: {rate!r}')

        source = source if isinstance(source, Currency) else Currency.lookup(source)
        target = target if isinstance(target, Currency) else Currency.lookup(target)

        num, den = Decimal(str(rate)).as_integer_ratio()
        num *= 10 ** target.precision
        den *= 10 ** source.precision
        divisor = gcd(num, den)
        return cls(source=source, target=target, numerator=num // divisor, denominator=den // divisor, **kwargs)

    def apply(self, amount: int) -> int:
        return amount * self.numerator // self.denominator

    def inverse(self):
        return self.set(source=self.target, target=self.source,
                        numerator=self.denominator, denominator=self.numerator)


class ConversionResult(DataModel):
    source_amount: MultiCurrencyAmount
    realized_amount: MultiCurrencyAmount
    fee: MultiCurrencyAmount
    final_amount: MultiCurrencyAmount
    quote: Optional[RateQuote] = None

    @property
    def is_identity(self):
        return self.quote is None


class RateOracle(object):
    async def quote(self, source, target, amount) -> RateQuote:
        raise NotImplementedError('RateOracle.quote')

    async def convert(self, amount, target, quote) -> MultiCurrencyAmount:
        raise NotImplementedError('RateOracle.convert')


class StaticRateOracle(RateOracle):
    '''
    Serves configured major-unit rates. `drift_bps` moves the realized rate
    away from the quoted one to exercise the slippage check.
    '''

    def __init__(self, rates=None, drift_bps=0, max_slippage_bps=None, latency=0):
        self._quotes = {}
        self._faults = deque()
        self._latency = latency
        self.drift_bps = drift_bps
        self.max_slippage_bps = config.MAX_SLIPPAGE_BPS if max_slippage_bps is None else max_slippage_bps

        for (source, target), rate in (rates or {}).items():
            self.set_rate(source, target, rate)

    def set_rate(self, source, target, rate):
        quote = RateQuote.from_major_rate(source, target, rate, max_slippage_bps=self.max_slippage_bps)
        self._quotes[quote.source.code, quote.target.code] = quote
        self._quotes.setdefault((quote.target.code, quote.source.code), quote.inverse())

    def fail_next(self, error=OracleUnavailable, times=1):
        self._faults.extend([error] * times)

    async def quote(self, source, target, amount):
        await asyncio.sleep(self._latency)
        if self._faults:
            error = self._faults.popleft()
            raise error("T00.592", "Injected oracle failure") if isinstance(error, type) else error

        try:
            return self._quotes[_code(source), _code(target)]
        except KeyError:
            raise ConversionRejected("T00.425", f"No rate available for {_code(source)} => {_code(target)}")

    async def convert(self, amount, target, quote):
        realized = quote.apply(amount.amount) * (BPS + self.drift_bps) // BPS
        return MultiCurrencyAmount.of(max(realized, 0), target)


class ConversionPolicy(object):
    def __init__(self, oracle, *, holding_currencies=None, profiles=None, default_profile=None,
                 fee_weight=None, delay_weight=None, conversion_fee_bps=None, max_slippage_bps=None,
                 max_attempts=None, backoff_base=None, backoff_max=None, sleep=asyncio.sleep):
        def _cfg(value, key):
            return getattr(config, key) if value is None else value

        self._oracle = oracle
        self._sleep = sleep
        self.holding_currencies = tuple(_cfg(holding_currencies, 'HOLDING_CURRENCIES'))
        self.profiles = _cfg(profiles, 'HOLDING_CURRENCY_PROFILES')
        self.default_profile = _cfg(default_profile, 'DEFAULT_CURRENCY_PROFILE')
        self.fee_weight = _cfg(fee_weight, 'FEE_WEIGHT')
        self.delay_weight = _cfg(delay_weight, 'SETTLEMENT_DELAY_WEIGHT')
        self.conversion_fee_bps = _cfg(conversion_fee_bps, 'CONVERSION_FEE_BPS')
        self.max_slippage_bps = _cfg(max_slippage_bps, 'MAX_SLIPPAGE_BPS')
        self.max_attempts = _cfg(max_attempts, 'LEDGER_MAX_ATTEMPTS')
        self.backoff_base = _cfg(backoff_base, 'LEDGER_BACKOFF_BASE')
        self.backoff_max = _cfg(backoff_max, 'LEDGER_BACKOFF_MAX')

    @property
    def oracle(self):
        return self._oracle

    def score(self, candidate, source):
        ''' Expected cost of holding funds in `candidate`. A candidate other than
            the source currency also pays for the conversion, including the
            worst case slippage. '''
        profile = self.profiles.get(candidate, self.default_profile)
        cost_bps = profile['fee_bps']
        if candidate != source:
            cost_bps += self.conversion_fee_bps + self.max_slippage_bps

        return self.fee_weight * cost_bps + self.delay_weight * profile['settlement_seconds']

    def candidates(self, source):
        # The source currency ranks first among equal scores
        codes = [source] + [code for code in self.holding_currencies if code != source]
        for code in codes:
            if code in self.profiles or code == source:
                yield code
            else:
                logger.warning('Holding currency [%s] has no profile and is ignored', code)

    def select_holding_currency(self, amount: MultiCurrencyAmount) -> Currency:
        source = amount.currency.code
        ranked = sorted(
            ((self.score(code, source), order, code) for order, code in enumerate(self.candidates(source))),
        )
        _, _, selected = ranked[0]
        logger.info('Holding currency for %s: %s (candidates: %s)', amount, selected,
                    ', '.join(f'{code}={score:.4f}' for score, _, code in ranked))
        return Currency.lookup(selected)

    async def _call_oracle(self, func, *args):
        return await retry_async(
            lambda: func(*args),
            attempts=self.max_attempts,
            base=self.backoff_base,
            cap=self.backoff_max,
            retry_on=(OracleUnavailable,),
            sleep=self._sleep,
            label=f'oracle.{func.__name__}',
        )

    async def convert(self, amount: MultiCurrencyAmount, destination) -> ConversionResult:
        destination = destination if isinstance(destination, Currency) else Currency.lookup(destination)

        if amount.currency.code == destination.code:
            return ConversionResult(
                source_amount=amount,
                realized_amount=amount,
                fee=MultiCurrencyAmount.zero(destination),
                final_amount=amount,
            )

        quote = await self._call_oracle(self._oracle.quote, amount.currency, destination, amount)
        realized = await self._call_oracle(self._oracle.convert, amount, destination, quote)

        expected = quote.apply(amount.amount)
        if expected <= 0:
            raise ConversionRejected(
                "T00.426", f"Amount {amount} is too small to be converted to {destination.code}")

        # |realized - expected| / expected > max_slippage, in basis points
        max_bps = min(self.max_slippage_bps, quote.max_slippage_bps)
        if abs(realized.amount - expected) * BPS > max_bps * expected:
            raise ConversionRejected(
                "T00.422",
                f"Conversion slippage exceeds {max_bps} bps: quoted {expected}, realized {realized.amount}",
                {"quoted": expected, "realized": realized.amount, "max_slippage_bps": max_bps},
            )

        final = realized.amount * (BPS - self.conversion_fee_bps) // BPS
        logger.info('Converted %s => %s (fee %d)', amount, realized, realized.amount - final)
        return ConversionResult(
            source_amount=amount,
            realized_amount=realized,
            fee=MultiCurrencyAmount.of(realized.amount - final, destination),
            final_amount=MultiCurrencyAmount.of(final, destination),
            quote=quote,
        )
