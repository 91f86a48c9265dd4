""" Money & identity value types

    Amounts are always integers in minor units of their currency, paired
    with the currency itself. Floating point values are never accepted.
"""

import enum
import re

from decimal import Decimal, InvalidOperation
from typing import Annotated, Optional

from pydantic import Field, model_validator

from fiducia.data import DataModel

from .exceptions import CurrencyMismatch

RX_ADDRESS_SEGMENT = re.compile(r'^[A-Za-z0-9_\-]+$')
ADDRESS_SEP = ':'
MIN_INSTRUMENT_TOKEN_LENGTH = 16


class CurrencyKind(str, enum.Enum):
    FIAT = 'FIAT'
    CRYPTO = 'CRYPTO'
    STABLE = 'STABLE'


class Currency(DataModel):
    code: Annotated[str, Field(pattern=r'^[A-Z0-9]{2,10}$')]
    kind: CurrencyKind
    precision: Annotated[int, Field(ge=0, le=18)]

    @model_validator(mode='before')
    @classmethod
    def _from_code(cls, data):
        # A bare currency code refers to a registered currency
        if isinstance(data, str):
            return Currency.lookup(data).model_dump()

        return data

    @classmethod
    def lookup(cls, code):
        try:
            return CURRENCIES[code.upper()]
        except (KeyError, AttributeError):
            raise ValueError(f'Unsupported currency: {code!r}')

    @classmethod
    def register(cls, code, kind, precision):
        currency = cls(code=code, kind=kind, precision=precision)
        CURRENCIES[currency.code] = currency
        return currency

    def format_amount(self, amount: int) -> str:
        ''' 10050 => "100.50" (for a precision of 2) '''
        sign = '-' if amount < 0 else ''
        major, minor = divmod(abs(amount), 10 ** self.precision)
        if not self.precision:
            return f'{sign}{major}'

        return f'{sign}{major}.{minor:0{self.precision}d}'

    def parse_amount(self, value) -> int:
        ''' "100.5" => 10050 (for a precision of 2). More decimal places
            than the precision of the currency are rejected. '''
        if isinstance(value, float):
            raise ValueError(f'Floating point amounts are not allowed: {value!r}')

        try:
            scaled = Decimal(str(value).strip()).scaleb(self.precision)
        except InvalidOperation:
            raise ValueError(f'Invalid amount: {value!r}')

        if scaled != scaled.to_integral_value():
            raise ValueError(f'Amount {value!r} exceeds the precision of {self.code}')

        return int(scaled)

    def __str__(self):
        return self.code


CURRENCIES = {}

for _code, _kind, _precision in (
    ('USD', CurrencyKind.FIAT, 2),
    ('EUR', CurrencyKind.FIAT, 2),
    ('GBP', CurrencyKind.FIAT, 2),
    ('JPY', CurrencyKind.FIAT, 0),
    ('BTC', CurrencyKind.CRYPTO, 8),
    ('ETH', CurrencyKind.CRYPTO, 18),
    ('USDC', CurrencyKind.STABLE, 6),
    ('USDT', CurrencyKind.STABLE, 6),
):
    Currency.register(_code, _kind, _precision)


class MultiCurrencyAmount(DataModel):
    amount: Annotated[int, Field(strict=True, ge=0)]
    currency: Currency

    @classmethod
    def of(cls, amount: int, currency) -> "MultiCurrencyAmount":
        if not isinstance(currency, Currency):
            currency = Currency.lookup(currency)

        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency) -> "MultiCurrencyAmount":
        return cls.of(0, currency)

    @classmethod
    def parse(cls, value: str, currency) -> "MultiCurrencyAmount":
        ''' "100.50", "USD" => 10050 USD '''
        if not isinstance(currency, Currency):
            currency = Currency.lookup(currency)

        return cls(amount=currency.parse_amount(value), currency=currency)

    def _check(self, other):
        if not isinstance(other, MultiCurrencyAmount):
            return NotImplemented

        if other.currency.code != self.currency.code:
            raise CurrencyMismatch(
                "T00.401", f'Currency mismatch: {self.currency.code} != {other.currency.code}')

        return other

    def __add__(self, other):
        if (other := self._check(other)) is NotImplemented:
            return other

        return self.set(amount=self.amount + other.amount)

    def __sub__(self, other):
        if (other := self._check(other)) is NotImplemented:
            return other

        if other.amount > self.amount:
            raise ValueError(f'Amount cannot be negative: {self} - {other}')

        return self.set(amount=self.amount - other.amount)

    def __lt__(self, other):
        if (other := self._check(other)) is NotImplemented:
            return other
        return self.amount < other.amount

    def __le__(self, other):
        if (other := self._check(other)) is NotImplemented:
            return other
        return self.amount <= other.amount

    def __gt__(self, other):
        if (other := self._check(other)) is NotImplemented:
            return other
        return self.amount > other.amount

    def __ge__(self, other):
        if (other := self._check(other)) is NotImplemented:
            return other
        return self.amount >= other.amount

    def display(self):
        return f'{self.currency.format_amount(self.amount)} {self.currency.code}'

    def __str__(self):
        return f'{self.amount} {self.currency.code}'


def _validate_segment(value):
    if not isinstance(value, str) or not RX_ADDRESS_SEGMENT.match(value):
        raise ValueError(f'Invalid account address segment: {value!r}')

    return value


class AccountAddress(DataModel):
    ''' A ledger account: `namespace:owner:kind`, e.g. `user:alice:main` '''

    namespace: str
    owner: str
    kind: str = 'main'

    @model_validator(mode='before')
    @classmethod
    def _from_string(cls, data):
        if isinstance(data, str):
            return cls._split(data)

        return data

    @model_validator(mode='after')
    def _validate_segments(self):
        for segment in (self.namespace, self.owner, self.kind):
            _validate_segment(segment)

        return self

    @staticmethod
    def _split(value):
        parts = value.split(ADDRESS_SEP)
        if len(parts) != 3:
            raise ValueError(f'Invalid account address: {value!r}')

        return dict(zip(('namespace', 'owner', 'kind'), parts))

    @classmethod
    def parse(cls, value: str) -> "AccountAddress":
        return cls(**cls._split(value))

    @classmethod
    def for_user(cls, owner, kind='main'):
        return cls(namespace='user', owner=str(owner), kind=kind)

    @classmethod
    def for_escrow(cls, transfer_id):
        return cls(namespace='escrow', owner=str(transfer_id), kind='p2p')

    @classmethod
    def for_user_crypto(cls, owner, currency):
        ''' Per-coin sub-account, e.g. `user:bob:btc` '''
        code = currency.code if isinstance(currency, Currency) else str(currency)
        return cls.for_user(owner, kind=code.lower())

    @classmethod
    def for_settlement(cls, currency):
        code = currency.code if isinstance(currency, Currency) else str(currency)
        return cls(namespace='settlement', owner=code, kind='clearing')

    def __str__(self):
        return ADDRESS_SEP.join((self.namespace, self.owner, self.kind))


class InstrumentKind(str, enum.Enum):
    DEFAULT_ACCOUNT = 'DEFAULT_ACCOUNT'
    CARD = 'CARD'


class DestinationInstrument(DataModel):
    kind: InstrumentKind = InstrumentKind.DEFAULT_ACCOUNT
    token: Optional[str] = Field(default=None, repr=False)
    masked: Optional[str] = None
    provider: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def _mask_token(cls, data):
        if isinstance(data, dict) and data.get('token') and not data.get('masked'):
            data = data | {'masked': f"**** {data['token'][-4:]}"}

        return data

    @model_validator(mode='after')
    def _validate_kind(self):
        if self.kind == InstrumentKind.DEFAULT_ACCOUNT:
            if self.token is not None:
                raise ValueError('The default account does not take an instrument token')
            return self

        if not self.token or len(self.token) < MIN_INSTRUMENT_TOKEN_LENGTH:
            raise ValueError(f'Instrument token must have at least {MIN_INSTRUMENT_TOKEN_LENGTH} characters')

        if not self.provider:
            raise ValueError('Instrument provider is required')

        return self

    @classmethod
    def default_account(cls):
        return cls(kind=InstrumentKind.DEFAULT_ACCOUNT)

    @classmethod
    def card(cls, token, provider, masked=None):
        return cls(kind=InstrumentKind.CARD, token=token, provider=provider, masked=masked)

    @property
    def is_default_account(self):
        return self.kind == InstrumentKind.DEFAULT_ACCOUNT

    def display(self):
        if self.is_default_account:
            return 'default account'

        return f'{self.provider} {self.masked}'

    def __str__(self):
        return self.display()
