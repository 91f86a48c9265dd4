import pytest

from fiducia.transfer import (
    ConversionPolicy,
    ConversionRejected,
    Currency,
    MultiCurrencyAmount,
    OracleUnavailable,
    RateQuote,
    StaticRateOracle,
)

from transfer_fixtures import SleepRecorder, eur, usd


def test_rate_quote_from_major_rate():
    quote = RateQuote.from_major_rate('USD', 'EUR', '0.92')
    assert (quote.numerator, quote.denominator) == (23, 25)
    assert quote.apply(10000) == 9200

    # 1 USD = 150 JPY, JPY has no minor unit
    quote = RateQuote.from_major_rate('USD', 'JPY', '150')
    assert quote.apply(10000) == 15000

    inverse = quote.inverse()
    assert inverse.source.code == 'JPY'
    assert inverse.apply(15000) == 10000

    with pytest.raises(ValueError):
        RateQuote.from_major_rate('USD', 'EUR', 0.92)


def test_rate_quote_floors():
    quote = RateQuote.from_major_rate('USD', 'EUR', '0.92')
    assert quote.apply(1) == 0
    assert quote.apply(3) == 2


@pytest.mark.asyncio
async def test_identity_conversion(conversion):
    result = await conversion.convert(usd(10000), 'USD')
    assert result.is_identity
    assert result.final_amount == usd(10000)
    assert result.fee == usd(0)


@pytest.mark.asyncio
async def test_conversion_deducts_fee(conversion):
    result = await conversion.convert(usd(10000), Currency.lookup('EUR'))
    assert result.realized_amount == eur(9200)
    assert result.final_amount == eur(9190)
    assert result.fee == eur(10)
    assert result.final_amount.amount + result.fee.amount == result.realized_amount.amount


@pytest.mark.asyncio
async def test_slippage_within_bounds(oracle, conversion):
    oracle.drift_bps = 30
    result = await conversion.convert(usd(10000), 'EUR')
    assert result.realized_amount == eur(9227)
    assert result.final_amount == eur(9217)


@pytest.mark.asyncio
@pytest.mark.parametrize('drift', [-60, 60, 200])
async def test_slippage_exceeded(oracle, conversion, drift):
    oracle.drift_bps = drift
    with pytest.raises(ConversionRejected) as excinfo:
        await conversion.convert(usd(10000), 'EUR')

    assert excinfo.value.errcode == 'T00.422'


@pytest.mark.asyncio
async def test_quote_slippage_limit_is_enforced():
    oracle = StaticRateOracle({('USD', 'EUR'): '0.92'}, drift_bps=20, max_slippage_bps=10)
    policy = ConversionPolicy(oracle, sleep=SleepRecorder())

    with pytest.raises(ConversionRejected):
        await policy.convert(usd(10000), 'EUR')


@pytest.mark.asyncio
async def test_conversion_without_rate(conversion):
    with pytest.raises(ConversionRejected):
        await conversion.convert(usd(10000), 'GBP')


@pytest.mark.asyncio
async def test_conversion_of_dust_is_rejected(conversion):
    with pytest.raises(ConversionRejected):
        await conversion.convert(usd(1), 'EUR')


@pytest.mark.asyncio
async def test_oracle_outage_is_retried(oracle, conversion, sleeper):
    oracle.fail_next(times=2)
    result = await conversion.convert(usd(10000), 'EUR')
    assert result.final_amount == eur(9190)
    assert len(sleeper.delays) == 2

    oracle.fail_next(times=conversion.max_attempts)
    with pytest.raises(OracleUnavailable):
        await conversion.convert(usd(10000), 'EUR')


@pytest.mark.parametrize('source, expected', [
    ('USD', 'USD'),
    ('EUR', 'EUR'),
    ('JPY', 'JPY'),
    ('BTC', 'BTC'),
    ('USDT', 'USDT'),
])
def test_select_holding_currency_defaults(conversion, source, expected):
    amount = MultiCurrencyAmount.of(1000, source)
    assert conversion.select_holding_currency(amount).code == expected


def test_select_holding_currency_prefers_fast_settlement(oracle):
    policy = ConversionPolicy(oracle, delay_weight=1.0)
    assert policy.select_holding_currency(usd(10000)).code == 'USDC'


def test_select_holding_currency_tie_break(oracle):
    profile = {'fee_bps': 2, 'settlement_seconds': 15}
    policy = ConversionPolicy(
        oracle,
        holding_currencies=['USDT', 'USDC'],
        profiles={'EUR': {'fee_bps': 500, 'settlement_seconds': 86400}, 'USDT': profile, 'USDC': profile},
        delay_weight=1.0,
    )
    assert policy.select_holding_currency(eur(100)).code == 'USDT'

    # The source currency wins among equal scores
    policy = ConversionPolicy(
        oracle,
        holding_currencies=['USDC'],
        profiles={'USD': {'fee_bps': 62, 'settlement_seconds': 15}, 'USDC': profile},
    )
    assert policy.score('USD', 'USD') == policy.score('USDC', 'USD')
    assert policy.select_holding_currency(usd(100)).code == 'USD'


def test_unprofiled_holding_currency_is_ignored(oracle):
    policy = ConversionPolicy(oracle, holding_currencies=['GBP'], profiles={'USD': {'fee_bps': 900, 'settlement_seconds': 0}})
    assert list(policy.candidates('USD')) == ['USD']
