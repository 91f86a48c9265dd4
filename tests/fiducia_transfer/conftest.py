import pytest

from fiducia.transfer import (
    ConversionPolicy,
    EscrowAccountingAdapter,
    InMemoryEventSink,
    InMemoryLedger,
    InMemoryPayoutRail,
    StaticRateOracle,
    TransferService,
)

from transfer_fixtures import ALICE, BOB, INITIAL_BALANCE, FakeClock, SleepRecorder, usd


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def oracle():
    return StaticRateOracle({
        ('USD', 'EUR'): '0.92',
        ('USD', 'JPY'): '150',
        ('USD', 'USDC'): '1',
    })


@pytest.fixture
def payout_rail(ledger):
    return InMemoryPayoutRail(ledger)


@pytest.fixture
def sink():
    return InMemoryEventSink()


@pytest.fixture
def escrow(ledger, payout_rail, sleeper):
    return EscrowAccountingAdapter(ledger, payout_rail, sleep=sleeper)


@pytest.fixture
def conversion(oracle, sleeper):
    return ConversionPolicy(oracle, sleep=sleeper)


@pytest.fixture
async def service(ledger, oracle, sink, clock, escrow, conversion):
    await ledger.deposit(ALICE, usd(INITIAL_BALANCE))
    return TransferService(ledger, oracle, sink=sink, clock=clock, escrow=escrow, conversion=conversion)


@pytest.fixture
async def pending(service):
    ''' A 100.00 USD transfer from alice to bob, held in USD '''
    return await service.initiate(ALICE, BOB, usd(10000), 'dinner')
