import pytest

from fiducia.transfer import (
    AccountAddress,
    ConversionPolicy,
    LedgerTimeout,
    LedgerUnavailable,
    MultiCurrencyAmount,
    RefundStatus,
    TransferService,
    TransferStatus,
)

from transfer_fixtures import ALICE, BOB, INITIAL_BALANCE, usd


def refund_postings(ledger, transfer):
    return [
        posting for posting in ledger.postings
        if posting.operation == 'release' and posting.destination == transfer.sender
    ]


@pytest.mark.asyncio
async def test_refund_receipt_is_completed(service, pending):
    await service.decline(pending.id, actor=BOB)

    receipt = await service.statemgr.fetch('refund-receipt', pending.id)
    assert receipt.status == RefundStatus.COMPLETED
    assert receipt.source == TransferStatus.DECLINED
    assert receipt.refund_to == ALICE
    assert receipt.amount == usd(10000)
    assert receipt.refund_amount == usd(10000)
    assert receipt.posting_id is not None


@pytest.mark.asyncio
async def test_duplicate_refund_delivery(service, ledger, sink, pending):
    """A redelivered refund request does not move funds twice"""
    await service.cancel(pending.id, actor=ALICE)

    events = await service.domain.refunds.handle(pending.id)
    assert not events

    assert len(refund_postings(ledger, pending)) == 1
    assert len(sink.of_type('TransferRefunded')) == 1
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)


@pytest.mark.asyncio
async def test_refund_without_request_is_ignored(service, ledger, pending):
    assert not await service.domain.refunds.handle(pending.id)
    assert refund_postings(ledger, pending) == []
    assert await service.amount_held(pending.id) == usd(10000)


@pytest.mark.asyncio
async def test_failed_refund_is_redriven(service, ledger, sink, escrow, pending):
    ledger.fail_next('release', LedgerUnavailable, times=escrow.max_attempts)

    declined = await service.decline(pending.id, actor=BOB)

    # The transition is committed, the refund is left pending
    assert declined.status == TransferStatus.DECLINED
    assert await service.amount_held(pending.id) == usd(10000)
    [receipt] = await service.pending_refunds()
    assert receipt.id == pending.id
    assert receipt.status == RefundStatus.REQUESTED
    assert len(service.reconciliation_queue()) == 1
    assert sink.of_type('TransferRefunded') == ()

    assert await service.redrive_refunds() == 1
    assert await service.amount_held(pending.id) == usd(0)
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)
    assert await service.pending_refunds() == []
    assert len(sink.of_type('TransferRefunded')) == 1

    assert await service.redrive_refunds() == 0


@pytest.mark.asyncio
async def test_ambiguous_refund_is_not_repeated(service, ledger, sink, pending):
    ledger.fail_next('release', LedgerTimeout, after_commit=True)

    await service.decline(pending.id, actor=BOB)

    assert len(refund_postings(ledger, pending)) == 1
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)
    assert (await service.statemgr.fetch('refund-receipt', pending.id)).status == RefundStatus.COMPLETED


@pytest.mark.asyncio
async def test_refund_event_log(service, pending):
    await service.decline(pending.id, actor=BOB, reason='no thanks')

    history = await service.history(pending.id)
    assert [(evt.sequence, evt.event) for evt in history] == [
        (1, 'transfer-initiated'),
        (2, 'transfer-declined'),
        (3, 'transfer-refunded'),
    ]
    assert history[2].actor == 'system:refund:handler'
    assert await service.replay_status(pending.id) == TransferStatus.DECLINED


def usdc(amount):
    return MultiCurrencyAmount.of(amount, 'USDC')


@pytest.fixture
async def usdc_service(ledger, oracle, sink, clock, escrow, sleeper):
    ''' Weighs settlement delay heavily, so USD transfers are held in USDC '''
    await ledger.deposit(ALICE, usd(INITIAL_BALANCE))
    conversion = ConversionPolicy(oracle, delay_weight=1.0, sleep=sleeper)
    return TransferService(ledger, oracle, sink=sink, clock=clock, escrow=escrow, conversion=conversion)


async def _decline(service, transfer, clock):
    return await service.decline(transfer.id, actor=BOB)


async def _cancel(service, transfer, clock):
    return await service.cancel(transfer.id, actor=ALICE)


async def _expire(service, transfer, clock):
    clock.advance(hours=72)
    return await service.expire(transfer.id)


@pytest.mark.asyncio
@pytest.mark.parametrize('terminate, source', [
    (_decline, TransferStatus.DECLINED),
    (_cancel, TransferStatus.CANCELLED),
    (_expire, TransferStatus.EXPIRED),
])
async def test_foreign_hold_refunds_requested_amount(usdc_service, ledger, sink, clock, terminate, source):
    """Funds held in another currency go back to the sender in the currency they sent"""
    transfer = await usdc_service.initiate(ALICE, BOB, usd(10000))
    assert transfer.held_amount == usdc(99900000)

    terminated = await terminate(usdc_service, transfer, clock)
    assert terminated.status == source

    receipt = await usdc_service.statemgr.fetch('refund-receipt', transfer.id)
    assert receipt.status == RefundStatus.COMPLETED
    assert receipt.amount == usdc(99900000)
    assert receipt.refund_amount == usd(10000)

    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)
    assert await ledger.balance(ALICE, 'USDC') == usdc(0)
    assert await usdc_service.amount_held(transfer.id) == usdc(0)
    assert (await usdc_service.audit(transfer.id)).balanced

    # The clearing accounts net out once the hold is unwound
    for code in ('USD', 'USDC'):
        assert ledger.net_position(AccountAddress.for_settlement(code), code) == 0

    refunded = sink.of_type('TransferRefunded')[0]
    assert refunded.data['amount']['amount'] == 10000
    assert refunded.data['released_amount']['amount'] == 99900000


@pytest.mark.asyncio
async def test_foreign_refund_is_released_once(usdc_service, ledger):
    transfer = await usdc_service.initiate(ALICE, BOB, usd(10000))
    await usdc_service.cancel(transfer.id, actor=ALICE)

    assert not await usdc_service.domain.refunds.handle(transfer.id)
    assert len(refund_postings(ledger, transfer)) == 1
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)
