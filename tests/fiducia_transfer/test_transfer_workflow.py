import pytest

from datetime import timedelta

from fiducia.transfer import (
    AccountAddress,
    ConversionRejected,
    DestinationInstrument,
    InvalidState,
    InvalidTransferRequest,
    LedgerUnavailable,
    MultiCurrencyAmount,
    NotYetExpired,
    ReconciliationRequired,
    ReservationFailed,
    TransferExpired,
    TransferNotFound,
    TransferStatus,
    Unauthorized,
)

from transfer_fixtures import ALICE, BOB, CAROL, INITIAL_BALANCE, eur, usd


def transfers_of(service):
    return service.statemgr.find_all('transfer')


# Scenario A
@pytest.mark.asyncio
async def test_initiate_holds_funds_in_escrow(service, ledger, sink, clock):
    transfer = await service.initiate(ALICE, BOB, usd(10000), 'rent', 72)

    assert transfer.status == TransferStatus.PENDING
    assert transfer.sender == ALICE and transfer.recipient == BOB
    assert transfer.requested_amount == usd(10000)
    assert transfer.held_amount == usd(10000)
    assert transfer.created_at == clock()
    assert transfer.expires_at == clock() + timedelta(hours=72)
    assert transfer.escrow_address == AccountAddress.for_escrow(transfer.id)
    assert transfer.final_amount is None

    assert await service.amount_held(transfer.id) == usd(10000)
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE - 10000)

    [event] = sink.events
    assert event.event_type == 'TransferInitiated'
    assert event.transfer_id == transfer.id
    assert event.sequence == 1
    assert event.actor == str(ALICE)
    assert event.data['held_amount']['amount'] == 10000


# Scenario B
@pytest.mark.asyncio
async def test_accept_and_complete(service, ledger, sink, pending):
    accepted = await service.accept(pending.id, 'EUR', actor=BOB)
    assert accepted.status == TransferStatus.ACCEPTED
    assert accepted.destination_currency.code == 'EUR'
    assert accepted.destination_instrument.is_default_account

    completed = await service.complete(pending.id)
    assert completed.status == TransferStatus.COMPLETED
    assert completed.final_amount == eur(9190)
    assert completed.completed_at is not None

    assert await service.amount_held(pending.id) == usd(0)
    assert await ledger.balance(BOB, 'EUR') == eur(9190)
    assert (await service.audit(pending.id)).balanced

    assert [evt.event_type for evt in sink.for_transfer(pending.id)] == [
        'TransferInitiated', 'TransferAccepted', 'TransferCompleted']
    assert sink.of_type('TransferCompleted')[0].data['fee']['amount'] == 10


@pytest.mark.asyncio
async def test_complete_to_card(service, payout_rail, pending):
    card = DestinationInstrument.card('tok_5555555555554444', 'mastercard')
    await service.accept(pending.id, 'EUR', card, actor=BOB)
    completed = await service.complete(pending.id)

    assert completed.final_amount == eur(9190)
    [payout] = payout_rail.payouts
    assert payout.destination == 'mastercard **** 4444'
    assert payout.amount == eur(9190)


# Scenario C
@pytest.mark.asyncio
async def test_decline_refunds_sender(service, ledger, sink, pending):
    declined = await service.decline(pending.id, actor=BOB, reason='not needed')

    assert declined.status == TransferStatus.DECLINED
    assert declined.reason == 'not needed'
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)
    assert await service.amount_held(pending.id) == usd(0)
    assert (await service.audit(pending.id)).balanced
    assert await service.pending_refunds() == []

    assert [evt.event_type for evt in sink.for_transfer(pending.id)] == [
        'TransferInitiated', 'TransferDeclined', 'TransferRefunded']


@pytest.mark.asyncio
async def test_cancel_refunds_sender(service, ledger, pending):
    cancelled = await service.cancel(pending.id, actor=ALICE, reason='wrong recipient')

    assert cancelled.status == TransferStatus.CANCELLED
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)
    assert (await service.audit(pending.id)).balanced


# Scenario E
@pytest.mark.asyncio
async def test_cancel_after_accept(service, pending):
    await service.accept(pending.id, 'EUR', actor=BOB)

    with pytest.raises(InvalidState):
        await service.cancel(pending.id, actor=ALICE)

    assert (await service.get(pending.id)).status == TransferStatus.ACCEPTED
    assert await service.amount_held(pending.id) == usd(10000)


@pytest.mark.asyncio
@pytest.mark.parametrize('recipient, amount', [
    (ALICE, 10000),
    (BOB, 0),
])
async def test_invalid_initiation(service, ledger, sink, recipient, amount):
    with pytest.raises(InvalidTransferRequest):
        await service.initiate(ALICE, recipient, usd(amount))

    assert await transfers_of(service) == []
    assert sink.events == ()
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)


@pytest.mark.asyncio
@pytest.mark.parametrize('amount, window', [
    ({'amount': -5, 'currency': 'USD'}, 72),
    ({'amount': 10.5, 'currency': 'USD'}, 72),
    (usd(100), 0),
    (usd(100), -1),
    (usd(100), '72'),
])
async def test_invalid_request_values(service, amount, window):
    with pytest.raises(InvalidTransferRequest):
        await service.initiate(ALICE, BOB, amount, expiry_window=window)

    assert await transfers_of(service) == []


@pytest.mark.asyncio
async def test_reservation_failure_leaves_no_transfer(service, ledger, sink):
    with pytest.raises(ReservationFailed):
        await service.initiate(ALICE, BOB, usd(INITIAL_BALANCE + 1))

    assert await transfers_of(service) == []
    assert sink.events == ()


@pytest.mark.asyncio
async def test_transient_reservation_failure_leaves_no_transfer(service, ledger, sink, escrow):
    ledger.fail_next('reserve', LedgerUnavailable, times=escrow.max_attempts)

    with pytest.raises(ReconciliationRequired):
        await service.initiate(ALICE, BOB, usd(10000))

    assert await transfers_of(service) == []
    assert sink.events == ()
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE)
    assert len(service.reconciliation_queue()) == 1


@pytest.mark.asyncio
async def test_only_the_parties_may_act(service, pending):
    with pytest.raises(Unauthorized):
        await service.accept(pending.id, 'EUR', actor=CAROL)

    with pytest.raises(Unauthorized):
        await service.decline(pending.id, actor=ALICE)

    with pytest.raises(Unauthorized):
        await service.cancel(pending.id, actor=BOB)

    assert (await service.get(pending.id)).status == TransferStatus.PENDING


@pytest.mark.asyncio
async def test_accept_after_deadline(service, clock, pending):
    clock.advance(hours=72)

    with pytest.raises(TransferExpired):
        await service.accept(pending.id, 'EUR', actor=BOB)

    assert (await service.get(pending.id)).status == TransferStatus.PENDING


@pytest.mark.asyncio
async def test_expire_before_deadline(service, clock, pending):
    clock.advance(hours=71, minutes=59)

    with pytest.raises(NotYetExpired):
        await service.expire(pending.id)

    clock.advance(minutes=1)
    expired = await service.expire(pending.id)
    assert expired.status == TransferStatus.EXPIRED
    assert expired.expired_at == clock()


@pytest.mark.asyncio
async def test_complete_requires_acceptance(service, pending):
    with pytest.raises(InvalidState):
        await service.complete(pending.id)


@pytest.mark.asyncio
async def test_unknown_transfer(service):
    from fiducia.data import UUID_GENR

    with pytest.raises(TransferNotFound):
        await service.accept(UUID_GENR(), 'EUR', actor=BOB)

    with pytest.raises(TransferNotFound):
        await service.get(UUID_GENR())


@pytest.mark.asyncio
async def test_terminal_transfer_is_immutable(service, ledger, sink, payout_rail, clock, pending):
    await service.accept(pending.id, 'EUR', actor=BOB)
    completed = await service.complete(pending.id)

    postings, payouts, events = ledger.postings, payout_rail.payouts, sink.events
    clock.advance(hours=100)

    for operation in (
        service.accept(pending.id, 'EUR', actor=BOB),
        service.decline(pending.id, actor=BOB),
        service.cancel(pending.id, actor=ALICE),
        service.expire(pending.id),
        service.complete(pending.id),
    ):
        with pytest.raises(InvalidState):
            await operation

    assert ledger.postings == postings
    assert payout_rail.payouts == payouts
    assert sink.events == events
    assert (await service.get(pending.id)).etag == completed.etag


@pytest.mark.asyncio
async def test_identity_conversion(service, ledger, pending):
    await service.accept(pending.id, 'USD', actor=BOB)
    completed = await service.complete(pending.id)

    assert completed.final_amount == completed.held_amount == usd(10000)
    assert await ledger.balance(BOB, 'USD') == usd(10000)


@pytest.mark.asyncio
async def test_funds_held_in_preferred_currency(ledger, oracle, sink, clock, escrow):
    from fiducia.transfer import ConversionPolicy, MultiCurrencyAmount, TransferService

    usdc = lambda amount: MultiCurrencyAmount.of(amount, 'USDC')  # noqa: E731

    await ledger.deposit(ALICE, usd(INITIAL_BALANCE))
    conversion = ConversionPolicy(oracle, delay_weight=1.0)
    service = TransferService(ledger, oracle, sink=sink, clock=clock, escrow=escrow, conversion=conversion)

    transfer = await service.initiate(ALICE, BOB, usd(10000))
    assert transfer.requested_amount == usd(10000)
    assert transfer.held_amount == usdc(99900000)
    assert await ledger.balance(ALICE, 'USD') == usd(INITIAL_BALANCE - 10000)

    await service.accept(transfer.id, 'USDC', actor=BOB)
    completed = await service.complete(transfer.id)
    assert completed.final_amount == usdc(99900000)
    assert (await service.audit(transfer.id)).balanced


@pytest.mark.asyncio
async def test_crypto_payout_lands_in_coin_account(service, oracle, ledger, pending):
    btc = lambda amount: MultiCurrencyAmount.of(amount, 'BTC')  # noqa: E731
    oracle.set_rate('USD', 'BTC', '0.00002')

    await service.accept(pending.id, 'BTC', actor=BOB)
    completed = await service.complete(pending.id)

    assert completed.final_amount == btc(199800)
    assert await ledger.balance(AccountAddress.for_user_crypto('bob', 'BTC'), 'BTC') == btc(199800)
    assert await ledger.balance(BOB, 'BTC') == btc(0)


@pytest.mark.asyncio
async def test_fiat_payout_lands_in_wallet(service, ledger, pending):
    await service.accept(pending.id, 'EUR', actor=BOB)
    await service.complete(pending.id)

    assert await ledger.balance(BOB, 'EUR') == eur(9190)
    assert await ledger.balance(AccountAddress.for_user('bob', 'eur'), 'EUR') == eur(0)


@pytest.mark.asyncio
async def test_accepted_event_carries_held_amount(service, sink, pending):
    await service.accept(pending.id, 'EUR', actor=BOB)

    event = sink.of_type('TransferAccepted')[0]
    assert event.actor == str(BOB)
    assert event.data['held_amount']['amount'] == 10000
    assert event.data['held_amount']['currency']['code'] == 'USD'



@pytest.mark.asyncio
async def test_slippage_rejection_keeps_transfer_accepted(service, oracle, ledger, pending):
    await service.accept(pending.id, 'EUR', actor=BOB)
    oracle.drift_bps = 100

    with pytest.raises(ConversionRejected):
        await service.complete(pending.id)

    assert (await service.get(pending.id)).status == TransferStatus.ACCEPTED
    assert await service.amount_held(pending.id) == usd(10000)

    oracle.drift_bps = 0
    assert (await service.complete(pending.id)).status == TransferStatus.COMPLETED


@pytest.mark.asyncio
async def test_release_failure_keeps_transfer_accepted(service, ledger, escrow, pending):
    await service.accept(pending.id, 'EUR', actor=BOB)
    ledger.fail_next('release', LedgerUnavailable, times=escrow.max_attempts)

    with pytest.raises(ReconciliationRequired):
        await service.complete(pending.id)

    assert (await service.get(pending.id)).status == TransferStatus.ACCEPTED
    assert await service.amount_held(pending.id) == usd(10000)

    completed = await service.complete(pending.id)
    assert completed.status == TransferStatus.COMPLETED
    assert (await service.audit(pending.id)).balanced


@pytest.mark.asyncio
async def test_payout_failure_is_retried_without_double_release(service, ledger, escrow, payout_rail, pending):
    await service.accept(pending.id, 'EUR', actor=BOB)
    payout_rail.fail_next(LedgerUnavailable, times=escrow.max_attempts)

    with pytest.raises(ReconciliationRequired):
        await service.complete(pending.id)

    # The escrow was released, the payout was not delivered
    assert (await service.get(pending.id)).status == TransferStatus.ACCEPTED
    assert await service.amount_held(pending.id) == usd(0)

    completed = await service.complete(pending.id)
    assert completed.status == TransferStatus.COMPLETED
    assert len([p for p in ledger.postings if p.operation == 'release']) == 1
    assert len(payout_rail.payouts) == 1
    assert await ledger.balance(BOB, 'EUR') == eur(9190)
