"""Run a transfer end to end against the in-memory collaborators."""

from datetime import timedelta

import click

from fiducia.error import FiduciaException
from fiducia.helper import timestamp
from fiducia.transfer import (
    AccountAddress,
    ExpirySweeper,
    InMemoryEventSink,
    InMemoryLedger,
    MultiCurrencyAmount,
    StaticRateOracle,
    TransferService,
    config,
)

from .entrypoint import fiducia_manager
from .helper import async_command

OUTCOMES = ('complete', 'decline', 'cancel', 'expire')


class DemoClock(object):
    def __init__(self):
        self.now = timestamp()

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


async def _balance_line(ledger, address, currency):
    balance = await ledger.balance(address, currency)
    return f"  {str(address):<48} {balance.display()}"


@fiducia_manager.command(name="demo")
@click.option('--amount', default='100.00', help='Amount in major units, e.g. 100.00')
@click.option('--currency', default='USD', help='Currency of the sender')
@click.option('--destination', default='EUR', help='Currency chosen by the recipient')
@click.option('--rate', default='0.92', help='Major unit rate from currency to destination')
@click.option('--outcome', type=click.Choice(OUTCOMES), default='complete', help='How the transfer ends')
@click.option('--expiry-hours', type=int, default=config.DEFAULT_EXPIRY_HOURS, help='Transfer window')
@async_command
async def run_demo(amount, currency, destination, rate, outcome, expiry_hours):
    """Send funds from alice to bob and print the resulting events"""
    clock = DemoClock()
    ledger = InMemoryLedger()
    sink = InMemoryEventSink()
    rates = {} if currency.upper() == destination.upper() else {(currency, destination): rate}

    try:
        oracle = StaticRateOracle(rates)
        service = TransferService(ledger, oracle, sink=sink, clock=clock)
        alice, bob = AccountAddress.for_user('alice'), AccountAddress.for_user('bob')
        requested = MultiCurrencyAmount.parse(amount, currency)
        await ledger.deposit(alice, requested)

        transfer = await service.initiate(alice, bob, requested, 'demo transfer', expiry_hours)
        click.echo(f"Initiated {transfer.id}: {requested.display()} held as {transfer.held_amount.display()}")

        if outcome == 'complete':
            await service.accept(transfer.id, destination, actor=bob)
            transfer = await service.complete(transfer.id)
        elif outcome == 'decline':
            transfer = await service.decline(transfer.id, actor=bob, reason='not needed')
        elif outcome == 'cancel':
            transfer = await service.cancel(transfer.id, actor=alice, reason='changed my mind')
        else:
            clock.advance(timedelta(hours=expiry_hours, seconds=1))
            await ExpirySweeper(service).run_once()
            transfer = await service.get(transfer.id)
    except (FiduciaException, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"Status: {transfer.status.value}")
    if transfer.final_amount is not None:
        click.echo(f"Final amount: {transfer.final_amount.display()}")

    click.echo("Events:")
    for evt in sink.for_transfer(transfer.id):
        click.echo(f"  #{evt.sequence} {evt.event_type:<20} actor={evt.actor}")

    click.echo("Balances:")
    click.echo(await _balance_line(ledger, transfer.sender, requested.currency))
    click.echo(await _balance_line(ledger, transfer.escrow_address, transfer.held_amount.currency))
    if transfer.final_amount is not None and transfer.destination_instrument.is_default_account:
        click.echo(await _balance_line(ledger, transfer.recipient, transfer.final_amount.currency))

    audit = service.escrow.audit(transfer.escrow_address)
    click.echo(f"Escrow conserved: {audit.balanced}")
