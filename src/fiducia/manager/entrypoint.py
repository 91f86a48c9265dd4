"""Fiducia command line tool."""

import click

from .. import __version__


@click.group(invoke_without_command=True)
@click.pass_context
@click.version_option(version=__version__)
def fiducia_manager(ctx):
    """Fiducia command line tool."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
