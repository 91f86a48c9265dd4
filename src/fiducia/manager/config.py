"""Configuration CLI commands."""

import importlib

import click

from fiducia.data import serialize_json

from .entrypoint import fiducia_manager


def load_config(module_path):
    try:
        return importlib.import_module(module_path).config
    except (ImportError, AttributeError):
        raise click.BadParameter(f"Module [{module_path}] has no configuration", param_hint='module_path')


@fiducia_manager.command(name="config")
@click.argument('module_path', type=str, default='fiducia.transfer')
@click.option('--key', help='Specific config key to display (e.g., MAX_SLIPPAGE_BPS)')
@click.option('--format', 'output_format',
              type=click.Choice(['table', 'json']),
              default='table',
              help='Output format for config values')
@click.option('--filter', 'filter_pattern',
              help='Filter config keys by pattern (case-insensitive)')
def show_config(module_path, key, output_format, filter_pattern):
    """Display configuration values of a module"""
    config = load_config(module_path)
    values = dict(config.items())

    if key:
        if key not in values:
            raise click.BadParameter(
                f"Config key [{key}] not found. Available keys: {', '.join(sorted(values))}",
                param_hint='--key')

        values = {key: values[key]}

    if filter_pattern:
        pattern = filter_pattern.lower()
        values = {k: v for k, v in values.items() if pattern in k.lower()}

    if not values:
        click.echo("No configuration values found matching criteria")
        return

    if output_format == 'json':
        click.echo(serialize_json(values, indent=2))
        return

    key_width = max(15, min(max(len(k) for k in values), 36))
    click.echo(f"Configuration [{getattr(config, '__name__', module_path)}]")
    click.echo("=" * (key_width + 60))
    for name, value in sorted(values.items()):
        str_value = serialize_json(value) if isinstance(value, (dict, list, tuple)) else str(value)
        if len(str_value) > 56:
            str_value = str_value[:53] + '...'

        click.echo(f"{name:<{key_width}} | {str_value}")
