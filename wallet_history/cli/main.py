"""Command-line interface for the wallet transaction history engine."""

import asyncio
import json
import sys
from typing import Optional

import click

from wallet_history.core.history_service import TransactionHistoryService
from wallet_history.database.manager import TransactionStore
from wallet_history.exceptions import InvalidAddress, StoreFallbackFailure
from wallet_history.models.config import HistoryConfig
from wallet_history.models.transaction import HistoryOptions, SortOrder
from wallet_history.utils.logging import setup_logging


def _run(ctx, operation):
    """Build a service, run one coroutine against it, close it."""
    config = ctx.obj['config']

    async def runner():
        async with TransactionHistoryService.from_config(config) as service:
            return await operation(service)

    try:
        return asyncio.run(runner())
    except InvalidAddress as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(2)
    except StoreFallbackFailure as e:
        click.echo(f"❌ Transaction store unavailable: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--log-level', '-l', default='WARNING',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: str):
    """Wallet transaction history CLI."""
    ctx.ensure_object(dict)

    try:
        if config_file:
            config = HistoryConfig(_env_file=config_file)
        else:
            config = HistoryConfig()

        config.log_level = log_level
        setup_logging(config)
        ctx.obj['config'] = config

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Create the transaction store schema."""
    store = TransactionStore(ctx.obj['config'])
    try:
        store.create_tables()
        click.echo("✅ Database initialized successfully")
    except Exception as e:
        click.echo(f"❌ Database initialization failed: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()


@cli.command()
@click.argument('address')
@click.option('--chain', '-n', default='0x1', show_default=True, help='Chain id (hex or decimal)')
@click.option('--page', '-p', type=int, default=1, show_default=True)
@click.option('--page-size', '-s', type=int, default=None, help='Transactions per page')
@click.option('--no-tokens', is_flag=True, help='Skip token transfers')
@click.option('--sort', 'sort_order', type=click.Choice(['asc', 'desc']), default='desc', show_default=True)
@click.pass_context
def history(ctx, address: str, chain: str, page: int, page_size: Optional[int],
            no_tokens: bool, sort_order: str):
    """Show one page of transaction history."""
    config = ctx.obj['config']
    options = HistoryOptions(
        page=page,
        page_size=page_size or config.default_page_size,
        include_token_transfers=not no_tokens,
        sort_order=SortOrder(sort_order),
    )

    result = _run(ctx, lambda service: service.get_transaction_history(address, chain, options))
    click.echo(json.dumps(result.to_dict(), indent=2))


@cli.command()
@click.argument('address')
@click.pass_context
def pending(ctx, address: str):
    """List pending transactions known to the store."""
    transactions = _run(ctx, lambda service: service.get_pending_transactions(address))
    click.echo(json.dumps([tx.to_dict() for tx in transactions], indent=2))


@cli.command()
@click.argument('address')
@click.pass_context
def stats(ctx, address: str):
    """Summarize stored transactions of an address."""
    summary = _run(ctx, lambda service: service.get_transaction_stats(address))
    summary['total_volume'] = str(summary['total_volume'])
    click.echo(json.dumps(summary, indent=2))


@cli.command()
@click.argument('address')
@click.option('--format', 'fmt', type=click.Choice(['json', 'csv']), default='json', show_default=True)
@click.option('--output', '-o', type=click.File('w'), default='-',
              help='Output file (default: stdout)')
@click.pass_context
def export(ctx, address: str, fmt: str, output):
    """Export stored transactions as JSON or CSV."""
    content = _run(ctx, lambda service: service.export_transactions(address, fmt))
    output.write(content)


@cli.command()
def version():
    """Show version information."""
    from wallet_history import __version__, __description__

    click.echo(f"Wallet Transaction History v{__version__}")
    click.echo(__description__)


if __name__ == '__main__':
    cli()
