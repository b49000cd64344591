"""
EquiClear CLI - operator interface for the auction indexer.

Main entry point for all CLI commands.
"""

import json
import logging
import time
from pathlib import Path

import click

from equiclear.core.config import load_config
from equiclear.core.errors import EquiClearError
from equiclear.core.query import AuctionQueryService
from equiclear.core.storage import StorageManager
from equiclear.core.sync import SyncEngine, read_event_file
from equiclear.utils.logger import setup_logging


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


def _query(ctx) -> AuctionQueryService:
    return AuctionQueryService(
        ctx.obj["storage"],
        default_curve_samples=ctx.obj["config"].price_curve_samples,
    )


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (overrides EQUICLEAR_DATA_DIR)")
@click.option("--env-file", default=None, help="Path to a .env file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, env_file):
    """EquiClear Indexer - Dutch auction state and pricing"""
    try:
        config = load_config(env_file)
    except ValueError as e:
        raise click.UsageError(str(e))
    if data_dir:
        config.data_dir = Path(data_dir).expanduser()
    config.ensure_dirs()

    level = logging.DEBUG if debug else config.log_level
    setup_logging(level=level, log_dir=str(config.log_dir) if config.log_dir else None)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["storage"] = StorageManager(data_dir=config.data_dir, db_name=config.db_name)
    ctx.call_on_close(ctx.obj["storage"].close)


# =============================================================================
# Ingestion
# =============================================================================


@cli.command("ingest")
@click.argument("event_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def ingest(ctx, event_file):
    """Apply a JSON Lines file of chain events"""
    engine = SyncEngine(ctx.obj["storage"])
    try:
        report = engine.sync_events(read_event_file(event_file))
    except EquiClearError as e:
        raise click.ClickException(e.message)

    _echo_json(report.to_dict())
    for event in report.conflicts:
        click.echo(
            f"❌ Conflicting claim: {event.claimer} on {event.auction_id} "
            f"(block {event.block_height})",
            err=True,
        )
    if report.conflicts:
        ctx.exit(1)


# =============================================================================
# Queries
# =============================================================================


@cli.command("auctions")
@click.option("--status", default=None, help="created, active, settled or cancelled")
@click.option("--limit", default=None, type=int, help="Max auctions to show")
@click.option("--offset", default=0, type=int, help="Auctions to skip")
@click.pass_context
def auctions(ctx, status, limit, offset):
    """List auctions"""
    if limit is None:
        limit = ctx.obj["config"].page_limit
    try:
        records = _query(ctx).list_auctions(status=status, limit=limit, offset=offset)
    except ValueError as e:
        raise click.BadParameter(str(e))
    _echo_json([r.to_dict() for r in records])


@cli.command("auction")
@click.argument("auction_id")
@click.pass_context
def auction(ctx, auction_id):
    """Show one auction with its bids and live price"""
    query = _query(ctx)
    record = query.get_auction(auction_id)
    if record is None:
        raise click.ClickException(f"Auction not found: {auction_id}")

    _echo_json({
        "auction": record.to_dict(),
        "bids": query.get_bid_aggregate(auction_id).to_dict(),
        "price": query.get_current_price(auction_id).to_dict(),
    })


@cli.command("price")
@click.argument("auction_id")
@click.option("--at", "at", default=None, type=int, help="Unix timestamp (default: now)")
@click.pass_context
def price(ctx, auction_id, at):
    """Show the current Dutch-auction price"""
    view = _query(ctx).get_current_price(auction_id, now=at if at is not None else time.time())
    if view is None:
        raise click.ClickException(f"Auction not found: {auction_id}")
    _echo_json(view.to_dict())


@cli.command("curve")
@click.argument("auction_id")
@click.option("--samples", default=None, type=click.IntRange(min=1), help="Points on the curve")
@click.pass_context
def curve(ctx, auction_id, samples):
    """Show sampled price curve for charts"""
    points = _query(ctx).get_price_curve(auction_id, samples)
    if not points:
        raise click.ClickException(f"Auction not found: {auction_id}")
    _echo_json([p.to_dict() for p in points])


@cli.command("bids")
@click.argument("auction_id")
@click.pass_context
def bids(ctx, auction_id):
    """Show public bid aggregate"""
    _echo_json(_query(ctx).get_bid_aggregate(auction_id).to_dict())


@cli.command("claims")
@click.argument("address")
@click.pass_context
def claims(ctx, address):
    """List claims made by an address"""
    _echo_json([c.to_dict() for c in _query(ctx).list_claims(address)])


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show platform statistics"""
    _echo_json(_query(ctx).get_stats().to_dict())


if __name__ == "__main__":
    cli()
