# app/cli/sync_orders.py
import asyncio
import json
import logging
from dataclasses import replace
from datetime import datetime

import click

from app.core.config import ReconciliationConfig, get_settings
from app.core.logging_config import configure_logging
from app.database import get_session_factory
from app.services.order_sale_processor import reconcile_marketplace_orders

logger = logging.getLogger(__name__)


@click.command()
@click.option('--account-id', type=int, default=None, help='Only reconcile this marketplace account')
@click.option('--window-minutes', type=int, default=None, help='Override the trailing order window')
@click.option('--channel-id', default=None, help='Override the stock bucket that is decremented')
def sync_orders(account_id, window_minutes, channel_id):
    """Apply recent eBay orders to channel stock once"""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    config = ReconciliationConfig.from_settings(settings)
    overrides = {}
    if window_minutes is not None:
        overrides["window_minutes"] = window_minutes
    if channel_id:
        overrides["channel_id"] = channel_id
    if overrides:
        config = replace(config, **overrides)

    start_time = datetime.now()
    logger.info(f"Starting eBay orders sync at {start_time}")

    try:
        summary = asyncio.run(
            reconcile_marketplace_orders(
                get_session_factory(),
                config,
                account_id=account_id,
                http_timeout=settings.EBAY_HTTP_TIMEOUT_SECONDS,
            )
        )
    except Exception as e:
        logger.exception("Error during eBay orders sync")
        raise click.ClickException(f"Error during sync: {str(e)}")

    logger.info(f"Completed eBay orders sync in {datetime.now() - start_time}")
    click.echo(json.dumps(summary.to_dict(), indent=2))


if __name__ == "__main__":
    sync_orders()
