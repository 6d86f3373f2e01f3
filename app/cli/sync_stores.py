# app/cli/sync_stores.py
import asyncio
import logging
from datetime import datetime

import click

from app.core.config import get_settings
from app.core.logging_config import configure_logging
from app.database import get_session
from app.models.store_integration import StoreIntegration
from app.scheduler import start_scheduler, stop_scheduler
from app.services.inventory_sync_service import InventorySyncService
from app.services.stock_alert_service import StockAlertService

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Inventory sync commands"""
    configure_logging(get_settings().LOG_LEVEL)


@cli.command("sync-all-stores")
@click.option("--store-id", type=int, default=None, help="Sync only this store integration")
def sync_all_stores(store_id):
    """Sync inventory for all active store integrations"""
    start_time = datetime.now()
    logger.info(f"Starting store sync at {start_time}")

    try:
        ok = asyncio.run(_with_session(run_sync, store_id))
    except Exception as e:
        logger.exception("Error during store sync")
        click.echo(f"Error during sync: {str(e)}")
        raise SystemExit(1)

    logger.info(f"Completed store sync in {datetime.now() - start_time}")
    if not ok:
        raise SystemExit(1)


async def _with_session(func, *args):
    async with get_session() as session:
        return await func(session, *args)


async def run_sync(session, store_id=None, **service_options) -> bool:
    """Core logic of sync-all-stores; returns True when every requested store synced."""
    service = InventorySyncService(session, **service_options)

    if store_id is not None:
        integration = await session.get(StoreIntegration, store_id)
        if integration is None:
            click.echo(f"Store integration {store_id} not found")
            return False

        click.echo(f"Syncing store: {integration.name} ({integration.platform.display_name})")
        result = await service.sync_all_products(integration)
        _echo_result(store_id, result)
        return result.success

    click.echo("Syncing all active stores...")
    result = await service.sync_all_active_integrations()
    results = result.data or {}
    if not results:
        click.echo("No active store integrations found")
        return True

    for integration_id, integration_result in results.items():
        _echo_result(integration_id, integration_result)

    succeeded = sum(1 for r in results.values() if r.success)
    click.echo(f"\nSync completed: {succeeded}/{len(results)} stores synced successfully")
    return succeeded == len(results)


def _echo_result(integration_id, result):
    if result.success:
        data = result.data
        click.echo(
            f"Store {integration_id}: {data['created']} created, {data['updated']} updated, "
            f"{data['skipped']} skipped (log {data['sync_log_id']})"
        )
    else:
        suffix = f" (log {result.sync_log_id})" if result.sync_log_id else ""
        click.echo(f"Store {integration_id}: sync failed: {result.error}{suffix}")


@cli.command("check-alerts")
def check_alerts():
    """Evaluate every active stock alert"""
    try:
        triggered = asyncio.run(_with_session(run_alert_check))
    except Exception as e:
        logger.exception("Error during stock alert check")
        click.echo(f"Error checking alerts: {str(e)}")
        raise SystemExit(1)

    click.echo(f"Alert check completed. {triggered} alerts triggered.")


async def run_alert_check(session, **service_options) -> int:
    triggered = await StockAlertService(session, **service_options).check_all_alerts()
    return len(triggered)


@cli.command("recommendations")
def recommendations():
    """List integrations and products that should be synced soon"""
    items = asyncio.run(_with_session(run_recommendations))
    if not items:
        click.echo("Nothing needs syncing")
        return
    for item in items:
        if "integration_id" in item:
            click.echo(f"Store {item['integration_id']} ({item['name']}): {item['reason']}")
        else:
            click.echo(f"Product {item['product_id']} ({item['title']}): {item['reason']}")


async def run_recommendations(session):
    return await InventorySyncService(session).get_sync_recommendations()


@cli.command("run-scheduler")
def run_scheduler():
    """Run the sync and alert-check cron jobs until interrupted"""
    try:
        asyncio.run(serve_scheduler())
    except KeyboardInterrupt:
        click.echo("Scheduler stopped")


async def serve_scheduler():
    await start_scheduler()
    try:
        await asyncio.Event().wait()
    finally:
        await stop_scheduler()


if __name__ == "__main__":
    cli()
