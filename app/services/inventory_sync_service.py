# app/services/inventory_sync_service.py
"""
Inventory sync orchestration.

InventorySyncService coordinates connectors, the diff engine, catalog
upserts, the sync log recorder and the stock alert evaluator for three
operations: full catalog sync, single item sync and inventory push.

Every public operation returns a SyncResult; nothing raises past this
module. Apart from the fail-fast cases (inactive integration, invalid push
quantity) every operation leaves exactly one terminal sync log behind.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.enums import SyncKind, SyncTrigger
from app.core.exceptions import InvalidQuantityError, PlatformServiceError
from app.core.utils import ensure_quantity, utc_now
from app.integrations.base import PlatformConnector
from app.integrations.events import EventDispatcher, SyncCompletedEvent
from app.integrations.setup import create_connector
from app.models.inventory_sync_log import InventorySyncLog
from app.models.product import Product
from app.models.stock_alert import StockAlert
from app.models.store_integration import StoreIntegration
from app.services.change_diff import ChangeSet, FieldChange, ProductChange, diff
from app.services.stock_alert_service import StockAlertService
from app.services.sync_log_recorder import SyncLogRecorder

logger = logging.getLogger(__name__)

INACTIVE_INTEGRATION_ERROR = "Store integration is not active"


@dataclass
class SyncResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    sync_log_id: Optional[int] = None

    @classmethod
    def ok(cls, data: Dict[str, Any]) -> "SyncResult":
        return cls(success=True, data=data, sync_log_id=data.get("sync_log_id"))

    @classmethod
    def failure(cls, error: str, sync_log_id: Optional[int] = None) -> "SyncResult":
        return cls(success=False, error=error, sync_log_id=sync_log_id)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = {key: _serialize(value) for key, value in self.data.items()}
        if self.error is not None:
            payload["error"] = self.error
        if not self.success and self.sync_log_id is not None:
            payload["sync_log_id"] = self.sync_log_id
        return payload


class InventorySyncService:
    def __init__(
        self,
        db: AsyncSession,
        *,
        connector_factory: Callable[[StoreIntegration], PlatformConnector] = create_connector,
        clock: Callable[[], datetime] = utc_now,
        events: Optional[EventDispatcher] = None,
        alert_service: Optional[StockAlertService] = None,
        settings=None,
    ):
        self.db = db
        self.connector_factory = connector_factory
        self.clock = clock
        self.events = events or EventDispatcher()
        self.settings = settings or get_settings()
        self.recorder = SyncLogRecorder(db, clock)
        self.alerts = alert_service or StockAlertService(db, clock=clock, events=self.events)

    # ------------------------------------------------------------------
    # Full catalog
    # ------------------------------------------------------------------
    async def sync_all_products(
        self,
        integration: StoreIntegration,
        trigger: SyncTrigger = SyncTrigger.MANUAL,
    ) -> SyncResult:
        if not integration.is_active:
            return SyncResult.failure(INACTIVE_INTEGRATION_ERROR)

        integration_id = integration.id
        sync_log = None
        try:
            sync_log = await self.recorder.start(integration, SyncKind.FULL, trigger)
            connector = await self._connector_or_fail(integration, sync_log)
            if connector is None:
                return SyncResult.failure(sync_log.message, sync_log.id)

            listing = await connector.list_all()
            if not listing.success:
                await self.recorder.fail(sync_log, listing.error or "Catalog listing failed")
                return SyncResult.failure(sync_log.message, sync_log.id)

            now = self.clock()
            existing = await self._products_by_external_id(integration_id)
            created = updated = 0
            skipped = listing.skipped
            touched = []

            for item in listing.items:
                try:
                    item.quantity = ensure_quantity(item.quantity)
                except InvalidQuantityError as e:
                    skipped += 1
                    logger.warning(f"Integration {integration_id}: skipping {item.external_id}: {e}")
                    continue

                product = existing.get(item.external_id)
                change_set = diff(product, item)
                if change_set.is_new:
                    product = Product.from_normalized(item, store_integration_id=integration_id, synced_at=now)
                    self.db.add(product)
                    existing[item.external_id] = product
                    created += 1
                elif change_set.changes:
                    product.apply_normalized(item, synced_at=now)
                    updated += 1
                else:
                    skipped += 1
                    continue
                touched.append((product, item, change_set))

            await self.db.flush()
            changes = [
                ProductChange(product.id, item.external_id, item.title, change_set)
                for product, item, change_set in touched
            ]

            await self._stamp_integration(integration, now)
            await self.recorder.complete(
                sync_log,
                synced=created + updated,
                skipped=skipped,
                message=f"Sync completed: {created} products created, {updated} updated, {skipped} skipped",
                changes=changes,
            )
        except Exception as e:
            logger.exception(f"Full catalog sync failed for integration {integration_id}")
            return await self._fail_after_error(sync_log, e)

        logger.info(
            f"Integration {integration_id} synced: {created} created, {updated} updated, {skipped} skipped "
            f"(log {sync_log.id})"
        )
        await self._after_success(integration, sync_log, lambda: self.alerts.evaluate_integration(integration))
        return SyncResult.ok({
            "created": created,
            "updated": updated,
            "skipped": skipped,
            "sync_log_id": sync_log.id,
        })

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------
    async def sync_product(self, product: Product) -> SyncResult:
        sync_log = None
        product_id = product.id
        try:
            integration = await self._integration_for(product)
            if not integration.is_active:
                return SyncResult.failure(INACTIVE_INTEGRATION_ERROR)

            sync_log = await self.recorder.start(integration, SyncKind.SINGLE, product=product)
            connector = await self._connector_or_fail(integration, sync_log)
            if connector is None:
                return SyncResult.failure(sync_log.message, sync_log.id)

            lookup = await connector.get_one(product.external_id)
            if not lookup.success or lookup.item is None:
                await self.recorder.fail(sync_log, lookup.error or "Product not found")
                return SyncResult.failure(sync_log.message, sync_log.id)

            item = lookup.item
            try:
                item.quantity = ensure_quantity(item.quantity)
            except InvalidQuantityError as e:
                await self.recorder.fail(sync_log, str(e))
                return SyncResult.failure(sync_log.message, sync_log.id)

            now = self.clock()
            target = await self._find_product(integration.id, item.external_id)
            change_set = diff(target, item)
            if change_set.is_new:
                target = Product.from_normalized(item, store_integration_id=integration.id, synced_at=now)
                self.db.add(target)
                status = "created"
            else:
                target.apply_normalized(item, synced_at=now)
                status = "updated"
            await self.db.flush()

            await self._stamp_integration(integration, now)
            await self.recorder.complete(
                sync_log,
                synced=1,
                message=f"Product {status} successfully",
                changes=[ProductChange(target.id, item.external_id, item.title, change_set)],
                product=target,
            )
        except Exception as e:
            logger.exception(f"Single product sync failed for product {product_id}")
            return await self._fail_after_error(sync_log, e)

        await self._after_success(integration, sync_log, lambda: self.alerts.evaluate_product(target), target)
        return SyncResult.ok({"status": status, "product": target, "sync_log_id": sync_log.id})

    # ------------------------------------------------------------------
    # Outbound push
    # ------------------------------------------------------------------
    async def push_inventory_update(self, product: Product, quantity: int) -> SyncResult:
        try:
            quantity = ensure_quantity(quantity)
        except InvalidQuantityError as e:
            return SyncResult.failure(str(e))

        sync_log = None
        product_id = product.id
        try:
            integration = await self._integration_for(product)
            if not integration.is_active:
                return SyncResult.failure(INACTIVE_INTEGRATION_ERROR)

            sync_log = await self.recorder.start(integration, SyncKind.PUSH, product=product)
            connector = await self._connector_or_fail(integration, sync_log)
            if connector is None:
                return SyncResult.failure(sync_log.message, sync_log.id)

            # Remote first: the local row only moves once the platform accepted the value
            remote = await connector.push_inventory(product, quantity)
            if not remote.success:
                await self.recorder.fail(sync_log, remote.error or "Inventory update failed")
                return SyncResult.failure(sync_log.message, sync_log.id)

            now = self.clock()
            before = product.quantity
            product.quantity = quantity
            product.last_synced_at = now

            await self._stamp_integration(integration, now)
            await self.recorder.complete(
                sync_log,
                synced=1,
                message=f"Inventory updated to {quantity} units",
                changes=[ProductChange(
                    product.id,
                    product.external_id,
                    product.title,
                    ChangeSet(changes=[FieldChange("quantity", before, quantity)]),
                )],
            )
        except Exception as e:
            logger.exception(f"Inventory push failed for product {product_id}")
            return await self._fail_after_error(sync_log, e)

        await self._after_success(integration, sync_log, lambda: self.alerts.evaluate_product(product), product)
        return SyncResult.ok({"product": product, "sync_log_id": sync_log.id})

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------
    async def sync_all_active_integrations(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncResult:
        """Sync every active integration in turn; one failure never stops the rest."""
        result = await self.db.execute(
            select(StoreIntegration.id).where(StoreIntegration.is_active.is_(True)).order_by(StoreIntegration.id)
        )
        integration_ids = result.scalars().all()
        logger.info(f"Syncing {len(integration_ids)} active store integrations")

        results: Dict[int, SyncResult] = {}
        for integration_id in integration_ids:
            try:
                # Re-read each row: a failed run rolls the session back and expires what it held
                integration = await self.db.get(StoreIntegration, integration_id)
                results[integration_id] = await self.sync_all_products(integration, trigger)
            except Exception as e:
                logger.exception(f"Unhandled error syncing integration {integration_id}")
                await self.db.rollback()
                results[integration_id] = SyncResult.failure(str(e))

        failed = [i for i, r in results.items() if not r.success]
        if failed:
            logger.warning(f"{len(failed)} of {len(results)} integrations failed to sync: {failed}")
        return SyncResult(success=True, data=results)

    async def get_sync_recommendations(self) -> List[Dict[str, Any]]:
        """
        Integrations that have not synced recently, and products with
        triggered alerts whose stock figure may be stale.
        """
        now = self.clock()
        integration_cutoff = now - timedelta(hours=self.settings.STALE_INTEGRATION_HOURS)
        product_cutoff = now - timedelta(hours=self.settings.STALE_PRODUCT_HOURS)
        recommendations: List[Dict[str, Any]] = []

        result = await self.db.execute(
            select(StoreIntegration)
            .where(
                StoreIntegration.is_active.is_(True),
                or_(StoreIntegration.last_sync_at.is_(None), StoreIntegration.last_sync_at < integration_cutoff),
            )
            .order_by(StoreIntegration.id)
        )
        for integration in result.scalars().all():
            recommendations.append({
                "integration_id": integration.id,
                "name": integration.name,
                "platform": getattr(integration.platform, "value", integration.platform),
                "last_sync_at": integration.last_sync_at,
                "reason": f"Not synced in the last {self.settings.STALE_INTEGRATION_HOURS} hours",
            })

        result = await self.db.execute(
            select(Product, StoreIntegration)
            .join(StoreIntegration, Product.store_integration_id == StoreIntegration.id)
            .where(
                StoreIntegration.is_active.is_(True),
                Product.last_synced_at.is_not(None),
                Product.last_synced_at < product_cutoff,
                Product.id.in_(
                    select(StockAlert.product_id).where(
                        StockAlert.is_active.is_(True),
                        StockAlert.triggered_at.is_not(None),
                    )
                ),
            )
            .order_by(Product.id)
        )
        for product, integration in result.all():
            recommendations.append({
                "product_id": product.id,
                "title": product.title,
                "store_integration_id": integration.id,
                "store_name": integration.name,
                "last_synced_at": product.last_synced_at,
                "reason": "Product has triggered alerts and may need inventory verification",
            })

        return recommendations

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _connector_or_fail(self, integration, sync_log: InventorySyncLog) -> Optional[PlatformConnector]:
        try:
            return self.connector_factory(integration)
        except PlatformServiceError as e:
            logger.error(f"Cannot build connector for integration {integration.id}: {e}")
            await self.recorder.fail(sync_log, str(e))
            return None

    async def _integration_for(self, product: Product) -> StoreIntegration:
        integration = await self.db.get(StoreIntegration, product.store_integration_id)
        if integration is None:
            raise LookupError(f"Store integration {product.store_integration_id} not found")
        return integration

    async def _find_product(self, integration_id: int, external_id: str) -> Optional[Product]:
        result = await self.db.execute(
            select(Product).where(
                Product.store_integration_id == integration_id,
                Product.external_id == external_id,
            )
        )
        return result.scalar_one_or_none()

    async def _products_by_external_id(self, integration_id: int) -> Dict[str, Product]:
        result = await self.db.execute(select(Product).where(Product.store_integration_id == integration_id))
        return {product.external_id: product for product in result.scalars().all()}

    async def _stamp_integration(self, integration: StoreIntegration, now: datetime) -> None:
        count = await self.db.execute(
            select(func.count(Product.id)).where(Product.store_integration_id == integration.id)
        )
        integration.last_sync_at = now
        integration.products_count = count.scalar_one()

    async def _after_success(self, integration, sync_log: InventorySyncLog, evaluate, *loaded) -> None:
        event = SyncCompletedEvent(
            sync_log_id=sync_log.id,
            owner_id=integration.user_id,
            store_integration_id=sync_log.store_integration_id,
            kind=sync_log.kind.value,
            products_synced=sync_log.products_synced,
            timestamp=sync_log.completed_at,
        )
        try:
            await evaluate()
        except Exception:
            logger.exception(f"Stock alert evaluation failed after sync log {sync_log.id}")
            await self.db.rollback()
            for obj in (integration, sync_log) + loaded:
                await self.db.refresh(obj)

        await self.events.emit(event)

    async def _fail_after_error(self, sync_log: Optional[InventorySyncLog], error: Exception) -> SyncResult:
        message = str(error) or type(error).__name__
        sync_log_id = sync_log.id if sync_log is not None else None
        await self.db.rollback()
        if sync_log_id is None:
            return SyncResult.failure(message)

        try:
            await self.db.refresh(sync_log)
            if not sync_log.is_terminal:
                await self.recorder.fail(sync_log, message)
        except Exception:
            logger.exception(f"Could not finalize sync log {sync_log_id}")
            await self.db.rollback()
        return SyncResult.failure(message, sync_log_id)


def _serialize(value: Any) -> Any:
    if isinstance(value, SyncResult):
        return value.to_dict()
    if isinstance(value, Product):
        return {
            "id": value.id,
            "external_id": value.external_id,
            "sku": value.sku,
            "title": value.title,
            "quantity": value.quantity,
            "price": str(value.price) if value.price is not None else None,
            "status": getattr(value.status, "value", value.status),
        }
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value
