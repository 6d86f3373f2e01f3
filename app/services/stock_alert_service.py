# app/services/stock_alert_service.py
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import AlertStatus
from app.core.utils import utc_now
from app.integrations.events import EventDispatcher, StockAlertTriggeredEvent
from app.models.product import Product
from app.models.stock_alert import StockAlert

logger = logging.getLogger(__name__)


class StockAlertService:
    """
    Drives the stock alert state machine.

        pending --(quantity <= threshold)--> triggered --(reset)--> pending

    Only active alerts without a trigger timestamp are evaluated, so a
    triggered alert stays quiet until it is reset. The threshold test is
    inclusive.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        clock: Callable[[], datetime] = utc_now,
        events: Optional[EventDispatcher] = None,
    ):
        self.db = db
        self.clock = clock
        self.events = events or EventDispatcher()

    async def evaluate_product(self, product: Product) -> List[StockAlert]:
        """Trigger every eligible alert on ``product``; returns the alerts that fired."""
        stmt = select(StockAlert).where(
            StockAlert.product_id == product.id,
            StockAlert.is_active.is_(True),
            StockAlert.triggered_at.is_(None),
        ).order_by(StockAlert.id)
        result = await self.db.execute(stmt)
        alerts = result.scalars().all()
        return await self._evaluate(product, alerts)

    async def evaluate_integration(self, integration) -> List[StockAlert]:
        """Evaluate every product of an integration; used after full-catalog syncs."""
        result = await self.db.execute(
            select(Product).where(Product.store_integration_id == integration.id).order_by(Product.id)
        )
        triggered: List[StockAlert] = []
        for product in result.scalars().all():
            triggered.extend(await self.evaluate_product(product))
        return triggered

    async def check_all_alerts(self) -> List[StockAlert]:
        """Scan every active, untriggered alert regardless of recent syncs."""
        stmt = (
            select(StockAlert)
            .where(StockAlert.is_active.is_(True), StockAlert.triggered_at.is_(None))
            .options(selectinload(StockAlert.product).selectinload(Product.store_integration))
            .order_by(StockAlert.id)
        )
        result = await self.db.execute(stmt)
        alerts = result.scalars().all()
        logger.info(f"Checking {len(alerts)} active stock alerts")

        triggered: List[StockAlert] = []
        for alert in alerts:
            if alert.product is None:
                logger.warning(f"Alert #{alert.id}: product not found")
                continue
            triggered.extend(await self._evaluate(alert.product, [alert]))
        logger.info(f"Alert check completed. {len(triggered)} alerts triggered.")
        return triggered

    async def reset(self, alert: StockAlert) -> StockAlert:
        """Return an alert to pending. Safe to call on an alert that never fired."""
        alert.triggered_at = None
        alert.status = AlertStatus.PENDING
        await self.db.commit()
        return alert

    async def _evaluate(self, product: Product, alerts) -> List[StockAlert]:
        fired = [alert for alert in alerts if product.quantity <= alert.threshold]
        if not fired:
            return []

        now = self.clock()
        for alert in fired:
            alert.triggered_at = now
            alert.status = AlertStatus.TRIGGERED
        await self.db.commit()

        for alert in fired:
            logger.info(
                f"Stock alert {alert.id} triggered for product {product.id} "
                f"('{product.title}'): quantity {product.quantity} <= threshold {alert.threshold}",
                extra={
                    "alert_id": alert.id,
                    "product_id": product.id,
                    "current_quantity": product.quantity,
                    "threshold": alert.threshold,
                },
            )
            await self.events.emit(StockAlertTriggeredEvent(
                alert_id=alert.id,
                product_id=product.id,
                owner_id=alert.user_id,
                store_integration_id=product.store_integration_id,
                product_title=product.title or "",
                sku=product.sku,
                current_quantity=product.quantity,
                threshold=alert.threshold,
                notification_method=getattr(alert.notification_method, "value", alert.notification_method),
                triggered_at=now,
            ))
        return fired
