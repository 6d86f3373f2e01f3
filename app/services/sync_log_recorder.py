# app/services/sync_log_recorder.py
import logging
from typing import Callable, List, Optional
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import SyncKind, SyncLogStatus, SyncTrigger
from app.core.exceptions import SyncError
from app.core.utils import utc_now
from app.models.inventory_sync_log import InventorySyncLog
from app.services.change_diff import ProductChange, serialize_changes

logger = logging.getLogger(__name__)


class SyncLogRecorder:
    """
    Opens and finalizes InventorySyncLog rows.

    Every log is committed in_progress before its operation touches the
    network and is finalized exactly once; a second finalization raises
    SyncError rather than silently overwriting the audit trail.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def start(
        self,
        integration,
        kind: SyncKind,
        trigger: SyncTrigger = SyncTrigger.MANUAL,
        product=None,
    ) -> InventorySyncLog:
        sync_log = InventorySyncLog(
            store_integration_id=integration.id,
            product_id=product.id if product is not None else None,
            kind=kind,
            trigger=trigger,
            status=SyncLogStatus.IN_PROGRESS,
            started_at=self.clock(),
        )
        self.db.add(sync_log)
        await self.db.commit()
        logger.debug(f"Opened sync log {sync_log.id} ({kind.value}) for integration {integration.id}")
        return sync_log

    async def complete(
        self,
        sync_log: InventorySyncLog,
        *,
        synced: int,
        message: str,
        changes: Optional[List[ProductChange]] = None,
        skipped: int = 0,
        product=None,
    ) -> InventorySyncLog:
        self._ensure_open(sync_log)
        sync_log.status = SyncLogStatus.COMPLETED
        sync_log.products_synced = synced
        sync_log.products_failed = skipped
        sync_log.message = message
        sync_log.changes = serialize_changes(changes or [])
        if product is not None:
            sync_log.product_id = product.id
        sync_log.completed_at = self.clock()
        await self.db.commit()
        return sync_log

    async def fail(self, sync_log: InventorySyncLog, message: str) -> InventorySyncLog:
        self._ensure_open(sync_log)
        sync_log.status = SyncLogStatus.FAILED
        sync_log.message = message
        sync_log.completed_at = self.clock()
        await self.db.commit()
        logger.warning(f"Sync log {sync_log.id} failed: {message}")
        return sync_log

    @staticmethod
    def _ensure_open(sync_log: InventorySyncLog) -> None:
        if sync_log.is_terminal:
            raise SyncError(f"Sync log {sync_log.id} is already {SyncLogStatus(sync_log.status).value}")
