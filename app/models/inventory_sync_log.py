# app/models/inventory_sync_log.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import SyncKind, SyncTrigger, SyncLogStatus
from app.models.store_integration import _enum_values


class InventorySyncLog(Base):
    """
    Audit record for one sync operation (full catalog, single item or push).

    Created in_progress before any network call and finalized exactly once
    as completed or failed. Rows are never mutated after finalization.
    """
    __tablename__ = "inventory_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    store_integration_id = Column(
        Integer, ForeignKey("store_integrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Null for full-catalog runs
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    kind = Column(Enum(SyncKind, name="synckind", native_enum=False, values_callable=_enum_values), nullable=False)
    trigger = Column(
        Enum(SyncTrigger, name="synctrigger", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=SyncTrigger.MANUAL,
    )
    status = Column(
        Enum(SyncLogStatus, name="synclogstatus", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=SyncLogStatus.IN_PROGRESS,
        index=True,
    )

    message = Column(Text, nullable=True)
    products_synced = Column(Integer, nullable=False, default=0)
    products_failed = Column(Integer, nullable=False, default=0)  # skipped / unusable upstream records

    # Serialized list of ProductChange entries, see app/services/change_diff.py
    changes = Column(JSON, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    store_integration = relationship("StoreIntegration", back_populates="sync_logs")
    product = relationship("Product")

    @property
    def is_terminal(self) -> bool:
        return SyncLogStatus(self.status).is_terminal

    def __repr__(self):
        return (f"<InventorySyncLog(id={self.id}, integration={self.store_integration_id}, "
                f"kind='{self.kind}', status='{self.status}')>")
