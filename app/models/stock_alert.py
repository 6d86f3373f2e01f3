# app/models/stock_alert.py
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import AlertStatus, NotificationMethod
from app.models.store_integration import _enum_values


class StockAlert(Base):
    """
    Per-product, per-owner low stock watcher.

    pending --(quantity <= threshold)--> triggered --(reset)--> pending.
    Inactive alerts are skipped by evaluation but keep their last status.
    """
    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    threshold = Column(Integer, nullable=False, default=5)
    notification_method = Column(
        Enum(NotificationMethod, name="notificationmethod", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=NotificationMethod.EMAIL,
    )
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    status = Column(
        Enum(AlertStatus, name="alertstatus", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=AlertStatus.PENDING,
        index=True,
    )

    triggered_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    notified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    product = relationship("Product", back_populates="stock_alerts")

    def __repr__(self):
        return f"<StockAlert(id={self.id}, product_id={self.product_id}, threshold={self.threshold}, status='{self.status}')>"
