# app/models/store_integration.py
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import PlatformName


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class StoreIntegration(Base):
    """
    One connected seller account on an external commerce platform.

    Credentials are stored as opaque strings; each connector decides which
    of them it needs (see app/integrations/platforms).
    """
    __tablename__ = "store_integrations"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)  # Account holder, owned outside the engine
    name = Column(String(255), nullable=False)
    platform = Column(
        Enum(PlatformName, name="platformname", native_enum=False, values_callable=_enum_values),
        nullable=False,
        index=True,
    )

    # --- Credentials ---
    shop_url = Column(String(255), nullable=True)
    api_key = Column(String(255), nullable=True)
    api_secret = Column(Text, nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # --- Platform specific references ---
    marketplace_id = Column(String(64), nullable=True)  # Amazon
    shop_id = Column(String(64), nullable=True)  # Etsy
    additional_data = Column(JSON, nullable=True)

    # --- Sync state ---
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    products_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    products = relationship("Product", back_populates="store_integration", cascade="all, delete-orphan")
    sync_logs = relationship("InventorySyncLog", back_populates="store_integration", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<StoreIntegration(id={self.id}, platform='{self.platform}', active={self.is_active})>"
