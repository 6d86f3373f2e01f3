"""
Canonical catalog records.

A Product mirrors one remote listing. Its identity is the pair
(store_integration_id, external_id); connectors never write rows directly,
the sync service creates and updates them from normalized items.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import ProductStatus
from app.models.store_integration import _enum_values


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("store_integration_id", "external_id", name="uq_products_integration_external_id"),
    )

    id = Column(Integer, primary_key=True)
    store_integration_id = Column(
        Integer, ForeignKey("store_integrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_id = Column(String(64), nullable=False, index=True)

    # Core Product Information
    sku = Column(String(255), nullable=False, index=True)
    title = Column(String(512), nullable=False, default="")
    description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    price = Column(Numeric(10, 2), nullable=True)
    status = Column(
        Enum(ProductStatus, name="productstatus", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=ProductStatus.ACTIVE,
        index=True,
    )

    # Media and Links
    image_url = Column(String(1024), nullable=True)
    external_url = Column(String(1024), nullable=True)

    # Platform references used for inventory pushes
    barcode = Column(String(64), nullable=True)
    variant_id = Column(String(64), nullable=True)
    inventory_item_id = Column(String(64), nullable=True)

    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    store_integration = relationship("StoreIntegration", back_populates="products")
    stock_alerts = relationship("StockAlert", back_populates="product", cascade="all, delete-orphan")

    # Fields a connector is allowed to overwrite on every sync
    SYNCED_FIELDS = (
        "title",
        "description",
        "sku",
        "quantity",
        "price",
        "status",
        "image_url",
        "barcode",
        "variant_id",
        "inventory_item_id",
    )

    @classmethod
    def from_normalized(cls, item, *, store_integration_id: int, synced_at):
        """Build a new catalog row from a connector's NormalizedItem."""
        return cls(
            store_integration_id=store_integration_id,
            external_id=item.external_id,
            title=item.title or "",
            description=item.description,
            sku=item.sku,
            quantity=item.quantity,
            price=item.price,
            status=item.status,
            image_url=item.image_url,
            external_url=item.external_url,
            barcode=item.barcode,
            variant_id=item.variant_id,
            inventory_item_id=item.inventory_item_id,
            last_synced_at=synced_at,
        )

    def apply_normalized(self, item, *, synced_at) -> None:
        for field in self.SYNCED_FIELDS:
            setattr(self, field, getattr(item, field))
        if not self.title:
            self.title = ""
        if item.external_url:
            self.external_url = item.external_url
        self.last_synced_at = synced_at

    def __repr__(self):
        return f"<Product(id={self.id}, sku='{self.sku}', external_id='{self.external_id}', qty={self.quantity})>"
