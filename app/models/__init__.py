from .store_integration import StoreIntegration
from .product import Product
from .inventory_sync_log import InventorySyncLog
from .stock_alert import StockAlert

from app.core.enums import ProductStatus, SyncKind, SyncTrigger, SyncLogStatus, AlertStatus, NotificationMethod

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'StoreIntegration',
    'Product',
    'ProductStatus',
    'InventorySyncLog',
    'SyncKind',
    'SyncTrigger',
    'SyncLogStatus',
    'StockAlert',
    'AlertStatus',
    'NotificationMethod',
]
