"""
Etsy Open API v3 connector.

Active listings are paged with plain offset/limit; Etsy does not report a
usable total so paging stops on the first short page. Inventory lives on
per-listing "products" whose offerings carry the quantity.
"""

import copy
import logging
from typing import Any, Dict, List

from app.core.enums import PlatformName, ProductStatus
from app.core.utils import strip_tags
from app.integrations.base import (
    PlatformConnector, NormalizedItem, InventoryInfo, ItemLookup, SkipRecord,
    to_int, to_decimal, first, as_str,
)
from app.services.request_executor import ApiResult, RequestExecutor

logger = logging.getLogger(__name__)

LISTING_INCLUDES = "Images,Inventory"

# Keys Etsy returns on inventory reads but rejects on updateListingInventory
_READ_ONLY_PRODUCT_KEYS = ("product_id", "is_deleted")
_READ_ONLY_OFFERING_KEYS = ("offering_id", "is_deleted")


class EtsyConnector(PlatformConnector):
    platform = PlatformName.ETSY
    required_fields = ("shop_id", "access_token", "api_key")

    def __init__(self, integration, **kwargs):
        super().__init__(integration, **kwargs)
        self.page_size = self.settings.ETSY_PAGE_SIZE

    def _build_executor(self, *, sleep=None, transport=None) -> RequestExecutor:
        return RequestExecutor(
            self.integration,
            base_url=self.settings.ETSY_BASE_URL,
            headers={
                "Authorization": f"Bearer {self.integration.access_token}",
                "x-api-key": self.integration.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self.settings.SYNC_DEFAULT_TIMEOUT,
            max_attempts=self.settings.SYNC_MAX_ATTEMPTS,
            sleep=sleep,
            transport=transport,
        )

    async def fetch_page(self, state: Any = None):
        offset = state or 0
        result = await self.executor.get(
            f"application/shops/{self.integration.shop_id}/listings/active",
            {"limit": self.page_size, "offset": offset, "includes": LISTING_INCLUDES},
        )
        if not result.success:
            return result

        listings = (result.data or {}).get("results") or []
        page = self._normalize_many(listings)
        page.next_state = offset + self.page_size
        return page

    async def get_one(self, external_id: str) -> ItemLookup:
        result = await self.executor.get(f"application/listings/{external_id}", {"includes": LISTING_INCLUDES})
        if not result.success:
            if result.status_code == 404:
                return ItemLookup(success=True, error="Listing not found", status_code=404)
            return ItemLookup(success=False, error=result.error, status_code=result.status_code)

        if not result.data:
            return ItemLookup(success=True, error="Listing not found")
        try:
            return ItemLookup(success=True, item=self.normalize(result.data))
        except SkipRecord as e:
            return ItemLookup(success=True, error=f"Listing has no usable identifier: {e}")

    async def get_inventory_levels(self, item_ref: str) -> ApiResult:
        result = await self.executor.get(f"application/listings/{item_ref}/inventory")
        if not result.success:
            return result

        products = (result.data or {}).get("products") or []
        try:
            quantity = sum(
                to_int(offering.get("quantity"))
                for product in products
                for offering in product.get("offerings") or []
                if offering.get("is_enabled", True)
            )
        except SkipRecord as e:
            return ApiResult.fail(str(e), 502)
        return ApiResult.ok(InventoryInfo(quantity=quantity, levels=products), result.status_code)

    async def push_inventory(self, product, quantity: int) -> ApiResult:
        current = await self.get_inventory_levels(product.external_id)
        if not current.success:
            return current
        if not current.data.levels:
            return ApiResult.fail("Listing has no inventory products", 404)

        products = self._inventory_payload(current.data.levels, quantity)
        return await self.executor.put(
            f"application/listings/{product.external_id}/inventory",
            {"products": products},
        )

    @staticmethod
    def _inventory_payload(products: List[Dict[str, Any]], quantity: int) -> List[Dict[str, Any]]:
        payload = []
        for product in copy.deepcopy(products):
            for key in _READ_ONLY_PRODUCT_KEYS:
                product.pop(key, None)
            for offering in product.get("offerings") or []:
                for key in _READ_ONLY_OFFERING_KEYS:
                    offering.pop(key, None)
                price = offering.get("price")
                if isinstance(price, dict):
                    offering["price"] = float(_money(price) or 0)
                offering["quantity"] = quantity
            payload.append(product)
        return payload

    def normalize(self, raw: Dict[str, Any], **context) -> NormalizedItem:
        external_id = as_str(raw.get("listing_id"))
        if not external_id:
            raise SkipRecord("listing without listing_id")

        sku = as_str(raw.get("sku")) or as_str(first(raw.get("skus")))
        if not sku:
            inventory_product = first((raw.get("inventory") or {}).get("products")) or {}
            sku = as_str(inventory_product.get("sku"))
        if not sku:
            raise SkipRecord(f"listing {external_id} has no SKU")

        image = first(raw.get("images")) or {}

        return NormalizedItem(
            external_id=external_id,
            sku=sku,
            title=raw.get("title") or "",
            description=strip_tags(raw.get("description")),
            quantity=to_int(raw.get("quantity")),
            price=_money(raw.get("price")),
            status=ProductStatus.ACTIVE if raw.get("state") == "active" else ProductStatus.INACTIVE,
            image_url=image.get("url_fullxfull"),
            external_url=raw.get("url") or f"https://www.etsy.com/listing/{external_id}",
        )


def _money(price: Any):
    """Etsy money objects are {amount, divisor}; plain numbers pass through."""
    if isinstance(price, dict):
        amount = to_decimal(price.get("amount"))
        divisor = to_decimal(price.get("divisor") or 1)
        if amount is None or not divisor:
            return None
        return to_decimal(amount / divisor)
    return to_decimal(price)
