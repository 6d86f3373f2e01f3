"""
Shopify Admin REST connector.

Authentication is the private-app access token in ``api_key`` sent as
X-Shopify-Access-Token. Catalog paging uses ``since_id`` so no total is
needed up front; the first variant of each product carries SKU, stock and
price.
"""

import logging
import re
from typing import Any, Dict, Optional

from app.core.enums import PlatformName, ProductStatus
from app.core.utils import strip_tags
from app.integrations.base import (
    PlatformConnector, NormalizedItem, InventoryInfo, CatalogPage, ItemLookup, SkipRecord,
    to_int, to_decimal, first, as_str,
)
from app.services.request_executor import ApiResult, RequestExecutor

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = "id,title,handle,body_html,variants,images,status"


class ShopifyConnector(PlatformConnector):
    platform = PlatformName.SHOPIFY
    required_fields = ("shop_url", "api_key")

    def __init__(self, integration, **kwargs):
        super().__init__(integration, **kwargs)
        self.page_size = self.settings.SHOPIFY_PAGE_SIZE

    @property
    def shop_domain(self) -> str:
        return re.sub(r"^https?://", "", self.integration.shop_url).rstrip("/")

    def _build_executor(self, *, sleep=None, transport=None) -> RequestExecutor:
        return RequestExecutor(
            self.integration,
            base_url=f"https://{self.shop_domain}/admin/api/{self.settings.SHOPIFY_API_VERSION}",
            headers={
                "X-Shopify-Access-Token": self.integration.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self.settings.SYNC_DEFAULT_TIMEOUT,
            max_attempts=self.settings.SYNC_MAX_ATTEMPTS,
            sleep=sleep,
            transport=transport,
        )

    async def fetch_page(self, state: Any = None):
        params = {"limit": self.page_size, "fields": PRODUCT_FIELDS}
        if state:
            params["since_id"] = state

        result = await self.executor.get("products.json", params)
        if not result.success:
            return result

        products = (result.data or {}).get("products") or []
        page = self._normalize_many(products)
        page.next_state = products[-1].get("id") if products else None
        return page

    async def get_one(self, external_id: str) -> ItemLookup:
        result = await self.executor.get(f"products/{external_id}.json")
        if not result.success:
            if result.status_code == 404:
                return ItemLookup(success=True, error="Product not found", status_code=404)
            return ItemLookup(success=False, error=result.error, status_code=result.status_code)

        product = (result.data or {}).get("product")
        if not product:
            return ItemLookup(success=True, error="Product not found")
        try:
            return ItemLookup(success=True, item=self.normalize(product))
        except SkipRecord as e:
            return ItemLookup(success=True, error=f"Product has no usable identifier: {e}")

    async def get_inventory_levels(self, item_ref: str) -> ApiResult:
        result = await self.executor.get("inventory_levels.json", {"inventory_item_ids": item_ref})
        if not result.success:
            return result

        levels = (result.data or {}).get("inventory_levels") or []
        if not levels:
            return ApiResult.fail("No inventory levels found", 404)

        try:
            quantity = sum(to_int(level.get("available")) for level in levels)
        except SkipRecord as e:
            return ApiResult.fail(str(e), 502)
        return ApiResult.ok(
            InventoryInfo(quantity=quantity, location_id=as_str(levels[0].get("location_id")), levels=levels),
            result.status_code,
        )

    async def push_inventory(self, product, quantity: int) -> ApiResult:
        if not product.inventory_item_id:
            return ApiResult.fail("Product has no inventory item ID")

        levels = await self.get_inventory_levels(product.inventory_item_id)
        if not levels.success:
            return levels

        return await self.executor.post("inventory_levels/set.json", {
            "inventory_item_id": product.inventory_item_id,
            "location_id": levels.data.location_id,
            "available": quantity,
        })

    def normalize(self, raw: Dict[str, Any], **context) -> NormalizedItem:
        external_id = as_str(raw.get("id"))
        if not external_id:
            raise SkipRecord("product without id")

        variant: Optional[Dict[str, Any]] = first(raw.get("variants"))
        if not variant:
            raise SkipRecord(f"product {external_id} has no variants")

        sku = as_str(variant.get("sku"))
        if not sku:
            raise SkipRecord(f"product {external_id} has no SKU")

        image = first(raw.get("images")) or {}
        handle = raw.get("handle")

        return NormalizedItem(
            external_id=external_id,
            sku=sku,
            title=raw.get("title") or "",
            description=strip_tags(raw.get("body_html")),
            quantity=to_int(variant.get("inventory_quantity")),
            price=to_decimal(variant.get("price")),
            status=ProductStatus.ACTIVE if raw.get("status") == "active" else ProductStatus.INACTIVE,
            image_url=image.get("src"),
            external_url=f"https://{self.shop_domain}/products/{handle}" if handle else None,
            barcode=as_str(variant.get("barcode")),
            variant_id=as_str(variant.get("id")),
            inventory_item_id=as_str(variant.get("inventory_item_id")),
        )
