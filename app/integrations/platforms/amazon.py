"""
Amazon Selling Partner API connector.

Catalog items and FBA inventory summaries are separate resources, so a full
listing first loads the inventory summaries for the marketplace and joins
them onto catalog items by seller SKU. SP-API calls routinely take longer
than other platforms, hence the longer per-attempt timeout.
"""

import logging
from typing import Any, Dict, List, Optional

from app.core.enums import PlatformName, ProductStatus
from app.integrations.base import (
    PlatformConnector, NormalizedItem, InventoryInfo, ItemLookup, SkipRecord,
    to_int, to_decimal, first, as_str,
)
from app.services.request_executor import ApiResult, RequestExecutor

logger = logging.getLogger(__name__)

CATALOG_INCLUDED_DATA = "summaries,attributes,identifiers,images,productTypes"

# get_one does not look up FBA inventory; callers receive this fixed quantity.
# Awaiting product-owner confirmation whether a real lookup is wanted.
PLACEHOLDER_SINGLE_ITEM_QUANTITY = 10


class AmazonConnector(PlatformConnector):
    platform = PlatformName.AMAZON
    required_fields = ("marketplace_id", "access_token")

    def __init__(self, integration, **kwargs):
        super().__init__(integration, **kwargs)
        self.page_size = self.settings.AMAZON_PAGE_SIZE
        self._inventory_by_sku: Optional[Dict[str, Dict[str, Any]]] = None

    def _build_executor(self, *, sleep=None, transport=None) -> RequestExecutor:
        return RequestExecutor(
            self.integration,
            base_url=self.settings.AMAZON_BASE_URL,
            headers={
                "x-amz-access-token": self.integration.access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self.settings.AMAZON_TIMEOUT,
            max_attempts=self.settings.SYNC_MAX_ATTEMPTS,
            sleep=sleep,
            transport=transport,
        )

    async def fetch_page(self, state: Any = None):
        if state is None:
            inventory = await self._load_inventory_summaries()
            if not inventory.success:
                return inventory

        params = {
            "marketplaceIds": self.integration.marketplace_id,
            "includedData": CATALOG_INCLUDED_DATA,
            "pageSize": self.page_size,
        }
        if state:
            params["pageToken"] = state

        result = await self.executor.get("catalog/2022-04-01/items", params)
        if not result.success:
            return result

        data = result.data or {}
        items = data.get("items") or []
        page = self._normalize_many(items, inventory_by_sku=self._inventory_by_sku or {})
        page.next_state = (data.get("pagination") or {}).get("nextToken")
        return page

    async def _load_inventory_summaries(self) -> ApiResult:
        summaries: List[Dict[str, Any]] = []
        next_token = None

        while True:
            params = self._inventory_params()
            if next_token:
                params["nextToken"] = next_token
            result = await self.executor.get("fba/inventory/v1/summaries", params)
            if not result.success:
                return result

            payload = (result.data or {}).get("payload", result.data) or {}
            summaries.extend(payload.get("inventorySummaries") or [])
            next_token = ((result.data or {}).get("pagination") or {}).get("nextToken")
            if not next_token:
                break

        self._inventory_by_sku = {s["sellerSku"]: s for s in summaries if s.get("sellerSku")}
        return ApiResult.ok(self._inventory_by_sku)

    def _inventory_params(self) -> Dict[str, Any]:
        return {
            "marketplaceIds": self.integration.marketplace_id,
            "granularityType": "Marketplace",
            "granularityId": self.integration.marketplace_id,
            "details": "true",
        }

    async def get_one(self, external_id: str) -> ItemLookup:
        result = await self.executor.get(
            f"catalog/2022-04-01/items/{external_id}",
            {"marketplaceIds": self.integration.marketplace_id, "includedData": CATALOG_INCLUDED_DATA},
        )
        if not result.success:
            if result.status_code == 404:
                return ItemLookup(success=True, error="Product not found", status_code=404)
            return ItemLookup(success=False, error=result.error, status_code=result.status_code)

        if not result.data:
            return ItemLookup(success=True, error="Product not found")
        try:
            item = self.normalize(result.data, quantity=PLACEHOLDER_SINGLE_ITEM_QUANTITY)
        except SkipRecord as e:
            return ItemLookup(success=True, error=f"Product has no usable identifier: {e}")
        return ItemLookup(success=True, item=item)

    async def get_inventory_levels(self, item_ref: str) -> ApiResult:
        params = self._inventory_params()
        params["sellerSkus"] = item_ref
        result = await self.executor.get("fba/inventory/v1/summaries", params)
        if not result.success:
            return result

        payload = (result.data or {}).get("payload", result.data) or {}
        summaries = payload.get("inventorySummaries") or []
        if not summaries:
            return ApiResult.fail(f"No inventory summary for SKU {item_ref}", 404)
        try:
            quantity = _available_quantity(summaries[0])
        except SkipRecord as e:
            return ApiResult.fail(str(e), 502)
        return ApiResult.ok(
            InventoryInfo(quantity=quantity, levels=summaries),
            result.status_code,
        )

    async def push_inventory(self, product, quantity: int) -> ApiResult:
        if not product.sku:
            return ApiResult.fail("Product SKU is required for inventory updates")
        return await self.executor.put(f"fba/inventory/v1/items/{product.sku}", {"quantity": quantity})

    def normalize(self, raw: Dict[str, Any], inventory_by_sku: Optional[Dict] = None,
                  quantity: Optional[int] = None, **context) -> NormalizedItem:
        summary = first(raw.get("summaries"))
        if not summary:
            raise SkipRecord("catalog item without summary")

        asin = as_str(raw.get("asin"))
        sku = _seller_sku(raw.get("identifiers") or [])
        if not sku or not asin:
            raise SkipRecord(f"catalog item {asin or '<no asin>'} has no SKU or ASIN")

        if quantity is None:
            inventory = (inventory_by_sku or {}).get(sku)
            quantity = _available_quantity(inventory) if inventory else 0

        image = _first_image(raw.get("images") or [])

        return NormalizedItem(
            external_id=asin,
            sku=sku,
            title=summary.get("itemName") or "",
            description=summary.get("productDescription") or "",
            quantity=quantity,
            price=to_decimal((summary.get("buyingPrice") or {}).get("amount")),
            status=ProductStatus.ACTIVE,
            image_url=image.get("link") if image else None,
            external_url=f"https://www.amazon.com/dp/{asin}",
            barcode=asin,
        )


def _seller_sku(identifiers: List[Dict[str, Any]]) -> Optional[str]:
    """Identifiers come either flat or grouped per marketplace; accept both."""
    for entry in identifiers:
        nested = entry.get("identifiers")
        candidates = nested if isinstance(nested, list) else [entry]
        for identifier in candidates:
            if identifier.get("identifierType") == "SKU" and identifier.get("identifier"):
                return str(identifier["identifier"])
    return None


def _first_image(images: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    image = first(images)
    if image and isinstance(image.get("images"), list):
        return first(image["images"])
    return image


def _available_quantity(summary: Dict[str, Any]) -> int:
    if "availableQuantity" in summary:
        return to_int(summary.get("availableQuantity"))
    details = summary.get("inventoryDetails") or {}
    if "fulfillableQuantity" in details:
        return to_int(details.get("fulfillableQuantity"))
    return to_int(summary.get("totalQuantity"))
