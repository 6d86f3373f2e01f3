"""
Capability interface every platform connector implements, plus the
platform-agnostic shapes connectors normalize upstream payloads into.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.core.enums import ProductStatus
from app.core.exceptions import ConnectorConfigurationError
from app.services.request_executor import ApiResult, RequestExecutor

logger = logging.getLogger(__name__)


@dataclass
class NormalizedItem:
    external_id: str
    sku: str
    title: str = ""
    description: Optional[str] = None
    quantity: int = 0
    price: Optional[Decimal] = None
    status: ProductStatus = ProductStatus.ACTIVE
    image_url: Optional[str] = None
    external_url: Optional[str] = None
    # Platform-specific extras; None where a platform has no such field
    barcode: Optional[str] = None
    variant_id: Optional[str] = None
    inventory_item_id: Optional[str] = None


@dataclass
class InventoryInfo:
    quantity: int
    location_id: Optional[str] = None
    levels: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class CatalogPage:
    """One fetched page. ``raw_count`` drives pagination, not ``len(items)``."""
    items: List[NormalizedItem]
    raw_count: int
    skipped: int = 0
    next_state: Any = None


@dataclass
class CatalogListing:
    success: bool
    items: List[NormalizedItem] = field(default_factory=list)
    skipped: int = 0
    pages: int = 0
    error: Optional[str] = None
    status_code: Optional[int] = None


@dataclass
class ItemLookup:
    """Result of get_one: ``item`` is None when the remote record is absent or unusable."""
    success: bool
    item: Optional[NormalizedItem] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


class SkipRecord(Exception):
    """Raised by normalize() when an upstream record lacks a mandatory field."""
    pass


class PlatformConnector(ABC):
    """
    Base class for platform connectors.

    Subclasses declare ``required_fields`` (integration attributes that must
    be present), build their executor in ``_build_executor`` and implement
    the page/item/inventory capabilities. Construction validates
    configuration before any network call is possible.
    """

    platform = None
    required_fields: tuple = ()
    page_size: int = 100

    def __init__(self, integration, *, sleep=None, transport=None, settings=None):
        from app.core.config import get_settings

        self.integration = integration
        self.settings = settings or get_settings()
        self._validate()
        self.executor: RequestExecutor = self._build_executor(sleep=sleep, transport=transport)

    def _validate(self) -> None:
        missing = [name for name in self.required_fields if not getattr(self.integration, name, None)]
        if missing:
            raise ConnectorConfigurationError(
                f"{self.platform.display_name} integration {self.integration.id} is missing required "
                f"field(s): {', '.join(missing)}"
            )

    @abstractmethod
    def _build_executor(self, *, sleep=None, transport=None) -> RequestExecutor:
        pass

    @abstractmethod
    async def fetch_page(self, state: Any = None) -> "ApiResult | CatalogPage":
        """Fetch one catalog page; ``state`` is None for the first page."""
        pass

    @abstractmethod
    async def get_one(self, external_id: str) -> ItemLookup:
        pass

    @abstractmethod
    async def get_inventory_levels(self, item_ref: str) -> "ApiResult":
        """Returns ApiResult whose data is an InventoryInfo on success."""
        pass

    @abstractmethod
    async def push_inventory(self, product, quantity: int) -> ApiResult:
        pass

    @abstractmethod
    def normalize(self, raw: Dict[str, Any], **context) -> NormalizedItem:
        """Map one upstream record; raise SkipRecord when it is unusable."""
        pass

    async def list_all(self) -> CatalogListing:
        """
        Walk the catalog page by page until a page comes back smaller than
        the requested page size. Items are accumulated before returning.
        """
        listing = CatalogListing(success=True)
        state = None

        while True:
            page = await self.fetch_page(state)
            if isinstance(page, ApiResult):
                return CatalogListing(
                    success=False,
                    error=page.error,
                    status_code=page.status_code,
                    pages=listing.pages,
                )

            listing.pages += 1
            listing.items.extend(page.items)
            listing.skipped += page.skipped

            if page.raw_count < self.page_size or page.next_state is None:
                break
            state = page.next_state

        logger.info(
            f"{self.platform.display_name} integration {self.integration.id}: "
            f"listed {len(listing.items)} items ({listing.skipped} skipped) over {listing.pages} page(s)"
        )
        return listing

    def _normalize_many(self, records: List[Dict[str, Any]], **context) -> CatalogPage:
        items: List[NormalizedItem] = []
        skipped = 0
        for raw in records:
            try:
                items.append(self.normalize(raw, **context))
            except SkipRecord as e:
                skipped += 1
                logger.warning(f"Skipping {self.platform.value} record: {e}")
        return CatalogPage(items=items, raw_count=len(records), skipped=skipped)


def to_int(value: Any, default: int = 0) -> int:
    """Lenient integer parse for upstream payloads; sign is preserved for the caller to validate."""
    if value is None or value == "":
        return default
    try:
        number = Decimal(str(value))
        whole = number % 1 == 0
    except (ArithmeticError, ValueError) as e:
        raise SkipRecord(f"unparseable quantity {value!r}") from e
    if not whole:
        raise SkipRecord(f"fractional quantity {value!r}")
    return int(number)


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except (ArithmeticError, ValueError):
        return None


def first(items: Optional[List[Any]]) -> Any:
    return items[0] if items else None


def as_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
