"""
Field-level diffing between stored catalog rows and normalized items.

Upstream payloads mix representations (prices as strings or numbers, empty
strings for missing values, enum members vs raw strings), so both sides are
normalized before comparison. A result with no field changes means the
sync must count the item as skipped; that is what makes repeated syncs of
unchanged data idempotent.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

COMPARED_FIELDS = (
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

NEW_PRODUCT_MARKER = "new_product"


@dataclass
class FieldChange:
    field: str
    from_value: Any
    to_value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "from": _json_safe(self.from_value), "to": _json_safe(self.to_value)}


@dataclass
class ChangeSet:
    is_new: bool = False
    changes: List[FieldChange] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return self.is_new or bool(self.changes)

    @property
    def changed_fields(self) -> Dict[str, FieldChange]:
        return {change.field: change for change in self.changes}

    def to_dict(self) -> Dict[str, Any]:
        if self.is_new:
            return {NEW_PRODUCT_MARKER: True}
        return {"fields": [change.to_dict() for change in self.changes]}


@dataclass
class ProductChange:
    """One entry in a sync log's change list."""
    product_id: Optional[int]
    external_id: str
    title: str
    change_set: ChangeSet

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "external_id": self.external_id,
            "title": self.title,
            "changes": self.change_set.to_dict(),
        }


def diff(existing, incoming, fields=COMPARED_FIELDS) -> ChangeSet:
    """
    Compare a stored record (or None) with an incoming normalized item.

    Every field in ``fields`` is compared; a field a platform never fills
    (e.g. variant_id on Etsy) compares as None on both sides.
    """
    if existing is None:
        return ChangeSet(is_new=True)

    changes = []
    for name in fields:
        before = getattr(existing, name, None)
        after = getattr(incoming, name)
        if normalize_value(name, before) != normalize_value(name, after):
            changes.append(FieldChange(name, before, after))
    return ChangeSet(changes=changes)


def normalize_value(name: str, value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    if name == "price":
        return _to_cents(value)
    if name == "quantity":
        try:
            return int(value) if value is not None and value != "" else 0
        except (TypeError, ValueError):
            return value
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    return value


def serialize_changes(entries: List[ProductChange]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in entries]


def _to_cents(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return None


def _json_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    return value
