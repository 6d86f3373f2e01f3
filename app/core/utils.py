import re
from datetime import datetime, timezone
from html import unescape
from typing import Any, Optional

from app.core.exceptions import InvalidQuantityError


def utc_now() -> datetime:
    """Default clock for services; tests inject their own."""
    return datetime.now(timezone.utc)


def strip_tags(html: Optional[str]) -> str:
    if not html:
        return ""
    text = re.sub(r"<[^>]+>", " ", html)
    text = unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def ensure_quantity(value: Any) -> int:
    """
    Coerce an upstream quantity into a non-negative int.

    Accepts ints and integral strings/floats ("5", 5.0). Raises
    InvalidQuantityError for negatives, fractions, booleans and garbage.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise InvalidQuantityError(value)
    if isinstance(value, str):
        value = value.strip()
        if not re.fullmatch(r"-?\d+(\.0+)?", value):
            raise InvalidQuantityError(value)
        value = float(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidQuantityError(value)
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise InvalidQuantityError(value)
    return value
