"""
Pure helpers for inventory master data.

Checks the fields of a new item, category or supplier before anything is
written.  No I/O.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from backoffice_kernel.domain.ledger_entry import to_decimal
from backoffice_kernel.exceptions import InvalidItemDataError


class UnitOfMeasure(str, Enum):
    PIECES = "pieces"
    KG = "kg"
    GRAMS = "grams"
    LITERS = "liters"
    ML = "ml"
    BOXES = "boxes"
    BOTTLES = "bottles"
    CANS = "cans"
    BAGS = "bags"
    PACKS = "packs"
    UNITS = "units"


class CategoryType(str, Enum):
    FOOD = "food"
    BEVERAGE = "beverage"
    SUPPLIES = "supplies"
    EQUIPMENT = "equipment"
    CLEANING = "cleaning"
    OTHER = "other"


def require_name(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise InvalidItemDataError(field, "is required")
    return value.strip()


def non_negative(field: str, value: object, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce ``value`` to a finite Decimal >= 0 (None -> ``default``)."""
    if value is None:
        return default
    number = to_decimal(value)
    if number is None or not number.is_finite():
        raise InvalidItemDataError(field, f"{value!r} is not a number")
    if number < 0:
        raise InvalidItemDataError(field, "cannot be negative")
    return number


def parse_unit_of_measure(value: str | UnitOfMeasure) -> UnitOfMeasure:
    try:
        return UnitOfMeasure(value)
    except ValueError:
        raise InvalidItemDataError("unit_of_measure", f"unknown unit {value!r}") from None


def parse_category_type(value: str | CategoryType) -> CategoryType:
    try:
        return CategoryType(value)
    except ValueError:
        raise InvalidItemDataError("category_type", f"unknown category type {value!r}") from None


def check_stock_bounds(minimum_stock: Decimal, maximum_stock: Decimal) -> None:
    """A maximum of zero means "no ceiling"; otherwise it must cover the minimum."""
    if maximum_stock > 0 and maximum_stock < minimum_stock:
        raise InvalidItemDataError(
            "maximum_stock",
            f"{maximum_stock} is below minimum_stock {minimum_stock}",
        )


def check_rating(rating: int | None) -> int | None:
    if rating is None:
        return None
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidItemDataError("rating", f"must be an integer from 1 to 5, got {rating!r}")
    return rating
