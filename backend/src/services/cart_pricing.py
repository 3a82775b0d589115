"""
Cart pricing and merge rules.

Pure functions over plain values - no database access - shared by the cart
handlers and checkout.

Pricing: unit price = base price + the price adjustment of every selected option
value that exists in the product's current option definitions. Selections that
no longer match (the catalog was edited after the item was added) are skipped,
not rejected. Sold-out values are priced normally; checkout re-checks
availability.

Merge: two additions with the same product and the same selected options
(compared canonically, key order ignored, None == {}) are one cart line.
"""
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from models.product import ProductOption

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OptionValue:
    """A selectable value of a product option."""

    name: str
    price_adjustment: Decimal = Decimal("0")
    is_sold_out: bool = False


@dataclass(frozen=True)
class OptionDefinition:
    """A product option and its values, keyed by value name."""

    name: str
    values: Mapping[str, OptionValue] = field(default_factory=dict)


OptionDefinitions = Mapping[str, OptionDefinition]


@dataclass(frozen=True)
class PricedLine:
    """Input to compute_cart_totals. `unit_price` is None when pricing is unresolved."""

    quantity: int
    unit_price: Decimal | None


@dataclass(frozen=True)
class CartTotals:
    """Aggregate cart figures."""

    total_items: int
    total_price: Decimal


def build_option_definitions(options: Iterable["ProductOption"]) -> dict[str, OptionDefinition]:
    """Build option definitions from a product's ORM options (with values loaded)."""
    return {
        option.name: OptionDefinition(
            name=option.name,
            values={
                value.name: OptionValue(
                    name=value.name,
                    price_adjustment=Decimal(value.price_adjustment or 0),
                    is_sold_out=value.is_sold_out,
                )
                for value in option.values
            },
        )
        for option in options
    }


def find_option_value(
    option_definitions: OptionDefinitions,
    option_name: str,
    value_name: Any,
) -> OptionValue | None:
    """Look up a selected value; None when the option or the value does not exist."""
    definition = option_definitions.get(option_name)
    if definition is None:
        return None
    return definition.values.get(str(value_name))


def compute_unit_price(
    base_amount: Decimal,
    selected_options: Mapping[str, Any] | None,
    option_definitions: OptionDefinitions,
) -> Decimal:
    """
    Unit price of a product with the given selections.

    Args:
        base_amount: Product price before option adjustments.
        selected_options: Option name -> chosen value name. None means no selections.
        option_definitions: The product's current options.

    Returns:
        Base amount plus the adjustments of all matched values, rounded to cents.
    """
    total = Decimal(base_amount)
    for option_name, value_name in (selected_options or {}).items():
        value = find_option_value(option_definitions, option_name, value_name)
        if value is None:
            logger.debug(
                "option_selection_unmatched",
                extra={"option": option_name, "value": value_name},
            )
            continue
        total += value.price_adjustment
    return quantize_money(total)


def sold_out_selections(
    selected_options: Mapping[str, Any] | None,
    option_definitions: OptionDefinitions,
) -> list[str]:
    """Names of selected options whose chosen value is flagged sold out."""
    return [
        option_name
        for option_name, value_name in (selected_options or {}).items()
        if (value := find_option_value(option_definitions, option_name, value_name)) is not None
        and value.is_sold_out
    ]


def canonical_options(selected_options: Mapping[str, Any] | None) -> str:
    """Canonical JSON of selections: sorted keys, compact separators, None == {}."""
    return json.dumps(dict(selected_options or {}), sort_keys=True, separators=(",", ":"))


def merge_key(product_id: UUID | str, selected_options: Mapping[str, Any] | None) -> str:
    """Stable identity of a cart line: product id + canonical selections."""
    return f"{product_id}:{canonical_options(selected_options)}"


def compute_cart_totals(items: Iterable[PricedLine]) -> CartTotals:
    """
    Aggregate item count and price.

    Every item counts toward `total_items`. Items whose unit price is unresolved
    (None) are left out of `total_price` rather than counted as zero.
    """
    total_items = 0
    total_price = Decimal("0")
    for item in items:
        total_items += item.quantity
        if item.unit_price is not None:
            total_price += item.unit_price * item.quantity
    return CartTotals(total_items=total_items, total_price=quantize_money(total_price))


def apply_quantity_change(current: int, *, quantity: int | None = None, delta: int | None = None) -> int | None:
    """
    New quantity of a cart line after an absolute set or a relative change.

    Returns:
        The new quantity, or None when the line should be removed (result <= 0).
    """
    if (quantity is None) == (delta is None):
        raise ValueError("Provide exactly one of quantity or delta")
    new_quantity = quantity if quantity is not None else current + delta
    if new_quantity <= 0:
        return None
    return new_quantity


def descriptive_title(title: str, selected_options: Mapping[str, Any] | None) -> str:
    """Product title with selected values appended, e.g. "Shirt - Large, Blue"."""
    values = [str(value) for value in (selected_options or {}).values() if value not in (None, "")]
    if not values:
        return title
    return f"{title} - {', '.join(values)}"
