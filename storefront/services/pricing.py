"""
Pricing primitives, line-item aggregation and totals assembly.

Everything here is a pure function over ``Decimal`` amounts. Nothing is rounded
until ``round_money`` is called, which happens when totals are presented or
persisted.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, NamedTuple, Optional, Union

from pydantic import BaseModel

from storefront.core.config import settings
from storefront.core.exceptions import ValidationError

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the literal the caller wrote (24.99, not 24.989999...)
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class PricedLine(NamedTuple):
    unit_price: Decimal
    quantity: int


def resolve_unit_price(variant_price: Optional[Number], base_price: Number) -> Decimal:
    """Variant override wins over the product base price."""
    if variant_price is not None:
        return to_decimal(variant_price)
    return to_decimal(base_price)


def calculate_discount_percentage(price: Number, compare_at_price: Optional[Number]) -> int:
    """Whole-number percent off shown next to a compare-at (strike-through) price."""
    if compare_at_price is None:
        return 0
    price = to_decimal(price)
    compare_at = to_decimal(compare_at_price)
    if compare_at <= price or compare_at <= ZERO:
        return 0
    percent = (compare_at - price) / compare_at * 100
    return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_line_total(unit_price: Number, quantity: int) -> Decimal:
    return to_decimal(unit_price) * quantity


def calculate_subtotal(lines: Iterable) -> Decimal:
    """Sum of unit_price * quantity over anything exposing those two attributes."""
    subtotal = ZERO
    for line in lines:
        subtotal += calculate_line_total(line.unit_price, line.quantity)
    return subtotal


# ==========================================
# Tax
# ==========================================

STATE_TAX_RATES = {
    "CA": Decimal("0.0825"),
    "NY": Decimal("0.08"),
    "TX": Decimal("0.0625"),
    "FL": Decimal("0.06"),
    "IL": Decimal("0.0625"),
    "PA": Decimal("0.06"),
    "OH": Decimal("0.0575"),
    "GA": Decimal("0.04"),
    "NC": Decimal("0.0475"),
    "MI": Decimal("0.06"),
}


def get_tax_rate(state: Optional[str] = None) -> Decimal:
    if state:
        rate = STATE_TAX_RATES.get(state.strip().upper())
        if rate is not None:
            return rate
    return to_decimal(settings.DEFAULT_TAX_RATE)


def calculate_tax(subtotal: Number, rate: Number) -> Decimal:
    return to_decimal(subtotal) * to_decimal(rate)


# ==========================================
# Shipping
# ==========================================

class ShippingMethod(NamedTuple):
    id: str
    name: str
    fee: Decimal
    threshold: Optional[Decimal]
    fee_at_threshold: Decimal
    estimated_days: str
    description: str


def calculate_shipping(subtotal: Number, threshold: Optional[Number], flat_fee: Number, fee_at_threshold: Number = ZERO) -> Decimal:
    """Step function: flat_fee below threshold, fee_at_threshold at or above it."""
    if threshold is not None and to_decimal(subtotal) >= to_decimal(threshold):
        return to_decimal(fee_at_threshold)
    return to_decimal(flat_fee)


def get_shipping_methods() -> List[ShippingMethod]:
    return [
        ShippingMethod(
            id="standard",
            name="Standard Shipping",
            fee=to_decimal(settings.FLAT_SHIPPING_FEE),
            threshold=to_decimal(settings.FREE_SHIPPING_THRESHOLD),
            fee_at_threshold=ZERO,
            estimated_days="5-7 business days",
            description="Delivered via USPS or UPS",
        ),
        ShippingMethod(
            id="express",
            name="Express Shipping",
            fee=Decimal("14.99"),
            threshold=Decimal("150"),
            fee_at_threshold=Decimal("9.99"),
            estimated_days="2-3 business days",
            description="Delivered via UPS or FedEx",
        ),
        ShippingMethod(
            id="overnight",
            name="Overnight Shipping",
            fee=Decimal("29.99"),
            threshold=None,
            fee_at_threshold=Decimal("29.99"),
            estimated_days="1 business day",
            description="Order by 2 PM for next-day delivery",
        ),
    ]


def get_shipping_method(method_id: str) -> ShippingMethod:
    for method in get_shipping_methods():
        if method.id == method_id:
            return method
    raise ValidationError(
        "Unknown shipping method",
        field_errors={"shipping_method_id": [f"'{method_id}' is not a valid shipping method"]},
    )


def shipping_for_method(method_id: str, subtotal: Number) -> Decimal:
    method = get_shipping_method(method_id)
    return calculate_shipping(subtotal, method.threshold, method.fee, method.fee_at_threshold)


# ==========================================
# Totals
# ==========================================

class CheckoutTotals(BaseModel):
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    currency: str = "USD"

    def rounded(self) -> "CheckoutTotals":
        """Round every component to cents and recompute total from the rounded parts."""
        return assemble_totals(
            round_money(self.subtotal),
            round_money(self.tax),
            round_money(self.shipping),
            round_money(self.discount),
            currency=self.currency,
        )


def assemble_totals(
    subtotal: Number,
    tax: Number = ZERO,
    shipping: Number = ZERO,
    discount: Number = ZERO,
    currency: Optional[str] = None,
) -> CheckoutTotals:
    """
    total = subtotal + tax + shipping - discount, never below zero.

    The discount is clamped to the pre-discount amount so the identity above
    holds exactly for the returned values.
    """
    subtotal = to_decimal(subtotal)
    tax = to_decimal(tax)
    shipping = to_decimal(shipping)
    gross = subtotal + tax + shipping
    discount = min(max(to_decimal(discount), ZERO), gross)

    return CheckoutTotals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=gross - discount,
        currency=currency or settings.CURRENCY,
    )
