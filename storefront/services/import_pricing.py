"""
Retail pricing for imported (dropshipped) products.

A supplier cost is turned into a shelf price per category:
``cost * markup + shipping_buffer``, then platform fees, then rounded down to
the nearest whole dollar plus ``.99`` and clamped to the category's bounds.
"""
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional

from storefront.core.exceptions import ValidationError
from storefront.schemas.import_pricing import (
    CategoryPricing,
    MarginInfo,
    PriceBreakdown,
    PricePreview,
    PriceValidationResult,
)
from storefront.services.pricing import Number, ZERO, round_money, to_decimal

DEFAULT_MARKUP_FACTOR = Decimal("2.5")
DEFAULT_SHIPPING_BUFFER = Decimal("3.0")
DEFAULT_PLATFORM_FEES = Decimal("0.05")
ROUND_TO_NEAREST = Decimal("0.99")

LOW_PRICE_WARNING = Decimal("5")
HIGH_PRICE_WARNING = Decimal("200")
LOW_MARKUP_WARNING = Decimal("2")


def _floor_plus_99(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR) + ROUND_TO_NEAREST


class PriceCalculator:
    def __init__(self, platform_fees: Number = DEFAULT_PLATFORM_FEES):
        self.platform_fees = to_decimal(platform_fees)

    def calculate_retail_price(self, cost_price: Number, category_pricing: CategoryPricing) -> Decimal:
        return self.calculate_price_breakdown(cost_price, category_pricing).final_price

    def calculate_price_breakdown(self, cost_price: Number, category_pricing: CategoryPricing) -> PriceBreakdown:
        cost_price = to_decimal(cost_price)
        if cost_price < ZERO:
            raise ValidationError(
                "Cost price cannot be negative",
                field_errors={"cost_price": ["Cost price cannot be negative"]},
            )

        markup_factor = category_pricing.markup_factor
        if markup_factor is None:
            markup_factor = DEFAULT_MARKUP_FACTOR
        if markup_factor < 1:
            raise ValidationError(
                "Markup factor must be at least 1.0 to avoid selling at a loss",
                field_errors={"markup_factor": ["Markup factor must be at least 1.0"]},
            )

        shipping_buffer = category_pricing.shipping_buffer
        if shipping_buffer is None:
            shipping_buffer = DEFAULT_SHIPPING_BUFFER

        marked_up = cost_price * markup_factor
        with_shipping = marked_up + shipping_buffer
        with_fees = with_shipping * (1 + self.platform_fees)

        final_price = _floor_plus_99(with_fees)
        if category_pricing.min_price is not None and final_price < category_pricing.min_price:
            final_price = category_pricing.min_price
        if category_pricing.max_price is not None and final_price > category_pricing.max_price:
            final_price = category_pricing.max_price

        return PriceBreakdown(
            cost_price=cost_price,
            marked_up_price=marked_up,
            with_shipping_buffer=with_shipping,
            with_platform_fees=with_fees,
            final_price=final_price,
            markup_factor=markup_factor,
            shipping_buffer=shipping_buffer,
            platform_fee_percentage=self.platform_fees,
        )

    def validate_price(self, retail_price: Number, category_pricing: CategoryPricing) -> PriceValidationResult:
        retail_price = to_decimal(retail_price)
        errors = []
        warnings = []
        adjusted_price = None

        if category_pricing.min_price is not None and retail_price < category_pricing.min_price:
            errors.append(
                f"Price ${round_money(retail_price)} is below minimum ${round_money(category_pricing.min_price)}"
            )
            adjusted_price = category_pricing.min_price

        if category_pricing.max_price is not None and retail_price > category_pricing.max_price:
            errors.append(
                f"Price ${round_money(retail_price)} is above maximum ${round_money(category_pricing.max_price)}"
            )
            adjusted_price = category_pricing.max_price

        if retail_price < LOW_PRICE_WARNING:
            warnings.append("Price is very low. Consider if this covers costs and fees.")
        if retail_price > HIGH_PRICE_WARNING:
            warnings.append("Price is very high. This may affect conversion rates.")

        markup_factor = category_pricing.markup_factor
        if markup_factor is None:
            markup_factor = DEFAULT_MARKUP_FACTOR
        if markup_factor < LOW_MARKUP_WARNING:
            warnings.append(f"Markup factor of {markup_factor}x is low. Consider higher markup for better margins.")

        return PriceValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            adjusted_price=adjusted_price,
        )

    def calculate_margin(self, cost_price: Number, retail_price: Number) -> MarginInfo:
        cost_price = to_decimal(cost_price)
        retail_price = to_decimal(retail_price)
        margin = retail_price - cost_price

        if cost_price > ZERO and retail_price > ZERO:
            margin_percentage = margin / retail_price * 100
            markup_factor = retail_price / cost_price
        else:
            margin_percentage = ZERO
            markup_factor = ZERO

        return MarginInfo(
            margin=margin,
            margin_percentage=margin_percentage,
            markup_factor=markup_factor,
            cost_price=cost_price,
            retail_price=retail_price,
        )

    def calculate_variant_price(
        self,
        base_cost_price: Number,
        variant_cost_price: Optional[Number],
        category_pricing: CategoryPricing,
    ) -> Decimal:
        """Variant cost wins when it is set and positive."""
        effective_cost = to_decimal(base_cost_price)
        if variant_cost_price is not None and to_decimal(variant_cost_price) > ZERO:
            effective_cost = to_decimal(variant_cost_price)
        return self.calculate_retail_price(effective_cost, category_pricing)

    def calculate_compare_at_price(self, retail_price: Number, markup_percent: Number = 20) -> Decimal:
        compare_at = to_decimal(retail_price) * (1 + to_decimal(markup_percent) / 100)
        return _floor_plus_99(compare_at)

    def is_price_change_significant(self, old_price: Number, new_price: Number, threshold_percent: Number = 10) -> bool:
        old_price = to_decimal(old_price)
        new_price = to_decimal(new_price)
        if old_price == ZERO:
            return new_price > ZERO
        change_percent = abs((new_price - old_price) / old_price) * 100
        return change_percent >= to_decimal(threshold_percent)

    @staticmethod
    def to_cents(price: Number) -> int:
        return int((to_decimal(price) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def from_cents(cents: int) -> Decimal:
        return Decimal(cents) / 100

    def preview(
        self,
        cost_price: Number,
        category_pricing: CategoryPricing,
        current_price: Optional[Number] = None,
    ) -> PricePreview:
        breakdown = self.calculate_price_breakdown(cost_price, category_pricing)
        final_price = breakdown.final_price

        return PricePreview(
            breakdown=breakdown,
            validation=self.validate_price(final_price, category_pricing),
            margin=self.calculate_margin(cost_price, final_price),
            compare_at_price=self.calculate_compare_at_price(final_price),
            significant_change=(
                self.is_price_change_significant(current_price, final_price)
                if current_price is not None else None
            ),
        )


price_calculator = PriceCalculator()
