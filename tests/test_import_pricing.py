import pytest
from decimal import Decimal

from storefront.core.exceptions import ValidationError
from storefront.schemas.import_pricing import CategoryPricing
from storefront.services.import_pricing import PriceCalculator, price_calculator


DEFAULTS = CategoryPricing()


def test_retail_price_with_default_pricing():
    # 5.99 * 2.5 + 3.00 = 17.975, * 1.05 = 18.87375
    breakdown = price_calculator.calculate_price_breakdown(Decimal("5.99"), DEFAULTS)

    assert breakdown.marked_up_price == Decimal("14.975")
    assert breakdown.with_shipping_buffer == Decimal("17.975")
    assert breakdown.final_price == Decimal("18.99")
    assert price_calculator.calculate_retail_price(5.99, DEFAULTS) == Decimal("18.99")


def test_category_bounds_clamp_the_price():
    floor = CategoryPricing(min_price=Decimal("24.99"))
    ceiling = CategoryPricing(max_price=Decimal("12.99"))

    assert price_calculator.calculate_retail_price(Decimal("5.99"), floor) == Decimal("24.99")
    assert price_calculator.calculate_retail_price(Decimal("5.99"), ceiling) == Decimal("12.99")


def test_custom_markup_and_fees():
    calculator = PriceCalculator(platform_fees=Decimal("0"))
    pricing = CategoryPricing(markup_factor=Decimal("2"), shipping_buffer=Decimal("0"))

    assert calculator.calculate_retail_price(Decimal("10"), pricing) == Decimal("20.99")


def test_negative_cost_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        price_calculator.calculate_price_breakdown(Decimal("-1"), DEFAULTS)

    assert "cost_price" in exc_info.value.field_errors


def test_markup_below_one_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        price_calculator.calculate_price_breakdown(Decimal("5"), CategoryPricing(markup_factor=Decimal("0.9")))

    assert "markup_factor" in exc_info.value.field_errors


def test_validate_price_reports_bounds_and_warnings():
    pricing = CategoryPricing(min_price=Decimal("5.99"), markup_factor=Decimal("1.5"))

    result = price_calculator.validate_price(Decimal("3.99"), pricing)

    assert not result.is_valid
    assert result.adjusted_price == Decimal("5.99")
    assert len(result.errors) == 1
    assert len(result.warnings) == 2


def test_validate_price_warns_on_high_prices():
    result = price_calculator.validate_price(Decimal("249.99"), DEFAULTS)

    assert result.is_valid
    assert result.warnings == ["Price is very high. This may affect conversion rates."]


def test_margin():
    margin = price_calculator.calculate_margin(Decimal("5"), Decimal("20"))

    assert margin.margin == Decimal("15")
    assert margin.margin_percentage == Decimal("75")
    assert margin.markup_factor == Decimal("4")


def test_margin_with_zero_cost():
    margin = price_calculator.calculate_margin(Decimal("0"), Decimal("20"))

    assert margin.margin_percentage == Decimal("0")
    assert margin.markup_factor == Decimal("0")


def test_variant_cost_overrides_base_cost():
    assert price_calculator.calculate_variant_price(Decimal("5.99"), Decimal("0"), DEFAULTS) == Decimal("18.99")
    assert price_calculator.calculate_variant_price(Decimal("1"), Decimal("5.99"), DEFAULTS) == Decimal("18.99")


def test_compare_at_price():
    # 18.99 * 1.2 = 22.788
    assert price_calculator.calculate_compare_at_price(Decimal("18.99")) == Decimal("22.99")


def test_significant_price_change():
    assert price_calculator.is_price_change_significant(Decimal("20"), Decimal("22"))
    assert not price_calculator.is_price_change_significant(Decimal("20"), Decimal("21"))
    assert price_calculator.is_price_change_significant(Decimal("0"), Decimal("1"))


def test_cents_conversion():
    assert PriceCalculator.to_cents(Decimal("18.99")) == 1899
    assert PriceCalculator.to_cents(0.105) == 11
    assert PriceCalculator.from_cents(1899) == Decimal("18.99")


def test_preview_bundles_everything():
    preview = price_calculator.preview(Decimal("5.99"), DEFAULTS, current_price=Decimal("14.99"))

    assert preview.breakdown.final_price == Decimal("18.99")
    assert preview.validation.is_valid
    assert preview.compare_at_price == Decimal("22.99")
    assert preview.significant_change is True
