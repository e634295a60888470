import enum
from decimal import Decimal
from typing import Iterable, List, Optional

from pydantic import BaseModel

from storefront.services.pricing import Number, ZERO, to_decimal


class BundleState(str, enum.Enum):
    SELECT_PRODUCTS = "SELECT_PRODUCTS"
    PRICED = "PRICED"


class BundleCandidate(BaseModel):
    id: int
    name: str
    base_price: Decimal


class BundleQuote(BaseModel):
    state: BundleState
    selected_ids: List[int] = []
    discount_percent: Decimal = ZERO
    total_price: Optional[Decimal] = None
    savings: Optional[Decimal] = None
    final_price: Optional[Decimal] = None

    @property
    def selected_count(self) -> int:
        return len(self.selected_ids)


def calculate_bundle_total(candidates: Iterable[BundleCandidate], selected_ids: Iterable[int]) -> Decimal:
    selected = set(selected_ids)
    return sum((c.base_price for c in candidates if c.id in selected), ZERO)


def calculate_bundle_savings(total_price: Number, discount_percent: Number) -> Decimal:
    discount_percent = to_decimal(discount_percent)
    if discount_percent <= ZERO:
        return ZERO
    return to_decimal(total_price) * discount_percent / 100


def price_bundle(
    candidates: List[BundleCandidate],
    selected_ids: Iterable[int],
    discount_percent: Number = ZERO,
) -> BundleQuote:
    """
    Price the selected subset of a "frequently bought together" bundle.

    Ids that are not among the candidates are ignored. An empty selection is
    reported as ``SELECT_PRODUCTS`` with no amounts at all, so callers render a
    prompt instead of a $0.00 bundle.
    """
    candidate_ids = [c.id for c in candidates]
    selected = set(selected_ids)
    # Keep candidate order so the quote lists items the way they were shown
    chosen = [cid for cid in candidate_ids if cid in selected]
    discount_percent = to_decimal(discount_percent)

    if not chosen:
        return BundleQuote(state=BundleState.SELECT_PRODUCTS, discount_percent=discount_percent)

    total_price = calculate_bundle_total(candidates, chosen)
    savings = calculate_bundle_savings(total_price, discount_percent)

    return BundleQuote(
        state=BundleState.PRICED,
        selected_ids=chosen,
        discount_percent=discount_percent,
        total_price=total_price,
        savings=savings,
        final_price=total_price - savings,
    )
