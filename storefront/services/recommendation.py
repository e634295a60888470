import logging
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import settings
from storefront.core.exceptions import NotFoundError
from storefront.db.models import OrderItem, Product, Variant
from storefront.schemas.product import FrequentlyBoughtResponse, RecommendedProduct, VariantStock
from storefront.services.bundle import BundleCandidate, BundleQuote, price_bundle
from storefront.services.pricing import calculate_discount_percentage, resolve_unit_price

logger = logging.getLogger(__name__)

ORDER_BASED = "order-based"
CATEGORY_BASED = "category-based"


def _product_query():
    return select(Product).options(
        selectinload(Product.variants).selectinload(Variant.inventory)
    )


def _in_stock(product: Product) -> bool:
    return any(
        v.is_active and v.inventory is not None and v.inventory.available > 0
        for v in product.variants
    )


def _to_recommended(product: Product, purchase_count: int = 0) -> RecommendedProduct:
    variants = []
    for v in product.variants:
        if not v.is_active:
            continue
        available = v.inventory.available if v.inventory else 0
        variants.append(VariantStock(
            id=v.id,
            name=v.name,
            size=v.size,
            color=v.color,
            price=resolve_unit_price(v.price, product.base_price),
            available=available,
            in_stock=available > 0,
        ))

    return RecommendedProduct(
        id=product.id,
        name=product.name,
        slug=product.slug,
        base_price=product.base_price,
        compare_at_price=product.compare_at_price,
        discount_percentage=calculate_discount_percentage(product.base_price, product.compare_at_price),
        category_id=product.category_id,
        variants=variants,
        purchase_count=purchase_count,
    )


async def _get_active_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.is_active == True)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


async def _co_purchased_counts(db: AsyncSession, product_ids: list[int], limit: int) -> list[tuple[int, int]]:
    """(product_id, number of shared orders) for products bought alongside product_ids."""
    orders_with_products = (
        select(OrderItem.order_id)
        .where(OrderItem.product_id.in_(product_ids))
        .distinct()
    )
    result = await db.execute(
        select(OrderItem.product_id, func.count(func.distinct(OrderItem.order_id)).label("purchase_count"))
        .where(
            OrderItem.order_id.in_(orders_with_products),
            OrderItem.product_id.notin_(product_ids),
        )
        .group_by(OrderItem.product_id)
        .order_by(func.count(func.distinct(OrderItem.order_id)).desc(), OrderItem.product_id)
        .limit(limit)
    )
    return [(row[0], row[1]) for row in result.all()]


async def frequently_bought_together(db: AsyncSession, product_id: int, limit: int = 3) -> FrequentlyBoughtResponse:
    """
    Products most often ordered together with product_id.

    Ranked by the number of orders they share with the product and limited to
    active products with stock. When order history yields too few results,
    the remainder is filled from the same category. The algorithm is reported
    as category-based only when no result came from order history.
    """
    product = await _get_active_product(db, product_id)

    counts = await _co_purchased_counts(db, [product.id], limit * 2)
    recommended: list[RecommendedProduct] = []

    if counts:
        count_by_id = dict(counts)
        result = await db.execute(
            _product_query().where(Product.id.in_(count_by_id), Product.is_active == True)
        )
        candidates = [p for p in result.scalars().all() if _in_stock(p)]
        candidates.sort(key=lambda p: (-count_by_id[p.id], p.id))
        recommended = [_to_recommended(p, count_by_id[p.id]) for p in candidates[:limit]]

    if len(recommended) >= limit:
        return FrequentlyBoughtResponse(products=recommended, algorithm=ORDER_BASED)

    exclude = {product.id} | {p.id for p in recommended}
    result = await db.execute(
        _product_query()
        .where(
            Product.category_id == product.category_id,
            Product.is_active == True,
            Product.id.notin_(exclude),
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit * 2)
    )
    fillers = [p for p in result.scalars().all() if _in_stock(p)]
    recommended.extend(_to_recommended(p) for p in fillers[: limit - len(recommended)])

    algorithm = ORDER_BASED if any(p.purchase_count for p in recommended) else CATEGORY_BASED
    logger.debug(f"Frequently bought for product {product.id}: {len(recommended)} products ({algorithm})")
    return FrequentlyBoughtResponse(products=recommended, algorithm=algorithm)


async def quote_bundle(
    db: AsyncSession,
    product_ids: Iterable[int],
    selected_ids: Iterable[int],
    discount_percent: Optional[float] = None,
) -> BundleQuote:
    """Price a bundle from catalog products, in the order product_ids lists them."""
    product_ids = list(dict.fromkeys(product_ids))
    result = await db.execute(
        select(Product).where(Product.id.in_(product_ids), Product.is_active == True)
    )
    by_id = {p.id: p for p in result.scalars().all()}

    candidates = [
        BundleCandidate(id=pid, name=by_id[pid].name, base_price=by_id[pid].base_price)
        for pid in product_ids
        if pid in by_id
    ]
    if discount_percent is None:
        discount_percent = settings.BUNDLE_DISCOUNT_PERCENT

    return price_bundle(candidates, selected_ids, discount_percent)
