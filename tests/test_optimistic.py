import pytest

from storefront.core.exceptions import InsufficientStockError, StorefrontError
from storefront.schemas.common import ActionResult
from storefront.services.optimistic import LineState, LineUpdateInProgressError, OptimisticCart


def test_stage_shows_quantity_immediately():
    cart = OptimisticCart({1: 2})

    cart.stage(1, 5)

    assert cart.quantity(1) == 5
    assert cart.state(1) == LineState.PENDING


def test_commit_keeps_staged_quantity():
    cart = OptimisticCart({1: 2})
    cart.stage(1, 5)

    cart.commit(1)

    assert cart.quantities == {1: 5}
    assert cart.state(1) == LineState.COMMITTED


def test_rollback_restores_last_committed_quantity():
    cart = OptimisticCart({1: 2})
    cart.stage(1, 5)

    cart.rollback(1)

    assert cart.quantity(1) == 2
    assert cart.state(1) == LineState.ROLLED_BACK


def test_zero_hides_line_until_rolled_back():
    cart = OptimisticCart({1: 2, 2: 1})

    cart.stage(1, 0)
    assert cart.quantities == {2: 1}

    cart.rollback(1)
    assert cart.quantities == {1: 2, 2: 1}


def test_second_update_while_pending_is_refused():
    cart = OptimisticCart({1: 2})
    cart.stage(1, 3)

    with pytest.raises(LineUpdateInProgressError):
        cart.stage(1, 4)


def test_negative_quantity_is_refused():
    with pytest.raises(ValueError):
        OptimisticCart().stage(1, -1)


def test_commit_without_pending_update():
    with pytest.raises(StorefrontError):
        OptimisticCart({1: 2}).commit(1)


@pytest.mark.asyncio
async def test_apply_commits_on_success():
    cart = OptimisticCart({1: 2})

    async def action():
        assert cart.quantity(1) == 4
        return ActionResult.ok()

    result = await cart.apply(1, 4, action)

    assert result.success
    assert cart.quantity(1) == 4
    assert cart.state(1) == LineState.COMMITTED


@pytest.mark.asyncio
async def test_apply_rolls_back_on_business_error():
    cart = OptimisticCart({1: 2})

    async def action():
        raise InsufficientStockError(3, "Organic Onesie")

    result = await cart.apply(1, 9, action)

    assert not result.success
    assert result.error == "Only 3 items available for Organic Onesie"
    assert cart.quantity(1) == 2


@pytest.mark.asyncio
async def test_apply_rolls_back_on_failed_result():
    cart = OptimisticCart({1: 2})

    async def action():
        return ActionResult.fail("Cart item not found")

    result = await cart.apply(1, 3, action)

    assert result.error == "Cart item not found"
    assert cart.state(1) == LineState.ROLLED_BACK
    assert cart.quantity(1) == 2


@pytest.mark.asyncio
async def test_apply_hides_internal_errors():
    cart = OptimisticCart({1: 2})

    async def action():
        raise RuntimeError("connection reset")

    result = await cart.apply(1, 3, action)

    assert result.error == "An unexpected error occurred"
    assert cart.quantity(1) == 2
    assert not cart.is_pending(1)
