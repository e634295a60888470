"""
Optimistic cart line updates.

A client shows the new quantity immediately, then runs the server action.
Each line moves ``PENDING -> COMMITTED`` when the action succeeds, or
``PENDING -> ROLLED_BACK`` when it fails, in which case the last committed
quantity is restored.
"""
import enum
import logging
from typing import Awaitable, Callable, Dict, Optional

from storefront.core.exceptions import StorefrontError
from storefront.schemas.common import ActionResult

logger = logging.getLogger(__name__)


class LineState(str, enum.Enum):
    PENDING = "PENDING"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


class LineUpdateInProgressError(StorefrontError):
    """Raised when a line already has an unresolved update."""
    status_code = 409


class OptimisticCart:
    def __init__(self, quantities: Optional[Dict[int, int]] = None):
        # Last quantities confirmed by the server
        self._committed: Dict[int, int] = dict(quantities or {})
        # What the shopper currently sees
        self._displayed: Dict[int, int] = dict(self._committed)
        self._states: Dict[int, LineState] = {item_id: LineState.COMMITTED for item_id in self._committed}

    @property
    def quantities(self) -> Dict[int, int]:
        return dict(self._displayed)

    def quantity(self, item_id: int) -> int:
        return self._displayed.get(item_id, 0)

    def state(self, item_id: int) -> Optional[LineState]:
        return self._states.get(item_id)

    def is_pending(self, item_id: int) -> bool:
        return self._states.get(item_id) == LineState.PENDING

    def stage(self, item_id: int, quantity: int) -> None:
        """Show quantity for item_id right away. Zero hides the line."""
        if self.is_pending(item_id):
            raise LineUpdateInProgressError("An update for this item is already in progress")
        if quantity < 0:
            raise ValueError("quantity must not be negative")

        if quantity == 0:
            self._displayed.pop(item_id, None)
        else:
            self._displayed[item_id] = quantity
        self._states[item_id] = LineState.PENDING

    def commit(self, item_id: int) -> None:
        if not self.is_pending(item_id):
            raise StorefrontError(f"No pending update for item {item_id}")

        if item_id in self._displayed:
            self._committed[item_id] = self._displayed[item_id]
        else:
            self._committed.pop(item_id, None)
        self._states[item_id] = LineState.COMMITTED

    def rollback(self, item_id: int) -> None:
        if not self.is_pending(item_id):
            raise StorefrontError(f"No pending update for item {item_id}")

        if item_id in self._committed:
            self._displayed[item_id] = self._committed[item_id]
        else:
            self._displayed.pop(item_id, None)
        self._states[item_id] = LineState.ROLLED_BACK

    async def apply(
        self,
        item_id: int,
        quantity: int,
        action: Callable[[], Awaitable[ActionResult]],
    ) -> ActionResult:
        """Stage quantity, run the server action, then commit or roll back."""
        self.stage(item_id, quantity)

        try:
            result = await action()
        except StorefrontError as e:
            self.rollback(item_id)
            return ActionResult.fail(e.message)
        except Exception:
            logger.exception(f"Cart update for item {item_id} failed")
            self.rollback(item_id)
            return ActionResult.fail("An unexpected error occurred")

        if result.success:
            self.commit(item_id)
        else:
            self.rollback(item_id)
        return result
