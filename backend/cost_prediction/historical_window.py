"""
Bounded window of completed production orders used as cost history.

The window is a value object: ``append`` returns a new window and the caller
decides which one to keep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

from ..production.models import OrderStatus, ProductionOrder

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 100


def is_eligible(order: ProductionOrder) -> bool:
    """Completed orders carrying a cost analysis are usable as comparables."""
    return order.status == OrderStatus.COMPLETED and order.cost_analysis is not None


@dataclass(frozen=True)
class HistoricalWindow:
    """
    Most recent eligible orders, oldest first.

    Attributes:
        orders: Eligible completed orders
        max_size: Capacity; older orders fall off the front
    """
    orders: Tuple[ProductionOrder, ...] = ()
    max_size: int = DEFAULT_WINDOW_SIZE

    @classmethod
    def from_orders(
        cls,
        orders: Iterable[ProductionOrder],
        max_size: int = DEFAULT_WINDOW_SIZE,
    ) -> "HistoricalWindow":
        """Keep the eligible orders of a full order snapshot."""
        eligible = tuple(o for o in orders if is_eligible(o))
        return cls(orders=eligible[-max_size:] if max_size > 0 else (), max_size=max_size)

    def append(self, order: ProductionOrder) -> "HistoricalWindow":
        """New window including ``order``; ineligible orders return ``self``."""
        if not is_eligible(order):
            logger.debug(f"Order {order.id} ignored for cost history (status={order.status.value})")
            return self
        orders = (self.orders + (order,))[-self.max_size:]
        return HistoricalWindow(orders=orders, max_size=self.max_size)

    def recent(self, count: int) -> Tuple[ProductionOrder, ...]:
        return self.orders[-count:] if count > 0 else ()

    def __len__(self) -> int:
        return len(self.orders)

    def __iter__(self) -> Iterator[ProductionOrder]:
        return iter(self.orders)
