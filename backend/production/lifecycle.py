"""
PinPlan - Production Order Lifecycle
====================================

Pure transitions of a production order and their effect on material stock.

Committed stock is derived from order statuses (see stock_ledger), so
committing and releasing materials only move the order between statuses.
Completion is the single transition that changes physical stock: the
quantities actually used are deducted and the reservation disappears with
the active status.

Nothing here persists anything. The caller stores the returned snapshots and
must serialize transitions per material (conditional update in the database).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..smart_inventory.stock_ledger import EnhancedMaterial, index_by_id
from .models import (
    ACTIVE_STATUSES,
    ActualCosts,
    CostAnalysis,
    Material,
    OrderStatus,
    ProductionOrder,
)

logger = logging.getLogger(__name__)

_COMMITTABLE = frozenset({OrderStatus.NEW, OrderStatus.PENDING})
_CLOSED = frozenset({OrderStatus.COMPLETED, OrderStatus.STOCKED, OrderStatus.CANCELLED})


# ═══════════════════════════════════════════════════════════════════════════════
# COST ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_cost_analysis(order: ProductionOrder, actual_costs: ActualCosts) -> CostAnalysis:
    """
    Compare estimated and actual costs of an order.

    Args:
        order: Order carrying the estimates (total_cost, materials_cost, additional_costs)
        actual_costs: Costs booked at completion

    Returns:
        CostAnalysis (variance_percentage is 0 when the estimate is 0)
    """
    estimated_cost = order.total_cost
    actual_cost = actual_costs.total_actual_cost
    variance = actual_cost - estimated_cost
    variance_percentage = (variance / estimated_cost) * 100 if estimated_cost > 0 else 0.0

    actual_material_cost = sum(mc.actual_cost or 0.0 for mc in actual_costs.material_costs)
    material_variance = actual_material_cost - order.materials_cost

    estimated_additional = sum(c.amount for c in order.additional_costs)
    actual_additional = sum(c.amount for c in actual_costs.other_costs)

    return CostAnalysis(
        estimated_cost=estimated_cost,
        actual_cost=actual_cost,
        variance=variance,
        variance_percentage=variance_percentage,
        material_variance=material_variance,
        additional_costs_variance=actual_additional - estimated_additional,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OrderShortage:
    material_id: str
    material_name: str
    required: float
    available: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "materialId": self.material_id,
            "materialName": self.material_name,
            "required": self.required,
            "available": self.available,
        }


@dataclass(frozen=True)
class OrderValidation:
    is_valid: bool
    message: Optional[str] = None
    shortages: List[OrderShortage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "message": self.message,
            "shortages": [s.to_dict() for s in self.shortages],
        }


def validate_order_materials(
    order: ProductionOrder,
    enhanced_materials: Sequence[EnhancedMaterial],
) -> OrderValidation:
    """
    Check an order's commitment lines against available stock.

    Orders without commitment lines are always valid.
    """
    if not order.committed_materials:
        return OrderValidation(is_valid=True)

    by_id = index_by_id(enhanced_materials)
    shortages: List[OrderShortage] = []
    for commitment in order.committed_materials:
        material = by_id.get(commitment.material_id)
        if material is None:
            shortages.append(OrderShortage(
                commitment.material_id, "Unknown material", commitment.quantity, 0.0,
            ))
        elif material.available_stock < commitment.quantity:
            shortages.append(OrderShortage(
                commitment.material_id, material.material.name,
                commitment.quantity, material.available_stock,
            ))

    if not shortages:
        return OrderValidation(is_valid=True)

    details = ", ".join(
        f"{s.material_name}: need {s.required:g}, have {s.available:g}" for s in shortages
    )
    return OrderValidation(
        is_valid=False,
        message=f"Insufficient materials: {details}",
        shortages=shortages,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# TRANSITIONS
# ═══════════════════════════════════════════════════════════════════════════════

def commit_materials(order: ProductionOrder) -> ProductionOrder:
    """
    Reserve the order's materials by moving it to PENDING.

    Raises:
        ValueError: order is already active or closed
    """
    if order.status not in _COMMITTABLE:
        raise ValueError(f"Cannot commit materials for order {order.id} in status {order.status.value}")
    logger.debug(f"Committing {len(order.committed_materials)} material lines for order {order.id}")
    return order.with_status(OrderStatus.PENDING)


def start_production(order: ProductionOrder) -> ProductionOrder:
    if order.status != OrderStatus.PENDING:
        raise ValueError(f"Order {order.id} must be pending to start production, got {order.status.value}")
    return order.with_status(OrderStatus.IN_PRODUCTION)


def release_materials(order: ProductionOrder) -> ProductionOrder:
    """
    Cancel the order, releasing its reservation without touching stock.

    Raises:
        ValueError: order is already closed
    """
    if order.status in _CLOSED:
        raise ValueError(f"Order {order.id} is already closed ({order.status.value})")
    logger.debug(f"Releasing materials of order {order.id}")
    return order.with_status(OrderStatus.CANCELLED)


def complete_order(
    order: ProductionOrder,
    materials: Sequence[Material],
    actual_costs: Optional[ActualCosts] = None,
    completed_at: Optional[datetime] = None,
) -> Tuple[ProductionOrder, List[Material]]:
    """
    Complete an active order.

    Deducts ``actual_quantity_used`` (or the reserved quantity) of every
    commitment line from stock, floored at 0. When actual costs are given the
    cost analysis is attached so the order becomes usable as cost history.

    Args:
        order: Order in PENDING or IN_PRODUCTION
        materials: Current material snapshot
        actual_costs: Costs booked at completion (optional)
        completed_at: Completion timestamp (defaults to now)

    Returns:
        (completed order, new material snapshot)

    Raises:
        ValueError: order is not active
    """
    if order.status not in ACTIVE_STATUSES:
        raise ValueError(f"Only active orders can be completed, order {order.id} is {order.status.value}")

    used: Dict[str, float] = {}
    for commitment in order.committed_materials:
        used[commitment.material_id] = used.get(commitment.material_id, 0.0) + commitment.consumed_quantity

    new_materials: List[Material] = []
    for material in materials:
        if material.id in used:
            new_materials.append(replace(material, stock=max(0.0, material.stock - used[material.id])))
        else:
            new_materials.append(material)

    missing = set(used) - {m.id for m in materials}
    for material_id in sorted(missing):
        logger.warning(f"Material {material_id} of order {order.id} not found, stock not deducted")

    completed = replace(
        order,
        status=OrderStatus.COMPLETED,
        actual_costs=actual_costs,
        cost_analysis=calculate_cost_analysis(order, actual_costs) if actual_costs else None,
        completed_at=completed_at or datetime.now(),
    )
    logger.info(f"Order {order.id} completed, {len(used)} materials deducted")
    return completed, new_materials
