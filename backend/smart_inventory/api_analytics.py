"""
PinPlan - Analytics API
=======================

REST endpoints over the stock ledger, the cost predictor, the inventory
forecaster and the predictive dashboard.

Every request carries the full current snapshot (materials, production orders,
BOMs); nothing is stored between requests.

Endpoints:
- POST /analytics/stock/enhanced                - Enhanced material view
- POST /analytics/stock/availability            - Availability check of requirements
- POST /analytics/cost/predict/{order_id}       - Cost prediction of one order
- POST /analytics/inventory/forecast            - Forecast of every (or one) material
- POST /analytics/inventory/alerts              - Critical inventory alerts
- POST /analytics/inventory/summary             - Inventory health KPIs
- POST /analytics/dashboard                     - Combined predictive dashboard
- GET  /analytics/config                        - Active feature flags
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from ..cost_prediction.cost_predictor import CostPredictor
from ..cost_prediction.signals import build_reliability_provider
from ..dashboards.predictive_dashboard import DashboardAggregator
from ..feature_flags import get_active_engines
from ..models_common import InventorySummaryKPIs
from ..production.models import BOM, Material, ProductionOrder, find_bom
from .availability import MaterialRequirement, check_availability
from .inventory_forecaster import InventoryForecaster
from .stock_ledger import build_enhanced_materials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class SnapshotRequest(BaseModel):
    """Current snapshot of the host application (camelCase records)."""
    materials: List[Dict[str, Any]] = Field(default_factory=list, description="Material records")
    orders: List[Dict[str, Any]] = Field(default_factory=list, description="Production order records")
    boms: List[Dict[str, Any]] = Field(default_factory=list, description="BOM records")
    as_of: Optional[datetime] = Field(
        default=None,
        description="Evaluation time (defaults to now). Pin it for reproducible responses",
    )


class RequirementItem(BaseModel):
    materialId: str
    quantity: float = Field(ge=0)


class AvailabilityRequest(SnapshotRequest):
    requirements: List[RequirementItem] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# SNAPSHOT PARSING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Snapshot:
    materials: List[Material]
    orders: List[ProductionOrder]
    boms: List[BOM]
    clock: Callable[[], datetime]


def parse_snapshot(request: SnapshotRequest) -> Snapshot:
    """
    Build domain objects from a request.

    Raises:
        HTTPException: 422 when a record cannot be parsed
    """
    try:
        materials = [Material.from_dict(m) for m in request.materials]
        orders = [ProductionOrder.from_dict(o) for o in request.orders]
        boms = [BOM.from_dict(b) for b in request.boms]
    except (KeyError, ValueError) as e:
        logger.warning(f"Invalid snapshot: {e}")
        raise HTTPException(status_code=422, detail=f"Invalid snapshot: {e}")

    as_of = request.as_of
    clock = (lambda: as_of) if as_of is not None else datetime.now
    return Snapshot(materials=materials, orders=orders, boms=boms, clock=clock)


def _forecaster(snapshot: Snapshot) -> InventoryForecaster:
    return InventoryForecaster(snapshot.materials, snapshot.orders, snapshot.boms, clock=snapshot.clock)


# ═══════════════════════════════════════════════════════════════════════════════
# STOCK
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/stock/enhanced")
async def get_enhanced_materials(request: SnapshotRequest) -> List[Dict[str, Any]]:
    snapshot = parse_snapshot(request)
    return [em.to_dict() for em in build_enhanced_materials(snapshot.materials, snapshot.orders)]


@router.post("/stock/availability")
async def check_material_availability(request: AvailabilityRequest) -> Dict[str, Any]:
    """Advisory check: nothing is reserved."""
    snapshot = parse_snapshot(request)
    enhanced = build_enhanced_materials(snapshot.materials, snapshot.orders)
    requirements = [MaterialRequirement(r.materialId, r.quantity) for r in request.requirements]
    return check_availability(requirements, enhanced).to_dict()


# ═══════════════════════════════════════════════════════════════════════════════
# COST PREDICTION
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/cost/predict/{order_id}")
async def predict_order_cost(order_id: str, request: SnapshotRequest) -> Dict[str, Any]:
    snapshot = parse_snapshot(request)

    order = next((o for o in snapshot.orders if o.id == order_id), None)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    bom = find_bom(snapshot.boms, order.bom_id)
    if bom is None:
        raise HTTPException(status_code=404, detail=f"BOM {order.bom_id} of order {order_id} not found")

    predictor = CostPredictor(
        snapshot.orders,
        snapshot.materials,
        orders=snapshot.orders,
        reliability_provider=build_reliability_provider(snapshot.materials),
        clock=snapshot.clock,
    )
    return predictor.predict_cost(order, bom).to_dict()


# ═══════════════════════════════════════════════════════════════════════════════
# INVENTORY
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/inventory/forecast")
async def get_inventory_forecast(
    request: SnapshotRequest,
    material_id: Optional[str] = Query(default=None, description="Forecast a single material"),
) -> List[Dict[str, Any]]:
    snapshot = parse_snapshot(request)
    forecaster = _forecaster(snapshot)

    if material_id is None:
        return [f.to_dict() for f in forecaster.generate_inventory_forecast()]

    material = next((m for m in snapshot.materials if m.id == material_id), None)
    if material is None:
        raise HTTPException(status_code=404, detail=f"Material {material_id} not found")
    return [forecaster.forecast_material(material).to_dict()]


@router.post("/inventory/alerts")
async def get_inventory_alerts(request: SnapshotRequest) -> List[Dict[str, Any]]:
    snapshot = parse_snapshot(request)
    return [f.to_dict() for f in _forecaster(snapshot).get_critical_alerts()]


@router.post("/inventory/summary", response_model=InventorySummaryKPIs)
async def get_inventory_summary(request: SnapshotRequest) -> InventorySummaryKPIs:
    snapshot = parse_snapshot(request)
    return _forecaster(snapshot).get_inventory_summary()


# ═══════════════════════════════════════════════════════════════════════════════
# DASHBOARD & CONFIG
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/dashboard")
async def get_predictive_dashboard(request: SnapshotRequest) -> Dict[str, Any]:
    snapshot = parse_snapshot(request)
    aggregator = DashboardAggregator(
        snapshot.materials,
        snapshot.orders,
        snapshot.boms,
        reliability_provider=build_reliability_provider(snapshot.materials),
        clock=snapshot.clock,
    )
    return aggregator.build().to_dict()


@router.get("/config")
async def get_analytics_config() -> Dict[str, Any]:
    return get_active_engines()
