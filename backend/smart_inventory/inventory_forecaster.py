"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    INVENTORY FORECASTER (Demand, ROP, EOQ, Stockout Risk)
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Per-material forward view over the current snapshot of materials, production
orders and BOMs:

    1. Demand projection over 4 weekly buckets (30 days)
    2. Reorder point with variability-scaled safety stock
    3. Economic Order Quantity
    4. Stockout risk from coverage of projected demand
    5. Reorder recommendation

Mathematical Formulation:
─────────────────────────
    Historical consumption (index built once per snapshot):
        H[m] = [qty used of m in each completed order with actual costs]

    Average daily demand:
        μ_d = mean(H[m]) * max(0.1, N_orders / 90)        (1 when H[m] is empty)

    Weekly projection (week w, starting today + 7w):
        D_w = Σ bom_qty * order_qty  for active orders starting in week w
              (start = creation date + 1 day)
            + μ_d * 7 * seasonal(week start month)
        seasonal = 1.2 Oct-Mar, 0.8 Jun-Aug, 1.0 otherwise

    Reorder point:
        ROP = ceil(μ_d * L + μ_d * S * (1 + CV))      L = 7, S = 3
        CV  = σ(H[m]) / μ(H[m])                      (0.3 with < 2 points)

    EOQ:
        Q* = clamp(ceil(sqrt(2 * 365 μ_d * K / h)), 10, 1000)
        K = 100 000 per order, h = 20% of purchase price

    Stockout risk (coverage c = available / Σ D_w):
        available ≤ 0 → 1.0, Σ D_w = 0 → 0.1,
        c ≥ 1.5 → 0.1, c ≥ 1.0 → 0.3, c ≥ 0.5 → 0.6, else 0.9

The engine holds no state besides the snapshot and the consumption index,
which ``update_data`` rebuilds wholesale.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..models_common import InventorySummaryKPIs
from ..production.models import BOM, Material, OrderStatus, ProductionOrder
from .stock_ledger import compute_committed, enhance_material

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIG & DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ForecastConfig:
    """
    Parameters of the inventory forecast.

    Attributes:
        horizon_weeks: Number of weekly demand buckets
        production_start_offset_days: Days between order creation and consumption
        supplier_lead_time_days: Replenishment lead time used in the ROP
        safety_stock_days: Days of demand held as safety stock
        default_demand_variability: CV used with fewer than 2 history points
        default_daily_demand: Daily demand assumed without history
        history_window_days: Window the order count is spread over
        min_orders_per_day: Floor of the order rate
        ordering_cost: Fixed cost per purchase order
        holding_cost_rate: Yearly holding cost as a share of purchase price
        default_item_cost: Purchase price used when the material has none (or a non-positive one)
        min_order_quantity / max_order_quantity: EOQ clamp
        peak_months / low_months: Calendar months (1-12) of seasonal adjustment
        critical_risk_threshold: Stockout risk above which a material is critical
        overstock_multiple: Stock above this many EOQs counts as overstock
        default_supplier_id: Supplier reported when the material has none
    """
    horizon_weeks: int = 4
    production_start_offset_days: int = 1
    supplier_lead_time_days: float = 7.0
    safety_stock_days: float = 3.0
    default_demand_variability: float = 0.3
    default_daily_demand: float = 1.0
    history_window_days: float = 90.0
    min_orders_per_day: float = 0.1
    ordering_cost: float = 100_000.0
    holding_cost_rate: float = 0.2
    default_item_cost: float = 1000.0
    min_order_quantity: int = 10
    max_order_quantity: int = 1000
    peak_months: Tuple[int, ...] = (10, 11, 12, 1, 2, 3)
    low_months: Tuple[int, ...] = (6, 7, 8)
    peak_factor: float = 1.2
    low_factor: float = 0.8
    critical_risk_threshold: float = 0.7
    overstock_multiple: float = 3.0
    default_supplier_id: str = "default-supplier"


class ReorderAction(str, Enum):
    IMMEDIATE = "immediate"
    WITHIN_WEEK = "within_week"
    WITHIN_MONTH = "within_month"
    NO_ACTION_NEEDED = "no_action_needed"


class UrgencyLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReasonCode(str, Enum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    CRITICAL_LOW_STOCK = "CRITICAL_LOW_STOCK"
    BELOW_REORDER_POINT = "BELOW_REORDER_POINT"
    PROJECTED_SHORTAGE = "PROJECTED_SHORTAGE"
    STOCK_ADEQUATE = "STOCK_ADEQUATE"


@dataclass(frozen=True)
class DemandProjection:
    """Projected consumption of one weekly bucket."""
    date: date
    projected_demand: int
    confidence: float
    based_on_orders: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "projectedDemand": self.projected_demand,
            "confidence": self.confidence,
            "basedOnOrders": list(self.based_on_orders),
        }


@dataclass(frozen=True)
class ReorderRecommendation:
    action: ReorderAction
    recommended_quantity: int
    urgency_level: UrgencyLevel
    reason_code: ReasonCode
    estimated_cost: float
    preferred_supplier_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "recommendedQuantity": self.recommended_quantity,
            "urgencyLevel": self.urgency_level.value,
            "reasonCode": self.reason_code.value,
            "estimatedCost": self.estimated_cost,
            "preferredSupplierId": self.preferred_supplier_id,
        }


@dataclass(frozen=True)
class InventoryForecast:
    """
    Forward view of one material.

    Attributes:
        material_id: Material analysed
        current_stock: Available stock (on hand minus committed)
        projected_demand: Weekly demand buckets
        reorder_point: Stock level that should trigger a purchase
        optimal_order_quantity: EOQ
        stockout_risk: Probability-like score in [0, 1]
        recommended_action: What to do about it
    """
    material_id: str
    current_stock: float
    projected_demand: List[DemandProjection]
    reorder_point: int
    optimal_order_quantity: int
    stockout_risk: float
    recommended_action: ReorderRecommendation

    @property
    def total_projected_demand(self) -> int:
        return sum(p.projected_demand for p in self.projected_demand)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "materialId": self.material_id,
            "currentStock": self.current_stock,
            "projectedDemand": [p.to_dict() for p in self.projected_demand],
            "reorderPoint": self.reorder_point,
            "optimalOrderQuantity": self.optimal_order_quantity,
            "stockoutRisk": self.stockout_risk,
            "recommendedAction": self.recommended_action.to_dict(),
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

class InventoryForecaster:
    """
    Inventory analytics over a snapshot of materials, orders and BOMs.

    Usage:
        forecaster = InventoryForecaster(materials, orders, boms)
        forecasts = forecaster.generate_inventory_forecast()
        alerts = forecaster.get_critical_alerts()
    """

    def __init__(
        self,
        materials: Sequence[Material],
        production_orders: Sequence[ProductionOrder],
        boms: Sequence[BOM],
        config: Optional[ForecastConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or ForecastConfig()
        self._clock = clock or datetime.now
        self.update_data(materials, production_orders, boms)

    # ─────────────────────────────────────────────────────────────────────────
    # Snapshot
    # ─────────────────────────────────────────────────────────────────────────

    def update_data(
        self,
        materials: Sequence[Material],
        production_orders: Sequence[ProductionOrder],
        boms: Sequence[BOM],
    ) -> None:
        """Replace the snapshot and rebuild the consumption index."""
        self.materials: List[Material] = list(materials)
        self.production_orders: List[ProductionOrder] = list(production_orders)
        self.boms: Dict[str, BOM] = {bom.id: bom for bom in boms}
        self._committed = compute_committed(self.materials, self.production_orders)
        self._active_orders = [o for o in self.production_orders if o.is_active]
        self._historical_consumption = self._build_historical_consumption()
        logger.info(
            f"Inventory snapshot loaded: {len(self.materials)} materials, "
            f"{len(self.production_orders)} orders, {len(self.boms)} BOMs, "
            f"history for {len(self._historical_consumption)} materials"
        )

    def _build_historical_consumption(self) -> Dict[str, List[float]]:
        consumption: Dict[str, List[float]] = defaultdict(list)
        for order in self.production_orders:
            if order.status != OrderStatus.COMPLETED or order.actual_costs is None:
                continue
            for line in order.actual_costs.material_costs:
                consumption[line.material_id].append(line.consumed_quantity)
        return dict(consumption)

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    def generate_inventory_forecast(self) -> List[InventoryForecast]:
        return [self.forecast_material(m) for m in self.materials]

    def forecast_material(self, material: Material) -> InventoryForecast:
        """
        Build the forecast of one material.

        Args:
            material: Material snapshot (committed quantity comes from the orders)

        Returns:
            InventoryForecast
        """
        enhanced = enhance_material(material, self._committed.get(material.id, 0.0))
        current_stock = enhanced.available_stock

        projected_demand = self._project_demand(material.id)
        reorder_point = self._reorder_point(material.id)
        optimal_quantity = self._optimal_order_quantity(material)
        stockout_risk = self._stockout_risk(current_stock, projected_demand)
        recommendation = self._recommend(
            material, current_stock, reorder_point, stockout_risk, optimal_quantity,
        )

        logger.debug(
            f"Forecast {material.id}: available={current_stock:g}, rop={reorder_point}, "
            f"eoq={optimal_quantity}, risk={stockout_risk}, action={recommendation.action.value}"
        )

        return InventoryForecast(
            material_id=material.id,
            current_stock=current_stock,
            projected_demand=projected_demand,
            reorder_point=reorder_point,
            optimal_order_quantity=optimal_quantity,
            stockout_risk=stockout_risk,
            recommended_action=recommendation,
        )

    def get_critical_alerts(self) -> List[InventoryForecast]:
        """Forecasts needing attention now."""
        return [
            f for f in self.generate_inventory_forecast()
            if f.recommended_action.action == ReorderAction.IMMEDIATE
            or f.stockout_risk > self.config.critical_risk_threshold
            or f.recommended_action.urgency_level == UrgencyLevel.CRITICAL
        ]

    def get_urgent_materials(self) -> List[Material]:
        urgent_ids = {
            f.material_id for f in self.generate_inventory_forecast()
            if f.recommended_action.urgency_level == UrgencyLevel.CRITICAL
            or f.recommended_action.action == ReorderAction.IMMEDIATE
        }
        return [m for m in self.materials if m.id in urgent_ids]

    def get_inventory_summary(self) -> InventorySummaryKPIs:
        """Bucket every material as critical, overstock or adequate."""
        prices = {m.id: m.purchase_price or 0.0 for m in self.materials}
        critical = adequate = overstock = 0
        value_at_risk = 0.0

        for forecast in self.generate_inventory_forecast():
            if forecast.stockout_risk > self.config.critical_risk_threshold:
                critical += 1
                value_at_risk += prices.get(forecast.material_id, 0.0) * forecast.current_stock
            elif forecast.current_stock > forecast.optimal_order_quantity * self.config.overstock_multiple:
                overstock += 1
            else:
                adequate += 1

        return InventorySummaryKPIs(
            totalMaterials=len(self.materials),
            criticalLowStock=critical,
            adequateStock=adequate,
            overStock=overstock,
            totalValueAtRisk=value_at_risk,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Demand
    # ─────────────────────────────────────────────────────────────────────────

    def _project_demand(self, material_id: str) -> List[DemandProjection]:
        cfg = self.config
        today = self._clock().date()
        historical_weekly = self._historical_weekly_average(material_id)

        # Scheduled consumption of active orders whose BOM uses this material
        scheduled: List[Tuple[date, float, str]] = []
        for order in self._active_orders:
            bom = self.boms.get(order.bom_id)
            if bom is None:
                continue
            per_unit = bom.quantity_of(material_id)
            if per_unit is None:
                continue
            start = order.creation_date.date() + timedelta(days=cfg.production_start_offset_days)
            scheduled.append((start, per_unit * order.quantity_produced, order.id))

        projections: List[DemandProjection] = []
        for week in range(cfg.horizon_weeks):
            week_start = today + timedelta(days=week * 7)
            week_end = week_start + timedelta(days=7)

            weekly_demand = 0.0
            contributing: List[str] = []
            for start, quantity, order_id in scheduled:
                if week_start <= start < week_end:
                    weekly_demand += quantity
                    contributing.append(order_id)

            trend_adjusted = weekly_demand + historical_weekly * self._seasonal_adjustment(week_start)
            projections.append(DemandProjection(
                date=week_start,
                projected_demand=_round_half_up(trend_adjusted),
                confidence=self._demand_confidence(len(contributing), historical_weekly),
                based_on_orders=contributing,
            ))

        return projections

    def _seasonal_adjustment(self, day: date) -> float:
        if day.month in self.config.peak_months:
            return self.config.peak_factor
        if day.month in self.config.low_months:
            return self.config.low_factor
        return 1.0

    @staticmethod
    def _demand_confidence(scheduled_orders: int, historical_average: float) -> float:
        confidence = 0.5
        if scheduled_orders > 0:
            confidence += min(0.4, scheduled_orders * 0.1)
        if historical_average > 0:
            confidence += 0.2
        return min(1.0, confidence)

    def _average_daily_demand(self, material_id: str) -> float:
        consumption = self._historical_consumption.get(material_id)
        if not consumption:
            return self.config.default_daily_demand
        avg_order_consumption = float(np.mean(consumption))
        orders_per_day = max(
            self.config.min_orders_per_day,
            len(self.production_orders) / self.config.history_window_days,
        )
        return avg_order_consumption * orders_per_day

    def _historical_weekly_average(self, material_id: str) -> float:
        return self._average_daily_demand(material_id) * 7

    def _demand_variability(self, material_id: str) -> float:
        consumption = self._historical_consumption.get(material_id, [])
        if len(consumption) < 2:
            return self.config.default_demand_variability
        values = np.asarray(consumption, dtype=float)
        mean = float(values.mean())
        if mean <= 0:
            return self.config.default_demand_variability
        return float(values.std()) / mean

    # ─────────────────────────────────────────────────────────────────────────
    # Replenishment
    # ─────────────────────────────────────────────────────────────────────────

    def _reorder_point(self, material_id: str) -> int:
        cfg = self.config
        daily = self._average_daily_demand(material_id)
        base_demand = daily * cfg.supplier_lead_time_days
        safety_stock = daily * cfg.safety_stock_days * (1 + self._demand_variability(material_id))
        return int(math.ceil(base_demand + safety_stock))

    def _optimal_order_quantity(self, material: Material) -> int:
        cfg = self.config
        annual_demand = self._average_daily_demand(material.id) * 365
        price = material.purchase_price or 0.0
        item_cost = price if price > 0 else cfg.default_item_cost
        holding_cost = item_cost * cfg.holding_cost_rate
        eoq = math.sqrt((2 * annual_demand * cfg.ordering_cost) / holding_cost)
        return max(cfg.min_order_quantity, min(cfg.max_order_quantity, int(math.ceil(eoq))))

    @staticmethod
    def _stockout_risk(available_stock: float, projected_demand: List[DemandProjection]) -> float:
        total_demand = sum(p.projected_demand for p in projected_demand)
        if available_stock <= 0:
            return 1.0
        if total_demand == 0:
            return 0.1

        coverage = available_stock / total_demand
        if coverage >= 1.5:
            return 0.1
        if coverage >= 1.0:
            return 0.3
        if coverage >= 0.5:
            return 0.6
        return 0.9

    def _recommend(
        self,
        material: Material,
        current_stock: float,
        reorder_point: int,
        stockout_risk: float,
        optimal_quantity: int,
    ) -> ReorderRecommendation:
        if current_stock <= 0:
            action, urgency, reason = ReorderAction.IMMEDIATE, UrgencyLevel.CRITICAL, ReasonCode.OUT_OF_STOCK
            quantity = optimal_quantity * 2
        elif stockout_risk > 0.8:
            action, urgency, reason = ReorderAction.IMMEDIATE, UrgencyLevel.CRITICAL, ReasonCode.CRITICAL_LOW_STOCK
            quantity = optimal_quantity
        elif current_stock <= reorder_point:
            action, urgency, reason = ReorderAction.WITHIN_WEEK, UrgencyLevel.HIGH, ReasonCode.BELOW_REORDER_POINT
            quantity = optimal_quantity
        elif stockout_risk > 0.5:
            action, urgency, reason = ReorderAction.WITHIN_MONTH, UrgencyLevel.MEDIUM, ReasonCode.PROJECTED_SHORTAGE
            quantity = int(math.ceil(optimal_quantity * 0.7))
        else:
            action, urgency, reason = ReorderAction.NO_ACTION_NEEDED, UrgencyLevel.LOW, ReasonCode.STOCK_ADEQUATE
            quantity = 0

        return ReorderRecommendation(
            action=action,
            recommended_quantity=quantity,
            urgency_level=urgency,
            reason_code=reason,
            estimated_cost=quantity * (material.purchase_price or 0.0),
            preferred_supplier_id=material.supplier or self.config.default_supplier_id,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════════════════

def forecasts_to_dataframe(forecasts: Sequence[InventoryForecast]) -> pd.DataFrame:
    """
    Flatten forecasts into one row per material.

    Returns:
        DataFrame with columns: material_id, current_stock, total_projected_demand,
        reorder_point, optimal_order_quantity, stockout_risk, action,
        urgency_level, reason_code, recommended_quantity, estimated_cost
    """
    columns = [
        "material_id", "current_stock", "total_projected_demand", "reorder_point",
        "optimal_order_quantity", "stockout_risk", "action", "urgency_level",
        "reason_code", "recommended_quantity", "estimated_cost",
    ]
    records = [
        {
            "material_id": f.material_id,
            "current_stock": f.current_stock,
            "total_projected_demand": f.total_projected_demand,
            "reorder_point": f.reorder_point,
            "optimal_order_quantity": f.optimal_order_quantity,
            "stockout_risk": f.stockout_risk,
            "action": f.recommended_action.action.value,
            "urgency_level": f.recommended_action.urgency_level.value,
            "reason_code": f.recommended_action.reason_code.value,
            "recommended_quantity": f.recommended_action.recommended_quantity,
            "estimated_cost": f.recommended_action.estimated_cost,
        }
        for f in forecasts
    ]
    return pd.DataFrame(records, columns=columns)
