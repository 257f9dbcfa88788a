"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PREDICTIVE DASHBOARD GENERATOR
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Combines the cost predictor and the inventory forecaster into one payload:
- Cost predictions of orders not yet started (new or pending)
- Overview metrics over those predictions
- Inventory forecasts, critical alerts and health summary
- Enhanced material view of the stock ledger
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..cost_prediction.cost_predictor import CostPrediction, CostPredictor, RiskLevel
from ..cost_prediction.signals import SupplierReliabilityProvider, build_reliability_provider
from ..feature_flags import FeatureFlags
from ..models_common import InventorySummaryKPIs, PredictiveOverviewKPIs
from ..production.models import BOM, Material, OrderStatus, ProductionOrder
from ..smart_inventory.inventory_forecaster import InventoryForecast, InventoryForecaster
from ..smart_inventory.stock_ledger import EnhancedMaterial, build_enhanced_materials

logger = logging.getLogger(__name__)

PREDICTABLE_STATUSES = frozenset({OrderStatus.NEW, OrderStatus.PENDING})


@dataclass
class OrderPrediction:
    """Prediction of one order, with the order it belongs to."""
    order: ProductionOrder
    prediction: CostPrediction

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderId": self.order.id,
            "productName": self.order.product_name,
            "estimatedCost": self.order.total_cost,
            "prediction": self.prediction.to_dict(),
        }


@dataclass
class PredictiveDashboard:
    """Complete predictive dashboard data."""
    overview: PredictiveOverviewKPIs
    predictions: List[OrderPrediction]
    forecasts: List[InventoryForecast]
    critical_alerts: List[InventoryForecast]
    inventory_summary: InventorySummaryKPIs
    urgent_materials: List[Material]
    enhanced_materials: List[EnhancedMaterial]
    insights: List[str] = field(default_factory=list)
    generated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overview": self.overview.model_dump(),
            "predictions": [p.to_dict() for p in self.predictions],
            "forecasts": [f.to_dict() for f in self.forecasts],
            "criticalAlerts": [f.to_dict() for f in self.critical_alerts],
            "inventorySummary": self.inventory_summary.model_dump(),
            "urgentMaterials": [m.to_dict() for m in self.urgent_materials],
            "enhancedMaterials": [em.to_dict() for em in self.enhanced_materials],
            "insights": list(self.insights),
            "generatedAt": self.generated_at.isoformat() if self.generated_at else None,
        }


def compute_overview(predictions: Sequence[OrderPrediction]) -> PredictiveOverviewKPIs:
    """
    Aggregate order predictions.

    Args:
        predictions: Predictions of the orders not yet started

    Returns:
        PredictiveOverviewKPIs (averageConfidence in percent, 0 when empty)
    """
    total_predicted = float(sum(p.prediction.predicted_total_cost for p in predictions))
    total_estimated = float(sum(p.order.total_cost for p in predictions))
    average_confidence = (
        sum(p.prediction.confidence_level for p in predictions) / len(predictions)
        if predictions else 0.0
    )
    high_risk = sum(
        1 for p in predictions
        if p.prediction.risk_assessment.overall_risk in (RiskLevel.HIGH, RiskLevel.CRITICAL)
    )
    return PredictiveOverviewKPIs(
        totalPredictedCost=total_predicted,
        totalEstimatedCost=total_estimated,
        costVariance=total_predicted - total_estimated,
        averageConfidence=average_confidence * 100,
        highRiskOrders=high_risk,
        totalActiveOrders=len(predictions),
    )


def build_insights(overview: PredictiveOverviewKPIs) -> List[str]:
    """Short recommendations derived from the overview metrics."""
    insights: List[str] = []
    if overview.costVariance > 0:
        insights.append(
            f"Predicted costs exceed estimates by {overview.costVariance:,.0f}. "
            f"Review processes or supplier prices."
        )
    if overview.totalActiveOrders and overview.averageConfidence < 70:
        insights.append(
            f"Prediction confidence is low ({overview.averageConfidence:.0f}%). "
            f"Collect more completed order history."
        )
    if overview.highRiskOrders == 0:
        insights.append("No high risk orders detected.")
    return insights


class DashboardAggregator:
    """
    Builds the predictive dashboard from a snapshot.

    Usage:
        aggregator = DashboardAggregator(materials, orders, boms)
        dashboard = aggregator.build()
        payload = dashboard.to_dict()
    """

    def __init__(
        self,
        materials: Sequence[Material],
        production_orders: Sequence[ProductionOrder],
        boms: Sequence[BOM],
        reliability_provider: Optional[SupplierReliabilityProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.materials = list(materials)
        self.production_orders = list(production_orders)
        self.boms = {bom.id: bom for bom in boms}
        self._clock = clock or datetime.now

        self.cost_predictor = CostPredictor(
            self.production_orders,
            self.materials,
            orders=self.production_orders,
            reliability_provider=reliability_provider,
            clock=self._clock,
        )
        self.forecaster = InventoryForecaster(
            self.materials, self.production_orders, list(self.boms.values()), clock=self._clock,
        )

    def predict_active_orders(self) -> List[OrderPrediction]:
        """Predictions of new and pending orders whose BOM is known."""
        predictions: List[OrderPrediction] = []
        for order in self.production_orders:
            if order.status not in PREDICTABLE_STATUSES:
                continue
            bom = self.boms.get(order.bom_id)
            if bom is None:
                logger.warning(f"Order {order.id} references unknown BOM {order.bom_id}, skipped")
                continue
            predictions.append(OrderPrediction(order, self.cost_predictor.predict_cost(order, bom)))
        return predictions

    def build(self) -> PredictiveDashboard:
        config = FeatureFlags.get_config()

        predictions = self.predict_active_orders() if config.enable_cost_prediction else []
        if config.enable_inventory_forecast:
            forecasts = self.forecaster.generate_inventory_forecast()
            critical_alerts = self.forecaster.get_critical_alerts()
            inventory_summary = self.forecaster.get_inventory_summary()
            urgent_materials = self.forecaster.get_urgent_materials()
        else:
            forecasts, critical_alerts, urgent_materials = [], [], []
            inventory_summary = InventorySummaryKPIs(totalMaterials=len(self.materials))

        overview = compute_overview(predictions)
        logger.info(
            f"Dashboard built: {len(predictions)} predictions, {len(forecasts)} forecasts, "
            f"{len(critical_alerts)} critical alerts"
        )

        return PredictiveDashboard(
            overview=overview,
            predictions=predictions,
            forecasts=forecasts,
            critical_alerts=critical_alerts,
            inventory_summary=inventory_summary,
            urgent_materials=urgent_materials,
            enhanced_materials=build_enhanced_materials(self.materials, self.production_orders),
            insights=build_insights(overview),
            generated_at=self._clock(),
        )


def generate_predictive_dashboard(
    materials: Sequence[Material],
    production_orders: Sequence[ProductionOrder],
    boms: Sequence[BOM],
    clock: Optional[Callable[[], datetime]] = None,
) -> PredictiveDashboard:
    """Build the dashboard with the providers selected by FeatureFlags."""
    return DashboardAggregator(
        materials,
        production_orders,
        boms,
        reliability_provider=build_reliability_provider(materials),
        clock=clock,
    ).build()
