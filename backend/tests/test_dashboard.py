"""
PinPlan — Predictive Dashboard Tests
"""

import logging

import pytest

from backend.cost_prediction.cost_predictor import RiskLevel
from backend.dashboards.predictive_dashboard import (
    DashboardAggregator,
    build_insights,
    compute_overview,
    generate_predictive_dashboard,
)
from backend.feature_flags import FeatureFlags
from backend.models_common import PredictiveOverviewKPIs
from backend.production.models import OrderStatus


@pytest.fixture
def snapshot(make_material, make_order, bom_a):
    materials = [make_material("M1", stock=100), make_material("M2", stock=5)]
    orders = [
        make_order("PO-1", status=OrderStatus.PENDING, total_cost=1000, commitments={"M1": 30}),
        make_order("PO-2", status=OrderStatus.NEW, total_cost=2000),
        make_order("PO-3", status=OrderStatus.IN_PRODUCTION, total_cost=5000),
        make_order("PO-4", status=OrderStatus.CANCELLED, total_cost=9000),
    ]
    return materials, orders, [bom_a]


class TestOverview:

    def test_only_new_and_pending_orders_are_predicted(self, snapshot, clock):
        aggregator = DashboardAggregator(*snapshot, clock=clock)
        predictions = aggregator.predict_active_orders()
        assert [p.order.id for p in predictions] == ["PO-1", "PO-2"]
        assert [p.prediction.predicted_total_cost for p in predictions] == [1050, 2100]

    def test_overview_metrics(self, snapshot, clock):
        dashboard = DashboardAggregator(*snapshot, clock=clock).build()
        overview = dashboard.overview
        assert overview.totalPredictedCost == 3150
        assert overview.totalEstimatedCost == 3000
        assert overview.costVariance == 150
        assert overview.averageConfidence == pytest.approx(60.0)
        assert overview.highRiskOrders == 0
        assert overview.totalActiveOrders == 2

    def test_empty_overview(self):
        overview = compute_overview([])
        assert overview.totalActiveOrders == 0
        assert overview.averageConfidence == 0

    def test_unknown_bom_is_skipped(self, make_material, make_order, bom_a, clock, caplog):
        orders = [make_order("PO-1"), make_order("PO-2", bom_id="BOM-GONE")]
        aggregator = DashboardAggregator([make_material("M1")], orders, [bom_a], clock=clock)
        with caplog.at_level(logging.WARNING, logger="backend.dashboards.predictive_dashboard"):
            predictions = aggregator.predict_active_orders()
        assert [p.order.id for p in predictions] == ["PO-1"]
        assert "BOM-GONE" in caplog.text

    def test_high_risk_counted(self, make_material, make_order, make_history, bom_a, clock):
        # Shortage on M1 plus budget overrun gives a high overall risk
        orders = make_history(4) + [make_order("PO-1", total_cost=1600, quantity=100)]
        aggregator = DashboardAggregator(
            [make_material("M1", stock=20), make_material("M2", stock=500)], orders, [bom_a], clock=clock,
        )
        predictions = aggregator.predict_active_orders()
        assert predictions[0].prediction.risk_assessment.overall_risk == RiskLevel.HIGH
        assert compute_overview(predictions).highRiskOrders == 1


class TestInsights:

    def test_all_three_insights(self):
        overview = PredictiveOverviewKPIs(
            totalPredictedCost=3150, totalEstimatedCost=3000, costVariance=150,
            averageConfidence=60.0, highRiskOrders=0, totalActiveOrders=2,
        )
        insights = build_insights(overview)
        assert len(insights) == 3
        assert insights[0].startswith("Predicted costs exceed estimates by 150")
        assert "60%" in insights[1]
        assert insights[2] == "No high risk orders detected."

    def test_no_confidence_insight_without_orders(self):
        assert build_insights(PredictiveOverviewKPIs()) == ["No high risk orders detected."]

    def test_confident_high_risk_portfolio(self):
        overview = PredictiveOverviewKPIs(
            costVariance=-10, averageConfidence=85.0, highRiskOrders=2, totalActiveOrders=3,
        )
        assert build_insights(overview) == []


class TestDashboard:

    def test_sections(self, snapshot, clock, fixed_now):
        dashboard = DashboardAggregator(*snapshot, clock=clock).build()
        assert [f.material_id for f in dashboard.forecasts] == ["M1", "M2"]
        assert [f.material_id for f in dashboard.critical_alerts] == ["M2"]
        assert [m.id for m in dashboard.urgent_materials] == ["M2"]
        assert dashboard.inventory_summary.totalMaterials == 2
        assert dashboard.enhanced_materials[0].available_stock == 70
        assert dashboard.generated_at == fixed_now

    def test_to_dict_keys(self, snapshot, clock):
        data = DashboardAggregator(*snapshot, clock=clock).build().to_dict()
        assert set(data) == {
            "overview", "predictions", "forecasts", "criticalAlerts", "inventorySummary",
            "urgentMaterials", "enhancedMaterials", "insights", "generatedAt",
        }
        assert data["predictions"][0]["orderId"] == "PO-1"
        assert data["predictions"][0]["prediction"]["predictedTotalCost"] == 1050
        assert data["overview"]["totalActiveOrders"] == 2

    def test_cost_prediction_toggle(self, snapshot, clock, monkeypatch):
        monkeypatch.setenv("PINPLAN_ENABLE_COST_PREDICTION", "false")
        FeatureFlags.reset()
        dashboard = DashboardAggregator(*snapshot, clock=clock).build()
        assert dashboard.predictions == []
        assert dashboard.overview.totalActiveOrders == 0
        assert len(dashboard.forecasts) == 2

    def test_inventory_forecast_toggle(self, snapshot, clock, monkeypatch):
        monkeypatch.setenv("PINPLAN_ENABLE_INVENTORY_FORECAST", "false")
        FeatureFlags.reset()
        dashboard = DashboardAggregator(*snapshot, clock=clock).build()
        assert dashboard.forecasts == [] and dashboard.critical_alerts == []
        assert dashboard.inventory_summary.totalMaterials == 2
        assert dashboard.inventory_summary.criticalLowStock == 0
        assert len(dashboard.predictions) == 2

    def test_generate_predictive_dashboard(self, snapshot, clock):
        dashboard = generate_predictive_dashboard(*snapshot, clock=clock)
        assert dashboard.overview.totalPredictedCost == 3150
