"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PINPLAN — DASHBOARDS
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Dashboard data generators:
- Predictive dashboard (cost predictions + inventory forecasts)
"""

from .predictive_dashboard import (
    DashboardAggregator,
    OrderPrediction,
    PredictiveDashboard,
    build_insights,
    compute_overview,
    generate_predictive_dashboard,
)

__all__ = [
    "DashboardAggregator",
    "OrderPrediction",
    "PredictiveDashboard",
    "build_insights",
    "compute_overview",
    "generate_predictive_dashboard",
]
