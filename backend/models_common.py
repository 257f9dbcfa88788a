"""
PinPlan - Common Models
=======================

Pydantic KPI models shared by the analytic engines, the dashboard aggregator
and the REST API. Field names are the camelCase keys of the dashboard contract.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════════════════════
# INVENTORY KPIS
# ═══════════════════════════════════════════════════════════════════════════════

class InventorySummaryKPIs(BaseModel):
    """
    Inventory health summary.

    Each material lands in exactly one bucket: critical (stockout risk above
    0.7), overstock (more than three optimal orders on hand) or adequate.
    """
    totalMaterials: int = Field(default=0, ge=0, description="Materials in the snapshot")
    criticalLowStock: int = Field(default=0, ge=0, description="Materials with stockout risk > 0.7")
    adequateStock: int = Field(default=0, ge=0, description="Materials neither critical nor overstocked")
    overStock: int = Field(default=0, ge=0, description="Materials above 3x optimal order quantity")
    totalValueAtRisk: float = Field(
        default=0.0,
        ge=0.0,
        description="Purchase value of available stock of critical materials",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "totalMaterials": 42,
                "criticalLowStock": 3,
                "adequateStock": 35,
                "overStock": 4,
                "totalValueAtRisk": 1250000.0,
            }
        }
    )


# ═══════════════════════════════════════════════════════════════════════════════
# COST PREDICTION KPIS
# ═══════════════════════════════════════════════════════════════════════════════

class PredictiveOverviewKPIs(BaseModel):
    """
    Aggregate of the cost predictions of all orders not yet started.
    """
    totalPredictedCost: float = Field(default=0.0, description="Σ predicted total cost")
    totalEstimatedCost: float = Field(default=0.0, description="Σ estimated total cost")
    costVariance: float = Field(default=0.0, description="Predicted minus estimated")
    averageConfidence: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Mean prediction confidence (percent)",
    )
    highRiskOrders: int = Field(default=0, ge=0, description="Orders with high or critical risk")
    totalActiveOrders: int = Field(default=0, ge=0, description="Orders with a prediction")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "totalPredictedCost": 12600000.0,
                "totalEstimatedCost": 12000000.0,
                "costVariance": 600000.0,
                "averageConfidence": 68.5,
                "highRiskOrders": 1,
                "totalActiveOrders": 4,
            }
        }
    )
