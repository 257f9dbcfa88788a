"""
PinPlan - Cost Prediction
=========================

Predicts production order costs and risks from completed order history.
"""

from .historical_window import DEFAULT_WINDOW_SIZE, HistoricalWindow, is_eligible
from .signals import (
    CapacityRiskProvider,
    DeliveryHistorySupplierReliability,
    DeliveryRecord,
    FixedSupplierReliability,
    SimulatedSupplierReliability,
    SupplierReliabilityProvider,
    build_reliability_provider,
)
from .cost_predictor import (
    CostPrediction,
    CostPredictor,
    CostPredictorConfig,
    FactorImpact,
    PredictionFactor,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    RiskType,
    calculate_similarity,
)

__all__ = [
    "DEFAULT_WINDOW_SIZE",
    "HistoricalWindow",
    "is_eligible",
    "CapacityRiskProvider",
    "DeliveryHistorySupplierReliability",
    "DeliveryRecord",
    "FixedSupplierReliability",
    "SimulatedSupplierReliability",
    "SupplierReliabilityProvider",
    "build_reliability_provider",
    "CostPrediction",
    "CostPredictor",
    "CostPredictorConfig",
    "FactorImpact",
    "PredictionFactor",
    "RiskAssessment",
    "RiskFactor",
    "RiskLevel",
    "RiskType",
    "calculate_similarity",
]
