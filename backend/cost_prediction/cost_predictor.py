"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    COST PREDICTOR (Similarity Matching, Factor Adjustment, Risk)
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Predicts the total cost of a production order before it runs, from the
completed orders in a bounded historical window.

Pipeline:
    1. Similar orders: score every historical order against the target,
       keep score > 0.3, best 10
    2. Fewer than 3 similar orders → basic prediction (estimate + 5%)
    3. Four weighted factors, each positive / negative / neutral
    4. Predicted cost = estimate × mean(actual / estimate) × Π(1 + adj_f)
    5. Risk assessment (budget overrun, material shortage, capacity)
    6. Confidence

Similarity:
    s = name(0.4 exact | 0.2 substring) + 0.3 × min(q1, q2) / max(q1, q2) + 0.3 × [same BOM]

Factor adjustment:
    positive → -0.05 × weight,   negative → +0.10 × weight,   neutral → 0

Confidence:
    0.5 + 0.3 × min(1, n_similar / 10) + 0.2 × mean(weight)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from ..production.models import BOM, Material, ProductionOrder
from ..smart_inventory.stock_ledger import build_enhanced_materials, index_by_id
from .historical_window import DEFAULT_WINDOW_SIZE, HistoricalWindow
from .signals import (
    CapacityRiskProvider,
    FixedSupplierReliability,
    SupplierReliabilityProvider,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIG & DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class CostPredictorConfig:
    """
    Thresholds and weights of the cost predictor.

    Attributes:
        min_similar_orders: Below this the basic prediction is returned
        similarity_threshold: Minimum similarity of a comparable order
        max_similar_orders: Number of comparables kept
        basic_contingency: Multiplier of the basic prediction
        basic_confidence: Confidence of the basic prediction
        positive_adjustment / negative_adjustment: Per unit of factor weight
        urgent_procurement_premium: Multiplier on shortfall purchase cost
        capacity_cost_share: Share of order cost lost to capacity delays
        window_size: Historical window capacity
    """
    min_similar_orders: int = 3
    similarity_threshold: float = 0.3
    max_similar_orders: int = 10
    basic_contingency: float = 1.05
    basic_confidence: float = 0.6
    positive_adjustment: float = -0.05
    negative_adjustment: float = 0.10
    urgent_procurement_premium: float = 1.2
    capacity_cost_share: float = 0.15
    window_size: int = DEFAULT_WINDOW_SIZE


class FactorImpact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def score(self) -> int:
        return _SEVERITY_SCORES[self]


_SEVERITY_SCORES = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


class RiskType(str, Enum):
    BUDGET_OVERRUN = "budget_overrun"
    MATERIAL_SHORTAGE = "material_shortage"
    CAPACITY_CONSTRAINT = "capacity_constraint"
    SUPPLIER_DELAY = "supplier_delay"
    QUALITY_RISK = "quality_risk"


MITIGATION_SUGGESTIONS: Dict[RiskType, str] = {
    RiskType.BUDGET_OVERRUN: "Review the process for savings or negotiate prices with suppliers",
    RiskType.MATERIAL_SHORTAGE: "Order additional materials or source an alternative supplier",
    RiskType.CAPACITY_CONSTRAINT: "Consider extending the deadline or adding staff",
    RiskType.SUPPLIER_DELAY: "Confirm the delivery schedule with the supplier",
    RiskType.QUALITY_RISK: "Strengthen quality control and testing",
}

COLLECT_MORE_DATA = "Collect more historical data to improve prediction accuracy"


@dataclass(frozen=True)
class PredictionFactor:
    factor: str
    impact: FactorImpact
    weight: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor,
            "impact": self.impact.value,
            "weight": self.weight,
            "description": self.description,
        }


@dataclass(frozen=True)
class RiskFactor:
    type: RiskType
    severity: RiskLevel
    probability: float
    description: str
    impact: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "probability": self.probability,
            "description": self.description,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk: RiskLevel
    risk_factors: List[RiskFactor] = field(default_factory=list)
    mitigation_suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallRisk": self.overall_risk.value,
            "riskFactors": [r.to_dict() for r in self.risk_factors],
            "mitigationSuggestions": list(self.mitigation_suggestions),
        }


@dataclass(frozen=True)
class CostPrediction:
    """
    Predicted cost of one production order.

    Attributes:
        order_id: Target order
        predicted_total_cost: Whole currency units
        confidence_level: In [0, 1]
        based_on_historical_orders: Similar orders used (window size for a basic prediction)
        prediction_factors: Weighted factors applied to the base cost
        risk_assessment: Risk factors and mitigations
        last_updated: Evaluation time from the clock; identical snapshots give
            identical predictions only when the clock is pinned
    """
    order_id: str
    predicted_total_cost: int
    confidence_level: float
    based_on_historical_orders: int
    prediction_factors: List[PredictionFactor]
    risk_assessment: RiskAssessment
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "predictedTotalCost": self.predicted_total_cost,
            "confidenceLevel": self.confidence_level,
            "basedOnHistoricalOrders": self.based_on_historical_orders,
            "predictionFactors": [f.to_dict() for f in self.prediction_factors],
            "riskAssessment": self.risk_assessment.to_dict(),
            "lastUpdated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class _ShortageRisk:
    probability: float
    short_materials: int
    cost_impact: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ═══════════════════════════════════════════════════════════════════════════════
# SIMILARITY
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_similarity(target: ProductionOrder, other: ProductionOrder) -> float:
    """
    Weighted similarity of two orders in [0, 1].

    Two zero quantities count as identical quantities.
    """
    similarity = 0.0

    if target.product_name == other.product_name:
        similarity += 0.4
    else:
        a = target.product_name.lower()
        b = other.product_name.lower()
        # Empty names never match as substrings
        if a and b and (a in b or b in a):
            similarity += 0.2

    high = max(target.quantity_produced, other.quantity_produced)
    low = min(target.quantity_produced, other.quantity_produced)
    quantity_ratio = low / high if high > 0 else 1.0
    similarity += quantity_ratio * 0.3

    if target.bom_id == other.bom_id:
        similarity += 0.3

    return similarity


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

class CostPredictor:
    """
    Cost predictor over a historical window.

    Usage:
        predictor = CostPredictor(all_orders, materials, orders=all_orders)
        prediction = predictor.predict_cost(order, bom)
        predictor.update_with_new_data(completed_order)
    """

    def __init__(
        self,
        historical_orders: Union[HistoricalWindow, Iterable[ProductionOrder]],
        materials: Sequence[Material],
        orders: Sequence[ProductionOrder] = (),
        reliability_provider: Optional[SupplierReliabilityProvider] = None,
        capacity_provider: Optional[CapacityRiskProvider] = None,
        config: Optional[CostPredictorConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            historical_orders: Window, or an order snapshot to filter into one
            materials: Material snapshot
            orders: Order snapshot used to derive committed stock for the
                shortage risk (no commitments when empty)
            reliability_provider: Supplier reliability signal (fixed by default)
            capacity_provider: Capacity risk signal (peak-month rule by default)
            config: Thresholds and weights
            clock: Evaluation time source
        """
        self.config = config or CostPredictorConfig()
        if isinstance(historical_orders, HistoricalWindow):
            self.window = historical_orders
        else:
            self.window = HistoricalWindow.from_orders(historical_orders, self.config.window_size)
        self._clock = clock or datetime.now
        self.reliability_provider = reliability_provider or FixedSupplierReliability()
        self.capacity_provider = capacity_provider or CapacityRiskProvider(clock=self._clock)
        self.materials = list(materials)
        self._ledger = index_by_id(build_enhanced_materials(self.materials, orders))

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    def predict_cost(self, order: ProductionOrder, bom: BOM) -> CostPrediction:
        """
        Predict the total cost of an order.

        Args:
            order: Target order (its total_cost is the estimate)
            bom: BOM of the order

        Returns:
            CostPrediction; never raises for missing history
        """
        similar = self.find_similar_orders(order)

        if len(similar) < self.config.min_similar_orders:
            logger.info(
                f"Basic prediction for order {order.id}: "
                f"{len(similar)} similar orders in a window of {len(self.window)}"
            )
            return self._basic_prediction(order)

        factors = self._analyze_factors(bom, similar)
        predicted = self._predicted_cost(order, factors, similar)
        risk = self._assess_risk(order, bom, predicted)
        confidence = self._confidence(similar, factors)

        logger.debug(
            f"Order {order.id}: predicted={predicted}, estimated={order.total_cost:g}, "
            f"similar={len(similar)}, confidence={confidence:.2f}, risk={risk.overall_risk.value}"
        )

        return CostPrediction(
            order_id=order.id,
            predicted_total_cost=predicted,
            confidence_level=confidence,
            based_on_historical_orders=len(similar),
            prediction_factors=factors,
            risk_assessment=risk,
            last_updated=self._clock(),
        )

    def update_with_new_data(self, completed_order: ProductionOrder) -> HistoricalWindow:
        """Append a completed order to the window (ignored when ineligible)."""
        self.window = self.window.append(completed_order)
        return self.window

    def find_similar_orders(self, target: ProductionOrder) -> List[ProductionOrder]:
        scored = [(calculate_similarity(target, o), o) for o in self.window]
        scored = [item for item in scored if item[0] > self.config.similarity_threshold]
        # Stable sort keeps window order among equal scores
        scored.sort(key=lambda item: item[0], reverse=True)
        return [o for _, o in scored[: self.config.max_similar_orders]]

    # ─────────────────────────────────────────────────────────────────────────
    # Basic prediction
    # ─────────────────────────────────────────────────────────────────────────

    def _basic_prediction(self, order: ProductionOrder) -> CostPrediction:
        cfg = self.config
        return CostPrediction(
            order_id=order.id,
            predicted_total_cost=_round_half_up(order.total_cost * cfg.basic_contingency),
            confidence_level=cfg.basic_confidence,
            based_on_historical_orders=len(self.window),
            prediction_factors=[
                PredictionFactor(
                    factor="material_price_trend",
                    impact=FactorImpact.NEUTRAL,
                    weight=0.5,
                    description="Not enough historical data for a detailed analysis",
                )
            ],
            risk_assessment=RiskAssessment(
                overall_risk=RiskLevel.MEDIUM,
                risk_factors=[],
                mitigation_suggestions=[COLLECT_MORE_DATA],
            ),
            last_updated=self._clock(),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Factors
    # ─────────────────────────────────────────────────────────────────────────

    def _analyze_factors(self, bom: BOM, similar: List[ProductionOrder]) -> List[PredictionFactor]:
        trend = self.material_price_trend()
        reliability = self.reliability_provider.reliability(bom)
        complexity = self.complexity(bom)
        efficiency = self.team_efficiency(similar)

        trend_direction = "up" if trend > 0 else "down"
        complexity_label = "high" if complexity > 0.7 else "low" if complexity < 0.3 else "medium"

        return [
            PredictionFactor(
                factor="material_price_trend",
                impact=_classify(trend, low=-0.05, high=0.05, higher_is_better=False),
                weight=0.3,
                description=f"Material costs {trend_direction} {abs(trend) * 100:.1f}% versus average",
            ),
            PredictionFactor(
                factor="supplier_reliability",
                impact=_classify(reliability, low=0.6, high=0.8, higher_is_better=True),
                weight=0.2,
                description=f"Supplier reliability: {reliability * 100:.0f}%",
            ),
            PredictionFactor(
                factor="complexity_level",
                impact=_classify(complexity, low=0.3, high=0.7, higher_is_better=False),
                weight=0.25,
                description=f"Product complexity: {complexity_label}",
            ),
            PredictionFactor(
                factor="team_efficiency",
                impact=_classify(efficiency, low=0.9, high=1.1, higher_is_better=True),
                weight=0.25,
                description=f"Team efficiency: {efficiency * 100:.0f}% of target",
            ),
        ]

    def material_price_trend(self) -> float:
        """
        Relative change of material variance between the oldest two and the
        newest two of the last 5 orders in the window.
        """
        recent = self.window.recent(5)
        if len(recent) < 2:
            return 0.0
        old = sum(o.cost_analysis.material_variance for o in recent[:2]) / 2
        new = sum(o.cost_analysis.material_variance for o in recent[-2:]) / 2
        if old == 0:
            return 0.0
        return (new - old) / abs(old)

    @staticmethod
    def complexity(bom: BOM) -> float:
        count = len(bom.materials)
        if count <= 3:
            return 0.2
        if count <= 6:
            return 0.5
        return 0.8

    @staticmethod
    def team_efficiency(similar: Sequence[ProductionOrder]) -> float:
        """Mean of estimate / actual over similar orders (1 when empty)."""
        if not similar:
            return 1.0
        ratios = []
        for order in similar:
            actual = order.cost_analysis.actual_cost or order.total_cost
            ratios.append(order.total_cost / actual if actual else 1.0)
        return sum(ratios) / len(ratios)

    def _predicted_cost(
        self,
        order: ProductionOrder,
        factors: List[PredictionFactor],
        similar: List[ProductionOrder],
    ) -> int:
        ratios = [
            o.cost_analysis.actual_cost / o.total_cost if o.total_cost else 1.0
            for o in similar
        ]
        cost = order.total_cost * (sum(ratios) / len(ratios))

        for factor in factors:
            if factor.impact == FactorImpact.POSITIVE:
                cost *= 1 + self.config.positive_adjustment * factor.weight
            elif factor.impact == FactorImpact.NEGATIVE:
                cost *= 1 + self.config.negative_adjustment * factor.weight

        return _round_half_up(cost)

    def _confidence(self, similar: List[ProductionOrder], factors: List[PredictionFactor]) -> float:
        confidence = 0.5
        confidence += min(1.0, len(similar) / 10) * 0.3
        if factors:
            confidence += (sum(f.weight for f in factors) / len(factors)) * 0.2
        return min(1.0, confidence)

    # ─────────────────────────────────────────────────────────────────────────
    # Risk
    # ─────────────────────────────────────────────────────────────────────────

    def _assess_risk(self, order: ProductionOrder, bom: BOM, predicted: int) -> RiskAssessment:
        risk_factors: List[RiskFactor] = []

        variance = (predicted - order.total_cost) / order.total_cost if order.total_cost > 0 else 0.0
        if variance > 0.05:
            if variance > 0.2:
                severity = RiskLevel.CRITICAL
            elif variance > 0.1:
                severity = RiskLevel.HIGH
            else:
                severity = RiskLevel.MEDIUM
            risk_factors.append(RiskFactor(
                type=RiskType.BUDGET_OVERRUN,
                severity=severity,
                probability=min(0.9, variance * 2),
                description=f"Predicted cost exceeds budget by {variance * 100:.1f}%",
                impact=predicted - order.total_cost,
            ))

        shortage = self.material_shortage_risk(bom, order.quantity_produced)
        if shortage.probability > 0.3:
            risk_factors.append(RiskFactor(
                type=RiskType.MATERIAL_SHORTAGE,
                severity=RiskLevel.CRITICAL if shortage.probability > 0.7 else RiskLevel.HIGH,
                probability=shortage.probability,
                description=f"{shortage.short_materials} materials at risk of shortage",
                impact=shortage.cost_impact,
            ))

        capacity = self.capacity_provider.capacity_risk(order)
        if capacity > 0.4:
            risk_factors.append(RiskFactor(
                type=RiskType.CAPACITY_CONSTRAINT,
                severity=RiskLevel.CRITICAL if capacity > 0.8 else RiskLevel.MEDIUM,
                probability=capacity,
                description="Production capacity risk during peak season",
                impact=order.total_cost * self.config.capacity_cost_share,
            ))

        return RiskAssessment(
            overall_risk=overall_risk(risk_factors),
            risk_factors=risk_factors,
            mitigation_suggestions=mitigation_suggestions(risk_factors),
        )

    def material_shortage_risk(self, bom: BOM, quantity: float) -> _ShortageRisk:
        """Average shortfall ratio of the BOM lines that exceed available stock."""
        total_ratio = 0.0
        total_impact = 0.0
        short = 0

        for line in bom.materials:
            enhanced = self._ledger.get(line.material_id)
            if enhanced is None:
                continue
            required = line.quantity * quantity
            if required > enhanced.available_stock:
                shortfall = required - enhanced.available_stock
                total_ratio += shortfall / required
                total_impact += (
                    shortfall * (enhanced.material.purchase_price or 0.0)
                    * self.config.urgent_procurement_premium
                )
                short += 1

        probability = min(1.0, total_ratio / short) if short else 0.0
        return _ShortageRisk(probability=probability, short_materials=short, cost_impact=total_impact)


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def _classify(value: float, low: float, high: float, higher_is_better: bool) -> FactorImpact:
    """Neutral inside [low, high]; outside, the side decides the impact."""
    if value > high:
        return FactorImpact.POSITIVE if higher_is_better else FactorImpact.NEGATIVE
    if value < low:
        return FactorImpact.NEGATIVE if higher_is_better else FactorImpact.POSITIVE
    return FactorImpact.NEUTRAL


def overall_risk(risk_factors: Sequence[RiskFactor]) -> RiskLevel:
    """Bucket the mean severity score (low=1 .. critical=4)."""
    if not risk_factors:
        return RiskLevel.LOW
    average = sum(r.severity.score for r in risk_factors) / len(risk_factors)
    if average >= 3.5:
        return RiskLevel.CRITICAL
    if average >= 2.5:
        return RiskLevel.HIGH
    if average >= 1.5:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def mitigation_suggestions(risk_factors: Sequence[RiskFactor]) -> List[str]:
    """One suggestion per risk type, in first-seen order."""
    suggestions: List[str] = []
    for risk in risk_factors:
        text = MITIGATION_SUGGESTIONS.get(risk.type)
        if text and text not in suggestions:
            suggestions.append(text)
    return suggestions
