"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    COST SIGNALS (Supplier Reliability, Capacity Risk)
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Injectable inputs of the cost predictor that do not come from the order
history itself:

- Supplier reliability score in [0, 1] for the suppliers of a BOM
- Capacity risk probability for the period an order will run in

Providers are selected through FeatureFlags (PINPLAN_SUPPLIER_RELIABILITY).
The default provider is fixed so predictions stay reproducible.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..feature_flags import FeatureFlags, SupplierReliabilitySource
from ..production.models import BOM, Material, ProductionOrder

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# SUPPLIER RELIABILITY
# ═══════════════════════════════════════════════════════════════════════════════

class SupplierReliabilityProvider(Protocol):
    def reliability(self, bom: BOM) -> float:
        """Reliability score in [0, 1] of the suppliers of ``bom``."""
        ...


@dataclass(frozen=True)
class FixedSupplierReliability:
    """Same score for every BOM. 0.775 is the midpoint of the simulated range."""
    score: float = 0.775

    def reliability(self, bom: BOM) -> float:
        return self.score


class SimulatedSupplierReliability:
    """
    Seeded pseudo-random score in [low, high].

    Each BOM gets a score derived from (seed, bom id), so repeated predictions
    for the same BOM agree with each other.
    """

    def __init__(self, seed: int = 42, low: float = 0.6, high: float = 0.95):
        if low > high:
            raise ValueError(f"low ({low}) must not exceed high ({high})")
        self.seed = seed
        self.low = low
        self.high = high

    def reliability(self, bom: BOM) -> float:
        rng = random.Random(f"{self.seed}:{bom.id}")
        return self.low + rng.random() * (self.high - self.low)


@dataclass(frozen=True)
class DeliveryRecord:
    """One purchase delivery: was it on time?"""
    supplier: str
    on_time: bool
    delivered_at: Optional[datetime] = None


class DeliveryHistorySupplierReliability:
    """
    On-time delivery ratio of the suppliers of a BOM's materials.

    Suppliers without records are skipped; when no supplier of the BOM has
    any record the neutral score is returned.
    """

    def __init__(
        self,
        materials: Sequence[Material],
        deliveries: Iterable[DeliveryRecord],
        neutral_score: float = 0.7,
    ):
        self.neutral_score = neutral_score
        self._supplier_of: Dict[str, Optional[str]] = {m.id: m.supplier for m in materials}
        self._stats: Dict[str, Tuple[int, int]] = {}
        for record in deliveries:
            on_time, total = self._stats.get(record.supplier, (0, 0))
            self._stats[record.supplier] = (on_time + int(record.on_time), total + 1)

    def supplier_score(self, supplier: str) -> Optional[float]:
        stats = self._stats.get(supplier)
        if not stats or stats[1] == 0:
            return None
        return stats[0] / stats[1]

    def reliability(self, bom: BOM) -> float:
        suppliers = {
            self._supplier_of.get(line.material_id)
            for line in bom.materials
        }
        scores: List[float] = []
        for supplier in sorted(s for s in suppliers if s):
            score = self.supplier_score(supplier)
            if score is not None:
                scores.append(score)
        if not scores:
            logger.debug(f"No delivery history for suppliers of BOM {bom.id}, using neutral score")
            return self.neutral_score
        return sum(scores) / len(scores)


# ═══════════════════════════════════════════════════════════════════════════════
# CAPACITY RISK
# ═══════════════════════════════════════════════════════════════════════════════

class CapacityRiskProvider:
    """
    Capacity risk from the calendar month of the evaluation date.

    Holiday season months (Nov-Feb by default) carry the peak probability.
    """

    def __init__(
        self,
        peak_months: Tuple[int, ...] = (11, 12, 1, 2),
        peak_probability: float = 0.7,
        base_probability: float = 0.2,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.peak_months = peak_months
        self.peak_probability = peak_probability
        self.base_probability = base_probability
        self._clock = clock or datetime.now

    def capacity_risk(self, order: ProductionOrder) -> float:
        month = self._clock().month
        return self.peak_probability if month in self.peak_months else self.base_probability


# ═══════════════════════════════════════════════════════════════════════════════
# FACTORY
# ═══════════════════════════════════════════════════════════════════════════════

def build_reliability_provider(
    materials: Sequence[Material] = (),
    deliveries: Iterable[DeliveryRecord] = (),
) -> SupplierReliabilityProvider:
    """
    Provider selected by FeatureFlags.

    Args:
        materials: Material snapshot (needed for delivery history)
        deliveries: Delivery records (needed for delivery history)
    """
    config = FeatureFlags.get_config()
    source = config.supplier_reliability_source

    if source == SupplierReliabilitySource.SIMULATED:
        return SimulatedSupplierReliability(seed=config.reliability_seed)
    if source == SupplierReliabilitySource.DELIVERY_HISTORY:
        return DeliveryHistorySupplierReliability(materials, deliveries)
    return FixedSupplierReliability(score=config.fixed_reliability)
