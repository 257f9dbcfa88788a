"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    STOCK LEDGER (Committed vs Available Stock)
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Single source of truth for "total vs committed vs available" material stock.

Committed stock is never stored: it is derived on every read from the
current snapshot of production orders. Only orders in an active status
(pending or in production) hold a reservation.

Mathematical Model:
──────────────────
    committed[m] = Σ quantity(c) for c in order.committed_materials
                   for order in orders if order.status ∈ {PENDING, IN_PRODUCTION}
                   and c.material_id = m

    available[m] = max(0, stock[m] - committed[m])

    commitment_ratio[m] = committed[m] / stock[m] * 100   (0 when stock = 0)

Stock status thresholds (on available vs total stock):
    available ≤ 0           → out-of-stock
    available < 20% stock   → low-stock
    available < 50% stock   → medium-stock
    otherwise               → good-stock
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..production.models import Material, ProductionOrder

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

class StockStatus(str, Enum):
    """Availability bucket of a material."""
    OUT_OF_STOCK = "out-of-stock"
    LOW_STOCK = "low-stock"
    MEDIUM_STOCK = "medium-stock"
    GOOD_STOCK = "good-stock"


@dataclass(frozen=True)
class EnhancedMaterial:
    """
    Material plus its derived availability.

    Attributes:
        material: Underlying material snapshot
        committed_quantity: Quantity reserved by active production orders
        available_stock: max(0, stock - committed_quantity)
        stock_status: Availability bucket
        commitment_ratio: Share of stock committed (0-100)
    """
    material: Material
    committed_quantity: float
    available_stock: float
    stock_status: StockStatus
    commitment_ratio: float

    @property
    def id(self) -> str:
        return self.material.id

    @property
    def stock(self) -> float:
        return self.material.stock

    def to_dict(self) -> Dict[str, Any]:
        data = self.material.to_dict()
        data.update({
            "committedQuantity": self.committed_quantity,
            "availableStock": self.available_stock,
            "stockStatus": self.stock_status.value,
            "commitmentRatio": self.commitment_ratio,
        })
        return data


# ═══════════════════════════════════════════════════════════════════════════════
# COMMITMENT
# ═══════════════════════════════════════════════════════════════════════════════

def compute_committed(
    materials: Sequence[Material],
    orders: Iterable[ProductionOrder],
) -> Dict[str, float]:
    """
    Sum reserved quantities per material over active production orders.

    Args:
        materials: Material snapshot (commitments are keyed by material id even
            when the material is missing from the snapshot)
        orders: Production order snapshot

    Returns:
        Dict material_id -> committed quantity
    """
    committed: Dict[str, float] = defaultdict(float)
    for order in orders:
        if not order.is_active:
            continue
        for commitment in order.committed_materials:
            committed[commitment.material_id] += commitment.quantity

    known = {m.id for m in materials}
    orphans = set(committed) - known
    if orphans:
        logger.debug(f"Commitments reference materials outside the snapshot: {sorted(orphans)}")

    return dict(committed)


def calculate_committed_quantity(material_id: str, orders: Iterable[ProductionOrder]) -> float:
    """Committed quantity of a single material."""
    total = 0.0
    for order in orders:
        if not order.is_active:
            continue
        for commitment in order.committed_materials:
            if commitment.material_id == material_id:
                total += commitment.quantity
    return total


def get_stock_status(available_stock: float, total_stock: float) -> StockStatus:
    """Bucket a material by how much of its stock is still available."""
    if available_stock <= 0 or total_stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if available_stock < total_stock * 0.2:
        return StockStatus.LOW_STOCK
    if available_stock < total_stock * 0.5:
        return StockStatus.MEDIUM_STOCK
    return StockStatus.GOOD_STOCK


def enhance_material(material: Material, committed_quantity: float) -> EnhancedMaterial:
    committed_quantity = max(0.0, committed_quantity)
    available = max(0.0, material.stock - committed_quantity)
    ratio = (committed_quantity / material.stock) * 100 if material.stock else 0.0
    return EnhancedMaterial(
        material=material,
        committed_quantity=committed_quantity,
        available_stock=available,
        stock_status=get_stock_status(available, material.stock),
        commitment_ratio=ratio,
    )


def enhance(
    materials: Sequence[Material],
    committed_map: Dict[str, float],
) -> List[EnhancedMaterial]:
    """
    Build the enhanced view of every material.

    Args:
        materials: Material snapshot
        committed_map: Output of ``compute_committed``

    Returns:
        One EnhancedMaterial per input material, in input order
    """
    return [enhance_material(m, committed_map.get(m.id, 0.0)) for m in materials]


def build_enhanced_materials(
    materials: Sequence[Material],
    orders: Iterable[ProductionOrder],
) -> List[EnhancedMaterial]:
    """compute_committed + enhance in one call."""
    return enhance(materials, compute_committed(materials, orders))


def index_by_id(enhanced: Iterable[EnhancedMaterial]) -> Dict[str, EnhancedMaterial]:
    return {em.id: em for em in enhanced}


# ═══════════════════════════════════════════════════════════════════════════════
# QUERIES
# ═══════════════════════════════════════════════════════════════════════════════

def get_materials_needing_reorder(enhanced: Iterable[EnhancedMaterial]) -> List[EnhancedMaterial]:
    """Materials whose available stock fell to or below their minimum."""
    return [em for em in enhanced if em.available_stock <= (em.material.min_stock or 0)]


def get_orders_affecting_material(
    material_id: str,
    orders: Iterable[ProductionOrder],
) -> List[ProductionOrder]:
    """Orders (any status) with a commitment line for the material."""
    return [
        order for order in orders
        if any(c.material_id == material_id for c in order.committed_materials)
    ]


def find_enhanced(enhanced: Iterable[EnhancedMaterial], material_id: str) -> Optional[EnhancedMaterial]:
    for em in enhanced:
        if em.id == material_id:
            return em
    return None


def ledger_to_dataframe(enhanced: Iterable[EnhancedMaterial]) -> pd.DataFrame:
    """
    Tabular view of the ledger.

    Returns:
        DataFrame with columns: material_id, sku, stock, committed_quantity,
        available_stock, stock_status, commitment_ratio
    """
    records = [
        {
            "material_id": em.id,
            "sku": em.material.sku,
            "stock": em.stock,
            "committed_quantity": em.committed_quantity,
            "available_stock": em.available_stock,
            "stock_status": em.stock_status.value,
            "commitment_ratio": em.commitment_ratio,
        }
        for em in enhanced
    ]
    columns = [
        "material_id", "sku", "stock", "committed_quantity",
        "available_stock", "stock_status", "commitment_ratio",
    ]
    return pd.DataFrame(records, columns=columns)
