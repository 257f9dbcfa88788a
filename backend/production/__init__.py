"""
PinPlan - Production Domain
===========================

Domain objects shared by the analytic engines (materials, BOMs, production
orders). Lifecycle transitions live in ``backend.production.lifecycle``.
"""

from .models import (
    ACTIVE_STATUSES,
    ActualCosts,
    AdditionalCost,
    BOM,
    BomMaterial,
    CostAnalysis,
    Material,
    MaterialCommitment,
    OrderStatus,
    ProductionOrder,
    STATUS_LABELS,
    find_bom,
    parse_datetime,
)

__all__ = [
    "ACTIVE_STATUSES",
    "ActualCosts",
    "AdditionalCost",
    "BOM",
    "BomMaterial",
    "CostAnalysis",
    "Material",
    "MaterialCommitment",
    "OrderStatus",
    "ProductionOrder",
    "STATUS_LABELS",
    "find_bom",
    "parse_datetime",
]
