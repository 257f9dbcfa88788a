"""
═══════════════════════════════════════════════════════════════════════════════════════════════════════
                    PINPLAN — SMART INVENTORY MODULE
═══════════════════════════════════════════════════════════════════════════════════════════════════════

Material stock analytics over a snapshot of materials, production orders and BOMs:

1. **Stock Ledger**: committed vs available stock, derived from active orders
2. **Availability**: advisory sufficiency check for a list of requirements
3. **Inventory Forecaster**: weekly demand projection, ROP, EOQ, stockout risk
   and reorder recommendations

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │  Stock Ledger (leaf)                                            │
    │    ├─ compute_committed / enhance                               │
    │    └─ stock status buckets                                      │
    ├─────────────────────────────────────────────────────────────────┤
    │  Availability Checker                                           │
    ├─────────────────────────────────────────────────────────────────┤
    │  Inventory Forecaster                                           │
    │    ├─ Demand projection (4 weekly buckets)                      │
    │    ├─ Reorder point / EOQ                                       │
    │    └─ Stockout risk + recommendation                            │
    └─────────────────────────────────────────────────────────────────┘

The REST router lives in ``backend.smart_inventory.api_analytics`` and is not
imported here.

Dependencies:
    - pandas: Tabular exports
    - numpy: Consumption statistics
"""

from .stock_ledger import (
    EnhancedMaterial,
    StockStatus,
    build_enhanced_materials,
    calculate_committed_quantity,
    compute_committed,
    enhance,
    enhance_material,
    find_enhanced,
    get_materials_needing_reorder,
    get_orders_affecting_material,
    get_stock_status,
    index_by_id,
    ledger_to_dataframe,
)
from .availability import (
    AvailabilityResult,
    MaterialRequirement,
    Shortage,
    check_availability,
)
from .inventory_forecaster import (
    DemandProjection,
    ForecastConfig,
    InventoryForecast,
    InventoryForecaster,
    ReasonCode,
    ReorderAction,
    ReorderRecommendation,
    UrgencyLevel,
    forecasts_to_dataframe,
)

__all__ = [
    # Stock ledger
    "EnhancedMaterial",
    "StockStatus",
    "build_enhanced_materials",
    "calculate_committed_quantity",
    "compute_committed",
    "enhance",
    "enhance_material",
    "find_enhanced",
    "get_materials_needing_reorder",
    "get_orders_affecting_material",
    "get_stock_status",
    "index_by_id",
    "ledger_to_dataframe",
    # Availability
    "AvailabilityResult",
    "MaterialRequirement",
    "Shortage",
    "check_availability",
    # Forecaster
    "DemandProjection",
    "ForecastConfig",
    "InventoryForecast",
    "InventoryForecaster",
    "ReasonCode",
    "ReorderAction",
    "ReorderRecommendation",
    "UrgencyLevel",
    "forecasts_to_dataframe",
]

__version__ = "1.0.0"
