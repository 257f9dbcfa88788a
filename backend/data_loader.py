"""
Utilities for loading the Excel-based materials snapshot into domain objects.

Workbook layout (one row per record, snake_case headers):
    materials          id, name, sku, unit, purchase_price, retail_price,
                       wholesale_price, stock, min_stock, supplier
    boms               id, product_name, product_sku, notes
    bom_lines          bom_id, material_id, quantity
    production_orders  id, bom_id, product_name, quantity_produced, status,
                       creation_date, materials_cost, total_cost,
                       completed_at, total_actual_cost, notes
    order_materials    order_id, material_id, quantity, estimated_cost,
                       actual_cost, actual_quantity_used
    additional_costs   order_id, description, amount, actual   (optional)
"""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from dotenv import load_dotenv

from .production.lifecycle import calculate_cost_analysis
from .production.models import (
    BOM,
    ActualCosts,
    AdditionalCost,
    Material,
    OrderStatus,
    ProductionOrder,
)
from .smart_inventory.inventory_forecaster import InventoryForecaster, forecasts_to_dataframe
from .smart_inventory.stock_ledger import build_enhanced_materials, ledger_to_dataframe

logger = logging.getLogger(__name__)

# Load environment variables from env if present
load_dotenv()

# Environment variable that may override the workbook path
DATA_FILE_ENV = "SNAPSHOT_WORKBOOK_PATH"

# Default workbook path (relative to project root)
DEFAULT_WORKBOOK = Path(__file__).resolve().parents[1] / "data" / "materials_snapshot.xlsx"

# Sheets that MUST exist in the workbook
REQUIRED_SHEETS = (
    "materials",
    "boms",
    "bom_lines",
    "production_orders",
    "order_materials",
)

OPTIONAL_SHEETS = ("additional_costs",)


# ---------------------------------------------------
# Data container
# ---------------------------------------------------

@dataclass(frozen=True)
class SnapshotBundle:
    """Domain snapshot read from the workbook plus metadata."""

    materials: List[Material]
    boms: List[BOM]
    orders: List[ProductionOrder]

    raw_path: Path
    loaded_at: datetime


# Cache: the workbook is only read once
_CACHE: Optional[SnapshotBundle] = None


# ---------------------------------------------------
# Cleaning utilities
# ---------------------------------------------------

def _coerce_datetime(series: pd.Series) -> pd.Series:
    return pd.to_datetime(series, errors="coerce")


def _coerce_numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce")


def _clean_materials(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    for column in ("purchase_price", "retail_price", "wholesale_price", "stock", "min_stock"):
        if column in df.columns:
            df[column] = _coerce_numeric(df[column])
    if "stock" in df.columns:
        df["stock"] = df["stock"].fillna(0).clip(lower=0)
    return df


def _clean_orders(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    for column in ("creation_date", "completed_at"):
        if column in df.columns:
            df[column] = _coerce_datetime(df[column])
    for column in ("quantity_produced", "materials_cost", "total_cost", "total_actual_cost"):
        if column in df.columns:
            df[column] = _coerce_numeric(df[column])
    return df


def _clean_quantities(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    for column in ("quantity", "estimated_cost", "actual_cost", "actual_quantity_used", "amount"):
        if column in df.columns:
            df[column] = _coerce_numeric(df[column])
    return df


_CLEANERS: Dict[str, Callable[[pd.DataFrame], pd.DataFrame]] = {
    "materials": _clean_materials,
    "production_orders": _clean_orders,
    "bom_lines": _clean_quantities,
    "order_materials": _clean_quantities,
    "additional_costs": _clean_quantities,
}


def as_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    DataFrame rows as dicts; NaN and NaT cells become None.
    """
    if df.empty:
        return []
    # object dtype keeps None instead of converting it back to NaN/NaT
    cleaned = df.astype(object).where(pd.notna(df), None)
    records = cleaned.to_dict(orient="records")
    for record in records:
        for key, value in record.items():
            if isinstance(value, pd.Timestamp):
                record[key] = value.to_pydatetime()
    return records


# ---------------------------------------------------
# Workbook resolution
# ---------------------------------------------------

def _resolve_workbook_path() -> Path:
    """Return the workbook path, prioritizing environment override."""
    env_path = os.getenv(DATA_FILE_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_WORKBOOK


def _read_sheet(excel_file: pd.ExcelFile, sheet: str) -> pd.DataFrame:
    """Read a sheet and apply cleaning if needed."""
    frame = excel_file.parse(sheet)
    cleaner = _CLEANERS.get(sheet)
    return cleaner(frame) if cleaner else frame


# ---------------------------------------------------
# Record assembly
# ---------------------------------------------------

def _group_by(records: List[Dict[str, Any]], key: str) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for record in records:
        if record.get(key) is not None:
            grouped[str(record[key])].append(record)
    return grouped


def _build_materials(records: List[Dict[str, Any]]) -> List[Material]:
    materials: List[Material] = []
    for row in records:
        if row.get("id") is None:
            logger.warning(f"Skipping material row without id: {row}")
            continue
        materials.append(Material.from_dict(row))
    return materials


def _build_boms(bom_records: List[Dict[str, Any]], line_records: List[Dict[str, Any]]) -> List[BOM]:
    lines = _group_by(line_records, "bom_id")
    boms: List[BOM] = []
    for row in bom_records:
        if row.get("id") is None:
            logger.warning(f"Skipping BOM row without id: {row}")
            continue
        row = dict(row, materials=lines.get(str(row["id"]), []))
        boms.append(BOM.from_dict(row))
    return boms


def _build_order(
    row: Dict[str, Any],
    lines: List[Dict[str, Any]],
    extra_costs: List[Dict[str, Any]],
) -> ProductionOrder:
    estimated_extra = [c for c in extra_costs if not c.get("actual")]
    actual_extra = [c for c in extra_costs if c.get("actual")]
    order = ProductionOrder.from_dict(dict(
        row,
        committed_materials=lines,
        additional_costs=estimated_extra,
    ))

    total_actual = row.get("total_actual_cost")
    if order.status != OrderStatus.COMPLETED or total_actual is None:
        return order

    actual_costs = ActualCosts(
        material_costs=list(order.committed_materials),
        other_costs=[AdditionalCost.from_dict(c) for c in actual_extra],
        total_actual_cost=float(total_actual),
    )
    return replace(
        order,
        actual_costs=actual_costs,
        cost_analysis=calculate_cost_analysis(order, actual_costs),
    )


def _build_orders(
    order_records: List[Dict[str, Any]],
    line_records: List[Dict[str, Any]],
    cost_records: List[Dict[str, Any]],
) -> List[ProductionOrder]:
    lines = _group_by(line_records, "order_id")
    costs = _group_by(cost_records, "order_id")
    orders: List[ProductionOrder] = []
    for row in order_records:
        if row.get("id") is None:
            logger.warning(f"Skipping production order row without id: {row}")
            continue
        order_id = str(row["id"])
        try:
            orders.append(_build_order(row, lines.get(order_id, []), costs.get(order_id, [])))
        except (KeyError, ValueError) as e:
            logger.warning(f"Skipping production order {order_id}: {e}")
    return orders


# ---------------------------------------------------
# Main snapshot loader
# ---------------------------------------------------

def load_snapshot() -> SnapshotBundle:
    """Load the workbook into a cached SnapshotBundle."""
    global _CACHE

    if _CACHE is not None:
        return _CACHE

    workbook_path = _resolve_workbook_path()

    if not workbook_path.exists():
        raise FileNotFoundError(f"Snapshot workbook not found at: {workbook_path}")

    excel = pd.ExcelFile(workbook_path)

    # Validate required sheets
    for sheet in REQUIRED_SHEETS:
        if sheet not in excel.sheet_names:
            raise ValueError(
                f"Missing required sheet '{sheet}'. Available: {excel.sheet_names}"
            )

    sheets = {sheet: as_records(_read_sheet(excel, sheet)) for sheet in REQUIRED_SHEETS}
    for sheet in OPTIONAL_SHEETS:
        sheets[sheet] = as_records(_read_sheet(excel, sheet)) if sheet in excel.sheet_names else []

    materials = _build_materials(sheets["materials"])
    boms = _build_boms(sheets["boms"], sheets["bom_lines"])
    orders = _build_orders(sheets["production_orders"], sheets["order_materials"], sheets["additional_costs"])

    logger.info(
        f"Snapshot loaded from {workbook_path}: {len(materials)} materials, "
        f"{len(boms)} BOMs, {len(orders)} orders"
    )

    _CACHE = SnapshotBundle(
        materials=materials,
        boms=boms,
        orders=orders,
        raw_path=workbook_path,
        loaded_at=datetime.now(),
    )

    return _CACHE


def refresh_snapshot() -> SnapshotBundle:
    """
    Reload the workbook ignoring the current cache.
    Useful when the file changes.
    """
    global _CACHE
    _CACHE = None
    return load_snapshot()


# ---------------------------------------------------
# Export
# ---------------------------------------------------

def export_analytics(
    bundle: SnapshotBundle,
    output_path: Path,
    clock: Optional[Callable[[], datetime]] = None,
) -> Path:
    """
    Write the ledger and the inventory forecast of a snapshot to a workbook.

    Sheets: ``ledger`` and ``forecast``.
    """
    enhanced = build_enhanced_materials(bundle.materials, bundle.orders)
    forecaster = InventoryForecaster(bundle.materials, bundle.orders, bundle.boms, clock=clock)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        ledger_to_dataframe(enhanced).to_excel(writer, sheet_name="ledger", index=False)
        forecasts_to_dataframe(forecaster.generate_inventory_forecast()).to_excel(
            writer, sheet_name="forecast", index=False
        )

    logger.info(f"Analytics exported to {output_path}")
    return output_path
