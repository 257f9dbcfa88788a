"""
Shared fixtures for the backend tests.
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from backend.feature_flags import FeatureFlags
from backend.production.models import (
    BOM,
    BomMaterial,
    CostAnalysis,
    Material,
    MaterialCommitment,
    OrderStatus,
    ProductionOrder,
)

# Wednesday in April: no seasonal adjustment over the 4 forecast weeks and
# no peak-season capacity risk
FIXED_NOW = datetime(2024, 4, 10, 9, 0, 0)

_ENV_VARS = (
    "PINPLAN_SUPPLIER_RELIABILITY",
    "PINPLAN_FIXED_RELIABILITY",
    "PINPLAN_RELIABILITY_SEED",
    "PINPLAN_ENABLE_COST_PREDICTION",
    "PINPLAN_ENABLE_INVENTORY_FORECAST",
    "PINPLAN_LOG_LEVEL",
    "SNAPSHOT_WORKBOOK_PATH",
)


@pytest.fixture(autouse=True)
def clean_feature_flags(monkeypatch):
    """Every test starts from default flags and a clean environment."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    FeatureFlags.reset()
    yield
    FeatureFlags.reset()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def make_material() -> Callable[..., Material]:
    def _make(material_id: str = "M1", stock: float = 100, **kwargs: Any) -> Material:
        defaults: Dict[str, Any] = {
            "name": f"Material {material_id}",
            "sku": f"SKU-{material_id}",
            "unit": "pcs",
            "purchase_price": 1000,
            "min_stock": 10,
            "supplier": "SUP-A",
        }
        defaults.update(kwargs)
        return Material(id=material_id, stock=stock, **defaults)
    return _make


@pytest.fixture
def make_order() -> Callable[..., ProductionOrder]:
    def _make(
        order_id: str = "PO-1",
        status: OrderStatus = OrderStatus.PENDING,
        commitments: Optional[Dict[str, float]] = None,
        bom_id: str = "BOM-A",
        product_name: str = "Battery Pack",
        quantity: float = 10,
        total_cost: float = 1000,
        creation_date: datetime = FIXED_NOW,
        **kwargs: Any,
    ) -> ProductionOrder:
        lines = [
            MaterialCommitment(material_id=mid, quantity=qty)
            for mid, qty in (commitments or {}).items()
        ]
        return ProductionOrder(
            id=order_id,
            bom_id=bom_id,
            product_name=product_name,
            quantity_produced=quantity,
            status=status,
            creation_date=creation_date,
            total_cost=total_cost,
            committed_materials=lines,
            **kwargs,
        )
    return _make


@pytest.fixture
def make_history(make_order) -> Callable[..., List[ProductionOrder]]:
    """Completed orders with a cost analysis, oldest first."""
    def _make(
        count: int,
        actual_cost: float = 1100,
        total_cost: float = 1000,
        material_variances: Optional[List[float]] = None,
        quantity: float = 100,
        product_name: str = "Battery Pack",
        bom_id: str = "BOM-A",
    ) -> List[ProductionOrder]:
        variances = material_variances or [50.0] * count
        orders = []
        for i in range(count):
            orders.append(make_order(
                order_id=f"H-{i + 1}",
                status=OrderStatus.COMPLETED,
                total_cost=total_cost,
                quantity=quantity,
                product_name=product_name,
                bom_id=bom_id,
                creation_date=FIXED_NOW - timedelta(days=30 - i),
                cost_analysis=CostAnalysis(
                    estimated_cost=total_cost,
                    actual_cost=actual_cost,
                    variance=actual_cost - total_cost,
                    material_variance=variances[i],
                ),
            ))
        return orders
    return _make


@pytest.fixture
def bom_a() -> BOM:
    """Two-material BOM (low complexity)."""
    return BOM(
        id="BOM-A",
        product_name="Battery Pack",
        product_sku="BP-01",
        materials=[BomMaterial("M1", 1), BomMaterial("M2", 1)],
    )


@pytest.fixture
def snapshot_payload() -> Dict[str, Any]:
    """Camel-case snapshot as sent by the host application."""
    return {
        "materials": [
            {"id": "M1", "name": "Steel", "sku": "ST-1", "unit": "kg",
             "purchasePrice": 1000, "stock": 100, "minStock": 10, "supplier": "SUP-A"},
            {"id": "M2", "name": "Bolts", "sku": "BO-1", "unit": "pcs",
             "purchasePrice": 500, "stock": 20, "minStock": 5},
        ],
        "boms": [
            {"id": "BOM-A", "productName": "Battery Pack", "productSku": "BP-01",
             "materials": [{"materialId": "M1", "quantity": 2}, {"materialId": "M2", "quantity": 1}]},
        ],
        "orders": [
            {"id": "PO-1", "bomId": "BOM-A", "productName": "Battery Pack", "quantityProduced": 10,
             "status": "Đang chờ", "creationDate": "2024-04-09T08:00:00Z", "totalCost": 1000000,
             "committedMaterials": [{"materialId": "M1", "quantity": 30},
                                    {"materialId": "M2", "quantity": 18}]},
            {"id": "PO-2", "bomId": "BOM-A", "productName": "Battery Pack", "quantityProduced": 5,
             "status": "Mới", "creationDate": "2024-04-10T08:00:00", "totalCost": 500000},
        ],
        "as_of": FIXED_NOW.isoformat(),
    }


@pytest.fixture(scope="function")
def test_client():
    """FastAPI test client."""
    from backend.api import app
    return TestClient(app)


def _write_workbook(path, sheets: Dict[str, pd.DataFrame]) -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=name, index=False)


@pytest.fixture
def workbook_sheets() -> Dict[str, pd.DataFrame]:
    """Workbook snapshot: one pending order, one completed order, one invalid row."""
    return {
        "materials": pd.DataFrame([
            {"id": "M1", "name": "Steel", "sku": "ST-1", "unit": "kg", "purchase_price": 1000,
             "stock": 100, "min_stock": 10, "supplier": "SUP-A"},
            {"id": "M2", "name": "Bolts", "sku": "BO-1", "unit": "pcs", "purchase_price": 500,
             "stock": 20, "min_stock": 5, "supplier": None},
        ]),
        "boms": pd.DataFrame([
            {"id": "BOM-A", "product_name": "Battery Pack", "product_sku": "BP-01"},
        ]),
        "bom_lines": pd.DataFrame([
            {"bom_id": "BOM-A", "material_id": "M1", "quantity": 2},
            {"bom_id": "BOM-A", "material_id": "M2", "quantity": 1},
        ]),
        "production_orders": pd.DataFrame([
            {"id": "PO-1", "bom_id": "BOM-A", "product_name": "Battery Pack", "quantity_produced": 10,
             "status": "pending", "creation_date": datetime(2024, 4, 9, 8, 0), "materials_cost": 600,
             "total_cost": 1000, "completed_at": None, "total_actual_cost": None},
            {"id": "H-1", "bom_id": "BOM-A", "product_name": "Battery Pack", "quantity_produced": 10,
             "status": "Hoàn thành", "creation_date": datetime(2024, 3, 1, 8, 0), "materials_cost": 600,
             "total_cost": 1000, "completed_at": datetime(2024, 3, 5, 17, 0), "total_actual_cost": 1100},
            {"id": "PO-X", "bom_id": "BOM-A", "product_name": "Battery Pack", "quantity_produced": 1,
             "status": "bogus", "creation_date": datetime(2024, 4, 1, 8, 0), "materials_cost": 0,
             "total_cost": 0, "completed_at": None, "total_actual_cost": None},
        ]),
        "order_materials": pd.DataFrame([
            {"order_id": "PO-1", "material_id": "M1", "quantity": 30, "estimated_cost": 300,
             "actual_cost": None, "actual_quantity_used": None},
            {"order_id": "PO-1", "material_id": "M2", "quantity": 18, "estimated_cost": 300,
             "actual_cost": None, "actual_quantity_used": None},
            {"order_id": "H-1", "material_id": "M1", "quantity": 10, "estimated_cost": 600,
             "actual_cost": 650, "actual_quantity_used": 11},
        ]),
        "additional_costs": pd.DataFrame([
            {"order_id": "H-1", "description": "Labor", "amount": 100, "actual": False},
            {"order_id": "H-1", "description": "Labor", "amount": 150, "actual": True},
        ]),
    }


@pytest.fixture
def snapshot_workbook(tmp_path, monkeypatch, workbook_sheets):
    """Workbook on disk, selected through SNAPSHOT_WORKBOOK_PATH, with an empty cache."""
    from backend import data_loader

    path = tmp_path / "snapshot.xlsx"
    _write_workbook(path, workbook_sheets)
    monkeypatch.setenv("SNAPSHOT_WORKBOOK_PATH", str(path))
    monkeypatch.setattr(data_loader, "_CACHE", None)
    return path


@pytest.fixture
def write_workbook() -> Callable[..., None]:
    return _write_workbook
