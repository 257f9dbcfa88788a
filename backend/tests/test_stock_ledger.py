"""
═══════════════════════════════════════════════════════════════════════════════
                    PINPLAN — Stock Ledger Unit Tests
═══════════════════════════════════════════════════════════════════════════════

Committed vs available stock derived from active production orders.

Run with: python -m pytest backend/tests/test_stock_ledger.py -v
"""

import pytest

from backend.production.models import OrderStatus, ProductionOrder
from backend.smart_inventory.stock_ledger import (
    StockStatus,
    build_enhanced_materials,
    calculate_committed_quantity,
    compute_committed,
    enhance,
    find_enhanced,
    get_materials_needing_reorder,
    get_orders_affecting_material,
    get_stock_status,
    ledger_to_dataframe,
)


class TestCommittedQuantity:
    """Only pending and in-production orders reserve stock."""

    def test_pending_order_commits(self, make_material, make_order):
        materials = [make_material("M1", stock=100)]
        orders = [make_order(commitments={"M1": 30})]
        assert compute_committed(materials, orders) == {"M1": 30}

    def test_in_production_order_commits(self, make_material, make_order):
        materials = [make_material("M1", stock=100)]
        orders = [make_order(status=OrderStatus.IN_PRODUCTION, commitments={"M1": 12})]
        assert compute_committed(materials, orders)["M1"] == 12

    @pytest.mark.parametrize("status", [
        OrderStatus.NEW,
        OrderStatus.COMPLETED,
        OrderStatus.STOCKED,
        OrderStatus.CANCELLED,
    ])
    def test_inactive_orders_do_not_commit(self, make_material, make_order, status):
        materials = [make_material("M1", stock=100)]
        orders = [make_order(status=status, commitments={"M1": 30})]
        assert compute_committed(materials, orders).get("M1", 0) == 0

    def test_sums_across_orders(self, make_material, make_order):
        materials = [make_material("M1"), make_material("M2")]
        orders = [
            make_order("PO-1", commitments={"M1": 10, "M2": 5}),
            make_order("PO-2", status=OrderStatus.IN_PRODUCTION, commitments={"M1": 7}),
            make_order("PO-3", status=OrderStatus.CANCELLED, commitments={"M1": 100}),
        ]
        assert compute_committed(materials, orders) == {"M1": 17, "M2": 5}

    def test_single_material_form_matches(self, make_material, make_order):
        materials = [make_material("M1")]
        orders = [
            make_order("PO-1", commitments={"M1": 10}),
            make_order("PO-2", commitments={"M1": 4}),
            make_order("PO-3", status=OrderStatus.NEW, commitments={"M1": 50}),
        ]
        assert calculate_committed_quantity("M1", orders) == compute_committed(materials, orders)["M1"]

    def test_missing_commitments_array_counts_as_zero(self, make_material):
        order = ProductionOrder.from_dict({
            "id": "PO-1", "bomId": "BOM-A", "productName": "X",
            "quantityProduced": 1, "status": "Đang chờ",
        })
        enhanced = build_enhanced_materials([make_material("M1", stock=50)], [order])
        assert enhanced[0].committed_quantity == 0
        assert enhanced[0].available_stock == 50

    def test_commitment_to_unknown_material_is_kept(self, make_material, make_order):
        committed = compute_committed([make_material("M1")], [make_order(commitments={"GHOST": 3})])
        assert committed == {"GHOST": 3}


class TestEnhancedMaterials:
    """Available stock and status buckets."""

    def test_scenario_a_good_stock(self, make_material, make_order):
        enhanced = build_enhanced_materials(
            [make_material("M1", stock=100)],
            [make_order(commitments={"M1": 30})],
        )
        em = enhanced[0]
        assert em.committed_quantity == 30
        assert em.available_stock == 70
        assert em.stock_status == StockStatus.GOOD_STOCK
        assert em.commitment_ratio == pytest.approx(30.0)

    def test_scenario_b_low_stock(self, make_material, make_order):
        enhanced = build_enhanced_materials(
            [make_material("M2", stock=20)],
            [make_order(commitments={"M2": 18})],
        )
        assert enhanced[0].available_stock == 2
        assert enhanced[0].stock_status == StockStatus.LOW_STOCK

    def test_over_commitment_floors_available_at_zero(self, make_material, make_order):
        enhanced = build_enhanced_materials(
            [make_material("M1", stock=10)],
            [make_order(commitments={"M1": 15})],
        )
        em = enhanced[0]
        assert em.committed_quantity == 15
        assert em.available_stock == 0
        assert em.stock_status == StockStatus.OUT_OF_STOCK
        assert em.commitment_ratio == pytest.approx(150.0)

    def test_zero_stock_is_out_of_stock(self, make_material):
        em = enhance([make_material("M1", stock=0)], {})[0]
        assert em.stock_status == StockStatus.OUT_OF_STOCK
        assert em.commitment_ratio == 0

    @pytest.mark.parametrize("available,total,expected", [
        (0, 100, StockStatus.OUT_OF_STOCK),
        (19, 100, StockStatus.LOW_STOCK),
        (20, 100, StockStatus.MEDIUM_STOCK),
        (49, 100, StockStatus.MEDIUM_STOCK),
        (50, 100, StockStatus.GOOD_STOCK),
        (5, 0, StockStatus.OUT_OF_STOCK),
    ])
    def test_status_thresholds(self, available, total, expected):
        assert get_stock_status(available, total) == expected

    def test_available_invariant(self, make_material, make_order):
        materials = [make_material("M1", stock=40), make_material("M2", stock=5), make_material("M3", stock=0)]
        orders = [
            make_order("PO-1", commitments={"M1": 25, "M2": 9}),
            make_order("PO-2", status=OrderStatus.IN_PRODUCTION, commitments={"M1": 10, "M3": 1}),
            make_order("PO-3", status=OrderStatus.COMPLETED, commitments={"M1": 99}),
        ]
        for em in build_enhanced_materials(materials, orders):
            assert em.committed_quantity == calculate_committed_quantity(em.id, orders)
            assert em.available_stock == max(0, em.stock - em.committed_quantity)
            assert em.committed_quantity >= 0

    def test_to_dict_merges_material_fields(self, make_material, make_order):
        em = build_enhanced_materials([make_material("M1", stock=100)], [make_order(commitments={"M1": 30})])[0]
        data = em.to_dict()
        assert data["id"] == "M1"
        assert data["purchasePrice"] == 1000
        assert data["availableStock"] == 70
        assert data["stockStatus"] == "good-stock"


class TestLedgerQueries:

    def test_materials_needing_reorder(self, make_material, make_order):
        materials = [make_material("M1", stock=100, min_stock=10), make_material("M2", stock=30, min_stock=10)]
        orders = [make_order(commitments={"M2": 20})]
        needing = get_materials_needing_reorder(build_enhanced_materials(materials, orders))
        assert [em.id for em in needing] == ["M2"]

    def test_orders_affecting_material_include_all_statuses(self, make_order):
        orders = [
            make_order("PO-1", commitments={"M1": 1}),
            make_order("PO-2", status=OrderStatus.COMPLETED, commitments={"M1": 2}),
            make_order("PO-3", commitments={"M2": 3}),
        ]
        assert [o.id for o in get_orders_affecting_material("M1", orders)] == ["PO-1", "PO-2"]

    def test_find_enhanced(self, make_material):
        enhanced = enhance([make_material("M1"), make_material("M2")], {})
        assert find_enhanced(enhanced, "M2").id == "M2"
        assert find_enhanced(enhanced, "M9") is None

    def test_ledger_dataframe(self, make_material, make_order):
        enhanced = build_enhanced_materials(
            [make_material("M1", stock=100), make_material("M2", stock=20)],
            [make_order(commitments={"M1": 30, "M2": 18})],
        )
        df = ledger_to_dataframe(enhanced)
        assert list(df.columns) == [
            "material_id", "sku", "stock", "committed_quantity",
            "available_stock", "stock_status", "commitment_ratio",
        ]
        assert df.set_index("material_id").loc["M2", "stock_status"] == "low-stock"
        assert df["available_stock"].tolist() == [70, 2]

    def test_ledger_dataframe_empty(self):
        assert ledger_to_dataframe([]).empty
