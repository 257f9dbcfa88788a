"""
PinPlan — REST API Tests

Analytics router over request snapshots, plus the workbook-backed endpoints.
"""

import pytest

from backend import data_loader


class TestStockEndpoints:

    def test_enhanced_materials(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/stock/enhanced", json=snapshot_payload)
        assert response.status_code == 200
        data = response.json()
        assert [m["availableStock"] for m in data] == [70, 2]
        assert [m["stockStatus"] for m in data] == ["good-stock", "low-stock"]
        assert data[0]["committedQuantity"] == 30

    def test_availability(self, test_client, snapshot_payload):
        payload = dict(snapshot_payload, requirements=[
            {"materialId": "M1", "quantity": 70},
            {"materialId": "M2", "quantity": 5},
        ])
        response = test_client.post("/analytics/stock/availability", json=payload)
        assert response.status_code == 200
        assert response.json() == {
            "isAvailable": False,
            "shortages": [{"materialId": "M2", "required": 5, "available": 2}],
        }

    def test_availability_rejects_negative_quantity(self, test_client, snapshot_payload):
        payload = dict(snapshot_payload, requirements=[{"materialId": "M1", "quantity": -1}])
        assert test_client.post("/analytics/stock/availability", json=payload).status_code == 422


class TestCostEndpoint:

    def test_predict_pending_order(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/cost/predict/PO-1", json=snapshot_payload)
        assert response.status_code == 200
        data = response.json()
        assert data["orderId"] == "PO-1"
        assert data["predictedTotalCost"] == 1_050_000
        assert data["confidenceLevel"] == 0.6
        assert data["basedOnHistoricalOrders"] == 0
        assert data["riskAssessment"]["overallRisk"] == "medium"
        assert data["lastUpdated"] == "2024-04-10T09:00:00"

    def test_pinned_as_of_gives_identical_responses(self, test_client, snapshot_payload):
        first = test_client.post("/analytics/cost/predict/PO-1", json=snapshot_payload).json()
        second = test_client.post("/analytics/cost/predict/PO-1", json=snapshot_payload).json()
        assert first == second

    def test_negative_purchase_price_is_not_a_server_error(self, test_client, snapshot_payload):
        snapshot_payload["materials"][0]["purchasePrice"] = -1000
        response = test_client.post("/analytics/inventory/forecast", json=snapshot_payload)
        assert response.status_code == 200
        assert response.json()[0]["optimalOrderQuantity"] == 605

    def test_unknown_order(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/cost/predict/PO-404", json=snapshot_payload)
        assert response.status_code == 404

    def test_unknown_bom(self, test_client, snapshot_payload):
        snapshot_payload["boms"] = []
        response = test_client.post("/analytics/cost/predict/PO-1", json=snapshot_payload)
        assert response.status_code == 404
        assert "BOM-A" in response.json()["detail"]

    def test_invalid_status(self, test_client, snapshot_payload):
        snapshot_payload["orders"][0]["status"] = "bogus"
        response = test_client.post("/analytics/cost/predict/PO-1", json=snapshot_payload)
        assert response.status_code == 422
        assert "bogus" in response.json()["detail"]

    def test_material_without_id(self, test_client, snapshot_payload):
        del snapshot_payload["materials"][0]["id"]
        assert test_client.post("/analytics/stock/enhanced", json=snapshot_payload).status_code == 422


class TestInventoryEndpoints:

    def test_forecast_all_materials(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/inventory/forecast", json=snapshot_payload)
        assert response.status_code == 200
        data = response.json()
        assert [f["materialId"] for f in data] == ["M1", "M2"]
        # PO-1 needs 2 x 10 of M1, consumed from 2024-04-10
        assert data[0]["projectedDemand"][0]["projectedDemand"] == 27
        assert data[0]["projectedDemand"][0]["basedOnOrders"] == ["PO-1"]

    def test_forecast_single_material(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/inventory/forecast?material_id=M2", json=snapshot_payload)
        assert response.status_code == 200
        [forecast] = response.json()
        assert forecast["materialId"] == "M2"
        assert forecast["currentStock"] == 2
        assert forecast["recommendedAction"]["reasonCode"] == "CRITICAL_LOW_STOCK"

    def test_forecast_unknown_material(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/inventory/forecast?material_id=M9", json=snapshot_payload)
        assert response.status_code == 404

    def test_alerts(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/inventory/alerts", json=snapshot_payload)
        assert [f["materialId"] for f in response.json()] == ["M2"]

    def test_summary(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/inventory/summary", json=snapshot_payload)
        assert response.status_code == 200
        assert response.json() == {
            "totalMaterials": 2,
            "criticalLowStock": 1,
            "adequateStock": 1,
            "overStock": 0,
            "totalValueAtRisk": 1000.0,
        }

    def test_empty_snapshot(self, test_client):
        response = test_client.post("/analytics/inventory/summary", json={})
        assert response.status_code == 200
        assert response.json()["totalMaterials"] == 0


class TestDashboardEndpoint:

    def test_dashboard(self, test_client, snapshot_payload):
        response = test_client.post("/analytics/dashboard", json=snapshot_payload)
        assert response.status_code == 200
        data = response.json()
        assert [p["orderId"] for p in data["predictions"]] == ["PO-1", "PO-2"]
        assert data["overview"]["totalPredictedCost"] == 1_575_000
        assert data["overview"]["costVariance"] == 75_000
        assert data["inventorySummary"]["criticalLowStock"] == 1
        assert data["generatedAt"] == "2024-04-10T09:00:00"

    def test_dashboard_with_cost_prediction_disabled(self, test_client, snapshot_payload, monkeypatch):
        from backend.feature_flags import FeatureFlags

        monkeypatch.setenv("PINPLAN_ENABLE_COST_PREDICTION", "false")
        FeatureFlags.reset()
        data = test_client.post("/analytics/dashboard", json=snapshot_payload).json()
        assert data["predictions"] == []
        assert test_client.get("/analytics/config").json()["features"]["cost_prediction"] is False


class TestServiceEndpoints:

    def test_health(self, test_client):
        assert test_client.get("/health").json() == {"status": "ok"}

    @pytest.mark.parametrize("path", ["/config", "/analytics/config"])
    def test_config(self, test_client, path):
        data = test_client.get(path).json()
        assert data["supplier_reliability_source"] == "fixed"
        assert data["features"] == {"cost_prediction": True, "inventory_forecast": True}


class TestSnapshotEndpoints:

    def test_materials_from_workbook(self, test_client, snapshot_workbook):
        response = test_client.get("/snapshot/materials")
        assert response.status_code == 200
        data = response.json()
        assert [m["availableStock"] for m in data["materials"]] == [70, 2]
        assert "loaded_at" in data

    def test_dashboard_from_workbook(self, test_client, snapshot_workbook):
        response = test_client.get("/snapshot/dashboard?refresh=true")
        assert response.status_code == 200
        data = response.json()
        # H-1 is completed; only PO-1 is predicted
        assert [p["orderId"] for p in data["predictions"]] == ["PO-1"]
        assert len(data["forecasts"]) == 2

    def test_missing_workbook_is_503(self, test_client, tmp_path, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_WORKBOOK_PATH", str(tmp_path / "missing.xlsx"))
        monkeypatch.setattr(data_loader, "_CACHE", None)
        assert test_client.get("/snapshot/materials").status_code == 503

    def test_invalid_workbook_is_422(self, test_client, tmp_path, monkeypatch, workbook_sheets, write_workbook):
        del workbook_sheets["bom_lines"]
        path = tmp_path / "partial.xlsx"
        write_workbook(path, workbook_sheets)
        monkeypatch.setenv("SNAPSHOT_WORKBOOK_PATH", str(path))
        monkeypatch.setattr(data_loader, "_CACHE", None)
        response = test_client.get("/snapshot/materials")
        assert response.status_code == 422
        assert "bom_lines" in response.json()["detail"]
