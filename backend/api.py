from __future__ import annotations

from typing import Any, Dict
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .dashboards.predictive_dashboard import generate_predictive_dashboard
from .data_loader import load_snapshot, refresh_snapshot
from .feature_flags import FeatureFlags, get_active_engines
from .smart_inventory.api_analytics import router as analytics_router
from .smart_inventory.stock_ledger import build_enhanced_materials

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Apply PINPLAN_LOG_LEVEL to the backend logger tree."""
    level = FeatureFlags.get_config().log_level
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("backend").setLevel(level)


configure_logging()

app = FastAPI(title="PinPlan Materials Analytics")
app.include_router(analytics_router)
logger.info("Analytics API loaded successfully")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------
# Endpoints
# -------------------------------

@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/config")
def get_config() -> Dict[str, Any]:
    return get_active_engines()


def _load_snapshot_or_503(refresh: bool = False):
    try:
        return refresh_snapshot() if refresh else load_snapshot()
    except FileNotFoundError as e:
        logger.warning(f"Snapshot unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        logger.warning(f"Invalid snapshot workbook: {e}")
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/snapshot/materials")
def get_snapshot_materials(refresh: bool = False) -> Dict[str, Any]:
    """Enhanced materials of the workbook snapshot."""
    bundle = _load_snapshot_or_503(refresh)
    return {
        "loaded_at": bundle.loaded_at.isoformat(),
        "materials": [em.to_dict() for em in build_enhanced_materials(bundle.materials, bundle.orders)],
    }


@app.get("/snapshot/dashboard")
def get_snapshot_dashboard(refresh: bool = False) -> Dict[str, Any]:
    """Predictive dashboard of the workbook snapshot."""
    bundle = _load_snapshot_or_503(refresh)
    dashboard = generate_predictive_dashboard(bundle.materials, bundle.orders, bundle.boms)
    return dashboard.to_dict()
