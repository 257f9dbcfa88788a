"""
PinPlan - Feature Flags System
==============================

Selection of signal providers and engine toggles for the analytics backend.

Usage:
    from backend.feature_flags import FeatureFlags, SupplierReliabilitySource

    if FeatureFlags.get_supplier_reliability_source() == SupplierReliabilitySource.DELIVERY_HISTORY:
        # Score suppliers from on-time delivery records
    else:
        # Fixed or simulated score

Configuration through environment variables:
    PINPLAN_SUPPLIER_RELIABILITY=delivery_history
    PINPLAN_FIXED_RELIABILITY=0.8
    PINPLAN_RELIABILITY_SEED=7
    PINPLAN_ENABLE_COST_PREDICTION=false
    PINPLAN_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import os
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class SupplierReliabilitySource(str, Enum):
    """
    Sources for the supplier reliability prediction factor.

    FIXED: Constant score (deterministic default)
    SIMULATED: Seeded pseudo-random score in [0.6, 0.95]
    DELIVERY_HISTORY: On-time delivery ratio of the BOM's suppliers
    """
    FIXED = "fixed"
    SIMULATED = "simulated"
    DELIVERY_HISTORY = "delivery_history"


# ═══════════════════════════════════════════════════════════════════════════════
# FEATURE FLAGS CLASS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FeatureFlagsConfig:
    """
    Feature flag configuration.

    Defaults keep every computation deterministic.
    """
    supplier_reliability_source: SupplierReliabilitySource = SupplierReliabilitySource.FIXED
    fixed_reliability: float = 0.775
    reliability_seed: int = 42

    # Feature toggles
    enable_cost_prediction: bool = True
    enable_inventory_forecast: bool = True

    log_level: str = "INFO"


class FeatureFlags:
    """
    Process-wide feature flag holder.

    Reads environment variables once, falling back to defaults.

    Usage:
        source = FeatureFlags.get_supplier_reliability_source()

        if FeatureFlags.is_enabled("cost_prediction"):
            ...

        config = FeatureFlags.get_config()
    """

    _instance: Optional[FeatureFlagsConfig] = None

    @classmethod
    def _load_from_env(cls) -> FeatureFlagsConfig:
        """Build the config from environment variables."""
        config = FeatureFlagsConfig()

        value = os.environ.get("PINPLAN_SUPPLIER_RELIABILITY")
        if value:
            try:
                config.supplier_reliability_source = SupplierReliabilitySource(value.lower())
                logger.info(f"Feature flag supplier_reliability_source = {value}")
            except ValueError:
                logger.warning(f"Invalid value for PINPLAN_SUPPLIER_RELIABILITY: {value}")

        numeric_mapping = {
            "PINPLAN_FIXED_RELIABILITY": ("fixed_reliability", float),
            "PINPLAN_RELIABILITY_SEED": ("reliability_seed", int),
        }
        for env_var, (attr_name, cast) in numeric_mapping.items():
            value = os.environ.get(env_var)
            if value:
                try:
                    setattr(config, attr_name, cast(value))
                except ValueError:
                    logger.warning(f"Invalid value for {env_var}: {value}")

        # Boolean flags
        bool_mapping = {
            "PINPLAN_ENABLE_COST_PREDICTION": "enable_cost_prediction",
            "PINPLAN_ENABLE_INVENTORY_FORECAST": "enable_inventory_forecast",
        }
        for env_var, attr_name in bool_mapping.items():
            value = os.environ.get(env_var)
            if value:
                setattr(config, attr_name, value.lower() in ("true", "1", "yes"))

        level = os.environ.get("PINPLAN_LOG_LEVEL")
        if level:
            if isinstance(logging.getLevelName(level.upper()), int):
                config.log_level = level.upper()
            else:
                logger.warning(f"Invalid value for PINPLAN_LOG_LEVEL: {level}")

        return config

    @classmethod
    def get_config(cls) -> FeatureFlagsConfig:
        """Current configuration."""
        if cls._instance is None:
            cls._instance = cls._load_from_env()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached config so the next read reloads it."""
        cls._instance = None

    @classmethod
    def get_supplier_reliability_source(cls) -> SupplierReliabilitySource:
        return cls.get_config().supplier_reliability_source

    @classmethod
    def is_enabled(cls, feature: str) -> bool:
        """
        Whether a feature toggle is on.

        Args:
            feature: Feature name (cost_prediction, inventory_forecast)
        """
        config = cls.get_config()
        feature_map = {
            "cost_prediction": config.enable_cost_prediction,
            "inventory_forecast": config.enable_inventory_forecast,
        }
        return feature_map.get(feature, False)


def get_active_engines() -> Dict[str, Any]:
    """Summary of the active configuration (served by /analytics/config)."""
    config = FeatureFlags.get_config()
    return {
        "supplier_reliability_source": config.supplier_reliability_source.value,
        "fixed_reliability": config.fixed_reliability,
        "reliability_seed": config.reliability_seed,
        "features": {
            "cost_prediction": config.enable_cost_prediction,
            "inventory_forecast": config.enable_inventory_forecast,
        },
        "log_level": config.log_level,
    }
