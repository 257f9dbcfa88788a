"""
Availability check for a list of material requirements.

The check is advisory and read-only: it neither reserves nor mutates stock.
Two orders checked concurrently against the same material can both pass, so
the persistence layer must commit reservations with an atomic
"commit if available" update and re-run the ledger afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Union

from .stock_ledger import EnhancedMaterial, index_by_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterialRequirement:
    material_id: str
    quantity: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MaterialRequirement":
        material_id = data.get("materialId", data.get("material_id"))
        quantity = data.get("quantity", data.get("requiredQuantity", 0))
        return cls(material_id=str(material_id), quantity=float(quantity or 0))


@dataclass(frozen=True)
class Shortage:
    material_id: str
    required: float
    available: float

    @property
    def missing(self) -> float:
        return max(0.0, self.required - self.available)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "materialId": self.material_id,
            "required": self.required,
            "available": self.available,
        }


@dataclass(frozen=True)
class AvailabilityResult:
    is_available: bool
    shortages: List[Shortage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isAvailable": self.is_available,
            "shortages": [s.to_dict() for s in self.shortages],
        }


RequirementLike = Union[MaterialRequirement, Tuple[str, float]]


def _normalize(requirement: RequirementLike) -> MaterialRequirement:
    if isinstance(requirement, MaterialRequirement):
        return requirement
    material_id, quantity = requirement
    return MaterialRequirement(material_id=material_id, quantity=quantity)


def check_availability(
    requirements: Iterable[RequirementLike],
    enhanced_materials: Sequence[EnhancedMaterial],
) -> AvailabilityResult:
    """
    Check that every requirement fits in available stock.

    Args:
        requirements: (material_id, quantity) pairs or MaterialRequirement
        enhanced_materials: Current ledger view

    Returns:
        AvailabilityResult; shortages holds exactly the failing requirements.
        A material absent from the ledger is a shortage with available = 0.
    """
    by_id = index_by_id(enhanced_materials)
    shortages: List[Shortage] = []

    for requirement in map(_normalize, requirements):
        material = by_id.get(requirement.material_id)
        if material is None:
            logger.debug(f"Material {requirement.material_id} not in ledger, treating as unavailable")
            shortages.append(Shortage(requirement.material_id, requirement.quantity, 0.0))
            continue
        if material.available_stock < requirement.quantity:
            shortages.append(
                Shortage(requirement.material_id, requirement.quantity, material.available_stock)
            )

    return AvailabilityResult(is_available=not shortages, shortages=shortages)
