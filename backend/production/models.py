"""
PinPlan - Production Domain Models
==================================

Snapshot objects supplied by the host application (materials, bills of
materials, production orders). The engines only read them; every transition
returns new objects.

Input dictionaries use the camelCase keys of the host application
(``purchasePrice``, ``committedMaterials``, ...). ``to_dict`` emits the same
keys so objects can be sent back over any JSON boundary.

Order statuses are a closed enum. The Vietnamese labels used by the shop floor
screens are accepted by ``OrderStatus.parse`` and exposed through
``OrderStatus.label`` but never compared against inside the engines.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ORDER STATUS
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStatus(str, Enum):
    """Production order lifecycle states."""
    NEW = "new"
    PENDING = "pending"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"
    STOCKED = "stocked"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        """Display label used by the shop floor UI."""
        return STATUS_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        """
        Parse an enum code or a display label.

        Raises:
            ValueError: unknown status
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for status, label in STATUS_LABELS.items():
            if text == label:
                return status
        try:
            return cls(text.lower())
        except ValueError:
            raise ValueError(f"Unknown production order status: {value!r}") from None


STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.NEW: "Mới",
    OrderStatus.PENDING: "Đang chờ",
    OrderStatus.IN_PRODUCTION: "Đang sản xuất",
    OrderStatus.COMPLETED: "Hoàn thành",
    OrderStatus.STOCKED: "Đã nhập kho",
    OrderStatus.CANCELLED: "Đã hủy",
}

# Only these statuses hold a reservation against material stock
ACTIVE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.IN_PRODUCTION}
)


# ═══════════════════════════════════════════════════════════════════════════════
# PARSING HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    # NaN from spreadsheet cells
    if number != number:
        return default
    return number


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    number = _as_float(value, default=float("nan"))
    return None if number != number else number


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO strings, dates and datetimes (pandas Timestamps included)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
# MATERIALS & BOM
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Material:
    """
    Raw material held in stock.

    Attributes:
        id: Material identifier
        name: Display name
        sku: Stock keeping unit code
        unit: Unit of measure (kg, pcs, m, ...)
        purchase_price: Unit purchase price (smallest currency unit)
        retail_price: Optional retail price
        wholesale_price: Optional wholesale price
        stock: Total on-hand quantity (committed quantity included)
        min_stock: Reorder alert threshold
        supplier: Preferred supplier identifier
    """
    id: str
    name: str = ""
    sku: str = ""
    unit: str = ""
    purchase_price: float = 0.0
    retail_price: Optional[float] = None
    wholesale_price: Optional[float] = None
    stock: float = 0.0
    min_stock: float = 0.0
    supplier: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Material":
        return cls(
            id=str(data["id"]),
            name=str(_pick(data, "name", default="")),
            sku=str(_pick(data, "sku", default="")),
            unit=str(_pick(data, "unit", default="")),
            purchase_price=max(0.0, _as_float(_pick(data, "purchasePrice", "purchase_price"))),
            retail_price=_as_optional_float(_pick(data, "retailPrice", "retail_price")),
            wholesale_price=_as_optional_float(_pick(data, "wholesalePrice", "wholesale_price")),
            stock=max(0.0, _as_float(_pick(data, "stock"))),
            min_stock=_as_float(_pick(data, "minStock", "min_stock")),
            supplier=_pick(data, "supplier"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "unit": self.unit,
            "purchasePrice": self.purchase_price,
            "retailPrice": self.retail_price,
            "wholesalePrice": self.wholesale_price,
            "stock": self.stock,
            "minStock": self.min_stock,
            "supplier": self.supplier,
        }


@dataclass(frozen=True)
class BomMaterial:
    """One BOM line: quantity of a material per finished unit."""
    material_id: str
    quantity: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BomMaterial":
        return cls(
            material_id=str(_pick(data, "materialId", "material_id")),
            quantity=_as_float(_pick(data, "quantity")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"materialId": self.material_id, "quantity": self.quantity}


@dataclass(frozen=True)
class BOM:
    """Bill of materials for one finished product."""
    id: str
    product_name: str
    product_sku: str = ""
    materials: List[BomMaterial] = field(default_factory=list)
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BOM":
        return cls(
            id=str(data["id"]),
            product_name=str(_pick(data, "productName", "product_name", default="")),
            product_sku=str(_pick(data, "productSku", "product_sku", default="")),
            materials=[BomMaterial.from_dict(m) for m in data.get("materials") or []],
            notes=_pick(data, "notes"),
        )

    def quantity_of(self, material_id: str) -> Optional[float]:
        """Quantity per unit of a material, or None if not in this BOM."""
        for line in self.materials:
            if line.material_id == material_id:
                return line.quantity
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "productName": self.product_name,
            "productSku": self.product_sku,
            "materials": [m.to_dict() for m in self.materials],
            "notes": self.notes,
        }


def find_bom(boms: Iterable[BOM], bom_id: str) -> Optional[BOM]:
    for bom in boms:
        if bom.id == bom_id:
            return bom
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# COSTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AdditionalCost:
    description: str
    amount: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdditionalCost":
        return cls(
            description=str(_pick(data, "description", default="")),
            amount=_as_float(_pick(data, "amount")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "amount": self.amount}


@dataclass(frozen=True)
class MaterialCommitment:
    """
    Material reserved by a production order.

    Attributes:
        material_id: Reserved material
        quantity: Reserved quantity
        estimated_cost: Cost estimated when the order was created
        actual_cost: Cost booked at completion
        actual_quantity_used: Quantity really consumed (defaults to quantity)
    """
    material_id: str
    quantity: float
    estimated_cost: float = 0.0
    actual_cost: Optional[float] = None
    actual_quantity_used: Optional[float] = None

    @property
    def consumed_quantity(self) -> float:
        if self.actual_quantity_used is not None:
            return self.actual_quantity_used
        return self.quantity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MaterialCommitment":
        return cls(
            material_id=str(_pick(data, "materialId", "material_id")),
            quantity=_as_float(_pick(data, "quantity")),
            estimated_cost=_as_float(_pick(data, "estimatedCost", "estimated_cost")),
            actual_cost=_as_optional_float(_pick(data, "actualCost", "actual_cost")),
            actual_quantity_used=_as_optional_float(
                _pick(data, "actualQuantityUsed", "actual_quantity_used")
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "materialId": self.material_id,
            "quantity": self.quantity,
            "estimatedCost": self.estimated_cost,
            "actualCost": self.actual_cost,
            "actualQuantityUsed": self.actual_quantity_used,
        }


@dataclass(frozen=True)
class ActualCosts:
    """Costs booked when a production order is completed."""
    material_costs: List[MaterialCommitment] = field(default_factory=list)
    other_costs: List[AdditionalCost] = field(default_factory=list)
    total_actual_cost: float = 0.0
    labor_cost: Optional[float] = None
    electricity_cost: Optional[float] = None
    machinery_cost: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActualCosts":
        return cls(
            material_costs=[
                MaterialCommitment.from_dict(m)
                for m in _pick(data, "materialCosts", "material_costs", default=[])
            ],
            other_costs=[
                AdditionalCost.from_dict(c)
                for c in _pick(data, "otherCosts", "other_costs", default=[])
            ],
            total_actual_cost=_as_float(_pick(data, "totalActualCost", "total_actual_cost")),
            labor_cost=_as_optional_float(_pick(data, "laborCost", "labor_cost")),
            electricity_cost=_as_optional_float(_pick(data, "electricityCost", "electricity_cost")),
            machinery_cost=_as_optional_float(_pick(data, "machineryCost", "machinery_cost")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "materialCosts": [m.to_dict() for m in self.material_costs],
            "otherCosts": [c.to_dict() for c in self.other_costs],
            "totalActualCost": self.total_actual_cost,
            "laborCost": self.labor_cost,
            "electricityCost": self.electricity_cost,
            "machineryCost": self.machinery_cost,
        }


@dataclass(frozen=True)
class CostAnalysis:
    """Estimated vs actual cost comparison of a completed order."""
    estimated_cost: float
    actual_cost: float
    variance: float = 0.0
    variance_percentage: float = 0.0
    material_variance: float = 0.0
    additional_costs_variance: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CostAnalysis":
        return cls(
            estimated_cost=_as_float(_pick(data, "estimatedCost", "estimated_cost")),
            actual_cost=_as_float(_pick(data, "actualCost", "actual_cost")),
            variance=_as_float(_pick(data, "variance")),
            variance_percentage=_as_float(_pick(data, "variancePercentage", "variance_percentage")),
            material_variance=_as_float(_pick(data, "materialVariance", "material_variance")),
            additional_costs_variance=_as_float(
                _pick(data, "additionalCostsVariance", "additional_costs_variance")
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimatedCost": self.estimated_cost,
            "actualCost": self.actual_cost,
            "variance": self.variance,
            "variancePercentage": self.variance_percentage,
            "materialVariance": self.material_variance,
            "additionalCostsVariance": self.additional_costs_variance,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCTION ORDER
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProductionOrder:
    """
    Production order for a BOM.

    A missing ``committedMaterials`` array in the input is read as an empty
    list, which contributes nothing to committed stock.
    """
    id: str
    bom_id: str
    product_name: str
    quantity_produced: float
    status: OrderStatus
    creation_date: datetime
    materials_cost: float = 0.0
    additional_costs: List[AdditionalCost] = field(default_factory=list)
    total_cost: float = 0.0
    committed_materials: List[MaterialCommitment] = field(default_factory=list)
    actual_costs: Optional[ActualCosts] = None
    cost_analysis: Optional[CostAnalysis] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductionOrder":
        actual_costs = _pick(data, "actualCosts", "actual_costs")
        cost_analysis = _pick(data, "costAnalysis", "cost_analysis")
        return cls(
            id=str(data["id"]),
            bom_id=str(_pick(data, "bomId", "bom_id", default="")),
            product_name=str(_pick(data, "productName", "product_name", default="")),
            quantity_produced=_as_float(_pick(data, "quantityProduced", "quantity_produced")),
            status=OrderStatus.parse(data["status"]),
            creation_date=parse_datetime(_pick(data, "creationDate", "creation_date")) or datetime.min,
            materials_cost=_as_float(_pick(data, "materialsCost", "materials_cost")),
            additional_costs=[
                AdditionalCost.from_dict(c)
                for c in _pick(data, "additionalCosts", "additional_costs", default=[])
            ],
            total_cost=_as_float(_pick(data, "totalCost", "total_cost")),
            committed_materials=[
                MaterialCommitment.from_dict(c)
                for c in _pick(data, "committedMaterials", "committed_materials", default=[])
            ],
            actual_costs=ActualCosts.from_dict(actual_costs) if actual_costs else None,
            cost_analysis=CostAnalysis.from_dict(cost_analysis) if cost_analysis else None,
            completed_at=parse_datetime(_pick(data, "completedAt", "completed_at")),
            notes=_pick(data, "notes"),
        )

    def with_status(self, status: OrderStatus) -> "ProductionOrder":
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bomId": self.bom_id,
            "productName": self.product_name,
            "quantityProduced": self.quantity_produced,
            "status": self.status.value,
            "creationDate": _iso(self.creation_date),
            "materialsCost": self.materials_cost,
            "additionalCosts": [c.to_dict() for c in self.additional_costs],
            "totalCost": self.total_cost,
            "committedMaterials": [c.to_dict() for c in self.committed_materials],
            "actualCosts": self.actual_costs.to_dict() if self.actual_costs else None,
            "costAnalysis": self.cost_analysis.to_dict() if self.cost_analysis else None,
            "completedAt": _iso(self.completed_at),
            "notes": self.notes,
        }
