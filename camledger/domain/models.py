"""Domain models for CAM cost allocation and owner expense records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Protocol


VACANT_LABEL = "Vacant"
UNNAMED_OCCUPANT_LABEL = "Occupied (No Name)"


class ExpenseStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class ExpenseEventType(str, Enum):
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    DELETED = "DELETED"


class OccupancyLookup(Protocol):
    """Answers whether a unit is currently under an active lease."""

    def is_unit_occupied(self, unit_id: int) -> bool:
        ...


@dataclass(frozen=True)
class Building:
    building_id: int
    name: str
    total_leasable_area: float
    generator_fee: float
    transformer_fee: float


@dataclass(frozen=True)
class UnitRecord:
    unit_id: int
    building_id: int
    unit_number: str
    unit_space: float


@dataclass(frozen=True)
class UnitOccupancy:
    """A unit as seen by the allocation core: area plus occupancy flag."""

    unit_id: int
    unit_number: str
    unit_space: float
    is_occupied: bool
    tenant_name: Optional[str] = None

    @property
    def display_tenant(self) -> str:
        if self.tenant_name:
            return self.tenant_name
        return UNNAMED_OCCUPANT_LABEL if self.is_occupied else VACANT_LABEL


@dataclass(frozen=True)
class AllocationInput:
    building_id: int
    period_start: date
    period_end: date
    other_cam_costs: float
    units: Optional[tuple[UnitOccupancy, ...]] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class SpaceBreakdown:
    total_leasable_area: float
    total_occupied_area: float
    total_vacant_area: float
    unallocated_area: float
    occupied_units_count: int
    vacant_units_count: int

    @property
    def total_defined_area(self) -> float:
        return self.total_occupied_area + self.total_vacant_area


@dataclass(frozen=True)
class CostPool:
    generator_fee: float
    transformer_fee: float
    other_cam_costs: float

    @property
    def total(self) -> float:
        return self.generator_fee + self.transformer_fee + self.other_cam_costs


@dataclass(frozen=True)
class UnitAllocation:
    unit_id: int
    unit_number: str
    unit_space: float
    is_occupied: bool
    tenant_name: str
    percentage_of_leasable_area: float
    cam_share: float
    generator_share: float
    transformer_share: float
    other_cam_share: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "unit_number": self.unit_number,
            "unit_space": self.unit_space,
            "is_occupied": self.is_occupied,
            "tenant_name": self.tenant_name,
            "percentage_of_leasable_area": self.percentage_of_leasable_area,
            "cam_share": self.cam_share,
            "generator_share": self.generator_share,
            "transformer_share": self.transformer_share,
            "other_cam_share": self.other_cam_share,
        }


@dataclass(frozen=True)
class OwnerShares:
    """Owner's portion of each cost component."""

    generator_share: float
    transformer_share: float
    other_cam_share: float

    @property
    def total(self) -> float:
        return self.generator_share + self.transformer_share + self.other_cam_share


@dataclass(frozen=True)
class CAMSummary:
    """Unrounded allocation totals plus the rounded per-unit breakdown."""

    total_leasable_area: float
    total_occupied_area: float
    total_vacant_area: float
    unallocated_area: float
    occupied_percentage: float
    vacant_percentage: float
    unallocated_percentage: float
    generator_fee: float
    transformer_fee: float
    other_cam_costs: float
    total_cam_costs: float
    cost_per_area_unit: float
    tenants_cam: float
    owner_cam: float
    owner_shares: OwnerShares
    occupied_units_count: int
    vacant_units_count: int
    unit_breakdown: list[UnitAllocation] = field(default_factory=list)

    def to_dict(self, decimal_places: Optional[int] = None) -> dict[str, Any]:
        def _fmt(value: float) -> float:
            if decimal_places is None:
                return value
            return round(value, decimal_places)

        return {
            "total_leasable_area": self.total_leasable_area,
            "total_occupied_area": self.total_occupied_area,
            "total_vacant_area": self.total_vacant_area,
            "unallocated_area": _fmt(self.unallocated_area),
            "occupied_percentage": _fmt(self.occupied_percentage),
            "vacant_percentage": _fmt(self.vacant_percentage),
            "unallocated_percentage": _fmt(self.unallocated_percentage),
            "generator_fee": self.generator_fee,
            "transformer_fee": self.transformer_fee,
            "other_cam_costs": self.other_cam_costs,
            "total_cam_costs": self.total_cam_costs,
            "cost_per_area_unit": self.cost_per_area_unit,
            "tenants_cam": _fmt(self.tenants_cam),
            "owner_cam": _fmt(self.owner_cam),
            "occupied_units_count": self.occupied_units_count,
            "vacant_units_count": self.vacant_units_count,
            "unit_breakdown": [unit.to_dict() for unit in self.unit_breakdown],
        }


@dataclass(frozen=True)
class AllocationPreview:
    building: Building
    period_start: date
    period_end: date
    summary: CAMSummary


@dataclass(frozen=True)
class ExpenseRecord:
    expense_id: int
    building_id: int
    building_name: str
    period_start: date
    period_end: date
    total_amount: float
    generator_share: float
    transformer_share: float
    other_cam_share: float
    other_cam_costs: float
    total_vacant_area: float
    total_unallocated_area: float
    total_leasable_area: float
    total_cam_costs: float
    occupied_area: float
    occupied_units_count: int
    vacant_units_count: int
    description: str
    status: ExpenseStatus
    date_recorded: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.expense_id,
            "building_id": self.building_id,
            "building_name": self.building_name,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "total_amount": self.total_amount,
            "generator_share": self.generator_share,
            "transformer_share": self.transformer_share,
            "other_cam_share": self.other_cam_share,
            "other_cam_costs": self.other_cam_costs,
            "total_vacant_area": self.total_vacant_area,
            "total_unallocated_area": self.total_unallocated_area,
            "total_leasable_area": self.total_leasable_area,
            "total_cam_costs": self.total_cam_costs,
            "occupied_area": self.occupied_area,
            "occupied_units_count": self.occupied_units_count,
            "vacant_units_count": self.vacant_units_count,
            "description": self.description,
            "status": self.status.value,
            "date_recorded": self.date_recorded.isoformat(),
        }


@dataclass(frozen=True)
class ExpenseFilter:
    building_id: Optional[int] = None
    status: Optional[ExpenseStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass(frozen=True)
class ExpenseEvent:
    event_id: int
    expense_id: int
    event_type: ExpenseEventType
    old_status: Optional[ExpenseStatus]
    new_status: Optional[ExpenseStatus]
    recorded_at: datetime
    detail: str


@dataclass(frozen=True)
class ExpenseSummary:
    total_expenses: int
    total_amount: float
    count_by_status: dict[str, int]
    amount_by_status: dict[str, float]
    current_month_total: float
    previous_month_total: float
    year_to_date_total: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_expenses": self.total_expenses,
            "total_amount": self.total_amount,
            "count_by_status": dict(self.count_by_status),
            "amount_by_status": dict(self.amount_by_status),
            "current_month_total": self.current_month_total,
            "previous_month_total": self.previous_month_total,
            "year_to_date_total": self.year_to_date_total,
        }
