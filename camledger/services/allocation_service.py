"""CAM cost allocation: space classification, cost pooling and tenant/owner split."""

from __future__ import annotations

import math
from datetime import date
from typing import Callable, Optional, Sequence

from camledger.domain.constraints import validate_period
from camledger.domain.errors import (
    BuildingNotFoundError,
    DivisionByZeroAreaError,
    InvalidAreaError,
    InvalidCostInputError,
    NoUnitsDefinedError,
)
from camledger.domain.models import (
    AllocationInput,
    AllocationPreview,
    CAMSummary,
    CostPool,
    OccupancyLookup,
    OwnerShares,
    SpaceBreakdown,
    UnitAllocation,
    UnitOccupancy,
)
from camledger.repository.data_repository import DataRepository
from camledger.utils.config import Settings, get_settings
from camledger.utils.logger import get_logger


logger = get_logger(__name__)


def classify_space(
    total_leasable_area: float,
    units: Sequence[UnitOccupancy],
    *,
    area_tolerance: float = 1e-6,
) -> SpaceBreakdown:
    """Split the leasable area into occupied, vacant and unallocated parts.

    Unallocated area is the registered leasable area that no known unit
    accounts for. It is floored at zero and billed to the owner; units that
    overrun the registered area are logged, not rejected.
    """
    if not units:
        raise NoUnitsDefinedError(
            "No units found in this building",
            field="units",
            value=0,
        )

    total_occupied_area = 0.0
    total_vacant_area = 0.0
    occupied_units_count = 0
    vacant_units_count = 0
    for unit in units:
        unit_space = float(unit.unit_space)
        if not math.isfinite(unit_space) or unit_space < 0.0:
            raise InvalidAreaError(
                f"Unit {unit.unit_number} has an invalid area",
                field="unit_space",
                value=unit.unit_space,
            )
        if unit.is_occupied:
            total_occupied_area += unit_space
            occupied_units_count += 1
        else:
            total_vacant_area += unit_space
            vacant_units_count += 1

    leasable_area = float(total_leasable_area)
    breakdown = SpaceBreakdown(
        total_leasable_area=leasable_area,
        total_occupied_area=total_occupied_area,
        total_vacant_area=total_vacant_area,
        unallocated_area=max(0.0, leasable_area - total_occupied_area - total_vacant_area),
        occupied_units_count=occupied_units_count,
        vacant_units_count=vacant_units_count,
    )
    # zero/negative leasable area is reported by the allocation step instead
    if leasable_area > 0.0 and breakdown.total_defined_area - leasable_area > area_tolerance:
        logger.warning(
            "Units exceed leasable area | defined_area=%.2f | leasable_area=%.2f",
            breakdown.total_defined_area,
            leasable_area,
        )
    return breakdown


def aggregate_costs(
    generator_fee: float,
    transformer_fee: float,
    other_cam_costs: float,
) -> CostPool:
    """Pool the period's shared cost components; all must be non-negative."""
    for field_name, value in (
        ("generator_fee", generator_fee),
        ("transformer_fee", transformer_fee),
        ("other_cam_costs", other_cam_costs),
    ):
        if value is None or not math.isfinite(float(value)) or float(value) < 0.0:
            raise InvalidCostInputError(
                f"{field_name} must be a non-negative amount",
                field=field_name,
                value=value,
            )
    return CostPool(
        generator_fee=float(generator_fee),
        transformer_fee=float(transformer_fee),
        other_cam_costs=float(other_cam_costs),
    )


def _allocate_unit(
    unit: UnitOccupancy,
    area: float,
    pool: CostPool,
    decimal_places: int,
) -> UnitAllocation:
    ratio = float(unit.unit_space) / area
    generator_share = ratio * pool.generator_fee
    transformer_share = ratio * pool.transformer_fee
    other_cam_share = ratio * pool.other_cam_costs
    cam_share = generator_share + transformer_share + other_cam_share
    return UnitAllocation(
        unit_id=unit.unit_id,
        unit_number=unit.unit_number,
        unit_space=float(unit.unit_space),
        is_occupied=unit.is_occupied,
        tenant_name=unit.display_tenant,
        percentage_of_leasable_area=round(ratio * 100.0, decimal_places),
        cam_share=round(cam_share, decimal_places),
        generator_share=round(generator_share, decimal_places),
        transformer_share=round(transformer_share, decimal_places),
        other_cam_share=round(other_cam_share, decimal_places),
    )


def allocate(
    breakdown: SpaceBreakdown,
    pool: CostPool,
    units: Sequence[UnitOccupancy],
    *,
    decimal_places: int = 2,
    tolerance: float = 1e-6,
) -> CAMSummary:
    """Split the cost pool between tenants (occupied area) and the owner.

    The owner's figures are residuals of the tenants' figures, so tenants plus
    owner reconcile to the pool regardless of rounding in the per-area rate.
    Per-unit rows are rounded for display; summary totals are not, so the
    unit rows need not add up to the summary exactly.
    """
    area = breakdown.total_leasable_area
    if not math.isfinite(area) or area <= 0.0:
        raise DivisionByZeroAreaError(
            "Total leasable area is not set for this building",
            field="total_leasable_area",
            value=area,
        )

    total_cam_costs = pool.total
    cost_per_area_unit = total_cam_costs / area
    occupied_area = breakdown.total_occupied_area

    tenants_cam = occupied_area * cost_per_area_unit
    owner_cam = total_cam_costs - tenants_cam
    owner_shares = OwnerShares(
        generator_share=pool.generator_fee - occupied_area * pool.generator_fee / area,
        transformer_share=pool.transformer_fee - occupied_area * pool.transformer_fee / area,
        other_cam_share=pool.other_cam_costs - occupied_area * pool.other_cam_costs / area,
    )

    discrepancy = abs(tenants_cam + owner_cam - total_cam_costs)
    if discrepancy > tolerance:
        logger.warning("CAM reconciliation discrepancy | discrepancy=%.9f", discrepancy)

    return CAMSummary(
        total_leasable_area=area,
        total_occupied_area=occupied_area,
        total_vacant_area=breakdown.total_vacant_area,
        unallocated_area=breakdown.unallocated_area,
        occupied_percentage=occupied_area / area * 100.0,
        vacant_percentage=breakdown.total_vacant_area / area * 100.0,
        unallocated_percentage=breakdown.unallocated_area / area * 100.0,
        generator_fee=pool.generator_fee,
        transformer_fee=pool.transformer_fee,
        other_cam_costs=pool.other_cam_costs,
        total_cam_costs=total_cam_costs,
        cost_per_area_unit=cost_per_area_unit,
        tenants_cam=tenants_cam,
        owner_cam=owner_cam,
        owner_shares=owner_shares,
        occupied_units_count=breakdown.occupied_units_count,
        vacant_units_count=breakdown.vacant_units_count,
        unit_breakdown=[
            _allocate_unit(unit, area, pool, decimal_places) for unit in units
        ],
    )


class CamAllocationService:
    """Resolves building data and runs classifier -> aggregator -> engine."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        occupancy_lookup: Optional[OccupancyLookup] = None,
        today_provider: Optional[Callable[[], date]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._occupancy_lookup = occupancy_lookup or self._repository
        self._today_provider = today_provider or date.today

    def load_units(self, building_id: int) -> tuple[UnitOccupancy, ...]:
        """Build the unit list from the directory and the occupancy lookup."""
        units: list[UnitOccupancy] = []
        for unit in self._repository.list_units(building_id):
            is_occupied = self._occupancy_lookup.is_unit_occupied(unit.unit_id)
            tenant_name = (
                self._repository.get_active_tenant_name(unit.unit_id)
                if is_occupied
                else None
            )
            units.append(
                UnitOccupancy(
                    unit_id=unit.unit_id,
                    unit_number=unit.unit_number,
                    unit_space=unit.unit_space,
                    is_occupied=is_occupied,
                    tenant_name=tenant_name,
                )
            )
        return tuple(units)

    def calculate(self, payload: AllocationInput) -> AllocationPreview:
        validate_period(payload.period_start, payload.period_end, self._today_provider())

        building = self._repository.get_building(payload.building_id)
        if building is None:
            raise BuildingNotFoundError(payload.building_id)

        units = (
            tuple(payload.units)
            if payload.units is not None
            else self.load_units(building.building_id)
        )
        breakdown = classify_space(
            building.total_leasable_area,
            units,
            area_tolerance=self._settings.area_tolerance,
        )
        pool = aggregate_costs(
            building.generator_fee,
            building.transformer_fee,
            payload.other_cam_costs,
        )
        summary = allocate(
            breakdown,
            pool,
            units,
            decimal_places=self._settings.display_decimal_places,
            tolerance=self._settings.reconciliation_tolerance,
        )
        logger.info(
            (
                "CAM distribution calculated | building_id=%s | occupied_units=%s | "
                "vacant_units=%s | unallocated_area=%.2f | tenants_cam=%.2f | owner_cam=%.2f"
            ),
            building.building_id,
            summary.occupied_units_count,
            summary.vacant_units_count,
            summary.unallocated_area,
            summary.tenants_cam,
            summary.owner_cam,
        )
        return AllocationPreview(
            building=building,
            period_start=payload.period_start,
            period_end=payload.period_end,
            summary=summary,
        )
