"""HTTP controller layer for CAM calculation and owner expense records."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field, field_validator

from camledger.controllers.dependencies import (
    get_expense_service,
    require_admin,
    to_http_exception,
)
from camledger.domain.errors import CamLedgerError
from camledger.domain.models import (
    AllocationInput,
    ExpenseFilter,
    ExpenseRecord,
    ExpenseStatus,
    UnitOccupancy,
)
from camledger.services.expense_service import ExpenseLifecycleService
from camledger.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["cam"])


class UnitOccupancyPayload(BaseModel):
    unit_id: int = Field(gt=0)
    unit_number: str = Field(min_length=1)
    unit_space: float = Field(ge=0.0)
    is_occupied: bool
    tenant_name: Optional[str] = None


class AllocationRequest(BaseModel):
    """Input DTO; period and cost rules are enforced by the allocation core."""

    building_id: int = Field(gt=0)
    period_start: date
    period_end: date
    other_cam_costs: float = 0.0
    units: Optional[list[UnitOccupancyPayload]] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("units")
    @classmethod
    def validate_unique_unit_ids(
        cls,
        value: Optional[list[UnitOccupancyPayload]],
    ) -> Optional[list[UnitOccupancyPayload]]:
        if value is None:
            return None
        unit_ids = [unit.unit_id for unit in value]
        if len(unit_ids) != len(set(unit_ids)):
            raise ValueError("units must not repeat a unit_id")
        return value

    def to_domain(self) -> AllocationInput:
        units = None
        if self.units is not None:
            units = tuple(
                UnitOccupancy(
                    unit_id=unit.unit_id,
                    unit_number=unit.unit_number,
                    unit_space=unit.unit_space,
                    is_occupied=unit.is_occupied,
                    tenant_name=unit.tenant_name,
                )
                for unit in self.units
            )
        return AllocationInput(
            building_id=self.building_id,
            period_start=self.period_start,
            period_end=self.period_end,
            other_cam_costs=self.other_cam_costs,
            units=units,
            description=self.description,
        )


class UnitAllocationResponse(BaseModel):
    unit_id: int
    unit_number: str
    unit_space: float = Field(ge=0.0)
    is_occupied: bool
    tenant_name: str
    percentage_of_leasable_area: float = Field(ge=0.0)
    cam_share: float = Field(ge=0.0)
    generator_share: float = Field(ge=0.0)
    transformer_share: float = Field(ge=0.0)
    other_cam_share: float = Field(ge=0.0)


class CAMSummaryResponse(BaseModel):
    building_id: int
    building_name: str
    period_start: date
    period_end: date
    total_leasable_area: float = Field(gt=0.0)
    total_occupied_area: float = Field(ge=0.0)
    total_vacant_area: float = Field(ge=0.0)
    unallocated_area: float = Field(ge=0.0)
    occupied_percentage: float
    vacant_percentage: float
    unallocated_percentage: float
    generator_fee: float = Field(ge=0.0)
    transformer_fee: float = Field(ge=0.0)
    other_cam_costs: float = Field(ge=0.0)
    total_cam_costs: float = Field(ge=0.0)
    cost_per_area_unit: float = Field(ge=0.0)
    tenants_cam: float
    owner_cam: float
    occupied_units_count: int = Field(ge=0)
    vacant_units_count: int = Field(ge=0)
    unit_breakdown: list[UnitAllocationResponse]


class ExpenseRecordResponse(BaseModel):
    id: int = Field(gt=0)
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
    occupied_units_count: int = Field(ge=0)
    vacant_units_count: int = Field(ge=0)
    description: str
    status: ExpenseStatus
    date_recorded: datetime


class StatusUpdateRequest(BaseModel):
    status: ExpenseStatus


class DuplicateCheckResponse(BaseModel):
    exists: bool


class ExpenseSummaryResponse(BaseModel):
    total_expenses: int = Field(ge=0)
    total_amount: float
    count_by_status: dict[str, int]
    amount_by_status: dict[str, float]
    current_month_total: float
    previous_month_total: float
    year_to_date_total: float


class ExpenseEventResponse(BaseModel):
    id: int
    expense_id: int
    event_type: str
    old_status: Optional[ExpenseStatus] = None
    new_status: Optional[ExpenseStatus] = None
    recorded_at: datetime
    detail: str


def _record_response(record: ExpenseRecord) -> ExpenseRecordResponse:
    return ExpenseRecordResponse(**record.to_dict())


def _unexpected(action: str, exc: Exception) -> HTTPException:
    logger.exception("Unexpected failure while trying to %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.post(
    "/cam/calculate",
    response_model=CAMSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def calculate_cam(
    payload: AllocationRequest,
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> CAMSummaryResponse:
    """Preview the tenant/owner split; nothing is persisted."""
    try:
        preview = service.calculate(payload.to_domain())
        return CAMSummaryResponse(
            building_id=preview.building.building_id,
            building_name=preview.building.name,
            period_start=preview.period_start,
            period_end=preview.period_end,
            **preview.summary.to_dict(decimal_places=service.display_decimal_places),
        )
    except CamLedgerError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        raise _unexpected("calculate CAM distribution", exc) from exc


@router.get(
    "/expenses/check-duplicate",
    response_model=DuplicateCheckResponse,
    status_code=status.HTTP_200_OK,
)
async def check_duplicate(
    building_id: int = Query(gt=0),
    period_start: date = Query(),
    period_end: date = Query(),
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> DuplicateCheckResponse:
    return DuplicateCheckResponse(
        exists=service.exists_allocation(building_id, period_start, period_end)
    )


@router.get(
    "/expenses/summary",
    response_model=ExpenseSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def expense_summary(
    building_id: Optional[int] = Query(default=None, gt=0),
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> ExpenseSummaryResponse:
    try:
        return ExpenseSummaryResponse(**service.summary(building_id=building_id).to_dict())
    except Exception as exc:  # pragma: no cover
        raise _unexpected("summarize expenses", exc) from exc


@router.get("/expenses/export/csv", status_code=status.HTTP_200_OK)
async def export_expenses_csv(
    building_id: Optional[int] = Query(default=None, gt=0),
    expense_status: Optional[ExpenseStatus] = Query(default=None, alias="status"),
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> Response:
    try:
        content = service.export_csv(
            ExpenseFilter(building_id=building_id, status=expense_status)
        )
    except Exception as exc:  # pragma: no cover
        raise _unexpected("export expenses", exc) from exc
    filename = f"mall_owner_expenses_{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/expenses",
    response_model=ExpenseRecordResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_expense(
    payload: AllocationRequest,
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> ExpenseRecordResponse:
    """Compute the allocation and record the owner's share as PENDING."""
    try:
        return _record_response(service.create(payload.to_domain()))
    except CamLedgerError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        raise _unexpected("save owner expense", exc) from exc


@router.get(
    "/expenses",
    response_model=list[ExpenseRecordResponse],
    status_code=status.HTTP_200_OK,
)
async def list_expenses(
    building_id: Optional[int] = Query(default=None, gt=0),
    expense_status: Optional[ExpenseStatus] = Query(default=None, alias="status"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> list[ExpenseRecordResponse]:
    records = service.list(
        ExpenseFilter(
            building_id=building_id,
            status=expense_status,
            start_date=start_date,
            end_date=end_date,
        )
    )
    return [_record_response(record) for record in records]


@router.get(
    "/expenses/{expense_id}",
    response_model=ExpenseRecordResponse,
    status_code=status.HTTP_200_OK,
)
async def get_expense(
    expense_id: int,
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> ExpenseRecordResponse:
    try:
        return _record_response(service.get(expense_id))
    except CamLedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/expenses/{expense_id}/events",
    response_model=list[ExpenseEventResponse],
    status_code=status.HTTP_200_OK,
)
async def list_expense_events(
    expense_id: int,
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> list[ExpenseEventResponse]:
    try:
        events = service.list_events(expense_id)
    except CamLedgerError as exc:
        raise to_http_exception(exc) from exc
    return [
        ExpenseEventResponse(
            id=event.event_id,
            expense_id=event.expense_id,
            event_type=event.event_type.value,
            old_status=event.old_status,
            new_status=event.new_status,
            recorded_at=event.recorded_at,
            detail=event.detail,
        )
        for event in events
    ]


@router.patch(
    "/expenses/{expense_id}/status",
    response_model=ExpenseRecordResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def update_expense_status(
    expense_id: int,
    payload: StatusUpdateRequest,
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> ExpenseRecordResponse:
    try:
        return _record_response(service.set_status(expense_id, payload.status))
    except CamLedgerError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        raise _unexpected("update expense status", exc) from exc


@router.delete(
    "/expenses/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_expense(
    expense_id: int,
    service: ExpenseLifecycleService = Depends(get_expense_service),
) -> Response:
    try:
        service.delete(expense_id)
    except CamLedgerError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        raise _unexpected("delete expense", exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
