"""Owner expense record lifecycle: creation, status changes, deletion and reporting."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

import pandas as pd

from camledger.domain.constraints import parse_status
from camledger.domain.errors import DuplicatePeriodError, ExpenseNotFoundError
from camledger.domain.models import (
    AllocationInput,
    AllocationPreview,
    ExpenseEvent,
    ExpenseFilter,
    ExpenseRecord,
    ExpenseStatus,
    ExpenseSummary,
)
from camledger.repository.data_repository import DataRepository, ExpenseDraft
from camledger.services.allocation_service import CamAllocationService
from camledger.utils.config import Settings, get_settings
from camledger.utils.logger import get_logger


logger = get_logger(__name__)

_STATUS_ORDER = [status.value for status in ExpenseStatus]


def default_description(period_start: date, period_end: date) -> str:
    return (
        f"Mall Owner CAM Expense for {period_start.isoformat()} to {period_end.isoformat()}"
    )


def build_expense_draft(
    preview: AllocationPreview,
    description: Optional[str] = None,
) -> ExpenseDraft:
    """Snapshot the owner's side of an allocation into an insertable draft."""
    summary = preview.summary
    return ExpenseDraft(
        building_id=preview.building.building_id,
        building_name=preview.building.name,
        period_start=preview.period_start,
        period_end=preview.period_end,
        total_amount=summary.owner_cam,
        generator_share=summary.owner_shares.generator_share,
        transformer_share=summary.owner_shares.transformer_share,
        other_cam_share=summary.owner_shares.other_cam_share,
        other_cam_costs=summary.other_cam_costs,
        total_vacant_area=summary.total_vacant_area,
        total_unallocated_area=summary.unallocated_area,
        total_leasable_area=summary.total_leasable_area,
        total_cam_costs=summary.total_cam_costs,
        occupied_area=summary.total_occupied_area,
        occupied_units_count=summary.occupied_units_count,
        vacant_units_count=summary.vacant_units_count,
        description=(description or "").strip()
        or default_description(preview.period_start, preview.period_end),
    )


class ExpenseLifecycleService:
    """Turns allocations into immutable owner expense records and manages them."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        allocation_service: Optional[CamAllocationService] = None,
        today_provider: Optional[Callable[[], date]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._today_provider = today_provider or date.today
        self._allocation_service = allocation_service or CamAllocationService(
            repository=self._repository,
            settings=self._settings,
            today_provider=self._today_provider,
        )

    @property
    def display_decimal_places(self) -> int:
        return self._settings.display_decimal_places

    def calculate(self, payload: AllocationInput) -> AllocationPreview:
        """Preview an allocation without persisting anything."""
        return self._allocation_service.calculate(payload)

    def exists_allocation(self, building_id: int, period_start: date, period_end: date) -> bool:
        return self._repository.exists_allocation(building_id, period_start, period_end)

    def create(self, payload: AllocationInput) -> ExpenseRecord:
        preview = self._allocation_service.calculate(payload)
        if self._repository.exists_allocation(
            payload.building_id, payload.period_start, payload.period_end
        ):
            logger.warning(
                "Duplicate expense rejected | building_id=%s | period=%s..%s",
                payload.building_id,
                payload.period_start.isoformat(),
                payload.period_end.isoformat(),
            )
            raise DuplicatePeriodError(
                payload.building_id, payload.period_start, payload.period_end
            )

        record = self._repository.insert_expense_record(
            build_expense_draft(preview, payload.description)
        )
        logger.info(
            "Owner expense recorded | id=%s | building_id=%s | period=%s..%s | amount=%.2f",
            record.expense_id,
            record.building_id,
            record.period_start.isoformat(),
            record.period_end.isoformat(),
            record.total_amount,
        )
        return record

    def get(self, expense_id: int) -> ExpenseRecord:
        record = self._repository.get_expense_record(expense_id)
        if record is None:
            raise ExpenseNotFoundError(expense_id)
        return record

    def set_status(self, expense_id: int, new_status: str | ExpenseStatus) -> ExpenseRecord:
        status = parse_status(new_status)
        record = self._repository.update_expense_status(
            expense_id,
            status,
            permissive=self._settings.permissive_status_transitions,
        )
        if record is None:
            raise ExpenseNotFoundError(expense_id)
        logger.info("Expense status updated | id=%s | status=%s", expense_id, status.value)
        return record

    def delete(self, expense_id: int) -> None:
        if not self._repository.delete_expense_record(expense_id):
            raise ExpenseNotFoundError(expense_id)
        logger.info("Expense record deleted | id=%s", expense_id)

    def list(self, expense_filter: Optional[ExpenseFilter] = None) -> list[ExpenseRecord]:
        return self._repository.list_expense_records(expense_filter)

    def list_events(self, expense_id: int) -> list[ExpenseEvent]:
        events = self._repository.list_expense_events(expense_id)
        if not events:
            raise ExpenseNotFoundError(expense_id)
        return events

    def summary(
        self,
        building_id: Optional[int] = None,
        reference_date: Optional[date] = None,
    ) -> ExpenseSummary:
        """Aggregate counts and amounts; headline and period totals skip CANCELLED."""
        reference = reference_date or self._today_provider()
        records = self.list(ExpenseFilter(building_id=building_id))
        if not records:
            return ExpenseSummary(
                total_expenses=0,
                total_amount=0.0,
                count_by_status={status: 0 for status in _STATUS_ORDER},
                amount_by_status={status: 0.0 for status in _STATUS_ORDER},
                current_month_total=0.0,
                previous_month_total=0.0,
                year_to_date_total=0.0,
            )

        frame = pd.DataFrame(
            {
                "status": [record.status.value for record in records],
                "total_amount": [record.total_amount for record in records],
                "period_start": pd.to_datetime(
                    [record.period_start.isoformat() for record in records]
                ),
            }
        )
        count_by_status = frame["status"].value_counts().reindex(_STATUS_ORDER, fill_value=0)
        amount_by_status = (
            frame.groupby("status")["total_amount"].sum().reindex(_STATUS_ORDER, fill_value=0.0)
        )

        billable = frame[frame["status"] != ExpenseStatus.CANCELLED.value]
        reference_ts = pd.Timestamp(reference)
        months = billable["period_start"].dt.to_period("M")
        current_month = reference_ts.to_period("M")
        in_current_year = (billable["period_start"].dt.year == reference_ts.year) & (
            billable["period_start"] <= reference_ts
        )

        return ExpenseSummary(
            total_expenses=int(len(frame)),
            total_amount=float(billable["total_amount"].sum()),
            count_by_status={key: int(value) for key, value in count_by_status.items()},
            amount_by_status={key: float(value) for key, value in amount_by_status.items()},
            current_month_total=float(billable.loc[months == current_month, "total_amount"].sum()),
            previous_month_total=float(
                billable.loc[months == current_month - 1, "total_amount"].sum()
            ),
            year_to_date_total=float(billable.loc[in_current_year, "total_amount"].sum()),
        )

    def export_csv(self, expense_filter: Optional[ExpenseFilter] = None) -> str:
        amount_column = f"Amount ({self._settings.currency_code})"
        columns = [
            "Building",
            "Period Start",
            "Period End",
            amount_column,
            "Status",
            "Date Recorded",
            "Description",
        ]
        rows = [
            {
                "Building": record.building_name,
                "Period Start": record.period_start.isoformat(),
                "Period End": record.period_end.isoformat(),
                amount_column: round(record.total_amount, self._settings.display_decimal_places),
                "Status": record.status.value,
                "Date Recorded": record.date_recorded.date().isoformat(),
                "Description": record.description,
            }
            for record in self.list(expense_filter)
        ]
        return pd.DataFrame(rows, columns=columns).to_csv(index=False)
