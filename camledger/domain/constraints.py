"""Domain-level validation rules for billing periods and expense status changes."""

from __future__ import annotations

from datetime import date

from camledger.domain.errors import InvalidPeriodError, InvalidStatusTransitionError
from camledger.domain.models import ExpenseStatus


# CANCELLED is terminal; every other status may move anywhere.
ALLOWED_STATUS_TRANSITIONS: dict[ExpenseStatus, frozenset[ExpenseStatus]] = {
    ExpenseStatus.PENDING: frozenset(
        {ExpenseStatus.APPROVED, ExpenseStatus.PAID, ExpenseStatus.CANCELLED}
    ),
    ExpenseStatus.APPROVED: frozenset(
        {ExpenseStatus.PENDING, ExpenseStatus.PAID, ExpenseStatus.CANCELLED}
    ),
    ExpenseStatus.PAID: frozenset(
        {ExpenseStatus.PENDING, ExpenseStatus.APPROVED, ExpenseStatus.CANCELLED}
    ),
    ExpenseStatus.CANCELLED: frozenset(),
}


def validate_period(period_start: date, period_end: date, today: date) -> None:
    if period_end <= period_start:
        raise InvalidPeriodError(
            "Period start date must be before period end date",
            field="period_end",
            value=period_end,
        )
    if period_start > today:
        raise InvalidPeriodError(
            "Period start date cannot be in the future",
            field="period_start",
            value=period_start,
        )


def parse_status(value: str | ExpenseStatus) -> ExpenseStatus:
    if isinstance(value, ExpenseStatus):
        return value
    try:
        return ExpenseStatus(str(value).strip().upper())
    except ValueError as exc:
        raise InvalidStatusTransitionError(
            f"Unknown expense status {value!r}",
            field="status",
            value=value,
        ) from exc


def validate_status_transition(
    current: ExpenseStatus,
    new_status: ExpenseStatus,
    *,
    permissive: bool = False,
) -> None:
    """Setting the current status again is always accepted."""
    if permissive or current == new_status:
        return
    if new_status not in ALLOWED_STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(
            f"Cannot change expense status from {current.value} to {new_status.value}",
            field="status",
            value=new_status,
        )
