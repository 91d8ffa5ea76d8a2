"""Error taxonomy shared by the allocation core, repository and API layers."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class CamLedgerError(Exception):
    """Base failure carrying a machine-readable kind and the offending input."""

    kind = "CamLedgerError"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "value": _jsonable(self.value),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class InvalidPeriodError(CamLedgerError):
    kind = "InvalidPeriod"


class BuildingNotFoundError(CamLedgerError):
    kind = "BuildingNotFound"

    def __init__(self, building_id: int) -> None:
        super().__init__(
            f"Building {building_id} not found",
            field="building_id",
            value=building_id,
        )


class NoUnitsDefinedError(CamLedgerError):
    kind = "NoUnitsDefined"


class DivisionByZeroAreaError(CamLedgerError):
    kind = "DivisionByZeroArea"


class InvalidCostInputError(CamLedgerError):
    kind = "InvalidCostInput"


class InvalidAreaError(CamLedgerError):
    kind = "InvalidArea"


class DuplicatePeriodError(CamLedgerError):
    kind = "DuplicatePeriod"

    def __init__(self, building_id: int, period_start: date, period_end: date) -> None:
        super().__init__(
            (
                f"An expense record already exists for building {building_id} "
                f"for period {period_start.isoformat()} to {period_end.isoformat()}"
            ),
            field="period",
            value={
                "building_id": building_id,
                "period_start": period_start,
                "period_end": period_end,
            },
        )
        self.building_id = building_id
        self.period_start = period_start
        self.period_end = period_end


class ExpenseNotFoundError(CamLedgerError):
    kind = "NotFound"

    def __init__(self, expense_id: int) -> None:
        super().__init__(
            f"Expense record {expense_id} not found",
            field="id",
            value=expense_id,
        )


class InvalidStatusTransitionError(CamLedgerError):
    kind = "InvalidStatusTransition"


class UnauthorizedError(CamLedgerError):
    kind = "Unauthorized"
