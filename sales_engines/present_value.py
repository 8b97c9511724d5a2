"""
sales_engines.present_value -- Present-value (VPL) comparison of payment schedules.

Responsibility:
    Expand payment schedules into dated cash-flow events, discount each
    event to present value against an explicit "today", and compare a
    proposed schedule against the standard one (nominal and present-value
    totals, differences, variance percentages, per-area metrics).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    "today" is always a parameter; the engine never reads a clock.

Invariants enforced:
    - Event i of a row is due ``first_due_date + i * periodicity_months``
      months; periodicity 0 puts every event on the first due date.
    - Month addition clamps to the last day of the target month.
    - Dates are normalised to noon of their calendar date before the day
      difference is taken, so timezone offsets cannot move a due date by
      one day.
    - n = round(days(today, due)) / 30; pv = value when n <= 0.001, else
      value / (1 + r) ** n.
    - A present-value difference smaller than the money tolerance is
      reported as exactly zero.
    - Variance percentages are zero when the standard total is not positive.

Failure modes:
    - ValueError on a negative monthly rate or a non-positive day basis.

Usage:
    from sales_engines.present_value import PresentValueComparator

    result = PresentValueComparator().compare(standard_rows, proposed_rows, today)
    result.present_value_variance_pct
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sales_engines.tracer import traced_engine
from sales_kernel.domain.flow import ComputedFlowItem
from sales_kernel.domain.proposal import Condition
from sales_kernel.domain.values import (
    HUNDRED,
    MONEY_TOLERANCE,
    ZERO,
    is_zero,
    to_decimal,
)
from sales_kernel.logging_config import get_logger

logger = get_logger("engines.present_value")

DEFAULT_MONTHLY_RATE = Decimal("0.005")
DEFAULT_DAYS_PER_MONTH = 30
DEFAULT_EPSILON = Decimal("0.001")

ONE = Decimal("1")
_SECONDS_PER_DAY = 86400


# =========================================================================
# Date helpers
# =========================================================================


def normalize_to_noon(value: date | datetime) -> datetime:
    """
    Noon of the value's calendar date.

    Aware datetimes are first converted to UTC and their UTC date is used.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return datetime(value.year, value.month, value.day, 12, 0, 0)


def add_months(start: date, months: int) -> date:
    """Add whole months, clamping the day to the end of the target month."""
    if months == 0:
        return start
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def days_between(today: date | datetime, due: date | datetime) -> int:
    """Rounded whole days from ``today`` to ``due`` (negative when past)."""
    delta: timedelta = normalize_to_noon(due) - normalize_to_noon(today)
    return round(delta.total_seconds() / _SECONDS_PER_DAY)


# =========================================================================
# Value objects
# =========================================================================


@dataclass(frozen=True)
class CashFlowRow:
    """A schedule row: ``installment_count`` equal payments from ``first_due_date``."""

    installment_value: Decimal
    first_due_date: date
    periodicity_months: int
    installment_count: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "installment_value", to_decimal(self.installment_value)
        )
        if self.installment_count < 0:
            raise ValueError(
                f"installment_count must be >= 0: {self.installment_count}"
            )
        if self.periodicity_months < 0:
            raise ValueError(
                f"periodicity_months must be >= 0: {self.periodicity_months}"
            )


@dataclass(frozen=True)
class CashFlowEvent:
    due_date: date
    nominal: Decimal
    months_ahead: Decimal
    present_value: Decimal


@dataclass(frozen=True)
class ScheduleValuation:
    """Expanded and discounted schedule."""

    events: tuple[CashFlowEvent, ...]
    total_nominal: Decimal
    total_present_value: Decimal


@dataclass(frozen=True)
class AreaMetrics:
    """Comparison totals divided by the unit's private area."""

    area: Decimal
    standard_nominal: Decimal
    proposed_nominal: Decimal
    standard_present_value: Decimal
    proposed_present_value: Decimal
    nominal_difference: Decimal
    present_value_difference: Decimal


@dataclass(frozen=True)
class PresentValueComparison:
    """
    Standard vs proposed schedule comparison.

    Differences are proposed minus standard: negative means the proposal
    is worth less than the standard flow.
    """

    standard: ScheduleValuation
    proposed: ScheduleValuation
    money_tolerance: Decimal = MONEY_TOLERANCE

    @property
    def nominal_difference(self) -> Decimal:
        return self.proposed.total_nominal - self.standard.total_nominal

    @property
    def present_value_difference(self) -> Decimal:
        diff = self.proposed.total_present_value - self.standard.total_present_value
        if is_zero(diff, self.money_tolerance):
            return ZERO
        return diff

    @property
    def nominal_variance_pct(self) -> Decimal:
        return _variance_pct(self.nominal_difference, self.standard.total_nominal)

    @property
    def present_value_variance_pct(self) -> Decimal:
        return _variance_pct(
            self.present_value_difference, self.standard.total_present_value
        )

    def per_area(self, area: Decimal | None) -> AreaMetrics:
        """Totals per square metre; a missing or non-positive area counts as 1."""
        divisor = to_decimal(area) if area is not None else ONE
        if divisor <= ZERO:
            divisor = ONE
        return AreaMetrics(
            area=divisor,
            standard_nominal=self.standard.total_nominal / divisor,
            proposed_nominal=self.proposed.total_nominal / divisor,
            standard_present_value=self.standard.total_present_value / divisor,
            proposed_present_value=self.proposed.total_present_value / divisor,
            nominal_difference=self.nominal_difference / divisor,
            present_value_difference=self.present_value_difference / divisor,
        )


def _variance_pct(difference: Decimal, base: Decimal) -> Decimal:
    if base <= ZERO:
        return ZERO
    return difference / base * HUNDRED


# =========================================================================
# Row adapters
# =========================================================================


def rows_from_computed_flow(items: Iterable[ComputedFlowItem]) -> tuple[CashFlowRow, ...]:
    """Standard flow items as cash-flow rows."""
    return tuple(
        CashFlowRow(
            installment_value=item.installment_value,
            first_due_date=item.first_due_date,
            periodicity_months=item.periodicity_months,
            installment_count=item.installment_count,
        )
        for item in items
    )


def rows_from_conditions(conditions: Iterable[Condition]) -> tuple[CashFlowRow, ...]:
    """Proposal conditions as cash-flow rows."""
    return tuple(
        CashFlowRow(
            installment_value=c.installment_value,
            first_due_date=c.due_date,
            periodicity_months=c.periodicity_months,
            installment_count=c.installment_count,
        )
        for c in conditions
    )


# =========================================================================
# Comparator
# =========================================================================


class PresentValueComparator:
    """
    Pure present-value calculator.

    Contract:
        No I/O, no clock.  Same rows and same ``today`` always give the
        same result.
    Guarantees:
        - For r > 0, moving an event later strictly lowers its present
          value once it is more than ``epsilon`` months ahead.
    """

    def __init__(
        self,
        monthly_rate: Decimal = DEFAULT_MONTHLY_RATE,
        days_per_month: int = DEFAULT_DAYS_PER_MONTH,
        epsilon: Decimal = DEFAULT_EPSILON,
        money_tolerance: Decimal = MONEY_TOLERANCE,
    ):
        if monthly_rate < ZERO:
            raise ValueError(f"monthly_rate must be >= 0: {monthly_rate}")
        if days_per_month <= 0:
            raise ValueError(f"days_per_month must be > 0: {days_per_month}")
        self.monthly_rate = monthly_rate
        self.days_per_month = days_per_month
        self.epsilon = epsilon
        self.money_tolerance = money_tolerance

    def months_ahead(self, today: date | datetime, due: date) -> Decimal:
        return Decimal(days_between(today, due)) / Decimal(self.days_per_month)

    def discount(self, value: Decimal, months_ahead: Decimal) -> Decimal:
        if months_ahead <= self.epsilon:
            return value
        return value / (ONE + self.monthly_rate) ** months_ahead

    def expand(self, rows: Iterable[CashFlowRow]) -> list[tuple[date, Decimal]]:
        """Individual (due_date, value) events for every row."""
        events: list[tuple[date, Decimal]] = []
        for row in rows:
            for i in range(row.installment_count):
                due = add_months(row.first_due_date, i * row.periodicity_months)
                events.append((due, row.installment_value))
        return events

    @traced_engine("present_value", "1.0", fingerprint_fields=("rows", "today"))
    def evaluate(
        self,
        rows: Sequence[CashFlowRow],
        today: date | datetime,
    ) -> ScheduleValuation:
        """Expand and discount one schedule."""
        events = []
        for due, value in self.expand(rows):
            n = self.months_ahead(today, due)
            events.append(CashFlowEvent(
                due_date=due,
                nominal=value,
                months_ahead=n,
                present_value=self.discount(value, n),
            ))
        return ScheduleValuation(
            events=tuple(events),
            total_nominal=sum((e.nominal for e in events), ZERO),
            total_present_value=sum((e.present_value for e in events), ZERO),
        )

    def compare(
        self,
        standard: Sequence[CashFlowRow],
        proposed: Sequence[CashFlowRow],
        today: date | datetime,
    ) -> PresentValueComparison:
        """Value both schedules against the same ``today``."""
        result = PresentValueComparison(
            standard=self.evaluate(standard, today),
            proposed=self.evaluate(proposed, today),
            money_tolerance=self.money_tolerance,
        )
        logger.info("present_value_compared", extra={
            "today": normalize_to_noon(today).date().isoformat(),
            "standard_nominal": str(result.standard.total_nominal),
            "proposed_nominal": str(result.proposed.total_nominal),
            "nominal_variance_pct": str(result.nominal_variance_pct),
            "present_value_variance_pct": str(result.present_value_variance_pct),
        })
        return result
