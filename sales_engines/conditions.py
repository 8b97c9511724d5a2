"""
sales_engines.conditions -- Condition bucket engine.

Responsibility:
    Maintain a negotiator's custom payment schedule as a pure reducer over
    an immutable ``ConditionBoard`` (target price + conditions): add, edit,
    remove, clear, restore and reset-to-standard, with the distributed
    total, the remaining gap and the closure status recomputed from the
    rows on every read.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes ``ComputedFlowItem`` from the standard flow generator.
    Wrapped by the lifecycle engine (edit locks) in the service layer.

Invariants enforced:
    - Buckets are the closed set ENTRADA, MENSAL, INTERMEDIARIAS, ANUAL,
      CHAVES, FINANCIAMENTO; new rows must name one of them.
    - Rows are independent: editing one row never touches another.
    - total_distributed = sum(installment_value * installment_count);
      remaining = target_price - total_distributed.
    - CLOSED iff |remaining| < 0.01; NEEDS_MORE iff remaining > 0.01;
      otherwise EXCESS.
    - ``require_closed`` never adjusts a row to make the schedule close;
      it reports the exact signed remaining amount.

Failure modes:
    - UnknownConditionBucketError when adding a row outside the buckets.
    - LineNotFoundError when editing/removing an unknown row.
    - UnknownLineFieldError when editing a field that is not editable.
    - ConditionsNotClosedError from ``require_closed``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sales_engines.tracer import traced_engine
from sales_kernel.domain.flow import ComputedFlowItem, FlowType
from sales_kernel.domain.proposal import Condition
from sales_kernel.domain.values import MONEY_TOLERANCE, ZERO, is_zero, to_decimal
from sales_kernel.exceptions import (
    ConditionsNotClosedError,
    LineNotFoundError,
    UnknownConditionBucketError,
    UnknownLineFieldError,
)
from sales_kernel.logging_config import get_logger

logger = get_logger("engines.conditions")

BUCKETS: tuple[FlowType, ...] = (
    FlowType.ENTRADA,
    FlowType.MENSAL,
    FlowType.INTERMEDIARIAS,
    FlowType.ANUAL,
    FlowType.CHAVES,
    FlowType.FINANCIAMENTO,
)

EDITABLE_FIELDS: frozenset[str] = frozenset({
    "condition_type",
    "due_date",
    "installment_count",
    "installment_value",
    "periodicity_months",
})


class ClosureStatus(str, Enum):
    CLOSED = "CLOSED"
    NEEDS_MORE = "NEEDS_MORE"
    EXCESS = "EXCESS"


@dataclass(frozen=True)
class ConditionBoard:
    """Editable payment schedule state."""

    target_price: Decimal
    conditions: tuple[Condition, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "target_price", to_decimal(self.target_price))
        object.__setattr__(self, "conditions", tuple(self.conditions))


@dataclass(frozen=True)
class ConditionSummary:
    target_price: Decimal
    total_distributed: Decimal
    remaining: Decimal
    status: ClosureStatus

    @property
    def is_closed(self) -> bool:
        return self.status == ClosureStatus.CLOSED


def _bucket_of(condition_type: str | FlowType) -> FlowType:
    flow_type = FlowType.parse(condition_type)
    if flow_type == FlowType.SEMESTRAL:
        flow_type = FlowType.INTERMEDIARIAS
    if flow_type not in BUCKETS:
        label = condition_type.value if isinstance(condition_type, FlowType) else str(condition_type)
        raise UnknownConditionBucketError(label)
    return flow_type


def _index_of(board: ConditionBoard, condition_id: UUID) -> int:
    for i, c in enumerate(board.conditions):
        if c.condition_id == condition_id:
            return i
    raise LineNotFoundError(str(condition_id))


# =========================================================================
# Reducer operations
# =========================================================================


def add_condition(
    board: ConditionBoard,
    condition_type: str | FlowType,
    today: date,
) -> ConditionBoard:
    """Append a zero-value, single-installment row dated ``today``."""
    bucket = _bucket_of(condition_type)
    row = Condition(
        condition_type=bucket.value,
        due_date=today,
        installment_count=1,
        installment_value=ZERO,
    )
    return dataclasses.replace(board, conditions=board.conditions + (row,))


def update_condition(
    board: ConditionBoard,
    condition_id: UUID,
    field: str,
    value: Any,
) -> ConditionBoard:
    """
    Set one field of one row.

    Changing ``condition_type`` re-derives the row's periodicity from the
    new type unless the periodicity is edited separately afterwards.
    """
    if field not in EDITABLE_FIELDS:
        raise UnknownLineFieldError(field)
    index = _index_of(board, condition_id)
    current = board.conditions[index]
    if field == "condition_type":
        updated = dataclasses.replace(current, condition_type=value, periodicity_months=None)
    else:
        updated = dataclasses.replace(current, **{field: value})
    rows = list(board.conditions)
    rows[index] = updated
    return dataclasses.replace(board, conditions=tuple(rows))


def remove_condition(board: ConditionBoard, condition_id: UUID) -> ConditionBoard:
    index = _index_of(board, condition_id)
    rows = board.conditions[:index] + board.conditions[index + 1:]
    return dataclasses.replace(board, conditions=rows)


def clear_conditions(board: ConditionBoard) -> ConditionBoard:
    return dataclasses.replace(board, conditions=())


def set_target_price(board: ConditionBoard, target_price: Decimal) -> ConditionBoard:
    return dataclasses.replace(board, target_price=target_price)


def restore_saved(
    conditions: Iterable[Condition],
    proposal_value: Decimal,
) -> ConditionBoard:
    """Board holding the last saved conditions of a proposal."""
    return ConditionBoard(target_price=proposal_value, conditions=tuple(conditions))


def conditions_from_flow(flow: Iterable[ComputedFlowItem]) -> tuple[Condition, ...]:
    """One condition per standard flow item, SEMESTRAL shown as INTERMEDIARIAS."""
    return tuple(
        Condition(
            condition_type=item.bucket_type.value,
            due_date=item.first_due_date,
            installment_count=item.installment_count,
            installment_value=item.installment_value,
            periodicity_months=item.periodicity_months,
        )
        for item in flow
    )


def reset_to_standard(
    board: ConditionBoard,
    flow: Iterable[ComputedFlowItem],
    table_price: Decimal,
) -> ConditionBoard:
    """Replace rows and target price with the standard flow."""
    return ConditionBoard(
        target_price=table_price,
        conditions=conditions_from_flow(flow),
    )


# =========================================================================
# Closure
# =========================================================================


def total_distributed(conditions: Iterable[Condition]) -> Decimal:
    return sum((c.total_value for c in conditions), ZERO)


@traced_engine("conditions", "1.0", fingerprint_fields=("board",))
def summarize(
    board: ConditionBoard,
    tolerance: Decimal = MONEY_TOLERANCE,
) -> ConditionSummary:
    """Distributed total, remaining gap and closure status."""
    distributed = total_distributed(board.conditions)
    remaining = board.target_price - distributed
    if is_zero(remaining, tolerance):
        status = ClosureStatus.CLOSED
    elif remaining > tolerance:
        status = ClosureStatus.NEEDS_MORE
    else:
        status = ClosureStatus.EXCESS
    return ConditionSummary(
        target_price=board.target_price,
        total_distributed=distributed,
        remaining=remaining,
        status=status,
    )


def require_closed(
    board: ConditionBoard,
    tolerance: Decimal = MONEY_TOLERANCE,
) -> ConditionSummary:
    """
    Gate for saving: the schedule must distribute exactly the target price.

    Raises:
        ConditionsNotClosedError: With the signed remaining amount.
    """
    summary = summarize(board, tolerance)
    if not summary.is_closed:
        logger.warning("conditions_not_closed", extra={
            "target_price": str(summary.target_price),
            "total_distributed": str(summary.total_distributed),
            "remaining": str(summary.remaining),
            "closure_status": summary.status.value,
        })
        raise ConditionsNotClosedError(
            target_price=summary.target_price,
            total_distributed=summary.total_distributed,
            remaining=summary.remaining,
        )
    return summary


def group_by_bucket(board: ConditionBoard) -> dict[str, tuple[Condition, ...]]:
    """
    Rows grouped for display: the fixed buckets in order (always present,
    possibly empty), then any free-form types in first-seen order.
    """
    groups: dict[str, list[Condition]] = {b.value: [] for b in BUCKETS}
    for c in board.conditions:
        key = c.condition_type
        if key == FlowType.SEMESTRAL.value:
            key = FlowType.INTERMEDIARIAS.value
        groups.setdefault(key, []).append(c)
    return {k: tuple(v) for k, v in groups.items()}
