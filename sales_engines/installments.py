"""
sales_engines.installments -- Installment schedule expansion and regrouping.

Responsibility:
    Convert between the coarse condition view of a proposal's schedule and
    its fine-grained installments: expand conditions into dated
    installments, resequence installments, regroup edited installments back
    into conditions, and gate installment saves on closure against the
    proposal value.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Installments are ordered by due date, then by type weight
      (E, M, I, A, C, F, O); sequence numbers are 1..N in that order and
      are never taken from the caller.
    - Regrouping keys on (type code, value rounded to cents); each group
      keeps its earliest due date and its installment count.
    - Installment saves close when |proposal_value - sum(values)| < 0.01.

Failure modes:
    - InstallmentsNotClosedError from ``require_installments_closed``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from decimal import Decimal

from sales_engines.present_value import add_months
from sales_engines.tracer import traced_engine
from sales_kernel.domain.flow import CODE_WEIGHTS, FlowType
from sales_kernel.domain.proposal import Condition, Installment
from sales_kernel.domain.values import MONEY_TOLERANCE, ZERO, is_zero, round_money
from sales_kernel.exceptions import InstallmentsNotClosedError
from sales_kernel.logging_config import get_logger

logger = get_logger("engines.installments")

_UNKNOWN_WEIGHT = max(CODE_WEIGHTS.values()) + 1


def _order_key(installment: Installment) -> tuple:
    return (
        installment.due_date,
        CODE_WEIGHTS.get(installment.type_code, _UNKNOWN_WEIGHT),
    )


def resequence(installments: Iterable[Installment]) -> tuple[Installment, ...]:
    """Sort by due date and type weight, then number 1..N."""
    ordered = sorted(installments, key=_order_key)
    return tuple(
        dataclasses.replace(inst, sequence_number=n)
        for n, inst in enumerate(ordered, start=1)
    )


@traced_engine("installments", "1.0", fingerprint_fields=("conditions",))
def expand_conditions(conditions: Iterable[Condition]) -> tuple[Installment, ...]:
    """One installment per condition installment, stepped by its periodicity."""
    expanded: list[Installment] = []
    for condition in conditions:
        for i in range(condition.installment_count):
            expanded.append(Installment(
                type_code=condition.type_code,
                due_date=add_months(
                    condition.due_date, i * condition.periodicity_months
                ),
                value=condition.installment_value,
            ))
    return resequence(expanded)


def regroup_installments(installments: Iterable[Installment]) -> tuple[Condition, ...]:
    """
    Rebuild conditions from installments.

    Installments sharing a type code and a value (to the cent) form one
    condition dated at the group's earliest installment.  The rounded
    value is only the grouping key; the condition carries the members'
    mean so its total equals the sum of the installments it replaces.
    """
    groups: dict[tuple[str, Decimal], list[Installment]] = {}
    for inst in installments:
        key = (inst.type_code, round_money(inst.value))
        groups.setdefault(key, []).append(inst)

    conditions = []
    for (code, _), members in groups.items():
        first = min(m.due_date for m in members)
        total = total_installments(members)
        conditions.append(Condition(
            condition_type=FlowType.from_code(code).value,
            due_date=first,
            installment_count=len(members),
            installment_value=total / len(members),
        ))
    conditions.sort(
        key=lambda c: (c.due_date, CODE_WEIGHTS.get(c.type_code, _UNKNOWN_WEIGHT))
    )
    return tuple(conditions)


def total_installments(installments: Iterable[Installment]) -> Decimal:
    return sum((i.value for i in installments), ZERO)


def require_installments_closed(
    installments: Iterable[Installment],
    proposal_value: Decimal,
    tolerance: Decimal = MONEY_TOLERANCE,
) -> Decimal:
    """
    Gate for saving installments.

    Returns:
        The installment total.

    Raises:
        InstallmentsNotClosedError: With the signed difference
            (proposal value minus installment total).
    """
    total = total_installments(installments)
    difference = proposal_value - total
    if not is_zero(difference, tolerance):
        logger.warning("installments_not_closed", extra={
            "proposal_value": str(proposal_value),
            "total_installments": str(total),
            "difference": str(difference),
        })
        raise InstallmentsNotClosedError(
            proposal_value=proposal_value,
            total_installments=total,
            difference=difference,
        )
    return total
