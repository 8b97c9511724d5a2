"""
sales_engines.standard_flow -- Standard payment flow generation.

Responsibility:
    Price a unit from its price-table entry and turn the table's
    percentage-based flow template into concrete installment buckets
    (``ComputedFlowItem``) for that price.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by the condition bucket engine (reset to standard) and the
    present-value comparator (the "standard" side).

Invariants enforced:
    - installment_value = table_price * percent / 100 / installment_count.
    - total_value = table_price * percent / 100.
    - Output order follows template order, one item per template item.
    - A non-positive table price produces zero values with the same shape;
      the caller decides whether that is saveable.

Failure modes:
    - None from ``generate``; template closure is validated upstream with
      ``sales_kernel.domain.flow.validate_template``.

Usage:
    from sales_engines.standard_flow import StandardFlowGenerator

    flow = StandardFlowGenerator().generate(Decimal("200000"), template)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sales_engines.tracer import traced_engine
from sales_kernel.domain.flow import (
    ComputedFlowItem,
    FlowTemplateItem,
    periodicity_label,
)
from sales_kernel.domain.values import HUNDRED, ZERO, to_decimal
from sales_kernel.logging_config import get_logger

logger = get_logger("engines.standard_flow")

ONE = Decimal("1")


@dataclass(frozen=True)
class PriceTableEntry:
    """
    Price-table data for one unit.

    Missing factors count as 1.  A missing or non-positive area prices the
    unit at zero.
    """

    unit_id: UUID
    private_area: Decimal | None
    price_per_m2: Decimal
    correction_factor: Decimal | None = None
    floor_factor: Decimal | None = None
    board_factor: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "price_per_m2", to_decimal(self.price_per_m2))
        for name in ("private_area", "correction_factor", "floor_factor", "board_factor"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))


def compute_table_price(entry: PriceTableEntry) -> Decimal:
    """area x price/m2 x correction x floor x board."""
    area = entry.private_area or ZERO
    if area <= ZERO:
        return ZERO
    price = area * entry.price_per_m2
    for factor in (entry.correction_factor, entry.floor_factor, entry.board_factor):
        price *= factor if factor is not None else ONE
    return price


class StandardFlowGenerator:
    """
    Pure function generator for standard payment flows.

    Contract:
        No I/O, no clock; dates come from the template.
    Guarantees:
        - One ComputedFlowItem per template item, in template order.
        - Sum of total_value equals table_price when the template closes.
    """

    @traced_engine("standard_flow", "1.0", fingerprint_fields=("table_price", "template"))
    def generate(
        self,
        table_price: Decimal,
        template: Sequence[FlowTemplateItem],
    ) -> tuple[ComputedFlowItem, ...]:
        """
        Price every template item against ``table_price``.

        Args:
            table_price: Unit table price, factors already applied.
            template: Validated flow template.

        Returns:
            Tuple of ComputedFlowItem in template order.
        """
        price = to_decimal(table_price)
        if price <= ZERO:
            logger.warning(
                "standard_flow_non_positive_price",
                extra={"table_price": str(price), "items": len(template)},
            )
            price = ZERO

        items = tuple(self._compute_item(price, item) for item in template)

        logger.info("standard_flow_generated", extra={
            "table_price": str(price),
            "items": len(items),
            "total": str(sum((i.total_value for i in items), ZERO)),
        })
        return items

    @staticmethod
    def _compute_item(price: Decimal, item: FlowTemplateItem) -> ComputedFlowItem:
        total = price * item.percent_of_total / HUNDRED
        return ComputedFlowItem(
            flow_type=item.flow_type,
            periodicity_months=item.periodicity_months,
            periodicity_label=periodicity_label(item.periodicity_months),
            installment_count=item.installment_count,
            percent_of_total=item.percent_of_total,
            first_due_date=item.first_due_date,
            installment_value=total / item.installment_count,
            total_value=total,
        )
