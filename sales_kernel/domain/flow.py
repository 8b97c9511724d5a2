"""
Flow -- Payment flow types, periodicities and standard flow templates.

Responsibility:
    Defines the closed vocabulary shared by the standard flow template,
    proposal conditions and installments: flow types with their one-letter
    installment codes, periodicities with their labels, and the
    ``FlowTemplateItem`` / ``ComputedFlowItem`` value objects.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A template is usable only when its percentages sum to 100 within
      TEMPLATE_TOLERANCE (``validate_template``).
    - installment_count >= 1; periodicity in {0, 1, 2, 3, 6, 12};
      percent_of_total in [0, 100] with at most 4 decimal places.
    - SEMESTRAL is shown as the INTERMEDIARIAS bucket downstream.  This is
      a label merge only; values are untouched.

Failure modes:
    - ValueError on construction with an invalid count, periodicity or
      percentage.
    - FlowTemplateNotClosedError when a template does not close.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from sales_kernel.domain.values import (
    HUNDRED,
    TEMPLATE_TOLERANCE,
    ZERO,
    is_zero,
    to_decimal,
)
from sales_kernel.exceptions import FlowTemplateNotClosedError


class FlowType(str, Enum):
    """Payment flow types used by templates, conditions and installments."""

    ENTRADA = "ENTRADA"
    MENSAL = "MENSAL"
    INTERMEDIARIAS = "INTERMEDIARIAS"
    SEMESTRAL = "SEMESTRAL"
    ANUAL = "ANUAL"
    CHAVES = "CHAVES"
    FINANCIAMENTO = "FINANCIAMENTO"
    OUTROS = "OUTROS"

    @property
    def code(self) -> str:
        """One-letter installment code."""
        return _TYPE_CODES[self]

    @classmethod
    def parse(cls, value: str | FlowType) -> FlowType | None:
        """Resolve a flow type from its name; None for free-form types."""
        if isinstance(value, FlowType):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None

    @classmethod
    def from_code(cls, code: str) -> FlowType:
        """Resolve an installment code back to a flow type (OUTROS if unknown)."""
        return _CODE_TYPES.get(code.strip().upper(), cls.OUTROS)


_TYPE_CODES: dict[FlowType, str] = {
    FlowType.ENTRADA: "E",
    FlowType.MENSAL: "M",
    FlowType.INTERMEDIARIAS: "I",
    FlowType.SEMESTRAL: "I",
    FlowType.ANUAL: "A",
    FlowType.CHAVES: "C",
    FlowType.FINANCIAMENTO: "F",
    FlowType.OUTROS: "O",
}

_CODE_TYPES: dict[str, FlowType] = {
    "E": FlowType.ENTRADA,
    "M": FlowType.MENSAL,
    "I": FlowType.INTERMEDIARIAS,
    "A": FlowType.ANUAL,
    "C": FlowType.CHAVES,
    "F": FlowType.FINANCIAMENTO,
    "O": FlowType.OUTROS,
}

# Ordering weight of installment codes on the same due date.
CODE_WEIGHTS: dict[str, int] = {
    "E": 1,
    "M": 2,
    "I": 3,
    "A": 4,
    "C": 5,
    "F": 6,
    "O": 7,
}


def type_code(condition_type: str | FlowType) -> str:
    """Installment code for any condition type; free-form types map to O."""
    flow_type = FlowType.parse(condition_type)
    return flow_type.code if flow_type is not None else "O"


# =========================================================================
# Periodicity
# =========================================================================

SINGLE = 0

PERIODICITY_LABELS: dict[int, str] = {
    0: "UNICA",
    1: "MENSAL",
    2: "BIMESTRAL",
    3: "TRIMESTRAL",
    6: "SEMESTRAL",
    12: "ANUAL",
}

_LABEL_MONTHS: dict[str, int] = {
    "UNICA": 0,
    "MENSAL": 1,
    "BIMESTRAL": 2,
    "TRIMESTRAL": 3,
    "SEMESTRAL": 6,
    "INTERMEDIARIAS": 6,
    "ANUAL": 12,
}


def periodicity_label(months: int) -> str:
    """Label for a periodicity in months; unknown values read as UNICA."""
    return PERIODICITY_LABELS.get(months, PERIODICITY_LABELS[SINGLE])


def periodicity_months(value: int | str | None) -> int:
    """
    Parse a periodicity given as months or as a label.

    Anything that is not a supported periodicity maps to 0 (single event).
    """
    if value is None or isinstance(value, bool):
        return SINGLE
    if isinstance(value, int):
        return value if value in PERIODICITY_LABELS else SINGLE
    text = str(value).strip().upper()
    if text.isdigit():
        return periodicity_months(int(text))
    return _LABEL_MONTHS.get(text, SINGLE)


# =========================================================================
# Template items
# =========================================================================

_PERCENT_QUANT = Decimal("0.0001")


@dataclass(frozen=True)
class FlowTemplateItem:
    """
    One line of a price table's standard payment flow.

    Contract:
        Percentages are of the unit's table price.  A template (list of
        items) must be validated with ``validate_template`` before use.
    """

    flow_type: FlowType
    percent_of_total: Decimal
    installment_count: int
    periodicity_months: int
    first_due_date: date

    def __post_init__(self) -> None:
        if not isinstance(self.flow_type, FlowType):
            parsed = FlowType.parse(self.flow_type)
            if parsed is None:
                raise ValueError(f"Unknown flow type: {self.flow_type}")
            object.__setattr__(self, "flow_type", parsed)
        percent = to_decimal(self.percent_of_total)
        if percent < ZERO or percent > HUNDRED:
            raise ValueError(
                f"percent_of_total must be between 0 and 100: {percent}"
            )
        if percent != percent.quantize(_PERCENT_QUANT):
            raise ValueError(
                f"percent_of_total supports at most 4 decimal places: {percent}"
            )
        object.__setattr__(self, "percent_of_total", percent)
        if self.installment_count < 1:
            raise ValueError(
                f"installment_count must be >= 1: {self.installment_count}"
            )
        if self.periodicity_months not in PERIODICITY_LABELS:
            raise ValueError(
                f"Unsupported periodicity: {self.periodicity_months}"
            )


@dataclass(frozen=True)
class ComputedFlowItem:
    """A template item priced against a concrete table price."""

    flow_type: FlowType
    periodicity_months: int
    periodicity_label: str
    installment_count: int
    percent_of_total: Decimal
    first_due_date: date
    installment_value: Decimal
    total_value: Decimal

    @property
    def bucket_type(self) -> FlowType:
        """Condition bucket this item lands in (SEMESTRAL reads as INTERMEDIARIAS)."""
        if self.flow_type == FlowType.SEMESTRAL:
            return FlowType.INTERMEDIARIAS
        return self.flow_type


def template_total(items: Iterable[FlowTemplateItem]) -> Decimal:
    """Sum of template percentages."""
    return sum((item.percent_of_total for item in items), ZERO)


def validate_template(
    items: Iterable[FlowTemplateItem],
    tolerance: Decimal = TEMPLATE_TOLERANCE,
) -> tuple[FlowTemplateItem, ...]:
    """
    Check that a template closes at 100%.

    Returns:
        The items as a tuple, unchanged.

    Raises:
        FlowTemplateNotClosedError: With the signed deviation from 100.
    """
    items = tuple(items)
    total = template_total(items)
    deviation = total - HUNDRED
    if not is_zero(deviation, tolerance):
        raise FlowTemplateNotClosedError(total, deviation)
    return items
