"""
Values -- Money and percentage reconciliation primitives.

Responsibility:
    Bidirectional amount <-> percentage conversion and the tolerance checks
    that every closure gate in the system is built on.  Internal
    accumulation is unrounded; rounding happens only when a value is shown
    or stored.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine.  No outward dependencies.

Invariants enforced:
    - Decimal-only arithmetic: floats are rejected at the boundary.
    - Round trip: ``to_amount(to_percent(a, t), t)`` equals ``a`` to within
      MONEY_TOLERANCE for any ``t > 0``, because ``to_percent`` does not round.
    - Two tolerance semantics are kept apart on purpose:
        * ``is_zero`` is strict (``|x| < tol``) and gates monetary closure.
        * ``within_tolerance`` is inclusive (``|a - b| <= tol``) and gates
          percentage closure for commissions and participations.

Failure modes:
    - TypeError when a float reaches ``to_decimal``.
    - ValueError when a string is not a valid number.

Audit relevance:
    Every "remaining" and "deviation" number shown to a negotiator is
    computed here, unrounded, so the reported gap is the real gap.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

HUNDRED = Decimal("100")
ZERO = Decimal("0")

# Canonical monetary closure tolerance (conditions, installments).
MONEY_TOLERANCE = Decimal("0.01")

# Commission closure compounds rounding across percent and value fields.
COMMISSION_TOLERANCE = Decimal("0.05")

PARTICIPATION_TOLERANCE = Decimal("0.01")

TEMPLATE_TOLERANCE = Decimal("0.01")

DISPLAY_QUANT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce an int, str or Decimal into a Decimal.

    Raises:
        TypeError: If value is a float (or bool).
        ValueError: If value cannot be parsed as a number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"Float/bool values are not accepted for money math: {value!r}"
        )
    try:
        return Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid numeric value: {value!r}") from e


def to_percent(amount: Decimal, total: Decimal) -> Decimal:
    """
    Percentage that ``amount`` represents of ``total``, unrounded.

    Returns 0 when ``total`` is not positive.
    """
    if total <= ZERO:
        return ZERO
    return amount / total * HUNDRED


def to_amount(percent: Decimal, total: Decimal) -> Decimal:
    """Amount that ``percent`` represents of ``total``, unrounded."""
    return percent / HUNDRED * total


def display_percent(percent: Decimal) -> Decimal:
    """Percent rounded half-up to 2 places, for display only."""
    return percent.quantize(DISPLAY_QUANT, rounding=ROUND_HALF_UP)


def round_money(amount: Decimal) -> Decimal:
    """Amount rounded half-up to 2 places, for display or persistence."""
    return amount.quantize(DISPLAY_QUANT, rounding=ROUND_HALF_UP)


def is_zero(value: Decimal, tolerance: Decimal = MONEY_TOLERANCE) -> bool:
    """Strict monetary closure check: ``|value| < tolerance``."""
    return abs(value) < tolerance


def within_tolerance(
    actual: Decimal, expected: Decimal, tolerance: Decimal
) -> bool:
    """Inclusive closure check: ``|actual - expected| <= tolerance``."""
    return abs(actual - expected) <= tolerance
