"""
sales_engines.rateio -- Rateio (proportional split) engine for commissions and parties.

Responsibility:
    Distribute a fixed pool across N lines with bidirectional editing:
    editing a line's percent recomputes its value, editing its value
    recomputes its percent.  Maintain the single-responsible rule per
    scope and validate closure at save time.  Two concrete line kinds
    use the same core:

    * Commission lines -- pool is the proposal's commission value, the
      whole list is one responsibility scope, tolerance 0.05, both percent
      and value sums must close.
    * Party lines -- pool is 100 (participation percent), grouped into
      economic groups that are each a responsibility scope, tolerance 0.01
      over the sum across all groups.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Lines are frozen DTOs; every operation returns a new tuple.

Invariants enforced:
    - One canonical source field per edit: the paired field is always
      recomputed from it, never edited independently.
    - Percent is kept unrounded; display rounding is a property of the line.
    - Editing one line never changes any other line (no auto-rebalance).
    - Setting a line responsible clears every sibling in the same scope.
    - The first line added to an empty list is responsible and holds 100%;
      later lines start at 0% and not responsible.
    - Party group numbers are compacted to 1..N, preserving order,
      whenever a party is removed or moved to another group.

Failure modes:
    - LineNotFoundError for an unknown line id.
    - RateioPercentNotClosedError / RateioValueNotClosedError /
      ParticipationNotClosedError with the signed deviation.
    - MissingResponsiblePartyError / MultipleResponsiblePartiesError.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sales_engines.tracer import traced_engine
from sales_kernel.domain.proposal import (
    CommissionLine,
    ParticipationType,
    PartyLine,
)
from sales_kernel.domain.values import (
    COMMISSION_TOLERANCE,
    HUNDRED,
    PARTICIPATION_TOLERANCE,
    ZERO,
    to_amount,
    to_decimal,
    to_percent,
    within_tolerance,
)
from sales_kernel.exceptions import (
    LineNotFoundError,
    MissingResponsiblePartyError,
    MultipleResponsiblePartiesError,
    ParticipationNotClosedError,
    RateioPercentNotClosedError,
    RateioValueNotClosedError,
)
from sales_kernel.logging_config import get_logger

logger = get_logger("engines.rateio")

L = TypeVar("L", CommissionLine, PartyLine)


@dataclass(frozen=True)
class RateioSummary:
    """Totals of a line list against its pool."""

    line_count: int
    total_percent: Decimal
    total_value: Decimal
    pool: Decimal
    responsible_count: int

    @property
    def percent_deviation(self) -> Decimal:
        return self.total_percent - HUNDRED

    @property
    def value_deviation(self) -> Decimal:
        return self.total_value - self.pool


def _whole_list(line: object) -> Hashable:
    return None


class RateioEngine:
    """
    Generic bidirectional split over one pool.

    Contract:
        ``scope_of`` maps a line to its responsibility scope; lines in the
        same scope compete for the single responsible flag.  Lines without
        a ``value`` field derive their value from percent and pool.
    """

    def __init__(
        self,
        pool: Decimal,
        tolerance: Decimal,
        scope_of: Callable[[object], Hashable] = _whole_list,
    ):
        self.pool = to_decimal(pool)
        self.tolerance = tolerance
        self.scope_of = scope_of

    @staticmethod
    def index_of(lines: Sequence[L], line_id: UUID) -> int:
        for i, line in enumerate(lines):
            if line.line_id == line_id:
                return i
        raise LineNotFoundError(str(line_id))

    @staticmethod
    def _has_value(line: object) -> bool:
        return hasattr(line, "value")

    def value_of(self, line: L) -> Decimal:
        if self._has_value(line):
            return line.value
        return to_amount(line.percent, self.pool)

    def _replace(self, lines: Sequence[L], index: int, line: L) -> tuple[L, ...]:
        out = list(lines)
        out[index] = line
        return tuple(out)

    def edit_percent(self, lines: Sequence[L], line_id: UUID, percent: Decimal) -> tuple[L, ...]:
        """Set a line's percent; its value follows."""
        index = self.index_of(lines, line_id)
        percent = to_decimal(percent)
        changes: dict[str, Decimal] = {"percent": percent}
        if self._has_value(lines[index]):
            changes["value"] = to_amount(percent, self.pool)
        return self._replace(lines, index, dataclasses.replace(lines[index], **changes))

    def edit_value(self, lines: Sequence[L], line_id: UUID, value: Decimal) -> tuple[L, ...]:
        """Set a line's value; its percent follows (0 when the pool is empty)."""
        index = self.index_of(lines, line_id)
        value = to_decimal(value)
        changes: dict[str, Decimal] = {"percent": to_percent(value, self.pool)}
        if self._has_value(lines[index]):
            changes["value"] = value
        return self._replace(lines, index, dataclasses.replace(lines[index], **changes))

    def set_responsible(
        self, lines: Sequence[L], line_id: UUID, responsible: bool = True
    ) -> tuple[L, ...]:
        """Flag one line responsible, clearing its scope siblings atomically."""
        index = self.index_of(lines, line_id)
        if not responsible:
            return self._replace(
                lines, index, dataclasses.replace(lines[index], is_responsible=False)
            )
        scope = self.scope_of(lines[index])
        out = []
        for i, line in enumerate(lines):
            if i == index:
                out.append(dataclasses.replace(line, is_responsible=True))
            elif line.is_responsible and self.scope_of(line) == scope:
                out.append(dataclasses.replace(line, is_responsible=False))
            else:
                out.append(line)
        return tuple(out)

    def remove_line(self, lines: Sequence[L], line_id: UUID) -> tuple[L, ...]:
        index = self.index_of(lines, line_id)
        return tuple(lines[:index]) + tuple(lines[index + 1:])

    def summarize(self, lines: Sequence[L]) -> RateioSummary:
        return RateioSummary(
            line_count=len(lines),
            total_percent=sum((line.percent for line in lines), ZERO),
            total_value=sum((self.value_of(line) for line in lines), ZERO),
            pool=self.pool,
            responsible_count=sum(1 for line in lines if line.is_responsible),
        )

    def responsible_by_scope(self, lines: Sequence[L]) -> dict[Hashable, int]:
        counts: dict[Hashable, int] = {}
        for line in lines:
            if line.is_responsible:
                scope = self.scope_of(line)
                counts[scope] = counts.get(scope, 0) + 1
        return counts

    def percent_closes(self, summary: RateioSummary) -> bool:
        return within_tolerance(summary.total_percent, HUNDRED, self.tolerance)

    def value_closes(self, summary: RateioSummary) -> bool:
        return within_tolerance(summary.total_value, self.pool, self.tolerance)


def removal_empties(lines: Sequence[CommissionLine | PartyLine], line_id: UUID) -> bool:
    """True when removing ``line_id`` leaves the list empty."""
    return len(lines) == 1 and lines[0].line_id == line_id


# =========================================================================
# Commissions
# =========================================================================


def commission_engine(
    pool: Decimal, tolerance: Decimal = COMMISSION_TOLERANCE
) -> RateioEngine:
    return RateioEngine(pool=pool, tolerance=tolerance)


def add_commission(
    lines: Sequence[CommissionLine], entity_id: UUID, pool: Decimal
) -> tuple[CommissionLine, ...]:
    """Append a commission line; the first one takes the whole pool."""
    if not lines:
        line = CommissionLine(
            entity_id=entity_id,
            percent=HUNDRED,
            value=to_decimal(pool),
            is_responsible=True,
        )
    else:
        line = CommissionLine(entity_id=entity_id, percent=ZERO, value=ZERO)
    return tuple(lines) + (line,)


def sync_commission_entities(
    lines: Sequence[CommissionLine],
    entity_ids: Iterable[UUID],
    pool: Decimal,
) -> tuple[CommissionLine, ...]:
    """Mirror an entity selection: drop unselected lines, append new ones."""
    selected = list(dict.fromkeys(entity_ids))
    kept = tuple(line for line in lines if line.entity_id in selected)
    present = {line.entity_id for line in kept}
    for entity_id in selected:
        if entity_id not in present:
            kept = add_commission(kept, entity_id, pool)
    return kept


@traced_engine("rateio", "1.0", fingerprint_fields=("lines", "pool"))
def validate_commissions(
    lines: Sequence[CommissionLine],
    pool: Decimal,
    tolerance: Decimal = COMMISSION_TOLERANCE,
) -> RateioSummary:
    """
    Gate for saving commission lines.

    An empty list is valid.  Otherwise percents must sum to 100 and values
    to the pool, both within ``tolerance``, with exactly one responsible.
    """
    engine = commission_engine(pool, tolerance)
    summary = engine.summarize(lines)
    if not lines:
        return summary
    if not engine.percent_closes(summary):
        raise RateioPercentNotClosedError(
            total_percent=summary.total_percent,
            deviation=summary.percent_deviation,
            tolerance=tolerance,
        )
    if not engine.value_closes(summary):
        raise RateioValueNotClosedError(
            total_value=summary.total_value,
            pool=summary.pool,
            deviation=summary.value_deviation,
            tolerance=tolerance,
        )
    if summary.responsible_count == 0:
        raise MissingResponsiblePartyError("commission")
    if summary.responsible_count > 1:
        raise MultipleResponsiblePartiesError("commission", summary.responsible_count)
    return summary


# =========================================================================
# Parties
# =========================================================================


def _group_scope(line: object) -> Hashable:
    return line.group_number


def party_engine(tolerance: Decimal = PARTICIPATION_TOLERANCE) -> RateioEngine:
    return RateioEngine(pool=HUNDRED, tolerance=tolerance, scope_of=_group_scope)


def compact_groups(lines: Sequence[PartyLine]) -> tuple[PartyLine, ...]:
    """Renumber group numbers to 1..N without gaps, preserving their order."""
    mapping = {
        old: new
        for new, old in enumerate(sorted({line.group_number for line in lines}), start=1)
    }
    return tuple(
        line if line.group_number == mapping[line.group_number]
        else dataclasses.replace(line, group_number=mapping[line.group_number])
        for line in lines
    )


def _next_group(lines: Sequence[PartyLine]) -> int:
    return max((line.group_number for line in lines), default=0) + 1


def add_party(
    lines: Sequence[PartyLine],
    entity_id: UUID,
    group_number: int | None = None,
) -> tuple[PartyLine, ...]:
    """
    Append a party, by default in a new economic group.

    The first party overall is the responsible buyer with 100%; later ones
    are co-buyers at 0%.
    """
    next_group = group_number if group_number is not None else _next_group(lines)
    if not lines:
        line = PartyLine(
            entity_id=entity_id,
            participation_type=ParticipationType.BUYER,
            percent=HUNDRED,
            group_number=next_group,
            is_responsible=True,
        )
    else:
        line = PartyLine(
            entity_id=entity_id,
            participation_type=ParticipationType.CO_BUYER,
            percent=ZERO,
            group_number=next_group,
        )
    return tuple(lines) + (line,)


def sync_party_entities(
    lines: Sequence[PartyLine], entity_ids: Iterable[UUID]
) -> tuple[PartyLine, ...]:
    """
    Mirror an entity selection; groups are compacted afterwards.

    Every newly selected entity joins one shared new group.
    """
    selected = list(dict.fromkeys(entity_ids))
    kept = tuple(line for line in lines if line.entity_id in selected)
    present = {line.entity_id for line in kept}
    new_group = _next_group(kept)
    for entity_id in selected:
        if entity_id not in present:
            kept = add_party(kept, entity_id, new_group)
    return compact_groups(kept)


def remove_party(lines: Sequence[PartyLine], line_id: UUID) -> tuple[PartyLine, ...]:
    return compact_groups(party_engine().remove_line(lines, line_id))


def move_party_to_group(
    lines: Sequence[PartyLine], line_id: UUID, group_number: int
) -> tuple[PartyLine, ...]:
    """Move a party to another group; it loses its responsible flag."""
    if group_number < 1:
        raise ValueError(f"group_number must be >= 1: {group_number}")
    engine = party_engine()
    index = engine.index_of(lines, line_id)
    moved = dataclasses.replace(
        lines[index], group_number=group_number, is_responsible=False
    )
    out = list(lines)
    out[index] = moved
    return compact_groups(out)


def set_participation_type(
    lines: Sequence[PartyLine],
    line_id: UUID,
    participation_type: ParticipationType,
) -> tuple[PartyLine, ...]:
    index = RateioEngine.index_of(lines, line_id)
    out = list(lines)
    out[index] = dataclasses.replace(
        lines[index], participation_type=ParticipationType(participation_type)
    )
    return tuple(out)


def group_parties(lines: Sequence[PartyLine]) -> dict[int, tuple[PartyLine, ...]]:
    """Parties by group number; inside a group, by participation priority."""
    groups: dict[int, list[PartyLine]] = {}
    for line in sorted(lines, key=lambda p: p.group_number):
        groups.setdefault(line.group_number, []).append(line)
    return {
        number: tuple(sorted(members, key=lambda p: p.participation_type.priority))
        for number, members in groups.items()
    }


@traced_engine("rateio", "1.0", fingerprint_fields=("lines",))
def validate_parties(
    lines: Sequence[PartyLine],
    tolerance: Decimal = PARTICIPATION_TOLERANCE,
) -> RateioSummary:
    """
    Gate for saving party lines.

    An empty list is valid.  Otherwise participation across all groups
    must sum to 100 within ``tolerance``, at least one line must be
    responsible and no group may have more than one.
    """
    engine = party_engine(tolerance)
    summary = engine.summarize(lines)
    if not lines:
        return summary
    if not engine.percent_closes(summary):
        raise ParticipationNotClosedError(
            total_percent=summary.total_percent,
            deviation=summary.percent_deviation,
            tolerance=tolerance,
        )
    if summary.responsible_count == 0:
        raise MissingResponsiblePartyError("participation")
    for group, count in engine.responsible_by_scope(lines).items():
        if count > 1:
            raise MultipleResponsiblePartiesError(f"group {group}", count)
    return summary
