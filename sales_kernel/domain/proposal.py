"""
Proposal -- Commercial proposal value objects.

Responsibility:
    Immutable DTOs for a commercial proposal and everything it owns:
    payment conditions, installments, commission lines, party lines and
    the append-only history.  Status enums and the closed vocabularies
    (rejection reasons, participation types, history actions) live here
    so the engines and the ORM share one definition.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Engines transform these objects; the ORM converts to and from them
    via ``to_dto()`` / ``from_dto()``.

Invariants enforced:
    - Money and percentages are Decimal; floats are rejected.
    - installment_count >= 1 on conditions; group_number >= 1 on parties.
    - Every line carries a stable id so single-line edits can address it.
    - HistoryEntry is frozen; once created it is never changed.

Failure modes:
    - ValueError / TypeError on construction with invalid values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sales_kernel.domain.flow import FlowType, type_code
from sales_kernel.domain.values import ZERO, display_percent, to_decimal


# =========================================================================
# Status lifecycle
# =========================================================================


class ProposalStatus(str, Enum):
    """Proposal lifecycle states."""

    RASCUNHO = "RASCUNHO"
    EM_ANALISE = "EM_ANALISE"
    APROVADO = "APROVADO"
    REPROVADO = "REPROVADO"
    FORMALIZADA = "FORMALIZADA"
    EM_ASSINATURA = "EM_ASSINATURA"
    ASSINADO = "ASSINADO"
    CANCELADO = "CANCELADO"


# Contract phase: financial editors are permanently locked.
FORMALIZING_STATUSES: frozenset[ProposalStatus] = frozenset({
    ProposalStatus.FORMALIZADA,
    ProposalStatus.EM_ASSINATURA,
    ProposalStatus.ASSINADO,
})


class RejectionReason(str, Enum):
    """Closed set of reasons a proposal can be rejected for."""

    MARGEM_BAIXA = "MARGEM_BAIXA"
    FLUXO_RUIM = "FLUXO_RUIM"
    DOCUMENTACAO = "DOCUMENTACAO"
    OUTRO = "OUTRO"


class HistoryAction(str, Enum):
    """Kinds of history entries."""

    CRIACAO = "CRIACAO"
    ENVIO = "ENVIO"
    APROVOU = "APROVOU"
    REJEITOU = "REJEITOU"
    REVISAO = "REVISAO"
    ASSINATURA = "ASSINATURA"


class ParticipationType(str, Enum):
    """Role of a party in the purchase, in display priority order."""

    BUYER = "COMPRADOR"
    CO_BUYER = "CO_COMPRADOR"
    SPOUSE = "CONJUGE"
    GUARANTOR = "AVALISTA"
    ATTORNEY = "PROCURADOR"

    @property
    def priority(self) -> int:
        return _PARTICIPATION_PRIORITY[self]


_PARTICIPATION_PRIORITY: dict[ParticipationType, int] = {
    ParticipationType.BUYER: 1,
    ParticipationType.CO_BUYER: 2,
    ParticipationType.SPOUSE: 3,
    ParticipationType.GUARANTOR: 4,
    ParticipationType.ATTORNEY: 5,
}


# =========================================================================
# Conditions and installments
# =========================================================================

_DEFAULT_PERIODICITY: dict[FlowType, int] = {
    FlowType.MENSAL: 1,
    FlowType.INTERMEDIARIAS: 6,
    FlowType.SEMESTRAL: 6,
    FlowType.ANUAL: 12,
}


def default_periodicity(condition_type: str | FlowType) -> int:
    """Months between installments implied by a condition type."""
    flow_type = FlowType.parse(condition_type)
    if flow_type is None:
        return 0
    return _DEFAULT_PERIODICITY.get(flow_type, 0)


@dataclass(frozen=True)
class Condition:
    """
    One bucketed row of a proposal's custom payment schedule.

    ``condition_type`` is normally a FlowType name but free-form types
    are accepted.  When ``periodicity_months`` is not given it is derived
    from the type (MENSAL 1, INTERMEDIARIAS 6, ANUAL 12, otherwise 0).
    """

    condition_type: str
    due_date: date
    installment_count: int
    installment_value: Decimal
    periodicity_months: int | None = None
    condition_id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        ctype = self.condition_type
        if isinstance(ctype, FlowType):
            ctype = ctype.value
        ctype = str(ctype).strip().upper()
        if not ctype:
            raise ValueError("condition_type is required")
        object.__setattr__(self, "condition_type", ctype)
        object.__setattr__(
            self, "installment_value", to_decimal(self.installment_value)
        )
        if self.installment_count < 1:
            raise ValueError(
                f"installment_count must be >= 1: {self.installment_count}"
            )
        if self.periodicity_months is None:
            object.__setattr__(
                self, "periodicity_months", default_periodicity(ctype)
            )
        elif self.periodicity_months < 0:
            raise ValueError(
                f"periodicity_months must be >= 0: {self.periodicity_months}"
            )

    @property
    def total_value(self) -> Decimal:
        return self.installment_value * self.installment_count

    @property
    def flow_type(self) -> FlowType | None:
        return FlowType.parse(self.condition_type)

    @property
    def type_code(self) -> str:
        return type_code(self.condition_type)


@dataclass(frozen=True)
class Installment:
    """
    One dated, valued payment event.

    ``sequence_number`` is assigned by resequencing and is never taken
    from user input.
    """

    type_code: str
    due_date: date
    value: Decimal
    sequence_number: int = 0

    def __post_init__(self) -> None:
        code = str(self.type_code).strip().upper()
        if len(code) != 1:
            raise ValueError(f"type_code must be a single letter: {self.type_code!r}")
        object.__setattr__(self, "type_code", code)
        object.__setattr__(self, "value", to_decimal(self.value))


# =========================================================================
# Rateio lines
# =========================================================================


@dataclass(frozen=True)
class CommissionLine:
    """Share of the commission pool assigned to one entity.

    ``percent`` is kept unrounded; use ``display_percent`` to show it.
    """

    entity_id: UUID
    percent: Decimal
    value: Decimal
    is_responsible: bool = False
    line_id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "percent", to_decimal(self.percent))
        object.__setattr__(self, "value", to_decimal(self.value))

    @property
    def display_percent(self) -> Decimal:
        return display_percent(self.percent)


@dataclass(frozen=True)
class PartyLine:
    """Participation of one entity in the purchase, inside an economic group."""

    entity_id: UUID
    participation_type: ParticipationType
    percent: Decimal
    group_number: int = 1
    is_responsible: bool = False
    line_id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not isinstance(self.participation_type, ParticipationType):
            object.__setattr__(
                self,
                "participation_type",
                ParticipationType(self.participation_type),
            )
        object.__setattr__(self, "percent", to_decimal(self.percent))
        if self.group_number < 1:
            raise ValueError(f"group_number must be >= 1: {self.group_number}")

    @property
    def display_percent(self) -> Decimal:
        return display_percent(self.percent)


# =========================================================================
# History and proposal
# =========================================================================


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable record of a status transition or a financial revision."""

    proposal_id: UUID
    action: HistoryAction
    actor_id: UUID
    occurred_at: datetime
    prior_status: ProposalStatus | None
    new_status: ProposalStatus
    note: str | None = None
    entry_id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class Proposal:
    """
    A commercial proposal for one unit.

    Contract:
        ``proposal_value`` is the negotiated target price; every condition
        set and installment set saved for the proposal must close against
        it.  ``commission_value`` is the pool distributed across
        commission lines.

    Guarantees:
        - Immutable; lifecycle changes produce a new Proposal.
        - ``discount`` is always table value minus proposal value.
    """

    proposal_id: UUID
    unit_id: UUID
    status: ProposalStatus
    proposal_value: Decimal
    original_table_value: Decimal
    proposal_date: date
    valid_until: date | None = None
    commission_value: Decimal = ZERO
    decision_date: datetime | None = None
    decision_user_id: UUID | None = None
    rejection_reason: RejectionReason | None = None
    rejection_note: str | None = None
    conditions: tuple[Condition, ...] = ()
    installments: tuple[Installment, ...] = ()
    commissions: tuple[CommissionLine, ...] = ()
    parties: tuple[PartyLine, ...] = ()
    history: tuple[HistoryEntry, ...] = ()

    def __post_init__(self) -> None:
        for name in ("proposal_value", "original_table_value", "commission_value"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    @property
    def discount(self) -> Decimal:
        return self.original_table_value - self.proposal_value
