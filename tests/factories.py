"""Test data builders and fake collaborators shared across the suite."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sales_engines.standard_flow import PriceTableEntry
from sales_kernel.domain.entities import EntityRef, EntityType
from sales_kernel.domain.flow import FlowTemplateItem, FlowType
from sales_kernel.domain.proposal import (
    CommissionLine,
    Condition,
    ParticipationType,
    PartyLine,
)
from sales_kernel.exceptions import DocumentGenerationError, UnitReservationError


# =============================================================================
# Fake collaborators
# =============================================================================


@dataclass
class FakeUnitGateway:
    """Records reserve/release calls; can be told to fail."""

    reserved: list[tuple[UUID, UUID]] = field(default_factory=list)
    released: list[tuple[UUID, UUID]] = field(default_factory=list)
    fail_with: str | None = None

    def reserve(self, unit_id: UUID, proposal_id: UUID) -> None:
        if self.fail_with:
            raise UnitReservationError(str(unit_id), self.fail_with)
        self.reserved.append((unit_id, proposal_id))

    def release(self, unit_id: UUID, proposal_id: UUID) -> None:
        if self.fail_with:
            raise UnitReservationError(str(unit_id), self.fail_with)
        self.released.append((unit_id, proposal_id))


@dataclass
class FakeDocumentGenerator:
    """Returns a predictable reference per document; can be told to fail."""

    generated: list[tuple[UUID, str]] = field(default_factory=list)
    fail_with: str | None = None

    def generate(self, proposal, document_kind: str) -> str:
        if self.fail_with:
            raise DocumentGenerationError(document_kind, self.fail_with)
        self.generated.append((proposal.proposal_id, document_kind))
        return f"doc-{len(self.generated)}"


@dataclass
class FakePriceTables:
    """Single flow template shared by every unit."""

    entry_for: dict[UUID, PriceTableEntry] = field(default_factory=dict)
    template: tuple[FlowTemplateItem, ...] = ()

    def get_price_entry(self, unit_id: UUID) -> PriceTableEntry:
        return self.entry_for[unit_id]

    def get_flow_template(self, unit_id: UUID) -> tuple[FlowTemplateItem, ...]:
        return self.template


@dataclass
class FakeEntityDirectory:
    refs: dict[UUID, EntityRef] = field(default_factory=dict)

    def add(self, name: str, document: str, entity_type: EntityType) -> UUID:
        entity_id = uuid4()
        self.refs[entity_id] = EntityRef(entity_id, name, document, entity_type)
        return entity_id

    def resolve(self, entity_ids) -> dict[UUID, EntityRef]:
        return {i: self.refs[i] for i in entity_ids if i in self.refs}


# =============================================================================
# Builders
# =============================================================================


def make_template(first_due: date = date(2026, 3, 1)) -> tuple[FlowTemplateItem, ...]:
    """20% down payment plus 80% in ten monthly installments."""
    return (
        FlowTemplateItem(FlowType.ENTRADA, Decimal("20"), 1, 0, first_due),
        FlowTemplateItem(FlowType.MENSAL, Decimal("80"), 10, 1, first_due),
    )


def make_conditions(total: Decimal = Decimal("200000")) -> tuple[Condition, ...]:
    """Down payment of 20% plus ten equal monthly installments closing at ``total``."""
    down = total * Decimal("0.2")
    return (
        Condition("ENTRADA", date(2026, 3, 1), 1, down),
        Condition("MENSAL", date(2026, 4, 1), 10, (total - down) / 10),
    )


def make_commissions(pool: Decimal, *percents: str) -> tuple[CommissionLine, ...]:
    """One line per percent; the first line is responsible."""
    return tuple(
        CommissionLine(
            entity_id=uuid4(),
            percent=Decimal(p),
            value=Decimal(p) / 100 * pool,
            is_responsible=(i == 0),
        )
        for i, p in enumerate(percents)
    )


def make_party(
    group: int,
    percent: str = "0",
    responsible: bool = False,
    participation_type: ParticipationType = ParticipationType.CO_BUYER,
) -> PartyLine:
    return PartyLine(
        entity_id=uuid4(),
        participation_type=participation_type,
        percent=Decimal(percent),
        group_number=group,
        is_responsible=responsible,
    )
