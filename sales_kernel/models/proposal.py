"""
Module: sales_kernel.models.proposal
Responsibility: ORM persistence for commercial proposals, their financial
    lines and their history.

Architecture position: Kernel > Models.  May import from db/base.py,
    exceptions and domain DTOs only.

Invariants enforced:
    - Valid status values are enforced by a check constraint; the lifecycle
      engine enforces which transitions are allowed.
    - Financial lines (conditions, installments, commissions, parties) are
      owned by the proposal with delete-orphan cascade, so assigning a new
      list is a full replace inside the caller's transaction.
    - History rows are append-only: ORM listeners refuse UPDATE and DELETE.

Failure modes:
    - ImmutabilityViolationError on history UPDATE/DELETE.
    - IntegrityError on an unknown status value.

Audit relevance:
    ``sales_proposal_history`` is the audit trail of every status
    transition and every financial revision of an approved proposal.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sales_kernel.db.base import Base, TrackedBase, UUIDString
from sales_kernel.domain.proposal import (
    CommissionLine,
    Condition,
    HistoryAction,
    HistoryEntry,
    Installment,
    ParticipationType,
    PartyLine,
    Proposal,
    ProposalStatus,
    RejectionReason,
)
from sales_kernel.exceptions import ImmutabilityViolationError

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ProposalStatus)


class ProposalModel(TrackedBase):
    """Persistent commercial proposal.

    Contract:
        ``id`` is the proposal id.  Line collections are replaced
        wholesale on save.
    """

    __tablename__ = "sales_proposals"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_sales_proposals_valid_status",
        ),
        Index("ix_sales_proposals_unit", "unit_id"),
        Index("ix_sales_proposals_status", "status"),
    )

    unit_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    proposal_value: Mapped[Decimal] = mapped_column(nullable=False)
    original_table_value: Mapped[Decimal] = mapped_column(nullable=False)
    commission_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    proposal_date: Mapped[date] = mapped_column(nullable=False)
    valid_until: Mapped[date | None] = mapped_column(nullable=True)
    decision_date: Mapped[datetime | None] = mapped_column(nullable=True)
    decision_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(30), nullable=True)
    rejection_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    conditions: Mapped[list[ProposalConditionModel]] = relationship(
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ProposalConditionModel.position",
        lazy="selectin",
    )
    installments: Mapped[list[ProposalInstallmentModel]] = relationship(
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ProposalInstallmentModel.sequence_number",
        lazy="selectin",
    )
    commissions: Mapped[list[ProposalCommissionModel]] = relationship(
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ProposalCommissionModel.position",
        lazy="selectin",
    )
    parties: Mapped[list[ProposalPartyModel]] = relationship(
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="ProposalPartyModel.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Proposal {self.id} unit={self.unit_id} status={self.status}>"

    def to_dto(self, history: tuple[HistoryEntry, ...] = ()) -> Proposal:
        """Convert ORM model to frozen domain DTO."""
        return Proposal(
            proposal_id=self.id,
            unit_id=self.unit_id,
            status=ProposalStatus(self.status),
            proposal_value=self.proposal_value,
            original_table_value=self.original_table_value,
            commission_value=self.commission_value,
            proposal_date=self.proposal_date,
            valid_until=self.valid_until,
            decision_date=self.decision_date,
            decision_user_id=self.decision_user_id,
            rejection_reason=(
                RejectionReason(self.rejection_reason)
                if self.rejection_reason else None
            ),
            rejection_note=self.rejection_note,
            conditions=tuple(c.to_dto() for c in self.conditions),
            installments=tuple(i.to_dto() for i in self.installments),
            commissions=tuple(c.to_dto() for c in self.commissions),
            parties=tuple(p.to_dto() for p in self.parties),
            history=history,
        )

    @classmethod
    def from_dto(cls, dto: Proposal, created_by_id: UUID) -> ProposalModel:
        """Create ORM model (with its lines) from domain DTO."""
        model = cls(id=dto.proposal_id, created_by_id=created_by_id)
        model.apply_header(dto)
        model.conditions = [
            ProposalConditionModel.from_dto(c, i) for i, c in enumerate(dto.conditions)
        ]
        model.installments = [
            ProposalInstallmentModel.from_dto(i) for i in dto.installments
        ]
        model.commissions = [
            ProposalCommissionModel.from_dto(c, i) for i, c in enumerate(dto.commissions)
        ]
        model.parties = [
            ProposalPartyModel.from_dto(p, i) for i, p in enumerate(dto.parties)
        ]
        return model

    def apply_header(self, dto: Proposal) -> None:
        """Copy status, values and decision metadata from a DTO."""
        self.unit_id = dto.unit_id
        self.status = dto.status.value
        self.proposal_value = dto.proposal_value
        self.original_table_value = dto.original_table_value
        self.commission_value = dto.commission_value
        self.proposal_date = dto.proposal_date
        self.valid_until = dto.valid_until
        self.decision_date = dto.decision_date
        self.decision_user_id = dto.decision_user_id
        self.rejection_reason = (
            dto.rejection_reason.value if dto.rejection_reason else None
        )
        self.rejection_note = dto.rejection_note


class ProposalConditionModel(Base):
    """One payment condition row of a proposal."""

    __tablename__ = "sales_proposal_conditions"

    __table_args__ = (
        Index("ix_sales_proposal_conditions_proposal", "proposal_id"),
    )

    proposal_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_proposals.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    condition_type: Mapped[str] = mapped_column(String(40), nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    installment_count: Mapped[int] = mapped_column(Integer, nullable=False)
    installment_value: Mapped[Decimal] = mapped_column(nullable=False)
    periodicity_months: Mapped[int] = mapped_column(Integer, nullable=False)

    proposal: Mapped[ProposalModel] = relationship(back_populates="conditions")

    def to_dto(self) -> Condition:
        return Condition(
            condition_id=self.id,
            condition_type=self.condition_type,
            due_date=self.due_date,
            installment_count=self.installment_count,
            installment_value=self.installment_value,
            periodicity_months=self.periodicity_months,
        )

    @classmethod
    def from_dto(cls, dto: Condition, position: int) -> ProposalConditionModel:
        return cls(
            id=dto.condition_id,
            position=position,
            condition_type=dto.condition_type,
            due_date=dto.due_date,
            installment_count=dto.installment_count,
            installment_value=dto.installment_value,
            periodicity_months=dto.periodicity_months,
        )


class ProposalInstallmentModel(Base):
    """One installment of a proposal's fine-grained schedule."""

    __tablename__ = "sales_proposal_installments"

    __table_args__ = (
        Index("ix_sales_proposal_installments_proposal", "proposal_id"),
    )

    proposal_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_proposals.id"), nullable=False,
    )
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    type_code: Mapped[str] = mapped_column(String(1), nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    value: Mapped[Decimal] = mapped_column(nullable=False)

    proposal: Mapped[ProposalModel] = relationship(back_populates="installments")

    def to_dto(self) -> Installment:
        return Installment(
            type_code=self.type_code,
            due_date=self.due_date,
            value=self.value,
            sequence_number=self.sequence_number,
        )

    @classmethod
    def from_dto(cls, dto: Installment) -> ProposalInstallmentModel:
        return cls(
            sequence_number=dto.sequence_number,
            type_code=dto.type_code,
            due_date=dto.due_date,
            value=dto.value,
        )


class ProposalCommissionModel(Base):
    """Commission split line."""

    __tablename__ = "sales_proposal_commissions"

    __table_args__ = (
        Index("ix_sales_proposal_commissions_proposal", "proposal_id"),
    )

    proposal_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_proposals.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    percent: Mapped[Decimal] = mapped_column(nullable=False)
    value: Mapped[Decimal] = mapped_column(nullable=False)
    is_responsible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    proposal: Mapped[ProposalModel] = relationship(back_populates="commissions")

    def to_dto(self) -> CommissionLine:
        return CommissionLine(
            line_id=self.id,
            entity_id=self.entity_id,
            percent=self.percent,
            value=self.value,
            is_responsible=self.is_responsible,
        )

    @classmethod
    def from_dto(cls, dto: CommissionLine, position: int) -> ProposalCommissionModel:
        return cls(
            id=dto.line_id,
            position=position,
            entity_id=dto.entity_id,
            percent=dto.percent,
            value=dto.value,
            is_responsible=dto.is_responsible,
        )


class ProposalPartyModel(Base):
    """Buyer-side participation line."""

    __tablename__ = "sales_proposal_parties"

    __table_args__ = (
        Index("ix_sales_proposal_parties_proposal", "proposal_id"),
    )

    proposal_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_proposals.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    participation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    percent: Mapped[Decimal] = mapped_column(nullable=False)
    group_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_responsible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    proposal: Mapped[ProposalModel] = relationship(back_populates="parties")

    def to_dto(self) -> PartyLine:
        return PartyLine(
            line_id=self.id,
            entity_id=self.entity_id,
            participation_type=ParticipationType(self.participation_type),
            percent=self.percent,
            group_number=self.group_number,
            is_responsible=self.is_responsible,
        )

    @classmethod
    def from_dto(cls, dto: PartyLine, position: int) -> ProposalPartyModel:
        return cls(
            id=dto.line_id,
            position=position,
            entity_id=dto.entity_id,
            participation_type=dto.participation_type.value,
            percent=dto.percent,
            group_number=dto.group_number,
            is_responsible=dto.is_responsible,
        )


class ProposalHistoryModel(Base):
    """Proposal history entry. Append-only.

    Contract:
        Entries are immutable once created -- no UPDATE, no DELETE.
    """

    __tablename__ = "sales_proposal_history"

    __table_args__ = (
        Index("ix_sales_proposal_history_proposal", "proposal_id", "sequence"),
    )

    proposal_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_proposals.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    prior_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    new_status: Mapped[str] = mapped_column(String(30), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ProposalHistory {self.id} proposal={self.proposal_id} "
            f"{self.action} {self.prior_status}->{self.new_status}>"
        )

    def to_dto(self) -> HistoryEntry:
        return HistoryEntry(
            entry_id=self.id,
            proposal_id=self.proposal_id,
            action=HistoryAction(self.action),
            actor_id=self.actor_id,
            occurred_at=self.occurred_at,
            prior_status=ProposalStatus(self.prior_status) if self.prior_status else None,
            new_status=ProposalStatus(self.new_status),
            note=self.note,
        )

    @classmethod
    def from_dto(cls, dto: HistoryEntry, sequence: int) -> ProposalHistoryModel:
        return cls(
            id=dto.entry_id,
            proposal_id=dto.proposal_id,
            sequence=sequence,
            action=dto.action.value,
            actor_id=dto.actor_id,
            occurred_at=dto.occurred_at,
            prior_status=dto.prior_status.value if dto.prior_status else None,
            new_status=dto.new_status.value,
            note=dto.note,
        )


# =============================================================================
# ORM-Level Immutability for History (Append-Only)
# =============================================================================


@event.listens_for(ProposalHistoryModel, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to proposal history entries."""
    raise ImmutabilityViolationError(
        entity_type="ProposalHistory",
        entity_id=str(target.id),
        reason="History entries are immutable -- cannot modify",
    )


@event.listens_for(ProposalHistoryModel, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of proposal history entries."""
    raise ImmutabilityViolationError(
        entity_type="ProposalHistory",
        entity_id=str(target.id),
        reason="History entries are immutable -- cannot delete",
    )
