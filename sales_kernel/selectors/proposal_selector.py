"""
Module: sales_kernel.selectors.proposal_selector
Responsibility: Read-only access to proposals as frozen domain DTOs.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only; lines come back in their stored order and history in
      sequence order.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from sales_kernel.domain.proposal import HistoryEntry, Proposal, ProposalStatus
from sales_kernel.models.proposal import ProposalHistoryModel, ProposalModel
from sales_kernel.selectors.base import BaseSelector


class ProposalSelector(BaseSelector[ProposalModel]):
    """
    Selector for proposal queries.

    Guarantees:
        - Read-only: No mutations are performed.
        - Returned Proposal DTOs include lines and full history.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, proposal_id: UUID) -> Proposal | None:
        model = self.session.get(ProposalModel, proposal_id)
        if model is None:
            return None
        return model.to_dto(history=self.history(proposal_id))

    def history(self, proposal_id: UUID) -> tuple[HistoryEntry, ...]:
        rows = self.session.execute(
            select(ProposalHistoryModel)
            .where(ProposalHistoryModel.proposal_id == proposal_id)
            .order_by(ProposalHistoryModel.sequence)
        ).scalars()
        return tuple(row.to_dto() for row in rows)

    def list_by_status(self, status: ProposalStatus) -> list[Proposal]:
        rows = self.session.execute(
            select(ProposalModel)
            .where(ProposalModel.status == status.value)
            .order_by(ProposalModel.proposal_date, ProposalModel.id)
        ).scalars()
        return [row.to_dto(history=self.history(row.id)) for row in rows]

    def list_for_unit(self, unit_id: UUID) -> list[Proposal]:
        rows = self.session.execute(
            select(ProposalModel)
            .where(ProposalModel.unit_id == unit_id)
            .order_by(ProposalModel.proposal_date, ProposalModel.id)
        ).scalars()
        return [row.to_dto(history=self.history(row.id)) for row in rows]
