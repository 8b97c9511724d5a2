"""
ProposalStore -- flush-only persistence for proposals.

Responsibility:
    Writes proposal headers, full-replace line collections and history
    entries inside the caller's transaction.

Architecture position:
    Kernel > Services.  Extends BaseService; never commits.

Invariants enforced:
    - Line collections are replaced wholesale; there is no per-row diff.
    - History entries are only ever inserted, with a per-proposal
      monotonically increasing sequence.

Failure modes:
    - ProposalNotFoundError when the proposal id does not exist.
    - ValueError when asked to replace an unknown collection.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sales_kernel.domain.proposal import HistoryEntry, Proposal
from sales_kernel.exceptions import ProposalNotFoundError
from sales_kernel.logging_config import get_logger
from sales_kernel.models.proposal import (
    ProposalCommissionModel,
    ProposalConditionModel,
    ProposalHistoryModel,
    ProposalInstallmentModel,
    ProposalModel,
    ProposalPartyModel,
)
from sales_kernel.services.base import BaseService

logger = get_logger("services.proposal_store")

LINE_COLLECTIONS: tuple[str, ...] = (
    "conditions",
    "installments",
    "commissions",
    "parties",
)


class ProposalStore(BaseService[ProposalModel]):
    """Flush-only writer for proposals and their lines."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_model(self, proposal_id: UUID, for_update: bool = False) -> ProposalModel:
        """Load a proposal row, optionally locking it for the transaction."""
        stmt = select(ProposalModel).where(ProposalModel.id == proposal_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise ProposalNotFoundError(str(proposal_id))
        return model

    def insert(self, proposal: Proposal, actor_id: UUID) -> ProposalModel:
        """Insert a new proposal with its lines and initial history."""
        model = ProposalModel.from_dto(proposal, created_by_id=actor_id)
        self.session.add(model)
        self.session.flush()
        self.append_history(proposal.history)
        logger.debug(
            "proposal_inserted",
            extra={
                "proposal_id": str(proposal.proposal_id),
                "conditions": len(proposal.conditions),
                "installments": len(proposal.installments),
            },
        )
        return model

    def save(
        self,
        proposal: Proposal,
        actor_id: UUID,
        replace: Iterable[str] = (),
    ) -> ProposalModel:
        """
        Persist header fields and replace the named line collections.

        Args:
            proposal: New state of the proposal.
            actor_id: Who made the change.
            replace: Collection names from LINE_COLLECTIONS to overwrite
                with the lines carried by ``proposal``.
        """
        model = self.get_model(proposal.proposal_id, for_update=True)
        model.apply_header(proposal)
        model.updated_by_id = actor_id
        for name in replace:
            self._replace_lines(model, proposal, name)
        self.session.flush()
        return model

    def _replace_lines(self, model: ProposalModel, proposal: Proposal, name: str) -> None:
        if name not in LINE_COLLECTIONS:
            raise ValueError(f"Unknown line collection: {name}")

        # Old rows are deleted before the new ones (which may reuse ids) go in.
        getattr(model, name).clear()
        self.session.flush()

        if name == "conditions":
            model.conditions = [
                ProposalConditionModel.from_dto(c, i)
                for i, c in enumerate(proposal.conditions)
            ]
        elif name == "installments":
            model.installments = [
                ProposalInstallmentModel.from_dto(i) for i in proposal.installments
            ]
        elif name == "commissions":
            model.commissions = [
                ProposalCommissionModel.from_dto(c, i)
                for i, c in enumerate(proposal.commissions)
            ]
        else:
            model.parties = [
                ProposalPartyModel.from_dto(p, i)
                for i, p in enumerate(proposal.parties)
            ]
        logger.debug(
            "proposal_lines_replaced",
            extra={
                "proposal_id": str(proposal.proposal_id),
                "collection": name,
                "count": len(getattr(proposal, name)),
            },
        )

    def append_history(self, entries: Iterable[HistoryEntry]) -> None:
        """Insert history entries after the proposal's latest one."""
        for entry in entries:
            last = self.session.execute(
                select(func.max(ProposalHistoryModel.sequence)).where(
                    ProposalHistoryModel.proposal_id == entry.proposal_id
                )
            ).scalar()
            self.session.add(
                ProposalHistoryModel.from_dto(entry, sequence=(last or 0) + 1)
            )
            self.session.flush()
