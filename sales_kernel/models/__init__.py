"""ORM models for the sales kernel."""

from sales_kernel.models.proposal import (
    ProposalCommissionModel,
    ProposalConditionModel,
    ProposalHistoryModel,
    ProposalInstallmentModel,
    ProposalModel,
    ProposalPartyModel,
)

__all__ = [
    "ProposalModel",
    "ProposalConditionModel",
    "ProposalInstallmentModel",
    "ProposalCommissionModel",
    "ProposalPartyModel",
    "ProposalHistoryModel",
]
