"""
sales_services -- stateful orchestration over the pure engines.

ProposalService owns the transaction boundary for every proposal
operation; external systems are reached through the protocols in
``sales_services.collaborators``.
"""

from sales_services.collaborators import (
    DocumentGenerator,
    EntityDirectory,
    PriceTableProvider,
    UnitReservationGateway,
)
from sales_services.proposal_service import (
    ProposalAnalysis,
    ProposalService,
    StandardQuote,
)

__all__ = [
    "DocumentGenerator",
    "EntityDirectory",
    "PriceTableProvider",
    "ProposalAnalysis",
    "ProposalService",
    "StandardQuote",
    "UnitReservationGateway",
]
