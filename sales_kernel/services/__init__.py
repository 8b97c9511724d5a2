"""Kernel services - flush-only writers that never own the transaction."""

from sales_kernel.services.proposal_store import ProposalStore

__all__ = ["ProposalStore"]
