"""Read-only selectors returning frozen domain DTOs."""

from sales_kernel.selectors.proposal_selector import ProposalSelector

__all__ = ["ProposalSelector"]
