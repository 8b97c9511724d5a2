"""
External collaborator contracts for the proposal service.

The proposal core owns no I/O of its own beyond its tables.  Everything
else -- unit availability, price tables, entity records, document
generation -- is reached through these in-process protocols.
Implementations report failures by raising; the service never retries.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol
from uuid import UUID

from sales_engines.standard_flow import PriceTableEntry
from sales_kernel.domain.entities import EntityRef
from sales_kernel.domain.flow import FlowTemplateItem
from sales_kernel.domain.proposal import Proposal


class UnitReservationGateway(Protocol):
    """Marks units as reserved (RESERVADO) or available (DISPONIVEL).

    Implementations raise ``UnitReservationError`` on failure.
    """

    def reserve(self, unit_id: UUID, proposal_id: UUID) -> None: ...

    def release(self, unit_id: UUID, proposal_id: UUID) -> None: ...


class PriceTableProvider(Protocol):
    """Supplies a unit's price-table entry and its table's standard flow."""

    def get_price_entry(self, unit_id: UUID) -> PriceTableEntry: ...

    def get_flow_template(self, unit_id: UUID) -> Sequence[FlowTemplateItem]: ...


class EntityDirectory(Protocol):
    """Resolves entity ids to name, document and type."""

    def resolve(self, entity_ids: Iterable[UUID]) -> dict[UUID, EntityRef]: ...


class DocumentGenerator(Protocol):
    """Generates the term of intent and the purchase contract.

    Returns a reference to the generated document.  Implementations raise
    ``DocumentGenerationError`` on failure.
    """

    def generate(self, proposal: Proposal, document_kind: str) -> str: ...
