"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from sales_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from sales_kernel.domain.entities import EntityRef, EntityType, format_document
from sales_kernel.domain.flow import (
    ComputedFlowItem,
    FlowTemplateItem,
    FlowType,
    periodicity_label,
    periodicity_months,
    validate_template,
)
from sales_kernel.domain.proposal import (
    FORMALIZING_STATUSES,
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
from sales_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "EntityRef",
    "EntityType",
    "format_document",
    "ComputedFlowItem",
    "FlowTemplateItem",
    "FlowType",
    "periodicity_label",
    "periodicity_months",
    "validate_template",
    "FORMALIZING_STATUSES",
    "CommissionLine",
    "Condition",
    "HistoryAction",
    "HistoryEntry",
    "Installment",
    "ParticipationType",
    "PartyLine",
    "Proposal",
    "ProposalStatus",
    "RejectionReason",
    "Guard",
    "Transition",
    "Workflow",
]
