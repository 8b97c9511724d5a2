"""
Module: sales_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    ``sales_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import sales_kernel domain, exceptions and logging.
    MUST NOT import sales_services or sales_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "today" and "now" are explicit parameters.
    - Decimal-only arithmetic: floats are rejected at the boundary.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``sales_engines.tracer``), emitting SALES_ENGINE_TRACE log records
    with engine name, version, input fingerprint and duration.

Usage:
    from sales_engines.standard_flow import StandardFlowGenerator
    from sales_engines.present_value import PresentValueComparator
    from sales_engines.conditions import ConditionBoard, require_closed
    from sales_engines.rateio import validate_commissions, validate_parties
    from sales_engines import lifecycle
"""

from sales_engines.conditions import (
    BUCKETS,
    ClosureStatus,
    ConditionBoard,
    ConditionSummary,
    add_condition,
    clear_conditions,
    group_by_bucket,
    remove_condition,
    require_closed,
    reset_to_standard,
    restore_saved,
    set_target_price,
    summarize,
    update_condition,
)
from sales_engines.installments import (
    expand_conditions,
    regroup_installments,
    require_installments_closed,
    resequence,
)
from sales_engines.lifecycle import (
    PROPOSAL_WORKFLOW,
    EditorLock,
    TransitionOutcome,
    can_edit,
    is_formalizing,
    plan_financial_save,
    require_editable,
)
from sales_engines.present_value import (
    CashFlowRow,
    PresentValueComparator,
    PresentValueComparison,
    rows_from_computed_flow,
    rows_from_conditions,
)
from sales_engines.rateio import (
    RateioEngine,
    RateioSummary,
    add_commission,
    add_party,
    compact_groups,
    move_party_to_group,
    remove_party,
    removal_empties,
    validate_commissions,
    validate_parties,
)
from sales_engines.standard_flow import (
    PriceTableEntry,
    StandardFlowGenerator,
    compute_table_price,
)
from sales_engines.tracer import traced_engine

__all__ = [
    # Conditions
    "BUCKETS",
    "ClosureStatus",
    "ConditionBoard",
    "ConditionSummary",
    "add_condition",
    "clear_conditions",
    "group_by_bucket",
    "remove_condition",
    "require_closed",
    "reset_to_standard",
    "restore_saved",
    "set_target_price",
    "summarize",
    "update_condition",
    # Installments
    "expand_conditions",
    "regroup_installments",
    "require_installments_closed",
    "resequence",
    # Lifecycle
    "PROPOSAL_WORKFLOW",
    "EditorLock",
    "TransitionOutcome",
    "can_edit",
    "is_formalizing",
    "plan_financial_save",
    "require_editable",
    # Present value
    "CashFlowRow",
    "PresentValueComparator",
    "PresentValueComparison",
    "rows_from_computed_flow",
    "rows_from_conditions",
    # Rateio
    "RateioEngine",
    "RateioSummary",
    "add_commission",
    "add_party",
    "compact_groups",
    "move_party_to_group",
    "remove_party",
    "removal_empties",
    "validate_commissions",
    "validate_parties",
    # Standard flow
    "PriceTableEntry",
    "StandardFlowGenerator",
    "compute_table_price",
    # Tracing
    "traced_engine",
]
