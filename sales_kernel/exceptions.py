"""
Typed Exception Hierarchy for the Sales Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A negotiator blocked at save time needs to know by exactly how much the
payment schedule misses its target.  Parsing that number out of a message
string is fragile, so every error here:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA, including the signed deviation for every
     closure failure

Example - WRONG way to handle errors:
    try:
        service.save_conditions(proposal_id, conditions, actor_id)
    except Exception as e:
        if "do not close" in str(e):  # FRAGILE - message might change
            show_gap()

Example - RIGHT way (what this module enables):
    try:
        service.save_conditions(proposal_id, conditions, actor_id)
    except ConditionsNotClosedError as e:
        show_gap(e.remaining)                  # Structured data
        api_response(code=e.code, gap=e.remaining)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SalesEngineError:

    SalesEngineError (base)
    |
    +-- ClosureError
    |   +-- FlowTemplateNotClosedError
    |   +-- ConditionsNotClosedError
    |   +-- InstallmentsNotClosedError
    |   +-- RateioPercentNotClosedError
    |   +-- RateioValueNotClosedError
    |   +-- ParticipationNotClosedError
    |   +-- MissingResponsiblePartyError
    |   +-- MultipleResponsiblePartiesError
    |
    +-- LineError
    |   +-- LineNotFoundError
    |   +-- NotLastLineError
    |   +-- UnknownConditionBucketError
    |   +-- UnknownLineFieldError
    |
    +-- PreconditionError
    |   +-- ProposalNotFoundError
    |   +-- EditLockedError
    |   +-- ProposalFormalizingError
    |   +-- InvalidTransitionError
    |   +-- TransitionGuardError
    |
    +-- CollaboratorError
    |   +-- DocumentGenerationError
    |   +-- UnitReservationError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|----------------------------------------
Closure         | FLOW_TEMPLATE_NOT_CLOSED      | Template percentages != 100
                | CONDITIONS_NOT_CLOSED         | Conditions total != target price
                | INSTALLMENTS_NOT_CLOSED       | Installments total != proposal value
                | RATEIO_PERCENT_NOT_CLOSED     | Commission percentages != 100
                | RATEIO_VALUE_NOT_CLOSED       | Commission values != commission pool
                | PARTICIPATION_NOT_CLOSED      | Party participations != 100
                | MISSING_RESPONSIBLE_PARTY     | Non-empty list without a responsible line
                | MULTIPLE_RESPONSIBLE_PARTIES  | Two responsible lines in one scope
----------------|-------------------------------|----------------------------------------
Line            | LINE_NOT_FOUND                | Edit/remove of an unknown line id
                | NOT_LAST_LINE                 | Delete-and-persist on a non-final line
                | UNKNOWN_CONDITION_BUCKET      | Condition type outside the fixed buckets
                | UNKNOWN_LINE_FIELD            | Edit of a field that is not editable
----------------|-------------------------------|----------------------------------------
Precondition    | PROPOSAL_NOT_FOUND            | Proposal id does not exist
                | EDIT_LOCKED                   | Editing an APROVADO proposal while locked
                | PROPOSAL_FORMALIZING          | Editing a proposal in contract phase
                | INVALID_TRANSITION            | Action not allowed from current status
                | TRANSITION_GUARD_FAILED       | Guard of an allowed action not satisfied
----------------|-------------------------------|----------------------------------------
Collaborator    | DOCUMENT_GENERATION_FAILED    | Term/contract generation failed
                | UNIT_RESERVATION_FAILED       | Unit reserve/release failed
----------------|-------------------------------|----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | UPDATE/DELETE of a history entry
"""

from decimal import Decimal


class SalesEngineError(Exception):
    """
    Base exception for all sales engine errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "SALES_ENGINE_ERROR"


# Closure exceptions


class ClosureError(SalesEngineError):
    """Base exception for data that does not reconcile against its total.

    Closure errors are always recoverable: nothing has been persisted
    when one is raised.
    """

    code: str = "CLOSURE_ERROR"


class FlowTemplateNotClosedError(ClosureError):
    """Standard flow template percentages do not sum to 100."""

    code: str = "FLOW_TEMPLATE_NOT_CLOSED"

    def __init__(self, total_percent: Decimal, deviation: Decimal):
        self.total_percent = total_percent
        self.deviation = deviation
        super().__init__(
            f"Flow template does not close: total {total_percent}%, "
            f"deviation {deviation}%"
        )


class ConditionsNotClosedError(ClosureError):
    """Conditions do not distribute exactly the target price."""

    code: str = "CONDITIONS_NOT_CLOSED"

    def __init__(
        self,
        target_price: Decimal,
        total_distributed: Decimal,
        remaining: Decimal,
    ):
        self.target_price = target_price
        self.total_distributed = total_distributed
        self.remaining = remaining
        super().__init__(
            f"Conditions do not close: remaining {remaining} "
            f"(target {target_price}, distributed {total_distributed})"
        )


class InstallmentsNotClosedError(ClosureError):
    """Installments do not sum to the proposal value."""

    code: str = "INSTALLMENTS_NOT_CLOSED"

    def __init__(
        self,
        proposal_value: Decimal,
        total_installments: Decimal,
        difference: Decimal,
    ):
        self.proposal_value = proposal_value
        self.total_installments = total_installments
        self.difference = difference
        super().__init__(
            f"Installments do not close: difference {difference} "
            f"(proposal {proposal_value}, installments {total_installments})"
        )


class RateioPercentNotClosedError(ClosureError):
    """Commission percentages do not sum to 100."""

    code: str = "RATEIO_PERCENT_NOT_CLOSED"

    def __init__(
        self, total_percent: Decimal, deviation: Decimal, tolerance: Decimal
    ):
        self.total_percent = total_percent
        self.deviation = deviation
        self.tolerance = tolerance
        super().__init__(
            f"Commission split does not close: total {total_percent}%, "
            f"deviation {deviation}% (tolerance {tolerance})"
        )


class RateioValueNotClosedError(ClosureError):
    """Commission values do not sum to the commission pool."""

    code: str = "RATEIO_VALUE_NOT_CLOSED"

    def __init__(
        self,
        total_value: Decimal,
        pool: Decimal,
        deviation: Decimal,
        tolerance: Decimal,
    ):
        self.total_value = total_value
        self.pool = pool
        self.deviation = deviation
        self.tolerance = tolerance
        super().__init__(
            f"Commission values do not close: total {total_value} "
            f"against pool {pool}, deviation {deviation} (tolerance {tolerance})"
        )


class ParticipationNotClosedError(ClosureError):
    """Party participations across all groups do not sum to 100."""

    code: str = "PARTICIPATION_NOT_CLOSED"

    def __init__(
        self, total_percent: Decimal, deviation: Decimal, tolerance: Decimal
    ):
        self.total_percent = total_percent
        self.deviation = deviation
        self.tolerance = tolerance
        super().__init__(
            f"Participation does not close: total {total_percent}%, "
            f"deviation {deviation}% (tolerance {tolerance})"
        )


class MissingResponsiblePartyError(ClosureError):
    """A non-empty line list has no responsible line."""

    code: str = "MISSING_RESPONSIBLE_PARTY"

    def __init__(self, scope: str):
        self.scope = scope
        super().__init__(f"No responsible line defined for {scope}")


class MultipleResponsiblePartiesError(ClosureError):
    """More than one responsible line inside a single scope."""

    code: str = "MULTIPLE_RESPONSIBLE_PARTIES"

    def __init__(self, scope: str, count: int):
        self.scope = scope
        self.count = count
        super().__init__(
            f"{count} responsible lines found for {scope}, expected one"
        )


# Line-editing exceptions


class LineError(SalesEngineError):
    """Base exception for invalid line edits."""

    code: str = "LINE_ERROR"


class LineNotFoundError(LineError):
    """Edit or removal referenced a line that does not exist."""

    code: str = "LINE_NOT_FOUND"

    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(f"Line not found: {line_id}")


class NotLastLineError(LineError):
    """Delete-and-persist was asked for a line that is not the only one left."""

    code: str = "NOT_LAST_LINE"

    def __init__(self, line_id: str, remaining: int):
        self.line_id = line_id
        self.remaining = remaining
        super().__init__(
            f"Line {line_id} is not the last one ({remaining} lines would remain)"
        )


class UnknownConditionBucketError(LineError):
    """Condition type is not one of the fixed display buckets."""

    code: str = "UNKNOWN_CONDITION_BUCKET"

    def __init__(self, condition_type: str):
        self.condition_type = condition_type
        super().__init__(f"Unknown condition bucket: {condition_type}")


class UnknownLineFieldError(LineError):
    """Edit targeted a field that is not editable on the line."""

    code: str = "UNKNOWN_LINE_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field is not editable: {field}")


# Precondition exceptions


class PreconditionError(SalesEngineError):
    """Base exception for requests refused before any computation."""

    code: str = "PRECONDITION_ERROR"


class ProposalNotFoundError(PreconditionError):
    """Proposal with given ID was not found."""

    code: str = "PROPOSAL_NOT_FOUND"

    def __init__(self, proposal_id: str):
        self.proposal_id = proposal_id
        super().__init__(f"Proposal not found: {proposal_id}")


class EditLockedError(PreconditionError):
    """Financial tab is locked because the proposal is approved.

    Soft gate: the caller may unlock explicitly and retry.
    """

    code: str = "EDIT_LOCKED"

    def __init__(self, status: str):
        self.status = status
        super().__init__(
            f"Proposal is {status}. Unlock the editor before changing it."
        )


class ProposalFormalizingError(PreconditionError):
    """Financial tab is permanently locked by the contract phase.

    Hard gate: no unlock is possible.
    """

    code: str = "PROPOSAL_FORMALIZING"

    def __init__(self, status: str):
        self.status = status
        super().__init__(
            f"Proposal is {status} (contract phase). Editing is permanently blocked."
        )


class InvalidTransitionError(PreconditionError):
    """Action is not allowed from the proposal's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, status: str, action: str):
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} a proposal in status {status}")


class TransitionGuardError(PreconditionError):
    """Transition is allowed from this status but its guard failed."""

    code: str = "TRANSITION_GUARD_FAILED"

    def __init__(self, action: str, guard: str, reason: str):
        self.action = action
        self.guard = guard
        self.reason = reason
        super().__init__(f"Guard {guard} blocked {action}: {reason}")


# Collaborator exceptions


class CollaboratorError(SalesEngineError):
    """Base exception for failures reported by external collaborators.

    Never retried inside the engine.
    """

    code: str = "COLLABORATOR_ERROR"


class DocumentGenerationError(CollaboratorError):
    """Term of intent or contract generation failed."""

    code: str = "DOCUMENT_GENERATION_FAILED"

    def __init__(self, document_kind: str, reason: str):
        self.document_kind = document_kind
        self.reason = reason
        super().__init__(f"Failed to generate {document_kind}: {reason}")


class UnitReservationError(CollaboratorError):
    """Unit could not be reserved or released."""

    code: str = "UNIT_RESERVATION_FAILED"

    def __init__(self, unit_id: str, reason: str):
        self.unit_id = unit_id
        self.reason = reason
        super().__init__(f"Unit {unit_id} reservation failed: {reason}")


# Immutability exceptions


class ImmutabilityViolationError(SalesEngineError):
    """
    Attempted to modify or delete an immutable record.

    Proposal history entries are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
