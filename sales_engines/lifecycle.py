"""
sales_engines.lifecycle -- Proposal lifecycle state machine and edit locks.

Responsibility:
    Declare the proposal workflow as data (``PROPOSAL_WORKFLOW``), apply
    transitions with their guards, decide whether the financial editors
    may be used (``can_edit``), and plan the status reversion that a
    financial save triggers on an approved or rejected proposal.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The service layer calls
    collaborators (documents, unit reservation) and persistence around
    these pure decisions.

Invariants enforced:
    - Transitions: submit RASCUNHO->EM_ANALISE; approve / reject
      EM_ANALISE->APROVADO / REPROVADO; formalize APROVADO->FORMALIZADA;
      contract FORMALIZADA->EM_ASSINATURA; sign EM_ASSINATURA->ASSINADO.
      CANCELADO has no incoming transition here.
    - Hard gate: FORMALIZADA, EM_ASSINATURA and ASSINADO (and CANCELADO)
      can never be edited, whatever the unlock flag says.
    - Soft gate: APROVADO starts locked; an explicit unlock allows editing
      and the save then returns the proposal to EM_ANALISE.
    - REPROVADO is editable; saving it also returns it to EM_ANALISE.
    - Every transition and every reverting save yields exactly one
      history entry.

Failure modes:
    - InvalidTransitionError when an action is not allowed from a status.
    - TransitionGuardError when a guard is not satisfied.
    - ProposalFormalizingError / EditLockedError from ``require_editable``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sales_engines.tracer import traced_engine
from sales_kernel.domain.proposal import (
    FORMALIZING_STATUSES,
    HistoryAction,
    HistoryEntry,
    Proposal,
    ProposalStatus,
    RejectionReason,
)
from sales_kernel.domain.workflow import Guard, Transition, Workflow
from sales_kernel.exceptions import (
    EditLockedError,
    InvalidTransitionError,
    ProposalFormalizingError,
    TransitionGuardError,
)
from sales_kernel.logging_config import get_logger

logger = get_logger("engines.lifecycle")


# =========================================================================
# Workflow definition
# =========================================================================

S = ProposalStatus

DECISION_ACTOR_GUARD = Guard(
    name="decision_actor_required",
    description="A decision needs an identified actor",
)
REJECTION_REASON_GUARD = Guard(
    name="rejection_reason_required",
    description="Rejection needs a reason from the closed set",
)
SIGNED_ARTIFACT_GUARD = Guard(
    name="signed_artifact_required",
    description="Signing needs a reference to the uploaded signed document",
)

SUBMIT = "submit"
APPROVE = "approve"
REJECT = "reject"
FORMALIZE = "formalize"
CONTRACT = "contract"
SIGN = "sign"

TERM_OF_INTENT = "Termo de Intenção"
PURCHASE_CONTRACT = "Contrato de Compra e Venda"

PROPOSAL_WORKFLOW = Workflow(
    name="commercial_proposal",
    description="Commercial proposal from draft to signed contract",
    initial_state=S.RASCUNHO.value,
    states=tuple(s.value for s in ProposalStatus),
    transitions=(
        Transition(S.RASCUNHO.value, S.EM_ANALISE.value, SUBMIT),
        Transition(
            S.EM_ANALISE.value, S.APROVADO.value, APPROVE,
            guards=(DECISION_ACTOR_GUARD,),
        ),
        Transition(
            S.EM_ANALISE.value, S.REPROVADO.value, REJECT,
            guards=(DECISION_ACTOR_GUARD, REJECTION_REASON_GUARD),
        ),
        Transition(
            S.APROVADO.value, S.FORMALIZADA.value, FORMALIZE,
            requires_document=True,
        ),
        Transition(
            S.FORMALIZADA.value, S.EM_ASSINATURA.value, CONTRACT,
            requires_document=True,
        ),
        Transition(
            S.EM_ASSINATURA.value, S.ASSINADO.value, SIGN,
            guards=(SIGNED_ARTIFACT_GUARD,),
        ),
    ),
    terminal_states=(S.ASSINADO.value, S.CANCELADO.value),
)

DOCUMENT_FOR_ACTION: dict[str, str] = {
    FORMALIZE: TERM_OF_INTENT,
    CONTRACT: PURCHASE_CONTRACT,
}

DEFAULT_APPROVAL_NOTE = "Aprovação realizada via Portal"
REVISION_NOTE = "Edição financeira: Proposta retornou para análise"

_HARD_LOCKED: frozenset[ProposalStatus] = FORMALIZING_STATUSES | {S.CANCELADO}


# =========================================================================
# Edit locks
# =========================================================================


def is_formalizing(status: ProposalStatus) -> bool:
    return status in FORMALIZING_STATUSES


def default_unlocked(status: ProposalStatus) -> bool:
    """Initial state of an editor's lock flag for a proposal in ``status``."""
    return status != S.APROVADO and status not in _HARD_LOCKED


def can_unlock(status: ProposalStatus) -> bool:
    return status not in _HARD_LOCKED


def can_edit(status: ProposalStatus, explicit_unlock: bool) -> bool:
    """
    Whether a financial editor may change the proposal.

    The hard gate is checked first so no unlock flag can bypass it.
    """
    if status in _HARD_LOCKED:
        return False
    if status == S.APROVADO:
        return explicit_unlock
    return True


def require_editable(status: ProposalStatus, explicit_unlock: bool) -> None:
    if status in _HARD_LOCKED:
        raise ProposalFormalizingError(status.value)
    if not can_edit(status, explicit_unlock):
        raise EditLockedError(status.value)


@dataclass
class EditorLock:
    """
    Lock state of one financial editor (conditions, commissions, parties).

    Each editor owns its own flag; unlocking one does not unlock another.
    """

    status: ProposalStatus
    unlocked: bool = field(init=False)

    def __post_init__(self) -> None:
        self.unlocked = default_unlocked(self.status)

    @property
    def explicit_unlock(self) -> bool:
        """True only when an approved proposal was unlocked by the user."""
        return self.status == S.APROVADO and self.unlocked

    @property
    def editable(self) -> bool:
        return can_edit(self.status, self.unlocked)

    def unlock(self) -> None:
        if not can_unlock(self.status):
            raise ProposalFormalizingError(self.status.value)
        self.unlocked = True

    def lock(self) -> None:
        self.unlocked = False


# =========================================================================
# Transitions
# =========================================================================


@dataclass(frozen=True)
class TransitionOutcome:
    """New proposal state plus the single history entry it produced."""

    proposal: Proposal
    history_entry: HistoryEntry | None

    @property
    def status_changed(self) -> bool:
        entry = self.history_entry
        return entry is not None and entry.prior_status != entry.new_status


def _history(
    proposal: Proposal,
    action: HistoryAction,
    actor_id: UUID,
    now: datetime,
    new_status: ProposalStatus,
    note: str | None,
) -> HistoryEntry:
    return HistoryEntry(
        proposal_id=proposal.proposal_id,
        action=action,
        actor_id=actor_id,
        occurred_at=now,
        prior_status=proposal.status,
        new_status=new_status,
        note=note,
    )


def _find_transition(status: ProposalStatus, action: str) -> Transition:
    transition = PROPOSAL_WORKFLOW.find(status.value, action)
    if transition is None:
        logger.warning("invalid_transition", extra={
            "status": status.value, "action": action,
        })
        raise InvalidTransitionError(status.value, action)
    return transition


def _require_actor(action: str, actor_id: UUID | None) -> UUID:
    if actor_id is None:
        raise TransitionGuardError(
            action, DECISION_ACTOR_GUARD.name, "no decision actor given"
        )
    return actor_id


def _append(proposal: Proposal, entry: HistoryEntry, **changes) -> TransitionOutcome:
    updated = dataclasses.replace(
        proposal,
        status=entry.new_status,
        history=proposal.history + (entry,),
        **changes,
    )
    logger.info("proposal_transition_applied", extra={
        "proposal_id": str(proposal.proposal_id),
        "action": entry.action.value,
        "prior_status": entry.prior_status.value if entry.prior_status else None,
        "new_status": entry.new_status.value,
    })
    return TransitionOutcome(proposal=updated, history_entry=entry)


def allowed_actions(status: ProposalStatus) -> tuple[str, ...]:
    return PROPOSAL_WORKFLOW.actions_from(status.value)


@traced_engine("lifecycle", "1.0", fingerprint_fields=("actor_id", "now"))
def submit(proposal: Proposal, actor_id: UUID, now: datetime) -> TransitionOutcome:
    """RASCUNHO -> EM_ANALISE."""
    transition = _find_transition(proposal.status, SUBMIT)
    entry = _history(
        proposal, HistoryAction.ENVIO, actor_id, now,
        S(transition.to_state), "Proposta enviada para análise",
    )
    return _append(proposal, entry)


@traced_engine("lifecycle", "1.0", fingerprint_fields=("actor_id", "now"))
def approve(
    proposal: Proposal,
    actor_id: UUID | None,
    now: datetime,
    note: str | None = None,
) -> TransitionOutcome:
    """EM_ANALISE -> APROVADO; stamps the decision and clears any rejection."""
    transition = _find_transition(proposal.status, APPROVE)
    actor = _require_actor(APPROVE, actor_id)
    entry = _history(
        proposal, HistoryAction.APROVOU, actor, now,
        S(transition.to_state), note or DEFAULT_APPROVAL_NOTE,
    )
    return _append(
        proposal, entry,
        decision_date=now,
        decision_user_id=actor,
        rejection_reason=None,
        rejection_note=None,
    )


@traced_engine("lifecycle", "1.0", fingerprint_fields=("actor_id", "reason", "now"))
def reject(
    proposal: Proposal,
    actor_id: UUID | None,
    now: datetime,
    reason: RejectionReason | str | None,
    note: str | None = None,
) -> TransitionOutcome:
    """EM_ANALISE -> REPROVADO; history note is ``"<reason> - <note>"``."""
    transition = _find_transition(proposal.status, REJECT)
    actor = _require_actor(REJECT, actor_id)
    if reason is None:
        raise TransitionGuardError(
            REJECT, REJECTION_REASON_GUARD.name, "no rejection reason given"
        )
    try:
        parsed = RejectionReason(reason)
    except ValueError:
        raise TransitionGuardError(
            REJECT, REJECTION_REASON_GUARD.name, f"unknown rejection reason {reason!r}"
        ) from None
    entry = _history(
        proposal, HistoryAction.REJEITOU, actor, now,
        S(transition.to_state), f"{parsed.value} - {note or ''}",
    )
    return _append(
        proposal, entry,
        decision_date=now,
        decision_user_id=actor,
        rejection_reason=parsed,
        rejection_note=note,
    )


def _document_transition(
    proposal: Proposal, action: str, actor_id: UUID, now: datetime
) -> TransitionOutcome:
    transition = _find_transition(proposal.status, action)
    new_status = S(transition.to_state)
    document = DOCUMENT_FOR_ACTION[action]
    entry = _history(
        proposal, HistoryAction.REVISAO, actor_id, now, new_status,
        f"Documento emitido ({document}). Proposta avançou para {new_status.value}.",
    )
    return _append(proposal, entry)


@traced_engine("lifecycle", "1.0", fingerprint_fields=("actor_id", "now"))
def formalize(proposal: Proposal, actor_id: UUID, now: datetime) -> TransitionOutcome:
    """APROVADO -> FORMALIZADA, after the term of intent is generated."""
    return _document_transition(proposal, FORMALIZE, actor_id, now)


@traced_engine("lifecycle", "1.0", fingerprint_fields=("actor_id", "now"))
def contract(proposal: Proposal, actor_id: UUID, now: datetime) -> TransitionOutcome:
    """FORMALIZADA -> EM_ASSINATURA, after the purchase contract is generated."""
    return _document_transition(proposal, CONTRACT, actor_id, now)


@traced_engine("lifecycle", "1.0", fingerprint_fields=("actor_id", "signed_artifact_ref", "now"))
def sign(
    proposal: Proposal,
    actor_id: UUID,
    now: datetime,
    signed_artifact_ref: str | None,
) -> TransitionOutcome:
    """EM_ASSINATURA -> ASSINADO; needs the signed document reference."""
    transition = _find_transition(proposal.status, SIGN)
    if not signed_artifact_ref or not signed_artifact_ref.strip():
        raise TransitionGuardError(
            SIGN, SIGNED_ARTIFACT_GUARD.name, "no signed document reference given"
        )
    entry = _history(
        proposal, HistoryAction.ASSINATURA, actor_id, now,
        S(transition.to_state), f"Contrato assinado ({signed_artifact_ref.strip()})",
    )
    return _append(proposal, entry)


# =========================================================================
# Financial saves
# =========================================================================


@traced_engine("lifecycle", "1.0", fingerprint_fields=("explicit_unlock", "now"))
def plan_financial_save(
    proposal: Proposal,
    actor_id: UUID,
    now: datetime,
    explicit_unlock: bool = False,
) -> TransitionOutcome:
    """
    Check the edit lock for a financial save and apply its status side effect.

    APROVADO (explicitly unlocked) and REPROVADO return to EM_ANALISE with
    their decision metadata cleared and one REVISAO history entry.  Other
    editable statuses are saved as they are, with no history entry.

    Raises:
        ProposalFormalizingError: Contract phase (hard lock).
        EditLockedError: APROVADO without explicit unlock.
    """
    require_editable(proposal.status, explicit_unlock)
    reverts = proposal.status == S.REPROVADO or (
        proposal.status == S.APROVADO and explicit_unlock
    )
    if not reverts:
        return TransitionOutcome(proposal=proposal, history_entry=None)

    entry = _history(
        proposal, HistoryAction.REVISAO, actor_id, now,
        S.EM_ANALISE, REVISION_NOTE,
    )
    return _append(
        proposal, entry,
        decision_date=None,
        decision_user_id=None,
        rejection_reason=None,
        rejection_note=None,
    )
