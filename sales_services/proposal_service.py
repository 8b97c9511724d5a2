"""
Proposal Service - Orchestrates proposal operations via engines + kernel.

Thin glue layer that:
1. Calls the conditions / installments / rateio engines for closure gates
2. Calls the lifecycle engine for status transitions and the edit lock
3. Calls the present-value comparator for the standard-vs-proposed analysis
4. Calls ProposalStore / ProposalSelector for persistence

All computation lives in engines.  All persistence lives in kernel.
This service owns the transaction boundary: every operation commits on
success and rolls back on any failure, so nothing is half-written.

Lifecycle transitions are planned first, then the collaborator is called
(document generation, unit release), then the change is written.  A
collaborator failure rolls back and is re-raised unchanged.

Usage:
    service = ProposalService(session, units, documents, clock=clock)
    proposal = service.create_proposal(
        unit_id=unit_id,
        table_value=Decimal("200000.00"),
        proposal_value=Decimal("190000.00"),
        conditions=conditions,
        actor_id=actor_id,
    )
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from sales_config import get_active_settings
from sales_config.schema import EngineSettings
from sales_engines import lifecycle
from sales_engines.conditions import ConditionBoard, conditions_from_flow, require_closed
from sales_engines.installments import (
    expand_conditions,
    regroup_installments,
    require_installments_closed,
    resequence,
)
from sales_engines.lifecycle import EditorLock, TransitionOutcome
from sales_engines.present_value import (
    AreaMetrics,
    PresentValueComparator,
    PresentValueComparison,
    rows_from_computed_flow,
    rows_from_conditions,
)
from sales_engines.rateio import (
    compact_groups,
    group_parties,
    removal_empties,
    validate_commissions,
    validate_parties,
)
from sales_engines.standard_flow import StandardFlowGenerator, compute_table_price
from sales_kernel.domain.clock import Clock, SystemClock
from sales_kernel.domain.entities import EntityRef
from sales_kernel.domain.flow import ComputedFlowItem, validate_template
from sales_kernel.domain.proposal import (
    CommissionLine,
    Condition,
    HistoryAction,
    HistoryEntry,
    Installment,
    PartyLine,
    Proposal,
    ProposalStatus,
    RejectionReason,
)
from sales_kernel.domain.values import ZERO
from sales_kernel.exceptions import (
    NotLastLineError,
    ProposalNotFoundError,
    SalesEngineError,
)
from sales_kernel.logging_config import LogContext, get_logger
from sales_kernel.selectors.proposal_selector import ProposalSelector
from sales_kernel.services.proposal_store import ProposalStore
from sales_services.collaborators import (
    DocumentGenerator,
    EntityDirectory,
    PriceTableProvider,
    UnitReservationGateway,
)

logger = get_logger("services.proposal")

CREATION_NOTE = "Proposta criada"


@dataclass(frozen=True)
class StandardQuote:
    """A unit's table price and its standard flow."""

    unit_id: UUID
    table_price: Decimal
    private_area: Decimal | None
    flow: tuple[ComputedFlowItem, ...]

    @property
    def conditions(self) -> tuple[Condition, ...]:
        return conditions_from_flow(self.flow)


@dataclass(frozen=True)
class ProposalAnalysis:
    """Standard-vs-proposed comparison for one proposal."""

    proposal_id: UUID
    table_value: Decimal
    proposal_value: Decimal
    discount: Decimal
    comparison: PresentValueComparison
    area_metrics: AreaMetrics


class ProposalService:
    """
    Orchestrates proposal operations through engines and kernel.

    Engine composition:
    - StandardFlowGenerator: table-price standard flow
    - PresentValueComparator: standard vs proposed valuation
    - conditions / installments / rateio: closure gates
    - lifecycle: transitions and the edit lock

    Transaction boundary: this service commits on success, rolls back on failure.
    ProposalStore only flushes, so header, lines and history of one
    operation land in a single transaction.
    """

    def __init__(
        self,
        session: Session,
        units: UnitReservationGateway,
        documents: DocumentGenerator,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
        price_tables: PriceTableProvider | None = None,
        entities: EntityDirectory | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_settings()

        self._units = units
        self._documents = documents
        self._price_tables = price_tables
        self._entities = entities

        # Kernel persistence (flush-only -- we own the boundary)
        self._store = ProposalStore(session)
        self._selector = ProposalSelector(session)

        # Stateless engines
        self._flow_generator = StandardFlowGenerator()
        self._comparator = PresentValueComparator(
            monthly_rate=self._settings.monthly_discount_rate,
            days_per_month=self._settings.days_per_month,
            epsilon=self._settings.present_value_epsilon,
            money_tolerance=self._settings.money_tolerance,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_proposal(self, proposal_id: UUID) -> Proposal:
        proposal = self._selector.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(str(proposal_id))
        return proposal

    def get_history(self, proposal_id: UUID) -> tuple[HistoryEntry, ...]:
        return self.get_proposal(proposal_id).history

    def editor_lock(self, proposal_id: UUID) -> EditorLock:
        """Fresh edit lock for the proposal's current status."""
        return EditorLock(self.get_proposal(proposal_id).status)

    def allowed_actions(self, proposal_id: UUID) -> tuple[str, ...]:
        return lifecycle.allowed_actions(self.get_proposal(proposal_id).status)

    def list_by_status(self, status: ProposalStatus) -> list[Proposal]:
        return self._selector.list_by_status(status)

    def describe_parties(
        self, proposal_id: UUID
    ) -> dict[int, tuple[tuple[PartyLine, EntityRef | None], ...]]:
        """Parties grouped by group number, each paired with its entity."""
        proposal = self.get_proposal(proposal_id)
        refs = self._resolve_entities(p.entity_id for p in proposal.parties)
        return {
            group: tuple((line, refs.get(line.entity_id)) for line in lines)
            for group, lines in group_parties(proposal.parties).items()
        }

    def describe_commissions(
        self, proposal_id: UUID
    ) -> tuple[tuple[CommissionLine, EntityRef | None], ...]:
        proposal = self.get_proposal(proposal_id)
        refs = self._resolve_entities(c.entity_id for c in proposal.commissions)
        return tuple((line, refs.get(line.entity_id)) for line in proposal.commissions)

    def _resolve_entities(self, entity_ids) -> dict[UUID, EntityRef]:
        if self._entities is None:
            return {}
        return self._entities.resolve(list(dict.fromkeys(entity_ids)))

    def _log_rejected(self, operation: str, exc: SalesEngineError) -> None:
        logger.warning(f"proposal_{operation}_rejected", extra={
            "error_code": exc.code,
            "error": str(exc),
        })

    # =========================================================================
    # Standard flow and analysis
    # =========================================================================

    def standard_quote(self, unit_id: UUID, table_price: Decimal | None = None) -> StandardQuote:
        """
        Price a unit and generate its standard flow.

        Args:
            unit_id: Unit to price.
            table_price: Use this price instead of the one computed from
                the price-table entry (e.g. the value frozen on a proposal).

        Raises:
            FlowTemplateNotClosedError: The table's template does not sum to 100.
        """
        if self._price_tables is None:
            raise RuntimeError("ProposalService was built without a PriceTableProvider")
        entry = self._price_tables.get_price_entry(unit_id)
        template = validate_template(
            self._price_tables.get_flow_template(unit_id),
            self._settings.template_tolerance,
        )
        price = table_price if table_price is not None else compute_table_price(entry)
        return StandardQuote(
            unit_id=unit_id,
            table_price=price,
            private_area=entry.private_area,
            flow=self._flow_generator.generate(price, template),
        )

    def analyze(self, proposal_id: UUID, today: date | None = None) -> ProposalAnalysis:
        """
        Compare the proposal's conditions to the unit's standard flow.

        The standard side is priced at the table value frozen on the
        proposal; both sides are discounted against the same ``today``.
        """
        proposal = self.get_proposal(proposal_id)
        quote = self.standard_quote(proposal.unit_id, proposal.original_table_value)
        comparison = self._comparator.compare(
            rows_from_computed_flow(quote.flow),
            rows_from_conditions(proposal.conditions),
            today or self._clock.today(),
        )
        return ProposalAnalysis(
            proposal_id=proposal.proposal_id,
            table_value=proposal.original_table_value,
            proposal_value=proposal.proposal_value,
            discount=proposal.discount,
            comparison=comparison,
            area_metrics=comparison.per_area(quote.private_area),
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def create_proposal(
        self,
        unit_id: UUID,
        table_value: Decimal,
        proposal_value: Decimal,
        conditions: Sequence[Condition],
        actor_id: UUID,
        commission_value: Decimal = ZERO,
        proposal_id: UUID | None = None,
    ) -> Proposal:
        """
        Create a RASCUNHO proposal from closed conditions and reserve the unit.

        Installments are expanded from the conditions.  The proposal is
        valid for ``proposal_validity_days`` from today.

        Raises:
            ConditionsNotClosedError: Conditions do not distribute proposal_value.
            UnitReservationError: From the reservation gateway.
        """
        proposal_id = proposal_id or uuid4()
        with LogContext.bind(proposal_id=proposal_id, actor_id=actor_id):
            try:
                conditions = tuple(conditions)
                require_closed(
                    ConditionBoard(target_price=proposal_value, conditions=conditions),
                    self._settings.money_tolerance,
                )

                logger.info("proposal_create_started", extra={
                    "unit_id": str(unit_id),
                    "table_value": str(table_value),
                    "proposal_value": str(proposal_value),
                    "conditions": len(conditions),
                })

                today = self._clock.today()
                entry = HistoryEntry(
                    proposal_id=proposal_id,
                    action=HistoryAction.CRIACAO,
                    actor_id=actor_id,
                    occurred_at=self._clock.now(),
                    prior_status=None,
                    new_status=ProposalStatus.RASCUNHO,
                    note=CREATION_NOTE,
                )
                proposal = Proposal(
                    proposal_id=proposal_id,
                    unit_id=unit_id,
                    status=ProposalStatus.RASCUNHO,
                    proposal_value=proposal_value,
                    original_table_value=table_value,
                    proposal_date=today,
                    valid_until=today + timedelta(days=self._settings.proposal_validity_days),
                    commission_value=commission_value,
                    conditions=conditions,
                    installments=expand_conditions(conditions),
                    history=(entry,),
                )
                self._store.insert(proposal, actor_id)
                self._units.reserve(unit_id, proposal_id)

                self._session.commit()
                logger.info("proposal_create_committed", extra={
                    "unit_id": str(unit_id),
                    "installments": len(proposal.installments),
                })
                return self.get_proposal(proposal_id)
            except SalesEngineError as exc:
                self._session.rollback()
                self._log_rejected("create", exc)
                raise
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Financial saves
    # =========================================================================

    def _persist_financial(
        self,
        outcome: TransitionOutcome,
        actor_id: UUID,
        replace: tuple[str, ...],
    ) -> None:
        self._store.save(outcome.proposal, actor_id, replace=replace)
        if outcome.history_entry is not None:
            self._store.append_history([outcome.history_entry])

    def save_conditions(
        self,
        proposal_id: UUID,
        conditions: Sequence[Condition],
        actor_id: UUID,
        explicit_unlock: bool = False,
        proposal_value: Decimal | None = None,
    ) -> Proposal:
        """
        Replace the proposal's conditions and regenerate its installments.

        Args:
            proposal_value: New target price, when the negotiator changed it
                (e.g. after resetting to the standard flow).

        Raises:
            ProposalFormalizingError / EditLockedError: Edit lock.
            ConditionsNotClosedError: Conditions do not close.
        """
        with LogContext.bind(proposal_id=proposal_id, actor_id=actor_id):
            try:
                proposal = self.get_proposal(proposal_id)
                outcome = lifecycle.plan_financial_save(
                    proposal, actor_id, self._clock.now(), explicit_unlock
                )
                target = proposal.proposal_value if proposal_value is None else proposal_value
                conditions = tuple(conditions)
                require_closed(
                    ConditionBoard(target_price=target, conditions=conditions),
                    self._settings.money_tolerance,
                )

                logger.info("proposal_save_conditions_started", extra={
                    "status": proposal.status.value,
                    "conditions": len(conditions),
                    "reverts": outcome.status_changed,
                })

                outcome = dataclasses.replace(outcome, proposal=dataclasses.replace(
                    outcome.proposal,
                    proposal_value=target,
                    conditions=conditions,
                    installments=expand_conditions(conditions),
                ))
                self._persist_financial(outcome, actor_id, ("conditions", "installments"))

                self._session.commit()
                logger.info("proposal_save_conditions_committed", extra={
                    "status": outcome.proposal.status.value,
                })
                return self.get_proposal(proposal_id)
            except SalesEngineError as exc:
                self._session.rollback()
                self._log_rejected("save_conditions", exc)
                raise
            except Exception:
                self._session.rollback()
                raise

    def save_installments(
        self,
        proposal_id: UUID,
        installments: Sequence[Installment],
        actor_id: UUID,
        explicit_unlock: bool = False,
    ) -> Proposal:
        """
        Replace the proposal's installments and regroup them into conditions.

        Raises:
            ProposalFormalizingError / EditLockedError: Edit lock.
            InstallmentsNotClosedError: Installments do not sum to the proposal value.
        """
        with LogContext.bind(proposal_id=proposal_id, actor_id=actor_id):
            try:
                proposal = self.get_proposal(proposal_id)
                outcome = lifecycle.plan_financial_save(
                    proposal, actor_id, self._clock.now(), explicit_unlock
                )
                installments = resequence(installments)
                require_installments_closed(
                    installments, proposal.proposal_value, self._settings.money_tolerance
                )

                logger.info("proposal_save_installments_started", extra={
                    "status": proposal.status.value,
                    "installments": len(installments),
                    "reverts": outcome.status_changed,
                })

                outcome = dataclasses.replace(outcome, proposal=dataclasses.replace(
                    outcome.proposal,
                    installments=installments,
                    conditions=regroup_installments(installments),
                ))
                self._persist_financial(outcome, actor_id, ("conditions", "installments"))

                self._session.commit()
                logger.info("proposal_save_installments_committed", extra={
                    "conditions": len(outcome.proposal.conditions),
                })
                return self.get_proposal(proposal_id)
            except SalesEngineError as exc:
                self._session.rollback()
                self._log_rejected("save_installments", exc)
                raise
            except Exception:
                self._session.rollback()
                raise

    def save_commissions(
        self,
        proposal_id: UUID,
        lines: Sequence[CommissionLine],
        actor_id: UUID,
        explicit_unlock: bool = False,
    ) -> Proposal:
        """
        Replace the commission split.

        Raises:
            ProposalFormalizingError / EditLockedError: Edit lock.
            RateioPercentNotClosedError / RateioValueNotClosedError: Split
                does not close within the commission tolerance.
            MissingResponsiblePartyError / MultipleResponsiblePartiesError.
        """
        with LogContext.bind(proposal_id=proposal_id, actor_id=actor_id):
            try:
                proposal = self.get_proposal(proposal_id)
                outcome = lifecycle.plan_financial_save(
                    proposal, actor_id, self._clock.now(), explicit_unlock
                )
                lines = tuple(lines)
                validate_commissions(
                    lines, proposal.commission_value, self._settings.commission_tolerance
                )

                logger.info("proposal_save_commissions_started", extra={
                    "lines": len(lines),
                    "pool": str(proposal.commission_value),
                })

                outcome = dataclasses.replace(
                    outcome, proposal=dataclasses.replace(outcome.proposal, commissions=lines)
                )
                self._persist_financial(outcome, actor_id, ("commissions",))

                self._session.commit()
                logger.info("proposal_save_commissions_committed", extra={
                    "lines": len(lines),
                })
                return self.get_proposal(proposal_id)
            except SalesEngineError as exc:
                self._session.rollback()
                self._log_rejected("save_commissions", exc)
                raise
            except Exception:
                self._session.rollback()
                raise

    def delete_last_commission_and_persist(
        self,
        proposal_id: UUID,
        line_id: UUID,
        actor_id: UUID,
        explicit_unlock: bool = False,
    ) -> Proposal:
        """
        Remove the only remaining commission line and persist the empty list.

        Raises:
            LineNotFoundError: ``line_id`` is not on the proposal.
            NotLastLineError: Other lines would remain; remove it locally
                and save the balanced split instead.
        """
        proposal = self.get_proposal(proposal_id)
        if not removal_empties(proposal.commissions, line_id):
            raise NotLastLineError(str(line_id), len(proposal.commissions) - 1)
        return self.save_commissions(proposal_id, (), actor_id, explicit_unlock)

    def save_parties(
        self,
        proposal_id: UUID,
        lines: Sequence[PartyLine],
        actor_id: UUID,
        explicit_unlock: bool = False,
    ) -> Proposal:
        """
        Replace the participating parties; group numbers are compacted.

        Raises:
            ProposalFormalizingError / EditLockedError: Edit lock.
            ParticipationNotClosedError: Participation does not sum to 100.
            MissingResponsiblePartyError / MultipleResponsiblePartiesError.
        """
        with LogContext.bind(proposal_id=proposal_id, actor_id=actor_id):
            try:
                proposal = self.get_proposal(proposal_id)
                outcome = lifecycle.plan_financial_save(
                    proposal, actor_id, self._clock.now(), explicit_unlock
                )
                lines = compact_groups(lines)
                validate_parties(lines, self._settings.participation_tolerance)

                logger.info("proposal_save_parties_started", extra={
                    "lines": len(lines),
                    "groups": len({line.group_number for line in lines}),
                })

                outcome = dataclasses.replace(
                    outcome, proposal=dataclasses.replace(outcome.proposal, parties=lines)
                )
                self._persist_financial(outcome, actor_id, ("parties",))

                self._session.commit()
                logger.info("proposal_save_parties_committed", extra={
                    "lines": len(lines),
                })
                return self.get_proposal(proposal_id)
            except SalesEngineError as exc:
                self._session.rollback()
                self._log_rejected("save_parties", exc)
                raise
            except Exception:
                self._session.rollback()
                raise

    def delete_last_party_and_persist(
        self,
        proposal_id: UUID,
        line_id: UUID,
        actor_id: UUID,
        explicit_unlock: bool = False,
    ) -> Proposal:
        """Remove the only remaining party line and persist the empty list."""
        proposal = self.get_proposal(proposal_id)
        if not removal_empties(proposal.parties, line_id):
            raise NotLastLineError(str(line_id), len(proposal.parties) - 1)
        return self.save_parties(proposal_id, (), actor_id, explicit_unlock)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _apply_transition(
        self,
        proposal_id: UUID,
        actor_id: UUID | None,
        action: str,
        plan,
        collaborate=None,
    ) -> Proposal:
        """
        Load, plan the transition, call the collaborator, persist, commit.

        ``plan`` maps the loaded proposal to a TransitionOutcome and raises
        on an invalid transition before any collaborator is called.
        ``collaborate`` receives the planned outcome; if it raises, nothing
        is written.
        """
        with LogContext.bind(proposal_id=proposal_id, actor_id=actor_id):
            try:
                proposal = self.get_proposal(proposal_id)
                outcome = plan(proposal)

                logger.info(f"proposal_{action}_started", extra={
                    "prior_status": proposal.status.value,
                    "new_status": outcome.proposal.status.value,
                })

                if collaborate is not None:
                    collaborate(outcome)
                self._store.save(outcome.proposal, outcome.history_entry.actor_id)
                self._store.append_history([outcome.history_entry])

                self._session.commit()
                logger.info(f"proposal_{action}_committed", extra={
                    "status": outcome.proposal.status.value,
                })
                return self.get_proposal(proposal_id)
            except SalesEngineError as exc:
                self._session.rollback()
                self._log_rejected(action, exc)
                raise
            except Exception:
                self._session.rollback()
                raise

    def submit(self, proposal_id: UUID, actor_id: UUID) -> Proposal:
        """RASCUNHO -> EM_ANALISE."""
        now = self._clock.now()
        return self._apply_transition(
            proposal_id, actor_id, lifecycle.SUBMIT,
            lambda p: lifecycle.submit(p, actor_id, now),
        )

    def approve(
        self, proposal_id: UUID, actor_id: UUID | None, note: str | None = None
    ) -> Proposal:
        """EM_ANALISE -> APROVADO."""
        now = self._clock.now()
        return self._apply_transition(
            proposal_id, actor_id, lifecycle.APPROVE,
            lambda p: lifecycle.approve(p, actor_id, now, note),
        )

    def reject(
        self,
        proposal_id: UUID,
        actor_id: UUID | None,
        reason: RejectionReason | str | None,
        note: str | None = None,
    ) -> Proposal:
        """EM_ANALISE -> REPROVADO; the unit is released back to availability."""
        now = self._clock.now()
        return self._apply_transition(
            proposal_id, actor_id, lifecycle.REJECT,
            lambda p: lifecycle.reject(p, actor_id, now, reason, note),
            collaborate=lambda o: self._units.release(o.proposal.unit_id, o.proposal.proposal_id),
        )

    def _generate_document(self, action: str):
        def generate(outcome: TransitionOutcome) -> None:
            kind = lifecycle.DOCUMENT_FOR_ACTION[action]
            reference = self._documents.generate(outcome.proposal, kind)
            logger.info("proposal_document_generated", extra={
                "document_kind": kind,
                "document_ref": reference,
            })
        return generate

    def formalize(self, proposal_id: UUID, actor_id: UUID) -> Proposal:
        """APROVADO -> FORMALIZADA; generates the term of intent."""
        now = self._clock.now()
        return self._apply_transition(
            proposal_id, actor_id, lifecycle.FORMALIZE,
            lambda p: lifecycle.formalize(p, actor_id, now),
            collaborate=self._generate_document(lifecycle.FORMALIZE),
        )

    def generate_contract(self, proposal_id: UUID, actor_id: UUID) -> Proposal:
        """FORMALIZADA -> EM_ASSINATURA; generates the purchase contract."""
        now = self._clock.now()
        return self._apply_transition(
            proposal_id, actor_id, lifecycle.CONTRACT,
            lambda p: lifecycle.contract(p, actor_id, now),
            collaborate=self._generate_document(lifecycle.CONTRACT),
        )

    def sign(self, proposal_id: UUID, actor_id: UUID, signed_artifact_ref: str | None) -> Proposal:
        """EM_ASSINATURA -> ASSINADO; needs the signed document reference."""
        now = self._clock.now()
        return self._apply_transition(
            proposal_id, actor_id, lifecycle.SIGN,
            lambda p: lifecycle.sign(p, actor_id, now, signed_artifact_ref),
        )
