"""Tests for proposal value objects, entity references and workflow types."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sales_kernel.domain.entities import EntityRef, EntityType, format_document
from sales_kernel.domain.flow import FlowType
from sales_kernel.domain.proposal import (
    CommissionLine,
    Condition,
    Installment,
    ParticipationType,
    PartyLine,
    Proposal,
    ProposalStatus,
    default_periodicity,
)
from sales_kernel.domain.workflow import Transition, Workflow

DUE = date(2026, 3, 1)


class TestCondition:
    """Condition rows normalise their type and derive periodicity."""

    def test_type_is_normalised(self):
        c = Condition(" mensal", DUE, 10, Decimal("1000"))
        assert c.condition_type == "MENSAL"
        assert c.flow_type == FlowType.MENSAL
        assert c.type_code == "M"

    def test_flow_type_enum_accepted(self):
        c = Condition(FlowType.ANUAL, DUE, 2, Decimal("1000"))
        assert c.condition_type == "ANUAL"
        assert c.periodicity_months == 12

    @pytest.mark.parametrize("ctype,months", [
        ("ENTRADA", 0),
        ("MENSAL", 1),
        ("INTERMEDIARIAS", 6),
        ("SEMESTRAL", 6),
        ("ANUAL", 12),
        ("CHAVES", 0),
        ("FINANCIAMENTO", 0),
        ("PERMUTA", 0),
    ])
    def test_default_periodicity(self, ctype, months):
        assert default_periodicity(ctype) == months
        assert Condition(ctype, DUE, 1, Decimal("1")).periodicity_months == months

    def test_explicit_periodicity_wins(self):
        c = Condition("MENSAL", DUE, 4, Decimal("1"), periodicity_months=3)
        assert c.periodicity_months == 3

    def test_total_value(self):
        assert Condition("MENSAL", DUE, 10, Decimal("1500.50")).total_value == Decimal("15005.00")

    def test_free_form_type_kept(self):
        c = Condition("Permuta", DUE, 1, Decimal("5000"))
        assert c.condition_type == "PERMUTA"
        assert c.flow_type is None
        assert c.type_code == "O"

    def test_zero_count_rejected(self):
        with pytest.raises(ValueError):
            Condition("MENSAL", DUE, 0, Decimal("1"))

    def test_blank_type_rejected(self):
        with pytest.raises(ValueError):
            Condition("  ", DUE, 1, Decimal("1"))

    def test_float_value_rejected(self):
        with pytest.raises(TypeError):
            Condition("MENSAL", DUE, 1, 10.5)


class TestInstallment:

    def test_code_uppercased(self):
        assert Installment("m", DUE, Decimal("1")).type_code == "M"

    def test_multi_letter_code_rejected(self):
        with pytest.raises(ValueError):
            Installment("MM", DUE, Decimal("1"))


class TestRateioLines:

    def test_commission_display_percent(self):
        line = CommissionLine(uuid4(), Decimal("33.3333333"), Decimal("3333.33"))
        assert line.display_percent == Decimal("33.33")
        assert line.percent == Decimal("33.3333333")

    def test_party_type_parsed_from_value(self):
        line = PartyLine(uuid4(), "CONJUGE", Decimal("50"))
        assert line.participation_type == ParticipationType.SPOUSE

    def test_party_group_must_be_positive(self):
        with pytest.raises(ValueError):
            PartyLine(uuid4(), ParticipationType.BUYER, Decimal("100"), group_number=0)

    def test_participation_priority(self):
        ordered = sorted(ParticipationType, key=lambda p: p.priority)
        assert ordered[0] == ParticipationType.BUYER
        assert ordered[-1] == ParticipationType.ATTORNEY


class TestProposal:

    def test_discount_is_table_minus_target(self):
        p = Proposal(
            proposal_id=uuid4(),
            unit_id=uuid4(),
            status=ProposalStatus.RASCUNHO,
            proposal_value=Decimal("190000"),
            original_table_value=Decimal("200000"),
            proposal_date=DUE,
        )
        assert p.discount == Decimal("10000")

    def test_values_are_coerced(self):
        p = Proposal(
            proposal_id=uuid4(),
            unit_id=uuid4(),
            status=ProposalStatus.RASCUNHO,
            proposal_value="1000",
            original_table_value=1000,
            proposal_date=DUE,
        )
        assert p.proposal_value == Decimal("1000")
        assert p.commission_value == Decimal("0")


class TestFormatDocument:
    """CPF and CNPJ masks."""

    def test_cpf_mask(self):
        assert format_document("12345678901", EntityType.PF) == "123.456.789-01"

    def test_cnpj_mask(self):
        assert format_document("12345678000199", "PJ") == "12.345.678/0001-99"

    def test_already_masked_input_is_remasked(self):
        assert format_document("123.456.789-01", EntityType.PF) == "123.456.789-01"

    def test_wrong_length_returned_unchanged(self):
        assert format_document("1234", EntityType.PF) == "1234"

    def test_cpf_length_under_pj_unchanged(self):
        assert format_document("12345678901", EntityType.PJ) == "12345678901"

    def test_empty(self):
        assert format_document(None, EntityType.PF) == ""

    def test_entity_ref_formatted_document(self):
        ref = EntityRef(uuid4(), "Maria", "12345678901", EntityType.PF)
        assert ref.formatted_document == "123.456.789-01"


class TestWorkflow:

    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow("w", "", "X", ("A",), ())

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow("w", "", "A", ("A",), (Transition("A", "B", "go"),))

    def test_find_and_actions(self):
        wf = Workflow("w", "", "A", ("A", "B"), (Transition("A", "B", "go"),))
        assert wf.find("A", "go").to_state == "B"
        assert wf.find("B", "go") is None
        assert wf.actions_from("A") == ("go",)
