"""Tests for installment expansion, resequencing and regrouping."""

from datetime import date
from decimal import Decimal

import pytest

from sales_engines.conditions import ConditionBoard, summarize
from sales_engines.installments import (
    expand_conditions,
    regroup_installments,
    require_installments_closed,
    resequence,
    total_installments,
)
from sales_kernel.domain.proposal import Condition, Installment
from sales_kernel.exceptions import InstallmentsNotClosedError


class TestExpandConditions:

    def test_one_installment_per_count(self):
        conditions = (
            Condition("ENTRADA", date(2026, 3, 1), 1, Decimal("40000")),
            Condition("MENSAL", date(2026, 4, 1), 3, Decimal("1000")),
        )
        installments = expand_conditions(conditions)
        assert [(i.sequence_number, i.type_code, i.due_date) for i in installments] == [
            (1, "E", date(2026, 3, 1)),
            (2, "M", date(2026, 4, 1)),
            (3, "M", date(2026, 5, 1)),
            (4, "M", date(2026, 6, 1)),
        ]

    def test_month_end_due_dates_clamp(self):
        cond = Condition("MENSAL", date(2026, 1, 31), 3, Decimal("1"))
        dates = [i.due_date for i in expand_conditions((cond,))]
        assert dates == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31)]

    def test_single_periodicity_repeats_same_date(self):
        cond = Condition("CHAVES", date(2027, 1, 10), 2, Decimal("5"))
        assert {i.due_date for i in expand_conditions((cond,))} == {date(2027, 1, 10)}

    def test_total_preserved(self):
        conditions = (
            Condition("ENTRADA", date(2026, 3, 1), 1, Decimal("38000")),
            Condition("MENSAL", date(2026, 4, 1), 10, Decimal("15200")),
        )
        assert total_installments(expand_conditions(conditions)) == Decimal("190000")


class TestResequence:

    def test_same_date_ordered_by_type_weight(self):
        day = date(2026, 6, 1)
        out = resequence([
            Installment("A", day, Decimal("1")),
            Installment("M", day, Decimal("1")),
            Installment("E", day, Decimal("1")),
        ])
        assert [i.type_code for i in out] == ["E", "M", "A"]
        assert [i.sequence_number for i in out] == [1, 2, 3]

    def test_sequence_ignores_input_numbers(self):
        out = resequence([Installment("M", date(2026, 1, 1), Decimal("1"), sequence_number=99)])
        assert out[0].sequence_number == 1


class TestRegroup:
    """Installments sharing code and value become one condition."""

    def test_regroups_by_code_and_value(self):
        installments = expand_conditions((
            Condition("ENTRADA", date(2026, 3, 1), 1, Decimal("40000")),
            Condition("MENSAL", date(2026, 4, 1), 10, Decimal("16000")),
        ))
        conditions = regroup_installments(installments)
        assert [(c.condition_type, c.installment_count, c.installment_value) for c in conditions] == [
            ("ENTRADA", 1, Decimal("40000.00")),
            ("MENSAL", 10, Decimal("16000.00")),
        ]
        assert conditions[1].due_date == date(2026, 4, 1)

    def test_edited_installment_splits_group(self):
        installments = list(expand_conditions((
            Condition("MENSAL", date(2026, 4, 1), 3, Decimal("1000")),
        )))
        installments[2] = Installment("M", installments[2].due_date, Decimal("1500"))
        conditions = regroup_installments(installments)
        assert [(c.installment_count, c.installment_value) for c in conditions] == [
            (2, Decimal("1000.00")),
            (1, Decimal("1500.00")),
        ]

    def test_regrouped_board_stays_closed(self):
        conditions = (Condition("MENSAL", date(2026, 4, 1), 3, Decimal(100) / 3),)
        regrouped = regroup_installments(expand_conditions(conditions))
        assert len(regrouped) == 1
        assert summarize(ConditionBoard(Decimal("100"), regrouped)).is_closed

    def test_unknown_code_regroups_as_outros(self):
        (cond,) = regroup_installments([Installment("O", date(2026, 1, 1), Decimal("5"))])
        assert cond.condition_type == "OUTROS"


class TestInstallmentClosure:

    def test_closed(self):
        inst = [Installment("E", date(2026, 1, 1), Decimal("1000"))]
        assert require_installments_closed(inst, Decimal("1000")) == Decimal("1000")

    def test_difference_is_proposal_minus_total(self):
        inst = [Installment("E", date(2026, 1, 1), Decimal("999.50"))]
        with pytest.raises(InstallmentsNotClosedError) as exc_info:
            require_installments_closed(inst, Decimal("1000"))
        assert exc_info.value.difference == Decimal("0.50")
        assert exc_info.value.code == "INSTALLMENTS_NOT_CLOSED"
