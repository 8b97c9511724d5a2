"""
Tests for the condition bucket engine.

Covers:
- Reducer operations (add, update, remove, clear, restore, reset)
- Closure summary and the save gate
- Display grouping by bucket
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sales_engines.conditions import (
    BUCKETS,
    ClosureStatus,
    ConditionBoard,
    add_condition,
    clear_conditions,
    conditions_from_flow,
    group_by_bucket,
    remove_condition,
    require_closed,
    reset_to_standard,
    restore_saved,
    set_target_price,
    summarize,
    update_condition,
)
from sales_engines.standard_flow import StandardFlowGenerator
from sales_kernel.domain.flow import FlowTemplateItem, FlowType
from sales_kernel.domain.proposal import Condition
from sales_kernel.exceptions import (
    ConditionsNotClosedError,
    LineNotFoundError,
    UnknownConditionBucketError,
    UnknownLineFieldError,
)

TODAY = date(2026, 2, 1)


def make_board(target: str = "1000.00", *values: str) -> ConditionBoard:
    rows = tuple(Condition("ENTRADA", TODAY, 1, Decimal(v)) for v in values)
    return ConditionBoard(target_price=Decimal(target), conditions=rows)


class TestReducer:
    """Every operation returns a new board and leaves the old one intact."""

    def test_add_condition_defaults(self):
        board = add_condition(make_board(), FlowType.MENSAL, TODAY)
        (row,) = board.conditions
        assert row.condition_type == "MENSAL"
        assert row.due_date == TODAY
        assert row.installment_count == 1
        assert row.installment_value == 0
        assert row.periodicity_months == 1

    def test_add_semestral_lands_in_intermediarias(self):
        board = add_condition(make_board(), "SEMESTRAL", TODAY)
        assert board.conditions[0].condition_type == "INTERMEDIARIAS"

    def test_add_unknown_bucket_rejected(self):
        with pytest.raises(UnknownConditionBucketError):
            add_condition(make_board(), "PERMUTA", TODAY)
        with pytest.raises(UnknownConditionBucketError):
            add_condition(make_board(), FlowType.OUTROS, TODAY)

    def test_update_field(self):
        board = make_board("1000", "100")
        row_id = board.conditions[0].condition_id
        updated = update_condition(board, row_id, "installment_value", Decimal("250"))
        assert updated.conditions[0].installment_value == Decimal("250")
        assert board.conditions[0].installment_value == Decimal("100")

    def test_type_change_rederives_periodicity(self):
        board = add_condition(make_board(), "MENSAL", TODAY)
        row_id = board.conditions[0].condition_id
        updated = update_condition(board, row_id, "condition_type", "ANUAL")
        assert updated.conditions[0].periodicity_months == 12
        assert updated.conditions[0].condition_id == row_id

    def test_update_unknown_field_rejected(self):
        board = make_board("1000", "100")
        with pytest.raises(UnknownLineFieldError):
            update_condition(board, board.conditions[0].condition_id, "condition_id", uuid4())

    def test_update_unknown_row_rejected(self):
        with pytest.raises(LineNotFoundError):
            update_condition(make_board("1000", "1"), uuid4(), "installment_count", 2)

    def test_remove_condition(self):
        board = make_board("1000", "100", "200")
        kept = remove_condition(board, board.conditions[0].condition_id)
        assert [c.installment_value for c in kept.conditions] == [Decimal("200")]

    def test_clear_keeps_target(self):
        board = clear_conditions(make_board("1000", "100"))
        assert board.conditions == ()
        assert board.target_price == Decimal("1000")

    def test_set_target_price(self):
        assert set_target_price(make_board(), Decimal("5")).target_price == Decimal("5")

    def test_restore_saved(self):
        rows = make_board("1000", "1000").conditions
        board = restore_saved(rows, Decimal("1000"))
        assert board.conditions == rows
        assert summarize(board).is_closed


class TestStandardReset:

    def setup_method(self):
        template = (
            FlowTemplateItem(FlowType.ENTRADA, Decimal("20"), 1, 0, TODAY),
            FlowTemplateItem(FlowType.SEMESTRAL, Decimal("20"), 2, 6, TODAY),
            FlowTemplateItem(FlowType.MENSAL, Decimal("60"), 12, 1, TODAY),
        )
        self.flow = StandardFlowGenerator().generate(Decimal("120000"), template)

    def test_conditions_from_flow(self):
        rows = conditions_from_flow(self.flow)
        assert [r.condition_type for r in rows] == ["ENTRADA", "INTERMEDIARIAS", "MENSAL"]
        assert rows[1].periodicity_months == 6
        assert rows[2].installment_value == Decimal("6000")

    def test_reset_replaces_rows_and_target(self):
        board = reset_to_standard(make_board("1", "1"), self.flow, Decimal("120000"))
        assert board.target_price == Decimal("120000")
        assert summarize(board).is_closed


class TestClosure:
    """The board closes only when the remaining gap is under one cent."""

    def test_exact_total_closes(self):
        summary = summarize(make_board("1000.00", "400.00", "600.00"))
        assert summary.status == ClosureStatus.CLOSED
        assert summary.remaining == 0

    def test_short_by_two_cents(self):
        board = make_board("1000.00", "400.00", "599.98")
        summary = summarize(board)
        assert summary.status == ClosureStatus.NEEDS_MORE
        with pytest.raises(ConditionsNotClosedError) as exc_info:
            require_closed(board)
        assert exc_info.value.remaining == Decimal("0.02")
        assert "remaining 0.02" in str(exc_info.value)

    def test_excess_is_negative_remaining(self):
        summary = summarize(make_board("1000.00", "1000.05"))
        assert summary.status == ClosureStatus.EXCESS
        assert summary.remaining == Decimal("-0.05")

    def test_sub_cent_gap_closes(self):
        assert summarize(make_board("1000.00", "999.995")).is_closed

    def test_exactly_one_cent_does_not_close(self):
        assert not summarize(make_board("1000.00", "999.99")).is_closed

    def test_require_closed_returns_summary(self):
        assert require_closed(make_board("10", "10")).total_distributed == Decimal("10")


class TestGroupByBucket:

    def test_fixed_buckets_always_present(self):
        groups = group_by_bucket(make_board())
        assert list(groups) == [b.value for b in BUCKETS]
        assert all(v == () for v in groups.values())

    def test_free_form_types_after_buckets(self):
        board = ConditionBoard(Decimal("1"), (
            Condition("PERMUTA", TODAY, 1, Decimal("1")),
            Condition("SEMESTRAL", TODAY, 1, Decimal("1")),
        ))
        groups = group_by_bucket(board)
        assert list(groups)[-1] == "PERMUTA"
        assert len(groups["INTERMEDIARIAS"]) == 1
