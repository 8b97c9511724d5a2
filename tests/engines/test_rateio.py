"""
Tests for the rateio (split) engine.

Covers:
- Bidirectional percent/value editing against a pool
- Single responsible line per scope
- Commission add/sync/validate
- Party groups: add, remove with compaction, move, validate
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from sales_engines.rateio import (
    RateioEngine,
    add_commission,
    add_party,
    commission_engine,
    compact_groups,
    group_parties,
    move_party_to_group,
    party_engine,
    remove_party,
    removal_empties,
    set_participation_type,
    sync_commission_entities,
    sync_party_entities,
    validate_commissions,
    validate_parties,
)
from sales_kernel.domain.proposal import CommissionLine, ParticipationType, PartyLine
from sales_kernel.exceptions import (
    LineNotFoundError,
    MissingResponsiblePartyError,
    MultipleResponsiblePartiesError,
    ParticipationNotClosedError,
    RateioPercentNotClosedError,
    RateioValueNotClosedError,
)
from tests.factories import make_commissions, make_party

POOL = Decimal("10000")


class TestBidirectionalEditing:
    """Editing one field of a line recomputes its pair; other lines stay."""

    def setup_method(self):
        self.engine = commission_engine(POOL)
        self.lines = make_commissions(POOL, "60", "40")

    def test_percent_split(self):
        assert [line.value for line in self.lines] == [Decimal("6000"), Decimal("4000")]

    def test_edit_value_updates_percent_only_on_that_line(self):
        first = self.lines[0].line_id
        out = self.engine.edit_value(self.lines, first, Decimal("7000"))
        assert out[0].value == Decimal("7000")
        assert out[0].percent == Decimal("70")
        assert out[1] == self.lines[1]

    def test_edit_percent_updates_value(self):
        out = self.engine.edit_percent(self.lines, self.lines[1].line_id, Decimal("25"))
        assert out[1].value == Decimal("2500")

    def test_edit_value_with_empty_pool(self):
        engine = commission_engine(Decimal("0"))
        out = engine.edit_value(self.lines, self.lines[0].line_id, Decimal("100"))
        assert out[0].percent == 0

    def test_unknown_line(self):
        with pytest.raises(LineNotFoundError):
            self.engine.edit_value(self.lines, uuid4(), Decimal("1"))

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            self.engine.edit_percent(self.lines, self.lines[0].line_id, 10.0)

    def test_set_responsible_clears_sibling(self):
        out = self.engine.set_responsible(self.lines, self.lines[1].line_id)
        assert [line.is_responsible for line in out] == [False, True]

    def test_unset_responsible(self):
        out = self.engine.set_responsible(self.lines, self.lines[0].line_id, False)
        assert not any(line.is_responsible for line in out)


class TestCommissions:

    def test_first_commission_takes_whole_pool(self):
        (line,) = add_commission((), uuid4(), POOL)
        assert line.percent == 100
        assert line.value == POOL
        assert line.is_responsible

    def test_later_commissions_start_at_zero(self):
        lines = add_commission(add_commission((), uuid4(), POOL), uuid4(), POOL)
        assert lines[1].percent == 0 and not lines[1].is_responsible

    def test_sync_mirrors_selection(self):
        a, b, c = uuid4(), uuid4(), uuid4()
        lines = sync_commission_entities((), [a, b], POOL)
        lines = sync_commission_entities(lines, [b, c], POOL)
        assert [line.entity_id for line in lines] == [b, c]

    def test_empty_list_is_valid(self):
        assert validate_commissions((), POOL).line_count == 0

    def test_balanced_split_is_valid(self):
        summary = validate_commissions(make_commissions(POOL, "60", "40"), POOL)
        assert summary.total_value == POOL

    def test_percent_within_five_cents_closes(self):
        lines = (
            CommissionLine(uuid4(), Decimal("60.05"), Decimal("6000"), True),
            CommissionLine(uuid4(), Decimal("40"), Decimal("4000")),
        )
        validate_commissions(lines, POOL)

    def test_percent_off_reports_deviation(self):
        lines = make_commissions(POOL, "60", "39")
        with pytest.raises(RateioPercentNotClosedError) as exc_info:
            validate_commissions(lines, POOL)
        assert exc_info.value.deviation == Decimal("-1")

    def test_value_off_reports_deviation(self):
        lines = (
            CommissionLine(uuid4(), Decimal("60"), Decimal("6000"), True),
            CommissionLine(uuid4(), Decimal("40"), Decimal("3999.90")),
        )
        with pytest.raises(RateioValueNotClosedError) as exc_info:
            validate_commissions(lines, POOL)
        assert exc_info.value.deviation == Decimal("-0.10")

    def test_requires_a_responsible_line(self):
        lines = tuple(
            CommissionLine(uuid4(), Decimal(p), Decimal(p) * 100) for p in ("50", "50")
        )
        with pytest.raises(MissingResponsiblePartyError):
            validate_commissions(lines, POOL)

    def test_rejects_two_responsible_lines(self):
        lines = tuple(
            CommissionLine(uuid4(), Decimal(p), Decimal(p) * 100, True) for p in ("50", "50")
        )
        with pytest.raises(MultipleResponsiblePartiesError):
            validate_commissions(lines, POOL)

    def test_removal_empties(self):
        lines = make_commissions(POOL, "100")
        assert removal_empties(lines, lines[0].line_id)
        two = make_commissions(POOL, "50", "50")
        assert not removal_empties(two, two[0].line_id)


class TestPartyGroups:
    """Groups are numbered 1..N without gaps."""

    def test_add_party_opens_new_group(self):
        lines = add_party((), uuid4())
        lines = add_party(lines, uuid4())
        assert [p.group_number for p in lines] == [1, 2]
        assert lines[0].participation_type == ParticipationType.BUYER
        assert lines[0].percent == 100 and lines[0].is_responsible
        assert lines[1].participation_type == ParticipationType.CO_BUYER

    def test_removing_middle_group_compacts(self):
        lines = (make_party(1, "50", True), make_party(2, "25"), make_party(3, "25"))
        out = remove_party(lines, lines[1].line_id)
        assert sorted({p.group_number for p in out}) == [1, 2]
        assert out[1].entity_id == lines[2].entity_id

    def test_compact_preserves_relative_order(self):
        lines = (make_party(5), make_party(2), make_party(5))
        assert [p.group_number for p in compact_groups(lines)] == [2, 1, 2]

    def test_move_party_clears_responsible(self):
        lines = (make_party(1, "60", True), make_party(2, "40", True))
        out = move_party_to_group(lines, lines[1].line_id, 1)
        assert out[1].group_number == 1
        assert not out[1].is_responsible

    def test_move_to_invalid_group(self):
        lines = (make_party(1),)
        with pytest.raises(ValueError):
            move_party_to_group(lines, lines[0].line_id, 0)

    def test_set_responsible_scoped_to_group(self):
        lines = (make_party(1, "50", True), make_party(2, "25", True), make_party(2, "25"))
        out = party_engine().set_responsible(lines, lines[2].line_id)
        assert [p.is_responsible for p in out] == [True, False, True]

    def test_group_parties_sorted_by_priority(self):
        lines = (
            make_party(1, participation_type=ParticipationType.SPOUSE),
            make_party(1, participation_type=ParticipationType.BUYER),
            make_party(2),
        )
        groups = group_parties(lines)
        assert groups[1][0].participation_type == ParticipationType.BUYER
        assert list(groups) == [1, 2]

    def test_set_participation_type(self):
        lines = (make_party(1),)
        out = set_participation_type(lines, lines[0].line_id, ParticipationType.GUARANTOR)
        assert out[0].participation_type == ParticipationType.GUARANTOR

    def test_sync_party_entities_batch_shares_group(self):
        a, b, c = uuid4(), uuid4(), uuid4()
        lines = sync_party_entities((), [a, b, c])
        assert [p.group_number for p in lines] == [1, 1, 1]
        assert [p.is_responsible for p in lines] == [True, False, False]
        assert [p.percent for p in lines] == [Decimal("100"), Decimal("0"), Decimal("0")]
        assert lines[0].participation_type == ParticipationType.BUYER
        assert lines[2].participation_type == ParticipationType.CO_BUYER

        lines = sync_party_entities(lines, [a, c])
        assert [p.entity_id for p in lines] == [a, c]
        assert [p.group_number for p in lines] == [1, 1]

    def test_sync_party_entities_adds_one_new_group(self):
        a, b, c = uuid4(), uuid4(), uuid4()
        lines = sync_party_entities((), [a])
        lines = sync_party_entities(lines, [a, b, c])
        assert [p.group_number for p in lines] == [1, 2, 2]
        assert [p.is_responsible for p in lines] == [True, False, False]

    def test_value_derived_from_percent(self):
        engine = party_engine()
        assert engine.value_of(make_party(1, "25")) == Decimal("25")


class TestValidateParties:

    def test_valid_across_groups(self):
        lines = (make_party(1, "60", True), make_party(2, "40", True))
        assert validate_parties(lines).total_percent == 100

    def test_empty_is_valid(self):
        validate_parties(())

    def test_participation_must_close(self):
        lines = (make_party(1, "60", True), make_party(2, "39.98"))
        with pytest.raises(ParticipationNotClosedError) as exc_info:
            validate_parties(lines)
        assert exc_info.value.deviation == Decimal("-0.02")

    def test_one_cent_is_inclusive(self):
        validate_parties((make_party(1, "60", True), make_party(2, "39.99")))

    def test_needs_a_responsible(self):
        with pytest.raises(MissingResponsiblePartyError):
            validate_parties((make_party(1, "100"),))

    def test_two_responsible_in_one_group(self):
        lines = (make_party(1, "50", True), make_party(1, "50", True))
        with pytest.raises(MultipleResponsiblePartiesError):
            validate_parties(lines)


class TestGenericEngine:

    def test_summary_deviations(self):
        engine = RateioEngine(pool=Decimal("200"), tolerance=Decimal("0.01"))
        lines = (
            CommissionLine(uuid4(), Decimal("50"), Decimal("100")),
            CommissionLine(uuid4(), Decimal("40"), Decimal("80")),
        )
        summary = engine.summarize(lines)
        assert summary.percent_deviation == Decimal("-10")
        assert summary.value_deviation == Decimal("-20")
        assert not engine.percent_closes(summary)

    def test_party_line_rejected_for_negative_group(self):
        with pytest.raises(ValueError):
            PartyLine(uuid4(), ParticipationType.BUYER, Decimal("1"), group_number=-1)
