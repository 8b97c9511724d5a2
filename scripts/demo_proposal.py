#!/usr/bin/env python3
"""
End-to-end proposal scenario using the real service and engines.

Prices a 100 m2 unit from its price table, creates a discounted proposal,
splits the commission and the purchase between parties, compares the
proposal with the standard flow, then walks it through approval,
formalization and signature.  Unit reservation, price tables, entities
and documents are served by small in-process stand-ins.

Usage:
    python3 scripts/demo_proposal.py
    python3 scripts/demo_proposal.py --discount 15000 --verbose
    python3 scripts/demo_proposal.py --db-url sqlite:///proposals.db
"""

import argparse
import dataclasses
import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DB_URL = "sqlite:///:memory:"
FIRST_DUE = date(2026, 3, 1)
PRIVATE_AREA = Decimal("100")
PRICE_PER_M2 = Decimal("2000")


class DemoUnits:
    def reserve(self, unit_id, proposal_id):
        print(f"         unit {str(unit_id)[:8]} RESERVADO")

    def release(self, unit_id, proposal_id):
        print(f"         unit {str(unit_id)[:8]} DISPONIVEL")


class DemoDocuments:
    def __init__(self):
        self.count = 0

    def generate(self, proposal, document_kind):
        self.count += 1
        print(f"         generated {document_kind}")
        return f"DOC-{self.count:04d}"


class DemoPriceTables:
    def __init__(self, entry, template):
        self.entry = entry
        self.template = template

    def get_price_entry(self, unit_id):
        return self.entry

    def get_flow_template(self, unit_id):
        return self.template


class DemoEntities:
    def __init__(self):
        self.refs = {}

    def add(self, name, document, entity_type):
        from sales_kernel.domain.entities import EntityRef

        entity_id = uuid4()
        self.refs[entity_id] = EntityRef(entity_id, name, document, entity_type)
        return entity_id

    def resolve(self, entity_ids):
        return {i: self.refs[i] for i in entity_ids if i in self.refs}


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def main() -> int:
    parser = argparse.ArgumentParser(description="Commercial proposal scenario demo")
    parser.add_argument("--discount", type=Decimal, default=Decimal("10000"),
                        help="Discount off the table price")
    parser.add_argument("--db-url", default=DB_URL, help="Database URL")
    parser.add_argument("--verbose", action="store_true",
                        help="Print structured logs to stderr")
    args = parser.parse_args()

    from sales_engines import rateio
    from sales_engines.standard_flow import PriceTableEntry
    from sales_kernel.db import create_tables, init_engine_from_url, session_scope
    from sales_kernel.domain.clock import SystemClock
    from sales_kernel.domain.entities import EntityType
    from sales_kernel.domain.flow import FlowTemplateItem, FlowType
    from sales_kernel.exceptions import SalesEngineError
    from sales_kernel.logging_config import configure_logging
    from sales_services import ProposalService

    if args.verbose:
        configure_logging(level=logging.INFO)
    else:
        logging.disable(logging.CRITICAL)

    # -----------------------------------------------------------------
    # 1. Database
    # -----------------------------------------------------------------
    print()
    print(f"  [1/5] Connecting to {args.db_url} ...")
    try:
        init_engine_from_url(args.db_url)
        create_tables()
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    unit_id = uuid4()
    actor_id = uuid4()
    entities = DemoEntities()
    price_tables = DemoPriceTables(
        PriceTableEntry(unit_id=unit_id, private_area=PRIVATE_AREA, price_per_m2=PRICE_PER_M2),
        (
            FlowTemplateItem(FlowType.ENTRADA, Decimal("20"), 1, 0, FIRST_DUE),
            FlowTemplateItem(FlowType.MENSAL, Decimal("60"), 24, 1, FIRST_DUE),
            FlowTemplateItem(FlowType.CHAVES, Decimal("20"), 1, 0, date(2028, 3, 1)),
        ),
    )

    try:
        with session_scope() as session:
            service = ProposalService(
                session,
                DemoUnits(),
                DemoDocuments(),
                clock=SystemClock(),
                price_tables=price_tables,
                entities=entities,
            )

            # -------------------------------------------------------------
            # 2. Standard flow and proposal
            # -------------------------------------------------------------
            quote = service.standard_quote(unit_id)
            print(f"  [2/5] Table price {_money(quote.table_price)}")
            for item in quote.flow:
                print(f"         {item.flow_type.value:<14} {item.installment_count:>3} x "
                      f"{_money(item.installment_value):>12}  from {item.first_due_date}")

            target = quote.table_price - args.discount
            board_rows = list(quote.conditions)
            # The keys payment absorbs the discount.
            keys = board_rows[-1]
            board_rows[-1] = dataclasses.replace(
                keys, installment_value=keys.installment_value - args.discount
            )
            proposal = service.create_proposal(
                unit_id=unit_id,
                table_value=quote.table_price,
                proposal_value=target,
                conditions=board_rows,
                actor_id=actor_id,
                commission_value=Decimal("8000"),
            )
            print(f"         Proposal {str(proposal.proposal_id)[:8]} at {_money(target)} "
                  f"(discount {_money(proposal.discount)}), valid until {proposal.valid_until}")

            # -------------------------------------------------------------
            # 3. Commission and participation
            # -------------------------------------------------------------
            print("  [3/5] Splitting commission and participation...")
            agency = entities.add("Imobiliaria Alfa", "12345678000199", EntityType.PJ)
            broker = entities.add("Joana Corretora", "98765432100", EntityType.PF)
            lines = rateio.add_commission((), agency, proposal.commission_value)
            lines = rateio.add_commission(lines, broker, proposal.commission_value)
            engine = rateio.commission_engine(proposal.commission_value)
            lines = engine.edit_percent(lines, lines[0].line_id, Decimal("60"))
            lines = engine.edit_value(lines, lines[1].line_id, Decimal("3200"))
            service.save_commissions(proposal.proposal_id, lines, actor_id)
            for line, ref in service.describe_commissions(proposal.proposal_id):
                print(f"         {ref.name:<18} {ref.formatted_document:<20} "
                      f"{line.display_percent:>6}%  {_money(line.value):>10}")

            buyer = entities.add("Carlos Souza", "11122233344", EntityType.PF)
            spouse = entities.add("Ana Souza", "55566677788", EntityType.PF)
            parties = rateio.add_party((), buyer)
            parties = rateio.add_party(parties, spouse)
            parties = rateio.move_party_to_group(parties, parties[1].line_id, 1)
            parties = rateio.set_participation_type(
                parties, parties[1].line_id, "CONJUGE"
            )
            service.save_parties(proposal.proposal_id, parties, actor_id)
            for group, members in service.describe_parties(proposal.proposal_id).items():
                for line, ref in members:
                    print(f"         group {group}  {line.participation_type.value:<13} "
                          f"{ref.name:<14} {line.display_percent:>6}%")

            # -------------------------------------------------------------
            # 4. Present-value analysis
            # -------------------------------------------------------------
            analysis = service.analyze(proposal.proposal_id)
            comparison = analysis.comparison
            print("  [4/5] Standard vs proposed")
            print(f"         nominal  {_money(comparison.standard.total_nominal):>14} "
                  f"{_money(comparison.proposed.total_nominal):>14}  "
                  f"{comparison.nominal_variance_pct:.2f}%")
            print(f"         VPL      {_money(comparison.standard.total_present_value):>14} "
                  f"{_money(comparison.proposed.total_present_value):>14}  "
                  f"{comparison.present_value_variance_pct:.2f}%")
            print(f"         VPL/m2 difference {_money(analysis.area_metrics.present_value_difference)}")

            # -------------------------------------------------------------
            # 5. Lifecycle
            # -------------------------------------------------------------
            print("  [5/5] Lifecycle")
            pid = proposal.proposal_id
            service.submit(pid, actor_id)
            service.approve(pid, actor_id)
            service.formalize(pid, actor_id)
            service.generate_contract(pid, actor_id)
            final = service.sign(pid, actor_id, "ASSINATURA-0001")
            for entry in final.history:
                prior = entry.prior_status.value if entry.prior_status else "-"
                print(f"         {entry.action.value:<11} {prior:>13} -> "
                      f"{entry.new_status.value:<13} {entry.note or ''}")
    except SalesEngineError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
