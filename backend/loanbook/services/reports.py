from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time
from decimal import Decimal

import xlsxwriter
from sqlalchemy import select
from sqlalchemy.orm import Session

from loanbook.models.entry import Entry
from loanbook.models.loan import Loan
from loanbook.services.calculator import ZERO, calculate, d2, to_dec
from loanbook.services.entries import live_entries
from loanbook.services.loans import get_loan


def _month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def monthly_summary(s: Session, start: date, end: date) -> dict[int, dict[str, dict[str, Decimal]]]:
    """Per live loan and month: interest charged, principal and interest received."""
    rows = s.execute(
        select(Entry)
        .join(Loan, Loan.id == Entry.loan_id)
        .where(
            Loan.deleted_at.is_(None),
            Entry.deleted_at.is_(None),
            Entry.entry_date >= start,
            Entry.entry_date <= end,
        )
        .order_by(Entry.loan_id.asc(), Entry.entry_date.asc(), Entry.id.asc())
    ).scalars().all()

    out: dict[int, dict[str, dict[str, Decimal]]] = defaultdict(dict)
    for e in rows:
        m = out[e.loan_id].setdefault(
            _month_key(e.entry_date),
            {"interest_amount": ZERO, "received_amount": ZERO, "received_interest": ZERO},
        )
        m["interest_amount"] += to_dec(e.interest_amount)
        m["received_amount"] += to_dec(e.received_amount)
        m["received_interest"] += to_dec(e.received_interest)
    return dict(out)


def build_loan_statement(s: Session, loan_id: int, out_file) -> None:
    loan = get_loan(s, loan_id)
    entries = live_entries(s, loan.id)

    wb = xlsxwriter.Workbook(out_file, {"in_memory": True})
    base_font = "Calibri"

    meta_label = wb.add_format({"bold": True, "font_name": base_font, "font_size": 11, "font_color": "#334155"})
    meta_value = wb.add_format({"font_name": base_font, "font_size": 11, "font_color": "#0f172a"})
    subtle = wb.add_format({"font_name": base_font, "font_size": 10, "font_color": "#64748b"})
    header = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F1F5F9",
            "border": 1,
            "align": "center",
            "valign": "vcenter",
        }
    )
    date_fmt = wb.add_format({"font_name": base_font, "font_size": 11, "num_format": "yyyy-mm-dd", "border": 1})
    money2 = wb.add_format(
        {"font_name": base_font, "font_size": 11, "num_format": "#,##0.00", "border": 1, "align": "right"}
    )
    rate4 = wb.add_format({"font_name": base_font, "font_size": 11, "num_format": "0.0000", "align": "left"})
    blank = wb.add_format({"border": 1})
    total_label = wb.add_format(
        {"bold": True, "font_name": base_font, "font_size": 11, "bg_color": "#F8FAFC", "border": 1}
    )
    total_money2 = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F8FAFC",
            "border": 1,
            "num_format": "#,##0.00",
            "align": "right",
        }
    )

    party = loan.party

    # ----------------------------
    # Sheet 1: Statement (one row per live entry)
    # ----------------------------
    ws = wb.add_worksheet("Statement")
    ws.set_column(0, 0, 12)
    ws.set_column(1, 2, 18)
    ws.set_column(3, 3, 14)
    ws.set_column(4, 7, 18)

    ws.write(0, 0, "Party", meta_label)
    ws.write(0, 1, f"{party.party_name} ({party.account_number})", meta_value)
    ws.write(1, 0, "Loan", meta_label)
    ws.write(1, 1, f"#{loan.id} from {loan.loan_date}", meta_value)
    ws.write(2, 0, "Generated", meta_label)
    ws.write(2, 1, datetime.now().strftime("%Y-%m-%d %H:%M"), subtle)

    headers = [
        "Entry Date",
        "Balance Before",
        "Interest Charged",
        "Received On",
        "Principal Received",
        "Interest Received",
        "Balance After",
        "Pending Interest",
    ]
    ws.set_row(3, 18)
    for c, h in enumerate(headers):
        ws.write(3, c, h, header)
    ws.freeze_panes(4, 1)

    bal_amt = d2(to_dec(loan.loan_amount))
    bal_int = ZERO
    r = 4
    for e in entries:
        res = calculate(bal_amt, bal_int, loan.interest, e.received_amount, e.received_interest)
        ws.write_datetime(r, 0, datetime.combine(e.entry_date, time.min), date_fmt)
        ws.write_number(r, 1, float(e.balance_amount), money2)
        ws.write_number(r, 2, float(e.interest_amount), money2)
        if e.received_date is not None:
            ws.write_datetime(r, 3, datetime.combine(e.received_date, time.min), date_fmt)
        else:
            ws.write_blank(r, 3, None, blank)
        ws.write_number(r, 4, float(to_dec(e.received_amount)), money2)
        ws.write_number(r, 5, float(to_dec(e.received_interest)), money2)
        ws.write_number(r, 6, float(res.new_balance_amount), money2)
        ws.write_number(r, 7, float(res.new_balance_interest), money2)
        bal_amt, bal_int = res.new_balance_amount, res.new_balance_interest
        r += 1

    last_data_row = r - 1
    if last_data_row >= 4:
        ws.autofilter(3, 0, last_data_row, 7)
        last_excel = last_data_row + 1
        ws.write(r, 0, "Totals", total_label)
        ws.write_blank(r, 1, None, total_label)
        ws.write_formula(r, 2, f"=SUM(C5:C{last_excel})", total_money2)
        ws.write_blank(r, 3, None, total_label)
        ws.write_formula(r, 4, f"=SUM(E5:E{last_excel})", total_money2)
        ws.write_formula(r, 5, f"=SUM(F5:F{last_excel})", total_money2)
        ws.write_formula(r, 6, f"=G{last_excel}", total_money2)
        ws.write_formula(r, 7, f"=H{last_excel}", total_money2)
        ws.set_landscape()
        ws.fit_to_pages(1, 0)

    # ----------------------------
    # Sheet 2: Summary
    # ----------------------------
    summary = wb.add_worksheet("Summary")
    summary.set_column(0, 0, 26)
    summary.set_column(1, 1, 30)
    title = wb.add_format({"bold": True, "font_name": base_font, "font_size": 14, "font_color": "#0f172a"})
    summary.write(0, 0, "Loan Summary", title)

    facts = [
        ("Party", party.party_name, meta_value),
        ("Account", party.account_number, meta_value),
        ("Loan Date", str(loan.loan_date), meta_value),
    ]
    for i, (label, value, fmt) in enumerate(facts, start=2):
        summary.write(i, 0, label, meta_label)
        summary.write(i, 1, value, fmt)

    summary.write(5, 0, "Interest % per period", meta_label)
    summary.write_number(5, 1, float(loan.interest), rate4)
    money_facts = [
        ("Principal", loan.loan_amount),
        ("Balance Amount", loan.balance_amount),
        ("Pending Interest", loan.balance_interest),
        ("Interest Received (total)", loan.total_interest_received),
    ]
    for i, (label, value) in enumerate(money_facts, start=6):
        summary.write(i, 0, label, meta_label)
        summary.write_number(i, 1, float(to_dec(value)), money2)
    summary.write(10, 0, "Entries", meta_label)
    summary.write_number(10, 1, len(entries))
    if not entries:
        summary.write(11, 0, "Note", meta_label)
        summary.write(11, 1, "No entries have been posted for this loan.", subtle)

    wb.close()
