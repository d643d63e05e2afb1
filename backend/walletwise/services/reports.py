from __future__ import annotations

from datetime import date, datetime, time

import xlsxwriter
from sqlalchemy import select
from sqlalchemy.orm import Session

from walletwise.models.transaction import Transaction
from walletwise.models.user import User
from walletwise.services.balance_ledger import signed_effect


def build_transactions_report(s: Session, user_id: int, start: date | None, end: date | None, out_file):
    user = s.execute(select(User).where(User.id == user_id)).scalar_one()

    q = select(Transaction).where(Transaction.user_id == user_id)
    if start is not None:
        q = q.where(Transaction.date >= datetime.combine(start, time.min))
    if end is not None:
        q = q.where(Transaction.date <= datetime.combine(end, time.max))
    txs = s.execute(q.order_by(Transaction.date.asc(), Transaction.id.asc())).scalars().all()

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

    date_fmt = wb.add_format({"font_name": base_font, "font_size": 11, "num_format": "yyyy-mm-dd hh:mm", "border": 1})
    money2 = wb.add_format(
        {"font_name": base_font, "font_size": 11, "num_format": "#,##0.00", "border": 1, "align": "right"}
    )
    text_cell = wb.add_format({"font_name": base_font, "font_size": 11, "border": 1, "align": "left"})

    total_label = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F8FAFC",
            "border": 1,
            "align": "left",
        }
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

    ws = wb.add_worksheet("Transactions")

    ws.set_column(0, 0, 18)  # Date
    ws.set_column(1, 1, 10)  # Type
    ws.set_column(2, 2, 16)  # Category
    ws.set_column(3, 3, 32)  # Description
    ws.set_column(4, 5, 12)  # Payment, Mood
    ws.set_column(6, 7, 14)  # Amount, Signed

    ws.write(0, 0, "Account", meta_label)
    ws.write(0, 1, user.full_name or user.email, meta_value)

    ws.write(1, 0, "Range", meta_label)
    ws.write(1, 1, f"{start or 'beginning'} to {end or 'today'}", subtle)

    ws.write(1, 4, "Generated", meta_label)
    ws.write(1, 5, datetime.now().strftime("%Y-%m-%d %H:%M"), subtle)

    headers = ["Date", "Type", "Category", "Description", "Payment", "Mood", "Amount", "Signed"]
    ws.set_row(2, 18)
    for c, h in enumerate(headers):
        ws.write(2, c, h, header)

    ws.freeze_panes(3, 1)

    r = 3
    for t in txs:
        d = t.date if isinstance(t.date, datetime) else datetime.combine(t.date, time.min)
        ws.write_datetime(r, 0, d, date_fmt)
        ws.write(r, 1, t.kind, text_cell)
        ws.write(r, 2, t.category, text_cell)
        ws.write(r, 3, t.description or "", text_cell)
        ws.write(r, 4, t.payment_method, text_cell)
        ws.write(r, 5, t.mood, text_cell)
        ws.write_number(r, 6, float(t.amount), money2)
        ws.write_number(r, 7, float(signed_effect(t.kind, t.amount)), money2)
        r += 1

    last_data_row = r - 1
    if last_data_row >= 3:
        ws.autofilter(2, 0, last_data_row, 7)

    total_row = r
    net = sum((signed_effect(t.kind, t.amount) for t in txs), 0)
    ws.write(total_row, 0, "Net", total_label)
    for c in range(1, 7):
        ws.write_blank(total_row, c, None, total_label)
    ws.write_number(total_row, 7, float(net), total_money2)

    wb.close()
