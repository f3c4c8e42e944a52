"""Printable A4 reports drawn with the reportlab canvas"""
from io import BytesIO

from django.conf import settings
from django.utils import timezone
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from buildledger.catalog.models import Product
from buildledger.core.utils import ZERO, money
from buildledger.parties.models import Customer, Supplier
from buildledger.parties.services import customer_outstanding_map, supplier_payable_map

LEFT = 40
BOTTOM = 60
ROW_HEIGHT = 14
MAX_ROWS = 80


def fmt_money(value):
    return f"{money(value or ZERO):,.2f}"


def fmt_date(value):
    if value is None:
        return '-'
    if hasattr(value, 'hour') and timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%Y-%m-%d')


class ReportCanvas:
    """Canvas with a running y position, a company header and simple tables"""

    def __init__(self, title, subtitle=None):
        self.buffer = BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=A4)
        self.width, self.height = A4
        self.y = self.height - 40
        self.draw_company_header()
        self.c.setFont("Helvetica-Bold", 14)
        self.c.drawString(LEFT, self.y, title)
        self.y -= 18
        self.c.setFont("Helvetica", 9)
        if subtitle:
            self.c.drawString(LEFT, self.y, subtitle)
            self.y -= 12
        self.c.drawString(LEFT, self.y, f"Generated: {timezone.localtime():%Y-%m-%d %H:%M}")
        self.y -= 20

    def draw_company_header(self):
        self.c.setFont("Helvetica-Bold", 14)
        self.c.drawCentredString(self.width / 2, self.y, settings.COMPANY_NAME)
        self.y -= 20
        self.c.line(LEFT, self.y, self.width - LEFT, self.y)
        self.y -= 20

    def new_page(self):
        self.c.showPage()
        self.y = self.height - 40

    def ensure_space(self, needed=ROW_HEIGHT):
        if self.y - needed < BOTTOM:
            self.new_page()

    def heading(self, text):
        self.ensure_space(40)
        self.y -= 6
        self.c.setFont("Helvetica-Bold", 12)
        self.c.drawString(LEFT, self.y, text)
        self.y -= 16

    def line(self, text):
        self.ensure_space()
        self.c.setFont("Helvetica", 10)
        self.c.drawString(LEFT, self.y, text)
        self.y -= ROW_HEIGHT

    def table(self, headers, rows, widths, right=()):
        """Columns listed in `right` are right aligned (amounts)"""
        def draw_row(cells, font):
            self.ensure_space()
            self.c.setFont(font, 9)
            x = LEFT
            for index, (cell, width) in enumerate(zip(cells, widths)):
                text = str(cell if cell is not None else '-')[:int(width / 5)]
                if index in right:
                    self.c.drawRightString(x + width - 6, self.y, text)
                else:
                    self.c.drawString(x, self.y, text)
                x += width
            self.y -= ROW_HEIGHT

        draw_row(headers, "Helvetica-Bold")
        if not rows:
            draw_row(['No entries'], "Helvetica")
        for row in rows[:MAX_ROWS]:
            draw_row(row, "Helvetica")
        self.y -= 6

    def finish(self):
        self.c.save()
        return self.buffer.getvalue()


def daily_pdf(data):
    totals = data['totals']
    doc = ReportCanvas(f"Daily report - {data['date']}")
    doc.line(f"Receipts: {totals['receipts_count']}   Total {fmt_money(totals['total_sales'])}")
    doc.line(f"Payments in: {fmt_money(totals['cash_collected'])}   Payments out: {fmt_money(totals['payments_out'])}")
    doc.line(f"Purchases: {len(data['inventory']['purchases'])}   Total {fmt_money(totals['purchases_total'])}")
    doc.line(f"Production entries: {len(data['inventory']['production'])}")

    doc.heading("Receipts")
    doc.table(
        ["No", "Customer", "Job site", "Total", "Paid"],
        [[r['receipt_no'], r['customer_name'] or 'Walk-in', r['job_site_name'],
          fmt_money(r['total']), fmt_money(r['amount_paid'])] for r in data['receipts']],
        [70, 160, 120, 90, 75], right=(3, 4),
    )
    doc.heading("Payments")
    doc.table(
        ["Type", "Description", "Amount"],
        [[p['type'], p['description'], fmt_money(p['amount'])] for p in data['payments']],
        [130, 295, 90], right=(2,),
    )
    doc.heading("Purchases")
    doc.table(
        ["Supplier", "Product", "Qty", "Total", "Paid"],
        [[p['supplier_name'], p['product_name'], f"{p['quantity']:,}", fmt_money(p['total_cost']),
          fmt_money(p['amount_paid'])] for p in data['inventory']['purchases']],
        [130, 130, 70, 95, 90], right=(2, 3, 4),
    )
    doc.heading("Production")
    doc.table(
        ["No", "Product", "Qty", "Labor paid"],
        [[p['inventory_no'], p['product_name'], f"{p['quantity']:,}", 'Yes' if p['labor_paid'] else 'No']
         for p in data['inventory']['production']],
        [90, 200, 110, 115], right=(2,),
    )
    return doc.finish()


def _inventory_rows():
    rows = []
    total = ZERO
    for product in Product.objects.order_by('name'):
        value = money(product.stock_qty * (product.unit_price or ZERO))
        total += value
        rows.append([product.name, f"{product.stock_qty:,}", fmt_money(product.unit_price), fmt_money(value)])
    return rows, total


def financial_pdf(ledger, start, end):
    """Credits and debits over a range followed by the current inventory"""
    doc = ReportCanvas("Financial & Inventory Report", f"Range: {fmt_date(start)} -> {fmt_date(end)}")
    doc.heading("Credit / Debit Summary")
    doc.line(f"Credits: {fmt_money(ledger['inflow_total'])}   Debits: {fmt_money(ledger['outflow_total'])}")
    doc.line(f"Net: {fmt_money(ledger['cash_on_hand'])}")

    for title, rows in (("Credits (in)", ledger['inflows']), ("Debits (out)", ledger['outflows'])):
        doc.heading(title)
        doc.table(
            ["Date", "Amount", "Type", "Note"],
            [[fmt_date(r['date']), fmt_money(r['amount']), r['type'], r['label']] for r in rows],
            [80, 90, 130, 215], right=(1,),
        )

    rows, total = _inventory_rows()
    doc.heading("Current Inventory")
    doc.line(f"Total estimated value: {fmt_money(total)}")
    doc.table(["Product", "Qty", "Unit price", "Value"], rows, [215, 100, 100, 100], right=(1, 2, 3))
    return doc.finish()


def balances_pdf():
    receivables = customer_outstanding_map()
    payables = supplier_payable_map()
    customers = {c.id: c for c in Customer.objects.filter(id__in=list(receivables))}
    suppliers = {s.id: s for s in Supplier.objects.filter(id__in=list(payables))}
    inventory_rows, inventory_total = _inventory_rows()

    customer_rows = sorted(
        ([customers[cid].name, amount] for cid, amount in receivables.items() if amount > 0 and cid in customers),
        key=lambda row: row[1], reverse=True,
    )
    supplier_rows = sorted(
        ([suppliers[sid].name, amount] for sid, amount in payables.items() if amount > 0 and sid in suppliers),
        key=lambda row: row[1], reverse=True,
    )

    doc = ReportCanvas("Balances Report")
    doc.line(f"Total receivables (customers): {fmt_money(sum((r[1] for r in customer_rows), ZERO))}")
    doc.line(f"Total payables (suppliers): {fmt_money(sum((r[1] for r in supplier_rows), ZERO))}")
    doc.line(f"Inventory value (estimated): {fmt_money(inventory_total)}")

    doc.heading("Customer Receivables")
    doc.table(["Customer", "Outstanding"], [[n, fmt_money(a)] for n, a in customer_rows], [350, 165], right=(1,))
    doc.heading("Supplier Payables")
    doc.table(["Supplier", "Outstanding"], [[n, fmt_money(a)] for n, a in supplier_rows], [350, 165], right=(1,))
    doc.heading("Current Inventory Snapshot")
    doc.table(["Product", "Qty", "Unit price", "Value"], inventory_rows, [215, 100, 100, 100], right=(1, 2, 3))
    return doc.finish()


def cash_ledger_pdf(ledger, start, end):
    doc = ReportCanvas("Cash Ledger", f"Range: {fmt_date(start)} -> {fmt_date(end)}")
    doc.line(f"Inflows: {fmt_money(ledger['inflow_total'])}   Outflows: {fmt_money(ledger['outflow_total'])}")
    doc.line(f"Cash on hand: {fmt_money(ledger['cash_on_hand'])}")

    doc.heading("By type")
    doc.table(
        ["Direction", "Type", "Amount"],
        [['In', t, fmt_money(a)] for t, a in ledger['inflow_by_type'].items()]
        + [['Out', t, fmt_money(a)] for t, a in ledger['outflow_by_type'].items()],
        [100, 250, 165], right=(2,),
    )
    rows = sorted(
        [('In', r) for r in ledger['inflows']] + [('Out', r) for r in ledger['outflows']],
        key=lambda pair: pair[1]['date'], reverse=True,
    )
    doc.heading("Movements")
    doc.table(
        ["Date", "Direction", "Type", "Label", "Amount"],
        [[fmt_date(r['date']), d, r['type'], r['label'], fmt_money(r['amount'])] for d, r in rows],
        [75, 60, 120, 170, 90], right=(4,),
    )
    return doc.finish()


def period_summary_pdf(summary):
    doc = ReportCanvas(
        "Period Summary", f"Range: {fmt_date(summary['start'])} -> {fmt_date(summary['end'])}"
    )
    doc.heading("Totals")
    doc.table(
        ["Figure", "Amount"],
        [
            ["Sales", fmt_money(summary['sales_total'])],
            ["Receipts", summary['receipts_count']],
            ["Purchases", fmt_money(summary['purchases_total'])],
            ["Money in", fmt_money(summary['inflow_total'])],
            ["Money out", fmt_money(summary['outflow_total'])],
            ["Net cash", fmt_money(summary['net_cash'])],
        ],
        [350, 165], right=(1,),
    )
    doc.heading("Money in by type")
    doc.table(["Type", "Amount"], [[t, fmt_money(a)] for t, a in summary['inflow_by_type'].items()],
              [350, 165], right=(1,))
    doc.heading("Money out by type")
    doc.table(["Type", "Amount"], [[t, fmt_money(a)] for t, a in summary['outflow_by_type'].items()],
              [350, 165], right=(1,))
    return doc.finish()
