"""
Payslip PDF rendering (reportlab, A4)

Layout: company header, title, employee details, earnings and deductions
tables, net salary box, bank details and a fixed footer.
"""

import io
import os
from datetime import datetime
from typing import List, Tuple
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from app.config import PAYSLIP_DIR
from app.payroll.payslip_models import format_currency

FOOTER_TEXT = "This is a system generated payslip and does not require signature."

EARNING_LABELS = [
    ("basic", "Basic Salary", True),
    ("hra", "House Rent Allowance (HRA)", True),
    ("da", "Dearness Allowance (DA)", False),
    ("ta", "Travel Allowance (TA)", False),
    ("special_allowance", "Special Allowance", False),
    ("bonus", "Bonus", False),
    ("other_earnings", "Other Earnings", False),
]

DEDUCTION_LABELS = [
    ("pf", "Provident Fund (PF)", True),
    ("tax", "Tax Deducted at Source (TDS)", True),
    ("professional_tax", "Professional Tax", False),
    ("loan", "Loan Deduction", False),
    ("other_deductions", "Other Deductions", False),
]


def component_rows(values: dict, labels, total_label: str, total_key: str) -> List[List[str]]:
    """
    Table rows for a component group; optional components are only listed when non-zero
    """
    rows = [["Component", "Amount"]]
    for key, label, always in labels:
        amount = values.get(key) or 0
        if always or amount:
            rows.append([label, format_currency(amount)])
    rows.append([total_label, format_currency(values.get(total_key) or 0)])
    return rows


def _component_table(rows: List[List[str]]) -> Table:
    table = Table(rows, colWidths=[340, 160], hAlign="LEFT")
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f0f0f0")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("LINEABOVE", (0, -1), (-1, -1), 0.75, colors.HexColor("#cccccc")),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))
    return table


def _draw_footer(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.HexColor("#999999"))
    width = A4[0]
    canvas.drawCentredString(width / 2, 40, FOOTER_TEXT)
    canvas.drawCentredString(width / 2, 28, f"Generated on: {datetime.now().strftime('%d/%m/%Y %H:%M')}")
    canvas.restoreState()


def render_payslip_pdf(payslip: dict) -> bytes:
    buffer = io.BytesIO()
    styles = getSampleStyleSheet()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=48, rightMargin=48, topMargin=40, bottomMargin=60)

    company = payslip.get("company_details") or {}
    bank = payslip.get("bank_details") or {}
    period = f"{payslip['month']} {payslip['year']}"
    payment_date = payslip.get("payment_date")
    status = payslip.get("payment_status") or ""
    status = getattr(status, "value", status)

    centered = ParagraphStyle("Centered", parent=styles["Normal"], alignment=1, fontSize=8, leading=10)
    elements = [
        Paragraph(company.get("name") or "Learning Management System", styles["Title"]),
        Paragraph(
            f"{company.get('address') or ''}<br/>"
            f"PAN: {company.get('pan') or 'N/A'} | TAN: {company.get('tan') or 'N/A'} | "
            f"GST: {company.get('gst') or 'N/A'}",
            centered,
        ),
        Spacer(1, 10),
        Paragraph("PAYSLIP", styles["Heading1"]),
        Paragraph(f"Salary Payslip for {period}", styles["Heading3"]),
        Spacer(1, 8),
    ]

    details = Table([
        ["Name:", payslip.get("employee_name", ""), "Pay Period:", period],
        ["Employee ID:", payslip.get("employee_code") or "N/A", "Payment Date:",
         payment_date.strftime("%d/%m/%Y") if isinstance(payment_date, datetime) else "N/A"],
        ["Email:", payslip.get("employee_email", ""), "Status:", status],
        ["Department:", payslip.get("department") or "N/A", "Designation:", payslip.get("designation") or "N/A"],
    ], colWidths=[80, 170, 90, 160], hAlign="LEFT")
    details.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.75, colors.HexColor("#e0e0e0")),
        ("FONTNAME", (1, 0), (1, -1), "Helvetica-Bold"),
        ("FONTNAME", (3, 0), (3, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
    ]))
    elements += [Paragraph("Employee Details", styles["Heading2"]), details, Spacer(1, 12)]

    elements += [
        Paragraph("Earnings", styles["Heading2"]),
        _component_table(component_rows(payslip["earnings"], EARNING_LABELS, "Total Earnings", "total_earnings")),
        Spacer(1, 12),
        Paragraph("Deductions", styles["Heading2"]),
        _component_table(component_rows(payslip["deductions"], DEDUCTION_LABELS, "Total Deductions", "total_deductions")),
        Spacer(1, 16),
    ]

    net = Table([["Net Salary:", format_currency(payslip["net_salary"])]], colWidths=[340, 160], hAlign="LEFT")
    net.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#e6f3ff")),
        ("TEXTCOLOR", (0, 0), (-1, -1), colors.HexColor("#0070f3")),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 14),
        ("ALIGN", (1, 0), (1, 0), "RIGHT"),
        ("TOPPADDING", (0, 0), (-1, -1), 10),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 10),
    ]))
    elements += [net, Spacer(1, 16)]

    elements += [
        Paragraph("Bank Details:", styles["Heading3"]),
        Paragraph(
            f"Account Number: {bank.get('account_number') or 'N/A'}<br/>"
            f"IFSC Code: {bank.get('ifsc_code') or 'N/A'}<br/>"
            f"Bank: {bank.get('bank_name') or 'N/A'}",
            styles["Normal"],
        ),
    ]

    doc.build(elements, onFirstPage=_draw_footer, onLaterPages=_draw_footer)
    pdf_value = buffer.getvalue()
    buffer.close()
    return pdf_value


def payslip_filename(payslip: dict) -> str:
    stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
    return f"payslip_{payslip.get('employee_code') or 'emp'}_{payslip['month']}_{payslip['year']}_{stamp}_{payslip['payslip_id']}.pdf"


def payslip_path(pdf_url: str, directory: str = PAYSLIP_DIR) -> str:
    return os.path.join(directory, os.path.basename(pdf_url))


def write_payslip_pdf(payslip: dict, directory: str = PAYSLIP_DIR) -> Tuple[str, str]:
    """
    Render and save a payslip PDF

    Returns:
        (pdf_url, filepath)
    """
    os.makedirs(directory, exist_ok=True)
    filename = payslip_filename(payslip)
    filepath = os.path.join(directory, filename)
    with open(filepath, "wb") as f:
        f.write(render_payslip_pdf(payslip))
    return f"/uploads/payslips/{filename}", filepath
