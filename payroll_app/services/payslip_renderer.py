"""
Payslip Document Renderer

Renders assembled payslips to PDF with reportlab. One page per payslip;
batches keep input order. Documents are derived artifacts and are never
stored.
"""
import io
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from reportlab.lib.pagesizes import A4, LETTER
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from payroll_app.core.config import settings
from payroll_app.core.exceptions import IncompleteDataError, InvalidInputError
from payroll_app.services.deduction_calculator import DeductionLine
from payroll_app.services.payslip_assembler import AssembledPayslip

logger = logging.getLogger(__name__)

PAGE_SIZES = {"A4": A4, "LETTER": LETTER}

MARGIN = 50
LINE_HEIGHT = 20
FOOTER_Y = 50
FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"

# Lowest baseline for payslip body text; the two footer lines sit below it
CONTENT_FLOOR = FOOTER_Y + 2 * LINE_HEIGHT + 10
SECTION_HEIGHT = 10 + 8 + LINE_HEIGHT
DEDUCTION_INDENT = 20
COMPACT_FONT_SIZE = 8
COMPACT_LINE_HEIGHT = 11
MAX_DEDUCTION_COLUMNS = 3


def validate_payslip(payslip: AssembledPayslip) -> None:
    """Raise IncompleteDataError if a mandatory field is missing."""
    missing = []
    employee = getattr(payslip, "employee", None)
    if employee is None or not getattr(employee, "name", None):
        missing.append("employeeName")
    if payslip.period is None:
        missing.append("period")
    if payslip.net_amount is None:
        missing.append("netAmount")
    if missing:
        raise IncompleteDataError(missing, payslip_id=payslip.payslip_id)


def format_money(amount: Decimal, currency: str) -> str:
    return f"{currency} {Decimal(amount):.2f}"


class _PageWriter:
    """Cursor-based text layout on a reportlab canvas."""

    def __init__(self, pdf: canvas.Canvas, page_size):
        self.pdf = pdf
        self.width, self.height = page_size
        self.y = self.height - MARGIN

    def reset(self):
        self.y = self.height - MARGIN

    def text(self, value: str, x: float = MARGIN, bold: bool = False, size: int = 12):
        self.pdf.setFont(BOLD_FONT if bold else FONT, size)
        self.pdf.drawString(x, self.y, value)
        self.y -= LINE_HEIGHT

    def section(self, title: str):
        self.y -= 10
        self.pdf.setFont(BOLD_FONT, 14)
        self.pdf.drawString(MARGIN, self.y, title)
        self.y -= 8
        self.pdf.setStrokeColorRGB(0.8, 0.8, 0.8)
        self.pdf.line(MARGIN, self.y, self.width - MARGIN, self.y)
        self.y -= LINE_HEIGHT

    def footer(self, lines: Sequence[str], page_label: str):
        self.pdf.setFont(FONT, 10)
        self.pdf.setFillColorRGB(0.5, 0.5, 0.5)
        y = FOOTER_Y + LINE_HEIGHT * (len(lines) - 1)
        for line in lines:
            self.pdf.drawString(MARGIN, y, line)
            y -= LINE_HEIGHT
        self.pdf.drawRightString(self.width - MARGIN, FOOTER_Y, page_label)
        self.pdf.setFillColorRGB(0, 0, 0)

    @property
    def needs_break(self) -> bool:
        return self.y < FOOTER_Y + 3 * LINE_HEIGHT


def fold_deductions(lines: Sequence[DeductionLine], capacity: int) -> List[DeductionLine]:
    """Keep the first lines and sum the rest into one line so the list fits `capacity` rows."""
    if len(lines) <= capacity:
        return list(lines)
    keep = max(capacity - 1, 0)
    rest = lines[keep:]
    other = DeductionLine(
        name=f"Other deductions ({len(rest)})",
        amount=sum((line.amount for line in rest), Decimal("0.00")),
    )
    return list(lines[:keep]) + [other]


def _fit_text(text: str, max_width: float, size: int) -> str:
    if stringWidth(text, FONT, size) <= max_width:
        return text
    while text and stringWidth(text + "...", FONT, size) > max_width:
        text = text[:-1]
    return text + "..."


def _draw_deductions(writer: _PageWriter, lines: Sequence[DeductionLine], currency: str, bottom: float):
    """
    Draw the deduction list between the cursor and `bottom`.

    Long lists switch to a smaller multi-column layout; anything that
    still does not fit is folded into a single "Other deductions" line.
    """
    x = MARGIN + DEDUCTION_INDENT
    if writer.y - LINE_HEIGHT * len(lines) >= bottom:
        for line in lines:
            writer.text(f"{line.name}: -{format_money(line.amount, currency)}", x=x)
        return

    top = writer.y
    rows = max(int((top - bottom - (LINE_HEIGHT - COMPACT_LINE_HEIGHT)) // COMPACT_LINE_HEIGHT), 1)
    shown = fold_deductions(lines, rows * MAX_DEDUCTION_COLUMNS)
    columns = min(-(-len(shown) // rows), MAX_DEDUCTION_COLUMNS)
    rows_used = -(-len(shown) // columns)
    column_width = (writer.width - x - MARGIN) / columns

    writer.pdf.setFont(FONT, COMPACT_FONT_SIZE)
    for index, line in enumerate(shown):
        column, row = divmod(index, rows_used)
        amount = f": -{format_money(line.amount, currency)}"
        name_width = column_width - 6 - stringWidth(amount, FONT, COMPACT_FONT_SIZE)
        label = _fit_text(line.name, name_width, COMPACT_FONT_SIZE) + amount
        writer.pdf.drawString(x + column * column_width, top - row * COMPACT_LINE_HEIGHT, label)
    writer.y = top - rows_used * COMPACT_LINE_HEIGHT - (LINE_HEIGHT - COMPACT_LINE_HEIGHT)


def _new_canvas(buffer: io.BytesIO, title: str, page_size) -> canvas.Canvas:
    pdf = canvas.Canvas(buffer, pagesize=page_size, invariant=True)
    pdf.setTitle(title)
    pdf.setAuthor(settings.payslip.company_name)
    pdf.setCreator(settings.app_name)
    return pdf


def _draw_payslip(
    writer: _PageWriter,
    payslip: AssembledPayslip,
    currency: str,
    company_name: str,
    generated_at: datetime,
    page_label: str,
):
    employee = payslip.employee

    # Header
    writer.text(company_name, bold=True, size=20)
    writer.text(f"Payslip for {payslip.period.label}", bold=True, size=16)

    writer.section("Employee Information")
    writer.text(f"Name: {employee.name}", bold=True)
    writer.text(f"Employee ID: {employee.employee_id}")
    writer.text(f"Department: {employee.department or '-'}")
    writer.text(f"Position: {employee.position or '-'}")

    writer.section("Earnings & Deductions")
    writer.text(f"Gross Pay: {format_money(payslip.gross_amount, currency)}", bold=True)
    writer.y -= 10
    writer.text("Deductions:")
    if not payslip.deductions:
        writer.text("None", x=MARGIN + DEDUCTION_INDENT)
    # Totals, net pay and the payment section must stay above the footer
    tail = 3 * LINE_HEIGHT + 10 + SECTION_HEIGHT
    if payslip.deductions_exceed_gross:
        tail += LINE_HEIGHT
    _draw_deductions(writer, payslip.deductions, currency, CONTENT_FLOOR + tail)
    writer.text(f"Total Deductions: {format_money(payslip.total_deductions, currency)}")
    writer.y -= 10
    writer.text(f"Net Pay: {format_money(payslip.net_amount, currency)}", bold=True)
    if payslip.deductions_exceed_gross:
        writer.text("Warning: deductions exceed gross pay; net pay clamped to zero.", size=10)

    writer.section("Payment Information")
    writer.text(f"Status: {payslip.status}")
    paid_on = payslip.paid_on.strftime("%B %d, %Y") if payslip.paid_on else "Pending"
    writer.text(f"Payment Date: {paid_on}")

    writer.footer(
        [
            "This is a computer-generated document and needs no signature.",
            f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        ],
        page_label,
    )


def render_payslips(
    payslips: Sequence[AssembledPayslip],
    generated_at: Optional[datetime] = None,
    currency: Optional[str] = None,
    company_name: Optional[str] = None,
    page_size: Optional[str] = None,
) -> bytes:
    """
    Render payslips into a single PDF, one page each, in input order.

    Every payslip is validated before drawing starts so a failure never
    yields a partial document.
    """
    if not payslips:
        raise InvalidInputError("No payslips to render")
    for payslip in payslips:
        validate_payslip(payslip)

    generated_at = generated_at or datetime.now(timezone.utc)
    currency = currency or settings.payslip.currency
    company_name = company_name or settings.payslip.company_name
    size = PAGE_SIZES[(page_size or settings.payslip.page_size).upper()]

    title = f"Payslip - {payslips[0].period.label}" if len(payslips) == 1 else f"Payslips ({len(payslips)})"
    buffer = io.BytesIO()
    pdf = _new_canvas(buffer, title, size)
    writer = _PageWriter(pdf, size)

    total = len(payslips)
    for index, payslip in enumerate(payslips, start=1):
        writer.reset()
        _draw_payslip(writer, payslip, currency, company_name, generated_at, f"Page {index} of {total}")
        pdf.showPage()

    pdf.save()
    logger.info("Rendered payslip document", extra={"pages": total})
    return buffer.getvalue()


def render_payslip(payslip: AssembledPayslip, **kwargs) -> bytes:
    return render_payslips([payslip], **kwargs)


def render_run_report(
    run: Dict[str, Any],
    payslips: Sequence[AssembledPayslip],
    generated_at: Optional[datetime] = None,
    currency: Optional[str] = None,
    page_size: Optional[str] = None,
) -> bytes:
    """Payroll run report: summary totals followed by one block per employee."""
    for payslip in payslips:
        validate_payslip(payslip)

    generated_at = generated_at or datetime.now(timezone.utc)
    currency = currency or settings.payslip.currency
    size = PAGE_SIZES[(page_size or settings.payslip.page_size).upper()]

    buffer = io.BytesIO()
    pdf = _new_canvas(buffer, f"Payroll Report - {run['period']}", size)
    writer = _PageWriter(pdf, size)

    writer.text("Payroll Report", bold=True, size=20)
    writer.text(f"Period: {run['period']}")
    writer.text(f"Status: {run['status']}")

    writer.section("Summary")
    writer.text(f"Total Employees: {run['total_employees']}")
    writer.text(f"Total Gross Pay: {format_money(run['total_gross_amount'], currency)}")
    writer.text(f"Total Deductions: {format_money(run['total_deductions'], currency)}")
    writer.text(f"Total Net Pay: {format_money(run['total_net_amount'], currency)}")
    skipped: List[Dict[str, Any]] = run.get("skipped_employees") or []
    if skipped:
        writer.text(f"Skipped Employees: {', '.join(str(s['employee_id']) for s in skipped)}")

    footer = [f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}"]
    writer.section("Employee Details")
    pages = 1
    for payslip in payslips:
        if writer.needs_break:
            writer.footer(footer, f"Page {pages}")
            pdf.showPage()
            pages += 1
            writer.reset()
        writer.text(payslip.employee.name, bold=True)
        writer.text(
            f"Employee ID: {payslip.employee.employee_id}  "
            f"Gross: {format_money(payslip.gross_amount, currency)}  "
            f"Deductions: {format_money(payslip.total_deductions, currency)}  "
            f"Net: {format_money(payslip.net_amount, currency)}",
            size=10,
        )
        writer.y -= 5

    writer.footer(footer, f"Page {pages}")
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
