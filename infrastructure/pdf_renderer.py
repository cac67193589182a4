"""ReportLab adapter that renders an InvoiceDocument to PDF bytes."""
import io
from xml.sax.saxutils import escape
from decimal import Decimal

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm, inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from domain.billing import InvoiceDocument, InvoiceRenderer


class ReportLabInvoiceRenderer(InvoiceRenderer):
    media_type = "application/pdf"
    extension = "pdf"

    def __init__(self, page_size=A4, margin=2 * cm):
        self.page_size = page_size
        self.margin = margin
        self.styles = getSampleStyleSheet()
        self.styles.add(ParagraphStyle(
            name='InvoiceTitle',
            parent=self.styles['Heading1'],
            fontSize=20,
            alignment=TA_RIGHT,
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeading',
            parent=self.styles['Heading2'],
            fontSize=12,
            spaceBefore=12,
            spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontSize=9,
            alignment=TA_CENTER,
        ))

    def _money(self, invoice: InvoiceDocument, amount: Decimal) -> str:
        return f"{invoice.currency} {amount:,.2f}"

    def render(self, invoice: InvoiceDocument) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.page_size,
            topMargin=self.margin,
            bottomMargin=self.margin,
            leftMargin=self.margin,
            rightMargin=self.margin,
            title=f"Invoice {invoice.invoice_number}",
        )
        normal = self.styles['Normal']
        story = []

        header = Table(
            [
                [Paragraph(f"<b>{escape(invoice.hotel_name)}</b>", normal), Paragraph("Invoice", self.styles['InvoiceTitle'])],
                ["", f"Invoice #: {invoice.invoice_number}"],
                ["", f"Date: {invoice.issue_date.isoformat()}"],
            ],
            colWidths=[4 * inch, 2.5 * inch],
        )
        header.setStyle(TableStyle([
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        story.append(header)
        story.append(Spacer(1, 12))

        story.append(Paragraph("Guest Information", self.styles['SectionHeading']))
        story.append(Paragraph(f"Name: {escape(invoice.guest_name)}", normal))
        story.append(Paragraph(f"Email: {escape(invoice.guest_email)}", normal))

        story.append(Paragraph("Booking Details", self.styles['SectionHeading']))
        story.append(Paragraph(f"Room: {escape(invoice.room_number)} - {invoice.room_type.title()}", normal))
        story.append(Paragraph(f"Check-in: {invoice.check_in.isoformat()}", normal))
        story.append(Paragraph(f"Check-out: {invoice.check_out.isoformat()}", normal))
        story.append(Paragraph(f"Nights: {invoice.nights}", normal))
        story.append(Spacer(1, 12))

        rows = [['Item', 'Qty', 'Rate', 'Total']]
        for item in invoice.line_items:
            rows.append([
                item.description,
                str(item.quantity),
                self._money(invoice, item.unit_price),
                self._money(invoice, item.total),
            ])
        rows.append(['', '', 'Subtotal', self._money(invoice, invoice.subtotal)])
        rows.append(['', '', f"Tax ({invoice.tax_rate * 100:.2f}%)", self._money(invoice, invoice.tax_amount)])
        rows.append(['', '', 'Total', self._money(invoice, invoice.grand_total)])
        rows.append(['', '', 'Paid', self._money(invoice, invoice.total_paid)])
        rows.append(['', '', 'Refunded', self._money(invoice, invoice.total_refunded)])
        rows.append(['', '', 'Balance Due', self._money(invoice, invoice.balance_due)])

        items_end = len(invoice.line_items)
        charges = Table(rows, colWidths=[3 * inch, 0.7 * inch, 1.4 * inch, 1.4 * inch])
        charges.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#F3F4F6')),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('GRID', (0, 0), (-1, items_end), 0.5, colors.HexColor('#E5E7EB')),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('LINEABOVE', (2, items_end + 3), (3, items_end + 3), 1, colors.black),
            ('FONTNAME', (2, items_end + 3), (3, items_end + 3), 'Helvetica-Bold'),
            ('FONTNAME', (2, -1), (3, -1), 'Helvetica-Bold'),
        ]))
        story.append(charges)
        story.append(Spacer(1, 24))
        story.append(Paragraph("Thank you for your stay!", self.styles['Footer']))

        doc.build(story)
        return buffer.getvalue()
