"""Generate professional PDF invoices using reportlab."""

import logging
from pathlib import Path
from typing import Dict, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.enums import TA_RIGHT, TA_CENTER

import db

logger = logging.getLogger(__name__)


def invoice_filename(invoice_number: int) -> str:
    """PDF file name for an invoice number, e.g. Invoice-00042.pdf."""
    return f"Invoice-{int(invoice_number):05d}.pdf"


def get_invoice_pdf_path(invoice: Dict) -> Path:
    """Where an invoice's PDF lives, organized by client name."""
    client_name = invoice['client'].get('name') or 'Unknown'
    client_folder = db.get_invoices_dir() / client_name.replace(' ', '_')
    client_folder.mkdir(parents=True, exist_ok=True)
    return client_folder / invoice_filename(invoice['invoice_number'])


def _styles():
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        'CompanyName',
        parent=styles['Heading1'],
        fontSize=24,
        spaceAfter=6,
        textColor=colors.HexColor('#1a1a1a')
    ))

    styles.add(ParagraphStyle(
        'CompanyInfo',
        parent=styles['Normal'],
        fontSize=9,
        textColor=colors.HexColor('#666666'),
        leading=12
    ))

    styles.add(ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=28,
        alignment=TA_RIGHT,
        textColor=colors.HexColor('#333333')
    ))

    styles.add(ParagraphStyle(
        'Subtitle',
        parent=styles['Normal'],
        fontSize=13,
        leading=16,
        textColor=colors.HexColor('#555555')
    ))

    styles.add(ParagraphStyle(
        'SectionHeader',
        parent=styles['Heading2'],
        fontSize=11,
        spaceBefore=12,
        spaceAfter=6,
        textColor=colors.HexColor('#333333')
    ))

    styles.add(ParagraphStyle(
        'ClientInfo',
        parent=styles['Normal'],
        fontSize=10,
        leading=14
    ))

    styles.add(ParagraphStyle(
        'TotalDue',
        parent=styles['Normal'],
        fontSize=14,
        alignment=TA_RIGHT,
        textColor=colors.HexColor('#1a1a1a'),
        fontName='Helvetica-Bold'
    ))

    styles.add(ParagraphStyle(
        'Footer',
        parent=styles['Normal'],
        fontSize=9,
        alignment=TA_CENTER,
        textColor=colors.HexColor('#666666')
    ))
    return styles


def _line_table(rows, col_widths, bold_last=False):
    table = Table(rows, colWidths=col_widths)
    table_style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f5f5f5')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('LINEBELOW', (0, 0), (-1, 0), 1, colors.HexColor('#dddddd')),
        ('LINEBELOW', (0, -1), (-1, -1), 1, colors.HexColor('#dddddd')),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
    ]
    if bold_last:
        table_style.append(('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'))
        table_style.append(('LINEABOVE', (0, -1), (-1, -1), 1, colors.HexColor('#dddddd')))
    table.setStyle(TableStyle(table_style))
    return table


def generate_invoice_pdf(invoice: Dict, settings: Optional[Dict] = None) -> Path:
    """Generate PDF for an invoice, return path to file."""
    freelancer = (settings or {}).get('freelancer') or {}
    business_name = freelancer.get('business') or freelancer.get('name') or 'Invoice'

    output_path = get_invoice_pdf_path(invoice)
    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=letter,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.5*inch,
        bottomMargin=0.5*inch
    )
    styles = _styles()
    elements = []

    # Header section with business info and INVOICE title
    contact_lines = [escape(freelancer[key]) for key in ('name', 'address', 'phone', 'email', 'website')
                     if freelancer.get(key) and not (key == 'name' and freelancer[key] == business_name)]
    header_data = [
        [
            Paragraph(escape(business_name.upper()), styles['CompanyName']),
            Paragraph('INVOICE', styles['InvoiceTitle'])
        ],
        [
            Paragraph('<br/>'.join(contact_lines), styles['CompanyInfo']),
            ''
        ]
    ]

    header_table = Table(header_data, colWidths=[4*inch, 3*inch])
    header_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('ALIGN', (1, 0), (1, 0), 'RIGHT'),
    ]))
    elements.append(header_table)
    elements.append(Spacer(1, 0.3*inch))

    # Invoice details and Bill To section
    invoice_details = [
        ['Invoice Number:', f"#{invoice['invoice_number']}"],
        ['Date:', db.format_date_display(invoice['date'])],
        ['Job Type:', invoice['job_type']],
    ]

    invoice_table = Table(invoice_details, colWidths=[1.2*inch, 1.8*inch])
    invoice_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#666666')),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
    ]))

    client = invoice['client']
    client_lines = ["<b>Bill To:</b>", escape(client['name'])]
    if client.get('business'):
        client_lines.append(escape(client['business']))
    if client.get('address'):
        client_lines.append(escape(client['address']))
    if client.get('phone'):
        client_lines.append(f"Phone: {escape(client['phone'])}")
    if client.get('email'):
        client_lines.append(f"Email: {escape(client['email'])}")

    client_info = Paragraph('<br/>'.join(client_lines), styles['ClientInfo'])

    details_row = Table([[invoice_table, client_info]], colWidths=[3.5*inch, 3.5*inch])
    details_row.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))
    elements.append(details_row)
    elements.append(Spacer(1, 0.3*inch))

    if (invoice.get('subtitle') or '').strip():
        elements.append(Paragraph(escape(invoice['subtitle']), styles['Subtitle']))
        elements.append(Spacer(1, 0.15*inch))

    # Work log
    rate = invoice['hourly_rate']
    if invoice['work_logs']:
        elements.append(Paragraph(
            f"Work Log - {db.format_currency(rate)}/hr", styles['SectionHeader']))
        rows = [['Description', 'Hours', 'Amount']]
        for log in invoice['work_logs']:
            rows.append([
                Paragraph(escape(log['description']), styles['Normal']),
                f"{log['hours']:.2f}",
                db.format_currency(log['hours'] * rate)
            ])
        elements.append(_line_table(rows, [4.5*inch, 1*inch, 1.5*inch]))

    # Service breakdown
    breakdown = invoice.get('service_breakdown')
    if breakdown:
        elements.append(Paragraph('Service Breakdown', styles['SectionHeader']))
        rows = [
            ['Phase', 'Time'],
            ['Setup Start', breakdown['setup_start']],
            ['Deposition Start', breakdown['depo_start']],
            ['Deposition End', breakdown['depo_end']],
            ['Breakdown End', breakdown['breakdown_end']],
            ['Lunch Break', f"{breakdown['lunch_break']:g} hours"],
            ['Total Deposition Duration', f"{breakdown['total_hours']:g} hours"],
        ]
        elements.append(_line_table(rows, [4.5*inch, 2.5*inch], bold_last=True))

    # Expenses
    if invoice.get('expenses'):
        elements.append(Paragraph('Expenses', styles['SectionHeader']))
        rows = [['Description', 'Amount']]
        for expense in invoice['expenses']:
            rows.append([
                Paragraph(escape(expense['description']), styles['Normal']),
                db.format_currency(expense['amount'])
            ])
        elements.append(_line_table(rows, [5.5*inch, 1.5*inch]))

    # Notes
    if invoice.get('notes'):
        elements.append(Paragraph('Notes', styles['SectionHeader']))
        elements.append(Paragraph(escape(invoice['notes']).replace('\n', '<br/>'), styles['ClientInfo']))

    elements.append(Spacer(1, 0.3*inch))
    elements.append(Paragraph(
        f"TOTAL: {db.format_currency(invoice['total'])}",
        styles['TotalDue']
    ))
    elements.append(Spacer(1, 0.4*inch))

    footer = "Thank you for your business!"
    if freelancer.get('email'):
        footer += f"<br/>Questions? Contact {escape(freelancer['email'])}"
    elements.append(Paragraph(footer, styles['Footer']))

    doc.build(elements)
    logger.info("PDF generated: %s", output_path)
    return output_path
