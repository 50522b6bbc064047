"""
PDF Utility Functions for generating receipts and fund-call notices
"""
from io import BytesIO
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.enums import TA_CENTER
from .utils import get_site_settings

PRIMARY = colors.HexColor('#1e40af')
MUTED = colors.HexColor('#64748b')
BORDER = colors.HexColor('#e2e8f0')
SUCCESS = colors.HexColor('#10b981')


def _money(value):
    currency = get_site_settings().currency_symbol
    return f"{value:,.2f} {currency}"


def _build_styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name='DocTitle',
        parent=styles['Heading1'],
        fontSize=22,
        spaceAfter=10,
        alignment=TA_CENTER,
        textColor=PRIMARY
    ))
    styles.add(ParagraphStyle(
        name='DocSubtitle',
        parent=styles['Normal'],
        fontSize=12,
        alignment=TA_CENTER,
        textColor=MUTED,
        spaceAfter=20
    ))
    styles.add(ParagraphStyle(
        name='SectionHeader',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=PRIMARY,
        spaceBefore=15,
        spaceAfter=10
    ))
    styles.add(ParagraphStyle(
        name='AmountLarge',
        parent=styles['Normal'],
        fontSize=26,
        fontName='Helvetica-Bold',
        alignment=TA_CENTER,
        textColor=SUCCESS
    ))
    styles.add(ParagraphStyle(
        name='Footer',
        parent=styles['Normal'],
        fontSize=9,
        alignment=TA_CENTER,
        textColor=colors.HexColor('#94a3b8')
    ))
    return styles


def _new_document(buffer):
    return SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=20*mm,
        leftMargin=20*mm,
        topMargin=20*mm,
        bottomMargin=20*mm
    )


def _details_table(rows, col_widths):
    table = Table(rows, colWidths=col_widths)
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica'),
        ('FONTNAME', (1, 0), (1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 11),
        ('TEXTCOLOR', (0, 0), (0, -1), MUTED),
        ('TOPPADDING', (0, 0), (-1, -1), 8),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
        ('LINEBELOW', (0, 0), (-1, -2), 0.5, BORDER),
        ('LINEBELOW', (0, -1), (-1, -1), 1.5, PRIMARY),
    ]))
    return table


def _footer(elements, styles, note):
    generated_date = timezone.now().strftime('%d %b %Y, %H:%M')
    elements.append(Paragraph(f"Generated on {generated_date}", styles['Footer']))
    elements.append(Paragraph(note, styles['Footer']))


def generate_rent_receipt_pdf(receipt, signed_by_user=None):
    """
    Generate a rent receipt (quittance de loyer) PDF

    Args:
        receipt: RentReceipt instance
        signed_by_user: staff user signing the receipt (optional)

    Returns:
        BytesIO buffer containing the PDF
    """
    buffer = BytesIO()
    doc = _new_document(buffer)
    styles = _build_styles()
    elements = []

    residence = receipt.residence
    tenant = receipt.tenant
    payment = receipt.payment

    elements.append(Paragraph(residence.agency.name, styles['DocTitle']))
    address = ", ".join(part for part in [residence.address, residence.postal_code, residence.city] if part)
    elements.append(Paragraph(address[:120], styles['DocSubtitle']))
    elements.append(Spacer(1, 10))

    elements.append(Paragraph("RENT RECEIPT", styles['DocTitle']))
    elements.append(Paragraph(f"Receipt No: {receipt.receipt_number}", styles['DocSubtitle']))
    elements.append(Paragraph(_money(receipt.total_amount), styles['AmountLarge']))
    period = f"{receipt.period_start.strftime('%d %b %Y')} - {receipt.period_end.strftime('%d %b %Y')}"
    elements.append(Paragraph(f"For the period {period}", styles['DocSubtitle']))

    line_table = Table([['']], colWidths=[doc.width])
    line_table.setStyle(TableStyle([
        ('LINEABOVE', (0, 0), (-1, 0), 1, BORDER),
    ]))
    elements.append(line_table)

    elements.append(Paragraph("Tenant", styles['SectionHeader']))
    tenant_rows = [
        ['Name', tenant.get_full_name() or tenant.username],
        ['Residence', residence.name],
        ['Lot', receipt.lot.lot_number if receipt.lot else '-'],
    ]
    elements.append(_details_table(tenant_rows, [150, 300]))

    elements.append(Paragraph("Payment Details", styles['SectionHeader']))
    payment_rows = [
        ['Rent', _money(receipt.rent_amount)],
        ['Charges', _money(receipt.charges_amount)],
        ['Total', _money(receipt.total_amount)],
    ]
    if payment.paid_at:
        payment_rows.insert(0, ['Payment Date', payment.paid_at.strftime('%d %b %Y')])
    if payment.payment_method:
        payment_rows.insert(1, ['Method', payment.get_payment_method_display()])
    elements.append(_details_table(payment_rows, [150, 300]))
    elements.append(Spacer(1, 30))

    if signed_by_user:
        signed_by_name = signed_by_user.get_full_name() or signed_by_user.username
        signed_by_role = signed_by_user.get_role_display()
    else:
        signed_by_name = residence.agency.name
        signed_by_role = "Landlord"

    sig_table = Table(
        [['', '_' * 30], ['', signed_by_name], ['', signed_by_role]],
        colWidths=[doc.width / 2, doc.width / 2]
    )
    sig_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('FONTNAME', (0, 1), (-1, 1), 'Helvetica-Bold'),
        ('TEXTCOLOR', (0, 1), (-1, 1), PRIMARY),
        ('TEXTCOLOR', (0, 2), (-1, 2), MUTED),
    ]))
    elements.append(sig_table)
    elements.append(Spacer(1, 30))

    _footer(elements, styles, "This receipt confirms payment of the amounts above for the stated period.")
    doc.build(elements)
    buffer.seek(0)
    return buffer


def generate_call_notice_pdf(call):
    """
    Generate a fund-call notice PDF listing each lot, its shares and amount

    Args:
        call: CoproCall instance with items

    Returns:
        BytesIO buffer containing the PDF
    """
    buffer = BytesIO()
    doc = _new_document(buffer)
    styles = _build_styles()
    elements = []

    residence = call.residence
    elements.append(Paragraph(residence.name, styles['DocTitle']))
    elements.append(Paragraph(f"FUND CALL {call.call_number}", styles['DocTitle']))
    elements.append(Paragraph(call.label, styles['DocSubtitle']))

    summary_rows = [
        ['Type', call.get_call_type_display()],
        ['Due date', call.due_date.strftime('%d %b %Y')],
        ['Total amount', _money(call.total_amount)],
    ]
    elements.append(_details_table(summary_rows, [150, 300]))

    elements.append(Paragraph("Distribution", styles['SectionHeader']))
    rows = [['Lot', 'Owner', 'Shares', 'Amount']]
    for item in call.items.select_related('lot', 'owner').order_by('lot__lot_number'):
        owner = item.owner.get_full_name() or item.owner.username if item.owner else '-'
        rows.append([item.lot.lot_number, owner, str(item.shares), _money(item.amount)])

    items_table = Table(rows, colWidths=[70, 210, 70, 100], repeatRows=1)
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), PRIMARY),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ('LINEBELOW', (0, 1), (-1, -1), 0.5, BORDER),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 30))

    _footer(elements, styles, "Amounts are split according to each lot's shares.")
    doc.build(elements)
    buffer.seek(0)
    return buffer
