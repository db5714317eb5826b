"""PDF rendering for invoices and quotes (reportlab, A4)."""
from io import BytesIO
from typing import Any, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from invoicing.services.calculation_service import calculate_document_totals
from invoicing.utils.formatters import date_de, money_de, num_de, percent

SMALL_BUSINESS_NOTE = 'Gemäß § 19 UStG wird keine Umsatzsteuer berechnet.'


def _text(value: Any) -> str:
    """Escape user text for reportlab paragraphs, keeping line breaks."""
    return escape(str(value or '')).replace('\n', '<br/>')


def _sender_line(settings) -> str:
    parts = [settings.company_name]
    if settings.address:
        parts.append(settings.address.replace('\n', ', '))
    city_line = ' '.join(p for p in (settings.zip_code, settings.city) if p)
    if city_line:
        parts.append(city_line)
    return ' · '.join(parts)


def _render_document_pdf(title: str, meta_rows: List[List[str]], document, settings,
                         closing_text: str = None) -> BytesIO:
    """
    Internal PDF rendering engine shared by invoices and quotes.

    Args:
        title: Heading ("RECHNUNG" / "ANGEBOT")
        meta_rows: [label, value] pairs shown next to the recipient
        document: Invoice or Quote with items, totals, notes and customer
        settings: CompanySettings of the sender
        closing_text: Optional paragraph after the totals
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=20*mm,
        leftMargin=20*mm,
        topMargin=18*mm,
        bottomMargin=18*mm,
        title=f"{title} {meta_rows[0][1] if meta_rows else ''}".strip(),
        author=settings.company_name,
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'DocTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#1E293B'),
        spaceAfter=6,
        fontName='Helvetica-Bold'
    )
    small_style = ParagraphStyle(
        'Small',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.HexColor('#64748B')
    )
    normal_style = ParagraphStyle('Body', parent=styles['Normal'], fontSize=10, leading=13)
    right_style = ParagraphStyle('Right', parent=normal_style, alignment=TA_RIGHT)
    footer_style = ParagraphStyle(
        'Footer',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.HexColor('#94A3B8'),
        alignment=TA_CENTER
    )

    # 1. Sender
    elements.append(Paragraph(f"<b>{_text(settings.company_name)}</b>", normal_style))
    elements.append(Paragraph(_text(_sender_line(settings)), small_style))
    elements.append(Spacer(1, 8*mm))

    # 2. Recipient and metadata
    customer = document.customer
    recipient = [f"<b>{_text(customer.company_name)}</b>"]
    if customer.contact_person:
        recipient.append(_text(customer.contact_person))
    recipient.extend(_text(line) for line in customer.address_lines)

    meta_table = Table(
        [[Paragraph(label, right_style), Paragraph(_text(value), right_style)] for label, value in meta_rows],
        colWidths=[32*mm, 32*mm]
    )
    meta_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))

    header_table = Table(
        [[Paragraph('<br/>'.join(recipient), normal_style), meta_table]],
        colWidths=[106*mm, 64*mm]
    )
    header_table.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
    elements.append(header_table)
    elements.append(Spacer(1, 10*mm))

    elements.append(Paragraph(title, title_style))
    elements.append(Spacer(1, 4*mm))

    # 3. Items
    table_data = [['Pos.', 'Beschreibung', 'Menge', 'Einheit', 'Einzelpreis', 'Gesamt']]
    for index, item in enumerate(document.items, start=1):
        table_data.append([
            str(index),
            Paragraph(_text(item.description), normal_style),
            num_de(item.quantity),
            item.unit or '',
            money_de(item.unit_price),
            money_de(item.total),
        ])

    items_table = Table(table_data, colWidths=[12*mm, 70*mm, 18*mm, 20*mm, 25*mm, 25*mm], repeatRows=1)
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1E293B')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('ALIGN', (2, 1), (2, -1), 'RIGHT'),
        ('ALIGN', (4, 0), (5, -1), 'RIGHT'),
        ('LINEBELOW', (0, 0), (-1, -1), 0.25, colors.HexColor('#CBD5E1')),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 6),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 4*mm))

    # 4. Totals
    totals = calculate_document_totals(document)
    totals_data = [['Zwischensumme:', money_de(document.subtotal)]]
    if not document.is_small_business:
        for rate, amount in totals.tax_groups.items():
            totals_data.append([f"USt. {percent(rate)}:", money_de(amount)])
    totals_data.append(['Gesamtbetrag:', money_de(document.total)])

    totals_table = Table(totals_data, colWidths=[140*mm, 30*mm])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('LINEABOVE', (0, -1), (-1, -1), 1, colors.HexColor('#1E293B')),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 6*mm))

    if document.is_small_business:
        elements.append(Paragraph(SMALL_BUSINESS_NOTE, normal_style))
        elements.append(Spacer(1, 4*mm))

    if closing_text:
        elements.append(Paragraph(_text(closing_text), normal_style))
        elements.append(Spacer(1, 4*mm))

    if document.notes:
        elements.append(Paragraph('<b>Bemerkungen</b>', normal_style))
        elements.append(Paragraph(_text(document.notes), normal_style))
        elements.append(Spacer(1, 4*mm))

    # 5. Payment details and footer
    bank_lines = []
    if settings.bank_name:
        bank_lines.append(f"Bank: {_text(settings.bank_name)}")
    if settings.iban:
        bank_lines.append(f"IBAN: {_text(settings.iban)}")
    if settings.bic:
        bank_lines.append(f"BIC: {_text(settings.bic)}")
    if bank_lines:
        elements.append(Paragraph('<b>Zahlungsinformationen</b>', normal_style))
        elements.append(Paragraph('<br/>'.join(bank_lines), normal_style))
        elements.append(Spacer(1, 6*mm))

    footer_parts = []
    if settings.tax_id:
        footer_parts.append(f"Steuernummer: {_text(settings.tax_id)}")
    if settings.vat_id:
        footer_parts.append(f"USt-IdNr.: {_text(settings.vat_id)}")
    if settings.email:
        footer_parts.append(_text(settings.email))
    if settings.phone:
        footer_parts.append(_text(settings.phone))
    footer = ' · '.join(footer_parts)
    if settings.footer_text:
        footer = f"{_text(settings.footer_text)}<br/>{footer}" if footer else _text(settings.footer_text)
    if footer:
        elements.append(Paragraph(footer, footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer


def render_invoice_pdf(invoice, settings) -> BytesIO:
    """Render an invoice as PDF."""
    meta_rows = [
        ['Rechnungsnr.:', invoice.invoice_number],
        ['Rechnungsdatum:', date_de(invoice.issue_date)],
    ]
    if invoice.delivery_date:
        meta_rows.append(['Lieferdatum:', date_de(invoice.delivery_date)])
    meta_rows.append(['Fällig am:', date_de(invoice.due_date)])
    if invoice.customer.tax_id:
        meta_rows.append(['Ihre USt-IdNr.:', invoice.customer.tax_id])

    closing = invoice.payment_terms or (
        f"Bitte überweisen Sie den Gesamtbetrag bis zum {date_de(invoice.due_date)} "
        f"unter Angabe der Rechnungsnummer."
    )
    return _render_document_pdf('RECHNUNG', meta_rows, invoice, settings, closing)


def render_quote_pdf(quote, settings) -> BytesIO:
    """Render a quote as PDF."""
    meta_rows: List[List[str]] = [
        ['Angebotsnr.:', quote.quote_number],
        ['Datum:', date_de(quote.issue_date)],
        ['Gültig bis:', date_de(quote.valid_until)],
    ]
    closing = f"Dieses Angebot ist gültig bis zum {date_de(quote.valid_until)}."
    return _render_document_pdf('ANGEBOT', meta_rows, quote, settings, closing)


def pdf_filename(document) -> str:
    number = getattr(document, 'invoice_number', None) or getattr(document, 'quote_number', 'dokument')
    return f"{number}.pdf"
