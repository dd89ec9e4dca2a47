# reports/exports.py
"""
File downloads for report pages: Excel through openpyxl and PDF through
xhtml2pdf.
"""
import logging
from decimal import Decimal
from io import BytesIO

import openpyxl
from django.http import HttpResponse
from django.template.loader import render_to_string
from openpyxl.styles import Font
from xhtml2pdf import pisa

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def excel_filename(report_name, from_date=None, to_date=None, extension='xlsx'):
    """<Report_Name>_<from>_to_<to>.xlsx"""
    name = report_name.strip().replace(' ', '_')
    if from_date and to_date:
        return f'{name}_{from_date}_to_{to_date}.{extension}'
    return f'{name}.{extension}'


def build_report_rows(title, period, headers, data_rows, total_row=None):
    """
    Lay out a report the way every export sheet looks: title, period,
    a blank row, the header, the data and an optional TOTAL row.
    """
    rows = [[title], [period], [], list(headers)]
    rows.extend(list(row) for row in data_rows)
    if total_row is not None:
        rows.append(list(total_row))
    return rows


def _cell(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


def build_excel_response(rows, filename, sheet_title='Report'):
    """
    Serialize an array of arrays into an .xlsx download.

    The first row is written bold as the report title, as is any row whose
    first cell is TOTAL.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    bold = Font(bold=True)
    for index, row in enumerate(rows, start=1):
        ws.append([_cell(value) for value in row])
        if index == 1 or (row and row[0] == 'TOTAL'):
            for cell in ws[index]:
                cell.font = bold

    for column in ws.columns:
        width = max((len(str(cell.value)) for cell in column if cell.value is not None), default=8)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, 50)

    buf = BytesIO()
    wb.save(buf)

    response = HttpResponse(buf.getvalue(), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    logger.info("Excel export %s (%d rows)", filename, len(rows))
    return response


def render_pdf_response(template_name, context, filename, inline=True):
    """
    Render a template to PDF. Returns None when xhtml2pdf reports an error
    so the caller can redirect with a message.
    """
    html_string = render_to_string(template_name, context)

    response = HttpResponse(content_type='application/pdf')
    disposition = 'inline' if inline else 'attachment'
    response['Content-Disposition'] = f'{disposition}; filename="{filename}"'

    pisa_status = pisa.CreatePDF(html_string, dest=response)
    if pisa_status.err:
        logger.error("PDF generation failed for %s", filename)
        return None
    return response
