# accounts/vouchers.py
from io import BytesIO

from reportlab.lib.pagesizes import A5, landscape
from reportlab.pdfgen import canvas

from core.models import SystemSetting


def render_fund_voucher(fund):
    """
    Single-page voucher slip for a fund transaction. Returns PDF bytes.
    Amounts are printed with "Tk" since the base fonts have no Taka glyph.
    """
    buf = BytesIO()
    width, height = landscape(A5)
    c = canvas.Canvas(buf, pagesize=(width, height))
    M = 36

    y = height - M
    c.setFont("Helvetica-Bold", 14)
    c.drawString(M, y, SystemSetting.get_setting('hospital_name'))
    y -= 14
    c.setFont("Helvetica", 9)
    c.drawString(M, y, SystemSetting.get_setting('hospital_address'))
    y -= 12
    c.drawString(M, y, f"Phone: {SystemSetting.get_setting('hospital_phone')}")

    title = 'FUND IN VOUCHER' if fund.is_fund_in else 'FUND OUT VOUCHER'
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(width - M, height - M, title)
    c.setFont("Helvetica", 9)
    c.drawRightString(width - M, height - M - 14, f"{fund.account.name}")

    y -= 18
    c.line(M, y, width - M, y)
    y -= 24

    rows = [
        ("Voucher No", fund.voucher_no),
        ("Date", fund.date.strftime('%d %b %Y')),
        ("Purpose", fund.purpose),
        ("Description", fund.description or '-'),
        ("Amount", f"Tk {fund.amount:,.2f}"),
    ]
    for label, value in rows:
        c.setFont("Helvetica-Bold", 10)
        c.drawString(M, y, f"{label}:")
        c.setFont("Helvetica", 10)
        c.drawString(M + 90, y, str(value)[:90])
        y -= 18

    added_by = ''
    if fund.added_by:
        added_by = fund.added_by.get_full_name() or fund.added_by.username

    y = M + 30
    c.line(M, y, M + 150, y)
    c.line(width - M - 150, y, width - M, y)
    c.setFont("Helvetica", 9)
    c.drawString(M, y - 12, f"Prepared by {added_by}".strip())
    c.drawRightString(width - M, y - 12, "Authorized signature")

    c.setFont("Helvetica-Oblique", 8)
    c.drawCentredString(width / 2, M - 12, "This is a computer generated voucher.")

    c.showPage()
    c.save()
    return buf.getvalue()
