# cepetdeal/receipts.py
"""Printable sale receipt ("kwitansi").

Renders a self-contained HTML page that opens the browser's print dialog on
load, so the buyer can save it as PDF.
"""
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import PaymentMethod, Receipt, Transmission
from .utils import as_utc, format_date_id, format_rupiah, utcnow

TRANSMISSION_LABELS = {
    Transmission.AUTOMATIC: "Otomatis",
    Transmission.MANUAL: "Manual",
    Transmission.CVT: "CVT",
}


def _transmission_label(value: Optional[str]) -> str:
    if not value:
        return "-"
    try:
        return TRANSMISSION_LABELS[Transmission(value)]
    except ValueError:
        return value


class ReceiptRenderer:
    def __init__(self, templates_dir: Optional[Path] = None):
        if templates_dir is None:
            templates_dir = Path(__file__).parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["rupiah"] = format_rupiah

    def render(self, receipt: Receipt) -> str:
        vehicle = receipt.vehicle or {}
        dealer = receipt.dealer.dealer
        issued = as_utc(receipt.created_at) if receipt.created_at else utcnow()
        credit = receipt.payment_method == PaymentMethod.CREDIT
        template = self.env.get_template("receipt.html")
        return template.render(
            receipt=receipt,
            vehicle=vehicle,
            dealer=dealer,
            issued_on=format_date_id(issued),
            method_label="Kredit" if credit else "Tunai",
            is_credit=credit,
            transmission_label=_transmission_label(vehicle.get("transmission")),
            total_paid=receipt.total_price - receipt.remaining_payment,
        )

    @staticmethod
    def filename(receipt: Receipt) -> str:
        return f"kwitansi-{receipt.receipt_number}.html"


renderer = ReceiptRenderer()
