"""Receipt rendering and sharing."""

from loan_ledger.receipts.render import ReceiptContext, format_brl, format_date_br, render_receipt_text
from loan_ledger.receipts.share import normalize_phone, whatsapp_link

__all__ = [
    "ReceiptContext",
    "format_brl",
    "format_date_br",
    "normalize_phone",
    "render_receipt_text",
    "whatsapp_link",
]
