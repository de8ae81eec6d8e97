"""Receipt text rendering (pt-BR)."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from loan_ledger.engine import InstallmentProgress

DISCLAIMER = (
    "ATENÇÃO:\n"
    "Os dados acima informados são apenas para simples conferência "
    "e não servem como comprovante de pagamento."
)
SEPARATOR = "-" * 26
CENTS = Decimal("0.01")


@dataclass
class ReceiptContext:
    """Values printed on a receipt."""

    doc_number: str
    client_name: str
    due_date: date | None
    payment_date: date | datetime | None
    amount_paid_today: Decimal
    total_confirmed_paid: Decimal
    generated_at: datetime
    installment_progress: InstallmentProgress | None = None


def format_brl(value: Decimal | int | float) -> str:
    """Format a value as Brazilian reais, e.g. ``R$ 1.234,56``."""
    amount = Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    us_style = f"{abs(amount):,.2f}"
    br_style = us_style.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {br_style}"


def format_date_br(value: date | datetime | None) -> str:
    """Format a date as ``dd/mm/yyyy``; ``-`` when missing."""
    if value is None:
        return "-"
    return value.strftime("%d/%m/%Y")


def render_receipt_text(context: ReceiptContext) -> str:
    """Render the shareable receipt text."""
    lines = [
        f"RECIBO DE PAGAMENTO - Doc Nº {context.doc_number}",
        "",
        f"Cliente: {context.client_name}",
        f"Vencimento: {format_date_br(context.due_date)}",
        f"Data de pagamento: {format_date_br(context.payment_date)}",
    ]
    progress = context.installment_progress
    if progress is not None and progress.expected > 0:
        lines.append(f"Parcelas pagas: {progress.paid}/{progress.expected}")
    lines += [
        f"Pago confirmado: {format_brl(context.total_confirmed_paid)}",
        f"Valor pago hoje: {format_brl(context.amount_paid_today)}",
        SEPARATOR,
        "",
        f"Gerado em: {context.generated_at.strftime('%d/%m/%Y %H:%M')}",
        "",
        DISCLAIMER,
    ]
    return "\n".join(lines)
