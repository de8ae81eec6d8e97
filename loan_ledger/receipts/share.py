"""WhatsApp sharing of receipt text."""

import re
from urllib.parse import quote

from loan_ledger.exceptions import InvalidPhoneError

BRAZIL_COUNTRY_CODE = "55"
WHATSAPP_URL = "https://wa.me/{phone}?text={text}"

_NON_DIGITS = re.compile(r"\D")
_VALID_PHONE = re.compile(r"^\d{12,13}$")


def normalize_phone(raw: str | None) -> str:
    """Normalize a Brazilian phone number to ``55`` + area code + number.

    Accepts forms such as ``(67) 99282-5341``, ``067992825341`` or
    ``+55 67 99282-5341``.

    Numbers already 12 or 13 digits long are kept as given, whatever their
    country code.

    Raises
    ------
    InvalidPhoneError
        If the result is not 12 or 13 digits long.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    digits = digits.lstrip("0")
    # National number: area code + 8 or 9 digit subscriber number
    if len(digits) in (10, 11):
        digits = BRAZIL_COUNTRY_CODE + digits
    if not _VALID_PHONE.match(digits):
        raise InvalidPhoneError(
            f"Telefone do cliente inválido: {raw!r}. "
            "Informe no formato 67992825341, 067992825341 ou 5567992825341."
        )
    return digits


def whatsapp_link(phone: str, text: str) -> str:
    """Build a ``wa.me`` deep link for a receipt text."""
    return WHATSAPP_URL.format(phone=normalize_phone(phone), text=quote(text, safe=""))
