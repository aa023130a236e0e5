"""
Display formatting shared by the API, the PDF renderer and the spreadsheet
writer.

PDF output only uses ASCII currency prefixes because the built-in Helvetica
font cannot draw every currency glyph.
"""
from __future__ import annotations

import re
from typing import Any

from .coercion import ColumnType, display_text, format_date, to_number

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "AED": "AED ",
}

PDF_CURRENCY_PREFIXES = {
    "INR": "Rs. ",
    "USD": "$",
    "EUR": "EUR ",
    "GBP": "GBP ",
    "AED": "AED ",
}

_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')


def _normalize_code(code: str | None) -> str:
    return (code or "INR").strip().upper() or "INR"


def currency_symbol(code: str | None) -> str:
    code = _normalize_code(code)
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def _group_digits(digits: str, indian: bool) -> str:
    if len(digits) <= 3:
        return digits
    if not indian:
        return f"{int(digits):,}"
    # 12,34,567: last three digits, then groups of two
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_number(value: Any, currency_code: str | None = "INR", decimals: int | None = None) -> str:
    """Digit-grouped number; INR uses lakh/crore grouping.

    With ``decimals=None`` up to three fraction digits are kept and trailing
    zeros dropped, matching how totals read on screen.
    """
    number = to_number(value)
    indian = _normalize_code(currency_code) == "INR"
    if decimals is None:
        text = f"{abs(number):.3f}".rstrip("0").rstrip(".")
    else:
        text = f"{abs(number):.{decimals}f}"
    whole, _, fraction = text.partition(".")
    grouped = _group_digits(whole, indian)
    sign = "-" if number < 0 and text.strip("0.") else ""
    return f"{sign}{grouped}.{fraction}" if fraction else f"{sign}{grouped}"


def format_money(value: Any, currency_code: str | None = "INR") -> str:
    return f"{currency_symbol(currency_code)}{format_number(value, currency_code)}"


def format_money_pdf(value: Any, currency_code: str | None = "INR") -> str:
    code = _normalize_code(currency_code)
    prefix = PDF_CURRENCY_PREFIXES.get(code, f"{code} ")
    return f"{prefix}{format_number(value, code, decimals=2)}"


def format_cell(stored: Any, column_type: ColumnType | str, currency_code: str | None = "INR",
                for_pdf: bool = False) -> str:
    """Render a stored cell for people. Empty stays empty on screen."""
    column_type = ColumnType.parse(column_type)
    blank = stored is None or stored == ""
    if column_type is ColumnType.CURRENCY:
        if blank and not for_pdf:
            return ""
        return format_money_pdf(stored, currency_code) if for_pdf else format_money(stored, currency_code)
    if column_type is ColumnType.NUMBER:
        if blank and not for_pdf:
            return ""
        return format_number(stored, currency_code)
    if column_type is ColumnType.DATE:
        return format_date(stored)
    return display_text(stored)


def safe_file_name(name: str | None, fallback: str = "table") -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("-", str(name or fallback)).strip()
    return cleaned or fallback
