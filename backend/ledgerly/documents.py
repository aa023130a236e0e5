"""
Invoices, quotations and bills.

A document is a fixed line-item schema, independent of the dynamic tables:

- LineItem: description, HSN/SAC code, quantity and unit rate
- DocumentTotals: subtotal, tax percent/amount, grand total, terms and note
- DocumentDraft: an editable document whose totals are recomputed on every
  item or tax change, so they can never lag behind the items
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import ValidationError
from .models import Document
from .store import LedgerStore

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# quantize raises once a total needs more digits than this
TOTALS_PRECISION = 60


class DocumentType(str, Enum):
    INVOICE = "invoice"
    QUOTATION = "quotation"
    BILL = "bill"


DEFAULT_TERMS = """1. Goods/Services once sold/provided will not be taken back.
2. Payment is due within 7 days from the document date.
3. Please verify all details before making payment.
4. This is a computer generated document and does not require signature.
5. Subject to local jurisdiction."""


def document_title(doc_type: DocumentType | str) -> str:
    return {
        DocumentType.INVOICE: "INVOICE",
        DocumentType.QUOTATION: "QUOTATION",
    }.get(DocumentType(doc_type), "BILL")


def intro_text(doc_type: DocumentType | str) -> str:
    doc_type = DocumentType(doc_type)
    if doc_type is DocumentType.QUOTATION:
        return "Dear Sir / Madam,\nWe are pleased to submit the following quotation for your consideration."
    if doc_type is DocumentType.BILL:
        return "Dear Sir / Madam,\nThank you. Please find the bill details below."
    return "Dear Sir / Madam,\nThank you for your business. Please find the invoice details below."


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        result = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


class LineItem(BaseModel):
    description: str = ""
    hsn: str = ""
    qty: Decimal = Decimal("1")
    rate: Decimal = Decimal("0")

    @field_validator("qty", "rate", mode="before")
    @classmethod
    def _lenient_number(cls, value: Any) -> Decimal:
        return _to_decimal(value)

    @field_validator("description", "hsn", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def amount(self) -> Decimal:
        return self.qty * self.rate

    def to_record(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "hsn": self.hsn,
            "qty": float(self.qty),
            "rate": float(self.rate),
            "amount": float(self.amount),
        }


class DocumentTotals(BaseModel):
    subtotal: Decimal = Decimal("0")
    tax_percent: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    terms: str = DEFAULT_TERMS
    note: str = ""

    def to_record(self) -> dict[str, Any]:
        return {
            "subtotal": float(self.subtotal),
            "tax_percent": float(self.tax_percent),
            "tax_amount": float(self.tax_amount),
            "total": float(self.total),
            "terms": self.terms,
            "note": self.note,
        }


def compute_totals(items: Iterable[LineItem], tax_percent: Any = 0,
                   terms: str = DEFAULT_TERMS, note: str = "") -> DocumentTotals:
    """Subtotal, tax and grand total for a list of items."""
    percent = _to_decimal(tax_percent)
    with localcontext() as ctx:
        ctx.prec = TOTALS_PRECISION
        try:
            subtotal = sum((item.amount for item in items), Decimal("0"))
            tax_amount = (subtotal * percent / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
            total = subtotal + tax_amount
        except InvalidOperation:
            raise ValidationError("Amount is too large") from None
    return DocumentTotals(
        subtotal=subtotal,
        tax_percent=percent,
        tax_amount=tax_amount,
        total=total,
        terms=terms,
        note=note,
    )


class DocumentDraft(BaseModel):
    type: DocumentType = DocumentType.INVOICE
    doc_no: str = ""
    customer_name: str = ""
    customer_address: str = ""
    customer_phone: str = ""
    items: list[LineItem] = Field(default_factory=lambda: [LineItem()])
    tax_percent: Decimal = Decimal("0")
    terms: str = DEFAULT_TERMS
    note: Optional[str] = None
    currency_code: str = "INR"
    status: str = "draft"

    @field_validator("tax_percent", mode="before")
    @classmethod
    def _lenient_percent(cls, value: Any) -> Decimal:
        return _to_decimal(value)

    @field_validator("currency_code", mode="before")
    @classmethod
    def _upper_currency(cls, value: Any) -> str:
        return (str(value or "INR").strip() or "INR").upper()

    @property
    def totals(self) -> DocumentTotals:
        note = self.note if self.note and self.note.strip() else intro_text(self.type)
        return compute_totals(self.items, self.tax_percent, terms=self.terms or DEFAULT_TERMS, note=note)

    def add_item(self, item: LineItem | None = None) -> DocumentTotals:
        self.items.append(item or LineItem())
        return self.totals

    def update_item(self, index: int, **changes: Any) -> DocumentTotals:
        current = self.items[index].model_dump()
        current.update(changes)
        self.items[index] = LineItem.model_validate(current)
        return self.totals

    def remove_item(self, index: int) -> DocumentTotals:
        del self.items[index]
        if not self.items:
            self.items.append(LineItem())
        return self.totals

    def set_tax_percent(self, percent: Any) -> DocumentTotals:
        self.tax_percent = _to_decimal(percent)
        return self.totals

    def validate_required(self) -> None:
        if not self.doc_no.strip():
            raise ValidationError("Document No. required")
        if not self.customer_name.strip():
            raise ValidationError("Customer name required")
        compute_totals(self.items, self.tax_percent)

    def to_fields(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "doc_no": self.doc_no.strip(),
            "customer_name": self.customer_name.strip(),
            "customer_address": self.customer_address or "",
            "customer_phone": self.customer_phone or "",
            "items": [item.to_record() for item in self.items],
            "totals": self.totals.to_record(),
            "currency_code": self.currency_code,
            "status": self.status or "draft",
        }

    @classmethod
    def from_document(cls, document: Document) -> "DocumentDraft":
        totals = document.totals or {}
        return cls(
            type=document.type or DocumentType.INVOICE,
            doc_no=document.doc_no or "",
            customer_name=document.customer_name or "",
            customer_address=document.customer_address or "",
            customer_phone=document.customer_phone or "",
            items=[LineItem.model_validate(item) for item in (document.items or [])] or [LineItem()],
            tax_percent=totals.get("tax_percent", 0),
            terms=totals.get("terms") or DEFAULT_TERMS,
            note=totals.get("note") or None,
            currency_code=document.currency_code or "INR",
            status=document.status or "draft",
        )


class DocumentService:
    def __init__(self, store: LedgerStore):
        self.store = store

    def list_documents(self) -> list[Document]:
        return self.store.list_documents()

    def get_document(self, document_id: int) -> Document:
        return self.store.get_document(document_id)

    def create_document(self, draft: DocumentDraft) -> Document:
        draft.validate_required()
        with self.store.transaction("save document"):
            document = self.store.add_document(**draft.to_fields())
        logger.info("Saved %s %s for user %s", document.type, document.doc_no, self.store.user_id)
        return document

    def update_document(self, document_id: int, draft: DocumentDraft) -> Document:
        draft.validate_required()
        with self.store.transaction("update document"):
            document = self.store.get_document(document_id)
            self.store.update_document(document, **draft.to_fields())
        return document

    def delete_document(self, document_id: int) -> None:
        with self.store.transaction("delete document"):
            document = self.store.get_document(document_id)
            self.store.delete_document(document)
