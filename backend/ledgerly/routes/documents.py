from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from ..context import SessionContext
from ..deps import get_session_context, get_store
from ..documents import DEFAULT_TERMS, DocumentDraft, DocumentService, DocumentType, LineItem, document_title
from ..exports import export_document
from ..models import Branding, Document
from ..store import LedgerStore

router = APIRouter(tags=["documents"])


def get_document_service(store: LedgerStore = Depends(get_store)) -> DocumentService:
    return DocumentService(store)


class DocumentIn(BaseModel):
    type: DocumentType = DocumentType.INVOICE
    doc_no: str = ""
    customer_name: str = ""
    customer_address: str = ""
    customer_phone: str = ""
    items: list[LineItem] = Field(default_factory=list)
    tax_percent: Any = 0
    terms: str = DEFAULT_TERMS
    note: str | None = None
    currency_code: str | None = None
    status: str = "draft"

    def to_draft(self, ctx: SessionContext) -> DocumentDraft:
        fields = self.model_dump(exclude={"items", "currency_code"})
        return DocumentDraft(
            **fields,
            items=self.items or [LineItem()],
            currency_code=self.currency_code or ctx.currency_code,
        )


class DocumentOut(BaseModel):
    id: int
    type: str
    title: str
    doc_no: str
    customer_name: str
    customer_address: str | None = None
    customer_phone: str | None = None
    items: list[dict[str, Any]]
    totals: dict[str, Any]
    currency_code: str
    status: str
    created_at: datetime | None = None


class BrandingIn(BaseModel):
    business_name: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    gstin: str | None = None
    logo_url: str | None = None
    country_code: str = "IN"
    currency_code: str = "INR"


class BrandingOut(BrandingIn):
    user_id: int


def _document_out(document: Document) -> DocumentOut:
    return DocumentOut(
        id=document.id,
        type=document.type,
        title=document_title(document.type),
        doc_no=document.doc_no,
        customer_name=document.customer_name,
        customer_address=document.customer_address,
        customer_phone=document.customer_phone,
        items=document.items or [],
        totals=document.totals or {},
        currency_code=document.currency_code,
        status=document.status,
        created_at=document.created_at,
    )


def _branding_out(branding: Branding) -> BrandingOut:
    return BrandingOut(
        user_id=branding.user_id,
        business_name=branding.business_name,
        address=branding.address,
        phone=branding.phone,
        email=branding.email,
        gstin=branding.gstin,
        logo_url=branding.logo_url,
        country_code=branding.country_code or "IN",
        currency_code=branding.currency_code or "INR",
    )


@router.get("/documents", response_model=list[DocumentOut])
def list_documents(service: DocumentService = Depends(get_document_service)) -> list[DocumentOut]:
    return [_document_out(document) for document in service.list_documents()]


@router.post("/documents", response_model=DocumentOut, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentIn,
    service: DocumentService = Depends(get_document_service),
    ctx: SessionContext = Depends(get_session_context),
) -> DocumentOut:
    return _document_out(service.create_document(payload.to_draft(ctx)))


@router.get("/documents/{document_id}", response_model=DocumentOut)
def get_document(document_id: int, service: DocumentService = Depends(get_document_service)) -> DocumentOut:
    return _document_out(service.get_document(document_id))


@router.put("/documents/{document_id}", response_model=DocumentOut)
def update_document(
    document_id: int,
    payload: DocumentIn,
    service: DocumentService = Depends(get_document_service),
    ctx: SessionContext = Depends(get_session_context),
) -> DocumentOut:
    return _document_out(service.update_document(document_id, payload.to_draft(ctx)))


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(document_id: int, service: DocumentService = Depends(get_document_service)) -> Response:
    service.delete_document(document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/documents/{document_id}/pdf")
def document_pdf(
    document_id: int,
    service: DocumentService = Depends(get_document_service),
    ctx: SessionContext = Depends(get_session_context),
) -> Response:
    document = service.get_document(document_id)
    artifact = export_document(
        DocumentDraft.from_document(document),
        ctx,
        branding=service.store.get_branding(),
        created_at=document.created_at,
    )
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": artifact.content_disposition},
    )


@router.get("/branding", response_model=BrandingOut)
def get_branding(store: LedgerStore = Depends(get_store)) -> BrandingOut:
    branding = store.get_branding() or Branding(user_id=store.user_id)
    return _branding_out(branding)


@router.put("/branding", response_model=BrandingOut)
def put_branding(payload: BrandingIn, store: LedgerStore = Depends(get_store)) -> BrandingOut:
    fields = payload.model_dump()
    fields["currency_code"] = (fields["currency_code"] or "INR").strip().upper()
    with store.transaction("save branding"):
        branding = store.upsert_branding(**fields)
    return _branding_out(branding)
