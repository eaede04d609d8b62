"""
PDF Routes — Public PDF metadata and admin upload/delete.
Downloads live under /api/courses/{course_id}/download/{pdf_id}.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from coursehub.config import get_settings
from coursehub.database import get_db
from coursehub.errors import ValidationError
from coursehub.models.user import User
from coursehub.schemas.schemas import MessageResponse, PDFView
from coursehub.services.catalog_service import CatalogService
from coursehub.services.storage import BlobStore, get_blob_store
from coursehub.utils.auth import require_admin

settings = get_settings()
router = APIRouter(prefix="/api/pdfs", tags=["PDFs"])

PDF_CONTENT_TYPES = ("application/pdf",)


@router.get("", response_model=list[PDFView])
def list_pdfs(course_id: Optional[str] = Query(None, alias="courseId"), db: Session = Depends(get_db)):
    return CatalogService.list_pdfs(db, course_id=course_id)


@router.get("/{pdf_id}", response_model=PDFView)
def get_pdf(pdf_id: str, db: Session = Depends(get_db)):
    return CatalogService.get_pdf(db, pdf_id)


@router.post("/upload", response_model=PDFView, status_code=201)
async def upload_pdf(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    course_id: Optional[str] = Form(None, alias="courseId"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """Upload a PDF (admin only). Only ``application/pdf`` is accepted."""
    if file.content_type not in PDF_CONTENT_TYPES:
        raise ValidationError("Only PDF files are allowed", errors=[{"field": "file", "message": "Only PDF files are allowed"}])

    contents = await file.read()
    if not contents:
        raise ValidationError("Empty file uploaded", errors=[{"field": "file", "message": "File is empty"}])
    if len(contents) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            "File too large",
            errors=[{"field": "file", "message": f"Maximum size is {settings.MAX_UPLOAD_BYTES} bytes"}],
        )

    filename = file.filename or "document.pdf"
    return await run_in_threadpool(
        CatalogService.upload_pdf,
        db, store, admin, filename, contents,
        title or filename.rsplit(".", 1)[0],
        description,
        course_id or None,
    )


@router.delete("/{pdf_id}", response_model=MessageResponse)
def delete_pdf(
    pdf_id: str,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    CatalogService.delete_pdf(db, store, pdf_id)
    return MessageResponse(message="PDF deleted successfully")
