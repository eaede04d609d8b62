"""
Course Routes — Public catalog browsing, "my courses", protected PDF downloads
and admin course management.
"""
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from coursehub.database import get_db
from coursehub.models.catalog import Course
from coursehub.models.entitlement import UserCourse
from coursehub.models.user import User
from coursehub.schemas.schemas import CourseCreate, CourseUpdate, CourseView, MyCourseView, PDFView
from coursehub.services.catalog_service import CatalogService
from coursehub.services.entitlement_service import EntitlementLedger
from coursehub.services.payment_service import discounted_amount
from coursehub.services.storage import BlobStore, get_blob_store
from coursehub.services.watermark import PdfWatermarker, get_watermarker
from coursehub.utils.auth import get_current_user, require_admin

router = APIRouter(prefix="/api/courses", tags=["Courses"])


def course_view(course: Course) -> CourseView:
    return CourseView(
        id=course.id,
        name=course.name,
        description=course.description,
        category_id=course.category_id,
        category_name=course.category.name if course.category else None,
        about_creator=course.about_creator,
        price=course.price,
        discount=course.discount or 0,
        final_price=discounted_amount(course.price, course.discount),
        validity_days=course.validity_days,
        expires_on=course.expires_on,
        thumbnail_url=course.thumbnail_url,
        is_active=course.is_active,
        created_at=course.created_at,
    )


def my_course_view(course: Course, entitlement: UserCourse) -> MyCourseView:
    return MyCourseView(
        **course_view(course).model_dump(),
        purchase_date=entitlement.purchase_date,
        expiry_date=entitlement.expiry_date,
        transaction_id=entitlement.transaction_id,
    )


# ─── Public ─────────────────────────────────────────────────────────

@router.get("", response_model=list[CourseView])
def list_courses(db: Session = Depends(get_db)):
    return [course_view(c) for c in CatalogService.list_courses(db)]


@router.get("/search", response_model=list[CourseView])
def search_courses(q: str = Query(..., min_length=1, max_length=100), db: Session = Depends(get_db)):
    """Case-insensitive match on course name, description or category name."""
    return [course_view(c) for c in CatalogService.search_courses(db, q)]


@router.get("/my", response_model=list[MyCourseView])
def my_courses(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [my_course_view(c, uc) for c, uc in EntitlementLedger.list_courses(db, user.id)]


@router.get("/{course_id}", response_model=CourseView)
def get_course(course_id: str, db: Session = Depends(get_db)):
    return course_view(CatalogService.get_course(db, course_id))


@router.get("/{course_id}/pdfs", response_model=list[PDFView])
def list_course_pdfs(course_id: str, db: Session = Depends(get_db)):
    CatalogService.get_course(db, course_id)
    return CatalogService.list_pdfs(db, course_id=course_id)


# ─── Authenticated ──────────────────────────────────────────────────

@router.get("/{course_id}/download/{pdf_id}")
def download_pdf(
    course_id: str,
    pdf_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    watermarker: PdfWatermarker = Depends(get_watermarker),
):
    """Stream a course PDF stamped with the buyer's identifier."""
    pdf, content = CatalogService.prepare_download(db, store, watermarker, user, course_id, pdf_id)
    filename = quote(f"{pdf.title}.pdf")
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )


# ─── Admin ──────────────────────────────────────────────────────────

@router.post("", response_model=CourseView, status_code=201)
def create_course(
    payload: CourseCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    course = CatalogService.create_course(db, admin, **payload.model_dump())
    return course_view(course)


@router.put("/{course_id}", response_model=CourseView)
def update_course(
    course_id: str,
    payload: CourseUpdate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    course = CatalogService.update_course(db, course_id, **payload.model_dump(exclude_unset=True))
    return course_view(course)


@router.post("/{course_id}/deactivate", response_model=CourseView)
def deactivate_course(course_id: str, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return course_view(CatalogService.set_course_active(db, course_id, False))


@router.post("/{course_id}/reactivate", response_model=CourseView)
def reactivate_course(course_id: str, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return course_view(CatalogService.set_course_active(db, course_id, True))
