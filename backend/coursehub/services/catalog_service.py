"""
Catalog Service — Courses, categories, PDFs and videos.

Admin mutations and public reads share this module; access control lives in
the routes. Downloads go through ``prepare_download`` which enforces the
entitlement check before any bytes leave the blob store.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from coursehub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from coursehub.models.catalog import Category, Course, PDF, Video
from coursehub.models.user import User
from coursehub.services.entitlement_service import EntitlementLedger
from coursehub.services.storage import BlobStore
from coursehub.services.watermark import PdfWatermarker

logger = logging.getLogger(__name__)

COURSE_FIELDS = (
    "name", "description", "category_id", "about_creator", "price", "discount",
    "validity_days", "expires_on", "thumbnail_url",
)


def _check_pricing(price: Optional[Decimal], discount: Optional[Decimal]):
    errors = []
    if price is not None and price < 0:
        errors.append({"field": "price", "message": "Price cannot be negative"})
    if discount is not None and not (0 <= discount <= 100):
        errors.append({"field": "discount", "message": "Discount must be between 0 and 100"})
    if errors:
        raise ValidationError("Course validation failed", errors=errors)


class CatalogService:

    # ─── Categories ──────────────────────────────────────────────────

    @staticmethod
    def list_categories(db: Session) -> list[Category]:
        return db.query(Category).order_by(Category.name.asc()).all()

    @staticmethod
    def create_category(db: Session, name: str, description: Optional[str] = None) -> Category:
        name = name.strip()
        if not name:
            raise ValidationError("Category name is required", errors=[{"field": "name", "message": "Required"}])
        if db.query(Category.id).filter(Category.name == name).first():
            raise ConflictError("Category already exists", error_code="CATEGORY_EXISTS")
        category = Category(name=name, description=description)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    @staticmethod
    def _require_category(db: Session, category_id: Optional[str]):
        if category_id and not db.get(Category, category_id):
            raise NotFoundError("Category not found", error_code="CATEGORY_NOT_FOUND")

    # ─── Courses ─────────────────────────────────────────────────────

    @staticmethod
    def list_courses(db: Session, include_inactive: bool = False) -> list[Course]:
        query = db.query(Course)
        if not include_inactive:
            query = query.filter(Course.is_active.is_(True))
        return query.order_by(Course.created_at.desc()).all()

    @staticmethod
    def search_courses(db: Session, term: str) -> list[Course]:
        pattern = f"%{term.strip()}%"
        return (
            db.query(Course)
            .outerjoin(Category, Course.category_id == Category.id)
            .filter(
                Course.is_active.is_(True),
                or_(
                    Course.name.ilike(pattern),
                    Course.description.ilike(pattern),
                    Category.name.ilike(pattern),
                ),
            )
            .order_by(Course.created_at.desc())
            .all()
        )

    @staticmethod
    def get_course(db: Session, course_id: str, include_inactive: bool = False) -> Course:
        course = db.get(Course, course_id)
        if not course or (not course.is_active and not include_inactive):
            raise NotFoundError("Course not found", error_code="COURSE_NOT_FOUND")
        return course

    @staticmethod
    def create_course(db: Session, admin: User, **fields) -> Course:
        _check_pricing(fields.get("price"), fields.get("discount"))
        CatalogService._require_category(db, fields.get("category_id"))

        course = Course(created_by=admin.id, **{k: v for k, v in fields.items() if k in COURSE_FIELDS})
        if course.discount is None:
            course.discount = Decimal("0")
        db.add(course)
        db.commit()
        db.refresh(course)
        logger.info("Course created id=%s by admin=%s", course.id, admin.id)
        return course

    @staticmethod
    def update_course(db: Session, course_id: str, **fields) -> Course:
        course = CatalogService.get_course(db, course_id, include_inactive=True)
        _check_pricing(fields.get("price"), fields.get("discount"))
        if "category_id" in fields:
            CatalogService._require_category(db, fields["category_id"])

        for key, value in fields.items():
            if key in COURSE_FIELDS:
                setattr(course, key, value)
        course.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(course)
        return course

    @staticmethod
    def set_course_active(db: Session, course_id: str, active: bool) -> Course:
        course = CatalogService.get_course(db, course_id, include_inactive=True)
        course.is_active = active
        course.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(course)
        logger.info("Course %s %s", course.id, "reactivated" if active else "deactivated")
        return course

    # ─── PDFs ────────────────────────────────────────────────────────

    @staticmethod
    def list_pdfs(db: Session, course_id: Optional[str] = None) -> list[PDF]:
        query = db.query(PDF).filter(PDF.is_active.is_(True))
        if course_id:
            query = query.filter(PDF.course_id == course_id)
        return query.order_by(PDF.created_at.desc()).all()

    @staticmethod
    def get_pdf(db: Session, pdf_id: str) -> PDF:
        pdf = db.get(PDF, pdf_id)
        if not pdf or not pdf.is_active:
            raise NotFoundError("PDF not found", error_code="PDF_NOT_FOUND")
        return pdf

    @staticmethod
    def upload_pdf(
        db: Session,
        store: BlobStore,
        admin: User,
        filename: str,
        data: bytes,
        title: str,
        description: Optional[str] = None,
        course_id: Optional[str] = None,
    ) -> PDF:
        if course_id:
            CatalogService.get_course(db, course_id, include_inactive=True)

        url = store.save(filename, data, folder="pdfs", content_type="application/pdf")
        pdf = PDF(
            course_id=course_id,
            title=title,
            description=description,
            file_url=url,
            file_size=len(data),
            uploaded_by=admin.id,
        )
        db.add(pdf)
        try:
            db.commit()
        except Exception:
            db.rollback()
            store.delete(url)
            raise
        db.refresh(pdf)
        return pdf

    @staticmethod
    def delete_pdf(db: Session, store: BlobStore, pdf_id: str):
        pdf = db.get(PDF, pdf_id)
        if not pdf:
            raise NotFoundError("PDF not found", error_code="PDF_NOT_FOUND")
        url = pdf.file_url
        db.delete(pdf)
        db.commit()
        try:
            removed = store.delete(url)
        except Exception:
            logger.exception("Blob delete failed for deleted PDF %s url=%s", pdf_id, url)
            return
        if not removed:
            logger.warning("Blob for deleted PDF %s was already missing", pdf_id)

    @staticmethod
    def prepare_download(
        db: Session,
        store: BlobStore,
        watermarker: PdfWatermarker,
        user: User,
        course_id: str,
        pdf_id: str,
    ) -> tuple[PDF, bytes]:
        """Return the PDF row and its watermarked bytes for an entitled user."""
        CatalogService.get_course(db, course_id, include_inactive=True)
        if not EntitlementLedger.has_access(db, user.id, course_id):
            raise ForbiddenError("You do not have access to this course", error_code="NOT_ENTITLED")

        pdf = db.get(PDF, pdf_id)
        if not pdf or not pdf.is_active or pdf.course_id != course_id:
            raise NotFoundError("PDF not found in this course", error_code="PDF_NOT_FOUND")

        identifier = user.mobile or user.email or user.id
        return pdf, watermarker.stamp(store.read(pdf.file_url), identifier)

    # ─── Videos ──────────────────────────────────────────────────────

    @staticmethod
    def list_videos(db: Session, user: User, course_id: str) -> list[Video]:
        CatalogService.get_course(db, course_id, include_inactive=True)
        if not user.is_admin and not EntitlementLedger.has_access(db, user.id, course_id):
            raise ForbiddenError("You do not have access to this course", error_code="NOT_ENTITLED")
        return (
            db.query(Video)
            .filter(Video.course_id == course_id, Video.is_active.is_(True))
            .order_by(Video.created_at.asc())
            .all()
        )

    @staticmethod
    def add_video(db: Session, course_id: str, title: str, video_url: str,
                  description: Optional[str] = None) -> Video:
        CatalogService.get_course(db, course_id, include_inactive=True)
        video = Video(course_id=course_id, title=title, video_url=video_url, description=description)
        db.add(video)
        db.commit()
        db.refresh(video)
        return video

    @staticmethod
    def delete_video(db: Session, video_id: str):
        video = db.get(Video, video_id)
        if not video:
            raise NotFoundError("Video not found", error_code="VIDEO_NOT_FOUND")
        db.delete(video)
        db.commit()
