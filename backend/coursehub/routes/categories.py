"""
Category Routes — Flat category listing.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from coursehub.database import get_db
from coursehub.errors import NotFoundError
from coursehub.models.catalog import Category
from coursehub.schemas.schemas import CategoryView
from coursehub.services.catalog_service import CatalogService

router = APIRouter(prefix="/api/categories", tags=["Categories"])


@router.get("", response_model=list[CategoryView])
def list_categories(db: Session = Depends(get_db)):
    return CatalogService.list_categories(db)


@router.get("/{category_id}", response_model=CategoryView)
def get_category(category_id: str, db: Session = Depends(get_db)):
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found", error_code="CATEGORY_NOT_FOUND")
    return category
