"""
Catalog Models — Categories, courses and the PDFs/videos that make up a course.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Date, Boolean, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from coursehub.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, index=True, default=_uuid)
    name = Column(String(120), unique=True, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, index=True, default=_uuid)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True, index=True)
    about_creator = Column(Text)

    price = Column(Numeric(10, 2), nullable=False)      # Fixed-point, never float
    discount = Column(Numeric(5, 2), default=0)         # Percent off, 0-100

    # Access policy: relative (days after purchase) wins over absolute date
    validity_days = Column(Integer, nullable=True)
    expires_on = Column(Date, nullable=True)

    thumbnail_url = Column(String(512))
    is_active = Column(Boolean, default=True, index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category")


class PDF(Base):
    __tablename__ = "pdfs"

    id = Column(String(36), primary_key=True, index=True, default=_uuid)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)

    file_url = Column(String(512), nullable=False)  # BlobStore url
    file_size = Column(Integer, default=0)

    is_active = Column(Boolean, default=True)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Video(Base):
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, index=True, default=_uuid)
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    video_url = Column(String(512), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
