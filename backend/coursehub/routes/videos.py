"""
Video Routes — Course videos for entitled students; admin add/delete.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from coursehub.database import get_db
from coursehub.models.user import User
from coursehub.schemas.schemas import MessageResponse, VideoCreate, VideoView
from coursehub.services.catalog_service import CatalogService
from coursehub.utils.auth import get_current_user, require_admin

router = APIRouter(prefix="/api/videos", tags=["Videos"])


@router.get("/course/{course_id}", response_model=list[VideoView])
def list_course_videos(course_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Videos of a course; requires a live entitlement unless the caller is an admin."""
    return CatalogService.list_videos(db, user, course_id)


@router.post("/course/{course_id}", response_model=VideoView, status_code=201)
def add_video(
    course_id: str,
    payload: VideoCreate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return CatalogService.add_video(db, course_id, payload.title, payload.video_url, payload.description)


@router.delete("/{video_id}", response_model=MessageResponse)
def delete_video(video_id: str, _admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    CatalogService.delete_video(db, video_id)
    return MessageResponse(message="Video deleted successfully")
