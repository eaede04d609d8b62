from coursehub.routes.auth import router as auth_router
from coursehub.routes.courses import router as courses_router
from coursehub.routes.pdfs import router as pdfs_router
from coursehub.routes.videos import router as videos_router
from coursehub.routes.categories import router as categories_router
from coursehub.routes.payment import router as payment_router
from coursehub.routes.admin import router as admin_router

__all__ = [
    "auth_router", "courses_router", "pdfs_router", "videos_router",
    "categories_router", "payment_router", "admin_router",
]
