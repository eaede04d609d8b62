from coursehub.models.user import User, OTPCode
from coursehub.models.session import UserSession
from coursehub.models.catalog import Category, Course, PDF, Video
from coursehub.models.entitlement import UserCourse
from coursehub.models.payment import PaymentTransaction

__all__ = [
    "User", "OTPCode", "UserSession",
    "Category", "Course", "PDF", "Video",
    "UserCourse", "PaymentTransaction",
]
