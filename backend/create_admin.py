"""
Create (or promote) an admin account.

Usage:
    python create_admin.py --mobile +919876543210 --password 'S3cure!pass'
    python create_admin.py --email admin@example.com --mobile +919876543210 --password 'S3cure!pass'

An existing user matching the email or mobile is promoted and gets the new
password; otherwise a verified admin is created.
"""
import argparse
import sys

from coursehub.database import SessionLocal, init_db
from coursehub.errors import AppError
from coursehub.models.user import User
from coursehub.services.auth_service import AuthService
from coursehub.utils.auth import hash_password
from coursehub.utils.validators import password_problems


def main():
    parser = argparse.ArgumentParser(description="Create or promote a CourseHub admin")
    parser.add_argument("--email", help="Admin email")
    parser.add_argument("--mobile", help="Admin mobile in E.164 format (needed for password reset)")
    parser.add_argument("--password", required=True, help="Admin password")
    args = parser.parse_args()

    if not args.email and not args.mobile:
        parser.error("one of --email or --mobile is required")

    problems = password_problems(args.password)
    if problems:
        for p in problems:
            print(f"  - {p}", file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        existing = None
        if args.email:
            existing = AuthService.find_by_identifier(db, args.email)
        if existing is None and args.mobile:
            existing = AuthService.find_by_identifier(db, args.mobile)

        if existing:
            existing.role = "admin"
            existing.is_verified = True
            existing.password_hash = hash_password(args.password)
            db.commit()
            print(f"Promoted user {existing.id} to admin")
            return

        user = AuthService.create_user(
            db, email=args.email, mobile=args.mobile, password=args.password,
            role="admin", is_verified=True,
        )
        print(f"Created admin {user.id}")
    except AppError as exc:
        print(f"Error: {exc.detail}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
