"""
CourseHub Backend — Uvicorn Launcher
Run this file to start the development server.

Usage:
    python run.py
    python run.py --port 8000
    python run.py --reload
"""
import argparse
import uvicorn

from coursehub.config import get_settings


def banner(host: str, port: int) -> str:
    settings = get_settings()
    base = f"http://localhost:{port}"
    gateway = "configured" if settings.PAYU_MERCHANT_KEY and settings.PAYU_SALT else "NOT configured"
    return f"""
    ========================================================
      {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})
      API:       http://{host}:{port}/api
      Docs:      {base}/docs
      Health:    {base}/health
      Courses:   {base}/api/courses
      Checkout:  {base}/api/payment/initiate
      Callback:  {settings.payment_callback_url}
      PayU:      {gateway} ({settings.PAYU_BASE_URL or 'no base url'})
      Storage:   {settings.STORAGE_BACKEND}
    ========================================================
    """


def main():
    parser = argparse.ArgumentParser(description="CourseHub Marketplace Backend Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers (default: 1)")

    args = parser.parse_args()
    print(banner(args.host, args.port))

    uvicorn.run(
        "coursehub.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
        log_level="info",
    )


if __name__ == "__main__":
    main()
