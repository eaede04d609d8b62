import io
from datetime import datetime, timedelta
from decimal import Decimal

from pypdf import PdfReader
from starlette import status

from conftest import STUDENT_MOBILE
from coursehub.main import app
from coursehub.models.catalog import PDF
from coursehub.models.payment import PaymentTransaction
from coursehub.services.catalog_service import CatalogService
from coursehub.services.entitlement_service import EntitlementLedger
from coursehub.services.storage import LocalBlobStore, get_blob_store


def _entitle(db, user, course, expiry_date=None):
    """Stand-in for a completed purchase."""
    txn_id = f"TXN{user.id[:8]}{course.id[:8]}".upper()
    db.add(PaymentTransaction(
        transaction_id=txn_id,
        idempotency_key=f"key-{txn_id}",
        user_id=user.id,
        course_id=course.id,
        amount=Decimal("900.00"),
        status="success",
    ))
    EntitlementLedger.grant(db, user.id, course.id, Decimal("900.00"), txn_id, "mihpay", expiry_date)
    db.commit()


def _upload(client, headers, course_id, content: bytes, content_type="application/pdf"):
    return client.post(
        "/api/pdfs/upload",
        files={"file": ("notes.pdf", content, content_type)},
        data={"title": "Lecture notes", "courseId": course_id},
        headers=headers,
    )


def test_admin_creates_course(client, admin_headers):
    response = client.post("/api/courses", json={
        "name": "Physics",
        "description": "Mechanics",
        "price": "499.00",
        "discount": "20",
        "validityDays": 90,
    }, headers=admin_headers)

    assert response.status_code == status.HTTP_201_CREATED, response.text
    body = response.json()
    assert Decimal(body["finalPrice"]) == Decimal("399.20")
    assert body["validityDays"] == 90
    assert body["isActive"] is True


def test_student_cannot_create_course(client, student_headers):
    response = client.post("/api/courses", json={"name": "X", "description": "Y", "price": "1"}, headers=student_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_course_discount_out_of_range(client, admin_headers):
    response = client.post("/api/courses", json={
        "name": "X", "description": "Y", "price": "100", "discount": "120",
    }, headers=admin_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["errors"][0]["field"] == "discount"


def test_update_and_deactivate_course(client, admin_headers, course):
    updated = client.put(f"/api/courses/{course.id}", json={"discount": "50"}, headers=admin_headers)
    assert updated.status_code == status.HTTP_200_OK
    assert Decimal(updated.json()["finalPrice"]) == Decimal("500.00")

    client.post(f"/api/courses/{course.id}/deactivate", headers=admin_headers)
    assert client.get(f"/api/courses/{course.id}").status_code == status.HTTP_404_NOT_FOUND
    assert client.get("/api/courses").json() == []

    client.post(f"/api/courses/{course.id}/reactivate", headers=admin_headers)
    assert client.get(f"/api/courses/{course.id}").status_code == status.HTTP_200_OK


def test_search_matches_category_name(client, db, admin):
    category = CatalogService.create_category(db, "Medical Entrance")
    CatalogService.create_course(
        db, admin, name="Biology Crash Course", description="Cells", price=Decimal("100"), category_id=category.id,
    )
    CatalogService.create_course(db, admin, name="History", description="Empires", price=Decimal("100"))

    by_category = client.get("/api/courses/search", params={"q": "medical"})
    by_description = client.get("/api/courses/search", params={"q": "EMPIRE"})

    assert [c["name"] for c in by_category.json()] == ["Biology Crash Course"]
    assert by_category.json()[0]["categoryName"] == "Medical Entrance"
    assert [c["name"] for c in by_description.json()] == ["History"]


def test_categories(client, admin_headers):
    created = client.post("/api/admin/categories", json={"name": "Engineering"}, headers=admin_headers)
    duplicate = client.post("/api/admin/categories", json={"name": "Engineering"}, headers=admin_headers)

    assert created.status_code == status.HTTP_201_CREATED
    assert duplicate.status_code == status.HTTP_409_CONFLICT
    assert [c["name"] for c in client.get("/api/categories").json()] == ["Engineering"]
    assert client.get(f"/api/categories/{created.json()['id']}").status_code == status.HTTP_200_OK


def test_upload_rejects_non_pdf(client, admin_headers, course):
    response = _upload(client, admin_headers, course.id, b"hello", content_type="text/plain")

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_download_requires_entitlement(client, db, student, student_headers, admin_headers, course, sample_pdf):
    uploaded = _upload(client, admin_headers, course.id, sample_pdf)
    assert uploaded.status_code == status.HTTP_201_CREATED, uploaded.text
    pdf_id = uploaded.json()["id"]
    path = f"/api/courses/{course.id}/download/{pdf_id}"

    assert client.get(path, headers=student_headers).status_code == status.HTTP_403_FORBIDDEN

    _entitle(db, student, course)
    response = client.get(path, headers=student_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "application/pdf"
    reader = PdfReader(io.BytesIO(response.content))
    assert len(reader.pages) == 2
    assert all(f"Mobile: {STUDENT_MOBILE}" in page.extract_text() for page in reader.pages)


def test_download_with_lapsed_entitlement(client, db, student, student_headers, admin_headers, course, sample_pdf):
    pdf_id = _upload(client, admin_headers, course.id, sample_pdf).json()["id"]
    _entitle(db, student, course, expiry_date=datetime.utcnow() - timedelta(minutes=1))

    response = client.get(f"/api/courses/{course.id}/download/{pdf_id}", headers=student_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_download_pdf_from_other_course(client, db, admin, student, student_headers, admin_headers, course, sample_pdf):
    other = CatalogService.create_course(db, admin, name="Other", description="Other", price=Decimal("10"))
    pdf_id = _upload(client, admin_headers, other.id, sample_pdf).json()["id"]
    _entitle(db, student, course)

    response = client.get(f"/api/courses/{course.id}/download/{pdf_id}", headers=student_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_delete_pdf_removes_blob(client, db, admin_headers, course, sample_pdf):
    pdf_id = _upload(client, admin_headers, course.id, sample_pdf).json()["id"]
    assert [p["id"] for p in client.get(f"/api/courses/{course.id}/pdfs").json()] == [pdf_id]
    file_url = db.get(PDF, pdf_id).file_url

    response = client.delete(f"/api/pdfs/{pdf_id}", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert client.get(f"/api/pdfs/{pdf_id}").status_code == status.HTTP_404_NOT_FOUND
    assert not get_blob_store().delete(file_url)


def test_videos_need_entitlement(client, db, student, student_headers, admin_headers, course):
    added = client.post(f"/api/videos/course/{course.id}", json={
        "title": "Intro", "videoUrl": "https://videos.example.com/intro",
    }, headers=admin_headers)
    assert added.status_code == status.HTTP_201_CREATED

    path = f"/api/videos/course/{course.id}"
    assert client.get(path, headers=student_headers).status_code == status.HTTP_403_FORBIDDEN
    assert client.get(path, headers=admin_headers).status_code == status.HTTP_200_OK

    _entitle(db, student, course)
    assert [v["title"] for v in client.get(path, headers=student_headers).json()] == ["Intro"]


def test_access_check_boundary(db, student, course):
    expiry = datetime(2026, 6, 1, 12, 0, 0)
    _entitle(db, student, course, expiry_date=expiry)

    assert EntitlementLedger.has_access(db, student.id, course.id, now=expiry - timedelta(microseconds=1))
    assert not EntitlementLedger.has_access(db, student.id, course.id, now=expiry)
    assert not EntitlementLedger.has_access(db, student.id, course.id, now=expiry + timedelta(seconds=1))


def test_expiry_policy(course):
    granted = datetime(2026, 1, 1, 9, 30)

    assert EntitlementLedger.expiry_for(course, granted) == datetime(2026, 1, 31, 9, 30)

    course.validity_days = None
    course.expires_on = datetime(2026, 12, 31).date()
    assert EntitlementLedger.expiry_for(course, granted).date() == course.expires_on

    course.expires_on = None
    assert EntitlementLedger.expiry_for(course, granted) is None


class _UnreachableStore(LocalBlobStore):
    def delete(self, url: str) -> bool:
        raise RuntimeError("storage backend unreachable")


def test_delete_pdf_survives_blob_store_error(client, db, admin_headers, course, sample_pdf, caplog):
    pdf_id = _upload(client, admin_headers, course.id, sample_pdf).json()["id"]
    file_url = db.get(PDF, pdf_id).file_url
    app.dependency_overrides[get_blob_store] = lambda: _UnreachableStore(str(get_blob_store().root))

    response = client.delete(f"/api/pdfs/{pdf_id}", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert client.get(f"/api/pdfs/{pdf_id}").status_code == status.HTTP_404_NOT_FOUND
    assert get_blob_store().read(file_url) == sample_pdf
    assert any(r.levelname == "ERROR" and pdf_id in r.getMessage() for r in caplog.records)
