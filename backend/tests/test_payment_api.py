from decimal import Decimal
from urllib.parse import urlencode

from starlette import status

from conftest import auth_headers, signed_response
from coursehub.main import app
from coursehub.models.entitlement import UserCourse
from coursehub.models.payment import PaymentTransaction
from coursehub.services.gateway import PayUGateway
from coursehub.services.payment_service import PaymentService, get_payment_service


def _initiate(client, headers, course_id):
    response = client.post("/api/payment/initiate", json={"courseId": course_id}, headers=headers)
    assert response.status_code == status.HTTP_200_OK, response.text
    return response.json()


def _transaction(db, transaction_id) -> PaymentTransaction:
    db.expire_all()
    return db.query(PaymentTransaction).filter_by(transaction_id=transaction_id).one()


def test_initiate_returns_signed_checkout(client, db, student_headers, course):
    body = _initiate(client, student_headers, course.id)

    assert body["transactionId"].startswith("TXN")
    assert body["paymentUrl"] == "https://test.payu.in/_payment"
    assert body["merchantKey"] == "testKey"
    params = body["paymentParams"]
    assert params["txnid"] == body["transactionId"]
    assert params["amount"] == "900.00"
    assert params["surl"] == "http://tests/api/payment/callback"
    assert len(params["hash"]) == 128


def test_double_click_returns_same_transaction(client, db, student_headers, course):
    first = _initiate(client, student_headers, course.id)
    second = _initiate(client, student_headers, course.id)

    assert first["transactionId"] == second["transactionId"]
    assert db.query(PaymentTransaction).count() == 1


def test_initiate_requires_auth(client, course):
    response = client.post("/api/payment/initiate", json={"courseId": course.id})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["error_code"] == "TOKEN_MISSING"


def test_initiate_validation_error_shape(client, student_headers):
    response = client.post("/api/payment/initiate", json={}, headers=student_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert body["errors"][0]["field"] == "courseId"


def test_initiate_unknown_course(client, student_headers):
    response = client.post("/api/payment/initiate", json={"courseId": "nope"}, headers=student_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error_code"] == "COURSE_NOT_FOUND"


def test_initiate_when_gateway_unconfigured(client, student_headers, course):
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(
        gateway=PayUGateway(merchant_key=None, salt=None, base_url=None)
    )

    response = client.post("/api/payment/initiate", json={"courseId": course.id}, headers=student_headers)

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["error_code"] == "SERVICE_UNAVAILABLE"


def test_form_callback_completes_purchase(client, db, student, student_headers, course, payment_service):
    body = _initiate(client, student_headers, course.id)
    txn = _transaction(db, body["transactionId"])
    payload = signed_response(payment_service.gateway, txn)

    first = client.post("/api/payment/callback", data=payload)
    second = client.post("/api/payment/callback", data=payload)

    assert first.status_code == status.HTTP_200_OK, first.text
    assert first.json() == {
        "transactionId": txn.transaction_id,
        "status": "success",
        "gatewayPaymentId": "403993715521234567",
    }
    assert second.json() == first.json()
    assert db.query(UserCourse).filter_by(user_id=student.id).count() == 1

    my = client.get("/api/courses/my", headers=student_headers)
    assert [c["id"] for c in my.json()] == [course.id]

    again = client.post("/api/payment/initiate", json={"courseId": course.id}, headers=student_headers)
    assert again.status_code == status.HTTP_409_CONFLICT
    assert again.json()["error_code"] == "ALREADY_ENTITLED"


def test_json_callback_is_accepted(client, db, student_headers, course, payment_service):
    body = _initiate(client, student_headers, course.id)
    txn = _transaction(db, body["transactionId"])

    response = client.post("/api/payment/callback", json=signed_response(payment_service.gateway, txn, status="failure"))

    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["status"] == "failed"


def test_tampered_callback_is_rejected_generically(client, db, student_headers, course, payment_service):
    body = _initiate(client, student_headers, course.id)
    txn = _transaction(db, body["transactionId"])
    payload = signed_response(payment_service.gateway, txn)
    payload["amount"] = "1.00"

    response = client.post("/api/payment/callback", data=payload)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"detail": "Payment verification failed", "error_code": "SIGNATURE_INVALID"}
    assert _transaction(db, txn.transaction_id).status == "failed"
    assert db.query(UserCourse).count() == 0


def test_callback_for_unknown_transaction(client):
    response = client.post("/api/payment/callback", data={"txnid": "TXNGHOST", "status": "success", "hash": "00"})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error_code"] == "TRANSACTION_NOT_FOUND"


def test_callback_missing_fields(client):
    response = client.post("/api/payment/callback", data={"txnid": "TXN1"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert {e["field"] for e in response.json()["errors"]} == {"status", "hash"}


def test_callback_with_malformed_json(client):
    response = client.post(
        "/api/payment/callback", content=b"{not json", headers={"content-type": "application/json"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Malformed gateway response"
    assert response.json()["errors"] == [{"field": "body", "message": "Body is not valid JSON"}]


def test_form_body_sent_as_json_is_rejected(client, db, student_headers, course, payment_service):
    body = _initiate(client, student_headers, course.id)
    txn = _transaction(db, body["transactionId"])
    form = urlencode(signed_response(payment_service.gateway, txn)).encode()

    response = client.post("/api/payment/callback", content=form, headers={"content-type": "application/json"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert _transaction(db, txn.transaction_id).status == "initiated"


def test_paid_callback_on_closed_transaction_needs_reconciliation(client, db, student_headers, course, payment_service):
    body = _initiate(client, student_headers, course.id)
    txn = _transaction(db, body["transactionId"])
    forged = signed_response(payment_service.gateway, txn)
    forged["hash"] = "deadbeef"
    assert client.post("/api/payment/callback", data=forged).status_code == status.HTTP_400_BAD_REQUEST

    response = client.post("/api/payment/callback", data=signed_response(payment_service.gateway, txn))

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error_code"] == "PAYMENT_RECONCILIATION_REQUIRED"
    assert response.json()["transactionId"] == txn.transaction_id
    assert db.query(UserCourse).count() == 0


def test_status_visible_only_to_owner(client, db, other_student, student_headers, course):
    body = _initiate(client, student_headers, course.id)
    path = f"/api/payment/status/{body['transactionId']}"

    own = client.get(path, headers=student_headers)
    assert own.status_code == status.HTTP_200_OK
    assert own.json()["status"] == "initiated"
    assert Decimal(own.json()["amount"]) == Decimal("900.00")

    other = client.get(path, headers=auth_headers(db, other_student))
    assert other.status_code == status.HTTP_403_FORBIDDEN

    missing = client.get("/api/payment/status/TXNMISSING", headers=student_headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_history_lists_own_transactions(client, student_headers, course):
    body = _initiate(client, student_headers, course.id)

    response = client.get("/api/payment/history", headers=student_headers)

    assert response.status_code == status.HTTP_200_OK
    assert [t["transactionId"] for t in response.json()] == [body["transactionId"]]


def test_admin_transaction_listing(client, admin_headers, student_headers, course):
    _initiate(client, student_headers, course.id)

    response = client.get("/api/admin/transactions", params={"status": "initiated"}, headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total"] == 1

    bad = client.get("/api/admin/transactions", params={"status": "weird"}, headers=admin_headers)
    assert bad.status_code == status.HTTP_400_BAD_REQUEST

    forbidden = client.get("/api/admin/transactions", headers=student_headers)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
