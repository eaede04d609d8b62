import hashlib
from decimal import Decimal

import pytest

from coursehub.errors import GatewayUnavailableError
from coursehub.services.gateway import PayUGateway, format_amount, map_status


@pytest.fixture
def gateway():
    return PayUGateway(
        merchant_key="gtKFFx",
        salt="eCwWELxi",
        base_url="https://test.payu.in",
        success_url="http://tests/ok",
        failure_url="http://tests/fail",
        cancel_url="http://tests/cancel",
    )


def _response(gateway: PayUGateway, **fields) -> dict:
    response = {
        "txnid": "TXN123",
        "amount": "900.00",
        "productinfo": "Organic Chemistry",
        "firstname": "asha",
        "email": "asha@example.com",
        "udf1": "user-1",
        "udf2": "course-1",
        "status": "success",
    }
    response.update(fields)
    response["hash"] = gateway.response_hash(response)
    return response


def test_sign_uses_forward_field_order(gateway):
    fields = {
        "txnid": "TXN123",
        "amount": "900.00",
        "productinfo": "Organic Chemistry",
        "firstname": "asha",
        "email": "asha@example.com",
        "udf1": "user-1",
        "udf2": "course-1",
    }
    raw = "gtKFFx|TXN123|900.00|Organic Chemistry|asha|asha@example.com|user-1|course-1|||||||||eCwWELxi"

    assert gateway.sign(fields) == hashlib.sha512(raw.encode()).hexdigest()


def test_response_hash_uses_reverse_field_order(gateway):
    response = _response(gateway)
    raw = "eCwWELxi|success|||||||||course-1|user-1|asha@example.com|asha|Organic Chemistry|900.00|TXN123|gtKFFx"

    assert response["hash"] == hashlib.sha512(raw.encode()).hexdigest()
    assert gateway.verify(response)


def test_verify_accepts_uppercase_hash(gateway):
    response = _response(gateway)
    response["hash"] = response["hash"].upper()

    assert gateway.verify(response)


@pytest.mark.parametrize("field", ["txnid", "amount", "productinfo", "firstname", "email", "udf1", "udf2", "status"])
def test_verify_rejects_any_tampered_field(gateway, field):
    response = _response(gateway)
    response[field] = response[field][:-1] + ("X" if response[field][-1] != "X" else "Y")

    assert not gateway.verify(response)


def test_verify_rejects_wrong_salt(gateway):
    response = _response(gateway)
    other = PayUGateway(merchant_key="gtKFFx", salt="eCwWELxj", base_url="https://test.payu.in")

    assert not other.verify(response)


def test_verify_rejects_missing_hash(gateway):
    response = _response(gateway)
    del response["hash"]

    assert not gateway.verify(response)


@pytest.mark.parametrize("gateway_status, expected", [
    ("success", "success"),
    ("SUCCESS", "success"),
    ("pending", "pending"),
    ("failure", "failed"),
    ("failed", "failed"),
    ("bounced", "failed"),
    ("cancel", "cancelled"),
    ("cancelled", "cancelled"),
    ("userCancelled", "cancelled"),
    ("dropped", "cancelled"),
    ("timeout", "timeout"),
    ("in_progress", "failed"),
    ("", "failed"),
    (None, "failed"),
])
def test_map_status(gateway_status, expected):
    assert map_status(gateway_status) == expected


def test_build_payment_request(gateway):
    params = gateway.build_payment_request(
        transaction_id="TXN123",
        amount=Decimal("900"),
        product_info="Organic Chemistry",
        first_name="asha",
        email="asha@example.com",
        phone="+919876543210",
        user_id="user-1",
        course_id="course-1",
    )

    assert params["amount"] == "900.00"
    assert params["key"] == "gtKFFx"
    assert params["surl"] == "http://tests/ok"
    assert params["furl"] == "http://tests/fail"
    assert params["curl"] == "http://tests/cancel"
    assert params["hash"] == gateway.sign(params)
    assert gateway.payment_url == "https://test.payu.in/_payment"


def test_format_amount():
    assert format_amount(Decimal("900")) == "900.00"
    assert format_amount(Decimal("899.995")) == "900.00"
    assert format_amount(Decimal("0.1")) == "0.10"


def test_unconfigured_gateway_fails_fast():
    gateway = PayUGateway(merchant_key=None, salt=None, base_url=None)

    assert not gateway.is_configured
    with pytest.raises(GatewayUnavailableError):
        gateway.sign({"txnid": "T", "amount": "1.00", "productinfo": "p", "firstname": "f", "email": "e"})
    with pytest.raises(GatewayUnavailableError):
        gateway.verify({"txnid": "T", "status": "success", "hash": "abc"})
    with pytest.raises(GatewayUnavailableError):
        _ = gateway.payment_url
