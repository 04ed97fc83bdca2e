# Overview: Pytest coverage for the Yoco gateway client.

import json

import httpx

from harvest.services.yoco_service import YocoClient


def _client(handler, secret_key="sk_test_123"):
    return YocoClient(
        secret_key=secret_key,
        api_url="https://gateway.test/v1/",
        payment_page_base_url="https://pay.test/harvest",
        transport=httpx.MockTransport(handler),
    )


def test_successful_charge(app):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "ch_789", "status": "successful"})

    result = _client(handler).charge("tok_1", 12345)

    assert result.success
    assert result.charge_id == "ch_789"
    assert seen["url"] == "https://gateway.test/v1/charges"
    assert seen["auth"] == "Bearer sk_test_123"
    assert seen["body"] == {"token": "tok_1", "amountInCents": 12345, "currency": "ZAR"}


def test_unsuccessful_status(app):
    def handler(request):
        return httpx.Response(200, json={"status": "failed", "errorMessage": "Insufficient funds"})

    result = _client(handler).charge("tok_1", 100)

    assert not result.success
    assert result.error_message == "Insufficient funds"


def test_http_error_uses_display_message(app):
    def handler(request):
        return httpx.Response(402, json={"displayMessage": "Card was declined"})

    result = _client(handler).charge("tok_1", 100)

    assert not result.success
    assert result.error_message == "Card was declined"


def test_http_error_without_body(app):
    def handler(request):
        return httpx.Response(500, text="oops")

    result = _client(handler).charge("tok_1", 100)

    assert result.error_message == "Payment gateway error"


def test_transport_failure(app):
    def handler(request):
        raise httpx.ConnectError("no route", request=request)

    result = _client(handler).charge("tok_1", 100)

    assert not result.success
    assert result.error_message == "Connection to payment gateway failed"


def test_dev_mode_never_calls_network(app):
    def handler(request):
        raise AssertionError("network must not be used in dev mode")

    result = _client(handler, secret_key="").charge("tok_1", 100)

    assert result.success
    assert result.charge_id.startswith("mock_charge_")


def test_payment_page_url(app):
    url = _client(lambda r: None).payment_page_url(17, 4550)

    assert url == "https://pay.test/harvest?invoice=17&amountInCents=4550&currency=ZAR"


def test_payment_page_url_from_config(app):
    client = YocoClient.from_config({
        "YOCO_SECRET_KEY": "",
        "YOCO_PAYMENT_PAGE_URL": "https://pay.test/shop/",
        "YOCO_CURRENCY": "ZAR",
    })

    assert client.payment_page_url(1, 100) == "https://pay.test/shop?invoice=1&amountInCents=100&currency=ZAR"
    assert client.payment_page_base_url == "https://pay.test/shop"
