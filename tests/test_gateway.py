"""Pesapal callback/IPN routes and the Pesapal HTTP client."""

import io
import json
import urllib.error
from urllib.parse import parse_qs, urlparse

import pytest
from conftest import CUSTOMER_PHONE, make_order

from duka.errors import GatewayError
from duka.services import pesapal
from duka.services.payments import create_balance_payment, record_manual_payment
from duka.services.pesapal import LIVE_URL, SANDBOX_URL, PesapalClient


@pytest.fixture
def pending(store, gateway):
    """100,000 order, 30,000 paid, 70,000 waiting at the gateway as trk-1."""
    order = make_order(store, total=100000)
    record_manual_payment(store, order.id, 30000)
    outcome = create_balance_payment(store, gateway, order.id, CUSTOMER_PHONE, 70000)
    return order, outcome.payment


def _redirect_query(resp):
    location = urlparse(resp.headers["Location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == "https://duka.example/thank-you"
    return {k: v[0] for k, v in parse_qs(location.query).items()}


class TestCallback:
    def test_completed_payment(self, client, gateway, store, pending):
        order, payment = pending
        gateway.statuses["trk-1"] = "completed"

        resp = client.get(
            "/api/payments/gateway/callback",
            query_string={
                "order": order.id,
                "payment": payment.id,
                "OrderTrackingId": "trk-1",
                "OrderMerchantReference": payment.id,
            },
        )

        assert resp.status_code == 302
        assert _redirect_query(resp) == {"order": order.id, "payment": "pesapal", "status": "paid"}
        assert store.get_order(order.id).payment_status.value == "paid"

    def test_missing_tracking_id(self, client, pending):
        order, _ = pending
        resp = client.get("/api/payments/pesapal/callback", query_string={"order": order.id})
        assert _redirect_query(resp)["status"] == "failed"

    def test_gateway_down(self, client, gateway, store, pending):
        order, payment = pending
        gateway.fail_with = "Pesapal is unreachable: timed out"

        resp = client.get(
            "/api/payments/gateway/callback",
            query_string={"order": order.id, "OrderTrackingId": "trk-1"},
        )
        assert _redirect_query(resp)["status"] == "failed"
        assert store.get_payment(payment.id).status.value == "pending"


class TestIpn:
    def test_post_notification(self, client, gateway, store, pending):
        order, payment = pending
        gateway.statuses["trk-1"] = "completed"

        resp = client.post(
            "/api/payments/gateway/ipn",
            data={
                "OrderTrackingId": "trk-1",
                "OrderMerchantReference": payment.id,
                "OrderNotificationType": "IPNCHANGE",
            },
        )
        data = resp.get_json()

        assert resp.status_code == 200
        assert data["received"] is True
        assert data["orderId"] == order.id
        assert data["paymentId"] == payment.id
        assert data["paymentStatus"] == "paid"
        assert data["orderMerchantReference"] == payment.id
        assert store.get_order(order.id).balance_due == 0

    def test_failed_payment_frees_the_balance(self, client, gateway, store, pending):
        order, payment = pending
        gateway.statuses["trk-1"] = "failed"

        data = client.get("/api/payments/pesapal/ipn", query_string={"OrderTrackingId": "trk-1"}).get_json()

        assert data["paymentStatus"] == "partial"
        assert store.get_payment(payment.id).status.value == "failed"
        # the failed claim no longer holds the balance
        create_balance_payment(store, gateway, order.id, CUSTOMER_PHONE, 70000, method="bank-deposit")

    def test_missing_tracking_id(self, client):
        resp = client.post("/api/payments/gateway/ipn", data={})
        assert resp.status_code == 400
        assert resp.get_json()["received"] is False

    def test_gateway_error(self, client, gateway, pending):
        gateway.fail_with = "Unable to fetch transaction status"
        resp = client.get("/api/payments/gateway/ipn", query_string={"OrderTrackingId": "trk-1"})
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Unable to fetch transaction status"


class _Response:
    def __init__(self, payload, status=200):
        self.status = status
        self._body = json.dumps(payload).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class _FakeUrlopen:
    """Answers Pesapal endpoints by path; keeps every request it saw."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, req, timeout=None):
        self.requests.append((req, timeout))
        path = urlparse(req.full_url).path
        for suffix, answer in self.routes.items():
            if path.endswith(suffix):
                if isinstance(answer, Exception):
                    raise answer
                return answer
        raise AssertionError(f"unexpected request {req.full_url}")


@pytest.fixture
def client_config():
    return {
        "PESAPAL_CONSUMER_KEY": "key",
        "PESAPAL_CONSUMER_SECRET": "secret",
        "PESAPAL_NOTIFICATION_ID": "ipn-1",
        "PESAPAL_ENVIRONMENT": "sandbox",
        "PESAPAL_TIMEOUT_SECONDS": 7,
    }


def _install(monkeypatch, routes):
    fake = _FakeUrlopen(routes)
    monkeypatch.setattr(pesapal.urllib.request, "urlopen", fake)
    return fake


class TestPesapalClient:
    def test_configuration(self, client_config):
        client = PesapalClient.from_config(client_config)
        assert client.is_configured
        assert client.base_url == SANDBOX_URL

        bare = PesapalClient.from_config({})
        assert bare.base_url == LIVE_URL
        assert bare.missing_config() == [
            "PESAPAL_CONSUMER_KEY",
            "PESAPAL_CONSUMER_SECRET",
            "PESAPAL_NOTIFICATION_ID",
        ]
        with pytest.raises(GatewayError):
            bare.create_order("p1", 1000, "x", "https://cb", "Asha", CUSTOMER_PHONE)

    def test_create_order(self, monkeypatch, client_config):
        fake = _install(monkeypatch, {
            "/api/Auth/RequestToken": _Response({"token": "tok-1"}),
            "/api/Transactions/SubmitOrderRequest": _Response({
                "order_tracking_id": "trk-77",
                "merchant_reference": "pay-1",
                "redirect_url": "https://cybqa.pesapal.com/iframe/trk-77",
            }),
        })

        result = PesapalClient.from_config(client_config).create_order(
            "pay-1", "70000", "Installment payment", "https://api.duka.example/cb", "Asha", CUSTOMER_PHONE
        )

        assert result.tracking_id == "trk-77"
        assert result.redirect_url.endswith("trk-77")
        assert result.merchant_reference == "pay-1"

        submit, timeout = fake.requests[1]
        body = json.loads(submit.data.decode("utf-8"))
        assert timeout == 7
        assert submit.get_header("Authorization") == "Bearer tok-1"
        assert body["amount"] == 70000.0
        assert body["currency"] == "TZS"
        assert body["notification_id"] == "ipn-1"
        assert body["billing_address"]["email_address"] == "customer@example.co.tz"

    def test_token_rejected(self, monkeypatch, client_config):
        _install(monkeypatch, {
            "/api/Auth/RequestToken": _Response({"error": {"message": "Invalid consumer key"}}, status=401),
        })
        with pytest.raises(GatewayError) as excinfo:
            PesapalClient.from_config(client_config).get_transaction_status("trk-1")
        assert excinfo.value.message == "Invalid consumer key"

    def test_http_error_body_is_read(self, monkeypatch, client_config):
        error = urllib.error.HTTPError(
            SANDBOX_URL, 500, "Server Error", {}, io.BytesIO(b'{"status": "500 from Pesapal"}')
        )
        _install(monkeypatch, {"/api/Auth/RequestToken": error})

        with pytest.raises(GatewayError) as excinfo:
            PesapalClient.from_config(client_config).get_transaction_status("trk-1")
        assert excinfo.value.message == "500 from Pesapal"

    def test_unreachable(self, monkeypatch, client_config):
        _install(monkeypatch, {"/api/Auth/RequestToken": urllib.error.URLError("timed out")})
        with pytest.raises(GatewayError):
            PesapalClient.from_config(client_config).get_transaction_status("trk-1")

    @pytest.mark.parametrize(
        "description, paid, failed",
        [("Completed", True, False), ("FAILED", False, True), ("Reversed", False, True), ("Pending", False, False)],
    )
    def test_transaction_status(self, monkeypatch, client_config, description, paid, failed):
        fake = _install(monkeypatch, {
            "/api/Auth/RequestToken": _Response({"token": "tok-1"}),
            "/api/Transactions/GetTransactionStatus": _Response({
                "payment_status_description": description,
                "payment_method": "M-Pesa",
            }),
        })

        status = PesapalClient.from_config(client_config).get_transaction_status(" trk-9 ")

        assert status.status == description.lower()
        assert (status.is_paid, status.is_failed) == (paid, failed)
        assert status.payment_method == "M-Pesa"
        assert "orderTrackingId=trk-9" in fake.requests[1][0].full_url

    def test_blank_tracking_id(self, client_config):
        with pytest.raises(GatewayError) as excinfo:
            PesapalClient.from_config(client_config).get_transaction_status("  ")
        assert excinfo.value.status_code == 400
