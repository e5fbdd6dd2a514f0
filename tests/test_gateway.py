from types import SimpleNamespace

import httpx
import pytest
import requests
from razorpay.errors import BadRequestError

from prolance.applications import scoring
from prolance.payments.gateway import (
    GatewayError, RazorpayProvider, compute_signature, get_payment_provider, signatures_match
)


@pytest.fixture
def provider():
    return RazorpayProvider(key_id="rzp_test_1", key_secret="s3cret", webhook_secret="hook-s3cret")


def test_payment_signature(provider):
    signature = compute_signature("s3cret", b"order_1|pay_1")
    assert provider.verify_payment_signature("order_1", "pay_1", signature)
    assert not provider.verify_payment_signature("order_1", "pay_2", signature)
    assert not provider.verify_payment_signature("order_1", "pay_1", None)


def test_webhook_signature_covers_raw_body(provider):
    body = b'{"event": "payment.captured"}'
    signature = compute_signature("hook-s3cret", body)
    assert provider.verify_webhook_signature(body, signature)
    assert not provider.verify_webhook_signature(b'{"event":"payment.captured"}', signature)


def test_signatures_match():
    assert signatures_match("abc", "abc")
    assert not signatures_match("abc", "")


def test_provider_factory():
    assert isinstance(get_payment_provider("razorpay"), RazorpayProvider)
    with pytest.raises(ValueError):
        get_payment_provider("paypal")


class FakeResource:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.error:
            raise self.error
        return self.result


def sdk_client(create=None, fetch=None):
    return SimpleNamespace(
        order=SimpleNamespace(create=create or FakeResource({"id": "order_1"})),
        payment=SimpleNamespace(fetch=fetch or FakeResource({"id": "pay_1", "status": "captured"})),
    )


def test_create_order_sends_paise_to_sdk():
    create = FakeResource({"id": "order_9", "amount": 123450, "status": "created"})
    provider = RazorpayProvider(key_id="rzp_test_1", key_secret="s3cret", client=sdk_client(create=create))

    order = provider.create_order(1234.5, "INR", "prj_1_abc", {"escrow": "true"})
    assert order["id"] == "order_9"
    [(_, kwargs)] = create.calls
    assert kwargs["data"] == {"amount": 123450, "currency": "INR", "receipt": "prj_1_abc",
                              "notes": {"escrow": "true"}}


def test_rejected_order_raises_gateway_error():
    create = FakeResource(error=BadRequestError("The amount must be atleast INR 1.00"))
    provider = RazorpayProvider(client=sdk_client(create=create))
    with pytest.raises(GatewayError, match="rejected"):
        provider.create_order(0.001, "INR", "prj_1_abc")


def test_unreachable_gateway_raises_gateway_error():
    fetch = FakeResource(error=requests.ConnectionError("connection refused"))
    provider = RazorpayProvider(client=sdk_client(fetch=fetch))
    with pytest.raises(GatewayError, match="Cannot reach payment gateway"):
        provider.fetch_payment("pay_1")
    assert fetch.calls == [(("pay_1",), {})]


def test_score_application_clamps_score(monkeypatch):
    monkeypatch.setattr(scoring, "SCORING_SERVICE_URL", "http://scoring.local/")
    calls = []

    def fake_post(url, json, timeout):
        calls.append(url)
        return httpx.Response(
            200,
            json={"score": 140, "analysis": {"relevance": "high", "summary": "Strong fit", "extra": "dropped"}},
            request=httpx.Request("POST", url),
        )

    monkeypatch.setattr(scoring.httpx, "post", fake_post)
    result = scoring.score_application("API", "Build an API", ["Python"], "I build APIs")

    assert calls == ["http://scoring.local/score-application"]
    assert result["ai_score"] == 100
    assert result["ai_analysis"]["relevance"] == "high"
    assert result["ai_analysis"]["clarity"] is None
    assert "extra" not in result["ai_analysis"]


def test_scoring_task_is_disabled_without_url(monkeypatch):
    monkeypatch.setattr(scoring, "SCORING_SERVICE_URL", "")

    def fail(*args, **kwargs):
        raise AssertionError("scoring service must not be called")

    monkeypatch.setattr(scoring.httpx, "post", fail)
    scoring.score_application_task(1, "API", "Build an API", ["Python"], "I build APIs")
