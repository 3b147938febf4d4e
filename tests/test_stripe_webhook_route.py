"""
Stripe webhook route tests.

Verifies status codes and error shapes at the HTTP boundary; event
semantics are covered in test_billing_service.py.
"""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from clixen.models.profile import Profile
from conftest import sign_payload, stripe_event


def _post(client, body: bytes, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post("/webhooks/stripe", content=body, headers=headers)


class TestStripeWebhookRoute:

    def test_valid_event_is_acknowledged(self, client, make_profile, db_session):
        profile = make_profile(email="buyer@example.com")
        body = stripe_event("checkout.session.completed", {
            "customer_email": "buyer@example.com",
            "amount_total": 2900,
        })

        response = _post(client, body, sign_payload(body))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        db_session.expire_all()
        assert db_session.get(Profile, profile.id).tier == "pro"

    def test_missing_signature_returns_400(self, client):
        body = stripe_event("checkout.session.completed", {"amount_total": 900})

        response = _post(client, body)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
        assert "X-Correlation-ID" in response.headers

    def test_bad_signature_returns_400(self, client):
        body = stripe_event("checkout.session.completed", {"amount_total": 900})

        response = _post(client, body, "t=1,v1=0000")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"

    def test_signed_garbage_returns_invalid_payload(self, client):
        body = b"{not-json"

        response = _post(client, body, sign_payload(body))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"

    def test_duplicate_delivery_is_acknowledged(self, client):
        body = stripe_event("invoice.payment_failed", {}, event_id="evt_twice")

        first = _post(client, body, sign_payload(body))
        second = _post(client, body, sign_payload(body))

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == {"received": True}

    def test_unknown_event_type_is_acknowledged(self, client):
        body = stripe_event("customer.created", {"id": "cus_1"})

        assert _post(client, body, sign_payload(body)).status_code == 200

    def test_seen_record_failure_returns_503(self, client):
        body = stripe_event("invoice.payment_failed", {}, event_id="evt_db_down")

        with patch(
            "clixen.services.billing_event_log.BillingEventLog.mark_seen",
            side_effect=OperationalError("INSERT", {}, Exception("locked")),
        ):
            response = _post(client, body, sign_payload(body))

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"
