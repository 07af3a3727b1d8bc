"""
Integration tests for the license API endpoints.
"""

import uuid

import pytest
from django.test import RequestFactory
from django.urls import reverse
from jose import jwt

from api.v1.licenses.views import client_ip
from core.infrastructure.models import AuditLog
from licenses.infrastructure.models import License
from orders.infrastructure.repositories.django_order_repository import DjangoOrderRepository


def url(name, license_key):
    return reverse(f"licenses:{name}", kwargs={"license_key": license_key})


@pytest.mark.django_db
@pytest.mark.integration
class TestClientEndpoints:
    """Integration tests for the endpoints client applications call."""

    def test_validate(self, api_client, db_license):
        raw_key, license = db_license

        response = api_client.get(url("validate-license", raw_key), REMOTE_ADDR="203.0.113.7")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["valid"] is True
        assert data["license_id"] == str(license.id)
        assert "timestamp" in data
        assert "X-RateLimit-Limit" in response
        assert int(response["X-RateLimit-Remaining"]) >= 0

    def test_validate_unknown_key(self, api_client, db):
        response = api_client.get(url("validate-license", "DSK-AAAA-BBBB-CCCC-DDDD"))

        assert response.status_code == 404
        assert response.json()["code"] == "LICENSE_NOT_FOUND"

    def test_activate_deactivate_cycle(self, api_client, db_license):
        raw_key, license = db_license
        machine = {"machine_fingerprint": "fp-laptop", "machine_id": "mid-laptop"}

        activated = api_client.post(url("activate-license", raw_key), machine, format="json")
        repeated = api_client.post(url("activate-license", raw_key), machine, format="json")
        validated = api_client.get(url("validate-license", raw_key), machine)
        deactivated = api_client.post(url("deactivate-license", raw_key), machine, format="json")

        assert activated.status_code == 200
        assert activated.json()["activation_count"] == 1
        assert repeated.json()["already_activated"] is True
        assert repeated.json()["activation_id"] == activated.json()["activation_id"]
        assert validated.status_code == 200
        assert deactivated.status_code == 200
        assert License.objects.get(id=license.id).activation_count == 0

    def test_activation_limit(self, api_client, db_license_factory):
        raw_key, _ = db_license_factory(max_activations=1)
        api_client.post(url("activate-license", raw_key), {"machine_fingerprint": "fp-1"}, format="json")

        response = api_client.post(url("activate-license", raw_key), {"machine_fingerprint": "fp-2"}, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "ACTIVATION_LIMIT_EXCEEDED"

    def test_validate_unbound_machine(self, api_client, db_license):
        raw_key, _ = db_license

        response = api_client.get(url("validate-license", raw_key), {"machine_fingerprint": "fp-other"})

        assert response.status_code == 400
        assert response.json()["code"] == "MACHINE_NOT_ACTIVATED"

    def test_validate_jwt(self, api_client, db_license):
        raw_key, license = db_license

        response = api_client.get(url("validate-license-jwt", raw_key))

        data = response.json()
        assert response.status_code == 200
        assert data["token_type"] == "Bearer"
        claims = jwt.decode(data["token"], "test-jwt-secret", algorithms=["HS256"])
        assert claims["license_id"] == str(license.id)
        assert claims["valid"] is True

    def test_status(self, api_client, db_license):
        raw_key, _ = db_license

        data = api_client.get(url("license-status", raw_key)).json()

        assert data["status"] == "active"
        assert data["license_key"] != raw_key
        assert "license_id" not in data

    def test_batch(self, api_client, db_license):
        raw_key, _ = db_license

        response = api_client.post(
            reverse("licenses:license-batch"),
            {
                "operations": [
                    {"type": "validate", "license_key": raw_key},
                    {"type": "status", "license_key": "DSK-AAAA-BBBB-CCCC-DDDD"},
                    {"type": "explode", "license_key": raw_key},
                ]
            },
            format="json",
        )

        data = response.json()
        assert response.status_code == 200
        assert data["operations_count"] == 3
        assert [line["success"] for line in data["results"]] == [True, False, False]
        assert data["results"][1]["result"]["code"] == "LICENSE_NOT_FOUND"
        assert data["results"][2]["result"]["code"] == "INVALID_OPERATION"
        assert raw_key not in str(data)

    def test_empty_batch(self, api_client, db):
        response = api_client.post(reverse("licenses:license-batch"), {"operations": []}, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_BATCH"

    def test_operations_are_audited_without_raw_values(self, api_client, db_license):
        raw_key, license = db_license

        api_client.post(url("activate-license", raw_key), {"machine_fingerprint": "fp-secret-value"}, format="json")

        record = AuditLog.objects.get(license_id=license.id, action="activate")
        assert record.success is True
        assert raw_key not in record.license_key_partial
        assert "fp-secret-value" not in record.machine_fingerprint_partial


@pytest.mark.django_db
@pytest.mark.integration
class TestAdminEndpoints:
    """Integration tests for the staff-only endpoints."""

    @pytest.mark.parametrize(
        "name", ["suspend-license", "reactivate-license", "revoke-license", "revoke-activation"]
    )
    def test_anonymous_is_forbidden(self, api_client, db_license, name):
        raw_key, _ = db_license

        response = api_client.post(url(name, raw_key), {}, format="json")

        assert response.status_code == 403

    def test_suspend_blocks_validation(self, staff_client, db_license):
        raw_key, _ = db_license

        suspended = staff_client.post(url("suspend-license", raw_key), {"reason": "chargeback"}, format="json")
        validated = staff_client.get(url("validate-license", raw_key))

        assert suspended.status_code == 200
        assert suspended.json()["status"] == "suspended"
        assert validated.status_code == 400
        assert validated.json()["code"] == "LICENSE_SUSPENDED"

    def test_illegal_transition(self, staff_client, db_license):
        raw_key, _ = db_license
        staff_client.post(url("revoke-license", raw_key), {}, format="json")

        response = staff_client.post(url("suspend-license", raw_key), {}, format="json")

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE_TRANSITION"

    def test_admin_reactivates_revoked(self, staff_client, db_license):
        raw_key, _ = db_license
        staff_client.post(url("revoke-license", raw_key), {}, format="json")

        response = staff_client.post(url("reactivate-license", raw_key), {}, format="json")

        assert response.status_code == 200
        assert response.json()["status"] == "active"

    def test_extend(self, staff_client, db_license):
        raw_key, license = db_license

        response = staff_client.post(url("extend-license", raw_key), {"days": 30}, format="json")

        assert response.status_code == 200
        assert License.objects.get(id=license.id).expires_at > license.expires_at

    def test_extend_requires_positive_days(self, staff_client, db_license):
        raw_key, _ = db_license

        response = staff_client.post(url("extend-license", raw_key), {"days": 0}, format="json")

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_history_and_revoke_activation(self, staff_client, api_client, db_license):
        raw_key, _ = db_license
        staff_client.post(url("activate-license", raw_key), {"machine_fingerprint": "fp-1"}, format="json")

        revoked = staff_client.post(
            url("revoke-activation", raw_key), {"reason": "lost laptop"}, format="json"
        )
        history = staff_client.get(url("activation-history", raw_key))

        assert revoked.json()["revoked"] == 1
        entries = history.json()["activations"]
        assert len(entries) == 1
        assert "fp-1" not in str(entries)

    def test_issue_licenses(self, staff_client, db_order):
        DjangoOrderRepository().save_sync(db_order.mark_completed("ch_issue"))
        issue_url = reverse("licenses:issue-licenses", kwargs={"order_id": db_order.id})

        first = staff_client.post(issue_url)
        second = staff_client.post(issue_url)

        assert first.status_code == 201
        raw_key = first.json()["licenses"][0]["license_key"]
        assert raw_key.startswith("DSK-")
        assert second.json()["licenses"][0]["license_key"] != raw_key
        assert License.objects.filter(order_id=db_order.id).count() == 1

    def test_issue_for_pending_order(self, staff_client, db_order):
        response = staff_client.post(reverse("licenses:issue-licenses", kwargs={"order_id": db_order.id}))

        assert response.status_code == 400
        assert response.json()["code"] == "ORDER_NOT_COMPLETED"

    def test_issue_for_unknown_order(self, staff_client, db):
        response = staff_client.post(reverse("licenses:issue-licenses", kwargs={"order_id": uuid.uuid4()}))

        assert response.status_code == 404


@pytest.mark.django_db
@pytest.mark.integration
class TestClientAddress:
    """Tests for how the caller's address is determined."""

    def test_forwarded_header_does_not_reset_ip_limit(self, api_client, db):
        """Test rotating X-Forwarded-For still counts against the socket address."""
        statuses = [
            api_client.post(
                reverse("licenses:license-batch"),
                {"operations": [{"type": "status", "license_key": "DSK-AAAA-BBBB-CCCC-DDDD"}]},
                format="json",
                REMOTE_ADDR="198.51.100.1",
                HTTP_X_FORWARDED_FOR=f"10.0.0.{i}",
            ).status_code
            for i in range(25)
        ]

        assert 429 in statuses
        assert statuses.count(200) <= 20

    def test_garbage_forwarded_header_is_not_stored(self, api_client, db_license):
        raw_key, license = db_license

        response = api_client.post(
            url("activate-license", raw_key),
            {"machine_fingerprint": "fp-1"},
            format="json",
            REMOTE_ADDR="198.51.100.9",
            HTTP_X_FORWARDED_FOR="not-an-ip, <script>",
        )

        assert response.status_code == 200
        assert AuditLog.objects.get(license_id=license.id, action="activate").ip_address == "198.51.100.9"


class TestClientIp:
    """Tests for client_ip."""

    def request(self, forwarded=None, remote="198.51.100.1"):
        extra = {"REMOTE_ADDR": remote}
        if forwarded is not None:
            extra["HTTP_X_FORWARDED_FOR"] = forwarded
        return RequestFactory().get("/", **extra)

    def test_socket_address_without_trusted_proxies(self):
        assert client_ip(self.request("203.0.113.5"), trusted_proxy_count=0) == "198.51.100.1"

    @pytest.mark.parametrize(
        "forwarded,count,expected",
        [
            ("203.0.113.5", 1, "203.0.113.5"),
            ("6.6.6.6, 203.0.113.5", 1, "203.0.113.5"),
            ("6.6.6.6, 203.0.113.5, 10.0.0.2", 2, "203.0.113.5"),
            ("203.0.113.5", 2, "198.51.100.1"),
            ("not-an-ip", 1, "198.51.100.1"),
        ],
    )
    def test_trusted_proxy_hops(self, forwarded, count, expected):
        assert client_ip(self.request(forwarded), trusted_proxy_count=count) == expected

    def test_invalid_socket_address(self):
        assert client_ip(self.request(remote="unix-socket"), trusted_proxy_count=0) is None
