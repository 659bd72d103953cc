"""
tests/integration/test_works.py — Works, license requests and agreements.

  POST /works                          → 201
  GET  /works/:id                      → 200
  POST /licenses/requests              → 201
  POST /licenses/requests/:id/approve  → 200 {agreementId, status}
  POST /licenses/requests/:id/reject   → 200
"""

from __future__ import annotations

import re

from conftest import auth_headers, make_work, register, request_license


class TestWorks:

    def test_register_work_generates_serial(self, client):
        alice = register(client, "alice")
        work = make_work(client, alice["access_token"], country="jp", registrant="crg")
        assert re.fullmatch(r"JP-CRG-\d{6}", work["iccCode"])
        assert work["ownerId"] == alice["user"]["id"]

    def test_explicit_serial_is_kept(self, client):
        alice = register(client, "alice")
        work = make_work(client, alice["access_token"], serial="000123")
        assert work["iccCode"] == "JP-CRG-000123"

    def test_duplicate_icc_code_returns_409(self, client):
        alice = register(client, "alice")
        make_work(client, alice["access_token"], serial="000123")
        resp = client.post(
            "/api/v1/works",
            json={"title": "Second", "icc": {"country": "JP", "registrant": "CRG", "serial": "000123"}},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DUPLICATE_ICC_CODE"

    def test_bad_registrant_returns_invalid_icc_code(self, client):
        alice = register(client, "alice")
        resp = client.post(
            "/api/v1/works",
            json={"title": "Bad", "icc": {"country": "JP", "registrant": "C!"}},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "INVALID_ICC_CODE"
        assert error["field"] == "icc.registrant"

    def test_get_missing_work_is_404(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/v1/works/999999", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "WORK_NOT_FOUND"


class TestLicenses:

    def _setup(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob", role="licensee")
        work = make_work(client, alice["access_token"])
        return alice, bob, work

    def test_request_then_approve_creates_agreement(self, client):
        alice, bob, work = self._setup(client)
        resp = request_license(client, bob["access_token"], work["id"], feeAmount="50000.00")
        assert resp.status_code == 201
        lr = resp.get_json()["data"]
        assert lr["status"] == "pending"
        assert lr["feeAmount"] == "50000.00"

        resp = client.post(
            f"/api/v1/licenses/requests/{lr['id']}/approve",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["status"] == "approved"
        assert isinstance(data["agreementId"], int)

    def test_owner_cannot_license_own_work(self, client):
        alice, _, work = self._setup(client)
        resp = request_license(client, alice["access_token"], work["id"])
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "SELF_LICENSE"

    def test_only_owner_can_approve(self, client):
        _, bob, work = self._setup(client)
        lr = request_license(client, bob["access_token"], work["id"]).get_json()["data"]
        resp = client.post(
            f"/api/v1/licenses/requests/{lr['id']}/approve",
            headers=auth_headers(bob["access_token"]),
        )
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_second_decision_is_409(self, client):
        alice, bob, work = self._setup(client)
        lr = request_license(client, bob["access_token"], work["id"]).get_json()["data"]
        headers = auth_headers(alice["access_token"])

        assert client.post(f"/api/v1/licenses/requests/{lr['id']}/reject", headers=headers).status_code == 200
        resp = client.post(f"/api/v1/licenses/requests/{lr['id']}/approve", headers=headers)
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "LICENSE_ALREADY_PROCESSED"

    def test_duration_out_of_range_is_400(self, client):
        _, bob, work = self._setup(client)
        resp = request_license(client, bob["access_token"], work["id"], durationDays=400)
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "durationDays"

    def test_unknown_request_is_404(self, client):
        alice, _, _ = self._setup(client)
        resp = client.post(
            "/api/v1/licenses/requests/999999/approve",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "LICENSE_REQUEST_NOT_FOUND"
