"""
tests/integration/test_notifications.py — GET /notifications.

The feed is the caller's own audit events, newest first, capped at 20.
"""

from __future__ import annotations

from conftest import auth_headers, make_work, register, request_license


def _feed(client, token: str) -> dict:
    resp = client.get("/api/v1/notifications", headers=auth_headers(token))
    assert resp.status_code == 200
    return resp.get_json()["data"]


class TestNotifications:

    def test_requires_token(self, client):
        resp = client.get("/api/v1/notifications")
        assert resp.status_code == 401

    def test_empty_feed(self, client):
        alice = register(client, "alice")
        assert _feed(client, alice["access_token"]) == {"items": [], "unreadCount": 0}

    def test_feed_lists_own_events_newest_first(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob", role="licensee")
        work = make_work(client, alice["access_token"], serial="000777")
        request_id = request_license(client, bob["access_token"], work["id"]).get_json()["data"]["id"]
        client.post(
            f"/api/v1/licenses/requests/{request_id}/approve",
            headers=auth_headers(alice["access_token"]),
        )

        feed = _feed(client, alice["access_token"])
        assert [item["kind"] for item in feed["items"]] == ["license.approve", "work.register"]
        assert feed["unreadCount"] == 2
        assert feed["items"][1]["message"] == f"Work {work['iccCode']} registered"
        assert feed["items"][1]["meta"]["work_id"] == work["id"]
        assert feed["items"][0]["createdAt"] is not None

        bob_feed = _feed(client, bob["access_token"])
        assert [item["kind"] for item in bob_feed["items"]] == ["license.request"]
        assert bob_feed["items"][0]["message"] == f"License requested for work {work['id']}"

    def test_feed_is_capped_at_twenty(self, client):
        alice = register(client, "alice")
        for n in range(21):
            make_work(client, alice["access_token"], title=f"Work {n}", serial=f"{n:06d}")

        feed = _feed(client, alice["access_token"])
        assert len(feed["items"]) == 20
        assert feed["unreadCount"] == 20
        # The oldest registration (serial 000000) is the one left out.
        assert all(not item["message"].endswith("-000000 registered") for item in feed["items"])
