"""
Integration tests for the HTTP API.

Tests the /api/ugc routes end to end through the FastAPI app:
- content list/get/ingest/discover/classify
- inbox create/list/get/update
- rights request/status/resolve/list
- derived-asset submit and poll
- analytics and feedback
- domain error mapping (404 / 409 / 502)
"""
import pytest

from ugcdesk.services import dispatch
from ugcdesk.settings import get_settings

from conftest import drain_background_tasks


def _post_payload(external_id="abc", **overrides):
    payload = {
        "platform": "instagram",
        "external_id": external_id,
        "author_username": "creator",
        "caption": "My new kicks #sneakers",
        "media_url": "https://cdn.example.com/kicks.jpg",
        "hashtags": ["#Sneakers"],
        "likes": 12,
    }
    payload.update(overrides)
    return payload


async def _ingest(client, *posts) -> list[int]:
    resp = await client.post(
        "/api/ugc/content/ingest",
        json={"posts": list(posts) or [_post_payload()], "search_terms": ["sneakers"], "classify": False},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["created_ids"]


# =============================================================================
# Misc
# =============================================================================

class TestPing:
    async def test_ping(self, client):
        resp = await client.get("/ping")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# =============================================================================
# Content
# =============================================================================

class TestContentAPI:
    """Tests for /api/ugc/content and /api/ugc/discover."""

    async def test_ingest_then_read(self, client):
        [content_id] = await _ingest(client)

        resp = await client.get(f"/api/ugc/content/{content_id}")

        assert resp.status_code == 200
        data = resp.json()
        assert data["platform"] == "instagram"
        assert data["hashtags"] == ["sneakers"]
        assert data["rights_status"] == "pending"
        assert data["classification_status"] == "unclassified"

    async def test_ingest_same_post_twice_updates(self, client):
        await _ingest(client, _post_payload("dup"))
        resp = await client.post(
            "/api/ugc/content/ingest",
            json={"posts": [_post_payload("dup", likes=99)], "classify": False},
        )

        body = resp.json()
        assert body["created"] == 0
        assert body["updated"] == 1

    async def test_list_content_paginates(self, client):
        await _ingest(client, _post_payload("a"), _post_payload("b"), _post_payload("c"))

        resp = await client.get("/api/ugc/content", params={"limit": 2})

        body = resp.json()
        assert body["total"] == 3
        assert len(body["items"]) == 2

    async def test_ingest_rejects_negative_counters(self, client):
        resp = await client.post("/api/ugc/content/ingest", json={"posts": [_post_payload(likes=-1)]})
        assert resp.status_code == 422

    async def test_missing_content_is_404(self, client):
        resp = await client.get("/api/ugc/content/9999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Content not found"

    async def test_classify_without_classifier_is_502(self, client):
        [content_id] = await _ingest(client)

        resp = await client.post(f"/api/ugc/content/{content_id}/classify")

        assert resp.status_code == 502

    async def test_discover_is_accepted_immediately(self, client, monkeypatch):
        started = []

        async def _fake_run(**kwargs):
            started.append(kwargs)
            return {}

        monkeypatch.setattr(dispatch, "run_discovery_now", _fake_run)

        resp = await client.post("/api/ugc/discover", json={"hashtags": ["ootd"], "platforms": ["tiktok"], "limit": 5})
        await drain_background_tasks()

        assert resp.status_code == 202
        assert resp.json()["status"] == "accepted"
        assert started == [{"hashtags": ["ootd"], "keywords": [], "platforms": ["tiktok"], "limit": 5}]


# =============================================================================
# Inbox
# =============================================================================

class TestInboxAPI:
    """Tests for /api/ugc/inbox."""

    async def test_promote_list_and_update(self, client):
        [content_id] = await _ingest(client)

        created = await client.post("/api/ugc/inbox", json={"content_id": content_id})
        assert created.status_code == 201
        inbox_id = created.json()["id"]
        assert created.json()["status"] == "new"

        again = await client.post("/api/ugc/inbox", json={"content_id": content_id})
        assert again.status_code == 200
        assert again.json()["id"] == inbox_id

        listed = await client.get("/api/ugc/inbox", params={"status": "new"})
        assert [i["id"] for i in listed.json()] == [inbox_id]
        assert listed.json()[0]["content"]["id"] == content_id

        updated = await client.patch(f"/api/ugc/inbox/{inbox_id}", json={"status": "approved", "notes": "ship it"})
        assert updated.status_code == 200
        assert updated.json()["status"] == "approved"
        assert updated.json()["notes"] == "ship it"

        detail = await client.get(f"/api/ugc/inbox/{inbox_id}")
        assert detail.json()["content"]["platform_content_id"] == "abc"

    async def test_promote_missing_content_is_404(self, client):
        resp = await client.post("/api/ugc/inbox", json={"content_id": 12345})
        assert resp.status_code == 404

    async def test_illegal_transition_is_409(self, client):
        [content_id] = await _ingest(client)
        inbox_id = (await client.post("/api/ugc/inbox", json={"content_id": content_id})).json()["id"]

        resp = await client.patch(f"/api/ugc/inbox/{inbox_id}", json={"status": "published"})

        assert resp.status_code == 409
        assert resp.json()["current"] == "new"

    async def test_unknown_inbox_item_is_404_and_inbox_unchanged(self, client):
        [content_id] = await _ingest(client)
        await client.post("/api/ugc/inbox", json={"content_id": content_id})

        resp = await client.patch("/api/ugc/inbox/4040", json={"status": "approved"})

        assert resp.status_code == 404
        listed = await client.get("/api/ugc/inbox")
        assert len(listed.json()) == 1


# =============================================================================
# Rights
# =============================================================================

class TestRightsAPI:
    """Tests for /api/ugc/content/{id}/rights."""

    async def test_request_and_resolve(self, client):
        [content_id] = await _ingest(client)

        created = await client.post(
            f"/api/ugc/content/{content_id}/rights",
            json={"brand_id": "brand_9", "terms": {"usage": "ad"}, "contact_email": "c@example.com"},
        )
        assert created.status_code == 201
        assert created.json()["status"] == "pending"

        status = await client.get(f"/api/ugc/content/{content_id}/rights")
        assert status.json()["rights_status"] == "requested"

        resolved = await client.post(f"/api/ugc/content/{content_id}/rights/resolve", json={"decision": "declined"})
        assert resolved.status_code == 200
        assert resolved.json()["status"] == "declined"

        content = await client.get(f"/api/ugc/content/{content_id}")
        assert content.json()["rights_status"] == "declined"

        requests = await client.get(f"/api/ugc/content/{content_id}/rights/requests")
        assert [r["status"] for r in requests.json()] == ["declined"]

    async def test_duplicate_request_is_409(self, client):
        [content_id] = await _ingest(client)
        await client.post(f"/api/ugc/content/{content_id}/rights", json={"brand_id": "b"})

        resp = await client.post(f"/api/ugc/content/{content_id}/rights", json={"brand_id": "b"})

        assert resp.status_code == 409

    async def test_resolve_without_request_is_404(self, client):
        [content_id] = await _ingest(client)

        resp = await client.post(f"/api/ugc/content/{content_id}/rights/resolve", json={"decision": "approved"})

        assert resp.status_code == 404

    @pytest.mark.parametrize("decision", ["requested", "whatever"])
    async def test_invalid_decision_is_422(self, client, decision):
        [content_id] = await _ingest(client)

        resp = await client.post(f"/api/ugc/content/{content_id}/rights/resolve", json={"decision": decision})

        assert resp.status_code == 422


# =============================================================================
# Derived assets
# =============================================================================

class TestAssetsAPI:
    """Tests for edit / voiceover / hotspot submission and polling."""

    async def test_voiceover_submit_then_poll(self, client):
        [content_id] = await _ingest(client)

        resp = await client.post(f"/api/ugc/content/{content_id}/voiceovers", json={"script": "Check this out"})
        assert resp.status_code == 202
        job = resp.json()
        assert job["status"] == "processing"

        await drain_background_tasks()
        polled = await client.get(f"/api/ugc/voiceovers/{job['id']}")

        assert polled.json()["status"] == "completed"
        assert polled.json()["audio_url"]
        assert polled.json()["duration"] > 0

    async def test_two_identical_edits_listed_separately(self, client):
        [content_id] = await _ingest(client)
        body = {"changes": {"filter": "vintage"}}

        first = await client.post(f"/api/ugc/content/{content_id}/edits", json=body)
        second = await client.post(f"/api/ugc/content/{content_id}/edits", json=body)
        await drain_background_tasks()

        listed = await client.get(f"/api/ugc/content/{content_id}/edits")
        ids = {e["id"] for e in listed.json()}
        assert ids == {first.json()["id"], second.json()["id"]}
        assert all(e["status"] == "completed" for e in listed.json())

    async def test_hotspots_submit_then_poll(self, client):
        [content_id] = await _ingest(client)

        job = (await client.post(f"/api/ugc/content/{content_id}/hotspots")).json()
        await drain_background_tasks()
        polled = await client.get(f"/api/ugc/hotspots/{job['id']}")

        assert polled.json()["status"] == "completed"
        assert len(polled.json()["hotspots"]) == 2

    async def test_submit_for_missing_content_is_404(self, client):
        resp = await client.post("/api/ugc/content/777/edits", json={})
        assert resp.status_code == 404

    async def test_unknown_job_is_404(self, client):
        resp = await client.get("/api/ugc/edits/777")
        assert resp.status_code == 404


# =============================================================================
# Analytics and feedback
# =============================================================================

class TestAnalyticsAPI:
    async def test_analytics_summary(self, client):
        await _ingest(client, _post_payload("x"), _post_payload("y", platform="tiktok"))

        resp = await client.get("/api/ugc/analytics")

        assert resp.status_code == 200
        body = resp.json()
        assert body["totals"]["content"] == 2
        assert body["content_by_platform"] == {"instagram": 1, "tiktok": 1}

    async def test_analytics_platform_filter(self, client):
        await _ingest(client, _post_payload("x"), _post_payload("y", platform="tiktok"))

        resp = await client.get("/api/ugc/analytics", params={"platform": "tiktok"})

        assert resp.json()["totals"]["content"] == 1

    async def test_feedback_roundtrip(self, client):
        resp = await client.post("/api/ugc/feedback", json={"rating": "up", "comment": "nice", "context": {"tab": "inbox"}})
        assert resp.status_code == 201

        listed = await client.get("/api/ugc/feedback")
        assert listed.json()[0]["comment"] == "nice"

    async def test_feedback_bad_rating_is_422(self, client):
        resp = await client.post("/api/ugc/feedback", json={"rating": "sideways"})
        assert resp.status_code == 422

    async def test_feedback_rating_is_case_insensitive(self, client):
        resp = await client.post("/api/ugc/feedback", json={"rating": " Down "})
        assert resp.status_code == 201
        assert resp.json()["rating"] == "down"


class TestFilesAPI:
    async def test_voiceover_file_is_served(self, client, tmp_path, monkeypatch):
        monkeypatch.setattr(get_settings(), "media_dir", str(tmp_path))
        (tmp_path / "voiceovers").mkdir()
        (tmp_path / "voiceovers" / "7.mp3").write_bytes(b"ID3audio")

        resp = await client.get("/files/voiceovers/7.mp3")

        assert resp.status_code == 200
        assert resp.content == b"ID3audio"
        assert resp.headers["content-type"] == "audio/mpeg"

    @pytest.mark.parametrize("filename", ["8.mp3", "notes.txt", "7.mp3.bak"])
    async def test_missing_or_disallowed_file_is_404(self, client, tmp_path, monkeypatch, filename):
        monkeypatch.setattr(get_settings(), "media_dir", str(tmp_path))

        resp = await client.get(f"/files/voiceovers/{filename}")

        assert resp.status_code == 404
