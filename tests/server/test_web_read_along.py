"""Tests for read-along endpoints."""

from audiolearn.web.schemas import MAX_TEXT_CONTENT

SEGMENTS = [
    {"segment_index": 0, "segment_type": "sentence", "text": "Risk is uncertainty.", "start_time": 0, "end_time": 5},
    {"segment_index": 1, "segment_type": "sentence", "text": "It can be managed.", "start_time": 5, "end_time": 10.5},
]


class TestGetReadAlong:
    """Tests for GET /api/read-along/{chapter_id}."""

    def test_chapter_without_text(self, client, catalog):
        chapter_id = catalog["chapters"][0].id
        data = client.get(f"/api/read-along/{chapter_id}").json()
        assert data == {
            "chapter_id": chapter_id,
            "text_content": "",
            "has_read_along": False,
            "segments": [],
        }

    def test_unknown_chapter(self, client, db_path):
        assert client.get("/api/read-along/missing").status_code == 404

    def test_requires_session(self, anon_client, catalog):
        chapter_id = catalog["chapters"][0].id
        assert anon_client.get(f"/api/read-along/{chapter_id}").status_code == 401


class TestPutReadAlong:
    """Tests for PUT /api/read-along/{chapter_id}."""

    def test_admin_replaces_segments(self, admin_client, client, catalog):
        chapter_id = catalog["chapters"][0].id
        body = {"text_content": "Risk is uncertainty. It can be managed.", "segments": SEGMENTS}

        response = admin_client.put(f"/api/read-along/{chapter_id}", json=body)
        assert response.status_code == 200
        assert response.json()["has_read_along"] is True

        data = client.get(f"/api/read-along/{chapter_id}").json()
        assert [s["text"] for s in data["segments"]] == ["Risk is uncertainty.", "It can be managed."]
        assert data["segments"][1]["end_time"] == 10.5

        chapter = client.get(f"/api/chapters/{chapter_id}").json()
        assert chapter["has_read_along"] is True

    def test_second_put_replaces_first(self, admin_client, catalog):
        chapter_id = catalog["chapters"][0].id
        admin_client.put(
            f"/api/read-along/{chapter_id}",
            json={"text_content": "old", "segments": SEGMENTS},
        )
        response = admin_client.put(
            f"/api/read-along/{chapter_id}",
            json={"text_content": "new", "segments": SEGMENTS[:1]},
        )
        data = response.json()
        assert data["text_content"] == "new"
        assert len(data["segments"]) == 1

    def test_learner_forbidden(self, client, catalog):
        chapter_id = catalog["chapters"][0].id
        response = client.put(
            f"/api/read-along/{chapter_id}", json={"text_content": "x", "segments": []}
        )
        assert response.status_code == 403

    def test_inverted_segment_rejected(self, admin_client, catalog):
        chapter_id = catalog["chapters"][0].id
        bad = dict(SEGMENTS[0], start_time=8, end_time=3)
        response = admin_client.put(
            f"/api/read-along/{chapter_id}", json={"text_content": "x", "segments": [bad]}
        )
        assert response.status_code == 400

    def test_oversized_text_rejected(self, admin_client, catalog):
        chapter_id = catalog["chapters"][0].id
        response = admin_client.put(
            f"/api/read-along/{chapter_id}",
            json={"text_content": "a" * (MAX_TEXT_CONTENT + 1), "segments": []},
        )
        assert response.status_code == 422

    def test_unknown_segment_type_rejected(self, admin_client, catalog):
        chapter_id = catalog["chapters"][0].id
        bad = dict(SEGMENTS[0], segment_type="line")
        response = admin_client.put(
            f"/api/read-along/{chapter_id}", json={"text_content": "x", "segments": [bad]}
        )
        assert response.status_code == 422

    def test_unknown_chapter(self, admin_client, db_path):
        response = admin_client.put(
            "/api/read-along/missing", json={"text_content": "x", "segments": []}
        )
        assert response.status_code == 404
