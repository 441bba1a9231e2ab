#!/usr/bin/env python3
"""
End-to-end tests of the FastAPI routes against a temporary database.
"""

import json
import os
import tempfile

from fastapi.testclient import TestClient

from database import reset_database
from main import app


class TestMoodApi:
    """Test the HTTP surface with a fresh database per test"""

    def setup_method(self):
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()
        self.db_path = self.temp_db.name
        self.previous_path = os.environ.get("DATABASE_PATH")
        os.environ["DATABASE_PATH"] = self.db_path
        reset_database()

        # Entering the client runs the startup hook, which prepares the schema
        self.client = TestClient(app)
        self.client.__enter__()

    def teardown_method(self):
        self.client.__exit__(None, None, None)
        reset_database()
        if self.previous_path is None:
            os.environ.pop("DATABASE_PATH", None)
        else:
            os.environ["DATABASE_PATH"] = self.previous_path
        if os.path.exists(self.db_path):
            os.unlink(self.db_path)

    def _create_mood(self, **fields):
        payload = {"mood": 6}
        payload.update(fields)
        response = self.client.post("/api/moods", json=payload)
        assert response.status_code == 201
        return response.json()["mood"]

    def test_health(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["storage"]["path"] == self.db_path
        assert data["mood_count"] == 0

    def test_create_and_fetch_mood(self):
        mood = self._create_mood(
            note="good day",
            emotions=[{"name": "Happy", "category": "positive"}],
            energy=7,
            location={"latitude": 48.85, "longitude": 2.35},
        )

        response = self.client.get(f"/api/moods/{mood['id']}")
        assert response.status_code == 200
        stored = response.json()["mood"]
        assert stored["note"] == "good day"
        assert stored["emotions"] == [{"name": "Happy", "category": "positive"}]
        assert stored["location"] == {"latitude": 48.85, "longitude": 2.35}

        listing = self.client.get("/api/moods").json()
        assert listing["count"] == 1

    def test_create_invalid_mood_lists_field_errors(self):
        response = self.client.post("/api/moods", json={"mood": 11, "energy": "high"})

        assert response.status_code == 422
        fields = [error["field"] for error in response.json()["detail"]]
        assert fields == ["mood", "energy"]
        assert self.client.get("/api/moods/count").json() == {"count": 0}

    def test_patch_updates_only_sent_fields(self):
        mood = self._create_mood(note="before", energy=3)

        response = self.client.patch(f"/api/moods/{mood['id']}", json={"note": "after"})

        assert response.status_code == 200
        updated = response.json()["mood"]
        assert updated["note"] == "after"
        assert updated["mood"] == 6
        assert updated["energy"] == 3

    def test_patch_errors(self):
        mood = self._create_mood()
        assert self.client.patch(f"/api/moods/{mood['id']}", json={"mood": 15}).status_code == 400
        assert self.client.patch("/api/moods/999", json={"note": "x"}).status_code == 404

    def test_delete_mood(self):
        mood = self._create_mood()
        assert self.client.delete(f"/api/moods/{mood['id']}").status_code == 200
        assert self.client.delete(f"/api/moods/{mood['id']}").status_code == 404
        assert self.client.get(f"/api/moods/{mood['id']}").status_code == 404

    def test_pagination_and_today(self):
        for value in (2, 4, 6):
            self._create_mood(mood=value)

        page = self.client.get("/api/moods/page", params={"limit": 2}).json()
        assert page["total"] == 3
        assert page["has_more"] is True
        assert len(page["moods"]) == 2

        assert self.client.get("/api/moods/page", params={"limit": -1}).status_code == 400
        assert self.client.get("/api/moods/logged-today", params={"timezone": "UTC"}).json() == {"logged_today": True}

    def test_unknown_preset_rejected(self):
        assert self.client.get("/api/moods", params={"preset": "year"}).status_code == 400
        assert self.client.get("/api/moods", params={"preset": "week"}).status_code == 200

    def test_emotion_catalog_routes(self):
        emotions = self.client.get("/api/emotions").json()
        assert emotions["count"] == 6

        created = self.client.post("/api/emotions", json={"name": "Focused", "category": "positive"})
        assert created.status_code == 201
        assert self.client.post("/api/emotions", json={"name": "focused"}).status_code == 409
        assert self.client.post("/api/emotions", json={"name": "Meh", "category": "lukewarm"}).status_code == 400

    def test_emotion_rewrites(self):
        mood = self._create_mood(emotions=[{"name": "Calm", "category": "positive"}])

        response = self.client.put("/api/emotions/Calm/category", json={"category": "neutral"})
        assert response.json()["updated"] == 1

        response = self.client.put("/api/emotions/Calm", json={"name": "Peaceful", "category": "neutral"})
        assert response.status_code == 200
        linked = self.client.get("/api/emotions/Peaceful/moods").json()["moods"]
        assert [m["id"] for m in linked] == [mood["id"]]

        conflict = self.client.put("/api/emotions/Peaceful", json={"name": "Happy", "category": "positive"})
        assert conflict.status_code == 409

        assert self.client.get("/api/emotions/in-use").json()["names"] == ["Peaceful"]
        assert self.client.delete("/api/emotions/Peaceful").json()["updated"] == 1
        assert self.client.get(f"/api/moods/{mood['id']}").json()["mood"]["emotions"] == []

    def test_import_then_export(self):
        payload = json.dumps([
            {"mood": 15},
            {"mood": 4, "notes": "imported", "timestamp": 1700000000000, "context": ["home"]},
        ])

        response = self.client.post("/api/import", content=payload)
        assert response.status_code == 200
        assert response.json()["imported"] == 1
        assert response.json()["errors"] == ["Entry 0: Mood value 15 is out of range (0-10)"]

        exported = self.client.get("/api/export").json()
        assert exported == [{
            "timestamp": 1700000000000,
            "mood": 4,
            "emotions": [],
            "context": ["home"],
            "energy": None,
            "notes": "imported",
        }]

    def test_legacy_import_route(self):
        payload = json.dumps([{"mood": 11, "emotions": ["Sad"]}])

        response = self.client.post("/api/import/legacy", content=payload)

        assert response.json()["imported"] == 1
        mood = self.client.get("/api/moods").json()["moods"][0]
        assert mood["mood"] == 10
        assert mood["emotions"] == [{"name": "Sad", "category": "negative"}]

    def test_malformed_import_rejected(self):
        assert self.client.post("/api/import", content="not json").status_code == 400
        assert self.client.post("/api/import/legacy", content='{"mood": 1}').status_code == 400
