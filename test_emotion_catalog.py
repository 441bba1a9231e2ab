#!/usr/bin/env python3
"""
Test the emotion catalog: uniqueness, renames, links and default seeding.
"""

import os
import tempfile

import pytest

from database import Database
from emotion_catalog import DuplicateEmotionError, EmotionCatalog, validate_emotion
from models import Emotion
from mood_repository import MoodRepository
from schema_migration import prepare_database


class TestEmotionCatalog:
    """Test suite for the emotions table and mood_emotions links"""

    def setup_method(self):
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()
        self.db_path = self.temp_db.name
        self.db = Database(self.db_path)
        prepare_database(self.db)
        self.catalog = EmotionCatalog(self.db)
        self.repository = MoodRepository(self.db, self.catalog, timezone_name="UTC")

    def teardown_method(self):
        self.db.close()
        if os.path.exists(self.db_path):
            os.unlink(self.db_path)

    def test_defaults_are_listed_alphabetically(self):
        assert self.catalog.get_all() == [
            Emotion("Anxious", "negative"),
            Emotion("Calm", "positive"),
            Emotion("Excited", "positive"),
            Emotion("Happy", "positive"),
            Emotion("Sad", "negative"),
            Emotion("Stressed", "negative"),
        ]

    def test_add_trims_and_stores(self):
        self.catalog.add(Emotion("  Focused ", "positive"))
        assert Emotion("Focused", "positive") in self.catalog.get_all()

    def test_add_rejects_case_insensitive_duplicate(self):
        with pytest.raises(DuplicateEmotionError) as exc_info:
            self.catalog.add(Emotion("happy", "neutral"))
        assert exc_info.value.name == "happy"
        assert len(self.catalog.get_all()) == 6

    def test_validate_emotion_rejects_bad_input(self):
        with pytest.raises(ValueError):
            validate_emotion(Emotion("   ", "positive"))
        with pytest.raises(ValueError):
            validate_emotion(Emotion("Meh", "lukewarm"))

    def test_rename_updates_name_and_category(self):
        changed = self.catalog.rename("calm", Emotion("Peaceful", "neutral"))

        assert changed == 1
        names = {e.name: e.category for e in self.catalog.get_all()}
        assert "Calm" not in names
        assert names["Peaceful"] == "neutral"

    def test_rename_to_existing_name_fails(self):
        with pytest.raises(DuplicateEmotionError):
            self.catalog.rename("Calm", Emotion("SAD", "negative"))
        assert Emotion("Calm", "positive") in self.catalog.get_all()

    def test_rename_same_emotion_changes_case(self):
        assert self.catalog.rename("Calm", Emotion("calm", "positive")) == 1
        assert Emotion("calm", "positive") in self.catalog.get_all()

    def test_delete_returns_rows_removed(self):
        assert self.catalog.delete("SAD") == 1
        assert self.catalog.delete("Sad") == 0

    def test_link_entry_replaces_links(self):
        entry = self.repository.insert(6, emotions=[Emotion("Happy", "positive"), Emotion("Calm", "positive")])
        assert [e.name for e in self.catalog.emotions_for_entry(entry.id)] == ["Calm", "Happy"]
        assert self.catalog.has_links()

        with self.db.transaction() as conn:
            self.catalog.link_entry(conn, entry.id, [Emotion("Tired", "negative")])
        assert self.catalog.emotions_for_entry(entry.id) == [Emotion("Tired", "negative")]

    def test_link_entry_with_empty_list_clears_links(self):
        entry = self.repository.insert(4, emotions=[Emotion("Sad", "negative")])

        with self.db.transaction() as conn:
            self.catalog.link_entry(conn, entry.id, [])

        assert self.catalog.emotions_for_entry(entry.id) == []
        assert not self.catalog.has_links()

    def test_link_entry_overwrites_catalog_category(self):
        entry = self.repository.insert(3, emotions=[Emotion("Excited", "neutral")])
        assert Emotion("Excited", "neutral") in self.catalog.get_all()
        assert self.catalog.emotions_for_entry(entry.id) == [Emotion("Excited", "neutral")]

    def test_upsert_category_creates_missing_emotion(self):
        self.catalog.upsert_category("Grateful", "positive")
        self.catalog.upsert_category("Happy", "neutral")

        categories = {e.name: e.category for e in self.catalog.get_all()}
        assert categories["Grateful"] == "positive"
        assert categories["Happy"] == "neutral"

    def test_ensure_defaults_keeps_existing_rows(self):
        self.catalog.upsert_category("Happy", "neutral")
        assert self.catalog.ensure_defaults() == 0
        assert Emotion("Happy", "neutral") in self.catalog.get_all()
