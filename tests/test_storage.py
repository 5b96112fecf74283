"""Tests for the SQLite repository and JSON word packs."""

import json
import shutil
import sqlite3
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from vocab_drill.core.models import Category, Example, MasteryRule, ProgressState, VocabularyItem
from vocab_drill.core.repository import RepositoryError
from vocab_drill.storage.database import Database
from vocab_drill.storage.files import WordPackStorage


def item(word, category=Category.GENERAL, sentences=("A sentence.",), **kwargs):
    return VocabularyItem(
        id=0,
        word=word,
        category=category,
        examples=[Example(vocabulary_id=0, sentences=list(sentences), vietnamese="Mot cau")],
        **kwargs,
    )


class TestDatabase:
    """Test database operations with temp SQLite file."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "test.db"
        self.db = Database(self.db_path)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_add_and_get(self):
        item_id = self.db.add_vocabulary(item("  Rain  ", grammar="noun"))
        loaded = self.db.get_item_by_id(item_id)
        assert loaded.word == "Rain"
        assert loaded.grammar == "noun"
        assert loaded.examples[0].sentences == ["A sentence."]
        assert loaded.examples[0].vietnamese == "Mot cau"
        assert loaded.created_at is not None
        assert loaded.last_studied_at is None

    def test_empty_word_rejected(self):
        with pytest.raises(ValueError):
            self.db.add_vocabulary(item("   "))

    def test_duplicate_word_rejected(self):
        self.db.add_vocabulary(item("Tired"))
        with pytest.raises(ValueError):
            self.db.add_vocabulary(item(" tired "))
        assert len(self.db.get_all_items_with_examples()) == 1

    def test_get_missing(self):
        assert self.db.get_item_by_id(404) is None

    def test_get_by_word_ignores_case(self):
        self.db.add_vocabulary(item("Umbrella"))
        assert self.db.get_vocabulary_by_word(" umbrella ").word == "Umbrella"
        assert self.db.get_vocabulary_by_word("parasol") is None

    def test_items_by_category(self):
        self.db.add_vocabulary(item("one"))
        self.db.add_vocabulary(item("two", category=Category.TOEIC))
        assert [i.word for i in self.db.get_all_items_with_examples(Category.TOEIC)] == ["two"]
        assert len(self.db.get_all_items_with_examples()) == 2

    def test_add_example(self):
        item_id = self.db.add_vocabulary(item("walk"))
        self.db.add_example(item_id, Example(vocabulary_id=item_id, sentences=["I walk."]))
        assert len(self.db.get_item_by_id(item_id).examples) == 2

    def test_delete_cascades(self):
        item_id = self.db.add_vocabulary(item("gone"))
        assert self.db.delete_vocabulary(item_id)
        assert not self.db.delete_vocabulary(item_id)
        with sqlite3.connect(self.db_path) as conn:
            count = conn.execute("SELECT COUNT(*) FROM examples").fetchone()[0]
        assert count == 0

    def test_update_attempt_stats(self):
        item_id = self.db.add_vocabulary(item("study"))
        studied = datetime(2024, 5, 1, 9, 30)
        self.db.update_attempt_stats(item_id, 3, 2, 2 / 3, [True, False, True], studied)
        loaded = self.db.get_item_by_id(item_id)
        assert loaded.total_attempts == 3
        assert loaded.correct_attempts == 2
        assert loaded.last_10_attempts == [True, False, True]
        assert loaded.last_studied_at == studied

    def test_update_missing_item_fails(self):
        with pytest.raises(RepositoryError):
            self.db.update_attempt_stats(404, 1, 1, 1.0, [True], None)

    def test_malformed_history_starts_fresh(self):
        item_id = self.db.add_vocabulary(item("broken"))
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("UPDATE vocabularies SET last10_attempts = 'oops' WHERE id = ?", (item_id,))
        assert self.db.get_item_by_id(item_id).last_10_attempts == []

    def test_queue_ids(self):
        assert self.db.load_queue_ids() == []
        self.db.save_queue_ids([3, 1, 2])
        assert self.db.load_queue_ids() == [3, 1, 2]
        self.db.save_queue_ids([])
        assert self.db.load_queue_ids() == []

    def test_progress(self):
        assert self.db.load_progress() is None
        start = datetime(2024, 5, 1, 8, 0)
        self.db.save_progress(ProgressState(session_start_time=start, words_learned=2))
        self.db.save_progress(ProgressState(session_start_time=datetime(2030, 1, 1), words_learned=5))
        state = self.db.load_progress()
        assert state.session_start_time == start
        assert state.words_learned == 5

    def test_cleanup_duplicates_keeps_most_attempted(self):
        self.db.add_vocabulary(item("Apple"))
        with sqlite3.connect(self.db_path) as conn:
            conn.executemany("""
                INSERT INTO vocabularies (word, total_attempts, correct_attempts, created_at)
                VALUES (?, ?, ?, '2024-05-01T12:00:00')
            """, [("apple ", 4, 2), ("APPLE", 1, 1)])
            keep = conn.execute(
                "SELECT id FROM vocabularies WHERE word = 'apple '"
            ).fetchone()[0]
        self.db.add_vocabulary(item("pear"))

        assert self.db.cleanup_duplicates() == 2

        words = self.db.get_all_items_with_examples()
        assert len(words) == 2
        assert self.db.get_vocabulary_by_word("apple").id == keep

    def test_category_stats(self):
        self.db.add_vocabulary(item("a", total_attempts=10, correct_attempts=8))
        self.db.add_vocabulary(item("b", total_attempts=2, correct_attempts=0))
        self.db.add_vocabulary(item("c", category=Category.VSTEP))
        stats = self.db.get_category_stats()
        assert stats["GENERAL"] == {"total": 2, "studied": 2, "mastered": 1}
        assert stats["VSTEP"] == {"total": 1, "studied": 0, "mastered": 0}
        assert stats["WRITING"]["total"] == 0

    def test_category_stats_rolling_window(self):
        self.db.add_vocabulary(item("a", total_attempts=7, correct_attempts=7,
                                    last_10_attempts=[True] * 7))
        assert self.db.get_category_stats()["GENERAL"]["mastered"] == 0
        rolling = self.db.get_category_stats(MasteryRule.ROLLING_WINDOW)
        assert rolling["GENERAL"]["mastered"] == 1

    def test_update_vocabulary_keeps_stats(self):
        item_id = self.db.add_vocabulary(item("colour", total_attempts=3, correct_attempts=2))
        assert self.db.update_vocabulary(item_id, " color ", Category.WRITING, "noun")
        loaded = self.db.get_item_by_id(item_id)
        assert loaded.word == "color"
        assert loaded.category == Category.WRITING
        assert loaded.grammar == "noun"
        assert loaded.total_attempts == 3
        assert not self.db.update_vocabulary(404, "ghost", Category.GENERAL)

    def test_update_vocabulary_rejects_taken_word(self):
        self.db.add_vocabulary(item("big"))
        item_id = self.db.add_vocabulary(item("large"))
        # Changing only the case of its own word is fine
        assert self.db.update_vocabulary(item_id, "Large", Category.GENERAL)
        with pytest.raises(ValueError):
            self.db.update_vocabulary(item_id, "BIG", Category.GENERAL)

    def test_update_example(self):
        item_id = self.db.add_vocabulary(item("run"))
        example = self.db.get_item_by_id(item_id).examples[0]
        example.sentences = ["I run.", "I am running."]
        example.vietnamese = "Toi chay"
        assert self.db.update_example(example)
        loaded = self.db.get_item_by_id(item_id).examples[0]
        assert loaded.sentences == ["I run.", "I am running."]
        assert loaded.vietnamese == "Toi chay"

        example.sentences = []
        with pytest.raises(ValueError):
            self.db.update_example(example)

    def test_search_ranks_exact_then_substring_then_fuzzy(self):
        for word in ("iron", "train", "rainbow", "ruin", "rain", "sun"):
            self.db.add_vocabulary(item(word))
        words = [i.word for i in self.db.search_vocabularies("rain")]
        assert words == ["rain", "train", "rainbow"]
        words = [i.word for i in self.db.search_vocabularies("rn")]
        assert words == ["rainbow", "ruin", "rain", "iron", "train"]

    def test_search_examples_and_filters(self):
        self.db.add_vocabulary(item("cat", sentences=("The cat sleeps.",)))
        self.db.add_vocabulary(item("dog", category=Category.TOEIC))
        assert [i.word for i in self.db.search_vocabularies("sleeps")] == ["cat"]
        assert [i.word for i in self.db.search_vocabularies("mot cau", Category.TOEIC)] == ["dog"]
        assert len(self.db.search_vocabularies("  ")) == 2
        assert len(self.db.search_vocabularies("", limit=1)) == 1

    def test_malformed_timestamp_is_a_storage_error(self):
        item_id = self.db.add_vocabulary(item("late"))
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("UPDATE vocabularies SET last_studied_at = 'yesterday' WHERE id = ?", (item_id,))
        with pytest.raises(RepositoryError):
            self.db.get_item_by_id(item_id)

    def test_sqlite_errors_are_wrapped(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DROP TABLE settings")
        with pytest.raises(RepositoryError):
            self.db.load_queue_ids()


class TestWordPackStorage:
    """Test JSON word pack import and export."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.packs = WordPackStorage(Path(self.temp_dir) / "packs")
        self.db = Database(Path(self.temp_dir) / "test.db")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_pack(self, name, data):
        path = self.packs.directory / f"{name}.json"
        path.write_text(json.dumps(data), encoding="utf-8")

    def test_save_and_load(self):
        self.packs.save("basics", [item("hello", sentences=("Hello there.",))])
        assert self.packs.list_packs() == ["basics"]
        loaded = self.packs.load("basics")
        assert loaded[0].word == "hello"
        assert loaded[0].examples[0].sentences == ["Hello there."]

    def test_missing_pack(self):
        assert self.packs.load("nope") == []

    def test_bad_json_skipped(self):
        (self.packs.directory / "bad.json").write_text("{not json", encoding="utf-8")
        assert self.packs.load("bad") == []

    def test_bad_entries_skipped(self):
        self.write_pack("mixed", [{"word": "ok"}, {"no_word": True}])
        assert [i.word for i in self.packs.load("mixed")] == ["ok"]

    def test_import_skips_known_words(self):
        self.db.add_vocabulary(item("Hello"))
        self.write_pack("basics", [
            {"word": "hello", "examples": [{"sentences": ["Hi."]}]},
            {"word": "goodbye", "category": "speaking",
             "examples": [{"sentences": ["Bye."], "vietnamese": "Tam biet"}]},
            {"word": "Goodbye"},
        ])

        assert self.packs.import_into(self.db) == 1

        imported = self.db.get_vocabulary_by_word("goodbye")
        assert imported.category == Category.SPEAKING
        assert imported.examples[0].vietnamese == "Tam biet"

    def test_delete(self):
        self.packs.save("temp", [])
        assert self.packs.delete("temp")
        assert not self.packs.delete("temp")
