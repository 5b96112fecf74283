"""SQLite database for vocabulary, examples and learning progress."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from vocab_drill.core.models import (
    Category,
    Example,
    MasteryRule,
    ProgressState,
    VocabularyItem,
    parse_attempt_history,
    parse_sentences,
    serialize_attempt_history,
)
from vocab_drill.core.repository import Repository, RepositoryError
from vocab_drill.core.text_compare import fuzzy_match, search_rank


logger = logging.getLogger(__name__)

QUEUE_KEY = "queue_ids"


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _to_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise RepositoryError(f"Malformed timestamp {value!r}") from e


class Database(Repository):
    """SQLite store for vocabulary items, the persisted queue and progress."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with self._connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS vocabularies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    word TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'GENERAL',
                    grammar TEXT,
                    total_attempts INTEGER NOT NULL DEFAULT 0,
                    correct_attempts INTEGER NOT NULL DEFAULT 0,
                    memory_score REAL NOT NULL DEFAULT 0,
                    last10_attempts TEXT NOT NULL DEFAULT '[]',
                    last_studied_at TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_vocab_category ON vocabularies(category);
                CREATE INDEX IF NOT EXISTS idx_vocab_word ON vocabularies(word COLLATE NOCASE);

                CREATE TABLE IF NOT EXISTS examples (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    vocabulary_id INTEGER NOT NULL
                        REFERENCES vocabularies(id) ON DELETE CASCADE,
                    sentences TEXT NOT NULL,
                    vietnamese TEXT,
                    grammar TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_examples_vocab ON examples(vocabulary_id);

                CREATE TABLE IF NOT EXISTS learning_progress (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    session_start_time TEXT NOT NULL,
                    words_learned INTEGER NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
            """)

    @contextmanager
    def _connection(self):
        """Context manager for database connections.

        Commits on success, rolls back on any error, and reports SQLite
        failures as RepositoryError.
        """
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise RepositoryError(f"Could not open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Database error: %s", e)
            raise RepositoryError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Vocabulary operations

    def _find_word(self, conn, word: str, exclude_id: Optional[int] = None):
        """Row of an item with the same headword, ignoring case and surrounding space."""
        return conn.execute(
            "SELECT id, word FROM vocabularies "
            "WHERE lower(trim(word)) = ? AND id != ? ORDER BY id LIMIT 1",
            (word.strip().lower(), exclude_id if exclude_id is not None else -1)
        ).fetchone()

    def add_vocabulary(self, item: VocabularyItem) -> int:
        """Insert an item and its examples. Returns the new item id.

        Raises ValueError for an empty word or one that is already stored.
        """
        word = item.word.strip()
        if not word:
            raise ValueError("word must not be empty")
        created_at = item.created_at or datetime.now()
        with self._connection() as conn:
            existing = self._find_word(conn, word)
            if existing is not None:
                raise ValueError(f"'{existing['word']}' already exists as #{existing['id']}")
            cursor = conn.execute("""
                INSERT INTO vocabularies (
                    word, category, grammar, total_attempts, correct_attempts,
                    memory_score, last10_attempts, last_studied_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                word,
                item.category.value,
                item.grammar,
                item.total_attempts,
                item.correct_attempts,
                item.memory_score,
                serialize_attempt_history(item.last_10_attempts),
                _to_text(item.last_studied_at),
                _to_text(created_at),
            ))
            item_id = cursor.lastrowid
            for example in item.examples:
                self._insert_example(conn, item_id, example)
        logger.debug("Added '%s' as #%d", word, item_id)
        return item_id

    def add_example(self, vocabulary_id: int, example: Example) -> int:
        """Attach an example to an existing item. Returns the example id."""
        with self._connection() as conn:
            return self._insert_example(conn, vocabulary_id, example)

    def _insert_example(self, conn, vocabulary_id: int, example: Example) -> int:
        cursor = conn.execute("""
            INSERT INTO examples (vocabulary_id, sentences, vietnamese, grammar, created_at)
            VALUES (?, ?, ?, ?, ?)
        """, (
            vocabulary_id,
            json.dumps(example.sentences, ensure_ascii=False),
            example.vietnamese,
            example.grammar,
            _to_text(example.created_at),
        ))
        return cursor.lastrowid

    def update_vocabulary(
        self,
        item_id: int,
        word: str,
        category: Category,
        grammar: Optional[str] = None,
    ) -> bool:
        """Edit headword, category and grammar. Attempt statistics are kept.

        Returns False when the item does not exist. Raises ValueError when
        the new word is empty or belongs to another item.
        """
        word = word.strip()
        if not word:
            raise ValueError("word must not be empty")
        with self._connection() as conn:
            existing = self._find_word(conn, word, exclude_id=item_id)
            if existing is not None:
                raise ValueError(f"'{existing['word']}' already exists as #{existing['id']}")
            cursor = conn.execute(
                "UPDATE vocabularies SET word = ?, category = ?, grammar = ? WHERE id = ?",
                (word, category.value, grammar, item_id)
            )
            updated = cursor.rowcount > 0
        if updated:
            logger.debug("Updated #%d as '%s'", item_id, word)
        return updated

    def update_example(self, example: Example) -> bool:
        """Rewrite the sentences, prompt and grammar of a stored example."""
        if not example.has_sentences():
            raise ValueError("an example needs at least one sentence")
        with self._connection() as conn:
            cursor = conn.execute("""
                UPDATE examples SET sentences = ?, vietnamese = ?, grammar = ?
                WHERE id = ?
            """, (
                json.dumps(example.sentences, ensure_ascii=False),
                example.vietnamese,
                example.grammar,
                example.id,
            ))
            return cursor.rowcount > 0

    def delete_vocabulary(self, item_id: int) -> bool:
        """Delete an item together with its examples."""
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM vocabularies WHERE id = ?", (item_id,))
            return cursor.rowcount > 0

    def get_vocabulary_by_word(self, word: str) -> Optional[VocabularyItem]:
        """Find an item by headword, ignoring case and surrounding space."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM vocabularies WHERE lower(trim(word)) = ? ORDER BY id LIMIT 1",
                (word.strip().lower(),)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_item(row, self._examples_for(conn, [row["id"]]))

    def cleanup_duplicates(self) -> int:
        """Remove duplicate headwords, keeping the one with more attempts.

        Returns the number of records deleted.
        """
        kept: dict[str, sqlite3.Row] = {}
        to_delete = []
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT id, word, total_attempts FROM vocabularies ORDER BY id"
            ).fetchall()
            for row in rows:
                key = row["word"].strip().lower()
                existing = kept.get(key)
                if existing is None:
                    kept[key] = row
                elif row["total_attempts"] > existing["total_attempts"]:
                    to_delete.append(existing["id"])
                    kept[key] = row
                else:
                    to_delete.append(row["id"])

            conn.executemany(
                "DELETE FROM vocabularies WHERE id = ?",
                [(item_id,) for item_id in to_delete]
            )
        logger.info("Cleaned up %d duplicate vocabularies", len(to_delete))
        return len(to_delete)

    def search_vocabularies(
        self,
        query: str,
        category: Optional[Category] = None,
        limit: Optional[int] = None,
    ) -> list[VocabularyItem]:
        """Fuzzy search over headwords, sentences and prompts.

        Args:
            query: Search text. A blank query lists every item.
            category: Only search this category
            limit: Maximum number of results

        Returns:
            Matching items, best headword match first.
        """
        items = self.get_all_items_with_examples(category)
        query = query.strip()
        if query:
            items = [item for item in items if self._matches(item, query)]
            items.sort(key=lambda item: search_rank(item.word, query), reverse=True)
        return items[:limit] if limit is not None else items

    @staticmethod
    def _matches(item: VocabularyItem, query: str) -> bool:
        if fuzzy_match(item.word, query):
            return True
        for example in item.examples:
            texts = example.sentences + [example.vietnamese or ""]
            if any(fuzzy_match(text, query) for text in texts):
                return True
        return False

    def get_category_stats(
        self, rule: MasteryRule = MasteryRule.LIFETIME
    ) -> dict[str, dict[str, int]]:
        """Get total, studied and mastered counts by category."""
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, word, category, total_attempts, correct_attempts, last10_attempts
                FROM vocabularies
            """).fetchall()

        stats = {
            category.value: {"total": 0, "studied": 0, "mastered": 0}
            for category in Category
        }
        for row in rows:
            history, _ = parse_attempt_history(row["last10_attempts"])
            item = VocabularyItem(
                id=row["id"],
                word=row["word"],
                total_attempts=row["total_attempts"],
                correct_attempts=row["correct_attempts"],
                last_10_attempts=history,
            )
            counts = stats[Category.from_string(row["category"]).value]
            counts["total"] += 1
            if item.total_attempts >= 1:
                counts["studied"] += 1
            if rule.is_mastered(item):
                counts["mastered"] += 1
        return stats

    # Repository interface

    def get_all_items_with_examples(
        self, category: Optional[Category] = None
    ) -> list[VocabularyItem]:
        with self._connection() as conn:
            if category is None:
                rows = conn.execute("SELECT * FROM vocabularies ORDER BY id").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM vocabularies WHERE category = ? ORDER BY id",
                    (category.value,)
                ).fetchall()
            examples = self._examples_for(conn, [row["id"] for row in rows])
            return [self._row_to_item(row, examples) for row in rows]

    def get_item_by_id(self, item_id: int) -> Optional[VocabularyItem]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM vocabularies WHERE id = ?", (item_id,)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_item(row, self._examples_for(conn, [item_id]))

    def update_attempt_stats(
        self,
        item_id: int,
        total_attempts: int,
        correct_attempts: int,
        memory_score: float,
        last_10_attempts: list[bool],
        last_studied_at: Optional[datetime],
    ) -> None:
        with self._connection() as conn:
            cursor = conn.execute("""
                UPDATE vocabularies SET
                    total_attempts = ?,
                    correct_attempts = ?,
                    memory_score = ?,
                    last10_attempts = ?,
                    last_studied_at = ?
                WHERE id = ?
            """, (
                total_attempts,
                correct_attempts,
                memory_score,
                serialize_attempt_history(last_10_attempts),
                _to_text(last_studied_at),
                item_id,
            ))
            if cursor.rowcount == 0:
                raise RepositoryError(f"Vocabulary #{item_id} does not exist")

    def load_queue_ids(self) -> list[int]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE key = ?", (QUEUE_KEY,)
            ).fetchone()
        if row is None:
            return []
        try:
            ids = json.loads(row["value"])
        except ValueError:
            logger.warning("Ignoring unreadable persisted queue")
            return []
        if not isinstance(ids, list):
            return []
        return [i for i in ids if isinstance(i, int) and not isinstance(i, bool)]

    def save_queue_ids(self, ids: list[int]) -> None:
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (QUEUE_KEY, json.dumps(list(ids))))

    def load_progress(self) -> Optional[ProgressState]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM learning_progress WHERE id = 1"
            ).fetchone()
        if row is None:
            return None
        return ProgressState(
            session_start_time=_to_datetime(row["session_start_time"]),
            words_learned=row["words_learned"],
        )

    def save_progress(self, state: ProgressState) -> None:
        """Persist progress. The session start is only written once."""
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO learning_progress (id, session_start_time, words_learned)
                VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    words_learned = max(words_learned, excluded.words_learned)
            """, (_to_text(state.session_start_time), state.words_learned))

    # Row conversion

    def _examples_for(self, conn, item_ids: list[int]) -> dict[int, list[Example]]:
        if not item_ids:
            return {}
        placeholders = ",".join("?" for _ in item_ids)
        rows = conn.execute(
            f"SELECT * FROM examples WHERE vocabulary_id IN ({placeholders}) ORDER BY id",
            item_ids
        ).fetchall()
        examples: dict[int, list[Example]] = {}
        for row in rows:
            examples.setdefault(row["vocabulary_id"], []).append(self._row_to_example(row))
        return examples

    def _row_to_example(self, row: sqlite3.Row) -> Example:
        sentences, ok = parse_sentences(row["sentences"])
        if not ok:
            logger.warning("Example #%d has malformed sentences", row["id"])
        return Example(
            id=row["id"],
            vocabulary_id=row["vocabulary_id"],
            sentences=sentences,
            vietnamese=row["vietnamese"],
            grammar=row["grammar"],
            created_at=_to_datetime(row["created_at"]),
        )

    def _row_to_item(
        self, row: sqlite3.Row, examples: dict[int, list[Example]]
    ) -> VocabularyItem:
        """Convert database row to VocabularyItem."""
        history, ok = parse_attempt_history(row["last10_attempts"])
        if not ok:
            logger.warning("Resetting malformed attempt history of '%s'", row["word"])
        return VocabularyItem(
            id=row["id"],
            word=row["word"],
            category=Category.from_string(row["category"]),
            total_attempts=row["total_attempts"],
            correct_attempts=row["correct_attempts"],
            last_10_attempts=history,
            last_studied_at=_to_datetime(row["last_studied_at"]),
            created_at=_to_datetime(row["created_at"]),
            grammar=row["grammar"],
            examples=examples.get(row["id"], []),
        )
