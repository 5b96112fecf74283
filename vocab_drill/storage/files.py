"""JSON word packs that seed the vocabulary database."""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from vocab_drill.core.models import VocabularyItem

if TYPE_CHECKING:
    from vocab_drill.storage.database import Database


logger = logging.getLogger(__name__)


class WordPackStorage:
    """Directory of `*.json` files, each holding a list of vocabulary items."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _get_path(self, name: str) -> Path:
        """Get file path for a pack."""
        return self.directory / f"{name}.json"

    def list_packs(self) -> list[str]:
        """Names of all packs in the directory."""
        return sorted(path.stem for path in self.directory.glob("*.json"))

    def load(self, name: str) -> list[VocabularyItem]:
        """Load one pack. Unreadable entries are skipped with a warning."""
        path = self._get_path(name)
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Could not load %s: %s", path, e)
            return []

        if isinstance(data, dict):
            data = data.get("items", [])

        items = []
        for entry in data:
            try:
                items.append(VocabularyItem.from_dict(entry))
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                logger.warning("Skipping bad entry in %s: %s", path, e)
        return items

    def load_all(self) -> list[VocabularyItem]:
        """Load every pack in name order."""
        items = []
        for name in self.list_packs():
            items.extend(self.load(name))
        return items

    def save(self, name: str, items: list[VocabularyItem]) -> Path:
        """Write items to a pack, replacing any existing file."""
        path = self._get_path(name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump([item.to_dict() for item in items], f, ensure_ascii=False, indent=2)
        return path

    def delete(self, name: str) -> bool:
        """Delete a pack by name."""
        path = self._get_path(name)
        if path.exists():
            path.unlink()
            return True
        return False

    def import_into(self, database: "Database") -> int:
        """Add every pack word the database does not know yet.

        Words are matched case-insensitively after trimming. Returns the
        number of items added.
        """
        added = 0
        for item in self.load_all():
            if not item.word:
                continue
            if database.get_vocabulary_by_word(item.word) is not None:
                logger.debug("Skipping existing word '%s'", item.word)
                continue
            database.add_vocabulary(item)
            added += 1
        logger.info("Imported %d new words from %s", added, self.directory)
        return added
