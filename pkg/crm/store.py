"""
Board document storage backend (JSON file).

The whole board is one JSON document, overwritten in full on every save.
No versioning, no partial updates: the last write wins.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from .schema import initial_board

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("cards", "columns", "columnOrder")


class StoreError(Exception):
    """Raised when an existing board document cannot be read or parsed."""
    pass


def has_required_keys(document: Any) -> bool:
    """
    Top-level shape check only: an object carrying every required key.

    A null, empty-string, zero or false value counts as missing.
    """
    return isinstance(document, dict) and all(
        document.get(k) not in (None, "", 0) for k in REQUIRED_KEYS
    )


class DocumentStore:
    """File-backed store for the single board document."""

    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "crm" / "db.json")
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Dict[str, Any]:
        """
        Read the document.

        A missing file is the first run: the initial board is written and
        returned. Any other failure raises StoreError rather than masking a
        real file with the default board.
        """
        if not self.db_path.exists():
            logger.info(f"No database file at {self.db_path}, initializing with default data")
            document = initial_board().to_dict()
            if not self.save(document):
                raise StoreError(f"Cannot initialize {self.db_path}")
            return document

        try:
            with open(self.db_path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot load {self.db_path}: {e}") from e

        if not has_required_keys(document):
            raise StoreError(f"{self.db_path} is not a board document")
        logger.info(f"Database loaded from {self.db_path}")
        return document

    def save(self, document: Dict[str, Any]) -> bool:
        """Overwrite the file with document. Returns False (and logs) on failure."""
        try:
            # Atomic write: write to temp, then rename
            tmp_file = self.db_path.with_suffix(self.db_path.suffix + ".tmp")
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            tmp_file.replace(self.db_path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving to {self.db_path}: {e}")
            return False
