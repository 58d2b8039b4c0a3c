import json
import logging
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class PosterCacheStore:
    """Maps a normalized movie title to the local path of its poster.

    The whole map lives in memory and is rewritten to a single JSON file after
    every insertion. Entries are never removed; a re-fetch overwrites.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: Dict[str, str] = {}

    def load(self) -> Dict[str, str]:
        """Read the cache file, returning an empty map if it is unusable."""
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Error loading cache from {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Ignoring cache file {self.path}: expected a JSON object")
            return {}
        return {str(key): str(value) for key, value in data.items() if value}

    def open(self) -> "PosterCacheStore":
        self._entries = self.load()
        logger.info(f"Loaded {len(self._entries)} cached posters from {self.path}")
        return self

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def put(self, key: str, path: str) -> None:
        self._entries[key] = path
        self._save()

    def close(self) -> None:
        self._save()

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._entries, indent=2), encoding="utf-8")
        except (OSError, TypeError) as e:
            logger.error(f"Error saving cache to {self.path}: {e}")

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
