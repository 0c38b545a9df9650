"""Local persistence for the calculator selection and theme preference."""

import json
import logging
import os
from pathlib import Path

from services.errors import StorageCorruption
from services.pricing import Selection

logger = logging.getLogger(__name__)

STORAGE_KEY = "calculatorState"
THEME_KEY = "theme"
THEMES = ("dark", "light")


class JsonFileStorage:
    """
    Durable string key-value store kept as a single JSON object on disk.

    An unreadable file is treated as empty and replaced on the next write.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (ValueError, OSError) as e:
            logger.warning(f"Local storage {self.path} unreadable, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Local storage {self.path} is not an object, starting empty")
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class SelectionCache:
    """Saves the current selection so a revisit restores the form."""

    def __init__(self, storage: JsonFileStorage):
        self.storage = storage

    def save(self, selection: Selection) -> None:
        self.storage.set(STORAGE_KEY, json.dumps(selection.to_dict()))

    def load(self) -> Selection | None:
        """
        Restore the saved selection.

        Corrupt entries are purged and reported as no saved selection.
        """
        raw = self.storage.get(STORAGE_KEY)
        if raw is None:
            return None
        try:
            return self._decode(raw)
        except StorageCorruption as e:
            logger.warning(f"Discarding corrupt saved selection: {e}")
            self.storage.remove(STORAGE_KEY)
            return None

    @staticmethod
    def _decode(raw: str) -> Selection:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("saved selection is not an object")
            return Selection.from_dict(data)
        except (ValueError, TypeError) as e:
            raise StorageCorruption(str(e)) from e


def system_prefers_dark() -> bool:
    """Best-effort OS colour-scheme check via the terminal's COLORFGBG hint."""
    colorfgbg = os.environ.get("COLORFGBG", "")
    background = colorfgbg.rsplit(";", 1)[-1]
    return background.isdigit() and int(background) in (0, 8)


class ThemePreference:
    """The saved "dark"/"light" theme, defaulting to the system preference."""

    def __init__(self, storage: JsonFileStorage):
        self.storage = storage

    def load(self, prefers_dark: bool = False) -> str:
        saved = self.storage.get(THEME_KEY)
        if saved in THEMES:
            return saved
        return "dark" if prefers_dark else "light"

    def save(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self.storage.set(THEME_KEY, theme)

    def toggle(self, prefers_dark: bool = False) -> str:
        theme = "light" if self.load(prefers_dark) == "dark" else "dark"
        self.save(theme)
        return theme
