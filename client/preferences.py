"""
Local Preferences

Favorites and theme are kept in a small JSON key-value file, read once at
startup and rewritten on every toggle.

Storage keys:
    crypto-favorites: list of base-asset symbols (order carries no meaning)
    crypto-theme: "dark" or "light"

In-memory state is authoritative. A failed write is logged and reported through
the on_error notice callback; the toggle itself still takes effect and the next
successful write persists it.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from core.logging import get_logger


FAVORITES_KEY = "crypto-favorites"
THEME_KEY = "crypto-theme"

Notice = Callable[[str], None]


class JsonFileStorage:
    """
    Key-value storage backed by one JSON object on disk.

    Reads tolerate a missing or corrupt file (treated as empty).
    Writes replace the file atomically and raise OSError on failure.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._logger = get_logger(__name__)

    def _read_all(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            self._logger.error(f"Error reading preferences from {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".prefs-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class FavoritesStore:
    """
    Favorite symbols.

    Example:
        >>> favorites = FavoritesStore(JsonFileStorage("prefs.json"))
        >>> favorites.toggle("BTC")
        True
        >>> favorites.is_favorite("BTC")
        True
    """

    def __init__(self, storage: JsonFileStorage, on_error: Optional[Notice] = None) -> None:
        self._storage = storage
        self._on_error = on_error
        self._favorites: List[str] = []
        self._logger = get_logger(__name__)
        self.load()

    def load(self) -> List[str]:
        stored = self._storage.get(FAVORITES_KEY, [])
        if not isinstance(stored, list):
            self._logger.error(f"Ignoring malformed '{FAVORITES_KEY}' value: {stored!r}")
            stored = []
        favorites: List[str] = []
        for symbol in stored:
            if isinstance(symbol, str) and symbol not in favorites:
                favorites.append(symbol)
        self._favorites = favorites
        return self.favorites

    @property
    def favorites(self) -> List[str]:
        return list(self._favorites)

    def is_favorite(self, symbol: str) -> bool:
        return symbol in self._favorites

    def toggle(self, symbol: str) -> bool:
        """
        Add or remove a symbol and persist the list.

        Returns:
            bool: True if the symbol is now a favorite
        """
        if symbol in self._favorites:
            self._favorites.remove(symbol)
            added = False
        else:
            self._favorites.append(symbol)
            added = True

        try:
            self._storage.set(FAVORITES_KEY, self._favorites)
        except OSError as e:
            self._logger.warning(f"Error saving favorites: {e}")
            if self._on_error is not None:
                self._on_error("Failed to save favorites")
        return added


class ThemeStore:
    """Dark/light theme flag."""

    def __init__(
        self,
        storage: JsonFileStorage,
        default_dark: bool = False,
        on_error: Optional[Notice] = None
    ) -> None:
        self._storage = storage
        self._on_error = on_error
        saved = storage.get(THEME_KEY)
        self.dark_mode = saved == "dark" if saved in ("dark", "light") else default_dark
        self._logger = get_logger(__name__)

    @property
    def theme(self) -> str:
        return "dark" if self.dark_mode else "light"

    def toggle(self) -> str:
        """Flip the theme, persist it, and return the new theme name."""
        self.dark_mode = not self.dark_mode
        try:
            self._storage.set(THEME_KEY, self.theme)
        except OSError as e:
            self._logger.warning(f"Error saving theme: {e}")
            if self._on_error is not None:
                self._on_error("Failed to save theme")
        return self.theme
