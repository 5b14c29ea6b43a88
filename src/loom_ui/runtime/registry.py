"""
Registry of apps loaded into the multi-app service.

The registry is an explicit, lock-protected service object handed to the
service route factory; there is no module-level singleton. Entries are
created by ``register`` or ``load_file`` and removed by ``remove`` or
``clear``.
"""

from __future__ import annotations

import importlib.util
import logging
import secrets
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loom_ui.core.errors import AppLoadError, AppNotFoundError
from loom_ui.runtime.app import App

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AppEntry:
    """A loaded app and its bookkeeping."""

    app_id: str
    app: App
    name: str
    path: Path | None = None
    loaded_at: datetime = field(default_factory=_now)
    last_accessed: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        now = _now()
        return {
            "id": self.app_id,
            "name": self.name,
            "path": str(self.path) if self.path else None,
            "title": self.app.title,
            "url": f"/apps/{self.app_id}/",
            "loaded_at": self.loaded_at.isoformat(),
            "last_accessed": self.last_accessed.isoformat(),
            "age_seconds": int((now - self.loaded_at).total_seconds()),
            "idle_seconds": int((now - self.last_accessed).total_seconds()),
        }


def load_app_from_file(file_path: str | Path) -> App:
    """
    Execute a Python file and return the last ``App`` it defines.

    Raises:
        AppLoadError: If the file is missing, raises while executing, or
            defines no ``App``
    """
    path = Path(file_path).expanduser().resolve()
    if not path.is_file():
        raise AppLoadError(f"File not found: {path}")

    module_name = f"loom_app_{secrets.token_hex(4)}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise AppLoadError(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise AppLoadError(f"Error while loading {path}: {e}") from e
    finally:
        sys.modules.pop(module_name, None)

    apps = [value for value in vars(module).values() if isinstance(value, App)]
    if not apps:
        raise AppLoadError(f'No app found in {path}. Define one with @app("Title")')
    return apps[-1]


class AppRegistry:
    """Thread-safe map of app id to ``AppEntry``."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, AppEntry] = {}

    def register(self, app: App, name: str | None = None, path: Path | None = None) -> str:
        """Add an app and return its new id."""
        app_id = secrets.token_hex(4)
        entry = AppEntry(app_id=app_id, app=app, name=name or app.title, path=path)
        with self._lock:
            self._entries[app_id] = entry
        logger.info("Loaded app %r as %s", entry.name, app_id)
        return app_id

    def load_file(self, file_path: str | Path, name: str | None = None) -> str:
        """Load an app from a Python file; the name defaults to the app title, then the file stem."""
        path = Path(file_path).expanduser().resolve()
        app = load_app_from_file(path)
        return self.register(app, name=name or app.title or path.stem, path=path)

    def get(self, app_id: str) -> AppEntry:
        """Return the entry for ``app_id`` and mark it accessed.

        Raises:
            AppNotFoundError: If no app has that id
        """
        with self._lock:
            entry = self._entries.get(app_id)
            if entry is None:
                raise AppNotFoundError(f"App not found: {app_id}")
            entry.last_accessed = _now()
            return entry

    def remove(self, app_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(app_id, None)
        if removed is not None:
            logger.info("Removed app %s", app_id)
        return removed is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared %d app(s)", count)
        return count

    def entries(self) -> list[AppEntry]:
        with self._lock:
            return list(self._entries.values())

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, app_id: object) -> bool:
        with self._lock:
            return app_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
