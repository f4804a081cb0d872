"""
Recording session state: the single active-session slot and the durable
sid -> resource ID registry used to query finished recordings.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

VERSION = 1


@dataclass(frozen=True)
class RecordingSession:
    resource_handle: str
    session_id: str
    channel_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_handle": self.resource_handle,
            "session_id": self.session_id,
            "channel_id": self.channel_id,
            "started_at": self.started_at.isoformat(),
        }


class SessionStore:
    """
    Single-slot holder for the active recording session.

    Every accessor takes the same re-entrant lock; `transaction()` holds it
    across a whole read-then-act sequence so concurrent start/stop calls are
    serialized.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._session: RecordingSession | None = None

    @contextmanager
    def transaction(self) -> Iterator[SessionStore]:
        with self._lock:
            yield self

    def get(self) -> RecordingSession | None:
        with self._lock:
            return self._session

    def set(self, session: RecordingSession) -> None:
        if not session.resource_handle or not session.session_id:
            raise ValueError("A recording session needs both a resource handle and a session id")
        with self._lock:
            self._session = session

    def clear(self) -> None:
        with self._lock:
            self._session = None

    @property
    def is_active(self) -> bool:
        return self.get() is not None


class SessionRegistry:
    """
    Durable mapping from session id to resource handle, persisted as JSON.

    Written when a recording starts and read when a completion webhook has to
    fall back to the vendor query, which can happen after the session slot
    was cleared by stop.
    """

    def __init__(self, path: Path, max_entries: int = 500):
        self.path = Path(path)
        self.max_entries = max_entries
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            logger.warning(f"Could not load session registry from {self.path}: {e}")
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._set_aside(f"invalid JSON: {e}")
            return {}
        sessions = data.get("sessions") if isinstance(data, dict) else None
        if not isinstance(sessions, dict):
            self._set_aside("unexpected layout")
            return {}
        return sessions

    def _set_aside(self, reason: str) -> None:
        """Move an unreadable registry to <name>.corrupt so the next save cannot erase it"""
        corrupt_path = self.path.with_name(self.path.name + ".corrupt")
        try:
            os.replace(self.path, corrupt_path)
        except OSError as e:
            logger.warning(f"Session registry {self.path} is unreadable ({reason}): {e}")
            return
        logger.warning(
            f"Session registry {self.path} is unreadable ({reason}); moved to {corrupt_path}"
        )

    def _save(self, sessions: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": VERSION, "sessions": sessions}

        # Atomic write
        tmp_fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=self.path.name, text=True
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as tmp:
                json.dump(payload, tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def remember(self, session: RecordingSession) -> None:
        """Persist the resource handle for a started session"""
        with self._lock:
            sessions = self._load()
            sessions[session.session_id] = {
                "resource_handle": session.resource_handle,
                "channel_id": session.channel_id,
                "recorded_at": int(time.time()),
            }
            if len(sessions) > self.max_entries:
                oldest_first = sorted(sessions.items(), key=lambda kv: kv[1].get("recorded_at", 0))
                sessions = dict(oldest_first[-self.max_entries :])
            self._save(sessions)

    def resource_handle_for(self, session_id: str) -> str | None:
        with self._lock:
            entry = self._load().get(session_id)
        if not entry:
            return None
        handle = entry.get("resource_handle")
        return str(handle) if handle else None

    def forget(self, session_id: str) -> None:
        with self._lock:
            sessions = self._load()
            if sessions.pop(session_id, None) is not None:
                self._save(sessions)
