"""
SailingLoc Client Credential Storage Implementations

Stores the access/refresh token pair. Every read-then-write happens under
a lock so a concurrent login, refresh and logout can never leave a mixed
pair behind.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from .types import CredentialPair


logger = logging.getLogger("sailingloc.storage")

TOKEN_KEY = "sailingloc_auth_token"
REFRESH_KEY = TOKEN_KEY + "_refresh"
EXPIRES_KEY = TOKEN_KEY + "_expires"


class MemoryStorage:
    """In-memory credential storage (default, non-persistent)."""

    def __init__(self) -> None:
        self._pair: Optional[CredentialPair] = None
        self._lock = threading.Lock()

    def get_access_token(self) -> Optional[str]:
        """Get the stored access token."""
        with self._lock:
            return self._pair.access_token if self._pair else None

    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token."""
        with self._lock:
            return self._pair.refresh_token if self._pair else None

    def get_tokens(self) -> Optional[CredentialPair]:
        with self._lock:
            return self._pair

    def set_tokens(self, pair: CredentialPair) -> None:
        with self._lock:
            self._pair = pair

    def update_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[str] = None,
    ) -> None:
        with self._lock:
            previous = self._pair.refresh_token if self._pair else None
            self._pair = CredentialPair(access_token, refresh_token or previous, expires_at)

    def clear_tokens(self) -> None:
        """Clear all stored tokens."""
        with self._lock:
            self._pair = None


class FileStorage:
    """
    File-based credential storage (persistent across restarts).

    One JSON file can hold pairs for several backends; each instance only
    touches the entry of its own ``namespace`` (normally the API origin).
    """

    def __init__(self, file_path: Optional[str] = None, namespace: str = "default") -> None:
        """
        Initialize file storage.

        Args:
            file_path: Path to the credentials file. Defaults to ~/.sailingloc/credentials.json
            namespace: Key the pair is stored under inside the file
        """
        if file_path:
            self._file_path = Path(file_path)
        else:
            self._file_path = Path.home() / ".sailingloc" / "credentials.json"
        self._namespace = namespace
        self._lock = threading.Lock()
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def for_origin(cls, base_url: str, file_path: Optional[str] = None) -> "FileStorage":
        """Storage scoped to the scheme/host/port of ``base_url``."""
        parts = urlsplit(base_url)
        origin = f"{parts.scheme}://{parts.netloc}".lower()
        return cls(file_path, namespace=origin)

    @property
    def file_path(self) -> Path:
        return self._file_path

    def _read_all(self) -> Dict[str, Any]:
        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable credentials file %s: %s", self._file_path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        # Write to a sibling temp file then rename so readers never see a partial file
        fd, tmp_path = tempfile.mkstemp(dir=str(self._file_path.parent), prefix=".credentials-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._file_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _read_pair(self) -> Optional[CredentialPair]:
        entry = self._read_all().get(self._namespace)
        if not isinstance(entry, dict) or not entry.get(TOKEN_KEY):
            return None
        return CredentialPair(
            access_token=entry[TOKEN_KEY],
            refresh_token=entry.get(REFRESH_KEY),
            expires_at=entry.get(EXPIRES_KEY),
        )

    def _write_pair(self, pair: Optional[CredentialPair]) -> None:
        data = self._read_all()
        if pair is None:
            if self._namespace not in data:
                return
            data.pop(self._namespace)
        else:
            entry = {TOKEN_KEY: pair.access_token}
            if pair.refresh_token:
                entry[REFRESH_KEY] = pair.refresh_token
            if pair.expires_at:
                entry[EXPIRES_KEY] = pair.expires_at
            data[self._namespace] = entry
        self._write_all(data)

    def get_access_token(self) -> Optional[str]:
        """Get the stored access token."""
        pair = self.get_tokens()
        return pair.access_token if pair else None

    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token."""
        pair = self.get_tokens()
        return pair.refresh_token if pair else None

    def get_tokens(self) -> Optional[CredentialPair]:
        with self._lock:
            return self._read_pair()

    def set_tokens(self, pair: CredentialPair) -> None:
        with self._lock:
            self._write_pair(pair)

    def update_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[str] = None,
    ) -> None:
        with self._lock:
            current = self._read_pair()
            previous = current.refresh_token if current else None
            self._write_pair(CredentialPair(access_token, refresh_token or previous, expires_at))

    def clear_tokens(self) -> None:
        """Clear all stored tokens."""
        with self._lock:
            self._write_pair(None)
