"""Credential storage for the API auth SDK.

Thread-safe key-value holders for the access token, refresh token and the
cached user profile. The keys match what the web clients keep in local
storage so a persisted file can be inspected the same way.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from .models import Credential, UserInfo
from .telemetry import get_logger

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_INFO_KEY = "user_info"

CREDENTIAL_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_INFO_KEY)


class CredentialStore(ABC):
    """Base credential store.

    Subclasses provide raw key access; every public operation runs under a
    re-entrant lock so concurrent readers never see a half-written pair.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._logger = get_logger()

    @abstractmethod
    def _read(self, key: str) -> str | None:
        """Read a raw value."""

    @abstractmethod
    def _write(self, values: dict[str, str]) -> None:
        """Write raw values."""

    @abstractmethod
    def _remove(self, keys: tuple[str, ...]) -> None:
        """Remove raw values."""

    def get(self) -> Credential | None:
        """Get the stored credential, or None when no access token is stored."""
        with self._lock:
            access_token = self._read(ACCESS_TOKEN_KEY)
            if not access_token:
                return None
            return Credential(
                access_token=access_token,
                refresh_token=self._read(REFRESH_TOKEN_KEY) or None,
            )

    def set(self, credential: Credential) -> None:
        """Store a credential, replacing the previous pair."""
        with self._lock:
            values = {ACCESS_TOKEN_KEY: credential.access_token}
            if credential.refresh_token:
                values[REFRESH_TOKEN_KEY] = credential.refresh_token
            self._write(values)
            if not credential.refresh_token:
                self._remove((REFRESH_TOKEN_KEY,))
        self._logger.debug("Credential stored")

    def clear(self) -> None:
        """Remove tokens and the cached user profile."""
        with self._lock:
            self._remove(CREDENTIAL_KEYS)
        self._logger.debug("Credentials cleared")

    def get_access_token(self) -> str | None:
        with self._lock:
            return self._read(ACCESS_TOKEN_KEY) or None

    def get_refresh_token(self) -> str | None:
        with self._lock:
            return self._read(REFRESH_TOKEN_KEY) or None

    def get_user_info(self) -> UserInfo | None:
        """Get the cached user profile; unreadable entries count as absent."""
        with self._lock:
            raw = self._read(USER_INFO_KEY)
        if not raw:
            return None
        try:
            return UserInfo.model_validate_json(raw)
        except ValidationError:
            self._logger.warning("Discarding unreadable user_info entry")
            return None

    def set_user_info(self, user_info: UserInfo) -> None:
        with self._lock:
            self._write({USER_INFO_KEY: user_info.to_json()})


class MemoryCredentialStore(CredentialStore):
    """Process-local credential store."""

    def __init__(self) -> None:
        super().__init__()
        self._values: dict[str, str] = {}

    def _read(self, key: str) -> str | None:
        return self._values.get(key)

    def _write(self, values: dict[str, str]) -> None:
        self._values.update(values)

    def _remove(self, keys: tuple[str, ...]) -> None:
        for key in keys:
            self._values.pop(key, None)


class FileCredentialStore(CredentialStore):
    """Credential store persisted as a JSON object on disk.

    Unrelated keys already present in the file are preserved. A missing or
    corrupt file reads as empty.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            self._logger.warning("Credential file is corrupt", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}

    def _persist(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

    def _read(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def _write(self, values: dict[str, str]) -> None:
        data = self._load()
        data.update(values)
        self._persist(data)

    def _remove(self, keys: tuple[str, ...]) -> None:
        data = self._load()
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._persist(data)


def create_credential_store(path: Path | str | None = None) -> CredentialStore:
    """Create a file-backed store when a path is given, else an in-memory one."""
    if path is None:
        return MemoryCredentialStore()
    return FileCredentialStore(path)
