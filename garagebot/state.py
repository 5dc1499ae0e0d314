"""Process-lifetime credential storage."""

from __future__ import annotations

import logging
from typing import Dict, Generic, Hashable, Optional, TypeVar

from .models import UserCredential
from .utils import redact_token

logger = logging.getLogger("garagebot.state")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class KeyValueStore(Generic[K, V]):
    """Narrow storage interface so a persistent or bounded backend can be swapped in."""

    def get(self, key: K) -> Optional[V]:
        raise NotImplementedError

    def put(self, key: K, value: V) -> None:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError

    def __contains__(self, key: object) -> bool:
        raise NotImplementedError


class MemoryStore(KeyValueStore[K, V]):
    """Unbounded dict-backed store; contents are lost on restart."""

    def __init__(self) -> None:
        self._data: Dict[K, V] = {}

    def get(self, key: K) -> Optional[V]:
        return self._data.get(key)

    def put(self, key: K, value: V) -> None:
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class CredentialStore:
    """Maps Discord user ids to their linked Wargaming credentials."""

    def __init__(self, backend: Optional[KeyValueStore[int, UserCredential]] = None) -> None:
        self._backend: KeyValueStore[int, UserCredential] = backend if backend is not None else MemoryStore()

    def get(self, user_id: int) -> Optional[UserCredential]:
        return self._backend.get(user_id)

    def put(self, credential: UserCredential) -> None:
        replaced = credential.user_id in self._backend
        self._backend.put(credential.user_id, credential)
        logger.info(
            "%s credentials for user %s (account=%s, token=%s)",
            "Replaced" if replaced else "Stored",
            credential.user_id,
            credential.account_id,
            redact_token(credential.access_token),
        )

    def __len__(self) -> int:
        return len(self._backend)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._backend


__all__ = ["CredentialStore", "KeyValueStore", "MemoryStore"]
