"""Storage seam for the three app records.

The browser app kept ``user``, ``userFinances`` and ``wallet`` as JSON strings
in local storage. Here they sit behind a tiny key-value interface with an
in-memory implementation for tests and a JSON-file-per-key one for the app.

Writes replace a whole record. Two windows saving the same record will
overwrite each other (last writer wins), which is accepted for a single-user
local app.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

from budgetflow import config
from budgetflow.domain import FinancialProfile, UserProfile, WalletState
from budgetflow.errors import NotFound, StorageError
from budgetflow.functional import Maybe, Nothing, Some

logger = logging.getLogger(__name__)

USER_KEY = "user"
FINANCES_KEY = "userFinances"
WALLET_KEY = "wallet"

R = TypeVar("R")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Maybe[Dict[str, Any]]:
        ...

    def put(self, key: str, doc: Dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryStore:
    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self._docs: Dict[str, Dict[str, Any]] = copy.deepcopy(initial or {})

    def get(self, key: str) -> Maybe[Dict[str, Any]]:
        if key not in self._docs:
            return Nothing()
        return Some(copy.deepcopy(self._docs[key]))

    def put(self, key: str, doc: Dict[str, Any]) -> None:
        self._docs[key] = copy.deepcopy(doc)

    def delete(self, key: str) -> None:
        self._docs.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._docs)


class JsonFileStore:
    """One ``<key>.json`` file per record."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory or config.DATA_DIR)

    def get_path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_-]", "_", key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Maybe[Dict[str, Any]]:
        target = self.get_path(key)
        if not target.exists():
            return Nothing()
        try:
            with target.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as exc:
            logger.error("Could not read %s: %s", target, exc)
            raise StorageError(f"Stored record {key!r} is unreadable") from exc
        if not isinstance(data, dict):
            logger.error("Stored record %s is not an object", target)
            raise StorageError(f"Stored record {key!r} is not a JSON object")
        return Some(data)

    def put(self, key: str, doc: Dict[str, Any]) -> None:
        target = self.get_path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with target.open("w", encoding="utf-8") as handle:
                json.dump(doc, handle, indent=2, ensure_ascii=False)
        except OSError as exc:
            logger.error("Could not write %s: %s", target, exc)
            raise StorageError(f"Could not save record {key!r}") from exc

    def delete(self, key: str) -> None:
        self.get_path(key).unlink(missing_ok=True)


class WalletRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def _load(self, key: str, parse: Callable[[Dict[str, Any]], R]) -> Maybe[R]:
        def _parse(doc: Dict[str, Any]) -> R:
            try:
                return parse(doc)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.error("Stored record %r has an unexpected shape: %s", key, exc)
                raise StorageError(f"Stored record {key!r} is malformed") from exc

        return self.store.get(key).map(_parse)

    def load_wallet(self) -> Maybe[WalletState]:
        return self._load(WALLET_KEY, WalletState.from_document)

    def require_wallet(self) -> WalletState:
        return self.load_wallet().get_or_raise(lambda: NotFound(WALLET_KEY))

    def save_wallet(self, wallet: WalletState) -> None:
        self.store.put(WALLET_KEY, wallet.to_document())
        logger.debug("Saved wallet with %d transactions", len(wallet.transactions))

    def load_user(self) -> Maybe[UserProfile]:
        return self._load(USER_KEY, UserProfile.from_document)

    def require_user(self) -> UserProfile:
        return self.load_user().get_or_raise(lambda: NotFound(USER_KEY))

    def save_user(self, user: UserProfile) -> None:
        self.store.put(USER_KEY, user.to_document())

    def load_finances(self) -> Maybe[FinancialProfile]:
        return self._load(FINANCES_KEY, FinancialProfile.from_document)

    def require_finances(self) -> FinancialProfile:
        return self.load_finances().get_or_raise(lambda: NotFound(FINANCES_KEY))

    def save_finances(self, finances: FinancialProfile) -> None:
        self.store.put(FINANCES_KEY, finances.to_document())

    def clear(self) -> None:
        for key in (USER_KEY, FINANCES_KEY, WALLET_KEY):
            self.store.delete(key)
