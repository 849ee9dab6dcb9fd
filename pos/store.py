import copy
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from pos.events import EventBus, Subscription, changed_event
from pos.logging import get_logger
from pos.transforms import COLLECTIONS, Records, load_seed

SnapshotHandler = Callable[[Records], Any]


class StoreError(Exception):
    """The backing store could not be reached or rejected the request."""


def _check_path(path: str) -> str:
    if path not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {path!r}")
    return path


class Store(ABC):
    """Keyed collections with push/list/update/remove and change subscriptions.

    Subscribers receive the complete collection snapshot: once when they
    subscribe and again after every write made through this store.
    """

    def __init__(self):
        self.events = EventBus()
        self.log = get_logger("store")

    @abstractmethod
    def list(self, path: str) -> Records:
        pass

    @abstractmethod
    def push(self, path: str, record: Mapping[str, Any]) -> str:
        pass

    @abstractmethod
    def update(self, path: str, key: str, fields: Mapping[str, Any]) -> None:
        pass

    @abstractmethod
    def remove(self, path: str, key: str) -> None:
        pass

    def subscribe(self, path: str, handler: SnapshotHandler) -> Subscription:
        name = changed_event(_check_path(path))
        handler(self.list(path))
        return self.events.subscribe(name, lambda event, payload: handler(payload["records"]))

    def refresh(self, path: str) -> None:
        """Re-read a collection and push the snapshot to its subscribers."""
        name = changed_event(_check_path(path))
        if self.events.subscriber_count(name) == 0:
            return
        self.events.publish(name, {"records": self.list(path)})

    def _notify_written(self, path: str) -> None:
        # the write already landed; a failed re-read must not report it as lost
        try:
            self.refresh(path)
        except StoreError as e:
            self.log.warning(f"Refreshing {path} after write failed: {e}")


class MemoryStore(Store):
    def __init__(self, data: Optional[Mapping[str, Records]] = None):
        super().__init__()
        self._data: Dict[str, Records] = {name: {} for name in COLLECTIONS}
        for name, records in (data or {}).items():
            self._data[_check_path(name)] = copy.deepcopy(dict(records))

    @classmethod
    def from_seed(cls, path: str) -> "MemoryStore":
        store = cls(load_seed(path))
        store.log.info(f"Seeded in-memory store from {path}")
        return store

    def list(self, path: str) -> Records:
        return copy.deepcopy(self._data[_check_path(path)])

    def push(self, path: str, record: Mapping[str, Any]) -> str:
        key = uuid.uuid4().hex
        self._data[_check_path(path)][key] = copy.deepcopy(dict(record))
        self.log.debug(f"push {path}/{key}")
        self.refresh(path)
        return key

    def update(self, path: str, key: str, fields: Mapping[str, Any]) -> None:
        records = self._data[_check_path(path)]
        records.setdefault(key, {}).update(copy.deepcopy(dict(fields)))
        self.log.debug(f"update {path}/{key}: {sorted(fields)}")
        self.refresh(path)

    def remove(self, path: str, key: str) -> None:
        self._data[_check_path(path)].pop(key, None)
        self.log.debug(f"remove {path}/{key}")
        self.refresh(path)


class RealtimeDatabaseStore(Store):
    """Client for the Firebase Realtime Database REST API.

    Only the operations the app needs: read a whole collection, push with a
    generated key, partial update, and delete.
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__()
        self.base = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self.s = session or requests.Session()
        self.s.headers.update({"Accept": "application/json"})

    # ---------- helpers ----------
    def _url(self, path: str, key: Optional[str] = None) -> str:
        _check_path(path)
        if key is None:
            return f"{self.base}/{path}.json"
        return f"{self.base}/{path}/{key}.json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self.auth} if self.auth else {}

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            r = self.s.request(method, url, params=self._params(), timeout=self.timeout, **kwargs)
            r.raise_for_status()
        except requests.RequestException as e:
            self.log.error(f"{method} {url} failed: {e}")
            raise StoreError(f"{method} {url} failed: {e}") from e
        try:
            return r.json()
        except ValueError as e:
            raise StoreError(f"{method} {url} returned invalid JSON") from e

    # ---------- collections ----------
    def list(self, path: str) -> Records:
        url = self._url(path)
        self.log.debug(f"GET {url}")
        body = self._request("GET", url)
        if not isinstance(body, dict):
            return {}
        return body

    def push(self, path: str, record: Mapping[str, Any]) -> str:
        url = self._url(path)
        body = self._request("POST", url, json=dict(record))
        key = body.get("name") if isinstance(body, dict) else None
        if not key:
            raise StoreError(f"POST {url} did not return a key")
        self.log.info(f"Created {path}/{key}")
        self._notify_written(path)
        return key

    def update(self, path: str, key: str, fields: Mapping[str, Any]) -> None:
        url = self._url(path, key)
        self._request("PATCH", url, json=dict(fields))
        self.log.info(f"Updated {path}/{key}: {sorted(fields)}")
        self._notify_written(path)

    def remove(self, path: str, key: str) -> None:
        url = self._url(path, key)
        self._request("DELETE", url)
        self.log.info(f"Deleted {path}/{key}")
        self._notify_written(path)


def open_store(settings) -> Store:
    """Remote store when a database URL is configured, seeded memory store otherwise."""
    log = get_logger("store")
    if settings.uses_remote_store:
        log.info(f"Using realtime database at {settings.database_url}")
        return RealtimeDatabaseStore(
            settings.database_url,
            auth=settings.database_auth,
            timeout=settings.request_timeout,
        )
    try:
        return MemoryStore.from_seed(settings.seed_path)
    except FileNotFoundError:
        log.warning(f"Seed file {settings.seed_path} not found; starting with an empty store")
        return MemoryStore()
